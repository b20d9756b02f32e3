"""
Post-Settlement Monitoring

Watches for manual ledger changes made after a settlement was issued.

DESIGN DECISION: The monitor is read-only with respect to the issued
settlement. It recomputes warnings against the current ledger positions
and keeps its adjustment history on the instance; nothing it does can
alter the OptimizedSettlement it watches.
"""

from datetime import timedelta
from typing import Optional, Sequence

from settlement_engine.audit import AuditLogger
from settlement_engine.config import Settings, get_settings
from settlement_engine.models.balance import PlayerBalance
from settlement_engine.models.monitoring import ManualAdjustmentRecord, ManualAdjustmentType
from settlement_engine.models.settlement import OptimizedSettlement
from settlement_engine.models.validation import (
    CorrectionType,
    PlayerCorrection,
    SettlementCorrection,
    SettlementWarning,
    Severity,
    WarningCode,
)
from settlement_engine.precision import format_minor_units
from settlement_engine.validation import SEVERITY_MESSAGES, Clock, correction_id_for, utc_now


class SettlementMonitor:
    """
    Tracks one issued settlement.

    Usage:
        monitor = SettlementMonitor(settlement)
        warnings = monitor.record_adjustment("p3", ManualAdjustmentType.CHIP_COUNT,
                                             "chips", 12_000, 9_000)
        warnings += monitor.check(current_balances)
    """

    def __init__(
        self,
        settlement: OptimizedSettlement,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._settlement = settlement
        self._settings = settings or get_settings()
        self._warnings = self._settings.warnings
        self._decimal_places = self._settings.engine.decimal_places
        self._audit_logger = audit_logger
        self._clock = clock or utc_now
        self._adjustments: list[ManualAdjustmentRecord] = []

    @property
    def settlement(self) -> OptimizedSettlement:
        return self._settlement

    @property
    def adjustments(self) -> list[ManualAdjustmentRecord]:
        return list(self._adjustments)

    # ========================================================================
    # Adjustments
    # ========================================================================

    def record_adjustment(
        self,
        player_id: Optional[str],
        adjustment_type: ManualAdjustmentType,
        field_changed: str,
        previous_value: int,
        new_value: int,
        adjusted_by: str = "organizer",
        reason: Optional[str] = None,
    ) -> list[SettlementWarning]:
        """
        Record a manual change and return the warnings it triggers.

        Returns LARGE_ADJUSTMENT and FREQUENT_ADJUSTMENTS warnings; call
        check() with the updated positions for discrepancy warnings.
        """
        record = ManualAdjustmentRecord(
            adjustment_id=f"adj_{len(self._adjustments) + 1:04d}",
            timestamp=self._clock(),
            player_id=player_id,
            adjustment_type=adjustment_type,
            field_changed=field_changed,
            previous_value=previous_value,
            new_value=new_value,
            adjusted_by=adjusted_by,
            reason=reason,
        )
        self._adjustments.append(record)

        warnings = []
        large = self._large_adjustment_warning(record)
        if large:
            warnings.append(large)
        frequent = self._frequent_adjustments_warning(record)
        if frequent:
            warnings.append(frequent)

        self._log(warnings)
        return warnings

    def _large_adjustment_warning(
        self,
        record: ManualAdjustmentRecord,
    ) -> Optional[SettlementWarning]:
        impact = abs(record.balance_impact)
        if impact <= self._warnings.large_adjustment_minor_units:
            return None

        severity = (
            Severity.CRITICAL
            if impact > self._warnings.critical_adjustment_minor_units
            else Severity.MAJOR
        )
        return SettlementWarning(
            code=WarningCode.LARGE_ADJUSTMENT,
            message=(
                f"Large manual adjustment detected: "
                f"{format_minor_units(impact, self._decimal_places)} change in {record.field_changed}"
            ),
            severity=severity,
            affected_players=[record.player_id] if record.player_id else [],
            can_proceed=True,
            requires_approval=impact > self._warnings.require_approval_threshold_minor_units,
            balance_discrepancy=impact,
            suggested_actions=[
                "Verify the adjustment with game participants",
                "Document the reason for this adjustment",
                "Consider if this adjustment affects settlement calculations",
            ],
        )

    def _frequent_adjustments_warning(
        self,
        record: ManualAdjustmentRecord,
    ) -> Optional[SettlementWarning]:
        window = timedelta(minutes=self._warnings.frequent_adjustment_window_minutes)
        recent = [a for a in self._adjustments if record.timestamp - a.timestamp <= window]
        if len(recent) < self._warnings.frequent_adjustment_count:
            return None

        return SettlementWarning(
            code=WarningCode.FREQUENT_ADJUSTMENTS,
            message=(
                f"Multiple manual adjustments detected ({len(recent)} in last "
                f"{self._warnings.frequent_adjustment_window_minutes} minutes)"
            ),
            severity=Severity.MAJOR,
            can_proceed=True,
            requires_approval=False,
            suggested_actions=[
                "Review recent adjustments for consistency",
                "Consider if data entry process needs improvement",
                "Verify game state with participants",
            ],
        )

    # ========================================================================
    # Balance checks
    # ========================================================================

    def check(self, current_balances: Sequence[PlayerBalance]) -> list[SettlementWarning]:
        """
        Compare current positions with the positions the settlement was issued for.

        Returns at most one BALANCE_DISCREPANCY warning, classified by the
        total absolute drift across players.
        """
        issued = {b.player_id: b for b in self._settlement.balances}
        current = {b.player_id: b for b in current_balances}

        drifted = []
        for player_id in sorted(set(issued) | set(current)):
            before = issued[player_id].net_position if player_id in issued else 0
            after = current[player_id].net_position if player_id in current else 0
            if before != after:
                drifted.append((player_id, before, after))

        discrepancy = sum(abs(after - before) for _, before, after in drifted)
        severity = self._classify(discrepancy)
        if severity is None:
            return []

        warning = SettlementWarning(
            code=WarningCode.BALANCE_DISCREPANCY,
            message=(
                f"Balance discrepancy detected: "
                f"{format_minor_units(discrepancy, self._decimal_places)}. "
                f"{SEVERITY_MESSAGES[severity]}"
            ),
            severity=severity,
            affected_players=[player_id for player_id, _, _ in drifted],
            can_proceed=severity != Severity.CRITICAL,
            requires_approval=(
                severity == Severity.CRITICAL
                or discrepancy > self._warnings.require_approval_threshold_minor_units
            ),
            balance_discrepancy=discrepancy,
            suggested_actions=self._suggested_actions(severity, discrepancy),
            auto_correction=self._restore_correction(drifted, current, issued, discrepancy),
        )
        self._log([warning])
        return [warning]

    def _classify(self, discrepancy: int) -> Optional[Severity]:
        if discrepancy > self._warnings.critical_discrepancy_minor_units:
            return Severity.CRITICAL
        if discrepancy > self._warnings.major_discrepancy_minor_units:
            return Severity.MAJOR
        if discrepancy > self._warnings.minor_discrepancy_minor_units:
            return Severity.MINOR
        return None

    def _suggested_actions(self, severity: Severity, discrepancy: int) -> list[str]:
        actions = [
            "Review recent transactions for accuracy",
            "Verify player chip counts manually",
            "Check for any voided or missing transactions",
        ]
        if severity == Severity.CRITICAL:
            actions.insert(0, "STOP - Settlement blocked until resolved")
            actions.append("Contact game participants to verify balances")
        if discrepancy > self._warnings.require_approval_threshold_minor_units:
            actions.append("Consider manual adjustment with documented reason")
        return actions

    def _restore_correction(
        self,
        drifted: list[tuple[str, int, int]],
        current: dict[str, PlayerBalance],
        issued: dict[str, PlayerBalance],
        discrepancy: int,
    ) -> Optional[SettlementCorrection]:
        """Offer to restore the issued positions when the drift is small."""
        if not self._warnings.enable_auto_correction:
            return None
        if discrepancy > self._warnings.auto_correct_threshold_minor_units:
            return None

        corrections = []
        for player_id, before, after in drifted:
            balance = current.get(player_id) or issued.get(player_id)
            corrections.append(PlayerCorrection(
                player_id=player_id,
                player_name=balance.name,
                original_value=after,
                suggested_value=before,
                reason="Restore the position the settlement was issued for",
            ))
        return SettlementCorrection(
            correction_id=correction_id_for(corrections),
            type=CorrectionType.SUGGESTED,
            description=f"Restore {len(corrections)} player positions to the settled values",
            affected_players=[c.player_id for c in corrections],
            corrections=corrections,
            estimated_impact=discrepancy,
        )

    def _log(self, warnings: list[SettlementWarning]) -> None:
        if not self._audit_logger:
            return
        for warning in warnings:
            self._audit_logger.log_monitoring_warning(
                settlement_id=self._settlement.settlement_id,
                code=warning.code.value,
                severity=warning.severity.value,
                message=warning.message,
            )
