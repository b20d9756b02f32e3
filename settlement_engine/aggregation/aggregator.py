"""
Balance Aggregation

Turns ledger entries into PlayerBalance snapshots and checks that the
snapshot is balanced. Also settles a single player who leaves early
against the cash the bank currently holds.

DESIGN DECISION: An unbalanced ledger is detected here and never fixed
here. Only a remainder within tolerance (left over by upstream rounding)
is absorbed, and every absorption is recorded as a
FractionalCentAdjustment:
- positive remainder (too much owed out): the largest creditor absorbs it
- negative remainder (too much owed in): the largest debtor absorbs it
Ties go to the smallest player id.
"""

from typing import Iterable, Optional, Sequence

from settlement_engine.config import EngineSettings, get_settings
from settlement_engine.errors import UnbalancedInputError
from settlement_engine.models.balance import (
    BankBalance,
    EarlyCashOutResult,
    EarlyCashOutType,
    LedgerEntry,
    LedgerEntryType,
    PaymentPlanEntry,
    PlayerBalance,
)
from settlement_engine.models.proof import FractionalCentAdjustment
from settlement_engine.models.result import EarlyCashOutOutcome, Err, ErrorKind, Ok
from settlement_engine.models.validation import ErrorCode, SettlementError, Severity


def net_sum(balances: Iterable[PlayerBalance]) -> int:
    """Sum of all net positions."""
    return sum(b.net_position for b in balances)


def resolve_tolerance(
    balances: Sequence[PlayerBalance],
    settings: Optional[EngineSettings] = None,
) -> int:
    settings = settings or get_settings().engine
    return settings.tolerance_for(len(balances))


def aggregate_balances(
    entries: Iterable[LedgerEntry],
    chip_counts: Optional[dict[str, int]] = None,
    settings: Optional[EngineSettings] = None,
) -> list[PlayerBalance]:
    """
    Aggregate ledger entries into one PlayerBalance per player.

    Players keep the order in which they first appear in the ledger.
    Voided entries are ignored. chip_counts holds the chip value of
    players still at the table; it counts as a cash-out.

    Raises UnbalancedInputError if |sum of net positions| > tolerance.
    """
    settings = settings or get_settings().engine
    chip_counts = chip_counts or {}

    order: list[str] = []
    names: dict[str, str] = {}
    buy_ins: dict[str, int] = {}
    cash_outs: dict[str, int] = {}

    for entry in entries:
        if entry.player_id not in buy_ins:
            order.append(entry.player_id)
            buy_ins[entry.player_id] = 0
            cash_outs[entry.player_id] = 0
        if entry.player_name and not names.get(entry.player_id):
            names[entry.player_id] = entry.player_name
        if entry.is_voided:
            continue
        if entry.entry_type == LedgerEntryType.BUY_IN:
            buy_ins[entry.player_id] += entry.amount
        else:
            cash_outs[entry.player_id] += entry.amount

    for player_id, chips in chip_counts.items():
        if chips < 0:
            raise ValueError(f"Chip count for {player_id} cannot be negative")
        if player_id not in buy_ins:
            order.append(player_id)
            buy_ins[player_id] = 0
            cash_outs[player_id] = 0
        cash_outs[player_id] += chips

    balances = [
        PlayerBalance(
            player_id=player_id,
            name=names.get(player_id, ""),
            total_buy_ins=buy_ins[player_id],
            total_cash_outs=cash_outs[player_id],
        )
        for player_id in order
    ]

    check_balance(balances, settings.tolerance_for(len(balances)))
    return balances


def check_balance(balances: Sequence[PlayerBalance], tolerance: int) -> int:
    """
    Verify that net positions sum to zero within tolerance.

    Returns the observed sum. Raises UnbalancedInputError otherwise.
    """
    total = net_sum(balances)
    if abs(total) > tolerance:
        raise UnbalancedInputError(net_sum=total, tolerance=tolerance)
    return total


def find_absorber(balances: Sequence[PlayerBalance], remainder: int) -> Optional[PlayerBalance]:
    """
    Pick the player that absorbs a remainder.

    Positive remainder: largest creditor. Negative: largest debtor.
    Falls back to the largest absolute position when the side is empty.
    """
    if remainder > 0:
        candidates = [b for b in balances if b.net_position > 0]
    else:
        candidates = [b for b in balances if b.net_position < 0]
    if not candidates:
        candidates = list(balances)
    if not candidates:
        return None
    return min(candidates, key=lambda b: (-abs(b.net_position), b.player_id))


def normalize_positions(
    balances: Sequence[PlayerBalance],
    tolerance: int,
) -> tuple[list[PlayerBalance], list[FractionalCentAdjustment]]:
    """
    Absorb a within-tolerance remainder so that positions sum to exactly 0.

    Returns (normalized_balances, adjustments). The input is not modified.
    Raises UnbalancedInputError if the remainder exceeds tolerance.
    """
    remainder = check_balance(balances, tolerance)
    if remainder == 0:
        return list(balances), []

    absorber = find_absorber(balances, remainder)
    adjusted_net = absorber.net_position - remainder

    if remainder > 0:
        reason = (
            f"Positions summed to +{remainder}; the largest creditor absorbs "
            "the positive remainder"
        )
    else:
        reason = (
            f"Positions summed to {remainder}; the largest debtor absorbs "
            "the negative remainder"
        )

    adjustment = FractionalCentAdjustment(
        player_id=absorber.player_id,
        player_name=absorber.name,
        original_amount=absorber.net_position,
        adjusted_amount=adjusted_net,
        adjustment_reason=reason,
    )

    normalized = [
        b.with_net_position(adjusted_net) if b.player_id == absorber.player_id else b
        for b in balances
    ]
    return normalized, [adjustment]


def compute_bank_balance(
    entries: Iterable[LedgerEntry],
    chip_counts: Optional[dict[str, int]] = None,
) -> BankBalance:
    """
    Compare the cash the bank took in with what it paid out and still owes.

    discrepancy = (cash-outs + chips in play) - buy-ins
    """
    total_buy_ins = 0
    total_cash_outs = 0
    for entry in entries:
        if entry.is_voided:
            continue
        if entry.entry_type == LedgerEntryType.BUY_IN:
            total_buy_ins += entry.amount
        else:
            total_cash_outs += entry.amount

    chips_in_play = sum((chip_counts or {}).values())
    discrepancy = total_cash_outs + chips_in_play - total_buy_ins

    return BankBalance(
        total_buy_ins=total_buy_ins,
        total_cash_outs=total_cash_outs,
        total_chips_in_play=chips_in_play,
        available_for_cash_out=total_buy_ins - total_cash_outs,
        discrepancy=discrepancy,
        is_balanced=discrepancy == 0,
    )


def calculate_early_cash_out(
    entries: Iterable[LedgerEntry],
    player_id: str,
    chip_count: int,
) -> EarlyCashOutOutcome:
    """
    Settle a player who leaves mid-game against the current bank.

    net_position = chip_count - player's buy-ins
    A winner is paid their net from the bank and needs enough cash
    available; a loser pays their net into the bank.

    Returns:
        Ok(EarlyCashOutResult), or Err(INVALID_REQUEST) for a negative chip
        count or unknown player, or Err(INSUFFICIENT_BANK_BALANCE)
    """
    entries = list(entries)
    if chip_count < 0:
        return Err(
            kind=ErrorKind.INVALID_REQUEST,
            message=f"Chip count for {player_id} cannot be negative",
        )

    player_entries = [e for e in entries if e.player_id == player_id and not e.is_voided]
    if not player_entries:
        return Err(
            kind=ErrorKind.INVALID_REQUEST,
            message=f"Player {player_id} has no ledger entries in this session",
        )

    bank = compute_bank_balance(entries)
    available = bank.available_for_cash_out
    total_buy_ins = sum(
        e.amount for e in player_entries if e.entry_type == LedgerEntryType.BUY_IN
    )
    player_name = next((e.player_name for e in player_entries if e.player_name), "")
    net_position = chip_count - total_buy_ins

    if net_position > 0:
        settlement_type = EarlyCashOutType.PAYMENT_TO_PLAYER
        amount = net_position
        balance_after = available - amount
    elif net_position < 0:
        settlement_type = EarlyCashOutType.PAYMENT_FROM_PLAYER
        amount = -net_position
        balance_after = available + amount
    else:
        settlement_type = EarlyCashOutType.EVEN
        amount = 0
        balance_after = available

    if settlement_type == EarlyCashOutType.PAYMENT_TO_PLAYER and amount > available:
        message = (
            f"Insufficient bank balance: requested {amount}, available {available}"
        )
        return Err(
            kind=ErrorKind.INSUFFICIENT_BANK_BALANCE,
            message=message,
            errors=[SettlementError(
                code=ErrorCode.INSUFFICIENT_BANK_BALANCE,
                message=message,
                severity=Severity.CRITICAL,
                affected_players=[player_id],
            )],
        )

    return Ok[EarlyCashOutResult](value=EarlyCashOutResult(
        player_id=player_id,
        player_name=player_name,
        current_chip_value=chip_count,
        total_buy_ins=total_buy_ins,
        net_position=net_position,
        settlement_amount=amount,
        settlement_type=settlement_type,
        bank_balance_before=available,
        bank_balance_after=balance_after,
    ))


def payment_flows(payments: Iterable[PaymentPlanEntry]) -> dict[str, tuple[int, int]]:
    """Per player (total paid, total received) across a payment plan."""
    paid: dict[str, int] = {}
    received: dict[str, int] = {}
    for payment in payments:
        paid[payment.from_player_id] = paid.get(payment.from_player_id, 0) + payment.amount
        received[payment.to_player_id] = received.get(payment.to_player_id, 0) + payment.amount
    players = sorted(set(paid) | set(received))
    return {p: (paid.get(p, 0), received.get(p, 0)) for p in players}


def net_settled_amount(payments: Iterable[PaymentPlanEntry]) -> int:
    """
    Money that actually changes owner: the sum of every player's net outflow.

    Equals the plain sum of payments unless some player both pays and
    receives (a hub passing money through).
    """
    return sum(max(paid - received, 0) for paid, received in payment_flows(payments).values())
