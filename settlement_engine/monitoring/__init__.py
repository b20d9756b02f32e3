"""Post-settlement monitoring package."""

from settlement_engine.monitoring.monitor import SettlementMonitor

__all__ = ["SettlementMonitor"]
