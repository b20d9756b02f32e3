"""Configuration package."""

from settlement_engine.config.settings import (
    EngineSettings,
    ScoringWeights,
    SearchSettings,
    Settings,
    WarningSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "EngineSettings",
    "ScoringWeights",
    "SearchSettings",
    "Settings",
    "WarningSettings",
    "get_settings",
    "validate_all_settings",
]
