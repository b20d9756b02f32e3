"""Records of manual ledger changes made after a settlement was issued."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ManualAdjustmentType(str, Enum):
    CHIP_COUNT = "chip_count"
    BUY_IN = "buy_in"
    CASH_OUT = "cash_out"
    PLAYER_ADDITION = "player_addition"
    PLAYER_REMOVAL = "player_removal"


class ManualAdjustmentRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    adjustment_id: str
    timestamp: datetime
    player_id: Optional[str] = None
    adjustment_type: ManualAdjustmentType
    field_changed: str
    previous_value: int
    new_value: int
    adjusted_by: str = Field(default="organizer")
    reason: Optional[str] = None

    @property
    def balance_impact(self) -> int:
        return self.new_value - self.previous_value
