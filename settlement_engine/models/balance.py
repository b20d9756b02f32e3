"""
Balance and Payment Models

These are the inputs and the atomic outputs of the engine:
- LedgerEntry: one buy-in or cash-out as recorded by the session service
- PlayerBalance: a player's aggregated net position
- PaymentPlanEntry: one hand-to-hand payment

All amounts are integer minor units (cents). Models are frozen: a new
snapshot supersedes an old one, nothing is edited in place.
"""

from datetime import datetime
from decimal import Decimal
import decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


class LedgerEntryType(str, Enum):
    """Kinds of ledger movements."""
    BUY_IN = "buy_in"
    CASH_OUT = "cash_out"


class LedgerEntry(BaseModel):
    """A single buy-in or cash-out recorded for a player."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    player_id: str = Field(
        ...,
        min_length=1,
        description="Stable player identifier"
    )
    player_name: str = Field(
        default="",
        max_length=100,
        description="Display name"
    )
    entry_type: LedgerEntryType
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in minor units"
    )
    is_voided: bool = Field(
        default=False,
        description="Voided entries are ignored by aggregation"
    )
    timestamp: Optional[datetime] = None

    @classmethod
    def from_major_units(
        cls,
        player_id: str,
        entry_type: LedgerEntryType,
        amount: Union[Decimal, str, int, float],
        player_name: str = "",
        decimal_places: int = 2,
        rounding_mode: str = "ROUND_HALF_UP",
        **kwargs,
    ) -> "LedgerEntry":
        """
        Build an entry from a major-unit amount (e.g. dollars).

        Floats are routed through str() so that 0.1 becomes exactly 0.10.
        """
        value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
        scaled = value.scaleb(decimal_places).to_integral_value(
            rounding=getattr(decimal, rounding_mode)
        )
        return cls(
            player_id=player_id,
            player_name=player_name,
            entry_type=entry_type,
            amount=int(scaled),
            **kwargs,
        )


class PlayerBalance(BaseModel):
    """
    A player's aggregated position.

    net_position = total_cash_outs - total_buy_ins
    Positive = creditor (is owed money), negative = debtor (owes money).
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    player_id: str = Field(..., min_length=1)
    name: str = Field(default="", max_length=100)
    total_buy_ins: int = Field(default=0, ge=0)
    total_cash_outs: int = Field(default=0, ge=0)
    net_position: int = Field(
        default=None,
        validate_default=False,
        description="Derived from buy-ins and cash-outs when omitted"
    )

    @model_validator(mode="before")
    @classmethod
    def derive_net_position(cls, data):
        """Fill net_position from the totals when it is not supplied."""
        if isinstance(data, dict) and data.get("net_position") is None:
            data = dict(data)
            data["net_position"] = int(data.get("total_cash_outs", 0)) - int(
                data.get("total_buy_ins", 0)
            )
        return data

    @model_validator(mode="after")
    def check_totals_match_net(self) -> "PlayerBalance":
        """Reject an explicit net_position that contradicts the supplied totals."""
        if {"total_buy_ins", "total_cash_outs"} & self.model_fields_set:
            derived = self.total_cash_outs - self.total_buy_ins
            if self.net_position != derived:
                raise ValueError(
                    f"net_position {self.net_position} for {self.player_id} does not match "
                    f"cash-outs minus buy-ins ({derived})"
                )
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.player_id

    @property
    def is_creditor(self) -> bool:
        return self.net_position > 0

    @property
    def is_debtor(self) -> bool:
        return self.net_position < 0

    @classmethod
    def from_net(cls, player_id: str, net_position: int, name: str = "") -> "PlayerBalance":
        """Build a balance from a bare net position."""
        return cls(
            player_id=player_id,
            name=name,
            total_buy_ins=max(-net_position, 0),
            total_cash_outs=max(net_position, 0),
            net_position=net_position,
        )

    def with_net_position(self, net_position: int) -> "PlayerBalance":
        """Return a copy whose cash-outs are shifted to reach net_position."""
        delta = net_position - self.net_position
        cash_outs = self.total_cash_outs + delta
        buy_ins = self.total_buy_ins
        if cash_outs < 0:
            buy_ins -= cash_outs
            cash_outs = 0
        return self.model_copy(
            update={
                "total_cash_outs": cash_outs,
                "total_buy_ins": buy_ins,
                "net_position": net_position,
            }
        )


class PaymentPlanEntry(BaseModel):
    """
    One payment in a settlement plan.

    Installment fields are set when a single logical payment was split
    into several similarly-sized transfers.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    from_player_id: str = Field(..., min_length=1)
    to_player_id: str = Field(..., min_length=1)
    amount: int = Field(
        ...,
        description="Amount in minor units, positive for a well-formed payment"
    )
    priority: int = Field(
        default=1,
        ge=1,
        description="1 = settled first"
    )
    from_player_name: str = ""
    to_player_name: str = ""
    description: Optional[str] = Field(default=None, max_length=200)
    installment: Optional[int] = Field(default=None, ge=1)
    installments: Optional[int] = Field(default=None, ge=1)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_player_id, self.to_player_id)

    @property
    def is_installment(self) -> bool:
        return self.installment is not None and self.installments is not None


class BankBalance(BaseModel):
    """Cash held by the bank versus what it owes, derived from the ledger."""

    model_config = ConfigDict(frozen=True)

    total_buy_ins: int
    total_cash_outs: int
    total_chips_in_play: int
    available_for_cash_out: int
    discrepancy: int = Field(
        ...,
        description="(cash-outs + chips in play) - buy-ins"
    )
    is_balanced: bool


class EarlyCashOutType(str, Enum):
    """Direction of money for a player leaving mid-game."""
    PAYMENT_TO_PLAYER = "payment_to_player"
    PAYMENT_FROM_PLAYER = "payment_from_player"
    EVEN = "even"


class EarlyCashOutResult(BaseModel):
    """
    Settlement of one player leaving before the session ends.

    The player hands in chips worth current_chip_value. Their net position
    against their buy-ins is settled with the bank right away; everyone
    else keeps playing.
    """

    model_config = ConfigDict(frozen=True)

    player_id: str
    player_name: str = ""
    current_chip_value: int = Field(..., ge=0)
    total_buy_ins: int = Field(..., ge=0)
    net_position: int = Field(
        ...,
        description="current_chip_value - total_buy_ins"
    )
    settlement_amount: int = Field(
        ...,
        ge=0,
        description="Amount the player receives or pays, in minor units"
    )
    settlement_type: EarlyCashOutType
    bank_balance_before: int = Field(
        ...,
        description="Cash available for cash-outs before this player leaves"
    )
    bank_balance_after: int
