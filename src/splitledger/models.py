"""Pydantic domain models for SplitLedger.

All monetary amounts are integers in the currency's minor unit (cents for
USD). Conversion from human-readable decimals lives in ``money``.
"""

from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Input records
# ============================================================================


class SplitStrategy(str, Enum):
    """How an expense total is divided among its participants."""

    EQUAL = "equal"
    EXACT = "exact"  # shares are minor units
    PERCENTAGE = "percentage"  # shares are basis points (10000 = 100%)


class Expense(BaseModel):
    """An expense paid by one member on behalf of an ordered list of participants.

    Participant order matters: rounding remainders go to the first
    participants in the order given, so re-splitting an unmodified expense
    always yields the same result.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    payer: str
    total_amount: int
    strategy: SplitStrategy = SplitStrategy.EQUAL
    participants: list[str]
    shares: dict[str, int] | None = None
    description: str = ""


class Settlement(BaseModel):
    """A real-world payment from one member to another."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    from_member: str
    to_member: str
    amount: int
    note: str | None = None


# ============================================================================
# Split / ledger records
# ============================================================================


class SplitResult(BaseModel):
    """Per-participant owed amounts for one expense, in participant order."""

    model_config = ConfigDict(frozen=True)

    expense_id: str
    payer: str
    total_amount: int
    shares: dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.shares.values())


class EntrySource(BaseModel):
    """Provenance of a ledger entry."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["expense", "settlement"]
    id: str


class LedgerEntry(BaseModel):
    """A signed contribution to the pairwise balance table.

    Reads as "debtor owes creditor ``amount``". Settlement entries carry a
    negative amount because they reduce an existing debt.
    """

    model_config = ConfigDict(frozen=True)

    source: EntrySource
    debtor: str
    creditor: str
    amount: int


# ============================================================================
# Output records
# ============================================================================


class PairBalance(BaseModel):
    """Net amount between two members; positive means member_b owes member_a."""

    model_config = ConfigDict(frozen=True)

    member_a: str
    member_b: str
    amount: int


class MemberPosition(BaseModel):
    """A member's aggregate position; positive means the group owes them."""

    model_config = ConfigDict(frozen=True)

    member: str
    amount: int


class Transaction(BaseModel):
    """A proposed payment in a settlement plan."""

    model_config = ConfigDict(frozen=True)

    from_member: str
    to_member: str
    amount: int

    def to_settlement(self, settlement_id: str | None = None) -> Settlement:
        """Turn this proposal into a settlement record."""
        if settlement_id is None:
            return Settlement(
                from_member=self.from_member,
                to_member=self.to_member,
                amount=self.amount,
            )
        return Settlement(
            id=settlement_id,
            from_member=self.from_member,
            to_member=self.to_member,
            amount=self.amount,
        )
