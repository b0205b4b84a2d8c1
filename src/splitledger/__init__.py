"""SplitLedger - Shared group expenses, net balances and minimal settle-up plans."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .ledger import BalanceLedger
from .models import (
    Expense,
    LedgerEntry,
    MemberPosition,
    PairBalance,
    Settlement,
    SplitResult,
    SplitStrategy,
    Transaction,
)
from .planner import net_positions, plan_from_positions, plan_settlement
from .service import LedgerService
from .splitter import calculate_split

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "BalanceLedger",
    "Expense",
    "LedgerEntry",
    "MemberPosition",
    "PairBalance",
    "Settlement",
    "SplitResult",
    "SplitStrategy",
    "Transaction",
    "net_positions",
    "plan_from_positions",
    "plan_settlement",
    "LedgerService",
    "calculate_split",
]
