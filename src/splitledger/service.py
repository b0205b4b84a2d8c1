"""Service layer that composes storage, the balance ledger and the planner.

The ledger core is pure in-memory accounting. This module plays the caller:
it loads each group's entries from the database, routes mutations through
the ledger first (which validates them), then persists the result. If the
database write fails the ledger change is undone so memory and storage
never drift apart.
"""

import logging
import sqlite3
import threading

from .config import Settings
from .db import Database
from .exceptions import (
    ExpenseAlreadyRecordedError,
    ExpenseNotFoundError,
    SettlementNotFoundError,
)
from .ledger import BalanceLedger
from .models import (
    Expense,
    LedgerEntry,
    MemberPosition,
    PairBalance,
    Settlement,
    SplitResult,
    Transaction,
)
from .planner import plan_settlement

logger = logging.getLogger(__name__)


class LedgerService:
    """Service for recording group expenses and planning settle-ups."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the ledger service."""
        self.settings = settings
        self.db = database
        self._ledgers: dict[str, BalanceLedger] = {}
        self._group_locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def get_ledger(self, group_id: str) -> BalanceLedger:
        """
        Get the ledger for a group, loading it from storage on first use.

        Each group has its own ledger (and its own write lock), so groups
        never contend with each other.
        """
        with self._registry_lock:
            ledger = self._ledgers.get(group_id)
            if ledger is None:
                ledger = BalanceLedger(group_id, self.db.get_ledger_entries(group_id))
                self._ledgers[group_id] = ledger
            return ledger

    def _group_lock(self, group_id: str) -> threading.RLock:
        """Get the lock serializing read-mutate-persist sequences for a group."""
        with self._registry_lock:
            return self._group_locks.setdefault(group_id, threading.RLock())

    def list_groups(self) -> list[str]:
        """Get every group id with stored expenses or settlements."""
        return self.db.list_groups()

    # ========================================================================
    # Expenses
    # ========================================================================

    def add_expense(self, group_id: str, expense: Expense) -> SplitResult:
        """
        Record a new expense and persist it.

        Args:
            group_id: Group the expense belongs to
            expense: The expense to record

        Returns:
            The split result

        Raises:
            ExpenseAlreadyRecordedError: If the id is already stored for the group
        """
        with self._group_lock(group_id):
            # Expenses with no ledger entries (payer-only) are only visible in storage
            if self.db.get_expense(group_id, expense.id) is not None:
                raise ExpenseAlreadyRecordedError(expense.id)

            ledger = self.get_ledger(group_id)
            split = ledger.record_expense(expense)

            try:
                self.db.save_expense(
                    group_id, expense, ledger.entries_for(expense.id)
                )
            except sqlite3.Error:
                ledger.reverse_expense(expense.id)
                raise

        return split

    def edit_expense(self, group_id: str, expense: Expense) -> SplitResult:
        """
        Replace an existing expense with a new version and re-split it.

        Raises:
            ExpenseNotFoundError: If the expense doesn't exist
        """
        with self._group_lock(group_id):
            previous = self.db.get_expense(group_id, expense.id)
            if previous is None:
                raise ExpenseNotFoundError(group_id, expense.id)

            ledger = self.get_ledger(group_id)
            split = ledger.replace_expense(expense)

            try:
                self.db.save_expense(
                    group_id, expense, ledger.entries_for(expense.id)
                )
            except sqlite3.Error:
                ledger.replace_expense(previous)
                raise

        logger.info(f"Edited expense {expense.id} in group {group_id}")
        return split

    def delete_expense(self, group_id: str, expense_id: str) -> Expense:
        """
        Delete an expense and retract its ledger entries.

        Returns:
            The deleted expense

        Raises:
            ExpenseNotFoundError: If the expense doesn't exist
        """
        with self._group_lock(group_id):
            existing = self.db.get_expense(group_id, expense_id)
            if existing is None:
                raise ExpenseNotFoundError(group_id, expense_id)

            ledger = self.get_ledger(group_id)
            ledger.reverse_expense(expense_id)

            try:
                self.db.delete_expense(group_id, expense_id)
            except sqlite3.Error:
                ledger.record_expense(existing)
                raise

        return existing

    def list_expenses(self, group_id: str) -> list[Expense]:
        """Get all expenses for a group, oldest first."""
        return self.db.get_expenses(group_id)

    # ========================================================================
    # Settlements
    # ========================================================================

    def record_settlement(self, group_id: str, settlement: Settlement) -> LedgerEntry:
        """Record a real-world payment and persist it."""
        with self._group_lock(group_id):
            ledger = self.get_ledger(group_id)
            entry = ledger.record_settlement(settlement)

            try:
                self.db.save_settlement(group_id, settlement, [entry])
            except sqlite3.Error:
                ledger.reverse_settlement(settlement.id)
                raise

        return entry

    def delete_settlement(self, group_id: str, settlement_id: str) -> Settlement:
        """
        Delete a recorded settlement, restoring the debt it paid off.

        Raises:
            SettlementNotFoundError: If the settlement doesn't exist
        """
        with self._group_lock(group_id):
            existing = self.db.get_settlement(group_id, settlement_id)
            if existing is None:
                raise SettlementNotFoundError(group_id, settlement_id)

            ledger = self.get_ledger(group_id)
            ledger.reverse_settlement(settlement_id)

            try:
                self.db.delete_settlement(group_id, settlement_id)
            except sqlite3.Error:
                ledger.record_settlement(existing)
                raise

        return existing

    def list_settlements(self, group_id: str) -> list[Settlement]:
        """Get all settlements for a group, oldest first."""
        return self.db.get_settlements(group_id)

    # ========================================================================
    # Balances and plans
    # ========================================================================

    def get_balances(self, group_id: str) -> list[PairBalance]:
        """Get every non-zero pairwise balance in a group."""
        return self.get_ledger(group_id).all_net_balances()

    def get_positions(self, group_id: str) -> list[MemberPosition]:
        """Get each member's aggregate position in a group."""
        return self.get_ledger(group_id).positions()

    def plan_settlement(self, group_id: str, exact: bool = False) -> list[Transaction]:
        """
        Compute the payments that would settle a group.

        The plan is a projection of the current balances and is never stored.
        """
        return plan_settlement(
            self.get_balances(group_id),
            exact=exact,
            exact_max_members=self.settings.exact_planner_max_members,
        )

    def apply_plan(
        self, group_id: str, transactions: list[Transaction]
    ) -> list[Settlement]:
        """
        Record every transaction in a plan as a settlement.

        If any settlement fails, the ones already recorded by this call are
        deleted again.

        Returns:
            The recorded settlements
        """
        recorded: list[Settlement] = []
        with self._group_lock(group_id):
            try:
                for transaction in transactions:
                    settlement = transaction.to_settlement()
                    self.record_settlement(group_id, settlement)
                    recorded.append(settlement)
            except Exception:
                logger.error(
                    f"Applying plan for group {group_id} failed after "
                    f"{len(recorded)} of {len(transactions)} settlements; "
                    f"rolling back"
                )
                for settlement in reversed(recorded):
                    self.delete_settlement(group_id, settlement.id)
                raise

        logger.info(f"Applied {len(recorded)} settlements to group {group_id}")
        return recorded
