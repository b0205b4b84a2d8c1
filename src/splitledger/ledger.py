"""Balance ledger: folds expenses and settlements into net pairwise balances.

The ledger keeps an append-only list of provenance-tagged entries plus the
folded pairwise table. Writers are serialized by a per-ledger lock and
publish a fresh immutable snapshot; readers just grab the current snapshot
and never block.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from .exceptions import (
    ExpenseAlreadyRecordedError,
    NonPositiveAmountError,
    SelfSettlementError,
    SettlementAlreadyRecordedError,
)
from .models import (
    EntrySource,
    Expense,
    LedgerEntry,
    MemberPosition,
    PairBalance,
    Settlement,
    SplitResult,
)
from .splitter import calculate_split

logger = logging.getLogger(__name__)

Pair = tuple[str, str]


def canonical_pair(debtor: str, creditor: str, amount: int) -> tuple[Pair, int]:
    """
    Map "debtor owes creditor amount" onto the canonical pair key.

    The key is the lexically ordered pair (a, b); the returned signed value
    is positive when b owes a.
    """
    if creditor < debtor:
        return (creditor, debtor), amount
    return (debtor, creditor), -amount


def fold_entries(
    table: dict[Pair, int], entries: Iterable[LedgerEntry], sign: int = 1
) -> dict[Pair, int]:
    """Apply (sign=1) or retract (sign=-1) entries on a table, in place."""
    for entry in entries:
        key, value = canonical_pair(entry.debtor, entry.creditor, entry.amount)
        net = table.get(key, 0) + sign * value
        if net:
            table[key] = net
        else:
            table.pop(key, None)
    return table


@dataclass(frozen=True)
class _Snapshot:
    """An immutable view of the ledger as of one completed write."""

    version: int
    entries: tuple[LedgerEntry, ...]
    sources: frozenset[EntrySource]
    table: Mapping[Pair, int]


class BalanceLedger:
    """Net balance table for one group."""

    def __init__(self, group_id: str = "default", entries: Iterable[LedgerEntry] = ()):
        """
        Initialize the ledger from previously persisted entries.

        Args:
            group_id: Identifier of the group this ledger belongs to
            entries: Entries loaded from storage, in the order they were recorded
        """
        self.group_id = group_id
        self._write_lock = threading.Lock()

        loaded = tuple(entries)
        self._snapshot = _Snapshot(
            version=0,
            entries=loaded,
            sources=frozenset(entry.source for entry in loaded),
            table=MappingProxyType(fold_entries({}, loaded)),
        )
        if loaded:
            logger.info(
                f"Loaded {len(loaded)} ledger entries for group {group_id}"
            )

    # ========================================================================
    # Write operations
    # ========================================================================

    def _publish(
        self,
        current: _Snapshot,
        entries: tuple[LedgerEntry, ...],
        sources: frozenset[EntrySource],
        table: dict[Pair, int],
    ) -> None:
        self._snapshot = _Snapshot(
            version=current.version + 1,
            entries=entries,
            sources=sources,
            table=MappingProxyType(table),
        )

    def _retract(
        self, current: _Snapshot, source: EntrySource
    ) -> tuple[tuple[LedgerEntry, ...], frozenset[EntrySource], dict[Pair, int]]:
        """Compute the state with every entry from ``source`` removed."""
        removed = [entry for entry in current.entries if entry.source == source]
        kept = tuple(entry for entry in current.entries if entry.source != source)
        table = fold_entries(dict(current.table), removed, sign=-1)
        return kept, current.sources - {source}, table

    @staticmethod
    def _expense_entries(split: SplitResult) -> list[LedgerEntry]:
        source = EntrySource(kind="expense", id=split.expense_id)
        return [
            LedgerEntry(
                source=source, debtor=member, creditor=split.payer, amount=owed
            )
            for member, owed in split.shares.items()
            if member != split.payer and owed != 0
        ]

    def record_expense(self, expense: Expense) -> SplitResult:
        """
        Split an expense and add "participant owes payer" entries.

        The payer's own share (if they participate) produces no entry.

        Args:
            expense: The expense to record

        Returns:
            The split result, for the caller to persist or display

        Raises:
            SplitError: If the expense can't be split (nothing is recorded)
            ExpenseAlreadyRecordedError: If this expense id is already recorded
        """
        split = calculate_split(expense)
        new_entries = self._expense_entries(split)
        source = EntrySource(kind="expense", id=expense.id)

        with self._write_lock:
            current = self._snapshot
            if source in current.sources:
                raise ExpenseAlreadyRecordedError(expense.id)

            table = fold_entries(dict(current.table), new_entries)
            self._publish(
                current,
                current.entries + tuple(new_entries),
                current.sources | {source},
                table,
            )

        logger.info(
            f"Recorded expense {expense.id} in group {self.group_id}: "
            f"{expense.payer} paid {expense.total_amount} "
            f"({len(new_entries)} entries)"
        )
        return split

    def replace_expense(self, expense: Expense) -> SplitResult:
        """
        Atomically swap an expense's entries for a re-split of the new version.

        If the new version fails to split, the previous entries stay in place.
        """
        split = calculate_split(expense)
        new_entries = self._expense_entries(split)
        source = EntrySource(kind="expense", id=expense.id)

        with self._write_lock:
            current = self._snapshot
            kept, sources, table = self._retract(current, source)
            fold_entries(table, new_entries)
            self._publish(
                current, kept + tuple(new_entries), sources | {source}, table
            )

        logger.info(f"Replaced expense {expense.id} in group {self.group_id}")
        return split

    def record_settlement(self, settlement: Settlement) -> LedgerEntry:
        """
        Add an entry reducing "from_member owes to_member" by the amount.

        Args:
            settlement: The payment to record

        Returns:
            The ledger entry that was added

        Raises:
            SelfSettlementError: If both sides are the same member
            NonPositiveAmountError: If the amount is zero or negative
            SettlementAlreadyRecordedError: If this settlement id is already recorded
        """
        if settlement.from_member == settlement.to_member:
            raise SelfSettlementError(settlement.from_member)
        if settlement.amount <= 0:
            raise NonPositiveAmountError(settlement.amount)

        source = EntrySource(kind="settlement", id=settlement.id)
        entry = LedgerEntry(
            source=source,
            debtor=settlement.from_member,
            creditor=settlement.to_member,
            amount=-settlement.amount,
        )

        with self._write_lock:
            current = self._snapshot
            if source in current.sources:
                raise SettlementAlreadyRecordedError(settlement.id)

            table = fold_entries(dict(current.table), [entry])
            self._publish(
                current, current.entries + (entry,), current.sources | {source}, table
            )

        logger.info(
            f"Recorded settlement {settlement.id} in group {self.group_id}: "
            f"{settlement.from_member} -> {settlement.to_member} {settlement.amount}"
        )
        return entry

    def _reverse(self, source: EntrySource) -> bool:
        with self._write_lock:
            current = self._snapshot
            if source not in current.sources:
                return False
            kept, sources, table = self._retract(current, source)
            self._publish(current, kept, sources, table)
        return True

    def reverse_expense(self, expense_id: str) -> None:
        """Remove every entry attributed to an expense (used on edit/delete)."""
        if self._reverse(EntrySource(kind="expense", id=expense_id)):
            logger.info(f"Reversed expense {expense_id} in group {self.group_id}")
        else:
            logger.debug(f"No entries to reverse for expense {expense_id}")

    def reverse_settlement(self, settlement_id: str) -> None:
        """Remove the entry attributed to a settlement."""
        if self._reverse(EntrySource(kind="settlement", id=settlement_id)):
            logger.info(
                f"Reversed settlement {settlement_id} in group {self.group_id}"
            )
        else:
            logger.debug(f"No entries to reverse for settlement {settlement_id}")

    # ========================================================================
    # Read operations
    # ========================================================================

    @property
    def version(self) -> int:
        """Number of writes applied since this ledger was constructed."""
        return self._snapshot.version

    def net_balance(self, member_a: str, member_b: str) -> int:
        """
        Get the net amount between two members.

        Returns:
            Positive if member_b owes member_a, negative if member_a owes member_b
        """
        if member_a == member_b:
            return 0
        table = self._snapshot.table
        if member_a < member_b:
            return table.get((member_a, member_b), 0)
        return -table.get((member_b, member_a), 0)

    def all_net_balances(self) -> list[PairBalance]:
        """Get every pair with a non-zero net amount, ordered by pair."""
        return [
            PairBalance(member_a=a, member_b=b, amount=amount)
            for (a, b), amount in sorted(self._snapshot.table.items())
        ]

    def members(self) -> list[str]:
        """Get every member that appears in any entry, sorted."""
        found: set[str] = set()
        for entry in self._snapshot.entries:
            found.add(entry.debtor)
            found.add(entry.creditor)
        return sorted(found)

    def positions(self) -> list[MemberPosition]:
        """
        Get each member's aggregate position.

        A positive amount means the group owes the member. Positions always
        sum to zero.
        """
        snapshot = self._snapshot
        totals: dict[str, int] = {}
        for entry in snapshot.entries:
            totals.setdefault(entry.debtor, 0)
            totals.setdefault(entry.creditor, 0)
        for (a, b), amount in snapshot.table.items():
            totals[a] += amount
            totals[b] -= amount
        return [
            MemberPosition(member=member, amount=amount)
            for member, amount in sorted(totals.items())
        ]

    def position(self, member: str) -> int:
        """Get one member's aggregate position (0 for unknown members)."""
        total = 0
        for (a, b), amount in self._snapshot.table.items():
            if a == member:
                total += amount
            elif b == member:
                total -= amount
        return total

    def total_owed_to(self, member: str) -> int:
        """Get how much the group owes a member overall (0 if they owe)."""
        return max(self.position(member), 0)

    def total_owed_by(self, member: str) -> int:
        """Get how much a member owes the group overall (0 if they're owed)."""
        return max(-self.position(member), 0)

    def is_settled(self) -> bool:
        """Check whether every pairwise balance is zero."""
        return not self._snapshot.table

    def entries(self) -> list[LedgerEntry]:
        """Get all entries, in recording order."""
        return list(self._snapshot.entries)

    def entries_for(
        self, source_id: str, kind: Literal["expense", "settlement"] = "expense"
    ) -> list[LedgerEntry]:
        """Get the entries recorded for one expense or settlement."""
        source = EntrySource(kind=kind, id=source_id)
        return [e for e in self._snapshot.entries if e.source == source]

    def has_expense(self, expense_id: str) -> bool:
        """Check whether an expense id is currently recorded."""
        return EntrySource(kind="expense", id=expense_id) in self._snapshot.sources

    def has_settlement(self, settlement_id: str) -> bool:
        """Check whether a settlement id is currently recorded."""
        return (
            EntrySource(kind="settlement", id=settlement_id)
            in self._snapshot.sources
        )
