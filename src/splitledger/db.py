"""SQLite database operations for SplitLedger.

The ledger core performs no I/O; this module is the storage collaborator
that persists raw expenses, settlements and their provenance-tagged ledger
entries so a group's ledger can be rebuilt on the next run.
"""

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from .models import EntrySource, Expense, LedgerEntry, Settlement, SplitStrategy


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Expenses table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                group_id TEXT NOT NULL,
                id TEXT NOT NULL,
                payer TEXT NOT NULL,
                total_amount INTEGER NOT NULL,
                strategy TEXT NOT NULL,
                participants TEXT NOT NULL,
                shares TEXT,
                description TEXT NOT NULL DEFAULT '',
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (group_id, id)
            )
        """
        )

        # Settlements table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                group_id TEXT NOT NULL,
                id TEXT NOT NULL,
                from_member TEXT NOT NULL,
                to_member TEXT NOT NULL,
                amount INTEGER NOT NULL,
                note TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (group_id, id)
            )
        """
        )

        # Ledger entries table
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS ledger_entries (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                group_id TEXT NOT NULL,
                source_kind TEXT NOT NULL,
                source_id TEXT NOT NULL,
                debtor TEXT NOT NULL,
                creditor TEXT NOT NULL,
                amount INTEGER NOT NULL
            )
        """
        )
        cursor.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_ledger_entries_source
            ON ledger_entries (group_id, source_kind, source_id)
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Ledger entry operations
    # ========================================================================

    def _replace_entries(
        self,
        cursor: sqlite3.Cursor,
        group_id: str,
        source: EntrySource,
        entries: list[LedgerEntry],
    ):
        cursor.execute(
            """
            DELETE FROM ledger_entries
            WHERE group_id = ? AND source_kind = ? AND source_id = ?
            """,
            (group_id, source.kind, source.id),
        )
        cursor.executemany(
            """
            INSERT INTO ledger_entries (
                group_id, source_kind, source_id, debtor, creditor, amount
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    group_id,
                    entry.source.kind,
                    entry.source.id,
                    entry.debtor,
                    entry.creditor,
                    entry.amount,
                )
                for entry in entries
            ],
        )

    def get_ledger_entries(self, group_id: str) -> list[LedgerEntry]:
        """Get all ledger entries for a group, in recording order."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT source_kind, source_id, debtor, creditor, amount
            FROM ledger_entries
            WHERE group_id = ?
            ORDER BY seq
            """,
            (group_id,),
        )
        return [
            LedgerEntry(
                source=EntrySource(kind=row["source_kind"], id=row["source_id"]),
                debtor=row["debtor"],
                creditor=row["creditor"],
                amount=row["amount"],
            )
            for row in cursor.fetchall()
        ]

    def list_groups(self) -> list[str]:
        """Get every group id that has expenses or settlements."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT group_id FROM expenses
            UNION
            SELECT group_id FROM settlements
            ORDER BY group_id
            """
        )
        return [row["group_id"] for row in cursor.fetchall()]

    # ========================================================================
    # Expense operations
    # ========================================================================

    def save_expense(
        self, group_id: str, expense: Expense, entries: list[LedgerEntry]
    ):
        """Insert or update an expense together with its ledger entries."""
        with self.conn:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO expenses (
                    group_id, id, payer, total_amount, strategy,
                    participants, shares, description, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(group_id, id) DO UPDATE SET
                    payer = excluded.payer,
                    total_amount = excluded.total_amount,
                    strategy = excluded.strategy,
                    participants = excluded.participants,
                    shares = excluded.shares,
                    description = excluded.description,
                    updated_at = excluded.updated_at
                """,
                (
                    group_id,
                    expense.id,
                    expense.payer,
                    expense.total_amount,
                    expense.strategy.value,
                    json.dumps(expense.participants),
                    json.dumps(expense.shares) if expense.shares is not None else None,
                    expense.description,
                    datetime.now().isoformat(),
                ),
            )
            self._replace_entries(
                cursor, group_id, EntrySource(kind="expense", id=expense.id), entries
            )

    def delete_expense(self, group_id: str, expense_id: str) -> bool:
        """Delete an expense and its ledger entries."""
        with self.conn:
            cursor = self.conn.cursor()
            cursor.execute(
                "DELETE FROM expenses WHERE group_id = ? AND id = ?",
                (group_id, expense_id),
            )
            deleted = cursor.rowcount > 0
            self._replace_entries(
                cursor, group_id, EntrySource(kind="expense", id=expense_id), []
            )
        return deleted

    @staticmethod
    def _row_to_expense(row: sqlite3.Row) -> Expense:
        return Expense(
            id=row["id"],
            payer=row["payer"],
            total_amount=row["total_amount"],
            strategy=SplitStrategy(row["strategy"]),
            participants=json.loads(row["participants"]),
            shares=json.loads(row["shares"]) if row["shares"] is not None else None,
            description=row["description"],
        )

    def get_expense(self, group_id: str, expense_id: str) -> Expense | None:
        """Get an expense by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, payer, total_amount, strategy, participants, shares,
                   description
            FROM expenses
            WHERE group_id = ? AND id = ?
            """,
            (group_id, expense_id),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_expense(row)

    def get_expenses(self, group_id: str) -> list[Expense]:
        """Get all expenses for a group, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, payer, total_amount, strategy, participants, shares,
                   description
            FROM expenses
            WHERE group_id = ?
            ORDER BY rowid
            """,
            (group_id,),
        )
        return [self._row_to_expense(row) for row in cursor.fetchall()]

    # ========================================================================
    # Settlement operations
    # ========================================================================

    def save_settlement(
        self, group_id: str, settlement: Settlement, entries: list[LedgerEntry]
    ):
        """Save a settlement together with its ledger entry."""
        with self.conn:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO settlements (
                    group_id, id, from_member, to_member, amount, note, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    group_id,
                    settlement.id,
                    settlement.from_member,
                    settlement.to_member,
                    settlement.amount,
                    settlement.note,
                    datetime.now().isoformat(),
                ),
            )
            self._replace_entries(
                cursor,
                group_id,
                EntrySource(kind="settlement", id=settlement.id),
                entries,
            )

    def delete_settlement(self, group_id: str, settlement_id: str) -> bool:
        """Delete a settlement and its ledger entry."""
        with self.conn:
            cursor = self.conn.cursor()
            cursor.execute(
                "DELETE FROM settlements WHERE group_id = ? AND id = ?",
                (group_id, settlement_id),
            )
            deleted = cursor.rowcount > 0
            self._replace_entries(
                cursor,
                group_id,
                EntrySource(kind="settlement", id=settlement_id),
                [],
            )
        return deleted

    def get_settlements(self, group_id: str) -> list[Settlement]:
        """Get all settlements for a group, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, from_member, to_member, amount, note
            FROM settlements
            WHERE group_id = ?
            ORDER BY rowid
            """,
            (group_id,),
        )
        return [
            Settlement(
                id=row["id"],
                from_member=row["from_member"],
                to_member=row["to_member"],
                amount=row["amount"],
                note=row["note"],
            )
            for row in cursor.fetchall()
        ]

    def get_settlement(self, group_id: str, settlement_id: str) -> Settlement | None:
        """Get a settlement by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, from_member, to_member, amount, note
            FROM settlements
            WHERE group_id = ? AND id = ?
            """,
            (group_id, settlement_id),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return Settlement(
            id=row["id"],
            from_member=row["from_member"],
            to_member=row["to_member"],
            amount=row["amount"],
            note=row["note"],
        )
