"""SQLite database operations for NoMoneyLa."""

import logging
import sqlite3
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from pathlib import Path

from .exceptions import ProtectedRecordError, RecordNotFoundError
from .models import Category, Contribution, Payer, Subcategory, Transaction

logger = logging.getLogger(__name__)

UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_COLOR = "#A8A8A8"
DEFAULT_PAYER_NAME = "Me"
DEFAULT_PAYER_COLOR = "#3498db"


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS payers (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                color_hex TEXT,
                is_default INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                color_hex TEXT,
                is_default INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        # No foreign key on payer_id: stale ids survive payer deletion
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS category_assigned_payers (
                category_id TEXT NOT NULL,
                payer_id TEXT NOT NULL,
                position INTEGER NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS subcategories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                parent_id TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                color_hex TEXT,
                is_default INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transactions (
                id TEXT PRIMARY KEY,
                amount TEXT NOT NULL,
                date DATE NOT NULL,
                note TEXT,
                type TEXT NOT NULL,
                currency_code TEXT NOT NULL,
                subcategory_id TEXT
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS contributions (
                id TEXT PRIMARY KEY,
                transaction_id TEXT NOT NULL,
                payer_id TEXT NOT NULL,
                amount TEXT NOT NULL,
                position INTEGER NOT NULL
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS transaction_participants (
                transaction_id TEXT NOT NULL,
                payer_id TEXT NOT NULL,
                position INTEGER NOT NULL
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Payer operations
    # ========================================================================

    def save_payer(self, payer: Payer) -> Payer:
        """Insert or update a payer."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO payers (id, name, sort_order, color_hex, is_default)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                sort_order = excluded.sort_order,
                color_hex = excluded.color_hex,
                is_default = excluded.is_default
            """,
            (payer.id, payer.name, payer.order, payer.color_hex, int(payer.is_default)),
        )
        self.conn.commit()
        return payer

    def get_payer(self, payer_id: str) -> Payer:
        """Get a payer by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM payers WHERE id = ?", (payer_id,))
        row = cursor.fetchone()
        if not row:
            raise RecordNotFoundError("Payer", payer_id)
        return _payer_from_row(row)

    def find_payer_by_name(self, name: str) -> Payer | None:
        """Get the first payer with this name (case-insensitive)."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM payers WHERE lower(name) = lower(?) ORDER BY sort_order, id",
            (name,),
        )
        row = cursor.fetchone()
        return _payer_from_row(row) if row else None

    def get_payers(self, ids: Iterable[str] | None = None) -> list[Payer]:
        """Get payers in display order, optionally limited to a set of ids."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM payers ORDER BY sort_order, id")
        payers = [_payer_from_row(row) for row in cursor.fetchall()]
        if ids is not None:
            wanted = set(ids)
            payers = [p for p in payers if p.id in wanted]
        return payers

    def get_default_payer(self) -> Payer | None:
        """Get the default payer, falling back to the first payer."""
        payers = self.get_payers()
        return next((p for p in payers if p.is_default), payers[0] if payers else None)

    def ensure_default_payer(self) -> Payer:
        """Create the default payer if there are no payers yet."""
        existing = self.get_default_payer()
        if existing:
            return existing

        payer = Payer(
            name=DEFAULT_PAYER_NAME,
            order=0,
            is_default=True,
            color_hex=DEFAULT_PAYER_COLOR,
        )
        logger.info(f"Created default payer '{payer.name}'")
        return self.save_payer(payer)

    def next_payer_order(self) -> int:
        """Rank for a newly added payer."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT MAX(sort_order) AS max_order FROM payers")
        row = cursor.fetchone()
        return 0 if row["max_order"] is None else row["max_order"] + 1

    def unique_payer_name(self, name: str, excluding: str | None = None) -> str:
        """
        Return `name`, or `name - 2`, `name - 3`, ... when it is already taken.

        Names compare case-insensitively, matching find_payer_by_name().

        Args:
            name: The requested name
            excluding: Payer id to ignore (the payer being renamed)
        """
        taken = {p.name.lower() for p in self.get_payers() if p.id != excluding}
        candidate = name
        counter = 2
        while candidate.lower() in taken:
            candidate = f"{name} - {counter}"
            counter += 1
        return candidate

    def rename_payer(self, payer_id: str, name: str) -> Payer:
        """Rename a payer, suffixing the name if another payer already has it."""
        payer = self.get_payer(payer_id)
        payer.name = self.unique_payer_name(name, excluding=payer.id)
        return self.save_payer(payer)

    def set_payer_color(self, payer_id: str, color_hex: str | None) -> Payer:
        """Change a payer's display color."""
        payer = self.get_payer(payer_id)
        payer.color_hex = color_hex
        return self.save_payer(payer)

    def move_payer(self, payer_id: str, position: int) -> list[Payer]:
        """
        Move a payer to a zero-based position in the display order.

        Every payer is renumbered 0..n-1 afterwards. Positions past either end
        are clamped.

        Returns:
            All payers in their new order
        """
        payers = self.get_payers()
        payer = next((p for p in payers if p.id == payer_id), None)
        if payer is None:
            raise RecordNotFoundError("Payer", payer_id)

        payers.remove(payer)
        payers.insert(max(0, min(position, len(payers))), payer)
        for index, p in enumerate(payers):
            p.order = index

        cursor = self.conn.cursor()
        cursor.executemany(
            "UPDATE payers SET sort_order = ? WHERE id = ?",
            [(p.order, p.id) for p in payers],
        )
        self.conn.commit()

        logger.info(f"Moved payer '{payer.name}' to position {payer.order}")
        return payers

    def delete_payer(self, payer_id: str) -> int:
        """
        Delete a payer and remove their contributions from every transaction.

        Transactions are kept. Category assigned payer lists are left as-is;
        the stale ids are cleaned up lazily.

        Returns:
            Number of contributions removed
        """
        self.get_payer(payer_id)

        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM contributions WHERE payer_id = ?", (payer_id,))
        removed = cursor.rowcount
        cursor.execute(
            "DELETE FROM transaction_participants WHERE payer_id = ?", (payer_id,)
        )
        cursor.execute("DELETE FROM payers WHERE id = ?", (payer_id,))
        self.conn.commit()

        logger.info(f"Deleted payer {payer_id} and {removed} contributions")
        return removed

    # ========================================================================
    # Category operations
    # ========================================================================

    def save_category(self, category: Category) -> Category:
        """
        Insert or update a category and its assigned payer list.

        A newly inserted category also gets its default Uncategorized
        subcategory.
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT id FROM categories WHERE id = ?", (category.id,))
        is_new = cursor.fetchone() is None

        cursor.execute(
            """
            INSERT INTO categories (id, name, sort_order, color_hex, is_default)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                sort_order = excluded.sort_order,
                color_hex = excluded.color_hex,
                is_default = excluded.is_default
            """,
            (
                category.id,
                category.name,
                category.order,
                category.color_hex,
                int(category.is_default),
            ),
        )
        self._write_assigned_payer_ids(cursor, category.id, category.assigned_payer_ids)
        self.conn.commit()

        if is_new:
            self.save_subcategory(
                Subcategory(
                    name=UNCATEGORIZED_NAME,
                    parent_id=category.id,
                    order=-1,
                    color_hex=UNCATEGORIZED_COLOR,
                    is_default=True,
                )
            )
        return category

    def get_category(self, category_id: str) -> Category:
        """Get a category by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM categories WHERE id = ?", (category_id,))
        row = cursor.fetchone()
        if not row:
            raise RecordNotFoundError("Category", category_id)
        return self._category_from_row(row)

    def find_category_by_name(self, name: str) -> Category | None:
        """Get the first category with this name (case-insensitive)."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM categories WHERE lower(name) = lower(?) "
            "ORDER BY sort_order, id",
            (name,),
        )
        row = cursor.fetchone()
        return self._category_from_row(row) if row else None

    def get_categories(self) -> list[Category]:
        """Get all categories in display order."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM categories ORDER BY sort_order, id")
        return [self._category_from_row(row) for row in cursor.fetchall()]

    def next_category_order(self) -> int:
        """Rank for a newly added category."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT MAX(sort_order) AS max_order FROM categories")
        row = cursor.fetchone()
        return 0 if row["max_order"] is None else row["max_order"] + 1

    def rename_category(self, category_id: str, name: str) -> Category:
        """Rename a category. Default categories cannot be renamed."""
        category = self.get_category(category_id)
        if category.is_default:
            raise ProtectedRecordError("Category", category.name)
        category.name = name
        return self.save_category(category)

    def set_assigned_payer_ids(self, category_id: str, payer_ids: list[str]):
        """Replace a category's assigned payer list."""
        self.get_category(category_id)
        cursor = self.conn.cursor()
        self._write_assigned_payer_ids(cursor, category_id, payer_ids)
        self.conn.commit()

    def delete_category(self, category_id: str) -> int:
        """
        Delete a category together with its subcategories.

        Transactions filed under the removed subcategories become
        uncategorized.

        Returns:
            Number of transactions uncategorized
        """
        category = self.get_category(category_id)
        if category.is_default:
            raise ProtectedRecordError("Category", category.name)

        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE transactions SET subcategory_id = NULL
            WHERE subcategory_id IN (
                SELECT id FROM subcategories WHERE parent_id = ?
            )
            """,
            (category_id,),
        )
        uncategorized = cursor.rowcount
        cursor.execute("DELETE FROM subcategories WHERE parent_id = ?", (category_id,))
        cursor.execute(
            "DELETE FROM category_assigned_payers WHERE category_id = ?", (category_id,)
        )
        cursor.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        self.conn.commit()

        logger.info(
            f"Deleted category '{category.name}', {uncategorized} transactions "
            f"now uncategorized"
        )
        return uncategorized

    def _write_assigned_payer_ids(
        self, cursor: sqlite3.Cursor, category_id: str, payer_ids: list[str]
    ):
        cursor.execute(
            "DELETE FROM category_assigned_payers WHERE category_id = ?", (category_id,)
        )
        cursor.executemany(
            """
            INSERT INTO category_assigned_payers (category_id, payer_id, position)
            VALUES (?, ?, ?)
            """,
            [(category_id, pid, pos) for pos, pid in enumerate(payer_ids)],
        )

    def _category_from_row(self, row: sqlite3.Row) -> Category:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT payer_id FROM category_assigned_payers
            WHERE category_id = ? ORDER BY position
            """,
            (row["id"],),
        )
        return Category(
            id=row["id"],
            name=row["name"],
            order=row["sort_order"],
            color_hex=row["color_hex"],
            is_default=bool(row["is_default"]),
            assigned_payer_ids=[r["payer_id"] for r in cursor.fetchall()],
        )

    # ========================================================================
    # Subcategory operations
    # ========================================================================

    def save_subcategory(self, subcategory: Subcategory) -> Subcategory:
        """Insert or update a subcategory."""
        self.get_category(subcategory.parent_id)

        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO subcategories (
                id, name, parent_id, sort_order, color_hex, is_default
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                parent_id = excluded.parent_id,
                sort_order = excluded.sort_order,
                color_hex = excluded.color_hex,
                is_default = excluded.is_default
            """,
            (
                subcategory.id,
                subcategory.name,
                subcategory.parent_id,
                subcategory.order,
                subcategory.color_hex,
                int(subcategory.is_default),
            ),
        )
        self.conn.commit()
        return subcategory

    def get_subcategory(self, subcategory_id: str) -> Subcategory:
        """Get a subcategory by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM subcategories WHERE id = ?", (subcategory_id,))
        row = cursor.fetchone()
        if not row:
            raise RecordNotFoundError("Subcategory", subcategory_id)
        return _subcategory_from_row(row)

    def get_subcategories(self, parent_id: str | None = None) -> list[Subcategory]:
        """Get subcategories in display order, optionally for one category."""
        cursor = self.conn.cursor()
        if parent_id is None:
            cursor.execute("SELECT * FROM subcategories ORDER BY sort_order, id")
        else:
            cursor.execute(
                "SELECT * FROM subcategories WHERE parent_id = ? "
                "ORDER BY sort_order, id",
                (parent_id,),
            )
        return [_subcategory_from_row(row) for row in cursor.fetchall()]

    def rename_subcategory(self, subcategory_id: str, name: str) -> Subcategory:
        """Rename a subcategory. Default subcategories cannot be renamed."""
        subcategory = self.get_subcategory(subcategory_id)
        if subcategory.is_default:
            raise ProtectedRecordError("Subcategory", subcategory.name)
        subcategory.name = name
        return self.save_subcategory(subcategory)

    def delete_subcategory(self, subcategory_id: str) -> int:
        """
        Delete a subcategory; its transactions become uncategorized.

        Returns:
            Number of transactions uncategorized
        """
        subcategory = self.get_subcategory(subcategory_id)
        if subcategory.is_default:
            raise ProtectedRecordError("Subcategory", subcategory.name)

        cursor = self.conn.cursor()
        cursor.execute(
            "UPDATE transactions SET subcategory_id = NULL WHERE subcategory_id = ?",
            (subcategory_id,),
        )
        uncategorized = cursor.rowcount
        cursor.execute("DELETE FROM subcategories WHERE id = ?", (subcategory_id,))
        self.conn.commit()
        return uncategorized

    # ========================================================================
    # Transaction operations
    # ========================================================================

    def save_transaction(self, transaction: Transaction) -> Transaction:
        """Insert or replace a transaction along with its contributions."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO transactions (
                id, amount, date, note, type, currency_code, subcategory_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                amount = excluded.amount,
                date = excluded.date,
                note = excluded.note,
                type = excluded.type,
                currency_code = excluded.currency_code,
                subcategory_id = excluded.subcategory_id
            """,
            (
                transaction.id,
                str(transaction.amount),
                transaction.date.isoformat(),
                transaction.note,
                transaction.type,
                transaction.currency_code,
                transaction.subcategory_id,
            ),
        )

        cursor.execute(
            "DELETE FROM contributions WHERE transaction_id = ?", (transaction.id,)
        )
        cursor.executemany(
            """
            INSERT INTO contributions (id, transaction_id, payer_id, amount, position)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (c.id, transaction.id, c.payer_id, str(c.amount), pos)
                for pos, c in enumerate(transaction.contributions)
            ],
        )

        cursor.execute(
            "DELETE FROM transaction_participants WHERE transaction_id = ?",
            (transaction.id,),
        )
        cursor.executemany(
            """
            INSERT INTO transaction_participants (transaction_id, payer_id, position)
            VALUES (?, ?, ?)
            """,
            [
                (transaction.id, pid, pos)
                for pos, pid in enumerate(transaction.participant_ids)
            ],
        )

        self.conn.commit()
        return transaction

    def get_transaction(self, transaction_id: str) -> Transaction:
        """Get a transaction by id."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
        row = cursor.fetchone()
        if not row:
            raise RecordNotFoundError("Transaction", transaction_id)
        return self._transaction_from_row(row)

    def get_transactions(
        self, subcategory_ids: Iterable[str] | None = None
    ) -> list[Transaction]:
        """Get transactions newest first, optionally for a set of subcategories."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM transactions ORDER BY date DESC, id")
        rows = cursor.fetchall()
        if subcategory_ids is not None:
            wanted = set(subcategory_ids)
            rows = [row for row in rows if row["subcategory_id"] in wanted]
        return [self._transaction_from_row(row) for row in rows]

    def delete_transaction(self, transaction_id: str):
        """Delete a transaction and all its contributions."""
        self.get_transaction(transaction_id)

        cursor = self.conn.cursor()
        cursor.execute(
            "DELETE FROM contributions WHERE transaction_id = ?", (transaction_id,)
        )
        cursor.execute(
            "DELETE FROM transaction_participants WHERE transaction_id = ?",
            (transaction_id,),
        )
        cursor.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
        self.conn.commit()

    def _transaction_from_row(self, row: sqlite3.Row) -> Transaction:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, payer_id, amount FROM contributions
            WHERE transaction_id = ? ORDER BY position
            """,
            (row["id"],),
        )
        contributions = [
            Contribution(
                id=c["id"],
                amount=Decimal(c["amount"]),
                payer_id=c["payer_id"],
                transaction_id=row["id"],
            )
            for c in cursor.fetchall()
        ]

        cursor.execute(
            """
            SELECT payer_id FROM transaction_participants
            WHERE transaction_id = ? ORDER BY position
            """,
            (row["id"],),
        )
        participant_ids = [r["payer_id"] for r in cursor.fetchall()]

        return Transaction(
            id=row["id"],
            amount=Decimal(row["amount"]),
            date=date.fromisoformat(row["date"]),
            note=row["note"],
            type=row["type"],
            currency_code=row["currency_code"],
            subcategory_id=row["subcategory_id"],
            contributions=contributions,
            participant_ids=participant_ids,
        )


def _payer_from_row(row: sqlite3.Row) -> Payer:
    return Payer(
        id=row["id"],
        name=row["name"],
        order=row["sort_order"],
        color_hex=row["color_hex"],
        is_default=bool(row["is_default"]),
    )


def _subcategory_from_row(row: sqlite3.Row) -> Subcategory:
    return Subcategory(
        id=row["id"],
        name=row["name"],
        parent_id=row["parent_id"],
        order=row["sort_order"],
        color_hex=row["color_hex"],
        is_default=bool(row["is_default"]),
    )
