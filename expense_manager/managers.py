"""
Expense Manager - Data Managers

PURPOSE: Data access layer for profiles, categories, and expenses
SCOPE: Owner-scoped CRUD operations, provisioning, and category lifecycle
DEPENDENCIES: aiosqlite, database.py, errors.py
"""

import sqlite3
import uuid
import logging
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

import aiosqlite

from .config import config
from .database import open_connection, immediate_transaction
from .errors import (
    AuthorizationDeniedError,
    DefaultCategoryProtectedError,
    MissingDefaultCategoryError,
    NotFoundError,
    translate_storage_error,
)
from .validators import normalize_amount

logger = logging.getLogger(__name__)

OWNED_TABLES = ('user_profiles', 'categories', 'expenses')


def _new_id() -> str:
    return str(uuid.uuid4())


def _get_current_timestamp() -> str:
    """Get current UTC timestamp as ISO string."""
    return datetime.now(timezone.utc).isoformat()


async def _fetch_owned_row(conn: aiosqlite.Connection, table: str, record_id: str,
                           user_id: str, label: str) -> aiosqlite.Row:
    """Fetch a row the caller owns.

    Raises NotFoundError when no such row exists and AuthorizationDeniedError
    when it exists under another owner.
    """
    if table not in OWNED_TABLES:
        raise ValueError(f"Not an owner-scoped table: {table}")

    cursor = await conn.execute(f"SELECT * FROM {table} WHERE id = ? AND user_id = ?", (record_id, user_id))
    row = await cursor.fetchone()
    if row:
        return row

    cursor = await conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (record_id,))
    if await cursor.fetchone():
        raise AuthorizationDeniedError(f"{label} {record_id} belongs to another user")
    raise NotFoundError(f"{label} {record_id} not found")


class ProfileManager:
    """Handles the per-user profile (currency preference)."""

    def __init__(self, db_file: str):
        self.db_file = db_file

    async def ensure_profile(self, user_id: str, currency_code: str = None,
                             currency_symbol: str = None) -> bool:
        """Create the profile if missing. Returns True when a row was inserted."""
        currency_code = currency_code or config.DEFAULT_CURRENCY_CODE
        currency_symbol = currency_symbol or config.DEFAULT_CURRENCY_SYMBOL

        async with open_connection(self.db_file) as conn:
            try:
                cursor = await conn.execute('''
                    INSERT INTO user_profiles (id, user_id, currency_code, currency, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (user_id) DO NOTHING
                ''', (_new_id(), user_id, currency_code, currency_symbol, _get_current_timestamp()))
                await conn.commit()
            except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
                raise translate_storage_error(e) from e

            created = cursor.rowcount > 0
            if created:
                logger.info(f"Created profile for user {user_id}")
            return created

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        """Get the caller's profile, creating the default one on first access."""
        profile = await self._select_profile(user_id)
        if profile is None:
            await self.ensure_profile(user_id)
            profile = await self._select_profile(user_id)
        return profile

    async def update_currency(self, user_id: str, currency_code: str) -> Dict[str, Any]:
        """Switch the display currency; the symbol follows the configured currency list."""
        symbol = config.currency_symbol(currency_code)
        if symbol is None:
            raise ValueError(f"Unsupported currency: {currency_code}")

        async with open_connection(self.db_file) as conn:
            try:
                cursor = await conn.execute(
                    'UPDATE user_profiles SET currency_code = ?, currency = ? WHERE user_id = ?',
                    (currency_code, symbol, user_id)
                )
                await conn.commit()
            except sqlite3.OperationalError as e:
                raise translate_storage_error(e) from e

        if cursor.rowcount == 0:
            await self.ensure_profile(user_id, currency_code, symbol)

        logger.info(f"Profile currency for user {user_id} set to {currency_code}")
        return await self._select_profile(user_id)

    async def _select_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute('SELECT * FROM user_profiles WHERE user_id = ?', (user_id,))
            row = await cursor.fetchone()
            return dict(row) if row else None


class CategoryManager:
    """Handles expense categories and the default-category invariant."""

    def __init__(self, db_file: str):
        self.db_file = db_file

    async def ensure_starter_categories(self, user_id: str) -> bool:
        """Insert the starter set when the user has no categories yet.

        Returns True when the batch was inserted. A concurrent batch for the
        same user fails on the single-default index and is rolled back as a
        whole, so repeated calls never duplicate rows.
        """
        created_at = _get_current_timestamp()
        rows = [
            (_new_id(), user_id, cat['name'], cat['color'], cat['icon'], int(cat['is_default']), created_at)
            for cat in config.STARTER_CATEGORIES
        ]

        async with open_connection(self.db_file) as conn:
            try:
                async with immediate_transaction(conn):
                    cursor = await conn.execute('SELECT COUNT(*) FROM categories WHERE user_id = ?', (user_id,))
                    if (await cursor.fetchone())[0] > 0:
                        return False
                    await conn.executemany('''
                        INSERT INTO categories (id, user_id, name, color, icon, is_default, created_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                    ''', rows)
            except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
                raise translate_storage_error(e) from e

        logger.info(f"Created {len(rows)} starter categories for user {user_id}")
        return True

    async def get_all_categories(self, user_id: str) -> List[Dict[str, Any]]:
        """Get the caller's categories, default first then oldest first."""
        categories = await self._select_categories(user_id)
        if not categories:
            await self.ensure_starter_categories(user_id)
            categories = await self._select_categories(user_id)
        return categories

    async def get_category(self, user_id: str, category_id: str) -> Dict[str, Any]:
        async with open_connection(self.db_file) as conn:
            row = await _fetch_owned_row(conn, 'categories', category_id, user_id, 'Category')
            return self._sanitize_category_data(row)

    async def get_default_category(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute(
                'SELECT * FROM categories WHERE user_id = ? AND is_default = 1', (user_id,)
            )
            row = await cursor.fetchone()
            return self._sanitize_category_data(row) if row else None

    async def add_category(self, user_id: str, name: str, color: str,
                           icon: str = None, is_default: bool = False) -> Dict[str, Any]:
        """Add a new expense category."""
        category_id = _new_id()
        async with open_connection(self.db_file) as conn:
            try:
                await conn.execute('''
                    INSERT INTO categories (id, user_id, name, color, icon, is_default, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (
                    category_id, user_id, name, color, icon or config.DEFAULT_CATEGORY_ICON,
                    int(is_default), _get_current_timestamp()
                ))
                await conn.commit()
            except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
                raise translate_storage_error(e) from e

        return await self.get_category(user_id, category_id)

    async def update_category(self, user_id: str, category_id: str, name: str = None,
                              color: str = None) -> Dict[str, Any]:
        """Rename or recolor a category. The default flag is never changed here."""
        async with open_connection(self.db_file) as conn:
            row = await _fetch_owned_row(conn, 'categories', category_id, user_id, 'Category')
            await conn.execute(
                'UPDATE categories SET name = ?, color = ? WHERE id = ? AND user_id = ?',
                (name or row['name'], color or row['color'], category_id, user_id)
            )
            await conn.commit()

        return await self.get_category(user_id, category_id)

    async def delete_category(self, user_id: str, category_id: str) -> Dict[str, Any]:
        """Delete a non-default category, moving its expenses to the default category.

        The move and the delete happen in one statement via
        category_deletion_trigger; the checks here only produce clearer
        errors before touching storage.
        """
        async with open_connection(self.db_file) as conn:
            try:
                async with immediate_transaction(conn):
                    row = await _fetch_owned_row(conn, 'categories', category_id, user_id, 'Category')
                    if row['is_default']:
                        raise DefaultCategoryProtectedError()

                    cursor = await conn.execute(
                        'SELECT id FROM categories WHERE user_id = ? AND is_default = 1', (user_id,)
                    )
                    default_row = await cursor.fetchone()
                    if default_row is None:
                        logger.error(f"User {user_id} has no default category; refusing to delete {category_id}")
                        raise MissingDefaultCategoryError()

                    cursor = await conn.execute(
                        'SELECT COUNT(*) FROM expenses WHERE category_id = ? AND user_id = ?',
                        (category_id, user_id)
                    )
                    moved_count = (await cursor.fetchone())[0]

                    cursor = await conn.execute(
                        'DELETE FROM categories WHERE id = ? AND user_id = ? AND is_default = 0',
                        (category_id, user_id)
                    )
                    if cursor.rowcount == 0:
                        raise NotFoundError(f"Category {category_id} not found")
            except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
                raise translate_storage_error(e) from e

        logger.info(
            f"Deleted category {category_id} for user {user_id}; "
            f"moved {moved_count} expenses to {default_row['id']}"
        )
        return {
            'deleted_id': category_id,
            'reassigned_to': default_row['id'],
            'reassigned_count': moved_count,
        }

    async def clear_category_expenses(self, user_id: str, category_id: str) -> int:
        """Delete every expense in one of the caller's categories."""
        async with open_connection(self.db_file) as conn:
            await _fetch_owned_row(conn, 'categories', category_id, user_id, 'Category')
            try:
                cursor = await conn.execute(
                    'DELETE FROM expenses WHERE category_id = ? AND user_id = ?', (category_id, user_id)
                )
                await conn.commit()
            except sqlite3.OperationalError as e:
                raise translate_storage_error(e) from e
            return cursor.rowcount

    async def _select_categories(self, user_id: str) -> List[Dict[str, Any]]:
        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute('''
                SELECT * FROM categories
                WHERE user_id = ?
                ORDER BY is_default DESC, created_at ASC, rowid ASC
            ''', (user_id,))
            return [self._sanitize_category_data(row) for row in await cursor.fetchall()]

    def _sanitize_category_data(self, row: aiosqlite.Row) -> Dict[str, Any]:
        return {
            'id': row['id'],
            'user_id': row['user_id'],
            'name': row['name'],
            'color': row['color'],
            'icon': row['icon'],
            'is_default': bool(row['is_default']),
            'created_at': row['created_at'],
        }


class ExpenseManager:
    """Handles expense CRUD operations and data management."""

    def __init__(self, db_file: str):
        self.db_file = db_file

    async def create_expense(self, user_id: str, expense_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a new expense record in one of the caller's categories."""
        values = self._prepare_expense_values(expense_data)
        expense_id = _new_id()

        async with open_connection(self.db_file) as conn:
            await _fetch_owned_row(conn, 'categories', values['category_id'], user_id, 'Category')
            try:
                await conn.execute('''
                    INSERT INTO expenses (id, user_id, category_id, amount, description, date, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                ''', (
                    expense_id, user_id, values['category_id'], values['amount'],
                    values['description'], values['date'], _get_current_timestamp()
                ))
                await conn.commit()
            except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
                raise translate_storage_error(e) from e

        return await self.get_expense(user_id, expense_id)

    async def update_expense(self, user_id: str, expense_id: str, expense_data: Dict[str, Any]) -> Dict[str, Any]:
        """Update an existing expense record."""
        values = self._prepare_expense_values(expense_data)

        async with open_connection(self.db_file) as conn:
            await _fetch_owned_row(conn, 'expenses', expense_id, user_id, 'Expense')
            await _fetch_owned_row(conn, 'categories', values['category_id'], user_id, 'Category')
            try:
                await conn.execute('''
                    UPDATE expenses SET category_id = ?, amount = ?, description = ?, date = ?
                    WHERE id = ? AND user_id = ?
                ''', (
                    values['category_id'], values['amount'], values['description'], values['date'],
                    expense_id, user_id
                ))
                await conn.commit()
            except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
                raise translate_storage_error(e) from e

        return await self.get_expense(user_id, expense_id)

    async def delete_expense(self, user_id: str, expense_id: str) -> None:
        """Delete an expense record."""
        async with open_connection(self.db_file) as conn:
            await _fetch_owned_row(conn, 'expenses', expense_id, user_id, 'Expense')
            try:
                await conn.execute('DELETE FROM expenses WHERE id = ? AND user_id = ?', (expense_id, user_id))
                await conn.commit()
            except sqlite3.OperationalError as e:
                raise translate_storage_error(e) from e

    async def get_expense(self, user_id: str, expense_id: str) -> Dict[str, Any]:
        """Get a single expense by ID."""
        async with open_connection(self.db_file) as conn:
            row = await _fetch_owned_row(conn, 'expenses', expense_id, user_id, 'Expense')
            return self._sanitize_expense_data(row)

    async def get_all_expenses(self, user_id: str) -> List[Dict[str, Any]]:
        """Get all of the caller's expenses, newest date first."""
        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute('''
                SELECT * FROM expenses
                WHERE user_id = ?
                ORDER BY date DESC, created_at DESC
            ''', (user_id,))
            return [self._sanitize_expense_data(row) for row in await cursor.fetchall()]

    def _prepare_expense_values(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        """Prepare expense values from form data."""
        return {
            'category_id': str(form_data.get('category_id', '')),
            'amount': normalize_amount(form_data.get('amount')),
            'description': str(form_data.get('description', '')),
            'date': str(form_data.get('date', '')),
        }

    def _sanitize_expense_data(self, row: aiosqlite.Row) -> Dict[str, Any]:
        return {
            'id': row['id'],
            'user_id': row['user_id'],
            'category_id': row['category_id'],
            'amount': float(row['amount']),
            'description': row['description'],
            'date': row['date'],
            'created_at': row['created_at'],
        }


async def provision_identity(db_file: str, user_id: str) -> Dict[str, bool]:
    """Ensure a profile and the starter categories exist for a user.

    Safe to run any number of times.
    """
    profile_created = await ProfileManager(db_file).ensure_profile(user_id)
    categories_created = await CategoryManager(db_file).ensure_starter_categories(user_id)
    return {'profile_created': profile_created, 'categories_created': categories_created}
