"""
Expense Manager - Database Management

PURPOSE: Database schema, consistency triggers, and connection management
SCOPE: SQLite operations, schema versioning, and data integrity rules
DEPENDENCIES: aiosqlite, config.py
"""

import aiosqlite
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from .config import config
from .errors import DEFAULT_PROTECTED_MESSAGE, NO_DEFAULT_MESSAGE

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@asynccontextmanager
async def open_connection(db_file: str) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection with foreign keys enforced and dict-like rows."""
    async with aiosqlite.connect(db_file, timeout=config.STORAGE_TIMEOUT_SECONDS) as conn:
        conn.row_factory = aiosqlite.Row
        await conn.execute('PRAGMA foreign_keys = ON')
        yield conn


@asynccontextmanager
async def immediate_transaction(conn: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    """Run a block under BEGIN IMMEDIATE, committing on success and rolling back otherwise."""
    await conn.execute('BEGIN IMMEDIATE')
    try:
        yield conn
    except BaseException:
        await conn.rollback()
        raise
    else:
        await conn.commit()


class DatabaseManager:
    """Handles schema creation and migrations."""

    def __init__(self, db_file: str):
        self.db_file = db_file

    async def initialize_database(self) -> None:
        """Initialize SQLite database with proper schema and migrations."""
        async with open_connection(self.db_file) as conn:
            await self._setup_schema_versioning(conn)
            current_version = await self._get_current_schema_version(conn)
            logger.info(f"Current database schema version: {current_version}")

            if current_version < 1:
                await self._migrate_to_version_1(conn)

            await conn.commit()

    async def _setup_schema_versioning(self, conn: aiosqlite.Connection) -> None:
        """Set up schema version tracking table."""
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

    async def _get_current_schema_version(self, conn: aiosqlite.Connection) -> int:
        """Get the current database schema version."""
        cursor = await conn.execute('SELECT MAX(version) FROM schema_version')
        result = await cursor.fetchone()
        return result[0] or 0

    async def _migrate_to_version_1(self, conn: aiosqlite.Connection) -> None:
        """Create identity, profile, category and expense tables."""
        logger.info("Migrating to schema version 1: Creating expense manager schema")

        await self._create_identity_tables(conn)
        await self._create_profile_table(conn)
        await self._create_category_table(conn)
        await self._create_expense_table(conn)
        await self._create_indexes(conn)
        await self._create_category_triggers(conn)

        await conn.execute('INSERT INTO schema_version (version) VALUES (?)', (SCHEMA_VERSION,))
        logger.info("Schema migration to version 1 completed")

    async def _create_identity_tables(self, conn: aiosqlite.Connection) -> None:
        """Create the user and session tables backing authentication."""
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS auth_users (
                id TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL,
                hashed_password TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        ''')
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS auth_sessions (
                token TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        ''')

    async def _create_profile_table(self, conn: aiosqlite.Connection) -> None:
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS user_profiles (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL UNIQUE REFERENCES auth_users(id) ON DELETE CASCADE,
                currency_code TEXT NOT NULL DEFAULT 'USD',
                currency TEXT NOT NULL DEFAULT '$',
                created_at TEXT NOT NULL
            )
        ''')

    async def _create_category_table(self, conn: aiosqlite.Connection) -> None:
        # UNIQUE (id, user_id) is the parent key for the owner-matching expense reference
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                color TEXT NOT NULL,
                icon TEXT NOT NULL DEFAULT 'folder',
                is_default INTEGER NOT NULL DEFAULT 0 CHECK (is_default IN (0, 1)),
                created_at TEXT NOT NULL,
                UNIQUE (id, user_id)
            )
        ''')

    async def _create_expense_table(self, conn: aiosqlite.Connection) -> None:
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
                category_id TEXT NOT NULL,
                amount REAL NOT NULL CHECK (amount > 0 AND amount < 1e12),
                description TEXT NOT NULL,
                date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (category_id, user_id) REFERENCES categories (id, user_id)
            )
        ''')

    async def _create_indexes(self, conn: aiosqlite.Connection) -> None:
        """Create the single-default guard and lookup indexes."""
        await conn.execute('''
            CREATE UNIQUE INDEX IF NOT EXISTS categories_user_default_unique_idx
            ON categories (user_id) WHERE is_default = 1
        ''')
        await conn.execute('CREATE INDEX IF NOT EXISTS idx_categories_user_id ON categories(user_id)')
        await conn.execute('CREATE INDEX IF NOT EXISTS idx_expenses_user_id ON expenses(user_id)')
        await conn.execute('CREATE INDEX IF NOT EXISTS idx_expenses_category_id ON expenses(category_id)')
        await conn.execute('CREATE INDEX IF NOT EXISTS idx_expenses_user_date ON expenses(user_id, date)')
        await conn.execute('CREATE INDEX IF NOT EXISTS idx_auth_sessions_user_id ON auth_sessions(user_id)')

    async def _create_category_triggers(self, conn: aiosqlite.Connection) -> None:
        """Create the triggers that protect the default category.

        Deleting a category moves its expenses to the owner's default
        category inside the deleting statement, so readers never observe
        a half-applied migration.
        """
        await conn.execute(f'''
            CREATE TRIGGER IF NOT EXISTS category_deletion_trigger
            BEFORE DELETE ON categories
            FOR EACH ROW
            BEGIN
                SELECT RAISE(ABORT, '{DEFAULT_PROTECTED_MESSAGE}')
                WHERE OLD.is_default = 1;

                SELECT RAISE(ABORT, '{NO_DEFAULT_MESSAGE}')
                WHERE NOT EXISTS (
                    SELECT 1 FROM categories
                    WHERE user_id = OLD.user_id AND is_default = 1
                );

                UPDATE expenses
                SET category_id = (
                    SELECT id FROM categories
                    WHERE user_id = OLD.user_id AND is_default = 1
                )
                WHERE category_id = OLD.id AND user_id = OLD.user_id;
            END
        ''')
        await conn.execute('''
            CREATE TRIGGER IF NOT EXISTS category_default_unset_trigger
            BEFORE UPDATE OF is_default ON categories
            FOR EACH ROW
            WHEN OLD.is_default = 1 AND NEW.is_default = 0
            BEGIN
                SELECT RAISE(ABORT, 'Cannot unset default category');
            END
        ''')
