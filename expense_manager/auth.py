"""
Expense Manager - Identity and Sessions

PURPOSE: Sign-up, sign-in, and bearer-token resolution
SCOPE: The identity boundary every owner-scoped query keys off
DEPENDENCIES: aiosqlite, bcrypt, managers.py
"""

import sqlite3
import secrets
import uuid
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import bcrypt

from .config import config
from .database import open_connection
from .errors import AuthenticationError, ConstraintViolationError, translate_storage_error
from .managers import provision_identity

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


class IdentityManager:
    """Issues and verifies the session tokens that identify the caller."""

    def __init__(self, db_file: str, session_ttl_hours: int = None):
        self.db_file = db_file
        self.session_ttl = timedelta(hours=session_ttl_hours or config.SESSION_TTL_HOURS)

    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        """Create a user, provision their data, and open a session."""
        email = email.strip().lower()
        user_id = str(uuid.uuid4())

        async with open_connection(self.db_file) as conn:
            try:
                await conn.execute(
                    'INSERT INTO auth_users (id, email, hashed_password, created_at) VALUES (?, ?, ?, ?)',
                    (user_id, email, hash_password(password), datetime.now(timezone.utc).isoformat())
                )
                await conn.commit()
            except sqlite3.IntegrityError as e:
                raise ConstraintViolationError("Email already registered") from e
            except sqlite3.OperationalError as e:
                raise translate_storage_error(e) from e

        logger.info(f"Registered user {user_id}")

        # Provisioning problems must not block the account; reads provision lazily later
        try:
            await provision_identity(self.db_file, user_id)
        except Exception as e:
            logger.warning(f"Failed to set up new user {user_id}: {e}")

        token = await self._open_session(user_id)
        return {'user_id': user_id, 'email': email, 'token': token}

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        email = email.strip().lower()
        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute('SELECT id, hashed_password FROM auth_users WHERE email = ?', (email,))
            row = await cursor.fetchone()

        if not row or not verify_password(password, row['hashed_password']):
            raise AuthenticationError("Invalid credentials")

        token = await self._open_session(row['id'])
        return {'user_id': row['id'], 'email': email, 'token': token}

    async def sign_out(self, token: str) -> bool:
        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute('DELETE FROM auth_sessions WHERE token = ?', (token,))
            await conn.commit()
            return cursor.rowcount > 0

    async def resolve_token(self, token: str) -> str:
        """Return the user id behind a live session token."""
        if not token:
            raise AuthenticationError("Missing session token")

        async with open_connection(self.db_file) as conn:
            cursor = await conn.execute(
                'SELECT user_id, expires_at FROM auth_sessions WHERE token = ?', (token,)
            )
            row = await cursor.fetchone()

        if not row:
            raise AuthenticationError("Invalid session token")
        if datetime.fromisoformat(row['expires_at']) <= datetime.now(timezone.utc):
            raise AuthenticationError("Session expired")
        return row['user_id']

    async def _open_session(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        async with open_connection(self.db_file) as conn:
            await conn.execute(
                'INSERT INTO auth_sessions (token, user_id, created_at, expires_at) VALUES (?, ?, ?, ?)',
                (token, user_id, now.isoformat(), (now + self.session_ttl).isoformat())
            )
            await conn.commit()
        return token
