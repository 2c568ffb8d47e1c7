# tests/conftest.py
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from expense_manager.app import create_app
from expense_manager.database import DatabaseManager, open_connection
from expense_manager.managers import CategoryManager, ExpenseManager, ProfileManager


async def create_user(db_file: str, email: str = None) -> str:
    """Insert a bare identity row without provisioning anything for it."""
    user_id = str(uuid.uuid4())
    async with open_connection(db_file) as conn:
        await conn.execute(
            'INSERT INTO auth_users (id, email, hashed_password, created_at) VALUES (?, ?, ?, ?)',
            (user_id, email or f"{user_id}@example.com", 'not-a-hash', datetime.now(timezone.utc).isoformat())
        )
        await conn.commit()
    return user_id


async def count_rows(db_file: str, sql: str, params: tuple = ()) -> int:
    async with open_connection(db_file) as conn:
        cursor = await conn.execute(sql, params)
        return (await cursor.fetchone())[0]


async def count_defaults(db_file: str, user_id: str) -> int:
    return await count_rows(
        db_file, 'SELECT COUNT(*) FROM categories WHERE user_id = ? AND is_default = 1', (user_id,)
    )


@asynccontextmanager
async def write_lock(db_file: str):
    """Hold the database write lock so other writers hit the busy timeout."""
    async with open_connection(db_file) as conn:
        await conn.execute('BEGIN IMMEDIATE')
        try:
            yield conn
        finally:
            await conn.rollback()


@pytest.fixture
def db_file(tmp_path) -> str:
    return str(tmp_path / "expenses.db")


@pytest.fixture
async def database(db_file) -> str:
    await DatabaseManager(db_file).initialize_database()
    return db_file


@pytest.fixture
async def user_id(database) -> str:
    return await create_user(database, "owner@example.com")


@pytest.fixture
async def other_user_id(database) -> str:
    return await create_user(database, "other@example.com")


@pytest.fixture
def profile_manager(database) -> ProfileManager:
    return ProfileManager(database)


@pytest.fixture
def category_manager(database) -> CategoryManager:
    return CategoryManager(database)


@pytest.fixture
def expense_manager(database) -> ExpenseManager:
    return ExpenseManager(database)


@pytest.fixture
def client(db_file):
    with TestClient(create_app(db_file)) as test_client:
        yield test_client


def sign_up(client: TestClient, email: str = "user@example.com", password: str = "secret123") -> dict:
    """Register through the API and return the auth headers plus the signup payload."""
    response = client.post("/auth/signup", data={"email": email, "password": password})
    assert response.status_code == 200, response.text
    payload = response.json()
    payload["headers"] = {"Authorization": f"Bearer {payload['token']}"}
    return payload
