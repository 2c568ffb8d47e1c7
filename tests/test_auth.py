"""Tests for sign-up, sign-in and token resolution."""

import pytest

from expense_manager.auth import IdentityManager
from expense_manager.database import open_connection
from expense_manager.errors import AuthenticationError, ConstraintViolationError

from .conftest import count_defaults, count_rows


@pytest.fixture
def identity(database) -> IdentityManager:
    return IdentityManager(database)


class TestIdentityManager:

    async def test_sign_up_provisions_new_user(self, database, identity):
        account = await identity.sign_up('New@Example.com', 'secret123')

        assert account['email'] == 'new@example.com'
        assert await identity.resolve_token(account['token']) == account['user_id']
        assert await count_rows(
            database, 'SELECT COUNT(*) FROM user_profiles WHERE user_id = ?', (account['user_id'],)
        ) == 1
        assert await count_defaults(database, account['user_id']) == 1

    async def test_duplicate_email_rejected(self, identity):
        await identity.sign_up('dup@example.com', 'secret123')
        with pytest.raises(ConstraintViolationError):
            await identity.sign_up('dup@example.com', 'other-secret')

    async def test_provisioning_failure_does_not_block_sign_up(self, database, identity, monkeypatch):
        async def broken_provisioning(db_file, user_id):
            raise RuntimeError("storage hiccup")

        monkeypatch.setattr('expense_manager.auth.provision_identity', broken_provisioning)

        account = await identity.sign_up('unlucky@example.com', 'secret123')

        assert await identity.resolve_token(account['token']) == account['user_id']
        assert await count_defaults(database, account['user_id']) == 0

    async def test_sign_in(self, identity):
        account = await identity.sign_up('me@example.com', 'secret123')
        session = await identity.sign_in('ME@example.com ', 'secret123')

        assert session['user_id'] == account['user_id']
        assert session['token'] != account['token']

    async def test_sign_in_wrong_password(self, identity):
        await identity.sign_up('me@example.com', 'secret123')
        with pytest.raises(AuthenticationError):
            await identity.sign_in('me@example.com', 'wrong-password')

    async def test_sign_out_invalidates_token(self, identity):
        account = await identity.sign_up('me@example.com', 'secret123')
        assert await identity.sign_out(account['token']) is True
        with pytest.raises(AuthenticationError):
            await identity.resolve_token(account['token'])

    async def test_expired_token_rejected(self, database, identity):
        account = await identity.sign_up('me@example.com', 'secret123')
        async with open_connection(database) as conn:
            await conn.execute(
                "UPDATE auth_sessions SET expires_at = '2000-01-01T00:00:00+00:00' WHERE token = ?",
                (account['token'],)
            )
            await conn.commit()

        with pytest.raises(AuthenticationError, match='expired'):
            await identity.resolve_token(account['token'])

    @pytest.mark.parametrize("token", ['', 'made-up-token'])
    async def test_unknown_token_rejected(self, identity, token):
        with pytest.raises(AuthenticationError):
            await identity.resolve_token(token)
