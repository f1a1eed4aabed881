"""
Unit tests for the Identity Store (app/services/account.py) and password hashing.
"""

import pytest
from fastapi import HTTPException
from sqlmodel import Session

from app.core.errors import AccountNotFound
from app.db.schema import AccountRole
from app.models.account import AccountCreate
from app.services.account import AccountService
from app.services.password import get_password_hash, verify_password

from tests.constants import TEST_PASSWORD


# ============================================================================
# PASSWORDS
# ============================================================================


@pytest.mark.unit
def test_password_hash_round_trip():
    hashed = get_password_hash(TEST_PASSWORD)

    assert hashed != TEST_PASSWORD
    assert verify_password(TEST_PASSWORD, hashed)
    assert not verify_password("WrongPassword#1", hashed)


@pytest.mark.unit
def test_verify_password_with_malformed_hash():
    assert not verify_password(TEST_PASSWORD, "not-a-bcrypt-hash")


# ============================================================================
# REGISTRATION
# ============================================================================


@pytest.mark.unit
def test_create_user_account_is_verified(account_service):
    account = account_service.create_account(
        AccountCreate(email="Jane@Example.com", password=TEST_PASSWORD))

    assert account.id.startswith("acct_")
    assert account.email == "jane@example.com"
    assert account.role == AccountRole.USER
    assert account.is_verified


@pytest.mark.unit
def test_create_manufacturer_account_starts_unverified(account_service):
    account = account_service.create_account(AccountCreate(
        email="factory@example.com",
        password=TEST_PASSWORD,
        account_type=AccountRole.MANUFACTURER,
    ))

    assert account.role == AccountRole.MANUFACTURER
    assert not account.is_verified


@pytest.mark.unit
def test_admin_cannot_self_register():
    with pytest.raises(ValueError):
        AccountCreate(email="root@example.com", password=TEST_PASSWORD,
                      account_type=AccountRole.ADMIN)


@pytest.mark.unit
def test_duplicate_email_rejected(account_service):
    account_service.create_account(
        AccountCreate(email="jane@example.com", password=TEST_PASSWORD))

    with pytest.raises(ValueError, match="already exists"):
        account_service.create_account(
            AccountCreate(email="jane@example.com", password=TEST_PASSWORD))


@pytest.mark.unit
def test_concurrent_signup_with_same_email_rejected(ledger, account_service, monkeypatch):
    """The loser of a signup race sees the same error as a plain duplicate."""
    with Session(ledger.engine) as other_session:
        racing = AccountService(other_session)
        # Its duplicate check ran before the winner committed
        monkeypatch.setattr(racing, "get_account_by_email", lambda email: None)

        account_service.create_account(
            AccountCreate(email="jane@example.com", password=TEST_PASSWORD))

        with pytest.raises(ValueError, match="already exists"):
            racing.create_account(
                AccountCreate(email="jane@example.com", password=TEST_PASSWORD))

        # The session is usable again after the rollback
        assert racing.get_account_by_id("acct_missing") is None


@pytest.mark.unit
def test_authenticate_account(account_service, alice):
    assert account_service.authenticate_account(alice.email, TEST_PASSWORD).id == alice.id
    assert account_service.authenticate_account(alice.email, "WrongPassword#1") is None
    assert account_service.authenticate_account("ghost@example.com", TEST_PASSWORD) is None


# ============================================================================
# TOKENS
# ============================================================================


@pytest.mark.unit
def test_access_and_refresh_tokens_are_not_interchangeable(account_service, alice):
    tokens = account_service.generate_tokens(alice)

    assert account_service.verify_access_token(tokens.access_token).account_id == alice.id
    assert account_service.verify_refresh_token(tokens.refresh_token).account_id == alice.id
    assert account_service.verify_access_token(tokens.refresh_token) is None
    assert account_service.verify_refresh_token(tokens.access_token) is None


@pytest.mark.unit
def test_garbage_token_is_rejected(account_service):
    assert account_service.verify_access_token("not.a.jwt") is None


@pytest.mark.unit
def test_refresh_session_issues_access_token(account_service, alice):
    tokens = account_service.generate_tokens(alice)

    access = account_service.refresh_session(tokens.refresh_token)

    assert account_service.verify_access_token(access).account_id == alice.id


@pytest.mark.unit
def test_refresh_session_rejects_access_token(account_service, alice):
    tokens = account_service.generate_tokens(alice)

    with pytest.raises(HTTPException) as exc_info:
        account_service.refresh_session(tokens.access_token)

    assert exc_info.value.status_code == 401


# ============================================================================
# MANUFACTURER VERIFICATION
# ============================================================================


@pytest.mark.unit
def test_pending_manufacturers_lists_only_unverified(account_service, unverified_manufacturer, manufacturer, alice):
    pending = account_service.list_pending_manufacturers()

    assert [a.id for a in pending] == [unverified_manufacturer.id]


@pytest.mark.unit
def test_verify_manufacturer(account_service, unverified_manufacturer):
    account = account_service.verify_manufacturer(unverified_manufacturer.id)

    assert account.is_verified
    assert account_service.list_pending_manufacturers() == []


@pytest.mark.unit
def test_verify_unknown_account(account_service):
    with pytest.raises(AccountNotFound):
        account_service.verify_manufacturer("acct_missing")


@pytest.mark.unit
def test_verify_non_manufacturer(account_service, alice):
    with pytest.raises(HTTPException) as exc_info:
        account_service.verify_manufacturer(alice.id)

    assert exc_info.value.status_code == 400


@pytest.mark.unit
def test_ensure_admin_is_idempotent(account_service):
    first = account_service.ensure_admin("admin@example.com", TEST_PASSWORD)
    second = account_service.ensure_admin("admin@example.com", TEST_PASSWORD)

    assert first.id == second.id
    assert first.role == AccountRole.ADMIN
    assert first.is_verified


@pytest.mark.unit
def test_ensure_admin_refuses_existing_non_admin(account_service, alice):
    with pytest.raises(ValueError):
        account_service.ensure_admin(alice.email, TEST_PASSWORD)
