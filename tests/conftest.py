"""
Shared pytest fixtures for the provenance ledger test suite.

- A fresh file-backed SQLite ledger per test (threads need a real file)
- Accounts of every role
- Guard and resolver wired to that ledger
- A FastAPI TestClient pointed at the same database, plus auth headers
"""

import os
import tempfile

# Settings are read at import time; configure before importing the app.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-provenance-ledger-suite")
os.environ.setdefault("STATIC_DIR", tempfile.mkdtemp(prefix="provenance-static-"))
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.mkdtemp(), "test.log"))

from collections.abc import Generator  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.db.schema import Account, AccountRole  # noqa: E402
from app.services.account import AccountService  # noqa: E402
from app.services.ledger import Ledger  # noqa: E402
from app.services.ownership import OwnershipResolver  # noqa: E402
from app.services.password import get_password_hash  # noqa: E402
from app.services.transfer_guard import TransferGuard  # noqa: E402

from tests.constants import TEST_PASSWORD  # noqa: E402


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture(scope="function")
def ledger(database_url: str) -> Generator[Ledger, None, None]:
    """A ledger on an empty database with the schema created."""
    ledger = Ledger.from_url(database_url)
    ledger.create_schema()
    yield ledger
    ledger.close()


@pytest.fixture(scope="function")
def session(ledger: Ledger) -> Generator[Session, None, None]:
    with Session(ledger.engine) as session:
        yield session


@pytest.fixture(scope="function")
def account_service(session: Session) -> AccountService:
    return AccountService(session)


@pytest.fixture(scope="function")
def make_account(session: Session) -> Callable[..., Account]:
    """
    Factory persisting an account directly, bypassing signup.

    Usage: make_account(AccountRole.MANUFACTURER, verified=True)
    """
    created = {"count": 0}
    password_hash = get_password_hash(TEST_PASSWORD)

    def _make(role: AccountRole = AccountRole.USER, verified: bool = True, email: str = None) -> Account:
        created["count"] += 1
        account = Account(
            email=email or f"{role.value}{created['count']}@example.com",
            hashed_password=password_hash,
            role=role,
            is_verified=verified,
        )
        session.add(account)
        session.commit()
        session.refresh(account)
        # Detached and fully loaded, so later commits never expire it and
        # worker threads can read it without touching this session.
        session.expunge(account)
        return account

    return _make


@pytest.fixture(scope="function")
def manufacturer(make_account) -> Account:
    return make_account(AccountRole.MANUFACTURER, verified=True)


@pytest.fixture(scope="function")
def unverified_manufacturer(make_account) -> Account:
    return make_account(AccountRole.MANUFACTURER, verified=False)


@pytest.fixture(scope="function")
def alice(make_account) -> Account:
    return make_account(AccountRole.USER)


@pytest.fixture(scope="function")
def bob(make_account) -> Account:
    return make_account(AccountRole.USER)


@pytest.fixture(scope="function")
def carol(make_account) -> Account:
    return make_account(AccountRole.USER)


@pytest.fixture(scope="function")
def admin(make_account) -> Account:
    return make_account(AccountRole.ADMIN)


@pytest.fixture(scope="function")
def guard(ledger: Ledger, account_service: AccountService) -> TransferGuard:
    return TransferGuard(ledger=ledger, accounts=account_service)


@pytest.fixture(scope="function")
def resolver(ledger: Ledger) -> OwnershipResolver:
    return OwnershipResolver(ledger)


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def client(database_url: str, monkeypatch) -> Generator[TestClient, None, None]:
    """
    TestClient running the full app lifespan against the per-test database.
    Creating the client opens the app's own Ledger on ``database_url``.
    """
    monkeypatch.setattr(settings, "database_url", database_url)
    monkeypatch.setattr(settings, "storage_retry_backoff_seconds", 0)

    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def auth_headers(client: TestClient, ledger: Ledger) -> Callable[[Account], dict]:
    """Returns a function producing a bearer header for an account."""

    def _headers(account: Account) -> dict:
        response = client.post(
            "/api/v1/accounts/token",
            json={"email": account.email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _headers
