from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from app.db.core import get_session
from app.db.schema import Account, AccountRole
from app.services.account import AccountService
from app.services.ledger import Ledger
from app.services.ownership import OwnershipResolver
from app.services.transfer_guard import TransferGuard

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/accounts/token")


def get_ledger(request: Request) -> Ledger:
    """The process-wide ledger opened in the app lifespan."""
    return request.app.state.ledger


def get_account_service(session: Session = Depends(get_session)) -> AccountService:
    """Creates an AccountService instance using the active DB session."""
    return AccountService(session)


def get_ownership_resolver(ledger: Ledger = Depends(get_ledger)) -> OwnershipResolver:
    return OwnershipResolver(ledger)


def get_transfer_guard(
    ledger: Ledger = Depends(get_ledger),
    accounts: AccountService = Depends(get_account_service)
) -> TransferGuard:
    return TransferGuard(ledger=ledger, accounts=accounts)


def get_current_account(
    token: str = Depends(oauth2_scheme),
    service: AccountService = Depends(get_account_service)
) -> Account:
    """
    Validates the JWT token and retrieves the account.
    This is the gatekeeper for protected routes.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = service.verify_access_token(token)
    if not token_data:
        raise credentials_exception

    account = service.get_account_by_id(token_data.account_id)
    if account is None:
        raise credentials_exception

    if not account.is_active:
        raise HTTPException(status_code=400, detail="Inactive account")

    return account


def get_current_admin(current_account: Account = Depends(get_current_account)) -> Account:
    if current_account.role != AccountRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required."
        )
    return current_account
