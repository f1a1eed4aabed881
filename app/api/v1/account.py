from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from loguru import logger

from app.core.dependencies import get_account_service, get_current_account
from app.services.account import AccountService
from app.services.notification import send_manufacturer_verification_email
from app.db.schema import Account, AccountRole
from app.models.auth import Token, TokenAccess, TokenRefresh
from app.models.account import AccountSignin, AccountRead, AccountCreate


router = APIRouter()


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=AccountRead,
    summary="Register a new account",
    description=(
        "Creates a consumer or manufacturer account. Manufacturer accounts "
        "start unverified and the admin is notified by email."
    )
)
def signup(
    account_in: AccountCreate,
    background_tasks: BackgroundTasks,
    service: AccountService = Depends(get_account_service)
):
    try:
        new_account = service.create_account(account_in)
    except ValueError as e:
        logger.warning(f"Signup validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )

    if new_account.role == AccountRole.MANUFACTURER:
        background_tasks.add_task(
            send_manufacturer_verification_email,
            new_account.email,
            new_account.id
        )

    return new_account


@router.post(
    "/token",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Signin to get tokens",
    description="Returns an Access Token (short-lived) and Refresh Token (long-lived)."
)
def token(
    signin_data: AccountSignin,
    service: AccountService = Depends(get_account_service)
):
    account = service.authenticate_account(
        signin_data.email, signin_data.password)

    if not account:
        # Same error for unknown email and bad password
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated. Please contact support."
        )

    tokens = service.generate_tokens(account)

    logger.info(f"Account logged in: {account.id}")

    return tokens


@router.post(
    "/refresh",
    response_model=TokenAccess,
    status_code=status.HTTP_200_OK,
    summary="Refresh Session",
    description="Exchanges a valid Refresh Token for a new Access Token."
)
def refresh_token(
    refresh_data: TokenRefresh,
    service: AccountService = Depends(get_account_service)
):
    return TokenAccess(access_token=service.refresh_session(refresh_data.refresh_token))


@router.get(
    "/",
    response_model=AccountRead,
    status_code=status.HTTP_200_OK,
    summary="Get current account",
    description="Returns the profile of the authenticated account, including role and verification state."
)
def get_me(
    current_account: Account = Depends(get_current_account)
):
    return current_account
