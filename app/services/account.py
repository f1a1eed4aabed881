from typing import List, Optional
from datetime import timedelta

import jwt
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from fastapi import HTTPException, status

from app.core.config import settings
from app.core.errors import AccountNotFound
from app.db.core import storage_errors
from app.db.schema import Account, AccountRole
from app.models.auth import Token, TokenData
from app.models.account import AccountCreate
from app.utils.identifiers import utcnow
from .password import get_password_hash, verify_password


class AccountService:
    """
    The Identity Store. Holds credentials, roles and the manufacturer
    verification flag. The ledger core only reads accounts through
    ``get_account_by_id``.
    """
    ALGORITHM = "HS256"

    def __init__(self, session: Session):
        self.session = session

    def _create_jwt(self, subject: str, expires_delta: timedelta, type: str) -> str:
        """Helper to sign JWTs with specific types."""
        to_encode = {
            "sub": str(subject),
            "exp": utcnow() + expires_delta,
            "type": type
        }
        return jwt.encode(to_encode, settings.secret_key, algorithm=self.ALGORITHM)

    def _decode_jwt(self, token: str, expected_type: str) -> Optional[TokenData]:
        try:
            payload = jwt.decode(token, settings.secret_key,
                                 algorithms=[self.ALGORITHM])
        except jwt.PyJWTError:
            return None

        account_id = payload.get("sub")
        if not account_id or payload.get("type") != expected_type:
            return None

        return TokenData(account_id=account_id)

    def get_account_by_id(self, account_id: str) -> Optional[Account]:
        with storage_errors(self.session):
            return self.session.get(Account, account_id)

    def get_account_by_email(self, email: str) -> Optional[Account]:
        statement = select(Account).where(Account.email == email)
        with storage_errors(self.session):
            return self.session.exec(statement).first()

    def create_account(self, account_in: AccountCreate) -> Account:
        if self.get_account_by_email(account_in.email):
            raise ValueError("An account with this email already exists.")

        account = Account(
            email=account_in.email,
            hashed_password=get_password_hash(account_in.password),
            role=account_in.account_type,
            # Only manufacturers wait for an admin before they can act
            is_verified=account_in.account_type != AccountRole.MANUFACTURER,
        )

        self.session.add(account)
        with storage_errors(self.session):
            try:
                self.session.commit()
            except IntegrityError as e:
                # A concurrent signup took the email after the check above
                self.session.rollback()
                logger.warning(f"Registration lost a race for {account_in.email}")
                raise ValueError(
                    "An account with this email already exists.") from e
            self.session.refresh(account)

        logger.info(
            f"Registered {account.role.value} account {account.id} ({account.email})")
        return account

    def ensure_admin(self, email: str, password: str) -> Account:
        """Creates the admin account if no account uses this email yet."""
        existing = self.get_account_by_email(email)
        if existing:
            if existing.role != AccountRole.ADMIN:
                raise ValueError(
                    f"Account {email} exists but is not an admin.")
            logger.info(f"Admin account already exists: {existing.id}")
            return existing

        admin = Account(
            email=email,
            hashed_password=get_password_hash(password),
            role=AccountRole.ADMIN,
            is_verified=True,
        )
        self.session.add(admin)
        with storage_errors(self.session):
            self.session.commit()
            self.session.refresh(admin)
        logger.info(f"Created admin account {admin.id} ({admin.email})")
        return admin

    def authenticate_account(self, email: str, password: str) -> Optional[Account]:
        """Verify email and password hash."""
        account = self.get_account_by_email(email)
        if not account:
            return None
        if not verify_password(password, account.hashed_password):
            return None
        return account

    def generate_access_token(self, account: Account) -> str:
        return self._create_jwt(
            subject=account.id,
            expires_delta=timedelta(
                minutes=settings.access_token_expire_minutes),
            type="access"
        )

    def generate_refresh_token(self, account: Account) -> str:
        return self._create_jwt(
            subject=account.id,
            expires_delta=timedelta(
                minutes=settings.refresh_token_expire_minutes),
            type="refresh"
        )

    def generate_tokens(self, account: Account) -> Token:
        return Token(
            access_token=self.generate_access_token(account),
            refresh_token=self.generate_refresh_token(account),
            token_type="bearer"
        )

    def verify_access_token(self, token: str) -> Optional[TokenData]:
        return self._decode_jwt(token, "access")

    def verify_refresh_token(self, token: str) -> Optional[TokenData]:
        return self._decode_jwt(token, "refresh")

    def validate_account(self, account_id: str) -> Optional[Account]:
        """Retrieves the account and checks the is_active flag."""
        account = self.get_account_by_id(account_id)
        if not account or not account.is_active:
            return None
        return account

    def refresh_session(self, refresh_token: str) -> str:
        """
        Exchange a valid refresh token for a new access token.
        Strictly validates the account state before issuing.
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        token_data = self.verify_refresh_token(refresh_token)
        if not token_data:
            raise credentials_exception

        account = self.validate_account(token_data.account_id)
        if not account:
            raise credentials_exception

        return self.generate_access_token(account)

    # ==========================================================================
    # MANUFACTURER VERIFICATION (admin)
    # ==========================================================================

    def list_pending_manufacturers(self) -> List[Account]:
        statement = (
            select(Account)
            .where(Account.role == AccountRole.MANUFACTURER)
            .where(Account.is_verified == False)  # noqa: E712
            .order_by(Account.created_at.asc())
        )
        with storage_errors(self.session):
            return list(self.session.exec(statement).all())

    def verify_manufacturer(self, account_id: str) -> Account:
        account = self.get_account_by_id(account_id)
        if not account:
            raise AccountNotFound(
                f"Account {account_id} does not exist.",
                details={"account_id": account_id}
            )

        if account.role != AccountRole.MANUFACTURER:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only manufacturer accounts require verification."
            )

        if not account.is_verified:
            account.is_verified = True
            self.session.add(account)
            with storage_errors(self.session):
                self.session.commit()
                self.session.refresh(account)
            logger.info(f"Manufacturer {account.id} verified")

        return account
