from datetime import datetime
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, StringConstraints, field_validator
from typing_extensions import Annotated
from app.db.schema import AccountRole


class AccountRead(SQLModel):
    id: str
    email: str
    role: AccountRole
    is_verified: bool
    is_active: bool


class AccountAdminRead(AccountRead):
    """Admin view, includes registration time for the verification queue."""
    created_at: datetime


class AccountSignin(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Registered email address of the account.",
        max_length=255
    )
    password: str = Field(
        min_length=8,
        max_length=128,
        description="Plain text password."
    )


class AccountCreate(SQLModel):
    """
    DTO for self-registration.
    Only consumer and manufacturer accounts can be created this way; admins
    are bootstrapped with seed.py.
    """
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Unique email address for signin.",
        max_length=255
    )
    password: str = Field(
        min_length=8,
        max_length=128,
        description="Plain text password."
    )
    account_type: AccountRole = Field(
        default=AccountRole.USER,
        description="'user' or 'manufacturer'. Manufacturers must be verified by an admin before minting."
    )

    @field_validator("account_type")
    @classmethod
    def reject_admin_signup(cls, value: AccountRole) -> AccountRole:
        if value == AccountRole.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered.")
        return value
