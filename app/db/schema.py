from typing import Optional, Dict, Any
from datetime import datetime
import uuid
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, JSON, UniqueConstraint
from enum import Enum

from app.utils.identifiers import generate_id, utcnow, ACCOUNT_PREFIX


class AccountRole(str, Enum):
    USER = "user"                  # Consumer
    MANUFACTURER = "manufacturer"  # Can mint once verified
    ADMIN = "admin"                # Verifies manufacturers, may force transfers


class AuditAction(str, Enum):
    VERIFY_MANUFACTURER = "verify_manufacturer"
    ADMIN_TRANSFER = "admin_transfer"


# Timestamps are stored as naive UTC, the form utcnow() produces. Declared
# explicitly so the column type does not depend on the sqlmodel release.
NAIVE_UTC = DateTime(timezone=False)


class TimestampMixin(SQLModel):
    """
    Standard audit timestamps for mutable records.
    Ledger records are immutable and do not use this mixin.
    """
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=NAIVE_UTC,
        description="The UTC timestamp when this record was first persisted. Example: '2023-10-27 14:30:00'"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=NAIVE_UTC,
        sa_column_kwargs={"onupdate": utcnow},
        description="The UTC timestamp when this record was last modified. Example: '2023-10-28 09:15:00'"
    )


class Account(TimestampMixin, SQLModel, table=True):
    """
    An identity in the Identity Store.
    The ledger only ever stores the account id; account data is never
    embedded in transaction records.
    """
    id: str = Field(
        default_factory=lambda: generate_id(ACCOUNT_PREFIX),
        primary_key=True,
        description="The unique account identifier. Example: 'acct_5d41402abc4b2a76b9719d911017c592'"
    )
    email: str = Field(
        unique=True,
        index=True,
        description="The login email address. Example: 'jane.doe@example.com'"
    )
    hashed_password: str = Field(
        description="bcrypt hash of the password. Never store plain text."
    )
    role: AccountRole = Field(
        default=AccountRole.USER,
        description="Determines which ledger operations the account may perform. Example: 'manufacturer'"
    )
    is_verified: bool = Field(
        default=False,
        description="Only meaningful for manufacturers: minting requires an admin-verified account."
    )
    is_active: bool = Field(
        default=True,
        description="Soft delete flag. If False, the account cannot log in."
    )


class Item(SQLModel, table=True):
    """
    A physical product instance. Created once at mint time and never
    mutated or deleted.
    """
    item_id: str = Field(
        primary_key=True,
        description="Globally unique item identifier. Example: 'item_9f86d081884c7d659a2feaa0c55ad015'"
    )
    product_id: str = Field(
        index=True,
        description="Manufacturer catalog identifier, shared by many items. Example: 'SKU-4471-BLK'"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=NAIVE_UTC,
        description="Mint time of the item."
    )


class TransactionRecord(SQLModel, table=True):
    """
    One immutable event in an item's ownership chain.

    For a given item the records ordered by (timestamp, transaction_id) form a
    chain: record 0 has no previous owner and every later record's
    previous_owner_id equals its predecessor's owner_id. The unique
    (item_id, sequence) pair turns every append into a compare-and-swap on
    the chain position.
    """
    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_transaction_item_sequence"),
    )

    transaction_id: str = Field(
        primary_key=True,
        description="Globally unique transaction identifier. Example: 'txn_8c6976e5b5410415bde908bd4dee15df'"
    )
    item_id: str = Field(
        foreign_key="item.item_id",
        index=True,
        description="The item this event belongs to."
    )
    owner_id: str = Field(
        index=True,
        description="Account the item is transferred to."
    )
    previous_owner_id: Optional[str] = Field(
        default=None,
        description="Account the item is transferred from. NULL only on the mint record."
    )
    initiated_by: str = Field(
        description="Account that requested the event. Differs from previous_owner_id on admin transfers."
    )
    sequence: int = Field(
        ge=0,
        description="Position in the item's chain. 0 for the mint record."
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        sa_type=NAIVE_UTC,
        index=True,
        description="Strictly increasing per item."
    )


class SystemAuditLog(SQLModel, table=True):
    """Records administrative actions for later review."""
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True
    )
    actor_account_id: str = Field(
        index=True,
        description="The admin who performed the action."
    )
    entity_type: str = Field(
        description="Kind of entity touched. Example: 'account', 'item'"
    )
    entity_id: str = Field(index=True)
    action: AuditAction
    changes: Dict[str, Any] = Field(
        default_factory=dict,
        sa_type=JSON
    )
    timestamp: datetime = Field(default_factory=utcnow, sa_type=NAIVE_UTC)
