import re
from typing import List, Optional
from datetime import datetime
from pydantic import field_validator
from sqlmodel import SQLModel, Field


ITEM_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class ItemRead(SQLModel):
    item_id: str
    product_id: str
    created_at: datetime


class TransactionRecordRead(SQLModel):
    transaction_id: str
    item_id: str
    owner_id: str
    previous_owner_id: Optional[str] = None
    initiated_by: str
    sequence: int
    timestamp: datetime


class MintRequest(SQLModel):
    product_id: str = Field(
        min_length=1,
        max_length=128,
        description="Manufacturer catalog identifier. Example: 'SKU-4471-BLK'"
    )
    item_id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="Bind the mint to an existing serial. Generated when omitted."
    )


    @field_validator("item_id")
    @classmethod
    def item_id_is_token(cls, value: Optional[str]) -> Optional[str]:
        # Item ids end up in QR file names and URLs
        if value is not None and not ITEM_ID_PATTERN.fullmatch(value):
            raise ValueError(
                "item_id may only contain letters, digits, '_' and '-'.")
        return value


class MintResult(SQLModel):
    item: ItemRead
    transaction: TransactionRecordRead


class TransferRequest(SQLModel):
    item_id: str = Field(min_length=1, max_length=128)
    new_owner_id: str = Field(
        min_length=1,
        max_length=128,
        description="Account id of the receiving owner."
    )


class ItemHistoryRead(SQLModel):
    """An item and its full ownership chain, oldest record first."""
    item: ItemRead
    current_owner_id: str
    history: List[TransactionRecordRead] = []


class OwnedItemsRead(SQLModel):
    items: List[ItemRead] = []
    latest_records: List[TransactionRecordRead] = []


class PublicItemRead(SQLModel):
    """What a scanned QR code resolves to. Contains no owner data."""
    item_id: str
    product_id: str
    minted_at: datetime
    manufacturer_id: str
    transfer_count: int


class QRCodeRead(SQLModel):
    item_id: str
    payload: str
    qr_code_url: str


class ScanRequest(SQLModel):
    payload: str = Field(
        min_length=1,
        max_length=2048,
        description="Raw text decoded from a QR code: an item id or a link to an item."
    )


class ChainIntegrityRead(SQLModel):
    item_id: str
    is_valid: bool
    record_count: int
    problems: List[str] = []
