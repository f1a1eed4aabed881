from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Protocol, Tuple

from loguru import logger

from app.core.errors import (
    AlreadyMinted, NotManufacturer, NotMinted, NotOwner,
    UnknownTargetAccount, UnverifiedManufacturer
)
from app.db.schema import Account, AccountRole, Item, TransactionRecord
from app.services.ledger import Ledger
from app.utils.identifiers import generate_id, utcnow, ITEM_PREFIX, TRANSACTION_PREFIX


class LedgerAction(str, Enum):
    MINT = "mint"
    TRANSFER = "transfer"


class AccountDirectory(Protocol):
    def get_account_by_id(self, account_id: str) -> Optional[Account]:
        ...


def evaluate_policy(
    action: LedgerAction,
    actor: Account,
    item_id: str,
    latest: Optional[TransactionRecord],
) -> None:
    """
    Decides whether ``actor`` may perform ``action`` on an item whose latest
    record is ``latest`` (None when the item was never minted). Raises the
    matching domain error, returns None when allowed.

    Unminted --mint--> Owned(manufacturer) --transfer--> Owned(Y) ...
    """
    if action == LedgerAction.MINT:
        if actor.role != AccountRole.MANUFACTURER:
            raise NotManufacturer(
                "Only manufacturer accounts can mint items.",
                details={"account_id": actor.id, "role": actor.role.value}
            )
        if not actor.is_verified:
            raise UnverifiedManufacturer(
                "Manufacturer account is awaiting admin verification.",
                details={"account_id": actor.id}
            )
        if latest is not None:
            raise AlreadyMinted(
                f"Item {item_id} has already been minted.",
                details={"item_id": item_id}
            )
        return

    if latest is None:
        raise NotMinted(
            f"Item {item_id} has not been minted.",
            details={"item_id": item_id}
        )

    # Admins may move any item regardless of who holds it
    if actor.role == AccountRole.ADMIN:
        return

    if actor.id != latest.owner_id:
        raise NotOwner(
            "You do not own this item.",
            details={"item_id": item_id, "account_id": actor.id}
        )


def next_timestamp(latest: TransactionRecord) -> datetime:
    """Keeps timestamps strictly increasing along an item's chain."""
    return max(utcnow(), latest.timestamp + timedelta(microseconds=1))


class TransferGuard:
    """
    The only writer of the ledger. Every decision is taken on a single read
    of the item's latest record, and the append that follows is conditional
    on that record still being the latest; if it is not, the ledger raises
    ConcurrentModification and nothing is written.
    """

    def __init__(self, ledger: Ledger, accounts: AccountDirectory):
        self.ledger = ledger
        self.accounts = accounts

    def mint(
        self, actor: Account, product_id: str, item_id: Optional[str] = None
    ) -> Tuple[Item, TransactionRecord]:
        item_id = item_id or generate_id(ITEM_PREFIX)

        latest = self.ledger.latest_for(item_id)
        try:
            evaluate_policy(LedgerAction.MINT, actor, item_id, latest)
        except (NotManufacturer, UnverifiedManufacturer, AlreadyMinted) as e:
            logger.warning(f"Mint rejected for {actor.id}: {e.message}")
            raise

        minted_at = utcnow()
        item = Item(item_id=item_id, product_id=product_id,
                    created_at=minted_at)
        record = TransactionRecord(
            transaction_id=generate_id(TRANSACTION_PREFIX),
            item_id=item_id,
            owner_id=actor.id,
            previous_owner_id=None,
            initiated_by=actor.id,
            sequence=0,
            timestamp=minted_at,
        )

        self.ledger.append(record, item=item)
        logger.info(
            f"Minted {item_id} (product {product_id}) by {actor.id}")
        return item, record

    def transfer(self, actor: Account, item_id: str, new_owner_id: str) -> TransactionRecord:
        latest = self.ledger.latest_for(item_id)
        try:
            evaluate_policy(LedgerAction.TRANSFER, actor, item_id, latest)
        except (NotMinted, NotOwner) as e:
            logger.warning(
                f"Transfer of {item_id} rejected for {actor.id}: {e.message}")
            raise

        if self.accounts.get_account_by_id(new_owner_id) is None:
            raise UnknownTargetAccount(
                f"Account {new_owner_id} does not exist.",
                details={"account_id": new_owner_id}
            )

        record = TransactionRecord(
            transaction_id=generate_id(TRANSACTION_PREFIX),
            item_id=item_id,
            owner_id=new_owner_id,
            previous_owner_id=latest.owner_id,
            initiated_by=actor.id,
            sequence=latest.sequence + 1,
            timestamp=next_timestamp(latest),
        )

        self.ledger.append(record)

        if actor.id != latest.owner_id:
            logger.info(
                f"Admin {actor.id} forced transfer of {item_id}: "
                f"{latest.owner_id} -> {new_owner_id}")
        else:
            logger.info(
                f"Transferred {item_id}: {latest.owner_id} -> {new_owner_id}")
        return record
