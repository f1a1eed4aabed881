from typing import List, Optional, Set

from app.core.errors import ItemNotFound
from app.db.schema import TransactionRecord
from app.models.item import (
    ChainIntegrityRead, ItemHistoryRead, ItemRead, OwnedItemsRead,
    PublicItemRead, TransactionRecordRead
)
from app.services.ledger import Ledger


class OwnershipResolver:
    """
    Answers "who owns X" and "what happened to X" from the ledger.
    Read-only; never writes.
    """

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    def current_owner(self, item_id: str) -> Optional[str]:
        latest = self.ledger.latest_for(item_id)
        return latest.owner_id if latest else None

    def history(self, item_id: str) -> List[TransactionRecord]:
        records = self.ledger.records_for(item_id)
        # Minting writes the first record, so an empty chain means no item
        if not records:
            raise ItemNotFound(
                f"Item {item_id} not found.",
                details={"item_id": item_id}
            )
        return records

    def owned_by(self, account_id: str) -> Set[str]:
        return {record.item_id for record in self.ledger.latest_records(owner_id=account_id)}

    # ==========================================================================
    # API VIEWS
    # ==========================================================================

    def query(self, item_id: str) -> ItemHistoryRead:
        item = self.ledger.get_item(item_id)
        if not item:
            raise ItemNotFound(
                f"Item {item_id} not found.",
                details={"item_id": item_id}
            )

        records = self.history(item_id)
        return ItemHistoryRead(
            item=ItemRead.model_validate(item),
            current_owner_id=records[-1].owner_id,
            history=[TransactionRecordRead.model_validate(r) for r in records]
        )

    def query_owned(self, account_id: str) -> OwnedItemsRead:
        latest_records = self.ledger.latest_records(owner_id=account_id)
        items = self.ledger.get_items([r.item_id for r in latest_records])

        # Keep items in the same order as their latest records
        items_by_id = {item.item_id: item for item in items}
        return OwnedItemsRead(
            items=[
                ItemRead.model_validate(items_by_id[r.item_id])
                for r in latest_records if r.item_id in items_by_id
            ],
            latest_records=[
                TransactionRecordRead.model_validate(r) for r in latest_records
            ]
        )

    def public_view(self, item_id: str) -> PublicItemRead:
        """Owner-free summary served to anyone scanning the item's QR code."""
        item = self.ledger.get_item(item_id)
        if not item:
            raise ItemNotFound(
                f"Item {item_id} not found.",
                details={"item_id": item_id}
            )

        records = self.history(item_id)
        return PublicItemRead(
            item_id=item.item_id,
            product_id=item.product_id,
            minted_at=records[0].timestamp,
            manufacturer_id=records[0].owner_id,
            transfer_count=len(records) - 1
        )

    def verify_chain(self, item_id: str) -> ChainIntegrityRead:
        """
        Checks the item's records form one unbroken chain: the mint record has
        no previous owner, every later record names its predecessor's owner,
        sequences run 0..n-1 and timestamps strictly increase.
        """
        records = self.history(item_id)
        problems = []

        first = records[0]
        if first.previous_owner_id is not None:
            problems.append(
                f"{first.transaction_id}: mint record has previous owner {first.previous_owner_id}")

        for position, record in enumerate(records):
            if record.sequence != position:
                problems.append(
                    f"{record.transaction_id}: sequence {record.sequence} at position {position}")

            if position == 0:
                continue

            prior = records[position - 1]
            if record.previous_owner_id != prior.owner_id:
                problems.append(
                    f"{record.transaction_id}: previous owner {record.previous_owner_id} "
                    f"does not match {prior.owner_id}")
            if record.timestamp <= prior.timestamp:
                problems.append(
                    f"{record.transaction_id}: timestamp does not advance past {prior.transaction_id}")

        return ChainIntegrityRead(
            item_id=item_id,
            is_valid=not problems,
            record_count=len(records),
            problems=problems
        )
