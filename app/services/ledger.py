from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from loguru import logger
from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased
from sqlmodel import Session, SQLModel, select

from app.core.errors import (
    AlreadyMinted, ConcurrentModification, DuplicateTransactionId
)
from app.db.core import create_db_engine, storage_errors
from app.db.schema import Item, TransactionRecord


class Ledger:
    """
    Append-only store of ownership events; the single source of truth for
    who owns what.

    There is no update or delete. Writes go through ``append`` only, and the
    Transfer Guard is its only caller. One instance lives for the whole
    process: it is built at startup and closed at shutdown.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "Ledger":
        return cls(create_db_engine(database_url, echo=echo))

    def create_schema(self):
        SQLModel.metadata.create_all(self.engine)

    def close(self):
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Opens a session, mapping driver-level failures to StorageUnavailable."""
        with storage_errors(), Session(self.engine) as session:
            yield session

    # ==========================================================================
    # WRITE
    # ==========================================================================

    def append(self, record: TransactionRecord, item: Optional[Item] = None) -> TransactionRecord:
        """
        Inserts a record, together with its Item when ``item`` is given (mint).

        The (item_id, sequence) unique key makes this a conditional append:
        if another record already took this chain position the insert fails
        and ConcurrentModification is raised. The record is visible to every
        later read as soon as this returns.
        """
        with self.session() as session:
            if session.get(TransactionRecord, record.transaction_id):
                raise DuplicateTransactionId(
                    f"Transaction {record.transaction_id} already exists.",
                    details={"transaction_id": record.transaction_id}
                )

            if item is not None:
                session.add(item)
            session.add(record)

            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise self._classify_conflict(session, record, item) from e

            session.refresh(record)
            if item is not None:
                session.refresh(item)

        logger.info(
            f"Appended {record.transaction_id} to {record.item_id} "
            f"(seq {record.sequence}, owner {record.owner_id})")
        return record

    def _classify_conflict(
        self, session: Session, record: TransactionRecord, item: Optional[Item]
    ) -> Exception:
        """Works out which constraint the failed append ran into."""
        if session.get(TransactionRecord, record.transaction_id):
            return DuplicateTransactionId(
                f"Transaction {record.transaction_id} already exists.",
                details={"transaction_id": record.transaction_id}
            )

        if item is not None and session.get(Item, item.item_id):
            return AlreadyMinted(
                f"Item {item.item_id} has already been minted.",
                details={"item_id": item.item_id}
            )

        logger.warning(
            f"Lost append race on {record.item_id} at sequence {record.sequence}")
        return ConcurrentModification(
            f"Item {record.item_id} changed owner while the transfer was being processed. "
            "Re-read the current owner and try again.",
            item_id=record.item_id,
            expected_sequence=record.sequence
        )

    # ==========================================================================
    # READ
    # ==========================================================================

    def records_for(self, item_id: str) -> List[TransactionRecord]:
        """All records of an item, oldest first. Empty if never minted."""
        with self.session() as session:
            statement = (
                select(TransactionRecord)
                .where(TransactionRecord.item_id == item_id)
                .order_by(TransactionRecord.timestamp.asc(),
                          TransactionRecord.transaction_id.asc())
            )
            return list(session.exec(statement).all())

    def latest_for(self, item_id: str) -> Optional[TransactionRecord]:
        """
        The record with the greatest timestamp for the item.
        Equal timestamps are broken by the lexicographically greater
        transaction_id.
        """
        with self.session() as session:
            statement = (
                select(TransactionRecord)
                .where(TransactionRecord.item_id == item_id)
                .order_by(TransactionRecord.timestamp.desc(),
                          TransactionRecord.transaction_id.desc())
                .limit(1)
            )
            return session.exec(statement).first()

    def latest_records(self, owner_id: Optional[str] = None) -> List[TransactionRecord]:
        """
        The latest record of every item, optionally only those whose owner is
        ``owner_id``. Runs as a single statement so the result is a
        point-in-time snapshot of the ledger.
        """
        rank = func.row_number().over(
            partition_by=TransactionRecord.item_id,
            order_by=(TransactionRecord.timestamp.desc(),
                      TransactionRecord.transaction_id.desc())
        ).label("row_rank")
        ranked = select(TransactionRecord, rank).subquery()
        latest = aliased(TransactionRecord, ranked)

        statement = select(latest).where(ranked.c.row_rank == 1)
        if owner_id is not None:
            statement = statement.where(ranked.c.owner_id == owner_id)
        statement = statement.order_by(ranked.c.timestamp.desc())

        with self.session() as session:
            return list(session.exec(statement).all())

    def get_item(self, item_id: str) -> Optional[Item]:
        with self.session() as session:
            return session.get(Item, item_id)

    def get_items(self, item_ids: Sequence[str]) -> List[Item]:
        if not item_ids:
            return []
        with self.session() as session:
            statement = select(Item).where(Item.item_id.in_(list(item_ids)))
            return list(session.exec(statement).all())
