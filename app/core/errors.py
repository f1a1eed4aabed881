"""Domain errors raised by the ledger core.

Every error is surfaced to the API layer unchanged and translated there into
an HTTP response using the class's ``status_code`` and ``code``. None of these
are retried by the core; ``ConcurrentModification`` tells the caller to redo
the whole check-then-append sequence.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for all provenance domain errors."""

    status_code: int = 400
    code: str = "ledger_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotMinted(LedgerError):
    """Transfer requested for an item that has no mint record."""
    status_code = 404
    code = "not_minted"


class ItemNotFound(LedgerError):
    """History or detail requested for an item that was never minted."""
    status_code = 404
    code = "item_not_found"


class AlreadyMinted(LedgerError):
    status_code = 409
    code = "already_minted"


class NotOwner(LedgerError):
    """The actor is neither the current owner nor an admin."""
    status_code = 403
    code = "not_owner"


class NotManufacturer(LedgerError):
    status_code = 403
    code = "not_manufacturer"


class UnverifiedManufacturer(LedgerError):
    status_code = 403
    code = "unverified_manufacturer"


class UnknownTargetAccount(LedgerError):
    status_code = 400
    code = "unknown_target_account"


class AccountNotFound(LedgerError):
    status_code = 404
    code = "account_not_found"


class DuplicateTransactionId(LedgerError):
    status_code = 409
    code = "duplicate_transaction_id"


class ConcurrentModification(LedgerError):
    """
    The conditional append lost a race: another record was appended to the
    item's chain between the ownership read and the write.
    """
    status_code = 409
    code = "concurrent_modification"

    def __init__(self, message: str, item_id: str, expected_sequence: int):
        super().__init__(
            message,
            details={"item_id": item_id,
                     "expected_sequence": expected_sequence}
        )
        self.item_id = item_id
        self.expected_sequence = expected_sequence


class StorageUnavailable(LedgerError):
    """Transient storage failure (lost connection, locked database)."""
    status_code = 503
    code = "storage_unavailable"
