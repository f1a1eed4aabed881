import secrets
from datetime import datetime, timezone


ITEM_PREFIX = "item"
TRANSACTION_PREFIX = "txn"
ACCOUNT_PREFIX = "acct"

# 16 random bytes -> 32 hex chars
TOKEN_BYTES = 16


def generate_id(prefix: str) -> str:
    """
    Builds a prefixed random identifier.
    Example: generate_id('item') -> 'item_9f86d081884c7d659a2feaa0c55ad015'
    """
    return f"{prefix}_{secrets.token_hex(TOKEN_BYTES)}"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form the database round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
