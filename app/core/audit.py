from typing import Any, Dict
from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.db.schema import SystemAuditLog, AuditAction


def record_audit_event(
    engine: Engine,
    actor_account_id: str,
    entity_type: str,
    entity_id: str,
    action: AuditAction,
    changes: Dict[str, Any],
):
    """
    Background worker.
    Opens its own session, the request session is closed by the time this runs.
    """
    try:
        with Session(engine) as session:
            session.add(SystemAuditLog(
                actor_account_id=actor_account_id,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                changes=changes,
            ))
            session.commit()
    except Exception:
        # The audited action is already committed; losing the log entry must not fail it
        logger.exception(
            f"Audit log failed for {action.value} on {entity_type} {entity_id}")
