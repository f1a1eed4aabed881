from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, status

from app.core.audit import record_audit_event
from app.core.dependencies import (
    get_account_service, get_current_admin, get_ledger, get_ownership_resolver
)
from app.db.core import run_with_storage_retry
from app.db.schema import Account, AuditAction
from app.services.account import AccountService
from app.services.ledger import Ledger
from app.services.ownership import OwnershipResolver
from app.models.account import AccountAdminRead
from app.models.item import ChainIntegrityRead

router = APIRouter()


@router.get(
    "/manufacturers/pending",
    response_model=List[AccountAdminRead],
    status_code=status.HTTP_200_OK,
    summary="List Unverified Manufacturers",
    description="Manufacturer accounts waiting for verification, oldest first."
)
def list_pending_manufacturers(
    current_admin: Account = Depends(get_current_admin),
    service: AccountService = Depends(get_account_service)
):
    return service.list_pending_manufacturers()


@router.post(
    "/manufacturers/{account_id}/verify",
    response_model=AccountAdminRead,
    status_code=status.HTTP_200_OK,
    summary="Verify Manufacturer",
    description="Allows the manufacturer to mint items. Idempotent."
)
def verify_manufacturer(
    account_id: str,
    background_tasks: BackgroundTasks,
    current_admin: Account = Depends(get_current_admin),
    service: AccountService = Depends(get_account_service),
    ledger: Ledger = Depends(get_ledger)
):
    account = service.verify_manufacturer(account_id)

    background_tasks.add_task(
        record_audit_event,
        ledger.engine,
        current_admin.id,
        "account",
        account.id,
        AuditAction.VERIFY_MANUFACTURER,
        {"is_verified": True}
    )
    return account


@router.get(
    "/items/{item_id}/integrity",
    response_model=ChainIntegrityRead,
    status_code=status.HTTP_200_OK,
    summary="Check Chain Integrity",
    description="Walks the item's ownership chain and reports any broken link."
)
def check_item_integrity(
    item_id: str,
    current_admin: Account = Depends(get_current_admin),
    resolver: OwnershipResolver = Depends(get_ownership_resolver)
):
    return run_with_storage_retry(lambda: resolver.verify_chain(item_id))
