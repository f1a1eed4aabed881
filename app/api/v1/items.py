from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from app.core.audit import record_audit_event
from app.core.dependencies import (
    get_current_account, get_ledger, get_ownership_resolver, get_transfer_guard
)
from app.db.core import run_with_storage_retry
from app.db.schema import Account, AuditAction
from app.services.ledger import Ledger
from app.services.ownership import OwnershipResolver
from app.services.transfer_guard import TransferGuard
from app.utils.qr import item_id_from_scan, render_item_qr
from app.models.item import (
    ItemHistoryRead, ItemRead, MintRequest, MintResult, OwnedItemsRead,
    PublicItemRead, QRCodeRead, ScanRequest, TransactionRecordRead, TransferRequest
)

router = APIRouter()


@router.post(
    "/",
    response_model=MintResult,
    status_code=status.HTTP_201_CREATED,
    summary="Mint Item",
    description="Creates a new item owned by the calling verified manufacturer.",
    tags=["Items"]
)
def mint_item(
    payload: MintRequest,
    current_account: Account = Depends(get_current_account),
    guard: TransferGuard = Depends(get_transfer_guard)
):
    item, record = run_with_storage_retry(
        lambda: guard.mint(current_account, payload.product_id, payload.item_id)
    )
    return MintResult(
        item=ItemRead.model_validate(item),
        transaction=TransactionRecordRead.model_validate(record)
    )


@router.post(
    "/transfer",
    response_model=TransactionRecordRead,
    status_code=status.HTTP_200_OK,
    summary="Transfer Ownership",
    description="Moves an item to another account. Only the current owner, or an admin, may do this.",
    tags=["Items"]
)
def transfer_item(
    payload: TransferRequest,
    background_tasks: BackgroundTasks,
    current_account: Account = Depends(get_current_account),
    guard: TransferGuard = Depends(get_transfer_guard),
    ledger: Ledger = Depends(get_ledger)
):
    record = run_with_storage_retry(
        lambda: guard.transfer(current_account, payload.item_id, payload.new_owner_id)
    )

    if record.initiated_by != record.previous_owner_id:
        background_tasks.add_task(
            record_audit_event,
            ledger.engine,
            current_account.id,
            "item",
            record.item_id,
            AuditAction.ADMIN_TRANSFER,
            {
                "transaction_id": record.transaction_id,
                "from": record.previous_owner_id,
                "to": record.owner_id,
            }
        )

    return record


@router.get(
    "/owned",
    response_model=OwnedItemsRead,
    summary="List Owned Items",
    description="Items whose latest ownership record names the caller.",
    tags=["Items"]
)
def list_owned_items(
    current_account: Account = Depends(get_current_account),
    resolver: OwnershipResolver = Depends(get_ownership_resolver)
):
    return run_with_storage_retry(lambda: resolver.query_owned(current_account.id))


@router.get(
    "/{item_id}/history",
    response_model=ItemHistoryRead,
    summary="Get Ownership History",
    description="Returns the item and every ownership record, oldest first.",
    tags=["Items"]
)
def get_item_history(
    item_id: str,
    current_account: Account = Depends(get_current_account),
    resolver: OwnershipResolver = Depends(get_ownership_resolver)
):
    return run_with_storage_retry(lambda: resolver.query(item_id))


@router.get(
    "/{item_id}/public",
    response_model=PublicItemRead,
    summary="Fetch Public Item",
    description="Public access point for scanned QR codes. Exposes no owner data.",
    tags=["Public"]
)
def get_public_item(
    item_id: str,
    resolver: OwnershipResolver = Depends(get_ownership_resolver)
):
    return run_with_storage_retry(lambda: resolver.public_view(item_id))


@router.get(
    "/{item_id}/qr",
    response_model=QRCodeRead,
    summary="Generate QR Code",
    description="Renders a QR code whose payload is the item id and returns its image URL.",
    tags=["Items"]
)
def get_item_qr(
    item_id: str,
    current_account: Account = Depends(get_current_account),
    resolver: OwnershipResolver = Depends(get_ownership_resolver)
):
    # Raises ItemNotFound before anything is rendered
    run_with_storage_retry(lambda: resolver.history(item_id))

    return render_item_qr(item_id)


@router.post(
    "/scan",
    response_model=PublicItemRead,
    summary="Resolve Scanned QR Code",
    description="Turns the text read from an item's QR code into its public view.",
    tags=["Public"]
)
def scan_item(
    payload: ScanRequest,
    resolver: OwnershipResolver = Depends(get_ownership_resolver)
):
    item_id = item_id_from_scan(payload.payload)
    if item_id is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Scanned code does not contain an item id."
        )
    return run_with_storage_retry(lambda: resolver.public_view(item_id))
