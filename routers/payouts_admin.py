# routers/payouts_admin.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db import get_db
from app import balance_service, payout_request_service, payout_service
from routers.auth_admin import get_current_admin
from schemas.payouts import (
    BalanceCorrection,
    BatchCreate,
    BatchCreated,
    BatchFinalize,
    PayoutBatchOut,
    PayoutRequestCreate,
    PayoutRequestCreated,
    PayoutRequestOut,
    PayoutRequestStatusUpdate,
    VendorBalance,
)

router = APIRouter(
    prefix="/admin/payouts",
    tags=["Admin Payouts"],
)

# Domain errors (app.errors) are turned into responses by the handler in app.main


# ---------------------------------------------------------
# 1) PENDING BALANCES PER VENDOR
# ---------------------------------------------------------
@router.get("/vendor-balances", response_model=List[VendorBalance])
def vendor_balances(
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return balance_service.list_vendor_balances(db)


# ---------------------------------------------------------
# 2) BATCHES
# ---------------------------------------------------------
@router.post("/batches", response_model=BatchCreated, status_code=status.HTTP_201_CREATED)
def create_batch(
    payload: BatchCreate,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    batch_id = payout_service.create_batch(
        db,
        vendor_ids=payload.vendor_ids,
        created_by=admin.email,
        notes=payload.notes,
    )
    return {"batch_id": batch_id}


@router.get("/batches", response_model=List[PayoutBatchOut])
def list_batches(
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return payout_service.list_batches(db)


@router.get("/batches/{batch_id}", response_model=PayoutBatchOut)
def batch_details(
    batch_id: str,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return payout_service.get_batch(db, batch_id)


@router.post("/batches/{batch_id}/advance")
def advance_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    payout_service.advance_batch(db, batch_id)
    return {"message": "Batch is processing.", "batch_id": batch_id}


@router.post("/batches/{batch_id}/finalize")
def finalize_batch(
    batch_id: str,
    payload: BatchFinalize,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    payout_service.finalize_batch(db, batch_id, payload.utr_by_vendor)
    return {"message": "Batch completed.", "batch_id": batch_id}


@router.delete("/batches/{batch_id}")
def delete_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    payout_service.delete_batch(db, batch_id)
    return {"message": "Batch deleted, orders back to pending.", "batch_id": batch_id}


# ---------------------------------------------------------
# 3) VENDOR HISTORY
# ---------------------------------------------------------
@router.get("/vendors/{vendor_id}/history", response_model=List[PayoutBatchOut])
def vendor_payout_history(
    vendor_id: str,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return payout_service.get_vendor_payout_history(db, vendor_id)


# ---------------------------------------------------------
# 4) CACHE RECONCILIATION
# ---------------------------------------------------------
@router.post("/reconcile", response_model=List[BalanceCorrection])
def reconcile_balances(
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return balance_service.reconcile_vendor_balances(db)


# ---------------------------------------------------------
# 5) VENDOR PAYOUT REQUESTS
# ---------------------------------------------------------
@router.post("/requests", response_model=PayoutRequestCreated, status_code=status.HTTP_201_CREATED)
def create_payout_request(
    payload: PayoutRequestCreate,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    request_id = payout_request_service.request_vendor_payout(
        db,
        vendor_id=payload.vendor_id,
        amount=payload.amount,
        bank_details=payload.bank_details,
    )
    return {"request_id": request_id}


@router.get("/requests", response_model=List[PayoutRequestOut])
def list_payout_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    return payout_request_service.list_payout_requests(db, status=status_filter)


@router.post("/requests/{request_id}/status")
def update_payout_request_status(
    request_id: str,
    payload: PayoutRequestStatusUpdate,
    db: Session = Depends(get_db),
    admin=Depends(get_current_admin),
):
    payout_request_service.update_payout_request_status(
        db, request_id, payload.status, processed_by=admin.email
    )
    return {"message": f"Payout request {payload.status.value}.", "request_id": request_id}
