# sitemarket/api/checkout.py
from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import payments, schemas
from ..auth import get_claims
from ..db import get_db
from ..realtime import hub

router = APIRouter()

def _announce_sale(background_tasks: BackgroundTasks, tx, changed: bool):
    if changed and tx is not None and tx.status == payments.STATUS_COMPLETED:
        url = tx.listing.url if tx.listing else f"listing {tx.listing_id}"
        background_tasks.add_task(hub.notify_admins, f"Sale completed: {url} for {tx.amount:.2f}")

@router.post("/checkout", response_model=schemas.RedirectOut)
def checkout(body: schemas.ListingRef, claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return {"redirect_url": payments.initiate_checkout(db, claims, body.listing_id)}

@router.post("/confirm-payment", response_model=schemas.SuccessOut)
def confirm_payment(body: schemas.ConfirmPaymentIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    success, tx, changed = payments.confirm_payment(db, body.session_id)
    _announce_sale(background_tasks, tx, changed)
    return {"success": success}

@router.post("/webhook")
async def webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    payload = await request.body()
    tx, changed = await run_in_threadpool(payments.handle_webhook, db, payload, stripe_signature)
    _announce_sale(background_tasks, tx, changed)
    return {"received": True}

@router.post("/transactions", response_model=schemas.TransactionOut, status_code=201)
def create_transaction(body: schemas.ListingRef, claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return payments.create_transaction(db, claims, body.listing_id)

@router.get("/transactions/buyer", response_model=List[schemas.TransactionOut])
def buyer_transactions(claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return payments.list_purchases(db, claims)
