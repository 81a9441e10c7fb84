# sitemarket/payments.py
"""Checkout and transaction settlement backed by Stripe Checkout.

A transaction leaves `pending` exactly once. Both the client-side confirmation
and the signed webhook go through `settle`, which only moves a row whose
status is still `pending`; a second trigger for the same session is a no-op.
Completing a sale bumps the listing's sales counter in the same commit.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import stripe
from dotenv import load_dotenv
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import crud, schemas
from .errors import InvalidSignature, NotFound, UpstreamError, ValidationError
from .models import (
    Listing, Transaction, STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED, TERMINAL_STATUSES,
)
from .utils import logger

load_dotenv()

stripe.api_key = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "eur")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
CHECKOUT_TTL_HOURS = int(os.getenv("CHECKOUT_TTL_HOURS", "24"))

WEBHOOK_TRANSITIONS = {
    "checkout.session.completed": STATUS_COMPLETED,
    "checkout.session.expired": STATUS_CANCELLED,
}

def settle(db: Session, tx: Transaction, target: str) -> bool:
    """Move a pending transaction to `target`. Returns False when it was already terminal."""
    if target not in TERMINAL_STATUSES:
        raise ValueError(f"not a terminal status: {target}")
    updated = (
        db.query(Transaction)
        .filter(Transaction.id == tx.id, Transaction.status == STATUS_PENDING)
        .update({Transaction.status: target}, synchronize_session=False)
    )
    if not updated:
        logger.info("Transaction %s already %s; ignoring %s", tx.id, tx.status, target)
        return False
    if target == STATUS_COMPLETED and tx.listing_id is not None:
        db.query(Listing).filter(Listing.id == tx.listing_id).update(
            {Listing.sales_count: Listing.sales_count + 1}, synchronize_session=False
        )
    db.commit()
    db.refresh(tx)
    logger.info("Transaction %s -> %s", tx.id, target)
    return True

def create_transaction(db: Session, claims: schemas.Claims, listing_id: int, session_id: Optional[str] = None) -> Transaction:
    listing = crud.get_listing(db, listing_id)
    if listing.owner_id == claims.user_id:
        raise ValidationError("You cannot buy your own listing")
    tx = Transaction(
        buyer_id=claims.user_id,
        seller_id=listing.owner_id,
        listing_id=listing.id,
        amount=listing.price,
        status=STATUS_PENDING,
        session_id=session_id,
        session_opened_at=datetime.now(timezone.utc) if session_id else None,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    return tx

def pending_transaction(db: Session, buyer_id: int, listing_id: int) -> Optional[Transaction]:
    return (
        db.query(Transaction)
        .filter(
            Transaction.buyer_id == buyer_id,
            Transaction.listing_id == listing_id,
            Transaction.status == STATUS_PENDING,
        )
        .order_by(Transaction.id.desc())
        .first()
    )

def initiate_checkout(db: Session, claims: schemas.Claims, listing_id: int) -> str:
    listing = crud.get_listing(db, listing_id)
    if listing.owner_id == claims.user_id:
        raise ValidationError("You cannot buy your own listing")
    try:
        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": STRIPE_CURRENCY,
                    "product_data": {"name": listing.url},
                    "unit_amount": int(round(listing.price * 100)),
                },
                "quantity": 1,
            }],
            metadata={
                "listingId": str(listing.id),
                "buyerId": str(claims.user_id),
                "sellerId": str(listing.owner_id),
            },
            success_url=f"{FRONTEND_URL}/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{FRONTEND_URL}/cancel",
        )
    except stripe.StripeError as e:
        logger.error("Stripe checkout failed for listing %s: %s", listing.id, e)
        raise UpstreamError("Payment provider unavailable")

    tx = pending_transaction(db, claims.user_id, listing.id)
    if tx is None:
        create_transaction(db, claims, listing.id, session_id=session["id"])
    else:
        # a reopened checkout starts a fresh expiry window
        tx.session_id = session["id"]
        tx.session_opened_at = datetime.now(timezone.utc)
        db.commit()
    logger.info("Checkout session %s opened for listing %s by user %s", session["id"], listing.id, claims.user_id)
    return session["url"]

def find_transaction(db: Session, session_id: str, metadata=None) -> Optional[Transaction]:
    """Match a checkout session to its transaction.

    The session id is authoritative. Metadata only matches a pending row that
    was never bound to a session; a row that has moved on to a newer session
    belongs to that session alone.
    """
    tx = db.query(Transaction).filter(Transaction.session_id == session_id).first()
    if tx is not None or not metadata:
        return tx
    try:
        buyer_id = int(metadata["buyerId"])
        listing_id = int(metadata["listingId"])
    except (KeyError, TypeError, ValueError):
        return None
    tx = pending_transaction(db, buyer_id, listing_id)
    if tx is None or tx.session_id is not None:
        return None
    return tx

def _field(obj, key):
    # item access works on StripeObject and plain dicts alike
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None

def settle_session(db: Session, session, target: str) -> Tuple[Optional[Transaction], bool]:
    # only the exact session may cancel a checkout
    metadata = _field(session, "metadata") if target == STATUS_COMPLETED else None
    tx = find_transaction(db, session["id"], metadata)
    if tx is None:
        logger.warning("No transaction matches checkout session %s", session["id"])
        return None, False
    return tx, settle(db, tx, target)

def confirm_payment(db: Session, session_id: str) -> Tuple[bool, Optional[Transaction], bool]:
    """Client-triggered confirmation. Returns (paid, transaction, changed)."""
    if not session_id:
        raise ValidationError("sessionId is required")
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError:
        raise NotFound("Checkout session not found")
    except stripe.StripeError as e:
        logger.error("Stripe session lookup failed for %s: %s", session_id, e)
        raise UpstreamError("Payment provider unavailable")
    if _field(session, "payment_status") != "paid":
        return False, None, False
    tx, changed = settle_session(db, session, STATUS_COMPLETED)
    return tx is not None, tx, changed

def handle_webhook(db: Session, payload: bytes, signature: Optional[str]) -> Tuple[Optional[Transaction], bool]:
    try:
        event = stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Rejected webhook: %s", e)
        raise InvalidSignature()
    target = WEBHOOK_TRANSITIONS.get(event["type"])
    if target is None:
        logger.info("Ignoring webhook event %s", event["type"])
        return None, False
    return settle_session(db, event["data"]["object"], target)

def list_purchases(db: Session, claims: schemas.Claims):
    return (
        db.query(Transaction)
        .filter(Transaction.buyer_id == claims.user_id)
        .order_by(Transaction.id.desc())
        .all()
    )

def expire_stale_checkouts(db: Session, ttl_hours: int = CHECKOUT_TTL_HOURS) -> int:
    """Cancel pending transactions whose latest checkout session is older than `ttl_hours`."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=ttl_hours)
    opened_at = func.coalesce(Transaction.session_opened_at, Transaction.created_at)
    stale = (
        db.query(Transaction)
        .filter(Transaction.status == STATUS_PENDING, opened_at < cutoff)
        .all()
    )
    cancelled = sum(1 for tx in stale if settle(db, tx, STATUS_CANCELLED))
    if cancelled:
        logger.info("Cancelled %d stale checkout(s)", cancelled)
    return cancelled
