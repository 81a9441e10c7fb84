# sitemarket/services.py
"""Account, favorites, review and statistics logic.

Handlers pass the verified `Claims` of the caller into these functions; each
one performs its own ownership or purchase check before touching the store.
"""
import re
from datetime import datetime, timezone
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import hash_password, issue_credential, verify_password
from .errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from .models import Listing, Review, Transaction, User, ROLE_ADMIN, ROLE_USER
from .notify import verify_captcha
from .utils import logger

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

def register_user(db: Session, body: schemas.RegisterIn) -> User:
    if not body.username or not body.email or not body.password:
        raise ValidationError("All fields are required")
    if not USERNAME_RE.match(body.username):
        raise ValidationError("Invalid username")
    if not EMAIL_RE.match(body.email):
        raise ValidationError("Invalid email")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 6 characters")
    if not verify_captcha(body.captcha_token):
        raise ValidationError("Captcha verification failed")

    existing = db.query(User).filter((User.email == body.email) | (User.username == body.username)).first()
    if existing:
        raise Conflict("User already registered")
    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        role=ROLE_USER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent registration
        db.rollback()
        raise Conflict("User already registered")
    db.refresh(user)
    logger.info("Registered user %s", user.username)
    return user

def login(db: Session, body: schemas.LoginIn) -> str:
    if len(body.identifier or "") < 3:
        raise ValidationError("Invalid identifier")
    user = crud.find_user(db, body.identifier)
    if not user:
        raise Unauthorized("User not found")
    if not verify_password(body.password, user.password_hash):
        raise Unauthorized("Incorrect password")
    return issue_credential(user)

def promote_to_admin(db: Session, user: User) -> User:
    user.role = ROLE_ADMIN
    db.commit()
    db.refresh(user)
    logger.info("User %s promoted to admin", user.email)
    return user

# favorites

def toggle_favorite(db: Session, claims: schemas.Claims, listing_id: int) -> List[int]:
    # read-modify-write without a lock: concurrent toggles from one user are last-write-wins
    user = crud.get_user(db, claims.user_id)
    listing = crud.get_listing(db, listing_id)
    if listing in user.favorites:
        user.favorites.remove(listing)
    else:
        user.favorites.append(listing)
    db.commit()
    return [fav.id for fav in user.favorites]

def list_favorites(db: Session, claims: schemas.Claims) -> List[Listing]:
    return list(crud.get_user(db, claims.user_id).favorites)

# reviews

def recompute_rating(db: Session, listing: Listing) -> float:
    avg = db.query(func.avg(Review.rating)).filter(Review.listing_id == listing.id).scalar()
    listing.rating = float(avg) if avg is not None else 0.0
    return listing.rating

def submit_review(db: Session, claims: schemas.Claims, listing_id: int, rating, comment: str) -> Review:
    listing = crud.get_listing(db, listing_id)
    purchased = (
        db.query(Transaction.id)
        .filter(Transaction.buyer_id == claims.user_id, Transaction.listing_id == listing.id)
        .first()
    )
    if not purchased:
        raise Forbidden("Only buyers of this website can review it")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")
    comment = (comment or "").strip()
    if not comment:
        raise ValidationError("Comment is required")

    review = Review(listing_id=listing.id, reviewer_id=claims.user_id, rating=rating, comment=comment)
    db.add(review)
    db.flush()
    recompute_rating(db, listing)
    db.commit()
    db.refresh(review)
    logger.info("Review %s on listing %s, rating now %.2f", review.id, listing.id, listing.rating)
    return review

def list_reviews(db: Session, listing_id: int) -> List[Review]:
    return list(crud.get_listing(db, listing_id).reviews)

def respond_to_review(db: Session, claims: schemas.Claims, listing_id: int, review_id: int, text: str) -> Review:
    listing = crud.get_listing(db, listing_id)
    if listing.owner_id != claims.user_id:
        raise Forbidden("Only the owner can respond to reviews")
    review = db.get(Review, review_id)
    if not review or review.listing_id != listing.id:
        raise NotFound("Review not found")
    text = (text or "").strip()
    if not text:
        raise ValidationError("Response text is required")
    # a single response per review; responding again replaces it
    review.response_text = text
    review.response_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(review)
    return review

# statistics

def rankings(db: Session, limit: int = 10) -> Dict[str, List[Listing]]:
    return {
        "top_sold": crud.top_listings(db, Listing.sales_count, limit),
        "top_viewed": crud.top_listings(db, Listing.views, limit),
        "top_rated": crud.top_listings(db, Listing.rating, limit),
    }

def site_stats(db: Session, limit: int = 5) -> Dict:
    rows = (
        db.query(Review.rating, func.count(Review.id))
        .group_by(Review.rating)
        .order_by(Review.rating.asc())
        .all()
    )
    return {
        "top_sold": crud.top_listings(db, Listing.sales_count, limit),
        "top_viewed": crud.top_listings(db, Listing.views, limit),
        "rating_distribution": [{"rating": r, "count": c} for r, c in rows],
    }

def profile(db: Session, claims: schemas.Claims) -> Dict:
    user = crud.get_user(db, claims.user_id)
    purchases = (
        db.query(Transaction)
        .filter(Transaction.buyer_id == user.id)
        .order_by(Transaction.id.desc())
        .all()
    )
    reviews = db.query(Review).filter(Review.reviewer_id == user.id).order_by(Review.id.desc()).all()
    return {"user": user, "transactions": purchases, "reviews": reviews}
