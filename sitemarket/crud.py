# sitemarket/crud.py
"""CRUD operations for listings and user lookups.

Listing search covers text filtering, minimum rating, ordering and
pagination. Counters are bumped with single UPDATE statements so concurrent
requests never lose increments.
"""
import math
from sqlalchemy import or_
from .models import Listing, User
from .errors import NotFound, ValidationError
from sqlalchemy.orm import Session
from typing import Optional, List

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

SORT_ORDERS = {
    "price_asc": (Listing.price.asc(),),
    "price_desc": (Listing.price.desc(),),
    "rating_desc": (Listing.rating.desc(),),
    "views_desc": (Listing.views.desc(),),
    "sales_desc": (Listing.sales_count.desc(),),
}

def escape_like(text: str) -> str:
    """Make LIKE wildcards in user text match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

def create_listing(db: Session, owner_id: int, url, price, description, image: Optional[str] = None) -> Listing:
    url = (url or "").strip()
    description = (description or "").strip()
    if not url or not description or price in (None, ""):
        raise ValidationError("All fields are required")
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a number")
    if not math.isfinite(price) or not price > 0:
        raise ValidationError("Price must be a positive number")
    obj = Listing(
        url=url,
        price=price,
        description=description,
        image=image,
        owner_id=owner_id,
        views=0,
        sales_count=0,
        rating=0.0,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_listing(db: Session, listing_id: int) -> Listing:
    obj = db.get(Listing, listing_id)
    if not obj:
        raise NotFound("Listing not found")
    return obj

def search_listings(
    db: Session,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    min_rating: Optional[float] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Listing]:
    q = db.query(Listing)
    if search:
        pattern = f"%{escape_like(search)}%"
        q = q.filter(or_(
            Listing.url.ilike(pattern, escape="\\"),
            Listing.description.ilike(pattern, escape="\\"),
        ))
    if min_rating is not None:
        q = q.filter(Listing.rating >= min_rating)
    # id breaks ties so that pages never overlap
    q = q.order_by(*SORT_ORDERS.get(sort, ()), Listing.id.asc())
    page = max(1, page)
    page_size = min(max(1, page_size), MAX_PAGE_SIZE)
    return q.offset((page - 1) * page_size).limit(page_size).all()

def record_view(db: Session, listing_id: int) -> bool:
    updated = (
        db.query(Listing)
        .filter(Listing.id == listing_id)
        .update({Listing.views: Listing.views + 1}, synchronize_session=False)
    )
    db.commit()
    return bool(updated)

def delete_listing(db: Session, listing_id: int) -> None:
    obj = get_listing(db, listing_id)
    db.delete(obj)
    db.commit()

def top_listings(db: Session, column, limit: int = 10) -> List[Listing]:
    return db.query(Listing).order_by(column.desc(), Listing.id.asc()).limit(limit).all()

def listings_for_owner(db: Session, owner_id: int) -> List[Listing]:
    return db.query(Listing).filter(Listing.owner_id == owner_id).order_by(Listing.id.asc()).all()

def get_user(db: Session, user_id: int) -> User:
    obj = db.get(User, user_id)
    if not obj:
        raise NotFound("User not found")
    return obj

def find_user(db: Session, identifier: str) -> Optional[User]:
    """Look a user up by username or email."""
    return db.query(User).filter(or_(User.email == identifier, User.username == identifier)).first()

def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.id.asc()).all()

def delete_user(db: Session, user_id: int) -> None:
    obj = get_user(db, user_id)
    db.delete(obj)
    db.commit()
