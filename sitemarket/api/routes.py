# sitemarket/api/routes.py
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, UploadFile
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import crud, schemas, services
from ..auth import get_claims, require_admin, validate_credential
from ..db import get_db
from ..errors import NotFound
from ..notify import send_email
from ..realtime import hub
from ..utils import logger, parse_float, parse_positive_int, save_upload

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "ok"}

# accounts

@router.post("/register", response_model=schemas.MessageOut, status_code=201)
def register(body: schemas.RegisterIn, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    user = services.register_user(db, body)
    background_tasks.add_task(hub.notify_admins, f"New user registered: {user.username}")
    return {"message": "User registered successfully"}

@router.post("/login", response_model=schemas.LoginOut)
def login(body: schemas.LoginIn, db: Session = Depends(get_db)):
    credential = services.login(db, body)
    return {"message": "Login successful", "credential": credential}

@router.get("/validate-credential", response_model=schemas.ValidOut)
def validate(authorization: Optional[str] = Header(None)):
    return {"valid": validate_credential(authorization)}

@router.get("/profile", response_model=schemas.ProfileOut)
def profile(claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return services.profile(db, claims)

# listings

@router.get("/listings", response_model=List[schemas.ListingOut])
def listings(
    search: Optional[str] = None,
    sort: Optional[str] = None,
    minRating: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db)
):
    # query values arrive as raw strings so malformed paging falls back instead of failing
    return crud.search_listings(
        db,
        search=search,
        sort=sort,
        min_rating=parse_float(minRating),
        page=parse_positive_int(page, 1),
        page_size=parse_positive_int(limit, crud.DEFAULT_PAGE_SIZE, crud.MAX_PAGE_SIZE),
    )

@router.post("/listings", response_model=schemas.ListingOut, status_code=201)
def create_listing(
    background_tasks: BackgroundTasks,
    url: str = Form(""),
    price: str = Form(""),
    description: str = Form(""),
    image: Optional[UploadFile] = File(None),
    claims: schemas.Claims = Depends(get_claims),
    db: Session = Depends(get_db)
):
    image_path = save_upload(image) if image is not None and image.filename else None
    obj = crud.create_listing(db, claims.user_id, url, price, description, image_path)
    logger.info("Listing %s created by %s", obj.id, claims.username)
    background_tasks.add_task(hub.notify_admins, f"New listing: {obj.url}")
    background_tasks.add_task(
        send_email, claims.email, "Your website is listed",
        f"Your listing {obj.url} is now live at {obj.price:.2f}."
    )
    return obj

@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    return crud.get_listing(db, listing_id)

@router.post("/listings/{listing_id}/view")
def record_view(listing_id: int, db: Session = Depends(get_db)):
    if not crud.record_view(db, listing_id):
        raise NotFound("Listing not found")
    return {"status": "ok"}

# reviews

@router.post("/listings/{listing_id}/review", response_model=schemas.ReviewOut)
def submit_review(
    listing_id: int,
    body: schemas.ReviewIn,
    background_tasks: BackgroundTasks,
    claims: schemas.Claims = Depends(get_claims),
    db: Session = Depends(get_db)
):
    review = services.submit_review(db, claims, listing_id, body.rating, body.comment)
    background_tasks.add_task(
        hub.notify_admins, f"New {review.rating}-star review by {claims.username} on {review.listing.url}"
    )
    return review

@router.get("/listings/{listing_id}/reviews", response_model=schemas.ReviewsOut)
def list_reviews(listing_id: int, db: Session = Depends(get_db)):
    return {"reviews": services.list_reviews(db, listing_id)}

@router.post("/listings/{listing_id}/reviews/{review_id}/respond", response_model=schemas.ReviewOut)
def respond(
    listing_id: int,
    review_id: int,
    body: schemas.ResponseIn,
    claims: schemas.Claims = Depends(get_claims),
    db: Session = Depends(get_db)
):
    return services.respond_to_review(db, claims, listing_id, review_id, body.response_text)

# favorites

@router.post("/favorites/{listing_id}", response_model=schemas.FavoritesOut)
def toggle_favorite(listing_id: int, claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return {"favorites": services.toggle_favorite(db, claims, listing_id)}

@router.get("/favorites", response_model=List[schemas.ListingOut])
def favorites(claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return services.list_favorites(db, claims)

# statistics

@router.get("/top-websites", response_model=schemas.RankingsOut)
def top_websites(db: Session = Depends(get_db)):
    return services.rankings(db)

@router.get("/stats", response_model=schemas.StatsOut)
def stats(claims: schemas.Claims = Depends(require_admin), db: Session = Depends(get_db)):
    return services.site_stats(db)

@router.get("/my-stats", response_model=List[schemas.ListingOut])
def my_stats(claims: schemas.Claims = Depends(get_claims), db: Session = Depends(get_db)):
    return crud.listings_for_owner(db, claims.user_id)
