# sitemarket/api/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas, services
from ..auth import require_admin
from ..db import get_db
from ..utils import logger

router = APIRouter(prefix="/admin")

@router.get("/users", response_model=List[schemas.UserOut])
def users(claims: schemas.Claims = Depends(require_admin), db: Session = Depends(get_db)):
    return crud.list_users(db)

@router.delete("/users/{user_id}", response_model=schemas.MessageOut)
def delete_user(user_id: int, claims: schemas.Claims = Depends(require_admin), db: Session = Depends(get_db)):
    crud.delete_user(db, user_id)
    logger.info("Admin %s deleted user %s", claims.username, user_id)
    return {"message": "User deleted"}

@router.post("/users/{user_id}/promote", response_model=schemas.UserOut)
def promote(user_id: int, claims: schemas.Claims = Depends(require_admin), db: Session = Depends(get_db)):
    return services.promote_to_admin(db, crud.get_user(db, user_id))

@router.delete("/listings/{listing_id}", response_model=schemas.MessageOut)
def delete_listing(listing_id: int, claims: schemas.Claims = Depends(require_admin), db: Session = Depends(get_db)):
    crud.delete_listing(db, listing_id)
    logger.info("Admin %s deleted listing %s", claims.username, listing_id)
    return {"message": "Listing removed"}

