# sitemarket/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

# requests

class RegisterIn(BaseModel):
    username: str
    email: str
    password: str
    captcha_token: Optional[str] = Field(None, alias="captchaToken")

class LoginIn(BaseModel):
    identifier: str
    password: str

class ReviewIn(BaseModel):
    rating: int
    comment: str = ""

class ResponseIn(BaseModel):
    response_text: str = Field(..., alias="responseText")

class ListingRef(BaseModel):
    listing_id: int = Field(..., alias="listingId")

class ConfirmPaymentIn(BaseModel):
    session_id: str = Field(..., alias="sessionId")

# responses

class Claims(BaseModel):
    user_id: int
    username: str
    email: str
    role: str
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

class UserOut(BaseModel):
    id: int
    username: str
    email: str
    role: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    class Config:
        from_attributes = True

class ListingOut(BaseModel):
    id: int
    url: str
    price: float
    description: str
    image: Optional[str] = None
    owner: Optional[str] = Field(None, validation_alias="owner_name")
    views: int = 0
    sales_count: int = Field(0, serialization_alias="salesCount")
    rating: float = 0.0
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    class Config:
        from_attributes = True

class ReviewResponseOut(BaseModel):
    text: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")

class ReviewOut(BaseModel):
    id: int
    reviewer: Optional[str] = Field(None, validation_alias="reviewer_name")
    rating: int
    comment: str
    response: Optional[ReviewResponseOut] = None
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    class Config:
        from_attributes = True

class ReviewsOut(BaseModel):
    reviews: List[ReviewOut]

class TransactionOut(BaseModel):
    id: int
    buyer: Optional[str] = Field(None, validation_alias="buyer_name")
    seller: Optional[str] = Field(None, validation_alias="seller_name")
    listing: Optional[ListingOut] = None
    amount: float
    status: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    class Config:
        from_attributes = True

class FavoritesOut(BaseModel):
    favorites: List[int]

class MessageOut(BaseModel):
    message: str

class LoginOut(BaseModel):
    message: str
    credential: str

class ValidOut(BaseModel):
    valid: bool

class RedirectOut(BaseModel):
    redirect_url: str = Field(..., serialization_alias="redirectUrl")

class SuccessOut(BaseModel):
    success: bool

class RankingsOut(BaseModel):
    top_sold: List[ListingOut] = Field(..., serialization_alias="topSold")
    top_viewed: List[ListingOut] = Field(..., serialization_alias="topViewed")
    top_rated: List[ListingOut] = Field(..., serialization_alias="topRated")

class RatingBucket(BaseModel):
    rating: int
    count: int

class StatsOut(BaseModel):
    top_sold: List[ListingOut] = Field(..., serialization_alias="topSold")
    top_viewed: List[ListingOut] = Field(..., serialization_alias="topViewed")
    rating_distribution: List[RatingBucket] = Field(..., serialization_alias="ratingDistribution")

class ProfileReviewOut(BaseModel):
    id: int
    listing: Optional[ListingOut] = None
    rating: int
    comment: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    class Config:
        from_attributes = True

class ProfileOut(BaseModel):
    user: UserOut
    transactions: List[TransactionOut]
    reviews: List[ProfileReviewOut]
