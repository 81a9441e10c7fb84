# sitemarket/models.py
"""SQLAlchemy ORM models for persisted entities.

Users, the websites they list, reviews left on those listings and the
transactions recording purchases. Favorites live in an association table.
"""
from sqlalchemy import (
    Column, Integer, Text, Numeric, Float, TIMESTAMP, ForeignKey, Table, func, Index,
)
from sqlalchemy.orm import relationship
from .db import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

user_favorites = Table(
    "user_favorites",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("listing_id", Integer, ForeignKey("listings.id", ondelete="CASCADE"), primary_key=True),
)

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(Text, nullable=False, unique=True, index=True)
    email = Column(Text, nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default=ROLE_USER)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    listings = relationship("Listing", back_populates="owner", cascade="all, delete-orphan")
    favorites = relationship("Listing", secondary=user_favorites, back_populates="favorited_by", order_by="Listing.id")
    reviews = relationship("Review", back_populates="reviewer")
    purchases = relationship("Transaction", back_populates="buyer", foreign_keys="Transaction.buyer_id")
    sales = relationship("Transaction", back_populates="seller", foreign_keys="Transaction.seller_id")

class Listing(Base):
    __tablename__ = "listings"
    id = Column(Integer, primary_key=True, index=True)
    url = Column(Text, nullable=False)
    price = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    description = Column(Text, nullable=False)
    image = Column(Text)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    views = Column(Integer, nullable=False, default=0)
    sales_count = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="listings")
    reviews = relationship("Review", back_populates="listing", cascade="all, delete-orphan", order_by="Review.id")
    favorited_by = relationship("User", secondary=user_favorites, back_populates="favorites")
    transactions = relationship("Transaction", back_populates="listing")

    @property
    def owner_name(self):
        return self.owner.username if self.owner else None

class Review(Base):
    __tablename__ = "reviews"
    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)
    response_text = Column(Text)
    response_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    listing = relationship("Listing", back_populates="reviews")
    reviewer = relationship("User", back_populates="reviews")

    @property
    def reviewer_name(self):
        return self.reviewer.username if self.reviewer else None

    @property
    def response(self):
        if self.response_text is None:
            return None
        return {"text": self.response_text, "created_at": self.response_at}

class Transaction(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    status = Column(Text, nullable=False, default=STATUS_PENDING)
    session_id = Column(Text, unique=True, index=True)
    session_opened_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    buyer = relationship("User", back_populates="purchases", foreign_keys=[buyer_id])
    seller = relationship("User", back_populates="sales", foreign_keys=[seller_id])
    listing = relationship("Listing", back_populates="transactions")

    @property
    def buyer_name(self):
        return self.buyer.username if self.buyer else None

    @property
    def seller_name(self):
        return self.seller.username if self.seller else None

Index("idx_listings_price", Listing.price)
Index("idx_listings_rating", Listing.rating)
Index("idx_transactions_buyer_listing", Transaction.buyer_id, Transaction.listing_id)
