# tests/conftest.py
import os
import tempfile

# configure before anything imports sitemarket
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SCHEDULER_ENABLED"] = "0"
os.environ["RECAPTCHA_SECRET"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="sitemarket-uploads-")

import pytest
from fastapi.testclient import TestClient

from sitemarket import crud
from sitemarket.auth import hash_password, issue_credential
from sitemarket.db import Base, engine, SessionLocal
from sitemarket.main import app
from sitemarket.models import User, Transaction, ROLE_ADMIN, ROLE_USER
from sitemarket.realtime import hub
from sitemarket.schemas import Claims


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(db):
    hub.history.clear()
    with TestClient(app) as c:
        yield c


def make_user(db, username, role=ROLE_USER, password="secret123"):
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_listing(db, owner, url="https://example.com", price=100, description="A site"):
    return crud.create_listing(db, owner.id, url, price, description)


def make_purchase(db, buyer, listing, status="pending", session_id=None):
    tx = Transaction(
        buyer_id=buyer.id,
        seller_id=listing.owner_id,
        listing_id=listing.id,
        amount=listing.price,
        status=status,
        session_id=session_id,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    return tx


def claims_for(user):
    from datetime import datetime, timezone
    return Claims(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        expires_at=datetime.now(timezone.utc),
    )


def auth_header(user):
    return {"Authorization": f"Bearer {issue_credential(user)}"}


@pytest.fixture
def seller(db):
    return make_user(db, "seller")


@pytest.fixture
def buyer(db):
    return make_user(db, "buyer")


@pytest.fixture
def admin(db):
    return make_user(db, "admin", role=ROLE_ADMIN)
