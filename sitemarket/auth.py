# sitemarket/auth.py
"""Credential handling: bcrypt password hashes, JWT issuance and verification,
and the FastAPI dependencies that gate authenticated and admin routes.

A verified token becomes a `Claims` object that route handlers pass on to the
services, so authorization is decided from one place per request.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from dotenv import load_dotenv
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .db import get_db
from .errors import Expired, Forbidden, InvalidCredential, MissingCredential
from .models import User, ROLE_ADMIN
from .schemas import Claims
from .utils import logger

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
TOKEN_TTL_MINUTES = int(os.getenv("TOKEN_TTL_MINUTES", "60"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
# fixed list; never taken from the token header
ALGORITHMS = ["HS256"]

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        logger.warning("Unreadable password hash encountered")
        return False

def issue_credential(user: User, ttl: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "iat": now,
        "exp": now + (ttl if ttl is not None else timedelta(minutes=TOKEN_TTL_MINUTES)),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHMS[0])

def decode_credential(token: Optional[str]) -> Claims:
    if not token:
        raise MissingCredential()
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=ALGORITHMS, options={"require": ["exp", "sub"]})
    except jwt.ExpiredSignatureError:
        raise Expired()
    except jwt.InvalidTokenError:
        raise InvalidCredential()
    try:
        return Claims(
            user_id=int(payload["sub"]),
            username=payload.get("username", ""),
            email=payload.get("email", ""),
            role=payload.get("role", "user"),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError):
        raise InvalidCredential()

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None

def validate_credential(authorization: Optional[str]) -> bool:
    token = bearer_token(authorization)
    if token is None:
        return False
    try:
        decode_credential(token)
    except (MissingCredential, InvalidCredential, Expired):
        return False
    return True

def get_claims(authorization: Optional[str] = Header(None)) -> Claims:
    return decode_credential(bearer_token(authorization))

def require_admin(claims: Claims = Depends(get_claims), db: Session = Depends(get_db)) -> Claims:
    # the stored role wins over the one baked into the token
    user = db.get(User, claims.user_id)
    if not user or user.role != ROLE_ADMIN:
        raise Forbidden("Access denied. Administrators only.")
    return claims.model_copy(update={"role": user.role})
