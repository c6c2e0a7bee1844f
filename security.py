"""
Authentication helpers: password hashing, access tokens and the route guards.
"""
import logging
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import BCRYPT_ROUNDS, JWT_ALGORITHM, JWT_EXPIRE_DAYS, JWT_SECRET
from database import get_db
from utils import oid, utcnow

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Fields never sent back to clients
PRIVATE_USER_FIELDS = ("password_hash", "email_verification_token")


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str) -> str:
    now = utcnow()
    payload = {"id": user_id, "iat": now, "exp": now + timedelta(days=JWT_EXPIRE_DAYS)}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])


def public_user(user: dict) -> dict:
    data = {k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS}
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return data


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db=Depends(get_db),
) -> dict:
    """Resolve the bearer token to an active user document."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authorized, no token")

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")

    user = db["user"].find_one({"_id": oid(user_id)})
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")
    if not user.get("is_active", True):
        raise HTTPException(status_code=401, detail="Account is deactivated")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        logger.warning("User %s denied admin access", user["_id"])
        raise HTTPException(
            status_code=403,
            detail=f"User role {user.get('role')} is not authorized to access this route",
        )
    return user
