import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field

from database import create_document, get_db
from schemas import Address, User as UserSchema
from security import (
    create_access_token,
    get_current_user,
    hash_password,
    public_user,
    verify_password,
)
from utils import envelope, oid, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = None
    address: Optional[Address] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


def _auth_payload(user: dict) -> dict:
    return {"token": create_access_token(str(user["_id"])), "user": public_user(user)}


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db=Depends(get_db)):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")

    user = UserSchema(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
        email_verification_token=secrets.token_urlsafe(32),
    )
    user_id = create_document("user", user)
    logger.info("Registered user %s", user_id)

    saved = db["user"].find_one({"_id": oid(user_id)})
    return envelope(_auth_payload(saved), "User registered successfully")


@router.post("/login")
def login(payload: LoginRequest, db=Depends(get_db)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.get("is_active", True):
        raise HTTPException(status_code=401, detail="Account is deactivated")

    now = utcnow()
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_login": now}})
    user["last_login"] = now
    return envelope(_auth_payload(user), "Login successful")


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return envelope({"user": public_user(user)})


@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if data:
        data["updated_at"] = utcnow()
        db["user"].update_one({"_id": user["_id"]}, {"$set": data})
    saved = db["user"].find_one({"_id": user["_id"]})
    return envelope({"user": public_user(saved)}, "Profile updated successfully")


@router.put("/change-password")
def change_password(payload: ChangePasswordRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    if not verify_password(payload.current_password, user.get("password_hash")):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(payload.new_password), "updated_at": utcnow()}},
    )
    return envelope(message="Password changed successfully")


@router.get("/verify-email/{token}")
def verify_email(token: str, db=Depends(get_db)):
    res = db["user"].update_one(
        {"email_verification_token": token},
        {"$set": {"is_email_verified": True, "email_verification_token": None}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    return envelope(message="Email verified successfully")
