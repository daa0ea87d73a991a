from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user
from backend.app.core.security import create_access_token, hash_password, verify_password
from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import User

router = APIRouter(prefix="/auth")

logger = structlog.get_logger(__name__)


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=254)
    password: str = Field(min_length=1, max_length=128)


def user_public(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "role": u.role,
        "created_at": u.created_at,
        "updated_at": u.updated_at,
    }


def _auth_response(u: User) -> dict:
    token = create_access_token(user_id=u.id, role=u.role.value)
    return {"token": token, "user": user_public(u)}


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    if db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none():
        raise HTTPException(status_code=400, detail="A user with this email already exists")
    if db.execute(select(User).where(User.username == payload.username)).scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Username already exists")

    u = User(
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=Role.user,
    )
    db.add(u)
    db.commit()
    db.refresh(u)

    logger.info("auth.registered", user_id=u.id, role=u.role.value)
    return _auth_response(u)


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    u = db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none()
    if not u or not verify_password(payload.password, u.password_hash):
        logger.info("auth.login_failed", email=payload.email)
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return _auth_response(u)


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return user_public(user)
