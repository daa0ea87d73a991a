from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, or_, func
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, require_admin
from backend.app.api.pagination import Page, get_page, paginate, like
from backend.app.api.v1.endpoints.auth import user_public
from backend.app.core.security import hash_password
from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import User
from backend.services.exports import ExportColumn, excel_response, word_response

# gestion des comptes : réservé aux admins, routeur entier
router = APIRouter(prefix="/users", dependencies=[Depends(require_admin)])

logger = structlog.get_logger(__name__)


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1, max_length=128)
    role: Role = Role.user


class UserUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=254)
    password: str | None = Field(default=None, min_length=1, max_length=128)
    role: Role | None = None


EXPORT_COLUMNS = [
    ExportColumn("Username", "username", 25),
    ExportColumn("Email", "email", 30),
    ExportColumn("Role", "role", 12),
    ExportColumn("Created", "created_at", 22),
]


def _filtered(search: str | None, role: Role | None):
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if search:
        term = like(search)
        stmt = stmt.where(or_(User.username.ilike(term), User.email.ilike(term)))
    if role is not None:
        stmt = stmt.where(User.role == role)
    return stmt


def _check_unique(db: Session, username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    if email:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if db.execute(stmt).first():
            raise HTTPException(status_code=400, detail="A user with this email already exists")
    if username:
        stmt = select(User.id).where(User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if db.execute(stmt).first():
            raise HTTPException(status_code=400, detail="Username already exists")


@router.get("/export/excel")
def export_users_excel(search: str | None = None, role: Role | None = None, db: Session = Depends(get_db)):
    rows = [user_public(u) for u in db.execute(_filtered(search, role)).scalars().all()]
    return excel_response("users", "Users", EXPORT_COLUMNS, rows)


@router.get("/export/word")
def export_users_word(search: str | None = None, role: Role | None = None, db: Session = Depends(get_db)):
    rows = [user_public(u) for u in db.execute(_filtered(search, role)).scalars().all()]
    return word_response("users", "Users report", EXPORT_COLUMNS, rows)


@router.get("/count")
def count_users(db: Session = Depends(get_db)):
    total = db.execute(select(func.count(User.id))).scalar_one()
    return {"count": int(total)}


@router.get("")
def list_users(
    search: str | None = None,
    role: Role | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
):
    rows, total = paginate(db, _filtered(search, role), page)
    return page.envelope([user_public(u) for u in rows], total)


@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return user_public(u)


@router.post("", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    _check_unique(db, payload.username, payload.email)

    u = User(
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    db.add(u)
    db.commit()
    db.refresh(u)

    logger.info("user.created", user_id=u.id, role=u.role.value)
    return user_public(u)


@router.put("/{user_id}")
def update_user(user_id: int, payload: UserUpdate, db: Session = Depends(get_db)):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")

    data = payload.model_dump(exclude_unset=True)
    _check_unique(db, data.get("username"), data.get("email"), exclude_id=user_id)

    password = data.pop("password", None)
    for field, value in data.items():
        if value is not None:
            setattr(u, field, value)
    if password:
        u.password_hash = hash_password(password)

    db.commit()
    db.refresh(u)
    return user_public(u)


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    db.delete(u)
    db.commit()

    logger.info("user.deleted", user_id=user_id)
    return {"message": "User deleted"}
