from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate, like
from backend.app.db.models.models_v1 import Provider
from backend.services.exports import ExportColumn, excel_response, word_response

router = APIRouter(prefix="/providers")

SORTABLE = {
    "name": Provider.name,
    "created_at": Provider.created_at,
}


class ProviderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=50)
    phone_number: str | None = Field(default=None, max_length=8)
    address: str | None = Field(default=None, max_length=255)

    class Config:
        str_strip_whitespace = True


class ProviderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=50)
    phone_number: str | None = Field(default=None, max_length=8)
    address: str | None = Field(default=None, max_length=255)

    class Config:
        str_strip_whitespace = True


EXPORT_COLUMNS = [
    ExportColumn("Name", "name", 30),
    ExportColumn("Email", "email", 30),
    ExportColumn("Phone", "phone_number", 15),
    ExportColumn("Address", "address", 40),
]


def provider_out(p: Provider) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "email": p.email,
        "phone_number": p.phone_number,
        "address": p.address,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


def provider_ref(p: Provider | None) -> dict | None:
    if p is None:
        return None
    return {"id": p.id, "name": p.name}


def _filtered(search: str | None, sort: str, order: str):
    column = SORTABLE.get(sort, Provider.created_at)
    stmt = select(Provider).order_by(column.desc() if order == "desc" else column.asc())
    if search:
        term = like(search)
        stmt = stmt.where(
            or_(
                Provider.name.ilike(term),
                Provider.email.ilike(term),
                Provider.phone_number.ilike(term),
                Provider.address.ilike(term),
            )
        )
    return stmt


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Provider.id).where(Provider.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Provider.id != exclude_id)
    return db.execute(stmt).first() is not None


@router.get("/export/excel")
def export_providers_excel(
    search: str | None = None,
    sort: str = "created_at",
    order: str = "asc",
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = db.execute(_filtered(search, sort, order)).scalars().all()
    return excel_response("providers", "Providers", EXPORT_COLUMNS, [provider_out(p) for p in rows])


@router.get("/export/word")
def export_providers_word(
    search: str | None = None,
    sort: str = "created_at",
    order: str = "asc",
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = db.execute(_filtered(search, sort, order)).scalars().all()
    return word_response("providers", "Providers report", EXPORT_COLUMNS, [provider_out(p) for p in rows])


@router.get("")
def list_providers(
    search: str | None = None,
    sort: str = "created_at",
    order: str = "asc",
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows, total = paginate(db, _filtered(search, sort, order), page)
    return page.envelope([provider_out(p) for p in rows], total)


@router.get("/{provider_id}")
def get_provider(provider_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    p = db.get(Provider, provider_id)
    if not p:
        raise HTTPException(status_code=404, detail="Provider not found")
    return provider_out(p)


@router.post("", status_code=201)
def create_provider(payload: ProviderCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    if _name_taken(db, payload.name):
        raise HTTPException(status_code=400, detail="A provider with this name already exists")

    p = Provider(
        name=payload.name,
        email=payload.email,
        phone_number=payload.phone_number,
        address=payload.address,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return provider_out(p)


@router.put("/{provider_id}")
def update_provider(
    provider_id: int,
    payload: ProviderUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    p = db.get(Provider, provider_id)
    if not p:
        raise HTTPException(status_code=404, detail="Provider not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") and _name_taken(db, data["name"], exclude_id=provider_id):
        raise HTTPException(status_code=400, detail="A provider with this name already exists")
    if "name" in data and data["name"] is None:
        del data["name"]

    for field, value in data.items():
        setattr(p, field, value)
    db.commit()
    db.refresh(p)
    return provider_out(p)


@router.delete("/{provider_id}")
def delete_provider(provider_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    p = db.get(Provider, provider_id)
    if not p:
        raise HTTPException(status_code=404, detail="Provider not found")
    db.delete(p)
    db.commit()
    return {"message": "Provider deleted"}
