from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate, like
from backend.app.api.v1.endpoints.stock import stock_query, stock_out
from backend.app.db.models.models_v1 import MedicalCenter
from backend.services.exports import ExportColumn, excel_response, word_response

router = APIRouter(prefix="/medical-centers")


class MedicalCenterCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=254)
    phone_number: str | None = Field(default=None, max_length=32)

    class Config:
        str_strip_whitespace = True


class MedicalCenterUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    address: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=254)
    phone_number: str | None = Field(default=None, max_length=32)

    class Config:
        str_strip_whitespace = True


EXPORT_COLUMNS = [
    ExportColumn("Name", "name", 30),
    ExportColumn("Address", "address", 40),
    ExportColumn("Email", "email", 30),
    ExportColumn("Phone", "phone_number", 20),
]


def center_out(mc: MedicalCenter) -> dict:
    return {
        "id": mc.id,
        "name": mc.name,
        "address": mc.address,
        "email": mc.email,
        "phone_number": mc.phone_number,
        "created_at": mc.created_at,
        "updated_at": mc.updated_at,
    }


def center_ref(mc: MedicalCenter | None) -> dict | None:
    if mc is None:
        return None
    return {"id": mc.id, "name": mc.name}


def _filtered(search: str | None):
    stmt = select(MedicalCenter).order_by(MedicalCenter.name)
    if search:
        term = like(search)
        stmt = stmt.where(
            or_(
                MedicalCenter.name.ilike(term),
                MedicalCenter.address.ilike(term),
                MedicalCenter.email.ilike(term),
                MedicalCenter.phone_number.ilike(term),
            )
        )
    return stmt


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(MedicalCenter.id).where(MedicalCenter.name == name)
    if exclude_id is not None:
        stmt = stmt.where(MedicalCenter.id != exclude_id)
    return db.execute(stmt).first() is not None


@router.get("/export/excel")
def export_centers_excel(search: str | None = None, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.execute(_filtered(search)).scalars().all()
    return excel_response("medical_centers", "Medical centers", EXPORT_COLUMNS, [center_out(mc) for mc in rows])


@router.get("/export/word")
def export_centers_word(search: str | None = None, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.execute(_filtered(search)).scalars().all()
    return word_response(
        "medical_centers", "Medical centers report", EXPORT_COLUMNS, [center_out(mc) for mc in rows]
    )


@router.get("")
def list_centers(
    search: str | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows, total = paginate(db, _filtered(search), page)
    return page.envelope([center_out(mc) for mc in rows], total)


@router.get("/{center_id}")
def get_center(center_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    mc = db.get(MedicalCenter, center_id)
    if not mc:
        raise HTTPException(status_code=404, detail="Medical center not found")
    return center_out(mc)


@router.get("/{center_id}/stock")
@router.get("/{center_id}/inventory")
def get_center_stock(center_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    """Stock (READ ONLY) d'un centre : une ligne par aliment déjà entré."""
    if not db.get(MedicalCenter, center_id):
        raise HTTPException(status_code=404, detail="Medical center not found")
    rows = db.execute(stock_query(medical_center_id=center_id)).scalars().all()
    return [stock_out(s) for s in rows]


@router.post("", status_code=201)
def create_center(payload: MedicalCenterCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    if not payload.email and not payload.phone_number:
        raise HTTPException(status_code=400, detail="Provide at least one contact method (email or phone number)")
    if _name_taken(db, payload.name):
        raise HTTPException(status_code=400, detail="A medical center with this name already exists")

    mc = MedicalCenter(
        name=payload.name,
        address=payload.address,
        email=payload.email,
        phone_number=payload.phone_number,
    )
    db.add(mc)
    db.commit()
    db.refresh(mc)
    return center_out(mc)


@router.put("/{center_id}")
def update_center(
    center_id: int,
    payload: MedicalCenterUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_admin),
):
    mc = db.get(MedicalCenter, center_id)
    if not mc:
        raise HTTPException(status_code=404, detail="Medical center not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") and _name_taken(db, data["name"], exclude_id=center_id):
        raise HTTPException(status_code=400, detail="A medical center with this name already exists")

    for field in ("name", "address"):
        if field in data and data[field] is None:
            del data[field]
    for field, value in data.items():
        setattr(mc, field, value)

    # le hook before_update refuse un centre sans aucun contact
    db.commit()
    db.refresh(mc)
    return center_out(mc)


@router.delete("/{center_id}")
def delete_center(center_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    mc = db.get(MedicalCenter, center_id)
    if not mc:
        raise HTTPException(status_code=404, detail="Medical center not found")
    db.delete(mc)
    db.commit()
    return {"message": "Medical center deleted"}
