from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate, like
from backend.app.db.models.models_v1 import UnitOfMeasurement
from backend.services.exports import ExportColumn, excel_response, word_response

router = APIRouter(prefix="/units")


class UnitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    symbol: str | None = Field(default=None, max_length=20)

    class Config:
        str_strip_whitespace = True


class UnitUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    symbol: str | None = Field(default=None, max_length=20)

    class Config:
        str_strip_whitespace = True


EXPORT_COLUMNS = [
    ExportColumn("Name", "name", 30),
    ExportColumn("Symbol", "symbol", 15),
    ExportColumn("Created", "created_at", 22),
]


def unit_out(u: UnitOfMeasurement) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "symbol": u.symbol,
        "created_at": u.created_at,
        "updated_at": u.updated_at,
    }


def _filtered(search: str | None):
    stmt = select(UnitOfMeasurement).order_by(UnitOfMeasurement.name)
    if search:
        stmt = stmt.where(
            or_(
                UnitOfMeasurement.name.ilike(like(search)),
                UnitOfMeasurement.symbol.ilike(like(search)),
            )
        )
    return stmt


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(UnitOfMeasurement.id).where(UnitOfMeasurement.name == name)
    if exclude_id is not None:
        stmt = stmt.where(UnitOfMeasurement.id != exclude_id)
    return db.execute(stmt).first() is not None


@router.get("/export/excel")
def export_units_excel(search: str | None = None, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.execute(_filtered(search)).scalars().all()
    return excel_response("units", "Units of measurement", EXPORT_COLUMNS, [unit_out(u) for u in rows])


@router.get("/export/word")
def export_units_word(search: str | None = None, db: Session = Depends(get_db), _=Depends(get_current_user)):
    rows = db.execute(_filtered(search)).scalars().all()
    return word_response("units", "Units of measurement report", EXPORT_COLUMNS, [unit_out(u) for u in rows])


@router.get("")
def list_units(
    search: str | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows, total = paginate(db, _filtered(search), page)
    return page.envelope([unit_out(u) for u in rows], total)


@router.get("/{unit_id}")
def get_unit(unit_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    u = db.get(UnitOfMeasurement, unit_id)
    if not u:
        raise HTTPException(status_code=404, detail="Unit of measurement not found")
    return unit_out(u)


@router.post("", status_code=201)
def create_unit(payload: UnitCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    if _name_taken(db, payload.name):
        raise HTTPException(status_code=400, detail="A unit of measurement with this name already exists")

    u = UnitOfMeasurement(name=payload.name, symbol=payload.symbol)
    db.add(u)
    db.commit()
    db.refresh(u)
    return unit_out(u)


@router.put("/{unit_id}")
def update_unit(unit_id: int, payload: UnitUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    u = db.get(UnitOfMeasurement, unit_id)
    if not u:
        raise HTTPException(status_code=404, detail="Unit of measurement not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("name") and _name_taken(db, data["name"], exclude_id=unit_id):
        raise HTTPException(status_code=400, detail="A unit of measurement with this name already exists")
    if "name" in data and data["name"] is None:
        del data["name"]

    for field, value in data.items():
        setattr(u, field, value)
    db.commit()
    db.refresh(u)
    return unit_out(u)


@router.delete("/{unit_id}")
def delete_unit(unit_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    u = db.get(UnitOfMeasurement, unit_id)
    if not u:
        raise HTTPException(status_code=404, detail="Unit of measurement not found")
    db.delete(u)
    db.commit()
    return {"message": "Unit of measurement deleted"}
