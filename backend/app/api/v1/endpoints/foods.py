from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate, like
from backend.app.db.models.models_v1 import Food, UnitOfMeasurement
from backend.services.exports import ExportColumn, excel_response, word_response

router = APIRouter(prefix="/foods")


class FoodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    unit_of_measurement_id: int
    description: str | None = None

    class Config:
        str_strip_whitespace = True


class FoodUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    unit_of_measurement_id: int | None = None
    description: str | None = None

    class Config:
        str_strip_whitespace = True


EXPORT_COLUMNS = [
    ExportColumn("Name", "name", 30),
    ExportColumn("Unit of measurement", "unit", 22),
    ExportColumn("Description", "description", 40),
]


def unit_ref(u: UnitOfMeasurement | None) -> dict | None:
    if u is None:
        return None
    return {"id": u.id, "name": u.name, "symbol": u.symbol}


def food_out(f: Food) -> dict:
    return {
        "id": f.id,
        "name": f.name,
        "description": f.description,
        "unit_of_measurement": unit_ref(f.unit_of_measurement),
        "created_at": f.created_at,
        "updated_at": f.updated_at,
    }


def food_ref(f: Food | None) -> dict | None:
    if f is None:
        return None
    return {"id": f.id, "name": f.name, "unit_of_measurement": unit_ref(f.unit_of_measurement)}


def _filtered(search: str | None, unit_of_measurement_id: int | None):
    stmt = select(Food).order_by(Food.name)
    if search:
        stmt = stmt.where(or_(Food.name.ilike(like(search)), Food.description.ilike(like(search))))
    if unit_of_measurement_id is not None:
        stmt = stmt.where(Food.unit_of_measurement_id == unit_of_measurement_id)
    return stmt


def _export_rows(db: Session, search: str | None, unit_of_measurement_id: int | None) -> list[dict]:
    rows = db.execute(_filtered(search, unit_of_measurement_id)).scalars().all()
    return [
        {
            "name": f.name,
            "unit": f.unit_of_measurement.name if f.unit_of_measurement else None,
            "description": f.description,
        }
        for f in rows
    ]


def _check_unit(db: Session, unit_id: int) -> None:
    if not db.get(UnitOfMeasurement, unit_id):
        raise HTTPException(status_code=400, detail=f"Invalid unit_of_measurement_id {unit_id}")


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Food.id).where(Food.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Food.id != exclude_id)
    return db.execute(stmt).first() is not None


@router.get("/export/excel")
def export_foods_excel(
    search: str | None = None,
    unit_of_measurement_id: int | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = _export_rows(db, search, unit_of_measurement_id)
    return excel_response("foods", "Foods", EXPORT_COLUMNS, rows)


@router.get("/export/word")
def export_foods_word(
    search: str | None = None,
    unit_of_measurement_id: int | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = _export_rows(db, search, unit_of_measurement_id)
    return word_response("foods", "Foods report", EXPORT_COLUMNS, rows)


@router.get("")
def list_foods(
    search: str | None = None,
    unit_of_measurement_id: int | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows, total = paginate(db, _filtered(search, unit_of_measurement_id), page)
    return page.envelope([food_out(f) for f in rows], total)


@router.get("/{food_id}")
def get_food(food_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    f = db.get(Food, food_id)
    if not f:
        raise HTTPException(status_code=404, detail="Food not found")
    return food_out(f)


@router.post("", status_code=201)
def create_food(payload: FoodCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    _check_unit(db, payload.unit_of_measurement_id)
    if _name_taken(db, payload.name):
        raise HTTPException(status_code=400, detail="A food with this name already exists")

    f = Food(
        name=payload.name,
        unit_of_measurement_id=payload.unit_of_measurement_id,
        description=payload.description,
    )
    db.add(f)
    db.commit()
    db.refresh(f)
    return food_out(f)


@router.put("/{food_id}")
def update_food(food_id: int, payload: FoodUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    f = db.get(Food, food_id)
    if not f:
        raise HTTPException(status_code=404, detail="Food not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("unit_of_measurement_id") is not None:
        _check_unit(db, data["unit_of_measurement_id"])
    if data.get("name") and _name_taken(db, data["name"], exclude_id=food_id):
        raise HTTPException(status_code=400, detail="A food with this name already exists")

    for field, value in data.items():
        if value is None and field != "description":
            continue
        setattr(f, field, value)
    db.commit()
    db.refresh(f)
    return food_out(f)


@router.delete("/{food_id}")
def delete_food(food_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    f = db.get(Food, food_id)
    if not f:
        raise HTTPException(status_code=404, detail="Food not found")
    db.delete(f)
    db.commit()
    return {"message": "Food deleted"}
