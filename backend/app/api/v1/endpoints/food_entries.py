from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate
from backend.app.api.v1.endpoints.foods import food_ref
from backend.app.api.v1.endpoints.medical_centers import center_ref
from backend.app.api.v1.endpoints.providers import provider_ref
from backend.app.db.models.models_v1 import (
    EnteredFood,
    Food,
    FoodEntry,
    FoodPlan,
    MedicalCenter,
    Provider,
)
from backend.services.exports import ExportColumn, excel_response, word_response
from backend.services.inventory import (
    apply_entry_created,
    apply_entry_deleted,
    apply_entry_updated,
    quantities_by_food,
)

router = APIRouter(prefix="/food-entries")

logger = structlog.get_logger(__name__)


class EnteredFoodIn(BaseModel):
    food_id: int
    quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3)


class FoodEntryCreate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    medical_center_id: int
    provider_id: int
    food_plan_id: int | None = None
    entry_date: date
    entered_foods: list[EnteredFoodIn] = Field(min_length=1)


class FoodEntryUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    medical_center_id: int | None = None
    provider_id: int | None = None
    food_plan_id: int | None = None
    entry_date: date | None = None
    entered_foods: Annotated[list[EnteredFoodIn], Field(min_length=1)] | None = None


EXPORT_COLUMNS = [
    ExportColumn("Entry", "name", 25),
    ExportColumn("Entry date", "entry_date", 15),
    ExportColumn("Medical center", "medical_center", 30),
    ExportColumn("Provider", "provider", 30),
    ExportColumn("Food plan", "food_plan", 30),
    ExportColumn("Foods", "foods", 50),
    ExportColumn("Total quantity", "total_quantity", 18),
]


def entry_out(e: FoodEntry) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "entry_date": e.entry_date,
        "medical_center": center_ref(e.medical_center),
        "provider": provider_ref(e.provider),
        "food_plan": {"id": e.food_plan.id, "name": e.food_plan.name} if e.food_plan else None,
        "entered_foods": [{"food": food_ref(item.food), "quantity": item.quantity} for item in e.entered_foods],
        "created_at": e.created_at,
        "updated_at": e.updated_at,
    }


def _filtered(
    medical_center_id: int | None,
    provider_id: int | None,
    food_plan_id: int | None,
    food_id: int | None,
):
    stmt = select(FoodEntry).order_by(FoodEntry.entry_date.desc(), FoodEntry.id.desc())
    if medical_center_id is not None:
        stmt = stmt.where(FoodEntry.medical_center_id == medical_center_id)
    if provider_id is not None:
        stmt = stmt.where(FoodEntry.provider_id == provider_id)
    if food_plan_id is not None:
        stmt = stmt.where(FoodEntry.food_plan_id == food_plan_id)
    if food_id is not None:
        stmt = stmt.where(FoodEntry.entered_foods.any(EnteredFood.food_id == food_id))
    return stmt


def _item_label(item: EnteredFood) -> str:
    unit = item.food.unit_of_measurement
    if unit and unit.symbol:
        return f"{item.food.name} ({item.quantity} {unit.symbol})"
    return f"{item.food.name} ({item.quantity})"


def _export_rows(db: Session, *filters) -> list[dict]:
    entries = db.execute(_filtered(*filters)).scalars().all()
    rows = []
    for e in entries:
        rows.append(
            {
                "name": e.name,
                "entry_date": e.entry_date,
                "medical_center": e.medical_center.name,
                "provider": e.provider.name,
                "food_plan": e.food_plan.name if e.food_plan else None,
                "foods": ", ".join(_item_label(item) for item in e.entered_foods),
                "total_quantity": sum(item.quantity for item in e.entered_foods),
            }
        )
    return rows


def _check_refs(
    db: Session,
    medical_center_id: int | None,
    provider_id: int | None,
    food_plan_id: int | None,
    items: list[EnteredFoodIn] | None,
) -> None:
    if medical_center_id is not None and not db.get(MedicalCenter, medical_center_id):
        raise HTTPException(status_code=400, detail=f"Medical center with id {medical_center_id} not found")
    if provider_id is not None and not db.get(Provider, provider_id):
        raise HTTPException(status_code=400, detail=f"Provider with id {provider_id} not found")
    if food_plan_id is not None and not db.get(FoodPlan, food_plan_id):
        raise HTTPException(status_code=400, detail=f"Food plan with id {food_plan_id} not found")
    for item in items or []:
        if not db.get(Food, item.food_id):
            raise HTTPException(status_code=400, detail=f"Food with id {item.food_id} not found")


def _entered_rows(items: list[EnteredFoodIn]) -> list[EnteredFood]:
    return [EnteredFood(position=i, food_id=item.food_id, quantity=item.quantity) for i, item in enumerate(items)]


@router.get("/export/excel")
def export_entries_excel(
    medical_center_id: int | None = None,
    provider_id: int | None = None,
    food_plan_id: int | None = None,
    food_id: int | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = _export_rows(db, medical_center_id, provider_id, food_plan_id, food_id)
    return excel_response("food_entries", "Food entries", EXPORT_COLUMNS, rows)


@router.get("/export/word")
def export_entries_word(
    medical_center_id: int | None = None,
    provider_id: int | None = None,
    food_plan_id: int | None = None,
    food_id: int | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = _export_rows(db, medical_center_id, provider_id, food_plan_id, food_id)
    return word_response("food_entries", "Food entries report", EXPORT_COLUMNS, rows)


@router.get("")
def list_entries(
    medical_center_id: int | None = None,
    provider_id: int | None = None,
    food_plan_id: int | None = None,
    food_id: int | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows, total = paginate(db, _filtered(medical_center_id, provider_id, food_plan_id, food_id), page)
    return page.envelope([entry_out(e) for e in rows], total)


@router.get("/{entry_id}")
def get_entry(entry_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    e = db.get(FoodEntry, entry_id)
    if not e:
        raise HTTPException(status_code=404, detail="Food entry not found")
    return entry_out(e)


@router.post("", status_code=201)
def create_entry(payload: FoodEntryCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    _check_refs(db, payload.medical_center_id, payload.provider_id, payload.food_plan_id, payload.entered_foods)

    e = FoodEntry(
        name=payload.name,
        medical_center_id=payload.medical_center_id,
        provider_id=payload.provider_id,
        food_plan_id=payload.food_plan_id,
        entry_date=payload.entry_date,
        entered_foods=_entered_rows(payload.entered_foods),
    )
    db.add(e)
    db.flush()

    # entrée + stock dans la même transaction
    apply_entry_created(db, e)
    db.commit()
    db.refresh(e)

    logger.info("food_entry.created", entry_id=e.id, medical_center_id=e.medical_center_id)
    return entry_out(e)


@router.put("/{entry_id}")
def update_entry(entry_id: int, payload: FoodEntryUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    e = db.get(FoodEntry, entry_id)
    if not e:
        raise HTTPException(status_code=404, detail="Food entry not found")

    data = payload.model_dump(exclude_unset=True)
    _check_refs(
        db,
        data.get("medical_center_id"),
        data.get("provider_id"),
        data.get("food_plan_id"),
        payload.entered_foods,
    )

    # snapshot avant modification : sert à retirer l'ancienne contribution
    old_medical_center_id = e.medical_center_id
    old_quantities = quantities_by_food(e.entered_foods)

    for field in ("medical_center_id", "provider_id", "entry_date"):
        if data.get(field) is not None:
            setattr(e, field, data[field])
    if "name" in data:
        e.name = data["name"]
    if "food_plan_id" in data:
        e.food_plan_id = data["food_plan_id"]
    if payload.entered_foods is not None:
        e.entered_foods = _entered_rows(payload.entered_foods)
    db.flush()

    apply_entry_updated(db, old_medical_center_id=old_medical_center_id, old_quantities=old_quantities, entry=e)
    db.commit()
    db.refresh(e)

    logger.info("food_entry.updated", entry_id=e.id, medical_center_id=e.medical_center_id)
    return entry_out(e)


@router.delete("/{entry_id}")
def delete_entry(entry_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    e = db.get(FoodEntry, entry_id)
    if not e:
        raise HTTPException(status_code=404, detail="Food entry not found")

    apply_entry_deleted(db, e)
    db.delete(e)
    db.commit()

    logger.info("food_entry.deleted", entry_id=entry_id)
    return {"message": "Food entry deleted"}
