from __future__ import annotations

from datetime import date
from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate, like
from backend.app.api.v1.endpoints.foods import food_ref
from backend.app.api.v1.endpoints.medical_centers import center_ref
from backend.app.api.v1.endpoints.providers import provider_ref
from backend.app.db.models.core_types import PlanType, PlanStatus, CHILD_PLAN_TYPE
from backend.app.db.models.models_v1 import (
    FoodPlan,
    PlannedFood,
    FoodEntry,
    Food,
    Provider,
    MedicalCenter,
)
from backend.services.exports import ExportColumn, excel_response, word_response
from backend.services.food_plans import (
    PlanCompletion,
    per_food_breakdown,
    period_window,
    plan_completion,
    plans_completion,
)
from backend.services.inventory import apply_entry_deleted

router = APIRouter(prefix="/food-plans")

logger = structlog.get_logger(__name__)


# ---------- Schemas ----------
class PlannedFoodIn(BaseModel):
    food_id: int
    provider_id: int
    quantity: Decimal = Field(ge=0, max_digits=12, decimal_places=3)


class FoodPlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    medical_center_id: int
    type: PlanType
    start_date: date
    end_date: date
    planned_foods: list[PlannedFoodIn]
    status: PlanStatus = PlanStatus.active
    weekly_plans: list[int] | None = None
    monthly_plans: list[int] | None = None

    class Config:
        str_strip_whitespace = True


class FoodPlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    medical_center_id: int | None = None
    type: PlanType | None = None
    start_date: date | None = None
    end_date: date | None = None
    planned_foods: list[PlannedFoodIn] | None = None
    status: PlanStatus | None = None
    weekly_plans: list[int] | None = None
    monthly_plans: list[int] | None = None

    class Config:
        str_strip_whitespace = True


EXPORT_COLUMNS = [
    ExportColumn("Plan name", "name", 30),
    ExportColumn("Medical center", "medical_center", 30),
    ExportColumn("Type", "type", 15),
    ExportColumn("Start date", "start_date", 15),
    ExportColumn("End date", "end_date", 15),
    ExportColumn("Total planned qty", "total_planned_quantity", 22),
    ExportColumn("Total real qty", "real_quantity", 20),
    ExportColumn("% completed", "percentage", 15),
    ExportColumn("Status", "status", 15),
]


# ---------- Helpers ----------
def plan_ref(p: FoodPlan) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "type": p.type,
        "start_date": p.start_date,
        "end_date": p.end_date,
    }


def plan_out(p: FoodPlan, completion: PlanCompletion) -> dict:
    children = [plan_ref(c) for c in p.child_plans]
    return {
        "id": p.id,
        "name": p.name,
        "medical_center": center_ref(p.medical_center),
        "type": p.type,
        "start_date": p.start_date,
        "end_date": p.end_date,
        "status": p.status,
        "planned_foods": [
            {
                "food": food_ref(item.food),
                "provider": provider_ref(item.provider),
                "quantity": item.quantity,
            }
            for item in p.planned_foods
        ],
        "weekly_plans": children if p.type == PlanType.monthly else [],
        "monthly_plans": children if p.type == PlanType.annual else [],
        "total_planned_quantity": completion.total_planned_quantity,
        "real_quantity": completion.real_quantity,
        "percentage_completed": completion.percentage_completed,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


def _filtered(
    search: str | None,
    medical_center_id: int | None,
    provider_id: int | None,
    food_id: int | None,
    type: PlanType | None,
    status: PlanStatus | None,
    period: str | None,
):
    stmt = select(FoodPlan).order_by(FoodPlan.start_date.desc(), FoodPlan.id.desc())
    if search:
        stmt = stmt.where(FoodPlan.name.ilike(like(search)))
    if medical_center_id is not None:
        stmt = stmt.where(FoodPlan.medical_center_id == medical_center_id)
    if type is not None:
        stmt = stmt.where(FoodPlan.type == type)
    if status is not None:
        stmt = stmt.where(FoodPlan.status == status)
    if provider_id is not None:
        stmt = stmt.where(FoodPlan.planned_foods.any(PlannedFood.provider_id == provider_id))
    if food_id is not None:
        stmt = stmt.where(FoodPlan.planned_foods.any(PlannedFood.food_id == food_id))

    # chevauchement avec la fenêtre [now - période, now]
    window = period_window(period)
    if window:
        start, end = window
        stmt = stmt.where(FoodPlan.start_date <= end).where(FoodPlan.end_date >= start)
    return stmt


def _check_planned_foods(db: Session, items: list[PlannedFoodIn]) -> None:
    for item in items:
        if not db.get(Food, item.food_id):
            raise HTTPException(status_code=400, detail=f"Food with id {item.food_id} not found")
        if not db.get(Provider, item.provider_id):
            raise HTTPException(status_code=400, detail=f"Provider with id {item.provider_id} not found")


def _load_children(db: Session, plan_type: PlanType, ids: list[int]) -> list[FoodPlan]:
    expected = CHILD_PLAN_TYPE[plan_type]
    children = []
    for plan_id in ids:
        child = db.get(FoodPlan, plan_id)
        if not child or child.type != expected:
            raise HTTPException(
                status_code=404,
                detail=f"{expected.value.capitalize()} plan with id {plan_id} not found or not of type {expected.value}",
            )
        children.append(child)
    return children


def _children_for(db: Session, plan_type: PlanType, weekly: list[int] | None, monthly: list[int] | None):
    """Sous-plans retenus selon le type ; None = ne pas toucher."""
    if plan_type == PlanType.monthly and weekly is not None:
        return _load_children(db, plan_type, weekly)
    if plan_type == PlanType.annual and monthly is not None:
        return _load_children(db, plan_type, monthly)
    return None


def _planned_rows(items: list[PlannedFoodIn]) -> list[PlannedFood]:
    return [
        PlannedFood(position=i, food_id=item.food_id, provider_id=item.provider_id, quantity=item.quantity)
        for i, item in enumerate(items)
    ]


def _export_rows(db: Session, plans: list[FoodPlan]) -> list[dict]:
    completions = plans_completion(db, plans)
    rows = []
    for p in plans:
        c = completions[p.id]
        rows.append(
            {
                "name": p.name,
                "medical_center": p.medical_center.name if p.medical_center else None,
                "type": p.type,
                "start_date": p.start_date,
                "end_date": p.end_date,
                "total_planned_quantity": c.total_planned_quantity,
                "real_quantity": c.real_quantity,
                "percentage": f"{c.percentage_completed}%",
                "status": p.status,
            }
        )
    return rows


# ---------- Endpoints ----------
@router.get("/export/excel")
def export_plans_excel(
    search: str | None = None,
    medical_center_id: int | None = None,
    provider_id: int | None = None,
    food_id: int | None = None,
    type: PlanType | None = None,
    status: PlanStatus | None = None,
    period: str | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    stmt = _filtered(search, medical_center_id, provider_id, food_id, type, status, period)
    plans = list(db.execute(stmt).scalars().all())
    return excel_response("food_plans", "Food plans", EXPORT_COLUMNS, _export_rows(db, plans))


@router.get("/export/word")
def export_plans_word(
    search: str | None = None,
    medical_center_id: int | None = None,
    provider_id: int | None = None,
    food_id: int | None = None,
    type: PlanType | None = None,
    status: PlanStatus | None = None,
    period: str | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    stmt = _filtered(search, medical_center_id, provider_id, food_id, type, status, period)
    plans = list(db.execute(stmt).scalars().all())
    return word_response("food_plans", "Food plans report", EXPORT_COLUMNS, _export_rows(db, plans))


@router.get("")
def list_plans(
    search: str | None = None,
    medical_center_id: int | None = None,
    provider_id: int | None = None,
    food_id: int | None = None,
    type: PlanType | None = None,
    status: PlanStatus | None = None,
    period: str | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    stmt = _filtered(search, medical_center_id, provider_id, food_id, type, status, period)
    plans, total = paginate(db, stmt, page)
    completions = plans_completion(db, plans)
    return page.envelope([plan_out(p, completions[p.id]) for p in plans], total)


@router.get("/{plan_id}")
def get_plan(plan_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    p = db.get(FoodPlan, plan_id)
    if not p:
        raise HTTPException(status_code=404, detail="Food plan not found")
    return plan_out(p, plan_completion(db, p))


@router.get("/{plan_id}/real-vs-planned")
def get_real_vs_planned(plan_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    p = db.get(FoodPlan, plan_id)
    if not p:
        raise HTTPException(status_code=404, detail="Food plan not found")

    c = plan_completion(db, p)
    return {
        "plan_id": p.id,
        "total_planned_quantity": c.total_planned_quantity,
        "total_real_quantity": c.real_quantity,
        "percentage_completed": c.percentage_completed,
        "foods": per_food_breakdown(db, p),
    }


@router.post("", status_code=201)
def create_plan(payload: FoodPlanCreate, db: Session = Depends(get_db), _=Depends(require_admin)):
    # FK checks (fail fast, message clair)
    if not db.get(MedicalCenter, payload.medical_center_id):
        raise HTTPException(status_code=404, detail="The specified medical center does not exist")
    _check_planned_foods(db, payload.planned_foods)

    if payload.type == PlanType.monthly and payload.weekly_plans is None:
        raise HTTPException(status_code=400, detail="A monthly plan requires 'weekly_plans' (list of plan ids)")
    if payload.type == PlanType.annual and payload.monthly_plans is None:
        raise HTTPException(status_code=400, detail="An annual plan requires 'monthly_plans' (list of plan ids)")
    children = _children_for(db, payload.type, payload.weekly_plans, payload.monthly_plans)

    p = FoodPlan(
        name=payload.name,
        medical_center_id=payload.medical_center_id,
        type=payload.type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=payload.status,
        planned_foods=_planned_rows(payload.planned_foods),
        child_plans=children or [],
    )
    db.add(p)
    db.commit()
    db.refresh(p)

    logger.info("food_plan.created", plan_id=p.id, type=p.type.value)
    return plan_out(p, plan_completion(db, p))


@router.put("/{plan_id}")
def update_plan(plan_id: int, payload: FoodPlanUpdate, db: Session = Depends(get_db), _=Depends(require_admin)):
    p = db.get(FoodPlan, plan_id)
    if not p:
        raise HTTPException(status_code=404, detail="Food plan not found")

    data = payload.model_dump(exclude_unset=True)
    if data.get("medical_center_id") is not None and not db.get(MedicalCenter, data["medical_center_id"]):
        raise HTTPException(status_code=404, detail="The specified medical center does not exist")
    if payload.planned_foods is not None:
        _check_planned_foods(db, payload.planned_foods)

    plan_type = payload.type or p.type
    children = _children_for(db, plan_type, payload.weekly_plans, payload.monthly_plans)

    for field in ("name", "medical_center_id", "type", "start_date", "end_date", "status"):
        if data.get(field) is not None:
            setattr(p, field, data[field])
    if payload.planned_foods is not None:
        p.planned_foods = _planned_rows(payload.planned_foods)
    if children is not None:
        p.child_plans = children
    elif plan_type == PlanType.weekly:
        p.child_plans = []
    else:
        # changement de type sans nouvelle liste : seuls les sous-plans du bon type restent
        expected = CHILD_PLAN_TYPE[plan_type]
        p.child_plans = [c for c in p.child_plans if c.type == expected]

    db.commit()
    db.refresh(p)
    return plan_out(p, plan_completion(db, p))


@router.delete("/{plan_id}")
def delete_plan(plan_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    p = db.get(FoodPlan, plan_id)
    if not p:
        raise HTTPException(status_code=404, detail="Food plan not found")

    # Les entrées liées partent avec le plan ; on retire d'abord leur contribution au stock
    entries = db.execute(select(FoodEntry).where(FoodEntry.food_plan_id == plan_id)).scalars().all()
    for entry in entries:
        apply_entry_deleted(db, entry)
        db.delete(entry)
    db.flush()

    name = p.name
    db.delete(p)
    db.commit()

    logger.info("food_plan.deleted", plan_id=plan_id, entries_deleted=len(entries))
    return {
        "message": f"Food plan '{name}' and its {len(entries)} linked entries deleted",
        "entries_deleted": len(entries),
    }
