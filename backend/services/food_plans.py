"""
Reporting des plans : prévu vs réel.

Le "réel" est recalculé à chaque lecture à partir des entrées liées au plan
(aucun état dérivé stocké).
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import FoodPlan, FoodEntry, EnteredFood


@dataclass(frozen=True)
class PlanCompletion:
    total_planned_quantity: float
    real_quantity: float
    percentage_completed: float


def completion_percentage(planned: float, real: float) -> float:
    if planned <= 0:
        return 0.0
    return round(real / planned * 100, 2)


def planned_total(plan: FoodPlan) -> float:
    return float(sum(item.quantity for item in plan.planned_foods))


def real_totals(db: Session, plan_ids: Iterable[int]) -> dict[int, float]:
    """SUM(quantités entrées) par plan, sur toutes les entrées liées."""
    plan_ids = sorted({int(pid) for pid in plan_ids if pid is not None})
    if not plan_ids:
        return {}

    rows = db.execute(
        select(
            FoodEntry.food_plan_id,
            func.coalesce(func.sum(EnteredFood.quantity), 0).label("real_qty"),
        )
        .join(EnteredFood, EnteredFood.food_entry_id == FoodEntry.id)
        .where(FoodEntry.food_plan_id.in_(plan_ids))
        .group_by(FoodEntry.food_plan_id)
    ).all()
    return {int(pid): float(qty) for pid, qty in rows}


def plan_completion(db: Session, plan: FoodPlan, real: float | None = None) -> PlanCompletion:
    if real is None:
        real = real_totals(db, [plan.id]).get(plan.id, 0.0)
    planned = planned_total(plan)
    return PlanCompletion(
        total_planned_quantity=planned,
        real_quantity=real,
        percentage_completed=completion_percentage(planned, real),
    )


def plans_completion(db: Session, plans: list[FoodPlan]) -> dict[int, PlanCompletion]:
    reals = real_totals(db, [p.id for p in plans])
    return {p.id: plan_completion(db, p, reals.get(p.id, 0.0)) for p in plans}


def per_food_breakdown(db: Session, plan: FoodPlan) -> list[dict]:
    """Détail prévu / réel par aliment (ordre = première apparition dans le plan)."""
    planned: dict[int, float] = {}
    for item in plan.planned_foods:
        planned[item.food_id] = planned.get(item.food_id, 0.0) + float(item.quantity)

    rows = db.execute(
        select(EnteredFood.food_id, func.coalesce(func.sum(EnteredFood.quantity), 0))
        .join(FoodEntry, FoodEntry.id == EnteredFood.food_entry_id)
        .where(FoodEntry.food_plan_id == plan.id)
        .group_by(EnteredFood.food_id)
    ).all()
    real = {int(fid): float(qty) for fid, qty in rows}

    food_ids = list(planned) + [fid for fid in sorted(real) if fid not in planned]
    return [
        {
            "food_id": fid,
            "planned_quantity": planned.get(fid, 0.0),
            "real_quantity": real.get(fid, 0.0),
            "percentage_completed": completion_percentage(planned.get(fid, 0.0), real.get(fid, 0.0)),
        }
        for fid in food_ids
    ]


# ---------- Filtre "période" ----------
PERIODS = ("lastWeek", "lastMonth", "lastYear")


def _minus_months(d: date, months: int) -> date:
    month_index = d.year * 12 + (d.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def period_window(period: str | None, today: date | None = None) -> tuple[date, date] | None:
    """
    Fenêtre [début, aujourd'hui] pour lastWeek / lastMonth / lastYear.
    None pour 'all', vide ou valeur inconnue (filtre ignoré).
    """
    today = today or date.today()
    if period == "lastWeek":
        return today - timedelta(weeks=1), today
    if period == "lastMonth":
        return _minus_months(today, 1), today
    if period == "lastYear":
        return _minus_months(today, 12), today
    return None
