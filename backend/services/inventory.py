from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Mapping

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import EnteredFood, FoodEntry, Stock

logger = structlog.get_logger(__name__)


def to_quantity(value) -> Decimal:
    """Décimal exact : un float passe par sa représentation texte (0.3 -> Decimal("0.3"))."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantities_by_food(items: Iterable[EnteredFood]) -> dict[int, Decimal]:
    """
    Map food_id -> quantité totale pour les lignes d'une entrée.
    Un même aliment présent sur plusieurs lignes est cumulé.
    """
    totals: dict[int, Decimal] = defaultdict(Decimal)
    for item in items:
        totals[int(item.food_id)] += to_quantity(item.quantity)
    return dict(totals)


def apply_delta(db: Session, medical_center_id: int, food_id: int, delta: Decimal | float) -> Stock:
    """
    Ajoute un delta signé au stock (centre, aliment).

    Règle métier :
        - ligne existante  -> quantity += delta
        - ligne absente    -> création avec quantity = delta

    Aucun plancher applicatif : la contrainte CHECK (quantity >= 0) rejette
    un solde négatif au flush, ce qui fait échouer toute la requête.
    """
    delta = to_quantity(delta)
    st = (
        db.execute(
            select(Stock)
            .where(Stock.medical_center_id == medical_center_id)
            .where(Stock.food_id == food_id)
            .with_for_update()
        )
        .scalar_one_or_none()
    )

    if st is None:
        st = Stock(medical_center_id=medical_center_id, food_id=food_id, quantity=delta)
        db.add(st)
    else:
        st.quantity = to_quantity(st.quantity) + delta

    db.flush()
    logger.info(
        "stock.delta_applied",
        medical_center_id=medical_center_id,
        food_id=food_id,
        delta=float(delta),
        quantity=float(st.quantity),
    )
    return st


def _apply_map(db: Session, medical_center_id: int, quantities: Mapping[int, Decimal], sign: int) -> None:
    for food_id in sorted(quantities):
        apply_delta(db, medical_center_id, food_id, sign * quantities[food_id])


def apply_entry_created(db: Session, entry: FoodEntry) -> None:
    _apply_map(db, entry.medical_center_id, quantities_by_food(entry.entered_foods), +1)


def apply_entry_updated(
    db: Session,
    *,
    old_medical_center_id: int,
    old_quantities: Mapping[int, Decimal],
    entry: FoodEntry,
) -> None:
    """
    Retire d'abord l'ancienne contribution, puis applique la nouvelle.
    Un aliment présent des deux côtés donne deux écritures (-ancien puis +nouveau),
    pas un delta net.
    """
    _apply_map(db, old_medical_center_id, old_quantities, -1)
    _apply_map(db, entry.medical_center_id, quantities_by_food(entry.entered_foods), +1)


def apply_entry_deleted(db: Session, entry: FoodEntry) -> None:
    _apply_map(db, entry.medical_center_id, quantities_by_food(entry.entered_foods), -1)
