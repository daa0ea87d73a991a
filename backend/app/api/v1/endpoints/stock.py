from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.api.deps import get_db, get_current_user, require_admin
from backend.app.api.pagination import Page, get_page, paginate
from backend.app.db.models.models_v1 import Stock, MedicalCenter, Food
from backend.app.schemas.stock import StockRead
from backend.services.exports import ExportColumn, excel_response, word_response

router = APIRouter(prefix="/stock")

EXPORT_COLUMNS = [
    ExportColumn("Medical center", "medical_center", 30),
    ExportColumn("Food", "food", 30),
    ExportColumn("Quantity in stock", "quantity", 20),
    ExportColumn("Unit of measurement", "unit", 20),
    ExportColumn("Last update", "updated_at", 25),
]


def stock_query(medical_center_id: int | None = None, food_id: int | None = None):
    stmt = (
        select(Stock)
        .join(MedicalCenter, MedicalCenter.id == Stock.medical_center_id)
        .join(Food, Food.id == Stock.food_id)
        .order_by(MedicalCenter.name, Food.name)
    )

    if medical_center_id is not None:
        stmt = stmt.where(Stock.medical_center_id == medical_center_id)

    if food_id is not None:
        stmt = stmt.where(Stock.food_id == food_id)

    return stmt


def stock_out(s: Stock) -> dict:
    return StockRead.model_validate(s).model_dump()


def _export_rows(db: Session, medical_center_id: int | None, food_id: int | None) -> list[dict]:
    rows = db.execute(stock_query(medical_center_id, food_id)).scalars().all()
    return [
        {
            "medical_center": s.medical_center.name,
            "food": s.food.name,
            "quantity": s.quantity,
            "unit": s.food.unit_of_measurement.name if s.food.unit_of_measurement else None,
            "updated_at": s.updated_at,
        }
        for s in rows
    ]


@router.get("/export/excel")
def export_stock_excel(
    medical_center_id: int | None = None,
    food_id: int | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = _export_rows(db, medical_center_id, food_id)
    return excel_response("stock", "Stock", EXPORT_COLUMNS, rows)


@router.get("/export/word")
def export_stock_word(
    medical_center_id: int | None = None,
    food_id: int | None = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = _export_rows(db, medical_center_id, food_id)
    return word_response("stock", "Stock report", EXPORT_COLUMNS, rows)


@router.get("")
def get_stock(
    medical_center_id: int | None = None,
    food_id: int | None = None,
    page: Page = Depends(get_page),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """
    Stock (READ ONLY)
    - quantity est dérivée des entrées, jamais modifiable via l'API
    - exposition via schema Pydantic
    """
    rows, total = paginate(db, stock_query(medical_center_id, food_id), page)
    return page.envelope([stock_out(s) for s in rows], total)


@router.get("/{stock_id}", response_model=StockRead)
def get_stock_row(stock_id: int, db: Session = Depends(get_db), _=Depends(get_current_user)):
    s = db.get(Stock, stock_id)
    if not s:
        raise HTTPException(status_code=404, detail="Stock row not found")
    return s


@router.delete("/{stock_id}")
def delete_stock_row(stock_id: int, db: Session = Depends(get_db), _=Depends(require_admin)):
    # suppression manuelle uniquement : aucun lien avec l'inventaire physique
    s = db.get(Stock, stock_id)
    if not s:
        raise HTTPException(status_code=404, detail="Stock row not found")
    db.delete(s)
    db.commit()
    return {"message": "Stock row deleted"}
