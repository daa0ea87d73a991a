from __future__ import annotations

import math
from dataclasses import dataclass

from fastapi import Query
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from backend.app.core.config import settings


@dataclass
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def envelope(self, data: list, total_items: int) -> dict:
        return {
            "data": data,
            "total_items": total_items,
            "total_pages": math.ceil(total_items / self.limit),
            "current_page": self.page,
            "items_per_page": self.limit,
        }


def get_page(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=500),
) -> Page:
    return Page(page=page, limit=limit)


def paginate(db: Session, stmt: Select, page: Page) -> tuple[list, int]:
    """Retourne (lignes de la page, total) pour un select d'entités."""
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = db.execute(stmt.offset(page.offset).limit(page.limit)).scalars().unique().all()
    return list(rows), int(total)


def like(term: str) -> str:
    return f"%{term.strip()}%"
