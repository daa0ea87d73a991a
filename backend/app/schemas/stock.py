from datetime import datetime

from pydantic import BaseModel


class UnitRef(BaseModel):
    id: int
    name: str
    symbol: str | None = None

    class Config:
        from_attributes = True


class FoodRef(BaseModel):
    id: int
    name: str
    unit_of_measurement: UnitRef | None = None

    class Config:
        from_attributes = True


class MedicalCenterRef(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class StockRead(BaseModel):
    id: int
    medical_center_id: int
    food_id: int

    quantity: float  # READ ONLY : dérivé des entrées, jamais écrit par l'API
    updated_at: datetime

    medical_center: MedicalCenterRef
    food: FoodRef

    class Config:
        from_attributes = True
