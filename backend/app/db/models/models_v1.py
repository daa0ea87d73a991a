from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    Numeric,
    ForeignKey,
    Text,
    Enum,
    Table,
    Column,
    UniqueConstraint,
    Index,
    CheckConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.errors import ModelValidationError
from backend.app.db.base import Base
from backend.app.db.models.core_types import Role, PlanType, PlanStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- MASTER DATA ----------
class UnitOfMeasurement(Base):
    __tablename__ = "units_of_measurement"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    symbol: Mapped[str | None] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class Food(Base):
    __tablename__ = "foods"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    unit_of_measurement_id: Mapped[int] = mapped_column(
        ForeignKey("units_of_measurement.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    unit_of_measurement: Mapped[UnitOfMeasurement] = relationship()


class Provider(Base):
    __tablename__ = "providers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(50))
    phone_number: Mapped[str | None] = mapped_column(String(8))
    address: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class MedicalCenter(Base):
    __tablename__ = "medical_centers"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254))
    phone_number: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


@event.listens_for(MedicalCenter, "before_insert")
@event.listens_for(MedicalCenter, "before_update")
def _check_medical_center_contact(mapper, connection, target: MedicalCenter) -> None:
    if not (target.email or target.phone_number):
        raise ModelValidationError("At least one contact method (email or phone number) is required")


# ---------- AUTH ----------
class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.user, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


# ---------- PLANNING ----------
food_plan_children = Table(
    "food_plan_children",
    Base.metadata,
    Column("parent_id", ForeignKey("food_plans.id", ondelete="CASCADE"), primary_key=True),
    Column("child_id", ForeignKey("food_plans.id", ondelete="CASCADE"), primary_key=True),
)


class FoodPlan(Base):
    __tablename__ = "food_plans"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    medical_center_id: Mapped[int] = mapped_column(
        ForeignKey("medical_centers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    type: Mapped[PlanType] = mapped_column(Enum(PlanType, name="plan_type"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[PlanStatus] = mapped_column(
        Enum(PlanStatus, name="plan_status"),
        default=PlanStatus.active,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    medical_center: Mapped[MedicalCenter] = relationship()
    planned_foods: Mapped[list["PlannedFood"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlannedFood.position",
    )
    # Sous-plans : hebdomadaires pour un plan mensuel, mensuels pour un plan annuel
    child_plans: Mapped[list["FoodPlan"]] = relationship(
        secondary=food_plan_children,
        primaryjoin=lambda: FoodPlan.id == food_plan_children.c.parent_id,
        secondaryjoin=lambda: FoodPlan.id == food_plan_children.c.child_id,
        order_by=lambda: FoodPlan.start_date,
    )


@event.listens_for(FoodPlan, "before_insert")
@event.listens_for(FoodPlan, "before_update")
def _check_food_plan_dates(mapper, connection, target: FoodPlan) -> None:
    if target.start_date and target.end_date and target.start_date >= target.end_date:
        raise ModelValidationError("End date must be after start date")


class PlannedFood(Base):
    __tablename__ = "planned_foods"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    food_plan_id: Mapped[int] = mapped_column(
        ForeignKey("food_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    food_id: Mapped[int] = mapped_column(ForeignKey("foods.id", ondelete="RESTRICT"), nullable=False)
    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    plan: Mapped[FoodPlan] = relationship(back_populates="planned_foods")
    food: Mapped[Food] = relationship()
    provider: Mapped[Provider] = relationship()

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_planned_food_qty_nonneg"),)


# ---------- INBOUND ----------
class FoodEntry(Base):
    __tablename__ = "food_entries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    medical_center_id: Mapped[int] = mapped_column(
        ForeignKey("medical_centers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[int] = mapped_column(ForeignKey("providers.id", ondelete="RESTRICT"), nullable=False)
    food_plan_id: Mapped[int | None] = mapped_column(
        ForeignKey("food_plans.id", ondelete="RESTRICT"),
        index=True,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    medical_center: Mapped[MedicalCenter] = relationship()
    provider: Mapped[Provider] = relationship()
    food_plan: Mapped[FoodPlan | None] = relationship()
    entered_foods: Mapped[list["EnteredFood"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EnteredFood.position",
    )


class EnteredFood(Base):
    __tablename__ = "entered_foods"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    food_entry_id: Mapped[int] = mapped_column(
        ForeignKey("food_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    food_id: Mapped[int] = mapped_column(ForeignKey("foods.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)

    entry: Mapped[FoodEntry] = relationship(back_populates="entered_foods")
    food: Mapped[Food] = relationship()

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_entered_food_qty_nonneg"),)


# ---------- INVENTORY ----------
class Stock(Base):
    __tablename__ = "stock"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    medical_center_id: Mapped[int] = mapped_column(
        ForeignKey("medical_centers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    food_id: Mapped[int] = mapped_column(ForeignKey("foods.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    medical_center: Mapped[MedicalCenter] = relationship()
    food: Mapped[Food] = relationship()

    __table_args__ = (
        UniqueConstraint("medical_center_id", "food_id", name="uq_stock_center_food"),
        CheckConstraint("quantity >= 0", name="ck_stock_quantity_nonneg"),
        Index("ix_stock_food", "food_id"),
    )
