from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from barbershop.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Barber(Base):
    __tablename__ = "barbers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    schedules = relationship("BarberSchedule", back_populates="barber", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="barber", cascade="all, delete-orphan")


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_services_price"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_products_price"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("payment_method IN ('cash', 'transfer', 'qris')", name="ck_transactions_payment_method"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    barber_id: Mapped[str] = mapped_column(ForeignKey("barbers.id", ondelete="CASCADE"), nullable=False, index=True)
    cashier_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    service_id: Mapped[str | None] = mapped_column(ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    product_id: Mapped[str | None] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="cash")
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    barber = relationship("Barber", back_populates="transactions")
    service = relationship("Service")
    product = relationship("Product")


class BarberSchedule(Base):
    __tablename__ = "barber_schedules"
    __table_args__ = (
        UniqueConstraint("barber_id", "schedule_date", name="uq_barber_schedules_barber_date"),
        CheckConstraint("shift IN ('full', 'half', 'off')", name="ck_barber_schedules_shift"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    barber_id: Mapped[str] = mapped_column(ForeignKey("barbers.id", ondelete="CASCADE"), nullable=False, index=True)
    schedule_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    shift: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    barber = relationship("Barber", back_populates="schedules")
