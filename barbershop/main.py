from __future__ import annotations

import csv
import io
import logging
import os
from dataclasses import asdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import Response
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from barbershop.db import get_db
from barbershop.models import Barber, BarberSchedule, Product, Service, Transaction
from barbershop.scheduler import (
    ConstraintError,
    ScheduleEntry,
    ShiftTier,
    Staff,
    generate_weekly_schedule,
    schedule_statistics,
    validate_entries,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Barbershop Scheduler")

PaymentMethod = Literal["cash", "transfer", "qris"]
SalaryPeriod = Literal["today", "week", "month", "year", "custom"]


@app.middleware("http")
async def disable_cache_for_api(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api/"):
        response.headers["Cache-Control"] = "no-store, no-cache, max-age=0, must-revalidate"
        response.headers["Pragma"] = "no-cache"
    return response


class BarberCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class BarberPatchPayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    is_active: bool | None = None


class BarberOut(BaseModel):
    id: str
    name: str
    is_active: bool
    created_at: datetime


class ServicePayload(BaseModel):
    service_name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)


class ServicePatchPayload(BaseModel):
    service_name: str | None = Field(default=None, min_length=1, max_length=255)
    price: int | None = Field(default=None, ge=0)


class ServiceOut(BaseModel):
    id: str
    service_name: str
    price: int


class ProductPayload(BaseModel):
    product_name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)


class ProductPatchPayload(BaseModel):
    product_name: str | None = Field(default=None, min_length=1, max_length=255)
    price: int | None = Field(default=None, ge=0)


class ProductOut(BaseModel):
    id: str
    product_name: str
    price: int


class TransactionPayload(BaseModel):
    barber_id: str
    service_id: str | None = None
    product_id: str | None = None
    cashier_id: str | None = None
    payment_method: PaymentMethod = "cash"
    transaction_date: datetime | None = None

    @model_validator(mode="after")
    def require_service_or_product(self) -> TransactionPayload:
        if not self.service_id and not self.product_id:
            raise ValueError("A transaction needs a service, a product, or both")
        return self


class TransactionOut(BaseModel):
    id: str
    barber_id: str
    barber_name: str | None = None
    cashier_id: str | None = None
    service_id: str | None = None
    service_name: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    payment_method: PaymentMethod
    total_price: int
    transaction_date: datetime


class BarberEarningsOut(BaseModel):
    barber_id: str
    barber_name: str
    total_earnings: int
    transaction_count: int


class SalaryReportOut(BaseModel):
    period: SalaryPeriod
    period_start: date
    period_end: date
    barbers: list[BarberEarningsOut]
    grand_total: int


class DashboardOut(BaseModel):
    barbers: int
    services: int
    products: int
    transactions: int
    today_earnings: int


class ScheduleEntryModel(BaseModel):
    staff_id: str
    staff_name: str
    schedule_date: date
    shift: ShiftTier
    day_of_week: int = Field(ge=0, le=6)
    date_display: str


class ShiftStatisticsOut(BaseModel):
    staff_id: str
    staff_name: str
    full_shifts: int
    half_shifts: int
    days_off: int
    total_work_days: int


class ValidationOut(BaseModel):
    valid: bool
    errors: list[str]


class GenerateSchedulePayload(BaseModel):
    start_date: date


class GenerateScheduleOut(BaseModel):
    entries: list[ScheduleEntryModel]
    statistics: list[ShiftStatisticsOut]
    validation: ValidationOut


class ApplySchedulePayload(BaseModel):
    entries: list[ScheduleEntryModel] = Field(min_length=1)


class ScheduleUpsertPayload(BaseModel):
    barber_id: str
    schedule_date: date
    shift: ShiftTier


class ScheduleOut(BaseModel):
    id: str
    barber_id: str
    barber_name: str
    schedule_date: date
    shift: ShiftTier


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def salary_period_range(
    period: SalaryPeriod,
    reference: date,
    year: int | None = None,
    month: int | None = None,
) -> tuple[date, date]:
    """Return the half-open ``[start, end)`` date range covered by a salary period."""
    if period == "today":
        return reference, reference + timedelta(days=1)
    if period == "week":
        start = reference - timedelta(days=reference.weekday())
        return start, start + timedelta(days=7)
    if period == "month":
        start = reference.replace(day=1)
        return start, _next_month(start)
    if period == "year":
        return date(reference.year, 1, 1), date(reference.year + 1, 1, 1)
    if year is None or month is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Custom period requires year and month")
    start = date(year, month, 1)
    return start, _next_month(start)


def get_barber_or_404(db: Session, barber_id: str) -> Barber:
    barber = db.get(Barber, barber_id)
    if barber is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Barber not found")
    return barber


def ensure_unique_barber_name(db: Session, name: str, exclude_id: str | None = None) -> None:
    query = select(Barber.id).where(func.lower(Barber.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Barber.id != exclude_id)
    if db.scalar(query) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A barber with this name already exists")


def load_staff(db: Session) -> list[Staff]:
    barbers = db.scalars(select(Barber).where(Barber.is_active.is_(True)).order_by(Barber.name, Barber.id)).all()
    return [Staff(id=barber.id, name=barber.name) for barber in barbers]


def serialize_barber(barber: Barber) -> BarberOut:
    return BarberOut(id=barber.id, name=barber.name, is_active=barber.is_active, created_at=barber.created_at)


def serialize_transaction(record: Transaction) -> TransactionOut:
    return TransactionOut(
        id=record.id,
        barber_id=record.barber_id,
        barber_name=record.barber.name if record.barber else None,
        cashier_id=record.cashier_id,
        service_id=record.service_id,
        service_name=record.service.service_name if record.service else None,
        product_id=record.product_id,
        product_name=record.product.product_name if record.product else None,
        payment_method=record.payment_method,
        total_price=record.total_price,
        transaction_date=record.transaction_date,
    )


def serialize_schedule(record: BarberSchedule, barber_name: str) -> ScheduleOut:
    return ScheduleOut(
        id=record.id,
        barber_id=record.barber_id,
        barber_name=barber_name,
        schedule_date=record.schedule_date,
        shift=record.shift,
    )


def upsert_schedule(db: Session, barber_id: str, schedule_date: date, shift: ShiftTier) -> BarberSchedule:
    record = db.scalar(
        select(BarberSchedule).where(BarberSchedule.barber_id == barber_id, BarberSchedule.schedule_date == schedule_date)
    )
    if record is None:
        record = BarberSchedule(barber_id=barber_id, schedule_date=schedule_date, shift=shift.value)
        db.add(record)
    else:
        record.shift = shift.value
    return record


def to_schedule_entry(entry: ScheduleEntryModel) -> ScheduleEntry:
    return ScheduleEntry(
        staff_id=entry.staff_id,
        staff_name=entry.staff_name,
        schedule_date=entry.schedule_date.isoformat(),
        shift=entry.shift,
        day_of_week=entry.day_of_week,
        date_display=entry.date_display,
    )


@app.get("/api/barbers", response_model=list[BarberOut])
def list_barbers(active_only: bool = False, db: Session = Depends(get_db)) -> list[BarberOut]:
    query = select(Barber).order_by(Barber.name, Barber.id)
    if active_only:
        query = query.where(Barber.is_active.is_(True))
    return [serialize_barber(barber) for barber in db.scalars(query).all()]


@app.post("/api/barbers", response_model=BarberOut, status_code=status.HTTP_201_CREATED)
def create_barber(payload: BarberCreatePayload, db: Session = Depends(get_db)) -> BarberOut:
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Barber name is required")
    ensure_unique_barber_name(db, name)
    barber = Barber(name=name, is_active=True)
    db.add(barber)
    db.commit()
    db.refresh(barber)
    return serialize_barber(barber)


@app.patch("/api/barbers/{barber_id}", response_model=BarberOut)
def patch_barber(barber_id: str, payload: BarberPatchPayload, db: Session = Depends(get_db)) -> BarberOut:
    barber = get_barber_or_404(db, barber_id)
    if payload.name is None and payload.is_active is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates were provided")
    if payload.name is not None:
        name = payload.name.strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Barber name is required")
        ensure_unique_barber_name(db, name, exclude_id=barber.id)
        barber.name = name
    if payload.is_active is not None:
        barber.is_active = payload.is_active
    db.commit()
    db.refresh(barber)
    return serialize_barber(barber)


@app.delete("/api/barbers/{barber_id}")
def delete_barber(barber_id: str, db: Session = Depends(get_db)) -> dict[str, bool]:
    barber = get_barber_or_404(db, barber_id)
    db.delete(barber)
    db.commit()
    return {"ok": True}


@app.get("/api/services", response_model=list[ServiceOut])
def list_services(db: Session = Depends(get_db)) -> list[ServiceOut]:
    services = db.scalars(select(Service).order_by(Service.service_name, Service.id)).all()
    return [ServiceOut(id=s.id, service_name=s.service_name, price=s.price) for s in services]


@app.post("/api/services", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
def create_service(payload: ServicePayload, db: Session = Depends(get_db)) -> ServiceOut:
    service = Service(service_name=payload.service_name.strip(), price=payload.price)
    db.add(service)
    db.commit()
    db.refresh(service)
    return ServiceOut(id=service.id, service_name=service.service_name, price=service.price)


@app.patch("/api/services/{service_id}", response_model=ServiceOut)
def patch_service(service_id: str, payload: ServicePatchPayload, db: Session = Depends(get_db)) -> ServiceOut:
    service = db.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    if payload.service_name is not None:
        service.service_name = payload.service_name.strip()
    if payload.price is not None:
        service.price = payload.price
    db.commit()
    db.refresh(service)
    return ServiceOut(id=service.id, service_name=service.service_name, price=service.price)


@app.delete("/api/services/{service_id}")
def delete_service(service_id: str, db: Session = Depends(get_db)) -> dict[str, bool]:
    service = db.get(Service, service_id)
    if service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    db.execute(update(Transaction).where(Transaction.service_id == service_id).values(service_id=None))
    db.delete(service)
    db.commit()
    return {"ok": True}


@app.get("/api/products", response_model=list[ProductOut])
def list_products(db: Session = Depends(get_db)) -> list[ProductOut]:
    products = db.scalars(select(Product).order_by(Product.product_name, Product.id)).all()
    return [ProductOut(id=p.id, product_name=p.product_name, price=p.price) for p in products]


@app.post("/api/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductPayload, db: Session = Depends(get_db)) -> ProductOut:
    product = Product(product_name=payload.product_name.strip(), price=payload.price)
    db.add(product)
    db.commit()
    db.refresh(product)
    return ProductOut(id=product.id, product_name=product.product_name, price=product.price)


@app.patch("/api/products/{product_id}", response_model=ProductOut)
def patch_product(product_id: str, payload: ProductPatchPayload, db: Session = Depends(get_db)) -> ProductOut:
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    if payload.product_name is not None:
        product.product_name = payload.product_name.strip()
    if payload.price is not None:
        product.price = payload.price
    db.commit()
    db.refresh(product)
    return ProductOut(id=product.id, product_name=product.product_name, price=product.price)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db)) -> dict[str, bool]:
    product = db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    db.execute(update(Transaction).where(Transaction.product_id == product_id).values(product_id=None))
    db.delete(product)
    db.commit()
    return {"ok": True}


@app.post("/api/transactions", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(payload: TransactionPayload, db: Session = Depends(get_db)) -> TransactionOut:
    get_barber_or_404(db, payload.barber_id)
    total_price = 0
    if payload.service_id:
        service = db.get(Service, payload.service_id)
        if service is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
        total_price += service.price
    if payload.product_id:
        product = db.get(Product, payload.product_id)
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        total_price += product.price
    record = Transaction(
        barber_id=payload.barber_id,
        cashier_id=payload.cashier_id,
        service_id=payload.service_id or None,
        product_id=payload.product_id or None,
        payment_method=payload.payment_method,
        total_price=total_price,
    )
    if payload.transaction_date is not None:
        record.transaction_date = as_utc(payload.transaction_date)
    db.add(record)
    db.commit()
    db.refresh(record)
    return serialize_transaction(record)


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    cashier_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[TransactionOut]:
    query = select(Transaction).order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).limit(limit)
    if cashier_id:
        query = query.where(Transaction.cashier_id == cashier_id)
    return [serialize_transaction(record) for record in db.scalars(query).all()]


@app.get("/api/salary", response_model=SalaryReportOut)
def salary_report(
    period: SalaryPeriod = "month",
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    reference_date: date | None = None,
    db: Session = Depends(get_db),
) -> SalaryReportOut:
    start, end = salary_period_range(period, reference_date or _today(), year, month)
    rows = db.execute(
        select(Barber.id, Barber.name, func.sum(Transaction.total_price), func.count(Transaction.id))
        .select_from(Transaction)
        .join(Barber, Transaction.barber_id == Barber.id)
        .where(Transaction.transaction_date >= _start_of_day(start), Transaction.transaction_date < _start_of_day(end))
        .group_by(Barber.id, Barber.name)
        .order_by(Barber.name)
    ).all()
    barbers = [
        BarberEarningsOut(barber_id=barber_id, barber_name=name, total_earnings=int(total or 0), transaction_count=int(count))
        for barber_id, name, total, count in rows
    ]
    return SalaryReportOut(
        period=period,
        period_start=start,
        period_end=end - timedelta(days=1),
        barbers=barbers,
        grand_total=sum(b.total_earnings for b in barbers),
    )


@app.get("/api/salary/{barber_id}", response_model=BarberEarningsOut)
def barber_salary(
    barber_id: str,
    period: SalaryPeriod = "month",
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    reference_date: date | None = None,
    db: Session = Depends(get_db),
) -> BarberEarningsOut:
    barber = get_barber_or_404(db, barber_id)
    start, end = salary_period_range(period, reference_date or _today(), year, month)
    total, count = db.execute(
        select(func.sum(Transaction.total_price), func.count(Transaction.id)).where(
            Transaction.barber_id == barber.id,
            Transaction.transaction_date >= _start_of_day(start),
            Transaction.transaction_date < _start_of_day(end),
        )
    ).one()
    return BarberEarningsOut(
        barber_id=barber.id,
        barber_name=barber.name,
        total_earnings=int(total or 0),
        transaction_count=int(count),
    )


@app.get("/api/dashboard", response_model=DashboardOut)
def dashboard(reference_date: date | None = None, db: Session = Depends(get_db)) -> DashboardOut:
    today = reference_date or _today()
    today_earnings = db.scalar(
        select(func.sum(Transaction.total_price)).where(
            Transaction.transaction_date >= _start_of_day(today),
            Transaction.transaction_date < _start_of_day(today + timedelta(days=1)),
        )
    )
    return DashboardOut(
        barbers=db.scalar(select(func.count(Barber.id))) or 0,
        services=db.scalar(select(func.count(Service.id))) or 0,
        products=db.scalar(select(func.count(Product.id))) or 0,
        transactions=db.scalar(select(func.count(Transaction.id))) or 0,
        today_earnings=int(today_earnings or 0),
    )


def _schedule_rows(db: Session, start: date, end: date) -> list[tuple[BarberSchedule, str]]:
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be before start date")
    rows = db.execute(
        select(BarberSchedule, Barber.name)
        .join(Barber, BarberSchedule.barber_id == Barber.id)
        .where(BarberSchedule.schedule_date >= start, BarberSchedule.schedule_date <= end)
        .order_by(BarberSchedule.schedule_date, Barber.name)
    ).all()
    return [(record, name) for record, name in rows]


@app.get("/api/schedules", response_model=list[ScheduleOut])
def list_schedules(start: date, end: date, db: Session = Depends(get_db)) -> list[ScheduleOut]:
    return [serialize_schedule(record, name) for record, name in _schedule_rows(db, start, end)]


@app.put("/api/schedules", response_model=ScheduleOut)
def save_schedule(payload: ScheduleUpsertPayload, db: Session = Depends(get_db)) -> ScheduleOut:
    barber = get_barber_or_404(db, payload.barber_id)
    record = upsert_schedule(db, barber.id, payload.schedule_date, payload.shift)
    db.commit()
    db.refresh(record)
    return serialize_schedule(record, barber.name)


@app.delete("/api/schedules/{barber_id}/{schedule_date}")
def delete_schedule(barber_id: str, schedule_date: date, db: Session = Depends(get_db)) -> dict[str, bool]:
    result = db.execute(
        delete(BarberSchedule).where(BarberSchedule.barber_id == barber_id, BarberSchedule.schedule_date == schedule_date)
    )
    db.commit()
    if not result.rowcount:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule not found")
    return {"ok": True}


@app.post("/api/schedules/generate", response_model=GenerateScheduleOut)
def generate_schedule(payload: GenerateSchedulePayload, db: Session = Depends(get_db)) -> GenerateScheduleOut:
    staff = load_staff(db)
    try:
        entries = generate_weekly_schedule(staff, payload.start_date)
    except ConstraintError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    validation = validate_entries(entries, staff)
    return GenerateScheduleOut(
        entries=[ScheduleEntryModel(**asdict(entry)) for entry in entries],
        statistics=[ShiftStatisticsOut(**asdict(row)) for row in schedule_statistics(entries)],
        validation=ValidationOut(valid=validation.valid, errors=validation.errors),
    )


@app.post("/api/schedules/apply")
def apply_schedule(payload: ApplySchedulePayload, db: Session = Depends(get_db)) -> dict[str, int | bool]:
    staff = load_staff(db)
    known_ids = {member.id for member in staff}
    unknown = sorted({entry.staff_id for entry in payload.entries} - known_ids)
    if unknown:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown or inactive barbers: {', '.join(unknown)}")

    validation = validate_entries([to_schedule_entry(entry) for entry in payload.entries], staff)
    if not validation.valid:
        raise HTTPException(status_code=422, detail={"errors": validation.errors})

    latest = {(entry.staff_id, entry.schedule_date): entry.shift for entry in payload.entries}
    for (barber_id, schedule_date), shift in latest.items():
        upsert_schedule(db, barber_id, schedule_date, shift)
    db.commit()
    logger.info("Applied %s schedule rows", len(latest))
    return {"ok": True, "saved": len(latest)}


@app.get("/api/schedules/export/csv")
def export_schedules_csv(start: date, end: date, db: Session = Depends(get_db)) -> Response:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(["schedule_date", "barber_id", "barber_name", "shift"])
    for record, name in _schedule_rows(db, start, end):
        writer.writerow([record.schedule_date.isoformat(), record.barber_id, name, record.shift])
    return Response(content=out.getvalue(), media_type="text/csv")


@app.get("/health")
def health() -> dict[str, bool | str]:
    return {"ok": True, "env": os.getenv("ENVIRONMENT", "local")}
