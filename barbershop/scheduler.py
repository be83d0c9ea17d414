"""Weekly shift generation for barbers.

The generator assigns every staff member one shift tier per day over a
7-day window. Staff list order is part of the input: the rest-day rotation
and the weekday Full/Half alternation both key off each member's position,
so callers that want reproducible rotations across weeks must pass a
stable order (the API passes active barbers sorted by name).

Hard constraints checked on the produced week:

* a staff member rests at most once in the window;
* at least 2 staff members work every day;
* not everyone rests on the same day.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

logger = logging.getLogger(__name__)

DAYS_IN_WEEK = 7
MIN_STAFF = 2
MIN_WORKING_PER_DAY = 2
DATE_DISPLAY_FORMAT = "%d/%m"


class ConstraintError(ValueError):
    pass


class ShiftTier(str, Enum):
    FULL = "full"
    HALF = "half"
    OFF = "off"


@dataclass(frozen=True)
class Staff:
    id: str
    name: str


@dataclass
class DayPlan:
    date: date
    day_of_week: int
    is_weekend: bool
    assignments: dict[str, ShiftTier] = field(default_factory=dict)

    def count(self, tier: ShiftTier) -> int:
        return sum(1 for shift in self.assignments.values() if shift == tier)

    @property
    def working_count(self) -> int:
        return sum(1 for shift in self.assignments.values() if shift != ShiftTier.OFF)


@dataclass(frozen=True)
class ScheduleEntry:
    staff_id: str
    staff_name: str
    schedule_date: str
    shift: ShiftTier
    day_of_week: int
    date_display: str


@dataclass
class ShiftStatistics:
    staff_id: str
    staff_name: str
    full_shifts: int = 0
    half_shifts: int = 0
    days_off: int = 0
    total_work_days: int = 0


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str]


def sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def week_number(day: date) -> int:
    jan_1 = date(day.year, 1, 1)
    past_days = (day - jan_1).days
    return math.ceil((past_days + sunday_based_weekday(jan_1) + 1) / DAYS_IN_WEEK)


def build_week(staff: list[Staff], start_date: date) -> list[DayPlan]:
    if len(staff) < MIN_STAFF:
        raise ConstraintError(f"insufficient staff: at least {MIN_STAFF} required to generate a schedule, got {len(staff)}")
    week = []
    for offset in range(DAYS_IN_WEEK):
        day = start_date + timedelta(days=offset)
        day_of_week = sunday_based_weekday(day)
        week.append(DayPlan(date=day, day_of_week=day_of_week, is_weekend=day_of_week in (0, 6)))
    return week


def assign_days_off(staff: list[Staff], week: list[DayPlan]) -> None:
    """Give each staff member one rest day using the weekly rotation.

    With exactly three staff the candidate day is probed forward until a day
    without a rest is found. If all seven days already hold a rest the probe
    wraps back to the original candidate and that day is used anyway.
    """
    number = week_number(week[0].date)
    logger.debug("Assigning days off for week %s starting %s", number, week[0].date)
    probe = len(staff) == 3

    for index, member in enumerate(staff):
        day_index = (index * 2 + number) % DAYS_IN_WEEK
        attempts = 0
        while probe and attempts < DAYS_IN_WEEK and week[day_index].count(ShiftTier.OFF) >= 1:
            day_index = (day_index + 1) % DAYS_IN_WEEK
            attempts += 1
        week[day_index].assignments[member.id] = ShiftTier.OFF


def fill_shifts(staff: list[Staff], week: list[DayPlan]) -> None:
    for day in week:
        for index, member in enumerate(staff):
            if member.id in day.assignments:
                continue
            if day.is_weekend:
                shift = ShiftTier.FULL
            else:
                # Alternate across staff and across days to balance the week.
                shift = ShiftTier.FULL if (day.day_of_week + index) % 2 == 0 else ShiftTier.HALF
            day.assignments[member.id] = shift


def validate_week(week: list[DayPlan], staff: list[Staff]) -> bool:
    days_off: dict[str, int] = defaultdict(int)
    for day in week:
        for staff_id, shift in day.assignments.items():
            if shift == ShiftTier.OFF:
                days_off[staff_id] += 1
    if any(count > 1 for count in days_off.values()):
        return False
    if any(day.working_count < MIN_WORKING_PER_DAY for day in week):
        return False
    return all(day.count(ShiftTier.OFF) < len(staff) for day in week)


def repair_week(week: list[DayPlan], staff: list[Staff]) -> None:
    """Flip one resting staff member to Half on every under-covered day.

    Only a single flip is made per day and the week is not re-validated, so
    a day missing two workers stays short.
    """
    for day in week:
        if day.working_count >= MIN_WORKING_PER_DAY:
            continue
        resting = next((m for m in staff if day.assignments.get(m.id) == ShiftTier.OFF), None)
        if resting is None:
            logger.warning("Cannot repair coverage on %s: nobody is resting", day.date.isoformat())
            continue
        day.assignments[resting.id] = ShiftTier.HALF
        logger.info("Moved %s from off to half on %s to restore coverage", resting.name, day.date.isoformat())


def flatten_week(week: list[DayPlan], staff: list[Staff]) -> list[ScheduleEntry]:
    entries = []
    for day in week:
        for member in staff:
            shift = day.assignments.get(member.id)
            if shift is None:
                continue
            entries.append(
                ScheduleEntry(
                    staff_id=member.id,
                    staff_name=member.name,
                    schedule_date=day.date.isoformat(),
                    shift=shift,
                    day_of_week=day.day_of_week,
                    date_display=day.date.strftime(DATE_DISPLAY_FORMAT),
                )
            )
    return entries


def generate_weekly_schedule(staff: list[Staff], start_date: date) -> list[ScheduleEntry]:
    week = build_week(staff, start_date)
    assign_days_off(staff, week)
    fill_shifts(staff, week)
    if not validate_week(week, staff):
        repair_week(week, staff)
    return flatten_week(week, staff)


def schedule_statistics(entries: list[ScheduleEntry]) -> list[ShiftStatistics]:
    stats: dict[str, ShiftStatistics] = {}
    for entry in entries:
        row = stats.setdefault(entry.staff_id, ShiftStatistics(staff_id=entry.staff_id, staff_name=entry.staff_name))
        if entry.shift == ShiftTier.FULL:
            row.full_shifts += 1
            row.total_work_days += 1
        elif entry.shift == ShiftTier.HALF:
            row.half_shifts += 1
            row.total_work_days += 1
        elif entry.shift == ShiftTier.OFF:
            row.days_off += 1
    return list(stats.values())


def validate_entries(entries: list[ScheduleEntry], staff: list[Staff]) -> ValidationResult:
    """Check coverage per date and rest days per staff member before saving.

    Works from the flat entry list only. The all-resting rule is not
    checked here.
    """
    errors: list[str] = []

    by_date: dict[str, list[ScheduleEntry]] = defaultdict(list)
    for entry in entries:
        by_date[entry.schedule_date].append(entry)
    for schedule_date, day_entries in by_date.items():
        working = sum(1 for e in day_entries if e.shift != ShiftTier.OFF)
        if working < MIN_WORKING_PER_DAY:
            errors.append(f"{schedule_date}: insufficient coverage (only {working} staff working)")

    for member in staff:
        days_off = sum(1 for e in entries if e.staff_id == member.id and e.shift == ShiftTier.OFF)
        if days_off > 1:
            errors.append(f"{member.name}: more than one day off ({days_off} days)")

    return ValidationResult(valid=not errors, errors=errors)
