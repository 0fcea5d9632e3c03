"""
Slot generation.

A schedule's day rules are one of two shapes, fixed when the schedule is
written: ``PerWeekday`` (every rule names a weekday, dates without a rule get
no slots) or ``Uniform`` (a single rule applied to every date in range).
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Union
from uuid import UUID

from app.core.exceptions import ValidationError
from app.core.utils import format_hhmm, iter_dates, parse_hhmm, weekday_name
from app.db.models import TimeSlot

PER_WEEKDAY = "per_weekday"
UNIFORM = "uniform"


@dataclass(frozen=True)
class DayRule:
    start_time: str
    end_time: str
    day: Optional[str] = None


@dataclass(frozen=True)
class PerWeekday:
    rules: Dict[str, DayRule]

    mode = PER_WEEKDAY

    def rule_for(self, day: date) -> Optional[DayRule]:
        return self.rules.get(weekday_name(day))


@dataclass(frozen=True)
class Uniform:
    rule: DayRule

    mode = UNIFORM

    def rule_for(self, day: date) -> Optional[DayRule]:
        return self.rule


RuleSet = Union[PerWeekday, Uniform]


@dataclass(frozen=True)
class BuiltSlot:
    starts_at: datetime
    start_time: str
    end_time: str
    is_booked: bool = False


def build_rule_set(days: Sequence[dict]) -> RuleSet:
    """Decide the schedule mode from raw day rules and validate them."""
    if not days:
        raise ValidationError("At least one day rule is required")

    rules = [
        DayRule(start_time=d["start_time"], end_time=d["end_time"], day=d.get("day"))
        for d in days
    ]
    with_weekday = [r for r in rules if r.day]

    if not with_weekday:
        if len(rules) != 1:
            raise ValidationError("A schedule without weekdays takes exactly one time rule")
        return Uniform(rules[0])

    if len(with_weekday) != len(rules):
        raise ValidationError("Either every day rule names a weekday or none does")

    by_day: Dict[str, DayRule] = {}
    for rule in rules:
        if rule.day in by_day:
            raise ValidationError(f"Duplicate rule for {rule.day}")
        by_day[rule.day] = rule
    return PerWeekday(by_day)


def load_rule_set(mode: str, days: Sequence[dict]) -> RuleSet:
    rule_set = build_rule_set(days)
    if rule_set.mode != mode:
        raise ValidationError(f"Stored schedule mode '{mode}' does not match its day rules")
    return rule_set


def build_slots(day: date, start_time: str, end_time: str, duration_minutes: int) -> List[BuiltSlot]:
    """
    Cut ``[start_time, end_time)`` on ``day`` into back-to-back slots of
    ``duration_minutes``. A trailing remainder shorter than the duration is
    dropped.

    Example: 09:00-09:50 with 20 minutes gives 09:00-09:20 and 09:20-09:40.
    """
    if duration_minutes <= 0:
        raise ValidationError("Slot duration must be a positive number of minutes")

    cursor = datetime.combine(day, parse_hhmm(start_time))
    end = datetime.combine(day, parse_hhmm(end_time))
    if cursor >= end:
        raise ValidationError(f"Start time {start_time} must be before end time {end_time}")

    step = timedelta(minutes=duration_minutes)
    slots = []
    while cursor + step <= end:
        slot_end = cursor + step
        slots.append(BuiltSlot(starts_at=cursor, start_time=format_hhmm(cursor), end_time=format_hhmm(slot_end)))
        cursor = slot_end
    return slots


def expand(
    doctor_id: UUID,
    rule_set: RuleSet,
    valid_from: date,
    valid_to: date,
    duration_minutes: int,
) -> List[TimeSlot]:
    """Every slot of the schedule's validity window, ready to insert."""
    if valid_from > valid_to:
        raise ValidationError("validFrom must not be after validTo")

    slots = []
    for day in iter_dates(valid_from, valid_to):
        rule = rule_set.rule_for(day)
        if rule is None:
            continue
        for built in build_slots(day, rule.start_time, rule.end_time, duration_minutes):
            slots.append(TimeSlot(
                doctor_id=doctor_id,
                date=built.starts_at,
                start_time=built.start_time,
                end_time=built.end_time,
                is_booked=built.is_booked,
            ))
    return slots
