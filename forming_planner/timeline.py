"""Distribution of batch processing time over daily machine capacity."""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Union

from .domain import MACHINE_DEFAULTS, Batch, BatchSlice, DailyOccupancy, Machine

MINUTES_PER_HOUR = 60


class CapacityConfigurationError(ValueError):
    """Raised when a machine cannot provide any daily capacity."""


def as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def daily_capacity_minutes(machine: Machine) -> float:
    """Return the productive minutes ``machine`` offers on every calendar day."""

    hours = machine.productive_hours
    if hours is None:
        hours = MACHINE_DEFAULTS["productive_hours"]
    try:
        hours = float(hours)
    except (TypeError, ValueError) as exc:
        raise CapacityConfigurationError(
            f"Machine {machine.id!r} has invalid productive hours {hours!r}"
        ) from exc
    if not math.isfinite(hours) or hours <= 0:
        raise CapacityConfigurationError(
            f"Machine {machine.id!r} must have positive productive hours, got {hours!r}"
        )
    return hours * MINUTES_PER_HOUR


def _remaining_total(batch: Batch) -> float:
    try:
        total = float(batch.total_time)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(total) or total < 0:
        return 0.0
    return total


def machine_timeline_slices(machine: Machine, batches: Iterable[Batch]) -> List[BatchSlice]:
    """Split the batches assigned to ``machine`` into day-bounded slices.

    Batches are processed in ascending scheduled-date order; batches sharing
    a date keep their input order.  Each batch starts on its scheduled date
    and consumes whatever capacity earlier batches left on that day, spilling
    onto the following calendar days until its total time is allocated.
    """

    capacity = daily_capacity_minutes(machine)
    machine_batches = sorted(
        (batch for batch in batches if batch.machine_id == machine.id),
        key=lambda batch: as_date(batch.scheduled_date),
    )

    used: Dict[date, float] = {}
    slices: List[BatchSlice] = []
    for batch in machine_batches:
        remaining = _remaining_total(batch)
        current = as_date(batch.scheduled_date)
        is_continuation = False
        while remaining > 0:
            capacity_left = capacity - used.get(current, 0.0)
            if capacity_left <= 0:
                current += timedelta(days=1)
                continue
            consumed = min(remaining, capacity_left)
            remaining -= consumed
            used[current] = used.get(current, 0.0) + consumed
            slices.append(
                BatchSlice(
                    batch=batch,
                    date=current,
                    time_in_day=consumed,
                    is_continuation=is_continuation,
                    has_more=remaining > 0,
                )
            )
            if remaining > 0:
                is_continuation = True
                current += timedelta(days=1)
    return slices


def daily_occupancy(
    machine: Machine, batches: Iterable[Batch], day: Union[date, str]
) -> DailyOccupancy:
    """Summarise the load of ``machine`` on ``day``."""

    day = as_date(day)
    day_slices = [
        batch_slice
        for batch_slice in machine_timeline_slices(machine, batches)
        if batch_slice.date == day
    ]
    return DailyOccupancy(
        machine_id=machine.id,
        date=day,
        slices=day_slices,
        total_time=sum(batch_slice.time_in_day for batch_slice in day_slices),
        capacity_minutes=daily_capacity_minutes(machine),
    )


__all__ = [
    "MINUTES_PER_HOUR",
    "CapacityConfigurationError",
    "as_date",
    "daily_capacity_minutes",
    "machine_timeline_slices",
    "daily_occupancy",
]
