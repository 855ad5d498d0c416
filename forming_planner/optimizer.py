"""Contract for the external schedule optimiser.

The optimiser itself lives outside this package.  It is any callable that
receives the current batches and machines and answers with proposed
machine/date assignments, plus the ids of batches it could not place.  The
answer may be an :class:`OptimizationResult` or the decoded JSON payload::

    {
        "plan": [
            {"batch_id": "b-1", "machine_id": "PL-02", "scheduled_date": "2024-05-06"}
        ],
        "unschedulable": ["b-7"]
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Mapping, Sequence, Union

from .domain import Batch, Machine
from .timeline import as_date


class OptimizationError(RuntimeError):
    """Raised when the optimiser answer cannot be interpreted."""


@dataclass(frozen=True, slots=True)
class PlanAssignment:
    batch_id: str
    machine_id: str
    scheduled_date: date


@dataclass(slots=True)
class OptimizationResult:
    plan: List[PlanAssignment] = field(default_factory=list)
    unschedulable: List[str] = field(default_factory=list)


ScheduleOptimizer = Callable[
    [Sequence[Batch], Sequence[Machine]],
    Union[OptimizationResult, Mapping[str, Any]],
]


def _parse_assignment(index: int, entry: Any) -> PlanAssignment:
    if not isinstance(entry, Mapping):
        raise OptimizationError(f"Plan entry {index} is not an object: {entry!r}")
    missing = [
        key
        for key in ("batch_id", "machine_id", "scheduled_date")
        if not entry.get(key)
    ]
    if missing:
        raise OptimizationError(
            f"Plan entry {index} is missing {', '.join(missing)}"
        )
    try:
        scheduled = as_date(entry["scheduled_date"])
    except (TypeError, ValueError) as exc:
        raise OptimizationError(
            f"Plan entry {index} has an invalid date {entry['scheduled_date']!r}"
        ) from exc
    return PlanAssignment(
        batch_id=str(entry["batch_id"]),
        machine_id=str(entry["machine_id"]),
        scheduled_date=scheduled,
    )


def parse_optimizer_response(payload: Any) -> OptimizationResult:
    """Normalise an optimiser answer into an :class:`OptimizationResult`."""

    if isinstance(payload, OptimizationResult):
        return payload
    if not isinstance(payload, Mapping):
        raise OptimizationError(f"Unexpected optimiser response: {payload!r}")
    plan = payload.get("plan") or []
    unschedulable = payload.get("unschedulable") or []
    if not isinstance(plan, (list, tuple)):
        raise OptimizationError("Optimiser 'plan' must be a list")
    if not isinstance(unschedulable, (list, tuple)):
        raise OptimizationError("Optimiser 'unschedulable' must be a list")
    return OptimizationResult(
        plan=[_parse_assignment(index, entry) for index, entry in enumerate(plan)],
        unschedulable=[str(batch_id) for batch_id in unschedulable],
    )


__all__ = [
    "OptimizationError",
    "PlanAssignment",
    "OptimizationResult",
    "ScheduleOptimizer",
    "parse_optimizer_response",
]
