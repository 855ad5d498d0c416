"""Service layer that implements the planner use-cases."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from .domain import (
    DEFAULT_MACHINES,
    ESTIMATE_INPUTS,
    Batch,
    BatchSlice,
    CalibrationAverage,
    CalibrationParameter,
    DailyOccupancy,
    Machine,
    TimeRecord,
)
from .estimator import TimeBreakdown, calculate_batch_time, estimate_breakdown
from .optimizer import ScheduleOptimizer, parse_optimizer_response
from .repository import InMemoryRepository, RecordNotFoundError, RecordStore
from .timeline import (
    CapacityConfigurationError,
    as_date,
    daily_occupancy,
    machine_timeline_slices,
)

logger = logging.getLogger(__name__)

MACHINE_FIELDS = tuple(
    item.name for item in fields(Machine) if item.name != "id"
)
BATCH_FIELDS = tuple(
    item.name for item in fields(Batch) if item.name not in {"id", "total_time"}
)


def next_working_day(reference: Optional[date] = None) -> date:
    """Return ``reference`` or, on a weekend, the following Monday."""

    reference = reference or date.today()
    weekday = reference.weekday()
    if weekday == 5:
        return reference + timedelta(days=2)
    if weekday == 6:
        return reference + timedelta(days=1)
    return reference


def natural_key(value: str) -> Tuple[Any, ...]:
    """Sort key ordering embedded numbers numerically (``PL-2`` < ``PL-10``)."""

    return tuple(
        (0, int(part)) if part.isdigit() else (1, part.lower())
        for part in re.split(r"(\d+)", value)
        if part
    )


@dataclass(slots=True)
class OptimizationSummary:
    """Outcome of applying an optimiser plan to the stored batches."""

    applied: List[str] = field(default_factory=list)
    unschedulable: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class PlannerService:
    """Facade that exposes planning use-cases to clients."""

    def __init__(
        self,
        machine_repo: Optional[RecordStore[Machine]] = None,
        batch_repo: Optional[RecordStore[Batch]] = None,
        time_record_repo: Optional[RecordStore[TimeRecord]] = None,
    ) -> None:
        self.machines: RecordStore[Machine] = (
            machine_repo if machine_repo is not None else InMemoryRepository()
        )
        self.batches: RecordStore[Batch] = (
            batch_repo if batch_repo is not None else InMemoryRepository()
        )
        self.time_records: RecordStore[TimeRecord] = (
            time_record_repo if time_record_repo is not None else InMemoryRepository()
        )

    # ------------------------------------------------------------------
    # Machines
    # ------------------------------------------------------------------
    def register_machine(self, machine_id: str, name: str, **calibration: Any) -> Machine:
        if not machine_id or not machine_id.strip():
            raise ValueError("A machine needs an identifier")
        if not name or not name.strip():
            raise ValueError("A machine needs a name")
        self._check_fields(calibration, MACHINE_FIELDS, "machine")
        machine = Machine(id=machine_id.strip(), name=name.strip(), **calibration)
        self.machines.add(machine.id, machine)
        logger.info("Registered machine %s (%s)", machine.id, machine.name)
        return machine

    def seed_default_machines(self) -> List[Machine]:
        """Register the standard press brakes when no machine exists yet."""

        if len(self.machines):
            return []
        seeded = [
            self.register_machine(**dict(definition)) for definition in DEFAULT_MACHINES
        ]
        logger.info("Seeded %d default machines", len(seeded))
        return seeded

    def list_machines(self) -> List[Machine]:
        return sorted(self.machines.list(), key=lambda machine: natural_key(machine.id))

    def update_machine(self, machine_id: str, **changes: Any) -> Machine:
        """Change machine attributes and refresh the estimates that depend on them."""

        self._check_fields(changes, MACHINE_FIELDS, "machine")
        if "name" in changes and not str(changes["name"] or "").strip():
            raise ValueError("A machine needs a name")
        machine = self.machines.get(machine_id)
        previous = {name: getattr(machine, name) for name in changes}
        updated = replace(machine, **changes)
        self.machines.save(updated.id, updated)
        changed = {
            name: (previous[name], value)
            for name, value in changes.items()
            if previous[name] != value
        }
        if changed:
            logger.info("Machine %s configuration changed: %s", machine_id, changed)
            self._recalculate_machine_batches(updated)
        return updated

    def _recalculate_machine_batches(self, machine: Machine) -> int:
        changed: List[Batch] = []
        for batch in self.batches.where(machine_id=machine.id):
            total = calculate_batch_time(batch, machine)
            if total != batch.total_time:
                batch.total_time = total
                changed.append(batch)
                logger.debug("Batch %s re-estimated at %.3f min", batch.id, total)
        return self.batches.save_many((batch.id, batch) for batch in changed)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    def create_batch(
        self,
        name: str,
        machine_id: str,
        scheduled_date: Optional[Union[date, str]] = None,
        **params: Any,
    ) -> Batch:
        self._check_fields(params, BATCH_FIELDS, "batch")
        if not name or not name.strip():
            raise ValueError("A batch needs a name")
        machine = self.machines.get(machine_id)
        scheduled = (
            as_date(scheduled_date) if scheduled_date else next_working_day()
        )
        batch = Batch(
            id=str(uuid4()),
            name=name,
            machine_id=machine.id,
            scheduled_date=scheduled,
            **params,
        )
        batch.total_time = calculate_batch_time(batch, machine)
        self.batches.add(batch.id, batch)
        logger.info(
            "Created batch %s on %s for %s (%.3f min)",
            batch.id,
            machine.id,
            scheduled.isoformat(),
            batch.total_time,
        )
        return batch

    def update_batch(self, batch_id: str, **changes: Any) -> Batch:
        """Apply ``changes`` and re-estimate when a time input was touched."""

        self._check_fields(changes, BATCH_FIELDS, "batch")
        batch = self.batches.get(batch_id)
        if "scheduled_date" in changes:
            changes["scheduled_date"] = as_date(changes["scheduled_date"])
        if "machine_id" in changes:
            self.machines.get(changes["machine_id"])
        needs_estimate = any(
            name in changes and changes[name] != getattr(batch, name)
            for name in ESTIMATE_INPUTS
        )
        updated = replace(batch, **changes)
        if needs_estimate:
            updated.total_time = calculate_batch_time(
                updated, self.machines.get(updated.machine_id)
            )
            logger.debug("Batch %s re-estimated at %.3f min", batch_id, updated.total_time)
        self.batches.save(updated.id, updated)
        logger.info("Updated batch %s", batch_id)
        return updated

    def delete_batch(self, batch_id: str) -> None:
        self.batches.delete(batch_id)
        logger.info("Deleted batch %s", batch_id)

    def preview_estimate(self, machine_id: str, **params: Any) -> TimeBreakdown:
        """Estimate a batch on ``machine_id`` without storing anything."""

        self._check_fields(params, BATCH_FIELDS, "batch")
        return estimate_breakdown(params, self.machines.get(machine_id))

    # ------------------------------------------------------------------
    # Scheduling views
    # ------------------------------------------------------------------
    def machine_timeline(self, machine_id: str) -> List[BatchSlice]:
        machine = self.machines.get(machine_id)
        try:
            return machine_timeline_slices(machine, self.batches.list())
        except CapacityConfigurationError:
            logger.error("Cannot build timeline for machine %s", machine_id)
            raise

    def daily_overview(self, day: Union[date, str]) -> List[DailyOccupancy]:
        """Return the occupancy of every machine on ``day``."""

        day = as_date(day)
        batches = self.batches.list()
        overview: List[DailyOccupancy] = []
        for machine in self.list_machines():
            try:
                overview.append(daily_occupancy(machine, batches, day))
            except CapacityConfigurationError:
                logger.error("Cannot build daily overview for machine %s", machine.id)
                raise
        return overview

    def apply_optimization(self, optimizer: ScheduleOptimizer) -> OptimizationSummary:
        """Ask ``optimizer`` for a plan and move the batches accordingly."""

        machines = self.list_machines()
        result = parse_optimizer_response(optimizer(self.batches.list(), machines))
        known_machines = {machine.id for machine in machines}
        summary = OptimizationSummary(unschedulable=list(result.unschedulable))
        for assignment in result.plan:
            if assignment.batch_id not in self.batches:
                logger.warning(
                    "Optimiser proposed unknown batch %s", assignment.batch_id
                )
                summary.skipped.append(assignment.batch_id)
                continue
            if assignment.machine_id not in known_machines:
                logger.warning(
                    "Optimiser proposed unknown machine %s for batch %s",
                    assignment.machine_id,
                    assignment.batch_id,
                )
                summary.skipped.append(assignment.batch_id)
                continue
            self.update_batch(
                assignment.batch_id,
                machine_id=assignment.machine_id,
                scheduled_date=assignment.scheduled_date,
            )
            summary.applied.append(assignment.batch_id)
        if summary.unschedulable:
            logger.warning(
                "Optimiser could not schedule batches: %s",
                ", ".join(summary.unschedulable),
            )
        logger.info(
            "Applied optimiser plan: %d moved, %d skipped",
            len(summary.applied),
            len(summary.skipped),
        )
        return summary

    # ------------------------------------------------------------------
    # Time study
    # ------------------------------------------------------------------
    def record_time_study(
        self,
        machine_id: str,
        parameter: Union[CalibrationParameter, str],
        value: float,
        *,
        length_mm: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        notes: str = "",
    ) -> TimeRecord:
        if machine_id not in self.machines:
            raise RecordNotFoundError(f"Machine {machine_id!r} does not exist")
        if isinstance(parameter, CalibrationParameter):
            parameter = parameter.value
        if not parameter or not str(parameter).strip():
            raise ValueError("A time record needs a parameter")
        if value < 0:
            raise ValueError("Observed time must not be negative")
        record = TimeRecord(
            id=str(uuid4()),
            machine_id=machine_id,
            parameter=str(parameter).strip(),
            value=float(value),
            timestamp=timestamp or datetime.now(),
            length_mm=length_mm,
            notes=notes,
        )
        self.time_records.add(record.id, record)
        logger.info(
            "Captured %s on %s: %.4f min", record.parameter, machine_id, record.value
        )
        return record

    def list_time_records(self) -> List[TimeRecord]:
        return sorted(
            self.time_records.list(), key=lambda record: record.timestamp, reverse=True
        )

    def delete_time_record(self, record_id: str) -> None:
        self.time_records.delete(record_id)

    def calibration_averages(
        self, machine_id: Optional[str] = None
    ) -> Dict[str, Dict[str, CalibrationAverage]]:
        """Average observed value per machine and parameter."""

        records = (
            self.time_records.list()
            if machine_id is None
            else self.time_records.where(machine_id=machine_id)
        )
        totals: Dict[str, Dict[str, Tuple[int, float]]] = {}
        for record in records:
            per_machine = totals.setdefault(record.machine_id, {})
            count, total = per_machine.get(record.parameter, (0, 0.0))
            per_machine[record.parameter] = (count + 1, total + record.value)
        return {
            machine: {
                parameter: CalibrationAverage(count=count, mean=total / count)
                for parameter, (count, total) in parameters.items()
            }
            for machine, parameters in totals.items()
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _check_fields(values: Dict[str, Any], allowed: Tuple[str, ...], kind: str) -> None:
        unknown = sorted(set(values) - set(allowed))
        if unknown:
            raise ValueError(f"Unknown {kind} fields: {', '.join(unknown)}")


__all__ = [
    "PlannerService",
    "OptimizationSummary",
    "next_working_day",
    "natural_key",
]
