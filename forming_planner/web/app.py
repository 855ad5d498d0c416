"""FastAPI-based JSON interface for the production planner."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from ..config import Settings, configure_logging, load_settings
from ..domain import (
    Batch,
    BatchSlice,
    CalibrationParameter,
    DailyOccupancy,
    Machine,
    TimeRecord,
)
from ..estimator import TimeBreakdown
from ..repository import DuplicateRecordError, RecordNotFoundError
from ..services import PlannerService
from ..storage import PlannerDatabase
from ..timeformat import format_minutes
from ..timeline import CapacityConfigurationError


class MachineFields(BaseModel):
    description: Optional[str] = None
    image_url: Optional[str] = None
    strike_time: Optional[float] = None
    tool_change_time: Optional[float] = None
    setup_time: Optional[float] = None
    measurement_time: Optional[float] = None
    tram_time: Optional[float] = None
    crane_turn_time: Optional[float] = None
    crane_rotate_time: Optional[float] = None
    manual_turn_time: Optional[float] = None
    manual_rotate_time: Optional[float] = None
    efficiency: Optional[float] = None
    productive_hours: Optional[float] = None


class MachineIn(MachineFields):
    id: str
    name: str


class MachineUpdate(MachineFields):
    name: Optional[str] = None


class BatchParams(BaseModel):
    pieces: int = 0
    strikes_per_piece: int = 0
    trams: int = 1
    tool_changes: int = 1
    use_crane_turn: bool = False
    turn_quantity: int = 0
    use_crane_rotate: bool = False
    rotate_quantity: int = 0
    requires_tool_change: bool = False


class BatchIn(BatchParams):
    name: str
    machine_id: str
    scheduled_date: Optional[date] = None
    notes: str = ""


class BatchUpdate(BaseModel):
    name: Optional[str] = None
    machine_id: Optional[str] = None
    scheduled_date: Optional[date] = None
    pieces: Optional[int] = None
    strikes_per_piece: Optional[int] = None
    trams: Optional[int] = None
    tool_changes: Optional[int] = None
    use_crane_turn: Optional[bool] = None
    turn_quantity: Optional[int] = None
    use_crane_rotate: Optional[bool] = None
    rotate_quantity: Optional[int] = None
    requires_tool_change: Optional[bool] = None
    notes: Optional[str] = None


class EstimateIn(BatchParams):
    machine_id: str


class TimeRecordIn(BaseModel):
    machine_id: str
    parameter: str
    value: float = Field(..., ge=0)
    length_mm: Optional[float] = None
    timestamp: Optional[datetime] = None
    notes: str = ""


def machine_payload(machine: Machine) -> Dict[str, Any]:
    return asdict(machine)


def batch_payload(batch: Batch) -> Dict[str, Any]:
    payload = asdict(batch)
    payload["total_time_text"] = format_minutes(batch.total_time)
    return payload


def slice_payload(batch_slice: BatchSlice) -> Dict[str, Any]:
    return {
        "batch_id": batch_slice.batch.id,
        "batch_name": batch_slice.batch.name,
        "date": batch_slice.date,
        "time_in_day": batch_slice.time_in_day,
        "time_in_day_text": format_minutes(batch_slice.time_in_day),
        "is_continuation": batch_slice.is_continuation,
        "has_more": batch_slice.has_more,
    }


def occupancy_payload(occupancy: DailyOccupancy) -> Dict[str, Any]:
    return {
        "machine_id": occupancy.machine_id,
        "date": occupancy.date,
        "total_time": occupancy.total_time,
        "capacity_minutes": occupancy.capacity_minutes,
        "capacity_percentage": occupancy.capacity_percentage,
        "slices": [slice_payload(batch_slice) for batch_slice in occupancy.slices],
    }


def breakdown_payload(breakdown: TimeBreakdown) -> Dict[str, Any]:
    return {
        "setup": breakdown.setup,
        "technical": breakdown.technical,
        "operation": breakdown.operation,
        "measurement": breakdown.measurement,
        "raw_total": breakdown.raw_total,
        "efficiency_factor": breakdown.efficiency_factor,
        "total": breakdown.total,
        "total_text": format_minutes(breakdown.total),
    }


def record_payload(record: TimeRecord) -> Dict[str, Any]:
    payload = asdict(record)
    payload["label"] = record.label
    return payload


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(
    database_path: Optional[str] = None, settings: Optional[Settings] = None
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    database = PlannerDatabase(database_path or settings.database_path)
    service = PlannerService(
        machine_repo=database.machines,
        batch_repo=database.batches,
        time_record_repo=database.time_records,
    )
    if settings.seed_default_machines:
        service.seed_default_machines()

    app = FastAPI(title=settings.title)
    app.state.planner_service = service
    app.state.database = database

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        database.close()

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return _error(404, exc)

    @app.exception_handler(DuplicateRecordError)
    async def duplicate_handler(request: Request, exc: DuplicateRecordError):
        return _error(409, exc)

    @app.exception_handler(CapacityConfigurationError)
    async def capacity_handler(request: Request, exc: CapacityConfigurationError):
        return _error(409, exc)

    @app.exception_handler(ValueError)
    async def invalid_value_handler(request: Request, exc: ValueError):
        return _error(422, exc)

    # ------------------------------------------------------------------
    # Machines
    # ------------------------------------------------------------------
    @app.get("/machines")
    async def list_machines(request: Request) -> List[Dict[str, Any]]:
        service: PlannerService = request.app.state.planner_service
        return [machine_payload(machine) for machine in service.list_machines()]

    @app.post("/machines", status_code=201)
    async def create_machine(payload: MachineIn, request: Request) -> Dict[str, Any]:
        service: PlannerService = request.app.state.planner_service
        fields = payload.model_dump(exclude_none=True)
        machine = service.register_machine(fields.pop("id"), fields.pop("name"), **fields)
        return machine_payload(machine)

    @app.put("/machines/{machine_id}")
    async def update_machine(
        machine_id: str, payload: MachineUpdate, request: Request
    ) -> Dict[str, Any]:
        service: PlannerService = request.app.state.planner_service
        machine = service.update_machine(machine_id, **payload.model_dump(exclude_unset=True))
        return machine_payload(machine)

    @app.get("/machines/{machine_id}/timeline")
    async def machine_timeline(machine_id: str, request: Request) -> List[Dict[str, Any]]:
        service: PlannerService = request.app.state.planner_service
        return [slice_payload(batch_slice) for batch_slice in service.machine_timeline(machine_id)]

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------
    @app.get("/batches")
    async def list_batches(request: Request) -> List[Dict[str, Any]]:
        service: PlannerService = request.app.state.planner_service
        batches = sorted(service.batches.list(), key=lambda batch: batch.scheduled_date)
        return [batch_payload(batch) for batch in batches]

    @app.post("/batches", status_code=201)
    async def create_batch(payload: BatchIn, request: Request) -> Dict[str, Any]:
        service: PlannerService = request.app.state.planner_service
        fields = payload.model_dump()
        batch = service.create_batch(
            fields.pop("name"),
            fields.pop("machine_id"),
            fields.pop("scheduled_date"),
            **fields,
        )
        return batch_payload(batch)

    @app.put("/batches/{batch_id}")
    async def update_batch(
        batch_id: str, payload: BatchUpdate, request: Request
    ) -> Dict[str, Any]:
        service: PlannerService = request.app.state.planner_service
        changes = {
            name: value
            for name, value in payload.model_dump(exclude_unset=True).items()
            if value is not None
        }
        return batch_payload(service.update_batch(batch_id, **changes))

    @app.delete("/batches/{batch_id}", status_code=204)
    async def delete_batch(batch_id: str, request: Request) -> Response:
        service: PlannerService = request.app.state.planner_service
        service.delete_batch(batch_id)
        return Response(status_code=204)

    @app.post("/estimate")
    async def estimate(payload: EstimateIn, request: Request) -> Dict[str, Any]:
        service: PlannerService = request.app.state.planner_service
        fields = payload.model_dump()
        breakdown = service.preview_estimate(fields.pop("machine_id"), **fields)
        return breakdown_payload(breakdown)

    @app.get("/schedule/{day}")
    async def daily_schedule(day: date, request: Request) -> List[Dict[str, Any]]:
        service: PlannerService = request.app.state.planner_service
        return [occupancy_payload(entry) for entry in service.daily_overview(day)]

    # ------------------------------------------------------------------
    # Time study
    # ------------------------------------------------------------------
    @app.get("/records")
    async def list_records(request: Request) -> List[Dict[str, Any]]:
        service: PlannerService = request.app.state.planner_service
        return [record_payload(record) for record in service.list_time_records()]

    @app.post("/records", status_code=201)
    async def create_record(payload: TimeRecordIn, request: Request) -> Dict[str, Any]:
        service: PlannerService = request.app.state.planner_service
        record = service.record_time_study(
            payload.machine_id,
            payload.parameter,
            payload.value,
            length_mm=payload.length_mm,
            timestamp=payload.timestamp,
            notes=payload.notes,
        )
        return record_payload(record)

    @app.delete("/records/{record_id}", status_code=204)
    async def delete_record(record_id: str, request: Request) -> Response:
        service: PlannerService = request.app.state.planner_service
        service.delete_time_record(record_id)
        return Response(status_code=204)

    @app.get("/records/averages")
    async def record_averages(
        request: Request, machine_id: Optional[str] = None
    ) -> Dict[str, Dict[str, Dict[str, Any]]]:
        service: PlannerService = request.app.state.planner_service
        averages = service.calibration_averages(machine_id)
        return {
            machine: {
                parameter: {
                    "label": CalibrationParameter.label_for(parameter),
                    "count": average.count,
                    "mean": average.mean,
                    "mean_text": format_minutes(average.mean),
                }
                for parameter, average in parameters.items()
            }
            for machine, parameters in averages.items()
        }

    return app


__all__ = ["create_app"]
