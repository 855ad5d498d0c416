"""Production planner for press brake (metal forming) batches.

This package estimates batch processing times from machine calibration,
spreads batches over the daily capacity of each machine, and provides the
persistence and service layers needed to plan production around them.
"""

from .domain import (
    Batch,
    BatchSlice,
    CalibrationParameter,
    DailyOccupancy,
    Machine,
    TimeRecord,
)
from .estimator import TimeBreakdown, calculate_batch_time, estimate_breakdown
from .services import OptimizationSummary, PlannerService
from .timeline import (
    CapacityConfigurationError,
    daily_capacity_minutes,
    daily_occupancy,
    machine_timeline_slices,
)

__all__ = [
    "Batch",
    "BatchSlice",
    "CalibrationParameter",
    "DailyOccupancy",
    "Machine",
    "TimeRecord",
    "TimeBreakdown",
    "calculate_batch_time",
    "estimate_breakdown",
    "OptimizationSummary",
    "PlannerService",
    "CapacityConfigurationError",
    "daily_capacity_minutes",
    "daily_occupancy",
    "machine_timeline_slices",
]
