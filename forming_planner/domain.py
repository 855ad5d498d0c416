"""Core data structures for the press brake production planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple


class CalibrationParameter(str, Enum):
    """Machine parameters that can be captured with the stopwatch."""

    STRIKE_TIME = "strike_time"
    TOOL_CHANGE_TIME = "tool_change_time"
    SETUP_TIME = "setup_time"
    MEASUREMENT_TIME = "measurement_time"
    TRAM_TIME = "tram_time"
    CRANE_TURN_TIME = "crane_turn_time"
    CRANE_ROTATE_TIME = "crane_rotate_time"
    MANUAL_TURN_TIME = "manual_turn_time"
    MANUAL_ROTATE_TIME = "manual_rotate_time"
    TOTAL_TIME = "total_time"

    @property
    def label(self) -> str:
        return {
            CalibrationParameter.STRIKE_TIME: "Strike time",
            CalibrationParameter.TOOL_CHANGE_TIME: "Tool change",
            CalibrationParameter.SETUP_TIME: "Initial setup",
            CalibrationParameter.MEASUREMENT_TIME: "Measurement per check",
            CalibrationParameter.TRAM_TIME: "Additional tram",
            CalibrationParameter.CRANE_TURN_TIME: "Crane turn",
            CalibrationParameter.CRANE_ROTATE_TIME: "Crane rotate",
            CalibrationParameter.MANUAL_TURN_TIME: "Manual turn",
            CalibrationParameter.MANUAL_ROTATE_TIME: "Manual rotate",
            CalibrationParameter.TOTAL_TIME: "Total batch time",
        }[self]

    @classmethod
    def label_for(cls, parameter: str) -> str:
        """Human label of a known parameter; free-form names are returned as is."""

        try:
            return cls(parameter).label
        except ValueError:
            return parameter


# Fallback values (minutes per unit operation) used when a machine record
# leaves a calibration field unset or holds an unusable value.
MACHINE_DEFAULTS: Mapping[str, float] = {
    "strike_time": 0.005,
    "tool_change_time": 5.0,
    "setup_time": 10.0,
    "measurement_time": 0.5,
    "tram_time": 3.0,
    "crane_turn_time": 1.0,
    "crane_rotate_time": 1.0,
    "manual_turn_time": 0.05,
    "manual_rotate_time": 0.05,
    "efficiency": 100.0,
    "productive_hours": 16.0,
}

BATCH_DEFAULTS: Mapping[str, float] = {
    "pieces": 0,
    "strikes_per_piece": 0,
    "trams": 1,
    "tool_changes": 1,
    "turn_quantity": 0,
    "rotate_quantity": 0,
}

BATCH_FLAGS: Tuple[str, ...] = (
    "use_crane_turn",
    "use_crane_rotate",
    "requires_tool_change",
)

# Changing any of these invalidates a batch's stored total time.
ESTIMATE_INPUTS: Tuple[str, ...] = (
    "machine_id",
    *BATCH_DEFAULTS.keys(),
    *BATCH_FLAGS,
)


@dataclass(slots=True)
class Machine:
    """A press brake together with its cycle calibration and daily capacity."""

    id: str
    name: str
    description: str = ""
    image_url: str = ""
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


@dataclass(slots=True)
class Batch:
    """A set of identical pieces to be formed on one machine."""

    id: str
    name: str
    machine_id: str
    scheduled_date: date
    pieces: int = 0
    strikes_per_piece: int = 0
    trams: int = 1
    tool_changes: int = 1
    use_crane_turn: bool = False
    turn_quantity: int = 0
    use_crane_rotate: bool = False
    rotate_quantity: int = 0
    requires_tool_change: bool = False
    total_time: float = 0.0
    notes: str = ""


@dataclass(frozen=True, slots=True)
class BatchSlice:
    """Portion of a batch's total time that falls on one calendar day."""

    batch: Batch
    date: date
    time_in_day: float
    is_continuation: bool
    has_more: bool


@dataclass(slots=True)
class DailyOccupancy:
    """Load of one machine on one day as shown on the production board."""

    machine_id: str
    date: date
    slices: List[BatchSlice]
    total_time: float
    capacity_minutes: float

    @property
    def capacity_percentage(self) -> float:
        if self.capacity_minutes <= 0:
            return 0.0
        return min(100.0, self.total_time / self.capacity_minutes * 100.0)


@dataclass(slots=True)
class TimeRecord:
    """Observed duration captured on the shop floor for a machine parameter."""

    id: str
    machine_id: str
    parameter: str
    value: float
    timestamp: datetime = field(default_factory=datetime.now)
    length_mm: Optional[float] = None
    notes: str = ""

    @property
    def label(self) -> str:
        return CalibrationParameter.label_for(self.parameter)


@dataclass(frozen=True, slots=True)
class CalibrationAverage:
    count: int
    mean: float


DEFAULT_MACHINES: Tuple[Dict[str, object], ...] = (
    {
        "machine_id": "PL-01",
        "name": "Press brake 60T x 2.5m",
        "description": "Best for small and medium parts",
        "strike_time": 0.005,
        "tool_change_time": 5.0,
        "tram_time": 3.0,
        "crane_turn_time": 1.0,
        "crane_rotate_time": 1.0,
        "manual_turn_time": 0.05,
        "manual_rotate_time": 0.05,
        "efficiency": 100.0,
        "productive_hours": 16.0,
    },
    {
        "machine_id": "PL-02",
        "name": "Press brake 150T x 3m",
        "description": "General purpose machine",
        "strike_time": 0.006,
        "tool_change_time": 6.0,
        "tram_time": 3.5,
        "crane_turn_time": 1.2,
        "crane_rotate_time": 1.2,
        "manual_turn_time": 0.08,
        "manual_rotate_time": 0.08,
        "efficiency": 100.0,
        "productive_hours": 16.0,
    },
    {
        "machine_id": "PL-03",
        "name": "Press brake 220T x 4m",
        "description": "Best for large or thick parts",
        "strike_time": 0.008,
        "tool_change_time": 7.5,
        "tram_time": 4.0,
        "crane_turn_time": 1.5,
        "crane_rotate_time": 1.5,
        "manual_turn_time": 0.12,
        "manual_rotate_time": 0.12,
        "efficiency": 100.0,
        "productive_hours": 16.0,
    },
)


__all__ = [
    "CalibrationParameter",
    "MACHINE_DEFAULTS",
    "BATCH_DEFAULTS",
    "BATCH_FLAGS",
    "ESTIMATE_INPUTS",
    "Machine",
    "Batch",
    "BatchSlice",
    "DailyOccupancy",
    "TimeRecord",
    "CalibrationAverage",
    "DEFAULT_MACHINES",
]
