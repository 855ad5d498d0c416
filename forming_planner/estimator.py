"""Processing time estimation for press brake batches.

The entry point :func:`calculate_batch_time` turns a batch's process
parameters and a machine's calibration into a total time in minutes.  Both
arguments may be domain records, any object exposing the same attribute
names, or plain mappings (for example a decoded JSON payload).  Missing or
unusable numeric values fall back to :data:`MACHINE_DEFAULTS` and
:data:`BATCH_DEFAULTS`, so the estimate is defined for partially populated
records and never raises.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Any, Mapping

from .domain import BATCH_DEFAULTS, MACHINE_DEFAULTS

# Pieces covered by one quality check.
PIECES_PER_CHECK = 10


@dataclass(frozen=True, slots=True)
class TimeBreakdown:
    """Individual contributions to a batch estimate, all in minutes."""

    setup: float
    technical: float
    operation: float
    measurement: float
    efficiency_factor: float

    @property
    def raw_total(self) -> float:
        return self.setup + self.technical + self.operation + self.measurement

    @property
    def total(self) -> float:
        total = self.raw_total / self.efficiency_factor
        # Overflowing inputs saturate at the largest finite float.
        return total if math.isfinite(total) else sys.float_info.max


def _read(record: Any, name: str) -> Any:
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _number(value: Any, default: float) -> float:
    """Coerce ``value`` to a finite, non-negative float or return ``default``."""

    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or number < 0:
        return default
    return number


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def calibration_value(machine: Any, name: str) -> float:
    """Return a machine calibration constant with its documented fallback."""

    return _number(_read(machine, name), MACHINE_DEFAULTS[name])


def efficiency_factor(machine: Any) -> float:
    efficiency = _number(_read(machine, "efficiency"), 0.0)
    if efficiency <= 0:
        efficiency = MACHINE_DEFAULTS["efficiency"]
    return efficiency / 100.0


def estimate_breakdown(batch: Any, machine: Any) -> TimeBreakdown:
    """Compute every contribution to the processing time of ``batch``."""

    pieces = _number(_read(batch, "pieces"), BATCH_DEFAULTS["pieces"])
    strikes = _number(
        _read(batch, "strikes_per_piece"), BATCH_DEFAULTS["strikes_per_piece"]
    )
    trams = _number(_read(batch, "trams"), BATCH_DEFAULTS["trams"])
    tool_changes = _number(
        _read(batch, "tool_changes"), BATCH_DEFAULTS["tool_changes"]
    )
    turn_quantity = _number(
        _read(batch, "turn_quantity"), BATCH_DEFAULTS["turn_quantity"]
    )
    rotate_quantity = _number(
        _read(batch, "rotate_quantity"), BATCH_DEFAULTS["rotate_quantity"]
    )

    if _flag(_read(batch, "use_crane_turn")):
        turn_unit = calibration_value(machine, "crane_turn_time")
    else:
        turn_unit = calibration_value(machine, "manual_turn_time")
    if _flag(_read(batch, "use_crane_rotate")):
        rotate_unit = calibration_value(machine, "crane_rotate_time")
    else:
        rotate_unit = calibration_value(machine, "manual_rotate_time")
    total_turn = turn_unit * turn_quantity
    total_rotate = rotate_unit * rotate_quantity

    setup = 0.0
    technical = 0.0
    if _flag(_read(batch, "requires_tool_change")):
        setup = calibration_value(machine, "setup_time") * tool_changes
        technical = (
            tool_changes * calibration_value(machine, "tool_change_time")
            + trams * calibration_value(machine, "tram_time")
        )

    # Turn and rotate totals are charged in full on every piece.
    per_piece = strikes * calibration_value(machine, "strike_time") + total_turn + total_rotate
    operation = per_piece * pieces if pieces > 0 else 0.0

    checks = math.ceil(pieces / PIECES_PER_CHECK) if pieces > 0 else 0
    measurement = checks * calibration_value(machine, "measurement_time") * (strikes + 1)

    return TimeBreakdown(
        setup=setup,
        technical=technical,
        operation=operation,
        measurement=measurement,
        efficiency_factor=efficiency_factor(machine),
    )


def calculate_batch_time(batch: Any, machine: Any) -> float:
    """Return the estimated processing time of ``batch`` on ``machine`` in minutes."""

    return estimate_breakdown(batch, machine).total


__all__ = [
    "PIECES_PER_CHECK",
    "TimeBreakdown",
    "calibration_value",
    "efficiency_factor",
    "estimate_breakdown",
    "calculate_batch_time",
]
