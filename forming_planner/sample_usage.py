"""Demonstration script for the press brake production planner."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from . import PlannerService
from .config import configure_logging
from .services import next_working_day
from .timeformat import format_minutes


def main(start: Optional[date] = None) -> PlannerService:
    configure_logging("WARNING")
    planner = PlannerService()
    planner.seed_default_machines()
    start = next_working_day(start)

    # Small brackets, no tool change
    planner.create_batch(
        "Mounting brackets",
        "PL-01",
        start,
        pieces=400,
        strikes_per_piece=4,
        turn_quantity=1,
    )
    # Long cabinet panels handled with the crane
    planner.create_batch(
        "Cabinet side panels",
        "PL-02",
        start,
        pieces=120,
        strikes_per_piece=6,
        trams=3,
        tool_changes=2,
        requires_tool_change=True,
        use_crane_turn=True,
        turn_quantity=2,
        use_crane_rotate=True,
        rotate_quantity=1,
    )
    planner.create_batch(
        "Base frame profiles",
        "PL-02",
        start,
        pieces=300,
        strikes_per_piece=8,
        tool_changes=1,
        requires_tool_change=True,
        use_crane_turn=True,
        turn_quantity=1,
    )

    print("Batches")
    for batch in planner.batches:
        print(
            f"  {batch.name:<24} {batch.machine_id}  {batch.scheduled_date}  "
            f"{format_minutes(batch.total_time)}"
        )

    for offset in range(3):
        day = start + timedelta(days=offset)
        print(f"\nBoard for {day.isoformat()}")
        for occupancy in planner.daily_overview(day):
            print(
                f"  {occupancy.machine_id}: {format_minutes(occupancy.total_time)} "
                f"({occupancy.capacity_percentage:.0f}%)"
            )
            for batch_slice in occupancy.slices:
                marker = " (cont.)" if batch_slice.is_continuation else ""
                more = " ..." if batch_slice.has_more else ""
                print(
                    f"    - {batch_slice.batch.name}{marker}: "
                    f"{format_minutes(batch_slice.time_in_day)}{more}"
                )
    return planner


if __name__ == "__main__":
    main()
