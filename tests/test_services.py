import logging
from datetime import date, timedelta

import pytest

from forming_planner.domain import CalibrationAverage, CalibrationParameter
from forming_planner.estimator import calculate_batch_time
from forming_planner.optimizer import OptimizationError, OptimizationResult, PlanAssignment
from forming_planner.repository import DuplicateRecordError, RecordNotFoundError
from forming_planner.services import PlannerService, natural_key, next_working_day
from forming_planner.timeline import CapacityConfigurationError


def test_seeding_registers_default_press_brakes_once(planner):
    assert [machine.id for machine in planner.list_machines()] == ["PL-01", "PL-02", "PL-03"]
    assert planner.seed_default_machines() == []


def test_register_machine_rejects_duplicates_and_unknown_fields(planner):
    with pytest.raises(DuplicateRecordError):
        planner.register_machine("PL-01", "Again")
    with pytest.raises(ValueError):
        planner.register_machine("PL-04", "Rotolaser", spindle_speed=1200)
    with pytest.raises(ValueError):
        planner.register_machine("PL-04", "  ")


def test_machines_are_listed_in_natural_order():
    planner = PlannerService()
    for machine_id in ("PL-10", "PL-2", "PL-1"):
        planner.register_machine(machine_id, machine_id)

    assert [machine.id for machine in planner.list_machines()] == ["PL-1", "PL-2", "PL-10"]
    assert natural_key("PL-2") < natural_key("PL-10")


def test_create_batch_stores_estimate(planner, monday):
    batch = planner.create_batch("Brackets", "PL-01", monday, pieces=10, strikes_per_piece=4)

    assert batch.total_time == pytest.approx(2.7)
    assert planner.batches.get(batch.id).total_time == pytest.approx(2.7)


def test_create_batch_requires_known_machine(planner, monday):
    with pytest.raises(RecordNotFoundError):
        planner.create_batch("Brackets", "PL-99", monday)


def test_create_batch_rejects_unknown_fields(planner, monday):
    with pytest.raises(ValueError):
        planner.create_batch("Brackets", "PL-01", monday, thickness=1.5)


def test_create_batch_defaults_to_next_working_day(planner):
    batch = planner.create_batch("Brackets", "PL-01")

    assert batch.scheduled_date == next_working_day(date.today())
    assert batch.scheduled_date.weekday() < 5


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2024, 5, 6), date(2024, 5, 6)),
        (date(2024, 5, 10), date(2024, 5, 10)),
        (date(2024, 5, 11), date(2024, 5, 13)),
        (date(2024, 5, 12), date(2024, 5, 13)),
    ],
)
def test_next_working_day(day, expected):
    assert next_working_day(day) == expected


def test_update_batch_recomputes_when_inputs_change(planner, monday):
    batch = planner.create_batch("Brackets", "PL-01", monday, pieces=10, strikes_per_piece=4)

    updated = planner.update_batch(batch.id, requires_tool_change=True)

    assert updated.total_time == pytest.approx(2.7 + 10.0 + 5.0 + 3.0)


def test_update_batch_recomputes_on_machine_reassignment(planner, monday):
    batch = planner.create_batch("Brackets", "PL-01", monday, pieces=100, strikes_per_piece=4)

    moved = planner.update_batch(batch.id, machine_id="PL-03")

    assert moved.total_time == pytest.approx(
        calculate_batch_time(moved, planner.machines.get("PL-03"))
    )
    assert moved.total_time != pytest.approx(batch.total_time)


def test_update_batch_keeps_total_for_non_time_fields(planner, monday):
    batch = planner.create_batch("Brackets", "PL-01", monday, pieces=10, strikes_per_piece=4)
    planner.batches.get(batch.id).total_time = 99.0

    updated = planner.update_batch(batch.id, notes="urgent", scheduled_date="2024-05-07")

    assert updated.total_time == 99.0
    assert updated.scheduled_date == date(2024, 5, 7)
    assert updated.notes == "urgent"


def test_update_batch_rejects_unknown_machine(planner, monday):
    batch = planner.create_batch("Brackets", "PL-01", monday)

    with pytest.raises(RecordNotFoundError):
        planner.update_batch(batch.id, machine_id="PL-42")


def test_machine_calibration_change_refreshes_its_batches(planner, monday):
    on_first = planner.create_batch("A", "PL-01", monday, pieces=10, strikes_per_piece=4)
    on_second = planner.create_batch("B", "PL-02", monday, pieces=10, strikes_per_piece=4)
    second_total = on_second.total_time

    planner.update_machine("PL-01", efficiency=50.0)

    assert planner.batches.get(on_first.id).total_time == pytest.approx(5.4)
    assert planner.batches.get(on_second.id).total_time == second_total


def test_update_machine_logs_configuration_change(planner, caplog):
    with caplog.at_level(logging.INFO, logger="forming_planner"):
        planner.update_machine("PL-01", strike_time=0.007)

    assert "PL-01 configuration changed" in caplog.text


def test_update_machine_validates_fields(planner):
    with pytest.raises(ValueError):
        planner.update_machine("PL-01", colour="red")
    with pytest.raises(ValueError):
        planner.update_machine("PL-01", name="")
    with pytest.raises(RecordNotFoundError):
        planner.update_machine("PL-77", efficiency=90.0)


def test_delete_batch(planner, monday):
    batch = planner.create_batch("Brackets", "PL-01", monday)

    planner.delete_batch(batch.id)

    assert batch.id not in planner.batches
    with pytest.raises(RecordNotFoundError):
        planner.delete_batch(batch.id)


def test_preview_estimate_stores_nothing(planner):
    breakdown = planner.preview_estimate("PL-01", pieces=10, strikes_per_piece=4)

    assert breakdown.total == pytest.approx(2.7)
    assert len(planner.batches) == 0


def test_machine_timeline_spreads_long_batches(planner, monday):
    batch = planner.create_batch("Long run", "PL-01", monday)
    planner.batches.get(batch.id).total_time = 1500.0

    slices = planner.machine_timeline("PL-01")

    assert [(s.date, s.time_in_day) for s in slices] == [
        (monday, 960.0),
        (monday + timedelta(days=1), 540.0),
    ]


def test_daily_overview_covers_every_machine(planner, monday):
    planner.create_batch("A", "PL-02", monday, pieces=10, strikes_per_piece=4)

    overview = planner.daily_overview(monday)

    assert [entry.machine_id for entry in overview] == ["PL-01", "PL-02", "PL-03"]
    assert overview[0].total_time == 0
    assert overview[1].total_time == pytest.approx(overview[1].slices[0].batch.total_time)


def test_capacity_fault_is_logged_and_raised(planner, monday, caplog):
    planner.update_machine("PL-01", productive_hours=0)
    planner.create_batch("A", "PL-01", monday, pieces=10)

    with caplog.at_level(logging.ERROR, logger="forming_planner"):
        with pytest.raises(CapacityConfigurationError):
            planner.machine_timeline("PL-01")
        with pytest.raises(CapacityConfigurationError):
            planner.daily_overview(monday)

    assert "PL-01" in caplog.text


def test_apply_optimization_moves_batches(planner, monday, caplog):
    first = planner.create_batch("A", "PL-01", monday, pieces=50, strikes_per_piece=4)
    second = planner.create_batch("B", "PL-01", monday, pieces=50, strikes_per_piece=4)
    seen = {}

    def optimizer(batches, machines):
        seen["batches"] = sorted(batch.id for batch in batches)
        seen["machines"] = [machine.id for machine in machines]
        return {
            "plan": [
                {"batch_id": first.id, "machine_id": "PL-03", "scheduled_date": "2024-05-08"},
                {"batch_id": "ghost", "machine_id": "PL-02", "scheduled_date": "2024-05-08"},
                {"batch_id": second.id, "machine_id": "PL-99", "scheduled_date": "2024-05-08"},
            ],
            "unschedulable": [second.id],
        }

    with caplog.at_level(logging.WARNING, logger="forming_planner"):
        summary = planner.apply_optimization(optimizer)

    assert seen["batches"] == sorted([first.id, second.id])
    assert seen["machines"] == ["PL-01", "PL-02", "PL-03"]
    assert summary.applied == [first.id]
    assert summary.skipped == ["ghost", second.id]
    assert summary.unschedulable == [second.id]
    moved = planner.batches.get(first.id)
    assert moved.machine_id == "PL-03"
    assert moved.scheduled_date == date(2024, 5, 8)
    assert moved.total_time == pytest.approx(
        calculate_batch_time(moved, planner.machines.get("PL-03"))
    )
    assert planner.batches.get(second.id).machine_id == "PL-01"
    assert "ghost" in caplog.text


def test_apply_optimization_accepts_result_objects(planner, monday):
    batch = planner.create_batch("A", "PL-01", monday)

    summary = planner.apply_optimization(
        lambda batches, machines: OptimizationResult(
            plan=[PlanAssignment(batch.id, "PL-02", monday)]
        )
    )

    assert summary.applied == [batch.id]
    assert planner.batches.get(batch.id).machine_id == "PL-02"


def test_apply_optimization_rejects_malformed_answers(planner):
    with pytest.raises(OptimizationError):
        planner.apply_optimization(lambda batches, machines: ["not", "a", "plan"])


def test_time_study_averages(planner):
    planner.record_time_study("PL-01", "strike_time", 0.004)
    planner.record_time_study("PL-01", "strike_time", 0.006)
    planner.record_time_study("PL-01", "rotolaser_cut_turn", 0.5, length_mm=1200)
    planner.record_time_study("PL-02", "tram_time", 3.5)

    averages = planner.calibration_averages()

    assert averages["PL-01"]["strike_time"].count == 2
    assert averages["PL-01"]["strike_time"].mean == pytest.approx(0.005)
    assert averages["PL-01"]["rotolaser_cut_turn"] == CalibrationAverage(count=1, mean=0.5)
    assert averages["PL-02"]["tram_time"] == CalibrationAverage(count=1, mean=3.5)
    assert list(planner.calibration_averages("PL-02")) == ["PL-02"]


def test_time_study_validation(planner):
    with pytest.raises(RecordNotFoundError):
        planner.record_time_study("PL-99", "strike_time", 0.1)
    with pytest.raises(ValueError):
        planner.record_time_study("PL-01", " ", 0.1)
    with pytest.raises(ValueError):
        planner.record_time_study("PL-01", "strike_time", -1)


def test_time_records_listed_newest_first_and_deletable(planner):
    older = planner.record_time_study("PL-01", "tram_time", 3.0)
    newer = planner.record_time_study(
        "PL-01", "tram_time", 3.2, timestamp=older.timestamp + timedelta(minutes=5)
    )

    assert [record.id for record in planner.list_time_records()] == [newer.id, older.id]
    planner.delete_time_record(older.id)
    assert [record.id for record in planner.list_time_records()] == [newer.id]


def test_time_study_accepts_parameter_members(planner):
    record = planner.record_time_study("PL-01", CalibrationParameter.CRANE_TURN_TIME, 1.2)

    assert record.parameter == "crane_turn_time"
    assert record.label == "Crane turn"
    assert "crane_turn_time" in planner.calibration_averages()["PL-01"]


def test_free_form_time_study_keeps_its_name_as_label(planner):
    record = planner.record_time_study("PL-01", "rotolaser_cut_turn", 0.5)

    assert record.label == "rotolaser_cut_turn"
