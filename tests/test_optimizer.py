from datetime import date

import pytest

from forming_planner.optimizer import (
    OptimizationError,
    OptimizationResult,
    PlanAssignment,
    parse_optimizer_response,
)


def test_json_payload_is_normalised():
    result = parse_optimizer_response(
        {
            "plan": [
                {"batch_id": "b-1", "machine_id": "PL-02", "scheduled_date": "2024-05-07"},
            ],
            "unschedulable": ["b-9"],
        }
    )

    assert result.plan == [PlanAssignment("b-1", "PL-02", date(2024, 5, 7))]
    assert result.unschedulable == ["b-9"]


def test_result_objects_pass_through():
    result = OptimizationResult(unschedulable=["b-1"])

    assert parse_optimizer_response(result) is result


def test_empty_payload_means_nothing_to_do():
    result = parse_optimizer_response({})

    assert result.plan == []
    assert result.unschedulable == []


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "plan",
        {"plan": "b-1"},
        {"plan": [], "unschedulable": "b-1"},
        {"plan": ["b-1"]},
        {"plan": [{"batch_id": "b-1", "machine_id": "PL-01"}]},
        {"plan": [{"batch_id": "b-1", "machine_id": "PL-01", "scheduled_date": "next week"}]},
    ],
)
def test_malformed_payloads_raise(payload):
    with pytest.raises(OptimizationError):
        parse_optimizer_response(payload)
