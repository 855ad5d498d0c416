from datetime import date

import pytest

from forming_planner.services import PlannerService

MONDAY = date(2024, 5, 6)


@pytest.fixture
def planner():
    service = PlannerService()
    service.seed_default_machines()
    return service


@pytest.fixture
def monday():
    return MONDAY
