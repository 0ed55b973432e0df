from __future__ import annotations

from collections.abc import Generator
from datetime import date

import pytest
from fastapi.testclient import TestClient

from demand_matrix.core.config import get_settings
from demand_matrix.main import create_app
from demand_matrix.models.matrix import DemandCell, DemandMatrix, StaffIdentifier, TaskDemand, month_columns


def make_task(
    task_id: str,
    client_id: str,
    hours: float,
    staff_id: StaffIdentifier = None,
    *,
    skill: str = "Tax",
) -> TaskDemand:
    return TaskDemand(
        task_id=task_id,
        task_name=f"Task {task_id}",
        client_id=client_id,
        client_name=f"Client {client_id}",
        skill_type=skill,
        monthly_hours=hours,
        recurrence_pattern={"type": "monthly"},
        preferred_staff_id=staff_id,
        preferred_staff_name=None if staff_id is None else f"Staff {staff_id}",
    )


def make_cell(skill: str, month: str, tasks: list[TaskDemand], **extra: float | None) -> DemandCell:
    return DemandCell(
        skill_type=skill,
        month=month,
        month_label=month,
        demand_hours=sum(task.monthly_hours for task in tasks),
        task_count=len(tasks),
        client_count=len({task.client_id for task in tasks}),
        task_breakdown=tuple(tasks),
        **extra,
    )


def build_sample_matrix() -> DemandMatrix:
    """Three skills over Q1 2024; the Advisory cell has no task breakdown."""

    cells = [
        make_cell(
            "Tax",
            "2024-01",
            [make_task("t1", "c1", 10, "STAFF-1"), make_task("t2", "c2", 5)],
            suggested_revenue=1500.0,
        ),
        make_cell(
            "Tax",
            "2024-02",
            [make_task("t1", "c1", 10, "STAFF-1"), make_task("t3", "c3", 8, 42)],
        ),
        make_cell("Audit", "2024-01", [make_task("t4", "c1", 6, "staff-2", skill="Audit")]),
        make_cell("Audit", "2024-03", [make_task("t5", "c2", 4, "42", skill="Audit")]),
        DemandCell(
            skill_type="Advisory",
            month="2024-02",
            month_label="2024-02",
            demand_hours=12,
            task_count=2,
            client_count=2,
            task_breakdown=None,
        ),
    ]
    return DemandMatrix.from_cells(month_columns(date(2024, 1, 1), date(2024, 3, 1)), cells)


@pytest.fixture()
def sample_matrix() -> DemandMatrix:
    return build_sample_matrix()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    get_settings.cache_clear()
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()
