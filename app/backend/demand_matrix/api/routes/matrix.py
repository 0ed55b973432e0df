"""Demand matrix filtering endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from demand_matrix.api.dependencies import get_filtering_service
from demand_matrix.models.matrix import (
    DemandCell,
    DemandMatrix,
    FilterSelection,
    MonthColumn,
    TaskDemand,
    TimeHorizon,
)
from demand_matrix.services.filtering_service import DemandFilteringService

router = APIRouter(prefix="/demand-matrix", tags=["demand-matrix"])


class MonthPayload(BaseModel):
    key: str
    label: str = ""


class TaskDemandPayload(BaseModel):
    task_id: str
    task_name: str = ""
    client_id: str
    client_name: str = ""
    skill_type: str
    monthly_hours: float
    recurrence_pattern: Any = None
    preferred_staff_id: str | int | float | None = None
    preferred_staff_name: str | None = None


class DemandCellPayload(BaseModel):
    skill_type: str
    month: str
    month_label: str = ""
    demand_hours: float
    task_count: int = 0
    client_count: int = 0
    task_breakdown: list[TaskDemandPayload] | None = None
    revenue: float | None = None
    suggested_revenue: float | None = None
    expected_less_suggested: float | None = None


class DemandMatrixPayload(BaseModel):
    months: list[MonthPayload] = Field(default_factory=list)
    data_points: list[DemandCellPayload] = Field(default_factory=list)


class TimeHorizonPayload(BaseModel):
    start: datetime
    end: datetime


class FilterSelectionPayload(BaseModel):
    skills: list[str] = Field(default_factory=list)
    clients: list[str] = Field(default_factory=list)
    preferred_staff: list[str | int | float | None] = Field(default_factory=list)
    time_horizon: TimeHorizonPayload | None = None


class FilterRequestPayload(BaseModel):
    matrix: DemandMatrixPayload
    filters: FilterSelectionPayload = Field(default_factory=FilterSelectionPayload)


class ActiveFiltersPayload(BaseModel):
    filters: FilterSelectionPayload = Field(default_factory=FilterSelectionPayload)


class IntegrityPayload(BaseModel):
    matrix: DemandMatrixPayload


def _task_from_payload(task: TaskDemandPayload) -> TaskDemand:
    return TaskDemand(
        task_id=task.task_id,
        task_name=task.task_name,
        client_id=task.client_id,
        client_name=task.client_name,
        skill_type=task.skill_type,
        monthly_hours=task.monthly_hours,
        recurrence_pattern=task.recurrence_pattern,
        preferred_staff_id=task.preferred_staff_id,
        preferred_staff_name=task.preferred_staff_name,
    )


def _matrix_from_payload(payload: DemandMatrixPayload) -> DemandMatrix:
    return DemandMatrix.from_cells(
        [MonthColumn(key=month.key, label=month.label or month.key) for month in payload.months],
        [
            DemandCell(
                skill_type=cell.skill_type,
                month=cell.month,
                month_label=cell.month_label or cell.month,
                demand_hours=cell.demand_hours,
                task_count=cell.task_count,
                client_count=cell.client_count,
                task_breakdown=(
                    None
                    if cell.task_breakdown is None
                    else tuple(_task_from_payload(task) for task in cell.task_breakdown)
                ),
                revenue=cell.revenue,
                suggested_revenue=cell.suggested_revenue,
                expected_less_suggested=cell.expected_less_suggested,
            )
            for cell in payload.data_points
        ],
    )


def _selection_from_payload(payload: FilterSelectionPayload) -> FilterSelection:
    horizon = None
    if payload.time_horizon is not None:
        horizon = TimeHorizon(start=payload.time_horizon.start, end=payload.time_horizon.end)
    return FilterSelection(
        skills=frozenset(payload.skills),
        clients=frozenset(payload.clients),
        preferred_staff=tuple(payload.preferred_staff),
        time_horizon=horizon,
    )


@router.post("/filter")
def filter_demand_matrix(
    payload: FilterRequestPayload,
    service: DemandFilteringService = Depends(get_filtering_service),
) -> dict[str, object]:
    return service.filter_matrix(
        matrix=_matrix_from_payload(payload.matrix),
        selection=_selection_from_payload(payload.filters),
    )


@router.post("/filters/active")
def get_active_filters(
    payload: ActiveFiltersPayload,
    service: DemandFilteringService = Depends(get_filtering_service),
) -> dict[str, object]:
    return service.active_filters(selection=_selection_from_payload(payload.filters))


@router.post("/integrity")
def check_demand_matrix_integrity(
    payload: IntegrityPayload,
    service: DemandFilteringService = Depends(get_filtering_service),
) -> dict[str, object]:
    return service.integrity_report(matrix=_matrix_from_payload(payload.matrix))


@router.post("/diagnostics/zero-result")
def explain_empty_filter_result(
    payload: FilterRequestPayload,
    service: DemandFilteringService = Depends(get_filtering_service),
) -> dict[str, object]:
    return service.zero_result_report(
        matrix=_matrix_from_payload(payload.matrix),
        selection=_selection_from_payload(payload.filters),
    )
