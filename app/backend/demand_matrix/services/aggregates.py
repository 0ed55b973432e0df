"""Aggregate recomputation shared by every filter strategy."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from demand_matrix.models.matrix import DemandCell, DemandMatrix, MonthColumn, SkillSummary, TaskDemand


@dataclass(frozen=True, slots=True)
class MatrixAggregates:
    data_points: tuple[DemandCell, ...]
    skills: tuple[str, ...]
    total_demand: float
    total_tasks: int
    total_clients: int
    skill_summary: dict[str, SkillSummary]


@dataclass(slots=True)
class _SkillAccumulator:
    total_hours: float = 0.0
    task_count: int = 0
    total_revenue: float = 0.0
    total_suggested_revenue: float = 0.0
    total_expected_less_suggested: float = 0.0
    clients: set[str] = field(default_factory=set)


def _cell_client_ids(cell: DemandCell) -> set[str]:
    return {task.client_id for task in cell.task_breakdown or ()}


def recompute_aggregates(cells: Iterable[DemandCell]) -> MatrixAggregates:
    """Recompute totals, distinct client counts and per-skill summaries."""

    data_points = tuple(cells)
    total_demand = 0.0
    total_tasks = 0
    clients: set[str] = set()
    accumulators: dict[str, _SkillAccumulator] = {}

    for cell in data_points:
        cell_clients = _cell_client_ids(cell)
        total_demand += cell.demand_hours
        total_tasks += cell.task_count
        clients.update(cell_clients)

        acc = accumulators.setdefault(cell.skill_type, _SkillAccumulator())
        acc.total_hours += cell.demand_hours
        acc.task_count += cell.task_count
        acc.clients.update(cell_clients)
        acc.total_revenue += cell.revenue or 0.0
        acc.total_suggested_revenue += cell.suggested_revenue or 0.0
        acc.total_expected_less_suggested += cell.expected_less_suggested or 0.0

    skill_summary = {
        skill: SkillSummary(
            total_hours=acc.total_hours,
            task_count=acc.task_count,
            client_count=len(acc.clients),
            total_revenue=acc.total_revenue,
            total_suggested_revenue=acc.total_suggested_revenue,
            total_expected_less_suggested=acc.total_expected_less_suggested,
            average_fee_rate=acc.total_suggested_revenue / acc.total_hours if acc.total_hours else 0.0,
        )
        for skill, acc in sorted(accumulators.items())
    }

    return MatrixAggregates(
        data_points=data_points,
        skills=tuple(sorted(accumulators)),
        total_demand=total_demand,
        total_tasks=total_tasks,
        total_clients=len(clients),
        skill_summary=skill_summary,
    )


def with_cells(
    matrix: DemandMatrix,
    cells: Iterable[DemandCell],
    *,
    months: Iterable[MonthColumn] | None = None,
) -> DemandMatrix:
    """New matrix holding ``cells`` with aggregates rebuilt from them."""

    return DemandMatrix.from_cells(matrix.months if months is None else months, cells)


def _scaled(value: float | None, ratio: float) -> float | None:
    if value is None:
        return None
    return value * ratio


def narrow_cell(cell: DemandCell, retained: Iterable[TaskDemand]) -> DemandCell | None:
    """Rebuild a cell from a subset of its task breakdown.

    Returns None when nothing is retained. Monetary fields are scaled by the
    retained share of the cell's hours.
    """

    tasks = tuple(retained)
    if not tasks:
        return None

    demand_hours = sum(task.monthly_hours for task in tasks)
    if demand_hours <= 0:
        return None

    if len(tasks) == len(cell.task_breakdown or ()):
        ratio = 1.0
    elif cell.demand_hours:
        ratio = demand_hours / cell.demand_hours
    else:
        ratio = 0.0

    return replace(
        cell,
        task_breakdown=tasks,
        demand_hours=demand_hours,
        task_count=len(tasks),
        client_count=len({task.client_id for task in tasks}),
        revenue=_scaled(cell.revenue, ratio),
        suggested_revenue=_scaled(cell.suggested_revenue, ratio),
        expected_less_suggested=_scaled(cell.expected_less_suggested, ratio),
    )
