"""Filter strategies that narrow a demand matrix.

Each strategy is a plain record of functions. Skill and time-horizon filters
keep or drop whole cells; client and preferred-staff filters narrow each
cell's task breakdown first and drop cells left without tasks.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from demand_matrix.models.matrix import DemandCell, DemandMatrix, FilterSelection, TaskDemand, parse_month_key
from demand_matrix.services.aggregates import narrow_cell, with_cells
from demand_matrix.services.staff_ids import is_staff_id_in_set, normalize_staff_ids

logger = logging.getLogger(__name__)

SKILL_FILTER = "SkillFilter"
CLIENT_FILTER = "ClientFilter"
TIME_HORIZON_FILTER = "TimeHorizonFilter"
PREFERRED_STAFF_FILTER = "PreferredStaffFilter"


@dataclass(frozen=True, slots=True)
class FilterStrategy:
    """Named, prioritized filtering step.

    ``apply`` is only invoked when ``should_apply`` holds for the selection.
    ``selection_key`` fingerprints the selection fields the strategy reads.
    """

    name: str
    priority: int
    should_apply: Callable[[FilterSelection], bool]
    apply: Callable[[DemandMatrix, FilterSelection], DemandMatrix]
    selection_key: Callable[[FilterSelection], str]


def _sorted_key(values: Iterable[str]) -> str:
    return json.dumps(sorted(values))


def _narrow_by_task(
    matrix: DemandMatrix,
    admits: Callable[[TaskDemand], bool],
) -> list[DemandCell]:
    cells: list[DemandCell] = []
    for cell in matrix.data_points:
        if not cell.task_breakdown:
            continue
        narrowed = narrow_cell(cell, (task for task in cell.task_breakdown if admits(task)))
        if narrowed is not None:
            cells.append(narrowed)
    return cells


# ---------- Skill ----------
def _apply_skill_filter(matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
    cells = [cell for cell in matrix.data_points if cell.skill_type in selection.skills]
    logger.debug("Skill filter kept %d of %d cells", len(cells), matrix.cell_count)
    return with_cells(matrix, cells)


def skill_filter() -> FilterStrategy:
    return FilterStrategy(
        name=SKILL_FILTER,
        priority=1,
        should_apply=lambda selection: bool(selection.skills),
        apply=_apply_skill_filter,
        selection_key=lambda selection: _sorted_key(selection.skills),
    )


# ---------- Client ----------
def _apply_client_filter(matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
    clients = selection.clients
    cells = _narrow_by_task(matrix, lambda task: task.client_id in clients)
    logger.debug("Client filter kept %d of %d cells", len(cells), matrix.cell_count)
    return with_cells(matrix, cells)


def client_filter() -> FilterStrategy:
    return FilterStrategy(
        name=CLIENT_FILTER,
        priority=2,
        should_apply=lambda selection: bool(selection.clients),
        apply=_apply_client_filter,
        selection_key=lambda selection: _sorted_key(selection.clients),
    )


# ---------- Time horizon ----------
def _apply_time_horizon_filter(matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
    horizon = selection.time_horizon
    if horizon is None:
        return matrix
    if not horizon.is_valid:
        logger.warning(
            "Time horizon start %s is after end %s; returning empty result",
            horizon.start_date.isoformat(),
            horizon.end_date.isoformat(),
        )
        return DemandMatrix.empty_like(matrix)

    def in_horizon(month_key: str) -> bool:
        month_start = parse_month_key(month_key)
        return month_start is not None and horizon.contains(month_start)

    months = [month for month in matrix.months if in_horizon(month.key)]
    cells = [cell for cell in matrix.data_points if in_horizon(cell.month)]
    logger.debug("Time horizon filter kept %d of %d cells", len(cells), matrix.cell_count)
    return with_cells(matrix, cells, months=months)


def _time_horizon_key(selection: FilterSelection) -> str:
    horizon = selection.time_horizon
    if horizon is None:
        return ""
    return f"{horizon.start_date.isoformat()}..{horizon.end_date.isoformat()}"


def time_horizon_filter() -> FilterStrategy:
    return FilterStrategy(
        name=TIME_HORIZON_FILTER,
        priority=3,
        should_apply=lambda selection: selection.time_horizon is not None,
        apply=_apply_time_horizon_filter,
        selection_key=_time_horizon_key,
    )


# ---------- Preferred staff ----------
def _apply_preferred_staff_filter(matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
    lookup = normalize_staff_ids(selection.preferred_staff)
    if not lookup:
        logger.warning(
            "None of %d preferred staff ids could be normalized; returning empty result",
            len(selection.preferred_staff),
        )
        return DemandMatrix.empty_like(matrix)

    cells = _narrow_by_task(matrix, lambda task: is_staff_id_in_set(task.preferred_staff_id, lookup))
    logger.debug(
        "Preferred staff filter kept %d of %d cells for %d staff ids",
        len(cells),
        matrix.cell_count,
        len(lookup),
    )
    return with_cells(matrix, cells)


def preferred_staff_filter() -> FilterStrategy:
    return FilterStrategy(
        name=PREFERRED_STAFF_FILTER,
        priority=4,
        should_apply=lambda selection: bool(selection.preferred_staff),
        apply=_apply_preferred_staff_filter,
        selection_key=lambda selection: _sorted_key(normalize_staff_ids(selection.preferred_staff)),
    )


def default_strategies() -> list[FilterStrategy]:
    """Built-in strategies in registration order."""

    return [skill_filter(), client_filter(), time_horizon_filter(), preferred_staff_filter()]
