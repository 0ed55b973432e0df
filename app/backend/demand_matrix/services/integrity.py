"""Consistency checks between a matrix's cells and its aggregates."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from demand_matrix.models.matrix import DemandMatrix

_TOLERANCE = 1e-6


def _close(left: float, right: float) -> bool:
    return math.isclose(left, right, rel_tol=_TOLERANCE, abs_tol=_TOLERANCE)


@dataclass(slots=True)
class IntegrityReport:
    demand_hours_consistent: bool = True
    task_count_consistent: bool = True
    client_count_consistent: bool = True
    skills_consistent: bool = True
    months_consistent: bool = True
    cells_consistent: bool = True
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def check_matrix_integrity(matrix: DemandMatrix) -> IntegrityReport:
    """Verify the matrix invariants; never raises on inconsistent data."""

    report = IntegrityReport()
    cells = matrix.data_points

    demand = sum(cell.demand_hours for cell in cells)
    if not _close(matrix.total_demand, demand):
        report.demand_hours_consistent = False
        report.errors.append(f"total_demand {matrix.total_demand} != sum of cell hours {demand}")

    tasks = sum(cell.task_count for cell in cells)
    if matrix.total_tasks != tasks:
        report.task_count_consistent = False
        report.errors.append(f"total_tasks {matrix.total_tasks} != sum of cell task counts {tasks}")

    clients = {task.client_id for cell in cells for task in cell.task_breakdown or ()}
    if matrix.total_clients != len(clients):
        report.client_count_consistent = False
        report.errors.append(f"total_clients {matrix.total_clients} != distinct clients {len(clients)}")

    skills = tuple(sorted({cell.skill_type for cell in cells}))
    if tuple(matrix.skills) != skills or set(matrix.skill_summary) != set(skills):
        report.skills_consistent = False
        report.errors.append(f"skills {list(matrix.skills)} do not match cell skills {list(skills)}")

    month_keys = {month.key for month in matrix.months}
    stray = sorted({cell.month for cell in cells if cell.month not in month_keys})
    if stray:
        report.months_consistent = False
        report.errors.append(f"cells reference months outside the axis: {stray}")

    for cell in cells:
        if cell.task_breakdown is None:
            continue
        hours = sum(task.monthly_hours for task in cell.task_breakdown)
        if not _close(cell.demand_hours, hours) or cell.task_count != len(cell.task_breakdown):
            report.cells_consistent = False
            report.errors.append(f"cell {cell.skill_type}/{cell.month} does not match its task breakdown")

    return report
