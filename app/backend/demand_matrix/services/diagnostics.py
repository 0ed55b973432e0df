"""Explanations for empty preferred-staff filter results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from demand_matrix.models.matrix import DemandMatrix, FilterSelection, StaffIdentifier
from demand_matrix.services.staff_ids import find_staff_id_matches, normalize_staff_id, normalize_staff_ids


class ZeroResultReason(str, Enum):
    NO_STAFF_FILTER = "no_staff_filter"
    FILTER_IDS_UNREPRESENTABLE = "filter_ids_unrepresentable"
    NO_TASK_CARRIES_IDS = "no_task_carries_ids"
    EXCLUDED_BY_OTHER_FILTERS = "excluded_by_other_filters"


@dataclass(frozen=True, slots=True)
class ZeroResultReport:
    reason: ZeroResultReason
    message: str
    requested_ids: tuple[StaffIdentifier, ...]
    normalized_ids: tuple[str, ...]
    available_ids: tuple[str, ...]
    overlapping_ids: tuple[str, ...]
    tasks_with_preference: int
    total_tasks: int


def explain_zero_result(original: DemandMatrix, selection: FilterSelection) -> ZeroResultReport:
    """Compare requested staff ids with the ids carried by the unfiltered matrix."""

    requested = selection.preferred_staff
    normalized = normalize_staff_ids(requested)

    carried: list[StaffIdentifier] = []
    total_tasks = 0
    for cell in original.data_points:
        for task in cell.task_breakdown or ():
            total_tasks += 1
            if normalize_staff_id(task.preferred_staff_id) is not None:
                carried.append(task.preferred_staff_id)
    available = normalize_staff_ids(carried)
    overlap = find_staff_id_matches(normalized, available)

    if not requested:
        reason = ZeroResultReason.NO_STAFF_FILTER
        message = "No preferred staff filter was requested."
    elif not normalized:
        reason = ZeroResultReason.FILTER_IDS_UNREPRESENTABLE
        message = f"Filter ids {list(requested)!r} normalize to an empty set."
    elif not overlap.matches:
        reason = ZeroResultReason.NO_TASK_CARRIES_IDS
        message = (
            f"No task carries any of the requested ids; {len(available)} distinct preferred "
            f"staff ids exist across {total_tasks} tasks."
        )
    else:
        reason = ZeroResultReason.EXCLUDED_BY_OTHER_FILTERS
        message = (
            f"{overlap.total_matches} overlapping ids exist but their tasks were excluded "
            "by another filter."
        )

    return ZeroResultReport(
        reason=reason,
        message=message,
        requested_ids=tuple(requested),
        normalized_ids=tuple(sorted(normalized)),
        available_ids=tuple(sorted(available)),
        overlapping_ids=overlap.matches,
        tasks_with_preference=len(carried),
        total_tasks=total_tasks,
    )
