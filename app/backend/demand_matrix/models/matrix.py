"""Value objects for the skill x month demand matrix and filter selections."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from uuid import UUID

# Staff identifiers arrive as UUIDs, numeric ids or numeric strings.
StaffIdentifier = str | int | float | UUID | None


def parse_month_key(key: str) -> date | None:
    """Return the first day of a ``YYYY-MM`` period key, or None when malformed."""

    try:
        year_text, month_text = key.strip().split("-")[:2]
        return date(int(year_text), int(month_text), 1)
    except (AttributeError, ValueError):
        return None


def month_sequence(start_month: date, end_month: date) -> list[date]:
    current = date(start_month.year, start_month.month, 1)
    end = date(end_month.year, end_month.month, 1)
    months: list[date] = []
    while current <= end:
        months.append(current)
        if current.month == 12:
            current = date(current.year + 1, 1, 1)
        else:
            current = date(current.year, current.month + 1, 1)
    return months


@dataclass(frozen=True, slots=True)
class MonthColumn:
    key: str
    label: str


def month_columns(start_month: date, end_month: date) -> tuple[MonthColumn, ...]:
    """Build the chronological month axis between two dates, inclusive."""

    return tuple(
        MonthColumn(key=month.strftime("%Y-%m"), label=month.strftime("%b %Y"))
        for month in month_sequence(start_month, end_month)
    )


@dataclass(frozen=True, slots=True)
class TaskDemand:
    """One recurring task's hour contribution to a single matrix cell."""

    task_id: str
    task_name: str
    client_id: str
    client_name: str
    skill_type: str
    monthly_hours: float
    recurrence_pattern: object = None
    preferred_staff_id: StaffIdentifier = None
    preferred_staff_name: str | None = None


@dataclass(frozen=True, slots=True)
class DemandCell:
    """One (skill, month) slice of the matrix.

    ``task_breakdown`` is None when the matrix builder did not load the
    contributing tasks; such cells carry hours but no client identities.
    """

    skill_type: str
    month: str
    month_label: str
    demand_hours: float
    task_count: int
    client_count: int
    task_breakdown: tuple[TaskDemand, ...] | None = None
    revenue: float | None = None
    suggested_revenue: float | None = None
    expected_less_suggested: float | None = None

    @property
    def month_start(self) -> date | None:
        return parse_month_key(self.month)


@dataclass(frozen=True, slots=True)
class SkillSummary:
    total_hours: float = 0.0
    task_count: int = 0
    client_count: int = 0
    total_revenue: float = 0.0
    total_suggested_revenue: float = 0.0
    total_expected_less_suggested: float = 0.0
    average_fee_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class DemandMatrix:
    """Skill x month demand grid with rollup aggregates.

    Instances are never mutated; every filtering stage builds a new matrix.
    """

    months: tuple[MonthColumn, ...]
    skills: tuple[str, ...]
    data_points: tuple[DemandCell, ...]
    total_demand: float
    total_tasks: int
    total_clients: int
    skill_summary: Mapping[str, SkillSummary]

    @classmethod
    def from_cells(cls, months: Iterable[MonthColumn], cells: Iterable[DemandCell]) -> DemandMatrix:
        """Build a matrix whose aggregates are derived from ``cells``."""

        from demand_matrix.services.aggregates import recompute_aggregates

        aggregates = recompute_aggregates(cells)
        return cls(
            months=tuple(months),
            skills=aggregates.skills,
            data_points=aggregates.data_points,
            total_demand=aggregates.total_demand,
            total_tasks=aggregates.total_tasks,
            total_clients=aggregates.total_clients,
            skill_summary=MappingProxyType(aggregates.skill_summary),
        )

    @classmethod
    def empty_like(cls, matrix: DemandMatrix) -> DemandMatrix:
        """Explicit empty result: same month axis, no cells, zero aggregates."""

        return cls(
            months=matrix.months,
            skills=(),
            data_points=(),
            total_demand=0.0,
            total_tasks=0,
            total_clients=0,
            skill_summary=MappingProxyType({}),
        )

    @property
    def cell_count(self) -> int:
        return len(self.data_points)


@dataclass(frozen=True, slots=True)
class TimeHorizon:
    start: date | datetime
    end: date | datetime

    @staticmethod
    def _as_date(value: date | datetime) -> date:
        if isinstance(value, datetime):
            return value.date()
        return value

    @property
    def start_date(self) -> date:
        return self._as_date(self.start)

    @property
    def end_date(self) -> date:
        return self._as_date(self.end)

    @property
    def is_valid(self) -> bool:
        return self.start_date <= self.end_date

    def contains(self, month_start: date) -> bool:
        return self.start_date <= month_start <= self.end_date


@dataclass(frozen=True, slots=True)
class FilterSelection:
    """User-selected filters. Empty fields mean "no restriction"."""

    skills: frozenset[str] = field(default_factory=frozenset)
    clients: frozenset[str] = field(default_factory=frozenset)
    preferred_staff: tuple[StaffIdentifier, ...] = ()
    time_horizon: TimeHorizon | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "skills", frozenset(self.skills or ()))
        object.__setattr__(self, "clients", frozenset(self.clients or ()))
        object.__setattr__(self, "preferred_staff", tuple(self.preferred_staff or ()))

    @property
    def is_empty(self) -> bool:
        return (
            not self.skills
            and not self.clients
            and not self.preferred_staff
            and self.time_horizon is None
        )
