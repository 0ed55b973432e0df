"""Demand matrix value objects."""

from demand_matrix.models.matrix import (
    DemandCell,
    DemandMatrix,
    FilterSelection,
    MonthColumn,
    SkillSummary,
    StaffIdentifier,
    TaskDemand,
    TimeHorizon,
)

__all__ = [
    "DemandCell",
    "DemandMatrix",
    "FilterSelection",
    "MonthColumn",
    "SkillSummary",
    "StaffIdentifier",
    "TaskDemand",
    "TimeHorizon",
]
