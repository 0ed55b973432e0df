"""Application service exposing the filtering pipeline to the API layer."""

from __future__ import annotations

import logging
from dataclasses import asdict
from enum import Enum
from typing import Any

from fastapi import HTTPException, status

from demand_matrix.core.config import Settings, get_settings
from demand_matrix.models.matrix import DemandCell, DemandMatrix, FilterSelection, TaskDemand
from demand_matrix.services.diagnostics import ZeroResultReport, explain_zero_result
from demand_matrix.services.integrity import IntegrityReport, check_matrix_integrity
from demand_matrix.services.monitor import FilterPerformanceMonitor, PerformanceAlert, PerformanceSummary
from demand_matrix.services.pipeline import FilterPipeline, StrategyExecutionError
from demand_matrix.services.result_cache import CacheStats, FilterResultCache

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


def build_pipeline(settings: Settings | None = None) -> FilterPipeline:
    """Create the per-application pipeline with its cache and monitor."""

    settings = settings or get_settings()
    cache = None
    if settings.filter_cache_enabled:
        cache = FilterResultCache(
            max_entries=settings.filter_cache_max_entries,
            ttl_seconds=settings.filter_cache_ttl_seconds,
        )
    monitor = FilterPerformanceMonitor.from_settings(settings, cache=cache)
    return FilterPipeline(monitor=monitor, cache=cache)


class DemandFilteringService:
    """Service wrapping filter execution, diagnostics and telemetry."""

    def __init__(self, pipeline: FilterPipeline) -> None:
        self.pipeline = pipeline

    # ---------- Serialization ----------
    @staticmethod
    def serialize_task(task: TaskDemand) -> dict[str, object]:
        return {
            "task_id": task.task_id,
            "task_name": task.task_name,
            "client_id": task.client_id,
            "client_name": task.client_name,
            "skill_type": task.skill_type,
            "monthly_hours": task.monthly_hours,
            "recurrence_pattern": task.recurrence_pattern,
            "preferred_staff_id": None if task.preferred_staff_id is None else str(task.preferred_staff_id),
            "preferred_staff_name": task.preferred_staff_name,
        }

    @classmethod
    def serialize_cell(cls, cell: DemandCell) -> dict[str, object]:
        return {
            "skill_type": cell.skill_type,
            "month": cell.month,
            "month_label": cell.month_label,
            "demand_hours": cell.demand_hours,
            "task_count": cell.task_count,
            "client_count": cell.client_count,
            "task_breakdown": (
                None if cell.task_breakdown is None else [cls.serialize_task(task) for task in cell.task_breakdown]
            ),
            "revenue": cell.revenue,
            "suggested_revenue": cell.suggested_revenue,
            "expected_less_suggested": cell.expected_less_suggested,
        }

    @classmethod
    def serialize_matrix(cls, matrix: DemandMatrix) -> dict[str, object]:
        return {
            "months": [{"key": month.key, "label": month.label} for month in matrix.months],
            "skills": list(matrix.skills),
            "data_points": [cls.serialize_cell(cell) for cell in matrix.data_points],
            "total_demand": matrix.total_demand,
            "total_tasks": matrix.total_tasks,
            "total_clients": matrix.total_clients,
            "skill_summary": {skill: asdict(summary) for skill, summary in matrix.skill_summary.items()},
        }

    @staticmethod
    def serialize_alert(alert: PerformanceAlert) -> dict[str, object]:
        return _plain(asdict(alert))

    @classmethod
    def serialize_summary(cls, summary: PerformanceSummary) -> dict[str, object]:
        return {
            "filter_name": summary.filter_name,
            "executions": summary.executions,
            "average_time_ms": summary.average_time_ms,
            "average_retention": summary.average_retention,
            "total_cells_processed": summary.total_cells_processed,
            "grade": summary.grade,
            "recent_alerts": [cls.serialize_alert(alert) for alert in summary.recent_alerts],
        }

    @staticmethod
    def serialize_cache_stats(stats: CacheStats | None) -> dict[str, object] | None:
        if stats is None:
            return None
        return {**asdict(stats), "hit_rate": stats.hit_rate}

    @staticmethod
    def serialize_zero_result(report: ZeroResultReport) -> dict[str, object]:
        payload = _plain(asdict(report))
        payload["requested_ids"] = [None if value is None else str(value) for value in report.requested_ids]
        return payload

    @staticmethod
    def serialize_integrity(report: IntegrityReport) -> dict[str, object]:
        return {**asdict(report), "is_valid": report.is_valid}

    # ---------- Filtering ----------
    def filter_matrix(self, *, matrix: DemandMatrix, selection: FilterSelection) -> dict[str, object]:
        applied = self.pipeline.active_filter_names(selection)
        try:
            result = self.pipeline.apply_all(matrix, selection)
        except StrategyExecutionError as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={
                    "message": "Demand matrix filtering failed.",
                    "strategy": exc.strategy_name,
                    "priority": exc.priority,
                    "stage_index": exc.stage_index,
                },
            ) from exc

        return {
            "applied_filters": applied,
            "matrix": self.serialize_matrix(result),
        }

    def active_filters(self, *, selection: FilterSelection) -> dict[str, object]:
        return {
            "active_filters": self.pipeline.active_filter_names(selection),
            "has_active_filters": self.pipeline.has_active_filters(selection),
        }

    # ---------- Diagnostics ----------
    def zero_result_report(self, *, matrix: DemandMatrix, selection: FilterSelection) -> dict[str, object]:
        return self.serialize_zero_result(explain_zero_result(matrix, selection))

    def integrity_report(self, *, matrix: DemandMatrix) -> dict[str, object]:
        return self.serialize_integrity(check_matrix_integrity(matrix))

    def _require_monitor(self) -> FilterPerformanceMonitor:
        if self.pipeline.monitor is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Filter performance monitoring is not enabled.",
            )
        return self.pipeline.monitor

    def performance_summary(self, *, filter_name: str | None = None) -> dict[str, object]:
        return self.serialize_summary(self._require_monitor().summarize(filter_name))

    def performance_dashboard(self) -> dict[str, object]:
        dashboard = self._require_monitor().dashboard()
        return {
            **dashboard,
            "recent_alerts": [self.serialize_alert(alert) for alert in dashboard["recent_alerts"]],
            "cache": self.serialize_cache_stats(dashboard["cache"]),
        }

    def clear_performance_data(self) -> None:
        self._require_monitor().clear()
        if self.pipeline.cache is not None:
            self.pipeline.cache.clear()
        logger.info("Filter telemetry reset")
