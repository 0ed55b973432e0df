"""Performance monitoring for filter strategy executions."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum

from demand_matrix.core.config import Settings
from demand_matrix.services.result_cache import FilterResultCache

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    SLOW_EXECUTION = "slow_execution"
    LOW_RETENTION = "low_retention"
    LOW_CACHE_HIT_RATE = "low_cache_hit_rate"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class MonitorThresholds:
    slow_execution_ms: float = 200.0
    low_retention: float = 0.1
    low_cache_hit_rate: float = 0.5
    cache_min_lookups: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> MonitorThresholds:
        return cls(
            slow_execution_ms=settings.slow_filter_threshold_ms,
            low_retention=settings.low_retention_threshold,
            low_cache_hit_rate=settings.low_cache_hit_rate_threshold,
            cache_min_lookups=settings.cache_hit_rate_min_lookups,
        )


@dataclass(frozen=True, slots=True)
class FilterMetrics:
    filter_name: str
    execution_time_ms: float
    cells_in: int
    cells_out: int
    timestamp: float = field(default_factory=time.time)
    cache_hit: bool = False

    @property
    def retention(self) -> float:
        """Share of input cells kept by the stage."""

        if self.cells_in == 0:
            return 1.0
        return self.cells_out / self.cells_in


@dataclass(frozen=True, slots=True)
class PerformanceAlert:
    type: AlertType
    severity: AlertSeverity
    filter_name: str
    message: str
    timestamp: float
    value: float
    threshold: float


@dataclass(frozen=True, slots=True)
class PerformanceSummary:
    filter_name: str | None
    executions: int
    average_time_ms: float
    average_retention: float
    total_cells_processed: int
    grade: str
    recent_alerts: tuple[PerformanceAlert, ...]


class FilterPerformanceMonitor:
    """Bounded history of filter timings with threshold alerting.

    Alerts are observational; nothing here changes a filtering result.
    Create one per application and call ``clear`` to reset it.
    """

    def __init__(
        self,
        *,
        thresholds: MonitorThresholds | None = None,
        history_size: int = 1000,
        alert_history_size: int = 100,
        cache: FilterResultCache | None = None,
    ) -> None:
        self.thresholds = thresholds or MonitorThresholds()
        self.cache = cache
        self._metrics: deque[FilterMetrics] = deque(maxlen=history_size)
        self._alerts: deque[PerformanceAlert] = deque(maxlen=alert_history_size)

    @classmethod
    def from_settings(cls, settings: Settings, *, cache: FilterResultCache | None = None) -> FilterPerformanceMonitor:
        return cls(
            thresholds=MonitorThresholds.from_settings(settings),
            history_size=settings.monitor_history_size,
            alert_history_size=settings.monitor_alert_history_size,
            cache=cache,
        )

    @property
    def metrics(self) -> tuple[FilterMetrics, ...]:
        return tuple(self._metrics)

    @property
    def alerts(self) -> tuple[PerformanceAlert, ...]:
        return tuple(self._alerts)

    def record(self, metrics: FilterMetrics) -> list[PerformanceAlert]:
        """Store one execution and return any alerts it raised."""

        self._metrics.append(metrics)
        logger.debug(
            "%s took %.2fms, kept %d/%d cells%s",
            metrics.filter_name,
            metrics.execution_time_ms,
            metrics.cells_out,
            metrics.cells_in,
            " (cached)" if metrics.cache_hit else "",
        )
        raised = self._check_thresholds(metrics)
        for alert in raised:
            self._alerts.append(alert)
            logger.warning("[%s] %s", alert.severity.value.upper(), alert.message)
        return raised

    def _check_thresholds(self, metrics: FilterMetrics) -> list[PerformanceAlert]:
        limits = self.thresholds
        raised: list[PerformanceAlert] = []

        if metrics.execution_time_ms > limits.slow_execution_ms:
            raised.append(
                PerformanceAlert(
                    type=AlertType.SLOW_EXECUTION,
                    severity=(
                        AlertSeverity.HIGH
                        if metrics.execution_time_ms > limits.slow_execution_ms * 2
                        else AlertSeverity.MEDIUM
                    ),
                    filter_name=metrics.filter_name,
                    message=(
                        f"Filter {metrics.filter_name} took {metrics.execution_time_ms:.2f}ms "
                        f"(threshold: {limits.slow_execution_ms:g}ms)"
                    ),
                    timestamp=metrics.timestamp,
                    value=metrics.execution_time_ms,
                    threshold=limits.slow_execution_ms,
                )
            )

        if metrics.cells_in > 0 and metrics.retention < limits.low_retention:
            raised.append(
                PerformanceAlert(
                    type=AlertType.LOW_RETENTION,
                    severity=AlertSeverity.LOW,
                    filter_name=metrics.filter_name,
                    message=(
                        f"Filter {metrics.filter_name} retained {metrics.retention * 100:.1f}% of cells "
                        f"(threshold: {limits.low_retention * 100:g}%)"
                    ),
                    timestamp=metrics.timestamp,
                    value=metrics.retention,
                    threshold=limits.low_retention,
                )
            )

        if self.cache is not None:
            stats = self.cache.stats()
            if stats.lookups >= limits.cache_min_lookups and stats.hit_rate < limits.low_cache_hit_rate:
                raised.append(
                    PerformanceAlert(
                        type=AlertType.LOW_CACHE_HIT_RATE,
                        severity=AlertSeverity.MEDIUM,
                        filter_name=metrics.filter_name,
                        message=(
                            f"Filter cache hit rate is {stats.hit_rate * 100:.1f}% "
                            f"(threshold: {limits.low_cache_hit_rate * 100:g}%)"
                        ),
                        timestamp=metrics.timestamp,
                        value=stats.hit_rate,
                        threshold=limits.low_cache_hit_rate,
                    )
                )

        return raised

    def _grade(self, average_time_ms: float) -> str:
        slow = self.thresholds.slow_execution_ms
        if average_time_ms > slow * 2:
            return "F"
        if average_time_ms > slow:
            return "D"
        if average_time_ms > slow * 0.5:
            return "C"
        if average_time_ms > slow * 0.25:
            return "B"
        return "A"

    def summarize(self, filter_name: str | None = None) -> PerformanceSummary:
        """Aggregate view over recorded executions, optionally for one filter."""

        rows = [m for m in self._metrics if filter_name is None or m.filter_name == filter_name]
        alerts = tuple(a for a in self._alerts if filter_name is None or a.filter_name == filter_name)

        if not rows:
            return PerformanceSummary(
                filter_name=filter_name,
                executions=0,
                average_time_ms=0.0,
                average_retention=0.0,
                total_cells_processed=0,
                grade="F",
                recent_alerts=(),
            )

        executions = len(rows)
        average_time_ms = sum(m.execution_time_ms for m in rows) / executions
        return PerformanceSummary(
            filter_name=filter_name,
            executions=executions,
            average_time_ms=average_time_ms,
            average_retention=sum(m.retention for m in rows) / executions,
            total_cells_processed=sum(m.cells_in for m in rows),
            grade=self._grade(average_time_ms),
            recent_alerts=alerts[-10:],
        )

    def dashboard(self) -> dict[str, object]:
        """Cross-filter overview for operational tooling."""

        names = list(dict.fromkeys(m.filter_name for m in self._metrics))
        summaries = {name: self.summarize(name) for name in names}
        overall = self.summarize()
        return {
            "total_filters_monitored": len(names),
            "total_executions": overall.executions,
            "overall_average_time_ms": overall.average_time_ms,
            "recent_alerts": list(self._alerts)[-10:],
            "top_performing_filters": [name for name, s in summaries.items() if s.grade in {"A", "B"}],
            "underperforming_filters": [name for name, s in summaries.items() if s.grade in {"D", "F"}],
            "cache": self.cache.stats() if self.cache is not None else None,
        }

    def export(self) -> dict[str, object]:
        return {
            "metrics": [asdict(m) for m in self._metrics],
            "alerts": [asdict(a) for a in self._alerts],
            "exported_at": time.time(),
        }

    def clear(self) -> None:
        self._metrics.clear()
        self._alerts.clear()
        logger.info("Filter performance data cleared")
