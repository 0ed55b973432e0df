"""Ordered execution of filter strategies over a demand matrix."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence

from demand_matrix.models.matrix import DemandMatrix, FilterSelection
from demand_matrix.services.monitor import FilterMetrics, FilterPerformanceMonitor
from demand_matrix.services.result_cache import FilterResultCache, matrix_fingerprint
from demand_matrix.services.strategies import FilterStrategy, default_strategies

logger = logging.getLogger(__name__)


class MatrixFilteringError(Exception):
    """Base error for the filtering pipeline."""


class StrategyExecutionError(MatrixFilteringError):
    """A strategy raised while narrowing the matrix."""

    def __init__(self, *, strategy_name: str, priority: int, stage_index: int, cause: Exception) -> None:
        super().__init__(
            f"Filter strategy {strategy_name!r} (priority {priority}, stage {stage_index}) failed: {cause}"
        )
        self.strategy_name = strategy_name
        self.priority = priority
        self.stage_index = stage_index
        self.cause = cause


def sort_strategies(strategies: Iterable[FilterStrategy]) -> list[FilterStrategy]:
    # sorted() is stable, so equal priorities keep registration order.
    return sorted(strategies, key=lambda strategy: strategy.priority)


def _run_stage(
    strategy: FilterStrategy,
    stage_index: int,
    matrix: DemandMatrix,
    selection: FilterSelection,
    *,
    monitor: FilterPerformanceMonitor | None,
    cache: FilterResultCache | None,
) -> DemandMatrix:
    started = time.perf_counter()
    key = None
    result = None
    if cache is not None:
        key = (strategy.name, matrix_fingerprint(matrix), strategy.selection_key(selection))
        result = cache.get(key)
    cache_hit = result is not None

    if result is None:
        # Only faults raised by the strategy are wrapped.
        try:
            result = strategy.apply(matrix, selection)
        except Exception as exc:
            logger.error(
                "Filter strategy %s failed at stage %d",
                strategy.name,
                stage_index,
                exc_info=True,
            )
            raise StrategyExecutionError(
                strategy_name=strategy.name,
                priority=strategy.priority,
                stage_index=stage_index,
                cause=exc,
            ) from exc
        if cache is not None and key is not None:
            cache.set(key, result)

    if monitor is not None:
        monitor.record(
            FilterMetrics(
                filter_name=strategy.name,
                execution_time_ms=(time.perf_counter() - started) * 1000,
                cells_in=matrix.cell_count,
                cells_out=result.cell_count,
                cache_hit=cache_hit,
            )
        )
    return result


def apply_all(
    matrix: DemandMatrix,
    selection: FilterSelection,
    strategies: Iterable[FilterStrategy],
    *,
    monitor: FilterPerformanceMonitor | None = None,
    cache: FilterResultCache | None = None,
) -> DemandMatrix:
    """Thread ``matrix`` through every applicable strategy in priority order.

    Strategies whose ``should_apply`` is false are never invoked, so an empty
    selection returns ``matrix`` itself.
    """

    current = matrix
    for stage_index, strategy in enumerate(sort_strategies(strategies)):
        if not strategy.should_apply(selection):
            continue
        current = _run_stage(strategy, stage_index, current, selection, monitor=monitor, cache=cache)
    return current


class FilterPipeline:
    """Registry of filter strategies plus the optional monitor and cache."""

    def __init__(
        self,
        strategies: Iterable[FilterStrategy] | None = None,
        *,
        monitor: FilterPerformanceMonitor | None = None,
        cache: FilterResultCache | None = None,
    ) -> None:
        self.monitor = monitor
        self.cache = cache
        self._registry: dict[str, FilterStrategy] = {}
        for strategy in default_strategies() if strategies is None else strategies:
            self.register(strategy)

    def register(self, strategy: FilterStrategy) -> None:
        """Add a strategy; a later registration under the same name replaces it."""

        if strategy.name in self._registry:
            logger.info("Replacing filter strategy %s", strategy.name)
            del self._registry[strategy.name]
        self._registry[strategy.name] = strategy

    def unregister(self, name: str) -> None:
        self._registry.pop(name, None)

    @property
    def strategies(self) -> Sequence[FilterStrategy]:
        return tuple(sort_strategies(self._registry.values()))

    def active_filter_names(self, selection: FilterSelection) -> list[str]:
        return [strategy.name for strategy in self.strategies if strategy.should_apply(selection)]

    def has_active_filters(self, selection: FilterSelection) -> bool:
        return any(strategy.should_apply(selection) for strategy in self._registry.values())

    def apply_all(self, matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
        active = self.active_filter_names(selection)
        if not active:
            return matrix

        logger.debug("Applying filters %s to %d cells", ", ".join(active), matrix.cell_count)
        result = apply_all(matrix, selection, self.strategies, monitor=self.monitor, cache=self.cache)
        logger.debug("Filtering kept %d of %d cells", result.cell_count, matrix.cell_count)
        return result
