from __future__ import annotations

from datetime import date

import pytest

from demand_matrix.models.matrix import DemandMatrix, FilterSelection, TimeHorizon
from demand_matrix.services.aggregates import with_cells
from demand_matrix.services.integrity import check_matrix_integrity
from demand_matrix.services.monitor import FilterMetrics, FilterPerformanceMonitor, PerformanceAlert
from demand_matrix.services.pipeline import FilterPipeline, StrategyExecutionError, apply_all
from demand_matrix.services.result_cache import CacheKey, FilterResultCache
from demand_matrix.services.strategies import FilterStrategy, default_strategies, skill_filter


def _recording_strategy(name: str, priority: int, calls: list[str], *, applies: bool = True) -> FilterStrategy:
    def apply(matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
        calls.append(name)
        return matrix

    return FilterStrategy(
        name=name,
        priority=priority,
        should_apply=lambda selection: applies,
        apply=apply,
        selection_key=lambda selection: "",
    )


def _full_selection() -> FilterSelection:
    return FilterSelection(
        skills={"Tax", "Audit"},
        clients={"c1", "c2"},
        preferred_staff=["STAFF-1", "Staff-2"],
        time_horizon=TimeHorizon(start=date(2024, 1, 1), end=date(2024, 2, 29)),
    )


def test_empty_selection_returns_input_matrix(sample_matrix: DemandMatrix) -> None:
    pipeline = FilterPipeline()

    assert pipeline.apply_all(sample_matrix, FilterSelection()) is sample_matrix
    assert apply_all(sample_matrix, FilterSelection(), default_strategies()) is sample_matrix
    assert pipeline.has_active_filters(FilterSelection()) is False
    assert pipeline.active_filter_names(FilterSelection()) == []


def test_strategies_run_in_priority_order_with_stable_ties(sample_matrix: DemandMatrix) -> None:
    calls: list[str] = []
    strategies = [
        _recording_strategy("late", 5, calls),
        _recording_strategy("first-of-tie", 2, calls),
        _recording_strategy("early", 1, calls),
        _recording_strategy("second-of-tie", 2, calls),
    ]

    apply_all(sample_matrix, FilterSelection(), strategies)

    assert calls == ["early", "first-of-tie", "second-of-tie", "late"]


def test_skipped_strategies_are_never_invoked(sample_matrix: DemandMatrix) -> None:
    calls: list[str] = []
    strategies = [
        _recording_strategy("on", 1, calls),
        _recording_strategy("off", 2, calls, applies=False),
    ]

    apply_all(sample_matrix, FilterSelection(), strategies)

    assert calls == ["on"]


def test_every_stage_preserves_invariants_and_narrows(sample_matrix: DemandMatrix) -> None:
    selection = _full_selection()
    current = sample_matrix
    previous_count = current.cell_count

    for strategy in FilterPipeline().strategies:
        if not strategy.should_apply(selection):
            continue
        current = strategy.apply(current, selection)
        report = check_matrix_integrity(current)
        assert report.is_valid, report.errors
        assert current.cell_count <= previous_count
        previous_count = current.cell_count

    assert current == FilterPipeline().apply_all(sample_matrix, selection)


def test_combined_filters_result(sample_matrix: DemandMatrix) -> None:
    result = FilterPipeline().apply_all(sample_matrix, _full_selection())

    retained = sorted(
        (cell.skill_type, cell.month, task.task_id)
        for cell in result.data_points
        for task in cell.task_breakdown or ()
    )
    assert retained == [("Audit", "2024-01", "t4"), ("Tax", "2024-01", "t1"), ("Tax", "2024-02", "t1")]
    assert result.total_demand == pytest.approx(26)
    assert result.total_clients == 1
    assert [month.key for month in result.months] == ["2024-01", "2024-02"]


def test_active_filter_names_follow_priority() -> None:
    pipeline = FilterPipeline()
    selection = FilterSelection(preferred_staff=["x"], skills={"Tax"})

    assert pipeline.active_filter_names(selection) == ["SkillFilter", "PreferredStaffFilter"]
    assert pipeline.has_active_filters(selection) is True


def test_register_replaces_strategy_by_name(sample_matrix: DemandMatrix) -> None:
    calls: list[str] = []
    pipeline = FilterPipeline()
    replacement = _recording_strategy("SkillFilter", 1, calls)

    pipeline.register(replacement)

    assert [s.name for s in pipeline.strategies].count("SkillFilter") == 1
    pipeline.apply_all(sample_matrix, FilterSelection(skills={"Tax"}))
    assert calls == ["SkillFilter"]


def test_unregister_removes_strategy() -> None:
    pipeline = FilterPipeline()
    pipeline.unregister("ClientFilter")

    assert "ClientFilter" not in [s.name for s in pipeline.strategies]
    assert pipeline.has_active_filters(FilterSelection(clients={"c1"})) is False


def test_strategy_failure_is_propagated_with_context(sample_matrix: DemandMatrix) -> None:
    def explode(matrix: DemandMatrix, selection: FilterSelection) -> DemandMatrix:
        raise KeyError("taskBreakdown")

    broken = FilterStrategy(
        name="BrokenFilter",
        priority=2,
        should_apply=lambda selection: True,
        apply=explode,
        selection_key=lambda selection: "",
    )
    pipeline = FilterPipeline([skill_filter(), broken])

    with pytest.raises(StrategyExecutionError) as exc_info:
        pipeline.apply_all(sample_matrix, FilterSelection(skills={"Tax"}))

    error = exc_info.value
    assert error.strategy_name == "BrokenFilter"
    assert error.priority == 2
    assert error.stage_index == 1
    assert isinstance(error.__cause__, KeyError)


def test_pipeline_output_is_a_new_matrix(sample_matrix: DemandMatrix) -> None:
    snapshot = with_cells(sample_matrix, sample_matrix.data_points)

    result = FilterPipeline().apply_all(sample_matrix, FilterSelection(clients={"c1"}))

    assert result is not sample_matrix
    assert sample_matrix == snapshot


class _FailingMonitor(FilterPerformanceMonitor):
    def record(self, metrics: FilterMetrics) -> list[PerformanceAlert]:
        raise RuntimeError("metrics sink unavailable")


class _FailingCache(FilterResultCache):
    def get(self, key: CacheKey) -> DemandMatrix | None:
        raise RuntimeError("cache backend unavailable")


@pytest.mark.parametrize(
    "pipeline",
    [FilterPipeline(monitor=_FailingMonitor()), FilterPipeline(cache=_FailingCache())],
)
def test_telemetry_faults_are_not_blamed_on_strategies(
    pipeline: FilterPipeline, sample_matrix: DemandMatrix
) -> None:
    with pytest.raises(RuntimeError) as exc_info:
        pipeline.apply_all(sample_matrix, FilterSelection(skills={"Tax"}))

    assert not isinstance(exc_info.value, StrategyExecutionError)
