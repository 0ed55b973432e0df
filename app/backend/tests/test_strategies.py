from __future__ import annotations

from datetime import date, datetime

import pytest

from conftest import make_cell, make_task
from demand_matrix.models.matrix import DemandMatrix, FilterSelection, MonthColumn, TimeHorizon
from demand_matrix.services.integrity import check_matrix_integrity
from demand_matrix.services.strategies import (
    client_filter,
    default_strategies,
    preferred_staff_filter,
    skill_filter,
    time_horizon_filter,
)


def _tax_scenario() -> DemandMatrix:
    cell = make_cell(
        "Tax",
        "2024-01",
        [make_task("t1", "c1", 10, "STAFF-1"), make_task("t2", "c2", 5, None)],
    )
    return DemandMatrix.from_cells([MonthColumn(key="2024-01", label="Jan 2024")], [cell])


def test_default_strategies_priorities_and_names() -> None:
    strategies = default_strategies()

    assert [(s.name, s.priority) for s in strategies] == [
        ("SkillFilter", 1),
        ("ClientFilter", 2),
        ("TimeHorizonFilter", 3),
        ("PreferredStaffFilter", 4),
    ]


def test_should_apply_is_false_for_empty_fields() -> None:
    empty = FilterSelection()

    assert empty.is_empty
    assert all(not strategy.should_apply(empty) for strategy in default_strategies())
    assert FilterSelection(skills=["Tax"]).is_empty is False


def test_skill_filter_keeps_whole_cells(sample_matrix: DemandMatrix) -> None:
    result = skill_filter().apply(sample_matrix, FilterSelection(skills={"Audit", "Advisory"}))

    assert result.skills == ("Advisory", "Audit")
    assert result.cell_count == 3
    assert result.total_demand == pytest.approx(22)
    assert result.total_tasks == 4
    assert result.total_clients == 2
    assert check_matrix_integrity(result).is_valid


def test_client_filter_narrows_task_breakdowns(sample_matrix: DemandMatrix) -> None:
    result = client_filter().apply(sample_matrix, FilterSelection(clients={"c1"}))

    assert [(cell.skill_type, cell.month) for cell in result.data_points] == [
        ("Tax", "2024-01"),
        ("Tax", "2024-02"),
        ("Audit", "2024-01"),
    ]
    jan_tax = result.data_points[0]
    assert jan_tax.demand_hours == pytest.approx(10)
    assert jan_tax.task_count == 1
    assert jan_tax.client_count == 1
    assert result.total_clients == 1
    assert result.total_demand == pytest.approx(26)
    assert check_matrix_integrity(result).is_valid


def test_client_filter_scales_monetary_fields(sample_matrix: DemandMatrix) -> None:
    result = client_filter().apply(sample_matrix, FilterSelection(clients={"c2"}))

    jan_tax = next(cell for cell in result.data_points if cell.skill_type == "Tax")
    assert jan_tax.demand_hours == pytest.approx(5)
    assert jan_tax.suggested_revenue == pytest.approx(500)
    assert result.skill_summary["Tax"].total_suggested_revenue == pytest.approx(500)


def test_client_filter_drops_cells_without_breakdown(sample_matrix: DemandMatrix) -> None:
    result = client_filter().apply(sample_matrix, FilterSelection(clients={"c1", "c2", "c3"}))

    assert "Advisory" not in result.skills
    assert result.total_demand == pytest.approx(43)


def test_time_horizon_filter_is_inclusive_and_narrows_months(sample_matrix: DemandMatrix) -> None:
    selection = FilterSelection(time_horizon=TimeHorizon(start=date(2024, 2, 1), end=date(2024, 3, 1)))

    result = time_horizon_filter().apply(sample_matrix, selection)

    assert [month.key for month in result.months] == ["2024-02", "2024-03"]
    assert {cell.month for cell in result.data_points} == {"2024-02", "2024-03"}
    assert result.total_demand == pytest.approx(34)
    assert check_matrix_integrity(result).is_valid


def test_time_horizon_accepts_datetimes(sample_matrix: DemandMatrix) -> None:
    selection = FilterSelection(
        time_horizon=TimeHorizon(start=datetime(2024, 1, 1, 0, 0), end=datetime(2024, 1, 31, 23, 59))
    )

    result = time_horizon_filter().apply(sample_matrix, selection)

    assert {cell.month for cell in result.data_points} == {"2024-01"}


def test_time_horizon_with_start_after_end_is_empty(sample_matrix: DemandMatrix) -> None:
    selection = FilterSelection(time_horizon=TimeHorizon(start=date(2024, 3, 1), end=date(2024, 1, 1)))

    result = time_horizon_filter().apply(sample_matrix, selection)

    assert result.cell_count == 0
    assert result.total_demand == 0
    assert result.months == sample_matrix.months


def test_time_horizon_drops_malformed_month_keys() -> None:
    good = make_cell("Tax", "2024-01", [make_task("t1", "c1", 3)])
    bad = make_cell("Tax", "January", [make_task("t2", "c1", 4)])
    matrix = DemandMatrix.from_cells([MonthColumn(key="2024-01", label="Jan 2024")], [good, bad])

    result = time_horizon_filter().apply(
        matrix,
        FilterSelection(time_horizon=TimeHorizon(start=date(2000, 1, 1), end=date(2100, 1, 1))),
    )

    assert [cell.month for cell in result.data_points] == ["2024-01"]


def test_preferred_staff_matches_case_insensitively() -> None:
    result = preferred_staff_filter().apply(_tax_scenario(), FilterSelection(preferred_staff=["staff-1"]))

    assert result.cell_count == 1
    cell = result.data_points[0]
    assert [task.task_id for task in cell.task_breakdown or ()] == ["t1"]
    assert cell.demand_hours == pytest.approx(10)
    assert cell.task_count == 1
    assert result.total_demand == pytest.approx(10)
    assert result.total_clients == 1


def test_preferred_staff_without_match_is_empty() -> None:
    result = preferred_staff_filter().apply(_tax_scenario(), FilterSelection(preferred_staff=["staff-9"]))

    assert result.cell_count == 0
    assert result.total_demand == 0
    assert result.total_tasks == 0
    assert result.total_clients == 0
    assert result.skills == ()


def test_preferred_staff_matches_numeric_representations(sample_matrix: DemandMatrix) -> None:
    result = preferred_staff_filter().apply(sample_matrix, FilterSelection(preferred_staff=["42"]))

    task_ids = {task.task_id for cell in result.data_points for task in cell.task_breakdown or ()}
    assert task_ids == {"t3", "t5"}
    assert result.total_demand == pytest.approx(12)


def test_preferred_staff_never_admits_missing_preference(sample_matrix: DemandMatrix) -> None:
    result = preferred_staff_filter().apply(
        sample_matrix,
        FilterSelection(preferred_staff=["staff-1", "staff-2", 42]),
    )

    retained = [task for cell in result.data_points for task in cell.task_breakdown or ()]
    assert retained
    assert all(task.preferred_staff_id is not None for task in retained)
    assert "t2" not in {task.task_id for task in retained}


def test_preferred_staff_with_only_unusable_ids_is_explicitly_empty(
    sample_matrix: DemandMatrix, caplog: pytest.LogCaptureFixture
) -> None:
    strategy = preferred_staff_filter()
    selection = FilterSelection(preferred_staff=[None, "", "  "])

    assert strategy.should_apply(selection) is True
    with caplog.at_level("WARNING"):
        result = strategy.apply(sample_matrix, selection)

    assert result.cell_count == 0
    assert result.total_demand == 0
    assert result.skill_summary == {}
    assert "could be normalized" in caplog.text


def test_selection_keys_ignore_ordering_and_id_representation() -> None:
    staff = preferred_staff_filter()
    skills = skill_filter()

    assert staff.selection_key(FilterSelection(preferred_staff=["ABC", 7])) == staff.selection_key(
        FilterSelection(preferred_staff=["7", "abc"])
    )
    assert skills.selection_key(FilterSelection(skills={"Tax", "Audit"})) == skills.selection_key(
        FilterSelection(skills=["Audit", "Tax"])
    )
