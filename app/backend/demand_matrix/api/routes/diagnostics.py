"""Read-only filter telemetry for developer tooling."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from demand_matrix.api.dependencies import get_filtering_service
from demand_matrix.services.filtering_service import DemandFilteringService

router = APIRouter(prefix="/diagnostics", tags=["diagnostics"])


@router.get("/filter-performance")
def get_filter_performance(
    filter_name: str | None = Query(default=None),
    service: DemandFilteringService = Depends(get_filtering_service),
) -> dict[str, object]:
    return service.performance_summary(filter_name=filter_name)


@router.get("/filter-performance/dashboard")
def get_filter_performance_dashboard(
    service: DemandFilteringService = Depends(get_filtering_service),
) -> dict[str, object]:
    return service.performance_dashboard()


@router.delete("/filter-performance", status_code=status.HTTP_204_NO_CONTENT)
def clear_filter_performance(
    service: DemandFilteringService = Depends(get_filtering_service),
) -> Response:
    service.clear_performance_data()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
