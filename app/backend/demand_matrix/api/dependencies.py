"""Request-scoped dependencies for FastAPI endpoints."""

from fastapi import Request

from demand_matrix.services.filtering_service import DemandFilteringService
from demand_matrix.services.pipeline import FilterPipeline


def get_filter_pipeline(request: Request) -> FilterPipeline:
    """Return the application-owned pipeline created at startup."""

    return request.app.state.filter_pipeline


def get_filtering_service(request: Request) -> DemandFilteringService:
    return DemandFilteringService(get_filter_pipeline(request))
