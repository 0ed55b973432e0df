"""Health check endpoints."""

from fastapi import APIRouter, Depends

from demand_matrix.api.dependencies import get_filter_pipeline
from demand_matrix.services.pipeline import FilterPipeline

router = APIRouter()


@router.get("/health")
def health(pipeline: FilterPipeline = Depends(get_filter_pipeline)) -> dict[str, object]:
    """Liveness endpoint listing the registered filter strategies."""

    return {
        "status": "ok",
        "filters": [strategy.name for strategy in pipeline.strategies],
    }
