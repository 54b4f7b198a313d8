"""
Prometheus metrics endpoint.

PUBLIC endpoint (no authentication) following standard Prometheus
practice. Exposes the counters and histograms recorded by
``@BaseService.measure_operation`` and the domain helpers. Answers 404
when METRICS_ENABLED is off.
"""

from fastapi import APIRouter, HTTPException, Response, status

from app.core.config import settings
from app.monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Metrics are disabled")
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
