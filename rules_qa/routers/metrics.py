from fastapi import APIRouter, Response

from rules_qa.observability.metrics import format_prometheus_metrics
from rules_qa.settings import settings


router = APIRouter()


@router.get("/metrics", response_class=Response)
def metrics_endpoint() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(content=format_prometheus_metrics(), media_type="text/plain; version=0.0.4")
