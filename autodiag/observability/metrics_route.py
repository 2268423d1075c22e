from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics")
def metrics() -> Response:
    """
    Prometheus text exposition of the diagnosis and HTTP counters.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
