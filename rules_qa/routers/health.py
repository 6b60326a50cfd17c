from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..services.search import SearchBackend, SearchBackendError, get_search_backend
from ..settings import settings
from ..utils.runtime import runtime_state

router = APIRouter()


def get_health_backend() -> Optional[SearchBackend]:
    try:
        return get_search_backend()
    except SearchBackendError:
        return None


@router.get("/health")
def read_health(backend: Optional[SearchBackend] = Depends(get_health_backend)):
    """Return application health, pinging the search backend."""
    reachable = False
    if backend is not None:
        try:
            reachable = backend.ping()
        except SearchBackendError:
            reachable = False

    payload = {
        "status": "ok" if reachable else "degraded",
        "search_backend": "up" if reachable else "down",
        "generation_backend": "configured" if settings.openai_api_key else "unconfigured",
        "app": settings.app_name,
        "version": settings.app_version,
        "uptime_seconds": runtime_state.uptime_seconds(),
    }
    return JSONResponse(payload, status_code=200 if reachable else 503)
