from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Awaitable, Callable
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from rules_qa.settings import settings

from .metrics import get_metrics_registry


logger = logging.getLogger(__name__)

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_ASK_PATH = "/api/agent/ask"


class CorrelationContext(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        header_name = settings.correlation_id_header
        correlation_id = request.headers.get(header_name) or str(uuid4())
        token = correlation_id_var.set(correlation_id)
        request.state.correlation_id = correlation_id
        method = request.method.upper()
        path = request.url.path
        logger.info(
            "http.request.start",
            extra={"correlation_id": correlation_id, "method": method, "path": path},
        )
        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            if path == _ASK_PATH and method == "POST":
                get_metrics_registry().observe_latency(latency_ms)
            logger.info(
                "http.request.completed",
                extra={
                    "correlation_id": correlation_id,
                    "method": method,
                    "path": path,
                    "status": status_code,
                    "duration_ms": round(latency_ms, 3),
                },
            )
            correlation_id_var.reset(token)

        response.headers[header_name] = correlation_id
        return response


def get_correlation_id(default: str | None = None) -> str | None:
    return correlation_id_var.get() or default
