from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from rules_qa.observability.logger import setup_logging
from rules_qa.observability.tracing import CorrelationContext
from rules_qa.routers.health import router as health_router
from rules_qa.routers.rules import router as rules_router
from rules_qa.settings import settings


class Latin1BodyMiddleware(BaseHTTPMiddleware):
    """Re-encode Latin-1 request bodies as UTF-8 so JSON parsing succeeds.

    Terminals without UTF-8 support send French accents as single Latin-1
    bytes. The accents are kept; only the encoding changes. The request state
    records when a body was transcoded.
    """

    async def dispatch(self, request, call_next):  # type: ignore[override]
        if request.method in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if body:
                try:
                    body.decode("utf-8")
                except UnicodeDecodeError:
                    body = body.decode("latin-1").encode("utf-8")
                    request.state.body_transcoded = True

                request._body = body  # type: ignore[attr-defined]
        return await call_next(request)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name, version=settings.app_version, docs_url="/docs")
    app.add_middleware(CorrelationContext)
    app.add_middleware(Latin1BodyMiddleware)
    allowed_origins = [origin.strip() for origin in settings.frontend_allowed_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(rules_router)

    if settings.metrics_enabled:
        from rules_qa.routers.metrics import router as metrics_router

        app.include_router(metrics_router)

    return app


app = create_app()
