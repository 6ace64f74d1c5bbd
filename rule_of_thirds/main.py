from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rule_of_thirds.api.routes.orchestrate import router as orchestrate_router
from rule_of_thirds.api.routes.system import router as system_router
from rule_of_thirds.core.config import get_settings
from rule_of_thirds.core.logging import configure_logging


@asynccontextmanager
async def app_lifespan(_: FastAPI):
    try:
        settings = get_settings()
        missing: list[str] = []
        if not settings.llm_provider:
            missing.append("OPENAI_API_KEY or AZURE_OPENAI_*")
        if not settings.NEWS_API_KEY:
            missing.append("NEWS_API_KEY")
        if not settings.YOUTUBE_API_KEY:
            missing.append("YOUTUBE_API_KEY")

        if missing:
            logging.warning("Missing environment variables at startup (simulated data will be used): %s", ", ".join(missing))
    except Exception:
        logging.warning("Startup environment check failed; continuing without strict validation", exc_info=True)

    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, silent=settings.LOG_SILENT)

    application = FastAPI(
        title="Rule of Thirds Signal Triangulation",
        version="1.0",
        lifespan=app_lifespan,
    )

    allowed_origins_set = {
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    }
    if settings.CORS_ORIGINS:
        allowed_origins_set.update(str(origin).rstrip("/") for origin in settings.CORS_ORIGINS)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins_set),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(orchestrate_router)
    application.include_router(system_router)

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.error("Unhandled exception at %s", request.url.path, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "msg": "An internal system error occurred. Please check server logs.",
            },
        )

    @application.get("/")
    def read_root() -> dict[str, str]:
        return {"status": "System Operational", "message": "Rule of Thirds backend is running"}

    return application


app = create_app()
