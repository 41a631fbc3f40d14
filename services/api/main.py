import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import R2UploaderError
from core.logging_config import setup_logging_from_env
from core.settings import get_settings
from services.api.exception_handlers import uploader_exception_handler
from services.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from services.api.routes import router as v1_router


def _cors_origins() -> list[str]:
    ui_origin = os.getenv("UI_ORIGIN", "app://obsidian.md")
    origins = {ui_origin, "app://obsidian.md"}
    if os.getenv("ENVIRONMENT", "").lower() in {"dev", "development", "local"}:
        for port in (3000, 3001):
            origins.update({f"http://localhost:{port}", f"http://127.0.0.1:{port}"})
    return sorted(origins)


def create_app() -> FastAPI:
    setup_logging_from_env()

    app = FastAPI(
        title="R2 Uploader API",
        version="0.1.0",
        description="Upload note images to Cloudflare R2 and rewrite note links",
    )

    rate_limit_enabled = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in {"true", "1", "yes"}
    if rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "60")),
        )

    app.add_middleware(SecurityHeadersMiddleware)

    cors_origins = _cors_origins()
    logger.info("CORS allowed origins: {origins}", origins=cors_origins)
    # Added last so it runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def _load_settings() -> None:
        try:
            settings = get_settings()
        except (FileNotFoundError, ValueError) as exc:
            logger.warning("Settings not loaded at startup: {error}", error=exc)
            return
        logger.info(
            "API initialised with bucket={bucket} vault={vault}",
            bucket=settings.r2.bucket_name or "<unset>",
            vault=settings.vault.root,
        )

    @app.get("/healthz", tags=["meta"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.add_exception_handler(R2UploaderError, uploader_exception_handler)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={
                "error": type(exc).__name__,
                "message": str(exc),
            },
        )

    app.include_router(v1_router)

    return app


app = create_app()


__all__ = ["app", "create_app"]
