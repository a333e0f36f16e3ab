from fastapi import FastAPI

from .api.v1.routers.health import router as health_router
from .core.config import get_settings, validate_settings
from .core.logging import configure_structlog, get_logger
from .core.observability import add_prometheus
from .db import get_engine, get_sessionmaker
from .services.runner import maybe_start_runners, maybe_stop_runners


def create_app() -> FastAPI:
    settings = get_settings()
    # Reliability: validate env/settings early
    try:
        validate_settings(settings)
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Invalid configuration: {exc}")

    configure_structlog()
    logger = get_logger(__name__)

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.state.runners = []

    add_prometheus(app, app_name="bridge")

    @app.on_event("startup")
    def on_startup() -> None:  # noqa: D401
        logger.info("startup.init_db_pool")
        get_engine()
        maybe_start_runners(app, lambda: get_sessionmaker()())

    @app.on_event("shutdown")
    def on_shutdown() -> None:  # noqa: D401
        maybe_stop_runners(app)

    app.include_router(health_router)

    @app.get("/")
    def root() -> dict:
        return {"service": "bridge", "status": "ok"}

    return app


app = create_app()
