import uvicorn
from fastapi import FastAPI

from retos.api.routes.admin import router as admin_router
from retos.api.routes.cron import router as cron_router
from retos.api.routes.grant import router as grant_router
from retos.api.routes.health import router as health_router
from retos.api.routes.webhooks import router as webhooks_router
from retos.core.config import get_settings
from retos.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="21 Retos API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(grant_router)
    app.include_router(cron_router)
    app.include_router(admin_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "retos.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
