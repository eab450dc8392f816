import uvicorn
from fastapi import FastAPI

from app.api.routes.admin_credits import router as admin_credits_router
from app.api.routes.credits import router as credits_router
from app.api.routes.health import router as health_router
from app.api.routes.recharge_requests import router as recharge_requests_router
from app.core.config import get_settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Credit Ledger API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.include_router(health_router)
    app.include_router(credits_router)
    app.include_router(recharge_requests_router)
    app.include_router(admin_credits_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
