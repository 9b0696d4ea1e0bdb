import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from animaforge.api import chronos, health, identities, market, rank, streaks
from animaforge.api.deps import Services, build_services
from animaforge.core.config import settings, validate_config
from animaforge.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from animaforge.core.logging import configure_logging
from animaforge.core.middleware.request_id import RequestIdMiddleware

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


def create_app(services: Optional[Services] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger("animaforge")
        logger.info("Starting Anima Forge...")
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()
        try:
            yield
        finally:
            logger.info("Stopping Anima Forge...")

    app = FastAPI(title="Anima Forge", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health.router)
    app.include_router(rank.router, tags=["rank"])
    app.include_router(identities.router, tags=["identities"])
    app.include_router(streaks.router, tags=["streaks"])
    app.include_router(chronos.router, tags=["chronos"])
    app.include_router(market.router, tags=["market"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("animaforge.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
