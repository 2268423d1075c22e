import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from autodiag.logging import configure_logging
from autodiag.config import settings
from autodiag.middleware.request_id import RequestIdMiddleware
from autodiag.api.error_handlers import register_error_handlers

from autodiag.api.health import router as health_router
from autodiag.api.routes_diagnose import close_diagnosis_pipeline, router as diagnose_router
from autodiag.observability.metrics_route import router as metrics_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_diagnosis_pipeline()


def create_app() -> FastAPI:
    configure_logging()
    logger = logging.getLogger(__name__)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(RequestIdMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(diagnose_router)
    app.include_router(metrics_router)

    logger.info("App initialized provider=%s", settings.llm_provider)
    return app


app = create_app()
