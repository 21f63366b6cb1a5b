"""
Experience Aggregator API
Merged experience listings from the local catalog and external providers.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

from database import init_db, session_factory
from exceptions import ExperienceAggregatorError
from experiences.aggregator import ExperienceAggregator, create_aggregator
from experiences.catalog import SqlCatalogStore
from observability import correlation_id_context, metrics_registry, setup_logging
from routes import experiences_router
from utils.dates import utc_now

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def create_app(aggregator: Optional[ExperienceAggregator] = None) -> FastAPI:
    """Build the API. Without an aggregator, one is wired to the SQL catalog on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if aggregator is None:
            await init_db()
            app.state.aggregator = create_aggregator(SqlCatalogStore(session_factory()))
        else:
            app.state.aggregator = aggregator
        yield

    app = FastAPI(
        title="Experience Aggregator",
        description="Unified experience search across the local catalog and booking providers",
        version="0.1.0",
        lifespan=lifespan,
    )
    if aggregator is not None:
        app.state.aggregator = aggregator

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        with correlation_id_context(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response

    @app.exception_handler(ExperienceAggregatorError)
    async def aggregator_error_handler(request: Request, exc: ExperienceAggregatorError):
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
                extra={"path": str(request.url.path), "detail": exc.detail},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "version": "0.1.0",
            "timestamp": utc_now().isoformat(),
        }

    @app.get("/metrics")
    async def metrics():
        return Response(generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)

    app.include_router(experiences_router)
    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
