"""Main entry point for Query Bridge."""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from query_bridge import __version__
from query_bridge.api.middleware import answer_preflight, log_requests
from query_bridge.api.routes.query import router as query_router
from query_bridge.observability import get_logger, setup_opentelemetry, shutdown_opentelemetry

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - setup and shutdown."""
    setup_opentelemetry(app)
    yield
    shutdown_opentelemetry()


app = FastAPI(
    title="Query Bridge",
    description="Run batches of SQL queries over HTTP and get the results as JSON",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

app.include_router(query_router)


@app.exception_handler(StarletteHTTPException)
async def empty_error_response(request: Request, exc: StarletteHTTPException) -> Response:
    """Answer unknown paths and methods with a bare status and no body."""
    return Response(status_code=exc.status_code, headers=exc.headers)


# The last middleware registered runs first.
app.middleware("http")(answer_preflight)
app.middleware("http")(log_requests)


def main() -> None:
    """Run the application server.

    Exits with status 1 if no database connection string is configured.
    """
    import uvicorn

    from query_bridge.config import get_settings
    from query_bridge.observability import configure_logging

    settings = get_settings()
    configure_logging()
    logger.info("starting", name="query-bridge", version=__version__)

    if not settings.database.dsn:
        logger.error(
            "missing_database_dsn",
            detail="Set QUERY_BRIDGE_DATABASE__DSN to the database connection string",
        )
        sys.exit(1)

    logger.info("listening", host=settings.server.host, port=settings.server.port)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)


if __name__ == "__main__":
    main()
