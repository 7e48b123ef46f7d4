"""
Order Matching Engine - HTTP API

FastAPI application that provides:
- Book management per market
- Order submission, lookup and cancellation
- Health endpoints

Matched orders are forwarded to the executioner when one is configured.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..common.config import Settings
from ..common.exceptions import (
    BookExistsError,
    BookNotFoundError,
    OmeError,
    OrderNotFoundError,
    OrderRejectedError,
    ParseError,
    RpcError,
)
from ..common.logging_setup import get_service_logger
from ..engine import Engine
from ..rpc import ExecutionerClient
from .routers import books, orders

logger = get_service_logger("api")

# Most specific first
ERROR_STATUS: list[tuple[type[OmeError], int]] = [
    (ParseError, status.HTTP_400_BAD_REQUEST),
    (BookNotFoundError, status.HTTP_404_NOT_FOUND),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (BookExistsError, status.HTTP_409_CONFLICT),
    (OrderRejectedError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RpcError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(error: OmeError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def ome_error_handler(request: Request, exc: OmeError) -> JSONResponse:
    code = status_for(exc)
    content = {"detail": exc.message}
    if isinstance(exc, ParseError):
        content["reason"] = exc.reason
    if isinstance(exc, RpcError):
        content["reason"] = exc.kind

    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {code}: {exc}")

    return JSONResponse(status_code=code, content=content)


def build_engine(settings: Settings) -> Engine:
    executioner = None
    if settings.executioner_url:
        executioner = ExecutionerClient(settings.executioner_url, timeout=settings.rpc_timeout_s)
    return Engine(executioner=executioner, check_orders=settings.check_orders)


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Runtime settings (defaults from environment)
        engine: Pre-built engine (defaults to one built from settings)
    """
    settings = settings or Settings()
    engine = engine or build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting matching engine API ({settings.environment})",
            extra={
                "executioner": settings.executioner_url,
                "check_orders": settings.check_orders,
            },
        )
        yield
        logger.info("Shutting down API...")
        await app.state.engine.close()

    app = FastAPI(
        title="Order Matching Engine API",
        description="Price-time priority order books with executioner settlement.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(OmeError, ome_error_handler)

    app.include_router(books.router, prefix="/book", tags=["Books"])
    app.include_router(orders.router, prefix="/book/{market}/order", tags=["Orders"])

    @app.get("/", tags=["Health"])
    async def root():
        """Basic API information."""
        return {
            "name": "Order Matching Engine API",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "markets": len(app.state.engine.markets()),
            "executioner": bool(settings.executioner_url),
            "version": __version__,
        }

    return app
