"""VestKeeper Backend API - Main Application"""
import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vestkeeper.config import get_settings
from vestkeeper.api.v1.router import api_router
from vestkeeper.api.websocket import websocket_router, manager, broadcast_event
from vestkeeper.models.database import init_db, close_db, async_session_factory
from vestkeeper.services.engine import get_engine
from vestkeeper.services.errors import VestingError
from vestkeeper.services.journal import JournalRecorder

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()
settings = get_settings()

ERROR_STATUS = {
    "UNAUTHORIZED": 403,
    "INVALID_AMOUNT": 400,
    "INVALID_PERIOD": 400,
    "BENEFICIARY_ALREADY_SCHEDULED": 409,
    "STALE_OR_INVALID_BATCH": 409,
    "BENEFICIARY_NOT_FOUND": 404,
    "CLIFF_NOT_REACHED": 400,
    "INSUFFICIENT_AVAILABLE_BALANCE": 400,
    "ASSET_TRANSFER_FAILED": 502,
    "ARITHMETIC_OVERFLOW": 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting VestKeeper API", version=settings.app_version)

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Route engine notifications to the journal and WebSocket clients
    engine = get_engine()
    engine.notifications.subscribe(JournalRecorder(async_session_factory))
    engine.notifications.subscribe(broadcast_event)
    await engine.notifications.start()
    await manager.start()

    yield

    # Cleanup
    await engine.notifications.stop()
    await manager.stop()
    await close_db()
    logger.info("VestKeeper API shutdown complete")


async def vesting_error_handler(request: Request, exc: VestingError):
    """Translate engine errors into HTTP responses"""
    status_code = ERROR_STATUS.get(exc.code, 400)
    logger.info(
        "Vesting request rejected",
        path=request.url.path,
        code=exc.code,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create FastAPI application"""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="API for automated vesting of a custodial asset pool",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(VestingError, vesting_error_handler)

    # Include routers
    app.include_router(api_router, prefix=settings.api_prefix)
    app.include_router(websocket_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        engine = get_engine()
        return {
            "status": "healthy",
            "version": settings.app_version,
            "schedules": len(engine.store),
            "notifications": engine.notifications.get_stats(),
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "vestkeeper.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
