"""
main.py
FastAPI application entry point.
Registers all routers, middleware, startup/shutdown events.
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from logging import LogRecord

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from config.database import close_db, init_db
from config.settings import settings
from shared.exceptions import DomainError
from shared.schemas.schemas import ErrorResponse

# Service routers
from services.event.router import router as event_router
from services.favorite.router import router as favorite_router
from services.notification.router import router as notification_router
from services.point.router import router as point_router
from services.signup.router import router as signup_router
from services.user.router import router as user_router


# ── Logging ──────────────────────────────────────────────────

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "instance": os.getenv("INSTANCE_NAME", "unknown"),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)


# ── Lifespan (startup/shutdown) ───────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle handler."""
    logger.info("Starting %s v%s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.APP_ENV)

    await init_db()
    logger.info("Database ready")

    # Seed an admin and a few points of interest, only in dev
    if settings.APP_ENV == "development":
        await seed_initial_data()

    yield

    await close_db()
    logger.info("Server shutdown complete")


# ── App Factory ───────────────────────────────────────────────

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## Magal Pilgrim Events API

Festival companion backend for pilgrims:
- **Events**: browse the programme, sign up within capacity, cancel up to 24h before
- **Points of interest**: mosques, health centres, lodging; bookmark favorites
- **Notifications**: broadcasts to all pilgrims or to an event's attendees, read tracking

### Authentication
All protected endpoints require `Authorization: Bearer <access_token>` header.
Tokens are issued by the identity provider.

### Roles
- `PILGRIM`: sign up for events, manage favorites, read notifications
- `ADMIN`: manage the catalog, broadcast notifications, manage accounts
        """,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware (outermost first) ───────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )

    # GZip compression
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # ── Custom Middleware ──────────────────────────────────────────

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add unique X-Request-ID to every request for tracing."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def process_time_middleware(request: Request, call_next):
        """Track and expose request processing time."""
        start = time.perf_counter()
        response = await call_next(request)
        process_time = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Process-Time"] = f"{process_time}ms"
        return response

    # ── Exception Handlers ─────────────────────────────────────────

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        """Business-rule failures: typed status code and a machine-readable reason."""
        request_id = getattr(request.state, "request_id", None)
        logger.info(
            "[%s] %s %s -> %s (%s)",
            request_id, request.method, request.url.path, exc.kind, exc.reason,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(**exc.to_dict(), request_id=request_id).model_dump(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler. Never expose stack traces in production."""
        request_id = getattr(request.state, "request_id", None)
        logger.error(f"[{request_id}] Exception: {str(exc)}", exc_info=True)

        detail = str(exc) if settings.DEBUG else "An internal server error occurred"
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                detail=detail, error="internal_error", request_id=request_id
            ).model_dump(),
        )

    # ── Routes ────────────────────────────────────────────────────

    # Health check (public)
    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check():
        from sqlalchemy import text
        from config.database import AsyncSessionLocal

        checks = {"status": "ok", "version": settings.APP_VERSION}

        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception:
            logger.warning("Health check: database unreachable", exc_info=True)
            checks["database"] = "error"
            checks["status"] = "degraded"

        status_code = 200 if checks["status"] == "ok" else 503
        return JSONResponse(content=checks, status_code=status_code)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    # Register all service routers
    app.include_router(user_router)
    app.include_router(event_router)
    app.include_router(signup_router)
    app.include_router(point_router)
    app.include_router(favorite_router)
    app.include_router(notification_router)

    # ── Prometheus Metrics ─────────────────────────────────────────
    Instrumentator().instrument(app).expose(app, endpoint="/metrics", tags=["Monitoring"])

    return app


# ── Dev Data Seeder ───────────────────────────────────────────

async def seed_initial_data():
    """Seed an admin account and sample points of interest on first run (development only)."""
    from sqlalchemy import func, select

    from config.database import get_db_context
    from shared.models.models import PointOfInterest, PointType, User, UserRole
    from shared.utils.security import hash_password

    async with get_db_context() as db:
        admin_count = await db.scalar(
            select(func.count(User.id)).where(User.role == UserRole.ADMIN)
        )
        if not admin_count and settings.SEED_ADMIN_PASSWORD:
            db.add(
                User(
                    first_name="Magal",
                    last_name="Admin",
                    email=settings.SEED_ADMIN_EMAIL.lower(),
                    password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
                    role=UserRole.ADMIN,
                )
            )
            logger.info("Seeded admin account %s", settings.SEED_ADMIN_EMAIL)

        point_count = await db.scalar(select(func.count(PointOfInterest.id)))
        if not point_count:
            seed_points = [
                {"name": "Great Mosque of Touba", "type": PointType.MOSQUE, "address": "Touba centre", "description": "Main mosque and mausoleum."},
                {"name": "Matlaboul Fawzaini Hospital", "type": PointType.HEALTH, "address": "Route de Mbacké", "emergency_number": "15"},
                {"name": "Darou Marnane Health Post", "type": PointType.HEALTH, "address": "Darou Marnane", "emergency_number": "+221 33 978 00 00"},
                {"name": "Pilgrim Lodging Darou Khoudoss", "type": PointType.LODGING, "address": "Darou Khoudoss"},
                {"name": "Ndiouga Kébé Market", "type": PointType.FOOD, "address": "Touba Okass"},
                {"name": "Touba Bus Station", "type": PointType.TRANSPORT, "address": "Garage Touba"},
            ]
            for p in seed_points:
                db.add(PointOfInterest(**p))
            logger.info("Seeded %d points of interest", len(seed_points))


# ── Entry Point ───────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
    )
