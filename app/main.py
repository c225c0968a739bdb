"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Registers API routes and exception handlers
- Manages application lifecycle (database, indexes, auto-sync poller)
- No business logic should be written here
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health
from app.db.indexes import create_indexes
from app.services import connection_service, sync_service
from app.services.crm_service import crm_service
from app.api import auth, claude, connections, diagnostics, webhook, whatsapp
from utils.time_utils import utc_now_iso, is_expired

APP_VERSION = "1.0.0"

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


async def log_crm_scopes():
    """
    Warns about stored GHL tokens that are expired or cannot write
    conversation messages.
    """
    for connection in await connection_service.list_crm_connections():
        if connection.expires_at and is_expired(connection.expires_at):
            logger.warning(f"⚠️ CRM token for location {connection.location_id} has expired")

        has_write, scopes = crm_service.check_token_scopes(connection)
        if has_write:
            logger.info(f"✅ CRM location {connection.location_id} can write messages")
        else:
            logger.warning(
                f"⚠️ CRM location {connection.location_id} lacks message write scope "
                f"(scopes: {', '.join(scopes) or 'none'}). Reconnect the CRM to forward messages."
            )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("🚀 Starting LeWhatsApp bridge...")

    try:
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        logger.info("Connecting to MongoDB...")
        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        logger.info("Creating database indexes...")
        await create_indexes()
        logger.info("✅ Database indexes created")

        is_healthy = await check_database_health()
        if not is_healthy:
            logger.warning("⚠️ Database health check failed during startup")
        else:
            logger.info("✅ Database health check passed")

        await log_crm_scopes()

        if settings.AUTO_SYNC_ENABLED:
            sync_service.start_auto_sync()

        logger.info("🎉 LeWhatsApp bridge started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"Debug Mode: {settings.DEBUG}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    # Shutdown
    logger.info("🛑 Shutting down LeWhatsApp bridge...")

    try:
        await sync_service.stop_auto_sync()

        await close_mongo_connection()
        logger.info("✅ MongoDB connection closed")

        logger.info("👋 LeWhatsApp bridge shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


app = FastAPI(
    title="LeWhatsApp",
    description="WhatsApp (Unipile) to GoHighLevel CRM message bridge",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    if process_time > 5.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


add_exception_handlers(app)

# Register API routes
app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["Auth"])
app.include_router(connections.router, prefix=settings.API_PREFIX, tags=["Connections"])
app.include_router(whatsapp.router, prefix=settings.API_PREFIX, tags=["WhatsApp"])
app.include_router(webhook.router, prefix=settings.API_PREFIX, tags=["Webhooks"])
app.include_router(claude.router, prefix=settings.API_PREFIX, tags=["Claude"])
app.include_router(diagnostics.router, prefix=settings.API_PREFIX, tags=["Diagnostics"])


@app.get(f"{settings.API_PREFIX}/health", tags=["Health"])
async def api_health():
    """Dashboard-facing health check."""
    return {"status": "OK", "timestamp": utc_now_iso(), "version": APP_VERSION}


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "LeWhatsApp API",
        "version": APP_VERSION,
        "description": "WhatsApp to CRM message bridge",
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with database connectivity.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
        "checks": {}
    }

    try:
        db_healthy = await check_database_health()
        health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"

        if not db_healthy:
            health_status["status"] = "degraded"
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "unhealthy"

    health_status["checks"]["auto_sync"] = "enabled" if settings.AUTO_SYNC_ENABLED else "disabled"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check():
    try:
        db_healthy = await check_database_health()
        if db_healthy:
            return {"status": "ready"}
        else:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": "database_unavailable"}
            )
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": str(e)}
        )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
