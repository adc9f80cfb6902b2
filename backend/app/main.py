"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.api.v1.routes import api_router
from app.core.config import ConfigManager, settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Loads and validates engine configuration
    - Builds the call store, lifecycle and driver behind CallService

    Shutdown:
    - Stops all pending call progressions
    """
    # ========================
    # STARTUP
    # ========================
    logger.info("Starting call engine...")

    environment = settings.environment
    strict_validation = environment == "production"
    config = ConfigManager(env=settings.config_env or environment)

    try:
        from app.core.validation import validate_config_on_startup
        validate_config_on_startup(config, strict=strict_validation)
    except RuntimeError as e:
        if strict_validation:
            logger.error(f"Startup failed: {e}")
            raise
        else:
            logger.warning(f"Configuration warnings (non-fatal in {environment}): {e}")

    from app.domain.services.call_service import create_call_service
    app.state.call_service = create_call_service(config)

    logger.info("Call engine started successfully")

    yield  # Application is running

    # ========================
    # SHUTDOWN
    # ========================
    logger.info("Shutting down call engine...")

    try:
        await app.state.call_service.driver.shutdown()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")

    logger.info("Call engine shutdown complete")


app = FastAPI(
    title="Nexus Call Engine",
    description="Outbound call placement with simulated progression and country-aware pricing",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and query strings are 400s, like engine validation errors."""
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"code": "VALIDATION_ERROR", "message": "Validation failed", "details": details}},
    )


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": "Nexus Call Engine API", "status": "running"}


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns basic health status and lifecycle driver activity.
    """
    health = {"status": "healthy"}

    service = getattr(request.app.state, "call_service", None)
    if service is None:
        health["call_engine"] = "not initialized"
    else:
        health["driver"] = service.driver.name
        health["active_calls"] = service.driver.active_count()
        health["total_calls"] = await service.store.count()

    return health


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
