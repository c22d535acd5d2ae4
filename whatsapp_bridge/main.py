from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from pathlib import Path
import time
from whatsapp_bridge.config import get_settings
from whatsapp_bridge.routes import chat, media, whatsapp
from whatsapp_bridge.routes.media import UPLOADS_ROUTE
from whatsapp_bridge.utils.logger import get_logger, log_to_database
from whatsapp_bridge.utils.exceptions import BaseAPIException
from whatsapp_bridge.utils.responses import error_response

# Initialize settings and logger
settings = get_settings()
logger = get_logger(__name__)

# Create FastAPI application
app = FastAPI(
    title="WhatsApp Bridge API",
    description="Bridge between the business dashboard and the WhatsApp Cloud API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==============================================================
# Middleware
# ==============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response

# ==============================================================
# Exception Handlers
# ==============================================================
@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    """Handle custom API exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.detail, exc.details),
        headers=exc.headers
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    details = [
        {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response("Validation error", details)
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unexpected error: {str(exc)}")
    await log_to_database("api", "error", f"Unexpected error: {str(exc)}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(
            "Internal server error",
            str(exc) if settings.app_env == "development" else None
        )
    )

# ==============================================================
# Routers
# ==============================================================
app.include_router(whatsapp.router, prefix="/api")
app.include_router(chat.router, prefix="/api")
app.include_router(media.router, prefix="/api")

# Uploaded media must be publicly reachable for URL-based sends
Path(settings.upload_path).mkdir(parents=True, exist_ok=True)
app.mount(UPLOADS_ROUTE, StaticFiles(directory=settings.upload_path), name="uploads")

# ==============================================================
# Health Check Endpoints
# ==============================================================
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "success": True,
        "message": "WhatsApp Bridge API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    """Basic health check."""
    return {
        "success": True,
        "status": "healthy",
        "environment": settings.app_env
    }

@app.get("/api/health")
async def api_health_check():
    """API + Database health check."""
    try:
        from whatsapp_bridge.database.supabase_client import get_supabase_client
        from whatsapp_bridge.database.message_store import MESSAGES_TABLE
        supabase = get_supabase_client()
        supabase.table(MESSAGES_TABLE).select("id").limit(1).execute()

        return {
            "success": True,
            "status": "healthy",
            "database": "connected",
            "environment": settings.app_env
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "success": False,
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e)
            }
        )

# ==============================================================
# Startup / Shutdown Events
# ==============================================================
@app.on_event("startup")
async def startup_event():
    """Run on app startup."""
    logger.info(f"Starting WhatsApp Bridge API v1.0.0 - Environment: {settings.app_env}")
    if not settings.webhook_secret:
        logger.warning("WEBHOOK_SECRET is not set; signed webhook deliveries will be rejected")
    await log_to_database("system", "info", "Application started")

@app.on_event("shutdown")
async def shutdown_event():
    """Run on app shutdown."""
    logger.info("Shutting down WhatsApp Bridge API")
    await log_to_database("system", "info", "Application shutdown")

# ==============================================================
# Entry Point
# ==============================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "whatsapp_bridge.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "development"
    )
