# app/main.py
"""
FastAPI application entry point.
Includes security middleware, domain error handlers, REST routers and the alert WebSocket.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import alerts, rescue_forms, post_rescue, health, realtime
from app.database import create_tables
from app.config import settings
from app.exceptions import AppError, BadRequestError, InternalServerError
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="ResQWave Backend API",
    description="Flood alert lifecycle, rescue coordination and after-action reporting.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dispatcher dashboard) ─────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional shared API key for dashboard endpoints.
    Terminal ingestion, health and the WebSocket stay open — terminals don't send keys.
    Set API_KEY in .env. Leave empty to disable.
    """
    open_paths = {
        "/api/v1/alerts/critical", "/api/v1/alerts/user", "/api/v1/health",
        "/ws/alerts", "/docs", "/redoc", "/openapi.json",
    }

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"status": "fail", "kind": "Unauthorized", "message": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    error = BadRequestError("; ".join(parts) or "Invalid request")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    error = InternalServerError("Internal server error")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(alerts.router,       prefix="/api/v1", tags=["🔔 Alerts"])
app.include_router(rescue_forms.router, prefix="/api/v1", tags=["📝 Rescue Forms"])
app.include_router(post_rescue.router,  prefix="/api/v1", tags=["📊 Post-Rescue Reports"])
app.include_router(health.router,       prefix="/api/v1", tags=["💚 Health"])
app.include_router(realtime.router,     tags=["📡 Real-Time"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 ResQWave Backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 ResQWave Backend shutting down...")
