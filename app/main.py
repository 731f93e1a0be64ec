"""
Main FastAPI application for the Tasmim brand-asset API.
Serves generation, downloads, projects, account entitlement, cron triggers, health and metrics.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.routes import account, cron, download, generate, health, projects
from app.services.errors import ServiceError
from app.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Tasmim API",
    description="AI brand-asset generation with trial and credit entitlement",
    version="1.0.0",
)

# CORS
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "status_code": exc.status_code, "error_kind": exc.kind},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request data", "details": details})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", extra={"path": request.url.path, "method": request.method})
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(generate.router)
app.include_router(download.router)
app.include_router(projects.router)
app.include_router(account.router)
app.include_router(cron.router)
app.include_router(metrics_router)
