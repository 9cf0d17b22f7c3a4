# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS middleware (origins from settings).
* Translate domain errors and request-validation errors into JSON bodies.
* Mount the feature routers (auth, account, coaching, admin).
* Mount the frontend static files so a single ``uvicorn`` process serves
  both the API and the dashboard.
* Expose a /health endpoint for container liveness checks.
"""

import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from auth.router import router as auth_router
from account.router import router as account_router
from coaching.router import router as coaching_router
from admin.router import router as admin_router
from core.config import settings
from core.errors import CoachError
from core.logger import logger

app = FastAPI(title="Extreme Minimalism AI Coach", version="1.0.0")

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
# Credentials are allowed because the session cookie carries the vault key
# binding; origins therefore must be listed explicitly.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Bodies are never echoed: they carry passwords and vault content.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(_RequestLogMiddleware)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


@app.exception_handler(CoachError)
async def _coach_error_handler(request: Request, exc: CoachError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, type(exc).__name__)
    else:
        logger.warning(
            "%s %s rejected: %s (%d)", request.method, request.url.path, type(exc).__name__, exc.status_code
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are a plain 400 like every other input error."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        detail = "Invalid request"
    logger.warning("%s %s rejected: %s", request.method, request.url.path, detail)
    return JSONResponse(status_code=400, content={"detail": detail})


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router)
app.include_router(account_router)
app.include_router(coaching_router)
app.include_router(admin_router)

# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@app.on_event("startup")
async def _on_startup():
    logger.info("Minimalism coach service starting up (model=%s offline=%s)",
                settings.llm_model_name, settings.llm_offline)


@app.on_event("shutdown")
async def _on_shutdown():
    logger.info("Minimalism coach service shutting down")


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Static files – frontend
# ---------------------------------------------------------------------------
# Mounted *after* the API routers so that /api/* and /ws/* are handled by
# FastAPI first.
_FRONTEND_DIR = Path(__file__).resolve().parent.parent / "frontend"

if _FRONTEND_DIR.is_dir():
    app.mount("/", StaticFiles(directory=str(_FRONTEND_DIR), html=True), name="frontend")
