from __future__ import annotations

import time
import logging

from fastapi import FastAPI, Request, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.responses import JSONResponse

from ghgi.core.config import settings
from ghgi.core.errors import DomainError
from ghgi.core.log import configure_logging
from ghgi.auth.deps import get_current_user
from ghgi.utils.api import fail

# Import models to populate SQLAlchemy metadata
import ghgi.db.models  # noqa: F401

from ghgi.auth.router import router as auth_router
from ghgi.modules.forms.router import router as forms_router
from ghgi.modules.submissions.router import router as submissions_router
from ghgi.modules.analytics.router import router as analytics_router
from ghgi.modules.audit.router import router as audit_router


configure_logging()
logger = logging.getLogger("ghgi")

API_PREFIX = "/api/admin"

app = FastAPI(title=settings.APP_NAME)

# CORS (Access-Control-Allow-*) - configurable
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
)

# Summary and listing payloads compress well
app.add_middleware(GZipMiddleware, minimum_size=800)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start = time.perf_counter()
    resp = await call_next(request)
    resp.headers["X-Process-Time-ms"] = f"{(time.perf_counter() - start) * 1000:.2f}"
    return resp


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    resp = await call_next(request)
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "SAMEORIGIN"
    resp.headers["Referrer-Policy"] = "same-origin"
    return resp


@app.exception_handler(DomainError)
async def domain_exc_handler(request: Request, exc: DomainError):
    return fail(exc.message, exc.errors, status_code=exc.status_code)


@app.exception_handler(HTTPException)
async def http_exc_handler(request: Request, exc: HTTPException):
    resp = fail(str(exc.detail), None, status_code=exc.status_code)
    if exc.status_code == 401:
        resp.headers["X-Session-Expired"] = "1"
        resp.delete_cookie("sid")
    return resp


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal Server Error", "errors": None},
    )


# Routers
app.include_router(auth_router)
app.include_router(forms_router, prefix=API_PREFIX)
app.include_router(analytics_router, prefix=API_PREFIX)
app.include_router(submissions_router, prefix=API_PREFIX)
app.include_router(audit_router, prefix=API_PREFIX)


@app.on_event("startup")
def on_startup():
    # DB migrations and seeding are handled by ghgi.scripts.migrate.
    logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)


@app.get("/health", response_class=JSONResponse)
def health():
    return {"status": "ok", "app": settings.APP_NAME}


@app.get("/health/auth", response_class=JSONResponse)
def health_auth(user=Depends(get_current_user)):
    return {"status": "ok", "authenticated": True, "user_id": user.id}
