import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import settings
from src.domain.errors import DomainError, domain_error_detail, domain_error_headers
from src.observability import incr_metric, log_event
from src.ratelimit import run_periodic_sweep
from src.routers import (
    auth_routes,
    organizations,
    permissions,
    projects,
    super_admin,
    support,
)
from src.support.enforcement import enforce_read_only

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.impersonation_secret:
        log_event(
            "impersonation_secret_missing",
            level=logging.WARNING,
            environment=settings.environment,
        )
    sweeper = asyncio.create_task(run_periodic_sweep())
    try:
        yield
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(title="Change Platform API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Registered first so it runs inside attach_request_id and sees the request id.
app.middleware("http")(enforce_read_only)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid4())
    )
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(DomainError)
async def handle_domain_error(request: Request, exc: DomainError):
    incr_metric("http.request_denied", status_code=exc.status_code, error=type(exc).__name__)
    log_event(
        "request_denied",
        level=logging.WARNING,
        request_id=getattr(request.state, "request_id", None),
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        error=type(exc).__name__,
        detail=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=domain_error_detail(exc),
        headers=domain_error_headers(exc),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error on %s %s (request_id=%s)",
        request.method,
        request.url.path,
        getattr(request.state, "request_id", None),
    )
    incr_metric("http.unhandled_error")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(auth_routes.router)
app.include_router(organizations.router)
app.include_router(permissions.router)
app.include_router(projects.router)
app.include_router(super_admin.router)
app.include_router(support.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": "change-platform-api"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
