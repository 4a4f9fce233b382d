"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware

from pagecss.api import router as api_router
from pagecss.api.dependencies import get_auth_dependency, get_services_dependency
from pagecss.core.config import settings
from pagecss.core.errors import PageCSSError, StorageError
from pagecss.core.logging import configure_logging, get_logger
from pagecss.models.job import GENERATED_TYPES
from pagecss.services.registry import Services

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.static_dir.mkdir(parents=True, exist_ok=True)
    logger.info(
        "app_started",
        static_dir=str(settings.static_dir),
        state_path=str(settings.state_path),
        tenant=settings.tenant_id,
    )
    yield
    logger.info("app_stopped")


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ForwardedProtoMiddleware(BaseHTTPMiddleware):
    """Respect X-Forwarded-Proto so vary cookies get the Secure flag behind proxies."""

    async def dispatch(self, request, call_next):
        forwarded_proto = request.headers.get("x-forwarded-proto")
        if forwarded_proto:
            request.scope["scheme"] = forwarded_proto
        return await call_next(request)


app.add_middleware(ForwardedProtoMiddleware)


@app.exception_handler(PageCSSError)
async def pagecss_error_handler(request: Request, exc: PageCSSError) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    status_code = 507 if isinstance(exc, StorageError) else 500
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(api_router.api_router, prefix=settings.api_v1_prefix)

# Generated artifacts are served from the paths returned by the page-view route.
app.mount("/static", StaticFiles(directory=settings.static_dir, check_dir=False), name="static")


@app.get("/healthz", tags=["health"])
def health_check(services: Services = Depends(get_services_dependency)) -> dict:
    """Health probe with queue depths."""

    logger.debug("health_check_invoked")
    return {
        "status": "ok",
        "environment": settings.environment,
        "queues": {kind.value: services.queue.size(kind) for kind in GENERATED_TYPES},
    }


@app.get("/auth-check", tags=["health"], dependencies=[Depends(get_auth_dependency)])
def auth_check() -> dict:
    """Endpoint to verify API auth configuration."""

    return {"status": "authorized"}
