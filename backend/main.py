"""FastAPI backend for the site builder: start, monitor and control content jobs."""

import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ifrit.config import get_settings
from ifrit.jobs import JobStatus, get_job_store
from ifrit.runner import create_runner, get_registry

logger = logging.getLogger(__name__)

settings = get_settings()
logging.basicConfig(level=settings.ifrit_log_level.upper())


def resume_interrupted_job() -> None:
    """Pick up a job a previous process left running or pending."""
    job = get_job_store().get_active_job()
    if job is None or job.status == JobStatus.PAUSED:
        return
    logger.info("Resuming job %s left %s by a previous process", job.id, job.status.value)
    get_registry().start(job.id, create_runner(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    resume_interrupted_job()
    yield
    get_registry().stop()


app = FastAPI(
    title="Ifrit Site Builder API",
    description="Autonomous content generation and publishing for static sites.",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

PUBLIC_PATHS = {"/health", "/api/health", "/api"}


# ---------------------------------------------------------------------------
# Authentication middleware: optional shared bearer token (IFRIT_API_TOKEN)
# ---------------------------------------------------------------------------
@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    """Enforce bearer-token auth on non-public API routes when a token is configured."""
    expected = settings.ifrit_api_token
    path = request.url.path.rstrip("/")

    if (
        not expected
        or request.method == "OPTIONS"
        or path in PUBLIC_PATHS
        or path.startswith("/api/docs")
        or path.startswith("/api/redoc")
        or path.startswith("/api/openapi")
        or not path.startswith("/api/")
    ):
        return await call_next(request)

    auth_header = request.headers.get("authorization", "")
    token = auth_header.split(" ", 1)[1] if auth_header.lower().startswith("bearer ") else ""
    if not token or not secrets.compare_digest(token, expected):
        return Response(
            content='{"detail":"Authentication required"}',
            status_code=401,
            media_type="application/json",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await call_next(request)


# ---------------------------------------------------------------------------
# CORS: added last so it is the outermost middleware and 401s carry CORS headers
# ---------------------------------------------------------------------------
logger.info("CORS configured for origins: %s", settings.cors_origin_list)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str
    data_dir: str
    running_job: str | None = None


@app.get("/health", response_model=HealthResponse)
@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        data_dir=str(settings.data_dir),
        running_job=get_registry().current_job_id,
    )


@app.get("/api")
async def root():
    return {"message": "Ifrit Site Builder API", "version": app.version}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
from backend.routes import site_builder  # noqa: E402

app.include_router(site_builder.router, prefix="/api", tags=["site_builder"])
