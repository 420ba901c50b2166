"""Task Router - FastAPI Application.

Receives task change webhooks from the task system and files each task into
the project group of its responsible user's department. Updates are only
issued when marker fields on the task show something relevant changed.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncIterator, Callable
from urllib.parse import parse_qsl

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from .clients import DirectoryClient, TaskGateway, UpstreamClient
from .config import get_settings
from .credentials import get_upstream_endpoint, initialize_credentials
from .errors import TaskRouterError
from .handler import TaskRouter, extract_task_id
from .routing import NoOp
from .routing_config import get_routing_config

# Configure logging
settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

BASE_URL = "/task_manager_webhook/"


# =============================================================================
# Helper Functions
# =============================================================================


def error_response(message: str = "Server error", status_code: int = 500) -> JSONResponse:
    """Opaque failure envelope returned to webhook callers."""
    return JSONResponse(
        status_code=status_code,
        content={"status": False, "status_msg": "error", "message": message},
    )


async def read_payload(request: Request) -> dict:
    """Parse a JSON or form-encoded body into a dict ({} if empty or unreadable)."""
    body = await request.body()
    if not body:
        return {}

    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Ignoring unparseable request body")
        return {}
    return payload if isinstance(payload, dict) else {}


@asynccontextmanager
async def open_task_router() -> AsyncIterator[TaskRouter]:
    """Build per-request collaborators over a fresh HTTP client."""
    current = get_settings()
    config = get_routing_config()
    upstream = UpstreamClient(
        get_upstream_endpoint(), timeout=current.upstream_timeout_seconds
    )
    try:
        yield TaskRouter(
            DirectoryClient(upstream, page_size=current.directory_page_size),
            TaskGateway(upstream, config),
            config,
        )
    finally:
        await upstream.aclose()


def get_router_factory() -> Callable:
    """Dependency returning the router factory (overridden in tests)."""
    return open_task_router


# =============================================================================
# App Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Task Router...")

    # Invalid routing files and broken key material are fatal here
    config = get_routing_config()
    logger.info(
        f"Routing {len(config.routes)} departments, forced group {config.forced_group_id}"
    )

    if get_settings().credentials_configured:
        get_upstream_endpoint()
        logger.info("Upstream endpoint loaded")
    else:
        logger.warning(f"Credentials not set - call {BASE_URL}init/ first")

    yield

    # Shutdown
    logger.info("Task Router stopped")


app = FastAPI(
    title="Task Router",
    description="Routes tasks into project groups by responsible user's department",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# API Routes
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "credentials_configured": get_settings().credentials_configured,
    }


@app.post(BASE_URL + "init/")
async def init_credentials(request: Request):
    """Store the incoming webhook endpoint, encrypted with fresh key material."""
    payload = await read_payload(request)
    bx_link = str(payload.get("bx_link") or "").strip()
    if not bx_link:
        return error_response(
            "Необходимо предоставить ссылку входящего вебхука!", status_code=400
        )

    try:
        initialize_credentials(bx_link, Path(get_settings().env_file_path))
    except Exception:
        logger.exception(BASE_URL + "init failed")
        return error_response()

    return {
        "status": True,
        "status_msg": "success",
        "message": "Система готова работать с вашим битриксом!",
    }


@app.post(BASE_URL + "move_task_in_project/")
@app.post(BASE_URL + "move_task_in_project/{task_id}")
async def move_task_in_project(
    request: Request, router_factory: Callable = Depends(get_router_factory)
):
    """Handle a task change event: move the task to its department's group."""
    operation = BASE_URL + "move_task_in_project"
    payload = await read_payload(request)
    task_id = extract_task_id(
        payload, request.query_params, request.path_params.get("task_id")
    )
    if task_id is None:
        logger.error(f"{operation}: Task ID is not provided")
        return error_response()

    try:
        async with router_factory() as router:
            outcome = await router.route_task(task_id)
    except TaskRouterError as e:
        logger.error(f"{operation}: {type(e).__name__}: {e}")
        return error_response()
    except Exception:
        logger.exception(f"{operation}: unexpected failure for task {task_id}")
        return error_response()

    if isinstance(outcome.decision, NoOp):
        return Response(status_code=200)
    return JSONResponse(content=outcome.response)
