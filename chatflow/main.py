# chatflow/main.py
"""
Preview API for the flow editor's "test flow" dialog.

The editor posts the current nodes and edges, gets back a session snapshot
with the transcript, then feeds replies until the run ends.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from contextlib import asynccontextmanager

from chatflow import __version__
from chatflow.core.config import settings, validate_required_settings
from chatflow.core.exceptions import FlowStateError, GraphValidationError, SessionError
from chatflow.core.logging_config import setup_logging
from chatflow.core.orchestrator import get_runner, init_runner
from chatflow.core.rate_limit_config import RATE_LIMIT_TIERS, get_rate_limit_message, get_real_ip
from chatflow.models.flow_graph import FlowGraph


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan event handler for startup/shutdown"""
    logger.info("=" * 60)
    logger.info(f"🚀 {settings.APP_NAME} preview API starting...")
    logger.info("=" * 60)

    if not validate_required_settings():
        logger.warning("⚠️ Some environment variables are missing - AI nodes stay simulated")

    runner = init_runner()

    logger.info("📋 Configuration:")
    logger.info(f"  - Max steps per run: {settings.MAX_STEPS}")
    logger.info(f"  - Max wait: {settings.MAX_WAIT_SECONDS}s (scale {settings.DELAY_SCALE})")
    logger.info(f"  - Simulated AI: {settings.PREVIEW_SIMULATE_AI}")
    logger.info(f"  - HTTP actions: {settings.PREVIEW_HTTP_ENABLED}")
    logger.info("✅ Preview API ready")

    yield

    logger.info("🛑 Preview API shutting down...")
    await runner.shutdown()


app = FastAPI(
    title=f"{settings.APP_NAME} Preview API",
    description="Runs chatbot flows for the editor's test dialog",
    version=__version__,
    lifespan=lifespan,
)

logger = setup_logging()

# =============================================================================
# RATE LIMITING
# =============================================================================

limiter = Limiter(key_func=get_real_ip)


def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Rate limit response with a message per endpoint group"""
    endpoint = "flow_test" if request.url.path.startswith("/flows") else "flow_step"
    response = PlainTextResponse(
        content=get_rate_limit_message(endpoint),
        status_code=429,
    )
    response.headers["Retry-After"] = "60"
    response.headers["X-RateLimit-Limit"] = str(getattr(exc, "limit", "N/A"))
    return response


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
app.state.limiter = limiter

RATE_LIMITS = RATE_LIMIT_TIERS["default"]

# =============================================================================
# ERROR MAPPING
# =============================================================================


@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError):
    return JSONResponse(status_code=404, content={"detail": exc.message, "session_id": exc.session_id})


@app.exception_handler(FlowStateError)
async def flow_state_error_handler(request: Request, exc: FlowStateError):
    return JSONResponse(status_code=409, content={"detail": exc.message, "status": exc.status})


@app.exception_handler(GraphValidationError)
async def graph_validation_error_handler(request: Request, exc: GraphValidationError):
    logger.info(f"Rejected flow graph: {exc.message}")
    return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests except health checks"""
    if request.url.path not in ("/", "/health"):
        logger.info(f"📥 Request: {request.method} {request.url.path}")
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# =============================================================================
# API MODELS
# =============================================================================


class FlowTestRequest(BaseModel):
    """Nodes and edges in their stored record shape"""
    flow_id: Optional[str] = None
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    start_node_id: Optional[str] = None


class ReplyRequest(BaseModel):
    text: str


class OptionRequest(BaseModel):
    option: str


# =============================================================================
# ENDPOINTS
# =============================================================================


@app.get("/", status_code=200)
def read_root():
    """Health check endpoint"""
    return {"status": "ok", "version": __version__, "service": "chatflow"}


@app.get("/health")
async def health_check():
    """Detailed health status of the runner and its engine"""
    return await get_runner().health_check()


@app.post("/flows/test")
@limiter.limit(RATE_LIMITS["flow_test"])
async def start_flow_test(request: Request, req: FlowTestRequest):
    """
    Start a test run of the submitted flow.

    Configuration problems (no start node, dangling edges) do not fail the
    request; they show up in the returned transcript.
    """
    graph = FlowGraph.from_records(req.nodes, req.edges, flow_id=req.flow_id)
    runner = get_runner()
    session = await runner.start_run(graph, start_override_node_id=req.start_node_id)
    return runner.session_view(session)


@app.post("/sessions/{session_id}/reply")
@limiter.limit(RATE_LIMITS["flow_step"])
async def submit_reply(request: Request, session_id: str, req: ReplyRequest):
    runner = get_runner()
    session = await runner.submit_reply(runner.get_session(session_id), req.text)
    return runner.session_view(session)


@app.post("/sessions/{session_id}/option")
@limiter.limit(RATE_LIMITS["flow_step"])
async def submit_option(request: Request, session_id: str, req: OptionRequest):
    runner = get_runner()
    session = await runner.submit_option(runner.get_session(session_id), req.option)
    return runner.session_view(session)


@app.post("/sessions/{session_id}/reset")
@limiter.limit(RATE_LIMITS["flow_step"])
async def reset_session(request: Request, session_id: str):
    """Discard the session and restart the same flow snapshot under a new id"""
    runner = get_runner()
    old_session = runner.get_session(session_id)
    session = await runner.reset(old_session.graph, old_session)
    return runner.session_view(session)


@app.get("/sessions/{session_id}")
@limiter.limit(RATE_LIMITS["global"])
async def get_session(request: Request, session_id: str):
    runner = get_runner()
    return runner.session_view(runner.get_session(session_id))


@app.delete("/sessions/{session_id}")
@limiter.limit(RATE_LIMITS["global"])
async def delete_session(request: Request, session_id: str):
    if not get_runner().discard_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return {"deleted": True, "session_id": session_id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
