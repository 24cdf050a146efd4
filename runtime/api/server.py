"""
FastAPI application entry point for the RizzCoach runtime.

Responsibilities:
- create the FastAPI app
- construct shared singletons (SessionStore, LogStore, analysis client, ConversationAgent)
- include the analysis proxy routes under /api and session routes under /agent
- render every error as {"error": str}
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from configs.logging_config import configure_logging
from configs.settings import settings
from core.analysis.client import select_analysis_client
from exceptions.exceptions import (
    AnalysisError,
    AnalysisRequestError,
    ConfigurationError,
)
from runtime.agents.conversation_agent import ConversationAgent
from runtime.store.log_store import LogStore
from runtime.store.session_store import SessionStore
from . import analysis_routes, session_routes


logger = logging.getLogger(__name__)

configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

# Session storage: in-memory only, for the process lifetime.
session_store = SessionStore()

log_store = LogStore()

# Transport strategy is chosen once per process.
analysis_client = select_analysis_client(settings)

# Main conversation agent used by the /agent routes.
conversation_agent = ConversationAgent(
    session_store=session_store,
    analysis_client=analysis_client,
    log_store=log_store,
)

# ---------------------------------------------------------------------------
# FastAPI app + route registration
# ---------------------------------------------------------------------------

app = FastAPI(title="RizzCoach Runtime")

# Initialize the router module with our shared objects, then include it.
session_routes.init_routes(
    session_store=session_store,
    conversation_agent=conversation_agent,
    log_store=log_store,
)
app.include_router(session_routes.router, prefix="/agent")
app.include_router(analysis_routes.router, prefix="/api")


# ---------------------------------------------------------------------------
# Error rendering
# ---------------------------------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == 405:
        detail = "Method not allowed"
    return JSONResponse({"error": detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
    return JSONResponse({"error": f"Invalid request body ({fields})"}, status_code=400)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("[API] %s %s: %s", request.method, request.url.path, exc.details)
    return JSONResponse({"error": ConfigurationError.user_message}, status_code=500)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError) -> JSONResponse:
    logger.warning("[API] %s %s failed: %s", request.method, request.url.path, exc.reason)
    status_code = 400 if isinstance(exc, AnalysisRequestError) else 502
    return JSONResponse({"error": exc.reason}, status_code=status_code)
