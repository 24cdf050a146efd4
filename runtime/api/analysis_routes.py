"""HTTP proxy endpoints for the analysis collaborator.

Exposes:

- POST /api/analyze-profile -> {image, note?} -> ProfileRecord JSON
- POST /api/analyze-chat    -> {image?, profileContext, note?} -> ReplyAdvice JSON

The server holds the model credential so deployed clients never do.
Every error body is {"error": str} (see the handlers in server.py):
405 for other methods, 500 when the credential is missing, 502 when the
model call or its response fails.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from configs.settings import settings
from core.analysis.client import DirectAnalysisClient
from ..models.api_models import AnalyzeChatRequest, AnalyzeProfileRequest, ErrorResponse


logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request body"},
    405: {"model": ErrorResponse, "description": "Method not allowed"},
    500: {"model": ErrorResponse, "description": "API key missing"},
    502: {"model": ErrorResponse, "description": "Model call or response failed"},
}


def get_analysis_backend() -> DirectAnalysisClient:
    """Build the server-side model client; raises ConfigurationError without a key."""
    return DirectAnalysisClient.from_settings(settings)


@router.post("/analyze-profile", responses=ERROR_RESPONSES)
async def analyze_profile(
    request: AnalyzeProfileRequest,
    backend: DirectAnalysisClient = Depends(get_analysis_backend),
) -> JSONResponse:
    profile = await backend.analyze_profile(request.image, note=request.note)
    logger.info("[API] analyze-profile ok name=%r", profile.display_name)
    return JSONResponse(profile.to_payload())


@router.post("/analyze-chat", responses=ERROR_RESPONSES)
async def analyze_chat(
    request: AnalyzeChatRequest,
    backend: DirectAnalysisClient = Depends(get_analysis_backend),
) -> JSONResponse:
    advice = await backend.analyze_chat(
        request.image,
        request.profile_context,
        note=request.note,
    )
    logger.info("[API] analyze-chat ok suggestions=%d", len(advice.suggestions))
    return JSONResponse(advice.to_payload())
