"""
Job intelligence routes.

POST /api/job-intel          stream a pipeline run as Server-Sent Events
POST /api/job-intel/details  fetch and extract a posting (no LLM)
GET  /api/job-intel/resumes  list the résumés a run can use

Input problems are rejected with {"error": "..."} before any network call
or stream begins.
"""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from job_intel.common.error_handling import RequestValidationError, StageError
from job_intel.common.html_sanitizer import sanitize_preferences
from job_intel.common.resume_library import ResumeLibrary
from job_intel.services.job_intel_service import JobIntelService, PipelineRequest

from ..auth import verify_api_key
from ..dependencies import (
    ServiceContainer,
    enforce_rate_limit,
    get_container,
    get_resume_library,
    get_service,
)
from ..models import (
    ErrorResponse,
    JobDetailsRequest,
    JobDetailsResponse,
    JobIntelRequest,
    ResumeListResponse,
    validate_job_url,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/job-intel", tags=["job-intel"])

LLM_NOT_CONFIGURED_MESSAGE = "OpenAI API key is not configured on the server."

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
}

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


@router.post(
    "",
    dependencies=[Depends(enforce_rate_limit), Depends(verify_api_key)],
    response_class=StreamingResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def start_job_intel(
    body: JobIntelRequest,
    container: ServiceContainer = Depends(get_container),
    service: JobIntelService = Depends(get_service),
    resume_library: ResumeLibrary = Depends(get_resume_library),
) -> StreamingResponse:
    """
    Run the job intelligence pipeline and stream its progress.

    Events: progress, heartbeat, then exactly one of result (followed by
    complete) or error.
    """
    job_url = body.validated_job_url()
    resume_id = body.validated_resume_id()

    resume = resume_library.find(resume_id)
    if resume is None:
        raise RequestValidationError("Unknown resumeId provided.", status_code=404)

    if not container.llm_configured:
        raise HTTPException(status_code=500, detail=LLM_NOT_CONFIGURED_MESSAGE)

    request = PipelineRequest(
        job_url=job_url,
        resume=resume,
        include_research=body.wants_research,
        preferences=sanitize_preferences(body.preferences),
    )
    logger.info(f"Starting run {request.run_id[:8]} for {job_url}")

    async def event_generator() -> AsyncIterator[str]:
        async for event in service.stream(request):
            yield event.to_sse()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/details",
    dependencies=[Depends(enforce_rate_limit), Depends(verify_api_key)],
    response_model=JobDetailsResponse,
    responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse}},
)
async def get_job_details(
    body: JobDetailsRequest,
    service: JobIntelService = Depends(get_service),
) -> JobDetailsResponse:
    """Fetch a posting through the shared page cache and return its extracted details."""
    job_url = validate_job_url(body.job_url)

    try:
        details = await service.fetch_details(job_url)
    except StageError as e:
        logger.warning(f"Job details fetch failed for {job_url}: {e.message}")
        raise HTTPException(status_code=502, detail=e.user_message)

    return JobDetailsResponse.model_validate(details)


@router.get("/resumes", response_model=ResumeListResponse)
async def list_resumes(resume_library: ResumeLibrary = Depends(get_resume_library)) -> ResumeListResponse:
    """Identifiers, names and focus lines of the available résumés."""
    return ResumeListResponse(resumes=resume_library.list_summaries())
