"""
Pydantic models for the intel service API.

Request fields are typed loosely on purpose: the route validates them and
answers with the exact {"error": "..."} messages clients rely on, instead
of FastAPI's generic 422 payload.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from job_intel.common.error_handling import RequestValidationError


def validate_job_url(value: Any) -> str:
    """
    Trim and check a job URL.

    Raises:
        RequestValidationError: Missing, or not an absolute http(s) URL
    """
    job_url = value.strip() if isinstance(value, str) else ""
    if not job_url:
        raise RequestValidationError("jobUrl is required.")

    try:
        parts = urlsplit(job_url)
    except ValueError:
        parts = None
    if parts is None or parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        raise RequestValidationError("jobUrl must be a valid HTTP or HTTPS URL.")
    return job_url


class JobIntelRequest(BaseModel):
    """Body of POST /api/job-intel."""

    model_config = ConfigDict(populate_by_name=True)

    job_url: Optional[Any] = Field(None, alias="jobUrl", description="Job posting URL (http/https).")
    resume_id: Optional[Any] = Field(None, alias="resumeId", description="Résumé identifier.")
    include_research: Optional[Any] = Field(False, alias="includeResearch", description="Run company research.")
    preferences: Optional[Any] = Field(None, description="Free text, list or mapping of caller preferences.")

    def validated_job_url(self) -> str:
        return validate_job_url(self.job_url)

    def validated_resume_id(self) -> str:
        resume_id = self.resume_id.strip() if isinstance(self.resume_id, str) else ""
        if not resume_id:
            raise RequestValidationError("resumeId is required.")
        return resume_id

    @property
    def wants_research(self) -> bool:
        return bool(self.include_research)


class JobDetailsRequest(BaseModel):
    """Body of POST /api/job-intel/details."""

    model_config = ConfigDict(populate_by_name=True)

    job_url: Optional[Any] = Field(None, alias="jobUrl", description="Job posting URL (http/https).")


class JobDetailsResponse(BaseModel):
    """Extracted job posting, no LLM involved."""

    metadata: Dict[str, Any]
    summary: str
    bullet_points: List[str] = Field(..., alias="bulletPoints")
    text_content: str = Field(..., alias="textContent")

    model_config = ConfigDict(populate_by_name=True)


class ResumeSummary(BaseModel):
    id: str
    name: str
    focus: str


class ResumeListResponse(BaseModel):
    resumes: List[ResumeSummary]


class CacheStats(BaseModel):
    job_pages: int
    research: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    environment: str
    caches: CacheStats
    timestamp: str


class ErrorResponse(BaseModel):
    """Body of every non-streaming error response."""

    error: str
