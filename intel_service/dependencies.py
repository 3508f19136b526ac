"""
Dependency wiring for the intel service.

All shared state (the two caches, the rate limiter and the pipeline
components built on them) lives in one ServiceContainer created by the app
factory and stored on app.state. Routes reach it through FastAPI
dependencies, never through module globals, so each app (and each test)
gets its own caches.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from fastapi import Depends, HTTPException, Request

from job_intel.common.config import Config
from job_intel.common.rate_limiter import RateLimiter, RateLimitExceededError
from job_intel.common.resume_library import ResumeLibrary
from job_intel.common.ttl_cache import TTLCache
from job_intel.layer1.job_fetcher import JobDocumentFetcher
from job_intel.layer3.company_researcher import CompanyResearcher
from job_intel.layer3.web_search import FirecrawlSearchClient, create_search_client
from job_intel.layer6.cover_letter_generator import CoverLetterGenerator
from job_intel.services.job_intel_service import JobIntelService, StageTimeouts

from .config import IntelSettings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please retry later."

_FROM_CONFIG: Any = object()


@dataclass
class ServiceContainer:
    """Everything a request handler may need, built once per app."""
    settings: IntelSettings
    job_page_cache: TTLCache
    research_cache: TTLCache
    service: JobIntelService
    resume_library: ResumeLibrary
    rate_limiter: RateLimiter
    llm_configured: bool


def build_container(
    settings: IntelSettings,
    search_client: Optional[FirecrawlSearchClient] = _FROM_CONFIG,
    llm: Optional[Any] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    resume_library: Optional[ResumeLibrary] = None,
    llm_configured: Optional[bool] = None,
) -> ServiceContainer:
    """
    Construct caches and pipeline components from settings.

    Args:
        settings: Validated service settings
        search_client: Web search client; defaults to one built from FIRECRAWL_API_KEY
        llm: Chat model override (tests pass a mock)
        transport: httpx transport override for outbound page fetches
        resume_library: Résumé collaborator; defaults to the bundled set
        llm_configured: Override for the OpenAI credential check

    Returns:
        ServiceContainer
    """
    job_page_cache = TTLCache(
        default_ttl=settings.job_page_cache_ttl_seconds,
        max_entries=settings.job_page_cache_max_entries,
        name="job_pages",
    )
    research_cache = TTLCache(
        default_ttl=settings.research_cache_ttl_seconds,
        max_entries=settings.research_cache_max_entries,
        name="research",
    )

    if search_client is _FROM_CONFIG:
        search_client = create_search_client()

    fetcher = JobDocumentFetcher(
        cache=job_page_cache,
        user_agent=settings.job_intel_user_agent,
        transport=transport,
    )
    researcher = CompanyResearcher(
        cache=research_cache,
        search_client=search_client,
        user_agent=settings.job_intel_user_agent,
        transport=transport,
    )
    service = JobIntelService(
        fetcher=fetcher,
        researcher=researcher,
        generator=CoverLetterGenerator(llm=llm),
        timeouts=StageTimeouts(
            job_fetch=settings.job_fetch_timeout_seconds,
            research=settings.research_timeout_seconds,
            llm=settings.openai_timeout_seconds,
        ),
        heartbeat_interval=settings.heartbeat_interval_seconds,
    )

    if llm_configured is None:
        llm_configured = llm is not None or Config.has_llm_credentials()

    return ServiceContainer(
        settings=settings,
        job_page_cache=job_page_cache,
        research_cache=research_cache,
        service=service,
        resume_library=resume_library or ResumeLibrary.default(),
        rate_limiter=RateLimiter(
            max_requests=settings.job_intel_rate_limit,
            window_seconds=settings.job_intel_rate_window_seconds,
        ),
        llm_configured=llm_configured,
    )


# ===== FASTAPI DEPENDENCIES =====

def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_app_settings(container: ServiceContainer = Depends(get_container)) -> IntelSettings:
    return container.settings


def get_service(container: ServiceContainer = Depends(get_container)) -> JobIntelService:
    return container.service


def get_resume_library(container: ServiceContainer = Depends(get_container)) -> ResumeLibrary:
    return container.resume_library


async def enforce_rate_limit(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    """
    Per-client sliding window limit.

    Raises:
        HTTPException: 429 with a Retry-After header
    """
    client_key = request.client.host if request.client else "unknown"
    try:
        container.rate_limiter.check(client_key)
    except RateLimitExceededError as e:
        logger.warning(f"Rate limit hit for {client_key}")
        raise HTTPException(
            status_code=429,
            detail=RATE_LIMIT_MESSAGE,
            headers={"Retry-After": str(max(1, math.ceil(e.retry_after)))},
        )
