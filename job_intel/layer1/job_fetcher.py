"""
Job Document Fetcher (Layer 1).

Downloads a job posting page over HTTP, following redirects, and memoizes
the raw markup through the job page TTLCache keyed by URL. Two concurrent
runs for the same posting share one download.

Timeouts are owned by the orchestrator; this module only maps transport
failures onto the pipeline error taxonomy.
"""

import logging
from typing import Optional

import httpx

from job_intel.common.error_handling import StageTimeoutError, UpstreamError, log_on_exception
from job_intel.common.ttl_cache import TTLCache
from job_intel.common.types import JobDocument

logger = logging.getLogger(__name__)

STAGE = "jobFetch"

DEFAULT_USER_AGENT = "JobIntelBot/1.0 (+https://github.com/job-intel/job-intel)"
ACCEPT_HEADER = "text/html,application/xhtml+xml"


class JobDocumentFetcher:
    """Memoized job page downloader."""

    def __init__(
        self,
        cache: TTLCache,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ttl: Optional[float] = None,
    ):
        """
        Args:
            cache: Job page cache (shared across connections)
            user_agent: Outbound User-Agent header
            timeout: httpx timeout in seconds (None = rely on the caller's budget)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            ttl: Cache TTL override (None = cache default)
        """
        self.cache = cache
        self.user_agent = user_agent
        self.timeout = timeout
        self.transport = transport
        self.ttl = ttl

    async def fetch_document(self, url: str) -> JobDocument:
        """
        Fetch a job page, served from cache when possible.

        Args:
            url: Absolute http(s) URL of the posting

        Returns:
            JobDocument with markup and post-redirect URL

        Raises:
            UpstreamError: Non-2xx status or network failure
            StageTimeoutError: httpx gave up waiting
        """
        if not url:
            raise UpstreamError("A job URL is required.", stage=STAGE)
        return await self.cache.remember(url, lambda: self._download(url), ttl=self.ttl)

    async def _download(self, url: str) -> JobDocument:
        logger.info(f"Downloading job page: {url}")
        headers = {"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER}

        with log_on_exception(logger, f"job page fetch {url}"):
            try:
                async with httpx.AsyncClient(
                    transport=self.transport,
                    timeout=self.timeout,
                    follow_redirects=True,
                    headers=headers,
                ) as client:
                    response = await client.get(url)
            except httpx.TimeoutException as e:
                raise StageTimeoutError("Fetching the job posting took too long.", stage=STAGE) from e
            except httpx.RequestError as e:
                raise UpstreamError(f"Unable to reach the job posting: {e}", stage=STAGE) from e

            if not response.is_success:
                raise UpstreamError(
                    f"Job page responded with status {response.status_code}",
                    stage=STAGE,
                    status_code=response.status_code,
                )

        final_url = str(response.url) or url
        logger.info(f"Job page retrieved: {final_url} ({len(response.text)} chars)")
        return JobDocument(html=response.text, final_url=final_url)
