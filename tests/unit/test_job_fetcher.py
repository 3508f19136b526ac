"""
Unit tests for Layer 1: JobDocumentFetcher.

Uses httpx.MockTransport so no request leaves the process.
"""

import asyncio

import httpx
import pytest

from job_intel.common.error_handling import StageTimeoutError, UpstreamError
from job_intel.common.ttl_cache import TTLCache
from job_intel.layer1.job_fetcher import DEFAULT_USER_AGENT, JobDocumentFetcher


def _fetcher(handler, cache=None):
    return JobDocumentFetcher(
        cache=cache if cache is not None else TTLCache(default_ttl=60, name="job_pages"),
        transport=httpx.MockTransport(handler),
    )


class TestFetchDocument:
    """Test downloading and error mapping."""

    @pytest.mark.asyncio
    async def test_success(self, job_url, job_html):
        """Should return markup and the final URL."""
        seen = {}

        def handler(request):
            seen["user_agent"] = request.headers["user-agent"]
            seen["accept"] = request.headers["accept"]
            return httpx.Response(200, text=job_html)

        document = await _fetcher(handler).fetch_document(job_url)

        assert document.html == job_html
        assert document.final_url == job_url
        assert seen["user_agent"] == DEFAULT_USER_AGENT
        assert "text/html" in seen["accept"]

    @pytest.mark.asyncio
    async def test_follows_redirects(self):
        """Should report the post-redirect URL."""
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://jobs.example.com/new"})
            return httpx.Response(200, text="<html>moved</html>")

        document = await _fetcher(handler).fetch_document("https://jobs.example.com/old")

        assert document.final_url == "https://jobs.example.com/new"
        assert document.html == "<html>moved</html>"

    @pytest.mark.asyncio
    async def test_non_success_status_raises_upstream_error(self, job_url):
        def handler(request):
            return httpx.Response(404, text="gone")

        with pytest.raises(UpstreamError) as exc_info:
            await _fetcher(handler).fetch_document(job_url)

        assert exc_info.value.status_code == 404
        assert exc_info.value.stage == "jobFetch"
        assert exc_info.value.message == "Job page responded with status 404"

    @pytest.mark.asyncio
    async def test_network_error_raises_upstream_error(self, job_url):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError, match="Unable to reach the job posting"):
            await _fetcher(handler).fetch_document(job_url)

    @pytest.mark.asyncio
    async def test_transport_timeout_raises_stage_timeout(self, job_url):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(StageTimeoutError, match="took too long"):
            await _fetcher(handler).fetch_document(job_url)

    @pytest.mark.asyncio
    async def test_empty_url_rejected(self):
        with pytest.raises(UpstreamError):
            await _fetcher(lambda request: httpx.Response(200)).fetch_document("")


class TestFetchCaching:
    """Test page memoization through the shared cache."""

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_download(self, job_url, job_html):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(200, text=job_html)

        fetcher = _fetcher(handler)
        first, second = await asyncio.gather(
            fetcher.fetch_document(job_url),
            fetcher.fetch_document(job_url),
        )

        assert calls == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_cached_page_reused_across_fetchers(self, job_url, job_html):
        """Should serve later fetches from the cache."""
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(200, text=job_html)

        cache = TTLCache(default_ttl=60)
        await _fetcher(handler, cache).fetch_document(job_url)
        await _fetcher(handler, cache).fetch_document(job_url)

        assert calls == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, job_url, job_html):
        responses = [httpx.Response(500), httpx.Response(200, text=job_html)]

        def handler(request):
            return responses.pop(0)

        fetcher = _fetcher(handler)
        with pytest.raises(UpstreamError):
            await fetcher.fetch_document(job_url)

        document = await fetcher.fetch_document(job_url)
        assert document.html == job_html
