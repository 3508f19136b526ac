"""
Web Search Client (Layer 3).

Thin async wrapper over the FireCrawl search API. The SDK is synchronous,
so calls run in a worker thread. A research timeout or client disconnect
releases the awaiting task at once, but the thread itself cannot be
interrupted: the SDK call runs to completion and its result is discarded.

Without FIRECRAWL_API_KEY no client is created and research is skipped.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from firecrawl import FirecrawlApp

from job_intel.common.config import Config
from job_intel.common.error_handling import UpstreamError

logger = logging.getLogger(__name__)

STAGE = "research"


@dataclass
class SearchHit:
    """One ranked web result."""
    url: str
    title: str
    description: str = ""


def _extract_search_results(search_response: Any) -> List[Any]:
    """
    Normalize FireCrawl search responses across SDK versions into a list.

    Supports:
      - New client: response.web (list of objects with .url / .title)
      - Older client: response.data
      - Dict responses: {"web": [...]} or {"data": [...]}
      - Bare lists
    """
    if not search_response:
        return []

    results = getattr(search_response, "web", None)
    if results is None and hasattr(search_response, "data"):
        results = getattr(search_response, "data", None)

    if results is None and isinstance(search_response, dict):
        results = (
            search_response.get("web")
            or search_response.get("data")
            or search_response.get("results")
        )

    if results is None and isinstance(search_response, list):
        results = search_response

    return results or []


def _field(result: Any, name: str) -> str:
    """Read a field from either an SDK object or a dict."""
    value = getattr(result, name, None)
    if value is None and isinstance(result, dict):
        value = result.get(name)
    if value is None and name == "title":
        metadata = getattr(result, "metadata", None) or (
            result.get("metadata") if isinstance(result, dict) else None
        )
        if isinstance(metadata, dict):
            value = metadata.get("title")
    return value if isinstance(value, str) else ""


class FirecrawlSearchClient:
    """Async search over FireCrawl."""

    def __init__(self, api_key: str, limit: int = 10, app: Optional[Any] = None):
        self.limit = limit
        self.app = app if app is not None else FirecrawlApp(api_key=api_key)

    async def search(self, query: str) -> List[SearchHit]:
        """
        Run a web search.

        Args:
            query: Free-text query

        Returns:
            Ranked hits that carry a URL

        Raises:
            UpstreamError: If the search API call fails
        """
        logger.info(f"[FireCrawl] search query: {query}")
        try:
            # Cancelling this await abandons the thread; it is not stopped
            response = await asyncio.to_thread(self.app.search, query, limit=self.limit)
        except Exception as e:
            raise UpstreamError(f"Search API request failed: {e}", stage=STAGE) from e

        hits = []
        for result in _extract_search_results(response):
            url = _field(result, "url")
            if not url:
                continue
            hits.append(SearchHit(url=url, title=_field(result, "title"), description=_field(result, "description")))

        logger.info(f"[FireCrawl] {len(hits)} results for: {query}")
        return hits


def create_search_client(api_key: Optional[str] = None, limit: Optional[int] = None) -> Optional[FirecrawlSearchClient]:
    """Build a search client from Config, or None when no key is configured."""
    if api_key is None and Config.has_search_credentials():
        api_key = Config.FIRECRAWL_API_KEY
    if not api_key:
        logger.info("FIRECRAWL_API_KEY not set; company research will be skipped")
        return None
    return FirecrawlSearchClient(api_key=api_key, limit=limit or Config.SEARCH_RESULT_LIMIT)
