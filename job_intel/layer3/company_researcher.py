"""
Company Research Aggregator (Layer 3).

Finds the hiring company's official site through web search, reads a few of
its pages and mines sentence-level facts with keyword heuristics. Results
are memoized in the research TTLCache by lower-cased company name.

Algorithm:
1. Search "<company> company (about OR values OR mission OR products)"
2. Official domain = shortest result hostname (leading "www." dropped)
3. Fetch up to 5 result pages on that hostname, sequentially
4. Classify sentences (> 20 chars) into values / products / recentNews,
   at most 3 per page each and 5 overall; highlights take the first 2
   sentences of every page, 5 overall

No official domain (or no search credential) yields a payload with
facts=None, which the orchestrator reports as "research skipped". Such
payloads are not cached so a later run can try again.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlsplit

import httpx

from job_intel.common.html_sanitizer import sanitize_array, sanitize_text
from job_intel.common.readability import parse_readable
from job_intel.common.ttl_cache import TTLCache
from job_intel.common.types import ResearchFacts, ResearchPage, ResearchPayload
from job_intel.layer1.job_extractor import split_sentences
from job_intel.layer1.job_fetcher import ACCEPT_HEADER, DEFAULT_USER_AGENT
from job_intel.layer3.web_search import FirecrawlSearchClient, SearchHit

logger = logging.getLogger(__name__)

MAX_RESEARCH_PAGES = 5
MAX_FACTS_PER_PAGE = 3
MAX_FACTS_TOTAL = 5
HIGHLIGHTS_PER_PAGE = 2
MIN_SENTENCE_CHARS = 20

SEARCH_QUERY_TEMPLATE = "{company} company (about OR values OR mission OR products)"

# ===== SENTENCE CLASSIFIERS =====
VALUES_PATTERN = re.compile(r"value|mission|culture|principle|ethos", re.IGNORECASE)
PRODUCTS_PATTERN = re.compile(r"product|service|platform|solution|suite|technology|tool", re.IGNORECASE)
NEWS_PATTERN = re.compile(r"news|announc|launch|recent|award|partner|expan|202[0-9]", re.IGNORECASE)


def normalize_hostname(url: str) -> Optional[str]:
    """Lower-cased hostname without a leading "www.", or None for unparseable URLs."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    hostname = parts.hostname.lower()
    return hostname[4:] if hostname.startswith("www.") else hostname


def pick_official_domain(hits: Iterable[SearchHit]) -> Optional[str]:
    """
    Choose the most likely official domain among search results.

    The shortest hostname wins; ties keep the higher-ranked result.
    """
    hostnames = [hostname for hostname in (normalize_hostname(hit.url) for hit in hits) if hostname]
    if not hostnames:
        return None
    return min(hostnames, key=len)


def summarise_research_content(pages: List[ResearchPage]) -> ResearchFacts:
    """Classify page sentences into values, products, news and highlights."""
    values: List[str] = []
    products: List[str] = []
    news: List[str] = []
    highlights: List[str] = []

    for page in pages:
        sentences = [s for s in split_sentences(page["textContent"]) if len(s) > MIN_SENTENCE_CHARS]

        values.extend([s for s in sentences if VALUES_PATTERN.search(s)][:MAX_FACTS_PER_PAGE])
        products.extend([s for s in sentences if PRODUCTS_PATTERN.search(s)][:MAX_FACTS_PER_PAGE])
        news.extend([s for s in sentences if NEWS_PATTERN.search(s)][:MAX_FACTS_PER_PAGE])
        highlights.extend(sentences[:HIGHLIGHTS_PER_PAGE])

    return {
        "values": sanitize_array(values, MAX_FACTS_TOTAL),
        "products": sanitize_array(products, MAX_FACTS_TOTAL),
        "recentNews": sanitize_array(news, MAX_FACTS_TOTAL),
        "highlights": sanitize_array(highlights, MAX_FACTS_TOTAL),
    }


def research_sources(payload: Optional[ResearchPayload], limit: int = MAX_RESEARCH_PAGES) -> List[Dict[str, str]]:
    """Title/URL pairs of the pages a payload was built from."""
    if not payload:
        return []
    return [{"title": page["title"], "url": page["url"]} for page in payload.get("pages", [])][:limit]


class CompanyResearcher:
    """
    Memoized company research.

    Usage:
        researcher = CompanyResearcher(cache, create_search_client())
        if researcher.enabled:
            payload = await researcher.research("Acme Corp")
    """

    def __init__(
        self,
        cache: TTLCache,
        search_client: Optional[FirecrawlSearchClient],
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ttl: Optional[float] = None,
        max_pages: int = MAX_RESEARCH_PAGES,
    ):
        self.cache = cache
        self.search_client = search_client
        self.user_agent = user_agent
        self.transport = transport
        self.ttl = ttl
        self.max_pages = max_pages

    @property
    def enabled(self) -> bool:
        """Research needs a configured search client."""
        return self.search_client is not None

    @staticmethod
    def cache_key(company: str) -> str:
        return company.strip().lower()

    def cached(self, company: str) -> Optional[ResearchPayload]:
        """Cached payload for a company, without triggering any lookup."""
        return self.cache.get(self.cache_key(company))

    async def research(self, company: str) -> ResearchPayload:
        """
        Research a company, memoized by lower-cased name.

        Args:
            company: Company name as derived from the posting

        Returns:
            ResearchPayload (facts=None when no official site was found)

        Raises:
            UpstreamError: If the search API fails
        """
        return await self.cache.remember(
            self.cache_key(company),
            lambda: self._gather(company),
            ttl=self.ttl,
            cache_if=lambda payload: payload["facts"] is not None,
        )

    async def _gather(self, company: str) -> ResearchPayload:
        if self.search_client is None:
            logger.info(f"Search not configured, skipping research for {company}")
            return {"companyName": company, "domain": None, "pages": [], "facts": None}

        hits = await self.search_client.search(SEARCH_QUERY_TEMPLATE.format(company=company))
        domain = pick_official_domain(hits)
        if domain is None:
            logger.info(f"No official domain found for {company}")
            return {"companyName": company, "domain": None, "pages": [], "facts": None}

        targets = [hit for hit in hits if normalize_hostname(hit.url) == domain][: self.max_pages]
        logger.info(f"Official domain for {company}: {domain} ({len(targets)} pages)")

        pages = await self._fetch_pages(targets)
        return {
            "companyName": company,
            "domain": domain,
            "pages": pages,
            "facts": summarise_research_content(pages),
        }

    async def _fetch_pages(self, targets: List[SearchHit]) -> List[ResearchPage]:
        """Fetch pages one after another; a failed page is logged and skipped."""
        pages: List[ResearchPage] = []
        headers = {"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER}

        async with httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            headers=headers,
        ) as client:
            for hit in targets:
                try:
                    response = await client.get(hit.url)
                except httpx.HTTPError as e:
                    logger.warning(f"Research page fetch failed for {hit.url}: {e}")
                    continue

                if not response.is_success:
                    logger.debug(f"Research page {hit.url} responded with status {response.status_code}")
                    continue

                article = parse_readable(response.text)
                text_content = sanitize_text(article.text_content)
                if not text_content:
                    continue

                pages.append({
                    "url": hit.url,
                    "title": sanitize_text(article.title or hit.title or ""),
                    "textContent": text_content,
                })

        return pages
