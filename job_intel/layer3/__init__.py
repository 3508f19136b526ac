"""Layer 3: company research."""

from job_intel.layer3.company_researcher import CompanyResearcher, research_sources
from job_intel.layer3.web_search import FirecrawlSearchClient, SearchHit, create_search_client

__all__ = [
    "CompanyResearcher",
    "FirecrawlSearchClient",
    "SearchHit",
    "create_search_client",
    "research_sources",
]
