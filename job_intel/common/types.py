"""
Data contracts shared by the pipeline stages.

Stage outputs are plain TypedDicts keyed the way they appear on the wire
(camelCase), so they can be embedded in prompts and SSE payloads as-is.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, TypedDict


@dataclass(frozen=True)
class JobDocument:
    """Raw job page markup plus the post-redirect URL. Held only during extraction."""
    html: str
    final_url: str


class JobMetadata(TypedDict):
    roleTitle: str
    companyName: str
    companyHints: List[str]      # every company candidate, shortest first
    location: str
    locationHints: List[str]     # every location candidate, shortest first
    sourceUrl: str


class JobDetails(TypedDict):
    """
    Structured job posting (Layer 1).

    Re-derived from the cached document on every run; extraction is cheap.
    """
    metadata: JobMetadata
    summary: str                 # first N sentences of the body text
    bulletPoints: List[str]      # <= 8, de-duplicated
    textContent: str             # sanitized plain text


class ResearchPage(TypedDict):
    url: str
    title: str
    textContent: str


class ResearchFacts(TypedDict):
    values: List[str]
    products: List[str]
    recentNews: List[str]
    highlights: List[str]


class ResearchPayload(TypedDict):
    """
    Company research output (Layer 3).

    facts is None when no official domain could be identified.
    """
    companyName: str
    domain: Optional[str]
    pages: List[ResearchPage]
    facts: Optional[ResearchFacts]


class ResearchSource(TypedDict):
    title: str
    url: str


ResearchStatus = Literal["cached", "fetched", "skipped"]


class PromptProfile(TypedDict):
    id: str
    name: str
    focus: str                   # <= 220 chars
    topHighlights: List[str]     # <= 3
    prioritySkills: List[str]    # <= 12, lower-cased
    primaryMetrics: List[str]    # <= 3, quantified highlights first


class Resume(TypedDict):
    id: str
    name: str
    focus: str
    highlights: List[str]
    skills: List[str]
    promptProfile: PromptProfile


Preferences = Dict[str, Any]
