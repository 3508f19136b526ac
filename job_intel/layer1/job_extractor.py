"""
Job Details Extractor (Layer 1).

Derives structured fields from a job posting page with layered heuristics.
Pure and uncached: the expensive part (the download) is cached upstream,
so extraction simply re-runs on every cached document.

Each field collects candidates from several places and then picks one:

- Title: reader-mode title, <title>, first <h1>, meta tags containing "title".
  Trailing " | Site" / " - Site" suffixes are cut, then the shortest wins.
- Company: meta company/organization/site_name tags, reader-mode byline, the
  text after " at " in any title candidate; body text ("Company: X", or
  "at ProperNoun") only when nothing structured was found. Legal suffixes
  (Inc, LLC, Pty, Ltd) are stripped, then the shortest wins.
- Location: meta location/city/geo tags plus "Location: X" / "Based in: X" in
  the first 1500 characters of body text. Shortest wins.

Every candidate is HTML-stripped before comparison.
"""

import logging
import re
from typing import Callable, Iterable, List, Optional

from job_intel.common.html_sanitizer import normalize_whitespace, sanitize_text
from job_intel.common.readability import ReadableArticle, parse_readable
from job_intel.common.types import JobDetails, JobMetadata

logger = logging.getLogger(__name__)

# ===== LIMITS =====
MAX_BULLET_POINTS = 8
MAX_FALLBACK_PARAGRAPHS = 5
DEFAULT_SUMMARY_SENTENCES = 3
LOCATION_SEARCH_CHARS = 1500

# ===== PATTERNS =====
TITLE_SUFFIX_PATTERN = re.compile(r"\s*(\||\s[-\u2013\u2014]\s).*$", re.DOTALL)
COMPANY_TAIL_PATTERN = re.compile(r"[,|].*$", re.DOTALL)
LEGAL_SUFFIX_PATTERN = re.compile(r"(?:[\s,]+\b(?:inc|llc|pty|ltd)\b\.?)+\s*$", re.IGNORECASE)
LOCATION_TAIL_PATTERN = re.compile(r"[,|].*$", re.DOTALL)

LOCATION_TEXT_PATTERN = re.compile(r"(Location|Based in|Work location)[:\-]\s*([^\n]+)", re.IGNORECASE)
COMPANY_LABEL_PATTERN = re.compile(r"(Company|Organisation|Organization)[:\-]\s*([^\n]+)", re.IGNORECASE)
COMPANY_AT_PATTERN = re.compile(r"\bat\s+([A-Z][A-Za-z0-9&.,'\- ]{2,60})")
SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")

TITLE_META_KEYS = ("title",)
COMPANY_META_KEYS = ("company", "organization", "site_name")
LOCATION_META_KEYS = ("location", "city", "geo")


# ===== CANDIDATE SELECTION =====

def _unique(values: Iterable[Optional[str]]) -> List[str]:
    """Sanitize, drop empties, de-duplicate preserving first-seen order."""
    seen = {}
    for value in values:
        text = sanitize_text(value) if isinstance(value, str) else None
        if text:
            seen.setdefault(text, None)
    return list(seen)


def _pick_shortest(candidates: List[str], clean: Callable[[str], str]) -> str:
    """
    Clean every candidate and return the shortest survivor.

    Ties keep the earliest candidate. When cleaning empties everything the
    first raw candidate is returned.
    """
    if not candidates:
        return ""
    cleaned = [text for text in (clean(candidate).strip() for candidate in candidates) if text]
    if not cleaned:
        return candidates[0]
    return min(cleaned, key=len)


def clean_title(title: str) -> str:
    return TITLE_SUFFIX_PATTERN.sub("", title)


def clean_company(company: str) -> str:
    return LEGAL_SUFFIX_PATTERN.sub("", COMPANY_TAIL_PATTERN.sub("", company).strip())


def clean_location(location: str) -> str:
    return LOCATION_TAIL_PATTERN.sub("", location)


def pick_best_title(titles: List[str]) -> str:
    return _pick_shortest(titles, clean_title)


def pick_best_company(companies: List[str]) -> str:
    return _pick_shortest(companies, clean_company)


def pick_best_location(locations: List[str]) -> str:
    return _pick_shortest(locations, clean_location)


# ===== TEXT HEURISTICS =====

def find_location_in_text(text: str) -> str:
    """Look for a "Location:" style label near the top of the posting."""
    if not text:
        return ""
    match = LOCATION_TEXT_PATTERN.search(text[:LOCATION_SEARCH_CHARS])
    return sanitize_text(match.group(2)) if match else ""


def find_company_in_text(text: str) -> str:
    """Company from body text: an explicit label first, then "at <ProperNoun>"."""
    if not text:
        return ""
    match = COMPANY_LABEL_PATTERN.search(text)
    if match:
        return sanitize_text(match.group(2))
    match = COMPANY_AT_PATTERN.search(text)
    if match:
        return sanitize_text(match.group(1))
    return ""


def split_sentences(text: str) -> List[str]:
    """Split on ., ! or ? followed by whitespace."""
    flattened = normalize_whitespace(text)
    if not flattened:
        return []
    return [sentence.strip() for sentence in SENTENCE_SPLIT_PATTERN.split(flattened) if sentence.strip()]


def summarize(text: str, sentences: int = DEFAULT_SUMMARY_SENTENCES) -> str:
    return " ".join(split_sentences(text)[:sentences])


def dedupe_bullets(items: Iterable[str], limit: int = MAX_BULLET_POINTS) -> List[str]:
    """Trimmed, de-duplicated (order preserved), capped list items."""
    return _unique(items)[:limit]


# ===== EXTRACTION =====

def _meta_candidates(article: ReadableArticle):
    titles, companies, locations = [], [], []
    for meta in article.soup.find_all("meta"):
        name = (meta.get("name") or meta.get("property") or "").lower()
        content = sanitize_text(meta.get("content") or "")
        if not name or not content:
            continue
        if any(key in name for key in TITLE_META_KEYS):
            titles.append(content)
        if any(key in name for key in COMPANY_META_KEYS):
            companies.append(content)
        if any(key in name for key in LOCATION_META_KEYS):
            locations.append(content)
    return titles, companies, locations


def derive_metadata(article: ReadableArticle, url: str, text_content: str) -> JobMetadata:
    """Build JobMetadata from a parsed page."""
    meta_titles, meta_companies, meta_locations = _meta_candidates(article)

    titles = _unique([article.title, article.page_title, article.first_heading, *meta_titles])

    at_companies = []
    for title in titles:
        index = title.lower().find(" at ")
        if index > -1:
            at_companies.append(title[index + 4:])

    company_hints = _unique([*meta_companies, *at_companies, article.byline])
    if not company_hints:
        company_hints = _unique([find_company_in_text(text_content)])

    location_hints = _unique([*meta_locations, find_location_in_text(text_content)])

    return {
        "roleTitle": pick_best_title(titles),
        "companyName": pick_best_company(company_hints),
        "companyHints": company_hints,
        "location": pick_best_location(location_hints),
        "locationHints": location_hints,
        "sourceUrl": url,
    }


def extract_bullet_points(article: ReadableArticle) -> List[str]:
    """List items of the main content; first paragraphs when there are none."""
    items = dedupe_bullets(node.get_text(" ", strip=True) for node in article.root.find_all("li"))
    if items:
        return items

    paragraphs = _unique(node.get_text(" ", strip=True) for node in article.root.find_all("p"))
    return paragraphs[:MAX_FALLBACK_PARAGRAPHS]


def extract_details(html: str, url: str, summary_sentences: int = DEFAULT_SUMMARY_SENTENCES) -> JobDetails:
    """
    Extract structured job details from posting markup.

    Args:
        html: Raw page markup
        url: Resolved (post-redirect) page URL
        summary_sentences: Sentences kept in the summary (3 for the pipeline, 5 for details)

    Returns:
        JobDetails dict
    """
    article = parse_readable(html)
    text_content = sanitize_text(article.text_content) or ""

    metadata = derive_metadata(article, url, text_content)
    details: JobDetails = {
        "metadata": metadata,
        "summary": summarize(text_content, summary_sentences),
        "bulletPoints": extract_bullet_points(article),
        "textContent": text_content,
    }

    logger.debug(
        f"Extracted job details: title='{metadata['roleTitle']}', "
        f"company='{metadata['companyName']}', location='{metadata['location']}', "
        f"bullets={len(details['bulletPoints'])}"
    )
    return details


def derive_company(details: JobDetails) -> str:
    """
    Company name to research for a posting.

    Metadata company name, else the first company hint, else the body-text rule.
    """
    metadata = details.get("metadata") or {}
    if metadata.get("companyName"):
        return metadata["companyName"]
    hints = metadata.get("companyHints") or []
    if hints:
        return hints[0]
    return find_company_in_text(details.get("textContent", ""))
