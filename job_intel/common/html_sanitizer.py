"""
HTML Sanitizer.

Hard-strips markup from every string that crosses a stage boundary so no
HTML ever reaches the prompt, the stream, or the client.

Usage:
    from job_intel.common.html_sanitizer import sanitize_text, sanitize_array

    sanitize_text("<b>Senior</b>&nbsp;Analyst ")
    # Returns: "Senior Analyst"

    sanitize_array(["<li>Python</li>", "", "SQL"], limit=5)
    # Returns: ["Python", "SQL"]
"""

import json
import re
import warnings
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

# Plain strings that look like URLs or file names trigger a bs4 warning.
warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)

_WHITESPACE_RE = re.compile(r"\s+")


_DROPPED_TAGS = ["script", "style"]


def _strip_tags(value: str) -> str:
    """Remove every tag, keeping only text content."""
    if "<" not in value and "&" not in value:
        return value
    soup = BeautifulSoup(value, "html.parser")
    for node in soup(_DROPPED_TAGS):
        node.decompose()
    # Decoded entities stay text and never turn back into tags
    return soup.get_text().replace("<", "&lt;").replace(">", "&gt;")


def sanitize_text(value: Any) -> Any:
    """
    Strip markup from a single value and trim it.

    Non-string values pass through untouched.

    Args:
        value: Candidate string

    Returns:
        Plain text with non-breaking spaces normalized
    """
    if not isinstance(value, str):
        return value

    cleaned = _strip_tags(value)
    return cleaned.replace("\u00a0", " ").strip()


def sanitize_markdown(value: Any) -> str:
    """
    Strip markup from markdown text while keeping its layout.

    Unlike sanitize_text, leading/trailing whitespace and line breaks are
    preserved so markdown paragraphs survive.

    Args:
        value: Markdown string (anything else yields "")

    Returns:
        Markdown with all HTML removed
    """
    if not isinstance(value, str):
        return ""

    return _strip_tags(value).replace("\u00a0", " ")


def normalize_whitespace(value: Any) -> str:
    """Collapse runs of whitespace into single spaces."""
    if not isinstance(value, str):
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip()


def sanitize_array(values: Any, limit: Optional[int] = None) -> List[str]:
    """
    Sanitize a list of values, dropping empties.

    Non-string entries are JSON-encoded before stripping.

    Args:
        values: Candidate list (anything else yields [])
        limit: Optional maximum number of entries to keep

    Returns:
        List of non-empty plain strings
    """
    if not isinstance(values, list):
        return []

    sanitized = []
    for entry in values:
        text = sanitize_text(entry if isinstance(entry, str) else json.dumps(entry))
        if text:
            sanitized.append(text)

    if limit is not None:
        return sanitized[:limit]
    return sanitized


def sanitize_preferences(preferences: Any) -> Dict[str, Any]:
    """
    Normalize caller preferences into a flat, markup-free mapping.

    - string  -> {"notes": "..."}
    - list    -> {"preferences": [...]}
    - mapping -> keys and values stripped, list values kept as lists
    - other   -> {"note": "..."}

    Args:
        preferences: Raw preferences from the request body

    Returns:
        Dict safe to embed in a prompt
    """
    if not preferences:
        return {}

    if isinstance(preferences, str):
        return {"notes": sanitize_text(preferences)}

    if isinstance(preferences, list):
        return {"preferences": sanitize_array(preferences)}

    if isinstance(preferences, dict):
        result: Dict[str, Any] = {}
        for key, value in preferences.items():
            safe_key = sanitize_text(str(key))
            if not safe_key:
                continue
            if isinstance(value, list):
                result[safe_key] = sanitize_array(value)
            else:
                result[safe_key] = sanitize_text(str(value))
        return result

    return {"note": sanitize_text(str(preferences))}
