"""
JSON Utilities for LLM Response Parsing.

The model is bound to a JSON schema, but replies still occasionally arrive
wrapped in markdown fences, with prose around the object, or with small
syntax slips (trailing commas, single quotes). This module recovers the
object when it can and raises ParseError when it cannot.

Uses json-repair as a fallback when json.loads() fails.
"""

import json
import re
from typing import Any, Dict, Iterable

from json_repair import repair_json

from job_intel.common.error_handling import ParseError

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_llm_json(text: Any, stage: str = "openAiDispatch") -> Dict[str, Any]:
    """
    Parse a JSON object from an LLM reply.

    Args:
        text: Raw reply text
        stage: Stage name attached to any ParseError

    Returns:
        Parsed dictionary

    Raises:
        ParseError: If the reply is empty or holds no recoverable JSON object

    Example:
        >>> parse_llm_json('```json\\n{"talkingPoints": []}\\n```')
        {'talkingPoints': []}
    """
    if not isinstance(text, str) or not text.strip():
        raise ParseError("OpenAI response did not include any content.", stage=stage)

    json_str = _extract_json_object(_FENCE_RE.sub("", text.strip()))
    if json_str is None:
        raise ParseError("OpenAI response did not contain a JSON object.", stage=stage)

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError:
        parsed = _repair(json_str)

    if isinstance(parsed, list) and len(parsed) == 1:
        # Model occasionally wraps the object in brackets: [{...}]
        parsed = parsed[0]

    if not isinstance(parsed, dict):
        raise ParseError("Failed to parse OpenAI response as JSON.", stage=stage)
    return parsed


def require_keys(payload: Dict[str, Any], keys: Iterable[str], stage: str = "openAiDispatch") -> None:
    """
    Ensure every required top-level key is present.

    Raises:
        ParseError: Naming the missing keys
    """
    missing = [key for key in keys if key not in payload]
    if missing:
        raise ParseError(
            f"OpenAI response is missing required fields: {', '.join(missing)}",
            stage=stage,
        )


def _extract_json_object(text: str):
    """Return the outermost {...} span, or None when there is none."""
    if text.startswith("{") or text.startswith("["):
        return text
    match = _OBJECT_RE.search(text)
    return match.group(0) if match else None


def _repair(json_str: str) -> Any:
    repaired = repair_json(json_str, return_objects=True)
    if isinstance(repaired, str):
        # Some inputs come back as a repaired string rather than an object
        try:
            return json.loads(repaired)
        except json.JSONDecodeError:
            return None
    return repaired
