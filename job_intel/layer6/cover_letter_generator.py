"""
Layer 6: Cover Letter Generator.

Schema-validated LLM invoker for the cover letter bundle:

1. invoke(): send the prompt to OpenAI with the cover_letter_bundle JSON
   schema as response format, optionally under a time budget
2. parse_response(): JSON-decode the reply and require the schema keys
   (failure here is always terminal)
3. sanitize_result(): force every field into its allow-listed shape

Once the model has answered with parseable JSON the result is always
well-shaped: malformed fields degrade to empty values instead of raising.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ConfigDict, Field, field_validator

from job_intel.common.error_handling import StageTimeoutError, UpstreamError
from job_intel.common.html_sanitizer import sanitize_array, sanitize_markdown, sanitize_text
from job_intel.common.json_utils import parse_llm_json, require_keys
from job_intel.common.llm_factory import create_llm
from job_intel.layer6.prompts import COVER_LETTER_SCHEMA, REQUIRED_FIELDS

logger = logging.getLogger(__name__)

STAGE = "openAiDispatch"

MAX_TALKING_POINTS = 6
MAX_RESEARCH_SOURCES = 5

TIMEOUT_MESSAGE = "OpenAI request exceeded the time limit."


# ===== RESULT SANITIZATION =====

def _is_http_url(value: Any) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def sanitize_sources(values: Any, limit: int = MAX_RESEARCH_SOURCES) -> List[Dict[str, str]]:
    """Keep sources with a non-empty title and a valid http(s) URL."""
    if not isinstance(values, list):
        return []

    sources = []
    for source in values:
        if not isinstance(source, dict):
            continue
        title = sanitize_text(source.get("title"))
        url = source.get("url")
        if not isinstance(title, str) or not title or not _is_http_url(url):
            continue
        sources.append({"title": title, "url": url.strip()})
    return sources[:limit]


class PipelineResult(BaseModel):
    """
    Sanitized cover letter bundle.

    Validators run before type checks, so any raw value is coerced into the
    allow-listed shape rather than rejected.
    """

    model_config = ConfigDict(populate_by_name=True)

    cover_letter_markdown: str = Field(default="", alias="coverLetterMarkdown")
    talking_points: List[str] = Field(default_factory=list, alias="talkingPoints")
    research_sources: List[Dict[str, str]] = Field(default_factory=list, alias="researchSources")

    @field_validator("cover_letter_markdown", mode="before")
    @classmethod
    def strip_markup(cls, v):
        return sanitize_markdown(v)

    @field_validator("talking_points", mode="before")
    @classmethod
    def clean_talking_points(cls, v):
        return sanitize_array(v, MAX_TALKING_POINTS)

    @field_validator("research_sources", mode="before")
    @classmethod
    def clean_sources(cls, v):
        return sanitize_sources(v)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def sanitize_result(raw: Any) -> PipelineResult:
    """Coerce a parsed LLM reply into a PipelineResult (empty when not a dict)."""
    if not isinstance(raw, dict):
        return PipelineResult()
    return PipelineResult.model_validate(raw)


def parse_response(raw_text: Any) -> Dict[str, Any]:
    """
    Decode the LLM reply and check the required schema keys.

    Raises:
        ParseError: Invalid JSON or a missing required key
    """
    payload = parse_llm_json(raw_text, stage=STAGE)
    require_keys(payload, REQUIRED_FIELDS, stage=STAGE)
    return payload


def _message_text(response: Any) -> str:
    """Text content of an AIMessage (string or list of content blocks)."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "".join(parts)
    return ""


class CoverLetterGenerator:
    """
    Calls the LLM for a cover letter bundle.

    The chat model is created on first use so an app without an OpenAI key
    can still start; the route refuses pipeline requests in that case.
    """

    def __init__(
        self,
        llm: Optional[Any] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._llm = llm
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = create_llm(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stage=STAGE,
            )
        return self._llm

    async def invoke(self, prompt: str, timeout: Optional[float] = None) -> str:
        """
        Send the prompt and return the raw reply text.

        Args:
            prompt: Output of build_prompt
            timeout: Optional budget in seconds

        Returns:
            Raw model output

        Raises:
            StageTimeoutError: The budget ran out first
            UpstreamError: The API call failed or returned no text
        """
        bound = self.llm.bind(
            response_format={"type": "json_schema", "json_schema": COVER_LETTER_SCHEMA}
        )
        try:
            async with asyncio.timeout(timeout):
                response = await bound.ainvoke([HumanMessage(content=prompt)])
        except TimeoutError as e:
            raise StageTimeoutError(TIMEOUT_MESSAGE, stage=STAGE) from e
        except Exception as e:
            logger.error(f"OpenAI request failed: {e}")
            raise UpstreamError(f"OpenAI request failed: {e}", stage=STAGE) from e

        text = _message_text(response)
        if not text.strip():
            raise UpstreamError("OpenAI response did not include any text content.", stage=STAGE)
        return text

    async def generate(self, prompt: str, timeout: Optional[float] = None) -> PipelineResult:
        """invoke() + parse_response() + sanitize_result()."""
        raw_text = await self.invoke(prompt, timeout=timeout)
        result = sanitize_result(parse_response(raw_text))
        logger.info(
            f"Cover letter generated: {len(result.cover_letter_markdown)} chars, "
            f"{len(result.talking_points)} talking points, "
            f"{len(result.research_sources)} sources"
        )
        return result
