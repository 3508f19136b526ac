"""
Configuration loader for the job intelligence pipeline.

Loads credentials and model settings from environment variables (.env file).
Service tunables (timeouts, cache sizes, heartbeat) live in
intel_service.config and are validated by pydantic-settings.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """
    Credentials and LLM settings for pipeline components.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== LLM APIs =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")

    # ===== Web Search =====
    # Without a key the research stage is reported as skipped.
    FIRECRAWL_API_KEY: str = os.getenv("FIRECRAWL_API_KEY", "")
    SEARCH_RESULT_LIMIT: int = int(os.getenv("SEARCH_RESULT_LIMIT", "10"))

    # ===== LLM Model Configuration =====
    DEFAULT_MODEL: str = os.getenv("JOB_INTEL_OPENAI_MODEL", "gpt-4o")
    COVER_LETTER_TEMPERATURE: float = float(os.getenv("COVER_LETTER_TEMPERATURE", "0.6"))
    COVER_LETTER_MAX_TOKENS: int = int(os.getenv("COVER_LETTER_MAX_TOKENS", "1200"))

    @classmethod
    def has_llm_credentials(cls) -> bool:
        """Check whether an OpenAI key is configured."""
        return bool(cls.OPENAI_API_KEY)

    @classmethod
    def has_search_credentials(cls) -> bool:
        """Check whether the web search API key is configured."""
        return bool(cls.FIRECRAWL_API_KEY)

    @classmethod
    def summary(cls) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        return f"""
Configuration Summary:
  LLM: OpenAI {'✓' if cls.has_llm_credentials() else '✗ Missing'} (model={cls.DEFAULT_MODEL})
  Web Search: {'✓ Configured' if cls.has_search_credentials() else '✗ Missing (research will be skipped)'}
        """.strip()
