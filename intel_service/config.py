"""
Intel Service Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
Credentials for OpenAI and FireCrawl are read by job_intel.common.config.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class IntelSettings(BaseSettings):
    """
    Job intelligence service configuration with validation.

    Every field can be overridden by the environment variable of the same
    name in upper case (JOB_FETCH_TIMEOUT_SECONDS = job_fetch_timeout_seconds).
    """

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False, extra="ignore")

    # === Stage Budgets ===
    job_fetch_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        le=300,
        description="Budget for downloading the job posting"
    )
    research_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        le=300,
        description="Budget for the whole company research lookup"
    )
    openai_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="Budget for the OpenAI call"
    )
    heartbeat_interval_seconds: float = Field(
        default=20.0,
        gt=0,
        le=300,
        description="Seconds between heartbeat events on an open stream"
    )

    # === Caches ===
    research_cache_ttl_seconds: float = Field(
        default=6 * 60 * 60,
        ge=0,
        description="Company research cache TTL (0 = never expires)"
    )
    research_cache_max_entries: int = Field(default=120, ge=1, le=100000)
    job_page_cache_ttl_seconds: float = Field(
        default=2 * 60 * 60,
        ge=0,
        description="Job page cache TTL (0 = never expires)"
    )
    job_page_cache_max_entries: int = Field(default=48, ge=1, le=100000)

    # === Outbound HTTP ===
    job_intel_user_agent: str = Field(
        default="JobIntelBot/1.0 (+https://github.com/job-intel/job-intel)",
        min_length=1,
        description="User-Agent for job page and research page requests"
    )

    # === Security ===
    job_intel_api_key: Optional[str] = Field(
        default=None,
        description="Shared secret for the pipeline endpoints (optional outside production)"
    )
    job_intel_rate_limit: int = Field(
        default=5,
        ge=1,
        le=10000,
        description="Requests per client per rate window"
    )
    job_intel_rate_window_seconds: float = Field(default=60.0, gt=0, le=86400)
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )

    # === CORS ===
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins"
    )

    # === Logging ===
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="simple", description="simple or json")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of: {', '.join(sorted(allowed))}")
        return v_lower

    @field_validator("job_intel_api_key")
    @classmethod
    def validate_secret(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank as unset; reject obviously weak secrets."""
        if v is None or not v.strip():
            return None
        weak_secrets = {"secret", "password", "changeme"}
        if v.lower() in weak_secrets or len(set(v)) < 4:
            raise ValueError("JOB_INTEL_API_KEY is too weak - use a secure random string")
        return v.strip()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("simple", "json"):
            raise ValueError("log_format must be 'simple' or 'json'")
        return v_lower

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def auth_required(self) -> bool:
        """Auth is enforced whenever a shared secret is configured."""
        return self.job_intel_api_key is not None

    def validate_production_config(self) -> List[str]:
        """
        Validate configuration is suitable for production.

        Returns list of warning/error messages.
        """
        issues = []

        if self.is_production:
            if not self.job_intel_api_key:
                issues.append("CRITICAL: JOB_INTEL_API_KEY required in production")
            if not self.cors_origins:
                issues.append("WARNING: CORS_ORIGINS not configured")

        return issues


@lru_cache()
def get_settings() -> IntelSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached. Tests call get_settings.cache_clear()
    after changing the environment.
    """
    return IntelSettings()


def validate_config_on_startup(settings: Optional[IntelSettings] = None) -> IntelSettings:
    """
    Validate configuration at application startup.

    Raises ValueError with details if config is invalid.
    Logs warnings for non-critical issues.
    """
    try:
        settings = settings or get_settings()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    for issue in settings.validate_production_config():
        if issue.startswith("CRITICAL"):
            raise ValueError(issue)
        logger.warning(issue)

    logger.info(f"Configuration loaded: environment={settings.environment}")
    logger.info(
        f"  budgets: fetch={settings.job_fetch_timeout_seconds}s, "
        f"research={settings.research_timeout_seconds}s, openai={settings.openai_timeout_seconds}s"
    )
    logger.info(
        f"  caches: job_pages={settings.job_page_cache_max_entries}, "
        f"research={settings.research_cache_max_entries}"
    )
    logger.info(f"  auth_required={settings.auth_required}")
    return settings
