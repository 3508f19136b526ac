"""Route modules for the intel service."""

from .job_intel import router as job_intel_router

__all__ = ["job_intel_router"]
