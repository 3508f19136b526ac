"""Layer 6: prompt assembly and cover letter generation."""

from job_intel.layer6.cover_letter_generator import CoverLetterGenerator, PipelineResult, sanitize_result
from job_intel.layer6.prompt_builder import build_job_payload, build_prompt, build_resume_payload

__all__ = [
    "CoverLetterGenerator",
    "PipelineResult",
    "build_job_payload",
    "build_prompt",
    "build_resume_payload",
    "sanitize_result",
]
