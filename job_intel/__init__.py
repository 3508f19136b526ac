"""
Job intelligence pipeline.

Fetches a job posting, optionally researches the hiring company, and asks an
LLM for a tailored cover letter plus talking points, reporting progress as a
stream of events.
"""

from version import __version__

__all__ = ["__version__"]
