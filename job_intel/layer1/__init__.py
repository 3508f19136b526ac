"""Layer 1: job posting fetch and extraction."""

from job_intel.layer1.job_extractor import derive_company, extract_details
from job_intel.layer1.job_fetcher import JobDocumentFetcher

__all__ = ["JobDocumentFetcher", "derive_company", "extract_details"]
