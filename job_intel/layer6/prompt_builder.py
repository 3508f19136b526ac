"""
Prompt Builder (Layer 6).

Pure string assembly: renders job, résumé, company research and caller
preferences into the instruction text sent to the LLM. Nothing here
touches the network.

Usage:
    job = build_job_payload(details)
    resume = build_resume_payload(library.find("data-analyst-cv"))
    prompt = build_prompt(job, resume, research_payload, preferences)
"""

import json
from typing import Any, Dict, List, Optional

from job_intel.common.html_sanitizer import normalize_whitespace, sanitize_array, sanitize_text
from job_intel.common.types import JobDetails, Preferences, ResearchPayload, Resume
from job_intel.layer3.company_researcher import research_sources
from job_intel.layer6 import prompts

MAX_KEY_POINTS = 8
MAX_RESUME_HIGHLIGHTS = 3
MAX_RESUME_SKILLS = 12
MAX_PROFILE_HIGHLIGHTS = 5


def _bullet_list(items: Any) -> str:
    if not isinstance(items, list):
        return ""
    return "\n".join(f"- {text}" for text in (normalize_whitespace(item) for item in items) if text)


def build_job_payload(details: JobDetails) -> Dict[str, Any]:
    """Job section of the prompt context (also returned in result meta)."""
    metadata = details["metadata"]
    return {
        "title": metadata["roleTitle"],
        "company": metadata["companyName"],
        "location": metadata["location"],
        "summary": details["summary"],
        "keyPoints": details["bulletPoints"][:MAX_KEY_POINTS],
        "url": metadata["sourceUrl"],
    }


def build_resume_payload(resume: Resume) -> Dict[str, Any]:
    """Résumé section: highlights capped at 3, skills at 12, profile sanitized."""
    highlights = sanitize_array(resume.get("highlights"), MAX_RESUME_HIGHLIGHTS)
    skills = sanitize_array(resume.get("skills"), MAX_RESUME_SKILLS)
    profile = resume.get("promptProfile") or {}

    return {
        "id": resume["id"],
        "name": resume["name"],
        "focus": sanitize_text(resume.get("focus", "")),
        "highlights": highlights,
        "skills": skills,
        "promptProfile": {
            "id": resume["id"],
            "name": resume["name"],
            "focus": sanitize_text(profile.get("focus") or resume.get("focus", "")),
            "topHighlights": sanitize_array(profile.get("topHighlights") or highlights, MAX_PROFILE_HIGHLIGHTS),
            "prioritySkills": sanitize_array(profile.get("prioritySkills") or skills, MAX_RESUME_SKILLS),
            "primaryMetrics": sanitize_array(profile.get("primaryMetrics") or highlights, MAX_PROFILE_HIGHLIGHTS),
        },
    }


def build_research_context(research: Optional[ResearchPayload]) -> Optional[Dict[str, Any]]:
    """Company research section, or None when there are no facts."""
    if not research or not research.get("facts"):
        return None
    facts = research["facts"]
    return {
        "companyName": research["companyName"],
        "domain": research["domain"],
        "highlights": facts["highlights"],
        "values": facts["values"],
        "products": facts["products"],
        "recentNews": facts["recentNews"],
    }


def build_prompt(
    job: Dict[str, Any],
    resume: Dict[str, Any],
    research: Optional[ResearchPayload],
    preferences: Optional[Preferences],
) -> str:
    """
    Render the cover letter instruction.

    Args:
        job: Output of build_job_payload
        resume: Output of build_resume_payload
        research: Research payload, or None when research was skipped or failed
        preferences: Sanitized caller preferences

    Returns:
        Prompt text ending with the JSON context payload
    """
    profile = resume.get("promptProfile") or {}
    top_highlights: List[str] = profile.get("topHighlights") or resume.get("highlights") or []
    priority_skills: List[str] = profile.get("prioritySkills") or resume.get("skills") or []
    primary_metrics: List[str] = profile.get("primaryMetrics") or top_highlights

    company_research = build_research_context(research)

    lines = list(prompts.BASE_INSTRUCTIONS)
    lines.append(
        prompts.RESEARCH_AVAILABLE_INSTRUCTION if company_research else prompts.RESEARCH_UNAVAILABLE_INSTRUCTION
    )
    lines.append(prompts.SOURCES_INSTRUCTION)
    lines.append(prompts.PREFERENCES_INSTRUCTION)
    lines.append("")

    lines.append(prompts.HIGHLIGHTS_HEADING)
    lines.append(_bullet_list(top_highlights) or prompts.EMPTY_HIGHLIGHTS_LINE)
    lines.append("")

    if primary_metrics:
        lines.append(prompts.METRICS_HEADING)
        lines.append(_bullet_list(primary_metrics) or "- Metrics unavailable.")
        lines.append("")

    if priority_skills:
        lines.append(prompts.SKILLS_HEADING)
        lines.append(_bullet_list(priority_skills))
        lines.append("")

    context = {
        "job": {
            "title": normalize_whitespace(job.get("title")),
            "company": normalize_whitespace(job.get("company")),
            "location": normalize_whitespace(job.get("location")),
            "summary": normalize_whitespace(job.get("summary")),
            "keyPoints": list(job.get("keyPoints") or [])[:MAX_KEY_POINTS],
            "url": job.get("url"),
        },
        "resume": {
            "id": resume.get("id"),
            "name": resume.get("name"),
            "focus": normalize_whitespace(profile.get("focus") or resume.get("focus")),
            "topHighlights": top_highlights,
            "prioritySkills": priority_skills,
        },
        "companyResearch": company_research,
        "researchSources": research_sources(research),
        "userPreferences": preferences or {},
    }

    lines.append(prompts.CONTEXT_HEADING)
    lines.append(json.dumps(context, indent=2, ensure_ascii=False))
    lines.append("")
    lines.append(prompts.CLOSING_INSTRUCTION)
    return "\n".join(lines)
