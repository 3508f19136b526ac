"""
Résumé Library.

Read-only, in-memory collection of the résumé variants a cover letter can
be written from. Each entry carries a derived promptProfile: the condensed
slice of the résumé that goes into the LLM prompt.

Usage:
    library = ResumeLibrary.default()
    resume = library.find("data-analyst-cv")
    resume["promptProfile"]["prioritySkills"]
"""

import re
from typing import Any, Dict, Iterable, List, Optional

from job_intel.common.html_sanitizer import normalize_whitespace
from job_intel.common.types import PromptProfile, Resume

MAX_FOCUS_CHARS = 220
MAX_TOP_HIGHLIGHTS = 3
MAX_PRIORITY_SKILLS = 12
MAX_PRIMARY_METRICS = 3

# A highlight counts as a metric when it quotes a number or an amount
METRIC_PATTERN = re.compile(r"[0-9%$€£]")


def build_prompt_profile(resume: Dict[str, Any]) -> PromptProfile:
    """
    Condense a résumé into the profile used by the prompt builder.

    - focus: whitespace-normalized, cut to 220 chars with an ellipsis
    - topHighlights: first 3 non-empty highlights
    - prioritySkills: first 12 non-empty skills, lower-cased
    - primaryMetrics: up to 3 quantified highlights, else topHighlights

    Args:
        resume: Raw résumé dict (id, name, focus, highlights, skills)

    Returns:
        PromptProfile dict
    """
    focus = normalize_whitespace(resume.get("focus"))
    if len(focus) > MAX_FOCUS_CHARS:
        focus = f"{focus[:MAX_FOCUS_CHARS - 3].rstrip()}…"

    highlights = resume.get("highlights")
    top_highlights = [
        text for text in (normalize_whitespace(entry) for entry in highlights) if text
    ][:MAX_TOP_HIGHLIGHTS] if isinstance(highlights, list) else []

    skills = resume.get("skills")
    priority_skills = [
        text.lower() for text in (normalize_whitespace(entry) for entry in skills) if text
    ][:MAX_PRIORITY_SKILLS] if isinstance(skills, list) else []

    metrics = [highlight for highlight in top_highlights if METRIC_PATTERN.search(highlight)]

    return {
        "id": resume.get("id", ""),
        "name": resume.get("name", ""),
        "focus": focus,
        "topHighlights": top_highlights,
        "prioritySkills": priority_skills,
        "primaryMetrics": (metrics or top_highlights)[:MAX_PRIMARY_METRICS],
    }


# ===== BUNDLED RÉSUMÉS =====

BASE_RESUMES: List[Dict[str, Any]] = [
    {
        "id": "data-analyst-cv",
        "name": "Data Analyst CV",
        "focus": (
            "Analytics storyteller for BI teams, pairing dashboard delivery with "
            "automation, grant funding and API integration wins."
        ),
        "highlights": [
            "Secured a $1M transport analytics grant with real-time Power BI dashboards.",
            "Built market intelligence dashboards on third-party pricing and mapping APIs.",
            "Cut BI release time by 40% with a Jenkins CI/CD pipeline and Redis caching.",
        ],
        "skills": [
            "Power BI", "Python", "SQL", "Excel", "Google Sheets", "Power Automate",
            "Process Automation", "Jira", "Jenkins", "CI/CD", "Redis", "Salesforce",
            "ServiceNow", "Workday",
        ],
    },
    {
        "id": "data-automation-resume",
        "name": "Data Automation Resume",
        "focus": (
            "Automation-first analytics profile combining Power BI, DevOps practices "
            "and process streamlining."
        ),
        "highlights": [
            "Reduced manual QA cost by 10% through Python and Selenium test automation.",
            "Integrated Google Workspace Vault for secure discovery and credential handling.",
            "Scaled finance reporting with spreadsheet automations and CI/CD releases.",
        ],
        "skills": [
            "Python", "Selenium", "Power BI", "SQL", "Power Automate", "Google Apps Script",
            "PowerShell", "Jenkins", "CI/CD", "Redis", "Firebase", "GitHub Actions",
        ],
    },
    {
        "id": "it-support-cv",
        "name": "IT Support CV",
        "focus": (
            "Service desk analyst who keeps users productive through fast triage, "
            "clear communication and scripted fixes."
        ),
        "highlights": [
            "Resolved 95% of tier-one tickets within SLA across a 600-seat organisation.",
            "Automated laptop provisioning with PowerShell, saving two hours per device.",
            "Wrote the knowledge base articles that halved repeat password-reset tickets.",
        ],
        "skills": [
            "ServiceNow", "Active Directory", "Microsoft 365", "Intune", "PowerShell",
            "Windows", "macOS", "Networking", "Jira Service Management", "ITIL",
        ],
    },
    {
        "id": "customer-service-cv",
        "name": "Customer Service CV",
        "focus": (
            "Customer-first operator with contact centre, CRM hygiene and compliance "
            "experience in financial services."
        ),
        "highlights": [
            "Lifted NPS by 12 points by redesigning the call-back workflow.",
            "Kept CRM data accuracy above 98% through weekly Salesforce audits.",
            "Trained new starters on finance compliance scripts and escalation paths.",
        ],
        "skills": [
            "Salesforce", "Zendesk", "Excel", "Call Centre", "NPS", "QA",
            "Finance Compliance", "Order Processing", "SharePoint",
        ],
    },
]


class ResumeLibrary:
    """Lookup over a fixed set of résumés, each with its promptProfile."""

    def __init__(self, resumes: Iterable[Dict[str, Any]]):
        self._resumes: List[Resume] = [
            {**resume, "promptProfile": build_prompt_profile(resume)} for resume in resumes
        ]
        self._by_id = {self._normalize_id(resume["id"]): resume for resume in self._resumes}

    @classmethod
    def default(cls) -> "ResumeLibrary":
        return cls(BASE_RESUMES)

    @staticmethod
    def _normalize_id(resume_id: Any) -> str:
        return resume_id.strip().lower() if isinstance(resume_id, str) else ""

    def __len__(self) -> int:
        return len(self._resumes)

    def find(self, resume_id: Any) -> Optional[Resume]:
        """Return the résumé for an identifier (trimmed, case-insensitive), or None."""
        key = self._normalize_id(resume_id)
        return self._by_id.get(key) if key else None

    def list_summaries(self) -> List[Dict[str, str]]:
        """Public listing: id, name and focus of every résumé."""
        return [
            {"id": resume["id"], "name": resume["name"], "focus": resume["focus"]}
            for resume in self._resumes
        ]
