"""
Prompts and output schema for cover letter generation.

The schema is sent to OpenAI as a json_schema response format, and its
required keys are checked again when the reply is parsed.
"""

COVER_LETTER_SCHEMA_NAME = "cover_letter_bundle"

COVER_LETTER_SCHEMA = {
    "name": COVER_LETTER_SCHEMA_NAME,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "required": ["coverLetterMarkdown", "talkingPoints", "researchSources"],
        "properties": {
            "coverLetterMarkdown": {
                "type": "string",
                "description": (
                    "Markdown formatted cover letter tailored to the job using résumé "
                    "and company research."
                ),
            },
            "talkingPoints": {
                "type": "array",
                "items": {
                    "type": "string",
                    "description": "Concise talking points for interview or outreach follow-up.",
                },
            },
            "researchSources": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "required": ["title", "url"],
                    "properties": {
                        "title": {"type": "string"},
                        "url": {"type": "string", "format": "uri"},
                    },
                },
            },
        },
    },
}

REQUIRED_FIELDS = tuple(COVER_LETTER_SCHEMA["schema"]["required"])
SCHEMA_FIELDS = tuple(COVER_LETTER_SCHEMA["schema"]["properties"])

# ===== INSTRUCTIONS =====

BASE_INSTRUCTIONS = [
    "You are a career coach drafting tailored cover letters.",
    "Adopt a confident, metric-forward tone that sounds like an experienced professional speaking to a recruiter.",
    "Use crisp sentences and avoid filler. Each paragraph should deliver a tangible value statement.",
    f"Return only valid JSON that conforms to the schema named {COVER_LETTER_SCHEMA_NAME}.",
    f"The JSON must include the keys: {', '.join(SCHEMA_FIELDS)}. Do not wrap the JSON in Markdown code fences.",
    "Structure the cover letter in three short paragraphs: introduction, relevant proof, and a forward-looking close.",
    "Weave in quantified résumé achievements and metrics whenever possible. Prioritise the strongest proof points.",
    "Talking points should be concise bullets highlighting metrics or differentiators to discuss live.",
]

RESEARCH_AVAILABLE_INSTRUCTION = (
    "Incorporate company research insights only when they directly support the value proposition."
)
RESEARCH_UNAVAILABLE_INSTRUCTION = (
    "No company research is available. Do not invent facts or speculate about the company."
)

SOURCES_INSTRUCTION = (
    "researchSources must only cite URLs provided in the company research payload. "
    "Skip sources if none exist."
)
PREFERENCES_INSTRUCTION = "If user preferences are supplied, honour them without breaking the JSON schema."

HIGHLIGHTS_HEADING = "Résumé positioning to emphasise:"
EMPTY_HIGHLIGHTS_LINE = "- Use available experience even if highlights are empty."
METRICS_HEADING = "Quantified achievements worth spotlighting:"
SKILLS_HEADING = "Prioritise aligning with these skills and tools:"
CONTEXT_HEADING = "Context payload (for reference, do not echo back verbatim):"

CLOSING_INSTRUCTION = (
    "Respond with the JSON object only. Do not include explanations, apologies, "
    "or any text outside the JSON."
)
