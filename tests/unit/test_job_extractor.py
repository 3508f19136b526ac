"""
Unit tests for Layer 1: job details extraction.

Extraction is pure, so every test feeds markup straight into
extract_details() and checks the derived fields.
"""

import pytest

from job_intel.common.readability import parse_readable
from job_intel.layer1.job_extractor import (
    clean_company,
    clean_title,
    dedupe_bullets,
    derive_company,
    extract_details,
    find_location_in_text,
    pick_best_company,
    pick_best_title,
    split_sentences,
)


def _page(body: str, head: str = "") -> str:
    return f"<html><head>{head}</head><body>{body}</body></html>"


# ===== TESTS: full posting =====

class TestExtractDetails:
    """Test extraction of a realistic posting."""

    def test_metadata(self, job_html, job_url):
        """Should disambiguate title, company and location."""
        details = extract_details(job_html, job_url)
        metadata = details["metadata"]

        assert metadata["roleTitle"] == "Senior Data Analyst"
        assert metadata["companyName"] == "Acme Corp"
        assert metadata["location"] == "Melbourne"
        assert metadata["locationHints"] == ["Melbourne, VIC"]
        assert "Acme Corp Pty Ltd" in metadata["companyHints"]
        assert metadata["sourceUrl"] == job_url

    def test_bullets_are_deduplicated_and_stripped(self, job_html, job_url):
        details = extract_details(job_html, job_url)
        assert details["bulletPoints"] == [
            "Build dashboards in Power BI",
            "Automate reporting with Python",
        ]

    def test_summary_takes_first_three_sentences(self, job_html, job_url):
        details = extract_details(job_html, job_url)
        assert details["summary"].startswith("Senior Data Analyst")
        assert details["summary"].endswith("Our stack is modern!")
        assert "Apply today?" not in details["summary"]

    def test_summary_sentence_count_is_configurable(self, job_html, job_url):
        details = extract_details(job_html, job_url, summary_sentences=4)
        assert details["summary"].endswith("Apply today?")

    def test_page_chrome_is_excluded(self, job_html, job_url):
        """Should drop nav, footer and scripts from the text content."""
        text = extract_details(job_html, job_url)["textContent"]
        assert "Home Jobs Companies" not in text
        assert "Copyright JobBoard" not in text
        assert "tracking" not in text
        assert "<" not in text

    def test_empty_document(self, job_url):
        """Should return empty fields rather than fail."""
        details = extract_details("", job_url)
        assert details["metadata"]["roleTitle"] == ""
        assert details["metadata"]["companyName"] == ""
        assert details["bulletPoints"] == []
        assert details["summary"] == ""


# ===== TESTS: title =====

class TestTitle:
    """Test title cleaning and selection."""

    @pytest.mark.parametrize("raw,expected", [
        ("Data Engineer | Initech Careers", "Data Engineer"),
        ("Front-End Developer - Initech", "Front-End Developer"),
        ("Analyst \u2013 Reporting Team", "Analyst"),
        ("Data Engineer", "Data Engineer"),
    ])
    def test_clean_title(self, raw, expected):
        assert clean_title(raw).strip() == expected

    def test_shortest_cleaned_candidate_wins(self):
        assert pick_best_title(["Analyst at Acme | Board", "Analyst"]) == "Analyst"

    def test_tie_keeps_first_candidate(self):
        assert pick_best_title(["Analyst II", "Engineer I"]) == "Analyst II"

    def test_meta_title_is_a_candidate(self, job_url):
        html = _page(
            "<div><p>Apply now.</p></div>",
            head='<meta property="og:title" content="Data Engineer">',
        )
        assert extract_details(html, job_url)["metadata"]["roleTitle"] == "Data Engineer"


# ===== TESTS: company =====

class TestCompany:
    """Test company cleaning and selection."""

    @pytest.mark.parametrize("raw,expected", [
        ("Acme Corp Pty Ltd", "Acme Corp"),
        ("Globex Inc.", "Globex"),
        ("Initech, LLC", "Initech"),
        ("Umbrella Ltd | Careers", "Umbrella"),
        ("Hooli, Mountain View", "Hooli"),
    ])
    def test_clean_company(self, raw, expected):
        assert clean_company(raw) == expected

    def test_shortest_company_wins(self):
        assert pick_best_company(["Acme Corp Pty Ltd", "Acme Corp Pty Ltd | JobBoard"]) == "Acme Corp"

    def test_company_from_at_in_title(self, job_url):
        html = _page("<main><h1>Data Engineer at Initech</h1></main>")
        assert extract_details(html, job_url)["metadata"]["companyName"] == "Initech"

    def test_byline_is_a_candidate(self, job_url):
        html = _page(
            "<article><h1>Data Engineer</h1><p>Build pipelines.</p></article>",
            head='<meta name="author" content="Globex">',
        )
        assert extract_details(html, job_url)["metadata"]["companyName"] == "Globex"

    def test_body_label_used_only_without_structured_hints(self, job_url):
        """Should fall back to a "Company:" label in the text."""
        html = _page("<main><h1>Data Engineer</h1><p>Company: Globex Inc</p></main>")
        metadata = extract_details(html, job_url)["metadata"]
        assert metadata["companyName"] == "Globex"
        assert metadata["companyHints"] == ["Globex Inc"]

    def test_body_text_ignored_when_meta_present(self, job_url):
        html = _page(
            "<main><h1>Data Engineer</h1><p>Company: Someone Else</p></main>",
            head='<meta name="company" content="Initech">',
        )
        assert extract_details(html, job_url)["metadata"]["companyName"] == "Initech"


# ===== TESTS: location =====

class TestLocation:
    def test_location_label_in_text(self):
        assert find_location_in_text("Role\nBased in: Sydney, NSW\nMore") == "Sydney, NSW"

    def test_location_label_beyond_window_is_ignored(self):
        text = ("filler " * 300) + "\nLocation: Perth"
        assert find_location_in_text(text) == ""

    def test_location_cleaned_to_city(self, job_url):
        html = _page("<main><h1>Engineer</h1><p>Work location: Brisbane, QLD</p></main>")
        assert extract_details(html, job_url)["metadata"]["location"] == "Brisbane"


# ===== TESTS: bullets & sentences =====

class TestBullets:
    def test_capped_at_eight(self, job_url):
        items = "".join(f"<li>Duty {i}</li>" for i in range(12))
        html = _page(f"<article><ul>{items}</ul></article>")
        bullets = extract_details(html, job_url)["bulletPoints"]
        assert len(bullets) == 8
        assert bullets[0] == "Duty 0"

    def test_paragraph_fallback(self, job_url):
        """Should use the first five paragraphs when there is no list."""
        paragraphs = "".join(f"<p>Paragraph {i}.</p>" for i in range(7))
        html = _page(f"<main>{paragraphs}</main>")
        bullets = extract_details(html, job_url)["bulletPoints"]
        assert bullets == [f"Paragraph {i}." for i in range(5)]

    def test_dedupe_preserves_order(self):
        assert dedupe_bullets([" b ", "a", "b", "", "c"]) == ["b", "a", "c"]

    def test_split_sentences(self):
        assert split_sentences("One. Two!  Three?\nFour") == ["One.", "Two!", "Three?", "Four"]


# ===== TESTS: derive_company =====

class TestDeriveCompany:
    def test_prefers_company_name(self):
        details = {"metadata": {"companyName": "Acme", "companyHints": ["Other"]}, "textContent": ""}
        assert derive_company(details) == "Acme"

    def test_falls_back_to_first_hint(self):
        details = {"metadata": {"companyName": "", "companyHints": ["Globex Inc"]}, "textContent": ""}
        assert derive_company(details) == "Globex Inc"

    def test_falls_back_to_body_text(self):
        details = {"metadata": {"companyName": "", "companyHints": []}, "textContent": "Join the data team at Initech"}
        assert derive_company(details) == "Initech"

    def test_nothing_found(self):
        assert derive_company({"metadata": {}, "textContent": "no hints here"}) == ""


# ===== TESTS: reader mode =====

class TestReadability:
    def test_prefers_article_root(self):
        article = parse_readable(_page("<div>Sidebar</div><article><h1>Role</h1><p>Body</p></article>"))
        assert article.title == "Role"
        assert article.text_content == "Role\nBody"

    def test_heading_inside_header_still_recorded(self):
        html = _page("<header><h1>Brand Title</h1></header><main><p>Text</p></main>", head="<title>Page</title>")
        article = parse_readable(html)
        assert article.first_heading == "Brand Title"
        assert article.title == "Page"
