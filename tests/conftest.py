"""
Global fixtures for all tests.

Sets a clean environment BEFORE any job_intel import so Config and
IntelSettings never pick up real credentials, and provides the sample
pages shared by unit and service tests.
"""

import os

# Set test environment BEFORE any imports to prevent Config from loading real values
os.environ["ENVIRONMENT"] = "development"
os.environ["OPENAI_API_KEY"] = ""
os.environ["FIRECRAWL_API_KEY"] = ""
os.environ.pop("JOB_INTEL_API_KEY", None)
os.environ.pop("CORS_ORIGINS", None)

import pytest


JOB_URL = "https://jobs.example.com/postings/senior-data-analyst"

JOB_POSTING_HTML = """
<html>
<head>
  <title>Senior Data Analyst at Acme Corp Pty Ltd | JobBoard</title>
  <meta name="company" content="Acme Corp Pty Ltd">
  <meta name="job-location" content="Melbourne, VIC">
</head>
<body>
  <header><nav>Home Jobs Companies</nav></header>
  <article>
    <h1>Senior Data Analyst</h1>
    <p>Location: Melbourne, VIC</p>
    <p>We are hiring a data analyst to build dashboards. You will partner with finance teams. Our stack is modern! Apply today?</p>
    <ul>
      <li>Build dashboards in <b>Power BI</b></li>
      <li>Automate reporting with Python</li>
      <li>Build dashboards in Power BI</li>
    </ul>
  </article>
  <footer>Copyright JobBoard</footer>
  <script>var tracking = true;</script>
</body>
</html>
"""

ABOUT_PAGE_HTML = """
<html>
<head><title>About Acme</title></head>
<body>
  <nav>Home About Products</nav>
  <main>
    <h1>About Acme</h1>
    <p>Our mission is to make analytics simple for everyone. We value curiosity and candour in every team. Founded long ago.</p>
  </main>
</body>
</html>
"""

PRODUCTS_PAGE_HTML = """
<html>
<head><title>Acme Products</title></head>
<body>
  <main>
    <h1>Products</h1>
    <p>The Acme platform helps analysts ship dashboards faster. In 2024 we announced a partnership with Globex.</p>
  </main>
</body>
</html>
"""


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep real credentials out of every test."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("FIRECRAWL_API_KEY", "")
    monkeypatch.delenv("JOB_INTEL_API_KEY", raising=False)
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def job_url():
    return JOB_URL


@pytest.fixture
def job_html():
    return JOB_POSTING_HTML


@pytest.fixture
def about_html():
    return ABOUT_PAGE_HTML


@pytest.fixture
def products_html():
    return PRODUCTS_PAGE_HTML


@pytest.fixture
def resume():
    from job_intel.common.resume_library import ResumeLibrary
    return ResumeLibrary.default().find("data-analyst-cv")


@pytest.fixture
def llm_reply():
    """A well-formed cover letter bundle as the model would return it."""
    return {
        "coverLetterMarkdown": "Dear Hiring Team,\n\nI build dashboards that teams actually use.",
        "talkingPoints": ["Cut reporting time by 40%", "Shipped 12 Power BI dashboards"],
        "researchSources": [{"title": "About Acme", "url": "https://acme.com/about"}],
    }
