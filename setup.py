"""
Setup script for the job intelligence service.

Allows development installation with `pip install -e .[test]`
"""

from setuptools import setup, find_packages

from version import __version__

setup(
    name="job-intel",
    version=__version__,
    packages=find_packages(include=["job_intel", "job_intel.*", "intel_service", "intel_service.*"]),
    py_modules=["version"],
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
        "httpx>=0.26",
        "beautifulsoup4>=4.12",
        "langchain-core>=0.2",
        "langchain-openai>=0.1",
        "json-repair>=0.25",
        "firecrawl-py>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
