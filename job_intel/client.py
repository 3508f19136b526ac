"""
Caller-side client for the job intelligence stream.

Consumes POST /api/job-intel over httpx, turns the byte stream into ordered
SSEEvents with SSEFrameParser, and collects a finished run with
TextAccumulator channels instead of ad hoc string concatenation.

Usage:
    client = JobIntelClient("http://localhost:8000", api_key="...")
    async for event in client.stream(job_url, "data-analyst-cv"):
        print(event.event, event.data)

    run = await client.run(job_url, "data-analyst-cv", include_research=True)
    print(run.cover_letter)
"""

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from job_intel.common.error_handling import GENERIC_ERROR_MESSAGE
from job_intel.common.sse import SSEEvent, SSEFrameParser, TextAccumulator

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/job-intel"


class JobIntelClientError(Exception):
    """Raised when the service rejects a request or ends a run with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class JobIntelRun:
    """Everything a finished stream produced."""
    stages: List[str] = field(default_factory=list)
    progress_log: str = ""
    cover_letter: str = ""
    talking_points: List[str] = field(default_factory=list)
    research_sources: List[Dict[str, str]] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    heartbeats: int = 0


class JobIntelClient:
    """Async client for the job intelligence service."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def stream(
        self,
        job_url: str,
        resume_id: str,
        include_research: bool = False,
        preferences: Any = None,
    ) -> AsyncIterator[SSEEvent]:
        """
        Start a run and yield its events as they arrive.

        Raises:
            JobIntelClientError: The service refused the request (non-200)
        """
        body = {
            "jobUrl": job_url,
            "resumeId": resume_id,
            "includeResearch": include_research,
            "preferences": preferences,
        }
        async with httpx.AsyncClient(
            base_url=self.base_url,
            transport=self.transport,
            timeout=self.timeout,
        ) as client:
            async with client.stream("POST", STREAM_PATH, json=body, headers=self._headers()) as response:
                if response.status_code != 200:
                    await response.aread()
                    raise JobIntelClientError(_error_message(response), status_code=response.status_code)

                parser = SSEFrameParser()
                async for chunk in response.aiter_text():
                    for event in parser.feed(chunk):
                        yield event
                for event in parser.finalize():
                    yield event

    async def run(
        self,
        job_url: str,
        resume_id: str,
        include_research: bool = False,
        preferences: Any = None,
    ) -> JobIntelRun:
        """
        Run the pipeline to completion.

        Raises:
            JobIntelClientError: Refused request, error event, or a stream
                that ended without a result
        """
        run = JobIntelRun()
        progress = TextAccumulator()
        cover_letter = TextAccumulator()
        finished = False

        async with aclosing(self.stream(job_url, resume_id, include_research, preferences)) as events:
            async for event in events:
                data = event.data if isinstance(event.data, dict) else {}

                if event.event == "progress":
                    run.stages.append(data.get("stage", ""))
                    progress.append(f"{data.get('message', '')}\n")
                elif event.event == "heartbeat":
                    run.heartbeats += 1
                elif event.event == "result":
                    result = data.get("data") or {}
                    cover_letter.append(result.get("coverLetterMarkdown", ""))
                    run.talking_points = list(result.get("talkingPoints") or [])
                    run.research_sources = list(result.get("researchSources") or [])
                    run.meta = data.get("meta") or {}
                    finished = True
                elif event.event == "error":
                    raise JobIntelClientError(data.get("message") or GENERIC_ERROR_MESSAGE)

        if not finished:
            raise JobIntelClientError("Stream ended without a result.")

        run.progress_log = progress.finalize()
        run.cover_letter = cover_letter.finalize()
        return run


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"Request failed with status {response.status_code}"
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return f"Request failed with status {response.status_code}"
