"""
Job Intelligence Service: the streaming orchestrator.

Drives one pipeline run per client connection and reports progress as a
sequence of StreamEvents:

    accepted -> jobFetched -> jobParsed
      -> researchSkipped | researchCacheHit | researchLookup -> (researchComplete | researchFailed)
      -> openAiDispatch -> result -> complete

Exactly one terminal event (result or error) is produced per run, unless
the client disconnected, in which case nothing more is produced at all.

Stage classification:
- jobFetch, openAiDispatch: mandatory. Any failure ends the run with error.
- research: optional. Failure downgrades to a researchFailed progress event.

Cancellation model: each connection owns a RunContext. Every network-bound
stage runs as a child task registered with the context; cancel() signals
every child at once and refuses to start new ones. Heartbeats come from a
sibling task that shares the same event queue.

Usage:
    service = JobIntelService(fetcher, researcher, generator)
    async for event in service.stream(request):
        yield event.to_sse()
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Dict, Optional, Set, Tuple

from job_intel.common.error_handling import (
    GENERIC_ERROR_MESSAGE,
    JobIntelError,
    StageCancelledError,
    StageError,
    StageTimeoutError,
    UpstreamError,
    client_message,
)
from job_intel.common.html_sanitizer import sanitize_text
from job_intel.common.logger import PipelineLogger, get_logger
from job_intel.common.sse import format_sse
from job_intel.common.types import JobDetails, Preferences, ResearchPayload, Resume
from job_intel.layer1.job_extractor import derive_company, extract_details
from job_intel.layer1.job_fetcher import JobDocumentFetcher
from job_intel.layer3.company_researcher import CompanyResearcher, research_sources
from job_intel.layer6.cover_letter_generator import (
    TIMEOUT_MESSAGE as LLM_TIMEOUT_MESSAGE,
    CoverLetterGenerator,
    parse_response,
    sanitize_result,
)
from job_intel.layer6.prompt_builder import build_job_payload, build_prompt, build_resume_payload

DETAILS_SUMMARY_SENTENCES = 5

JOB_FETCH_TIMEOUT_MESSAGE = "Fetching the job posting took too long."
RESEARCH_TIMEOUT_MESSAGE = "Research step timed out."


@dataclass
class StageTimeouts:
    """Per-stage time budgets in seconds."""
    job_fetch: float = 20.0
    research: float = 15.0
    llm: float = 60.0


@dataclass
class PipelineRequest:
    """A validated pipeline trigger."""
    job_url: str
    resume: Resume
    include_research: bool = False
    preferences: Preferences = field(default_factory=dict)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class StreamEvent:
    """One outbound event. Immutable once emitted."""
    event: str
    data: Dict[str, Any]

    def to_sse(self) -> str:
        return format_sse(self.event, self.data)


class RunContext:
    """
    Cancellation scope and event sink for a single connection.

    Once closed (normal end or cancel) further events are dropped and no new
    stage may start.
    """

    def __init__(self):
        self.queue: "asyncio.Queue[Optional[StreamEvent]]" = asyncio.Queue()
        self._children: Set["asyncio.Task[Any]"] = set()
        self._closed = False
        self.cancelled = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def outstanding(self) -> int:
        """Number of stage calls currently in flight."""
        return len(self._children)

    def emit(self, event: str, data: Dict[str, Any]) -> bool:
        """Queue an event; returns False if the context is already closed."""
        if self._closed:
            return False
        self.queue.put_nowait(StreamEvent(event, data))
        return True

    def progress(self, stage: str, message: str, **extra: Any) -> bool:
        return self.emit("progress", {"stage": stage, "message": sanitize_text(message), **extra})

    async def run_stage(
        self,
        stage: str,
        call: Awaitable[Any],
        timeout: Optional[float],
        timeout_message: str,
    ) -> Any:
        """
        Run one network-bound call as a cancellable child under a time budget.

        Raises:
            StageTimeoutError: The budget ran out (the child is cancelled)
            StageCancelledError: The context was cancelled
            UpstreamError: The child was cancelled by someone other than this run
        """
        if self._closed:
            if asyncio.iscoroutine(call):
                call.close()
            raise StageCancelledError(stage)

        child = asyncio.ensure_future(call)
        self._children.add(child)
        try:
            async with asyncio.timeout(timeout):
                return await child
        except TimeoutError as e:
            raise StageTimeoutError(timeout_message, stage=stage) from e
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            if self.cancelled:
                # The child was signalled by cancel(); the run itself is still alive
                raise StageCancelledError(stage) from None
            raise UpstreamError(f"The {stage} call was interrupted.", stage=stage) from None
        finally:
            self._children.discard(child)
            if not child.done():
                child.cancel()

    def close(self) -> None:
        """Normal end of the run: stop accepting events and release the consumer."""
        if not self._closed:
            self._closed = True
            self.queue.put_nowait(None)

    def cancel(self) -> None:
        """Client went away: signal every outstanding stage call immediately."""
        self.cancelled = True
        self.close()
        children, self._children = self._children, set()
        for child in children:
            child.cancel()


class JobIntelService:
    """Streaming orchestrator over the Layer 1/3/6 components."""

    def __init__(
        self,
        fetcher: JobDocumentFetcher,
        researcher: CompanyResearcher,
        generator: CoverLetterGenerator,
        timeouts: Optional[StageTimeouts] = None,
        heartbeat_interval: float = 20.0,
    ):
        self.fetcher = fetcher
        self.researcher = researcher
        self.generator = generator
        self.timeouts = timeouts or StageTimeouts()
        self.heartbeat_interval = heartbeat_interval

    # ===== STREAMING =====

    async def stream(
        self,
        request: PipelineRequest,
        context: Optional[RunContext] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Run the pipeline, yielding events in emission order.

        Closing the generator (client disconnect) cancels the run and every
        outstanding stage call.
        """
        context = context or RunContext()
        log = get_logger(__name__, run_id=request.run_id)

        run_task = asyncio.ensure_future(self._run(request, context, log))
        heartbeat_task = asyncio.ensure_future(self._heartbeat(context))
        try:
            while True:
                event = await context.queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not run_task.done():
                log.info("Client disconnected, cancelling run")
            context.cancel()
            heartbeat_task.cancel()
            run_task.cancel()
            await asyncio.gather(run_task, heartbeat_task, return_exceptions=True)

    async def _heartbeat(self, context: RunContext) -> None:
        while not context.closed:
            await asyncio.sleep(self.heartbeat_interval)
            context.emit("heartbeat", {"ts": int(time.time() * 1000)})

    async def _run(self, request: PipelineRequest, context: RunContext, log: PipelineLogger) -> None:
        try:
            await self._execute(request, context, log)
        except StageCancelledError as e:
            log.info(f"Run cancelled during {e.stage}")
        except JobIntelError as e:
            log.for_stage(getattr(e, "stage", None) or "pipeline").error(f"Run failed: {e.message}")
            context.emit("error", {"message": client_message(e)})
        except Exception as e:
            log.exception(f"Unexpected pipeline failure: {e}")
            context.emit("error", {"message": GENERIC_ERROR_MESSAGE})
        finally:
            context.close()

    async def _execute(self, request: PipelineRequest, context: RunContext, log: PipelineLogger) -> None:
        started = time.monotonic()
        context.progress("accepted", "Request accepted for processing.")
        log.info(f"Run accepted: url={request.job_url}, resume={request.resume['id']}")

        document = await context.run_stage(
            "jobFetch",
            self.fetcher.fetch_document(request.job_url),
            self.timeouts.job_fetch,
            JOB_FETCH_TIMEOUT_MESSAGE,
        )
        context.progress("jobFetched", "Job posting retrieved successfully.", url=document.final_url)

        details = extract_details(document.html, document.final_url)
        metadata = details["metadata"]
        context.progress(
            "jobParsed",
            "Job description parsed.",
            title=metadata["roleTitle"],
            company=metadata["companyName"],
            location=metadata["location"],
        )

        research, research_meta = await self._research_stage(request, details, context, log.for_stage("research"))

        job_payload = build_job_payload(details)
        resume_payload = build_resume_payload(request.resume)
        prompt = build_prompt(job_payload, resume_payload, research, request.preferences)

        context.progress("openAiDispatch", "Submitting structured prompt to OpenAI.")
        log.for_stage("openAiDispatch").info(f"Dispatching prompt ({len(prompt)} chars)")
        raw_text = await context.run_stage(
            "openAiDispatch",
            self.generator.invoke(prompt),
            self.timeouts.llm,
            LLM_TIMEOUT_MESSAGE,
        )
        result = sanitize_result(parse_response(raw_text))

        context.emit("result", {
            "status": "completed",
            "data": result.to_dict(),
            "meta": {
                "job": job_payload,
                "resume": {"id": resume_payload["id"], "name": resume_payload["name"]},
                "research": research_meta,
            },
        })
        context.emit("complete", {"status": "complete"})
        log.info(f"Run completed in {time.monotonic() - started:.1f}s")

    async def _research_stage(
        self,
        request: PipelineRequest,
        details: JobDetails,
        context: RunContext,
        log: PipelineLogger,
    ) -> Tuple[Optional[ResearchPayload], Optional[Dict[str, Any]]]:
        """
        Optional company research.

        Returns:
            (payload for the prompt or None, result meta.research or None)
        """
        if not request.include_research:
            context.progress("researchSkipped", "Company research disabled for this request.")
            return None, None

        if not self.researcher.enabled:
            log.info("Search credential missing, research skipped")
            context.progress("researchSkipped", "Company research is not configured on the server.")
            return None, None

        company = derive_company(details)
        if not company:
            context.progress("researchSkipped", "Unable to identify a company to research.")
            return None, None

        cached = self.researcher.cached(company)
        if cached is not None:
            log.info(f"Cache hit for {company}")
            context.progress("researchCacheHit", f"Using cached research for {company}.", domain=cached["domain"])
            return cached, self._research_meta("cached", cached)

        context.progress("researchLookup", f"Querying company research for {company}.")
        try:
            payload = await context.run_stage(
                "research",
                self.researcher.research(company),
                self.timeouts.research,
                RESEARCH_TIMEOUT_MESSAGE,
            )
        except StageCancelledError:
            raise
        except StageError as e:
            log.warning(f"Research failed for {company}: {e.message}")
            context.progress("researchFailed", f"Company research failed: {e.user_message}")
            return None, None
        except Exception as e:
            log.exception(f"Unexpected research failure for {company}: {e}")
            context.progress("researchFailed", f"Company research failed: {GENERIC_ERROR_MESSAGE}")
            return None, None

        if payload["facts"] is None:
            context.progress("researchSkipped", f"No official website found for {company}.")
            return None, self._research_meta("skipped", payload)

        context.progress(
            "researchComplete",
            f"Company research gathered for {company}.",
            domain=payload["domain"],
            sources=len(payload["pages"]),
        )
        return payload, self._research_meta("fetched", payload)

    @staticmethod
    def _research_meta(status: str, payload: ResearchPayload) -> Dict[str, Any]:
        return {
            "status": status,
            "domain": payload.get("domain"),
            "pages": research_sources(payload),
        }

    # ===== NON-STREAMING =====

    async def fetch_details(self, url: str) -> JobDetails:
        """
        Fetch and extract a posting without running the rest of the pipeline.

        Shares the job page cache and the fetch budget with streaming runs.

        Raises:
            StageTimeoutError: The fetch budget ran out
            UpstreamError: The page could not be fetched
        """
        try:
            async with asyncio.timeout(self.timeouts.job_fetch):
                document = await self.fetcher.fetch_document(url)
        except TimeoutError as e:
            raise StageTimeoutError(JOB_FETCH_TIMEOUT_MESSAGE, stage="jobFetch") from e
        return extract_details(document.html, document.final_url, summary_sentences=DETAILS_SUMMARY_SENTENCES)
