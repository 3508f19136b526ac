"""
Unit tests for the streaming orchestrator.

Fetcher, researcher and generator are replaced by small fakes so each test
controls exactly when a stage succeeds, fails, stalls or is cancelled.
"""

import asyncio
import json

import pytest

from job_intel.common.error_handling import GENERIC_ERROR_MESSAGE, StageCancelledError, UpstreamError
from job_intel.common.types import JobDocument
from job_intel.services.job_intel_service import (
    JobIntelService,
    PipelineRequest,
    RunContext,
    StageTimeouts,
    StreamEvent,
)


RESEARCH_PAYLOAD = {
    "companyName": "Acme Corp",
    "domain": "acme.com",
    "pages": [{"url": "https://acme.com/about", "title": "About Acme", "textContent": "We value curiosity."}],
    "facts": {"values": ["We value curiosity."], "products": [], "recentNews": [], "highlights": []},
}


class FakeFetcher:
    def __init__(self, html, delay=0.0, block=False):
        self.html = html
        self.delay = delay
        self.block = block
        self.started = asyncio.Event()
        self.cancelled = False

    async def fetch_document(self, url):
        self.started.set()
        try:
            if self.block:
                await asyncio.Event().wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return JobDocument(html=self.html, final_url=url)


class FakeResearcher:
    def __init__(self, payload=None, error=None, enabled=True, cached_payload=None):
        self.payload = payload
        self.error = error
        self.enabled = enabled
        self.cached_payload = cached_payload
        self.companies = []

    def cached(self, company):
        return self.cached_payload

    async def research(self, company):
        self.companies.append(company)
        if self.error:
            raise self.error
        return self.payload


class FakeGenerator:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def invoke(self, prompt, timeout=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


def _service(fetcher, researcher=None, generator=None, timeouts=None, heartbeat_interval=60.0):
    return JobIntelService(
        fetcher=fetcher,
        researcher=researcher or FakeResearcher(enabled=False),
        generator=generator,
        timeouts=timeouts or StageTimeouts(),
        heartbeat_interval=heartbeat_interval,
    )


async def _collect(service, request, context=None):
    return [event async for event in service.stream(request, context)]


def _stages(events):
    return [event.data["stage"] for event in events if event.event == "progress"]


@pytest.fixture
def request_factory(job_url, resume):
    def make(include_research=False, preferences=None):
        return PipelineRequest(
            job_url=job_url,
            resume=resume,
            include_research=include_research,
            preferences=preferences or {},
        )
    return make


@pytest.fixture
def generator(llm_reply):
    return FakeGenerator(reply=json.dumps(llm_reply))


# ===== TESTS: happy path =====

class TestStreamSuccess:
    """Test event ordering for successful runs."""

    @pytest.mark.asyncio
    async def test_stage_order_without_research(self, job_html, request_factory, generator):
        events = await _collect(_service(FakeFetcher(job_html), generator=generator), request_factory())

        assert _stages(events) == ["accepted", "jobFetched", "jobParsed", "researchSkipped", "openAiDispatch"]
        assert [event.event for event in events][-2:] == ["result", "complete"]
        skipped = events[3].data
        assert skipped["message"] == "Company research disabled for this request."

    @pytest.mark.asyncio
    async def test_progress_payloads(self, job_html, job_url, request_factory, generator):
        events = await _collect(_service(FakeFetcher(job_html), generator=generator), request_factory())
        by_stage = {event.data["stage"]: event.data for event in events if event.event == "progress"}

        assert by_stage["jobFetched"]["url"] == job_url
        assert by_stage["jobParsed"]["title"] == "Senior Data Analyst"
        assert by_stage["jobParsed"]["company"] == "Acme Corp"
        assert by_stage["jobParsed"]["location"] == "Melbourne"

    @pytest.mark.asyncio
    async def test_result_payload(self, job_html, request_factory, generator, llm_reply):
        events = await _collect(_service(FakeFetcher(job_html), generator=generator), request_factory())
        result = next(event for event in events if event.event == "result").data

        assert result["status"] == "completed"
        assert result["data"] == llm_reply
        assert result["meta"]["job"]["title"] == "Senior Data Analyst"
        assert result["meta"]["resume"] == {"id": "data-analyst-cv", "name": "Data Analyst CV"}
        assert result["meta"]["research"] is None

    @pytest.mark.asyncio
    async def test_exactly_one_terminal_event(self, job_html, request_factory, generator):
        events = await _collect(_service(FakeFetcher(job_html), generator=generator), request_factory())
        assert sum(1 for event in events if event.event in ("result", "error")) == 1

    @pytest.mark.asyncio
    async def test_preferences_reach_prompt(self, job_html, request_factory, generator):
        request = request_factory(preferences={"tone": "warm"})
        await _collect(_service(FakeFetcher(job_html), generator=generator), request)
        assert '"tone": "warm"' in generator.prompts[0]

    def test_stream_event_to_sse(self):
        frame = StreamEvent("progress", {"stage": "accepted"}).to_sse()
        assert frame == 'event: progress\ndata: {"stage": "accepted"}\n\n'


# ===== TESTS: research stage =====

class TestResearchStage:
    """Test the optional research stage outcomes."""

    @pytest.mark.asyncio
    async def test_research_complete(self, job_html, request_factory, generator):
        researcher = FakeResearcher(payload=RESEARCH_PAYLOAD)
        events = await _collect(
            _service(FakeFetcher(job_html), researcher, generator),
            request_factory(include_research=True),
        )

        assert _stages(events)[3:5] == ["researchLookup", "researchComplete"]
        complete = next(e for e in events if e.event == "progress" and e.data["stage"] == "researchComplete")
        assert complete.data["domain"] == "acme.com"
        assert complete.data["sources"] == 1
        assert researcher.companies == ["Acme Corp"]

        meta = next(e for e in events if e.event == "result").data["meta"]["research"]
        assert meta == {
            "status": "fetched",
            "domain": "acme.com",
            "pages": [{"title": "About Acme", "url": "https://acme.com/about"}],
        }
        assert "We value curiosity." in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_research_cache_hit(self, job_html, request_factory, generator):
        researcher = FakeResearcher(cached_payload=RESEARCH_PAYLOAD)
        events = await _collect(
            _service(FakeFetcher(job_html), researcher, generator),
            request_factory(include_research=True),
        )

        assert "researchCacheHit" in _stages(events)
        assert "researchLookup" not in _stages(events)
        assert researcher.companies == []
        meta = next(e for e in events if e.event == "result").data["meta"]["research"]
        assert meta["status"] == "cached"

    @pytest.mark.asyncio
    async def test_research_failure_is_not_terminal(self, job_html, request_factory, generator):
        researcher = FakeResearcher(error=UpstreamError("Search API request failed: 500", stage="research"))
        events = await _collect(
            _service(FakeFetcher(job_html), researcher, generator),
            request_factory(include_research=True),
        )

        failed = next(e for e in events if e.event == "progress" and e.data["stage"] == "researchFailed")
        assert failed.data["message"] == "Company research failed: Search API request failed: 500"
        result = next(e for e in events if e.event == "result")
        assert result.data["meta"]["research"] is None
        assert not any(e.event == "error" for e in events)

    @pytest.mark.asyncio
    async def test_research_timeout_is_not_terminal(self, job_html, request_factory, generator):
        class SlowResearcher(FakeResearcher):
            async def research(self, company):
                await asyncio.sleep(1)

        events = await _collect(
            _service(FakeFetcher(job_html), SlowResearcher(), generator, timeouts=StageTimeouts(research=0.01)),
            request_factory(include_research=True),
        )

        failed = next(e for e in events if e.event == "progress" and e.data["stage"] == "researchFailed")
        assert failed.data["message"] == "Company research failed: Research step timed out."
        assert events[-1].event == "complete"

    @pytest.mark.asyncio
    async def test_no_official_site(self, job_html, request_factory, generator):
        payload = {"companyName": "Acme Corp", "domain": None, "pages": [], "facts": None}
        events = await _collect(
            _service(FakeFetcher(job_html), FakeResearcher(payload=payload), generator),
            request_factory(include_research=True),
        )

        skipped = [e for e in events if e.event == "progress" and e.data["stage"] == "researchSkipped"]
        assert skipped[0].data["message"] == "No official website found for Acme Corp."
        meta = next(e for e in events if e.event == "result").data["meta"]["research"]
        assert meta == {"status": "skipped", "domain": None, "pages": []}

    @pytest.mark.asyncio
    async def test_research_not_configured(self, job_html, request_factory, generator):
        events = await _collect(
            _service(FakeFetcher(job_html), FakeResearcher(enabled=False), generator),
            request_factory(include_research=True),
        )
        skipped = next(e for e in events if e.event == "progress" and e.data["stage"] == "researchSkipped")
        assert skipped.data["message"] == "Company research is not configured on the server."

    @pytest.mark.asyncio
    async def test_no_company_found(self, request_factory, generator):
        html = "<html><body><main><h1>Engineer</h1><p>Great role.</p></main></body></html>"
        researcher = FakeResearcher(payload=RESEARCH_PAYLOAD)
        events = await _collect(
            _service(FakeFetcher(html), researcher, generator),
            request_factory(include_research=True),
        )
        skipped = next(e for e in events if e.event == "progress" and e.data["stage"] == "researchSkipped")
        assert skipped.data["message"] == "Unable to identify a company to research."
        assert researcher.companies == []


# ===== TESTS: terminal errors =====

class TestStreamErrors:
    """Test that mandatory stage failures end the run with one error event."""

    @pytest.mark.asyncio
    async def test_fetch_timeout(self, job_html, request_factory, generator):
        service = _service(FakeFetcher(job_html, delay=1), generator=generator, timeouts=StageTimeouts(job_fetch=0.01))
        events = await _collect(service, request_factory())

        assert [event.event for event in events] == ["progress", "error"]
        assert events[-1].data == {"message": "Fetching the job posting took too long."}
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_fetch_upstream_error(self, request_factory, generator):
        class FailingFetcher:
            async def fetch_document(self, url):
                raise UpstreamError("Job page responded with status <b>404</b>", stage="jobFetch")

        events = await _collect(_service(FailingFetcher(), generator=generator), request_factory())

        assert events[-1].event == "error"
        assert events[-1].data["message"] == "Job page responded with status 404"

    @pytest.mark.asyncio
    async def test_llm_timeout(self, job_html, request_factory):
        class SlowGenerator(FakeGenerator):
            async def invoke(self, prompt, timeout=None):
                await asyncio.sleep(1)

        service = _service(FakeFetcher(job_html), generator=SlowGenerator(), timeouts=StageTimeouts(llm=0.01))
        events = await _collect(service, request_factory())

        assert _stages(events)[-1] == "openAiDispatch"
        assert events[-1].data == {"message": "OpenAI request exceeded the time limit."}

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, job_html, request_factory):
        events = await _collect(
            _service(FakeFetcher(job_html), generator=FakeGenerator(reply="no json here")),
            request_factory(),
        )
        assert events[-1].event == "error"
        assert events[-1].data["message"] == "OpenAI response did not contain a JSON object."

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_generic(self, job_html, request_factory):
        generator = FakeGenerator(error=RuntimeError("db password is hunter2"))
        events = await _collect(_service(FakeFetcher(job_html), generator=generator), request_factory())

        assert events[-1].event == "error"
        assert events[-1].data["message"] == GENERIC_ERROR_MESSAGE
        assert not any(event.event == "result" for event in events)


# ===== TESTS: cancellation =====

class TestCancellation:
    """Test client disconnects."""

    @pytest.mark.asyncio
    async def test_context_cancel_signals_outstanding_stage(self, job_html, request_factory, generator):
        fetcher = FakeFetcher(job_html, block=True)
        context = RunContext()
        consumer = asyncio.create_task(_collect(_service(fetcher, generator=generator), request_factory(), context))

        await asyncio.wait_for(fetcher.started.wait(), timeout=1)
        assert context.outstanding == 1
        context.cancel()
        events = await asyncio.wait_for(consumer, timeout=1)

        assert fetcher.cancelled is True
        assert _stages(events) == ["accepted"]
        assert not any(event.event in ("result", "error") for event in events)
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_closing_stream_cancels_run(self, job_html, request_factory, generator):
        fetcher = FakeFetcher(job_html, block=True)
        context = RunContext()
        stream = _service(fetcher, generator=generator).stream(request_factory(), context)

        first = await stream.__anext__()
        assert first.data["stage"] == "accepted"
        await asyncio.wait_for(fetcher.started.wait(), timeout=1)

        await stream.aclose()

        assert fetcher.cancelled is True
        assert context.cancelled and context.closed
        assert context.emit("progress", {"stage": "late"}) is False

    @pytest.mark.asyncio
    async def test_stage_cancelled_elsewhere_is_a_stage_error(self):
        """Should not let a foreign cancellation escape as a bare CancelledError."""
        context = RunContext()

        async def cancelled_elsewhere():
            raise asyncio.CancelledError()

        with pytest.raises(UpstreamError) as exc_info:
            await context.run_stage("jobFetch", cancelled_elsewhere(), 1, "timeout")

        assert exc_info.value.stage == "jobFetch"
        assert context.outstanding == 0

    @pytest.mark.asyncio
    async def test_fetch_cancelled_elsewhere_still_ends_with_error(self, request_factory, generator):
        class InterruptedFetcher:
            async def fetch_document(self, url):
                raise asyncio.CancelledError()

        events = await _collect(_service(InterruptedFetcher(), generator=generator), request_factory())

        assert [event.event for event in events] == ["progress", "error"]
        assert events[-1].data == {"message": "The jobFetch call was interrupted."}

    @pytest.mark.asyncio
    async def test_research_cancelled_elsewhere_is_not_terminal(self, job_html, request_factory, generator):
        class InterruptedResearcher(FakeResearcher):
            async def research(self, company):
                raise asyncio.CancelledError()

        service = _service(FakeFetcher(job_html), researcher=InterruptedResearcher(), generator=generator)
        events = await _collect(service, request_factory(include_research=True))

        assert "researchFailed" in _stages(events)
        assert [event.event for event in events][-2:] == ["result", "complete"]

    @pytest.mark.asyncio
    async def test_run_stage_refuses_after_close(self):
        context = RunContext()
        context.close()

        async def never_started():
            raise AssertionError("should not run")

        with pytest.raises(StageCancelledError):
            await context.run_stage("research", never_started(), 1, "timeout")


# ===== TESTS: heartbeat =====

class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_heartbeats_while_waiting(self, job_html, request_factory, generator):
        service = _service(FakeFetcher(job_html, delay=0.1), generator=generator, heartbeat_interval=0.01)
        events = await _collect(service, request_factory())

        heartbeats = [event for event in events if event.event == "heartbeat"]
        assert heartbeats
        assert isinstance(heartbeats[0].data["ts"], int)
        assert events[-1].event == "complete"

    @pytest.mark.asyncio
    async def test_no_heartbeat_after_completion(self, job_html, request_factory, generator):
        context = RunContext()
        service = _service(FakeFetcher(job_html), generator=generator, heartbeat_interval=0.01)
        events = await _collect(service, request_factory(), context)

        await asyncio.sleep(0.05)
        assert context.closed
        assert context.queue.empty()
        assert events[-1].event == "complete"
