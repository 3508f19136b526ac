"""Service layer: the streaming pipeline orchestrator."""

from job_intel.services.job_intel_service import (
    JobIntelService,
    PipelineRequest,
    RunContext,
    StageTimeouts,
    StreamEvent,
)

__all__ = ["JobIntelService", "PipelineRequest", "RunContext", "StageTimeouts", "StreamEvent"]
