"""
Logging for the job intelligence pipeline.

Every pipeline run logs through a PipelineLogger bound to its run id and,
once inside a stage, to the stage name. Records carry both as attributes
(``record.run_id``, ``record.stage``) and as a readable message prefix:

    [run:3f9a2c1b] [research] Cache hit for Acme Corp

Usage:
    setup_logging("INFO", "json")

    log = get_logger(__name__, run_id=request.run_id)
    log.for_stage("jobFetch").warning("Job page responded with status 503")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional, Tuple

SIMPLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SIMPLE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class PipelineLogger(logging.LoggerAdapter):
    """Logger adapter that tags records with run id and stage."""

    def __init__(self, logger: logging.Logger, run_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(logger, {"run_id": run_id, "stage": stage})

    @property
    def run_id(self) -> Optional[str]:
        return self.extra["run_id"]

    @property
    def stage(self) -> Optional[str]:
        return self.extra["stage"]

    def for_stage(self, stage: str) -> "PipelineLogger":
        """Same run, different stage."""
        return PipelineLogger(self.logger, self.run_id, stage)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}

        prefix = []
        if self.run_id:
            prefix.append(f"[run:{self.run_id[:8]}]")
        if self.stage:
            prefix.append(f"[{self.stage}]")
        if prefix:
            msg = f"{' '.join(prefix)} {msg}"
        return msg, kwargs


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, None fields omitted."""

    def format(self, record: logging.LogRecord) -> str:
        event = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None),
            "stage": getattr(record, "stage", None),
        }
        if record.exc_info:
            event["error"] = self.formatException(record.exc_info)
        return json.dumps({k: v for k, v in event.items() if v is not None})


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure the root logger once at service start.

    Args:
        level: Log level name (unknown names fall back to INFO)
        format: "simple" for human-readable lines, "json" for log aggregators
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt=SIMPLE_DATEFMT))

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(name: str, run_id: Optional[str] = None, stage: Optional[str] = None) -> PipelineLogger:
    """Return a PipelineLogger for the named module logger."""
    return PipelineLogger(logging.getLogger(name), run_id, stage)
