"""
Run reports - one JSON line per finished run, appended to a report file.

Each line carries the event name, a UTC timestamp and the run summary from
``RunResult.to_dict()`` (verdict, diff pixel counts, artifact paths), so a
report file can be tailed or loaded into a dataframe without re-reading
the images.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from layout_snapshot.runner import RunResult

logger = logging.getLogger(__name__)

RUN_COMPLETED = "run_completed"
CAPTURE_ONLY = "capture_only"
RUN_EVENTS = (RUN_COMPLETED, CAPTURE_ONLY)


@dataclass(frozen=True)
class RunReport:
    event: str
    run: dict[str, Any]
    recorded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def __post_init__(self) -> None:
        if self.event not in RUN_EVENTS:
            raise ValueError(f"unknown run event {self.event!r}; expected one of {', '.join(RUN_EVENTS)}")

    @classmethod
    def from_result(cls, result: "RunResult", event: str) -> "RunReport":
        return cls(event=event, run=result.to_dict())

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.event, "recorded_at": self.recorded_at, **self.run}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=True)


class ReportSink:
    async def emit_run(self, result: "RunResult", event: str) -> RunReport:
        raise NotImplementedError


class NullReportSink(ReportSink):
    async def emit_run(self, result: "RunResult", event: str) -> RunReport:
        return RunReport.from_result(result, event)


class JsonlReportSink(ReportSink):
    """Appends reports to a JSONL file off the event loop, one write at a time."""

    def __init__(self, path: str) -> None:
        self._file = Path(path)
        self._file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._file

    def _append(self, line: str) -> None:
        with self._file.open("a", encoding="utf-8") as file_handle:
            file_handle.write(line + "\n")

    async def emit_run(self, result: "RunResult", event: str) -> RunReport:
        report = RunReport.from_result(result, event)
        async with self._lock:
            await asyncio.to_thread(self._append, report.to_json())
        logger.debug("Report %s appended to %s", event, self._file)
        return report
