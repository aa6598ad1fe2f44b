"""
Analysis state for a single account.

Every transition returns a new snapshot, so a consumer holding an older
state never sees it change underneath it.
"""

from dataclasses import dataclass, replace
from typing import Literal

from vibe_report.features.reports.domain import ParsedReport

AnalysisStatus = Literal["idle", "analyzing", "complete", "failed"]


class AnalysisInProgressError(Exception):
    """Raised when an analysis is started while another is still running."""

    def __init__(self, message: str = "An analysis is already in progress"):
        super().__init__(message)
        self.recoverable = True


@dataclass(frozen=True, slots=True)
class AnalysisState:
    status: AnalysisStatus = "idle"
    buffer: str = ""
    report: ParsedReport | None = None
    balance: int | None = None
    error: str | None = None

    @property
    def is_analyzing(self) -> bool:
        return self.status == "analyzing"


@dataclass(frozen=True, slots=True)
class AnalysisStarted:
    kind: Literal["started"] = "started"


@dataclass(frozen=True, slots=True)
class ChunkReceived:
    buffer: str
    kind: Literal["chunk"] = "chunk"


@dataclass(frozen=True, slots=True)
class AnalysisCompleted:
    report: ParsedReport
    balance: int
    kind: Literal["completed"] = "completed"


@dataclass(frozen=True, slots=True)
class AnalysisFailed:
    message: str
    kind: Literal["failed"] = "failed"


@dataclass(frozen=True, slots=True)
class AnalysisReset:
    kind: Literal["reset"] = "reset"


AnalysisEvent = AnalysisStarted | ChunkReceived | AnalysisCompleted | AnalysisFailed | AnalysisReset


def reduce(state: AnalysisState, event: AnalysisEvent) -> AnalysisState:
    """
    Apply one event to a state snapshot.

    Starting clears the previous buffer and report. A failure also clears
    the report so a stale result is never shown next to the error.
    Chunks and completions that arrive outside an analysis are ignored.
    """
    if isinstance(event, AnalysisStarted):
        if state.is_analyzing:
            raise AnalysisInProgressError()
        return AnalysisState(status="analyzing", balance=state.balance)

    if isinstance(event, ChunkReceived):
        if not state.is_analyzing:
            return state
        return replace(state, buffer=event.buffer)

    if isinstance(event, AnalysisCompleted):
        if not state.is_analyzing:
            return state
        return replace(state, status="complete", report=event.report, balance=event.balance)

    if isinstance(event, AnalysisFailed):
        return replace(state, status="failed", report=None, error=event.message)

    if isinstance(event, AnalysisReset):
        return AnalysisState(balance=state.balance)

    raise TypeError(f"Unknown analysis event: {type(event).__name__}")
