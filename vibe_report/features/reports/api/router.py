"""
Vibe report routes.

Usage:
    1. GET /reports/synthetic - Demo name and transcript
    2. POST /reports - Run an analysis and return the parsed report
    3. POST /reports/stream - Same analysis as newline-delimited JSON events
"""

import json
from collections.abc import AsyncGenerator, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from vibe_report.features.credits.api.dependencies import resolve_account_identity
from vibe_report.features.credits.domain import AccountIdentity, CreditLedgerError
from vibe_report.features.reports.api.schemas import (
    AnalysisRequestBody,
    ReportResponse,
    SyntheticChatResponse,
)
from vibe_report.features.reports.domain import AnalysisRequest
from vibe_report.features.reports.prompts import SYNTHETIC_CHAT, SYNTHETIC_DISPLAY_NAME
from vibe_report.features.reports.service import (
    GENERIC_FAILURE_MESSAGE,
    AnalysisValidationError,
    InsufficientCreditError,
    build_share_caption,
    run_analysis,
    stream_analysis,
)
from vibe_report.features.reports.state import (
    AnalysisCompleted,
    AnalysisEvent,
    AnalysisFailed,
    AnalysisInProgressError,
    AnalysisStarted,
    AnalysisState,
    ChunkReceived,
)
from vibe_report.infrastructure.observability.logging import get_logger

router = APIRouter(prefix="/reports", tags=["reports"])
logger = get_logger(__name__)


def _refusal_to_http(e: Exception) -> HTTPException:
    """Map an analysis refusal to the HTTP error the client sees."""
    if isinstance(e, AnalysisValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, InsufficientCreditError):
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={"message": str(e), "balance": e.balance},
        )
    if isinstance(e, AnalysisInProgressError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Credits unavailable"
    )


_REFUSALS = (
    AnalysisValidationError,
    InsufficientCreditError,
    AnalysisInProgressError,
    CreditLedgerError,
)


@router.get("/synthetic", response_model=SyntheticChatResponse)
async def get_synthetic_chat() -> SyntheticChatResponse:
    """Demo transcript for trying the analysis without pasting a chat."""
    return SyntheticChatResponse(
        display_name=SYNTHETIC_DISPLAY_NAME, chat_transcript=SYNTHETIC_CHAT
    )


@router.post("", response_model=ReportResponse)
async def create_report(
    body: AnalysisRequestBody,
    identity: AccountIdentity = Depends(resolve_account_identity),
) -> ReportResponse:
    """
    Run one analysis to completion.

    Raises:
        400: Missing name or transcript
        402: No credits remaining
        409: Another analysis for this account is running
        502: Generation failed
    """
    request = AnalysisRequest(display_name=body.display_name, chat_transcript=body.chat_transcript)
    try:
        state = await run_analysis(identity, request)
    except _REFUSALS as e:
        raise _refusal_to_http(e) from e

    if state.status != "complete" or state.report is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERIC_FAILURE_MESSAGE)

    return ReportResponse.from_domain(
        state.report,
        balance=state.balance,
        share_caption=build_share_caption(state.report),
        raw_report=state.buffer,
    )


def _event_payload(event: AnalysisEvent, state: AnalysisState, sent: int) -> dict:
    if isinstance(event, AnalysisStarted):
        return {"type": "started", "balance": state.balance}
    if isinstance(event, ChunkReceived):
        return {"type": "chunk", "delta": event.buffer[sent:]}
    if isinstance(event, AnalysisCompleted):
        report = ReportResponse.from_domain(
            event.report,
            balance=event.balance,
            share_caption=build_share_caption(event.report),
            raw_report=state.buffer,
        )
        return {"type": "completed", "report": report.model_dump()}
    if isinstance(event, AnalysisFailed):
        return {"type": "failed", "message": event.message}
    return {"type": event.kind}


async def _ndjson_lines(
    first: tuple[AnalysisEvent, AnalysisState],
    events: AsyncGenerator[tuple[AnalysisEvent, AnalysisState], None],
) -> AsyncIterator[str]:
    sent = 0
    event, state = first
    yield json.dumps(_event_payload(event, state, sent), ensure_ascii=False) + "\n"
    try:
        async for event, state in events:
            yield json.dumps(_event_payload(event, state, sent), ensure_ascii=False) + "\n"
            if isinstance(event, ChunkReceived):
                sent = len(event.buffer)
    finally:
        await events.aclose()


@router.post("/stream")
async def stream_report(
    body: AnalysisRequestBody,
    identity: AccountIdentity = Depends(resolve_account_identity),
) -> StreamingResponse:
    """
    Stream an analysis as newline-delimited JSON.

    Refusals are returned as normal HTTP errors before the stream starts.
    """
    request = AnalysisRequest(display_name=body.display_name, chat_transcript=body.chat_transcript)
    events = stream_analysis(identity, request)
    try:
        first = await events.__anext__()
    except _REFUSALS as e:
        raise _refusal_to_http(e) from e

    return StreamingResponse(
        _ndjson_lines(first, events),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
