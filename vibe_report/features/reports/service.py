"""
Vibe report analysis flow.

validate -> lock -> check credit -> stream -> parse -> consume -> release

A credit is only consumed once the completed text has been parsed, so a
failed or interrupted generation costs nothing.
"""

import uuid
from collections.abc import AsyncIterator

from vibe_report.config import settings
from vibe_report.features.credits.domain import AccountIdentity, CreditLedgerError
from vibe_report.features.credits.services import consume_credit, get_account, has_credit
from vibe_report.features.reports.domain import AnalysisRequest, ParsedReport
from vibe_report.features.reports.parser import parse_report
from vibe_report.features.reports.state import (
    AnalysisCompleted,
    AnalysisEvent,
    AnalysisFailed,
    AnalysisInProgressError,
    AnalysisStarted,
    AnalysisState,
    ChunkReceived,
    reduce,
)
from vibe_report.infrastructure.observability.logging import get_logger
from vibe_report.services import redis_store
from vibe_report.services.openai_service import ReportGenerationError, openai_service

logger = get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "Sorry, something went wrong. Please try again."
GENERIC_SHARE_CAPTION = "Check out my social vibe report! 👇"
ANALYSIS_LOCK_PREFIX = "analysis_lock:"


class AnalysisValidationError(Exception):
    """Raised when the name or transcript is missing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.recoverable = True


class InsufficientCreditError(Exception):
    """Raised when the account has no credit left."""

    def __init__(self, balance: int):
        super().__init__("No credits remaining")
        self.balance = balance
        self.recoverable = True


def validate_request(request: AnalysisRequest) -> None:
    if not request.display_name.strip():
        raise AnalysisValidationError("Please enter your name")
    if not request.chat_transcript.strip():
        raise AnalysisValidationError("Please paste a chat transcript")


async def _acquire_lock(identity: AccountIdentity) -> tuple[str, str]:
    key = f"{ANALYSIS_LOCK_PREFIX}{identity.lock_key}"
    token = uuid.uuid4().hex
    acquired = await redis_store.set_if_absent(key, token, settings.ANALYSIS_LOCK_TTL_SECONDS)
    if not acquired:
        logger.info("Analysis rejected, another is in flight", account=identity.lock_key)
        raise AnalysisInProgressError()
    return key, token


async def _release_lock(key: str, token: str) -> None:
    # Only drop the lock if it is still ours; an expired lock may belong to a newer run.
    if await redis_store.get(key) == token:
        await redis_store.delete(key)


async def stream_analysis(
    identity: AccountIdentity, request: AnalysisRequest
) -> AsyncIterator[tuple[AnalysisEvent, AnalysisState]]:
    """
    Run one analysis, yielding every event with the state it produced.

    Raises before the first yield for validation, in-flight and credit
    refusals. Generation failures are reported as an AnalysisFailed event.
    """
    validate_request(request)

    lock_key, lock_token = await _acquire_lock(identity)
    try:
        account = await get_account(identity)
        if not has_credit(account):
            logger.info("Analysis refused, no credits", account=identity.lock_key)
            raise InsufficientCreditError(account.balance)

        state = AnalysisState(balance=account.balance)
        event: AnalysisEvent = AnalysisStarted()
        state = reduce(state, event)
        yield event, state

        logger.info(
            "Analysis started",
            account=identity.lock_key,
            transcript_length=len(request.chat_transcript),
        )

        buffer = ""
        try:
            async for delta in openai_service.iter_report_chunks(
                request.display_name, request.chat_transcript
            ):
                buffer += delta
                event = ChunkReceived(buffer=buffer)
                state = reduce(state, event)
                yield event, state
            if not buffer.strip():
                raise ReportGenerationError("Empty response from OpenAI API")
        except ReportGenerationError as e:
            logger.error(
                "Analysis generation failed",
                account=identity.lock_key,
                error=str(e),
                api_error=e.api_error,
            )
            event = AnalysisFailed(message=GENERIC_FAILURE_MESSAGE)
            state = reduce(state, event)
            yield event, state
            return

        report = parse_report(buffer, request.display_name)
        try:
            new_balance = await consume_credit(identity)
        except CreditLedgerError as e:
            logger.error(
                "Credit could not be consumed, report withheld",
                account=identity.lock_key,
                error=str(e),
            )
            event = AnalysisFailed(message=GENERIC_FAILURE_MESSAGE)
            state = reduce(state, event)
            yield event, state
            return

        event = AnalysisCompleted(report=report, balance=new_balance)
        state = reduce(state, event)
        logger.info(
            "Analysis completed",
            account=identity.lock_key,
            people=len(report.people),
            new_balance=new_balance,
        )
        yield event, state
    finally:
        await _release_lock(lock_key, lock_token)


async def run_analysis(identity: AccountIdentity, request: AnalysisRequest) -> AnalysisState:
    """Drain stream_analysis and return the final state."""
    state = AnalysisState()
    async for _, state in stream_analysis(identity, request):
        pass
    return state


def build_share_caption(report: ParsedReport | None) -> str:
    if report is None or not report.people:
        return GENERIC_SHARE_CAPTION

    current = report.current_user
    archetype = current.energy_category if current else "Balanced"
    return (
        "Here's what our group chat says about our vibe 👇\n\n"
        f"🧩 Type: {archetype}  •  💫 Vibe: {report.group.score:.1f}/10  •  "
        f"🤝 Group: {len(report.people)} people"
    )
