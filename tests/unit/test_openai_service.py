from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from vibe_report.services.openai_service import ReportGenerationError, openai_service


def _status_error(cls, status_code: int):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status_code, request=request)
    return cls("failure", response=response, body=None)


@pytest.mark.asyncio
async def test_request_report_accumulates_and_calls_back(fake_openai, sample_report):
    seen = []

    result = await openai_service.request_report("Alex", "Alex: hi", on_chunk=seen.append)

    assert result == sample_report
    assert seen[-1] == sample_report
    assert all(sample_report.startswith(buffer) for buffer in seen)
    assert len(seen) > 1


@pytest.mark.asyncio
async def test_async_callback_is_awaited(fake_openai):
    callback = AsyncMock()

    await openai_service.request_report("Alex", "Alex: hi", on_chunk=callback)

    assert callback.await_count > 0


@pytest.mark.asyncio
async def test_single_streaming_request_with_prompt(fake_openai):
    await openai_service.request_report("Alex", "Alex: hi\nCasey: ok cool")

    fake_openai.assert_awaited_once()
    kwargs = fake_openai.call_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["max_tokens"] == 6000
    assert len(kwargs["messages"]) == 1
    assert kwargs["messages"][0]["role"] == "user"
    assert kwargs["messages"][0]["content"].endswith("Alex: hi\nCasey: ok cool")


@pytest.mark.asyncio
async def test_empty_stream_is_an_error(fake_openai, make_stream):
    fake_openai.return_value = make_stream("")

    with pytest.raises(ReportGenerationError):
        await openai_service.request_report("Alex", "Alex: hi")


@pytest.mark.asyncio
async def test_server_errors_are_retried(fake_openai, make_stream, sample_report):
    fake_openai.side_effect = [
        _status_error(openai.InternalServerError, 500),
        make_stream(sample_report),
    ]

    assert await openai_service.request_report("Alex", "Alex: hi") == sample_report
    assert fake_openai.await_count == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(fake_openai):
    fake_openai.side_effect = _status_error(openai.BadRequestError, 400)

    with pytest.raises(ReportGenerationError):
        await openai_service.request_report("Alex", "Alex: hi")

    assert fake_openai.await_count == 1


@pytest.mark.asyncio
async def test_stream_interrupted_midway(fake_openai, make_stream):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    fake_openai.return_value = make_stream(
        "🧩 **Alex**\n", error=openai.APIConnectionError(request=request)
    )

    with pytest.raises(ReportGenerationError):
        await openai_service.request_report("Alex", "Alex: hi")

    assert fake_openai.await_count == 1


@pytest.mark.asyncio
async def test_transport_timeout_while_reading_is_wrapped(fake_openai, make_stream):
    fake_openai.return_value = make_stream("🧩 **Alex**\n", error=httpx.ReadTimeout("read timed out"))

    with pytest.raises(ReportGenerationError) as exc_info:
        await openai_service.request_report("Alex", "Alex: hi")

    assert exc_info.value.recoverable is True
    assert "read timed out" in exc_info.value.api_error
