import json

import pytest

from vibe_report.features.pending_actions import service as pending_action_service
from vibe_report.features.pending_actions.domain import PendingActionError


@pytest.mark.asyncio
async def test_queue_and_resume_once(fake_redis):
    await pending_action_service.queue("sess-1", "share", {"format": "story"})

    assert fake_redis.ttls["pending_action:sess-1"] == 900

    pending = await pending_action_service.resume("sess-1")
    assert pending.action == "share"
    assert pending.params == {"format": "story"}

    assert await pending_action_service.resume("sess-1") is None


@pytest.mark.asyncio
async def test_newer_action_replaces_older(fake_redis):
    await pending_action_service.queue("sess-1", "share", {})
    await pending_action_service.queue("sess-1", "purchase", {"price_id": "price_x"})

    stored = json.loads(fake_redis.store["pending_action:sess-1"])
    assert stored["action"] == "purchase"

    pending = await pending_action_service.resume("sess-1")
    assert pending.action == "purchase"


@pytest.mark.asyncio
async def test_unknown_action_rejected(fake_redis):
    with pytest.raises(PendingActionError):
        await pending_action_service.queue("sess-1", "delete_account", {})

    assert fake_redis.store == {}


@pytest.mark.asyncio
async def test_blank_session_rejected(fake_redis):
    with pytest.raises(PendingActionError):
        await pending_action_service.resume("   ")


@pytest.mark.asyncio
async def test_corrupt_token_raises(fake_redis):
    fake_redis.store["pending_action:sess-1"] = "not json"

    with pytest.raises(PendingActionError):
        await pending_action_service.resume("sess-1")
