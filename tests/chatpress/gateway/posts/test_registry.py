"""Tests for single-flight, versioned index rebuilds."""

import asyncio

import pytest

from chatpress.gateway.exceptions import IndexNotReadyError
from chatpress.gateway.posts.registry import IndexRegistry
from tests.chatpress.gateway.conftest import CHANNEL_ID, make_message


@pytest.fixture
async def registry(history, resolver, settings):
    registry = IndexRegistry(history, resolver, settings)
    yield registry
    await registry.close()


@pytest.mark.asyncio
async def test_require_before_first_build(registry):
    assert registry.get(CHANNEL_ID) is None
    with pytest.raises(IndexNotReadyError) as exc_info:
        registry.require(CHANNEL_ID)
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_rebuild_swaps_in_new_version(registry, history):
    first = await registry.rebuild(CHANNEL_ID)
    assert registry.require(CHANNEL_ID) is first
    assert first.version == 1

    history.messages.append(make_message(5, "fresh"))
    second = await registry.rebuild(CHANNEL_ID)
    assert second.version == 2
    assert registry.require(CHANNEL_ID) is second
    assert second.posts[0].id == "5"
    # Old index is untouched
    assert first.get_post("5") is None


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_build(registry, history):
    results = await asyncio.gather(*(registry.rebuild(CHANNEL_ID) for _ in range(3)))
    assert results[0] is results[1] is results[2]
    # One pass: a page of messages, then the empty page
    assert len(history.calls) == 2


@pytest.mark.asyncio
async def test_request_during_build_runs_one_more_pass(registry, history):
    history.delay = 0.05
    first = asyncio.create_task(registry.rebuild(CHANNEL_ID))
    await asyncio.sleep(0.01)
    assert registry.is_rebuilding(CHANNEL_ID)

    history.messages.append(make_message(5, "arrived mid-build"))
    second = asyncio.create_task(registry.rebuild(CHANNEL_ID))
    third = asyncio.create_task(registry.rebuild(CHANNEL_ID))
    a, b, c = await asyncio.gather(first, second, third)

    assert a is b is c
    assert a.version == 2
    assert a.get_post("5") is not None
    assert len(history.calls) == 4


@pytest.mark.asyncio
async def test_failed_rebuild_keeps_previous_index(registry, history):
    good = await registry.rebuild(CHANNEL_ID)
    history.fail = True
    with pytest.raises(RuntimeError):
        await registry.rebuild(CHANNEL_ID)
    assert registry.require(CHANNEL_ID) is good

    history.fail = False
    assert (await registry.rebuild(CHANNEL_ID)).version == 2


@pytest.mark.asyncio
async def test_notify_rebuilds_in_background(registry):
    task = registry.notify(CHANNEL_ID, "message_create")
    await task
    assert registry.require(CHANNEL_ID).version == 1


@pytest.mark.asyncio
async def test_notify_swallows_and_logs_failures(registry, history):
    history.fail = True
    await registry.notify(CHANNEL_ID, "message_update")
    assert registry.get(CHANNEL_ID) is None


@pytest.mark.asyncio
async def test_channels_are_independent(registry, history):
    other = "555"
    history.messages.append(make_message(7, "elsewhere").model_copy(update={"channel_id": other}))
    await registry.rebuild(other)
    assert registry.get(CHANNEL_ID) is None
    assert [p.id for p in registry.require(other).posts] == ["7"]
    assert registry.channels == [other]
