import asyncio
import logging
from typing import Any

import pytest

from sync.relay import BroadcastHub, BroadcastRelay, NoopRelay, open_relay


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def listen(relay: BroadcastRelay) -> list[dict[str, Any]]:
    heard: list[dict[str, Any]] = []
    relay.on_message(heard.append)
    return heard


async def test_publisher_never_hears_itself(hub: BroadcastHub):
    a = BroadcastRelay(hub, "chan")
    b = BroadcastRelay(hub, "chan")
    heard_a, heard_b = listen(a), listen(b)

    a.publish({"n": 1})
    await settle()

    assert heard_a == []
    assert heard_b == [{"n": 1}]


async def test_delivery_is_deferred(hub: BroadcastHub):
    a, b = BroadcastRelay(hub, "chan"), BroadcastRelay(hub, "chan")
    heard = listen(b)

    a.publish({"n": 1})
    assert heard == []
    await settle()
    assert heard == [{"n": 1}]


async def test_each_receiver_gets_its_own_copy(hub: BroadcastHub):
    sender = BroadcastRelay(hub, "chan")
    first, second = BroadcastRelay(hub, "chan"), BroadcastRelay(hub, "chan")
    heard_first, heard_second = listen(first), listen(second)

    message = {"bookmark": {"title": "original"}}
    sender.publish(message)
    message["bookmark"]["title"] = "changed by sender"
    await settle()
    heard_first[0]["bookmark"]["title"] = "changed by first"

    assert heard_second == [{"bookmark": {"title": "original"}}]


async def test_channels_are_isolated(hub: BroadcastHub):
    a = BroadcastRelay(hub, "one")
    other = BroadcastRelay(hub, "two")
    heard = listen(other)

    a.publish({"n": 1})
    await settle()

    assert heard == []


async def test_closed_handle_sends_and_hears_nothing(hub: BroadcastHub):
    a, b = BroadcastRelay(hub, "chan"), BroadcastRelay(hub, "chan")
    heard_a = listen(a)

    b.publish({"queued": True})
    a.close()
    a.close()
    await settle()
    a.publish({"late": True})
    await settle()

    assert a.closed
    assert heard_a == []
    assert hub.handles("chan") == frozenset({b})


async def test_receiver_failure_is_logged_and_isolated(
    hub: BroadcastHub, caplog: pytest.LogCaptureFixture
):
    sender, receiver = BroadcastRelay(hub, "chan"), BroadcastRelay(hub, "chan")

    def explode(message: dict[str, Any]) -> None:
        raise RuntimeError("boom")

    receiver.on_message(explode)
    heard = listen(receiver)

    with caplog.at_level(logging.ERROR, logger="sync.relay"):
        sender.publish({"n": 1})
        await settle()

    assert heard == [{"n": 1}]
    assert "broadcast receiver failed" in caplog.text


def test_open_relay_degrades_without_hub():
    relay = open_relay(None, "chan")
    assert isinstance(relay, NoopRelay)
    relay.publish({"n": 1})
    relay.close()
    assert relay.closed


def test_open_relay_on_closed_hub():
    hub = BroadcastHub()
    live = open_relay(hub, "chan")
    hub.close()

    assert live.closed
    assert isinstance(open_relay(hub, "chan"), NoopRelay)
