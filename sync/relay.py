"""
same-process cross-tab broadcast relay.

every open live view (one per browser tab) holds a handle on the same named
channel. publishing delivers a copy of the message to every other handle on
that channel, never back to the publisher. there is no persistence and no
ordering promise across handles; the transport has no notion of users, so
receivers scope messages by the user id they carry.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from collections.abc import Callable
from typing import Any, Protocol

from core.logging import get_logger

logger = get_logger(__name__)

type Message = dict[str, Any]
type MessageCallback = Callable[[Message], None]

_handle_ids = itertools.count(1)


class Relay(Protocol):
    channel_name: str

    @property
    def closed(self) -> bool: ...

    def publish(self, message: Message) -> None: ...

    def on_message(self, callback: MessageCallback) -> None: ...

    def close(self) -> None: ...


class BroadcastHub:
    """registry of named channels shared by every relay handle in the process."""

    def __init__(self) -> None:
        self._channels: dict[str, set[BroadcastRelay]] = {}
        self.closed = False

    def handles(self, channel_name: str) -> frozenset[BroadcastRelay]:
        return frozenset(self._channels.get(channel_name, ()))

    def _attach(self, relay: BroadcastRelay) -> None:
        self._channels.setdefault(relay.channel_name, set()).add(relay)

    def _detach(self, relay: BroadcastRelay) -> None:
        handles = self._channels.get(relay.channel_name)
        if handles is None:
            return
        handles.discard(relay)
        if not handles:
            del self._channels[relay.channel_name]

    def _deliver(self, sender: BroadcastRelay, message: Message) -> None:
        receivers = [h for h in self.handles(sender.channel_name) if h is not sender]
        if not receivers:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for receiver in receivers:
            # each receiver gets its own copy, like a structured clone
            payload = copy.deepcopy(message)
            if loop is None:
                receiver._receive(payload)
            else:
                loop.call_soon(receiver._receive, payload)

    def close(self) -> None:
        for handles in list(self._channels.values()):
            for handle in list(handles):
                handle.close()
        self._channels.clear()
        self.closed = True


class BroadcastRelay:
    def __init__(self, hub: BroadcastHub, channel_name: str):
        self.hub = hub
        self.channel_name = channel_name
        self.handle_id = next(_handle_ids)
        self._callbacks: list[MessageCallback] = []
        self._closed = False
        hub._attach(self)

    def __repr__(self) -> str:
        return f"<BroadcastRelay {self.channel_name}#{self.handle_id}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, message: Message) -> None:
        """fire and forget; a closed handle drops the message."""
        if self._closed:
            return
        self.hub._deliver(self, message)

    def on_message(self, callback: MessageCallback) -> None:
        self._callbacks.append(callback)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._callbacks.clear()
        self.hub._detach(self)

    def _receive(self, message: Message) -> None:
        # deliveries scheduled before close() are dropped here
        if self._closed:
            return
        for callback in list(self._callbacks):
            try:
                callback(message)
            except Exception:
                logger.exception(
                    "broadcast receiver failed on %s",
                    self.channel_name,
                    extra={"channel": self.channel_name},
                )


class NoopRelay:
    """stand-in when no broadcast primitive is available: sends and hears nothing."""

    def __init__(self, channel_name: str):
        self.channel_name = channel_name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, message: Message) -> None:
        return None

    def on_message(self, callback: MessageCallback) -> None:
        return None

    def close(self) -> None:
        self._closed = True


def open_relay(hub: BroadcastHub | None, channel_name: str) -> Relay:
    """never raises; degrades to a no-op relay so the change feed alone keeps working."""
    if hub is None or hub.closed:
        logger.info(
            "broadcast relay unavailable, relying on change feed only",
            extra={"channel": channel_name},
        )
        return NoopRelay(channel_name)
    return BroadcastRelay(hub, channel_name)
