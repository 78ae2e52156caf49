"""
per-session reconciliation of bookmark state.

two transports may deliver the same logical change: the change feed (server
push, after commit) and the broadcast relay (other tabs, immediately). either
can arrive first, twice, or not at all, so every change goes through one
idempotent reducer keyed by bookmark id:

    insert  existing id -> unchanged, otherwise prepended with no tags
    update  fields replaced in place, tags kept, unknown id or same fields -> unchanged
    delete  removed, unknown id -> unchanged

tag associations carry no user id and too little to patch incrementally, so an
association change for a bookmark this session shows triggers a full refetch.
tag rows themselves are patched in place.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Sequence
from enum import StrEnum
from typing import Any, Protocol

from pydantic import ValidationError

from core.gateway import StoreError
from core.logging import get_logger
from core.search import filter_bookmarks
from schemas.bookmark import BookmarkRow, BookmarkWithTags, TagRow
from sync.events import (
    BookmarkChange,
    BroadcastMessage,
    ChangeAction,
    ChangeEvent,
    Delete,
    FeedEventType,
    Insert,
    Update,
    make_change,
)
from sync.feed import ChangeFeed, FeedSubscription
from sync.relay import Message, Relay

logger = get_logger(__name__)

type Listener = Callable[[BookmarkReconciler], None]


class BookmarkSource(Protocol):
    async def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]: ...


class SyncState(StrEnum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


def reduce_bookmarks(
    entries: list[BookmarkWithTags], change: BookmarkChange
) -> list[BookmarkWithTags]:
    """returns the same list object when the change is a no-op."""
    match change:
        case Insert(bookmark):
            if any(entry.id == bookmark.id for entry in entries):
                return entries
            return [BookmarkWithTags.from_row(bookmark), *entries]
        case Update(bookmark):
            current = next((entry for entry in entries if entry.id == bookmark.id), None)
            if current is None:
                return entries
            replaced = current.replace_bookmark(bookmark)
            # the same update usually arrives on both transports
            if replaced == current:
                return entries
            return [replaced if entry.id == bookmark.id else entry for entry in entries]
        case Delete(bookmark_id):
            if not any(entry.id == bookmark_id for entry in entries):
                return entries
            return [entry for entry in entries if entry.id != bookmark_id]


def sort_tags(tags: Iterable[TagRow]) -> tuple[TagRow, ...]:
    return tuple(sorted(tags, key=lambda t: (t.name.lower(), t.name, t.id)))


def join_bookmarks(
    bookmark_rows: Sequence[dict[str, Any]],
    link_rows: Sequence[dict[str, Any]],
    tag_rows: Sequence[dict[str, Any]],
) -> list[BookmarkWithTags]:
    """bookmarks keep their fetched order; links to unknown tags are dropped."""
    tags_by_id = {row["id"]: TagRow.model_validate(row) for row in tag_rows}

    tag_ids_by_bookmark: dict[str, dict[str, None]] = {}
    for link in link_rows:
        if link["tag_id"] in tags_by_id:
            tag_ids_by_bookmark.setdefault(link["bookmark_id"], {})[link["tag_id"]] = None

    entries: list[BookmarkWithTags] = []
    for row in bookmark_rows:
        tag_ids = tag_ids_by_bookmark.get(row["id"], {})
        entries.append(
            BookmarkWithTags.from_row(
                BookmarkRow.model_validate(row),
                sort_tags(tags_by_id[tag_id] for tag_id in tag_ids),
            )
        )
    return entries


class BookmarkReconciler:
    """
    owns the in-memory bookmark list of one user session.

    collaborators are passed in, one set per session, so tests can use fakes.
    the engine never writes to the store; it only mirrors changes made
    elsewhere.
    """

    def __init__(
        self,
        user_id: str,
        gateway: BookmarkSource,
        feed: ChangeFeed,
        relay: Relay,
        channel: str | None = None,
    ):
        self.user_id = user_id
        self.gateway = gateway
        self.feed = feed
        self.relay = relay
        self.channel = channel or f"bookmarks-realtime-{user_id}-{uuid.uuid4().hex[:8]}"

        self.entries: list[BookmarkWithTags] = []
        self.tags: list[TagRow] = []
        self.state = SyncState.IDLE
        self.error: str | None = None

        self._subscriptions: list[FeedSubscription] = []
        self._listeners: list[Listener] = []
        self._init_lock = asyncio.Lock()
        # changes seen while a fetch is in flight, replayed over its result
        self._buffer: list[BookmarkChange] | None = None
        self._refetch_task: asyncio.Task[None] | None = None
        self._refetch_again = False

    async def __aenter__(self) -> BookmarkReconciler:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.state is SyncState.CLOSED

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def view(self, query: str = "", tag_ids: Iterable[str] = ()) -> list[BookmarkWithTags]:
        return filter_bookmarks(self.entries, query, tag_ids)

    async def start(self) -> None:
        """subscribe first so nothing committed during the initial fetch is missed."""
        if self.state is not SyncState.IDLE:
            logger.warning(
                "reconciler already started (%s)", self.state, extra={"user_id": self.user_id}
            )
            return

        self._subscriptions = [
            self.feed.subscribe("bookmarks", self._on_bookmark_event, self.channel),
            self.feed.subscribe("bookmark_tags", self._on_link_event, self.channel),
            self.feed.subscribe("tags", self._on_tag_event, self.channel),
        ]
        self.relay.on_message(self._on_broadcast)
        await self.initialize()

    async def initialize(self) -> None:
        """full fetch and join; failures leave an error state and are not retried."""
        if self.closed:
            logger.debug("initialize after close ignored", extra={"user_id": self.user_id})
            return

        async with self._init_lock:
            if self.closed:
                return
            self.state = SyncState.INITIALIZING
            self._buffer = []

            try:
                bookmark_rows = await self.gateway.select(
                    "bookmarks", {"user_id": self.user_id}, order="created_at.desc"
                )
                link_rows = await self.gateway.select(
                    "bookmark_tags", {"bookmark_id": [row["id"] for row in bookmark_rows]}
                )
                tag_rows = await self.gateway.select(
                    "tags", {"user_id": self.user_id}, order="name"
                )
                entries = join_bookmarks(bookmark_rows, link_rows, tag_rows)
                tags = list(sort_tags(TagRow.model_validate(row) for row in tag_rows))
            except (StoreError, ValidationError) as e:
                if self.closed:
                    return
                self._buffer = None
                self.entries = []
                self.state = SyncState.ERROR
                self.error = e.message if isinstance(e, StoreError) else str(e)
                logger.warning(
                    "bookmark fetch failed: %s",
                    self.error,
                    extra={"user_id": self.user_id, "operation": "initialize"},
                )
                self._notify()
                return

            if self.closed:
                return

            for change in self._buffer:
                entries = reduce_bookmarks(entries, change)
            self._buffer = None

            self.entries = entries
            self.tags = tags
            self.state = SyncState.READY
            self.error = None
            logger.debug(
                "reconciler ready with %d bookmarks",
                len(entries),
                extra={"user_id": self.user_id, "operation": "initialize"},
            )
            self._notify()

    def apply_change(
        self,
        action: ChangeAction | str,
        bookmark: BookmarkRow | dict[str, Any] | None = None,
        bookmark_id: str | None = None,
    ) -> bool:
        """merge one change into local state; never raises. True when state changed."""
        if isinstance(bookmark, dict):
            try:
                bookmark = BookmarkRow.model_validate(bookmark)
            except ValidationError:
                logger.debug("malformed bookmark in change ignored", extra={"action": action})
                return False

        change = make_change(action, bookmark, bookmark_id)
        if change is None:
            logger.debug("unusable change ignored", extra={"action": action})
            return False
        return self._apply(change)

    def schedule_refetch(self) -> None:
        """coalesces bursts: at most one refetch running and one queued behind it."""
        if self.closed:
            return
        if self._refetch_task is not None and not self._refetch_task.done():
            self._refetch_again = True
            return
        self._refetch_task = asyncio.get_running_loop().create_task(self._refetch())

    def close(self) -> None:
        """teardown: stop both transports before any other session initializes."""
        if self.closed:
            return
        self.state = SyncState.CLOSED
        for subscription in self._subscriptions:
            self.feed.unsubscribe(subscription)
        self._subscriptions = []
        self.relay.close()
        if self._refetch_task is not None and not self._refetch_task.done():
            self._refetch_task.cancel()
        self._refetch_task = None
        self._buffer = None
        self._listeners.clear()
        logger.debug("reconciler closed", extra={"user_id": self.user_id, "channel": self.channel})

    async def _refetch(self) -> None:
        while True:
            self._refetch_again = False
            await self.initialize()
            if not self._refetch_again or self.closed:
                return

    def _apply(self, change: BookmarkChange) -> bool:
        if self.state in (SyncState.CLOSED, SyncState.ERROR):
            return False
        if self._buffer is not None:
            self._buffer.append(change)

        entries = reduce_bookmarks(self.entries, change)
        if entries is self.entries:
            return False
        self.entries = entries
        self._notify()
        return True

    def _rebroadcast(self, change: BookmarkChange) -> None:
        # relay only; changes never go back onto the feed
        if self.closed:
            return
        self.relay.publish(BroadcastMessage.for_change(self.user_id, change).to_wire())

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("reconciler listener failed", extra={"user_id": self.user_id})

    def _on_bookmark_event(self, change_event: ChangeEvent) -> None:
        row = change_event.row
        if row.get("user_id") != self.user_id:
            return

        change: BookmarkChange | None
        if change_event.event_type is FeedEventType.DELETE:
            change = make_change(ChangeAction.DELETE, bookmark_id=row.get("id"))
        else:
            try:
                bookmark = BookmarkRow.model_validate(row)
            except ValidationError:
                logger.warning("malformed bookmark row on feed", extra={"user_id": self.user_id})
                return
            change = make_change(change_event.event_type.action, bookmark)

        if change is None:
            return
        self._apply(change)
        self._rebroadcast(change)

    def _on_broadcast(self, message: Message) -> None:
        try:
            parsed = BroadcastMessage.model_validate(message)
        except ValidationError:
            logger.debug("ignoring malformed broadcast", extra={"channel": self.relay.channel_name})
            return

        if parsed.user_id != self.user_id:
            return
        if parsed.bookmark is not None and parsed.bookmark.user_id != self.user_id:
            return

        change = parsed.to_change()
        if change is not None:
            self._apply(change)

    def _on_link_event(self, change_event: ChangeEvent) -> None:
        # links carry no user id; only links to bookmarks this session shows matter
        bookmark_id = change_event.row.get("bookmark_id")
        if self.state is SyncState.INITIALIZING or any(
            entry.id == bookmark_id for entry in self.entries
        ):
            self.schedule_refetch()

    def _on_tag_event(self, change_event: ChangeEvent) -> None:
        row = change_event.row
        if row.get("user_id") != self.user_id:
            return
        if self.state is SyncState.INITIALIZING:
            # the catalogue is about to be replaced, fetch again once it lands
            self.schedule_refetch()
            return
        if self.state is not SyncState.READY:
            return

        if change_event.event_type is FeedEventType.DELETE:
            self._drop_tag(row.get("id"))
            return

        try:
            tag = TagRow.model_validate(row)
        except ValidationError:
            logger.warning("malformed tag row on feed", extra={"user_id": self.user_id})
            return
        self._put_tag(tag)

    def _put_tag(self, tag: TagRow) -> None:
        self.tags = list(sort_tags([*(t for t in self.tags if t.id != tag.id), tag]))
        self.entries = [
            entry.replace_tags(sort_tags([*(t for t in entry.tags if t.id != tag.id), tag]))
            if tag.id in entry.tag_ids
            else entry
            for entry in self.entries
        ]
        self._notify()

    def _drop_tag(self, tag_id: str | None) -> None:
        if tag_id is None:
            return
        self.tags = [t for t in self.tags if t.id != tag_id]
        self.entries = [
            entry.replace_tags(tuple(t for t in entry.tags if t.id != tag_id))
            if tag_id in entry.tag_ids
            else entry
            for entry in self.entries
        ]
        self._notify()
