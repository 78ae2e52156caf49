"""
row-level change feed.

capture_changes() hooks the orm unit of work: rows flushed inside a
transaction are collected and only published once it commits, so a rolled
back write never reaches subscribers. delivery is scheduled on the running
loop, never inline with the commit, and the feed has no notion of tenants.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session, UOWTransaction

from core.logging import get_logger
from models.models import TABLES, Base, row_to_dict
from sync.events import ChangeEvent, FeedEventType

logger = get_logger(__name__)

type FeedCallback = Callable[[ChangeEvent], None]

# users carry password hashes and never leave the server
FEED_TABLES = frozenset(TABLES) - {"users"}

_PENDING_KEY = "smartmarks.pending_changes"
_subscription_ids = itertools.count(1)


@dataclass(eq=False)
class FeedSubscription:
    table: str
    channel: str
    callback: FeedCallback = field(repr=False)
    id: int = field(default_factory=lambda: next(_subscription_ids))
    active: bool = True


class ChangeFeed:
    def __init__(self) -> None:
        self._subscriptions: dict[str, list[FeedSubscription]] = {}

    def subscribe(self, table: str, callback: FeedCallback, channel: str = "") -> FeedSubscription:
        if table not in FEED_TABLES:
            raise ValueError(f"Invalid feed table: {table}")
        subscription = FeedSubscription(table=table, channel=channel, callback=callback)
        self._subscriptions.setdefault(table, []).append(subscription)
        logger.debug(
            "feed subscribe %s on %s", channel, table, extra={"channel": channel, "table": table}
        )
        return subscription

    def unsubscribe(self, subscription: FeedSubscription) -> None:
        """idempotent; anything already queued for this subscription is dropped."""
        if not subscription.active:
            return
        subscription.active = False
        subs = self._subscriptions.get(subscription.table, [])
        if subscription in subs:
            subs.remove(subscription)
        logger.debug(
            "feed unsubscribe %s on %s",
            subscription.channel,
            subscription.table,
            extra={"channel": subscription.channel, "table": subscription.table},
        )

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    def publish(self, change: ChangeEvent) -> None:
        subs = list(self._subscriptions.get(change.table, []))
        if not subs:
            return
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for subscription in subs:
            if loop is None:
                self._dispatch(subscription, change)
            else:
                loop.call_soon(self._dispatch, subscription, change)

    @staticmethod
    def _dispatch(subscription: FeedSubscription, change: ChangeEvent) -> None:
        if not subscription.active:
            return
        try:
            subscription.callback(change)
        except Exception:
            # transport-side failure: log it, other channels or a refetch recover state
            logger.exception(
                "feed subscriber %s failed on %s",
                subscription.channel,
                change.table,
                extra={"channel": subscription.channel, "table": change.table},
            )


def _pre_update_row(obj: Base) -> dict[str, Any]:
    state = inspect(obj)
    row: dict[str, Any] = {}
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        row[attr.key] = history.deleted[0] if history.deleted else getattr(obj, attr.key)
    return row


def _table_of(obj: object) -> str | None:
    table = getattr(obj, "__tablename__", None)
    return table if table in FEED_TABLES else None


def capture_changes(
    session_factory: async_sessionmaker[AsyncSession], feed: ChangeFeed
) -> Callable[[], None]:
    """attach publish-on-commit listeners; returns a function that detaches them."""
    sync_maker = session_factory.kw["sync_session_class"]

    def after_flush(session: Session, flush_context: UOWTransaction) -> None:
        pending: list[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])

        for obj in session.new:
            if table := _table_of(obj):
                pending.append(ChangeEvent(table, FeedEventType.INSERT, new=row_to_dict(obj)))

        for obj in session.dirty:
            if (table := _table_of(obj)) and session.is_modified(obj, include_collections=False):
                pending.append(
                    ChangeEvent(
                        table,
                        FeedEventType.UPDATE,
                        new=row_to_dict(obj),
                        old=_pre_update_row(obj),
                    )
                )

        for obj in session.deleted:
            if table := _table_of(obj):
                pending.append(ChangeEvent(table, FeedEventType.DELETE, old=row_to_dict(obj)))

    def after_commit(session: Session) -> None:
        pending: list[ChangeEvent] = session.info.pop(_PENDING_KEY, [])
        for change in pending:
            feed.publish(change)

    def after_rollback(session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)

    listeners: list[tuple[str, Callable[..., None]]] = [
        ("after_flush", after_flush),
        ("after_commit", after_commit),
        ("after_rollback", after_rollback),
    ]
    for name, fn in listeners:
        event.listen(sync_maker, name, fn)

    def detach() -> None:
        for name, fn in listeners:
            if event.contains(sync_maker, name, fn):
                event.remove(sync_maker, name, fn)

    return detach
