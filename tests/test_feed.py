import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.models import Bookmark, BookmarkTag, Tag, User
from sync.events import ChangeEvent, FeedEventType
from sync.feed import ChangeFeed


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def record(feed: ChangeFeed, table: str) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []
    feed.subscribe(table, events.append, channel=f"test-{table}")
    return events


async def test_commit_publishes_insert(
    feed: ChangeFeed, session_factory: async_sessionmaker[AsyncSession], user: User
):
    events = record(feed, "bookmarks")

    async with session_factory() as session:
        session.add(Bookmark(user_id=user.id, url="https://example.com", title="Example"))
        await session.flush()
        await settle()
        # flushed but not committed: nothing yet
        assert events == []
        await session.commit()
    await settle()

    assert len(events) == 1
    assert events[0].event_type is FeedEventType.INSERT
    assert events[0].new is not None
    assert events[0].new["title"] == "Example"
    assert events[0].new["user_id"] == user.id


async def test_rollback_publishes_nothing(
    feed: ChangeFeed, session_factory: async_sessionmaker[AsyncSession], user: User
):
    events = record(feed, "bookmarks")

    async with session_factory() as session:
        session.add(Bookmark(user_id=user.id, url="https://example.com", title="Example"))
        await session.flush()
        await session.rollback()
    await settle()

    assert events == []


async def test_update_carries_old_and_new_rows(
    feed: ChangeFeed, session_factory: async_sessionmaker[AsyncSession], user: User
):
    async with session_factory() as session:
        bookmark = Bookmark(user_id=user.id, url="https://example.com", title="Before")
        session.add(bookmark)
        await session.commit()
        await settle()

        events = record(feed, "bookmarks")
        bookmark.title = "After"
        await session.commit()
    await settle()

    assert [e.event_type for e in events] == [FeedEventType.UPDATE]
    assert events[0].old is not None and events[0].new is not None
    assert events[0].old["title"] == "Before"
    assert events[0].new["title"] == "After"


async def test_orm_cascade_publishes_link_deletes(
    feed: ChangeFeed, session_factory: async_sessionmaker[AsyncSession], user: User
):
    async with session_factory() as session:
        bookmark = Bookmark(user_id=user.id, url="https://example.com", title="Tagged")
        tag = Tag(user_id=user.id, name="news")
        session.add_all([bookmark, tag])
        await session.flush()
        session.add(BookmarkTag(bookmark_id=bookmark.id, tag_id=tag.id))
        await session.commit()
        await settle()

        bookmark_events = record(feed, "bookmarks")
        link_events = record(feed, "bookmark_tags")
        await session.delete(bookmark)
        await session.commit()
    await settle()

    assert [e.event_type for e in bookmark_events] == [FeedEventType.DELETE]
    assert bookmark_events[0].row["id"] == bookmark.id
    assert [e.row["tag_id"] for e in link_events] == [tag.id]


async def test_users_never_reach_the_feed(feed: ChangeFeed):
    with pytest.raises(ValueError):
        feed.subscribe("users", lambda change: None)


async def test_unsubscribe_drops_queued_events(feed: ChangeFeed):
    events: list[ChangeEvent] = []
    subscription = feed.subscribe("bookmarks", events.append)

    feed.publish(ChangeEvent("bookmarks", FeedEventType.DELETE, old={"id": "b1"}))
    # delivery is queued on the loop; unsubscribing first must drop it
    feed.unsubscribe(subscription)
    feed.unsubscribe(subscription)
    await settle()

    assert events == []
    assert feed.subscriber_count("bookmarks") == 0


async def test_subscriber_failure_does_not_block_others(feed: ChangeFeed):
    def explode(change: ChangeEvent) -> None:
        raise RuntimeError("boom")

    events: list[ChangeEvent] = []
    feed.subscribe("tags", explode)
    feed.subscribe("tags", events.append)

    feed.publish(ChangeEvent("tags", FeedEventType.INSERT, new={"id": "t1"}))
    await settle()

    assert len(events) == 1
