import asyncio

import pytest

from core.gateway import StoreError, StoreGateway
from models.models import User
from sync.events import ChangeEvent, FeedEventType
from sync.feed import ChangeFeed


async def test_insert_returns_row_and_reaches_feed(
    gateway: StoreGateway, feed: ChangeFeed, user: User
):
    events: list[ChangeEvent] = []
    feed.subscribe("tags", events.append)

    row = await gateway.insert("tags", {"user_id": user.id, "name": "reading"})
    await asyncio.sleep(0)

    assert row["name"] == "reading"
    assert row["id"]
    assert row["color"] == "#3B82F6"
    assert [e.event_type for e in events] == [FeedEventType.INSERT]


async def test_select_filters_and_orders(gateway: StoreGateway, user: User, other_user: User):
    for name in ("beta", "alpha", "gamma"):
        await gateway.insert("tags", {"user_id": user.id, "name": name})
    await gateway.insert("tags", {"user_id": other_user.id, "name": "aaa"})

    rows = await gateway.select("tags", {"user_id": user.id}, order="name")
    assert [r["name"] for r in rows] == ["alpha", "beta", "gamma"]

    rows = await gateway.select("tags", {"user_id": user.id}, order="name.desc")
    assert [r["name"] for r in rows] == ["gamma", "beta", "alpha"]


async def test_select_with_membership_filter(gateway: StoreGateway, user: User):
    a = await gateway.insert("tags", {"user_id": user.id, "name": "a"})
    await gateway.insert("tags", {"user_id": user.id, "name": "b"})

    rows = await gateway.select("tags", {"id": [a["id"], "missing"]})
    assert [r["name"] for r in rows] == ["a"]
    assert await gateway.select("tags", {"id": []}) == []


async def test_update_and_delete(gateway: StoreGateway, feed: ChangeFeed, user: User):
    row = await gateway.insert(
        "bookmarks", {"user_id": user.id, "url": "https://example.com", "title": "Old"}
    )
    events: list[ChangeEvent] = []
    feed.subscribe("bookmarks", events.append)

    await gateway.update("bookmarks", {"id": row["id"]}, {"title": "New"})
    assert (await gateway.select("bookmarks", {"id": row["id"]}))[0]["title"] == "New"

    await gateway.delete("bookmarks", {"id": row["id"]})
    assert await gateway.select("bookmarks", {"id": row["id"]}) == []

    await asyncio.sleep(0)
    assert [e.event_type for e in events] == [FeedEventType.UPDATE, FeedEventType.DELETE]


async def test_store_failure_raises_store_error(gateway: StoreGateway, user: User):
    with pytest.raises(StoreError) as exc_info:
        # title is not nullable
        await gateway.insert("bookmarks", {"user_id": user.id, "url": "https://example.com"})

    assert exc_info.value.operation == "insert"
    assert exc_info.value.table == "bookmarks"
    assert "NOT NULL" in exc_info.value.message


async def test_unknown_table_is_rejected(gateway: StoreGateway):
    with pytest.raises(ValueError):
        await gateway.select("secrets")
