from collections.abc import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.result import ErrorKind
from models.models import Bookmark, BookmarkTag, CollectionBookmark, Tag, User
from services.auth_service import AuthService
from services.bookmark_service import BookmarkService
from services.collection_service import SLUG_CHARS, SLUG_LENGTH, CollectionService
from services.tag_service import TagService
from tests.conftest import TEST_PASSWORD

MakeBookmark = Callable[..., Awaitable[Bookmark]]
MakeTag = Callable[..., Awaitable[Tag]]


# auth


async def test_register_and_authenticate(db: AsyncSession):
    service = AuthService(db)
    result = await service.register_user("  Carol ", "Carol@Example.com", TEST_PASSWORD)

    assert result.ok
    assert result.value is not None
    assert result.value.username == "carol"
    assert await service.authenticate_user("carol@example.com", TEST_PASSWORD) is not None
    assert await service.authenticate_user("carol", "wrong password!") is None


async def test_register_conflict(db: AsyncSession, user: User):
    result = await AuthService(db).register_user("alice", "new@example.com", TEST_PASSWORD)
    assert result.error_kind is ErrorKind.CONFLICT


# bookmarks


async def test_list_with_tags_joins_and_orders(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark, make_tag: MakeTag
):
    older = await make_bookmark(user, "https://a.example", "A")
    newer = await make_bookmark(user, "https://b.example", "B")
    zeta, alpha = await make_tag(user, "zeta"), await make_tag(user, "Alpha")

    service = BookmarkService(db)
    assert (await service.add_tag(older, zeta.id)).ok
    assert (await service.add_tag(older, alpha.id)).ok

    entries = await service.list_with_tags(user.id)
    assert [e.id for e in entries] == [newer.id, older.id]
    assert [t.name for t in entries[1].tags] == ["Alpha", "zeta"]
    assert entries[0].tags == ()


async def test_list_is_scoped_to_owner(
    db: AsyncSession, user: User, other_user: User, make_bookmark: MakeBookmark
):
    await make_bookmark(other_user, "https://theirs.example", "Theirs")
    assert await BookmarkService(db).list_with_tags(user.id) == []


async def test_add_tag_twice_is_a_noop(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark, make_tag: MakeTag
):
    bookmark = await make_bookmark(user, "https://a.example", "A")
    tag = await make_tag(user, "news")
    service = BookmarkService(db)

    assert (await service.add_tag(bookmark, tag.id)).ok
    assert (await service.add_tag(bookmark, tag.id)).ok

    links = await db.execute(select(BookmarkTag).where(BookmarkTag.bookmark_id == bookmark.id))
    assert len(links.scalars().all()) == 1


async def test_foreign_tag_is_rejected(
    db: AsyncSession,
    user: User,
    other_user: User,
    make_bookmark: MakeBookmark,
    make_tag: MakeTag,
):
    bookmark = await make_bookmark(user, "https://a.example", "A")
    theirs = await make_tag(other_user, "private")

    result = await BookmarkService(db).add_tag(bookmark, theirs.id)
    assert result.error_kind is ErrorKind.NOT_FOUND


async def test_remove_tag_reports_whether_link_existed(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark, make_tag: MakeTag
):
    bookmark = await make_bookmark(user, "https://a.example", "A")
    tag = await make_tag(user, "news")
    service = BookmarkService(db)
    await service.add_tag(bookmark, tag.id)

    assert (await service.remove_tag(bookmark, tag.id)).value is True
    assert (await service.remove_tag(bookmark, tag.id)).value is False


async def test_update_and_delete_bookmark(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark, make_tag: MakeTag
):
    bookmark = await make_bookmark(user, "https://a.example", "A")
    tag = await make_tag(user, "news")
    service = BookmarkService(db)
    await service.add_tag(bookmark, tag.id)

    updated = await service.update_bookmark(bookmark, title="Renamed")
    assert updated.ok and updated.value is not None
    assert updated.value.title == "Renamed"
    assert updated.value.url == "https://a.example"

    assert (await service.delete_bookmark(bookmark)).value == bookmark.id
    assert await service.get_bookmark(bookmark.id) is None
    links = await db.execute(select(BookmarkTag).where(BookmarkTag.bookmark_id == bookmark.id))
    assert links.scalars().all() == []


# tags


async def test_tags_listed_by_name_and_delete_removes_links(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark
):
    service = TagService(db)
    later = (await service.create_tag(user.id, "later")).value
    early = (await service.create_tag(user.id, "early", "#10B981")).value
    assert later is not None and early is not None

    assert [t.name for t in await service.list_tags(user.id)] == ["early", "later"]

    bookmark = await make_bookmark(user, "https://a.example", "A")
    await BookmarkService(db).add_tag(bookmark, later.id)
    assert (await service.delete_tag(later)).ok

    links = await db.execute(select(BookmarkTag).where(BookmarkTag.tag_id == later.id))
    assert links.scalars().all() == []
    assert [t.name for t in await service.list_tags(user.id)] == ["early"]


# collections


async def test_create_collection_keeps_selection_order(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark
):
    a = await make_bookmark(user, "https://a.example", "A")
    b = await make_bookmark(user, "https://b.example", "B")
    c = await make_bookmark(user, "https://c.example", "C")
    service = CollectionService(db)

    result = await service.create_collection(user.id, "Reading", [c.id, a.id, b.id], "weekend")
    assert result.ok and result.value is not None
    collection = result.value

    assert len(collection.slug) == SLUG_LENGTH
    assert set(collection.slug) <= set(SLUG_CHARS)
    assert collection.is_public

    public = await service.get_public_collection(collection.slug)
    assert public.value is not None
    shown, bookmarks = public.value
    assert shown.id == collection.id
    assert [bm.title for bm in bookmarks] == ["C", "A", "B"]

    members = await db.execute(
        select(CollectionBookmark.sort_order)
        .where(CollectionBookmark.collection_id == collection.id)
        .order_by(CollectionBookmark.sort_order)
    )
    assert members.scalars().all() == [0, 1, 2]


async def test_public_collection_skips_deleted_bookmarks(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark
):
    a = await make_bookmark(user, "https://a.example", "A")
    b = await make_bookmark(user, "https://b.example", "B")
    service = CollectionService(db)
    collection = (await service.create_collection(user.id, "Pair", [a.id, b.id])).value
    assert collection is not None

    await BookmarkService(db).delete_bookmark(a)

    public = await service.get_public_collection(collection.slug)
    assert public.value is not None
    assert [bm.title for bm in public.value[1]] == ["B"]


async def test_collection_ties_fall_back_to_insertion_order(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark
):
    a = await make_bookmark(user, "https://a.example", "A")
    b = await make_bookmark(user, "https://b.example", "B")
    service = CollectionService(db)
    collection = (await service.create_collection(user.id, "Ties", [a.id])).value
    assert collection is not None
    db.add(CollectionBookmark(collection_id=collection.id, bookmark_id=b.id, sort_order=0))
    await db.commit()

    public = await service.get_public_collection(collection.slug)
    assert public.value is not None
    assert [bm.title for bm in public.value[1]] == ["A", "B"]


async def test_collection_rejects_foreign_bookmarks(
    db: AsyncSession, user: User, other_user: User, make_bookmark: MakeBookmark
):
    theirs = await make_bookmark(other_user, "https://theirs.example", "Theirs")
    result = await CollectionService(db).create_collection(user.id, "Nope", [theirs.id])
    assert result.error_kind is ErrorKind.NOT_FOUND


async def test_private_or_unknown_collection_is_not_found(
    db: AsyncSession, user: User, make_bookmark: MakeBookmark
):
    a = await make_bookmark(user, "https://a.example", "A")
    service = CollectionService(db)
    collection = (await service.create_collection(user.id, "Hidden", [a.id])).value
    assert collection is not None
    collection.is_public = False
    await db.commit()

    assert (await service.get_public_collection(collection.slug)).error_kind is ErrorKind.NOT_FOUND
    assert (await service.get_public_collection("nosuch00")).error_kind is ErrorKind.NOT_FOUND


async def test_delete_collection(db: AsyncSession, user: User, make_bookmark: MakeBookmark):
    a = await make_bookmark(user, "https://a.example", "A")
    service = CollectionService(db)
    collection = (await service.create_collection(user.id, "Temp", [a.id])).value
    assert collection is not None

    assert (await service.delete_collection(collection)).ok
    assert await service.list_collections(user.id) == []
    members = await db.execute(select(CollectionBookmark))
    assert members.scalars().all() == []
