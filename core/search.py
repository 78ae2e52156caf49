from collections.abc import Iterable, Sequence

from schemas.bookmark import BookmarkWithTags


def normalize_query(query: str | None) -> str:
    """lowercased needle, kept untrimmed; blank input means no text filter."""
    if not query or not query.strip():
        return ""
    return query.lower()


def matches_query(entry: BookmarkWithTags, needle: str) -> bool:
    if not needle:
        return True
    return needle in entry.title.lower() or needle in entry.url.lower()


def has_all_tags(entry: BookmarkWithTags, required: frozenset[str]) -> bool:
    return required <= entry.tag_ids


def filter_bookmarks(
    entries: Sequence[BookmarkWithTags],
    query: str | None = "",
    required_tag_ids: Iterable[str] = (),
) -> list[BookmarkWithTags]:
    """substring match on title or url, AND over tag ids, input order kept."""
    needle = normalize_query(query)
    required = frozenset(required_tag_ids)

    if not needle and not required:
        return list(entries)

    return [
        entry for entry in entries if matches_query(entry, needle) and has_all_tags(entry, required)
    ]
