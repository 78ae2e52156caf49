from models.models import (
    TABLES,
    TAG_COLORS,
    Base,
    Bookmark,
    BookmarkTag,
    CollectionBookmark,
    SharedCollection,
    Tag,
    User,
    new_id,
    row_to_dict,
    utc_now,
)

__all__ = [
    "Base",
    "User",
    "Bookmark",
    "Tag",
    "BookmarkTag",
    "SharedCollection",
    "CollectionBookmark",
    "TABLES",
    "TAG_COLORS",
    "new_id",
    "row_to_dict",
    "utc_now",
]
