from services.auth_service import AuthService
from services.bookmark_service import BookmarkService
from services.collection_service import CollectionService
from services.tag_service import TagService
from services.title_service import TitleResult, TitleService

__all__ = [
    "AuthService",
    "BookmarkService",
    "CollectionService",
    "TagService",
    "TitleResult",
    "TitleService",
]
