from sync.events import (
    BOOKMARK_CHANGED,
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
from sync.relay import BroadcastHub, BroadcastRelay, NoopRelay, open_relay
from sync.feed import FEED_TABLES, ChangeFeed, FeedSubscription, capture_changes
from sync.reconciler import BookmarkReconciler, SyncState, join_bookmarks, reduce_bookmarks

__all__ = [
    # events
    "BOOKMARK_CHANGED",
    "BookmarkChange",
    "BroadcastMessage",
    "ChangeAction",
    "ChangeEvent",
    "Delete",
    "FeedEventType",
    "Insert",
    "Update",
    "make_change",
    # relay
    "BroadcastHub",
    "BroadcastRelay",
    "NoopRelay",
    "open_relay",
    # feed
    "FEED_TABLES",
    "ChangeFeed",
    "FeedSubscription",
    "capture_changes",
    # reconciler
    "BookmarkReconciler",
    "SyncState",
    "join_bookmarks",
    "reduce_bookmarks",
]
