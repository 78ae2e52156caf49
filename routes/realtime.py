import asyncio
from dataclasses import dataclass, field

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from config import settings
from core.database import async_session
from core.dependencies import Feed, Gateway, Hub, load_user
from core.logging import get_logger
from schemas.live import FilterCommand, LiveSnapshot, RefreshCommand, live_command_adapter
from sync.reconciler import BookmarkReconciler
from sync.relay import open_relay

router = APIRouter(tags=["realtime"])
logger = get_logger(__name__)


@dataclass
class ViewFilter:
    query: str = ""
    tag_ids: list[str] = field(default_factory=list)


def build_snapshot(reconciler: BookmarkReconciler, view: ViewFilter) -> LiveSnapshot:
    return LiveSnapshot(
        state=reconciler.state.value,
        error=reconciler.error,
        bookmarks=reconciler.view(view.query, view.tag_ids),
        tags=reconciler.tags,
        total=len(reconciler.entries),
    )


async def _push_snapshots(
    websocket: WebSocket,
    reconciler: BookmarkReconciler,
    view: ViewFilter,
    wakeups: asyncio.Queue[None],
) -> None:
    while True:
        await wakeups.get()
        snapshot = build_snapshot(reconciler, view)
        await websocket.send_json(snapshot.model_dump(mode="json"))


def _sender_done(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    if (exc := task.exception()) is not None:
        logger.debug("snapshot sender stopped: %r", exc)


def _wake(wakeups: asyncio.Queue[None]) -> None:
    # one pending wakeup is enough, the snapshot is built when it is consumed
    if wakeups.empty():
        wakeups.put_nowait(None)


@router.websocket("/ws/bookmarks")
async def bookmarks_live(websocket: WebSocket, feed: Feed, hub: Hub, gateway: Gateway) -> None:
    async with async_session() as db:
        user = await load_user(websocket, db)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    user_id = user.id

    wakeups: asyncio.Queue[None] = asyncio.Queue()
    view = ViewFilter()
    reconciler = BookmarkReconciler(
        user_id, gateway, feed, open_relay(hub, settings.BROADCAST_CHANNEL)
    )
    reconciler.add_listener(lambda _: _wake(wakeups))
    sender: asyncio.Task[None] | None = None

    logger.info("live view opened", extra={"user_id": user_id, "channel": reconciler.channel})
    try:
        await reconciler.start()
        sender = asyncio.create_task(_push_snapshots(websocket, reconciler, view, wakeups))
        sender.add_done_callback(_sender_done)

        while True:
            raw = await websocket.receive_text()
            try:
                command = live_command_adapter.validate_json(raw)
            except ValidationError:
                logger.debug("ignoring malformed live command", extra={"user_id": user_id})
                continue

            match command:
                case FilterCommand(query=query, tag_ids=tag_ids):
                    view.query = query
                    view.tag_ids = tag_ids
                    _wake(wakeups)
                case RefreshCommand():
                    reconciler.schedule_refetch()
    except WebSocketDisconnect:
        pass
    finally:
        # stop both transports before anything else happens for this session
        reconciler.close()
        if sender is not None:
            sender.cancel()
        logger.info("live view closed", extra={"user_id": user_id, "channel": reconciler.channel})
