"""
Live notification hub.

Keeps the open websocket connections of every user and pushes JSON events
to them. Delivery is best-effort: a user with no open connection simply
misses the event and a failing socket is dropped.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Set, Tuple

from fastapi import BackgroundTasks, WebSocket

logger = logging.getLogger(__name__)

Notifier = Callable[[int, str, Dict[str, Any]], None]


class NotificationHub:
    def __init__(self):
        self._sockets: Dict[int, Set[WebSocket]] = defaultdict(set)

    async def connect(self, user_id: int, websocket: WebSocket):
        await websocket.accept()
        self._sockets[user_id].add(websocket)
        logger.info("ws: user %s connected (%d open)", user_id, len(self._sockets[user_id]))

    async def disconnect(self, user_id: int, websocket: WebSocket):
        sockets = self._sockets.get(user_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._sockets[user_id]
        logger.info("ws: user %s disconnected", user_id)

    def is_online(self, user_id: int) -> bool:
        return bool(self._sockets.get(user_id))

    async def notify(self, user_id: int, event: str, payload: Dict[str, Any]):
        """Push ``event`` to every connection of ``user_id``. Never raises."""
        sockets = list(self._sockets.get(user_id, ()))
        if not sockets:
            return
        message = {"event": event, "data": payload}
        for ws in sockets:
            try:
                await ws.send_json(message)
            except Exception:
                logger.warning("ws: dropping socket for user %s after send failure", user_id, exc_info=True)
                await self.disconnect(user_id, ws)


hub = NotificationHub()


class EventOutbox:
    """
    Collects notifications produced inside a unit of work.

    Events are only handed to the sender by ``flush()``, which the services
    call after their transaction has committed. Anything still queued when a
    unit of work fails is discarded with ``clear()``.
    """

    def __init__(self, sender: Notifier):
        self._sender = sender
        self._pending: List[Tuple[int, str, Dict[str, Any]]] = []

    def add(self, user_id: int, event: str, payload: Dict[str, Any]):
        self._pending.append((user_id, event, payload))

    def clear(self):
        self._pending.clear()

    def flush(self):
        pending, self._pending = self._pending, []
        for user_id, event, payload in pending:
            try:
                self._sender(user_id, event, payload)
            except Exception:
                logger.warning("notify: failed to emit %s to user %s", event, user_id, exc_info=True)


def background_notifier(background_tasks: BackgroundTasks) -> Notifier:
    """Send notifications through ``hub`` once the response has been sent."""

    def _send(user_id: int, event: str, payload: Dict[str, Any]):
        background_tasks.add_task(hub.notify, user_id, event, payload)

    return _send


def null_notifier(user_id: int, event: str, payload: Dict[str, Any]):
    return None
