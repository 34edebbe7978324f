"""
Real-time event fan-out to connected subscribers.

The broadcaster owns its subscriber set.  ``publish`` serializes one
``{"type": ..., "data": ...}`` JSON message and hands it to every open
subscriber.  Delivery is best-effort and at-most-once: a closed or failing
subscriber is dropped from the set and never retried.  Reconnecting is the
client's job (the web client retries every 3 seconds).

Publishers run on scheduler threads while subscribers join and leave from
the event loop, so membership is guarded by a lock and ``publish`` iterates
over a copy.

:class:`WebSocketSubscriber` adapts a FastAPI WebSocket: ``send`` can be
called from any thread and only enqueues; ``drain`` runs on the event loop
and writes queued messages in order.  The queue is bounded; a client that
lags by more than ``MAX_PENDING_MESSAGES`` is dropped rather than buffered.
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Optional, Set

from sportsbook.schemas import GameOut

logger = logging.getLogger(__name__)

GAME_UPDATE = "game_update"

# Per-connection backlog before a slow client is dropped
MAX_PENDING_MESSAGES = 100


class Subscriber(ABC):
    """Anything that can receive serialized events."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    def send(self, message: str) -> None:
        """Deliver one message.  May raise; the broadcaster drops the subscriber."""


class Broadcaster:
    """
    Distributes events to every currently connected subscriber.

    Usage::

        broadcaster = Broadcaster()
        broadcaster.subscribe(sub)
        broadcaster.publish("game_update", game.to_wire())
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Set[Subscriber] = set()
        self._messages_published = 0

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.add(subscriber)
        logger.debug("Subscriber joined (%d connected)", self.subscriber_count)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.discard(subscriber)
        logger.debug("Subscriber left (%d connected)", self.subscriber_count)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, event_type: str, payload: Any) -> int:
        """Send ``{"type": event_type, "data": payload}`` to all open subscribers.

        Returns the number of subscribers the message was handed to.
        """
        message = json.dumps({"type": event_type, "data": payload}, default=str)

        with self._lock:
            targets = list(self._subscribers)
            self._messages_published += 1

        delivered = 0
        dead = []
        for subscriber in targets:
            if not subscriber.is_open:
                dead.append(subscriber)
                continue
            try:
                subscriber.send(message)
                delivered += 1
            except Exception as exc:
                logger.debug("Dropping subscriber after send failure: %s", exc)
                dead.append(subscriber)

        if dead:
            with self._lock:
                for subscriber in dead:
                    self._subscribers.discard(subscriber)

        return delivered

    def publish_game(self, game: GameOut) -> int:
        return self.publish(GAME_UPDATE, game.to_wire())

    def get_status(self) -> dict:
        with self._lock:
            return {
                "subscribers": len(self._subscribers),
                "messages_published": self._messages_published,
            }


class WebSocketSubscriber(Subscriber):
    """Queue-backed adapter around a FastAPI/Starlette WebSocket.

    At most ``max_pending`` messages wait for the socket.  A client that falls
    further behind is dropped: ``send`` raises, the broadcaster discards the
    subscriber and ``drain`` closes the socket without writing the backlog.
    """

    def __init__(
        self,
        websocket,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        max_pending: int = MAX_PENDING_MESSAGES,
    ):
        self._websocket = websocket
        self._loop = loop or asyncio.get_running_loop()
        self._max_pending = max_pending
        # One extra slot so the close sentinel always fits
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending + 1)
        self._pending = 0
        self._pending_lock = threading.Lock()
        self._open = True
        self._overflowed = False

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, message: str) -> None:
        overflow = False
        with self._pending_lock:
            if not self._open:
                raise ConnectionError("WebSocket subscriber is closed")
            if self._pending >= self._max_pending:
                self._open = False
                self._overflowed = overflow = True
            else:
                self._pending += 1

        if overflow:
            logger.warning("WebSocket subscriber fell %d messages behind, dropping", self._max_pending)
            self._loop.call_soon_threadsafe(self._enqueue, None)
            raise ConnectionError("WebSocket subscriber fell behind")

        self._loop.call_soon_threadsafe(self._enqueue, message)

    def _enqueue(self, message: Optional[str]) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            # A full queue already holds a sentinel
            if message is not None:
                self._open = False
                self._overflowed = True

    async def drain(self) -> None:
        """Write queued messages until closed.  Runs on the event loop."""
        while True:
            message = await self._queue.get()
            if self._overflowed:
                await self._close_socket()
                return
            if message is None:
                return
            with self._pending_lock:
                self._pending -= 1
            try:
                await self._websocket.send_text(message)
            except Exception as exc:
                logger.debug("WebSocket send failed, closing subscriber: %s", exc)
                self._open = False
                return

    async def _close_socket(self) -> None:
        try:
            await self._websocket.close(code=1013)
        except Exception as exc:
            logger.debug("WebSocket close failed: %s", exc)

    def close(self) -> None:
        """Stop accepting messages and let ``drain`` finish."""
        with self._pending_lock:
            self._open = False
        self._loop.call_soon_threadsafe(self._enqueue, None)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_broadcaster: Optional[Broadcaster] = None


def get_broadcaster() -> Broadcaster:
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = Broadcaster()
    return _broadcaster
