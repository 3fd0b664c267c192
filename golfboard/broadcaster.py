"""
Per-tournament fan-out of live events to connected viewers.

Every subscriber owns a bounded outbound queue drained by its own pump task,
so broadcasting only enqueues. A slow or dead viewer is evicted without
delaying anyone else or the request that triggered the broadcast.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .events import LiveEvent
from .models import utc_now

logger = logging.getLogger(__name__)

SendFunc = Callable[[Dict[str, Any]], Awaitable[Any]]
CloseFunc = Callable[[], Awaitable[Any]]
# Called with the evicted subscriber and the tournament it was watching
DepartureFunc = Callable[["Subscriber", int], Awaitable[Any]]


class Subscriber:
    """One live connection; membership is keyed by connection id."""

    def __init__(
        self,
        connection_id: str,
        send: SendFunc,
        user_name: str = "Anonymous",
        queue_size: int = 100,
        send_timeout: float = 5.0,
        on_evict: Optional[CloseFunc] = None,
    ) -> None:
        self.connection_id = connection_id
        self.user_name = user_name
        self.tournament_id: Optional[int] = None
        self.connected_at = utc_now()
        self.send_timeout = send_timeout
        self.closed = False
        self._send = send
        self._on_evict = on_evict
        self._queue: "asyncio.Queue[Optional[LiveEvent]]" = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._task is not None

    def start(
        self,
        on_failure: Callable[["Subscriber", BaseException], None],
    ) -> None:
        """Start the pump task that delivers queued events in order."""
        if self._task is None and not self.closed:
            self._task = asyncio.create_task(self._pump(on_failure))

    def offer(self, event: LiveEvent) -> bool:
        """
        Queue an event without waiting.

        @param event: Event to deliver
        @return: False if the subscriber is closed or its queue is full
        """
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def drain(self) -> None:
        """Wait until every queued event has been handed to the connection."""
        if self._task is not None and not self.closed:
            await self._queue.join()

    async def close(self) -> None:
        """Stop the pump and drop anything still queued."""
        self.closed = True
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.wait([task])
        self._discard_pending()

    async def evict(self) -> None:
        """Close and, when the connection supplied a closer, hang it up too."""
        await self.close()
        if self._on_evict is not None:
            try:
                await self._on_evict()
            except (ConnectionError, RuntimeError, asyncio.TimeoutError) as e:
                logger.debug("Closing evicted connection %s failed: %s", self.connection_id, e)

    async def _pump(
        self,
        on_failure: Callable[["Subscriber", BaseException], None],
    ) -> None:
        while True:
            event = await self._queue.get()
            try:
                if event is None:
                    return
                await asyncio.wait_for(self._send(event.to_message()), self.send_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.closed = True
                self._discard_pending()
                on_failure(self, e)
                return
            finally:
                self._queue.task_done()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()


class Broadcaster:
    """
    Registry of tournament channels and their subscribers.

    Created once at startup and handed to whatever needs to publish. The
    membership table is only mutated under the lock and broadcasts iterate
    over a snapshot, so viewers may come and go mid-broadcast.
    """

    def __init__(
        self,
        queue_size: int = 100,
        send_timeout: float = 5.0,
    ) -> None:
        self.queue_size = queue_size
        self.send_timeout = send_timeout
        self._channels: Dict[int, Dict[str, Subscriber]] = {}
        self._memberships: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._evictions: Set[asyncio.Task] = set()
        self._on_departure: Optional[DepartureFunc] = None

    def set_departure_handler(self, handler: DepartureFunc) -> None:
        """Register a callback for viewers dropped by the broadcaster itself."""
        self._on_departure = handler

    def create_subscriber(
        self,
        connection_id: str,
        send: SendFunc,
        user_name: str = "Anonymous",
        on_evict: Optional[CloseFunc] = None,
    ) -> Subscriber:
        return Subscriber(
            connection_id,
            send,
            user_name=user_name,
            queue_size=self.queue_size,
            send_timeout=self.send_timeout,
            on_evict=on_evict,
        )

    async def add(
        self,
        tournament_id: int,
        subscriber: Subscriber,
    ) -> int:
        """
        Put a subscriber in a tournament channel, leaving any previous one.

        @param tournament_id: Channel to join
        @param subscriber: Subscriber to add
        @return: Viewer count of the channel after joining
        """
        async with self._lock:
            self._detach(subscriber.connection_id)
            self._channels.setdefault(tournament_id, {})[subscriber.connection_id] = subscriber
            self._memberships[subscriber.connection_id] = tournament_id
            subscriber.tournament_id = tournament_id
            subscriber.start(self._on_send_failure)
            count = len(self._channels[tournament_id])

        logger.info(
            "Viewer %s (%s) joined tournament %s, %s watching",
            subscriber.user_name, subscriber.connection_id, tournament_id, count,
        )
        return count

    async def remove(
        self,
        connection_id: str,
    ) -> Optional[Subscriber]:
        """
        Remove a connection from its channel; the connection stays usable.

        @param connection_id: Connection to remove
        @return: The removed subscriber, None if it was not in any channel
        """
        async with self._lock:
            return self._detach(connection_id)

    async def discard(
        self,
        subscriber: Subscriber,
    ) -> Optional[int]:
        """
        Remove a subscriber and stop its pump, e.g. on disconnect.

        @param subscriber: Subscriber to drop
        @return: Tournament it was watching, if any
        """
        async with self._lock:
            removed = self._detach(subscriber.connection_id)
        await subscriber.close()
        return removed.tournament_id if removed is not None else None

    def _detach(self, connection_id: str) -> Optional[Subscriber]:
        tournament_id = self._memberships.pop(connection_id, None)
        if tournament_id is None:
            return None

        channel = self._channels.get(tournament_id, {})
        subscriber = channel.pop(connection_id, None)
        if not channel:
            self._channels.pop(tournament_id, None)
        return subscriber

    def viewer_count(self, tournament_id: int) -> int:
        return len(self._channels.get(tournament_id, {}))

    async def broadcast(
        self,
        tournament_id: int,
        event: LiveEvent,
        exclude: Optional[str] = None,
    ) -> int:
        """
        Queue an event for every subscriber of a tournament.

        @param tournament_id: Channel to publish to
        @param event: Event to deliver
        @param exclude: Connection id to skip (e.g. the viewer who just joined)
        @return: Number of subscribers the event was queued for
        """
        async with self._lock:
            members = list(self._channels.get(tournament_id, {}).values())

        delivered = 0
        lagging = []

        for subscriber in members:
            if subscriber.connection_id == exclude:
                continue
            if subscriber.offer(event):
                delivered += 1
            else:
                lagging.append(subscriber)

        for subscriber in lagging:
            logger.warning(
                "Dropping viewer %s from tournament %s: outbound queue full",
                subscriber.connection_id, tournament_id,
            )
            await self._evict(subscriber)

        logger.debug(
            "Broadcast %s to %s viewers of tournament %s",
            event.type, delivered, tournament_id,
        )
        return delivered

    async def send_to(
        self,
        subscriber: Subscriber,
        event: LiveEvent,
    ) -> bool:
        """
        Queue an event for a single subscriber.

        @return: True if queued, False if the subscriber had to be dropped
        """
        if not subscriber.started:
            subscriber.start(self._on_send_failure)
        if subscriber.offer(event):
            return True

        logger.warning("Could not queue %s for viewer %s", event.type, subscriber.connection_id)
        await self._evict(subscriber)
        return False

    async def close(self) -> None:
        """
        Drop every subscriber; used at server shutdown.

        Queued events get up to send_timeout to go out before the pumps stop.
        """
        async with self._lock:
            members = [s for channel in self._channels.values() for s in channel.values()]
            self._channels.clear()
            self._memberships.clear()

        if members:
            flushes = [asyncio.create_task(s.drain()) for s in members]
            _, pending = await asyncio.wait(flushes, timeout=self.send_timeout)
            for task in pending:
                task.cancel()

        for subscriber in members:
            await subscriber.close()

        if self._evictions:
            await asyncio.wait(list(self._evictions))

    async def _evict(self, subscriber: Subscriber) -> None:
        async with self._lock:
            removed = self._detach(subscriber.connection_id)
        await subscriber.evict()

        if removed is None:
            return
        tournament_id, removed.tournament_id = removed.tournament_id, None
        if self._on_departure is not None:
            await self._on_departure(removed, tournament_id)

    def _on_send_failure(
        self,
        subscriber: Subscriber,
        error: BaseException,
    ) -> None:
        # Runs inside the failing pump task; the eviction gets its own task
        logger.warning(
            "Delivery to viewer %s failed (%s: %s); dropping it",
            subscriber.connection_id, type(error).__name__, error,
        )
        task = asyncio.create_task(self._evict(subscriber))
        self._evictions.add(task)
        task.add_done_callback(self._evictions.discard)
