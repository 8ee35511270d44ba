import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable

from phone_enricher.schemas.progress import ProgressEvent

logger = logging.getLogger(__name__)

Observer = Callable[[ProgressEvent], Awaitable[None]]

DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """A registered observer and its bounded event queue."""

    def __init__(self, subscription_id: int, queue_size: int) -> None:
        self.id = subscription_id
        self.queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0
        self._closed = asyncio.Event()
        self.task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def offer(self, event: ProgressEvent) -> None:
        # Drop-oldest: a slow observer loses history, never the latest event
        if self.queue.full():
            try:
                self.queue.get_nowait()
                self.queue.task_done()
                self.dropped += 1
                logger.debug("Observer %d queue full, dropped oldest event", self.id)
            except asyncio.QueueEmpty:
                pass
        self.queue.put_nowait(event)

    def close(self) -> None:
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.queue.task_done()
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()


class ProgressBroadcaster:
    """Single intake, many observers.

    ``publish`` never blocks: each observer has its own bounded queue and a
    pump task that writes to it. An observer whose write raises is removed
    on the spot; that and ``unregister``/``shutdown`` are the only ways out.
    Observers registering late only see events published after they join.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ProgressEvent) -> None:
        for subscription in list(self._subscriptions.values()):
            subscription.offer(event)

    def register(self, observer: Observer) -> Subscription:
        subscription = Subscription(next(self._ids), self._queue_size)
        self._subscriptions[subscription.id] = subscription
        subscription.task = asyncio.create_task(self._pump(subscription, observer))
        logger.info("Observer %d registered. Total: %d", subscription.id, self.observer_count)
        return subscription

    def unregister(self, subscription: Subscription) -> None:
        if self._subscriptions.pop(subscription.id, None) is None:
            return
        if subscription.task is not None and subscription.task is not asyncio.current_task():
            subscription.task.cancel()
        subscription.close()
        logger.info("Observer %d removed. Total: %d", subscription.id, self.observer_count)

    async def flush(self) -> None:
        """Wait until every current observer has been handed all queued events."""
        for subscription in list(self._subscriptions.values()):
            if not subscription.closed:
                await subscription.queue.join()

    async def shutdown(self) -> None:
        subscriptions = list(self._subscriptions.values())
        tasks = [s.task for s in subscriptions if s.task is not None]
        for subscription in subscriptions:
            self.unregister(subscription)
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _pump(self, subscription: Subscription, observer: Observer) -> None:
        try:
            while True:
                event = await subscription.queue.get()
                try:
                    await observer(event)
                except Exception as exc:
                    logger.info("Observer %d write failed: %s", subscription.id, exc)
                    return
                finally:
                    subscription.queue.task_done()
        finally:
            self.unregister(subscription)
