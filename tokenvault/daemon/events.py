"""Notification channel between the broker and the process embedding it.

The broker publishes events; each subscriber owns a bounded queue and drains
it on its own schedule, for example from a UI thread. Publishing
never blocks: when a subscriber falls behind, its oldest event is dropped.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime

from tokenvault.utils.dates import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenReceived:
    """A token was stored for a project."""

    project_name: str
    received_at: datetime


@dataclass(frozen=True)
class StatusChanged:
    """The broker changed state or hit a reportable failure."""

    is_running: bool
    message: str
    timestamp: datetime = field(default_factory=utc_now)


BrokerEvent = TokenReceived | StatusChanged


class Subscription:
    """A consumer's view of the channel."""

    def __init__(self, channel: "NotificationChannel", maxsize: int) -> None:
        self._channel = channel
        self._queue: queue.Queue[BrokerEvent] = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def _offer(self, event: BrokerEvent) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                    logger.debug("Subscriber queue full, dropped oldest event")
                except queue.Empty:
                    pass

    def get(self, timeout: float | None = None) -> BrokerEvent | None:
        """Wait for the next event.

        Args:
            timeout: Seconds to wait; None waits forever.

        Returns:
            The event, or None if the timeout expired.
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def get_nowait(self) -> BrokerEvent | None:
        """Get the next event if one is pending."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def drain(self) -> list[BrokerEvent]:
        """Take every pending event, oldest first."""
        events: list[BrokerEvent] = []
        while (event := self.get_nowait()) is not None:
            events.append(event)
        return events

    def close(self) -> None:
        """Stop receiving events."""
        self._channel.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class NotificationChannel:
    """Broadcast channel for TokenReceived and StatusChanged events.

    Events from one producer reach every subscriber in publication order.
    """

    DEFAULT_QUEUE_SIZE = 100

    def __init__(self) -> None:
        self._subscribers: list[Subscription] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> Subscription:
        """Register a new consumer.

        Args:
            maxsize: Events buffered before the oldest is dropped.

        Returns:
            The subscription to drain.
        """
        subscription = Subscription(self, maxsize)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def publish(self, event: BrokerEvent) -> None:
        """Deliver an event to every current subscriber."""
        with self._lock:
            for subscription in self._subscribers:
                subscription._offer(event)

    def token_received(self, project_name: str, received_at: datetime | None = None) -> None:
        self.publish(TokenReceived(project_name, received_at or utc_now()))

    def status_changed(self, is_running: bool, message: str) -> None:
        self.publish(StatusChanged(is_running, message))
