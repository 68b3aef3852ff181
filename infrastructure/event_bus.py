"""
Lightweight event bus for decoupled graph change notifications.

Follows publisher-subscriber pattern for real-time updates without coupling.

Design Principles:
- Publisher-subscriber pattern (decoupled)
- Topics are graph ids; every graph has its own observer list
- Supports both sync and async handlers
- Non-blocking (async handlers scheduled via create_task)
- Every handler receives its own copy of the payload
- A failing handler never breaks the publisher or other handlers

Architecture:
    GraphStore / PathHighlighter -> EventBus -> [UI bridge, tests, recorders]

Usage:
    bus = EventBus()

    def on_graph(graph):
        print(graph.version)

    unsubscribe = bus.subscribe("g1", on_graph)
    bus.publish("g1", graph, clone=clone)
    unsubscribe()
    unsubscribe()   # no-op
"""
from typing import Callable, List, Dict, Any, Optional
import asyncio
import inspect
from collections import defaultdict
import logging


logger = logging.getLogger("agentviz.event_bus")

Handler = Callable[[Any], Any]
Unsubscribe = Callable[[], None]


class EventBus:
    """
    Topic-keyed observer registry.

    Thread Safety:
        NOT thread-safe. Use external locking if needed for concurrent access.
        asyncio.create_task is used for async handlers, making it safe for
        async/await contexts.

    Performance:
        - O(1) subscribe
        - O(n) notification per topic (where n = subscriber count)
        - Non-blocking for async handlers (fire-and-forget)
    """

    def __init__(self, name: str = "event_bus"):
        """Initialize empty subscriber lists."""
        self.name = name
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe:
        """
        Subscribe a handler to a topic.

        Coroutine functions are detected and scheduled on the running loop
        when an event is published.

        Args:
            topic: Topic to listen on (a graph id)
            handler: Callable taking the payload

        Returns:
            Idempotent unsubscribe function
        """
        handlers = self._subscribers[topic]
        handlers.append(handler)
        logger.debug(f"[{self.name}] Subscribed handler to {topic}")

        active = [True]

        def unsubscribe() -> None:
            if not active[0]:
                return
            active[0] = False
            # A cleared topic gets a new list; leave later registrations alone
            if self._subscribers.get(topic) is handlers and handler in handlers:
                handlers.remove(handler)
                logger.debug(f"[{self.name}] Unsubscribed handler from {topic}")

        return unsubscribe

    def unsubscribe(self, topic: str, handler: Handler) -> bool:
        """
        Remove a handler from a topic.

        Returns:
            True if the handler was registered, False otherwise
        """
        handlers = self._subscribers.get(topic)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        logger.debug(f"[{self.name}] Unsubscribed handler from {topic}")
        return True

    def publish(
        self,
        topic: str,
        payload: Any,
        clone: Optional[Callable[[Any], Any]] = None,
    ) -> int:
        """
        Publish a payload to every subscriber of a topic.

        Sync handlers run immediately (blocking); async handlers are
        scheduled and run in the background. Exceptions in handlers are
        logged but don't propagate.

        Args:
            topic: Topic to publish on
            payload: Value handed to subscribers
            clone: Copy function applied once per handler

        Returns:
            Number of handlers invoked or scheduled
        """
        # Snapshot the list so handlers may unsubscribe while we iterate
        handlers = list(self._subscribers.get(topic, ()))
        if not handlers:
            return 0

        logger.debug(f"[{self.name}] Publishing to {len(handlers)} handler(s) on {topic}")

        delivered = 0
        for handler in handlers:
            if self.deliver(topic, handler, payload, clone):
                delivered += 1
        return delivered

    def deliver(
        self,
        topic: str,
        handler: Handler,
        payload: Any,
        clone: Optional[Callable[[Any], Any]] = None,
    ) -> bool:
        """
        Deliver one payload to one handler with the same isolation as publish.

        Used for the immediate call a new subscriber receives.

        Returns:
            True if the handler ran (or was scheduled) without error
        """
        try:
            value = clone(payload) if clone is not None else payload
        except Exception as e:
            logger.error(f"[{self.name}] Failed to copy payload for {topic}: {e}", exc_info=True)
            return False

        if inspect.iscoroutinefunction(handler):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    f"[{self.name}] Cannot schedule async handler for {topic}: "
                    "no event loop running"
                )
                return False
            loop.create_task(handler(value))
            return True

        try:
            handler(value)
        except Exception as e:
            logger.error(f"[{self.name}] Error in handler for {topic}: {e}", exc_info=True)
            return False
        return True

    def clear_subscribers(self, topic: Optional[str] = None) -> None:
        """
        Clear all subscribers for a topic (or all topics).

        Args:
            topic: Topic to clear (None = all topics)
        """
        if topic is None:
            self._subscribers.clear()
            logger.info(f"[{self.name}] Cleared all subscribers")
        else:
            self._subscribers.pop(topic, None)
            logger.debug(f"[{self.name}] Cleared subscribers for {topic}")

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        """
        Get count of subscribers for a topic.

        Args:
            topic: Topic to count (None = all topics)
        """
        if topic is None:
            return sum(len(handlers) for handlers in self._subscribers.values())
        return len(self._subscribers.get(topic, ()))
