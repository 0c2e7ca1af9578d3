"""
In-process event bus.

Application and integration test events are published right after the
conditional write that caused them has landed. Subscribers are side
effects only (audit log), so a subscriber failure never undoes or fails
the transition.
"""

import asyncio
import logging
from collections import defaultdict
from typing import DefaultDict, List, Type

from core.domain.events import DomainEvent, EventBus, EventHandler

logger = logging.getLogger(__name__)


class InMemoryEventBus(EventBus):
    """
    Event bus dispatching to handlers subscribed to the exact event class.

    Handlers of one event run concurrently; their errors are logged with the
    event's aggregate and id.
    """

    def __init__(self):
        """Initialize the event bus."""
        self._subscribers: DefaultDict[Type[DomainEvent], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        """
        Subscribe ``handler`` to ``event_type``.

        Subscribing the same handler twice has no effect.
        """
        subscribers = self._subscribers[event_type]
        if handler not in subscribers:
            subscribers.append(handler)
            logger.debug("Subscribed %s to %s", type(handler).__name__, event_type.__name__)

    async def publish(self, event: DomainEvent) -> None:
        """
        Deliver ``event`` to its subscribers.

        Args:
            event: Event raised by a completed transition
        """
        subscribers = list(self._subscribers.get(type(event), ()))
        if not subscribers:
            return

        results = await asyncio.gather(
            *(handler.handle(event) for handler in subscribers), return_exceptions=True
        )
        for handler, result in zip(subscribers, results):
            if isinstance(result, Exception):
                logger.error(
                    "%s failed on %s: %s",
                    type(handler).__name__,
                    event.event_type,
                    result,
                    exc_info=result,
                    extra={"aggregate_id": event.aggregate_id, "event_id": str(event.event_id)},
                )


event_bus = InMemoryEventBus()
