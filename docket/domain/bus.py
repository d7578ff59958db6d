"""In-process bus carrying hearing domain events to the activity timeline."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Awaitable, Callable

Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Publish/subscribe bus for hearing events.

    Carries HearingCreated, HearingUpdated, HearingDeleted, ConflictDetected
    and ConflictOverridden from the hearings routes to HandlerRegistry.
    Handlers are coroutines, awaited one after another in registration order.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._subscribers[event_type].append(handler)

    async def publish(self, event: Any) -> None:
        for handler in self._subscribers.get(type(event), []):
            await handler(event)
