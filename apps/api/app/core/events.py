import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("app.events")


@dataclass
class InternalEvent:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[InternalEvent], None]


def _topic_matches(topic: str, event_name: str) -> bool:
    # "leads.lead.*" matches every event under the "leads.lead." namespace.
    if topic.endswith(".*"):
        return event_name.startswith(topic[:-1])
    return topic == event_name


class InProcessEventBus:
    """Synchronous fan-out to handlers registered by exact name or namespace wildcard."""

    def __init__(self) -> None:
        self._subscriptions: list[tuple[str, EventHandler]] = []

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        if (topic, handler) not in self._subscriptions:
            self._subscriptions.append((topic, handler))

    def handlers_for(self, event_name: str) -> list[EventHandler]:
        return [handler for topic, handler in self._subscriptions if _topic_matches(topic, event_name)]

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        event = InternalEvent(name=event_name, payload=payload)
        for handler in self.handlers_for(event_name):
            try:
                handler(event)
            except Exception as exc:
                # Publishing happens after the write committed; a failing listener cannot undo it.
                logger.exception("event_handler_failed", extra={"event_name": event_name, "error": str(exc)})


event_bus = InProcessEventBus()
