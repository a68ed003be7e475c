"""EventBus and event types for storage and account lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Storage mutations and account lifecycle notifications."""

    ITEM_CREATED = "item_created"
    ITEM_WRITTEN = "item_written"
    ITEM_DELETED = "item_deleted"
    ITEM_MOVED = "item_moved"
    ITEM_COPIED = "item_copied"
    USER_CREATED = "user_created"
    USER_DELETED = "user_deleted"
    USER_PROVISIONED = "user_provisioned"
    USER_DEPROVISIONED = "user_deprovisioned"


@dataclass(frozen=True, slots=True)
class StorageEvent:
    """Immutable record of a storage mutation or account change.

    Attributes:
        event_type: The kind of change that occurred.
        owner_id: Owner whose storage root is affected.
        path: Logical path of the affected item (destination for moves/copies).
        old_path: Source path (moves and copies only).
    """

    event_type: EventType
    owner_id: str
    path: str | None = None
    old_path: str | None = None


class EventBus:
    """Fan-out of storage and account events to async handlers.

    Handlers run one after another in the order they were registered.
    A handler that raises is logged at WARNING and skipped; the
    mutation that emitted the event has already completed.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: StorageEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s:%s",
                    handler,
                    event.event_type.value,
                    event.owner_id,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
