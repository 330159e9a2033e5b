"""
Typed event bus for save lifecycle notifications.

Event types are Enums so listeners never match on magic strings.

Usage:
    bus = EventBus()
    bus.subscribe(SaveEvent.GAME_SAVED, on_saved)
    bus.publish(SaveEvent.GAME_SAVED, slot=1, size=2048)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class SaveEvent(Enum):
    """Events emitted by the save system."""
    GAME_SAVED = auto()
    SAVE_ERROR = auto()
    GAME_LOADED = auto()
    LOAD_ERROR = auto()
    SAVE_DELETED = auto()
    AUTO_SAVE_COMPLETED = auto()
    AUTO_SAVE_FAILED = auto()
    AUTO_SAVE_ERROR = auto()
    SAVE_RECOVERED = auto()
    AUTO_SAVE_TOGGLED = auto()
    AUTO_SAVE_INTERVAL_CHANGED = auto()


class GameEvent(Enum):
    """Gameplay events that can trigger an auto-save."""
    COMBAT_VICTORY = auto()
    ZONE_TRANSITION = auto()
    CHARACTER_LEVEL_UP = auto()
    APPLICATION_SHUTDOWN = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Event-specific payload
        timestamp: Wall-clock time the event was created
        consumed: Whether a handler stopped propagation
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    consumed: bool = False

    def consume(self) -> None:
        """Mark event as consumed (stops propagation)."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]


class EventBus:
    """
    Publish/subscribe registry keyed by event type.

    Features:
    - Priority ordering (higher first)
    - Optional weak references
    - One-shot handlers
    - Consumption stops propagation
    - Events published from inside a handler are queued, not nested
    """

    def __init__(self):
        # event type -> [(priority, handler or ref, one_shot)]
        self._handlers: dict[Enum, list[tuple[int, Any, bool]]] = {}
        self._event_queue: list[Event] = []
        self._is_publishing = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = False,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first
            one_shot: Remove the handler after its first call
            weak: Hold the handler through a weak reference
        """
        if weak:
            handler_ref = WeakMethod(handler) if hasattr(handler, '__self__') else ref(handler)
        else:
            handler_ref = handler

        handlers = self._handlers.setdefault(event_type, [])
        insert_idx = len(handlers)
        for i, (p, _, _) in enumerate(handlers):
            if priority > p:
                insert_idx = i
                break
        handlers.insert(insert_idx, (priority, handler_ref, one_shot))

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        self._handlers[event_type] = [
            entry for entry in handlers
            if self._resolve(entry[1]) != handler
        ]

    def has_handlers(self, event_type: Enum) -> bool:
        return bool(self._handlers.get(event_type))

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event.

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)
        if self._is_publishing:
            self._event_queue.append(event)
        else:
            self._dispatch(event)
        return event

    def clear(self, event_type: Enum | None = None) -> None:
        """Clear handlers for one event type, or all of them."""
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def _dispatch(self, event: Event) -> None:
        handlers = self._handlers.get(event.type)
        if handlers:
            self._is_publishing = True
            try:
                to_remove = []
                for entry in list(handlers):
                    _, handler_ref, one_shot = entry
                    handler = self._resolve(handler_ref)
                    if handler is None:
                        to_remove.append(entry)
                        continue
                    try:
                        handler(event)
                    except Exception:
                        logger.exception(f"Error in event handler for {event.type}")
                    if one_shot:
                        to_remove.append(entry)
                    if event.consumed:
                        break
                for entry in to_remove:
                    if entry in handlers:
                        handlers.remove(entry)
            finally:
                self._is_publishing = False

        while self._event_queue and not self._is_publishing:
            self._dispatch(self._event_queue.pop(0))

    @staticmethod
    def _resolve(handler_ref: Any) -> EventHandler | None:
        if isinstance(handler_ref, (ref, WeakMethod)):
            return handler_ref()
        return handler_ref
