"""
Event bus system for async event-driven architecture.

This module provides:
- EventType enum for type-safe event identification
- Event dataclass for structured event data
- EventBus class for async pub/sub event handling

The event bus decouples the indexing pipeline from whoever reports on it
(CLI progress output, tests waiting for a block, a future query service).
"""

import asyncio
import logging
from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Awaitable
from datetime import datetime

logger = logging.getLogger('spindex.events')


class EventType(Enum):
    """
    Enumeration of all event types in the application.

    Using auto() ensures unique values and prevents conflicts.
    """
    # Sync events
    SYNC_STARTED = auto()
    SYNC_PROGRESS = auto()
    SYNC_COMPLETE = auto()
    SYNC_ERROR = auto()

    # Block events
    BLOCK_INDEXED = auto()
    BLOCK_RETRY = auto()
    BLOCK_ERROR = auto()

    # Network events
    NETWORK_CONNECTED = auto()
    NETWORK_ERROR = auto()


@dataclass
class Event:
    """
    Structured event data.

    Attributes:
        event_type: Type of event (from EventType enum)
        data: Event-specific payload (optional)
        timestamp: When the event was created
        source: Optional identifier for event source (e.g., "indexer", "app")
    """
    event_type: EventType
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None

    def __str__(self) -> str:
        """Human-readable string representation."""
        data_preview = ""
        if self.data:
            # Show first 2 keys for brevity
            keys = list(self.data.keys())[:2]
            data_preview = f" ({', '.join(keys)}...)" if keys else ""

        source_info = f" from {self.source}" if self.source else ""
        return f"Event({self.event_type.name}{data_preview}{source_info})"


# Type alias for event handlers (async callbacks)
EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """
    Async event bus for pub/sub event handling.

    Example:
        >>> bus = EventBus()
        >>>
        >>> async def on_block(event: Event):
        ...     print(f"Indexed height {event.data['height']}")
        >>>
        >>> bus.on(EventType.BLOCK_INDEXED, on_block)
        >>> await bus.emit(Event(EventType.BLOCK_INDEXED, {'height': 840000}))
    """

    def __init__(self):
        """Initialize empty event bus."""
        # Map of event type -> list of handlers
        self._handlers: Dict[EventType, List[EventHandler]] = {}

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Register an event handler for a specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Async callback function to handle the event
        """
        self._handlers.setdefault(event_type, []).append(handler)

    async def emit(self, event: Event) -> None:
        """
        Emit an event to all registered handlers asynchronously.

        All handlers are called concurrently using asyncio.gather().
        If a handler raises an exception, it is caught and logged,
        but other handlers continue to execute.

        Args:
            event: Event to emit
        """
        if event.event_type not in self._handlers:
            return

        # Copy to avoid modification during iteration
        handlers = self._handlers[event.event_type].copy()

        if handlers:
            tasks = [self._safe_call_handler(handler, event) for handler in handlers]
            await asyncio.gather(*tasks)

    async def _safe_call_handler(self, handler: EventHandler, event: Event) -> None:
        """
        Call a handler, logging any exception so one failing handler
        does not affect the others.

        Args:
            handler: Handler function to call
            event: Event to pass to handler
        """
        try:
            await handler(event)
        except Exception as e:
            logger.error(f"Error in event handler for {event.event_type.name}: {e}")


# Convenience functions for creating common events

def create_block_indexed_event(height: int, block_hash: str, tx_count: int, size: int) -> Event:
    """Create a BLOCK_INDEXED event."""
    return Event(
        EventType.BLOCK_INDEXED,
        {'height': height, 'hash': block_hash, 'tx_count': tx_count, 'size': size},
        source='app'
    )


def create_network_error_event(error: str) -> Event:
    """Create a NETWORK_ERROR event."""
    return Event(
        EventType.NETWORK_ERROR,
        {'error': error},
        source='network'
    )


def create_network_connected_event(url: str, chain: str, blocks: int) -> Event:
    """Create a NETWORK_CONNECTED event."""
    return Event(
        EventType.NETWORK_CONNECTED,
        {'url': url, 'chain': chain, 'blocks': blocks},
        source='network'
    )
