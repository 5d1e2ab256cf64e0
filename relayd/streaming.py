"""SSE streaming utilities for relayd.

Provides per-conversation event fan-out for Server-Sent Events.
"""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class EventQueueEmitter:
    """Emitter that queues events for async consumption.

    Each subscriber gets its own queue so a slow reader never blocks others.
    """

    def __init__(self: "EventQueueEmitter") -> None:
        self.queues: list[asyncio.Queue[dict[str, Any]]] = []
        self._lock = asyncio.Lock()

    def subscribe(self: "EventQueueEmitter") -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.queues.append(queue)
        return queue

    async def emit(self: "EventQueueEmitter", event_type: str, data: dict[str, Any]) -> None:
        """Emit event to all subscriber queues.

        Args:
            event_type: Event type identifier (e.g., "turn")
            data: Event payload
        """
        event = {"event": event_type, "data": data}
        async with self._lock:
            for queue in self.queues:
                try:
                    await queue.put(event)
                except Exception as e:
                    logger.error(f"Failed to emit event to queue: {e}")

    def unsubscribe(self: "EventQueueEmitter", queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self.queues:
            self.queues.remove(queue)


class ConversationEventHub:
    """One emitter per conversation key.

    Published turns, activity snapshots, sync progress and approval
    resolutions for a conversation all flow through its emitter.
    """

    def __init__(self: "ConversationEventHub") -> None:
        self._emitters: dict[str, EventQueueEmitter] = {}

    def emitter(self: "ConversationEventHub", conversation_key: str) -> EventQueueEmitter:
        if conversation_key not in self._emitters:
            self._emitters[conversation_key] = EventQueueEmitter()
        return self._emitters[conversation_key]

    def subscribe(self: "ConversationEventHub", conversation_key: str) -> asyncio.Queue[dict[str, Any]]:
        return self.emitter(conversation_key).subscribe()

    def unsubscribe(self: "ConversationEventHub", conversation_key: str, queue: asyncio.Queue[dict[str, Any]]) -> None:
        emitter = self._emitters.get(conversation_key)
        if emitter is None:
            return
        emitter.unsubscribe(queue)
        if not emitter.queues:
            del self._emitters[conversation_key]

    def subscriber_count(self: "ConversationEventHub", conversation_key: str) -> int:
        emitter = self._emitters.get(conversation_key)
        return len(emitter.queues) if emitter else 0

    async def emit(self: "ConversationEventHub", conversation_key: str, event_type: str, data: dict[str, Any]) -> None:
        emitter = self._emitters.get(conversation_key)
        if emitter is None:
            logger.debug(f"No subscribers for {conversation_key}, dropping {event_type}")
            return
        await emitter.emit(event_type, data)
