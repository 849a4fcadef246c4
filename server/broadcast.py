"""
Server-sent events (SSE) broadcasting module.

This module handles real-time updates via Server-Sent Events, managing
per-event subscriber connections and pushing placement state snapshots to
every browser showing that event.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Dict, Set

# Event id -> set of SSE subscriber queues
subscribers: Dict[str, Set[asyncio.Queue]] = {}


def subscribe(event_id: str) -> asyncio.Queue:
    """Register a new subscriber queue for an event."""
    queue = asyncio.Queue()
    subscribers.setdefault(str(event_id), set()).add(queue)
    return queue


def unsubscribe(event_id: str, queue: asyncio.Queue):
    """Remove a subscriber queue; drops the event entry when empty."""
    queues = subscribers.get(str(event_id))
    if queues is None:
        return
    queues.discard(queue)
    if not queues:
        subscribers.pop(str(event_id), None)


async def event_generator(event_id: str, queue: asyncio.Queue):
    """Generate SSE events from the queue.

    Args:
        event_id: Event the queue is subscribed to.
        queue: Async queue to read events from.

    Yields:
        SSE formatted event strings.
    """
    try:
        while True:
            data = await queue.get()
            yield f"data: {json.dumps(data, default=str)}\n\n"
    finally:
        unsubscribe(event_id, queue)


async def publish_state(event_id: str, snapshot: Dict[str, Any]):
    """Broadcast a placement state snapshot to all subscribers of an event.

    Args:
        event_id: Event the snapshot belongs to.
        snapshot: Session snapshot dictionary.
    """
    payload = {
        "type": "placement_update",
        "time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "state": snapshot,
    }
    for queue in list(subscribers.get(str(event_id), ())):
        await queue.put(payload)
