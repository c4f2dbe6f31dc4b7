"""Outbound room events.

Subscribers are plain callables registered per room (or for every room with
``"*"``). The engine never calls this module; the API publishes the events an
operation returned after the new room has been saved.
"""

import logging
import threading
from typing import Callable

from avalon.state import Event

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Event], None]

ALL_ROOMS = "*"

_subscribers: dict[str, list[Subscriber]] = {}
_lock = threading.Lock()


def subscribe(room_id: str, callback: Subscriber) -> Callable[[], None]:
    """Register callback(room_id, event). Returns an unsubscribe function."""
    with _lock:
        _subscribers.setdefault(room_id, []).append(callback)

    def unsubscribe() -> None:
        with _lock:
            callbacks = _subscribers.get(room_id, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                _subscribers.pop(room_id, None)

    return unsubscribe


def publish(room_id: str, events: list[Event]) -> None:
    """Deliver events in order. A failing subscriber is logged and skipped."""
    if not events:
        return
    with _lock:
        callbacks = list(_subscribers.get(room_id, [])) + list(_subscribers.get(ALL_ROOMS, []))
    for event in events:
        for callback in callbacks:
            try:
                callback(room_id, event)
            except Exception as e:
                logger.warning("Subscriber failed for room %s (%s): %s", room_id, event.kind.value, e)


def clear() -> None:
    with _lock:
        _subscribers.clear()
