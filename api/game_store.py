"""In-memory room store. Replace with DB later if needed.

Rooms are kept as JSON-compatible dicts so whatever is stored here could go
to any persistence layer unchanged. Each room has its own lock; callers that
read, apply an engine operation and save must do so inside ``transaction``.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from avalon.lobby import is_expired
from avalon.machine import validate_game_state
from avalon.state import Room, room_from_dict, room_to_dict, utcnow

logger = logging.getLogger(__name__)

# room_id -> serialised Room
_store: dict[str, dict[str, Any]] = {}
# room code -> room_id
_codes: dict[str, str] = {}
_locks: dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


class RoomNotFoundError(Exception):
    """No such room, or it has expired."""

    code = "room_not_found"

    def __init__(self, message: str = "Room not found"):
        super().__init__(message)
        self.message = message


def _lock_for(room_id: str) -> threading.Lock:
    """The room's lock. Raises RoomNotFoundError for ids not in the store."""
    with _registry_lock:
        if room_id not in _store:
            raise RoomNotFoundError()
        lock = _locks.get(room_id)
        if lock is None:
            lock = _locks[room_id] = threading.Lock()
        return lock


def _drop(room_id: str) -> None:
    data = _store.pop(room_id, None)
    if data is not None:
        _codes.pop(data["code"], None)
    _locks.pop(room_id, None)


def create(room: Room) -> None:
    with _registry_lock:
        if room.code in _codes:
            raise ValueError(f"Room code {room.code} already in use")
        _store[room.id] = room_to_dict(room)
        _codes[room.code] = room.id


def code_in_use(code: str) -> bool:
    return code in _codes


def get(room_id: str, now: datetime | None = None) -> Room:
    """Load a room. Expired rooms are deleted and reported as not found."""
    data = _store.get(room_id)
    if data is None:
        raise RoomNotFoundError()
    room = room_from_dict(data)
    if is_expired(room, now):
        logger.info("Room %s expired; removing", room_id)
        with _registry_lock:
            _drop(room_id)
        raise RoomNotFoundError()
    check = validate_game_state(room.game_state, len(room.players))
    if not check.valid:
        logger.warning("Room %s snapshot is inconsistent: %s", room_id, "; ".join(check.errors))
    return room


def get_by_code(code: str, now: datetime | None = None) -> Room:
    room_id = _codes.get(code.strip().upper().replace("-", ""))
    if room_id is None:
        raise RoomNotFoundError()
    return get(room_id, now)


def save(room: Room) -> None:
    if room.id not in _store:
        raise RoomNotFoundError()
    _store[room.id] = room_to_dict(room)


def delete(room_id: str) -> None:
    with _registry_lock:
        _drop(room_id)


@contextmanager
def transaction(room_id: str) -> Iterator[Room]:
    """Hold the room's lock across load, operation and save. Yields the loaded room."""
    with _lock_for(room_id):
        yield get(room_id)


def cleanup_expired(now: datetime | None = None) -> list[str]:
    """Delete every expired room. Returns the removed ids."""
    now = now or utcnow()
    removed = []
    with _registry_lock:
        for room_id, data in list(_store.items()):
            if is_expired(room_from_dict(data), now):
                _drop(room_id)
                removed.append(room_id)
    if removed:
        logger.info("Cleaned up %d expired room(s)", len(removed))
    return removed


def list_rooms() -> list[str]:
    return list(_store.keys())


def clear() -> None:
    """Drop everything (tests)."""
    with _registry_lock:
        _store.clear()
        _codes.clear()
        _locks.clear()
