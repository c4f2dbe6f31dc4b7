"""Lobby operations: room lifecycle, seating, settings and reset.

Same contract as the engine: each operation copies the room, validates, and
returns a Transition; errors leave the input untouched.
"""

import copy
import logging
import secrets
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from avalon.assignment import validate_role_configuration
from avalon.errors import AuthorizationError, ConfigurationError, InvalidActionError, PhaseError
from avalon.machine import can_start_game, create_initial_state, require_phase
from avalon.rules import MAX_PLAYERS, MIN_PLAYERS, ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, Phase
from avalon.state import (
    Event,
    EventKind,
    GameSettings,
    Player,
    Room,
    Spectator,
    Transition,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartRequirement:
    id: str
    name: str
    description: str
    status: str  # "satisfied", "pending" or "failed"
    required: bool


def create_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def validate_room_code(code: str) -> bool:
    return bool(code) and len(code) == ROOM_CODE_LENGTH and all(c in ROOM_CODE_ALPHABET for c in code)


def format_room_code(code: str) -> str:
    """XXXX-XXXX for display; malformed codes are returned as-is."""
    if not validate_room_code(code):
        return code
    half = ROOM_CODE_LENGTH // 2
    return f"{code[:half]}-{code[half:]}"


def _new_id() -> str:
    return uuid.uuid4().hex


def _event(room: Room, kind: EventKind, message: str, **kwargs) -> Event:
    return Event(kind=kind, round=room.game_state.round, phase=room.game_state.phase, message=message, **kwargs)


def _require_host(room: Room, host_id: str) -> None:
    if host_id != room.host_id:
        raise AuthorizationError("Only the host can do that")


def _check_settings(settings: GameSettings) -> None:
    if settings.max_players < MIN_PLAYERS or settings.max_players > MAX_PLAYERS:
        raise ConfigurationError(
            f"Player count must be between {MIN_PLAYERS} and {MAX_PLAYERS}, got {settings.max_players}"
        )
    if settings.characters:
        validation = validate_role_configuration(len(settings.characters), settings.characters)
        if not validation.valid:
            raise ConfigurationError(
                f"Invalid character selection: {', '.join(validation.errors)}", validation.errors
            )


def create_room(
    host_name: str,
    settings: Optional[GameSettings] = None,
    now: Optional[datetime] = None,
    ttl: timedelta = timedelta(hours=1),
    code: Optional[str] = None,
) -> Transition:
    """New room in lobby with the host seated. Result is the host Player."""
    now = now or utcnow()
    settings = copy.deepcopy(settings) if settings else GameSettings()
    _check_settings(settings)

    host = Player(id=_new_id(), name=host_name, joined_at=now, is_host=True)
    room = Room(
        id=_new_id(),
        code=code or create_room_code(),
        host_id=host.id,
        created_at=now,
        expires_at=now + ttl,
        players=[host],
        game_state=create_initial_state(),
        settings=settings,
    )
    events = [_event(room, EventKind.ROOM_CREATED, f"{host_name} created the room.", player_id=host.id)]
    logger.info("Room %s created (code %s)", room.id, room.code)
    return Transition(room=room, events=events, result=host)


def join_room(room: Room, name: str, spectate: bool = False, now: Optional[datetime] = None) -> Transition:
    """
    Seat a new player (lobby only, up to max_players, unique names).
    With spectate=True the joiner watches instead, if the room allows it.
    Result is the new Player or Spectator.
    """
    room = copy.deepcopy(room)
    now = now or utcnow()
    name = name.strip()
    if not name:
        raise InvalidActionError("Player name is required")
    taken = {p.name for p in room.players} | {s.name for s in room.spectators}
    if name in taken:
        raise InvalidActionError("Player name is already taken")

    if spectate:
        if not room.settings.allow_spectators:
            raise AuthorizationError("This room does not allow spectators")
        spectator = Spectator(id=_new_id(), name=name, joined_at=now)
        room.spectators.append(spectator)
        return Transition(room=room, events=[], result=spectator)

    if room.game_state.phase != Phase.LOBBY:
        raise PhaseError("Game has already started")
    if len(room.players) >= room.settings.max_players:
        raise InvalidActionError("Room is full")

    # The first player into an empty room takes the host seat
    player = Player(id=_new_id(), name=name, joined_at=now, is_host=not room.players)
    room.players.append(player)
    events = [_event(room, EventKind.PLAYER_JOINED, f"{name} joined.", player_id=player.id)]
    if player.is_host:
        room.host_id = player.id
        events.append(_event(room, EventKind.HOST_CHANGED, "Host changed.", player_id=player.id))
    return Transition(room=room, events=events, result=player)


def _remove_player(room: Room, player_id: str) -> Player:
    """Drop a player; hand host to the earliest joiner left (mutates room)."""
    player = room.get_player(player_id)
    if player is None:
        raise InvalidActionError("Player not found in room")
    room.players = [p for p in room.players if p.id != player_id]
    if player.is_host and room.players:
        successor = replace(room.players[0], is_host=True)
        room.replace_player(successor)
        room.host_id = successor.id
    return player


def leave_room(room: Room, player_id: str) -> Transition:
    """Leave the lobby (spectators may leave any time). An empty room has no host."""
    room = copy.deepcopy(room)
    if any(s.id == player_id for s in room.spectators):
        room.spectators = [s for s in room.spectators if s.id != player_id]
        return Transition(room=room, events=[])

    require_phase(room.game_state, Phase.LOBBY)
    was_host = room.host_id == player_id
    player = _remove_player(room, player_id)
    events = [_event(room, EventKind.PLAYER_LEFT, f"{player.name} left.", player_id=player.id)]
    if was_host and room.players:
        events.append(_event(room, EventKind.HOST_CHANGED, "Host changed.", player_id=room.host_id))
    elif not room.players:
        room.host_id = ""
    return Transition(room=room, events=events)


def kick_player(room: Room, host_id: str, player_id: str) -> Transition:
    room = copy.deepcopy(room)
    require_phase(room.game_state, Phase.LOBBY)
    _require_host(room, host_id)
    if player_id == host_id:
        raise InvalidActionError("The host cannot kick themselves")
    player = _remove_player(room, player_id)
    events = [_event(room, EventKind.PLAYER_KICKED, f"{player.name} was removed.", player_id=player.id)]
    return Transition(room=room, events=events)


def transfer_host(room: Room, host_id: str, new_host_id: str) -> Transition:
    room = copy.deepcopy(room)
    _require_host(room, host_id)
    new_host = room.get_player(new_host_id)
    if new_host is None:
        raise InvalidActionError("Player not found in room")
    if new_host_id == host_id:
        return Transition(room=room, events=[])
    room.replace_player(replace(room.get_player(host_id), is_host=False))
    room.replace_player(replace(new_host, is_host=True))
    room.host_id = new_host_id
    events = [_event(room, EventKind.HOST_CHANGED, f"{new_host.name} is now the host.", player_id=new_host_id)]
    return Transition(room=room, events=events)


def set_ready(room: Room, player_id: str, ready: bool) -> Transition:
    """Lobby ready flag. Role reveal has its own confirmation flag."""
    room = copy.deepcopy(room)
    if room.game_state.phase != Phase.LOBBY:
        raise PhaseError("Cannot change ready status after game has started")
    player = room.get_player(player_id)
    if player is None:
        raise InvalidActionError("Player not found in room")
    room.replace_player(replace(player, lobby_ready=ready))
    events = [
        _event(room, EventKind.PLAYER_READY, f"{player.name} is {'ready' if ready else 'not ready'}.",
               player_id=player.id, extra={"ready": ready})
    ]
    return Transition(room=room, events=events)


def update_settings(room: Room, host_id: str, settings: GameSettings) -> Transition:
    room = copy.deepcopy(room)
    require_phase(room.game_state, Phase.LOBBY)
    _require_host(room, host_id)
    settings = copy.deepcopy(settings)
    _check_settings(settings)
    if settings.max_players < len(room.players):
        raise ConfigurationError(
            f"Cannot lower the player limit below the {len(room.players)} players already seated"
        )
    room.settings = settings
    return Transition(room=room, events=[_event(room, EventKind.SETTINGS_UPDATED, "Settings updated.")])


def start_requirements(room: Room) -> list[StartRequirement]:
    """Checklist shown before the host presses start."""
    count = len(room.players)
    requirements = [
        StartRequirement(
            id="min-players",
            name="Minimum Players",
            description=f"At least {MIN_PLAYERS} players required",
            status="satisfied" if can_start_game(count).valid else "pending",
            required=True,
        )
    ]

    if room.settings.characters:
        settings_ok = validate_role_configuration(count, room.settings.characters).valid
    else:
        settings_ok = MIN_PLAYERS <= count <= MAX_PLAYERS
    requirements.append(
        StartRequirement(
            id="valid-settings",
            name="Valid Game Settings",
            description="Character configuration is valid",
            status="satisfied" if settings_ok else "failed",
            required=True,
        )
    )
    requirements.append(
        StartRequirement(
            id="lobby-phase",
            name="Game in Lobby",
            description="Game must be in lobby phase to start",
            status="satisfied" if room.game_state.phase == Phase.LOBBY else "failed",
            required=True,
        )
    )
    all_ready = bool(room.players) and all(p.lobby_ready for p in room.players)
    requirements.append(
        StartRequirement(
            id="all-ready",
            name="All Players Ready",
            description="All players have confirmed they are ready",
            status="satisfied" if all_ready else "pending",
            required=False,
        )
    )
    return requirements


def can_start(room: Room) -> bool:
    return all(r.status == "satisfied" for r in start_requirements(room) if r.required)


def should_auto_start(room: Room) -> bool:
    """Auto-start fires once every requirement, optional ones included, is met."""
    if not room.settings.auto_start:
        return False
    return all(r.status == "satisfied" for r in start_requirements(room))


def reset_game(room: Room, host_id: str) -> Transition:
    """Back to lobby with the same players; roles and ready flags are cleared."""
    room = copy.deepcopy(room)
    _require_host(room, host_id)
    room.game_state = create_initial_state()
    room.players = [
        replace(p, role_id=None, lobby_ready=False, role_confirmed=False)
        for p in room.players
    ]
    logger.info("Room %s reset to lobby", room.id)
    return Transition(room=room, events=[_event(room, EventKind.GAME_RESET, "Returned to lobby.")])


def is_expired(room: Room, now: Optional[datetime] = None) -> bool:
    return (now or utcnow()) > room.expires_at


def extend_expiry(room: Room, extension: timedelta, now: Optional[datetime] = None) -> Room:
    """Push expiry to now + extension; never shortens it."""
    room = copy.deepcopy(room)
    room.expires_at = max(room.expires_at, (now or utcnow()) + extension)
    return room
