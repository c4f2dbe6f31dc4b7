"""Lobby operations, room codes and expiry."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from avalon.engine import start_game
from avalon.errors import AuthorizationError, ConfigurationError, InvalidActionError, PhaseError
from avalon.lobby import (
    can_start,
    create_room,
    create_room_code,
    extend_expiry,
    format_room_code,
    is_expired,
    join_room,
    kick_player,
    leave_room,
    reset_game,
    set_ready,
    should_auto_start,
    start_requirements,
    transfer_host,
    update_settings,
    validate_room_code,
)
from avalon.rules import Phase
from avalon.state import EventKind, GameSettings

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _room(n: int = 1, **settings):
    room = create_room("Host", GameSettings(**settings) if settings else None, now=NOW).room
    for i in range(1, n):
        room = join_room(room, f"Player {i}").room
    return room


def test_create_room():
    transition = create_room("Host", now=NOW, ttl=timedelta(minutes=30))
    room = transition.room
    host = transition.result
    assert room.host_id == host.id
    assert host.is_host
    assert room.players == [host]
    assert room.game_state.phase == Phase.LOBBY
    assert room.expires_at == NOW + timedelta(minutes=30)
    assert validate_room_code(room.code)
    assert transition.events[0].kind == EventKind.ROOM_CREATED


def test_create_room_rejects_bad_characters():
    with pytest.raises(ConfigurationError):
        create_room("Host", GameSettings(characters=["merlin", "servant", "servant", "servant", "servant"]))


def test_join_appends_in_order():
    room = _room(3)
    assert [p.name for p in room.players] == ["Host", "Player 1", "Player 2"]
    assert not room.players[1].is_host


def test_duplicate_names_rejected():
    room = _room(2)
    with pytest.raises(InvalidActionError, match="already taken"):
        join_room(room, "Player 1")
    with pytest.raises(InvalidActionError):
        join_room(room, "   ")


def test_room_capacity():
    room = _room(5, max_players=5)
    with pytest.raises(InvalidActionError, match="Room is full"):
        join_room(room, "Late")


def test_join_after_start_is_wrong_phase():
    room = _room(5)
    room = start_game(room, room.host_id, rng=random.Random(0)).room
    with pytest.raises(PhaseError):
        join_room(room, "Late")


def test_spectators():
    room = _room(2)
    with pytest.raises(AuthorizationError):
        join_room(room, "Watcher", spectate=True)
    room = _room(2, allow_spectators=True)
    transition = join_room(room, "Watcher", spectate=True)
    assert transition.room.spectators[0].name == "Watcher"
    assert len(transition.room.players) == 2
    room = leave_room(transition.room, transition.result.id).room
    assert room.spectators == []


def test_host_leaving_hands_host_to_next_joiner():
    room = _room(3)
    old_host = room.host_id
    transition = leave_room(room, old_host)
    room = transition.room
    assert room.host_id == room.players[0].id
    assert room.players[0].name == "Player 1"
    assert room.players[0].is_host
    assert [e.kind for e in transition.events] == [EventKind.PLAYER_LEFT, EventKind.HOST_CHANGED]


def test_last_player_leaving_empties_room():
    room = _room(1)
    room = leave_room(room, room.host_id).room
    assert room.players == []
    assert room.host_id == ""


def test_kick():
    room = _room(3)
    target = room.players[2].id
    with pytest.raises(AuthorizationError):
        kick_player(room, room.players[1].id, target)
    with pytest.raises(InvalidActionError):
        kick_player(room, room.host_id, room.host_id)
    room = kick_player(room, room.host_id, target).room
    assert target not in room.player_ids()


def test_transfer_host():
    room = _room(3)
    new_host = room.players[2].id
    room = transfer_host(room, room.host_id, new_host).room
    assert room.host_id == new_host
    assert [p.is_host for p in room.players] == [False, False, True]
    with pytest.raises(AuthorizationError):
        transfer_host(room, room.players[0].id, room.players[0].id)


def test_ready_only_in_lobby():
    room = _room(5)
    room = set_ready(room, room.players[1].id, True).room
    assert room.players[1].lobby_ready
    room = set_ready(room, room.players[1].id, False).room
    assert not room.players[1].lobby_ready
    started = start_game(room, room.host_id).room
    with pytest.raises(PhaseError):
        set_ready(started, started.players[0].id, True)


def test_update_settings():
    room = _room(6)
    with pytest.raises(AuthorizationError):
        update_settings(room, room.players[1].id, GameSettings())
    with pytest.raises(ConfigurationError, match="Cannot lower the player limit"):
        update_settings(room, room.host_id, GameSettings(max_players=5))
    with pytest.raises(ConfigurationError):
        update_settings(room, room.host_id, GameSettings(characters=["merlin", "assassin"]))
    characters = ["merlin", "percival", "servant", "servant", "assassin", "morgana"]
    room = update_settings(room, room.host_id, GameSettings(max_players=8, characters=characters)).room
    assert room.settings.max_players == 8
    assert room.settings.characters == characters


def test_start_requirements():
    room = _room(4)
    statuses = {r.id: r.status for r in start_requirements(room)}
    assert statuses["min-players"] == "pending"
    assert statuses["lobby-phase"] == "satisfied"
    assert statuses["all-ready"] == "pending"
    assert not can_start(room)
    room = join_room(room, "Fifth").room
    assert can_start(room)


def test_auto_start_when_everyone_ready():
    room = _room(5, auto_start=True)
    for p in room.players[:-1]:
        room = set_ready(room, p.id, True).room
        assert not should_auto_start(room)
    room = set_ready(room, room.players[-1].id, True).room
    assert should_auto_start(room)
    assert not should_auto_start(_room(5))


def test_reset_game_returns_to_lobby():
    room = _room(5)
    room = start_game(room, room.host_id, rng=random.Random(2)).room
    with pytest.raises(AuthorizationError):
        reset_game(room, room.players[1].id)
    room = reset_game(room, room.host_id).room
    assert room.game_state.phase == Phase.LOBBY
    assert room.game_state.round == 0
    assert all(p.role_id is None and not p.lobby_ready for p in room.players)
    assert len(room.players) == 5


def test_room_codes():
    code = create_room_code()
    assert len(code) == 8
    assert validate_room_code(code)
    assert not validate_room_code("ABCD-EFGH")
    assert not validate_room_code("ABCDEFG0")
    assert format_room_code("ABCDEFGH") == "ABCD-EFGH"
    assert format_room_code("bad") == "bad"


def test_expiry():
    room = create_room("Host", now=NOW, ttl=timedelta(hours=1)).room
    assert not is_expired(room, NOW + timedelta(minutes=59))
    assert is_expired(room, NOW + timedelta(minutes=61))
    extended = extend_expiry(room, timedelta(hours=2), now=NOW + timedelta(minutes=30))
    assert extended.expires_at == NOW + timedelta(hours=2, minutes=30)
    assert extend_expiry(room, timedelta(minutes=1), now=NOW).expires_at == room.expires_at


def test_joining_an_empty_room_takes_host():
    room = _room(1)
    room = leave_room(room, room.host_id).room
    transition = join_room(room, "Bob")
    room = transition.room
    hosts = [p for p in room.players if p.is_host]
    assert len(hosts) == 1
    assert room.host_id == transition.result.id
    assert [e.kind for e in transition.events] == [EventKind.PLAYER_JOINED, EventKind.HOST_CHANGED]
    assert update_settings(room, room.host_id, GameSettings(max_players=6)).room.settings.max_players == 6
