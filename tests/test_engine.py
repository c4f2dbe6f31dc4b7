"""Engine operations and full-game scenarios."""

import random

import pytest

from avalon.engine import (
    cast_mission_vote,
    cast_team_vote,
    confirm_role,
    continue_game,
    get_knowledge,
    mission_view,
    propose_team,
    resolve_assassin,
    start_game,
    voting_view,
)
from avalon.errors import (
    AuthorizationError,
    ConfigurationError,
    InvalidActionError,
    PhaseError,
    RoleCapabilityError,
)
from avalon.lobby import create_room, join_room, update_settings
from avalon.results import game_results, score, vote_history
from avalon.rules import MissionChoice, MissionOutcome, Phase, Team, VoteChoice, WinCondition
from avalon.state import EventKind, GameSettings, Room

NAMES = ["Alice", "Bob", "Carol", "Dave", "Eve", "Frank", "Grace", "Henry", "Ivy", "Jack"]


def _lobby(n: int = 5) -> Room:
    room = create_room(NAMES[0]).room
    for name in NAMES[1:n]:
        room = join_room(room, name).room
    return room


def _started(n: int = 5, seed: int = 7) -> Room:
    """A game past role reveal, in team selection for round 1."""
    room = _lobby(n)
    room = start_game(room, room.host_id, rng=random.Random(seed)).room
    for p in room.players:
        room = confirm_role(room, p.id).room
    return room


def _with_role(room: Room, role_id: str):
    return next(p for p in room.players if p.role_id == role_id)


def _ids(room: Room, team: Team) -> list[str]:
    return [p.id for p in room.players if p.team == team]


def _approved(room: Room, team_ids: list[str]) -> Room:
    room = propose_team(room, room.leader().id, team_ids).room
    for p in room.players:
        room = cast_team_vote(room, p.id, VoteChoice.APPROVE).room
    assert room.game_state.phase == Phase.MISSION_EXECUTION
    return room


def _mission(room: Room, fail_ids: tuple[str, ...] = ()) -> Room:
    mission = room.game_state.current_mission()
    for pid in mission.team:
        choice = MissionChoice.FAILURE if pid in fail_ids else MissionChoice.SUCCESS
        room = cast_mission_vote(room, pid, choice).room
    assert room.game_state.phase == Phase.MISSION_RESULT
    return room


def _round(room: Room, team_ids: list[str], fail_ids: tuple[str, ...] = ()) -> Room:
    room = _mission(_approved(room, team_ids), fail_ids)
    return continue_game(room, room.players[0].id).room


def _size(room: Room) -> int:
    return mission_view(room, room.players[0].id).requirements.required_players


def _good_wins_missions(room: Room) -> Room:
    for _ in range(3):
        room = _round(room, _ids(room, Team.GOOD)[: _size(room)])
    return room


def test_start_game_assigns_standard_roles():
    room = _lobby(5)
    transition = start_game(room, room.host_id, rng=random.Random(1))
    started = transition.room
    assert started.game_state.phase == Phase.ROLE_REVEAL
    assert started.game_state.round == 1
    assert sorted(p.role_id for p in started.players) == sorted(
        ["merlin", "percival", "servant", "assassin", "morgana"]
    )
    assert [a.player_id for a in transition.result] == started.player_ids()
    assert room.game_state.phase == Phase.LOBBY
    assert transition.events[0].kind == EventKind.GAME_STARTED


def test_start_game_reproducible_with_seed():
    room = _lobby(8)
    first = start_game(room, room.host_id, rng=random.Random(99)).room
    second = start_game(room, room.host_id, rng=random.Random(99)).room
    assert [p.role_id for p in first.players] == [p.role_id for p in second.players]


def test_start_requires_host_and_enough_players():
    room = _lobby(5)
    with pytest.raises(AuthorizationError):
        start_game(room, room.players[1].id)
    small = _lobby(4)
    with pytest.raises(ConfigurationError):
        start_game(small, small.host_id)


def test_invalid_character_selection_blocks_start_and_stays_in_lobby():
    room = _lobby(6)
    characters = ["merlin", "percival", "servant", "assassin", "morgana"]
    room = update_settings(room, room.host_id, GameSettings(characters=characters)).room
    with pytest.raises(ConfigurationError):
        start_game(room, room.host_id)
    assert room.game_state.phase == Phase.LOBBY
    assert all(p.role_id is None for p in room.players)


def test_start_twice_is_a_phase_error():
    room = _started()
    with pytest.raises(PhaseError):
        start_game(room, room.host_id)


def test_role_confirmation_opens_team_selection():
    room = _lobby(5)
    room = start_game(room, room.host_id, rng=random.Random(3)).room
    for p in room.players[:-1]:
        transition = confirm_role(room, p.id)
        room = transition.room
        assert transition.result == {"all_confirmed": False}
        assert room.game_state.phase == Phase.ROLE_REVEAL
    transition = confirm_role(room, room.players[-1].id)
    assert transition.result == {"all_confirmed": True}
    assert transition.room.game_state.phase == Phase.TEAM_SELECTION
    with pytest.raises(PhaseError):
        confirm_role(transition.room, room.players[0].id)


def test_knowledge_matches_roles():
    room = _started()
    merlin = _with_role(room, "merlin")
    knowledge = get_knowledge(room, merlin.id)
    assert {k.player_id for k in knowledge.known_players} == set(_ids(room, Team.EVIL))
    servant = _with_role(room, "servant")
    assert get_knowledge(room, servant.id).known_players == []


def test_knowledge_not_available_in_lobby():
    room = _lobby(5)
    with pytest.raises(PhaseError):
        get_knowledge(room, room.host_id)


def test_only_leader_proposes():
    room = _started()
    not_leader = next(p for p in room.players if p.id != room.leader().id)
    with pytest.raises(AuthorizationError, match="Only the mission leader can submit the team"):
        propose_team(room, not_leader.id, room.player_ids()[:2])


def test_team_size_enforced():
    room = _started()
    with pytest.raises(InvalidActionError, match="Team must have exactly 2 players"):
        propose_team(room, room.leader().id, room.player_ids()[:3])


def test_vote_before_team_is_wrong_phase():
    room = _started()
    with pytest.raises(PhaseError):
        cast_team_vote(room, room.players[0].id, VoteChoice.APPROVE)
    with pytest.raises(PhaseError):
        cast_mission_vote(room, room.players[0].id, MissionChoice.SUCCESS)


def test_revote_replaces_earlier_vote():
    room = _started()
    room = propose_team(room, room.leader().id, room.player_ids()[:2]).room
    voter = room.players[1].id
    room = cast_team_vote(room, voter, VoteChoice.APPROVE).room
    room = cast_team_vote(room, voter, VoteChoice.REJECT).room
    assert [(v.player_id, v.choice) for v in room.game_state.votes] == [(voter, VoteChoice.REJECT)]
    view = voting_view(room, voter)
    assert view.own_vote == VoteChoice.REJECT
    assert view.voted_player_ids == [voter]
    assert len(view.remaining_player_ids) == 4


def test_rejection_rotates_leader():
    room = _started()
    first_leader = room.leader().id
    room = propose_team(room, first_leader, room.player_ids()[:2]).room
    for p in room.players:
        room = cast_team_vote(room, p.id, VoteChoice.REJECT).room
    assert room.game_state.phase == Phase.TEAM_SELECTION
    assert room.game_state.rejection_count == 1
    assert room.leader().id == room.player_ids()[1]
    assert room.leader().id != first_leader


def test_good_player_cannot_fail_mission():
    room = _started()
    good = _ids(room, Team.GOOD)
    room = _approved(room, good[:2])
    with pytest.raises(RoleCapabilityError):
        cast_mission_vote(room, good[0], MissionChoice.FAILURE)
    assert room.game_state.current_mission().votes == []


def test_only_team_members_act_on_mission():
    room = _started()
    good = _ids(room, Team.GOOD)
    room = _approved(room, good[:2])
    outsider = next(pid for pid in room.player_ids() if pid not in good[:2])
    with pytest.raises(AuthorizationError):
        cast_mission_vote(room, outsider, MissionChoice.SUCCESS)


def test_mission_vote_only_reveals_count():
    room = _started()
    evil = _ids(room, Team.EVIL)
    good = _ids(room, Team.GOOD)
    room = _approved(room, [evil[0], good[0]])
    room = cast_mission_vote(room, evil[0], MissionChoice.FAILURE).room
    transition = cast_mission_vote(room, good[0], MissionChoice.SUCCESS)
    resolved = [e for e in transition.events if e.kind == EventKind.MISSION_RESOLVED][0]
    assert resolved.extra["failure_count"] == 1
    assert resolved.player_id is None
    assert transition.result.outcome == MissionOutcome.FAILURE


def test_game_good_wins_then_assassin_misses():
    room = _good_wins_missions(_started())
    assert room.game_state.phase == Phase.ASSASSIN_ATTEMPT
    assert score(room.game_state).successes == 3

    assassin = _with_role(room, "assassin")
    servant = _with_role(room, "servant")
    with pytest.raises(AuthorizationError):
        resolve_assassin(room, servant.id, assassin.id)
    transition = resolve_assassin(room, assassin.id, servant.id)
    room = transition.room
    assert transition.result.was_correct is False
    assert room.game_state.phase == Phase.GAME_OVER
    assert room.game_state.winner == Team.GOOD
    assert room.game_state.win_condition == WinCondition.ASSASSIN_MISS
    with pytest.raises(PhaseError):
        resolve_assassin(room, assassin.id, _with_role(room, "merlin").id)


def test_game_assassin_finds_merlin():
    room = _good_wins_missions(_started(seed=11))
    assassin = _with_role(room, "assassin")
    merlin = _with_role(room, "merlin")
    room = resolve_assassin(room, assassin.id, merlin.id).room
    assert room.game_state.winner == Team.EVIL
    assert room.game_state.win_condition == WinCondition.ASSASSIN_HIT
    results = game_results(room)
    assert results.assassin_attempt.target_id == merlin.id
    assert results.assassin_attempt.was_correct
    assert {r.player_id: r.role_id for r in results.players} == {p.id: p.role_id for p in room.players}


def test_assassin_cannot_target_self_or_stranger():
    room = _good_wins_missions(_started())
    assassin = _with_role(room, "assassin")
    with pytest.raises(InvalidActionError):
        resolve_assassin(room, assassin.id, assassin.id)
    with pytest.raises(InvalidActionError):
        resolve_assassin(room, assassin.id, "nobody")


def test_game_evil_fails_three_missions():
    room = _started()
    evil = _ids(room, Team.EVIL)
    good = _ids(room, Team.GOOD)
    for _ in range(2):
        team = [evil[0]] + good[: _size(room) - 1]
        room = _round(room, team, fail_ids=(evil[0],))
    team = [evil[0]] + good[: _size(room) - 1]
    room = _mission(_approved(room, team), fail_ids=(evil[0],))
    transition = continue_game(room, room.players[0].id)
    room = transition.room
    assert room.game_state.phase == Phase.GAME_OVER
    assert room.game_state.winner == Team.EVIL
    assert room.game_state.win_condition == WinCondition.MISSIONS
    assert transition.events[-1].kind == EventKind.GAME_OVER
    assert score(room.game_state).failures == 3


def test_game_five_rejections():
    room = _started()
    leaders = []
    for _ in range(5):
        leader = room.leader().id
        leaders.append(leader)
        room = propose_team(room, leader, room.player_ids()[:2]).room
        for p in room.players:
            room = cast_team_vote(room, p.id, VoteChoice.REJECT).room
    assert room.game_state.phase == Phase.GAME_OVER
    assert room.game_state.winner == Team.EVIL
    assert room.game_state.win_condition == WinCondition.REJECTIONS
    assert room.game_state.rejection_count == 4
    assert leaders == room.player_ids()
    history = vote_history(room.game_state)
    assert len(history) == 5
    assert not any(h.approved for h in history)


def test_approval_resets_rejections():
    room = _started()
    room = propose_team(room, room.leader().id, room.player_ids()[:2]).room
    for p in room.players:
        room = cast_team_vote(room, p.id, VoteChoice.REJECT).room
    assert room.game_state.rejection_count == 1
    room = _approved(room, _ids(room, Team.GOOD)[:2])
    assert room.game_state.rejection_count == 0


def test_next_round_rotates_leader():
    room = _started()
    leader_before = room.game_state.leader_index
    room = _round(room, _ids(room, Team.GOOD)[:2])
    assert room.game_state.phase == Phase.TEAM_SELECTION
    assert room.game_state.round == 2
    assert room.game_state.leader_index == leader_before + 1
    assert room.game_state.votes == []


def test_round_four_with_seven_players_needs_two_fails():
    room = _started(7)
    evil = _ids(room, Team.EVIL)
    good = _ids(room, Team.GOOD)
    room = _round(room, good[:2])
    room = _round(room, [evil[0]] + good[:2], fail_ids=(evil[0],))
    room = _round(room, [evil[0]] + good[:2], fail_ids=(evil[0],))
    assert room.game_state.round == 4
    room = _mission(_approved(room, [evil[0]] + good[:3]), fail_ids=(evil[0],))
    mission = room.game_state.current_mission()
    assert mission.fails_required == 2
    assert mission.outcome == MissionOutcome.SUCCESS
    room = continue_game(room, room.players[0].id).room
    assert room.game_state.phase == Phase.TEAM_SELECTION
    assert room.game_state.round == 5


def test_failed_operation_leaves_room_untouched():
    room = _started()
    snapshot = room.game_state
    with pytest.raises(InvalidActionError):
        propose_team(room, "ghost", room.player_ids()[:2])
    assert room.game_state is snapshot
    assert room.game_state.phase == Phase.TEAM_SELECTION
    assert room.game_state.missions == []


def test_results_only_after_game_over():
    room = _started()
    with pytest.raises(PhaseError):
        game_results(room)
