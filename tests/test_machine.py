"""Phase state machine."""

import pytest

from avalon.errors import PhaseError
from avalon.machine import (
    GameStateMachine,
    can_start_game,
    create_initial_state,
    require_phase,
    validate_game_state,
)
from avalon.rules import Phase
from avalon.state import GameState


def test_cannot_skip_from_lobby_to_mission():
    machine = GameStateMachine(create_initial_state())
    assert machine.transition_to(Phase.MISSION_EXECUTION) is False
    assert machine.current_phase == Phase.LOBBY


def test_voting_to_mission_execution():
    machine = GameStateMachine(GameState(phase=Phase.VOTING, round=1))
    assert machine.can_transition_to(Phase.MISSION_EXECUTION)
    assert machine.transition_to(Phase.MISSION_EXECUTION) is True
    assert machine.current_phase == Phase.MISSION_EXECUTION


def test_game_over_is_terminal():
    machine = GameStateMachine(GameState(phase=Phase.GAME_OVER))
    assert machine.valid_next_phases() == ()
    for phase in Phase:
        assert not machine.can_transition_to(phase)


def test_machine_works_on_a_copy():
    state = create_initial_state()
    machine = GameStateMachine(state)
    machine.transition_to(Phase.ROLE_REVEAL)
    assert state.phase == Phase.LOBBY


def test_entering_role_reveal_starts_round_one():
    machine = GameStateMachine(create_initial_state())
    machine.require_transition(Phase.ROLE_REVEAL)
    state = machine.game_state
    assert state.round == 1
    assert state.leader_index == 0
    assert state.started_at is not None


def test_entering_game_over_stamps_end():
    machine = GameStateMachine(GameState(phase=Phase.ASSASSIN_ATTEMPT, round=3))
    machine.require_transition(Phase.GAME_OVER)
    assert machine.game_state.ended_at is not None


def test_require_transition_raises():
    machine = GameStateMachine(GameState(phase=Phase.TEAM_SELECTION, round=1))
    with pytest.raises(PhaseError):
        machine.require_transition(Phase.MISSION_RESULT)


def test_require_phase():
    state = GameState(phase=Phase.TEAM_SELECTION)
    require_phase(state, Phase.TEAM_SELECTION, Phase.VOTING)
    with pytest.raises(PhaseError, match="expected voting"):
        require_phase(state, Phase.VOTING)


def test_can_start_game():
    assert can_start_game(5).valid
    check = can_start_game(4)
    assert not check.valid
    assert check.errors == ["Need at least 5 players to start (currently 4)"]
    assert not can_start_game(11).valid


def test_validate_game_state():
    assert validate_game_state(create_initial_state(), 5).valid
    bad = GameState(phase=Phase.VOTING, round=7, leader_index=9, rejection_count=5)
    check = validate_game_state(bad, 5)
    assert not check.valid
    assert "Invalid round: 7" in check.errors
    assert "Invalid leader index: 9" in check.errors
    assert "Invalid rejection count: 5" in check.errors
    assert "Game must have started_at timestamp after lobby phase" in check.errors
