"""Game phase state machine.

``GameStateMachine.transition_to`` is the only place a phase changes; engine
operations build one over the snapshot they were handed and refuse to act when
the transition is not legal from the current phase.
"""

import copy
import logging
from dataclasses import dataclass, field

from avalon.errors import PhaseError
from avalon.rules import MAX_PLAYERS, MAX_REJECTIONS, MIN_PLAYERS, PHASE_TRANSITIONS, TOTAL_MISSIONS, Phase
from avalon.state import GameState, utcnow

logger = logging.getLogger(__name__)


@dataclass
class StateCheck:
    valid: bool
    errors: list[str] = field(default_factory=list)


class GameStateMachine:
    """Holds a copy of a GameState and moves it between phases."""

    def __init__(self, initial_state: GameState):
        self._state = copy.deepcopy(initial_state)

    @property
    def current_phase(self) -> Phase:
        return self._state.phase

    @property
    def game_state(self) -> GameState:
        return self._state

    def valid_next_phases(self) -> tuple[Phase, ...]:
        return PHASE_TRANSITIONS.get(self._state.phase, ())

    def can_transition_to(self, phase: Phase) -> bool:
        return phase in self.valid_next_phases()

    def transition_to(self, phase: Phase) -> bool:
        """Move to phase if legal. Returns False (state untouched) otherwise."""
        if not self.can_transition_to(phase):
            logger.debug("Rejected transition %s -> %s", self._state.phase.value, phase.value)
            return False
        previous = self._state.phase
        self._state.phase = phase
        self._on_enter(phase)
        logger.info("Phase %s -> %s (round %d)", previous.value, phase.value, self._state.round)
        return True

    def require_transition(self, phase: Phase) -> None:
        """transition_to, raising PhaseError when illegal."""
        if not self.transition_to(phase):
            raise PhaseError(f"Cannot move from {self._state.phase.value} to {phase.value}")

    def _on_enter(self, phase: Phase) -> None:
        if phase == Phase.ROLE_REVEAL:
            self._state.started_at = utcnow()
            self._state.round = 1
            self._state.leader_index = 0
        elif phase == Phase.GAME_OVER:
            self._state.ended_at = utcnow()


def require_phase(state: GameState, *phases: Phase) -> None:
    """Raise PhaseError unless the state is in one of phases."""
    if state.phase not in phases:
        expected = " or ".join(p.value for p in phases)
        raise PhaseError(f"Action not allowed in phase {state.phase.value} (expected {expected})")


def can_start_game(
    player_count: int,
    min_players: int = MIN_PLAYERS,
    max_players: int = MAX_PLAYERS,
) -> StateCheck:
    errors = []
    if player_count < min_players:
        errors.append(f"Need at least {min_players} players to start (currently {player_count})")
    if player_count > max_players:
        errors.append(f"Too many players ({player_count}), maximum is {max_players}")
    return StateCheck(valid=not errors, errors=errors)


def create_initial_state() -> GameState:
    return GameState(phase=Phase.LOBBY, round=0, leader_index=0)


def validate_game_state(state: GameState, player_count: int) -> StateCheck:
    """Consistency check over a loaded snapshot."""
    errors = []
    if state.round < 0 or state.round > TOTAL_MISSIONS:
        errors.append(f"Invalid round: {state.round}")
    if player_count and not 0 <= state.leader_index < player_count:
        errors.append(f"Invalid leader index: {state.leader_index}")
    if state.phase != Phase.LOBBY and state.started_at is None:
        errors.append("Game must have started_at timestamp after lobby phase")
    if len(state.missions) > TOTAL_MISSIONS:
        errors.append(f"Too many missions: {len(state.missions)}")
    if not 0 <= state.rejection_count < MAX_REJECTIONS:
        errors.append(f"Invalid rejection count: {state.rejection_count}")
    return StateCheck(valid=not errors, errors=errors)
