"""Game engine: pure transitions over a room snapshot.

Every operation deep-copies the room it is given, validates, then mutates the
copy. A raised GameError therefore leaves the caller's snapshot untouched.
"""

import copy
import logging
import random
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from avalon.assassin import resolve_assassin_attempt
from avalon.assignment import assign_roles, get_standard_role_configuration
from avalon.errors import (
    AuthorizationError,
    ConfigurationError,
    InvalidActionError,
    PhaseError,
)
from avalon.knowledge import PlayerWithRole, RoleKnowledge, compute_role_knowledge
from avalon.machine import GameStateMachine, can_start_game, create_initial_state, require_phase
from avalon.missions import (
    MissionRequirements,
    check_mission_vote,
    get_mission_requirements,
    mission_team_sizes,
    resolve_mission,
    validate_mission_team,
)
from avalon.results import score
from avalon.roles import get_role
from avalon.rules import (
    EVIL_VICTORY,
    WINS_NEEDED,
    MissionChoice,
    Phase,
    Team,
    VoteChoice,
    WinCondition,
)
from avalon.state import (
    AssassinAttempt,
    Event,
    EventKind,
    Mission,
    MissionVote,
    Player,
    ProposalRecord,
    Room,
    Transition,
    Vote,
    utcnow,
)
from avalon.voting import (
    RejectionTracker,
    are_all_players_voted,
    calculate_rejection_tracker,
    calculate_voting_results,
    next_leader_index,
    upsert_vote,
)

logger = logging.getLogger(__name__)


def _event(room: Room, kind: EventKind, message: str, **kwargs) -> Event:
    state = room.game_state
    return Event(kind=kind, round=state.round, phase=state.phase, message=message, **kwargs)


def _require_player(room: Room, player_id: str) -> Player:
    player = room.get_player(player_id)
    if player is None:
        raise InvalidActionError("Player not found in room")
    return player


def players_with_roles(room: Room) -> list[PlayerWithRole]:
    """Players that hold a role, paired with their catalog entry."""
    return [
        PlayerWithRole(id=p.id, name=p.name, role=get_role(p.role_id))
        for p in room.players
        if p.role_id is not None
    ]


def _advance(room: Room, phase: Phase) -> None:
    """Move the room's game state to phase through the state machine (mutates room)."""
    machine = GameStateMachine(room.game_state)
    machine.require_transition(phase)
    room.game_state = machine.game_state


def _finish(room: Room, winner: Team, condition: WinCondition, events: list[Event]) -> None:
    _advance(room, Phase.GAME_OVER)
    room.game_state.winner = winner
    room.game_state.win_condition = condition
    events.append(
        _event(
            room,
            EventKind.GAME_OVER,
            f"{winner.value.capitalize()} wins ({condition.value}).",
            extra={"winner": winner.value, "win_condition": condition.value},
        )
    )
    logger.info("Room %s game over: %s by %s", room.id, winner.value, condition.value)


def start_game(room: Room, host_id: str, rng: Optional[random.Random] = None) -> Transition:
    """
    Assign roles and move the room from lobby to role reveal.
    Uses the room's character selection, or the standard set when none is chosen.
    Raises ConfigurationError on a bad player count or role set; the room stays in lobby.
    """
    room = copy.deepcopy(room)
    if room.game_state.phase != Phase.LOBBY:
        raise PhaseError("Game has already started")
    if host_id != room.host_id:
        raise AuthorizationError("Only the host can start the game")

    count = len(room.players)
    check = can_start_game(count)
    if not check.valid:
        raise ConfigurationError(f"Cannot start game: {', '.join(check.errors)}", check.errors)

    role_ids = list(room.settings.characters) or get_standard_role_configuration(count)
    assignments = assign_roles(room.players, role_ids, rng=rng)

    machine = GameStateMachine(create_initial_state())
    machine.require_transition(Phase.ROLE_REVEAL)
    room.game_state = machine.game_state

    roles_by_player = {a.player_id: a.role_id for a in assignments}
    room.players = [
        replace(p, role_id=roles_by_player[p.id], role_confirmed=False)
        for p in room.players
    ]
    events = [
        _event(room, EventKind.GAME_STARTED, f"Game started with {count} players."),
        _event(room, EventKind.PHASE_CHANGE, "Role reveal."),
    ]
    logger.info("Room %s started with %d players", room.id, count)
    return Transition(room=room, events=events, result=assignments)


def get_knowledge(room: Room, observer_id: str) -> RoleKnowledge:
    """What observer_id may see about the other players. Read-only."""
    if room.game_state.phase == Phase.LOBBY:
        raise PhaseError("Role information not available yet")
    observer = _require_player(room, observer_id)
    if observer.role_id is None:
        raise PhaseError("Role information not available yet")
    return compute_role_knowledge(observer.id, get_role(observer.role_id), players_with_roles(room))


def confirm_role(room: Room, player_id: str) -> Transition:
    """Mark a player as having seen their role; the last confirmation opens team selection."""
    room = copy.deepcopy(room)
    require_phase(room.game_state, Phase.ROLE_REVEAL)
    player = _require_player(room, player_id)
    room.replace_player(replace(player, role_confirmed=True))

    events = [_event(room, EventKind.ROLE_CONFIRMED, f"{player.name} has seen their role.", player_id=player.id)]
    all_confirmed = all(p.role_confirmed for p in room.players)
    if all_confirmed:
        _advance(room, Phase.TEAM_SELECTION)
        leader = room.leader()
        events.append(
            _event(room, EventKind.PHASE_CHANGE, f"Team selection: {leader.name} leads mission 1.",
                   player_id=leader.id)
        )
    return Transition(room=room, events=events, result={"all_confirmed": all_confirmed})


def propose_team(room: Room, leader_id: str, team_ids: Sequence[str]) -> Transition:
    """
    Leader proposes a team for the current round.
    The round's mission record is created here (or replaced after a rejection) and the vote list is cleared.
    """
    room = copy.deepcopy(room)
    state = room.game_state
    require_phase(state, Phase.TEAM_SELECTION)
    player = _require_player(room, leader_id)
    leader = room.leader()
    if leader is None or leader.id != player.id:
        raise AuthorizationError("Only the mission leader can submit the team")

    requirements = get_mission_requirements(state.round, len(room.players))
    validation = validate_mission_team(list(team_ids), requirements.required_players, room.player_ids())
    if not validation.success:
        raise InvalidActionError(validation.error or "Invalid team selection")

    mission = Mission(
        round=state.round,
        required_players=requirements.required_players,
        fails_required=requirements.fails_required,
        leader_index=state.leader_index,
        team=list(team_ids),
        proposed_at=utcnow(),
    )
    state.missions = [m for m in state.missions if m.round != state.round] + [mission]
    state.votes = []
    _advance(room, Phase.VOTING)

    events = [
        _event(
            room,
            EventKind.TEAM_PROPOSED,
            f"{leader.name} proposed a team of {len(team_ids)}.",
            player_id=leader.id,
            extra={"team": list(team_ids)},
        )
    ]
    return Transition(room=room, events=events, result=mission)


def cast_team_vote(room: Room, player_id: str, choice: VoteChoice) -> Transition:
    """
    Record (or replace) a player's approve/reject vote.
    The vote that completes the set resolves the proposal; result is the VotingResult, else None.
    """
    room = copy.deepcopy(room)
    state = room.game_state
    require_phase(state, Phase.VOTING)
    player = _require_player(room, player_id)

    state.votes = upsert_vote(state.votes, Vote(player_id=player.id, choice=VoteChoice(choice), submitted_at=utcnow()))
    events = [_event(room, EventKind.VOTE_CAST, f"{player.name} has voted.", player_id=player.id)]

    total = len(room.players)
    if not are_all_players_voted(state.votes, total):
        return Transition(room=room, events=events, result=None)

    result = calculate_voting_results(state.votes, total, state.rejection_count, state.leader_index, total)
    mission = state.current_mission()
    leader = room.leader()
    state.proposal_history.append(
        ProposalRecord(
            round=state.round,
            leader_id=leader.id if leader else "",
            team=list(mission.team) if mission else [],
            votes=list(state.votes),
            approved=result.approved,
            resolved_at=utcnow(),
        )
    )
    events.append(
        _event(
            room,
            EventKind.PROPOSAL_RESOLVED,
            f"Team {'approved' if result.approved else 'rejected'} ({result.approve_count}-{result.reject_count}).",
            extra={
                "approved": result.approved,
                "votes": {v.player_id: v.choice.value for v in state.votes},
            },
        )
    )

    if result.approved:
        if mission is not None:
            mission.approved_at = utcnow()
        state.rejection_count = 0
        _advance(room, Phase.MISSION_EXECUTION)
        events.append(_event(room, EventKind.PHASE_CHANGE, f"Mission {state.round} under way."))
    elif result.next_phase == EVIL_VICTORY:
        # rejection_count stays below the limit; the fifth rejection is in proposal_history
        _finish(room, Team.EVIL, WinCondition.REJECTIONS, events)
    else:
        state.rejection_count = result.rejection_count
        state.leader_index = result.next_leader_index
        _advance(room, Phase.TEAM_SELECTION)
        new_leader = room.leader()
        events.append(
            _event(room, EventKind.PHASE_CHANGE, f"Leadership passes to {new_leader.name}.",
                   player_id=new_leader.id)
        )
    logger.debug("Room %s proposal resolved: %s", room.id, result)
    return Transition(room=room, events=events, result=result)


def cast_mission_vote(room: Room, player_id: str, choice: MissionChoice) -> Transition:
    """
    Record a team member's secret mission action.
    Good roles may not submit failure; the last team vote resolves the mission.
    """
    room = copy.deepcopy(room)
    state = room.game_state
    require_phase(state, Phase.MISSION_EXECUTION)
    player = _require_player(room, player_id)
    choice = MissionChoice(choice)

    mission = state.current_mission()
    if mission is None:
        raise PhaseError("No mission in progress")
    if player.id not in mission.team:
        raise AuthorizationError("You are not on the selected team")
    check_mission_vote(get_role(player.role_id), choice)

    mission.votes = upsert_vote(mission.votes, MissionVote(player_id=player.id, choice=choice, submitted_at=utcnow()))
    events = [_event(room, EventKind.MISSION_VOTE_CAST, f"{player.name} has acted.", player_id=player.id)]

    voted = {v.player_id for v in mission.votes}
    if not all(pid in voted for pid in mission.team):
        return Transition(room=room, events=events, result=None)

    result = resolve_mission(mission.votes, mission.fails_required)
    mission.outcome = result.outcome
    mission.completed_at = utcnow()
    _advance(room, Phase.MISSION_RESULT)

    events.append(
        _event(
            room,
            EventKind.MISSION_RESOLVED,
            f"Mission {mission.round} {result.outcome.value} ({result.failure_count} fail).",
            extra={
                "outcome": result.outcome.value,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
                "fails_required": result.fails_required,
            },
        )
    )
    logger.info("Room %s mission %d: %s", room.id, mission.round, result.outcome.value)
    return Transition(room=room, events=events, result=result)


def continue_game(room: Room, player_id: str) -> Transition:
    """
    Leave the mission result screen.
    Three successes open the assassination, three failures end the game,
    otherwise the next round starts with the next leader.
    """
    room = copy.deepcopy(room)
    state = room.game_state
    require_phase(state, Phase.MISSION_RESULT)
    _require_player(room, player_id)

    current = score(state)
    successes, failures = current.successes, current.failures
    events: list[Event] = []
    if successes >= WINS_NEEDED:
        _advance(room, Phase.ASSASSIN_ATTEMPT)
        events.append(_event(room, EventKind.PHASE_CHANGE, "Good completed three missions. The assassin may strike."))
    elif failures >= WINS_NEEDED:
        _finish(room, Team.EVIL, WinCondition.MISSIONS, events)
    else:
        state.round += 1
        state.leader_index = next_leader_index(state.leader_index, len(room.players))
        state.votes = []
        _advance(room, Phase.TEAM_SELECTION)
        leader = room.leader()
        events.append(
            _event(room, EventKind.PHASE_CHANGE, f"Mission {state.round}: {leader.name} leads.",
                   player_id=leader.id)
        )
    return Transition(room=room, events=events, result={"successes": successes, "failures": failures})


def resolve_assassin(room: Room, assassin_id: str, target_id: str) -> Transition:
    """The assassin names a target; the game ends either way."""
    room = copy.deepcopy(room)
    state = room.game_state
    require_phase(state, Phase.ASSASSIN_ATTEMPT)
    assassin = room.get_player(assassin_id)
    if assassin is None or assassin.role_id is None or not get_role(assassin.role_id).is_assassin:
        raise AuthorizationError("Only the assassin can make this attempt")
    if target_id == assassin.id or room.get_player(target_id) is None:
        raise InvalidActionError("Invalid target selected")

    result = resolve_assassin_attempt(target_id, players_with_roles(room))
    state.assassin_attempt = AssassinAttempt(
        assassin_id=assassin.id,
        target_id=target_id,
        was_correct=result.was_correct,
        attempted_at=utcnow(),
    )
    target = room.get_player(target_id)
    events = [
        _event(
            room,
            EventKind.ASSASSIN_RESOLVED,
            f"The assassin chose {target.name}.",
            player_id=assassin.id,
            target_id=target_id,
            extra={"was_correct": result.was_correct},
        )
    ]
    condition = WinCondition.ASSASSIN_HIT if result.was_correct else WinCondition.ASSASSIN_MISS
    _finish(room, result.winner, condition, events)
    return Transition(room=room, events=events, result=result)


@dataclass(frozen=True)
class MissionView:
    """Mission panel for one player."""

    requirements: MissionRequirements
    leader_id: str
    is_leader: bool
    proposed_team: list[str]
    on_team: bool
    has_acted: bool
    actions_received: int
    team_sizes: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class VotingView:
    """Voting panel for one player. Other players' choices stay hidden until resolution."""

    proposed_team: list[str]
    voted_player_ids: list[str]
    remaining_player_ids: list[str]
    own_vote: Optional[VoteChoice]
    proposal_number: int
    rejection_tracker: RejectionTracker
    is_open: bool


def mission_view(room: Room, player_id: str) -> MissionView:
    state = room.game_state
    if state.phase in (Phase.LOBBY, Phase.ROLE_REVEAL) or state.round < 1:
        raise PhaseError("No mission yet")
    player = _require_player(room, player_id)
    requirements = get_mission_requirements(state.round, len(room.players))
    leader = room.leader()
    mission = state.current_mission()
    team = list(mission.team) if mission else []
    voted = {v.player_id for v in mission.votes} if mission else set()
    return MissionView(
        requirements=requirements,
        leader_id=leader.id if leader else "",
        is_leader=leader is not None and leader.id == player.id,
        proposed_team=team,
        on_team=player.id in team,
        has_acted=player.id in voted,
        actions_received=len(voted),
        team_sizes=mission_team_sizes(len(room.players)),
    )


def voting_view(room: Room, player_id: str) -> VotingView:
    state = room.game_state
    if state.phase == Phase.LOBBY:
        raise PhaseError("No vote yet")
    player = _require_player(room, player_id)
    mission = state.current_mission()
    voted = [v.player_id for v in state.votes]
    own = next((v.choice for v in state.votes if v.player_id == player.id), None)
    return VotingView(
        proposed_team=list(mission.team) if mission else [],
        voted_player_ids=voted,
        remaining_player_ids=[pid for pid in room.player_ids() if pid not in voted],
        own_vote=own,
        proposal_number=state.rejection_count + 1,
        rejection_tracker=calculate_rejection_tracker(state.rejection_count),
        is_open=state.phase == Phase.VOTING,
    )
