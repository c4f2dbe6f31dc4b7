"""Read-only projections: score, progress, vote history and end-of-game results."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from avalon.errors import PhaseError
from avalon.missions import get_mission_requirements
from avalon.roles import get_role
from avalon.rules import MAX_REJECTIONS, TOTAL_MISSIONS, MissionChoice, MissionOutcome, Phase, Team, WinCondition
from avalon.state import GameState, Room


@dataclass(frozen=True)
class Score:
    successes: int
    failures: int


@dataclass(frozen=True)
class MissionSummary:
    round: int
    required_players: int
    fails_required: int
    outcome: MissionOutcome
    team: list[str]
    failure_count: Optional[int] = None  # revealed once resolved; never who failed


@dataclass(frozen=True)
class GameProgress:
    phase: Phase
    round: int
    total_rounds: int
    leader_id: Optional[str]
    score: Score
    rejection_count: int
    max_rejections: int
    missions: list[MissionSummary]


@dataclass(frozen=True)
class ProposalSummary:
    round: int
    leader_id: str
    team: list[str]
    approved: bool
    votes: dict[str, str]


@dataclass(frozen=True)
class PlayerResult:
    player_id: str
    name: str
    role_id: str
    role_name: str
    team: Team


@dataclass(frozen=True)
class AssassinSummary:
    assassin_id: str
    target_id: str
    was_correct: bool


@dataclass(frozen=True)
class GameResults:
    winner: Team
    win_condition: WinCondition
    score: Score
    players: list[PlayerResult]
    missions: list[MissionSummary]
    proposals: list[ProposalSummary]
    assassin_attempt: Optional[AssassinSummary]
    started_at: Optional[datetime]
    ended_at: Optional[datetime]


def score(state: GameState) -> Score:
    outcomes = [m.outcome for m in state.missions]
    return Score(
        successes=outcomes.count(MissionOutcome.SUCCESS),
        failures=outcomes.count(MissionOutcome.FAILURE),
    )


def _mission_summaries(state: GameState, player_count: int) -> list[MissionSummary]:
    """One entry per round; rounds not yet proposed come from the size table."""
    by_round = {m.round: m for m in state.missions}
    summaries = []
    for rnd in range(1, TOTAL_MISSIONS + 1):
        mission = by_round.get(rnd)
        if mission is not None:
            resolved = mission.outcome != MissionOutcome.PENDING
            summaries.append(
                MissionSummary(
                    round=rnd,
                    required_players=mission.required_players,
                    fails_required=mission.fails_required,
                    outcome=mission.outcome,
                    team=list(mission.team),
                    failure_count=(
                        sum(1 for v in mission.votes if v.choice == MissionChoice.FAILURE) if resolved else None
                    ),
                )
            )
        else:
            req = get_mission_requirements(rnd, player_count)
            summaries.append(
                MissionSummary(
                    round=rnd,
                    required_players=req.required_players,
                    fails_required=req.fails_required,
                    outcome=MissionOutcome.PENDING,
                    team=[],
                )
            )
    return summaries


def game_progress(room: Room) -> GameProgress:
    """Scoreboard for the room. Raises PhaseError before the game starts."""
    state = room.game_state
    if state.phase == Phase.LOBBY:
        raise PhaseError("Game has not started")
    leader = room.leader()
    return GameProgress(
        phase=state.phase,
        round=state.round,
        total_rounds=TOTAL_MISSIONS,
        leader_id=leader.id if leader else None,
        score=score(state),
        rejection_count=state.rejection_count,
        max_rejections=MAX_REJECTIONS,
        missions=_mission_summaries(state, len(room.players)),
    )


def vote_history(state: GameState) -> list[ProposalSummary]:
    """Resolved proposals in order. Individual votes are public once a proposal resolves."""
    return [
        ProposalSummary(
            round=p.round,
            leader_id=p.leader_id,
            team=list(p.team),
            approved=p.approved,
            votes={v.player_id: v.choice.value for v in p.votes},
        )
        for p in state.proposal_history
    ]


def game_results(room: Room) -> GameResults:
    """Full reveal. Only available once the game is over."""
    state = room.game_state
    if state.phase != Phase.GAME_OVER or state.winner is None or state.win_condition is None:
        raise PhaseError("Game is not over")

    players = []
    for p in room.players:
        role = get_role(p.role_id)
        players.append(PlayerResult(player_id=p.id, name=p.name, role_id=role.id, role_name=role.name, team=role.team))

    attempt = None
    if state.assassin_attempt is not None:
        attempt = AssassinSummary(
            assassin_id=state.assassin_attempt.assassin_id,
            target_id=state.assassin_attempt.target_id,
            was_correct=state.assassin_attempt.was_correct,
        )

    return GameResults(
        winner=state.winner,
        win_condition=state.win_condition,
        score=score(state),
        players=players,
        missions=_mission_summaries(state, len(room.players)),
        proposals=vote_history(state),
        assassin_attempt=attempt,
        started_at=state.started_at,
        ended_at=state.ended_at,
    )
