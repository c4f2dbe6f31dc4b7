"""Mission rules: team sizes, fail thresholds, team validation and outcomes."""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from avalon.errors import RoleCapabilityError
from avalon.roles import Role
from avalon.rules import (
    DOUBLE_FAIL_DESCRIPTION,
    DOUBLE_FAIL_MIN_PLAYERS,
    DOUBLE_FAIL_ROUND,
    MISSION_TEAM_SIZES,
    TOTAL_MISSIONS,
    MissionChoice,
    MissionOutcome,
)
from avalon.state import MissionVote


@dataclass(frozen=True)
class MissionRequirements:
    round: int
    required_players: int
    fails_required: int
    description: str
    special_rules: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TeamValidation:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class MissionResult:
    outcome: MissionOutcome
    success_count: int
    failure_count: int
    fails_required: int


def get_mission_requirements(round: int, player_count: int) -> MissionRequirements:
    """
    Team size and fail threshold for (round, player_count).
    Input outside round 1..5 / 5..10 players is a programming error.
    """
    sizes = MISSION_TEAM_SIZES.get(player_count)
    if sizes is None:
        raise ValueError(f"Invalid player count: {player_count}")
    if round < 1 or round > TOTAL_MISSIONS:
        raise ValueError(f"Invalid round: {round}")

    required = sizes[round - 1]
    special_rules: list[str] = []
    fails_required = 1
    if round == DOUBLE_FAIL_ROUND and player_count >= DOUBLE_FAIL_MIN_PLAYERS:
        fails_required = 2
        special_rules.append(DOUBLE_FAIL_DESCRIPTION)

    return MissionRequirements(
        round=round,
        required_players=required,
        fails_required=fails_required,
        description=f"Mission {round} requires {required} players",
        special_rules=special_rules,
    )


def mission_team_sizes(player_count: int) -> list[int]:
    sizes = MISSION_TEAM_SIZES.get(player_count)
    if sizes is None:
        raise ValueError(f"Invalid player count: {player_count}")
    return list(sizes)


def validate_mission_team(
    team_ids: Sequence[str],
    required_players: int,
    player_ids: Iterable[str],
) -> TeamValidation:
    """Check a proposed team: exact size, known players, no duplicates."""
    if len(team_ids) != required_players:
        return TeamValidation(False, f"Team must have exactly {required_players} players")

    known = set(player_ids)
    for pid in team_ids:
        if pid not in known:
            return TeamValidation(False, f"Invalid player ID: {pid}")

    if len(set(team_ids)) != len(team_ids):
        return TeamValidation(False, "Team cannot contain duplicate players")

    return TeamValidation(True)


def check_mission_vote(role: Role, choice: MissionChoice) -> None:
    """Raise RoleCapabilityError if role may not cast choice."""
    if choice == MissionChoice.FAILURE and not role.can_vote_failure:
        raise RoleCapabilityError("Good players cannot vote for mission failure")


def resolve_mission(votes: Sequence[MissionVote], fails_required: int) -> MissionResult:
    """Failure iff the failure votes reach the threshold."""
    failures = sum(1 for v in votes if v.choice == MissionChoice.FAILURE)
    successes = len(votes) - failures
    outcome = MissionOutcome.FAILURE if failures >= fails_required else MissionOutcome.SUCCESS
    return MissionResult(
        outcome=outcome,
        success_count=successes,
        failure_count=failures,
        fails_required=fails_required,
    )
