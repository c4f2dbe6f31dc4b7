"""Team proposal voting: tallies, rejection tracking and leader rotation."""

from dataclasses import dataclass
from typing import Sequence, TypeVar

from avalon.rules import EVIL_VICTORY, MAX_REJECTIONS, Phase, VoteChoice
from avalon.state import MissionVote, Vote

V = TypeVar("V", Vote, MissionVote)

# Rejection tracker thresholds shown to clients
NEAR_LIMIT_THRESHOLD = 3
CRITICAL_REJECTION_THRESHOLD = 4


@dataclass(frozen=True)
class VotingResult:
    approved: bool
    next_phase: str  # Phase value or EVIL_VICTORY
    next_leader_index: int
    approve_count: int
    reject_count: int
    total_votes: int
    rejection_count: int  # after this result


@dataclass(frozen=True)
class RejectionTracker:
    current_rejections: int
    max_rejections: int
    remaining_attempts: int
    is_near_limit: bool
    is_critical: bool


def next_leader_index(current_leader_index: int, total_players: int) -> int:
    return (current_leader_index + 1) % total_players


def calculate_voting_results(
    votes: Sequence[Vote],
    player_count: int,
    current_rejections: int,
    current_leader_index: int,
    total_players: int,
) -> VotingResult:
    """
    Strict majority of votes cast approves; ties reject.
    A rejection rotates the leader unless it is the fifth in a row, which hands evil the game.
    Call only once every player has voted.
    """
    approve = sum(1 for v in votes if v.choice == VoteChoice.APPROVE)
    reject = sum(1 for v in votes if v.choice == VoteChoice.REJECT)
    approved = approve > reject

    if approved:
        next_phase = Phase.MISSION_EXECUTION.value
        leader = current_leader_index
        rejections = 0
    else:
        rejections = current_rejections + 1
        if rejections >= MAX_REJECTIONS:
            next_phase = EVIL_VICTORY
            leader = current_leader_index
        else:
            next_phase = Phase.TEAM_SELECTION.value
            leader = next_leader_index(current_leader_index, total_players)

    return VotingResult(
        approved=approved,
        next_phase=next_phase,
        next_leader_index=leader,
        approve_count=approve,
        reject_count=reject,
        total_votes=len(votes),
        rejection_count=rejections,
    )


def are_all_players_voted(votes: Sequence[Vote], total_players: int) -> bool:
    return len({v.player_id for v in votes}) >= total_players


def upsert_vote(votes: Sequence[V], vote: V) -> list[V]:
    """Replace the player's earlier vote, or append. Keeps first-vote order."""
    updated = list(votes)
    for i, existing in enumerate(updated):
        if existing.player_id == vote.player_id:
            updated[i] = vote
            return updated
    updated.append(vote)
    return updated


def calculate_rejection_tracker(current_rejections: int) -> RejectionTracker:
    return RejectionTracker(
        current_rejections=current_rejections,
        max_rejections=MAX_REJECTIONS,
        remaining_attempts=MAX_REJECTIONS - current_rejections,
        is_near_limit=current_rejections >= NEAR_LIMIT_THRESHOLD,
        is_critical=current_rejections >= CRITICAL_REJECTION_THRESHOLD,
    )
