"""Assassination endgame."""

from dataclasses import dataclass
from typing import Sequence

from avalon.errors import InvalidActionError
from avalon.knowledge import PlayerWithRole
from avalon.rules import Team


@dataclass(frozen=True)
class AssassinResult:
    was_correct: bool
    winner: Team


def resolve_assassin_attempt(target_id: str, players: Sequence[PlayerWithRole]) -> AssassinResult:
    """Evil wins iff the target holds Merlin."""
    target = next((p for p in players if p.id == target_id), None)
    if target is None:
        raise InvalidActionError("Invalid target selected")
    was_correct = target.role.is_seer_target
    return AssassinResult(was_correct=was_correct, winner=Team.EVIL if was_correct else Team.GOOD)
