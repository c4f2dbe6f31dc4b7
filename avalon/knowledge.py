"""What each player is allowed to know about the others.

Knowledge is derived from the role assignment on every request and is never
stored, so it cannot drift from the assignment.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from avalon.roles import Role
from avalon.rules import Team


@dataclass(frozen=True)
class PlayerWithRole:
    id: str
    name: str
    role: Role


@dataclass(frozen=True)
class KnownPlayer:
    """One entry in an observer's knowledge list."""

    player_id: str
    name: str
    knowledge_type: str  # "team" or "ambiguous"
    revealed_team: Optional[Team]
    confidence: str  # "certain" or "suspected"
    is_ambiguous: bool = False


@dataclass
class RoleKnowledge:
    player_id: str
    role: Role
    known_players: list[KnownPlayer] = field(default_factory=list)
    restrictions: list[str] = field(default_factory=list)
    hints: list[str] = field(default_factory=list)


def _certain_evil(player: PlayerWithRole) -> KnownPlayer:
    return KnownPlayer(
        player_id=player.id,
        name=player.name,
        knowledge_type="team",
        revealed_team=Team.EVIL,
        confidence="certain",
    )


def _ambiguous(player: PlayerWithRole) -> KnownPlayer:
    return KnownPlayer(
        player_id=player.id,
        name=player.name,
        knowledge_type="ambiguous",
        revealed_team=None,
        confidence="suspected",
        is_ambiguous=True,
    )


def _sees(observer: Role, other: PlayerWithRole) -> Optional[KnownPlayer]:
    target = other.role
    if observer.sees_evil and target.is_evil and not target.is_hidden_from_seer:
        return _certain_evil(other)
    if observer.sees_ambiguous and target.appears_ambiguous:
        return _ambiguous(other)
    if observer.knows_evil_allies and target.is_evil and not target.is_hidden_from_evil:
        return _certain_evil(other)
    return None


def _guidance(role: Role) -> tuple[list[str], list[str]]:
    """Return (restrictions, hints) shown alongside the role card."""
    if role.sees_evil:
        return (
            ["Do not reveal your identity to evil players",
             "Be careful not to make your knowledge too obvious"],
            ["You can see all evil players except Mordred",
             "Guide the good team subtly without exposing yourself"],
        )
    if role.sees_ambiguous:
        return (
            ["You cannot distinguish between Merlin and Morgana"],
            ["One of the highlighted players is Merlin, the other may be Morgana",
             "Watch their behavior to determine who is who"],
        )
    if role.is_assassin:
        return (
            ["You must identify and kill Merlin if good wins"],
            ["Look for players with too much knowledge about evil players"],
        )
    if role.is_evil and role.appears_ambiguous:
        return (
            ["Appear like Merlin to confuse Percival"],
            ["Act knowledgeable but lead the good team astray"],
        )
    if role.is_hidden_from_seer:
        return (["You are hidden from Merlin"], ["Use your invisibility to Merlin strategically"])
    if role.is_hidden_from_evil:
        return (
            ["You do not know your evil teammates",
             "Your teammates do not know you are evil"],
            ["Work alone to sabotage missions"],
        )
    if role.is_evil:
        return ([], ["Coordinate quietly with your fellow minions"])
    return (
        [],
        ["Trust in your fellow servants of Arthur",
         "Look for suspicious behavior to identify evil players"],
    )


def compute_role_knowledge(
    observer_id: str,
    observer_role: Role,
    players_with_roles: Iterable[PlayerWithRole],
) -> RoleKnowledge:
    """
    Compute what observer_id can see given its role.
    The result is sorted by player id, so input order never matters.
    """
    known = []
    for other in players_with_roles:
        if other.id == observer_id:
            continue
        entry = _sees(observer_role, other)
        if entry is not None:
            known.append(entry)
    known.sort(key=lambda k: k.player_id)

    restrictions, hints = _guidance(observer_role)
    return RoleKnowledge(
        player_id=observer_id,
        role=observer_role,
        known_players=known,
        restrictions=restrictions,
        hints=hints,
    )


def describe_knowledge(known_players: list[KnownPlayer]) -> str:
    """One-line summary of an observer's knowledge."""
    if not known_players:
        return "You have no special knowledge about other players."

    certain = [k.name for k in known_players if k.confidence == "certain"]
    suspected = [k.name for k in known_players if k.confidence == "suspected"]
    parts = []
    if certain:
        verb = "is" if len(certain) == 1 else "are"
        parts.append(f"You know that {', '.join(certain)} {verb} on the evil team.")
    if suspected:
        parts.append(f"You see {', '.join(suspected)} but cannot determine their true alignment.")
    return " ".join(parts)
