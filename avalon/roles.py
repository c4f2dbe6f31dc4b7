"""Role catalog: every role and its capability flags.

Call sites ask a role what it can do (``role.sees_evil``,
``role.can_vote_failure``) instead of comparing role ids.
"""

from dataclasses import dataclass, field

from avalon.errors import ConfigurationError
from avalon.rules import Team


@dataclass(frozen=True)
class Role:
    """A role definition."""

    id: str
    name: str
    team: Team
    description: str
    sees_evil: bool = False  # Merlin
    sees_ambiguous: bool = False  # Percival
    appears_ambiguous: bool = False  # shown to Percival without alignment
    is_hidden_from_seer: bool = False  # Mordred
    is_hidden_from_evil: bool = False  # Oberon
    is_assassin: bool = False
    is_seer_target: bool = False  # the assassin wins by naming this role
    dependencies: tuple[str, ...] = field(default=())

    @property
    def is_evil(self) -> bool:
        return self.team == Team.EVIL

    @property
    def can_vote_failure(self) -> bool:
        """Only evil roles may sabotage a mission."""
        return self.is_evil

    @property
    def knows_evil_allies(self) -> bool:
        return self.is_evil and not self.is_hidden_from_evil


ROLE_CATALOG: dict[str, Role] = {
    role.id: role
    for role in (
        Role(
            id="merlin",
            name="Merlin",
            team=Team.GOOD,
            description="Knows all evil players except Mordred",
            sees_evil=True,
            appears_ambiguous=True,
            is_seer_target=True,
        ),
        Role(
            id="percival",
            name="Percival",
            team=Team.GOOD,
            description="Knows Merlin and Morgana, but not which is which",
            sees_ambiguous=True,
            dependencies=("merlin", "morgana"),
        ),
        Role(
            id="servant",
            name="Loyal Servant of Arthur",
            team=Team.GOOD,
            description="Standard good player with no special abilities",
        ),
        Role(
            id="assassin",
            name="Assassin",
            team=Team.EVIL,
            description="Can kill Merlin at game end",
            is_assassin=True,
            dependencies=("merlin",),
        ),
        Role(
            id="morgana",
            name="Morgana",
            team=Team.EVIL,
            description="Appears as Merlin to Percival",
            appears_ambiguous=True,
        ),
        Role(
            id="mordred",
            name="Mordred",
            team=Team.EVIL,
            description="Hidden from Merlin",
            is_hidden_from_seer=True,
            dependencies=("merlin",),
        ),
        Role(
            id="oberon",
            name="Oberon",
            team=Team.EVIL,
            description="Unknown to other evil players, and does not know them",
            is_hidden_from_evil=True,
        ),
        Role(
            id="minion",
            name="Minion of Mordred",
            team=Team.EVIL,
            description="Standard evil player",
        ),
    )
}


def get_role(role_id: str) -> Role:
    """Return the role for role_id; unknown ids are a configuration error."""
    role = ROLE_CATALOG.get(role_id)
    if role is None:
        raise ConfigurationError(f"Unknown role: {role_id}", [f"Invalid roles: {role_id}"])
    return role


def is_known_role(role_id: str) -> bool:
    return role_id in ROLE_CATALOG


def all_roles() -> list[Role]:
    return list(ROLE_CATALOG.values())
