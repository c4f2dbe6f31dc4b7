"""Role configuration validation and random role assignment."""

import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from avalon.errors import ConfigurationError
from avalon.roles import ROLE_CATALOG, is_known_role
from avalon.rules import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    STANDARD_ROLE_CONFIGURATIONS,
    TEAM_DISTRIBUTION,
    Team,
)
from avalon.state import Player, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleAssignment:
    player_id: str
    role_id: str
    assigned_at: datetime


@dataclass
class RoleValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_role_configuration(player_count: int, role_ids: Sequence[str]) -> RoleValidation:
    """
    Check role_ids against the canonical table for player_count.
    Collects every problem rather than stopping at the first.
    """
    errors: list[str] = []

    if player_count < MIN_PLAYERS or player_count > MAX_PLAYERS:
        errors.append(
            f"Invalid player count: {player_count}. Must be between {MIN_PLAYERS} and {MAX_PLAYERS}."
        )

    if len(role_ids) != player_count:
        errors.append(f"Role count ({len(role_ids)}) must match player count ({player_count})")

    invalid = [r for r in role_ids if not is_known_role(r)]
    if invalid:
        errors.append(f"Invalid roles: {', '.join(invalid)}")

    roles = [ROLE_CATALOG[r] for r in role_ids if is_known_role(r)]
    distribution = TEAM_DISTRIBUTION.get(player_count)
    if distribution is not None:
        good_needed, evil_needed = distribution
        good = sum(1 for r in roles if r.team == Team.GOOD)
        evil = sum(1 for r in roles if r.team == Team.EVIL)
        if good != good_needed or evil != evil_needed:
            errors.append(
                f"Team balance incorrect. Need {good_needed} good and {evil_needed} evil players, "
                f"got {good} good and {evil} evil"
            )

    seers = sum(1 for r in roles if r.is_seer_target)
    if seers != 1:
        errors.append(f"Must have exactly one Merlin (found {seers})")

    assassins = sum(1 for r in roles if r.is_assassin)
    if assassins != 1:
        errors.append(f"Must have exactly one Assassin (found {assassins})")

    present = set(role_ids)
    for role in roles:
        missing = [d for d in role.dependencies if d not in present]
        for dep in missing:
            message = f"{role.name} requires {ROLE_CATALOG[dep].name} to be included"
            if message not in errors:
                errors.append(message)

    return RoleValidation(valid=not errors, errors=errors)


def get_standard_role_configuration(player_count: int) -> list[str]:
    """Return the default role set for player_count."""
    configuration = STANDARD_ROLE_CONFIGURATIONS.get(player_count)
    if configuration is None:
        raise ConfigurationError(
            f"No standard configuration for {player_count} players",
            [f"Invalid player count: {player_count}"],
        )
    return list(configuration)


def assign_roles(
    players: Sequence[Player],
    role_ids: Sequence[str],
    rng: Optional[random.Random] = None,
) -> list[RoleAssignment]:
    """
    Shuffle role_ids and deal them to players in join order.
    Pass a seeded random.Random for a reproducible deal; defaults to SystemRandom.
    Raises ConfigurationError if the configuration is invalid.
    """
    validation = validate_role_configuration(len(players), role_ids)
    if not validation.valid:
        raise ConfigurationError(
            f"Invalid role configuration: {', '.join(validation.errors)}",
            validation.errors,
        )

    rng = rng or random.SystemRandom()
    shuffled = list(role_ids)
    rng.shuffle(shuffled)

    assigned_at = utcnow()
    assignments = [
        RoleAssignment(player_id=p.id, role_id=role_id, assigned_at=assigned_at)
        for p, role_id in zip(players, shuffled)
    ]
    logger.debug("Assigned roles %s", dict(Counter(shuffled)))
    return assignments
