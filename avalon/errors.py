"""Exceptions raised by the rules engine.

Every recoverable error is raised before the room snapshot is touched, so a
caught ``GameError`` always means "nothing changed".
"""


class GameError(Exception):
    """Base class for rule violations a client can recover from."""

    code = "game_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(GameError):
    """Invalid role or player-count combination. Blocks game start."""

    code = "invalid_configuration"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        super().__init__(message)


class PhaseError(GameError):
    """Action attempted outside the phase it belongs to."""

    code = "wrong_phase"


class AuthorizationError(GameError):
    """Player lacks the seat needed for the action (leader, host, assassin)."""

    code = "not_authorized"


class RoleCapabilityError(GameError):
    """Player's role cannot take the action, e.g. a good player failing a mission."""

    code = "role_capability"


class InvalidActionError(GameError):
    """Malformed action: unknown player, bad team, bad target."""

    code = "invalid_action"
