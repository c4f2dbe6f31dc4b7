"""Rules engine for Avalon."""

from avalon.engine import (
    start_game,
    get_knowledge,
    confirm_role,
    propose_team,
    cast_team_vote,
    cast_mission_vote,
    continue_game,
    resolve_assassin,
    mission_view,
    voting_view,
)
from avalon.errors import (
    GameError,
    ConfigurationError,
    PhaseError,
    AuthorizationError,
    RoleCapabilityError,
    InvalidActionError,
)
from avalon.lobby import (
    create_room,
    join_room,
    leave_room,
    kick_player,
    transfer_host,
    set_ready,
    update_settings,
    start_requirements,
    should_auto_start,
    reset_game,
)
from avalon.results import game_progress, game_results, score, vote_history
from avalon.rules import Phase, Team, VoteChoice, MissionChoice, WinCondition
from avalon.state import GameSettings, GameState, Player, Room, Event, Transition

__all__ = [
    "start_game",
    "get_knowledge",
    "confirm_role",
    "propose_team",
    "cast_team_vote",
    "cast_mission_vote",
    "continue_game",
    "resolve_assassin",
    "mission_view",
    "voting_view",
    "GameError",
    "ConfigurationError",
    "PhaseError",
    "AuthorizationError",
    "RoleCapabilityError",
    "InvalidActionError",
    "create_room",
    "join_room",
    "leave_room",
    "kick_player",
    "transfer_host",
    "set_ready",
    "update_settings",
    "start_requirements",
    "should_auto_start",
    "reset_game",
    "game_progress",
    "game_results",
    "score",
    "vote_history",
    "Phase",
    "Team",
    "VoteChoice",
    "MissionChoice",
    "WinCondition",
    "GameSettings",
    "GameState",
    "Player",
    "Room",
    "Event",
    "Transition",
]
