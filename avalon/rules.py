"""Game rules and constants for Avalon."""

from enum import Enum


class Team(str, Enum):
    """Alignment of a role."""

    GOOD = "good"
    EVIL = "evil"


class Phase(str, Enum):
    """Current game phase."""

    LOBBY = "lobby"
    ROLE_REVEAL = "roleReveal"
    TEAM_SELECTION = "teamSelection"
    VOTING = "voting"
    MISSION_EXECUTION = "missionExecution"
    MISSION_RESULT = "missionResult"
    ASSASSIN_ATTEMPT = "assassinAttempt"
    GAME_OVER = "gameOver"


class VoteChoice(str, Enum):
    """Team proposal vote."""

    APPROVE = "approve"
    REJECT = "reject"


class MissionChoice(str, Enum):
    """Secret mission action."""

    SUCCESS = "success"
    FAILURE = "failure"


class MissionOutcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class WinCondition(str, Enum):
    """How a finished game was decided."""

    MISSIONS = "missions"  # evil failed three missions
    REJECTIONS = "rejections"  # five proposals rejected in a row
    ASSASSIN_HIT = "assassinHit"
    ASSASSIN_MISS = "assassinMiss"


# Marker returned by the voting resolver when the fifth rejection ends the game
EVIL_VICTORY = "evilVictory"

MIN_PLAYERS = 5
MAX_PLAYERS = 10

TOTAL_MISSIONS = 5
WINS_NEEDED = 3
MAX_REJECTIONS = 5

# Legal phase changes; GAME_OVER is terminal
PHASE_TRANSITIONS: dict[Phase, tuple[Phase, ...]] = {
    Phase.LOBBY: (Phase.ROLE_REVEAL,),
    Phase.ROLE_REVEAL: (Phase.TEAM_SELECTION,),
    Phase.TEAM_SELECTION: (Phase.VOTING,),
    Phase.VOTING: (Phase.TEAM_SELECTION, Phase.MISSION_EXECUTION, Phase.GAME_OVER),
    Phase.MISSION_EXECUTION: (Phase.MISSION_RESULT,),
    Phase.MISSION_RESULT: (Phase.TEAM_SELECTION, Phase.ASSASSIN_ATTEMPT, Phase.GAME_OVER),
    Phase.ASSASSIN_ATTEMPT: (Phase.GAME_OVER,),
    Phase.GAME_OVER: (),
}

# player count -> (good, evil)
TEAM_DISTRIBUTION: dict[int, tuple[int, int]] = {
    5: (3, 2),
    6: (4, 2),
    7: (4, 3),
    8: (5, 3),
    9: (6, 3),
    10: (6, 4),
}

# player count -> team size per mission (rounds 1..5)
MISSION_TEAM_SIZES: dict[int, tuple[int, ...]] = {
    5: (2, 3, 2, 3, 3),
    6: (2, 3, 4, 3, 4),
    7: (2, 3, 3, 4, 4),
    8: (3, 4, 4, 5, 5),
    9: (3, 4, 4, 5, 5),
    10: (3, 4, 4, 5, 5),
}

# Round 4 with 7+ players needs two failure votes
DOUBLE_FAIL_ROUND = 4
DOUBLE_FAIL_MIN_PLAYERS = 7
DOUBLE_FAIL_DESCRIPTION = "This mission requires 2 fails to be rejected"

# Standard role sets used when a room has no custom character selection
STANDARD_ROLE_CONFIGURATIONS: dict[int, tuple[str, ...]] = {
    5: ("merlin", "percival", "servant", "assassin", "morgana"),
    6: ("merlin", "percival", "servant", "servant", "assassin", "morgana"),
    7: ("merlin", "percival", "servant", "servant", "assassin", "morgana", "oberon"),
    8: ("merlin", "percival", "servant", "servant", "servant", "assassin", "morgana", "minion"),
    9: ("merlin", "percival", "servant", "servant", "servant", "servant", "assassin", "morgana", "mordred"),
    10: ("merlin", "percival", "servant", "servant", "servant", "servant", "assassin", "morgana", "mordred", "oberon"),
}

# Room codes skip look-alike characters (0/O, 1/I)
ROOM_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
ROOM_CODE_LENGTH = 8
