"""Game state types for Avalon.

A ``Room`` is the unit of persistence: it owns the join-ordered players and
the ``GameState`` snapshot. Snapshots are converted to and from plain JSON
data with pydantic so enums and timestamps survive a round trip.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import TypeAdapter

from avalon.rules import (
    MissionChoice,
    MissionOutcome,
    Phase,
    Team,
    VoteChoice,
    WinCondition,
)
from avalon.roles import get_role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Player:
    """A seated player. Join order is leader rotation order."""

    id: str
    name: str
    joined_at: datetime
    is_host: bool = False
    role_id: Optional[str] = None
    lobby_ready: bool = False
    role_confirmed: bool = False

    @property
    def team(self) -> Optional[Team]:
        """Alignment derived from the assigned role, None before the game starts."""
        if self.role_id is None:
            return None
        return get_role(self.role_id).team


@dataclass(frozen=True)
class Spectator:
    """Watches the room; never acts and never counts as a player."""

    id: str
    name: str
    joined_at: datetime


@dataclass(frozen=True)
class Vote:
    """One player's vote on the current team proposal."""

    player_id: str
    choice: VoteChoice
    submitted_at: datetime


@dataclass(frozen=True)
class MissionVote:
    """One team member's secret mission action."""

    player_id: str
    choice: MissionChoice
    submitted_at: datetime


@dataclass
class Mission:
    """One round's mission. Created when the leader proposes a team."""

    round: int
    required_players: int
    fails_required: int
    leader_index: int
    team: list[str] = field(default_factory=list)
    votes: list[MissionVote] = field(default_factory=list)
    outcome: MissionOutcome = MissionOutcome.PENDING
    proposed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def approved(self) -> bool:
        return self.approved_at is not None


@dataclass(frozen=True)
class ProposalRecord:
    """A resolved team proposal, kept for vote history."""

    round: int
    leader_id: str
    team: list[str]
    votes: list[Vote]
    approved: bool
    resolved_at: datetime


@dataclass(frozen=True)
class AssassinAttempt:
    assassin_id: str
    target_id: str
    was_correct: bool
    attempted_at: datetime


@dataclass
class GameState:
    """The mutable game snapshot persisted per room."""

    phase: Phase = Phase.LOBBY
    round: int = 0
    leader_index: int = 0
    votes: list[Vote] = field(default_factory=list)
    missions: list[Mission] = field(default_factory=list)
    rejection_count: int = 0
    assassin_attempt: Optional[AssassinAttempt] = None
    proposal_history: list[ProposalRecord] = field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    winner: Optional[Team] = None
    win_condition: Optional[WinCondition] = None

    def current_mission(self) -> Optional[Mission]:
        """Return the mission record for the current round, if proposed."""
        for mission in self.missions:
            if mission.round == self.round:
                return mission
        return None


@dataclass
class GameSettings:
    """Host-controlled room settings."""

    max_players: int = 10
    characters: list[str] = field(default_factory=list)  # empty: standard set for the player count
    allow_spectators: bool = False
    auto_start: bool = False


@dataclass
class Room:
    """A game room: players in join order plus the game snapshot."""

    id: str
    code: str
    host_id: str
    created_at: datetime
    expires_at: datetime
    players: list[Player] = field(default_factory=list)
    spectators: list[Spectator] = field(default_factory=list)
    game_state: GameState = field(default_factory=GameState)
    settings: GameSettings = field(default_factory=GameSettings)

    def get_player(self, player_id: str) -> Optional[Player]:
        """Return player by id or None."""
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def player_ids(self) -> list[str]:
        return [p.id for p in self.players]

    def leader(self) -> Optional[Player]:
        """Return the current leader by join-order index."""
        idx = self.game_state.leader_index
        if 0 <= idx < len(self.players):
            return self.players[idx]
        return None

    def replace_player(self, player: Player) -> None:
        """Swap in an updated (frozen) player record (mutates room)."""
        self.players = [player if p.id == player.id else p for p in self.players]


class EventKind(str, Enum):
    """Type of room event, published to subscribers after each operation."""

    ROOM_CREATED = "room_created"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_KICKED = "player_kicked"
    HOST_CHANGED = "host_changed"
    PLAYER_READY = "player_ready"
    SETTINGS_UPDATED = "settings_updated"
    GAME_STARTED = "game_started"
    ROLE_CONFIRMED = "role_confirmed"
    TEAM_PROPOSED = "team_proposed"
    VOTE_CAST = "vote_cast"
    PROPOSAL_RESOLVED = "proposal_resolved"
    MISSION_VOTE_CAST = "mission_vote_cast"
    MISSION_RESOLVED = "mission_resolved"
    ASSASSIN_RESOLVED = "assassin_resolved"
    PHASE_CHANGE = "phase_change"
    GAME_OVER = "game_over"
    GAME_RESET = "game_reset"


@dataclass
class Event:
    """A state-change description. Never carries hidden information."""

    kind: EventKind
    round: int
    phase: Phase
    message: str
    player_id: Optional[str] = None
    target_id: Optional[str] = None
    extra: Optional[dict] = None


@dataclass
class Transition:
    """Result of one engine operation: the successor room and what happened."""

    room: Room
    events: list[Event] = field(default_factory=list)
    result: Any = None


_ROOM_ADAPTER = TypeAdapter(Room)
_GAME_STATE_ADAPTER = TypeAdapter(GameState)


def room_to_dict(room: Room) -> dict:
    """Serialise a room to JSON-compatible data."""
    return _ROOM_ADAPTER.dump_python(room, mode="json")


def room_from_dict(data: dict) -> Room:
    return _ROOM_ADAPTER.validate_python(data)


def game_state_to_dict(state: GameState) -> dict:
    """Serialise the game snapshot alone (phase, round, leader, votes, missions...)."""
    return _GAME_STATE_ADAPTER.dump_python(state, mode="json")


def game_state_from_dict(data: dict) -> GameState:
    return _GAME_STATE_ADAPTER.validate_python(data)
