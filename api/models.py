"""Pydantic request/response models for the API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from avalon.knowledge import RoleKnowledge, describe_knowledge
from avalon.lobby import format_room_code
from avalon.results import score
from avalon.rules import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    MissionChoice,
    MissionOutcome,
    Phase,
    Team,
    VoteChoice,
    WinCondition,
)
from avalon.state import Event, GameSettings, Room

# Validation constants (no magic numbers in validation)
MAX_PLAYER_NAME_LENGTH = 50
MAX_ROOM_CODE_LENGTH = 9  # with the display dash


class SettingsBody(BaseModel):
    """Room settings the host controls."""

    max_players: int = Field(default=MAX_PLAYERS, ge=MIN_PLAYERS, le=MAX_PLAYERS)
    characters: list[str] = Field(
        default_factory=list,
        max_length=MAX_PLAYERS,
        description="Role ids, one per player. Empty means the standard set for the player count.",
    )
    allow_spectators: bool = False
    auto_start: bool = Field(default=False, description="Start as soon as every player is ready")

    @field_validator("characters")
    @classmethod
    def normalise_role_ids(cls, v: list[str]) -> list[str]:
        return [c.strip().lower() for c in v]

    def to_settings(self) -> GameSettings:
        return GameSettings(
            max_players=self.max_players,
            characters=list(self.characters),
            allow_spectators=self.allow_spectators,
            auto_start=self.auto_start,
        )


class CreateRoomRequest(BaseModel):
    """Body for POST /rooms."""

    host_name: str = Field(..., min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    settings: SettingsBody | None = None


class JoinRoomRequest(BaseModel):
    """Body for POST /rooms/join."""

    code: str = Field(..., min_length=1, max_length=MAX_ROOM_CODE_LENGTH)
    name: str = Field(..., min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    spectate: bool = False


class PlayerRequest(BaseModel):
    """Body for actions that only need the acting player."""

    player_id: str


class HostRequest(BaseModel):
    host_id: str


class KickRequest(BaseModel):
    host_id: str
    player_id: str


class TransferHostRequest(BaseModel):
    host_id: str
    new_host_id: str


class ReadyRequest(BaseModel):
    player_id: str
    ready: bool = True


class UpdateSettingsRequest(BaseModel):
    host_id: str
    settings: SettingsBody


class TeamRequest(BaseModel):
    """Body for POST /rooms/{id}/team: the leader's proposed team."""

    player_id: str
    team: list[str] = Field(..., min_length=1, max_length=MAX_PLAYERS)


class VoteRequest(BaseModel):
    player_id: str
    choice: VoteChoice


class MissionVoteRequest(BaseModel):
    player_id: str
    choice: MissionChoice


class AssassinateRequest(BaseModel):
    player_id: str
    target_id: str


class PlayerPublic(BaseModel):
    """Player as shown to everyone: roles are never included."""

    id: str
    name: str
    is_host: bool
    lobby_ready: bool
    role_confirmed: bool


class SpectatorPublic(BaseModel):
    id: str
    name: str


class MissionPublic(BaseModel):
    round: int
    required_players: int
    fails_required: int
    team: list[str]
    outcome: MissionOutcome
    failure_count: int | None = Field(default=None, description="Set once resolved; who failed is never shown")


class EventPublic(BaseModel):
    kind: str
    round: int
    phase: str
    message: str
    player_id: str | None = None
    target_id: str | None = None
    extra: dict | None = None


class ScorePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    successes: int
    failures: int


class RoomStateResponse(BaseModel):
    """Public room state for GET /rooms/{id}."""

    room_id: str
    code: str
    display_code: str
    host_id: str
    created_at: datetime
    expires_at: datetime
    phase: Phase
    round: int
    leader_id: str | None = None
    rejection_count: int
    players: list[PlayerPublic]
    spectators: list[SpectatorPublic] = Field(default_factory=list)
    settings: SettingsBody
    missions: list[MissionPublic] = Field(default_factory=list)
    score: ScorePublic
    voted_player_ids: list[str] = Field(default_factory=list, description="Who has voted on the open proposal")
    winner: Team | None = None
    win_condition: WinCondition | None = None


class RoomCreatedResponse(BaseModel):
    """Returned to a creator or joiner: their own id plus the room."""

    room_id: str
    code: str
    player_id: str
    spectator: bool = False
    room: RoomStateResponse
    events: list[EventPublic] = Field(default_factory=list)


class ActionResponse(BaseModel):
    """Room state after an action, with the events it produced."""

    room: RoomStateResponse
    events: list[EventPublic] = Field(default_factory=list)


class RolePublic(BaseModel):
    id: str
    name: str
    team: Team
    description: str


class KnownPlayerPublic(BaseModel):
    player_id: str
    name: str
    knowledge_type: str
    revealed_team: Team | None = None
    confidence: str
    is_ambiguous: bool = False


class KnowledgeResponse(BaseModel):
    """Private to one player: their role and what it reveals."""

    player_id: str
    role: RolePublic
    known_players: list[KnownPlayerPublic]
    restrictions: list[str]
    hints: list[str]
    summary: str


class StartRequirementPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    status: str
    required: bool


class StartRequirementsResponse(BaseModel):
    can_start: bool
    requirements: list[StartRequirementPublic]


class MissionRequirementsPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round: int
    required_players: int
    fails_required: int
    description: str
    special_rules: list[str] = Field(default_factory=list)


class MissionViewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    requirements: MissionRequirementsPublic
    leader_id: str
    is_leader: bool
    proposed_team: list[str]
    on_team: bool
    has_acted: bool
    actions_received: int
    team_sizes: list[int]


class RejectionTrackerPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_rejections: int
    max_rejections: int
    remaining_attempts: int
    is_near_limit: bool
    is_critical: bool


class VotingViewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    proposed_team: list[str]
    voted_player_ids: list[str]
    remaining_player_ids: list[str]
    own_vote: VoteChoice | None = None
    proposal_number: int
    rejection_tracker: RejectionTrackerPublic
    is_open: bool


class MissionSummaryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round: int
    required_players: int
    fails_required: int
    outcome: MissionOutcome
    team: list[str]
    failure_count: int | None = None


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phase: Phase
    round: int
    total_rounds: int
    leader_id: str | None = None
    score: ScorePublic
    rejection_count: int
    max_rejections: int
    missions: list[MissionSummaryPublic]


class ProposalSummaryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round: int
    leader_id: str
    team: list[str]
    approved: bool
    votes: dict[str, str]


class PlayerResultPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: str
    name: str
    role_id: str
    role_name: str
    team: Team


class AssassinSummaryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assassin_id: str
    target_id: str
    was_correct: bool


class ResultsResponse(BaseModel):
    """Full reveal after game over."""

    model_config = ConfigDict(from_attributes=True)

    winner: Team
    win_condition: WinCondition
    score: ScorePublic
    players: list[PlayerResultPublic]
    missions: list[MissionSummaryPublic]
    proposals: list[ProposalSummaryPublic]
    assassin_attempt: AssassinSummaryPublic | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None


class CleanupResponse(BaseModel):
    removed: list[str]


def events_to_public(events: list[Event]) -> list[EventPublic]:
    return [
        EventPublic(
            kind=e.kind.value,
            round=e.round,
            phase=e.phase.value,
            message=e.message,
            player_id=e.player_id,
            target_id=e.target_id,
            extra=e.extra,
        )
        for e in events
    ]


def room_to_public(room: Room) -> RoomStateResponse:
    """Build public response from a Room; roles and mission actions stay hidden."""
    state = room.game_state
    leader = room.leader() if state.phase != Phase.LOBBY else None
    missions = []
    for m in sorted(state.missions, key=lambda m: m.round):
        resolved = m.outcome != MissionOutcome.PENDING
        missions.append(
            MissionPublic(
                round=m.round,
                required_players=m.required_players,
                fails_required=m.fails_required,
                team=list(m.team),
                outcome=m.outcome,
                failure_count=sum(1 for v in m.votes if v.choice == MissionChoice.FAILURE) if resolved else None,
            )
        )
    current = score(state)
    return RoomStateResponse(
        room_id=room.id,
        code=room.code,
        display_code=format_room_code(room.code),
        host_id=room.host_id,
        created_at=room.created_at,
        expires_at=room.expires_at,
        phase=state.phase,
        round=state.round,
        leader_id=leader.id if leader else None,
        rejection_count=state.rejection_count,
        players=[
            PlayerPublic(
                id=p.id,
                name=p.name,
                is_host=p.is_host,
                lobby_ready=p.lobby_ready,
                role_confirmed=p.role_confirmed,
            )
            for p in room.players
        ],
        spectators=[SpectatorPublic(id=s.id, name=s.name) for s in room.spectators],
        settings=SettingsBody(
            max_players=room.settings.max_players,
            characters=list(room.settings.characters),
            allow_spectators=room.settings.allow_spectators,
            auto_start=room.settings.auto_start,
        ),
        missions=missions,
        score=ScorePublic(successes=current.successes, failures=current.failures),
        voted_player_ids=[v.player_id for v in state.votes] if state.phase == Phase.VOTING else [],
        winner=state.winner,
        win_condition=state.win_condition,
    )


def knowledge_to_public(knowledge: RoleKnowledge) -> KnowledgeResponse:
    role = knowledge.role
    return KnowledgeResponse(
        player_id=knowledge.player_id,
        role=RolePublic(id=role.id, name=role.name, team=role.team, description=role.description),
        known_players=[
            KnownPlayerPublic(
                player_id=k.player_id,
                name=k.name,
                knowledge_type=k.knowledge_type,
                revealed_team=k.revealed_team,
                confidence=k.confidence,
                is_ambiguous=k.is_ambiguous,
            )
            for k in knowledge.known_players
        ],
        restrictions=list(knowledge.restrictions),
        hints=list(knowledge.hints),
        summary=describe_knowledge(knowledge.known_players),
    )
