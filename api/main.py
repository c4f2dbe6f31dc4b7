"""FastAPI app: rooms, lobby, and the Avalon game flow."""

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from avalon.engine import (
    cast_mission_vote,
    cast_team_vote,
    confirm_role,
    continue_game,
    get_knowledge,
    mission_view,
    propose_team,
    resolve_assassin,
    start_game,
    voting_view,
)
from avalon.errors import (
    AuthorizationError,
    ConfigurationError,
    GameError,
    InvalidActionError,
    PhaseError,
    RoleCapabilityError,
)
from avalon.lobby import (
    can_start,
    create_room,
    create_room_code,
    extend_expiry,
    join_room,
    kick_player,
    leave_room,
    reset_game,
    set_ready,
    should_auto_start,
    start_requirements,
    transfer_host,
    update_settings,
)
from avalon.results import game_progress, game_results
from avalon.state import Room, Transition
from api import game_store, notifier
from api.config import configure_logging, load_settings
from api.game_store import RoomNotFoundError
from api.models import (
    ActionResponse,
    AssassinateRequest,
    CleanupResponse,
    CreateRoomRequest,
    HostRequest,
    JoinRoomRequest,
    KickRequest,
    KnowledgeResponse,
    MissionViewResponse,
    MissionVoteRequest,
    PlayerRequest,
    ProgressResponse,
    ReadyRequest,
    ResultsResponse,
    RoomCreatedResponse,
    RoomStateResponse,
    StartRequirementPublic,
    StartRequirementsResponse,
    TeamRequest,
    TransferHostRequest,
    UpdateSettingsRequest,
    VoteRequest,
    VotingViewResponse,
    events_to_public,
    knowledge_to_public,
    room_to_public,
)

logger = logging.getLogger(__name__)

settings = load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("Avalon API starting (room ttl %s, extension %s)", settings.room_ttl, settings.room_extension)
    yield


app = FastAPI(title="Avalon API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS: dict[type[GameError], int] = {
    ConfigurationError: 400,
    PhaseError: 409,
    AuthorizationError: 403,
    RoleCapabilityError: 422,
    InvalidActionError: 400,
}

# Attempts at a fresh room code before giving up
MAX_CODE_ATTEMPTS = 20


@app.exception_handler(GameError)
def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    status = next((s for cls, s in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    logger.debug("%s %s rejected: %s", request.method, request.url.path, exc.message)
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ConfigurationError) and exc.errors:
        body["errors"] = exc.errors
    return JSONResponse(status_code=status, content=body)


@app.exception_handler(RoomNotFoundError)
def room_not_found_handler(request: Request, exc: RoomNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message, "code": exc.code})


def _apply(room_id: str, operation: Callable[[Room], Transition]) -> Transition:
    """Run an engine operation under the room lock, save, then publish its events."""
    with game_store.transaction(room_id) as room:
        transition = operation(room)
        transition.room = extend_expiry(transition.room, settings.room_extension)
        game_store.save(transition.room)
    notifier.publish(room_id, transition.events)
    return transition


def _action_response(transition: Transition) -> ActionResponse:
    return ActionResponse(room=room_to_public(transition.room), events=events_to_public(transition.events))


def _unused_code() -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = create_room_code()
        if not game_store.code_in_use(code):
            return code
    raise RuntimeError("Could not allocate a room code")


@app.get("/health", tags=["System"], summary="Health check")
def health():
    return {"status": "ok"}


@app.post("/rooms", response_model=RoomCreatedResponse, tags=["Rooms"], summary="Create room")
def create_room_endpoint(body: CreateRoomRequest):
    """Create a room with the caller as host. Returns the host's player id."""
    game_settings = body.settings.to_settings() if body.settings else None
    transition = create_room(body.host_name, game_settings, ttl=settings.room_ttl, code=_unused_code())
    game_store.create(transition.room)
    notifier.publish(transition.room.id, transition.events)
    return RoomCreatedResponse(
        room_id=transition.room.id,
        code=transition.room.code,
        player_id=transition.result.id,
        room=room_to_public(transition.room),
        events=events_to_public(transition.events),
    )


@app.post("/rooms/join", response_model=RoomCreatedResponse, tags=["Rooms"], summary="Join room by code")
def join_room_endpoint(body: JoinRoomRequest):
    room_id = game_store.get_by_code(body.code).id
    transition = _apply(room_id, lambda room: join_room(room, body.name, spectate=body.spectate))
    return RoomCreatedResponse(
        room_id=room_id,
        code=transition.room.code,
        player_id=transition.result.id,
        spectator=body.spectate,
        room=room_to_public(transition.room),
        events=events_to_public(transition.events),
    )


@app.post("/rooms/cleanup", response_model=CleanupResponse, tags=["Rooms"], summary="Remove expired rooms")
def cleanup_rooms():
    return CleanupResponse(removed=game_store.cleanup_expired())


@app.get("/rooms/{room_id}", response_model=RoomStateResponse, tags=["Rooms"], summary="Get room state")
def get_room(room_id: str):
    """Public room state. Never includes roles or who failed a mission."""
    return room_to_public(game_store.get(room_id))


@app.post("/rooms/{room_id}/leave", response_model=ActionResponse, tags=["Lobby"], summary="Leave room")
def leave_room_endpoint(room_id: str, body: PlayerRequest):
    """Leave the room. The room is deleted once its last player is gone."""
    with game_store.transaction(room_id) as room:
        transition = leave_room(room, body.player_id)
        if transition.room.players:
            transition.room = extend_expiry(transition.room, settings.room_extension)
            game_store.save(transition.room)
        else:
            game_store.delete(room_id)
            logger.info("Room %s is empty; deleted", room_id)
    notifier.publish(room_id, transition.events)
    return _action_response(transition)


@app.post("/rooms/{room_id}/kick", response_model=ActionResponse, tags=["Lobby"], summary="Kick player")
def kick_player_endpoint(room_id: str, body: KickRequest):
    return _action_response(_apply(room_id, lambda room: kick_player(room, body.host_id, body.player_id)))


@app.post("/rooms/{room_id}/transfer-host", response_model=ActionResponse, tags=["Lobby"], summary="Transfer host")
def transfer_host_endpoint(room_id: str, body: TransferHostRequest):
    return _action_response(_apply(room_id, lambda room: transfer_host(room, body.host_id, body.new_host_id)))


@app.post("/rooms/{room_id}/ready", response_model=ActionResponse, tags=["Lobby"], summary="Set ready")
def set_ready_endpoint(room_id: str, body: ReadyRequest):
    """Toggle lobby readiness. Starts the game when auto-start is on and everyone is ready."""

    def ready_then_maybe_start(room: Room) -> Transition:
        transition = set_ready(room, body.player_id, body.ready)
        if not should_auto_start(transition.room):
            return transition
        started = start_game(transition.room, transition.room.host_id)
        logger.info("Room %s auto-started", room_id)
        return Transition(room=started.room, events=transition.events + started.events)

    return _action_response(_apply(room_id, ready_then_maybe_start))


@app.put("/rooms/{room_id}/settings", response_model=ActionResponse, tags=["Lobby"], summary="Update settings")
def update_settings_endpoint(room_id: str, body: UpdateSettingsRequest):
    game_settings = body.settings.to_settings()
    return _action_response(_apply(room_id, lambda room: update_settings(room, body.host_id, game_settings)))


@app.get(
    "/rooms/{room_id}/start-requirements",
    response_model=StartRequirementsResponse,
    tags=["Lobby"],
    summary="Start checklist",
)
def start_requirements_endpoint(room_id: str):
    room = game_store.get(room_id)
    return StartRequirementsResponse(
        can_start=can_start(room),
        requirements=[StartRequirementPublic.model_validate(r) for r in start_requirements(room)],
    )


@app.post("/rooms/{room_id}/start", response_model=ActionResponse, tags=["Game"], summary="Start game")
def start_game_endpoint(room_id: str, body: HostRequest):
    """Assign roles and open role reveal. Host only."""
    return _action_response(_apply(room_id, lambda room: start_game(room, body.host_id)))


@app.get(
    "/rooms/{room_id}/knowledge/{player_id}",
    response_model=KnowledgeResponse,
    tags=["Game"],
    summary="Private role knowledge",
)
def get_knowledge_endpoint(room_id: str, player_id: str):
    """The player's own role and what it reveals about others."""
    return knowledge_to_public(get_knowledge(game_store.get(room_id), player_id))


@app.post("/rooms/{room_id}/confirm-role", response_model=ActionResponse, tags=["Game"], summary="Confirm role seen")
def confirm_role_endpoint(room_id: str, body: PlayerRequest):
    return _action_response(_apply(room_id, lambda room: confirm_role(room, body.player_id)))


@app.get(
    "/rooms/{room_id}/mission/{player_id}",
    response_model=MissionViewResponse,
    tags=["Game"],
    summary="Mission panel",
)
def mission_view_endpoint(room_id: str, player_id: str):
    view = mission_view(game_store.get(room_id), player_id)
    return MissionViewResponse.model_validate(view, from_attributes=True)


@app.post("/rooms/{room_id}/team", response_model=ActionResponse, tags=["Game"], summary="Propose team")
def propose_team_endpoint(room_id: str, body: TeamRequest):
    return _action_response(_apply(room_id, lambda room: propose_team(room, body.player_id, body.team)))


@app.post("/rooms/{room_id}/vote", response_model=ActionResponse, tags=["Game"], summary="Vote on team")
def team_vote_endpoint(room_id: str, body: VoteRequest):
    """Approve or reject the proposed team. The last vote resolves the proposal."""
    return _action_response(_apply(room_id, lambda room: cast_team_vote(room, body.player_id, body.choice)))


@app.get(
    "/rooms/{room_id}/voting/{player_id}",
    response_model=VotingViewResponse,
    tags=["Game"],
    summary="Voting panel",
)
def voting_view_endpoint(room_id: str, player_id: str):
    view = voting_view(game_store.get(room_id), player_id)
    return VotingViewResponse.model_validate(view, from_attributes=True)


@app.post("/rooms/{room_id}/mission-vote", response_model=ActionResponse, tags=["Game"], summary="Mission action")
def mission_vote_endpoint(room_id: str, body: MissionVoteRequest):
    """Secret success/failure from a team member. Only the tally is ever shown."""
    return _action_response(_apply(room_id, lambda room: cast_mission_vote(room, body.player_id, body.choice)))


@app.post("/rooms/{room_id}/continue", response_model=ActionResponse, tags=["Game"], summary="Continue after mission")
def continue_endpoint(room_id: str, body: PlayerRequest):
    return _action_response(_apply(room_id, lambda room: continue_game(room, body.player_id)))


@app.post("/rooms/{room_id}/assassinate", response_model=ActionResponse, tags=["Game"], summary="Assassin's guess")
def assassinate_endpoint(room_id: str, body: AssassinateRequest):
    return _action_response(_apply(room_id, lambda room: resolve_assassin(room, body.player_id, body.target_id)))


@app.get("/rooms/{room_id}/progress", response_model=ProgressResponse, tags=["Game"], summary="Scoreboard")
def progress_endpoint(room_id: str):
    return ProgressResponse.model_validate(game_progress(game_store.get(room_id)), from_attributes=True)


@app.get("/rooms/{room_id}/results", response_model=ResultsResponse, tags=["Game"], summary="Final results")
def results_endpoint(room_id: str):
    """Roles, missions and votes revealed. Only after game over."""
    return ResultsResponse.model_validate(game_results(game_store.get(room_id)), from_attributes=True)


@app.post("/rooms/{room_id}/reset", response_model=ActionResponse, tags=["Game"], summary="Back to lobby")
def reset_endpoint(room_id: str, body: HostRequest):
    return _action_response(_apply(room_id, lambda room: reset_game(room, body.host_id)))


@app.get("/rooms", response_model=list[str], tags=["Rooms"], summary="List room IDs")
def list_rooms_route():
    return game_store.list_rooms()
