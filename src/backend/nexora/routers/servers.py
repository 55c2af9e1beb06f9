"""Game server endpoints.

GET  /api/servers                          — reconcile with the orchestrator, list servers
GET  /api/servers/{external_id}            — reconcile one server, with its latest sample
GET  /api/servers/{external_id}/stats      — stored usage history for one server
GET  /api/server-stats                     — sample every active server now
POST /api/servers/{external_id}/power      — start / stop / restart / kill
POST /api/servers/{external_id}/command    — send a console command
"""

from fastapi import APIRouter, Depends

from nexora.auth.dependencies import CurrentUser, get_current_user
from nexora.dependencies import Engine, get_engine
from nexora.errors import MissingCredentialError, ValidationError
from nexora.schemas.server import (
    ActionResponse,
    CommandRequest,
    ItemFailureResponse,
    PowerRequest,
    ServerDetailResponse,
    ServerListResponse,
    ServerResponse,
    UsageSampleResponse,
)
from nexora.sync.server_sync import (
    collect_usage,
    get_owned_server,
    sync_owner_servers,
    sync_single_server,
)

router = APIRouter(prefix="/api", tags=["servers"])


def _credential(user: CurrentUser, engine: Engine) -> str:
    if not user.orchestrator_credential:
        raise MissingCredentialError(
            "Orchestrator API key not set. Please set it in your profile settings."
        )
    engine.active_owners.touch(user.id, user.orchestrator_credential)
    return user.orchestrator_credential


@router.get("/servers", response_model=ServerListResponse)
async def list_servers(
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> ServerListResponse:
    credential = _credential(user, engine)
    result = await sync_owner_servers(
        user.id, credential, engine.client, engine.registry, engine.locks
    )
    servers = await engine.registry.list_by_owner(user.id)
    return ServerListResponse(
        data=[ServerResponse.model_validate(s) for s in servers],
        failures=[ItemFailureResponse.model_validate(f) for f in result.failures],
    )


@router.get("/server-stats", response_model=list[UsageSampleResponse])
async def server_stats(
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> list[UsageSampleResponse]:
    credential = _credential(user, engine)
    samples = await collect_usage(
        user.id, credential, engine.client, engine.registry, engine.store
    )
    return [UsageSampleResponse.model_validate(s) for s in samples]


@router.get("/servers/{external_id}", response_model=ServerDetailResponse)
async def get_server(
    external_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> ServerDetailResponse:
    credential = _credential(user, engine)
    server = await sync_single_server(
        user.id, credential, external_id, engine.client, engine.registry, engine.locks
    )
    latest = await engine.store.latest(server.id)
    detail = ServerDetailResponse.model_validate(server)
    if latest is not None:
        detail.latest_sample = UsageSampleResponse.model_validate(latest)
    return detail


@router.get("/servers/{external_id}/stats", response_model=list[UsageSampleResponse])
async def server_history(
    external_id: str,
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> list[UsageSampleResponse]:
    server = await get_owned_server(engine.registry, user.id, external_id)
    history = await engine.store.history(server.id)
    return [UsageSampleResponse.model_validate(s) for s in history]


@router.post("/servers/{external_id}/power", response_model=ActionResponse)
async def power(
    external_id: str,
    body: PowerRequest,
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> ActionResponse:
    server = await get_owned_server(engine.registry, user.id, external_id)
    credential = _credential(user, engine)
    updated = await engine.power.apply(server, credential, body.action)
    return ActionResponse(
        message=f"Server {body.action.value} initiated",
        power_state=updated.power_state,
    )


@router.post("/servers/{external_id}/command", response_model=ActionResponse)
async def command(
    external_id: str,
    body: CommandRequest,
    user: CurrentUser = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
) -> ActionResponse:
    if not body.command.strip():
        raise ValidationError("Command is required")
    server = await get_owned_server(engine.registry, user.id, external_id)
    credential = _credential(user, engine)
    await engine.power.send_command(server, credential, body.command)
    return ActionResponse(message="Command sent")
