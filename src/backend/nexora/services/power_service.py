"""Power-state controller — validates and issues power actions.

Transition guards (client-side only; the next reconciliation pass corrects
anything the orchestrator disagrees with):
  removed      → every action rejected
  start        → rejected when already running
  stop/restart/kill → rejected unless running

Once the orchestrator accepts a signal the local record is moved to the
optimistic state below, unless a reconciliation pass marked it removed while
the signal was in flight. If the orchestrator call fails the record is left
exactly as it was and the error propagates unchanged.
"""

import logging

from nexora.errors import InvalidTransitionError, ValidationError
from nexora.models.server import PowerState, Server
from nexora.orchestrator.client import OrchestratorClient
from nexora.repositories.server_repo import ServerRegistry
from nexora.schemas.server import PowerAction
from nexora.sync.locks import KeyedLock

log = logging.getLogger(__name__)

OPTIMISTIC_STATE: dict[PowerAction, PowerState] = {
    PowerAction.START: PowerState.STARTING,
    PowerAction.RESTART: PowerState.RESTARTING,
    PowerAction.STOP: PowerState.STOPPING,
    PowerAction.KILL: PowerState.STOPPING,
}


def check_transition(current: str, action: PowerAction) -> None:
    if current == PowerState.REMOVED.value:
        raise InvalidTransitionError(current, action.value)
    if action is PowerAction.START:
        if current == PowerState.RUNNING.value:
            raise InvalidTransitionError(current, action.value)
    elif current != PowerState.RUNNING.value:
        raise InvalidTransitionError(current, action.value)


class PowerController:
    def __init__(
        self,
        registry: ServerRegistry,
        client: OrchestratorClient,
        locks: KeyedLock,
    ) -> None:
        self.registry = registry
        self._client = client
        self._locks = locks

    async def apply(self, server: Server, credential: str, action: PowerAction | str) -> Server:
        try:
            action = PowerAction(action)
        except ValueError as exc:
            raise ValidationError(
                "Invalid power action. Must be one of: start, stop, restart, kill"
            ) from exc

        check_transition(server.power_state, action)

        await self._client.send_power(server.external_id, credential, action.value)

        target = OPTIMISTIC_STATE[action]
        async with self._locks.hold(server.owner_id):
            current = await self.registry.get_by_internal_id(server.id)
            if current.power_state == PowerState.REMOVED.value:
                log.warning(
                    "Server %s was removed while %s was in flight; keeping removed",
                    server.external_id, action.value,
                )
                return current
            updated = await self.registry.set_power_state(server.id, target)
        log.info("Server %s: %s accepted, now %s", server.external_id, action.value, target.value)
        return updated

    async def send_command(self, server: Server, credential: str, text: str) -> None:
        if not text or not text.strip():
            raise ValidationError("Command is required")
        if server.power_state == PowerState.REMOVED.value:
            raise InvalidTransitionError(server.power_state, "send a command to")
        await self._client.send_command(server.external_id, credential, text)
