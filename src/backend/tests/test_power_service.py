"""Tests for the power-state controller: guards, optimistic transitions,
and no local mutation when the orchestrator call fails."""

from unittest.mock import AsyncMock

import pytest

from nexora.errors import InvalidTransitionError, TransportError, ValidationError
from nexora.models.server import PowerState
from nexora.schemas.server import PowerAction
from nexora.services.power_service import PowerController, check_transition
from nexora.sync.reconciler import reconcile
from payloads import server_payload


async def _server(registry, locks, status="running"):
    await reconcile(registry, 7, [server_payload("a1", status=status)], locks)
    return await registry.get_by_external_id("a1")


@pytest.fixture
def controller(registry, client, locks) -> PowerController:
    return PowerController(registry, client, locks)


class TestCheckTransition:
    @pytest.mark.parametrize("action", list(PowerAction))
    def test_removed_rejects_everything(self, action):
        with pytest.raises(InvalidTransitionError):
            check_transition("removed", action)

    def test_start_rejected_when_running(self):
        with pytest.raises(InvalidTransitionError):
            check_transition("running", PowerAction.START)

    @pytest.mark.parametrize("state", ["offline", "installing", "stopping", "starting"])
    def test_start_allowed_when_not_running(self, state):
        check_transition(state, PowerAction.START)

    @pytest.mark.parametrize("action", [PowerAction.STOP, PowerAction.RESTART, PowerAction.KILL])
    @pytest.mark.parametrize("state", ["offline", "installing", "starting"])
    def test_stop_like_rejected_unless_running(self, action, state):
        with pytest.raises(InvalidTransitionError):
            check_transition(state, action)


class TestApply:
    @pytest.mark.parametrize(
        "action,initial,expected",
        [
            ("start", "offline", PowerState.STARTING),
            ("restart", "running", PowerState.RESTARTING),
            ("stop", "running", PowerState.STOPPING),
            ("kill", "running", PowerState.STOPPING),
        ],
    )
    async def test_optimistic_state_after_acceptance(
        self, controller, registry, client, locks, action, initial, expected
    ):
        server = await _server(registry, locks, status=initial)

        updated = await controller.apply(server, "key-123", action)

        assert updated.power_state == expected.value
        client.send_power.assert_awaited_once_with("a1", "key-123", action)

    async def test_start_on_running_does_not_call_orchestrator(
        self, controller, registry, client, locks
    ):
        server = await _server(registry, locks, status="running")

        with pytest.raises(InvalidTransitionError):
            await controller.apply(server, "key-123", "start")

        client.send_power.assert_not_awaited()

    async def test_stop_on_offline_does_not_call_orchestrator(
        self, controller, registry, client, locks
    ):
        server = await _server(registry, locks, status="offline")

        with pytest.raises(InvalidTransitionError):
            await controller.apply(server, "key-123", "stop")

        client.send_power.assert_not_awaited()

    async def test_transport_error_leaves_state_unchanged(
        self, controller, registry, client, locks
    ):
        server = await _server(registry, locks, status="running")
        client.send_power = AsyncMock(side_effect=TransportError("boom", status=500, body="oops"))

        with pytest.raises(TransportError) as exc_info:
            await controller.apply(server, "key-123", "stop")

        assert exc_info.value.status == 500
        assert (await registry.get_by_external_id("a1")).power_state == "running"

    @pytest.mark.parametrize("action", ["stop", "restart", "kill"])
    async def test_removal_during_send_is_not_overwritten(
        self, controller, registry, client, locks, action
    ):
        server = await _server(registry, locks, status="running")

        async def server_disappears(*_args):
            await reconcile(registry, 7, [], locks)

        client.send_power = AsyncMock(side_effect=server_disappears)

        result = await controller.apply(server, "key-123", action)

        assert result.power_state == PowerState.REMOVED.value
        assert (await registry.get_by_external_id("a1")).power_state == "removed"
        client.send_power.assert_awaited_once()

    async def test_invalid_action_is_validation_error(self, controller, registry, locks):
        server = await _server(registry, locks)
        with pytest.raises(ValidationError):
            await controller.apply(server, "key-123", "explode")


class TestSendCommand:
    async def test_forwards_command(self, controller, registry, client, locks):
        server = await _server(registry, locks)

        await controller.send_command(server, "key-123", "say hello")

        client.send_command.assert_awaited_once_with("a1", "key-123", "say hello")

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_command_rejected(self, controller, registry, client, locks, text):
        server = await _server(registry, locks)

        with pytest.raises(ValidationError):
            await controller.send_command(server, "key-123", text)

        client.send_command.assert_not_awaited()

    async def test_removed_server_rejected(self, controller, registry, client, locks):
        server = await _server(registry, locks)
        await registry.set_power_state(server.id, PowerState.REMOVED)

        with pytest.raises(InvalidTransitionError):
            await controller.send_command(server, "key-123", "list")
