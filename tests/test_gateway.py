"""Tests for the Gateway facade.

Tests:
    - Example scenarios: echo routing, missing service, flaky service, recovery
    - Re-registration and unregistration
    - Per-service breaker configuration
    - Status reporting and shutdown
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from fm_gateway import (
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
    Gateway,
    GatewayError,
    GatewaySettings,
    HandlerError,
    ServiceNotFoundError,
    ServiceTimeoutError,
    ServiceValidationError,
)

from .conftest import EchoHandler, FailingHandler, SwitchableHandler


class TestExampleScenarios:
    @pytest.mark.asyncio
    async def test_echo_service(self, gateway, echo):
        gateway.register_service("UserService", echo)

        assert await gateway.handle("UserService", "ping") == "ping"
        assert echo.calls == 1

    @pytest.mark.asyncio
    async def test_missing_service(self, gateway):
        with pytest.raises(ServiceNotFoundError) as exc_info:
            await gateway.handle("ProductService", "x")
        assert exc_info.value.service_name == "ProductService"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_payload", [None, "", {"a": 1}, [1, 2], 0])
    async def test_missing_service_any_request(self, gateway, request_payload):
        with pytest.raises(ServiceNotFoundError):
            await gateway.handle("nonexistent", request_payload)

    @pytest.mark.asyncio
    async def test_flaky_service_opens_circuit(self, gateway, always_fails):
        gateway.register_service("FlakyService", always_fails)

        for _ in range(5):
            with pytest.raises(HandlerError) as exc_info:
                await gateway.handle("FlakyService", "x")
            assert exc_info.value.service_name == "FlakyService"

        for _ in range(3):
            with pytest.raises(CircuitOpenError) as exc_info:
                await gateway.handle("FlakyService", "x")
            assert exc_info.value.service_name == "FlakyService"

        assert always_fails.calls == 5

    @pytest.mark.asyncio
    async def test_recovery_after_cooldown(self, gateway, clock):
        handler = SwitchableHandler(failing=True)
        gateway.register_service("FlakyService", handler)
        for _ in range(5):
            with pytest.raises(HandlerError):
                await gateway.handle("FlakyService", "x")

        clock.advance(30)
        handler.failing = False

        assert await gateway.handle("FlakyService", "trial") == "trial"
        status = gateway.get_circuit_status("FlakyService")
        assert status.state == CircuitState.CLOSED
        assert status.consecutive_failures == 0

        assert await gateway.handle("FlakyService", "again") == "again"
        assert handler.calls == 7

    @pytest.mark.asyncio
    async def test_failed_trial_reopens(self, gateway, clock, always_fails):
        gateway.register_service("FlakyService", always_fails)
        for _ in range(5):
            with pytest.raises(HandlerError):
                await gateway.handle("FlakyService", "x")

        clock.advance(30)
        with pytest.raises(HandlerError):
            await gateway.handle("FlakyService", "trial")

        assert gateway.get_circuit_status("FlakyService").state == CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            await gateway.handle("FlakyService", "x")
        assert always_fails.calls == 6


class TestRegistration:
    @pytest.mark.asyncio
    async def test_reregister_uses_new_handler(self, gateway):
        h1, h2 = EchoHandler(), EchoHandler()
        gateway.register_service("OrderService", h1)
        gateway.register_service("OrderService", h2)

        await gateway.handle("OrderService", "x")

        assert h1.calls == 0
        assert h2.calls == 1

    @pytest.mark.asyncio
    async def test_unregister_then_handle(self, gateway, echo):
        gateway.register_service("UserService", echo)
        assert await gateway.handle("UserService", "ok") == "ok"

        assert gateway.unregister_service("UserService") is True
        with pytest.raises(ServiceNotFoundError):
            await gateway.handle("UserService", "ok")

    def test_unregister_unknown(self, gateway):
        assert gateway.unregister_service("Ghost") is False

    def test_register_empty_name(self, gateway, echo):
        with pytest.raises(ServiceValidationError):
            gateway.register_service("", echo)

    @pytest.mark.asyncio
    async def test_handle_empty_name(self, gateway):
        with pytest.raises(ServiceValidationError):
            await gateway.handle("", "x")

    @pytest.mark.asyncio
    async def test_reregister_resets_circuit(self, gateway, always_fails, echo):
        gateway.register_service("FlakyService", always_fails)
        for _ in range(5):
            with pytest.raises(HandlerError):
                await gateway.handle("FlakyService", "x")

        gateway.register_service("FlakyService", echo)

        assert await gateway.handle("FlakyService", "fixed") == "fixed"

    @pytest.mark.asyncio
    async def test_sync_callable_handler(self, gateway):
        gateway.register_service("Upper", lambda req: req.upper())
        assert await gateway.handle("Upper", "ping") == "PING"

    @pytest.mark.asyncio
    async def test_object_with_sync_execute(self, gateway):
        class Doubler:
            def execute(self, request):
                return request * 2

        gateway.register_service("Doubler", Doubler())
        assert await gateway.handle("Doubler", 21) == 42

    @pytest.mark.asyncio
    async def test_concurrent_registration_then_handle(self, gateway):
        names = [f"svc-{i}" for i in range(1000)]
        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(lambda n: gateway.register_service(n, EchoHandler()), names))

        assert len(gateway.list_services()) == 1000
        results = await asyncio.gather(*(gateway.handle(n, n) for n in names[:50]))
        assert results == names[:50]


class TestResilience:
    @pytest.mark.asyncio
    async def test_timeout_reported_and_counted(self, clock):
        settings = GatewaySettings(
            circuit_breaker=CircuitBreakerConfig(failure_threshold=2, handler_timeout=0.05)
        )
        gateway = Gateway(settings=settings, clock=clock)

        async def slow(request):
            await asyncio.sleep(5)

        gateway.register_service("SlowService", slow)
        for _ in range(2):
            with pytest.raises(ServiceTimeoutError) as exc_info:
                await gateway.handle("SlowService", "x")
            assert exc_info.value.service_name == "SlowService"

        with pytest.raises(CircuitOpenError):
            await gateway.handle("SlowService", "x")

    @pytest.mark.asyncio
    async def test_services_have_independent_circuits(self, gateway, always_fails, echo):
        gateway.register_service("FlakyService", always_fails)
        gateway.register_service("UserService", echo)
        for _ in range(5):
            with pytest.raises(HandlerError):
                await gateway.handle("FlakyService", "x")

        assert await gateway.handle("UserService", "ok") == "ok"
        assert gateway.get_circuit_status("UserService").state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_registration_breaker_config(self, gateway, always_fails):
        gateway.register_service(
            "Fragile", always_fails, breaker_config=CircuitBreakerConfig(failure_threshold=1)
        )
        with pytest.raises(HandlerError):
            await gateway.handle("Fragile", "x")
        with pytest.raises(CircuitOpenError):
            await gateway.handle("Fragile", "x")

    @pytest.mark.asyncio
    async def test_settings_service_override(self, clock, always_fails):
        settings = GatewaySettings(
            service_overrides={"Fragile": CircuitBreakerConfig(failure_threshold=2)}
        )
        gateway = Gateway(settings=settings, clock=clock)
        gateway.register_service("Fragile", always_fails)

        for _ in range(2):
            with pytest.raises(HandlerError):
                await gateway.handle("Fragile", "x")
        with pytest.raises(CircuitOpenError):
            await gateway.handle("Fragile", "x")

    @pytest.mark.asyncio
    async def test_errors_share_base_class(self, gateway, always_fails):
        gateway.register_service("FlakyService", always_fails)
        for name in ["", "Missing", "FlakyService"]:
            with pytest.raises(GatewayError):
                await gateway.handle(name, "x")

    @pytest.mark.asyncio
    async def test_reset_circuit(self, gateway, always_fails):
        gateway.register_service("FlakyService", always_fails)
        for _ in range(5):
            with pytest.raises(HandlerError):
                await gateway.handle("FlakyService", "x")

        gateway.reset_circuit("FlakyService")

        with pytest.raises(HandlerError):
            await gateway.handle("FlakyService", "x")
        assert always_fails.calls == 6


class TestStatusAndLifecycle:
    def test_status_of_uninvoked_service(self, gateway, echo):
        gateway.register_service("UserService", echo)
        status = gateway.get_circuit_status("UserService")
        assert status.state == CircuitState.CLOSED
        assert status.stats.total_requests == 0

    def test_status_of_unknown_service(self, gateway):
        with pytest.raises(ServiceNotFoundError):
            gateway.get_circuit_status("Ghost")
        with pytest.raises(ServiceNotFoundError):
            gateway.reset_circuit("Ghost")

    @pytest.mark.asyncio
    async def test_service_status_map(self, gateway, echo, always_fails):
        gateway.register_service("b-flaky", always_fails)
        gateway.register_service("a-user", echo)
        with pytest.raises(HandlerError):
            await gateway.handle("b-flaky", "x")

        status = gateway.get_service_status()

        assert list(status) == ["a-user", "b-flaky"]
        assert status["b-flaky"].consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_shutdown_clears_and_closes(self, gateway, echo):
        closed = []

        class ClosingHandler:
            async def execute(self, request):
                return request

            async def aclose(self):
                closed.append(True)

        gateway.register_service("UserService", echo)
        gateway.register_service("HttpBacked", ClosingHandler())

        await gateway.shutdown()

        assert gateway.list_services() == []
        assert closed == [True]
        with pytest.raises(ServiceNotFoundError):
            await gateway.handle("UserService", "x")

    @pytest.mark.asyncio
    async def test_async_context_manager(self, clock, echo):
        async with Gateway(clock=clock) as gateway:
            gateway.register_service("UserService", echo)
            assert await gateway.handle("UserService", 1) == 1
        assert gateway.list_services() == []
