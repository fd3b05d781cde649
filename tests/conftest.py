"""Shared fixtures for gateway tests."""

import asyncio

import pytest

from fm_gateway import CircuitBreakerConfig, Gateway, GatewaySettings


class ManualClock:
    """Monotonic clock advanced by hand so cooldowns can be simulated."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EchoHandler:
    """Returns the request unchanged and counts invocations."""

    def __init__(self):
        self.calls = 0

    async def execute(self, request):
        self.calls += 1
        return request


class FailingHandler:
    """Always raises, counting invocations."""

    def __init__(self, exc: Exception = None):
        self.calls = 0
        self.exc = exc or RuntimeError("backend unavailable")

    async def execute(self, request):
        self.calls += 1
        raise self.exc


class SwitchableHandler:
    """Fails while ``failing`` is set, otherwise echoes."""

    def __init__(self, failing: bool = True):
        self.failing = failing
        self.calls = 0

    async def execute(self, request):
        self.calls += 1
        if self.failing:
            raise ConnectionError("connection refused")
        return request


class BlockingHandler:
    """Waits on an event before responding."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def execute(self, request):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return request


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def breaker_config():
    return CircuitBreakerConfig(
        failure_threshold=5,
        rolling_window=60.0,
        cooldown=30.0,
        handler_timeout=1.0,
    )


@pytest.fixture
def gateway(clock, breaker_config):
    return Gateway(settings=GatewaySettings(circuit_breaker=breaker_config), clock=clock)


@pytest.fixture
def echo():
    return EchoHandler()


@pytest.fixture
def always_fails():
    return FailingHandler()
