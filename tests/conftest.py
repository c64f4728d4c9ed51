"""Pytest configuration and fixtures for PZEM gateway tests."""

from __future__ import annotations

import pytest

from pzem_gateway.device.modbus_client import GatewaySession, PzemClient
from pzem_gateway.device.retry import RetryPolicy

from tests.doubles.fake_transport import FakeTransport

# Measurement block: 230.0 V, 1.000 A, 50.0 W, 12000 Wh, 50.0 Hz, PF 0.95
SAMPLE_BLOCK = [2300, 0, 1000, 0, 500, 0, 12000, 500, 95]


def block_registers(words: list[int]) -> dict[int, int]:
    return {address: value for address, value in enumerate(words)}


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Gateway with meters on slaves 1 and 101."""
    return FakeTransport(
        registers={
            1: block_registers(SAMPLE_BLOCK),
            101: block_registers([2301, 500, 0, 1150, 0, 7, 1, 499, 100]),
        }
    )


@pytest.fixture
def client(fake_transport: FakeTransport) -> PzemClient:
    """Client on the fake gateway with zero backoff so retries run instantly."""
    return PzemClient(
        GatewaySession(transport=fake_transport),
        host="10.0.0.5",
        port=4196,
        read_timeout_ms=200,
        retry_policy=RetryPolicy(base_delay_ms=0, max_retries=1),
    )
