"""Tests for the pymodbus transport adapter."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from pymodbus.exceptions import ConnectionException, ModbusIOException

from pzem_gateway.device.error_classifier import classify_failure
from pzem_gateway.common.exceptions import MiscError, TransientError
from pzem_gateway.device.modbus_client import GatewaySession, PzemClient
from pzem_gateway.device.register_map import (
    ERROR_GATEWAY_DEVICE_FAILED_TO_RESPOND,
    ERROR_ILLEGAL_DATA_VALUE,
)
from pzem_gateway.device.retry import RetryPolicy
from pzem_gateway.device.transport import (
    PymodbusTransport,
    TransportFailure,
    describe_exception_response,
)


def ok_response(registers):
    response = MagicMock()
    response.isError.return_value = False
    response.registers = registers
    return response


def exception_response(exception_code):
    response = MagicMock()
    response.isError.return_value = True
    response.exception_code = exception_code
    return response


@pytest_asyncio.fixture
async def transport():
    transport = PymodbusTransport("127.0.0.1", 5020, timeout=1.0)
    transport._client = MagicMock()
    transport._client.read_input_registers = AsyncMock()
    transport._client.write_register = AsyncMock()
    return transport


class TestDescribeExceptionResponse:
    def test_matches_classifier_texts_for_function_3(self):
        assert describe_exception_response(3, 0x03) == ERROR_ILLEGAL_DATA_VALUE
        assert describe_exception_response(3, 0x0B) == ERROR_GATEWAY_DEVICE_FAILED_TO_RESPOND

    def test_unknown_code(self):
        assert describe_exception_response(4, 0x7F) == (
            "Modbus function 4: Unknown exception code 127"
        )


class TestPymodbusTransport:
    @pytest.mark.asyncio
    async def test_read_passes_selected_slave(self, transport):
        transport._client.read_input_registers.return_value = ok_response([1, 2, 3])

        transport.set_slave(17)
        data = await transport.read_input_registers(0, 3)

        assert data == [1, 2, 3]
        transport._client.read_input_registers.assert_awaited_once_with(
            address=0, count=3, device_id=17
        )

    @pytest.mark.asyncio
    async def test_read_exception_response_reported_as_function_3(self, transport):
        transport._client.read_input_registers.return_value = exception_response(0x0B)

        with pytest.raises(TransportFailure) as exc_info:
            await transport.read_input_registers(0, 9)

        assert str(exc_info.value) == ERROR_GATEWAY_DEVICE_FAILED_TO_RESPOND
        assert exc_info.value.os_errno is None

    @pytest.mark.asyncio
    async def test_os_error_carries_errno(self, transport):
        transport._client.read_input_registers.side_effect = BrokenPipeError(32, "Broken pipe")

        with pytest.raises(TransportFailure) as exc_info:
            await transport.read_input_registers(0, 9)

        assert exc_info.value.os_errno == 32
        assert isinstance(classify_failure(exc_info.value), MiscError)

    @pytest.mark.asyncio
    async def test_modbus_exception_without_os_cause(self, transport):
        transport._client.read_input_registers.side_effect = ModbusIOException("No response")

        with pytest.raises(TransportFailure) as exc_info:
            await transport.read_input_registers(0, 9)

        assert exc_info.value.os_errno is None
        assert isinstance(classify_failure(exc_info.value), TransientError)

    @pytest.mark.asyncio
    async def test_modbus_exception_with_os_cause(self, transport):
        error = ConnectionException("connection lost")
        error.__cause__ = ConnectionResetError(104, "Connection reset by peer")
        transport._client.read_input_registers.side_effect = error

        with pytest.raises(TransportFailure) as exc_info:
            await transport.read_input_registers(0, 9)

        assert exc_info.value.os_errno == 104

    @pytest.mark.asyncio
    async def test_write_single_register(self, transport):
        transport._client.write_register.return_value = ok_response([])

        transport.set_slave(1)
        await transport.write_single_register(0x2, 42)

        transport._client.write_register.assert_awaited_once_with(
            address=0x2, value=42, device_id=1
        )

    @pytest.mark.asyncio
    async def test_write_exception_response(self, transport):
        transport._client.write_register.return_value = exception_response(0x03)

        with pytest.raises(TransportFailure, match="Modbus function 6: Illegal data value"):
            await transport.write_single_register(0x2, 42)

    @pytest.mark.asyncio
    async def test_connect_failure_returns_false(self, transport):
        transport._client.connect = AsyncMock(side_effect=ConnectionRefusedError(111, "refused"))

        assert await transport.connect() is False

    @pytest.mark.asyncio
    async def test_connect_success(self, transport):
        transport._client.connect = AsyncMock(return_value=True)
        transport._client.connected = True

        assert await transport.connect() is True
        assert transport.is_connected


class TestExceptionResponsesThroughClient:
    """Meter exception responses classified end to end via the pymodbus adapter"""

    @pytest.fixture
    def client(self, transport):
        return PzemClient(
            GatewaySession(transport=transport),
            retry_policy=RetryPolicy(base_delay_ms=0),
        )

    @pytest.mark.asyncio
    async def test_illegal_data_value_is_permanent(self, client, transport):
        transport._client.read_input_registers.return_value = exception_response(0x03)

        with pytest.raises(MiscError) as exc_info:
            await client.retry_read_input_registers(0, 9, slave_id=1)

        assert exc_info.value.detail == ERROR_ILLEGAL_DATA_VALUE
        assert transport._client.read_input_registers.await_count == 1

    @pytest.mark.asyncio
    async def test_gateway_no_response_is_retried(self, client, transport):
        transport._client.read_input_registers.return_value = exception_response(0x0B)

        with pytest.raises(TransientError):
            await client.retry_read_input_registers(0, 9, slave_id=1)

        assert transport._client.read_input_registers.await_count == 2

    @pytest.mark.asyncio
    async def test_get_data_reports_illegal_data_value(self, client, transport):
        transport._client.read_input_registers.return_value = exception_response(0x03)

        with pytest.raises(MiscError) as exc_info:
            await client.get_data(1)

        assert exc_info.value.detail == ERROR_ILLEGAL_DATA_VALUE
        transport._client.read_input_registers.assert_awaited_once_with(
            address=0, count=9, device_id=1
        )
