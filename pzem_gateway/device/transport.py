"""
Modbus Transport

The minimal capability the client needs from a Modbus TCP session, and the
pymodbus-backed implementation used against real gateways.

Failures below this layer are reported as TransportFailure, carrying the
transport's message text and, when the failure came from the socket, the OS
errno. The error classifier decides what they mean.
"""

from abc import ABC, abstractmethod

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException

from pzem_gateway.common.logging_setup import get_service_logger
from .register_map import MIN_SLAVE_ID

logger = get_service_logger("device.transport")

FC_WRITE_SINGLE_REGISTER = 0x06

# Function number reported in read error texts. The meter documents its
# measurement block as function 3 and the classifier matches that text;
# the request itself is pymodbus' read_input_registers.
FC_REPORTED_READ = 0x03

# Modbus exception codes -> description, as rendered in error messages
EXCEPTION_DESCRIPTIONS = {
    0x01: "Illegal function",
    0x02: "Illegal data address",
    0x03: "Illegal data value",
    0x04: "Server device failure",
    0x05: "Acknowledge",
    0x06: "Server device busy",
    0x08: "Memory parity error",
    0x0A: "Gateway path unavailable",
    0x0B: "Gateway target device failed to respond",
}


class TransportFailure(Exception):
    """Raw failure reported by a Modbus transport"""

    def __init__(self, message: str, os_errno: int | None = None):
        self.os_errno = os_errno
        super().__init__(message)


def describe_exception_response(function_code: int, exception_code: int | None) -> str:
    """Render a Modbus exception response as 'Modbus function N: description'"""
    description = EXCEPTION_DESCRIPTIONS.get(
        exception_code, f"Unknown exception code {exception_code}"
    )
    return f"Modbus function {function_code}: {description}"


def _find_os_errno(exc: BaseException) -> int | None:
    """Walk the exception chain for the errno of an underlying OSError"""
    seen = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, OSError) and current.errno is not None:
            return current.errno
        current = current.__cause__ or current.__context__
    return None


class ModbusTransport(ABC):
    """Capability interface over one Modbus session"""

    @abstractmethod
    async def connect(self) -> bool:
        """Open the session; True when connected"""

    @abstractmethod
    def close(self) -> None:
        """Close the session"""

    @abstractmethod
    def set_slave(self, slave_id: int) -> None:
        """Target subsequent requests at slave_id"""

    @abstractmethod
    async def read_input_registers(self, address: int, count: int) -> list[int]:
        """Read count input registers starting at address"""

    @abstractmethod
    async def write_single_register(self, address: int, value: int) -> None:
        """Write one holding register"""


class PymodbusTransport(ModbusTransport):
    """
    Modbus TCP session backed by pymodbus.

    pymodbus addresses each request to a device id; the "current slave" is
    kept here and passed along with every request.
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        timeout: float = 3.0,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.slave_id = MIN_SLAVE_ID

        # Retrying is the client's job, not pymodbus'
        self._client = AsyncModbusTcpClient(
            host=host,
            port=port,
            timeout=timeout,
            retries=0,
        )

    @property
    def is_connected(self) -> bool:
        return self._client.connected

    async def connect(self) -> bool:
        """Establish connection to the gateway"""
        try:
            await self._client.connect()
        except (OSError, ModbusException) as e:
            logger.error(f"Connection error to {self.host}:{self.port}: {e}")
            return False

        if self._client.connected:
            logger.debug(f"Connected to Modbus gateway at {self.host}:{self.port}")
        else:
            logger.warning(f"Failed to connect to Modbus gateway at {self.host}:{self.port}")
        return self._client.connected

    def close(self) -> None:
        self._client.close()
        logger.debug(f"Disconnected from {self.host}:{self.port}")

    def set_slave(self, slave_id: int) -> None:
        self.slave_id = slave_id

    async def read_input_registers(self, address: int, count: int) -> list[int]:
        try:
            response = await self._client.read_input_registers(
                address=address,
                count=count,
                device_id=self.slave_id,
            )
        except OSError as e:
            raise TransportFailure(str(e), os_errno=e.errno) from e
        except ModbusException as e:
            raise TransportFailure(str(e), os_errno=_find_os_errno(e)) from e

        if response.isError():
            raise TransportFailure(
                describe_exception_response(
                    FC_REPORTED_READ,
                    getattr(response, "exception_code", None),
                )
            )

        return list(response.registers)

    async def write_single_register(self, address: int, value: int) -> None:
        try:
            response = await self._client.write_register(
                address=address,
                value=value,
                device_id=self.slave_id,
            )
        except OSError as e:
            raise TransportFailure(str(e), os_errno=e.errno) from e
        except ModbusException as e:
            raise TransportFailure(str(e), os_errno=_find_os_errno(e)) from e

        if response.isError():
            raise TransportFailure(
                describe_exception_response(
                    FC_WRITE_SINGLE_REGISTER,
                    getattr(response, "exception_code", None),
                )
            )
