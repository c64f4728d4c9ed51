"""
PZEM Gateway Client

Async client for PZEM energy meters behind one Modbus TCP gateway.
Many meters share the gateway's single session; each is addressed by its
slave id, and every request runs under one lock so requests never interleave
on the wire.
"""

import asyncio
from dataclasses import dataclass, field

from pzem_gateway.common.config import ClientConfig
from pzem_gateway.common.exceptions import (
    ConnectError,
    MiscError,
    PzemError,
    TransientError,
)
from pzem_gateway.common.logging_setup import (
    get_service_logger,
    log_device_read,
    log_device_write,
)
from .decoder import PzemReading, combine_words, decode_reading
from .error_classifier import classify_failure
from .register_map import (
    DEFAULT_READ_TIMEOUT_MS,
    MAX_SLAVE_ID,
    MEASUREMENT_START,
    MEASUREMENT_WORDS,
    MIN_SLAVE_ID,
    REG_SLAVE_ADDRESS,
)
from .retry import RetryPolicy
from .transport import ModbusTransport, PymodbusTransport, TransportFailure

logger = get_service_logger("device.client")


def validate_slave_id(slave_id: int) -> int:
    """Slave ids are 8-bit and 0 is broadcast, so 1-255"""
    if not isinstance(slave_id, int) or not MIN_SLAVE_ID <= slave_id <= MAX_SLAVE_ID:
        raise ValueError(
            f"Slave id must be {MIN_SLAVE_ID}-{MAX_SLAVE_ID}, got {slave_id!r}"
        )
    return slave_id


def _as_misc(error: PzemError) -> MiscError:
    if isinstance(error, MiscError):
        return error
    return MiscError(error.message)


@dataclass
class GatewaySession:
    """The one open transport, shared by every clone of a client"""
    transport: ModbusTransport
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    selected_slave: int | None = None
    closed: bool = False


class PzemClient:
    """
    Handle on a shared gateway session.

    Handles:
    - Slave selection on the shared session (last selection wins)
    - Timed input-register reads, classified and retried once on transient errors
    - Decoding the measurement block into a PzemReading
    - Rewriting a meter's bus address (never retried)

    clone() returns another handle on the same session and lock, for use from
    concurrent tasks.
    """

    def __init__(
        self,
        session: GatewaySession,
        host: str = "",
        port: int = 502,
        read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
        retry_policy: RetryPolicy | None = None,
    ):
        self._session = session
        self.host = host
        self.port = port
        self.read_timeout_ms = read_timeout_ms
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int = 502,
        connect_timeout_s: float = 3.0,
        read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
        retry_policy: RetryPolicy | None = None,
        transport: ModbusTransport | None = None,
    ) -> "PzemClient":
        """
        Open the gateway session.

        Raises:
            ConnectError: Gateway unreachable. Not retried.
        """
        if transport is None:
            transport = PymodbusTransport(host=host, port=port, timeout=connect_timeout_s)

        if not await transport.connect():
            transport.close()
            raise ConnectError(host, port)

        logger.info(f"Connected to PZEM gateway at {host}:{port}")
        return cls(
            GatewaySession(transport=transport),
            host=host,
            port=port,
            read_timeout_ms=read_timeout_ms,
            retry_policy=retry_policy,
        )

    @classmethod
    async def from_config(
        cls,
        config: ClientConfig,
        transport: ModbusTransport | None = None,
    ) -> "PzemClient":
        """Open a session using a loaded ClientConfig"""
        return await cls.connect(
            host=config.gateway.host,
            port=config.gateway.port,
            connect_timeout_s=config.gateway.connect_timeout_s,
            read_timeout_ms=config.retry.read_timeout_ms,
            retry_policy=RetryPolicy.from_settings(config.retry),
            transport=transport,
        )

    def clone(self) -> "PzemClient":
        """Another handle on the same session"""
        return PzemClient(
            self._session,
            host=self.host,
            port=self.port,
            read_timeout_ms=self.read_timeout_ms,
            retry_policy=self.retry_policy,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def transport(self) -> ModbusTransport:
        return self._session.transport

    @property
    def selected_slave(self) -> int | None:
        return self._session.selected_slave

    @property
    def is_closed(self) -> bool:
        return self._session.closed

    async def close(self) -> None:
        """Close the session for every clone"""
        async with self._session.lock:
            if self._session.closed:
                return
            self._session.transport.close()
            self._session.closed = True
            logger.info(f"Closed PZEM gateway session {self.address}")

    async def __aenter__(self) -> "PzemClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Slave selection
    # ------------------------------------------------------------------

    def _select_locked(self, slave_id: int) -> None:
        """Caller must hold the session lock"""
        self._session.transport.set_slave(slave_id)
        self._session.selected_slave = slave_id

    async def select_slave(self, slave_id: int) -> None:
        """Target subsequent requests on the shared session at slave_id"""
        validate_slave_id(slave_id)
        logger.debug(f"Selecting slave {slave_id}")
        async with self._session.lock:
            if self._session.closed:
                raise MiscError(f"Connection to {self.address} is closed")
            self._select_locked(slave_id)

    # ------------------------------------------------------------------
    # Register reads
    # ------------------------------------------------------------------

    async def read_input_registers(
        self,
        address: int,
        count: int,
        slave_id: int | None = None,
    ) -> list[int]:
        """
        One timed read attempt.

        With slave_id given, the slave is selected inside the same critical
        section as the read, so a concurrent caller cannot retarget the
        session in between.

        Raises:
            TransientError: Timeout or a failure a retry may fix
            MiscError: Permanent failure for this call
        """
        if slave_id is not None:
            validate_slave_id(slave_id)

        async with self._session.lock:
            if self._session.closed:
                raise MiscError(f"Connection to {self.address} is closed")

            if slave_id is not None:
                self._select_locked(slave_id)
            elif self._session.selected_slave is None:
                raise MiscError("No slave selected")

            try:
                data = await asyncio.wait_for(
                    self._session.transport.read_input_registers(address, count),
                    timeout=self.read_timeout_ms / 1000,
                )
            except asyncio.TimeoutError as e:
                logger.debug(
                    f"Timeout attempting read of {count} register(s) at {address:#x} "
                    f"(slave {self._session.selected_slave})"
                )
                raise TransientError(f"Read timed out after {self.read_timeout_ms}ms") from e
            except (TransportFailure, OSError) as e:
                raise classify_failure(e) from e

        logger.debug(f"Read {address:#x}+{count}: {[hex(w) for w in data]}")
        if len(data) < count:
            raise MiscError(f"Short response: expected {count} registers, got {len(data)}")
        return data

    async def retry_read_input_registers(
        self,
        address: int,
        count: int,
        slave_id: int | None = None,
    ) -> list[int]:
        """read_input_registers under the retry policy (transient errors only)"""
        return await self.retry_policy.run(
            lambda: self.read_input_registers(address, count, slave_id=slave_id)
        )

    # ------------------------------------------------------------------
    # Typed reads
    # ------------------------------------------------------------------

    async def get_u16(self, slave_id: int, address: int) -> int:
        """Select slave_id and read one register"""
        try:
            data = await self.retry_read_input_registers(address, 1, slave_id=slave_id)
        except PzemError as e:
            log_device_read(logger.logger, slave_id, hex(address), str(e), success=False)
            raise _as_misc(e) from e

        log_device_read(logger.logger, slave_id, hex(address), data[0])
        return data[0]

    async def get_u32(self, slave_id: int, address: int) -> int:
        """
        Read a 32-bit value (low word first) from two registers.

        Does not select slave_id: reads whichever slave was selected last on
        the session. Callers select first.
        With nothing selected yet it fails rather than guess a target.
        """
        try:
            data = await self.retry_read_input_registers(address, 2)
        except PzemError as e:
            raise _as_misc(e) from e

        return combine_words(data[0], data[1])

    async def get_data(self, slave_id: int) -> PzemReading:
        """Select slave_id and read its full measurement block"""
        try:
            data = await self.retry_read_input_registers(
                MEASUREMENT_START, MEASUREMENT_WORDS, slave_id=slave_id
            )
        except PzemError as e:
            log_device_read(logger.logger, slave_id, "measurements", str(e), success=False)
            raise _as_misc(e) from e

        try:
            reading = decode_reading(data)
        except ValueError as e:
            raise MiscError(str(e)) from e

        log_device_read(logger.logger, slave_id, "measurements", reading)
        return reading

    # ------------------------------------------------------------------
    # Administrative writes
    # ------------------------------------------------------------------

    async def set_unit_slave_address(self, new_slave_id: int) -> None:
        """
        Write new_slave_id into the bus-address register of the currently
        selected meter.

        Single attempt: after a lost response the meter may already answer on
        the new address, so a repeat could land on a different device.

        Raises:
            MiscError: Any failure, timeouts included
        """
        validate_slave_id(new_slave_id)

        async with self._session.lock:
            if self._session.closed:
                raise MiscError(f"Connection to {self.address} is closed")

            current = self._session.selected_slave
            if current is None:
                raise MiscError("No slave selected")
            try:
                await asyncio.wait_for(
                    self._session.transport.write_single_register(
                        REG_SLAVE_ADDRESS, new_slave_id
                    ),
                    timeout=self.read_timeout_ms / 1000,
                )
            except asyncio.TimeoutError as e:
                log_device_write(logger.logger, current, "slave_address", new_slave_id, success=False)
                raise MiscError(f"Write timed out after {self.read_timeout_ms}ms") from e
            except (TransportFailure, OSError) as e:
                log_device_write(logger.logger, current, "slave_address", new_slave_id, success=False)
                raise MiscError(str(e)) from e

        log_device_write(logger.logger, current, "slave_address", new_slave_id)
