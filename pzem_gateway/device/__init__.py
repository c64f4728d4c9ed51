"""
Device Layer - PZEM meters behind a Modbus TCP gateway

Responsibilities:
- Own the shared gateway session (one lock, many clones)
- Select the target meter on the shared session
- Timed reads with failure classification and one jittered retry
- Decode the measurement block into physical quantities
"""

from .decoder import PzemReading, combine_words, decode_reading
from .error_classifier import classify_failure, is_transient
from .modbus_client import GatewaySession, PzemClient, validate_slave_id
from .retry import RetryPolicy
from .transport import ModbusTransport, PymodbusTransport, TransportFailure

__all__ = [
    "PzemClient",
    "GatewaySession",
    "PzemReading",
    "RetryPolicy",
    "ModbusTransport",
    "PymodbusTransport",
    "TransportFailure",
    "classify_failure",
    "is_transient",
    "combine_words",
    "decode_reading",
    "validate_slave_id",
]
