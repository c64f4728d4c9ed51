"""
Error Classifier

Buckets a raw transport failure by whether an immediate retry could help.

Link and gateway hiccups are transient. Malformed requests, a desynchronized
response stream and a dead socket are permanent for the call; the message is
kept so the caller can decide what to do (skip the meter, reconnect, alert).

Classification matches the transport's message text for failures that carry
no OS error code. The texts in register_map are the compatibility contract.
"""

from pzem_gateway.common.exceptions import MiscError, PzemError, TransientError
from pzem_gateway.common.logging_setup import get_service_logger
from .register_map import (
    ERROR_GATEWAY_DEVICE_FAILED_TO_RESPOND,
    ERROR_ILLEGAL_DATA_VALUE,
    ERROR_INVALID_RESPONSE_HEADER,
    ERROR_OUT_OF_ORDER_RESPONSE,
    OS_ERROR_BROKEN_PIPE,
)

logger = get_service_logger("device.classifier")


def os_error_code(exc: BaseException) -> int | None:
    """OS errno carried by a transport failure, if any"""
    code = getattr(exc, "os_errno", None)
    if code is None and isinstance(exc, OSError):
        code = exc.errno
    return code


def classify_failure(exc: BaseException) -> PzemError:
    """
    Map a raw transport failure to TransientError or MiscError.

    Returns the error instance; the caller raises it.
    """
    code = os_error_code(exc)
    message = str(exc)

    if code is None:
        if message == ERROR_ILLEGAL_DATA_VALUE:
            return MiscError(ERROR_ILLEGAL_DATA_VALUE)

        if message == ERROR_GATEWAY_DEVICE_FAILED_TO_RESPOND:
            return TransientError()

        # pymodbus drops mismatched transaction ids itself and reports no
        # response, so only transports that surface the header text reach this
        if ERROR_INVALID_RESPONSE_HEADER in message:
            return MiscError(ERROR_OUT_OF_ORDER_RESPONSE)

        logger.debug(f"Non-os specific error: {message}")
        return TransientError()

    if code == OS_ERROR_BROKEN_PIPE:
        return MiscError(message)

    logger.debug(f"OS-specific error (errno={code}): {message}")
    return TransientError()


def is_transient(error: BaseException) -> bool:
    """Retry predicate: only transient failures are worth another attempt"""
    return isinstance(error, TransientError)
