"""
Custom Exception Classes for the PZEM Gateway Client

Hierarchical exception structure for error handling across the read path.
"""


class PzemError(Exception):
    """Base exception for all PZEM gateway errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(PzemError):
    """Configuration-related errors"""

    def __init__(self, message: str):
        super().__init__(f"Config Error: {message}", recoverable=False)


class ConnectError(PzemError):
    """Gateway could not be reached when building the client"""

    def __init__(self, host: str, port: int, reason: str = ""):
        self.host = host
        self.port = port
        self.reason = reason
        message = f"Can't connect to {host}:{port}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, recoverable=False)


class TransientError(PzemError):
    """Read failed in a way an immediate retry may fix (timeout, gateway hiccup)"""

    def __init__(self, message: str = "Transient Error reported"):
        super().__init__(message, recoverable=True)


class MiscError(PzemError):
    """Permanent failure for this call: bad request, desynced stream or dead socket"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Misc error: {detail}", recoverable=False)
