"""
Lineflux error taxonomy

Value and encoding errors are raised synchronously to the caller.
Transport errors raised inside the asynchronous writer are reported through
the write_failed callback instead, since the original caller has returned.
"""

from typing import Dict, Optional


class LinefluxError(Exception):
    """Base class for all lineflux errors"""


class InvalidValueError(LinefluxError, ValueError):
    """A native value cannot be represented in line protocol (NaN/Inf, bad UTF-8, out of range)"""


class EncodingError(LinefluxError, ValueError):
    """A point cannot be encoded (missing measurement or fields, invalid keys)"""


class UnsupportedTypeError(LinefluxError, TypeError):
    """A columnar type in a query response has no native mapping"""

    def __init__(self, type_name: str):
        super().__init__(f"not supported data type: {type_name}")
        self.type_name = type_name


class TransportError(LinefluxError):
    """Failure while handing bytes to the database"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ServerError(TransportError):
    """Error response returned by the database server"""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        retry_after: int = 0,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.headers = headers or {}

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.status_code}: {self.message}"
        return self.message


class WriteExpiredError(TransportError):
    """A batch expired before it could be sent"""

    def __init__(self, message: str = "max time exceeded"):
        super().__init__(message)


class QueryCancelledError(LinefluxError):
    """Query iteration was cancelled by the caller"""


class WriterClosedError(LinefluxError):
    """Write attempted on a closed PointsWriter"""
