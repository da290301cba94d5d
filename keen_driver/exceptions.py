"""
Keen Driver Exception Hierarchy

Structured exceptions for clear error handling by callers.
Each exception carries the error message plus a details dict for programmatic handling.
"""

from typing import Dict, Any, Optional


class DriverError(Exception):
    """Base exception for all driver errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        """Return descriptive error message"""
        return f"{self.__class__.__name__}: {self.message}"


class AuthenticationError(DriverError):
    """
    Missing credentials when building a driver from the environment.

    Caller should:
    - Set KEEN_PROJECT_ID
    - Set KEEN_READ_KEY and/or KEEN_WRITE_KEY
    """
    pass


class EncodingError(DriverError):
    """
    Payload could not be serialized to JSON.

    Raised before any request is sent.
    """
    pass


class ConnectionError(DriverError):
    """
    Cannot reach the API (DNS failure, connection refused, broken response).

    The underlying requests exception is chained as __cause__.
    """
    pass


class TimeoutError(ConnectionError):
    """
    Request timed out.

    Only possible when a timeout is configured on the driver.
    """
    pass


class APIError(DriverError):
    """
    API answered with a status outside 200-299.

    The message is the raw response body. details["status_code"] holds the status,
    no distinction is made between 4xx and 5xx.
    """

    @property
    def status_code(self) -> Optional[int]:
        return self.details.get("status_code")


class DecodingError(DriverError):
    """
    Response body is not valid JSON, or does not have the shape a projection expects.

    Caller should:
    - Inspect AnalysisResult.raw for query types with a different result shape
    """
    pass
