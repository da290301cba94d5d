"""
Keen Analytics Python Driver

A small driver for the Keen event analytics API.

Example:
    Basic usage:

    >>> from keen_driver import KeenDriver, Query, Filter, keen_properties
    >>>
    >>> # Create driver from environment
    >>> client = KeenDriver.from_env()
    >>>
    >>> # Record one event
    >>> client.add_event("purchases", {
    ...     "item": "golden gadget",
    ...     "price": 25.50,
    ...     "keen": keen_properties(),
    ... })
    >>>
    >>> # Record events in several collections at once
    >>> client.add_events({
    ...     "signups": [{"username": "ada"}, {"username": "grace"}],
    ...     "purchases": [{"item": "widget", "price": 10}],
    ... })
    >>>
    >>> # Run an analysis
    >>> result = client.get_analysis(Query(
    ...     analysis_type="percentile",
    ...     event_collection="purchases",
    ...     target_property="price",
    ...     group_by="userId",
    ...     filters=Filter(percentile="90", timeframe="this_7_days"),
    ... ))
    >>> for entry in result.sorted_entries(reverse=True):
    ...     print(entry.user_id, entry.result)
    >>>
    >>> client.close()

Authentication:
    Set environment variables:
    - KEEN_PROJECT_ID: Project identifier (required)
    - KEEN_READ_KEY: Read/master key, used for queries
    - KEEN_WRITE_KEY: Write key, used for event ingestion
    - KEEN_API_URL: API base URL (default: https://api.keen.io/3.0/projects/)
    - KEEN_TIMEOUT: Request timeout in seconds (default: no timeout)
    - KEEN_DEBUG: "true" or "false" (default: "false")

Not supported:
    Retries, rate-limit handling, pagination and response caching. Every call
    is one HTTP exchange and every failure is raised to the caller.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .client import (
    KeenDriver,
    KeenClient,
    Query,
    Filter,
    AnalysisResult,
    ResultEntry,
    RequestDiagnostic,
    timestamp,
    keen_properties,
    DEFAULT_BASE_URL,
    QUERY_TEMPLATE,
    REDACTED,
)

from .exceptions import (
    DriverError,
    AuthenticationError,
    EncodingError,
    ConnectionError,
    TimeoutError,
    APIError,
    DecodingError,
)

__all__ = [
    # Driver classes
    "KeenDriver",
    "KeenClient",
    # Data classes
    "Query",
    "Filter",
    "AnalysisResult",
    "ResultEntry",
    "RequestDiagnostic",
    # Helpers
    "timestamp",
    "keen_properties",
    "DEFAULT_BASE_URL",
    "QUERY_TEMPLATE",
    "REDACTED",
    # Exceptions
    "DriverError",
    "AuthenticationError",
    "EncodingError",
    "ConnectionError",
    "TimeoutError",
    "APIError",
    "DecodingError",
]
