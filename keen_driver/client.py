"""
Keen Analytics Driver

A Python driver for the Keen event analytics API.

Supports:
- Single event ingestion (Events API, one collection)
- Multi-collection event ingestion (Events API, batch body)
- Analysis queries (Query API: count, percentile, average, ...)

Authentication:
- Events API: write key in the Authorization header
- Query API: read key in the api_key query parameter (no Authorization header)

Every public call is exactly one HTTP exchange. Nothing is retried, cached or paginated.
"""

import os
import re
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Callable, Mapping, Sequence
from urllib.parse import quote

import requests

from .exceptions import (
    AuthenticationError,
    EncodingError,
    ConnectionError,
    TimeoutError,
    APIError,
    DecodingError,
)


DEFAULT_BASE_URL = "https://api.keen.io/3.0/projects/"

QUERY_TEMPLATE = (
    "/queries/{analysis_type}"
    "?event_collection={event_collection}"
    "&target_property={target_property}"
    "&group_by={group_by}"
)

REDACTED = "***REDACTED***"

_API_KEY_PARAM = re.compile(r"([?&]api_key=)[^&]*")

# Marks "no request body", so that a literal None event is still sent as JSON null
_NO_PAYLOAD = object()


# ============================================================================
# Timestamps
# ============================================================================


def timestamp(when: datetime) -> str:
    """
    Format a datetime the way Keen expects event timestamps.

    Aware datetimes are converted to UTC, naive ones are taken to be UTC already.

    Example:
        >>> timestamp(datetime(2021, 3, 4, 15, 0, 0, 250000))
        '2021-03-04T15:00:00.250Z'
    """
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc).replace(tzinfo=None)
    return when.isoformat(timespec="milliseconds") + "Z"


def keen_properties(when: Optional[datetime] = None) -> Dict[str, str]:
    """Build the "keen" properties block of an event (defaults to now)."""
    if when is None:
        when = datetime.now(timezone.utc)
    return {"timestamp": timestamp(when)}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# ============================================================================
# Query and Result Types
# ============================================================================


@dataclass(frozen=True)
class Filter:
    """Query filters, forwarded to the API as given"""
    percentile: str = ""
    timeframe: str = ""


@dataclass(frozen=True)
class Query:
    """
    One analysis request.

    Example:
        Query(
            analysis_type="percentile",
            event_collection="purchases",
            target_property="price",
            group_by="item.name",
            filters=Filter(percentile="90", timeframe="this_7_days"),
        )
    """
    analysis_type: str
    event_collection: str
    target_property: str = ""
    group_by: str = ""
    filters: Filter = field(default_factory=Filter)

    def to_path(self) -> str:
        """
        Render the query path and query string (without credentials).

        Filter values are appended only when set, so an unfiltered query
        renders exactly QUERY_TEMPLATE.
        """
        path = QUERY_TEMPLATE.format(
            analysis_type=_quote(self.analysis_type),
            event_collection=_quote(self.event_collection),
            target_property=_quote(self.target_property),
            group_by=_quote(self.group_by),
        )
        if self.filters.percentile:
            path += f"&percentile={_quote(self.filters.percentile)}"
        if self.filters.timeframe:
            path += f"&timeframe={_quote(self.filters.timeframe)}"
        return path


@dataclass
class ResultEntry:
    """One row of a list-shaped analysis result"""
    result: float
    user_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AnalysisResult:
    """
    Decoded Query API response.

    The shape of "result" depends on the analysis type and on group_by, so the
    body is kept as a generic JSON tree in `raw` and projected on demand:
    - value: single-number results, e.g. {"result": 42}
    - entries: list results, e.g. {"result": [{"result": 42.5, "userId": "u1"}]}

    A projection that does not fit the returned shape raises DecodingError.
    """
    raw: Any
    query: Optional[Query] = None

    @property
    def value(self) -> float:
        result = self._result_field()
        if not _is_number(result):
            raise DecodingError(
                "Analysis result is not a single number",
                details={"result_type": type(result).__name__}
            )
        return float(result)

    @property
    def entries(self) -> List[ResultEntry]:
        items = self._result_field()
        if not isinstance(items, list):
            raise DecodingError(
                "Analysis result is not a list",
                details={"result_type": type(items).__name__}
            )

        entries = []
        for index, item in enumerate(items):
            if not isinstance(item, dict) or not _is_number(item.get("result")):
                raise DecodingError(
                    f"Analysis result entry {index} has no numeric 'result'",
                    details={"index": index, "entry": item}
                )
            user_id = item.get("userId")
            if user_id is not None and not isinstance(user_id, str):
                raise DecodingError(
                    f"Analysis result entry {index} has a non-string 'userId'",
                    details={"index": index, "entry": item}
                )
            entries.append(ResultEntry(
                result=float(item["result"]),
                user_id=user_id,
                fields={k: v for k, v in item.items() if k not in ("result", "userId")},
            ))
        return entries

    def sorted_entries(self, reverse: bool = False) -> List[ResultEntry]:
        """Entries ordered by their numeric result (ascending unless reverse)."""
        return sorted(self.entries, key=lambda entry: entry.result, reverse=reverse)

    def _result_field(self) -> Any:
        if not isinstance(self.raw, dict) or "result" not in self.raw:
            raise DecodingError(
                "Query API response has no 'result' field",
                details={"response_type": type(self.raw).__name__}
            )
        return self.raw["result"]


@dataclass
class RequestDiagnostic:
    """What happened during one HTTP exchange, handed to the diagnostic hook"""
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[str] = None
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    elapsed: Optional[float] = None
    error: Optional[Exception] = None


# ============================================================================
# Main Driver Implementation
# ============================================================================


class KeenDriver:
    """
    Keen Analytics Driver.

    Holds the project credentials and one requests.Session. Keeps no per-call
    state, so one instance can be shared across threads.

    Example:
        client = KeenDriver.from_env()
        client.add_event("purchases", {"price": 9.99, "keen": keen_properties()})
        result = client.get_analysis(Query(analysis_type="count", event_collection="purchases"))
        print(result.value)
        client.close()
    """

    def __init__(
        self,
        api_key: str,
        write_key: str,
        project_id: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[float] = None,
        debug: bool = False,
        diagnostic_hook: Optional[Callable[[RequestDiagnostic], None]] = None,
        redact_credentials: bool = True,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Keen driver.

        No network activity and no credential validation happens here: bad
        credentials surface as APIError on the first call.

        Args:
            api_key: Read (master) key, used for queries
            write_key: Write key, used for event ingestion
            project_id: Keen project identifier
            base_url: API base URL (default: https://api.keen.io/3.0/projects/)
            timeout: Request timeout in seconds (default: None, no timeout)
            debug: Enable debug logging (default: False)
            diagnostic_hook: Called once per HTTP exchange with a RequestDiagnostic
            redact_credentials: Hide keys in logs and diagnostics (default: True)
            session: Shared requests.Session to use instead of a new one
        """
        self.driver_name = "KeenDriver"
        self.api_key = api_key
        self.write_key = write_key
        self.project_id = project_id
        self.base_url = base_url or DEFAULT_BASE_URL

        self.timeout = timeout
        self.debug = debug
        self.diagnostic_hook = diagnostic_hook
        self.redact_credentials = redact_credentials

        self.logger = logging.getLogger(__name__)
        if debug:
            self.logger.setLevel(logging.DEBUG)
        else:
            self.logger.setLevel(logging.WARNING)

        self._owns_session = session is None
        self.session = session if session is not None else self._create_session()

        if self.debug:
            self.logger.debug(f"[Init] {self.driver_name} ready for project {self.project_id}")

    @classmethod
    def from_env(cls, **kwargs) -> "KeenDriver":
        """
        Create driver instance from environment variables.

        Environment variables:
            KEEN_PROJECT_ID: Project identifier (required)
            KEEN_READ_KEY: Read/master key (needed for queries)
            KEEN_WRITE_KEY: Write key (needed for event ingestion)
            KEEN_API_URL: API base URL (default: https://api.keen.io/3.0/projects/)
            KEEN_TIMEOUT: Request timeout in seconds (default: no timeout)
            KEEN_DEBUG: Enable debug logging (default: False)

        Keyword arguments override the environment.

        Raises:
            AuthenticationError: If the project id or both keys are missing
        """
        settings: Dict[str, Any] = {
            "api_key": os.getenv("KEEN_READ_KEY", ""),
            "write_key": os.getenv("KEEN_WRITE_KEY", ""),
            "project_id": os.getenv("KEEN_PROJECT_ID", ""),
            "base_url": os.getenv("KEEN_API_URL", DEFAULT_BASE_URL),
            "debug": os.getenv("KEEN_DEBUG", "false").lower() == "true",
        }
        timeout = os.getenv("KEEN_TIMEOUT")
        if timeout:
            settings["timeout"] = float(timeout)
        settings.update(kwargs)

        if not settings["project_id"]:
            raise AuthenticationError(
                "Missing Keen project id. Set KEEN_PROJECT_ID environment variable.",
                details={"env_vars": ["KEEN_PROJECT_ID"]}
            )
        if not settings["api_key"] and not settings["write_key"]:
            raise AuthenticationError(
                "Missing Keen credentials. Set KEEN_READ_KEY and/or KEEN_WRITE_KEY.",
                details={
                    "env_vars": ["KEEN_READ_KEY", "KEEN_WRITE_KEY"],
                    "suggestion": "Set the keys in your .env file"
                }
            )

        return cls(**settings)

    # ========================================================================
    # Write Operations
    # ========================================================================

    def add_event(self, collection: str, event: Any) -> None:
        """
        Record one event in a collection (Events API).

        Args:
            collection: Event collection name
            event: Any JSON-serializable value; datetimes are formatted with timestamp()

        Raises:
            EncodingError: If the event cannot be serialized (nothing is sent)
            ConnectionError: If the API cannot be reached
            APIError: If the API answers with a non-2xx status

        Example:
            client.add_event("purchases", {"item": "golden gadget", "price": 25.50})
        """
        if self.debug:
            self.logger.debug(f"[Events API] POST collection={collection}")

        self._request(
            "POST",
            f"/events/{_quote(collection)}",
            event,
            context=f"adding event to collection '{collection}'"
        )

    def add_events(self, events: Mapping[str, Sequence[Any]]) -> None:
        """
        Record events in several collections with one request (Events API).

        Args:
            events: Collection name -> events for that collection, order preserved

        Raises:
            EncodingError, ConnectionError, APIError: As for add_event(). The whole
            batch is one exchange, so a non-2xx answer fails the whole call.

        Example:
            client.add_events({
                "signups": [{"username": "ada"}, {"username": "grace"}],
                "purchases": [{"price": 10}],
            })
        """
        if self.debug:
            counts = {name: len(items) for name, items in events.items()}
            self.logger.debug(f"[Events API] POST batch collections={counts}")

        self._request("POST", "/events", events, context="adding events batch")

    # ========================================================================
    # Read Operations
    # ========================================================================

    def get_analysis(self, query: Query) -> AnalysisResult:
        """
        Run an analysis query (Query API).

        Args:
            query: Query describing analysis type, collection, target property,
                group_by and filters

        Returns:
            AnalysisResult wrapping the decoded JSON body

        Raises:
            ConnectionError: If the API cannot be reached
            APIError: If the API answers with a non-2xx status
            DecodingError: If the body is not valid JSON

        Example:
            result = client.get_analysis(Query(
                analysis_type="count",
                event_collection="clicks",
                group_by="page",
            ))
            for entry in result.sorted_entries(reverse=True):
                print(entry.fields["page"], entry.result)

        CRITICAL:
        - The read key travels as the api_key query parameter, not as a header
        """
        path = query.to_path()
        if self.debug:
            self.logger.debug(f"[Query API] GET {path}")

        response = self._request(
            "GET",
            path,
            context=f"running {query.analysis_type} analysis on '{query.event_collection}'"
        )

        try:
            data = response.json()
        except ValueError as e:
            raise DecodingError(
                "Query API returned invalid JSON",
                details={"error": str(e), "body": response.text[:500]}
            ) from e

        return AnalysisResult(raw=data, query=query)

    # ========================================================================
    # Utility Methods
    # ========================================================================

    def close(self):
        """
        Close the session (only if the driver created it).

        Example:
            with KeenDriver.from_env() as client:
                client.add_event("logins", {"user": "ada"})
        """
        if self.session and self._owns_session:
            self.session.close()
            if self.debug:
                self.logger.debug("Session closed")

    def __enter__(self) -> "KeenDriver":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # ========================================================================
    # Internal Methods
    # ========================================================================

    def _create_session(self) -> requests.Session:
        """
        Create the HTTP session.

        Only headers common to every request go here. Content-Type and
        Authorization are per-request: query calls must carry no Authorization.
        """
        session = requests.Session()
        session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"{self.driver_name}-Python-Driver/1.0.0",
        })
        return session

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{self.project_id}{path}"

    def _build_request(self, method: str, path: str, payload: Any = _NO_PAYLOAD) -> requests.Request:
        """
        Build the single outgoing request for a call.

        - payload given: JSON body, Content-Type/Content-Length, Authorization: write key
        - no payload, GET: read key appended as api_key query parameter, no Authorization
        - no payload, other methods: Authorization: read key
        """
        url = self._url(path)

        if payload is not _NO_PAYLOAD:
            body = self._encode(payload)
            headers = {
                "Content-Type": "application/json",
                "Content-Length": str(len(body)),
                "Authorization": self.write_key,
            }
            return requests.Request(method, url, headers=headers, data=body, auth=_no_auth)

        if method.upper() == "GET":
            separator = "&" if "?" in url else "?"
            return requests.Request(method, f"{url}{separator}api_key={_quote(self.api_key)}", auth=_no_auth)

        return requests.Request(method, url, headers={"Authorization": self.api_key}, auth=_no_auth)

    def _encode(self, payload: Any) -> bytes:
        try:
            return json.dumps(payload, default=_json_default, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodingError(
                f"Payload is not JSON serializable: {e}",
                details={"payload_type": type(payload).__name__}
            ) from e

    def _request(
        self,
        method: str,
        path: str,
        payload: Any = _NO_PAYLOAD,
        context: str = ""
    ) -> requests.Response:
        """
        Send exactly one request and return the 2xx response.

        Raises:
            EncodingError, TimeoutError, ConnectionError, APIError
        """
        prepared = self.session.prepare_request(self._build_request(method, path, payload))
        # proxies, CA bundle and cert from the session and environment, as Session.request applies them
        settings = self.session.merge_environment_settings(prepared.url, {}, None, None, None)

        diagnostic = RequestDiagnostic(
            method=prepared.method,
            url=self._redact_url(prepared.url),
            headers=self._redact_headers(prepared.headers),
            body=prepared.body.decode("utf-8") if isinstance(prepared.body, bytes) else prepared.body,
        )

        started = time.monotonic()
        try:
            response = self.session.send(prepared, timeout=self.timeout, **settings)
        except requests.exceptions.Timeout as e:
            diagnostic.elapsed = time.monotonic() - started
            diagnostic.error = e
            self._emit(diagnostic)
            raise TimeoutError(
                "Keen API request timed out",
                details={"timeout": self.timeout, "url": diagnostic.url, "context": context}
            ) from e
        except requests.exceptions.RequestException as e:
            diagnostic.elapsed = time.monotonic() - started
            diagnostic.error = e
            self._emit(diagnostic)
            raise ConnectionError(
                f"Cannot reach Keen API ({type(e).__name__})",
                details={"url": diagnostic.url, "context": context}
            ) from e

        diagnostic.elapsed = time.monotonic() - started
        diagnostic.status_code = response.status_code
        diagnostic.response_body = response.text
        self._emit(diagnostic)

        if not 200 <= response.status_code < 300:
            self._handle_api_error(response, diagnostic, context)

        return response

    def _handle_api_error(self, response: requests.Response, diagnostic: RequestDiagnostic, context: str = "") -> None:
        """
        Convert a non-2xx response into APIError.

        The raw body is the message; no error code is parsed out of it.
        """
        raise APIError(
            response.text,
            details={
                "status_code": response.status_code,
                "method": diagnostic.method,
                "url": diagnostic.url,
                "context": context,
            }
        )

    def _emit(self, diagnostic: RequestDiagnostic) -> None:
        if self.debug:
            self.logger.debug(
                f"[HTTP] {diagnostic.method} {diagnostic.url} "
                f"status={diagnostic.status_code} elapsed={diagnostic.elapsed:.3f}s"
            )
        if self.diagnostic_hook is not None:
            self.diagnostic_hook(diagnostic)

    def _redact_url(self, url: str) -> str:
        if not self.redact_credentials:
            return url
        return _API_KEY_PARAM.sub(lambda match: match.group(1) + REDACTED, url)

    def _redact_headers(self, headers: Mapping[str, str]) -> Dict[str, str]:
        redacted = dict(headers)
        if self.redact_credentials:
            for name in redacted:
                if name.lower() == "authorization":
                    redacted[name] = REDACTED
        return redacted


def _no_auth(request: requests.PreparedRequest) -> requests.PreparedRequest:
    # Explicit auth keeps Session.prepare_request from adding netrc credentials
    return request


def _quote(value: Any) -> str:
    return quote(str(value), safe="")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ============================================================================
# Alias
# ============================================================================

# Allow importing as KeenDriver or KeenClient
KeenClient = KeenDriver
