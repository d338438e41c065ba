"""Hive Omnia API client."""
from __future__ import annotations

import asyncio
import functools
import json
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import aiohttp
from aiohttp import ClientError, ClientTimeout
import voluptuous as vol

from .const import (
    CALLER,
    CONF_BASE,
    CONF_BASE_URL,
    CONF_ENSURE_ASCII,
    CONF_HEADERS,
    CONF_TIMEOUT,
    DEFAULT_BASE_URL,
    DEFAULT_CHANNEL_METRICS,
    DEFAULT_HEADERS,
    DEFAULT_TIMEOUT,
    HEADER_ACCESS_TOKEN,
    KEY_CHANNELS,
    KEY_NODES,
    KEY_SESSIONS,
    LOOKBACK_DAYS,
    PATH_CHANNELS,
    PATH_NODES,
    PATH_SESSIONS,
    RATE,
    TIME_UNIT,
    WINDOW_DAYS,
)
from .exceptions import (
    HiveAuthError,
    HiveConfigError,
    HiveConnectionError,
    HiveDataError,
    HiveResponseError,
    HiveTimeoutError,
)

_LOGGER = logging.getLogger(__name__)

MS_PER_DAY = 24 * 60 * 60 * 1000

_DEFAULT_CHANNEL_RE = re.compile(r"^(?:%s)@" % "|".join(DEFAULT_CHANNEL_METRICS))

OPTIONS_SCHEMA = vol.Schema(
    {
        vol.Exclusive(CONF_BASE, "base_url"): vol.Url(),
        vol.Exclusive(CONF_BASE_URL, "base_url"): vol.Url(),
        vol.Optional(CONF_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_HEADERS): {str: str},
        vol.Optional(CONF_ENSURE_ASCII): bool,
    }
)


class Operation(Enum):
    """Aggregate applied to the samples of a channel values query."""

    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"


@dataclass(frozen=True)
class HiveConfig:
    """Client settings, fixed once the client is built.

    ``headers`` are sent on every request. The access token is added on top of
    them by the client and never stored here.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    headers: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    ensure_ascii: bool = False

    def __post_init__(self) -> None:
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> HiveConfig:
        """
        Build a config from a plain options mapping merged over the defaults.

        Args:
            options: Any of ``base`` (or ``base_url``), ``timeout``, ``headers``
                and ``ensure_ascii``. Headers are merged key by key over the
                default headers.

        Raises:
            HiveConfigError: If an option is unknown or has an invalid value.
        """
        try:
            validated = OPTIONS_SCHEMA(dict(options or {}))
        except vol.Invalid as e:
            raise HiveConfigError(f"Invalid options: {e}") from e

        return cls(
            base_url=validated.get(CONF_BASE_URL, validated.get(CONF_BASE, DEFAULT_BASE_URL)),
            timeout=validated.get(CONF_TIMEOUT, DEFAULT_TIMEOUT),
            headers={**DEFAULT_HEADERS, **validated.get(CONF_HEADERS, {})},
            ensure_ascii=validated.get(CONF_ENSURE_ASCII, False),
        )


@dataclass(frozen=True)
class HiveCredentials:
    """Session issued by ``auth/sessions``."""

    session_id: str = field(repr=False)
    user_id: Optional[str] = None
    username: Optional[str] = None
    ext_customer_level: Optional[int] = None
    latest_supported_api_version: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_session(cls, session: Mapping[str, Any]) -> HiveCredentials:
        """Build credentials from one entry of the ``sessions`` array."""
        if not isinstance(session, Mapping):
            raise HiveAuthError("Invalid session in authentication response")

        # id and sessionId carry the same value
        session_id = session.get("sessionId") or session.get("id")
        if not session_id:
            raise HiveAuthError("No session id in authentication response")

        return cls(
            session_id=session_id,
            user_id=session.get("userId"),
            username=session.get("username"),
            ext_customer_level=session.get("extCustomerLevel"),
            latest_supported_api_version=session.get("latestSupportedApiVersion"),
            raw=session,
        )


class HiveChannel():
    """Hive Channel object - a time series of one metric of one node"""

    def __init__(
        self,
        id: str,
        supported_operations: Sequence[str] = (),
    ) -> None:
        """Initialize the HiveChannel."""
        self.id = id
        self.supported_operations = list(supported_operations)

    @property
    def metric(self) -> str:
        """Metric name, the part of the id before ``@``."""
        return self.id.partition("@")[0]

    @property
    def device_id(self) -> str:
        """Node id, the part of the id after ``@``."""
        return self.id.partition("@")[2]

    def __str__(self):
        return f"[HiveChannel: '{self.id}' {self.supported_operations}]"


@dataclass(frozen=True)
class HiveResponse:
    """Uniform result of every client operation.

    ``data`` is the object stored under the operation's key in ``body``
    (``sessions``, ``nodes`` or ``channels``), not a copy of it.
    """

    status: int
    text: Optional[str]
    headers: Mapping[str, str]
    body: Any
    raw: aiohttp.ClientResponse = field(repr=False)
    data: Any
    credentials: Optional[HiveCredentials]


def parse_channels(items: Sequence[Mapping[str, Any]]) -> List[HiveChannel]:
    """
    Build channel objects from the ``channels`` array of a response.

    Raises:
        HiveDataError: If ``items`` is not an array or an entry is not a
            channel object.
    """
    if not isinstance(items, (list, tuple)):
        raise HiveDataError(f"Invalid channels array: {items!r}")

    channels = []
    for item in items:
        if not isinstance(item, Mapping) or not item.get("id"):
            raise HiveDataError(f"Invalid channel entry: {item!r}")
        channels.append(
            HiveChannel(
                id=item["id"],
                supported_operations=item.get("supportedOperations", []),
            )
        )
    return channels


def default_channel_ids(items: Sequence[Mapping[str, Any]]) -> List[str]:
    """Return the temperature, battery, targetTemperature and signal channel ids, first occurrence only."""
    ids: List[str] = []
    for channel in parse_channels(items):
        if _DEFAULT_CHANNEL_RE.match(channel.id) and channel.id not in ids:
            ids.append(channel.id)
    return ids


def parse_channel_values(
    items: Sequence[Mapping[str, Any]],
) -> Dict[str, List[Tuple[datetime, Any]]]:
    """
    Parse the ``channels`` array of a channel values response.

    Args:
        items: Channel entries, each with an ``id`` and a ``values`` mapping of
            epoch milliseconds to readings.

    Returns:
        Readings per channel id as ``(UTC datetime, value)`` pairs, oldest first.

    Raises:
        HiveDataError: If an entry or a timestamp can't be read.
    """
    try:
        readings = {}
        for item in items:
            points = [
                (datetime.fromtimestamp(int(stamp) / 1000.0, tz=timezone.utc), value)
                for stamp, value in (item.get("values") or {}).items()
            ]
            points.sort(key=lambda point: point[0])
            _LOGGER.debug("Parsed %d values for channel %s", len(points), item["id"])
            readings[item["id"]] = points
        return readings

    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise HiveDataError(f"Error parsing channel values: {e}") from e


def _to_millis(value: datetime) -> int:
    # naive datetimes are taken as local time, like datetime.timestamp()
    return int(value.timestamp() * 1000)


class HiveAPI:
    """Class to interact with the Hive Omnia API.

    Not safe for concurrent use while :meth:`authenticate` runs; pass
    ``credentials`` to an operation to send a given token regardless of the
    client's current one.
    """

    def __init__(self, config: Optional[HiveConfig] = None, **options: Any) -> None:
        """Initialize the Hive API client from a config or from plain options."""
        if config is not None and options:
            raise HiveConfigError("Pass either a HiveConfig or options, not both")
        self.config = config or HiveConfig.from_options(options)
        self.credentials: Optional[HiveCredentials] = None
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> HiveAPI:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _headers(self) -> Dict[str, str]:
        headers = dict(self.config.headers)
        if self.credentials is not None:
            headers[HEADER_ACCESS_TOKEN] = self.credentials.session_id
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create an aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers(),
                timeout=ClientTimeout(total=self.config.timeout),
                json_serialize=functools.partial(
                    json.dumps, ensure_ascii=self.config.ensure_ascii
                ),
            )
            _LOGGER.debug("Created new aiohttp session")
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        key: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
        credentials: Optional[HiveCredentials] = None,
    ) -> HiveResponse:
        """
        Send one request and wrap the JSON response.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            key: Field of the response body exposed as ``data``.
            params: Query string parameters.
            json_body: Request body, encoded as JSON.
            credentials: Token to send instead of the client's current one.

        Raises:
            HiveConnectionError: If no response was received.
            HiveTimeoutError: If the request timed out.
            HiveAuthError: If the API answered 401 or 403.
            HiveResponseError: If the API answered any other non-2xx status.
            HiveDataError: If the body is not JSON or lacks ``key``.
        """
        url = f"{self.config.base_url}{path}"
        headers = None
        if credentials is not None:
            headers = {HEADER_ACCESS_TOKEN: credentials.session_id}

        _LOGGER.debug("Sending %s request to: %s", method, url)

        try:
            session = await self._get_session()
            async with session.request(
                method, url, params=params, json=json_body, headers=headers
            ) as response:
                _LOGGER.debug("%s %s response status: %s", method, path, response.status)

                # bodies come as application/vnd.alertme.zoo-6.5+json
                if not 200 <= response.status < 300:
                    try:
                        error_body = await response.json(content_type=None)
                    except ValueError:
                        error_body = await response.text(errors="replace")
                    _LOGGER.warning(
                        "HTTP error %d %s for %s %s",
                        response.status, response.reason, method, path,
                    )
                    error_cls = HiveAuthError if response.status in (401, 403) else HiveResponseError
                    raise error_cls(
                        f"{method} {path} failed with HTTP status: "
                        f"{response.status} {response.reason}",
                        status=response.status,
                        reason=response.reason,
                        body=error_body,
                    )

                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise HiveDataError(f"Invalid JSON response: {e}") from e

                if not isinstance(body, dict) or key not in body:
                    raise HiveDataError(f"No '{key}' in response to {method} {path}")

                return HiveResponse(
                    status=response.status,
                    text=response.reason,
                    headers=response.headers,
                    body=body,
                    raw=response,
                    data=body[key],
                    credentials=credentials or self.credentials,
                )

        except asyncio.TimeoutError as e:
            raise HiveTimeoutError(f"Timeout during {method} {path}") from e
        except ClientError as e:
            raise HiveConnectionError(f"Connection error during {method} {path}: {e}") from e

    async def authenticate(self, username: str, password: str) -> HiveResponse:
        """
        Authenticate a user and keep the session for later requests.

        Every request sent after this one carries the session id in the
        ``X-Omnia-Access-Token`` header.

        Args:
            username: The user's username (email address).
            password: The user's password.

        Returns:
            The response, with ``data`` set to the ``sessions`` array and
            ``credentials`` set to the new session.

        Raises:
            HiveAuthError: If the credentials are rejected.
            HiveConnectionError: If there's a connection error.
        """
        payload = {
            KEY_SESSIONS: [{
                "username": username,
                "password": password,
                "caller": CALLER,
            }],
        }

        response = await self._request("POST", PATH_SESSIONS, KEY_SESSIONS, json_body=payload)

        sessions = response.data
        if not isinstance(sessions, list) or not sessions:
            raise HiveAuthError(
                "No session in authentication response",
                status=response.status,
                reason=response.text,
                body=response.body,
            )

        self.credentials = HiveCredentials.from_session(sessions[0])

        # headers are fixed per session, so the next request opens a new one
        await self.close()
        _LOGGER.debug("Successfully authenticated, session will be rebuilt with access token")

        return replace(response, credentials=self.credentials)

    async def list_devices(self, credentials: Optional[HiveCredentials] = None) -> HiveResponse:
        """List nodes (devices) for the current session."""
        return await self._request("GET", PATH_NODES, KEY_NODES, credentials=credentials)

    async def get_channels(self, credentials: Optional[HiveCredentials] = None) -> HiveResponse:
        """Retrieve the channels (time series) supported by each device."""
        return await self._request("GET", PATH_CHANNELS, KEY_CHANNELS, credentials=credentials)

    async def get_channel_values(
        self,
        channel_id: Union[str, Sequence[str], None] = None,
        *,
        operation: Union[Operation, str] = Operation.AVG,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        credentials: Optional[HiveCredentials] = None,
    ) -> HiveResponse:
        """
        Retrieve values of one or more channels.

        Args:
            channel_id: A channel id, a list of ids joined as given, or None
                for every temperature, battery, targetTemperature and signal
                channel of the account.
            operation: Aggregate applied to each sample, AVG, MIN or MAX in any case.
            start: First instant, seven days ago by default.
            end: Last instant, ten days after ``start`` by default.
            credentials: Token to send instead of the client's current one.

        Returns:
            The response, with ``data`` set to the ``channels`` array.

        Raises:
            HiveDataError: If no channel id is given and none matches, or the
                operation is not supported.
            HiveError: As for every other request.
        """
        if isinstance(operation, str):
            operation = operation.upper()
        try:
            operation = Operation(operation)
        except ValueError as e:
            raise HiveDataError(f"Unsupported operation: {operation!r}") from e

        if channel_id is None:
            channels = await self.get_channels(credentials=credentials)
            channel_id = default_channel_ids(channels.data)
            if not channel_id:
                raise HiveDataError("No temperature, battery or signal channel available")

        ids = channel_id if isinstance(channel_id, str) else ",".join(channel_id)
        if not ids:
            raise HiveDataError("No channel id given")

        if start is None:
            start = datetime.now(timezone.utc) - timedelta(days=LOOKBACK_DAYS)
        start_ms = _to_millis(start)
        end_ms = _to_millis(end) if end is not None else start_ms + WINDOW_DAYS * MS_PER_DAY

        params = {
            "start": start_ms,  # unix timestamp in milliseconds
            "end": end_ms,
            "timeUnit": TIME_UNIT,
            "rate": RATE,
            "operation": operation.value,
        }

        _LOGGER.debug("Requesting values of channels: %s", ids)

        return await self._request(
            "GET", f"{PATH_CHANNELS}/{ids}", KEY_CHANNELS, params=params, credentials=credentials
        )
