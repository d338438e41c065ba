"""
Async client for the Hive (British Gas Connected Homes) Omnia REST API.

Authenticates a user, lists devices (nodes) and telemetry channels, and
fetches channel time series.
"""
from __future__ import annotations

from .api import (
    HiveAPI,
    HiveChannel,
    HiveConfig,
    HiveCredentials,
    HiveResponse,
    Operation,
    default_channel_ids,
    parse_channel_values,
    parse_channels,
)
from .exceptions import (
    HiveAuthError,
    HiveConfigError,
    HiveConnectionError,
    HiveDataError,
    HiveError,
    HiveResponseError,
    HiveTimeoutError,
)

__all__ = [
    "HiveAPI",
    "HiveChannel",
    "HiveConfig",
    "HiveCredentials",
    "HiveResponse",
    "Operation",
    "default_channel_ids",
    "parse_channel_values",
    "parse_channels",
    "HiveAuthError",
    "HiveConfigError",
    "HiveConnectionError",
    "HiveDataError",
    "HiveError",
    "HiveResponseError",
    "HiveTimeoutError",
]
