"""Exceptions for the Hive Omnia API client."""
from __future__ import annotations

from typing import Any, Optional


class HiveError(Exception):
    """Base class for Hive errors."""


class HiveConfigError(HiveError):
    """Configuration error."""


class HiveConnectionError(HiveError):
    """Connection error, no response was received."""


class HiveTimeoutError(HiveConnectionError):
    """Request timeout error."""


class HiveResponseError(HiveError):
    """The API answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason
        self.body = body


class HiveAuthError(HiveResponseError):
    """Authentication error."""


class HiveDataError(HiveError):
    """Data parsing error."""
