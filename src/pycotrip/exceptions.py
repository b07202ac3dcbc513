"""Custom exception hierarchy for pycotrip.

None of these escape the fetch, normalize or refresh boundaries; they are
raised inside the transport and converted to outcome values by the feed
fetchers.
"""

from __future__ import annotations


class CotripError(Exception):
    """Base exception for all pycotrip errors."""


class CotripConfigError(CotripError):
    """Invalid or missing configuration."""


class CotripTransportError(CotripError):
    """HTTP-level failure (network, timeout, non-2xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class CotripDecodeError(CotripError):
    """Response body was not the expected JSON envelope."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)
