"""HTTP transport with API-key query signing and bounded timeouts."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from pycotrip._constants import USER_AGENT
from pycotrip._redact import redact_for_log, redact_url
from pycotrip.config import CotripConfig
from pycotrip.exceptions import CotripDecodeError, CotripTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the feed fetchers.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str) -> Any:
        ...


class HttpTransport:
    """GET-only JSON transport for the COtrip API."""

    def __init__(self, config: CotripConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def build_url(self, endpoint: str) -> str:
        return f"{self._config.base_url}{endpoint}"

    async def get_json(self, endpoint: str) -> Any:
        """Fetch ``{base_url}{endpoint}?apiKey=...`` and decode the JSON body.

        Raises
        ------
        CotripTransportError
            On network errors, timeouts and non-2xx statuses. The body of a
            failed response is never parsed.
        CotripDecodeError
            When a 2xx body is not valid JSON.
        """
        url = self.build_url(endpoint)
        params = {"apiKey": self._config.api_key}
        headers = {"accept": "application/json", "user-agent": USER_AGENT}

        _logger.debug("GET %s", redact_url(f"{url}?apiKey={self._config.api_key}"))

        try:
            async with self._http.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise CotripTransportError(
                        f"HTTP {resp.status} from {endpoint}: {resp.reason or ''}".rstrip(": "),
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
                text = await resp.text()
        except CotripTransportError:
            raise
        except TimeoutError as exc:
            raise CotripTransportError(
                f"Request to {endpoint} timed out after {self._config.request_timeout:g}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise CotripTransportError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CotripDecodeError(
                f"Invalid JSON from {endpoint}: {redact_for_log(text, max_string=200)}",
                endpoint=endpoint,
            ) from exc

        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("GET %s decoded=%s", endpoint, redact_for_log(body, max_items=3))
        return body
