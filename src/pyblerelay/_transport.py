"""HTTP transport for the event ingestion endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp

from pyblerelay._constants import USER_AGENT
from pyblerelay._redact import redact_for_log
from pyblerelay.config import RelayConfig
from pyblerelay.exceptions import RelayTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the delivery client.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def post_json(self, url: str, payload: Any) -> None:
        ...


class HttpTransport:
    """JSON-over-HTTP transport; any 2xx response counts as accepted."""

    def __init__(self, config: RelayConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def post_json(self, url: str, payload: Any) -> None:
        """POST *payload* as JSON to *url*.

        Raises :class:`RelayTransportError` on network errors, timeouts and
        non-2xx responses. The response body is not interpreted.
        """
        headers = {
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        body = json.dumps(payload, separators=(",", ":"))

        if _logger.isEnabledFor(logging.DEBUG):
            _logger.debug("POST %s payload=%s", url, redact_for_log(payload))

        try:
            async with self._http.post(url, data=body, headers=headers, timeout=self._timeout) as resp:
                if not 200 <= resp.status < 300:
                    text = await resp.text()
                    raise RelayTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
                # Drain so the connection can be reused.
                await resp.read()
        except RelayTransportError:
            raise
        except asyncio.TimeoutError as exc:
            raise RelayTransportError(f"Request to {url} timed out", endpoint=url) from exc
        except aiohttp.ClientError as exc:
            raise RelayTransportError(f"Request to {url} failed: {exc}", endpoint=url) from exc

        _logger.debug("POST %s accepted", url)
