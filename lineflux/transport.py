"""
HTTP Write Transport

Posts line protocol to the database write endpoint:

    POST {host}/api/v2/write?org=<org>&bucket=<database>&precision=<ns|us|ms|s>
    Authorization: Token <token>

Retries, redirects, TLS and proxy settings are left to aiohttp defaults.
"""

import asyncio
import json
import logging
from typing import Dict, Optional

import aiohttp

from .config import ClientConfig
from .exceptions import ServerError, TransportError
from .point import Precision
from .version import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"lineflux/{__version__}"
WRITE_PATH = "/api/v2/write"


def _parse_retry_after(value: Optional[str]) -> int:
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


def _error_message(body: bytes, content_type: str, reason: str) -> str:
    """Human readable message of an error response"""
    message = ""
    if content_type == "application/json" and body:
        try:
            payload = json.loads(body)
        except ValueError as e:
            message = f"cannot decode error response: {e}"
        else:
            if isinstance(payload, dict):
                message = payload.get("message") or ""
                if not message and not payload.get("code"):
                    # InfluxDB 1.x error shape
                    message = payload.get("error") or ""
    if not message:
        message = body.decode("utf-8", errors="replace") if body else reason
    return message


class HttpWriteTransport:
    """
    Sends line protocol over HTTP with a shared aiohttp session.

    The session is created lazily on first send and closed by close().
    """

    def __init__(self, config: ClientConfig, headers: Optional[Dict[str, str]] = None):
        self.config = config
        self.headers = dict(headers or {})
        self._session: Optional[aiohttp.ClientSession] = None
        self.write_url = config.host.rstrip("/") + WRITE_PATH

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _request_headers(self) -> Dict[str, str]:
        headers = dict(self.headers)
        headers["Content-Type"] = "text/plain; charset=utf-8"
        headers["User-Agent"] = USER_AGENT
        if self.config.token:
            headers["Authorization"] = f"Token {self.config.token}"
        return headers

    async def send(self, database: str, data: bytes, precision: Optional[Precision] = None):
        """
        Write line protocol to a database.

        Raises:
            ServerError: server responded with a non-2xx status
            TransportError: request could not be completed
        """
        options = self.config.write_options
        params = {
            "org": self.config.organization,
            "bucket": database,
            "precision": (precision or options.precision).value,
        }

        session = await self._get_session()
        try:
            async with session.post(
                self.write_url,
                params=params,
                data=data,
                headers=self._request_headers()
            ) as response:
                if 200 <= response.status < 300:
                    logger.debug(f"Wrote {len(data)} bytes to '{database}' (HTTP {response.status})")
                    return

                response_body = await response.read()
                message = _error_message(response_body, response.content_type, response.reason or "")
                raise ServerError(
                    message,
                    status_code=response.status,
                    retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                    headers=dict(response.headers),
                )
        except aiohttp.ClientError as e:
            logger.warning(f"Network error writing to '{database}': {e}")
            raise TransportError(f"error calling {self.write_url}: {e}") from e
        except asyncio.TimeoutError as e:
            # ClientTimeout expiry is not an aiohttp.ClientError
            logger.warning(f"Timeout writing to '{database}' after {self.config.timeout_seconds}s")
            raise TransportError(f"error calling {self.write_url}: timeout") from e

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
