from __future__ import annotations

import asyncio
from collections.abc import Iterable
import logging
from typing import Any

import aiohttp

from .backend.sanitize import redact_text
from .codecs.ha_codec import decode_entity_state
from .const import REST_TIMEOUT
from .domain.config import ConnectionConfiguration
from .domain.state import EntityStateSnapshot
from .errors import (
    HomeAssistantClientError,
    HTTPFailureError,
    InvalidConfigurationError,
    NetworkFailureError,
)

_LOGGER = logging.getLogger(__name__)

# Toggle to preview bodies in debug logs (redacted). Leave False by default.
API_LOG_PREVIEW = False


class RESTClient:
    """Thin async client for the Home Assistant states API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        configuration: ConnectionConfiguration,
        *,
        timeout: float = REST_TIMEOUT,
    ) -> None:
        """Initialise the REST client with the shared session."""
        self._session = session
        self._configuration = configuration
        self._timeout = timeout

    @property
    def configuration(self) -> ConnectionConfiguration:
        return self._configuration

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._configuration.token}",
            "Accept": "application/json",
        }

    def _redact(self, text: str) -> str:
        return redact_text(text, secrets=(self._configuration.token,))

    async def _get_text(self, url: str) -> str:
        """Perform an authenticated GET and return the body of a 200 response.

        Errors are logged WITHOUT secrets.
        """

        _LOGGER.debug("HTTP GET %s", url)
        try:
            async with self._session.get(
                url,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                try:
                    body_text = await resp.text()
                except (aiohttp.ClientError, UnicodeDecodeError):
                    body_text = "<no body>"

                if resp.status != 200:
                    _LOGGER.debug(
                        "HTTP error GET %s -> %s; body=%s",
                        url,
                        resp.status,
                        self._redact(body_text)[:200],
                    )
                    raise HTTPFailureError(resp.status, url)
                if API_LOG_PREVIEW:
                    _LOGGER.debug(
                        "HTTP %s -> %s, body[0:200]=%r",
                        url,
                        resp.status,
                        self._redact(body_text)[:200],
                    )
                return body_text
        except HTTPFailureError:
            raise
        except asyncio.CancelledError:
            raise
        except TimeoutError as err:
            raise NetworkFailureError(f"GET {url} timed out") from err
        except aiohttp.ClientError as err:
            raise NetworkFailureError(
                f"GET {url} failed: {self._redact(str(err))}"
            ) from err

    async def fetch_entity_state(self, entity_id: str) -> EntityStateSnapshot:
        """Return the current state of ``entity_id``."""

        if not self._configuration.is_complete:
            msg = "host and token are required"
            raise InvalidConfigurationError(msg)
        url = self._configuration.make_rest_states_url(entity_id)
        body = await self._get_text(url)
        snapshot = decode_entity_state(body)
        _LOGGER.debug("Read %s state: %s", snapshot.entity_id, snapshot.state)
        return snapshot

    async def fetch_entity_states(
        self, entity_ids: Iterable[str]
    ) -> dict[str, EntityStateSnapshot]:
        """Fetch several entities concurrently.

        Entities that fail are logged and left out of the result.
        """

        unique: list[str] = []
        for entity_id in entity_ids:
            if entity_id and entity_id not in unique:
                unique.append(entity_id)
        if not unique:
            return {}

        results: list[Any] = await asyncio.gather(
            *(self.fetch_entity_state(entity_id) for entity_id in unique),
            return_exceptions=True,
        )
        snapshots: dict[str, EntityStateSnapshot] = {}
        for entity_id, result in zip(unique, results):
            if isinstance(result, EntityStateSnapshot):
                snapshots[entity_id] = result
            elif isinstance(result, HomeAssistantClientError):
                _LOGGER.warning("Failed to fetch %s: %s", entity_id, result)
            elif isinstance(result, BaseException):
                raise result
        return snapshots


__all__ = ["RESTClient"]
