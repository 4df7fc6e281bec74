"""Relay credential broker.

Fetches a short-lived ICE configuration from the Xirsys-style credential
provider. Tokens are valid for roughly thirty seconds, so nothing is cached:
every join, ready, or offer gets a fresh one. When the provider reports that
its bandwidth allowance is exhausted we hand out public STUN servers instead.
"""
from __future__ import annotations

import base64
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ..core.config import settings
from ..schemas.signaling import IceConfig, IceServer

logger = logging.getLogger(__name__)

BANDWIDTH_LIMIT_EXCEEDED = "bandwidth_limit_exceeded"


class IceProviderError(RuntimeError):
    """Raised when the credential provider cannot supply an ICE configuration."""


def fallback_ice_config() -> IceConfig:
    """Static public STUN set used when the provider is out of bandwidth."""

    return IceConfig(ice_servers=[IceServer(urls=list(settings.ice_fallback_urls))])


class IceConfigBroker:
    """Acquire ICE configurations from the external provider."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    def bind(self, client: httpx.AsyncClient | None) -> None:
        """Attach the shared HTTP client owned by the application lifespan."""

        self._client = client

    async def fetch(self) -> IceConfig:
        if self._client is not None:
            body = await self._request(self._client)
        else:
            async with httpx.AsyncClient(timeout=settings.ice_request_timeout) as client:
                body = await self._request(client)
        return self._parse(body)

    async def _request(self, client: httpx.AsyncClient) -> Any:
        if not settings.xirsys_url:
            raise IceProviderError("XIRSYS_URL is not configured")

        token = base64.b64encode(settings.xirsys_secret.encode()).decode()
        headers = {"Authorization": f"Basic {token}", "Content-Type": "application/json"}
        try:
            response = await client.put(settings.xirsys_url, headers=headers)
            return response.json()
        except httpx.HTTPError as exc:
            raise IceProviderError(f"XIRSYS: request failed: {exc}") from exc
        except ValueError as exc:
            raise IceProviderError("XIRSYS: response was not JSON") from exc

    def _parse(self, body: Any) -> IceConfig:
        if not isinstance(body, dict):
            raise IceProviderError("XIRSYS: unexpected response shape")

        status = body.get("s")
        if status == "error":
            message = body.get("v")
            if message == BANDWIDTH_LIMIT_EXCEEDED:
                logger.warning("XIRSYS bandwidth limit exceeded. Falling back to public STUN.")
                return fallback_ice_config()
            logger.error("XIRSYS rejected the credential request: %s", message)
            raise IceProviderError(f"XIRSYS: {message}")
        if status != "ok":
            raise IceProviderError(f"XIRSYS: unexpected status {status!r}")

        try:
            config = IceConfig.model_validate(body.get("v"))
        except ValidationError as exc:
            raise IceProviderError("XIRSYS: malformed ice config") from exc
        if not config.ice_servers:
            raise IceProviderError("XIRSYS: ice config has no servers")
        return config


broker = IceConfigBroker()
