"""Async client for the DigitalOcean API.

Uses pydo.aio and exposes only the droplet and image verbs a build needs.
Every failure surfaces as RemoteActionError.
"""

from __future__ import annotations

from typing import Any, cast

from loguru import logger
from pydo.aio import Client as PyDOClient

from skybake.config import DEFAULT_API_URL, BuildConfig, get_token
from skybake.exceptions import RemoteActionError

from .types import DropletCreateRequest, DropletResponse


class DigitalOceanClient:
    """Async client for DigitalOcean API using pydo.aio.

    Example:
        async with DigitalOceanClient.from_config(config) as client:
            droplet = await client.create_droplet(request)
    """

    def __init__(self, token: str, endpoint: str = DEFAULT_API_URL) -> None:
        self._token = token
        self._endpoint = endpoint
        self._client: PyDOClient | None = None

    @classmethod
    def from_config(cls, config: BuildConfig) -> DigitalOceanClient:
        return cls(get_token(config), endpoint=config.api_url)

    async def __aenter__(self) -> DigitalOceanClient:
        self._client = PyDOClient(token=self._token, endpoint=self._endpoint)
        return self

    async def __aexit__(self, *_: Any) -> None:
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> PyDOClient:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")
        return self._client

    # =========================================================================
    # Droplets
    # =========================================================================

    async def create_droplet(self, request: DropletCreateRequest) -> DropletResponse:
        """Create a new droplet."""
        try:
            result = await self.client.droplets.create(body=request.to_body())
        except Exception as e:
            raise RemoteActionError("create droplet", e) from e

        droplet = result.get("droplet") if isinstance(result, dict) else None
        if not droplet:
            raise RemoteActionError("create droplet", f"empty response: {result!r}")
        if "id" not in droplet:
            raise RemoteActionError("create droplet", "no id in response")
        return cast(DropletResponse, droplet)

    async def get_droplet(self, droplet_id: int) -> DropletResponse:
        """Fetch current droplet state. A missing droplet is an error."""
        try:
            result = await self.client.droplets.get(droplet_id=droplet_id)
        except Exception as e:
            raise RemoteActionError("get droplet", e, droplet_id) from e

        droplet = result.get("droplet") if isinstance(result, dict) else None
        if not droplet:
            raise RemoteActionError("get droplet", f"not found: {result!r}", droplet_id)
        return cast(DropletResponse, droplet)

    async def delete_droplet(self, droplet_id: int) -> None:
        """Delete a droplet."""
        try:
            await self.client.droplets.destroy(droplet_id=droplet_id)
        except Exception as e:
            raise RemoteActionError("delete droplet", e, droplet_id) from e

    # =========================================================================
    # Droplet Actions
    # =========================================================================

    async def _droplet_action(self, droplet_id: int, body: dict[str, Any]) -> None:
        action = str(body["type"]).replace("_", " ")
        logger.debug(f"DigitalOcean: {action} on droplet {droplet_id}")
        try:
            await self.client.droplet_actions.post(droplet_id=droplet_id, body=body)
        except Exception as e:
            raise RemoteActionError(action, e, droplet_id) from e

    async def power_on(self, droplet_id: int) -> None:
        await self._droplet_action(droplet_id, {"type": "power_on"})

    async def power_off(self, droplet_id: int) -> None:
        await self._droplet_action(droplet_id, {"type": "power_off"})

    async def enable_recovery(self, droplet_id: int, enabled: bool) -> None:
        """Switch the droplet's next boot into (or out of) recovery mode."""
        await self._droplet_action(droplet_id, {"type": "recovery", "enabled": enabled})

    # =========================================================================
    # Images
    # =========================================================================

    async def delete_image(self, image_id: int) -> None:
        """Delete an image (snapshot)."""
        try:
            await self.client.images.delete(image_id=image_id)
        except Exception as e:
            raise RemoteActionError("delete image", e, image_id) from e


__all__ = ["DigitalOceanClient"]
