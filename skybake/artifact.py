"""The image produced by a build."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from skybake.client import DigitalOceanClient
    from skybake.steps import BuildState

BUILDER_ID = "skybake.digitalocean"


@dataclass(frozen=True, slots=True)
class Artifact:
    """A snapshot image living in one or more regions.

    Attributes:
        snapshot_name: Display name of the image.
        snapshot_id: Numeric image id.
        region_names: Regions the image exists in, in the order they were added.
        client: API client, only used by ``destroy``.
        state_data: Build data shared with later pipeline stages.
    """

    snapshot_name: str
    snapshot_id: int
    region_names: tuple[str, ...]
    client: DigitalOceanClient = field(repr=False, compare=False)
    state_data: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "region_names", tuple(self.region_names))
        object.__setattr__(self, "state_data", MappingProxyType(dict(self.state_data)))

    @classmethod
    def from_state(
        cls,
        state: BuildState,
        snapshot_name: str,
        snapshot_id: int,
        region_names: Iterable[str],
    ) -> Artifact:
        return cls(
            snapshot_name=snapshot_name,
            snapshot_id=snapshot_id,
            region_names=tuple(region_names),
            client=state.require_client(),
            state_data=state.extra,
        )

    @staticmethod
    def builder_id() -> str:
        return BUILDER_ID

    @staticmethod
    def files() -> list[str]:
        # images live on DigitalOcean, nothing is written locally
        return []

    @property
    def id(self) -> str:
        return self.identity()

    def identity(self) -> str:
        """Stable key for this image: ``<region>,<region>:<image id>``."""
        return f"{','.join(self.region_names)}:{self.snapshot_id}"

    def describe(self) -> str:
        return (
            f"A snapshot was created: '{self.snapshot_name}' (ID: {self.snapshot_id}) "
            f"in regions '{','.join(self.region_names)}'"
        )

    def __str__(self) -> str:
        return self.describe()

    def state(self, name: str) -> Any:
        return self.state_data.get(name)

    async def destroy(self) -> None:
        """Delete the image. Errors from the API propagate unchanged."""
        logger.info(f"Destroying image: {self.snapshot_id} ({self.snapshot_name})")
        await self.client.delete_image(self.snapshot_id)


__all__ = ["BUILDER_ID", "Artifact"]
