"""DigitalOcean request and response types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class RegionResponse(TypedDict):
    slug: str
    name: str


class DropletResponse(TypedDict):
    """Droplet as returned by the API (only the fields skybake reads)."""

    id: int
    name: str
    status: str
    locked: bool
    recovery_mode: NotRequired[bool]
    region: NotRequired[RegionResponse]


@dataclass(frozen=True, slots=True)
class DropletCreateRequest:
    """Everything needed to create one droplet.

    ``image`` is an ``int`` for a numeric image id and a ``str`` for a slug.
    """

    name: str
    region: str
    size: str
    image: int | str
    ssh_keys: tuple[int, ...] = ()
    private_networking: bool = False
    monitoring: bool = False
    ipv6: bool = False
    user_data: str = ""
    tags: tuple[str, ...] = ()
    vpc_uuid: str = ""

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "name": self.name,
            "region": self.region,
            "size": self.size,
            "image": self.image,
            "ssh_keys": list(self.ssh_keys),
            "private_networking": self.private_networking,
            "monitoring": self.monitoring,
            "ipv6": self.ipv6,
        }

        if self.user_data:
            body["user_data"] = self.user_data
        if self.tags:
            body["tags"] = list(self.tags)
        if self.vpc_uuid:
            body["vpc_uuid"] = self.vpc_uuid

        return body

    def describe(self) -> dict[str, Any]:
        """Body with user data redacted, for debug logging."""
        body = self.to_body()
        if "user_data" in body:
            body["user_data"] = f"<{len(self.user_data)} bytes>"
        return body
