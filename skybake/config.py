"""TOML-based build configuration.

Loads ~/.skybake/defaults.toml (global) and skybake.toml (project),
merges them, and resolves the ``[build]`` table into a BuildConfig.
"""

from __future__ import annotations

import os
import tomllib
import uuid
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from skybake.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".skybake" / "defaults.toml"
PROJECT_CONFIG_NAME = "skybake.toml"

TOKEN_ENV_VARS = ("DIGITALOCEAN_TOKEN", "DIGITALOCEAN_API_TOKEN")
DEFAULT_API_URL = "https://api.digitalocean.com"

_REQUIRED = ("region", "size", "image")


def _default_droplet_name() -> str:
    return f"skybake-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Resolved settings for one image build.

    Example:
        >>> config = BuildConfig(region="nyc3", size="s-1vcpu-1gb", image="ubuntu-22-04-x64")

    Args:
        region: Region slug the droplet is created in.
        size: Droplet size slug.
        image: Image slug or numeric image id (as a string).
        droplet_name: Display name of the temporary droplet.
        ssh_key_id: Existing SSH key id to inject. 0 means unset.
        private_networking: Enable private networking.
        monitoring: Enable the monitoring agent.
        ipv6: Enable IPv6.
        user_data: Literal user data payload.
        user_data_file: Path to a user data file. Overrides ``user_data``.
        tags: Tags applied to the droplet.
        vpc_uuid: VPC the droplet joins.
        recovery_mode: Reboot the droplet into recovery mode after creation.
        state_timeout: Budget in seconds for each individual state wait.
        poll_interval: Seconds between state polls.
        api_token: API token. Falls back to DIGITALOCEAN_TOKEN env var.
        api_url: API endpoint.
    """

    region: str
    size: str
    image: str
    droplet_name: str = field(default_factory=_default_droplet_name)
    ssh_key_id: int = 0
    private_networking: bool = False
    monitoring: bool = False
    ipv6: bool = False
    user_data: str = ""
    user_data_file: str = ""
    tags: tuple[str, ...] = ()
    vpc_uuid: str = ""
    recovery_mode: bool = False
    state_timeout: float = 360.0
    poll_interval: float = 3.0
    api_token: str | None = field(default=None, repr=False)
    api_url: str = DEFAULT_API_URL


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("build", {})
    return merged


def build_config(raw: RawConfig) -> BuildConfig:
    """Build a BuildConfig from the ``[build]`` table of a merged config."""
    table = dict(raw.get("build", {}))

    known = {f.name for f in fields(BuildConfig)}
    unknown = sorted(set(table) - known)
    if unknown:
        raise ConfigurationError(f"Unknown build settings: {', '.join(unknown)}")

    missing = [name for name in _REQUIRED if not table.get(name)]
    if missing:
        raise ConfigurationError(f"Missing required build settings: {', '.join(missing)}")

    # TOML arrays arrive as lists
    if "tags" in table:
        table["tags"] = tuple(table["tags"])

    # numeric image ids are kept lexical, see create_droplet.resolve_image
    table["image"] = str(table["image"])

    return BuildConfig(**table)


def resolve_build(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> BuildConfig:
    return build_config(load_config(project_dir=project_dir, global_path=global_path))


def get_token(config: BuildConfig) -> str:
    """Get the API token from config or environment."""
    if config.api_token:
        return config.api_token
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            return token
    raise ConfigurationError(
        "DigitalOcean API token not found. "
        "Set api_token or the DIGITALOCEAN_TOKEN environment variable."
    )


__all__ = [
    "BuildConfig",
    "build_config",
    "get_token",
    "load_config",
    "resolve_build",
]
