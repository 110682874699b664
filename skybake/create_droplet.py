"""Droplet creation step, with an optional reboot into recovery mode."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from skybake.client import DigitalOceanClient
from skybake.config import BuildConfig
from skybake.exceptions import CleanupError, RequestBuildError, SkybakeError, StepError
from skybake.steps import BuildState, StepAction
from skybake.types import DropletCreateRequest
from skybake.wait import (
    Condition,
    PollingWaiter,
    recovery_mode_active,
    status_is,
    unlocked,
)

_INTEGER = re.compile(r"[+-]?[0-9]+")

type DropletAction = Callable[[DigitalOceanClient, int], Awaitable[None]]


# =============================================================================
# Request Assembly
# =============================================================================


def resolve_ssh_keys(state_key_id: int | None, config_key_id: int) -> list[int]:
    """SSH key ids to inject: the pipeline's key first, then the configured one."""
    keys: list[int] = []
    if state_key_id is not None:
        keys.append(state_key_id)
    if config_key_id:
        keys.append(config_key_id)
    return keys


def resolve_user_data(user_data: str, user_data_file: str) -> str:
    """Return user data, preferring the file's contents when a file is set.

    Raises:
        RequestBuildError: If the file cannot be read.
    """
    if not user_data_file:
        return user_data
    try:
        return Path(user_data_file).read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise RequestBuildError(f"Problem reading user data file: {e}") from e


def resolve_image(image: str) -> int | str:
    """Numeric image id if ``image`` is an integer literal, else the slug."""
    if _INTEGER.fullmatch(image):
        return int(image)
    return image


def build_request(config: BuildConfig, ssh_key_id: int | None = None) -> DropletCreateRequest:
    return DropletCreateRequest(
        name=config.droplet_name,
        region=config.region,
        size=config.size,
        image=resolve_image(config.image),
        ssh_keys=tuple(resolve_ssh_keys(ssh_key_id, config.ssh_key_id)),
        private_networking=config.private_networking,
        monitoring=config.monitoring,
        ipv6=config.ipv6,
        user_data=resolve_user_data(config.user_data, config.user_data_file),
        tags=config.tags,
        vpc_uuid=config.vpc_uuid,
    )


# =============================================================================
# Recovery Chain
# =============================================================================


async def _power_off(client: DigitalOceanClient, droplet_id: int) -> None:
    await client.power_off(droplet_id)


async def _enable_recovery(client: DigitalOceanClient, droplet_id: int) -> None:
    await client.enable_recovery(droplet_id, True)


async def _power_on(client: DigitalOceanClient, droplet_id: int) -> None:
    await client.power_on(droplet_id)


@dataclass(frozen=True, slots=True)
class Transition:
    """One action followed by a wait for its target state and for the unlock."""

    action: DropletAction | None
    target: Condition
    action_error: str
    wait_error: str
    unlock_error: str
    message: str | None = None


RECOVERY_CHAIN: tuple[Transition, ...] = (
    Transition(
        action=None,
        target=status_is("active"),
        action_error="",
        wait_error="Error waiting for droplet to become active",
        unlock_error="Error waiting for droplet to unlock after boot",
        message="Waiting for droplet to become active...",
    ),
    Transition(
        action=_power_off,
        target=status_is("off"),
        action_error="Error powering off droplet",
        wait_error="Error waiting for droplet to power off",
        unlock_error="Error waiting for droplet to unlock after power off",
        message="Shutting down Droplet...",
    ),
    Transition(
        action=_enable_recovery,
        target=recovery_mode_active(),
        action_error="Error switching droplet to rescue mode",
        wait_error="Error waiting for droplet to enter rescue mode",
        unlock_error="Error waiting for droplet to unlock after rescue mode",
    ),
    Transition(
        action=_power_on,
        target=status_is("active"),
        action_error="Error powering on droplet",
        wait_error="Error waiting for droplet to power on",
        unlock_error="Error waiting for droplet to unlock after power on",
        message="Start Droplet...",
    ),
)


async def _phase[T](message: str, operation: Awaitable[T]) -> T:
    try:
        return await operation
    except SkybakeError as e:
        raise StepError(f"{message}: {e}") from e


async def run_transitions(
    client: DigitalOceanClient,
    waiter: PollingWaiter,
    droplet_id: int,
    state: BuildState,
    chain: tuple[Transition, ...] = RECOVERY_CHAIN,
) -> None:
    """Drive ``droplet_id`` through ``chain``, stopping at the first failure.

    Every wait gets the waiter's full timeout.

    Raises:
        StepError: Naming the phase that failed.
    """
    ui = state.require_ui()

    for transition in chain:
        if transition.message:
            ui.say(transition.message)
        if transition.action is not None:
            await _phase(transition.action_error, transition.action(client, droplet_id))
        await _phase(transition.wait_error, waiter.wait(droplet_id, transition.target))
        await _phase(transition.unlock_error, waiter.wait(droplet_id, unlocked()))


# =============================================================================
# Step
# =============================================================================


@dataclass
class StepCreateDroplet:
    """Create the build droplet and, on cleanup, destroy it."""

    droplet_id: int | None = None

    async def run(self, state: BuildState) -> StepAction:
        try:
            client = state.require_client()
            ui = state.require_ui()
            config = state.require_config()
        except SkybakeError as e:
            return state.halt(e)

        ui.say("Creating droplet...")

        try:
            request = build_request(config, state.ssh_key_id)
        except RequestBuildError as e:
            return state.halt(e)

        logger.debug(f"Droplet create parameters: {request.describe()}")

        try:
            droplet = await _phase("Error creating droplet", client.create_droplet(request))
        except StepError as e:
            return state.halt(e)

        self.droplet_id = droplet["id"]
        state.droplet_id = droplet["id"]
        state.instance_id = droplet["id"]
        logger.info(f"Created droplet {self.droplet_id} ({request.name})")

        if not config.recovery_mode:
            return StepAction.CONTINUE

        ui.say("Enabling Recovery Mode...")
        waiter = PollingWaiter(
            client.get_droplet,
            timeout=config.state_timeout,
            interval=config.poll_interval,
            cancelled=state.cancelled,
        )

        try:
            await run_transitions(client, waiter, self.droplet_id, state)
        except StepError as e:
            return state.halt(e)

        return StepAction.CONTINUE

    async def cleanup(self, state: BuildState) -> None:
        if self.droplet_id is None:
            return

        client = state.require_client()
        ui = state.require_ui()

        ui.say("Destroying droplet...")
        try:
            await client.delete_droplet(self.droplet_id)
        except SkybakeError as e:
            error = CleanupError(f"Error destroying droplet. Please destroy it manually: {e}")
            logger.warning(f"Failed to destroy droplet {self.droplet_id}: {e}")
            ui.error(str(error))
            return

        self.droplet_id = None


__all__ = [
    "RECOVERY_CHAIN",
    "StepCreateDroplet",
    "Transition",
    "build_request",
    "resolve_image",
    "resolve_ssh_keys",
    "resolve_user_data",
    "run_transitions",
]
