"""Linear build steps with a single halt signal.

A build is an ordered list of steps sharing one BuildState. Steps run
one at a time; the first step to return HALT stops the build and every
step that was entered gets its ``cleanup`` called in reverse order.

Example:
    state = BuildState(client=client, ui=ConsoleUi(), config=config)
    action = await run_steps([StepCreateDroplet(), ...], state)
    if action is StepAction.HALT:
        raise state.error
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from loguru import logger

from skybake.exceptions import BuildCancelledError, ConfigurationError

if TYPE_CHECKING:
    from skybake.client import DigitalOceanClient
    from skybake.config import BuildConfig
    from skybake.ui import Ui


class StepAction(Enum):
    CONTINUE = "continue"
    HALT = "halt"


@dataclass
class BuildState:
    """Mutable state threaded through every step of one build.

    ``instance_id`` is the provider-neutral name for the created droplet so
    later steps can find it without knowing which step created it.
    """

    client: DigitalOceanClient | None = None
    ui: Ui | None = None
    config: BuildConfig | None = None
    ssh_key_id: int | None = None
    droplet_id: int | None = None
    instance_id: int | None = None
    error: BaseException | None = None
    cancelled: asyncio.Event = field(default_factory=asyncio.Event)
    extra: dict[str, Any] = field(default_factory=dict)

    def require_client(self) -> DigitalOceanClient:
        if self.client is None:
            raise ConfigurationError("Build state has no API client")
        return self.client

    def require_ui(self) -> Ui:
        if self.ui is None:
            raise ConfigurationError("Build state has no ui")
        return self.ui

    def require_config(self) -> BuildConfig:
        if self.config is None:
            raise ConfigurationError("Build state has no config")
        return self.config

    def halt(self, error: BaseException) -> StepAction:
        """Record ``error``, report it and return HALT."""
        self.error = error
        logger.error(f"Build halted: {error}")
        if self.ui is not None:
            self.ui.error(str(error))
        return StepAction.HALT

    def cancel(self) -> None:
        self.cancelled.set()

    @property
    def halted(self) -> bool:
        return self.error is not None


@runtime_checkable
class Step(Protocol):
    """One unit of a build.

    ``run`` is called once per build and reports failure by returning HALT
    after recording the error on the state. ``cleanup`` undoes whatever
    ``run`` created and must be a no-op when nothing was created.
    """

    async def run(self, state: BuildState) -> StepAction: ...

    async def cleanup(self, state: BuildState) -> None: ...


async def run_steps(steps: Sequence[Step], state: BuildState) -> StepAction:
    """Run ``steps`` in order, then clean up every entered step in reverse.

    Log records emitted while a step runs or cleans up carry the build
    name (``extra["build"]``) and the step class (``extra["step"]``).
    """
    entered: list[Step] = []
    action = StepAction.CONTINUE
    build = {"build": state.config.droplet_name} if state.config is not None else {}

    with logger.contextualize(**build):
        try:
            for step in steps:
                if state.cancelled.is_set():
                    action = state.halt(BuildCancelledError())
                    break

                entered.append(step)
                name = type(step).__name__
                with logger.contextualize(step=name):
                    logger.debug(f"Running step {name}")
                    action = await step.run(state)
                if action is StepAction.HALT:
                    break
        finally:
            for step in reversed(entered):
                name = type(step).__name__
                with logger.contextualize(step=name):
                    try:
                        await step.cleanup(state)
                    except Exception as e:
                        logger.exception(f"Cleanup of {name} failed: {e}")

    return action


__all__ = [
    "BuildState",
    "Step",
    "StepAction",
    "run_steps",
]
