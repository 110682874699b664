"""skybake - build DigitalOcean images through halt-aware step workflows.

Example:
    import asyncio
    import skybake as sb

    async def main() -> None:
        config = sb.resolve_build()
        async with sb.DigitalOceanClient.from_config(config) as client:
            state = sb.BuildState(client=client, ui=sb.ConsoleUi(), config=config)
            action = await sb.run_steps([sb.StepCreateDroplet()], state)
            if action is sb.StepAction.HALT:
                raise SystemExit(str(state.error))

    asyncio.run(main())
"""

from skybake.artifact import BUILDER_ID, Artifact
from skybake.client import DigitalOceanClient
from skybake.config import BuildConfig, build_config, get_token, load_config, resolve_build
from skybake.create_droplet import StepCreateDroplet
from skybake.exceptions import (
    BuildCancelledError,
    CleanupError,
    ConfigurationError,
    PollCancelledError,
    PollTimeoutError,
    RemoteActionError,
    RequestBuildError,
    SkybakeError,
    StepError,
)
from skybake.logging import LogConfig, setup_logging, teardown_logging
from skybake.steps import BuildState, Step, StepAction, run_steps
from skybake.types import DropletCreateRequest, DropletResponse
from skybake.ui import ConsoleUi, Ui
from skybake.wait import PollingWaiter

__all__ = [
    "BUILDER_ID",
    "Artifact",
    "BuildCancelledError",
    "BuildConfig",
    "BuildState",
    "CleanupError",
    "ConfigurationError",
    "ConsoleUi",
    "DigitalOceanClient",
    "DropletCreateRequest",
    "DropletResponse",
    "LogConfig",
    "PollCancelledError",
    "PollTimeoutError",
    "PollingWaiter",
    "RemoteActionError",
    "RequestBuildError",
    "SkybakeError",
    "Step",
    "StepAction",
    "StepCreateDroplet",
    "Ui",
    "build_config",
    "get_token",
    "load_config",
    "resolve_build",
    "run_steps",
    "setup_logging",
    "teardown_logging",
]
