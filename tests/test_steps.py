from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from skybake.create_droplet import StepCreateDroplet
from skybake.exceptions import BuildCancelledError, ConfigurationError
from skybake.steps import BuildState, Step, StepAction, run_steps

from tests.conftest import FakeDigitalOcean, RecordingUi

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class _Recorder:
    def __init__(self, name: str, log: list[str], action: StepAction = StepAction.CONTINUE) -> None:
        self.name = name
        self.log = log
        self.action = action

    async def run(self, state: BuildState) -> StepAction:
        self.log.append(f"run:{self.name}")
        if self.action is StepAction.HALT:
            return state.halt(RuntimeError(f"{self.name} failed"))
        return self.action

    async def cleanup(self, state: BuildState) -> None:
        self.log.append(f"cleanup:{self.name}")


class _BrokenCleanup(_Recorder):
    async def cleanup(self, state: BuildState) -> None:
        await super().cleanup(state)
        raise RuntimeError("cleanup exploded")


class TestBuildState:
    def test_halt_records_error_and_reports(self):
        ui = RecordingUi()
        state = BuildState(ui=ui)
        error = RuntimeError("nope")

        assert state.halt(error) is StepAction.HALT
        assert state.error is error
        assert state.halted
        assert ui.errors == ["nope"]

    def test_require_raises_when_unset(self):
        state = BuildState()
        with pytest.raises(ConfigurationError, match="client"):
            state.require_client()
        with pytest.raises(ConfigurationError, match="config"):
            state.require_config()

    def test_states_are_independent(self):
        a, b = BuildState(), BuildState()
        a.extra["k"] = 1
        a.cancel()
        assert b.extra == {}
        assert not b.cancelled.is_set()

    def test_step_protocol(self):
        assert isinstance(StepCreateDroplet(), Step)


class TestRunSteps:
    @pytest.mark.asyncio
    async def test_success_runs_all_then_cleans_up_in_reverse(self):
        log: list[str] = []
        steps = [_Recorder("a", log), _Recorder("b", log), _Recorder("c", log)]

        action = await run_steps(steps, BuildState())

        assert action is StepAction.CONTINUE
        assert log == ["run:a", "run:b", "run:c", "cleanup:c", "cleanup:b", "cleanup:a"]

    @pytest.mark.asyncio
    async def test_halt_stops_and_cleans_up_entered_steps(self):
        log: list[str] = []
        steps = [
            _Recorder("a", log),
            _Recorder("b", log, StepAction.HALT),
            _Recorder("c", log),
        ]
        state = BuildState(ui=RecordingUi())

        action = await run_steps(steps, state)

        assert action is StepAction.HALT
        assert str(state.error) == "b failed"
        assert log == ["run:a", "run:b", "cleanup:b", "cleanup:a"]

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_stop_sweep(self):
        log: list[str] = []
        steps = [_Recorder("a", log), _BrokenCleanup("b", log)]

        await run_steps(steps, BuildState())

        assert log == ["run:a", "run:b", "cleanup:b", "cleanup:a"]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self):
        log: list[str] = []
        state = BuildState()
        state.cancel()

        action = await run_steps([_Recorder("a", log)], state)

        assert action is StepAction.HALT
        assert isinstance(state.error, BuildCancelledError)
        assert log == []

    @pytest.mark.asyncio
    async def test_task_cancellation_still_cleans_up(self):
        log: list[str] = []

        class _Hang(_Recorder):
            async def run(self, state: BuildState) -> StepAction:
                self.log.append(f"run:{self.name}")
                await asyncio.sleep(60)
                return StepAction.CONTINUE

        task = asyncio.create_task(run_steps([_Recorder("a", log), _Hang("b", log)], BuildState()))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert log == ["run:a", "run:b", "cleanup:b", "cleanup:a"]

    @pytest.mark.asyncio
    async def test_create_droplet_failure_triggers_delete(self, make_state, config):
        client = FakeDigitalOcean(fail={"power_off"})
        state = make_state(client, config=replace(config, recovery_mode=True))

        action = await run_steps([StepCreateDroplet()], state)

        assert action is StepAction.HALT
        assert state.error is not None
        assert client.count("delete_droplet") == 1
