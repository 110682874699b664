from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from skybake.config import BuildConfig
from skybake.exceptions import RemoteActionError
from skybake.steps import BuildState
from skybake.types import DropletCreateRequest, DropletResponse


class RecordingUi:
    def __init__(self) -> None:
        self.said: list[str] = []
        self.messages: list[str] = []
        self.errors: list[str] = []

    def say(self, message: str) -> None:
        self.said.append(message)

    def message(self, message: str) -> None:
        self.messages.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class FakeDigitalOcean:
    """In-memory stand-in for DigitalOceanClient.

    Actions take effect immediately unless listed in ``stall``; verbs listed
    in ``fail`` raise RemoteActionError. A freshly created droplet reports
    status "new" on its first fetch and "active" afterwards.

    With ``lock_for`` set, every action locks the droplet for that many
    fetches; verbs in ``stuck_locked`` lock it for good. Like the real API,
    an action issued while the droplet is locked is rejected.
    ``timeline`` interleaves actions with the lock state each fetch returned.
    """

    def __init__(
        self,
        droplet_id: int = 42,
        *,
        fail: set[str] | None = None,
        stall: set[str] | None = None,
        lock_for: int = 0,
        stuck_locked: set[str] | None = None,
    ) -> None:
        self.droplet_id = droplet_id
        self.fail = fail or set()
        self.stall = stall or set()
        self.calls: list[tuple[str, Any]] = []
        self.droplet: DropletResponse | None = None
        self._fetches = 0
        self.lock_for = lock_for
        self.stuck_locked = stuck_locked or set()
        self.timeline: list[str] = []
        self.rejected: list[str] = []
        self._lock_holder: str | None = None
        self._lock_remaining = 0

    def _record(self, verb: str, arg: Any) -> None:
        self.calls.append((verb, arg))
        if verb in self.fail:
            raise RemoteActionError(verb.replace("_", " "), "boom", arg if isinstance(arg, int) else None)

    def verbs(self) -> list[str]:
        return [verb for verb, _ in self.calls]

    def count(self, verb: str) -> int:
        return self.verbs().count(verb)

    def _act(self, verb: str, droplet_id: int) -> None:
        self._record(verb, droplet_id)
        assert self.droplet is not None
        self.timeline.append(verb)
        if self.droplet["locked"]:
            self.rejected.append(verb)
            raise RemoteActionError(verb.replace("_", " "), "droplet is locked", droplet_id)
        if self.lock_for or verb in self.stuck_locked:
            self.droplet["locked"] = True
            self._lock_holder = verb
            self._lock_remaining = self.lock_for

    def _tick_lock(self) -> None:
        assert self.droplet is not None
        if not self.droplet["locked"] or self._lock_holder in self.stuck_locked:
            return
        if self._lock_remaining > 0:
            self._lock_remaining -= 1
        else:
            self.droplet["locked"] = False

    def _apply(self, verb: str, **changes: Any) -> None:
        assert self.droplet is not None
        if verb not in self.stall:
            self.droplet.update(changes)  # type: ignore[typeddict-item]

    async def create_droplet(self, request: DropletCreateRequest) -> DropletResponse:
        self._record("create_droplet", request)
        self.droplet = {
            "id": self.droplet_id,
            "name": request.name,
            "status": "new",
            "locked": False,
            "recovery_mode": False,
        }
        return dict(self.droplet)  # type: ignore[return-value]

    async def get_droplet(self, droplet_id: int) -> DropletResponse:
        self._record("get_droplet", droplet_id)
        assert self.droplet is not None
        self._fetches += 1
        if self._fetches > 1 and self.droplet["status"] == "new":
            self._apply("boot", status="active")
        self._tick_lock()
        self.timeline.append("fetch:locked" if self.droplet["locked"] else "fetch:unlocked")
        return dict(self.droplet)  # type: ignore[return-value]

    async def power_off(self, droplet_id: int) -> None:
        self._act("power_off", droplet_id)
        self._apply("power_off", status="off")

    async def enable_recovery(self, droplet_id: int, enabled: bool) -> None:
        self._act("enable_recovery", droplet_id)
        self._apply("enable_recovery", recovery_mode=enabled)

    async def power_on(self, droplet_id: int) -> None:
        self._act("power_on", droplet_id)
        self._apply("power_on", status="active")

    async def delete_droplet(self, droplet_id: int) -> None:
        self._record("delete_droplet", droplet_id)

    async def delete_image(self, image_id: int) -> None:
        self._record("delete_image", image_id)


@pytest.fixture
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture
def config() -> BuildConfig:
    return BuildConfig(
        region="nyc3",
        size="s-1vcpu-1gb",
        image="ubuntu-22-04-x64",
        droplet_name="skybake-test",
        state_timeout=0.2,
        poll_interval=0.01,
    )


@pytest.fixture
def make_state(ui: RecordingUi, config: BuildConfig) -> Callable[..., BuildState]:
    def factory(client: Any, **overrides: Any) -> BuildState:
        return BuildState(
            client=client,
            ui=ui,
            config=overrides.pop("config", config),
            **overrides,
        )

    return factory
