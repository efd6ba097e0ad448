"""HiveEngine - tick loop driving a colony through its systems."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from tick_hive.clock import Clock, TickContext
from tick_hive.colony import Colony
from tick_hive.config import HiveConfig
from tick_hive.systems import System, default_systems
from tick_hive.types import SnapshotError

if TYPE_CHECKING:
    from tick_hive.world import World

_SNAPSHOT_VERSION = 1


class HiveEngine:
    """Owns a colony and a clock; each tick runs every system in order.

    With ``default_pipeline=False`` no systems are installed and the caller
    registers its own with ``add_system``.
    """

    def __init__(
        self,
        world: World,
        config: HiveConfig | None = None,
        *,
        default_pipeline: bool = True,
    ) -> None:
        self._clock = Clock()
        self._colony = Colony(world, config)
        self._systems: list[System] = []
        self._start_hooks: list[Callable[[Colony, TickContext], None]] = []
        self._stop_hooks: list[Callable[[Colony, TickContext], None]] = []
        self._stop_requested: bool = False
        if default_pipeline:
            self._systems.extend(default_systems())

    @property
    def colony(self) -> Colony:
        return self._colony

    @property
    def clock(self) -> Clock:
        return self._clock

    def add_system(self, system: System) -> None:
        self._systems.append(system)

    def on_start(self, hook: Callable[[Colony, TickContext], None]) -> None:
        self._start_hooks.append(hook)

    def on_stop(self, hook: Callable[[Colony, TickContext], None]) -> None:
        self._stop_hooks.append(hook)

    def _request_stop(self) -> None:
        self._stop_requested = True

    def _tick(self) -> None:
        self._colony.tick = self._clock.advance()
        ctx = self._clock.context(self._request_stop)
        for system in self._systems:
            system(self._colony, ctx)
            if self._stop_requested:
                break

    def step(self) -> None:
        self._stop_requested = False
        self._tick()

    def run(self, n: int) -> None:
        self._stop_requested = False
        ctx = self._clock.context(self._request_stop)
        for hook in self._start_hooks:
            hook(self._colony, ctx)

        for _ in range(n):
            self._tick()
            if self._stop_requested:
                break

        ctx = self._clock.context(self._request_stop)
        for hook in self._stop_hooks:
            hook(self._colony, ctx)

    def snapshot(self) -> dict[str, Any]:
        return {
            "version": _SNAPSHOT_VERSION,
            "tick_number": self._clock.tick_number,
            "colony": self._colony.snapshot(),
        }

    def restore(self, data: dict[str, Any]) -> None:
        version = data.get("version")
        if version != _SNAPSHOT_VERSION:
            raise SnapshotError(
                f"Unsupported snapshot version {version!r}, expected {_SNAPSHOT_VERSION}"
            )
        self._clock.reset(data["tick_number"])
        self._colony.restore(data["colony"])
