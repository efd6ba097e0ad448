"""Colony configuration dataclass."""
from __future__ import annotations

from dataclasses import dataclass, field

from tick_hive.types import Role


def _default_caps() -> dict[Role, int]:
    return {
        Role.MINER: 2,
        Role.COURIER: 2,
        Role.BUILDER: 1,
        Role.REPAIRER: 1,
        Role.UPGRADER: 2,
        Role.TAXI: 1,
        Role.GENERALIST: 1,
    }


@dataclass(frozen=True)
class HiveConfig:
    """Immutable tuning knobs for the colony core.

    Attributes:
        sweep_interval: Ticks between purges of completed tasks.
        validate_interval: Ticks between target validation passes.
        scan_interval: Ticks between discovery scans.
        population_caps: Soft cap per role used by producer dispatch.
            Roles missing from the mapping are never produced.
        build_group_size: Capacity given to discovered build tasks.
        event_log_size: Maximum retained chronicle entries (0 = unbounded).
    """

    sweep_interval: int = 100
    validate_interval: int = 15
    scan_interval: int = 10
    population_caps: dict[Role, int] = field(default_factory=_default_caps)
    build_group_size: int = 2
    event_log_size: int = 1000

    def __post_init__(self) -> None:
        for name in ("sweep_interval", "validate_interval", "scan_interval"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.build_group_size < 1:
            raise ValueError(
                f"build_group_size must be >= 1, got {self.build_group_size}"
            )
        if self.event_log_size < 0:
            raise ValueError(
                f"event_log_size must be >= 0, got {self.event_log_size}"
            )

    def cap_for(self, role: Role) -> int:
        return self.population_caps.get(role, 0)
