"""Outpost demo - one spawn, two sources, a controller and a few build sites.

The colony bootstraps with a generalist, then grows miners, a taxi to tow
them onto their sources, couriers, builders and upgraders as work appears.
Halfway through, the colony is snapshotted to JSON and restored into a fresh
engine; the restored run must end in the same state as an unbroken one.

Run: python -m examples.outpost   (from packages/tick-hive)
"""
from __future__ import annotations

import json
import logging
from collections import Counter

from tick_hive import (
    EntityKind,
    HiveConfig,
    HiveEngine,
    Role,
    SimWorld,
    TaskState,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SCOPE = "W7N3"
TICKS = 600
REPORT_EVERY = 100

CONFIG = HiveConfig(
    scan_interval=10,
    population_caps={
        Role.GENERALIST: 1,
        Role.MINER: 2,
        Role.TAXI: 1,
        Role.COURIER: 2,
        Role.BUILDER: 2,
        Role.UPGRADER: 1,
    },
)


# ---------------------------------------------------------------------------
# World
# ---------------------------------------------------------------------------

def build_world() -> SimWorld:
    world = SimWorld(scope=SCOPE)
    world.add(EntityKind.SPAWN, 10, 10, id="spawn", energy=300, energy_capacity=300)
    world.add(EntityKind.EXTENSION, 11, 10, id="ext_a", energy_capacity=50)
    world.add(EntityKind.STORAGE, 9, 11, id="storage", energy_capacity=10_000)
    world.add(EntityKind.CONTROLLER, 14, 14, id="controller")
    world.add(EntityKind.SOURCE, 3, 4, id="src_west", energy=3000, energy_capacity=3000)
    world.add(EntityKind.SOURCE, 17, 5, id="src_east", energy=3000, energy_capacity=3000)
    world.add(EntityKind.CONSTRUCTION_SITE, 12, 8, id="site_road", progress_total=300)
    world.add(EntityKind.CONSTRUCTION_SITE, 8, 8, id="site_tower", progress_total=1500)
    world.add(EntityKind.ROAD, 10, 12, id="old_road", hits=1200, hits_max=5000)
    return world


def regen_system(world: SimWorld):
    """Refill sources every 300 ticks, like a game's regeneration timer."""

    def regen(colony, ctx) -> None:
        if ctx.every(300):
            for sid in ("src_west", "src_east"):
                record = world.record(sid)
                record.energy = record.energy_capacity
        world.advance()

    return regen


def report_system(colony, ctx) -> None:
    if not ctx.every(REPORT_EVERY):
        return
    roles = Counter(u.role.value for u in colony.units())
    live = sum(1 for t in colony.store.tasks() if t.is_live)
    busy = sum(1 for u in colony.units() if u.task_id is not None)
    print(f"[tick {ctx.tick_number:>4}]  units={dict(sorted(roles.items()))} "
          f"busy={busy} live_tasks={live}")


def make_engine(world: SimWorld) -> HiveEngine:
    engine = HiveEngine(world, CONFIG)
    engine.colony.add_facility("spawn")
    engine.add_system(regen_system(world))
    engine.add_system(report_system)
    return engine


def capture_state(engine: HiveEngine) -> dict:
    colony = engine.colony
    return {
        "tick": engine.clock.tick_number,
        "units": sorted((u.id, u.task_id) for u in colony.units()),
        "completed": sum(1 for t in colony.store.tasks()
                         if t.state is TaskState.COMPLETED),
        "events": len(colony.events),
    }


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(name)s: %(message)s")
    print(f"=== Outpost demo ({SCOPE}) ===\n")

    # --- Run A: straight through ---
    world_a = build_world()
    engine_a = make_engine(world_a)
    engine_a.run(TICKS)
    final_a = capture_state(engine_a)
    print(f"\nRun A done (tick {TICKS})")

    # --- Run B: snapshot halfway, restore into a fresh engine ---
    world_b = build_world()
    engine_b = make_engine(world_b)
    engine_b.run(TICKS // 2)
    blob = json.dumps(engine_b.snapshot())
    print(f"\n--- Snapshot at tick {TICKS // 2} ({len(blob)} bytes) ---\n")

    resumed = make_engine(world_b)
    resumed.restore(json.loads(blob))
    resumed.run(TICKS - TICKS // 2)
    final_b = capture_state(resumed)
    print(f"\nRun B done (tick {TICKS})")

    # --- Verify ---
    print("\n--- Replay verification ---")
    built = [sid for sid in ("site_road", "site_tower") if world_a.resolve(sid) is None]
    print(f"  sites finished: {built}")
    print(f"  controller progress: {world_a.resolve('controller').progress}")
    if final_a == final_b:
        print("  Replay proof: PASSED (both runs identical)")
    else:
        for key in final_a:
            if final_a[key] != final_b[key]:
                print(f"  MISMATCH {key}: {final_a[key]} != {final_b[key]}")
        raise AssertionError("Replay mismatch")


if __name__ == "__main__":
    main()
