"""Body allocation for produced units."""
from __future__ import annotations

from tick_hive.types import PART_COSTS, BodyPart, Role

_HAULERS = frozenset({Role.TAXI, Role.COURIER})
_BALANCED = frozenset({Role.BUILDER, Role.REPAIRER, Role.UPGRADER, Role.GENERALIST})


def build_body(role: Role, energy: int) -> list[BodyPart]:
    """Deterministic part list for *role* affordable with *energy*.

    Miners get only WORK parts (no mobility). Haulers get CARRY and MOVE in
    pairs. Balanced roles spend a third of the budget on each capability.
    """
    if energy <= 0:
        return []
    if role is Role.MINER:
        return [BodyPart.WORK] * (energy // PART_COSTS[BodyPart.WORK])
    if role in _HAULERS:
        pairs = energy // (PART_COSTS[BodyPart.CARRY] + PART_COSTS[BodyPart.MOVE])
        return [BodyPart.CARRY] * pairs + [BodyPart.MOVE] * pairs
    if role in _BALANCED:
        third = energy // 3
        return (
            [BodyPart.WORK] * (third // PART_COSTS[BodyPart.WORK])
            + [BodyPart.CARRY] * (third // PART_COSTS[BodyPart.CARRY])
            + [BodyPart.MOVE] * (third // PART_COSTS[BodyPart.MOVE])
        )
    return []


def body_cost(body: list[BodyPart]) -> int:
    return sum(PART_COSTS[part] for part in body)


def is_viable(role: Role, body: list[BodyPart]) -> bool:
    """Whether *body* can do anything useful in *role*."""
    parts = set(body)
    if role is Role.MINER:
        return BodyPart.WORK in parts
    if role in _HAULERS:
        return {BodyPart.CARRY, BodyPart.MOVE} <= parts
    if role in _BALANCED:
        return {BodyPart.WORK, BodyPart.CARRY, BodyPart.MOVE} <= parts
    return False
