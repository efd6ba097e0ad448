"""Execution phases — the per-unit sub-state of multi-phase behaviors.

Each phase is a small dataclass tagged by ``kind``. A unit holds at most
one phase; it is cleared whenever the unit's binding ends. A ``detached``
phase no longer depends on the task target still existing.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from tick_hive.types import SnapshotError


@dataclass
class SeekSource:
    kind: ClassVar[str] = "seek_source"
    detached: ClassVar[bool] = False


@dataclass
class Collecting:
    """Gathering from ``source_id`` with ``method`` (pickup/withdraw/harvest)."""

    kind: ClassVar[str] = "collecting"
    detached: ClassVar[bool] = False
    source_id: str
    method: str


@dataclass
class SeekDestination:
    kind: ClassVar[str] = "seek_destination"
    detached: ClassVar[bool] = True


@dataclass
class Delivering:
    kind: ClassVar[str] = "delivering"
    detached: ClassVar[bool] = True
    destination_id: str


@dataclass
class Towing:
    """Taxi escorting an immobile unit to its work site."""

    kind: ClassVar[str] = "towing"
    detached: ClassVar[bool] = False
    passenger_id: str


Phase = Union[SeekSource, Collecting, SeekDestination, Delivering, Towing]

_PHASES: dict[str, type] = {
    cls.kind: cls
    for cls in (SeekSource, Collecting, SeekDestination, Delivering, Towing)
}


def phase_to_dict(phase: Phase | None) -> dict[str, Any] | None:
    if phase is None:
        return None
    data = dataclasses.asdict(phase)
    data["kind"] = phase.kind
    return data


def phase_from_dict(data: dict[str, Any] | None) -> Phase | None:
    if data is None:
        return None
    fields = dict(data)
    kind = fields.pop("kind", None)
    cls = _PHASES.get(kind)  # type: ignore[arg-type]
    if cls is None:
        raise SnapshotError(f"Unknown execution phase: {kind!r}")
    return cls(**fields)
