"""Room authority classification and actor resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from backend.domain.constraints import ArbitrationConfig
from backend.domain.errors import NoProgramSelectedError
from backend.domain.models import ClassRoom, Program, RoutineSnapshot


@dataclass(frozen=True)
class OwnedAuthority:
    """The acting program owns the room and writes directly."""

    owner_code: str


@dataclass(frozen=True)
class SharedAuthority:
    """Another program owns the room; writes go through its approval."""

    owner_code: str
    allowed_requesters: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnownedAuthority:
    """Nobody owns the room; any program writes directly."""


RoomAuthority = Union[OwnedAuthority, SharedAuthority, UnownedAuthority]


def classify_room_authority(room: ClassRoom, acting_program: Program) -> RoomAuthority:
    if not room.room_owner:
        return UnownedAuthority()
    if room.room_owner == acting_program.program_code:
        return OwnedAuthority(owner_code=room.room_owner)
    return SharedAuthority(
        owner_code=room.room_owner,
        allowed_requesters=tuple(room.shared_with),
    )


def resolve_acting_program(
    snapshot: RoutineSnapshot,
    program_id: str,
    config: ArbitrationConfig,
) -> Program:
    """Return the concrete acting program or raise ``NoProgramSelectedError``."""
    if not program_id or program_id == config.all_programs_id:
        raise NoProgramSelectedError(
            "Please select a specific program to make assignments.",
            program_id=program_id,
        )
    program = snapshot.find_program(program_id)
    if program is None:
        raise NoProgramSelectedError(
            f"Program {program_id!r} is not a known program.",
            program_id=program_id,
        )
    return program
