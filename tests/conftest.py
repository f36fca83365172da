from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from backend.domain.constraints import ArbitrationConfig
from backend.domain.models import ClassRoom, CourseLoad, Program, RoutineSnapshot
from backend.utils.config import get_settings


FIXED_NOW = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


class Clock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current


def _sequential_ids():
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


@pytest.fixture
def clock() -> Clock:
    return Clock(FIXED_NOW)


@pytest.fixture
def config(clock: Clock) -> ArbitrationConfig:
    return ArbitrationConfig(now=clock, id_factory=_sequential_ids(), campus_timezone=timezone.utc)


@pytest.fixture
def snapshot() -> RoutineSnapshot:
    return RoutineSnapshot(
        programs=(
            Program(id="p15", program_code="15 CSE"),
            Program(id="p11", program_code="11 BBA"),
            Program(id="p10", program_code="10 ENG"),
        ),
        class_rooms=(
            ClassRoom(id="cr4", building="FSIT", room="301", room_owner="15 CSE"),
            ClassRoom(id="cr7", building="Admin", room="505", shared_with=("11 BBA",)),
            ClassRoom(id="cr9", building="AB-1", room="109", room_owner="99 GHOST"),
        ),
        course_loads=(
            CourseLoad(id="cl-cse101", course_code="CSE101"),
            CourseLoad(id="cl-cse102", course_code="CSE102"),
            CourseLoad(id="cl-bba101", course_code="BBA101"),
        ),
    )


@pytest.fixture
def memory_settings(tmp_path):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / "routine.db",
        persistence_enabled=False,
        seed_demo_data=False,
        campus_timezone="",
    )
