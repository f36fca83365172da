"""Repository layer holding routine state in memory with a SQLite mirror."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing, contextmanager
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from backend.domain.models import (
    ClassRoom,
    CourseLoad,
    Notification,
    NotificationSeverity,
    NotificationSlotDetails,
    Program,
    RequestStatus,
    RoutineAssignmentRequest,
    RoutineEntry,
    RoutineSnapshot,
    SlotKey,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _iso(value: date | datetime | None) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _slot_from_row(row: sqlite3.Row) -> SlotKey:
    return SlotKey(
        day=str(row["day"]),
        room_id=str(row["room_id"]),
        start_time=str(row["start_time"]),
        end_time=str(row["end_time"]),
        slot_type=str(row["slot_type"]),
    )


class RoutineRepository:
    """Owns the authoritative in-memory snapshot.

    Writers replace the whole snapshot (copy-on-write). When persistence is
    enabled each replacement is mirrored to SQLite on a best-effort basis;
    mirror failures are logged and never surface to callers.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._snapshot = RoutineSnapshot()
        if self._settings.persistence_enabled:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    @property
    def persistence_enabled(self) -> bool:
        return self._settings.persistence_enabled

    def snapshot(self) -> RoutineSnapshot:
        return self._snapshot

    def replace_snapshot(self, snapshot: RoutineSnapshot) -> None:
        self._snapshot = snapshot
        self._mirror(snapshot)

    def load_entities(
        self,
        programs: Iterable[Program] = (),
        class_rooms: Iterable[ClassRoom] = (),
        course_loads: Iterable[CourseLoad] = (),
    ) -> None:
        """Replace the read-only entity inputs, keeping Ledger and Queue."""
        current = self._snapshot
        self.replace_snapshot(
            RoutineSnapshot(
                programs=tuple(programs),
                class_rooms=tuple(class_rooms),
                course_loads=tuple(course_loads),
                entries=current.entries,
                requests=current.requests,
                notifications=current.notifications,
            )
        )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and is always closed."""
        with closing(sqlite3.connect(self._db_path)) as connection:
            connection.row_factory = sqlite3.Row
            with connection:
                yield connection

    def initialize_database(self) -> None:
        """Create the mirror tables; a no-op when persistence is disabled."""
        if not self.persistence_enabled:
            return
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS Programs (
                        id TEXT PRIMARY KEY,
                        program_code TEXT NOT NULL,
                        program_name TEXT NOT NULL DEFAULT ''
                    );
                    CREATE TABLE IF NOT EXISTS ClassRooms (
                        id TEXT PRIMARY KEY,
                        building TEXT NOT NULL,
                        room TEXT NOT NULL,
                        room_owner TEXT NOT NULL DEFAULT '',
                        shared_with TEXT NOT NULL DEFAULT '[]',
                        room_type TEXT NOT NULL DEFAULT 'Theory',
                        capacity INTEGER NOT NULL DEFAULT 0
                    );
                    CREATE TABLE IF NOT EXISTS CourseLoads (
                        id TEXT PRIMARY KEY,
                        course_code TEXT NOT NULL,
                        course_title TEXT NOT NULL DEFAULT '',
                        section TEXT NOT NULL DEFAULT '',
                        teacher_name TEXT NOT NULL DEFAULT ''
                    );
                    CREATE TABLE IF NOT EXISTS RoutineEntries (
                        id TEXT PRIMARY KEY,
                        day TEXT NOT NULL,
                        room_id TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        slot_type TEXT NOT NULL,
                        course_load_id TEXT NOT NULL,
                        program_id TEXT NOT NULL,
                        booking_end_date TEXT
                    );
                    CREATE TABLE IF NOT EXISTS AssignmentRequests (
                        id TEXT PRIMARY KEY,
                        requesting_program_id TEXT NOT NULL,
                        room_owner_program_code TEXT NOT NULL,
                        day TEXT NOT NULL,
                        room_id TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        slot_type TEXT NOT NULL,
                        requested_course_load_id TEXT NOT NULL,
                        booking_end_date TEXT NOT NULL,
                        status TEXT NOT NULL CHECK (status IN ('pending','approved','rejected')),
                        request_date TEXT NOT NULL,
                        resolution_date TEXT,
                        rejection_reason TEXT
                    );
                    CREATE TABLE IF NOT EXISTS Notifications (
                        id TEXT PRIMARY KEY,
                        recipient_program_id TEXT NOT NULL,
                        message TEXT NOT NULL,
                        severity TEXT NOT NULL,
                        timestamp TEXT NOT NULL,
                        is_read INTEGER NOT NULL CHECK (is_read IN (0,1)),
                        related_request_id TEXT,
                        related_slot TEXT
                    );
                    CREATE INDEX IF NOT EXISTS idx_requests_owner_status
                    ON AssignmentRequests(room_owner_program_code, status);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def load_from_database(self) -> None:
        """Hydrate the in-memory snapshot from the mirror tables."""
        if not self.persistence_enabled:
            return
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM Programs ORDER BY id ASC;")
                programs = tuple(
                    Program(
                        id=str(row["id"]),
                        program_code=str(row["program_code"]),
                        program_name=str(row["program_name"]),
                    )
                    for row in cursor.fetchall()
                )
                cursor.execute("SELECT * FROM ClassRooms ORDER BY id ASC;")
                class_rooms = tuple(
                    ClassRoom(
                        id=str(row["id"]),
                        building=str(row["building"]),
                        room=str(row["room"]),
                        room_owner=str(row["room_owner"]),
                        shared_with=tuple(json.loads(row["shared_with"])),
                        room_type=str(row["room_type"]),
                        capacity=int(row["capacity"]),
                    )
                    for row in cursor.fetchall()
                )
                cursor.execute("SELECT * FROM CourseLoads ORDER BY id ASC;")
                course_loads = tuple(
                    CourseLoad(
                        id=str(row["id"]),
                        course_code=str(row["course_code"]),
                        course_title=str(row["course_title"]),
                        section=str(row["section"]),
                        teacher_name=str(row["teacher_name"]),
                    )
                    for row in cursor.fetchall()
                )
                cursor.execute("SELECT * FROM RoutineEntries ORDER BY rowid ASC;")
                entries = tuple(
                    RoutineEntry(
                        id=str(row["id"]),
                        slot=_slot_from_row(row),
                        course_load_id=str(row["course_load_id"]),
                        program_id=str(row["program_id"]),
                        booking_end_date=_parse_date(row["booking_end_date"]),
                    )
                    for row in cursor.fetchall()
                )
                cursor.execute("SELECT * FROM AssignmentRequests ORDER BY rowid ASC;")
                requests = tuple(
                    RoutineAssignmentRequest(
                        id=str(row["id"]),
                        requesting_program_id=str(row["requesting_program_id"]),
                        room_owner_program_code=str(row["room_owner_program_code"]),
                        slot=_slot_from_row(row),
                        requested_course_load_id=str(row["requested_course_load_id"]),
                        booking_end_date=date.fromisoformat(row["booking_end_date"]),
                        status=RequestStatus(row["status"]),
                        request_date=datetime.fromisoformat(row["request_date"]),
                        resolution_date=_parse_datetime(row["resolution_date"]),
                        rejection_reason=row["rejection_reason"],
                    )
                    for row in cursor.fetchall()
                )
                cursor.execute("SELECT * FROM Notifications ORDER BY rowid ASC;")
                notifications = tuple(
                    Notification(
                        id=str(row["id"]),
                        recipient_program_id=str(row["recipient_program_id"]),
                        message=str(row["message"]),
                        severity=NotificationSeverity(row["severity"]),
                        timestamp=datetime.fromisoformat(row["timestamp"]),
                        is_read=bool(row["is_read"]),
                        related_request_id=row["related_request_id"],
                        related_slot=(
                            NotificationSlotDetails(**json.loads(row["related_slot"]))
                            if row["related_slot"]
                            else None
                        ),
                    )
                    for row in cursor.fetchall()
                )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Loading routine state failed: {exc}") from exc

        self._snapshot = RoutineSnapshot(
            programs=programs,
            class_rooms=class_rooms,
            course_loads=course_loads,
            entries=entries,
            requests=requests,
            notifications=notifications,
        )
        logger.info(
            "Routine state loaded | entries=%s | requests=%s | notifications=%s",
            len(entries),
            len(requests),
            len(notifications),
        )

    def _mirror(self, snapshot: RoutineSnapshot) -> None:
        if not self.persistence_enabled:
            return
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                for table in (
                    "Programs",
                    "ClassRooms",
                    "CourseLoads",
                    "RoutineEntries",
                    "AssignmentRequests",
                    "Notifications",
                ):
                    cursor.execute(f"DELETE FROM {table};")
                cursor.executemany(
                    "INSERT INTO Programs (id, program_code, program_name) VALUES (?, ?, ?);",
                    [(item.id, item.program_code, item.program_name) for item in snapshot.programs],
                )
                cursor.executemany(
                    """
                    INSERT INTO ClassRooms (id, building, room, room_owner, shared_with, room_type, capacity)
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            item.id,
                            item.building,
                            item.room,
                            item.room_owner,
                            json.dumps(list(item.shared_with)),
                            item.room_type,
                            item.capacity,
                        )
                        for item in snapshot.class_rooms
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO CourseLoads (id, course_code, course_title, section, teacher_name)
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    [
                        (item.id, item.course_code, item.course_title, item.section, item.teacher_name)
                        for item in snapshot.course_loads
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO RoutineEntries (
                        id, day, room_id, start_time, end_time, slot_type,
                        course_load_id, program_id, booking_end_date
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            item.id,
                            item.slot.day,
                            item.slot.room_id,
                            item.slot.start_time,
                            item.slot.end_time,
                            item.slot.slot_type,
                            item.course_load_id,
                            item.program_id,
                            _iso(item.booking_end_date),
                        )
                        for item in snapshot.entries
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO AssignmentRequests (
                        id, requesting_program_id, room_owner_program_code,
                        day, room_id, start_time, end_time, slot_type,
                        requested_course_load_id, booking_end_date, status,
                        request_date, resolution_date, rejection_reason
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            item.id,
                            item.requesting_program_id,
                            item.room_owner_program_code,
                            item.slot.day,
                            item.slot.room_id,
                            item.slot.start_time,
                            item.slot.end_time,
                            item.slot.slot_type,
                            item.requested_course_load_id,
                            _iso(item.booking_end_date),
                            item.status.value,
                            _iso(item.request_date),
                            _iso(item.resolution_date),
                            item.rejection_reason,
                        )
                        for item in snapshot.requests
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO Notifications (
                        id, recipient_program_id, message, severity, timestamp,
                        is_read, related_request_id, related_slot
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            item.id,
                            item.recipient_program_id,
                            item.message,
                            item.severity.value,
                            _iso(item.timestamp),
                            1 if item.is_read else 0,
                            item.related_request_id,
                            json.dumps(asdict(item.related_slot)) if item.related_slot else None,
                        )
                        for item in snapshot.notifications
                    ],
                )
                conn.commit()
        except sqlite3.Error as exc:
            logger.error("Routine state mirror failed; in-memory state kept | error=%s", exc)

    def seed_demo_data(self) -> None:
        """Load sample programs, rooms and course loads into an empty store."""
        if self._snapshot.programs:
            logger.info("Entity data already present; skipping seed")
            return

        programs = [
            Program(id="p10", program_code="10 B.A. in ENG", program_name="B.A. in English"),
            Program(id="p11", program_code="11 BBA", program_name="Bachelor of Business Administration"),
            Program(id="p15", program_code="15 B.Sc. in CSE", program_name="B.Sc. in Computer Science & Engineering"),
            Program(id="p29", program_code="29 B. Pharma", program_name="Bachelor of Pharmacy"),
            Program(id="p55", program_code="55 B.Sc. in AGS", program_name="B.Sc. in Agricultural Science"),
        ]
        class_rooms = [
            ClassRoom(id="cr1", building="AB-1", room="103", room_owner="55 B.Sc. in AGS",
                      shared_with=("15 B.Sc. in CSE",), capacity=50),
            ClassRoom(id="cr2", building="AB-1", room="104", room_owner="29 B. Pharma", capacity=50),
            ClassRoom(id="cr4", building="FSIT", room="301", room_owner="15 B.Sc. in CSE", capacity=60),
            ClassRoom(id="cr5", building="FSIT", room="405L", room_owner="15 B.Sc. in CSE",
                      room_type="Lab", capacity=40),
            ClassRoom(id="cr6", building="FHSS-Main", room="210", room_owner="10 B.A. in ENG", capacity=50),
            ClassRoom(id="cr7", building="Admin", room="505", shared_with=("11 BBA",), capacity=45),
        ]
        course_loads = [
            CourseLoad(id="cl-cse101", course_code="CSE101", course_title="Structured Programming", section="A"),
            CourseLoad(id="cl-cse102", course_code="CSE102", course_title="Discrete Mathematics", section="A"),
            CourseLoad(id="cl-bba101", course_code="BBA101", course_title="Principles of Management", section="B"),
            CourseLoad(id="cl-eng101", course_code="ENG101", course_title="English Composition", section="C"),
        ]
        self.load_entities(programs, class_rooms, course_loads)
        logger.info(
            "Demo seed completed | programs=%s | rooms=%s | course_loads=%s",
            len(programs),
            len(class_rooms),
            len(course_loads),
        )
