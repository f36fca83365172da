#!/usr/bin/env python3
"""Validate local routine arbitration environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sqlite3
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.models import Decision, RequestStatus, TimeSlot
from backend.repository.routine_repository import RoutineRepository
from backend.services.arbitration_service import RoutineArbitrationService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="routine-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    from importlib.metadata import PackageNotFoundError, version

    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        temp_db_path = Path(temp_dir) / "routine_validation.db"
        validation_settings = replace(
            get_settings(),
            database_path=temp_db_path,
            persistence_enabled=True,
        )
        repository = RoutineRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo entity seeding mirrored to SQLite
        try:
            repository.seed_demo_data()
            with sqlite3.connect(temp_db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) FROM ClassRooms;")
                seeded_rooms = int(cursor.fetchone()[0])
            if seeded_rooms == 0:
                raise RuntimeError("no class rooms mirrored")
            ok, line = _print_result("Demo seed", True, f": {seeded_rooms} rooms")
        except (RuntimeError, sqlite3.Error) as exc:
            ok, line = _print_result("Demo seed", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Shared room request + owner approval round trip
        service = RoutineArbitrationService(repository=repository, settings=validation_settings)
        try:
            effect = service.submit_assignment_intent(
                day="Saturday",
                room_id="cr4",
                time_slot=TimeSlot("08:30", "10:00", "Theory"),
                acting_program_id="p11",
                course_load_id="cl-cse101",
                booking_end_date=date.today() + timedelta(days=30),
            )
            request = effect.requests_created[0]
            approval = service.resolve_request(
                request_id=request.id,
                acting_program_id="p15",
                decision=Decision.APPROVE,
            )
            if approval.requests_updated[0].status is not RequestStatus.APPROVED:
                raise RuntimeError("request was not approved")
            ok, line = _print_result(
                "Arbitration round trip",
                True,
                f": entry {approval.entries_created[0].id}",
            )
        except Exception as exc:  # pragma: no cover - runtime guard
            ok, line = _print_result("Arbitration round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Routine Arbitration Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
