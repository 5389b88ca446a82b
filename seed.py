from __future__ import annotations

import csv
import io
import os
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from auth import create_admin
from errors import PersistenceError, ValidationError
from export import CSV_COLUMNS
from log import get_logger
from models import AdminUser
from vault import StudentVault

logger = get_logger("seed")

REQUIRED_CSV_COLUMNS = {label for label, _ in CSV_COLUMNS}

DEMO_APPLICATIONS: list[dict[str, Any]] = [
    {
        "full_name": "أحمد محمد العتيبي",
        "national_id": "1087654321",
        "phone": "0512345678",
        "email": "ahmed@nu.edu.sa",
        "gender": "male",
        "province": "الرياض",
        "gpa": 4.75,
        "specialization": "هندسة حاسب",
        "room_type": "premium",
        "status": "confirmed",
    },
    {
        "full_name": "فاطمة عبدالله القحطاني",
        "national_id": "1098765432",
        "phone": "0587654321",
        "email": "fatima@nu.edu.sa",
        "gender": "female",
        "province": "نجران",
        "gpa": 4.90,
        "specialization": "طب وجراحة",
        "room_type": "suite",
        "status": "confirmed",
    },
    {
        "full_name": "خالد سعيد الغامدي",
        "national_id": "1076543210",
        "phone": "0567890123",
        "email": "khaled@nu.edu.sa",
        "gender": "male",
        "province": "مكة المكرمة",
        "gpa": 4.20,
        "specialization": "إدارة أعمال",
        "room_type": "standard",
        "status": "confirmed",
    },
]


def _parse_float(value: str) -> float | None:
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _parse_int(value: str) -> int | None:
    number = _parse_float(value)
    return int(number) if number is not None else None


def validate_csv_columns(columns: list[str]) -> tuple[bool, list[str]]:
    missing = sorted(REQUIRED_CSV_COLUMNS - set(columns))
    return len(missing) == 0, missing


def load_applications_from_csv(csv_text: str) -> list[dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(csv_text))
    valid, missing = validate_csv_columns(reader.fieldnames or [])
    if not valid:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    rows: list[dict[str, Any]] = []
    for row in reader:
        item: dict[str, Any] = {key: (row.get(label) or "").strip() for label, key in CSV_COLUMNS}
        item["gpa"] = _parse_float(row.get("GPA", ""))
        item["fees"] = _parse_int(row.get("Fees", ""))
        rows.append(item)
    return rows


@dataclass
class ImportResult:
    success: bool
    loaded: int = 0
    message: str = ""
    storage_failed: bool = False


def import_snapshot(vault: StudentVault, filename: str, text: str) -> ImportResult:
    """Replace the vault contents with an uploaded JSON or CSV snapshot."""
    try:
        if filename.lower().endswith(".csv"):
            loaded = vault.load_records(load_applications_from_csv(text))
        else:
            loaded = vault.load_json(text)
    except (ValidationError, ValueError) as exc:
        return ImportResult(success=False, message=str(exc))
    except PersistenceError as exc:
        logger.error("Snapshot import failed: %s", exc)
        return ImportResult(success=False, message=str(exc), storage_failed=True)
    return ImportResult(success=True, loaded=loaded)


def seed_default_admin(db: Session) -> AdminUser | None:
    username = os.getenv("ADMIN_USERNAME", "admin").strip()
    password = os.getenv("ADMIN_PASSWORD", "")

    existing = db.scalar(select(AdminUser).where(AdminUser.username == username))
    if existing:
        return existing
    if not password:
        logger.warning("ADMIN_PASSWORD is not set; no admin account was created.")
        return None
    logger.info("Creating admin account %s", username)
    return create_admin(db, username, password)


def seed_demo_applications(vault: StudentVault) -> int:
    if vault.count() > 0:
        return 0
    saved = 0
    # Reversed so the first demo student ends up at the head.
    for item in reversed(DEMO_APPLICATIONS):
        if vault.save(dict(item)).success:
            saved += 1
    return saved
