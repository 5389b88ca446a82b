from __future__ import annotations

import json
import math
import random
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from errors import PersistenceError, ValidationError
from export import build_csv_export, build_json_export
from log import get_logger
from logic import (
    MAX_CAPACITY,
    STATUSES,
    _to_decimal,
    compute_priority_score,
    fee_for_room,
    generate_reference_number,
)
from storage import Storage

logger = get_logger("vault")

DEFAULT_STORAGE_KEY = "student_housing_vault"
EVENTS_KEY_SUFFIX = "_events"
MAX_EVENTS = 100
DEFAULT_ROWS_PER_PAGE = 25

SEARCH_FIELDS = ("full_name", "national_id", "reference_number", "phone")
SORT_KEYS = {"date_desc", "date_asc", "gpa_desc", "gpa_asc", "name_asc", "name_desc"}


@dataclass
class SaveResult:
    success: bool
    message: str
    reference_number: str | None = None
    application: dict[str, Any] | None = None
    total_applications: int = 0
    updated: bool = False


@dataclass
class Page:
    items: list[dict[str, Any]]
    page: int
    per_page: int
    total_items: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.total_pages = math.ceil(self.total_items / self.per_page) if self.total_items else 0

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

SORT_FIELDS: dict[str, Callable[[dict[str, Any]], Any]] = {
    "date": lambda app: _parse_timestamp(app.get("registration_date")) or _EPOCH,
    "gpa": lambda app: _to_decimal(app.get("gpa")),
    "name": lambda app: str(app.get("full_name") or "").lower(),
}


class StudentVault:
    """Bounded store of housing applications.

    Records are kept newest-first under a single storage key. A national ID
    appears at most once: saving it again updates the record in place. When a
    new national ID pushes the vault past capacity, the earliest inserted
    record (the tail) is evicted.
    """

    def __init__(
        self,
        storage: Storage,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_applications: int = MAX_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self.storage = storage
        self.storage_key = storage_key
        self.events_key = f"{storage_key}{EVENTS_KEY_SUFFIX}"
        self.max_applications = max_applications
        self.clock = clock
        self.rng = rng or random.Random()
        self._lock = threading.RLock()

    # -- persistence -----------------------------------------------------

    def _read(self) -> list[dict[str, Any]]:
        try:
            raw = self.storage.read(self.storage_key)
        except PersistenceError as exc:
            logger.warning("Vault read failed, treating as empty: %s", exc)
            return []
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Vault payload is corrupted, treating as empty: %s", exc)
            return []
        if not isinstance(data, list):
            logger.warning("Vault payload is not a list, treating as empty")
            return []
        return [item for item in data if isinstance(item, dict)]

    def _write(self, applications: list[dict[str, Any]]) -> bool:
        try:
            self.storage.write(self.storage_key, json.dumps(applications, ensure_ascii=False))
        except (PersistenceError, TypeError, ValueError) as exc:
            logger.error("Vault write failed: %s", exc)
            return False
        return True

    def _log_event(self, name: str, data: dict[str, Any]) -> None:
        logger.info("%s %s", name, data)
        try:
            raw = self.storage.read(self.events_key)
            events = json.loads(raw) if raw else []
            if not isinstance(events, list):
                events = []
            events.append({"event": name, "data": data, "timestamp": self.clock().isoformat()})
            self.storage.write(self.events_key, json.dumps(events[-MAX_EVENTS:], ensure_ascii=False))
        except (PersistenceError, TypeError, ValueError) as exc:
            logger.warning("Could not record vault event %s: %s", name, exc)

    def events(self) -> list[dict[str, Any]]:
        try:
            raw = self.storage.read(self.events_key)
            events = json.loads(raw) if raw else []
        except (PersistenceError, TypeError, ValueError) as exc:
            logger.warning("Could not read vault events: %s", exc)
            return []
        return events if isinstance(events, list) else []

    # -- core operations ---------------------------------------------------

    def save(self, application: dict[str, Any]) -> SaveResult:
        with self._lock:
            applications = self._read()
            now = self.clock()
            reference_number = generate_reference_number(now, self.rng)
            national_id = str(application.get("national_id") or "").strip()

            record = {
                **application,
                "national_id": national_id,
                "reference_number": reference_number,
                "registration_date": now.isoformat(),
                "fees": fee_for_room(application.get("room_type")),
            }

            existing_index = next(
                (idx for idx, item in enumerate(applications) if item.get("national_id") == national_id),
                None,
            )
            evicted: list[dict[str, Any]] = []
            if existing_index is not None:
                record = {**applications[existing_index], **record, "id": applications[existing_index].get("id")}
                if not record["id"]:
                    record["id"] = uuid.uuid4().hex
                applications[existing_index] = record
            else:
                record["id"] = uuid.uuid4().hex
                applications.insert(0, record)
                if len(applications) > self.max_applications:
                    evicted = applications[self.max_applications:]
                    applications = applications[: self.max_applications]
            if not record.get("status"):
                record["status"] = "pending"

            if not self._write(applications):
                return SaveResult(success=False, message="The application could not be saved.")

            updated = existing_index is not None
            self._log_event(
                "application_updated" if updated else "application_saved",
                {"national_id": national_id, "reference_number": reference_number},
            )
            for old in evicted:
                self._log_event("application_evicted", {"national_id": old.get("national_id")})

            return SaveResult(
                success=True,
                message="Application updated in the vault." if updated else "Application saved to the vault.",
                reference_number=reference_number,
                application=dict(record),
                total_applications=len(applications),
                updated=updated,
            )

    def list(self) -> list[dict[str, Any]]:
        return self._read()

    def count(self) -> int:
        return len(self._read())

    def find_by_national_id(self, national_id: str) -> dict[str, Any] | None:
        national_id = str(national_id or "").strip()
        return next((app for app in self._read() if app.get("national_id") == national_id), None)

    def get(self, application_id: str) -> dict[str, Any] | None:
        return next((app for app in self._read() if app.get("id") == application_id), None)

    def delete(self, application_id: str) -> bool:
        with self._lock:
            applications = self._read()
            remaining = [app for app in applications if app.get("id") != application_id]
            if len(remaining) == len(applications):
                return False
            if not self._write(remaining):
                return False
            deleted = next(app for app in applications if app.get("id") == application_id)
            self._log_event("application_deleted", {"national_id": deleted.get("national_id")})
            return True

    def search(self, query: str | None) -> list[dict[str, Any]]:
        applications = self._read()
        term = (query or "").strip().lower()
        if not term:
            return applications
        return [
            app
            for app in applications
            if any(term in str(app.get(name) or "").lower() for name in SEARCH_FIELDS)
        ]

    def priority_score(self, application: dict[str, Any]) -> int:
        return compute_priority_score(application.get("gpa"), application.get("province"))

    def ranked_by_priority(self) -> list[dict[str, Any]]:
        scored = [{**app, "priority_score": self.priority_score(app)} for app in self._read()]
        # sorted() is stable, so equal scores keep their stored order.
        return sorted(scored, key=lambda item: item["priority_score"], reverse=True)

    def statistics(self) -> dict[str, Any]:
        applications = self._read()
        total = len(applications)
        gender_counts = {"male": 0, "female": 0}
        province_counts: dict[str, int] = {}
        specialization_counts: dict[str, int] = {}
        gpa_sum = _to_decimal(0)
        total_fees = 0

        for app in applications:
            gender = str(app.get("gender") or "unknown")
            gender_counts[gender] = gender_counts.get(gender, 0) + 1
            province = str(app.get("province") or "unknown")
            province_counts[province] = province_counts.get(province, 0) + 1
            specialization = str(app.get("specialization") or "unknown")
            specialization_counts[specialization] = specialization_counts.get(specialization, 0) + 1
            gpa_sum += _to_decimal(app.get("gpa"))
            total_fees += int(_to_decimal(app.get("fees")))

        average_gpa = round(float(gpa_sum / total), 2) if total else 0

        return {
            "total": total,
            "average_gpa": average_gpa,
            "gender_counts": gender_counts,
            "province_counts": province_counts,
            "specialization_counts": specialization_counts,
            "total_fees": total_fees,
        }

    def export_json(self) -> str:
        return build_json_export(self._read())

    def export_csv(self) -> str:
        return build_csv_export(self._read())

    def clear(self) -> bool:
        with self._lock:
            try:
                self.storage.remove(self.storage_key)
            except PersistenceError as exc:
                logger.error("Vault clear failed: %s", exc)
                return False
            self._log_event("vault_cleared", {})
            return True

    # -- admin helpers -----------------------------------------------------

    def load_json(self, payload: str) -> int:
        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Snapshot is not valid JSON.") from exc
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ValidationError("Snapshot must be a JSON array of application objects.")
        return self.load_records(data)

    def load_records(self, records: list[dict[str, Any]]) -> int:
        """Replace the vault contents with ``records`` (newest-first).

        Records without an ``id`` get one, repeated national IDs keep only
        their first occurrence, and anything past capacity is dropped.
        """
        seen: set[str] = set()
        applications: list[dict[str, Any]] = []
        for item in records:
            national_id = str(item.get("national_id") or "").strip()
            if national_id in seen:
                continue
            seen.add(national_id)
            applications.append({**item, "national_id": national_id, "id": item.get("id") or uuid.uuid4().hex})
        applications = applications[: self.max_applications]

        with self._lock:
            if not self._write(applications):
                raise PersistenceError("The snapshot could not be written to storage.")
            self._log_event("vault_loaded", {"count": len(applications)})
            return len(applications)

    def update_status(self, application_id: str, status: str) -> bool:
        if status not in STATUSES:
            raise ValidationError(f"Unknown status: {status}", {"status": "invalid"})
        with self._lock:
            applications = self._read()
            for app in applications:
                if app.get("id") == application_id:
                    app["status"] = status
                    break
            else:
                return False
            if not self._write(applications):
                return False
            self._log_event("status_updated", {"id": application_id, "status": status})
            return True

    def filter(
        self,
        gender: str | None = None,
        province: str | None = None,
        status: str | None = None,
        applications: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        items = self._read() if applications is None else applications
        criteria = {"gender": gender, "province": province, "status": status}
        for name, value in criteria.items():
            if value:
                items = [app for app in items if app.get(name) == value]
        return items

    def sorted_by(self, sort_key: str, applications: list[dict[str, Any]] | None = None) -> list[dict[str, Any]]:
        if sort_key not in SORT_KEYS:
            raise ValidationError(f"Unknown sort option: {sort_key}", {"sort": "invalid"})
        items = self._read() if applications is None else list(applications)
        field_name, direction = sort_key.rsplit("_", 1)
        reverse = direction == "desc"

        return sorted(items, key=SORT_FIELDS[field_name], reverse=reverse)

    def paginate(
        self,
        applications: list[dict[str, Any]],
        page: int = 1,
        per_page: int = DEFAULT_ROWS_PER_PAGE,
    ) -> Page:
        per_page = max(1, per_page)
        total_pages = max(1, math.ceil(len(applications) / per_page))
        page = min(max(1, page), total_pages)
        start = (page - 1) * per_page
        return Page(items=applications[start : start + per_page], page=page, per_page=per_page, total_items=len(applications))

    def cleanup_old_applications(self, max_age_days: int = 7) -> int:
        with self._lock:
            applications = self._read()
            cutoff = self.clock() - timedelta(days=max_age_days)
            remaining = []
            for app in applications:
                registered = _parse_timestamp(app.get("registration_date"))
                if registered is not None and registered <= cutoff:
                    continue
                remaining.append(app)
            removed = len(applications) - len(remaining)
            if removed == 0:
                return 0
            if not self._write(remaining):
                return 0
            self._log_event("applications_cleaned", {"removed": removed, "max_age_days": max_age_days})
            return removed
