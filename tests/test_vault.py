import json
import random
import re
import threading
import time

import pytest

from errors import PersistenceError, ValidationError
from logic import MAX_CAPACITY
from storage import MemoryStorage
from vault import DEFAULT_STORAGE_KEY, StudentVault


def base_application(index: int = 1, **overrides) -> dict:
    app = {
        "full_name": "أحمد محمد العتيبي",
        "national_id": f"10{index:08d}",
        "phone": "0512345678",
        "email": f"student{index}@nu.edu.sa",
        "gender": "male",
        "province": "نجران",
        "gpa": 4.0,
        "specialization": "هندسة حاسب",
        "room_type": "standard",
    }
    app.update(overrides)
    return app


class FailingWriteStorage(MemoryStorage):
    def write(self, key: str, payload: str) -> None:
        raise PersistenceError("disk full")

    def remove(self, key: str) -> None:
        raise PersistenceError("disk full")


class FailingReadStorage(MemoryStorage):
    def read(self, key: str) -> str | None:
        raise PersistenceError("storage unavailable")


def test_save_assigns_reference_fees_and_pending_status(vault) -> None:
    result = vault.save(base_application(room_type="suite"))

    assert result.success is True
    assert result.updated is False
    assert result.total_applications == 1
    assert re.match(r"^NU-2026-0901-\d{4}$", result.reference_number)
    assert result.application["fees"] == 8000
    assert result.application["status"] == "pending"
    assert result.application["registration_date"] == "2026-09-01T08:30:00+00:00"
    assert result.application["id"]


def test_save_unknown_room_type_gets_default_fee(vault) -> None:
    result = vault.save(base_application(room_type="penthouse"))

    assert result.application["fees"] == 4000


def test_save_keeps_newest_first_order(vault) -> None:
    vault.save(base_application(1))
    vault.save(base_application(2))
    vault.save(base_application(3))

    assert [app["national_id"] for app in vault.list()] == ["1000000003", "1000000002", "1000000001"]


def test_resubmission_updates_in_place(vault, clock) -> None:
    first = vault.save(base_application(1, room_type="standard")).application
    vault.save(base_application(2))
    clock.advance(days=1)

    result = vault.save(base_application(1, room_type="premium", gpa=4.5))
    applications = vault.list()

    assert result.updated is True
    assert result.total_applications == 2
    assert [app["national_id"] for app in applications] == ["1000000002", "1000000001"]
    updated = applications[1]
    assert updated["id"] == first["id"]
    assert updated["fees"] == 6000
    assert updated["gpa"] == 4.5
    assert updated["registration_date"] == "2026-09-02T08:30:00+00:00"
    assert updated["reference_number"] == result.reference_number


def test_resubmission_keeps_existing_status(vault) -> None:
    saved = vault.save(base_application(1)).application
    vault.update_status(saved["id"], "confirmed")

    vault.save(base_application(1, gpa=3.9))

    assert vault.find_by_national_id("1000000001")["status"] == "confirmed"


def test_capacity_evicts_oldest_record(vault) -> None:
    for index in range(MAX_CAPACITY + 1):
        vault.save(base_application(index))

    applications = vault.list()
    assert len(applications) == MAX_CAPACITY
    assert applications[0]["national_id"] == base_application(MAX_CAPACITY)["national_id"]
    assert vault.find_by_national_id(base_application(0)["national_id"]) is None
    assert vault.find_by_national_id(base_application(1)["national_id"]) is not None
    assert any(event["event"] == "application_evicted" for event in vault.events())


def test_update_at_capacity_does_not_evict(vault) -> None:
    for index in range(MAX_CAPACITY):
        vault.save(base_application(index))

    result = vault.save(base_application(0, gpa=3.0))

    assert result.updated is True
    assert vault.count() == MAX_CAPACITY
    assert vault.list()[-1]["national_id"] == base_application(0)["national_id"]


def test_write_failure_returns_unsuccessful_result() -> None:
    existing = [{"id": "a", "national_id": "1000000001", "gpa": 4.0}]
    storage = FailingWriteStorage({DEFAULT_STORAGE_KEY: json.dumps(existing)})
    vault = StudentVault(storage)

    result = vault.save(base_application(2))

    assert result.success is False
    assert result.reference_number is None
    assert result.message == "The application could not be saved."
    assert vault.list() == existing
    assert vault.delete("a") is False
    assert vault.update_status("a", "confirmed") is False
    assert vault.clear() is False


def test_read_failure_is_treated_as_empty() -> None:
    vault = StudentVault(FailingReadStorage())

    assert vault.list() == []
    assert vault.statistics()["total"] == 0
    assert vault.find_by_national_id("1000000001") is None


def test_corrupted_payload_is_treated_as_empty() -> None:
    storage = MemoryStorage({DEFAULT_STORAGE_KEY: "{not json"})
    vault = StudentVault(storage)

    assert vault.list() == []
    assert vault.save(base_application(1)).success is True
    assert vault.count() == 1


def test_non_list_payload_is_treated_as_empty() -> None:
    vault = StudentVault(MemoryStorage({DEFAULT_STORAGE_KEY: json.dumps({"national_id": "1"})}))

    assert vault.list() == []


def test_find_and_get(vault) -> None:
    saved = vault.save(base_application(7)).application

    assert vault.find_by_national_id(" 1000000007 ")["id"] == saved["id"]
    assert vault.get(saved["id"])["national_id"] == "1000000007"
    assert vault.find_by_national_id("1999999999") is None
    assert vault.get("missing") is None


def test_delete(vault) -> None:
    saved = vault.save(base_application(1)).application
    vault.save(base_application(2))

    assert vault.delete(saved["id"]) is True
    assert vault.delete(saved["id"]) is False
    assert [app["national_id"] for app in vault.list()] == ["1000000002"]


def test_search_matches_name_id_reference_and_phone(vault) -> None:
    first = vault.save(base_application(1, full_name="فاطمة عبدالله القحطاني", phone="0587654321")).application
    vault.save(base_application(2))

    assert [app["id"] for app in vault.search("فاطمة")] == [first["id"]]
    assert [app["id"] for app in vault.search("1000000001")] == [first["id"]]
    assert [app["id"] for app in vault.search(first["reference_number"].lower())] == [first["id"]]
    assert [app["id"] for app in vault.search("0587")] == [first["id"]]
    assert len(vault.search("")) == 2
    assert vault.search("nothing-here") == []


def test_ranked_by_priority_is_stable_for_ties(vault) -> None:
    vault.save(base_application(1, gpa=4.0))
    vault.save(base_application(2, gpa=4.0))
    vault.save(base_application(3, gpa=4.9, province="الشرقية"))

    ranked = vault.ranked_by_priority()

    assert [app["national_id"] for app in ranked] == ["1000000003", "1000000002", "1000000001"]
    assert ranked[0]["priority_score"] == 97
    assert ranked[1]["priority_score"] == ranked[2]["priority_score"] == 56


def test_priority_score_scenarios(vault) -> None:
    assert vault.priority_score({"gpa": 4.75, "province": "نجران"}) == 67
    assert vault.priority_score({"gpa": 4.25, "province": "نجران"}) == 60
    assert vault.priority_score({"gpa": 4.74, "province": "نجران"}) == 66
    assert vault.priority_score({}) == 15


def test_statistics_empty_vault(vault) -> None:
    stats = vault.statistics()

    assert stats == {
        "total": 0,
        "average_gpa": 0,
        "gender_counts": {"male": 0, "female": 0},
        "province_counts": {},
        "specialization_counts": {},
        "total_fees": 0,
    }


def test_statistics_aggregates(vault) -> None:
    vault.save(base_application(1, gpa=4.0, room_type="premium"))
    vault.save(base_application(2, gpa=3.33, gender="female", province="عسير", room_type="suite"))
    vault.save(base_application(3, gpa=3.0, specialization="قانون"))

    stats = vault.statistics()

    assert stats["total"] == 3
    assert stats["average_gpa"] == 3.44
    assert stats["gender_counts"] == {"male": 2, "female": 1}
    assert stats["province_counts"] == {"نجران": 2, "عسير": 1}
    assert stats["specialization_counts"] == {"هندسة حاسب": 2, "قانون": 1}
    assert stats["total_fees"] == 18000


def test_export_json_round_trips_through_load_json(vault, clock) -> None:
    vault.save(base_application(1))
    vault.save(base_application(2, room_type="suite"))
    exported = vault.export_json()

    other = StudentVault(MemoryStorage(), clock=clock)
    assert other.load_json(exported) == 2
    assert other.list() == vault.list()


def test_export_csv_has_header_and_rows(vault) -> None:
    vault.save(base_application(1))

    lines = vault.export_csv().splitlines()

    assert lines[0].startswith("Reference Number,Full Name,National ID")
    assert len(lines) == 2


def test_load_json_rejects_bad_payloads(vault) -> None:
    with pytest.raises(ValidationError):
        vault.load_json("not json")
    with pytest.raises(ValidationError):
        vault.load_json(json.dumps({"national_id": "1"}))
    with pytest.raises(ValidationError):
        vault.load_json(json.dumps([1, 2, 3]))


def test_load_records_dedups_and_truncates(clock) -> None:
    vault = StudentVault(MemoryStorage(), max_applications=2, clock=clock)
    records = [
        {"national_id": "1000000001", "full_name": "first"},
        {"national_id": "1000000001", "full_name": "duplicate"},
        {"national_id": "1000000002"},
        {"national_id": "1000000003"},
    ]

    assert vault.load_records(records) == 2
    applications = vault.list()
    assert [app["national_id"] for app in applications] == ["1000000001", "1000000002"]
    assert applications[0]["full_name"] == "first"
    assert all(app["id"] for app in applications)


def test_load_records_write_failure_raises() -> None:
    vault = StudentVault(FailingWriteStorage())

    with pytest.raises(PersistenceError):
        vault.load_records([{"national_id": "1000000001"}])


def test_clear_removes_everything(vault) -> None:
    vault.save(base_application(1))

    assert vault.clear() is True
    assert vault.list() == []
    assert vault.events()[-1]["event"] == "vault_cleared"


def test_update_status(vault) -> None:
    saved = vault.save(base_application(1)).application

    assert vault.update_status(saved["id"], "rejected") is True
    assert vault.get(saved["id"])["status"] == "rejected"
    assert vault.update_status("missing", "rejected") is False
    with pytest.raises(ValidationError):
        vault.update_status(saved["id"], "archived")


def test_filter_by_gender_province_and_status(vault) -> None:
    vault.save(base_application(1, gender="female", province="عسير"))
    second = vault.save(base_application(2, gender="male", province="عسير")).application
    vault.save(base_application(3, gender="male", province="نجران"))
    vault.update_status(second["id"], "confirmed")

    assert [app["national_id"] for app in vault.filter(province="عسير")] == ["1000000002", "1000000001"]
    assert [app["national_id"] for app in vault.filter(gender="male", province="عسير")] == ["1000000002"]
    assert [app["national_id"] for app in vault.filter(status="confirmed")] == ["1000000002"]
    assert len(vault.filter()) == 3


def test_sorted_by(vault, clock) -> None:
    vault.save(base_application(1, gpa=3.5, full_name="بدر"))
    clock.advance(hours=1)
    vault.save(base_application(2, gpa=4.5, full_name="أحمد"))
    clock.advance(hours=1)
    vault.save(base_application(3, gpa=2.5, full_name="تامر"))

    def ids(items):
        return [app["national_id"][-1] for app in items]

    assert ids(vault.sorted_by("date_desc")) == ["3", "2", "1"]
    assert ids(vault.sorted_by("date_asc")) == ["1", "2", "3"]
    assert ids(vault.sorted_by("gpa_desc")) == ["2", "1", "3"]
    assert ids(vault.sorted_by("gpa_asc")) == ["3", "1", "2"]
    assert ids(vault.sorted_by("name_asc")) == ["2", "1", "3"]
    with pytest.raises(ValidationError):
        vault.sorted_by("priority_desc")


def test_paginate(vault) -> None:
    items = [{"national_id": str(index)} for index in range(30)]

    page = vault.paginate(items, page=2, per_page=25)
    assert len(page.items) == 5
    assert page.total_pages == 2
    assert page.has_previous is True
    assert page.has_next is False

    clamped = vault.paginate(items, page=99, per_page=25)
    assert clamped.page == 2

    empty = vault.paginate([], page=3)
    assert empty.page == 1
    assert empty.items == []
    assert empty.total_pages == 0


def test_cleanup_old_applications(vault, clock) -> None:
    vault.save(base_application(1))
    clock.advance(days=8)
    vault.save(base_application(2))

    assert vault.cleanup_old_applications(max_age_days=7) == 1
    assert [app["national_id"] for app in vault.list()] == ["1000000002"]
    assert vault.cleanup_old_applications(max_age_days=7) == 0


def test_cleanup_keeps_records_with_unparseable_dates(clock) -> None:
    storage = MemoryStorage({DEFAULT_STORAGE_KEY: json.dumps([{"id": "x", "national_id": "1", "registration_date": "n/a"}])})
    vault = StudentVault(storage, clock=clock)

    assert vault.cleanup_old_applications(max_age_days=0) == 0
    assert vault.count() == 1


def test_events_are_recorded_and_capped(vault) -> None:
    for _ in range(60):
        vault.save(base_application(1))
        vault.save(base_application(2))

    events = vault.events()
    assert len(events) == 100
    assert events[-1]["event"] == "application_updated"
    assert events[-1]["data"]["national_id"] == "1000000002"
    assert "timestamp" in events[-1]


def test_reference_numbers_are_reproducible_with_seeded_rng(clock) -> None:
    first = StudentVault(MemoryStorage(), clock=clock, rng=random.Random(3)).save(base_application(1))
    second = StudentVault(MemoryStorage(), clock=clock, rng=random.Random(3)).save(base_application(1))

    assert first.reference_number == second.reference_number


def test_statistics_tolerates_imported_fee_values(vault) -> None:
    vault.load_json(
        json.dumps(
            [
                {"national_id": "1000000001", "gpa": 4.0, "fees": "6000.0"},
                {"national_id": "1000000002", "gpa": 3.0, "fees": "n/a"},
                {"national_id": "1000000003", "gpa": 3.5, "fees": None},
                {"national_id": "1000000004", "gpa": 3.5, "fees": 8000},
            ]
        )
    )

    stats = vault.statistics()

    assert stats["total"] == 4
    assert stats["total_fees"] == 14000


class SlowReadStorage(MemoryStorage):
    def read(self, key: str) -> str | None:
        payload = super().read(key)
        time.sleep(0.01)
        return payload


def test_concurrent_saves_for_one_national_id_store_one_record(clock) -> None:
    vault = StudentVault(SlowReadStorage(), clock=clock)
    barrier = threading.Barrier(2)
    results = []

    def submit(gpa: float) -> None:
        barrier.wait()
        results.append(vault.save(base_application(1, gpa=gpa)))

    threads = [threading.Thread(target=submit, args=(gpa,)) for gpa in (3.5, 4.5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert vault.count() == 1
    assert sorted(result.updated for result in results) == [False, True]
