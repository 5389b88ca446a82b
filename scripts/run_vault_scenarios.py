from __future__ import annotations

import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from logic import MAX_CAPACITY, PROVINCES, ROOM_TYPES, SPECIALIZATIONS
from storage import MemoryStorage
from vault import StudentVault


def scenario_inputs() -> list[dict[str, Any]]:
    return [
        {"name": "Najran applicant, strong GPA", "gpa": 4.75, "province": "نجران", "room_type": "premium"},
        {"name": "Najran applicant, mid GPA", "gpa": 4.25, "province": "نجران", "room_type": "standard"},
        {"name": "Riyadh applicant, top GPA", "gpa": 5.0, "province": "الرياض", "room_type": "suite"},
        {"name": "Unmapped province", "gpa": 3.5, "province": "خارج المملكة", "room_type": "unknown"},
        {"name": "Missing GPA", "gpa": None, "province": "جازان", "room_type": "standard"},
    ]


def build_application(index: int, overrides: dict[str, Any]) -> dict[str, Any]:
    return {
        "full_name": f"طالب تجريبي رقم {index}",
        "national_id": f"1{index:09d}",
        "phone": f"05{index:08d}",
        "email": f"student{index}@nu.edu.sa",
        "gender": "male" if index % 2 else "female",
        "province": PROVINCES[index % len(PROVINCES)],
        "gpa": 3.0,
        "specialization": SPECIALIZATIONS[index % len(SPECIALIZATIONS)],
        "room_type": ROOM_TYPES[index % len(ROOM_TYPES)],
        **overrides,
    }


def main() -> None:
    vault = StudentVault(
        MemoryStorage(),
        clock=lambda: datetime(2026, 9, 1, 8, 0, tzinfo=timezone.utc),
        rng=random.Random(7),
    )

    print("=== Priority and fees ===")
    for idx, scenario in enumerate(scenario_inputs(), start=1):
        overrides = {key: value for key, value in scenario.items() if key != "name"}
        result = vault.save(build_application(idx, overrides))
        app = result.application or {}
        print(f"{scenario['name']}: score={vault.priority_score(app)} fees={app.get('fees')} ref={result.reference_number}")

    print("\n=== Capacity ===")
    for idx in range(100, 100 + MAX_CAPACITY + 1):
        vault.save(build_application(idx, {}))
    print(f"Stored {vault.count()} of {MAX_CAPACITY}; oldest kept: {vault.list()[-1]['national_id']}")

    print("\n=== Resubmission ===")
    first = vault.list()[10]
    result = vault.save({**first, "room_type": "suite"})
    print(f"Updated={result.updated} position kept={vault.list()[10]['id'] == first['id']} total={vault.count()}")

    print("\n=== Top 5 by priority ===")
    for rank, app in enumerate(vault.ranked_by_priority()[:5], start=1):
        print(f"{rank}. {app['full_name']} ({app['province']}, GPA {app['gpa']}) -> {app['priority_score']}")


if __name__ == "__main__":
    main()
