from __future__ import annotations

import random
from collections import Counter
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


MAX_CAPACITY = 50

FEE_TABLE = {
    "standard": 4000,
    "premium": 6000,
    "suite": 8000,
}
DEFAULT_FEE = FEE_TABLE["standard"]

# Relative distance from Najran; 0 is the local province.
DISTANCE_WEIGHTS = {
    "نجران": 0,
    "عسير": 30,
    "الباحة": 40,
    "جازان": 65,
    "القصيم": 70,
    "حائل": 75,
    "تبوك": 80,
    "الجوف": 82,
    "الرياض": 85,
    "المدينة المنورة": 88,
    "الحدود الشمالية": 89,
    "مكة المكرمة": 90,
    "الشرقية": 95,
}
DEFAULT_DISTANCE_WEIGHT = 50

GPA_WEIGHT = Decimal("70")
DISTANCE_FACTOR = Decimal("0.3")
MAX_GPA = Decimal("5")

PROVINCES = list(DISTANCE_WEIGHTS.keys())

SPECIALIZATIONS = [
    "طب وجراحة",
    "هندسة حاسب",
    "هندسة مدنية",
    "إدارة أعمال",
    "محاسبة",
    "قانون",
    "تربية خاصة",
    "علوم الحاسب",
    "صيدلة",
    "تمريض",
]

COLLEGE_MAP = {
    "طب وجراحة": "كلية الطب",
    "صيدلة": "كلية الصيدلة",
    "تمريض": "كلية التمريض",
    "هندسة حاسب": "كلية الهندسة",
    "هندسة مدنية": "كلية الهندسة",
    "علوم الحاسب": "كلية علوم الحاسب",
    "إدارة أعمال": "كلية إدارة الأعمال",
    "محاسبة": "كلية إدارة الأعمال",
    "قانون": "كلية القانون",
    "تربية خاصة": "كلية التربية",
}
OTHER_COLLEGE = "كلية أخرى"

GENDERS = ["male", "female"]
ROOM_TYPES = list(FEE_TABLE.keys())
STATUSES = ["pending", "confirmed", "rejected", "completed"]

STATUS_LABELS = {
    "pending": "قيد المراجعة",
    "confirmed": "مؤكد",
    "rejected": "مرفوض",
    "completed": "مكتمل",
}


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite():
        return default
    return result


def fee_for_room(room_type: Any) -> int:
    return FEE_TABLE.get(str(room_type or "").strip().lower(), DEFAULT_FEE)


def distance_weight(province: Any) -> int:
    return DISTANCE_WEIGHTS.get(str(province or "").strip(), DEFAULT_DISTANCE_WEIGHT)


def compute_priority_score(gpa: Any, province: Any) -> int:
    gpa_points = _to_decimal(gpa) / MAX_GPA * GPA_WEIGHT
    distance_points = Decimal(distance_weight(province)) * DISTANCE_FACTOR
    raw = min(Decimal("100"), gpa_points + distance_points)
    score = int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, score))


def generate_reference_number(now: datetime, rng: random.Random | None = None) -> str:
    suffix = (rng or random).randint(1000, 9999)
    return f"NU-{now.year:04d}-{now.month:02d}{now.day:02d}-{suffix:04d}"


def college_for(specialization: Any) -> str:
    return COLLEGE_MAP.get(str(specialization or "").strip(), OTHER_COLLEGE)


def compute_live_stats(applications: list[dict[str, Any]], total_beds: int = 1000, top_n: int = 100) -> dict[str, Any]:
    total = len(applications)
    occupancy_rate = round((total / total_beds) * 100, 1) if total_beds > 0 else 0.0

    colleges: Counter[str] = Counter()
    gpa_totals: dict[str, Decimal] = {}
    for app in applications:
        college = college_for(_field(app, "specialization"))
        colleges[college] += 1
        gpa_totals[college] = gpa_totals.get(college, Decimal("0")) + _to_decimal(_field(app, "gpa"))

    gpa_by_college = {
        college: {
            "count": colleges[college],
            "average": round(float(gpa_totals[college] / colleges[college]), 2),
        }
        for college in colleges
    }

    prioritized = sorted(
        (
            {**app, "priority_score": compute_priority_score(_field(app, "gpa"), _field(app, "province"))}
            for app in applications
        ),
        key=lambda item: item["priority_score"],
        reverse=True,
    )

    return {
        "total": total,
        "total_beds": total_beds,
        "occupancy_rate": occupancy_rate,
        "colleges": dict(colleges),
        "gpa_by_college": gpa_by_college,
        "prioritized": prioritized[:top_n],
    }
