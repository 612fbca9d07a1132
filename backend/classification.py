"""
SMART parts classification.

Each part gets a priority score from three components weighted together:
cost (percentile rank of spend), roadcalls (percentile rank of emergency
work-order usage) and safety (driven by the part's safety system and failure
severity). Long lead times add a small bonus.

Safety-critical parts are class S. The remaining parts are ranked by score:
the top 20% are A, the next 30% B, the rest C. Demand variability over the
window gives the X/Y/Z class.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

COST_WEIGHT = 0.35
ROADCALL_WEIGHT = 0.35
SAFETY_WEIGHT = 0.30
LEAD_TIME_BONUS_14_DAYS = 3
LEAD_TIME_BONUS_30_DAYS = 5
DOWNTIME_HOUR_WEIGHT = 0.25

CLASS_A_TOP_PERCENT = 20
CLASS_B_TOP_PERCENT = 50
XYZ_CV_THRESHOLD_X = 0.5
XYZ_CV_THRESHOLD_Y = 1.0
XYZ_MIN_ACTIVE_MONTHS = 3

CRITICAL_SAFETY_SYSTEMS = frozenset({"brakes", "steering", "tires_wheels"})
SAFETY_BASE_SCORES = {
    "brakes": 60,
    "steering": 60,
    "tires_wheels": 60,
    "suspension": 40,
    "electrical": 20,
    "hvac": 15,
    "other": 15,
}
UNRATED_SAFETY_SCORE = 10


@dataclass
class PartScore:
    part_id: int
    part_number: str
    smart_class: str
    xyz_class: str
    total_score: float
    cost_score: float
    roadcall_score: float
    safety_score: float
    annual_qty: float = 0.0
    annual_spend: float = 0.0
    roadcall_count: int = 0
    downtime_hours: float = 0.0
    coefficient_of_variation: float | None = None
    lead_time_bonus: int = 0


def percentile_rank(value: float, population: Iterable[float]) -> float:
    """Position of ``value`` among the positive members of ``population``, 0-100."""
    ranked = sorted(item for item in population if item > 0)
    if not ranked:
        return 0.0
    for index, candidate in enumerate(ranked):
        if candidate >= value:
            return index / len(ranked) * 100
    return 100.0


def _severity(part: Mapping[str, Any]) -> int:
    return int(part["failure_severity"] or 1)


def safety_score(part: Mapping[str, Any]) -> float:
    base = SAFETY_BASE_SCORES.get(part["safety_system"] or "", UNRATED_SAFETY_SCORE)
    base += (_severity(part) - 1) * 10
    return float(min(max(base, 0), 100))


def is_class_s(part: Mapping[str, Any]) -> bool:
    if part["compliance_override"] or part["traceability_required"]:
        return True
    return (part["safety_system"] or "") in CRITICAL_SAFETY_SYSTEMS and _severity(part) >= 4


def lead_time_bonus(lead_time_days: int | None) -> int:
    if lead_time_days and lead_time_days >= 30:
        return LEAD_TIME_BONUS_30_DAYS
    if lead_time_days and lead_time_days >= 14:
        return LEAD_TIME_BONUS_14_DAYS
    return 0


def xyz_class(monthly_quantities: list[float]) -> tuple[str, float | None]:
    """
    Classify demand variability from one quantity per month.

    Returns the class and the coefficient of variation; parts used in fewer
    than three months are Z with no coefficient.
    """
    active_months = sum(1 for quantity in monthly_quantities if quantity > 0)
    if active_months < XYZ_MIN_ACTIVE_MONTHS:
        return "Z", None

    mean = sum(monthly_quantities) / len(monthly_quantities)
    if mean == 0:
        return "Z", None

    variance = sum((quantity - mean) ** 2 for quantity in monthly_quantities) / len(monthly_quantities)
    cv = math.sqrt(variance) / max(mean, 0.0001)
    if cv <= XYZ_CV_THRESHOLD_X:
        return "X", round(cv, 4)
    if cv <= XYZ_CV_THRESHOLD_Y:
        return "Y", round(cv, 4)
    return "Z", round(cv, 4)


def month_keys(now: datetime, window_months: int) -> list[str]:
    """``YYYY-MM`` keys for the window ending with the current month, oldest first."""
    keys = []
    year, month = now.year, now.month
    for _ in range(window_months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def assign_ranked_classes(scores: list[PartScore]) -> None:
    """Rank non-S parts by total score and give them A, B or C in place."""
    ranked = sorted(
        (score for score in scores if score.smart_class != "S"),
        key=lambda score: score.total_score,
        reverse=True,
    )
    class_a_cutoff = len(ranked) * CLASS_A_TOP_PERCENT // 100
    class_b_cutoff = len(ranked) * CLASS_B_TOP_PERCENT // 100
    for position, score in enumerate(ranked):
        if position < class_a_cutoff:
            score.smart_class = "A"
        elif position < class_b_cutoff:
            score.smart_class = "B"
        else:
            score.smart_class = "C"


def score_parts(
    parts: list[Mapping[str, Any]],
    usage: Mapping[int, Mapping[str, float]],
    roadcalls: Mapping[int, Mapping[str, float]],
    monthly_usage: Mapping[int, list[float]],
) -> list[PartScore]:
    spends = [float(item["spend"]) for item in usage.values()]
    roadcall_values = [
        float(item["count"]) + float(item["downtime_hours"]) * DOWNTIME_HOUR_WEIGHT
        for item in roadcalls.values()
    ]

    scores = []
    for part in parts:
        part_id = int(part["id"])
        part_usage = usage.get(part_id, {"qty": 0.0, "spend": 0.0})
        part_roadcalls = roadcalls.get(part_id, {"count": 0, "downtime_hours": 0.0})

        cost = percentile_rank(float(part_usage["spend"]), spends)
        roadcall_raw = float(part_roadcalls["count"]) + float(part_roadcalls["downtime_hours"]) * DOWNTIME_HOUR_WEIGHT
        roadcall = percentile_rank(roadcall_raw, roadcall_values)
        safety = safety_score(part)
        bonus = lead_time_bonus(part["lead_time_days"])
        total = min(COST_WEIGHT * cost + ROADCALL_WEIGHT * roadcall + SAFETY_WEIGHT * safety + bonus, 100)
        xyz, cv = xyz_class(monthly_usage.get(part_id, []))

        scores.append(
            PartScore(
                part_id=part_id,
                part_number=str(part["part_number"]),
                smart_class="S" if is_class_s(part) else "C",
                xyz_class=xyz,
                total_score=round(total, 2),
                cost_score=round(cost, 2),
                roadcall_score=round(roadcall, 2),
                safety_score=safety,
                annual_qty=round(float(part_usage["qty"]), 2),
                annual_spend=round(float(part_usage["spend"]), 2),
                roadcall_count=int(part_roadcalls["count"]),
                downtime_hours=round(float(part_roadcalls["downtime_hours"]), 2),
                coefficient_of_variation=cv,
                lead_time_bonus=bonus,
            )
        )

    assign_ranked_classes(scores)
    return scores
