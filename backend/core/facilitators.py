"""
facilitators.py — Per-facilitator subject performance.

Rolls every computed subject of the ranked cohort up by
(facilitator, subject): student count, grade distribution and a
performance percentage measuring how far the group's grades sit from the
worst possible grade (F9 for every student).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd

from core.grading import GRADE_BANDS, WORST_GRADE_VALUE, get_performance_grade


def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    return obj


def round_percentage(value: float, places: int = 2) -> float:
    """Half-up rounding of the exact binary value, as printed on reports."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def performance_percentage(total_grade_value: float, student_count: int) -> float:
    """Unrounded (1 - total / (count * 9)) * 100; 0 for an empty group."""
    expected = student_count * WORST_GRADE_VALUE
    if expected <= 0:
        return 0.0
    return (1 - total_grade_value / expected) * 100


def compute_facilitator_stats(processed_students: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    One FacilitatorStats record per (facilitator, subject) pair observed,
    sorted by performance percentage, best first.
    """
    rows = [
        {
            "facilitator": subject["facilitator"],
            "subject": subject["subject"],
            "grade": subject["grade"],
            "grade_value": subject["grade_value"],
        }
        for student in processed_students
        for subject in student.get("subjects") or []
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    results = []
    for (facilitator, subject), group in df.groupby(["facilitator", "subject"], sort=False, dropna=False):
        grade_counts = {band: 0 for band in GRADE_BANDS}
        for grade, count in group["grade"].value_counts(sort=False).items():
            grade_counts[grade] = grade_counts.get(grade, 0) + int(count)

        student_count = len(group)
        total_grade_value = int(group["grade_value"].sum())
        percentage = performance_percentage(total_grade_value, student_count)

        results.append({
            "facilitator_name": None if pd.isna(facilitator) else facilitator,
            "subject": subject,
            "student_count": student_count,
            "grade_counts": grade_counts,
            "total_grade_value": total_grade_value,
            "average_grade_value": total_grade_value / student_count if student_count else 0.0,
            "performance_percentage": round_percentage(percentage),
            "performance_grade": get_performance_grade(percentage),
        })

    results.sort(key=lambda r: r["performance_percentage"], reverse=True)
    return _sanitize(results)
