"""
stats.py — Cohort statistics for z-score grading.

Computes:
- Per-subject mean and population standard deviation (numpy)
- The shared subject-score rule, including Science NRT normalization

The statistics pass and the per-student pass both derive scores through
resolve_subject_score, so a student is always graded against statistics
built from the same numbers.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from core.settings import SCIENCE_SUBJECT


# ── Helpers ─────────────────────────────────────────────────────────

def _sanitize(obj):
    """Recursively coerce numpy scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        return float(obj)
    return obj


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward +inf."""
    return int(np.floor(value + 0.5))


def _flat_score(scores: Optional[Mapping[str, Any]], subject: str) -> float:
    if not scores:
        return 0
    value = scores.get(subject)
    if value is None:
        return 0
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0
    if np.isnan(value):
        return 0
    return int(value) if value.is_integer() else value


# ── Score Derivation ────────────────────────────────────────────────

def normalize_science_score(section_a: float, section_b: float, science_base_score: int = 100) -> int:
    """
    Combine Science section marks into a 100-point score.

    A 140-point paper is rescaled onto 100 before statistical comparison.
    """
    raw_sum = (section_a or 0) + (section_b or 0)
    if science_base_score == 140:
        return round_half_up(raw_sum / 140 * 100)
    return round_half_up(raw_sum)


def resolve_subject_score(
    student: Mapping[str, Any],
    subject: str,
    science_base_score: int = 100,
) -> float:
    """Score that a subject contributes for one student (0 when absent)."""
    if subject == SCIENCE_SUBJECT:
        details = (student.get("score_details") or {}).get(subject)
        if details:
            return normalize_science_score(
                details.get("section_a", 0),
                details.get("section_b", 0),
                science_base_score,
            )
    return _flat_score(student.get("scores"), subject)


# ── Class Statistics ────────────────────────────────────────────────

def calculate_mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def calculate_std_dev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N)."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=0))


def compute_class_statistics(
    students: Iterable[Mapping[str, Any]],
    subject_list: List[str],
    science_base_score: int = 100,
) -> Dict[str, Dict[str, float]]:
    """
    Per-subject mean and standard deviation across the cohort.

    Always a full recomputation; keys are exactly ``subject_list``.
    """
    students = list(students)
    subject_means: Dict[str, float] = {}
    subject_std_devs: Dict[str, float] = {}

    for subject in subject_list:
        scores = [resolve_subject_score(s, subject, science_base_score) for s in students]
        subject_means[subject] = calculate_mean(scores)
        subject_std_devs[subject] = calculate_std_dev(scores)

    return _sanitize({
        "subject_means": subject_means,
        "subject_std_devs": subject_std_devs,
    })
