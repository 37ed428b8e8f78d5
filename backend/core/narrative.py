"""
narrative.py — Template-based text for report-card remarks.

Turns computed subject grades into the sentences printed on a report
card. Plain f-string templates; every manual entry from a facilitator or
class teacher takes precedence over generated text.
"""

from typing import Any, Dict, List, Mapping, Optional


DEFAULT_RECOMMENDATION = (
    "Encouraged to maintain focus on core subjects. "
    "Recommended to attend extra classes for weak areas identified above. "
    "Parents are advised to supervise evening studies."
)

# Subjects at or beyond D7 are flagged as weaknesses.
WEAK_GRADE_VALUE = 7

# Aggregates at or below this get the encouraging summary.
ENCOURAGING_AGGREGATE = 15


def has_text(value: Optional[str]) -> bool:
    return bool(value) and str(value).strip() != ""


# ── Weakness Narratives ─────────────────────────────────────────────

def find_weak_subjects(subjects: List[Dict[str, Any]]) -> List[str]:
    return [s["subject"] for s in subjects if s["grade_value"] >= WEAK_GRADE_VALUE]


def narrate_weak_subjects(subject_names: List[str]) -> str:
    return f"Needs urgent improvement in: {', '.join(subject_names)}."


def narrate_lowest_subject(subjects: List[Dict[str, Any]]) -> str:
    # Stable sort: on equal scores the subject listed first is named.
    ordered = sorted(subjects, key=lambda s: s["score"])
    lowest = ordered[0]["subject"] if ordered else "N/A"
    return f"Lowest performance in {lowest}."


def narrate_weakness(subjects: List[Dict[str, Any]]) -> str:
    """Weak-subject note, or the lowest subject when nothing is weak."""
    weak = find_weak_subjects(subjects)
    if weak:
        return narrate_weak_subjects(weak)
    return narrate_lowest_subject(subjects)


# ── Facilitator Notes ───────────────────────────────────────────────

def narrate_facilitator_notes(subject_remarks: Optional[Mapping[str, str]]) -> str:
    notes = [
        f"{subject}: {text}"
        for subject, text in (subject_remarks or {}).items()
        if has_text(text)
    ]
    if not notes:
        return ""
    return f" [Facilitator Notes: {'; '.join(notes)}]"


# ── Class Teacher Summary ───────────────────────────────────────────

def narrate_performance_summary(category: str, aggregate: int) -> str:
    if aggregate <= ENCOURAGING_AGGREGATE:
        tone = "Keep up the excellent work!"
    else:
        tone = "More effort required to improve aggregate."
    return f"Overall performance is {category}. {tone}"


def assemble_overall_remark(
    weakness: str,
    facilitator_notes: str,
    class_teacher_remark: str,
) -> str:
    return f"{weakness}{facilitator_notes}\n\n{class_teacher_remark}"


def resolve_recommendation(manual: Optional[str]) -> str:
    return manual if manual else DEFAULT_RECOMMENDATION
