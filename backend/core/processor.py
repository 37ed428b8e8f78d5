"""
processor.py — Per-student grading, best-six aggregate, remarks and ranking.

For every student and every active subject:
  1. derive the subject score (shared Science normalization)
  2. grade it against the cohort statistics (z-score bands)
  3. attach a descriptive remark and the responsible facilitator

Then pick the best 4 core + best 2 elective subjects, classify the
aggregate, assemble the narrative remark and rank the cohort.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.grading import compute_z_score, generate_subject_remark, get_grade_from_z_score
from core.narrative import (
    assemble_overall_remark,
    find_weak_subjects,
    has_text,
    narrate_facilitator_notes,
    narrate_performance_summary,
    narrate_weak_subjects,
    narrate_weakness,
    resolve_recommendation,
)
from core.settings import DEFAULT_CORE_SUBJECTS
from core.stats import resolve_subject_score

logger = logging.getLogger(__name__)

BEST_CORE_COUNT = 4
BEST_ELECTIVE_COUNT = 2
UNASSIGNED_FACILITATOR = "TBA"

# Aggregate upper bounds (inclusive), evaluated in order.
CATEGORY_BANDS = [
    (10, "Distinction"),
    (20, "Merit"),
    (36, "Pass"),
]
FAIL_CATEGORY = "Fail"

PASS_THROUGH_FIELDS = ("age", "promoted_to", "conduct", "interest", "skills")


# ── Facilitator Resolution ──────────────────────────────────────────

def resolve_facilitator(
    subject: str,
    staff_list: Optional[Sequence[Mapping[str, Any]]] = None,
    facilitator_map: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Name of the teacher responsible for ``subject``.

    Priority: first staff member teaching the subject, then the
    subject → name mapping, then "TBA".
    """
    for staff in staff_list or ():
        if subject in (staff.get("subjects") or ()):
            return staff.get("name")
    return (facilitator_map or {}).get(subject) or UNASSIGNED_FACILITATOR


# ── Aggregate ───────────────────────────────────────────────────────

def _best_first(subject: Dict[str, Any]) -> Tuple[int, float]:
    return subject["grade_value"], -subject["score"]


def select_best_six(
    subjects: List[Dict[str, Any]],
    core_subjects: Iterable[str] = DEFAULT_CORE_SUBJECTS,
) -> Dict[str, Any]:
    """
    Best 4 core and best 2 elective subjects, lower grade value first and
    higher raw score breaking ties. Short partitions contribute what they have.
    """
    core_set = set(core_subjects)
    cores = sorted((s for s in subjects if s["subject"] in core_set), key=_best_first)
    electives = sorted((s for s in subjects if s["subject"] not in core_set), key=_best_first)

    best_cores = cores[:BEST_CORE_COUNT]
    best_electives = electives[:BEST_ELECTIVE_COUNT]
    aggregate = sum(s["grade_value"] for s in best_cores) + sum(s["grade_value"] for s in best_electives)

    return {
        "best_core_subjects": best_cores,
        "best_elective_subjects": best_electives,
        "best_six_aggregate": aggregate,
    }


def classify_category(aggregate: int) -> str:
    for upper, category in CATEGORY_BANDS:
        if aggregate <= upper:
            return category
    return FAIL_CATEGORY


# ── Remarks ─────────────────────────────────────────────────────────

def build_remarks(
    student: Mapping[str, Any],
    subjects: List[Dict[str, Any]],
    category: str,
    aggregate: int,
) -> Dict[str, str]:
    """
    Overall remark and weakness analysis for one student.

    A manual final remark is used verbatim and only the weak-subject note is
    generated alongside it. Otherwise the remark is the weakness note,
    facilitator notes and the class teacher's summary.
    """
    final_remark = student.get("final_remark")
    if has_text(final_remark):
        weak = find_weak_subjects(subjects)
        return {
            "overall_remark": final_remark,
            "weakness_analysis": narrate_weak_subjects(weak) if weak else "",
        }

    weakness = narrate_weakness(subjects)
    notes = narrate_facilitator_notes(student.get("subject_remarks"))
    class_teacher_remark = student.get("overall_remark") or narrate_performance_summary(category, aggregate)
    return {
        "overall_remark": assemble_overall_remark(weakness, notes, class_teacher_remark),
        "weakness_analysis": weakness,
    }


# ── Per-student Processing ──────────────────────────────────────────

def compute_subjects(
    student: Mapping[str, Any],
    stats: Mapping[str, Mapping[str, float]],
    subject_list: List[str],
    facilitator_map: Optional[Mapping[str, str]] = None,
    grading_remarks: Optional[Mapping[str, str]] = None,
    staff_list: Optional[Sequence[Mapping[str, Any]]] = None,
    science_base_score: int = 100,
) -> List[Dict[str, Any]]:
    means = stats.get("subject_means") or {}
    std_devs = stats.get("subject_std_devs") or {}

    computed = []
    for subject in subject_list:
        score = resolve_subject_score(student, subject, science_base_score)
        mean = means.get(subject, 0.0)
        std_dev = std_devs.get(subject, 0.0)
        grade = get_grade_from_z_score(score, mean, std_dev, grading_remarks)
        computed.append({
            "subject": subject,
            "score": score,
            "grade": grade["grade"],
            "grade_value": grade["value"],
            "remark": generate_subject_remark(score),
            "facilitator": resolve_facilitator(subject, staff_list, facilitator_map),
            "z_score": compute_z_score(score, mean, std_dev),
        })
    return computed


def process_student(
    student: Mapping[str, Any],
    stats: Mapping[str, Mapping[str, float]],
    facilitator_map: Optional[Mapping[str, str]],
    subject_list: List[str],
    grading_remarks: Optional[Mapping[str, str]] = None,
    staff_list: Optional[Sequence[Mapping[str, Any]]] = None,
    science_base_score: int = 100,
    core_subjects: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Compute one unranked ProcessedStudent record."""
    subjects = compute_subjects(
        student, stats, subject_list,
        facilitator_map=facilitator_map,
        grading_remarks=grading_remarks,
        staff_list=staff_list,
        science_base_score=science_base_score,
    )
    total_score = sum(s["score"] for s in subjects)
    best = select_best_six(subjects, DEFAULT_CORE_SUBJECTS if core_subjects is None else core_subjects)
    aggregate = best["best_six_aggregate"]
    category = classify_category(aggregate)
    remarks = build_remarks(student, subjects, category, aggregate)

    logger.debug(
        "Processed student %s: total=%s aggregate=%s category=%s",
        student.get("id"), total_score, aggregate, category,
    )

    processed = {
        "id": student.get("id"),
        "name": student.get("name"),
        "subjects": subjects,
        "total_score": total_score,
        **best,
        "category": category,
        **remarks,
        "recommendation": resolve_recommendation(student.get("recommendation")),
        "rank": 0,
        "attendance": student.get("attendance") or "0",
    }
    for key in PASS_THROUGH_FIELDS:
        processed[key] = student.get(key)
    return processed


def rank_students(processed: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Order by aggregate ascending, then total score descending, and number
    ranks 1..N. Full ties keep input order and still get distinct ranks.
    """
    ranked = sorted(processed, key=lambda p: (p["best_six_aggregate"], -p["total_score"]))
    for position, student in enumerate(ranked, start=1):
        student["rank"] = position
    return ranked


def process_students(
    stats: Mapping[str, Mapping[str, float]],
    students: Iterable[Mapping[str, Any]],
    facilitator_map: Optional[Mapping[str, str]],
    subject_list: List[str],
    grading_remarks: Optional[Mapping[str, str]] = None,
    staff_list: Optional[Sequence[Mapping[str, Any]]] = None,
    science_base_score: int = 100,
    core_subjects: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """Grade every student against ``stats`` and return the ranked cohort."""
    if core_subjects is not None:
        core_subjects = tuple(core_subjects)
    processed = [
        process_student(
            student, stats, facilitator_map, subject_list,
            grading_remarks=grading_remarks,
            staff_list=staff_list,
            science_base_score=science_base_score,
            core_subjects=core_subjects,
        )
        for student in students
    ]
    return rank_students(processed)
