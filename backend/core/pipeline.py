"""
pipeline.py — One complete grading pass.

statistics → per-student processing → facilitator aggregation, all built
from the same (students, subject list, settings) snapshot. Results from a
previous run are never reused.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping

from core.facilitators import compute_facilitator_stats
from core.grading import classify_daycare_score
from core.processor import process_students
from core.settings import GradingSettings
from core.stats import compute_class_statistics

logger = logging.getLogger(__name__)


def build_subject_list(
    base_subjects: Iterable[str],
    settings: GradingSettings,
    early_childhood: bool = False,
) -> List[str]:
    """Department subjects + custom subjects (+ indicators for early years)."""
    subjects = list(base_subjects) + list(settings.custom_subjects)
    if early_childhood:
        subjects += list(settings.active_indicators)
    return list(dict.fromkeys(subjects))


def compute_class_average_aggregate(processed_students: List[Mapping[str, Any]]) -> float:
    if not processed_students:
        return 0.0
    total = sum(s["best_six_aggregate"] for s in processed_students)
    return total / len(processed_students)


def annotate_daycare_grades(processed_students: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attach the early-years proficiency band to every computed subject."""
    for student in processed_students:
        for subject in student["subjects"]:
            band = classify_daycare_score(subject["score"])
            subject["daycare_grade"] = band["grade"]
            subject["daycare_remark"] = band["remark"]
    return processed_students


def run_grading_pipeline(
    students: Iterable[Mapping[str, Any]],
    subject_list: List[str],
    settings: GradingSettings,
    early_childhood: bool = False,
) -> Dict[str, Any]:
    """
    Run statistics, student processing and facilitator aggregation as one
    unit over a consistent snapshot.
    """
    students = list(students)
    subject_list = list(subject_list)

    stats = compute_class_statistics(students, subject_list, settings.science_base_score)
    processed = process_students(
        stats,
        students,
        settings.facilitator_mapping,
        subject_list,
        grading_remarks=settings.grading_remarks,
        staff_list=settings.staff_list,
        science_base_score=settings.science_base_score,
        core_subjects=settings.core_subjects,
    )
    if early_childhood:
        annotate_daycare_grades(processed)
    facilitators = compute_facilitator_stats(processed)

    logger.info(
        "Graded %d students across %d subjects (%d facilitator groups)",
        len(processed), len(subject_list), len(facilitators),
    )

    return {
        "subject_list": subject_list,
        "statistics": stats,
        "students": processed,
        "facilitators": facilitators,
        "class_average_aggregate": compute_class_average_aggregate(processed),
    }
