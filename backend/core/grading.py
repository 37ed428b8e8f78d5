"""
grading.py — Standards-referenced grading helpers.

Provides:
  - Z-score letter grades (A1 … F9) against cohort statistics
  - Fixed-threshold descriptive remarks for subject scores
  - Early-years (daycare) proficiency bands
  - Facilitator performance grades from a percentage

Every band table is ordered best to worst and evaluated top-down.
"""

from typing import Any, Dict, List, Mapping, Optional


# Z-score bands (std-dev multiplier, grade, value, default category).
# A score qualifies for a band when (score - mean) >= multiplier * std_dev.
Z_SCORE_GRADES = [
    (1.645, "A1", 1, "Excellent"),
    (1.036, "B2", 2, "Very Good"),
    (0.524, "B3", 3, "Good"),
    (0.0, "C4", 4, "Credit"),
    (-0.524, "C5", 5, "Credit"),
    (-1.036, "C6", 6, "Credit"),
    (-1.645, "D7", 7, "Pass"),
    (-2.326, "E8", 8, "Pass"),
]
LOWEST_GRADE = ("F9", 9, "Fail")

GRADE_BANDS: List[str] = [g for _, g, _, _ in Z_SCORE_GRADES] + [LOWEST_GRADE[0]]

DEFAULT_GRADING_REMARKS: Dict[str, str] = {
    grade: category for _, grade, _, category in Z_SCORE_GRADES
}
DEFAULT_GRADING_REMARKS[LOWEST_GRADE[0]] = LOWEST_GRADE[2]

# Worst possible grade value; used to express facilitator performance.
WORST_GRADE_VALUE = LOWEST_GRADE[1]

# Descriptive remark bands (min_score, remark).
SUBJECT_REMARKS = [
    (90, "Outstanding mastery of subject concepts."),
    (80, "Excellent performance, shows great potential."),
    (70, "Very Good. Consistent effort displayed."),
    (60, "Good. Capable of achieving higher grades."),
    (55, "Credit. Satisfactory understanding shown."),
    (50, "Pass. Needs more dedication to studies."),
    (40, "Weak Pass. Remedial support recommended."),
]
FAILING_REMARK = "Critical Failure. Immediate intervention required."

# Early-years bands (min_score, grade, remark).
DAYCARE_GRADES = [
    (70, "G", "High Level of Proficiency"),
    (40, "S", "Sufficient Level of Proficiency"),
]
DAYCARE_LOWEST = ("B", "Approaching Proficiency")

# Facilitator performance bands (min_percentage, grade).
PERFORMANCE_GRADES = [
    (80, "A1"),
    (70, "B2"),
    (60, "B3"),
    (50, "C4"),
    (45, "C5"),
    (40, "C6"),
    (35, "D7"),
    (30, "E8"),
]


def generate_subject_remark(score: float) -> str:
    """Return the descriptive remark for a raw subject score."""
    for min_score, remark in SUBJECT_REMARKS:
        if score >= min_score:
            return remark
    return FAILING_REMARK


def get_grade_from_z_score(
    score: float,
    mean: float,
    std_dev: float,
    remarks_map: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """
    Grade a score by its distance from the cohort mean.

    Returns {"grade", "value", "category"}. With zero spread every score
    sits at C4, since the cohort cannot be separated.
    """
    remarks_map = remarks_map or {}

    def _category(grade: str) -> str:
        return remarks_map.get(grade) or DEFAULT_GRADING_REMARKS[grade]

    if std_dev == 0:
        return {"grade": "C4", "value": 4, "category": _category("C4")}

    diff = score - mean
    for multiplier, grade, value, _ in Z_SCORE_GRADES:
        if diff >= multiplier * std_dev:
            return {"grade": grade, "value": value, "category": _category(grade)}

    grade, value, _ = LOWEST_GRADE
    return {"grade": grade, "value": value, "category": _category(grade)}


def compute_z_score(score: float, mean: float, std_dev: float) -> float:
    if std_dev == 0:
        return 0.0
    return (score - mean) / std_dev


def classify_daycare_score(score: float) -> Dict[str, str]:
    """Early-years proficiency band for an absolute score."""
    for min_score, grade, remark in DAYCARE_GRADES:
        if score >= min_score:
            return {"grade": grade, "remark": remark}
    grade, remark = DAYCARE_LOWEST
    return {"grade": grade, "remark": remark}


def get_performance_grade(percentage: float) -> str:
    """Map a facilitator performance percentage to a grade band."""
    for min_pct, grade in PERFORMANCE_GRADES:
        if percentage >= min_pct:
            return grade
    return LOWEST_GRADE[0]


def get_all_grade_thresholds(
    remarks_map: Optional[Mapping[str, str]] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Return the grading scales for legend/reference."""
    remarks_map = remarks_map or {}
    z_scale = []
    for idx, (multiplier, grade, value, default) in enumerate(Z_SCORE_GRADES):
        upper = None if idx == 0 else Z_SCORE_GRADES[idx - 1][0]
        z_scale.append({
            "grade": grade,
            "value": value,
            "min_z": multiplier,
            "max_z": upper,
            "category": remarks_map.get(grade) or default,
        })
    grade, value, default = LOWEST_GRADE
    z_scale.append({
        "grade": grade,
        "value": value,
        "min_z": None,
        "max_z": Z_SCORE_GRADES[-1][0],
        "category": remarks_map.get(grade) or default,
    })

    daycare_scale = []
    for idx, (min_score, grade, remark) in enumerate(DAYCARE_GRADES):
        max_score = 100 if idx == 0 else DAYCARE_GRADES[idx - 1][0] - 1
        daycare_scale.append({"grade": grade, "min": min_score, "max": max_score, "remark": remark})
    daycare_scale.append({
        "grade": DAYCARE_LOWEST[0],
        "min": 0,
        "max": DAYCARE_GRADES[-1][0] - 1,
        "remark": DAYCARE_LOWEST[1],
    })

    return {"z_score": z_scale, "daycare": daycare_scale}
