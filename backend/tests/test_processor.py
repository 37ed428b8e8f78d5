"""
Tests for core/processor.py — subject grading, best-six aggregate, remarks, ranking.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.narrative import DEFAULT_RECOMMENDATION
from core.processor import (
    build_remarks,
    classify_category,
    process_students,
    rank_students,
    resolve_facilitator,
    select_best_six,
)
from core.stats import compute_class_statistics

CORE = ["English Language", "Mathematics", "Science", "Social Studies"]
SUBJECTS = CORE + ["French", "ICT", "RME"]


def _subject(name, score, grade_value):
    return {"subject": name, "score": score, "grade_value": grade_value}


@pytest.fixture
def math_cohort():
    return [
        {"id": 1, "name": "Ama", "scores": {"Mathematics": 90}},
        {"id": 2, "name": "Kofi", "scores": {"Mathematics": 70}},
        {"id": 3, "name": "Esi", "scores": {"Mathematics": 50}},
    ]


@pytest.fixture
def full_cohort():
    rows = [
        (1, "Ama", [85, 78, 80, 72, 66, 90, 70]),
        (2, "Kofi", [62, 55, 65, 60, 48, 70, 65]),
        (3, "Esi", [91, 88, 94, 80, 75, 85, 82]),
        (4, "Yaw", [40, 35, 35, 45, 30, 50, 42]),
        (5, "Akosua", [70, 72, 73, 66, 60, 64, 58]),
    ]
    return [
        {"id": sid, "name": name, "scores": dict(zip(SUBJECTS, scores))}
        for sid, name, scores in rows
    ]


def _process(students, subjects, **kwargs):
    stats = compute_class_statistics(students, subjects, kwargs.get("science_base_score", 100))
    return process_students(stats, students, kwargs.pop("facilitator_map", {}), subjects, **kwargs)


class TestResolveFacilitator:
    """Staff roster, then mapping, then TBA."""

    def test_staff_roster_wins(self):
        staff = [
            {"name": "Mrs. Adjei", "subjects": ["English Language"]},
            {"name": "Mr. Owusu", "subjects": ["Mathematics", "ICT"]},
            {"name": "Mr. Tetteh", "subjects": ["Mathematics"]},
        ]
        assert resolve_facilitator("Mathematics", staff, {"Mathematics": "Mapped"}) == "Mr. Owusu"

    def test_mapping_when_no_staff_teaches_subject(self):
        staff = [{"name": "Mrs. Adjei", "subjects": ["English Language"]}]
        assert resolve_facilitator("French", staff, {"French": "Mme. Kodjo"}) == "Mme. Kodjo"

    def test_tba_fallback(self):
        assert resolve_facilitator("RME", [{"name": "X"}], {}) == "TBA"
        assert resolve_facilitator("RME") == "TBA"


class TestSelectBestSix:
    """Best 4 core + best 2 electives."""

    def test_partition_and_aggregate(self):
        subjects = [
            _subject("English Language", 80, 2),
            _subject("Mathematics", 60, 5),
            _subject("Science", 70, 3),
            _subject("Social Studies", 75, 3),
            _subject("French", 40, 8),
            _subject("ICT", 90, 1),
            _subject("RME", 65, 4),
        ]
        best = select_best_six(subjects, CORE)
        assert [s["subject"] for s in best["best_core_subjects"]] == [
            "English Language", "Social Studies", "Science", "Mathematics",
        ]
        assert [s["subject"] for s in best["best_elective_subjects"]] == ["ICT", "RME"]
        assert best["best_six_aggregate"] == 2 + 3 + 3 + 5 + 1 + 4

    def test_ties_prefer_higher_score(self):
        subjects = [
            _subject("French", 55, 4),
            _subject("ICT", 68, 4),
            _subject("RME", 61, 4),
        ]
        best = select_best_six(subjects, CORE)
        assert [s["subject"] for s in best["best_elective_subjects"]] == ["ICT", "RME"]

    def test_short_partitions_are_not_padded(self):
        subjects = [_subject("Mathematics", 60, 5), _subject("French", 50, 6)]
        best = select_best_six(subjects, CORE)
        assert len(best["best_core_subjects"]) == 1
        assert len(best["best_elective_subjects"]) == 1
        assert best["best_six_aggregate"] == 11

    def test_no_subjects(self):
        assert select_best_six([], CORE)["best_six_aggregate"] == 0

    def test_aggregate_ignores_subject_order(self, full_cohort):
        forward = _process(full_cohort, SUBJECTS, core_subjects=CORE)
        backward = _process(full_cohort, list(reversed(SUBJECTS)), core_subjects=CORE)
        assert {p["id"]: p["best_six_aggregate"] for p in forward} == {
            p["id"]: p["best_six_aggregate"] for p in backward
        }


class TestClassifyCategory:
    """Aggregate bounds are inclusive."""

    @pytest.mark.parametrize("aggregate, category", [
        (6, "Distinction"),
        (10, "Distinction"),
        (11, "Merit"),
        (20, "Merit"),
        (21, "Pass"),
        (36, "Pass"),
        (37, "Fail"),
        (54, "Fail"),
    ])
    def test_bounds(self, aggregate, category):
        assert classify_category(aggregate) == category


class TestBuildRemarks:
    """Manual final remark vs. generated narrative."""

    @pytest.fixture
    def weak_subjects(self):
        return [
            _subject("Mathematics", 45, 7),
            _subject("English Language", 60, 5),
            _subject("French", 30, 9),
        ]

    @pytest.fixture
    def steady_subjects(self):
        return [
            _subject("Mathematics", 50, 5),
            _subject("English Language", 40, 5),
            _subject("French", 40, 6),
        ]

    def test_manual_final_remark_is_verbatim(self, weak_subjects):
        student = {"final_remark": "A promising term.", "overall_remark": "ignored"}
        remarks = build_remarks(student, weak_subjects, "Pass", 25)
        assert remarks["overall_remark"] == "A promising term."
        assert remarks["weakness_analysis"] == "Needs urgent improvement in: Mathematics, French."

    def test_manual_final_remark_without_weak_subjects(self, steady_subjects):
        remarks = build_remarks({"final_remark": "Well done."}, steady_subjects, "Merit", 16)
        assert remarks == {"overall_remark": "Well done.", "weakness_analysis": ""}

    def test_blank_final_remark_is_ignored(self, weak_subjects):
        remarks = build_remarks({"final_remark": "   "}, weak_subjects, "Pass", 25)
        assert remarks["overall_remark"].startswith("Needs urgent improvement in:")

    def test_generated_remark_for_pass(self, weak_subjects):
        remarks = build_remarks({}, weak_subjects, "Pass", 25)
        assert remarks["overall_remark"] == (
            "Needs urgent improvement in: Mathematics, French.\n\n"
            "Overall performance is Pass. More effort required to improve aggregate."
        )
        assert remarks["overall_remark"].endswith("More effort required to improve aggregate.")

    def test_lowest_subject_first_encountered_on_ties(self, steady_subjects):
        remarks = build_remarks({}, steady_subjects, "Merit", 15)
        assert remarks["weakness_analysis"] == "Lowest performance in English Language."
        assert remarks["overall_remark"].endswith("Keep up the excellent work!")

    def test_facilitator_notes(self, steady_subjects):
        student = {
            "subject_remarks": {
                "Mathematics": "Good effort",
                "French": "   ",
                "ICT": "Attentive",
            },
        }
        remarks = build_remarks(student, steady_subjects, "Merit", 15)
        assert remarks["overall_remark"] == (
            "Lowest performance in English Language."
            " [Facilitator Notes: Mathematics: Good effort; ICT: Attentive]"
            "\n\nOverall performance is Merit. Keep up the excellent work!"
        )

    def test_manual_overall_remark_replaces_summary(self, steady_subjects):
        remarks = build_remarks({"overall_remark": "Very attentive in class."}, steady_subjects, "Merit", 15)
        assert remarks["overall_remark"] == "Lowest performance in English Language.\n\nVery attentive in class."

    def test_no_subjects(self):
        remarks = build_remarks({}, [], "Distinction", 0)
        assert remarks["weakness_analysis"] == "Lowest performance in N/A."


class TestRankStudents:
    """Aggregate ascending, total score descending, ranks 1..N."""

    def test_order_and_ranks(self):
        processed = [
            {"id": 1, "best_six_aggregate": 12, "total_score": 400},
            {"id": 2, "best_six_aggregate": 10, "total_score": 380},
            {"id": 3, "best_six_aggregate": 12, "total_score": 450},
            {"id": 4, "best_six_aggregate": 12, "total_score": 400},
        ]
        ranked = rank_students(processed)
        assert [p["id"] for p in ranked] == [2, 3, 1, 4]
        assert [p["rank"] for p in ranked] == [1, 2, 3, 4]


class TestProcessStudents:
    """End-to-end per-student processing."""

    def test_three_student_example(self, math_cohort):
        processed = _process(math_cohort, ["Mathematics"], facilitator_map={"Mathematics": "Mr. Owusu"})
        grades = {p["name"]: p["subjects"][0]["grade"] for p in processed}
        assert grades == {"Ama": "B2", "Kofi": "C4", "Esi": "D7"}
        assert [p["rank"] for p in processed] == [1, 2, 3]
        assert [p["best_six_aggregate"] for p in processed] == [2, 4, 7]

        esi = processed[2]
        assert esi["weakness_analysis"] == "Needs urgent improvement in: Mathematics."
        assert esi["subjects"][0]["facilitator"] == "Mr. Owusu"
        assert esi["subjects"][0]["z_score"] == pytest.approx(-1.2247, abs=1e-4)
        assert esi["subjects"][0]["remark"].startswith("Pass.")

    def test_ranked_invariants(self, full_cohort):
        processed = _process(full_cohort, SUBJECTS, core_subjects=CORE)
        assert [p["rank"] for p in processed] == list(range(1, len(full_cohort) + 1))
        for earlier, later in zip(processed, processed[1:]):
            assert earlier["best_six_aggregate"] <= later["best_six_aggregate"]
            if earlier["best_six_aggregate"] == later["best_six_aggregate"]:
                assert earlier["total_score"] >= later["total_score"]

    def test_totals_and_pass_through(self, full_cohort):
        full_cohort[0].update({"age": 14, "conduct": "Hardworking", "promoted_to": "Basic 9"})
        processed = {p["id"]: p for p in _process(full_cohort, SUBJECTS, core_subjects=CORE)}
        ama = processed[1]
        assert ama["total_score"] == 85 + 78 + 80 + 72 + 66 + 90 + 70
        assert ama["age"] == 14
        assert ama["conduct"] == "Hardworking"
        assert ama["promoted_to"] == "Basic 9"
        assert ama["attendance"] == "0"
        assert ama["recommendation"] == DEFAULT_RECOMMENDATION
        assert len(ama["subjects"]) == len(SUBJECTS)
        assert len(ama["best_core_subjects"]) == 4
        assert len(ama["best_elective_subjects"]) == 2

    def test_science_uses_normalized_score(self):
        students = [
            {"id": 1, "scores": {"Science": 0}, "score_details": {"Science": {"section_a": 30, "section_b": 50}}},
            {"id": 2, "scores": {"Science": 40}},
        ]
        processed = {p["id"]: p for p in _process(students, ["Science"], science_base_score=140)}
        assert processed[1]["subjects"][0]["score"] == 57
        assert processed[1]["total_score"] == 57

    def test_inputs_are_not_mutated(self, math_cohort):
        before = [dict(s) for s in math_cohort]
        _process(math_cohort, ["Mathematics"])
        assert math_cohort == before

    def test_zero_variance_cohort_is_all_c4(self):
        students = [{"id": i, "scores": {"Mathematics": 60}} for i in range(1, 4)]
        processed = _process(students, ["Mathematics"])
        assert {p["subjects"][0]["grade"] for p in processed} == {"C4"}
        assert all(p["subjects"][0]["z_score"] == 0 for p in processed)
