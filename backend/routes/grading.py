"""
Grading routes — class statistics, student processing, facilitator stats.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from core.facilitators import compute_facilitator_stats
from core.grading import classify_daycare_score, get_all_grade_thresholds
from core.pipeline import build_subject_list, run_grading_pipeline
from core.processor import process_students
from core.records import (
    normalize_student_records,
    read_score_sheet,
    sheet_subjects,
    students_from_dataframe,
)
from core.settings import (
    GradingSettings,
    get_default_settings,
    is_early_childhood,
    settings_from_payload,
)
from core.stats import compute_class_statistics

logger = logging.getLogger(__name__)

router = APIRouter()

# Keep upload path stable regardless of process working directory.
UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"


def _settings_from_payload(payload: dict) -> GradingSettings:
    try:
        return settings_from_payload(payload.get("settings"), base=get_default_settings())
    except ValueError as e:
        raise HTTPException(400, f"Invalid settings: {e}")


def _students_from_payload(payload: dict) -> List[Dict[str, Any]]:
    data = payload.get("students")
    if not data:
        raise HTTPException(400, "No students provided.")
    if not isinstance(data, list) or not all(isinstance(s, dict) for s in data):
        raise HTTPException(400, "'students' must be a list of objects.")
    return normalize_student_records(data)


def _subjects_from_payload(payload: dict, settings: GradingSettings) -> List[str]:
    subjects = payload.get("subjects")
    if not subjects:
        raise HTTPException(400, "No subjects provided.")
    if not isinstance(subjects, list):
        raise HTTPException(400, "'subjects' must be a list of subject names.")
    early = is_early_childhood(payload.get("department"))
    return build_subject_list([str(s) for s in subjects], settings, early_childhood=early)


@router.post("/statistics")
async def statistics(payload: dict):
    """Per-subject mean and standard deviation for the cohort."""
    settings = _settings_from_payload(payload)
    students = _students_from_payload(payload)
    subjects = _subjects_from_payload(payload, settings)
    return compute_class_statistics(students, subjects, settings.science_base_score)


@router.post("/process")
async def process(payload: dict):
    """Graded and ranked students. Statistics are recomputed from the same payload."""
    settings = _settings_from_payload(payload)
    students = _students_from_payload(payload)
    subjects = _subjects_from_payload(payload, settings)
    stats = compute_class_statistics(students, subjects, settings.science_base_score)
    processed = process_students(
        stats,
        students,
        settings.facilitator_mapping,
        subjects,
        grading_remarks=settings.grading_remarks,
        staff_list=settings.staff_list,
        science_base_score=settings.science_base_score,
        core_subjects=settings.core_subjects,
    )
    return {"students": processed}


@router.post("/facilitators")
async def facilitators(payload: dict):
    """Facilitator performance from an already processed cohort."""
    processed = payload.get("students")
    if not processed:
        raise HTTPException(400, "No processed students provided.")
    try:
        return {"facilitators": compute_facilitator_stats(processed)}
    except (KeyError, TypeError, AttributeError):
        raise HTTPException(400, "'students' must be processed student records.")


@router.post("/report")
async def report(payload: dict):
    """Full grading report: statistics, ranked students, facilitator stats."""
    settings = _settings_from_payload(payload)
    students = _students_from_payload(payload)
    subjects = _subjects_from_payload(payload, settings)
    result = run_grading_pipeline(
        students, subjects, settings,
        early_childhood=is_early_childhood(payload.get("department")),
    )
    result["settings"] = settings.to_dict()
    return result


@router.post("/upload")
async def upload_score_sheet(
    file: UploadFile = File(...),
    subjects: Optional[str] = Form(None),  # JSON list of subject names
    settings: Optional[str] = Form(None),  # JSON settings object
    department: Optional[str] = Form(None),
):
    """
    Grade a wide score sheet (CSV or XLSX, one row per student).
    Without an explicit subject list every non-metadata column is a subject.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in (".csv", ".xlsx"):
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV or Excel (.xlsx).")

    try:
        settings_payload = json.loads(settings) if settings else None
        subject_list = json.loads(subjects) if subjects else None
    except json.JSONDecodeError:
        raise HTTPException(400, "Invalid JSON in 'subjects' or 'settings'.")
    if subject_list is not None and not isinstance(subject_list, list):
        raise HTTPException(400, "'subjects' must be a list of subject names.")

    try:
        grading_settings = settings_from_payload(settings_payload, base=get_default_settings())
    except ValueError as e:
        raise HTTPException(400, f"Invalid settings: {e}")

    UPLOAD_DIR.mkdir(exist_ok=True)
    save_path = UPLOAD_DIR / f"{uuid.uuid4()}{ext}"
    try:
        with open(save_path, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)

        df = read_score_sheet(str(save_path))
        students = students_from_dataframe(df, subject_list)
        base_subjects = sheet_subjects(df, subject_list)
    except Exception as e:
        logger.exception("Failed to read score sheet %s", file.filename)
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {str(e)}")
    finally:
        save_path.unlink(missing_ok=True)

    if not students:
        raise HTTPException(400, "The uploaded sheet contains no student rows.")

    early = is_early_childhood(department)
    result = run_grading_pipeline(
        students,
        build_subject_list(base_subjects, grading_settings, early_childhood=early),
        grading_settings,
        early_childhood=early,
    )
    result["filename"] = file.filename
    return result


@router.get("/daycare-grade")
async def daycare_grade(score: float):
    """Early-years proficiency band for a single score."""
    return classify_daycare_score(score)


@router.get("/grade-scale")
async def grade_scale():
    """Return the grading scales with the configured category labels."""
    settings = get_default_settings()
    return get_all_grade_thresholds(settings.grading_remarks)
