"""
records.py — StudentRecord ingestion.

Supports:
- JSON payloads keyed in snake_case or the web client's camelCase
- Wide score sheets (CSV / Excel): one row per student, subjects as columns
- "<Subject> Section A" / "<Subject> Section B" columns as score breakdowns
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from core.stats import round_half_up

logger = logging.getLogger(__name__)

# Canonical StudentRecord field → accepted payload keys.
RECORD_ALIASES = {
    "id": ["id", "student_id", "studentId"],
    "name": ["name", "student_name", "studentName"],
    "scores": ["scores"],
    "score_details": ["score_details", "scoreDetails"],
    "subject_remarks": ["subject_remarks", "subjectRemarks"],
    "final_remark": ["final_remark", "finalRemark"],
    "overall_remark": ["overall_remark", "overallRemark"],
    "recommendation": ["recommendation"],
    "attendance": ["attendance"],
    "age": ["age"],
    "promoted_to": ["promoted_to", "promotedTo"],
    "conduct": ["conduct"],
    "interest": ["interest"],
    "skills": ["skills"],
}

SECTION_ALIASES = {
    "section_a": ["section_a", "sectionA"],
    "section_b": ["section_b", "sectionB"],
    "total": ["total"],
}

# Score-sheet header variations (lower-cased) for metadata columns.
SHEET_COLUMN_ALIASES = {
    "id": [
        "id", "student_id", "student id", "s/n", "sn", "no", "no.",
        "index_no", "index no", "adm_no", "adm no", "admission no",
    ],
    "name": [
        "name", "student_name", "student name", "pupil_name", "pupil name",
        "full_name", "full name", "learner name",
    ],
    "attendance": ["attendance", "days present"],
    "age": ["age"],
    "promoted_to": ["promoted_to", "promoted to", "promotion"],
    "conduct": ["conduct"],
    "interest": ["interest", "interests"],
    "skills": ["skills"],
    "final_remark": ["final_remark", "final remark"],
    "overall_remark": [
        "overall_remark", "overall remark", "class teacher remark",
        "class teacher's remark",
    ],
    "recommendation": ["recommendation"],
}

SECTION_COLUMN = re.compile(
    r"^(?P<subject>.+?)[\s_\-(]*(?:section|sec)[\s_]*(?P<part>[ab])\)?$",
    re.IGNORECASE,
)


# ── Helpers ─────────────────────────────────────────────────────────

def _pick(record: Mapping[str, Any], aliases: List[str]) -> Any:
    for alias in aliases:
        if alias in record and record[alias] is not None:
            return record[alias]
    return None


def _to_number(value: Any) -> Optional[float]:
    """Parse a score; None for blanks and anything non-numeric."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if np.isnan(number) or np.isinf(number):
        return None
    return int(number) if number.is_integer() else number


def _coerce_id(value: Any, index: int) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return index + 1
    number = _to_number(value)
    if isinstance(number, int):
        return number
    return value


def _normalize_scores(raw: Any, student_ref: Any) -> Dict[str, float]:
    scores: Dict[str, float] = {}
    for subject, value in (raw or {}).items():
        number = _to_number(value)
        if number is None:
            if value is not None and str(value).strip():
                logger.warning(
                    "Ignoring non-numeric %s score %r for student %s", subject, value, student_ref
                )
            continue
        scores[str(subject)] = number
    return scores


def _normalize_details(raw: Any) -> Dict[str, Dict[str, Optional[float]]]:
    details: Dict[str, Dict[str, Optional[float]]] = {}
    for subject, breakdown in (raw or {}).items():
        if not isinstance(breakdown, Mapping):
            continue
        section_a = _to_number(_pick(breakdown, SECTION_ALIASES["section_a"]))
        section_b = _to_number(_pick(breakdown, SECTION_ALIASES["section_b"]))
        # No section marks at all: the flat score stands.
        if section_a is None and section_b is None:
            continue
        details[str(subject)] = {
            "section_a": 0 if section_a is None else section_a,
            "section_b": 0 if section_b is None else section_b,
            "total": _to_number(_pick(breakdown, SECTION_ALIASES["total"])),
        }
    return details


# ── Payload Records ─────────────────────────────────────────────────

def normalize_student_record(record: Mapping[str, Any], index: int = 0) -> Dict[str, Any]:
    """
    Map one loosely-keyed student payload onto the canonical StudentRecord.
    Missing ids fall back to the 1-based position in the cohort.
    """
    normalized: Dict[str, Any] = {
        field: _pick(record, aliases) for field, aliases in RECORD_ALIASES.items()
    }
    normalized["id"] = _coerce_id(normalized["id"], index)
    if normalized["name"] is not None:
        normalized["name"] = str(normalized["name"]).strip()
    normalized["scores"] = _normalize_scores(normalized["scores"], normalized["id"])
    normalized["score_details"] = _normalize_details(normalized["score_details"])
    normalized["subject_remarks"] = {
        str(k): v for k, v in (normalized["subject_remarks"] or {}).items()
        if v is not None
    }
    return normalized


def normalize_student_records(records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [normalize_student_record(r, i) for i, r in enumerate(records)]


# ── Score Sheets ────────────────────────────────────────────────────

def read_score_sheet(file_path: str) -> pd.DataFrame:
    """
    Read a score sheet into a DataFrame (all cells as strings).
    For Excel workbooks the first non-empty sheet is used.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        return pd.read_csv(file_path, dtype=str)

    if ext == ".xlsx":
        xls = pd.ExcelFile(file_path, engine="openpyxl")
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            if not df.empty and len(df.columns) > 1:
                return df
        raise ValueError("No valid sheets found in the Excel file.")

    raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """Map each metadata field to the first matching sheet column (or None)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}
    for field, aliases in SHEET_COLUMN_ALIASES.items():
        mapping[field] = next((cols_lower[a] for a in aliases if a in cols_lower), None)
    return mapping


def detect_section_columns(df: pd.DataFrame) -> Dict[str, Tuple[str, str]]:
    """Columns holding section marks: {column: (subject, "section_a" | "section_b")}."""
    sections = {}
    for col in df.columns:
        match = SECTION_COLUMN.match(str(col).strip())
        if match:
            part = "section_a" if match.group("part").lower() == "a" else "section_b"
            sections[col] = (match.group("subject").strip(), part)
    return sections


def detect_subject_columns(
    df: pd.DataFrame,
    subject_list: Optional[List[str]] = None,
) -> Dict[str, str]:
    """
    Subject → column. With an explicit subject list, columns are matched
    case-insensitively; otherwise every column that is neither metadata nor
    a section column is taken as a subject.
    """
    metadata_cols = {c for c in suggest_column_mapping(df).values() if c is not None}
    section_cols = set(detect_section_columns(df))

    if subject_list:
        cols_lower = {str(c).lower().strip(): c for c in df.columns if c not in section_cols}
        return {
            subject: cols_lower[subject.lower().strip()]
            for subject in subject_list
            if subject.lower().strip() in cols_lower
        }

    return {
        str(c).strip(): c
        for c in df.columns
        if c not in metadata_cols and c not in section_cols
    }


def sheet_subjects(df: pd.DataFrame, subject_list: Optional[List[str]] = None) -> List[str]:
    """Subjects graded from a sheet: the given list, or every detected subject."""
    if subject_list:
        return list(subject_list)
    subjects = list(detect_subject_columns(df))
    for subject, _ in detect_section_columns(df).values():
        if subject not in subjects:
            subjects.append(subject)
    return subjects


def students_from_dataframe(
    df: pd.DataFrame,
    subject_list: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """Convert a wide score sheet into normalized StudentRecords."""
    mapping = suggest_column_mapping(df)
    subject_cols = detect_subject_columns(df, subject_list)
    section_cols = detect_section_columns(df)
    wanted = set(subject_list) if subject_list else None

    clean = df.astype(object).where(pd.notna(df), None)
    records = []
    for index, row in enumerate(clean.to_dict(orient="records")):
        raw: Dict[str, Any] = {
            field: row.get(col) for field, col in mapping.items() if col is not None
        }
        raw["scores"] = {subject: row.get(col) for subject, col in subject_cols.items()}

        details: Dict[str, Dict[str, Any]] = {}
        for col, (subject, part) in section_cols.items():
            if wanted is not None and subject not in wanted:
                continue
            mark = _to_number(row.get(col))
            if mark is not None:
                details.setdefault(subject, {})[part] = mark
        for subject, breakdown in details.items():
            total = round_half_up((breakdown.get("section_a") or 0) + (breakdown.get("section_b") or 0))
            breakdown["total"] = total
            # A breakdown without a flat column still needs a flat score.
            if _to_number(raw["scores"].get(subject)) is None:
                raw["scores"][subject] = total
        raw["score_details"] = details

        records.append(normalize_student_record(raw, index))
    return records
