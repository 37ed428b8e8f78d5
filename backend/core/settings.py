"""
settings.py — Immutable grading configuration.

A GradingSettings value is handed to every pipeline run; nothing in the
core reads global state. Defaults come from the environment (loaded via
python-dotenv in main.py) and request payloads override individual fields.
"""

import os
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from core.grading import DEFAULT_GRADING_REMARKS

SCIENCE_SUBJECT = "Science"
SCIENCE_BASE_SCORES = (100, 140)

DEFAULT_CORE_SUBJECTS: Tuple[str, ...] = (
    "English Language",
    "Mathematics",
    "Science",
    "Social Studies",
)

EARLY_CHILDHOOD_DEPARTMENTS = frozenset({"Daycare", "Nursery", "Kindergarten"})

# Payload keys accepted for each settings field (camelCase from the web client).
PAYLOAD_ALIASES = {
    "facilitator_mapping": ["facilitator_mapping", "facilitatorMapping", "facilitator_map"],
    "grading_remarks": ["grading_remarks", "gradingSystemRemarks", "grading_system_remarks"],
    "staff_list": ["staff_list", "staffList", "staff"],
    "science_base_score": ["science_base_score", "scienceBaseScore"],
    "core_subjects": ["core_subjects", "coreSubjects"],
    "custom_subjects": ["custom_subjects", "customSubjects"],
    "active_indicators": ["active_indicators", "activeIndicators"],
}


@dataclass(frozen=True)
class GradingSettings:
    facilitator_mapping: Mapping[str, str] = field(default_factory=dict)
    grading_remarks: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_GRADING_REMARKS))
    staff_list: Tuple[Mapping[str, Any], ...] = ()
    science_base_score: int = 100
    core_subjects: Tuple[str, ...] = DEFAULT_CORE_SUBJECTS
    custom_subjects: Tuple[str, ...] = ()
    active_indicators: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.science_base_score not in SCIENCE_BASE_SCORES:
            raise ValueError(
                f"science_base_score must be one of {SCIENCE_BASE_SCORES}, "
                f"got {self.science_base_score!r}"
            )
        # Freeze the containers too so a shared settings value stays consistent.
        object.__setattr__(self, "facilitator_mapping", MappingProxyType(dict(self.facilitator_mapping)))
        object.__setattr__(self, "grading_remarks", MappingProxyType(dict(self.grading_remarks)))
        object.__setattr__(
            self, "staff_list",
            tuple(MappingProxyType(dict(s)) for s in self.staff_list),
        )
        for name in ("core_subjects", "custom_subjects", "active_indicators"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the settings."""
        return {
            "facilitator_mapping": dict(self.facilitator_mapping),
            "grading_remarks": dict(self.grading_remarks),
            "staff_list": [
                {**dict(s), "subjects": list(s.get("subjects") or [])}
                for s in self.staff_list
            ],
            "science_base_score": self.science_base_score,
            "core_subjects": list(self.core_subjects),
            "custom_subjects": list(self.custom_subjects),
            "active_indicators": list(self.active_indicators),
        }


def _split_csv(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(s.strip() for s in raw.split(",") if s.strip())


def _parse_base_score(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"science_base_score must be 100 or 140, got {value!r}")


def load_settings_from_env() -> GradingSettings:
    """Build the default settings from environment variables."""
    core_subjects = _split_csv(os.getenv("CORE_SUBJECTS")) or DEFAULT_CORE_SUBJECTS
    base_score = _parse_base_score(os.getenv("SCIENCE_BASE_SCORE", "100"))
    return GradingSettings(science_base_score=base_score, core_subjects=core_subjects)


@lru_cache(maxsize=1)
def get_default_settings() -> GradingSettings:
    """Environment defaults, read once per process (main.py loads them at startup)."""
    return load_settings_from_env()


def settings_from_payload(
    payload: Optional[Mapping[str, Any]],
    base: Optional[GradingSettings] = None,
) -> GradingSettings:
    """
    Overlay a settings payload on top of ``base`` (or the env defaults).

    Raises ValueError when a field has the wrong shape.
    """
    base = base or load_settings_from_env()
    if not payload:
        return base
    if not isinstance(payload, Mapping):
        raise ValueError("settings must be an object.")

    overrides: Dict[str, Any] = {}
    for f in fields(GradingSettings):
        value = None
        for alias in PAYLOAD_ALIASES[f.name]:
            if payload.get(alias) is not None:
                value = payload[alias]
                break
        if value is None:
            continue

        if f.name in ("facilitator_mapping", "grading_remarks"):
            if not isinstance(value, Mapping):
                raise ValueError(f"{f.name} must be an object.")
            if f.name == "grading_remarks":
                # Partial overrides keep the remaining default labels.
                value = {**dict(base.grading_remarks), **value}
            overrides[f.name] = value
        elif f.name == "science_base_score":
            overrides[f.name] = _parse_base_score(value)
        elif f.name == "staff_list":
            if not isinstance(value, (list, tuple)) or not all(isinstance(s, Mapping) for s in value):
                raise ValueError("staff_list must be a list of objects.")
            overrides[f.name] = tuple(value)
        else:
            if isinstance(value, str):
                value = _split_csv(value)
            if not isinstance(value, (list, tuple)):
                raise ValueError(f"{f.name} must be a list of subject names.")
            overrides[f.name] = tuple(str(v) for v in value)

    return replace(base, **overrides)


def is_early_childhood(department: Optional[str]) -> bool:
    return department in EARLY_CHILDHOOD_DEPARTMENTS
