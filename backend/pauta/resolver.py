"""
resolver.py — Per-student grade lookup.

Grades are stored keyed by component id. Component codes ("PP", "MT")
are only unique inside one discipline, so code-keyed input is converted
to id keys once, at ingestion, by normalize_grades().

A grade that was never entered resolves to ABSENT, never to 0.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pauta.models import ABSENT, Absent, Component, StudentRow


KEY_BY_CODE = "code"
KEY_BY_ID = "id"

Cell = Union[float, Absent]


def safe_grade(val: Any) -> Optional[float]:
    """Convert to float, or None for missing / non-numeric / NaN / inf values."""
    if val is None or isinstance(val, bool):
        return None
    try:
        v = float(val)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v


def normalize_grades(
    raw: Optional[Mapping[str, Any]],
    components: Sequence[Component],
    key_by: str = KEY_BY_CODE,
) -> Dict[str, float]:
    """
    Re-key a raw grade mapping by component id.

    An id key always wins; with key_by="code" a component falls back to
    the value stored under its code. Unknown keys and unusable values are
    dropped.
    """
    if not raw:
        return {}

    grades: Dict[str, float] = {}
    for comp in components:
        if comp.id in raw:
            value = safe_grade(raw[comp.id])
        elif key_by == KEY_BY_CODE and comp.code in raw:
            value = safe_grade(raw[comp.code])
        else:
            continue
        if value is not None:
            grades[comp.id] = value
    return grades


def resolve_grades(grades: Mapping[str, float], components: Sequence[Component]) -> List[Cell]:
    """One cell per component, in component order: the grade or ABSENT."""
    cells: List[Cell] = []
    for comp in components:
        value = grades.get(comp.id)
        cells.append(ABSENT if value is None else value)
    return cells


def resolve_student(
    student: StudentRow,
    groups: Sequence[Dict[str, Any]],
    all_terms: bool = False,
) -> List[Cell]:
    """
    Cells for every component of every group, in header order.

    In all-terms mode each group's grades come from the student's bundle
    for that group's term; a missing bundle resolves to ABSENT cells.
    """
    cells: List[Cell] = []
    for group in groups:
        if all_terms:
            bundle = student.terms.get(group["term"])
            grades = bundle.grades if bundle is not None else {}
        else:
            grades = student.grades
        cells.extend(resolve_grades(grades, group["components"]))
    return cells
