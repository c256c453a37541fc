"""
aggregator.py — Term finals, annual grade and the class statistics footer.

Finals are taken from the upstream grading computation as-is; this module
never re-weights components. Approval and classification are passed
through unchanged.

Computes:
- Term final grade (precomputed final, else the precomputed term average)
- Annual grade in all-terms mode (mean of the term finals that exist)
- Class statistics: counts, mean, min, max, approval rate and the
  classification distribution
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from pauta.models import (
    CLASSIFICATIONS,
    STATUS_APPROVED,
    STATUS_FAILED,
    TERMS,
    ReportRequest,
    StudentRow,
)
from pauta.resolver import safe_grade


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val, digits: int = 2) -> Optional[float]:
    """Round to `digits`, or None for missing / NaN / inf."""
    v = safe_grade(val)
    return None if v is None else round(v, digits)


def _sanitize(obj):
    """Recursively coerce numpy scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


# ── Per-student aggregation ─────────────────────────────────────────

def term_final(student: StudentRow) -> Optional[float]:
    """Precomputed term final, falling back to the precomputed term average."""
    if student.final_grade is not None:
        return student.final_grade
    return student.term_average


def term_finals(student: StudentRow) -> Dict[int, Optional[float]]:
    """{1: x, 2: y, 3: z} from the per-term bundles; None where a term has no final."""
    finals: Dict[int, Optional[float]] = {}
    for term in TERMS:
        bundle = student.terms.get(term)
        finals[term] = bundle.final_grade if bundle is not None else None
    return finals


def annual_grade(student: StudentRow) -> Optional[float]:
    """
    Mean of the term finals that exist.

    Missing terms are left out of the mean rather than counted as zero; a
    recorded 0 is a real final and counts. No finals at all gives None.
    """
    present = [v for v in term_finals(student).values() if v is not None]
    if not present:
        return None
    return float(np.mean(present))


def student_final(student: StudentRow, request: ReportRequest) -> Optional[float]:
    if request.all_terms:
        return annual_grade(student)
    return term_final(student)


def status_label(approved: bool) -> str:
    return STATUS_APPROVED if approved else STATUS_FAILED


def aggregate_student(student: StudentRow, request: ReportRequest) -> Dict[str, Any]:
    """Final, term finals, term mean and the passed-through approval fields."""
    return {
        "final": student_final(student, request),
        "term_finals": term_finals(student) if request.all_terms else {},
        "term_mean": student.term_average,
        "classification": student.classification,
        "approved": bool(student.approved),
        "status": status_label(bool(student.approved)),
    }


# ── Class statistics ────────────────────────────────────────────────

def classification_distribution(classifications: Sequence[str]) -> Dict[str, int]:
    """Count of students per classification label; blank labels are not counted."""
    distribution = {label: 0 for label in CLASSIFICATIONS}
    for label in classifications:
        label = (label or "").strip()
        if label:
            distribution[label] = distribution.get(label, 0) + 1
    return distribution


def compute_statistics(
    finals: Sequence[Optional[float]],
    approved: Sequence[bool],
    classifications: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Statistics footer for a mini-pauta.

    `finals`, `approved` and `classifications` are aligned per student.
    Mean/min/max only use the finals that exist and are None when there
    are none.
    """
    total = len(approved)
    values = np.array([v for v in finals if v is not None], dtype=float)
    approved_count = int(sum(1 for a in approved if a))

    stats: Dict[str, Any] = {
        "total_students": total,
        "graded": int(values.size),
        "approved": approved_count,
        "failed": total - approved_count,
        "approval_rate": _safe_float(approved_count / total * 100, 1) if total > 0 else 0.0,
        "mean": _safe_float(values.mean()) if values.size else None,
        "min": _safe_float(values.min()) if values.size else None,
        "max": _safe_float(values.max()) if values.size else None,
        "distribution": classification_distribution(classifications or []),
    }
    return _sanitize(stats)


def statistics_from_rows(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Statistics over assembled report rows (uses each row's final cell value)."""
    finals = [row["final"]["value"] for row in rows]
    approved = [row["approved"] for row in rows]
    classifications = [row["classification"] for row in rows]
    return compute_statistics(finals, approved, classifications)
