"""
models.py — Read-only snapshot types for a mini-pauta request.

Components, students and the colour configuration are loaded once per
request and never mutated; every engine function derives new structures
from them.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union


ALL_TERMS = "all"
TERMS = (1, 2, 3)
NO_DISCIPLINE = "Sem Disciplina"

STATUS_APPROVED = "Transita"
STATUS_FAILED = "Não Transita"

# Standard classification labels; other labels are counted as they appear
CLASSIFICATIONS = ("Excelente", "Bom", "Suficiente", "Insuficiente")


class Absent:
    """Marker for a grade that has not been entered yet."""

    __slots__ = ()

    def __repr__(self):
        return "ABSENT"

    def __bool__(self):
        return False


ABSENT = Absent()


# ── Catalogue & roster ──────────────────────────────────────────────

@dataclass(frozen=True)
class Component:
    """One gradable assessment item from the component catalogue."""

    id: str
    code: str
    name: str = ""
    weight: float = 0.0
    term: Optional[int] = None
    is_calculated: bool = False
    discipline_name: Optional[str] = None
    discipline_order: Optional[int] = None


@dataclass(frozen=True)
class TermBundle:
    # grades are keyed by component id
    grades: Dict[str, float] = field(default_factory=dict)
    final_grade: Optional[float] = None


@dataclass(frozen=True)
class StudentRow:
    process_number: str
    full_name: str
    gender: Optional[str] = None
    grades: Dict[str, float] = field(default_factory=dict)
    final_grade: Optional[float] = None
    term_average: Optional[float] = None
    classification: str = ""
    approved: bool = False
    terms: Dict[int, TermBundle] = field(default_factory=dict)


# ── Colour configuration ────────────────────────────────────────────

COMPONENT_TYPES = ("calculado", "regular", "todos")
OPERATORS = ("<=", "<", ">=", ">")


@dataclass(frozen=True)
class ColorRule:
    threshold: float
    operator: str = "<"
    component_type: str = "todos"
    level: Optional[str] = None
    class_min: Optional[int] = None
    class_max: Optional[int] = None
    apply_color: bool = True
    order: int = 0


@dataclass(frozen=True)
class GradeColorConfig:
    negative_color: str = "#dc2626"
    positive_color: str = "#2563eb"
    name: str = ""
    description: str = ""
    class_id: Optional[str] = None
    rules: Tuple[ColorRule, ...] = ()


# ── Request variant ─────────────────────────────────────────────────

@dataclass(frozen=True)
class ReportRequest:
    """
    A mini-pauta request.

    ``discipline_id`` of None selects every discipline of the class and
    ``term`` of ALL_TERMS selects the three terms; together they pick one
    of the four report layouts.
    """

    class_id: str
    discipline_id: Optional[str] = None
    term: Union[int, str] = 1
    education_level: Optional[str] = None
    class_level: Optional[str] = None
    show_term_mean: bool = False

    @property
    def all_terms(self) -> bool:
        return self.term == ALL_TERMS

    @property
    def all_disciplines(self) -> bool:
        return self.discipline_id is None

    @property
    def shape(self) -> Tuple[bool, bool]:
        return self.all_disciplines, self.all_terms

