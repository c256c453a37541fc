"""
report.py — Mini-pauta assembly.

Combines the grouped component columns, each student's resolved cells and
aggregated finals into one table (header + rows + statistics) consumed by
the preview and by the PDF / Excel exporters.

Four layouts cover the request variants:

  single discipline × single term    flat column list
  all disciplines   × single term    discipline groups
  single discipline × all terms      term groups + MT1..MT3
  all disciplines   × all terms      term/discipline groups + MT1..MT3

They differ only in how the header groups are built; row building and
per-cell formatting are shared. Rows keep roster order.
"""

from typing import Any, Dict, List, Optional, Sequence

from pauta.aggregator import aggregate_student, statistics_from_rows
from pauta.grade_colors import get_grade_color
from pauta.grouping import (
    components_for_term,
    group_by_discipline,
    group_by_term,
    group_by_term_and_discipline,
    single_group,
)
from pauta.logger import get_logger
from pauta.models import (
    ABSENT,
    Component,
    GradeColorConfig,
    ReportRequest,
    StudentRow,
)
from pauta.resolver import resolve_student


logger = get_logger(__name__)

ABSENT_DISPLAY = "-"
LEADING_COLUMNS = ["Nº", "Nº Processo", "Nome do Aluno", "GÊN"]


# ── Cells ───────────────────────────────────────────────────────────

def format_grade(value: Any) -> str:
    """One decimal place; '-' for an absent grade."""
    if value is ABSENT or value is None:
        return ABSENT_DISPLAY
    return f"{float(value):.1f}"


def make_cell(
    value: Any,
    is_calculated: bool,
    request: ReportRequest,
    color_config: Optional[GradeColorConfig] = None,
    excellent_threshold: Optional[float] = None,
) -> Dict[str, Any]:
    if value is ABSENT or value is None:
        return {
            "value": None,
            "display": ABSENT_DISPLAY,
            "band": None,
            "color": None,
            "is_calculated": is_calculated,
        }

    value = float(value)
    color = get_grade_color(
        value,
        request.education_level,
        request.class_level,
        is_calculated,
        color_config,
        excellent_threshold,
    )
    return {
        "value": value,
        "display": format_grade(value),
        "band": color["band"],
        "color": color["color"],
        "is_calculated": is_calculated,
    }


def _column(comp: Component) -> Dict[str, Any]:
    return {
        "key": comp.id,
        "label": comp.code,
        "name": comp.name,
        "weight": comp.weight,
        "is_calculated": comp.is_calculated,
    }


# ── Layouts ─────────────────────────────────────────────────────────

class MiniPautaLayout:
    """Shared header/row assembly; subclasses only choose how columns are grouped."""

    all_disciplines = False
    all_terms = False

    def __init__(
        self,
        request: ReportRequest,
        components: Sequence[Component],
        color_config: Optional[GradeColorConfig] = None,
        excellent_threshold: Optional[float] = None,
    ):
        self.request = request
        self.color_config = color_config
        self.excellent_threshold = excellent_threshold
        self.groups = self.build_groups(list(components))

    def build_groups(self, components: List[Component]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @property
    def two_level(self) -> bool:
        return self.all_disciplines or self.all_terms

    @property
    def show_term_mean(self) -> bool:
        return self.request.show_term_mean and not self.all_terms

    def term_final_terms(self) -> List[int]:
        if not self.all_terms:
            return []
        return sorted({group["term"] for group in self.groups})

    def cell(self, value: Any, is_calculated: bool) -> Dict[str, Any]:
        return make_cell(
            value, is_calculated, self.request, self.color_config, self.excellent_threshold
        )

    # Header

    def header(self) -> Dict[str, Any]:
        trailing = ["MF" if self.all_terms else "NF"]
        if self.show_term_mean:
            trailing.append("MT")
        trailing.extend(["Classificação", "Situação"])

        return {
            "leading": list(LEADING_COLUMNS),
            "groups": [
                {
                    "label": group["label"],
                    "term": group["term"],
                    "discipline": group["discipline"],
                    "span": len(group["components"]),
                    "columns": [_column(comp) for comp in group["components"]],
                }
                for group in self.groups
            ],
            "term_finals": [
                {"term": term, "label": f"MT{term}"} for term in self.term_final_terms()
            ],
            "trailing": trailing,
        }

    # Rows

    def build_row(self, number: int, student: StudentRow) -> Dict[str, Any]:
        values = resolve_student(student, self.groups, all_terms=self.all_terms)
        flags = [comp.is_calculated for group in self.groups for comp in group["components"]]
        aggregate = aggregate_student(student, self.request)

        row = {
            "number": number,
            "process_number": student.process_number,
            "name": student.full_name,
            "gender": student.gender,
            "cells": [self.cell(v, calc) for v, calc in zip(values, flags)],
            "term_finals": [
                self.cell(aggregate["term_finals"].get(term), True)
                for term in self.term_final_terms()
            ],
            "final": self.cell(aggregate["final"], True),
            "classification": aggregate["classification"],
            "approved": aggregate["approved"],
            "status": aggregate["status"],
        }
        if self.show_term_mean:
            row["term_mean"] = self.cell(aggregate["term_mean"], True)
        return row

    def build(self, students: Sequence[StudentRow]) -> Dict[str, Any]:
        if self.groups:
            rows = [self.build_row(i, s) for i, s in enumerate(students, 1)]
        else:
            logger.debug("No components for class %s; report body is empty", self.request.class_id)
            rows = []

        return {
            "mode": {
                "all_disciplines": self.all_disciplines,
                "all_terms": self.all_terms,
                "two_level": self.two_level,
                "term": self.request.term,
            },
            "header": self.header(),
            "rows": rows,
            "statistics": statistics_from_rows(rows),
        }


class SingleDisciplineTermLayout(MiniPautaLayout):
    def build_groups(self, components):
        term = self.request.term if isinstance(self.request.term, int) else None
        return single_group(components_for_term(components, term), term)


class AllDisciplinesTermLayout(MiniPautaLayout):
    all_disciplines = True

    def build_groups(self, components):
        term = self.request.term if isinstance(self.request.term, int) else None
        return group_by_discipline(components_for_term(components, term), term=term)


class SingleDisciplineAllTermsLayout(MiniPautaLayout):
    all_terms = True

    def build_groups(self, components):
        return group_by_term(components)


class AllDisciplinesAllTermsLayout(MiniPautaLayout):
    all_disciplines = True
    all_terms = True

    def build_groups(self, components):
        return group_by_term_and_discipline(components)


LAYOUTS = {
    (False, False): SingleDisciplineTermLayout,
    (True, False): AllDisciplinesTermLayout,
    (False, True): SingleDisciplineAllTermsLayout,
    (True, True): AllDisciplinesAllTermsLayout,
}


def get_layout(
    request: ReportRequest,
    components: Sequence[Component],
    color_config: Optional[GradeColorConfig] = None,
    excellent_threshold: Optional[float] = None,
) -> MiniPautaLayout:
    return LAYOUTS[request.shape](request, components, color_config, excellent_threshold)


def build_report(
    request: ReportRequest,
    components: Sequence[Component],
    students: Sequence[StudentRow],
    color_config: Optional[GradeColorConfig] = None,
    excellent_threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Assemble the mini-pauta for one request.

    Pure: the inputs are not modified and the same inputs always produce
    the same report.
    """
    layout = get_layout(request, components, color_config, excellent_threshold)
    return layout.build(students)
