"""
parser.py — Ingestion of collaborator rows into the mini-pauta models.

Supports:
- Component catalogue rows, student rows (with per-term bundles), the
  grade colour configuration and the request block, using the field names
  of the data-fetch collaborator
- Long-format grade sheets (CSV/Excel already loaded into a DataFrame)
- Fuzzy column name mapping for those sheets

Grades are re-keyed by component id here, once, so later stages never
branch on code vs. id lookups.
"""

import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from pauta.logger import get_logger
from pauta.models import (
    ALL_TERMS,
    COMPONENT_TYPES,
    OPERATORS,
    TERMS,
    ColorRule,
    Component,
    GradeColorConfig,
    ReportRequest,
    StudentRow,
    TermBundle,
)
from pauta.resolver import KEY_BY_CODE, KEY_BY_ID, normalize_grades, safe_grade


logger = get_logger(__name__)

# Column name variations for long-format grade sheets
COLUMN_ALIASES = {
    "numero_processo": [
        "numero_processo", "nº processo", "n processo", "processo",
        "process_number", "student_id", "id_aluno",
    ],
    "componente": [
        "componente", "codigo_componente", "componente_id", "component",
        "código", "codigo", "code",
    ],
    "trimestre": [
        "trimestre", "term", "periodo", "período",
    ],
    "nota": [
        "nota", "grade", "valor", "score", "classificação",
    ],
}

ALL_TERMS_ALIASES = {"all", "todos", "todas", "*"}

HEX_COLOR = re.compile(r"^#?[0-9A-Fa-f]{6}$")


# ── Helpers ─────────────────────────────────────────────────────────

def _text(val: Any) -> str:
    if val is None:
        return ""
    try:
        if pd.isna(val):
            return ""
    except (TypeError, ValueError):
        pass
    return str(val).strip()


def _optional_text(val: Any) -> Optional[str]:
    text = _text(val)
    return text or None


def _optional_int(val: Any) -> Optional[int]:
    v = safe_grade(val)
    return None if v is None else int(v)


def _bool(val: Any, default: bool = False) -> bool:
    if val is None:
        return default
    if isinstance(val, str):
        text = val.strip().lower()
        if not text:
            return default
        return text in {"1", "true", "yes", "sim", "on"}
    return bool(val)


def _color(val: Any, fallback: str, field_name: str) -> str:
    """A '#rrggbb' colour, or the fallback (with a warning) for anything else."""
    text = _text(val)
    if not text:
        return fallback
    if not HEX_COLOR.match(text):
        logger.warning("Ignoring malformed colour %s=%r; using %s", field_name, text, fallback)
        return fallback
    return "#" + text.lstrip("#").lower()


def _term_number(number: float) -> Optional[int]:
    if number != int(number):
        return None
    return int(number) if int(number) in TERMS else None


def parse_term(value: Any) -> Optional[int]:
    """'1', 1, '1º', 'T1', '1º Trimestre' -> 1. None when not a whole term 1..3."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if safe_grade(value) is None:
            return None
        return _term_number(float(value))
    match = re.search(r"\d+(?:[.,]\d+)?", str(value))
    if match:
        return _term_number(float(match.group(0).replace(",", ".")))
    return None


def parse_term_selector(value: Any):
    """A term number or ALL_TERMS; raises ValueError for anything else."""
    if isinstance(value, str) and value.strip().lower() in ALL_TERMS_ALIASES:
        return ALL_TERMS
    term = parse_term(value)
    if term is None:
        raise ValueError(f"Invalid term selector: {value!r}. Use 1, 2, 3 or 'all'.")
    return term


def find_column(df: pd.DataFrame, field: str) -> Optional[str]:
    """First DataFrame column matching any alias of `field` (case-insensitive)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    for alias in COLUMN_ALIASES.get(field, [field]):
        if alias in cols_lower:
            return cols_lower[alias]
    return None


# ── Catalogue, roster, configuration ────────────────────────────────

def parse_components(rows: Optional[Sequence[Mapping[str, Any]]]) -> List[Component]:
    components = []
    for row in rows or []:
        code = _text(row.get("codigo_componente"))
        comp_id = _text(row.get("id")) or code
        if not comp_id:
            logger.debug("Skipping component row without id or code: %s", row)
            continue
        components.append(Component(
            id=comp_id,
            code=code or comp_id,
            name=_text(row.get("nome")),
            weight=safe_grade(row.get("peso_percentual")) or 0.0,
            term=parse_term(row.get("trimestre")),
            is_calculated=_bool(row.get("is_calculated", False)),
            discipline_name=_optional_text(row.get("disciplina_nome")),
            discipline_order=_optional_int(row.get("disciplina_ordem")),
        ))
    return components


def _parse_term_bundles(
    raw: Optional[Mapping[Any, Any]],
    components: Sequence[Component],
    key_by: str,
) -> Dict[int, TermBundle]:
    bundles: Dict[int, TermBundle] = {}
    for key, bundle in (raw or {}).items():
        term = parse_term(key)
        if term is None or not isinstance(bundle, Mapping):
            continue
        term_components = [c for c in components if c.term == term]
        bundles[term] = TermBundle(
            grades=normalize_grades(bundle.get("notas"), term_components, key_by),
            final_grade=safe_grade(bundle.get("nota_final")),
        )
    return bundles


def parse_students(
    rows: Optional[Sequence[Mapping[str, Any]]],
    components: Sequence[Component],
    key_by: str = KEY_BY_CODE,
) -> List[StudentRow]:
    """Student rows in roster order, with grades re-keyed by component id."""
    students = []
    for row in rows or []:
        students.append(StudentRow(
            process_number=_text(row.get("numero_processo")),
            full_name=_text(row.get("nome_completo")),
            gender=_optional_text(row.get("genero")),
            grades=normalize_grades(row.get("notas"), components, key_by),
            final_grade=safe_grade(row.get("nota_final")),
            term_average=safe_grade(row.get("media_trimestral")),
            classification=_text(row.get("classificacao")),
            approved=_bool(row.get("aprovado", False)),
            terms=_parse_term_bundles(row.get("trimestres"), components, key_by),
        ))
    return students


def parse_color_rule(row: Mapping[str, Any]) -> Optional[ColorRule]:
    threshold = safe_grade(row.get("threshold"))
    operator = _text(row.get("operador")) or "<"
    component_type = _text(row.get("tipo_componente")) or "todos"

    if threshold is None or operator not in OPERATORS or component_type not in COMPONENT_TYPES:
        logger.warning(
            "Dropping malformed colour rule (threshold=%r, operador=%r, tipo_componente=%r)",
            row.get("threshold"), row.get("operador"), row.get("tipo_componente"),
        )
        return None

    return ColorRule(
        threshold=threshold,
        operator=operator,
        component_type=component_type,
        level=_optional_text(row.get("nivel_ensino")),
        class_min=_optional_int(row.get("classe_min")),
        class_max=_optional_int(row.get("classe_max")),
        apply_color=_bool(row.get("aplicar_cor"), default=True),
        order=_optional_int(row.get("ordem")) or 0,
    )


def parse_color_config(obj: Optional[Mapping[str, Any]]) -> Optional[GradeColorConfig]:
    """None when no configuration was supplied (the built-in bands apply)."""
    if not obj:
        return None

    rules = []
    for row in obj.get("regras") or []:
        if not isinstance(row, Mapping):
            continue
        rule = parse_color_rule(row)
        if rule is not None:
            rules.append(rule)

    defaults = GradeColorConfig()
    return GradeColorConfig(
        negative_color=_color(obj.get("cor_negativa"), defaults.negative_color, "cor_negativa"),
        positive_color=_color(obj.get("cor_positiva"), defaults.positive_color, "cor_positiva"),
        name=_text(obj.get("nome")),
        description=_text(obj.get("descricao")),
        class_id=_optional_text(obj.get("turma_id")),
        rules=tuple(sorted(rules, key=lambda r: r.order)),
    )


def parse_request(obj: Optional[Mapping[str, Any]]) -> ReportRequest:
    if not obj:
        raise ValueError("Missing 'request' block.")
    class_id = _text(obj.get("turma_id"))
    if not class_id:
        raise ValueError("Request is missing 'turma_id'.")

    return ReportRequest(
        class_id=class_id,
        discipline_id=_optional_text(obj.get("disciplina_id")),
        term=parse_term_selector(obj.get("trimestre", 1)),
        education_level=_optional_text(obj.get("nivel_ensino")),
        class_level=_optional_text(obj.get("classe")),
        show_term_mean=_bool(obj.get("show_mt", False)),
    )


def parse_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Turn a full mini-pauta payload into engine inputs.

    Expected keys: request, componentes, alunos, optional color_config.
    Student grades are keyed by component code for a single discipline and
    by component id when every discipline is requested.
    """
    request = parse_request(payload.get("request"))
    components = parse_components(payload.get("componentes"))
    key_by = KEY_BY_ID if request.all_disciplines else KEY_BY_CODE
    return {
        "request": request,
        "components": components,
        "students": parse_students(payload.get("alunos"), components, key_by),
        "color_config": parse_color_config(payload.get("color_config")),
        "key_by": key_by,
    }


# ── Long-format grade sheets ────────────────────────────────────────

SHEET_EXTENSIONS = (".csv", ".xlsx")


def read_grade_sheet(file_path: str) -> pd.DataFrame:
    """
    Load a grade sheet as strings. CSV files are read directly; for Excel
    workbooks the first non-empty sheet is used.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        return pd.read_csv(file_path, dtype=str)

    if ext == ".xlsx":
        xls = pd.ExcelFile(file_path, engine="openpyxl")
        try:
            for sheet_name in xls.sheet_names:
                df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
                if not df.empty and len(df.columns) > 1:
                    return df
        finally:
            xls.close()
        raise ValueError("No valid sheets found in the Excel file.")

    raise ValueError(f"Unsupported file type: {ext}. Use CSV or Excel (.xlsx).")


def grades_from_frame(
    df: pd.DataFrame,
    components: Sequence[Component],
    key_by: str = KEY_BY_CODE,
) -> Dict[str, Dict[Optional[int], Dict[str, float]]]:
    """
    Read a long-format sheet (one grade per row) into
    {numero_processo: {term or None: {component_id: grade}}}.

    Rows with an unknown component, no process number or a non-numeric
    grade are skipped.
    """
    process_col = find_column(df, "numero_processo")
    component_col = find_column(df, "componente")
    grade_col = find_column(df, "nota")
    term_col = find_column(df, "trimestre")
    if not (process_col and component_col and grade_col):
        raise ValueError("Grade sheet needs process number, component and grade columns.")

    result: Dict[str, Dict[Optional[int], Dict[str, float]]] = {}
    for _, row in df.iterrows():
        process = _text(row[process_col])
        key = _text(row[component_col])
        if not process or not key:
            continue
        term = parse_term(row[term_col]) if term_col else None
        candidates = [c for c in components if term is None or c.term == term]
        grades = normalize_grades({key: row[grade_col]}, candidates, key_by)
        if grades:
            result.setdefault(process, {}).setdefault(term, {}).update(grades)
    return result


def apply_sheet_grades(
    students: Sequence[StudentRow],
    sheet: Mapping[str, Mapping[Optional[int], Mapping[str, float]]],
    term: Optional[int] = None,
) -> List[StudentRow]:
    """
    New student rows with sheet grades layered over the recorded ones.

    With a term, that term's sheet grades also land on the flat grades
    read by single-term reports.
    """
    updated = []
    for student in students:
        by_term = sheet.get(student.process_number)
        if not by_term:
            updated.append(student)
            continue

        grades = dict(student.grades)
        grades.update(by_term.get(None, {}))
        if term is not None:
            grades.update(by_term.get(term, {}))
        terms = dict(student.terms)
        for sheet_term, term_grades in by_term.items():
            if sheet_term is None:
                continue
            bundle = terms.get(sheet_term, TermBundle())
            merged = dict(bundle.grades)
            merged.update(term_grades)
            terms[sheet_term] = replace(bundle, grades=merged)

        updated.append(replace(student, grades=grades, terms=terms))
    return updated
