"""
export.py — PDF, Excel and CSV output for an assembled mini-pauta.

Generates:
- Mini-pauta PDF   (A4 landscape: title, identification lines, grade table
                    with group header spans, statistics, signatures)
- Excel workbook   (one sheet, merged group headers, coloured grades)
- CSV              (the flattened table)
- DataFrame        (flattened table, also used to fill the workbook and CSV)

All walk the report produced by pauta.report.build_report; nothing is
recomputed here.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from pauta.report import ABSENT_DISPLAY


# ── Colour palette ──────────────────────────────────────────────────

HEADER_BLUE = colors.HexColor("#2563eb")
GROUP_BLUE = colors.HexColor("#1d4ed8")
CALCULATED_BG = colors.HexColor("#fef3c7")
FAILED_ROW_BG = colors.HexColor("#fef2f2")
ABSENT_GREY = colors.HexColor("#94a3b8")
GRID_GREY = colors.HexColor("#cbd5e1")
WHITE = colors.white


# ── Flattening ──────────────────────────────────────────────────────

def _column_labels(report: Dict[str, Any]) -> List[str]:
    """Flat column labels. Component labels are prefixed with their group in two-level mode."""
    header = report["header"]
    labels = list(header["leading"])
    for group in header["groups"]:
        for col in group["columns"]:
            if report["mode"]["two_level"] and group["label"]:
                labels.append(f"{group['label']} | {col['label']}")
            else:
                labels.append(col["label"])
    labels.extend(tf["label"] for tf in header["term_finals"])
    labels.extend(header["trailing"])
    return labels


def _row_cells(row: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Grade cells of a row in column order (components, term finals, final, term mean)."""
    cells = list(row["cells"]) + list(row["term_finals"]) + [row["final"]]
    if "term_mean" in row:
        cells.append(row["term_mean"])
    return cells


def report_to_dataframe(report: Dict[str, Any]) -> pd.DataFrame:
    """Flatten a report into a DataFrame; absent grades are NaN."""
    labels = _column_labels(report)
    records = []
    for row in report["rows"]:
        values = [row["number"], row["process_number"], row["name"], row["gender"] or ""]
        values.extend(cell["value"] for cell in _row_cells(row))
        values.extend([row["classification"], row["status"]])
        records.append(values)
    return pd.DataFrame(records, columns=labels)


# ── PDF ─────────────────────────────────────────────────────────────

def _styles():
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "PautaTitle", parent=ss["Title"],
            fontSize=16, leading=20, alignment=TA_CENTER, spaceAfter=2 * mm,
        ),
        "line": ParagraphStyle(
            "PautaLine", parent=ss["Normal"],
            fontSize=9, leading=12,
        ),
        "heading": ParagraphStyle(
            "PautaHeading", parent=ss["Heading3"],
            fontSize=11, leading=14, spaceBefore=5 * mm, spaceAfter=2 * mm,
        ),
        "small": ParagraphStyle(
            "PautaSmall", parent=ss["Normal"],
            fontSize=8, leading=10, textColor=colors.grey,
        ),
    }


def _footer(canvas, doc, school_name: str):
    """Page number and generation date."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    width = doc.pagesize[0]
    canvas.drawString(1.5 * cm, 1 * cm, f"{school_name} - Gerado em: {datetime.now().strftime('%d/%m/%Y')}")
    canvas.drawCentredString(width / 2, 1 * cm, f"Página {doc.page}")
    canvas.restoreState()


def _table_data(report: Dict[str, Any]) -> List[List[str]]:
    header = report["header"]
    extra = [tf["label"] for tf in header["term_finals"]] + list(header["trailing"])
    component_labels = [col["label"] for g in header["groups"] for col in g["columns"]]

    data = []
    if report["mode"]["two_level"]:
        top = list(header["leading"])
        for group in header["groups"]:
            top.append(group["label"])
            top.extend([""] * (group["span"] - 1))
        top.extend(extra)
        data.append(top)
        data.append([""] * len(header["leading"]) + component_labels + [""] * len(extra))
    else:
        data.append(list(header["leading"]) + component_labels + extra)

    for row in report["rows"]:
        line = [str(row["number"]), row["process_number"], row["name"], row["gender"] or ABSENT_DISPLAY]
        line.extend(cell["display"] for cell in _row_cells(row))
        line.extend([row["classification"], row["status"]])
        data.append(line)
    return data


def _table_style(report: Dict[str, Any]) -> List[tuple]:
    header = report["header"]
    header_rows = 2 if report["mode"]["two_level"] else 1
    n_leading = len(header["leading"])
    n_components = sum(g["span"] for g in header["groups"])
    n_extra = len(header["term_finals"]) + len(header["trailing"])

    cmds = [
        ("BACKGROUND", (0, 0), (-1, header_rows - 1), HEADER_BLUE),
        ("TEXTCOLOR", (0, 0), (-1, header_rows - 1), WHITE),
        ("FONTNAME", (0, 0), (-1, header_rows - 1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 7),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("ALIGN", (2, header_rows), (2, -1), "LEFT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.4, GRID_GREY),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]

    if header_rows == 2:
        # leading and trailing columns span both header rows
        for col in range(n_leading):
            cmds.append(("SPAN", (col, 0), (col, 1)))
        first_extra = n_leading + n_components
        for col in range(first_extra, first_extra + n_extra):
            cmds.append(("SPAN", (col, 0), (col, 1)))
        start = n_leading
        for group in header["groups"]:
            end = start + group["span"] - 1
            cmds.append(("SPAN", (start, 0), (end, 0)))
            cmds.append(("BACKGROUND", (start, 0), (end, 0), GROUP_BLUE))
            start = end + 1

    calc_cols = [
        n_leading + i
        for i, col in enumerate(c for g in header["groups"] for c in g["columns"])
        if col["is_calculated"]
    ]
    for col in calc_cols:
        cmds.append(("BACKGROUND", (col, header_rows), (col, -1), CALCULATED_BG))

    for r_idx, row in enumerate(report["rows"], start=header_rows):
        if not row["approved"]:
            cmds.append(("BACKGROUND", (0, r_idx), (n_leading - 1, r_idx), FAILED_ROW_BG))
        for c_idx, cell in enumerate(_row_cells(row), start=n_leading):
            color = colors.HexColor(cell["color"]) if cell["color"] else ABSENT_GREY
            cmds.append(("TEXTCOLOR", (c_idx, r_idx), (c_idx, r_idx), color))
    return cmds


def _statistics_lines(stats: Dict[str, Any]) -> List[str]:
    def _fmt(value: Optional[float]) -> str:
        return f"{value:.2f}" if value is not None else ABSENT_DISPLAY

    lines = [
        f"Total de Alunos: {stats['total_students']}",
        f"Aprovados: {stats['approved']} ({stats['approval_rate']:.1f}%)",
        f"Reprovados: {stats['failed']}",
        f"Média da Turma: {_fmt(stats['mean'])}",
        f"Nota Mínima: {_fmt(stats['min'])}",
        f"Nota Máxima: {_fmt(stats['max'])}",
    ]
    distribution = stats.get("distribution") or {}
    if distribution:
        counts = " | ".join(f"{label}: {count}" for label, count in distribution.items())
        lines.append(f"Distribuição: {counts}")
    return lines


def generate_mini_pauta_pdf(
    output_path: str,
    report: Dict[str, Any],
    school_name: str,
    title_lines: Optional[Sequence[str]] = None,
):
    """Write the mini-pauta table, statistics and signature lines to a PDF."""
    st = _styles()
    story = []

    story.append(Paragraph(school_name, st["line"]))
    story.append(Paragraph("MINI-PAUTA", st["title"]))
    for line in title_lines or []:
        story.append(Paragraph(line, st["line"]))
    story.append(Spacer(1, 4 * mm))

    if report["rows"]:
        header_rows = 2 if report["mode"]["two_level"] else 1
        table = Table(_table_data(report), repeatRows=header_rows)
        table.setStyle(TableStyle(_table_style(report)))
        story.append(table)
    else:
        story.append(Paragraph("Nenhuma nota disponível para esta mini-pauta.", st["small"]))

    story.append(Paragraph("ESTATÍSTICAS DA TURMA", st["heading"]))
    for line in _statistics_lines(report["statistics"]):
        story.append(Paragraph(line, st["line"]))

    story.append(Spacer(1, 12 * mm))
    signatures = Table(
        [
            ["_____________________________"] * 3,
            ["Professor(a)", "Director(a) Pedagógico(a)", "Director(a) da Escola"],
        ],
        colWidths=[8 * cm] * 3,
    )
    signatures.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
    ]))
    story.append(signatures)

    doc = SimpleDocTemplate(
        output_path, pagesize=landscape(A4),
        leftMargin=1.5 * cm, rightMargin=1.5 * cm,
        topMargin=1.5 * cm, bottomMargin=2 * cm,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )


# ── Excel ───────────────────────────────────────────────────────────

def generate_mini_pauta_excel(
    output_path: str,
    report: Dict[str, Any],
    sheet_title: str = "Mini-Pauta",
):
    """Write the mini-pauta to a single styled worksheet."""
    df = report_to_dataframe(report)
    header = report["header"]
    two_level = report["mode"]["two_level"]
    n_leading = len(header["leading"])

    header_font = Font(bold=True, color="FFFFFF", size=10)
    header_fill = PatternFill(start_color="2563eb", end_color="2563eb", fill_type="solid")
    group_fill = PatternFill(start_color="1d4ed8", end_color="1d4ed8", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    rows = list(dataframe_to_rows(df, index=False, header=True))
    if two_level:
        # Group row above the component codes
        group_row: List[Any] = [None] * len(rows[0])
        col = n_leading
        for group in header["groups"]:
            group_row[col] = group["label"]
            col += group["span"]
        ws.append(group_row)
        short = list(header["leading"])
        short.extend(c["label"] for g in header["groups"] for c in g["columns"])
        short.extend(tf["label"] for tf in header["term_finals"])
        short.extend(header["trailing"])
        rows[0] = short
    for row in rows:
        ws.append([None if isinstance(v, float) and pd.isna(v) else v for v in row])

    header_rows = 2 if two_level else 1
    for r in range(1, header_rows + 1):
        for cell in ws[r]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.border = thin_border

    if two_level:
        col = n_leading + 1
        for group in header["groups"]:
            end = col + group["span"] - 1
            if end > col:
                ws.merge_cells(start_row=1, start_column=col, end_row=1, end_column=end)
            ws.cell(row=1, column=col).fill = group_fill
            col = end + 1

    for r_offset, row in enumerate(report["rows"]):
        excel_row = header_rows + 1 + r_offset
        for cell in ws[excel_row]:
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")
        for c_offset, grade in enumerate(_row_cells(row)):
            cell = ws.cell(row=excel_row, column=n_leading + 1 + c_offset)
            if grade["value"] is not None:
                cell.number_format = "0.0"
                cell.font = Font(color=grade["color"].lstrip("#"), bold=grade["is_calculated"])

    ws.freeze_panes = ws.cell(row=header_rows + 1, column=n_leading + 1)

    for col_cells in ws.columns:
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[get_column_letter(col_cells[0].column)].width = min(max_len + 3, 40)

    wb.save(output_path)


# ── CSV ─────────────────────────────────────────────────────────────

def generate_mini_pauta_csv(output_path: str, report: Dict[str, Any]):
    """Write the flattened mini-pauta table as CSV (absent grades left empty)."""
    df = report_to_dataframe(report)
    # BOM so spreadsheet programs detect UTF-8 accents
    df.to_csv(output_path, index=False, encoding="utf-8-sig", float_format="%.1f")
