"""
Mini-pauta routes — preview JSON, PDF, Excel and CSV endpoints, grade sheet import.

Every report endpoint takes the same payload:
  request       {turma_id, disciplina_id, trimestre, nivel_ensino, classe, show_mt}
  componentes   component catalogue rows
  alunos        student rows with grades and precomputed finals
  color_config  optional grade colour configuration
PDF/Excel also accept optional school_name and title_lines.
"""

import json
import re
import uuid
from dataclasses import asdict
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from config import EXCELLENT_THRESHOLD, REPORTS_DIR, SCHOOL_NAME
from pauta.export import (
    generate_mini_pauta_csv,
    generate_mini_pauta_excel,
    generate_mini_pauta_pdf,
)
from pauta.grade_colors import default_config_for_level, get_band_legend
from pauta.logger import get_logger
from pauta.parser import (
    SHEET_EXTENSIONS,
    apply_sheet_grades,
    grades_from_frame,
    parse_payload,
    read_grade_sheet,
)
from pauta.report import build_report

router = APIRouter()
logger = get_logger(__name__)


def _parse(payload: dict) -> dict:
    """Parse the payload into engine inputs; bad input becomes a 400."""
    if not payload:
        raise HTTPException(400, "No data provided.")
    try:
        return parse_payload(payload)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _build(inputs: dict) -> dict:
    report = build_report(
        inputs["request"],
        inputs["components"],
        inputs["students"],
        color_config=inputs["color_config"],
        excellent_threshold=EXCELLENT_THRESHOLD,
    )
    logger.info(
        "Mini-pauta built for class %s (%d students, %d groups)",
        inputs["request"].class_id, len(report["rows"]), len(report["header"]["groups"]),
    )
    return report


def _build_from_payload(payload: dict) -> dict:
    return _build(_parse(payload))


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Delete a generated or uploaded file once it is no longer needed."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def _file_stem(payload: dict) -> str:
    request = payload.get("request") or {}
    class_token = _safe_token(request.get("turma_id", ""), fallback="turma")
    term = _safe_token(str(request.get("trimestre", "")), fallback="t")
    return f"mini_pauta_{class_token}_T{term}_{str(uuid.uuid4())[:8]}"


def _download(output_path: Path, media_type: str) -> FileResponse:
    return FileResponse(
        str(output_path),
        media_type=media_type,
        filename=output_path.name,
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.post("/preview")
async def preview(payload: dict):
    """Assembled mini-pauta table as JSON (header, rows, statistics)."""
    return _build_from_payload(payload)


@router.post("/legend")
async def legend(payload: dict):
    """Built-in grade bands for a level/class, for the preview legend."""
    return {
        "bands": get_band_legend(
            payload.get("nivel_ensino"),
            payload.get("classe"),
            EXCELLENT_THRESHOLD,
        )
    }


@router.post("/default-config")
async def default_config(payload: dict):
    """Standard colour configuration for a school level, as a starting point for editing."""
    config = default_config_for_level(
        payload.get("nivel_ensino") or "",
        class_id=payload.get("turma_id"),
    )
    data = asdict(config)
    data["rules"] = list(data["rules"])
    return data


@router.post("/import")
async def import_sheet(file: UploadFile = File(...), payload: str = Form(...)):
    """
    Layer grades from an uploaded CSV/Excel sheet (one grade per row) onto
    the payload's students and return the resulting mini-pauta.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in SHEET_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV or Excel (.xlsx).")
    try:
        body = json.loads(payload)
    except json.JSONDecodeError as e:
        raise HTTPException(400, f"Invalid payload JSON: {e}")
    if not isinstance(body, dict):
        raise HTTPException(400, "Payload must be a JSON object.")
    inputs = _parse(body)

    save_path = REPORTS_DIR / f"import_{uuid.uuid4()}{ext}"
    try:
        with open(save_path, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)
        sheet = grades_from_frame(read_grade_sheet(str(save_path)), inputs["components"], inputs["key_by"])
    except ValueError as e:
        raise HTTPException(400, f"Failed to read grade sheet '{file.filename}': {e}")
    finally:
        _safe_unlink(str(save_path))

    logger.info("Imported grades for %d students from %s", len(sheet), file.filename)
    request = inputs["request"]
    term = request.term if isinstance(request.term, int) else None
    inputs["students"] = apply_sheet_grades(inputs["students"], sheet, term)
    return _build(inputs)


@router.post("/pdf")
async def mini_pauta_pdf(payload: dict):
    """Generate the printable mini-pauta PDF."""
    report = _build_from_payload(payload)
    output_path = REPORTS_DIR / f"{_file_stem(payload)}.pdf"

    generate_mini_pauta_pdf(
        output_path=str(output_path),
        report=report,
        school_name=payload.get("school_name") or SCHOOL_NAME,
        title_lines=payload.get("title_lines") or [],
    )
    return _download(output_path, "application/pdf")


@router.post("/excel")
async def mini_pauta_excel(payload: dict):
    """Export the mini-pauta as an Excel workbook."""
    report = _build_from_payload(payload)
    output_path = REPORTS_DIR / f"{_file_stem(payload)}.xlsx"

    generate_mini_pauta_excel(output_path=str(output_path), report=report)
    return _download(
        output_path,
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


@router.post("/csv")
async def mini_pauta_csv(payload: dict):
    """Export the mini-pauta as CSV."""
    report = _build_from_payload(payload)
    output_path = REPORTS_DIR / f"{_file_stem(payload)}.csv"

    generate_mini_pauta_csv(output_path=str(output_path), report=report)
    return _download(output_path, "text/csv")
