"""
Tests for pauta/export.py — PDF/Excel/CSV generation completes without errors.
"""

import json
import os
import sys
import tempfile
import pytest
import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pauta.export import (
    _statistics_lines,
    generate_mini_pauta_csv,
    generate_mini_pauta_excel,
    generate_mini_pauta_pdf,
    report_to_dataframe,
)
from pauta.models import ALL_TERMS, Component, ReportRequest, StudentRow, TermBundle
from pauta.parser import parse_payload
from pauta.report import build_report

SAMPLE_JSON = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_mini_pauta.json")
SCHOOL_NAME = "Test School"


@pytest.fixture
def report():
    with open(SAMPLE_JSON, encoding="utf-8") as f:
        inputs = parse_payload(json.load(f))
    return build_report(inputs["request"], inputs["components"], inputs["students"])


@pytest.fixture
def yearly_report():
    components = [
        Component(id=f"{d}{t}", code="MAC", term=t, discipline_name=name, discipline_order=i)
        for i, (d, name) in enumerate([("m", "Matemática"), ("p", "Português")], 1)
        for t in (1, 2, 3)
    ]
    student = StudentRow(
        process_number="7", full_name="Eva", approved=True,
        terms={
            1: TermBundle(grades={"m1": 12.0, "p1": 8.0}, final_grade=10.0),
            2: TermBundle(grades={"m2": 15.0}, final_grade=15.0),
        },
    )
    return build_report(ReportRequest(class_id="T", term=ALL_TERMS), components, [student])


class TestReportToDataframe:

    def test_one_row_per_student(self, report):
        df = report_to_dataframe(report)
        assert len(df) == 4
        assert list(df.columns[:4]) == ["Nº", "Nº Processo", "Nome do Aluno", "GÊN"]

    def test_absent_grades_are_missing(self, report):
        df = report_to_dataframe(report)
        # Student 4 has no grades at all
        assert df.iloc[3, 4:8].isna().all()
        assert df.iloc[1, 5] == 0.0

    def test_two_level_labels_prefixed(self, yearly_report):
        df = report_to_dataframe(yearly_report)
        assert "1º Trimestre - Matemática | MAC" in df.columns
        assert "MT1" in df.columns
        assert "MF" in df.columns


class TestGenerateMiniPautaPdf:
    """Test mini-pauta PDF generation."""

    def test_creates_pdf_file(self, report):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "mini_pauta.pdf")
            generate_mini_pauta_pdf(
                output_path=path,
                report=report,
                school_name=SCHOOL_NAME,
                title_lines=["República de Angola", "Ministério da Educação"],
            )
            assert os.path.exists(path)
            assert os.path.getsize(path) > 0

    def test_pdf_is_valid(self, yearly_report):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "mini_pauta.pdf")
            generate_mini_pauta_pdf(output_path=path, report=yearly_report, school_name=SCHOOL_NAME)
            with open(path, "rb") as f:
                header = f.read(5)
            assert header == b"%PDF-"

    def test_empty_report(self):
        empty = build_report(ReportRequest(class_id="T"), [], [])
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "empty.pdf")
            generate_mini_pauta_pdf(output_path=path, report=empty, school_name=SCHOOL_NAME)
            assert os.path.getsize(path) > 0


class TestGenerateMiniPautaExcel:
    """Test Excel export generation."""

    def test_creates_xlsx_file(self, report):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "mini_pauta.xlsx")
            generate_mini_pauta_excel(output_path=path, report=report)
            assert os.path.exists(path)
            assert os.path.getsize(path) > 0

    def test_excel_readable(self, yearly_report):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "mini_pauta.xlsx")
            generate_mini_pauta_excel(output_path=path, report=yearly_report, sheet_title="10A")
            # Read back and verify sheets; close handle before tmpdir cleanup
            xl = pd.ExcelFile(path)
            sheet_names = list(xl.sheet_names)
            xl.close()
            assert sheet_names == ["10A"]


class TestMalformedColourConfig:
    """A bad colour string in the configuration must not break exports."""

    @pytest.fixture
    def colour_report(self):
        with open(SAMPLE_JSON, encoding="utf-8") as f:
            payload = json.load(f)
        payload["color_config"] = {
            "cor_negativa": "red",
            "cor_positiva": "#abc",
            "regras": [{"threshold": 10, "operador": "<"}],
        }
        inputs = parse_payload(payload)
        return build_report(
            inputs["request"], inputs["components"], inputs["students"],
            color_config=inputs["color_config"],
        )

    def test_cells_use_default_colours(self, colour_report):
        colours = {c["color"] for row in colour_report["rows"] for c in row["cells"]}
        assert colours <= {"#dc2626", "#2563eb", None}

    def test_excel_and_pdf_still_generated(self, colour_report):
        with tempfile.TemporaryDirectory() as tmpdir:
            xlsx = os.path.join(tmpdir, "mini_pauta.xlsx")
            pdf = os.path.join(tmpdir, "mini_pauta.pdf")
            generate_mini_pauta_excel(output_path=xlsx, report=colour_report)
            generate_mini_pauta_pdf(output_path=pdf, report=colour_report, school_name=SCHOOL_NAME)
            assert os.path.getsize(xlsx) > 0
            assert os.path.getsize(pdf) > 0


class TestGenerateMiniPautaCsv:

    def test_csv_matches_table(self, report):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "mini_pauta.csv")
            generate_mini_pauta_csv(output_path=path, report=report)
            df = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
        assert len(df) == 4
        assert df.columns[2] == "Nome do Aluno"
        assert df.iloc[1, 5] == "0.0"
        # absent grades are empty cells
        assert df.iloc[3, 4:8].isna().all()

    def test_distribution_in_pdf_statistics(self, report):
        assert report["statistics"]["distribution"]["Insuficiente"] == 1
        lines = _statistics_lines(report["statistics"])
        assert lines[-1].startswith("Distribuição:")
