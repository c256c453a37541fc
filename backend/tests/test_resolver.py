"""
Tests for pauta/resolver.py — grade lookup, absent vs zero, key normalisation.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pauta.models import ABSENT, Component, StudentRow, TermBundle
from pauta.resolver import (
    KEY_BY_CODE,
    KEY_BY_ID,
    normalize_grades,
    resolve_grades,
    resolve_student,
    safe_grade,
)


MATHS_MAC = Component(id="m1", code="MAC", discipline_name="Matemática")
PORT_MAC = Component(id="p1", code="MAC", discipline_name="Português")
MATHS_PP = Component(id="m2", code="PP", discipline_name="Matemática")


class TestSafeGrade:

    def test_numeric_strings(self):
        assert safe_grade("12.5") == 12.5

    def test_zero_is_a_grade(self):
        assert safe_grade(0) == 0.0

    def test_unusable_values(self):
        for val in (None, "", "abc", float("nan"), float("inf"), True):
            assert safe_grade(val) is None


class TestNormalizeGrades:

    def test_code_keys_converted_to_ids(self):
        grades = normalize_grades({"MAC": 12, "PP": 9}, [MATHS_MAC, MATHS_PP], KEY_BY_CODE)
        assert grades == {"m1": 12.0, "m2": 9.0}

    def test_id_key_wins_over_code(self):
        grades = normalize_grades({"MAC": 5, "m1": 15}, [MATHS_MAC], KEY_BY_CODE)
        assert grades == {"m1": 15.0}

    def test_id_mode_ignores_codes(self):
        grades = normalize_grades({"MAC": 12, "p1": 14}, [MATHS_MAC, PORT_MAC], KEY_BY_ID)
        assert grades == {"p1": 14.0}

    def test_shared_codes_stay_separate_by_id(self):
        grades = normalize_grades({"m1": 8, "p1": 17}, [MATHS_MAC, PORT_MAC], KEY_BY_ID)
        assert grades["m1"] == 8.0
        assert grades["p1"] == 17.0

    def test_unusable_values_dropped(self):
        assert normalize_grades({"MAC": "n/a"}, [MATHS_MAC]) == {}

    def test_empty_input(self):
        assert normalize_grades(None, [MATHS_MAC]) == {}


class TestResolve:

    def test_absent_vs_zero(self):
        cells = resolve_grades({"m1": 0.0}, [MATHS_MAC, MATHS_PP])
        assert cells[0] == 0.0
        assert cells[0] is not ABSENT
        assert cells[1] is ABSENT

    def test_cell_per_component(self):
        cells = resolve_grades({}, [MATHS_MAC, PORT_MAC, MATHS_PP])
        assert len(cells) == 3
        assert all(c is ABSENT for c in cells)

    def test_student_all_terms_uses_bundles(self):
        t1 = Component(id="a", code="MAC", term=1)
        t2 = Component(id="b", code="MAC", term=2)
        student = StudentRow(
            process_number="1", full_name="Ana",
            terms={1: TermBundle(grades={"a": 11.0})},
        )
        groups = [{"term": 1, "components": [t1]}, {"term": 2, "components": [t2]}]
        cells = resolve_student(student, groups, all_terms=True)
        assert cells[0] == 11.0
        assert cells[1] is ABSENT

    def test_student_single_term_uses_flat_grades(self):
        student = StudentRow(process_number="1", full_name="Ana", grades={"m2": 7.5})
        cells = resolve_student(student, [{"term": 1, "components": [MATHS_MAC, MATHS_PP]}])
        assert cells[0] is ABSENT
        assert cells[1] == 7.5
