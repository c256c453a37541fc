"""
Tests for pauta/grouping.py — discipline/term grouping and group order.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pauta.grouping import (
    compare_groups,
    components_for_term,
    group_by_discipline,
    group_by_term,
    group_by_term_and_discipline,
    partition_by_term,
    single_group,
)
from pauta.models import NO_DISCIPLINE, Component


def comp(cid, code, discipline=None, order=None, term=1, calculated=False):
    return Component(
        id=cid, code=code, term=term, is_calculated=calculated,
        discipline_name=discipline, discipline_order=order,
    )


@pytest.fixture
def catalogue():
    return [
        comp("c1", "MAC", "Matemática", 2),
        comp("c2", "PP", "Matemática", 2),
        comp("c3", "MAC", "Português", 1),
        comp("c4", "MT", "Matemática", 2, calculated=True),
    ]


class TestGroupByDiscipline:
    """All-disciplines header grouping."""

    def test_orders_by_discipline_order(self, catalogue):
        groups = group_by_discipline(catalogue)
        assert [g["discipline"] for g in groups] == ["Português", "Matemática"]

    def test_input_order_does_not_matter(self, catalogue):
        forward = group_by_discipline(catalogue)
        backward = group_by_discipline(list(reversed(catalogue)))
        assert [g["discipline"] for g in forward] == [g["discipline"] for g in backward]

    def test_components_keep_catalogue_order(self, catalogue):
        groups = group_by_discipline(catalogue)
        maths = groups[1]
        assert [c.id for c in maths["components"]] == ["c1", "c2", "c4"]

    def test_name_fallback_is_case_insensitive(self):
        groups = group_by_discipline([
            comp("a", "X", "física"),
            comp("b", "X", "Biologia"),
            comp("c", "X", "Química"),
        ])
        assert [g["discipline"] for g in groups] == ["Biologia", "física", "Química"]

    def test_missing_order_compares_by_name(self):
        groups = group_by_discipline([
            comp("a", "X", "Zoologia", 1),
            comp("b", "X", "Artes", None),
        ])
        assert [g["discipline"] for g in groups] == ["Artes", "Zoologia"]

    def test_component_without_discipline(self):
        groups = group_by_discipline([comp("a", "X", None), comp("b", "Y", "   ")])
        assert len(groups) == 1
        assert groups[0]["label"] == NO_DISCIPLINE
        assert len(groups[0]["components"]) == 2

    def test_empty_catalogue(self):
        assert group_by_discipline([]) == []


class TestCompareGroups:

    def test_both_orders(self):
        assert compare_groups({"order": 1, "discipline": "Z"}, {"order": 2, "discipline": "A"}) == -1

    def test_equal_orders(self):
        assert compare_groups({"order": 3, "discipline": "Z"}, {"order": 3, "discipline": "A"}) == 0

    def test_one_order_missing(self):
        assert compare_groups({"order": 1, "discipline": "Z"}, {"order": None, "discipline": "A"}) == 1


class TestTermGrouping:
    """All-terms header grouping."""

    @pytest.fixture
    def yearly(self):
        return [
            comp("t3", "MAC", "Matemática", 1, term=3),
            comp("t1", "MAC", "Matemática", 1, term=1),
            comp("p1", "MAC", "Português", 0, term=1),
            comp("x", "EX", "Matemática", 1, term=None),
            comp("t2", "PP", "Matemática", 1, term=2),
        ]

    def test_partition_drops_termless(self, yearly):
        buckets = partition_by_term(yearly)
        assert [c.id for c in buckets[1]] == ["t1", "p1"]
        assert [c.id for c in buckets[2]] == ["t2"]
        assert [c.id for c in buckets[3]] == ["t3"]

    def test_group_by_term(self, yearly):
        maths = [c for c in yearly if c.discipline_name == "Matemática"]
        groups = group_by_term(maths)
        assert [g["term"] for g in groups] == [1, 2, 3]
        assert groups[0]["label"] == "1º Trimestre"

    def test_empty_terms_skipped(self):
        groups = group_by_term([comp("a", "X", "M", term=2)])
        assert [g["term"] for g in groups] == [2]

    def test_group_by_term_and_discipline(self, yearly):
        groups = group_by_term_and_discipline(yearly)
        assert [(g["term"], g["discipline"]) for g in groups] == [
            (1, "Português"), (1, "Matemática"), (2, "Matemática"), (3, "Matemática"),
        ]
        assert groups[0]["label"] == "1º Trimestre - Português"


class TestComponentsForTerm:
    """Single-term reports only show the selected term's columns."""

    def test_other_terms_left_out(self):
        comps = [comp("a", "MAC", "M", term=1), comp("b", "MAC", "M", term=2)]
        assert [c.id for c in components_for_term(comps, 1)] == ["a"]

    def test_termless_components_kept(self):
        comps = [comp("a", "MAC", "M", term=None), comp("b", "PP", "M", term=3)]
        assert [c.id for c in components_for_term(comps, 2)] == ["a"]

    def test_no_term_keeps_everything(self):
        comps = [comp("a", "MAC", "M", term=1), comp("b", "MAC", "M", term=2)]
        assert len(components_for_term(comps, None)) == 2


class TestSingleGroup:

    def test_one_group_in_catalogue_order(self, catalogue):
        groups = single_group(catalogue, 2)
        assert len(groups) == 1
        assert groups[0]["term"] == 2
        assert [c.id for c in groups[0]["components"]] == ["c1", "c2", "c3", "c4"]

    def test_empty(self):
        assert single_group([]) == []
