"""
grouping.py — Component grouping for the mini-pauta header.

Groups the component catalogue by discipline (all-disciplines mode) and
by term (all-terms mode). Group order:
- by the explicit discipline order when both compared groups carry one
- otherwise by case-insensitive discipline name
Components keep their catalogue order inside a group. Single-term reports
only show components of that term plus the term-less ones.
"""

from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from pauta.logger import get_logger
from pauta.models import NO_DISCIPLINE, TERMS, Component


logger = get_logger(__name__)


def term_label(term: int) -> str:
    return f"{term}º Trimestre"


def discipline_label(component: Component) -> str:
    name = (component.discipline_name or "").strip()
    return name or NO_DISCIPLINE


# ── Ordering ────────────────────────────────────────────────────────

def compare_groups(a: Dict[str, Any], b: Dict[str, Any]) -> int:
    """
    Pairwise group comparison.

    The order field is only used when both sides have one; any pair with
    a missing order field is compared by name.
    """
    if a.get("order") is not None and b.get("order") is not None:
        if a["order"] < b["order"]:
            return -1
        if a["order"] > b["order"]:
            return 1
        return 0

    name_a = str(a.get("discipline") or "").casefold()
    name_b = str(b.get("discipline") or "").casefold()
    if name_a < name_b:
        return -1
    if name_a > name_b:
        return 1
    return 0


def sort_groups(groups: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(groups, key=cmp_to_key(compare_groups))


# ── Grouping ────────────────────────────────────────────────────────

def _new_group(label: str, discipline: Optional[str], term: Optional[int],
               order: Optional[float]) -> Dict[str, Any]:
    return {
        "label": label,
        "discipline": discipline,
        "term": term,
        "order": order,
        "components": [],
    }


def group_by_discipline(
    components: Sequence[Component], term: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Group components by discipline name, ordered by discipline order or name."""
    groups: Dict[str, Dict[str, Any]] = {}
    for comp in components:
        name = discipline_label(comp)
        if name not in groups:
            if name == NO_DISCIPLINE:
                logger.debug("Component %s has no discipline; grouped under '%s'", comp.id, NO_DISCIPLINE)
            groups[name] = _new_group(name, name, term, comp.discipline_order)
        group = groups[name]
        if group["order"] is None and comp.discipline_order is not None:
            group["order"] = comp.discipline_order
        group["components"].append(comp)

    return sort_groups(list(groups.values()))


def components_for_term(
    components: Sequence[Component], term: Optional[int]
) -> List[Component]:
    """Components shown in a single-term report: that term's plus the term-less ones."""
    if term is None:
        return list(components)
    return [comp for comp in components if comp.term is None or comp.term == term]


def partition_by_term(components: Sequence[Component]) -> Dict[int, List[Component]]:
    """Split components into the three term buckets; term-less components are left out."""
    buckets: Dict[int, List[Component]] = {term: [] for term in TERMS}
    for comp in components:
        if comp.term in buckets:
            buckets[comp.term].append(comp)
        else:
            logger.debug("Component %s (term=%s) not shown in all-terms mode", comp.id, comp.term)
    return buckets


def single_group(
    components: Sequence[Component], term: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Single discipline, single term: every component in one implicit group."""
    if not components:
        return []
    first = components[0]
    group = _new_group(
        (first.discipline_name or "").strip(),
        first.discipline_name,
        term,
        first.discipline_order,
    )
    group["components"] = list(components)
    return [group]


def group_by_term(components: Sequence[Component]) -> List[Dict[str, Any]]:
    """Single discipline, all terms: one group per non-empty term bucket."""
    groups = []
    for term, bucket in partition_by_term(components).items():
        if not bucket:
            continue
        group = _new_group(term_label(term), bucket[0].discipline_name, term, None)
        group["components"] = bucket
        groups.append(group)
    return groups


def group_by_term_and_discipline(components: Sequence[Component]) -> List[Dict[str, Any]]:
    """All disciplines, all terms: for each term, its discipline groups in order."""
    groups = []
    for term, bucket in partition_by_term(components).items():
        for group in group_by_discipline(bucket, term=term):
            group["label"] = f"{term_label(term)} - {group['discipline']}"
            groups.append(group)
    return groups
