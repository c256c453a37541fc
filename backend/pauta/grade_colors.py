"""
grade_colors.py — Grade colour / classification bands for display.

A grade is mapped to one of three bands:
  insufficient (red), neutral, excellent (blue)

The mapping is presentation only. It never changes a grade value and it
never rejects one: grades outside 0-20 simply land in the nearest band.

Resolution order:
  1. the first matching rule of a supplied GradeColorConfig
  2. the built-in banding for the education level and class
"""

import re
from typing import Any, Dict, List, Optional

from pauta.models import ColorRule, GradeColorConfig


INSUFFICIENT = "insufficient"
NEUTRAL = "neutral"
EXCELLENT = "excellent"

NEGATIVE_COLOR = "#dc2626"
POSITIVE_COLOR = "#2563eb"
NEUTRAL_COLOR = "#1e293b"

DEFAULT_EXCELLENT_THRESHOLD = 14.0
PRIMARY_EXCELLENT_THRESHOLD = 7.0

# (family, calculated?) -> (operator, threshold) marking the insufficient band.
# None means raw entries of that family are never flagged.
DEFAULT_NEGATIVE_RULES = {
    ("primary_upper", True): ("<=", 4.44),
    ("primary_upper", False): ("<=", 4.44),
    ("primary_lower", True): ("<=", 4.44),
    ("primary_lower", False): None,
    ("secondary", True): ("<=", 9.44),
    ("secondary", False): ("<", 10.0),
}


# ── Helpers ─────────────────────────────────────────────────────────

def _compare(value: float, operator: str, threshold: float) -> bool:
    if operator == "<=":
        return value <= threshold
    if operator == "<":
        return value < threshold
    if operator == ">=":
        return value >= threshold
    if operator == ">":
        return value > threshold
    return False


def class_number(class_level: Optional[str]) -> int:
    """First integer in a class tag, e.g. '7ª Classe' -> 7. 0 when none."""
    if not class_level:
        return 0
    match = re.search(r"\d+", str(class_level))
    return int(match.group(0)) if match else 0


def is_primary(education_level: Optional[str]) -> bool:
    level = (education_level or "").lower()
    return "primário" in level or "primario" in level


def level_family(education_level: Optional[str], class_level: Optional[str]) -> str:
    """Return which built-in band set applies: primary_upper, primary_lower or secondary."""
    if is_primary(education_level):
        number = class_number(class_level)
        if 5 <= number <= 6:
            return "primary_upper"
        if 0 < number < 5:
            return "primary_lower"
    return "secondary"


def _descriptor(band: str, color: str, source: str) -> Dict[str, Any]:
    return {
        "band": band,
        "color": color,
        "is_negative": band == INSUFFICIENT,
        "source": source,
    }


def _excellence_for(family: str, excellent_threshold: Optional[float]) -> float:
    if excellent_threshold is not None and family == "secondary":
        return float(excellent_threshold)
    if family.startswith("primary"):
        return PRIMARY_EXCELLENT_THRESHOLD
    return DEFAULT_EXCELLENT_THRESHOLD


# ── Built-in banding ────────────────────────────────────────────────

def get_default_grade_color(
    grade: float,
    education_level: Optional[str] = None,
    class_level: Optional[str] = None,
    is_calculated: bool = False,
    excellent_threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """Classify a grade with the built-in bands (no configuration)."""
    family = level_family(education_level, class_level)
    negative_rule = DEFAULT_NEGATIVE_RULES[(family, bool(is_calculated))]

    if negative_rule is not None and _compare(grade, *negative_rule):
        return _descriptor(INSUFFICIENT, NEGATIVE_COLOR, "default")
    if grade >= _excellence_for(family, excellent_threshold):
        return _descriptor(EXCELLENT, POSITIVE_COLOR, "default")
    return _descriptor(NEUTRAL, NEUTRAL_COLOR, "default")


# ── Configured banding ──────────────────────────────────────────────

def _rule_matches(
    rule: ColorRule,
    education_level: Optional[str],
    number: int,
    is_calculated: bool,
) -> bool:
    if rule.level and education_level:
        if rule.level.lower() not in education_level.lower():
            return False
    if rule.class_min is not None and number < rule.class_min:
        return False
    if rule.class_max is not None and number > rule.class_max:
        return False
    if rule.component_type == "calculado" and not is_calculated:
        return False
    if rule.component_type == "regular" and is_calculated:
        return False
    return True


def find_matching_rule(
    config: GradeColorConfig,
    education_level: Optional[str],
    class_level: Optional[str],
    is_calculated: bool,
) -> Optional[ColorRule]:
    """First rule in 'order' sequence that applies to this level/class/component type."""
    number = class_number(class_level)
    for rule in sorted(config.rules, key=lambda r: r.order):
        if _rule_matches(rule, education_level, number, is_calculated):
            return rule
    return None


def get_grade_color(
    grade: float,
    education_level: Optional[str] = None,
    class_level: Optional[str] = None,
    is_calculated: bool = False,
    config: Optional[GradeColorConfig] = None,
    excellent_threshold: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Classify a grade for display.

    Returns a dict with band, color, is_negative and source ("config" or
    "default"). A missing configuration, or one without a rule for this
    level and class, falls back to the built-in bands.
    """
    grade = float(grade)
    if config is None:
        return get_default_grade_color(
            grade, education_level, class_level, is_calculated, excellent_threshold
        )

    rule = find_matching_rule(config, education_level, class_level, is_calculated)
    if rule is None:
        return get_default_grade_color(
            grade, education_level, class_level, is_calculated, excellent_threshold
        )

    if rule.apply_color and _compare(grade, rule.operator, rule.threshold):
        return _descriptor(INSUFFICIENT, config.negative_color, "config")

    family = level_family(education_level, class_level)
    band = EXCELLENT if grade >= _excellence_for(family, excellent_threshold) else NEUTRAL
    return _descriptor(band, config.positive_color, "config")


# ── Standard configurations & legend ────────────────────────────────

def default_config_for_level(
    education_level: str, class_id: Optional[str] = None
) -> GradeColorConfig:
    """Build the standard colour configuration for a primary or secondary school."""
    if is_primary(education_level):
        return GradeColorConfig(
            negative_color=NEGATIVE_COLOR,
            positive_color=POSITIVE_COLOR,
            name="Ensino Primário (Padrão)",
            description="Configuração padrão para Ensino Primário",
            class_id=class_id,
            rules=(
                ColorRule(level="Ensino Primário", class_min=1, class_max=4,
                          component_type="calculado", threshold=4.44,
                          operator="<=", apply_color=True, order=1),
                ColorRule(level="Ensino Primário", class_min=1, class_max=4,
                          component_type="regular", threshold=0,
                          operator=">=", apply_color=False, order=2),
                ColorRule(level="Ensino Primário", class_min=5, class_max=6,
                          component_type="todos", threshold=4.44,
                          operator="<=", apply_color=True, order=3),
            ),
        )

    return GradeColorConfig(
        negative_color=NEGATIVE_COLOR,
        positive_color=POSITIVE_COLOR,
        name="Ensino Secundário (Padrão)",
        description="Configuração padrão para Ensino Secundário",
        class_id=class_id,
        rules=(
            ColorRule(level="Ensino Secundário", component_type="calculado",
                      threshold=9.44, operator="<=", apply_color=True, order=1),
            ColorRule(level="Ensino Secundário", component_type="regular",
                      threshold=10, operator="<", apply_color=True, order=2),
        ),
    )


def get_band_legend(
    education_level: Optional[str] = None,
    class_level: Optional[str] = None,
    excellent_threshold: Optional[float] = None,
) -> List[Dict[str, Any]]:
    """Return the built-in bands for a level/class, for legends."""
    family = level_family(education_level, class_level)
    legend = []
    for calculated in (False, True):
        negative_rule = DEFAULT_NEGATIVE_RULES[(family, calculated)]
        legend.append({
            "is_calculated": calculated,
            "insufficient": (
                {"operator": negative_rule[0], "threshold": negative_rule[1]}
                if negative_rule else None
            ),
            "excellent": {"operator": ">=", "threshold": _excellence_for(family, excellent_threshold)},
            "colors": {
                INSUFFICIENT: NEGATIVE_COLOR,
                NEUTRAL: NEUTRAL_COLOR,
                EXCELLENT: POSITIVE_COLOR,
            },
        })
    return legend
