"""Rule/classifier fusion."""

from __future__ import annotations

from .rules import clamp01

RULE_WEIGHT = 0.6
ML_WEIGHT = 0.4


def fuse(rule_score: float, ml_probability: float) -> float:
    """Combine rule and model scores; the result is never below ``rule_score``."""
    rule_score = clamp01(rule_score)
    ml_probability = clamp01(ml_probability)
    return clamp01(max(rule_score, RULE_WEIGHT * rule_score + ML_WEIGHT * ml_probability))


def to_risk(combined: float) -> int:
    """Map a [0, 1] score to an integer 0-100 risk, rounding half up."""
    return int(clamp01(combined) * 100 + 0.5)
