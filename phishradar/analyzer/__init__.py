"""Analyzer modules for PhishRadar."""

from .aggregator import RuleAggregator, build_registry, default_rules
from .classifier import Classifier
from .features import FeatureExtractor, FeatureSet
from .fusion import fuse, to_risk
from .rules import AggregatedScore, BaseRule, Rule, RuleOutcome, RuleRegistry

__all__ = [
    "AggregatedScore",
    "BaseRule",
    "Classifier",
    "FeatureExtractor",
    "FeatureSet",
    "Rule",
    "RuleAggregator",
    "RuleOutcome",
    "RuleRegistry",
    "build_registry",
    "default_rules",
    "fuse",
    "to_risk",
]
