"""Built-in high-value overrides evaluated by the aggregator on every hop."""

from __future__ import annotations

import re

from ..constants import SUSPICIOUS_PATH_PATTERN
from .features import FeatureSet
from .rules import BONUS, OVERRIDE, BaseRule, RuleOutcome

_SUSPICIOUS_PATH = re.compile(SUSPICIOUS_PATH_PATTERN, re.IGNORECASE)

CONVERGENCE_BONUS = 0.15
CONVERGENCE_MIN_FAMILIES = 3


class BankImpersonationOverride(BaseRule):
    """A protected brand in the host outside the brand's official domain."""

    name = "bank_impersonation"
    family = "brand"
    kind = OVERRIDE

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.is_banking_impersonation:
            return self.miss()
        brand = features.bank_brands[0]
        return self.hit(0.7, f"Impersonates '{brand}' outside its official domain", "bank_impersonation")


class GamblingPresenceOverride(BaseRule):
    name = "gambling_presence"
    family = "gambling"
    kind = OVERRIDE

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.is_gambling:
            return self.miss()
        terms = ", ".join(features.gambling_terms[:3])
        return self.hit(0.6, f"Gambling content detected: {terms}", "gambling")


class SuspiciousPathOverride(BaseRule):
    name = "suspicious_path"
    family = "structure"
    kind = OVERRIDE

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        match = _SUSPICIOUS_PATH.search(features.path or "")
        if not match:
            return self.miss()
        return self.hit(0.3, f"Sensitive action in URL path: /{match.group(1)}", "suspicious_path")


class PunycodeOverride(BaseRule):
    name = "punycode_override"
    family = "domain"
    kind = OVERRIDE

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.has_punycode:
            return self.miss()
        return self.hit(0.4, "Internationalized (punycode) hostname", "punycode")


class KeywordDensityOverride(BaseRule):
    """Phishing bait density across host, path and page text."""

    name = "keyword_density"
    family = "keywords"
    kind = OVERRIDE

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        count = len(features.threat_keywords)
        if count >= 3:
            return self.hit(0.6, f"High phishing keyword density ({count} found)", "keyword_density")
        if count == 2:
            return self.hit(0.4, "Medium phishing keyword density (2 found)", "keyword_density")
        if count == 1:
            return self.hit(0.2, f"Phishing keyword: {features.threat_keywords[0]}", "keyword_density")
        return self.miss()


class UrgencyBrandOverride(BaseRule):
    name = "urgency_brand"
    family = "urgency"
    kind = OVERRIDE

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if features.has_urgency and features.has_flag("bank_keyword"):
            return self.hit(0.5, "Urgency language combined with banking context", "urgency_banking")
        return self.miss()


class MultiIndicatorBonus(BaseRule):
    """Rewards convergence of independent signal families."""

    name = "multi_indicator"
    family = "convergence"
    kind = BONUS

    @staticmethod
    def families(features: FeatureSet) -> list[str]:
        present = []
        if features.threat_keywords:
            present.append("phishing")
        if features.is_gambling:
            present.append("gambling")
        if features.has_urgency:
            present.append("urgency")
        if features.has_flag("bank_keyword"):
            present.append("banking")
        if features.is_http:
            present.append("insecure_transport")
        return present

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        present = self.families(features)
        if len(present) < CONVERGENCE_MIN_FAMILIES:
            return self.miss()
        return self.hit(
            CONVERGENCE_BONUS,
            f"Multiple threat indicators converge ({', '.join(present)})",
            "multi_threat",
        )


BUILTIN_RULES = (
    BankImpersonationOverride,
    GamblingPresenceOverride,
    SuspiciousPathOverride,
    PunycodeOverride,
    KeywordDensityOverride,
    UrgencyBrandOverride,
    MultiIndicatorBonus,
)

__all__ = [
    "BUILTIN_RULES",
    "BankImpersonationOverride",
    "GamblingPresenceOverride",
    "KeywordDensityOverride",
    "MultiIndicatorBonus",
    "PunycodeOverride",
    "SuspiciousPathOverride",
    "UrgencyBrandOverride",
]
