"""Human-facing interpretation of a scored chain: threat type, advice, reasoning."""

from __future__ import annotations

from typing import Iterable, Optional

from ..analyzer.features import FeatureSet
from ..constants import EDUCATION_GOVERNMENT_SUFFIXES
from ..utils.domains import host_matches
from ..utils.text import find_terms

SAFE = "Safe"
GENERIC = "Security Risk"

GAMBLING_TAGS = {
    "gambling",
    "gambling_domain",
    "gambling_keywords",
    "gambling_phrases",
    "gambling_site_pattern",
    "http_gambling",
    "vietnamese_casino",
}
BANKING_TAGS = {
    "vietnamese_banking_phish",
    "bank_impersonation",
    "fake_vietnamese_bank",
    "multi_bank_impersonation",
    "banking_phish_density",
    "banking_phish_keywords",
    "banking_data_harvest",
    "urgency_banking",
}
PHISHING_TAGS = {
    "keyword_density",
    "credential_form",
    "cross_origin_form",
    "urgent_credential_request",
    "urgency_language",
    "threat_pattern",
    "suspicious_path",
}
TYPOSQUAT_TAGS = {"typosquatting", "brand_embedding"}
CRYPTO_TERMS = ["binance", "bitcoin", "crypto", "usdt", "ethereum", "seed phrase", "ví điện tử"]

# Ordered: the first matching entry names the threat.
THREAT_PRIORITY: list[tuple[str, set[str]]] = [
    ("Gambling Site", GAMBLING_TAGS),
    ("Vietnamese Banking Phishing", BANKING_TAGS),
    ("Logo Cloning Attack", {"cloned_logo"}),
    ("Critical HTTP Security Risk", {"http_critical"}),
    ("HTTP Security Risk", {"http_insecure"}),
]

ATTACK_VECTORS: list[tuple[str, set[str]]] = [
    ("Banking Impersonation", BANKING_TAGS),
    ("Online Gambling", GAMBLING_TAGS),
    ("Logo Cloning", {"cloned_logo"}),
    ("Punycode/Homoglyph Attack", {"punycode", "typosquatting"}),
    ("Credential Harvesting", {"credential_form", "cross_origin_form", "urgent_credential_request"}),
    ("Social Engineering", {"psychological_pressure", "urgency_language", "threat_pattern"}),
    ("Unencrypted Transport", {"http_insecure", "http_critical"}),
    ("Newly Registered Domain", {"young_domain"}),
]


def is_educational(features: Optional[FeatureSet]) -> bool:
    return bool(features and host_matches(features.host, EDUCATION_GOVERNMENT_SUFFIXES))


def _is_crypto(features: Optional[FeatureSet]) -> bool:
    return bool(features and find_terms(features.combined_text, CRYPTO_TERMS))


def determine_threat_type(risk: int, tags: Iterable[str], features: Optional[FeatureSet]) -> str:
    """Name the dominant threat by tag priority."""
    if risk <= 0:
        return SAFE
    if is_educational(features):
        return "Educational Site"

    tag_set = set(tags)
    for label, wanted in THREAT_PRIORITY:
        if tag_set & wanted:
            return label
    if _is_crypto(features):
        return "Cryptocurrency Scam"
    if tag_set & PHISHING_TAGS:
        return "Phishing Attack"
    if "punycode" in tag_set:
        return "Punycode Homoglyph Attack"
    if "multi_threat" in tag_set:
        return "Multi-Vector Threat"
    if tag_set & TYPOSQUAT_TAGS:
        return "Typosquatting"
    return GENERIC


def recommendations(risk: int, threat_type: str, features: Optional[FeatureSet], tags: Iterable[str] = ()) -> list[str]:
    """Advice for the end user, most specific first."""
    tag_set = set(tags)
    educational = is_educational(features)
    if educational and risk < 20:
        return [
            "Legitimate educational or government website",
            "Institutional sites use standard login systems",
        ]

    items: list[str] = []
    if features is not None and features.is_http and not educational:
        items.append("Never enter sensitive information on HTTP sites")
        items.append("Unencrypted connection: data can be intercepted")

    if "Gambling" in threat_type:
        items.append("Gambling site detected")
        items.append("Online gambling is illegal in Vietnam")
        items.append("Beware of financial and legal risks")
    if "Banking" in threat_type:
        items.append("Potential banking fraud detected")
        items.append("Contact your bank through its official hotline")
        items.append("Use official banking apps only")
    if "cloned_logo" in tag_set:
        items.append("This page uses another brand's logo; do not trust it")

    if risk >= 80:
        items.append("HIGH RISK: do not enter any personal information")
        items.append("Leave this site immediately")
    elif risk >= 60:
        items.append("MEDIUM RISK: exercise extreme caution")
        items.append("Verify website authenticity before proceeding")
    elif risk >= 40:
        items.append("Security concerns detected")
        items.append("Double-check the website URL")
    elif risk >= 20:
        items.append("Minor security indicators detected")
        items.append("Verify this is the correct website")

    if features is not None and features.bank_brands and not features.is_official_brand_domain:
        items.append("Vietnamese banks use official .com.vn or .vn domains")
    return items


def decision_reasoning(rule_score: float, ml_score: float, combined: float) -> str:
    if combined < 0.2:
        return "Low risk: no significant threat indicators from rules or model"
    if rule_score > ml_score:
        return (
            f"Rules-driven decision: clear threat patterns detected "
            f"(rules {rule_score:.2f}, model {ml_score:.2f})"
        )
    if ml_score > rule_score:
        return (
            f"Model-driven decision: classifier found suspicious patterns "
            f"(model {ml_score:.2f}, rules {rule_score:.2f})"
        )
    return f"Rules and model agree on the threat level (combined {combined:.2f})"


def attack_vectors(tags: Iterable[str]) -> list[str]:
    tag_set = set(tags)
    return [label for label, wanted in ATTACK_VECTORS if tag_set & wanted]


def affected_regions(features: Optional[FeatureSet]) -> list[str]:
    if features is None:
        return ["Global"]
    if features.bank_brands or features.host.endswith(".vn"):
        return ["Vietnam"]
    return ["Global"]
