"""Host-centric rules: brands, typosquatting, TLDs and lexical structure."""

from __future__ import annotations

import re
from typing import Optional

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from ..config import Config
from ..constants import FAKE_BANK_PATTERNS
from ..utils.text import find_terms, fold, normalize_homoglyphs
from .features import FeatureSet
from .rules import BaseRule, RuleOutcome, _Best

_LABEL_SPLIT = re.compile(r"[.\-_]+")

BANK_CONTEXT_PHRASES = [
    "xác thực ngay",
    "verify immediately",
    "verify now",
    "tài khoản bị khóa",
    "account locked",
    "account suspended",
    "cập nhật thông tin",
    "update information",
    "nhập mã otp",
    "enter otp",
    "mã xác thực",
    "mã pin",
    "security code",
    "verification code",
    "khẩn cấp",
    "urgent",
    "hết hạn",
    "expires",
    "click here",
    "nhấn vào đây",
    "xác nhận ngay",
    "confirm now",
]

_AUTH_PATH = re.compile(r"/(login|signin|dang-nhap|xac-thuc|verify|otp|auth)", re.IGNORECASE)
_ACCOUNT_REQUEST = re.compile(r"(so tai khoan|account number|stk|so the|card number)")


class PunycodeRule(BaseRule):
    """ASCII-compatible encoded labels hide lookalike Unicode hostnames."""

    name = "punycode"
    family = "domain"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if "xn--" not in features.host:
            return self.miss()
        shown = features.unicode_host if features.unicode_host != features.host else features.host
        return self.hit(0.4, f"Punycode hostname ({shown})", "punycode")


class SuspiciousTldRule(BaseRule):
    name = "suspicious_tld"
    family = "domain"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.is_suspicious_tld:
            return self.miss()
        if features.bank_brands:
            return self.hit(
                0.55,
                f"Brand '{features.bank_brands[0]}' on high-risk TLD .{features.tld}",
                "suspicious_tld",
            )
        return self.hit(0.3, f"High-risk TLD .{features.tld}", "suspicious_tld")


class BrandTyposquatRule(BaseRule):
    """Near-miss spellings and homoglyph variants of protected brands."""

    name = "brand_typosquat"
    family = "brand"

    def __init__(self, config: Optional[Config] = None):
        config = config or Config()
        self.brands = [b for b in config.protected_brands if len(b) >= 4]

    def _labels(self, features: FeatureSet) -> list[str]:
        base = features.registered_domain or features.host
        if features.suffix and base.endswith("." + features.suffix):
            base = base[: -(len(features.suffix) + 1)]
        labels = [part for part in _LABEL_SPLIT.split(base) if part]
        labels += [part for part in _LABEL_SPLIT.split(features.subdomain) if part and part != "www"]
        return labels

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.host or features.is_ip_host or features.is_official_brand_domain:
            return self.miss()

        best = _Best()
        source = features.unicode_host or features.host
        normalized = normalize_homoglyphs(source, digits=True)
        for brand in self.brands:
            if brand in normalized and brand not in features.host:
                best.offer(0.8, f"Homoglyph lookalike of '{brand}' ({source})", "typosquatting")
                continue
            for label in self._labels(features):
                if label == brand or len(label) < 4:
                    continue
                ratio = fuzz.ratio(brand, label)
                distance = Levenshtein.distance(brand, label)
                if ratio >= 85 or (len(brand) >= 6 and distance <= 2 and ratio >= 75):
                    best.offer(
                        0.8,
                        f"Domain mimics '{brand}' ({label}, {int(ratio)}% match)",
                        "typosquatting",
                    )
                elif brand in label and label != brand:
                    best.offer(0.6, f"Brand '{brand}' embedded in '{label}'", "brand_embedding")
        return best.outcome(self)


class LexicalHostRule(BaseRule):
    """Excessive hyphens, long digit runs, deep nesting and random-looking hosts."""

    name = "lexical_host"
    family = "structure"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.host or features.is_ip_host:
            return self.miss()
        score = 0.0
        findings: list[str] = []
        if features.hyphen_count >= 3:
            score += 0.2
            findings.append(f"{features.hyphen_count} hyphens")
        if features.max_digit_run >= 3:
            score += 0.15
            findings.append(f"{features.max_digit_run}-digit run")
        if features.subdomain_count >= 3:
            score += 0.2
            findings.append(f"{features.subdomain_count} nested subdomains")
        if features.entropy > 3.8 and features.host_length >= 12:
            score += 0.15
            findings.append(f"high entropy {features.entropy:.2f}")
        if not findings:
            return self.miss()
        return self.hit(score, "Unusual host structure: " + ", ".join(findings), "lexical_host")


class VietnameseBankingPhishingRule(BaseRule):
    """Bank impersonation patterns specific to Vietnamese banking phishing."""

    name = "vietnamese_banking_phish"
    family = "banking"

    def __init__(self, config: Optional[Config] = None):
        config = config or Config()
        self.banks = config.bank_brands
        self.suspicious_tlds = {t.lstrip(".") for t in config.suspicious_tlds}

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        host = features.host
        banks = [b for b in features.bank_brands if b in self.banks]
        if features.is_official_brand_domain:
            return self.miss()

        best = _Best()
        for pattern in FAKE_BANK_PATTERNS:
            if pattern in host:
                best.offer(0.85, f"Fake bank domain pattern '{pattern}'", "fake_vietnamese_bank")
                break

        if banks and features.tld in self.suspicious_tlds:
            best.offer(
                0.9,
                f"Vietnamese bank '{banks[0]}' on unsafe TLD .{features.tld}",
                "vietnamese_banking_phish",
            )

        if len(banks) > 1:
            best.offer(0.7, f"Multiple bank names in domain ({len(banks)})", "multi_bank_impersonation")

        banking_context = bool(banks) or features.has_flag("bank_keyword")
        if banking_context:
            phrases = find_terms(features.content_text, BANK_CONTEXT_PHRASES)
            if len(phrases) >= 3:
                best.offer(
                    0.75, f"High banking phishing phrase density ({len(phrases)} found)", "banking_phish_density"
                )
            elif phrases and banks:
                best.offer(0.5, f"Banking phishing phrases: {', '.join(phrases)}", "banking_phish_keywords")

        if banks and _AUTH_PATH.search(features.path):
            best.offer(0.4, "Banking authentication path on unofficial domain", "banking_auth_path")

        if banking_context and features.phone_number_found:
            if _ACCOUNT_REQUEST.search(fold(features.content_text)):
                best.offer(0.6, "Requests phone and bank account details", "banking_data_harvest")

        return best.outcome(self)


__all__ = [
    "BrandTyposquatRule",
    "LexicalHostRule",
    "PunycodeRule",
    "SuspiciousTldRule",
    "VietnameseBankingPhishingRule",
]
