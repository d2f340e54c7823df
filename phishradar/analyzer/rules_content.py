"""Content rules: gambling, urgency, psychological pressure and lure patterns."""

from __future__ import annotations

import re

from ..utils.text import find_terms, fold
from .features import FeatureSet
from .rules import BaseRule, RuleOutcome, _Best

_NOHU = re.compile(r"(no\s*hu|quay\s*hu|slot\s*game|may\s*danh\s*bac)")
_GAMBLING_PHRASES = re.compile(
    r"(dat cuoc|place bet|live betting|ty le keo|thang lon|trung lon|jackpot|"
    r"nap tien|rut tien|doi thuong|game bai|choi bai|live casino|casino online)"
)
_HOST_TOKEN_SPLIT = re.compile(r"[.\-_]+")

GAMBLING_SITE_PATTERNS = [
    "keonhacai",
    "soikeo",
    "tylekeo",
    "188bet",
    "w88",
    "fun88",
    "dafabet",
    "m88",
    "12bet",
    "vwin",
    "sbobet",
    "cmd368",
    "nohu",
    "gamebai",
    "game-bai",
    "doithuong",
    "doi-thuong",
]

GAMBLING_HOST_TOKENS = {
    "bet",
    "casino",
    "poker",
    "slot",
    "slots",
    "jackpot",
    "taixiu",
    "bongda",
    "keo",
    "cuoc",
    "lode",
    "xoso",
}

CREDENTIAL_TERMS = [
    "password",
    "mật khẩu",
    "otp",
    "mã pin",
    "login",
    "đăng nhập",
    "verify",
    "xác thực",
    "account",
    "tài khoản",
    "card number",
    "số thẻ",
]

PRESSURE_TRIGGERS: dict[str, tuple[float, list[str]]] = {
    "fear": (
        0.25,
        [
            "account locked",
            "account suspended",
            "bị khóa",
            "bị đình chỉ",
            "legal action",
            "công an",
            "unauthorized access",
            "truy cập trái phép",
            "will be closed",
        ],
    ),
    "authority": (
        0.2,
        [
            "official notice",
            "thông báo chính thức",
            "ngân hàng nhà nước",
            "bộ công an",
            "government",
            "security department",
            "phòng bảo mật",
        ],
    ),
    "scarcity": (
        0.15,
        [
            "only today",
            "chỉ hôm nay",
            "last chance",
            "cơ hội cuối",
            "limited",
            "giới hạn",
            "within 24 hours",
            "trong 24h",
        ],
    ),
    "reward": (
        0.2,
        [
            "you have won",
            "bạn đã trúng",
            "trúng thưởng",
            "free gift",
            "quà tặng",
            "nhận thưởng",
            "claim your prize",
            "miễn phí",
        ],
    ),
}

HIGH_RISK_URL_PATTERNS = [
    "free-money",
    "claim-reward",
    "claim-prize",
    "nhan-qua",
    "trung-thuong",
    "nhan-thuong",
    "airdrop",
    "giveaway",
    "qua-tang",
]
PROMOTIONAL_PATTERNS = ["promo", "khuyen-mai", "khuyenmai", "bonus", "uu-dai", "voucher"]
_URGENT_URL = re.compile(r"(urgent|khan-cap|ngay-lap-tuc|het-han|expire)")


class GamblingKeywordRule(BaseRule):
    """Vietnamese and international gambling sites and vocabulary."""

    name = "gambling_keyword"
    family = "gambling"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        host = features.host
        combined = fold(features.combined_text)
        best = _Best()

        if _NOHU.search(combined) or "nohu" in host:
            best.offer(0.95, "Vietnamese slot/casino gaming (no hu)", "vietnamese_casino")

        site = next((p for p in GAMBLING_SITE_PATTERNS if p in host), None)
        if site:
            best.offer(0.85, f"Known gambling site pattern: {site}", "gambling_site_pattern")

        tokens = set(_HOST_TOKEN_SPLIT.split(host))
        token = next((t for t in sorted(GAMBLING_HOST_TOKENS) if t in tokens), None)
        if token:
            best.offer(0.7, f"Gambling term in domain: {token}", "gambling_domain")

        phrases = sorted(set(_GAMBLING_PHRASES.findall(combined)))
        if len(phrases) >= 2:
            best.offer(0.9, f"Multiple gambling phrases: {', '.join(phrases[:3])}", "gambling_phrases")
        elif phrases:
            best.offer(0.8, f"Gambling phrase: {phrases[0]}", "gambling_phrases")

        if features.gambling_terms:
            best.offer(
                0.65, f"Gambling keyword: {features.gambling_terms[0]}", "gambling_keywords"
            )

        return best.outcome(self)


class UrgencyLanguageRule(BaseRule):
    """Urgency phrasing, strongest when paired with credential requests."""

    name = "urgency_language"
    family = "urgency"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.has_urgency:
            return self.miss()
        credentials = find_terms(features.combined_text, CREDENTIAL_TERMS)
        if credentials:
            return self.hit(
                0.5,
                f"Urgent request for credentials ({', '.join(credentials[:3])})",
                "urgent_credential_request",
            )
        if len(features.urgency_terms) >= 3:
            return self.hit(0.35, "Heavy urgency language", "urgency_language")
        return self.hit(0.25, "Urgency language", "urgency_language")


class BehavioralPressureRule(BaseRule):
    """Psychological pressure: fear, authority, scarcity and reward triggers."""

    name = "behavioral_pressure"
    family = "behavior"
    max_score = 0.6

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        text = features.content_text
        if not text:
            return self.miss()
        score = 0.0
        triggered: list[str] = []
        for category, (weight, phrases) in PRESSURE_TRIGGERS.items():
            if find_terms(text, phrases):
                score += weight
                triggered.append(category)
        if not triggered:
            return self.miss()
        return self.hit(
            min(self.max_score, score),
            f"Psychological pressure tactics: {', '.join(triggered)}",
            "psychological_pressure",
        )


class ThreatPatternRule(BaseRule):
    """Prize, promotional and urgent lures embedded in the URL."""

    name = "threat_pattern"
    family = "lure"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        url_text = f"{features.host}{features.path}?{features.query}"
        score = 0.0
        findings: list[str] = []
        high = [p for p in HIGH_RISK_URL_PATTERNS if p in url_text]
        if high:
            score += 0.5
            findings.append(f"lure '{high[0]}'")
        promo = [p for p in PROMOTIONAL_PATTERNS if p in url_text]
        if promo:
            score += 0.25
            findings.append(f"promotion '{promo[0]}'")
        if _URGENT_URL.search(url_text):
            score += 0.35
            findings.append("urgent wording")
        if len(findings) >= 2:
            score += 0.2
        if not findings:
            return self.miss()
        return self.hit(min(0.85, score), "Lure pattern in URL: " + ", ".join(findings), "threat_pattern")


class SensitiveFormRule(BaseRule):
    """Credential or OTP fields collected by a page outside any official brand domain."""

    name = "sensitive_form"
    family = "content"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not (features.has_sensitive_fields and features.form_count):
            return self.miss()
        if features.is_official_brand_domain:
            return self.miss()
        if features.bank_brands or features.threat_keywords:
            return self.hit(0.45, "Credential form alongside phishing context", "credential_form")
        return self.hit(0.35, "Page collects credentials or OTP codes", "credential_form")


__all__ = [
    "BehavioralPressureRule",
    "GamblingKeywordRule",
    "SensitiveFormRule",
    "ThreatPatternRule",
    "UrgencyLanguageRule",
]
