"""Centralized constants for PhishRadar.

Keyword tables, brand lists and enums shared across the feature extractor,
the rule set and the chain orchestrator. Lists that operators may want to tune
are copied into ``Config`` and can be overridden via config/heuristics.yaml.
"""

from enum import Enum, IntEnum


class ThreatLevel(IntEnum):
    """Risk bands with ranking for comparison."""

    SAFE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def from_risk(cls, risk: int) -> "ThreatLevel":
        """Map a 0-100 risk value to its band."""
        if risk >= 80:
            return cls.CRITICAL
        if risk >= 60:
            return cls.HIGH
        if risk >= 40:
            return cls.MEDIUM
        if risk >= 20:
            return cls.LOW
        return cls.SAFE

    def __str__(self) -> str:
        return self.name


class ChainState(str, Enum):
    """Lifecycle of a single chain evaluation."""

    NOT_STARTED = "not_started"
    PER_HOP_EVALUATION = "per_hop_evaluation"
    FUSION = "fusion"
    FLOOR_CAP = "floor_cap"
    DONE = "done"


# Protected brands. Official suffixes are the registrable domains a brand may
# legitimately appear under.
BANK_BRANDS: list[str] = [
    "vietcombank",
    "vietinbank",
    "bidv",
    "techcombank",
    "acb",
    "vpbank",
    "agribank",
    "vib",
    "mbbank",
    "tpbank",
    "sacombank",
    "maritimebank",
    "eximbank",
    "seabank",
    "pvcombank",
]

WALLET_BRANDS: list[str] = ["momo", "zalopay", "vnpay", "paypal", "binance"]

OFFICIAL_BRAND_DOMAINS: dict[str, str] = {
    "vietcombank": "vietcombank.com.vn",
    "techcombank": "techcombank.com.vn",
    "bidv": "bidv.com.vn",
    "acb": "acb.com.vn",
    "vpbank": "vpbank.com.vn",
    "agribank": "agribank.com.vn",
    "momo": "momo.vn",
    "zalopay": "zalopay.vn",
    "vnpay": "vnpay.vn",
    "paypal": "paypal.com",
    "binance": "binance.com",
}

FAKE_BANK_PATTERNS: list[str] = [
    "vietcom-bank",
    "viet-com-bank",
    "vietcombank-vn",
    "vietcombank-online",
    "techcom-bank",
    "tech-com-bank",
    "techcombank-vn",
    "bidv-bank",
    "acb-bank",
    "vpbank-vn",
    "agri-bank",
    "agribank-vn",
    "mb-bank",
    "vietinbank-vn",
    "vietin-bank",
    "sacom-bank",
    "maritime-bank",
]

SUSPICIOUS_TLDS: set[str] = {
    "tk",
    "ml",
    "ga",
    "cf",
    "gq",
    "club",
    "xyz",
    "top",
    "click",
    "download",
    "stream",
    "science",
    "racing",
    "win",
    "bid",
    "loan",
    "work",
    "date",
    "icu",
    "buzz",
}

# Suffix entries (leading dot) match any host under them; bare entries match
# the domain itself and its subdomains.
LEGITIMATE_DOMAINS: list[str] = [
    ".com.vn",
    ".vn",
    ".gov.vn",
    ".org.vn",
    ".edu.vn",
    ".ac.vn",
    "google.com",
    "youtube.com",
    "github.com",
    "microsoft.com",
    "facebook.com",
    "wikipedia.org",
    "apple.com",
    "amazon.com",
    "vnexpress.net",
    "stackoverflow.com",
    "reddit.com",
    "twitter.com",
    "linkedin.com",
    "instagram.com",
    "tiktok.com",
]

CHAIN_ALLOWLIST: list[str] = [
    "google.com",
    "youtube.com",
    "github.com",
    "microsoft.com",
    "facebook.com",
    "cloudflare.com",
    "wikipedia.org",
    "apple.com",
    "amazon.com",
    "bing.com",
    "huflit.edu.vn",
    "hcmus.edu.vn",
    "uit.edu.vn",
    "hcmut.edu.vn",
    "hust.edu.vn",
    "vnu.edu.vn",
    "ueh.edu.vn",
    "ftu.edu.vn",
    ".gov.vn",
    "baochinhphu.vn",
    "nhandan.vn",
    "tuoitre.vn",
    "vietnamnet.vn",
    "vtv.vn",
    "vnexpress.net",
    "dantri.com.vn",
    "thanhnien.vn",
]

# Exempt from the unencrypted-transport penalty.
LOCALE_LEGITIMATE_SUFFIXES: list[str] = [".edu.vn", ".gov.vn", ".ac.vn", ".org.vn"]
# Capped at a small maximum risk regardless of upstream signals.
EDUCATION_GOVERNMENT_SUFFIXES: list[str] = [".edu.vn", ".gov.vn", ".ac.vn"]

PHISHING_BAIT: list[str] = [
    "otp",
    "xác thực",
    "khóa tài khoản",
    "verify",
    "verification",
    "login",
    "đăng nhập",
    "kích hoạt lại",
    "nhập mã",
    "treo tài khoản",
    "mở khóa",
    "suspended",
    "expired",
    "urgent",
    "bank",
    "ngân hàng",
    "tạm khóa",
    "security alert",
    "verify immediately",
]

GAMBLING_TERMS: list[str] = [
    "casino",
    "betting",
    "poker",
    "slot",
    "lottery",
    "gambling",
    "jackpot",
    "baccarat",
    "roulette",
    "188bet",
    "fun88",
    "w88",
    "dafabet",
    "keonhacai",
    "nhà cái",
    "cá độ",
    "cá cược",
    "đánh bạc",
    "sòng bạc",
    "tài xỉu",
    "xổ số",
    "lô đề",
    "nổ hũ",
    "nohu",
    "game bài",
    "đổi thưởng",
]

URGENCY_TERMS: list[str] = [
    "urgent",
    "immediately",
    "khẩn cấp",
    "ngay lập tức",
    "hết hạn",
    "expires",
    "expired",
    "deadline",
    "limited time",
    "asap",
]

SENSITIVE_OPERATION_TERMS: list[str] = [
    "login",
    "signin",
    "password",
    "bank",
    "payment",
    "otp",
    "verify",
    "account",
    "đăng nhập",
    "mật khẩu",
    "thanh toán",
    "chuyển khoản",
    "tài khoản",
]

VERY_STRONG_PHRASES: list[str] = [
    "click here to verify",
    "account will be suspended",
    "urgent security update",
    "verify immediately or lose access",
    "nhấn vào đây để xác thực",
    "tài khoản sẽ bị khóa vĩnh viễn",
    "cập nhật ngay hoặc mất tài khoản",
    "xác thực trong 24h",
]

SUSPICIOUS_PATH_PATTERN = (
    r"/(otp|xac-thuc|verify|reset|dang-nhap|login|signin|update|cap-nhat|bao-mat|security|urgent)"
)
URGENCY_PATTERN = r"(ngay lap tuc|immediately|urgent|khan cap|het han|expires?|deadline|limited time)"
SENSITIVE_FIELD_PATTERN = r"\b(password|passwd|pin|otp|cvv|ssn|mat khau|ma pin)\b"
PHONE_PATTERN = r"\b(0[3-9]\d{8}|84[3-9]\d{8})\b"
