"""Configuration management for PhishRadar."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set

import yaml
from dotenv import load_dotenv

from . import constants
from .utils.domains import read_domain_list

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # HTTP API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    bulk_scan_limit: int = 10

    # Classifier
    model_path: Path = field(default_factory=lambda: Path("./models/phishradar.joblib"))

    # Rule fan-out
    rule_workers: int = 8
    rule_timeout: float = 2.0

    # WHOIS / domain age
    whois_enabled: bool = True
    whois_timeout: float = 5.0
    whois_cache_ttl_minutes: int = 60
    whois_cache_max_entries: int = 10_000
    whois_cache_shards: int = 16

    # Redirect tracing
    redirect_enabled: bool = True
    redirect_timeout: float = 5.0
    max_redirect_hops: int = 5

    # Logo similarity
    logo_enabled: bool = True
    logo_timeout: float = 5.0
    logo_similarity_threshold: float = 0.90

    # Paths
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    # Loaded lists (extended by config/allowlist.txt)
    allowlist: Set[str] = field(default_factory=lambda: set(constants.CHAIN_ALLOWLIST))

    # Heuristics (override via config/heuristics.yaml)
    legitimate_domains: list[str] = field(
        default_factory=lambda: list(constants.LEGITIMATE_DOMAINS)
    )
    bank_brands: list[str] = field(default_factory=lambda: list(constants.BANK_BRANDS))
    wallet_brands: list[str] = field(default_factory=lambda: list(constants.WALLET_BRANDS))
    official_brand_domains: dict[str, str] = field(
        default_factory=lambda: dict(constants.OFFICIAL_BRAND_DOMAINS)
    )
    suspicious_tlds: Set[str] = field(default_factory=lambda: set(constants.SUSPICIOUS_TLDS))
    phishing_bait: list[str] = field(default_factory=lambda: list(constants.PHISHING_BAIT))
    gambling_terms: list[str] = field(default_factory=lambda: list(constants.GAMBLING_TERMS))
    urgency_terms: list[str] = field(default_factory=lambda: list(constants.URGENCY_TERMS))
    sensitive_terms: list[str] = field(
        default_factory=lambda: list(constants.SENSITIVE_OPERATION_TERMS)
    )
    very_strong_phrases: list[str] = field(
        default_factory=lambda: list(constants.VERY_STRONG_PHRASES)
    )

    def __post_init__(self):
        """Normalize paths and load list files."""
        self.model_path = Path(self.model_path)
        self.config_dir = Path(self.config_dir)
        self._load_lists()

    def _load_lists(self):
        """Extend the allowlist from config/allowlist.txt when present."""
        allowlist_path = self.config_dir / "allowlist.txt"
        if allowlist_path.exists():
            self.allowlist = set(self.allowlist) | read_domain_list(allowlist_path)

    @property
    def protected_brands(self) -> list[str]:
        return list(dict.fromkeys(self.bank_brands + self.wallet_brands))


def _load_heuristics(config_dir: Path) -> dict:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("heuristics.yaml must contain a mapping, ignoring it")
        return {}

    def _coerce_terms(raw):
        if not isinstance(raw, list):
            return None
        items = [str(item).strip().lower() for item in raw if str(item or "").strip()]
        return items or None

    def _coerce_domains(raw):
        if not isinstance(raw, dict):
            return None
        items: dict[str, str] = {}
        for brand, domain in raw.items():
            brand = str(brand or "").strip().lower()
            domain = str(domain or "").strip().lower()
            if brand and domain:
                items[brand] = domain
        return items or None

    heuristics: dict = {}
    for key in (
        "legitimate_domains",
        "bank_brands",
        "wallet_brands",
        "phishing_bait",
        "gambling_terms",
        "urgency_terms",
        "sensitive_terms",
        "very_strong_phrases",
    ):
        value = _coerce_terms(data.get(key))
        if value:
            heuristics[key] = value

    tlds = _coerce_terms(data.get("suspicious_tlds"))
    if tlds:
        heuristics["suspicious_tlds"] = {t.lstrip(".") for t in tlds}

    official = _coerce_domains(data.get("official_brand_domains"))
    if official:
        heuristics["official_brand_domains"] = official

    return heuristics


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def load_config() -> Config:
    """Load configuration from environment variables and config files."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    heuristics = _load_heuristics(config_dir)

    return Config(
        api_host=os.getenv("API_HOST", "0.0.0.0"),
        api_port=int(os.getenv("API_PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        bulk_scan_limit=int(os.getenv("BULK_SCAN_LIMIT", "10")),
        model_path=Path(os.getenv("MODEL_PATH", "./models/phishradar.joblib")),
        rule_workers=int(os.getenv("RULE_WORKERS", "8")),
        rule_timeout=float(os.getenv("RULE_TIMEOUT", "2.0")),
        whois_enabled=_env_bool("WHOIS_ENABLED", "true"),
        whois_timeout=float(os.getenv("WHOIS_TIMEOUT", "5")),
        whois_cache_ttl_minutes=int(os.getenv("WHOIS_CACHE_TTL_MINUTES", "60")),
        whois_cache_max_entries=int(os.getenv("WHOIS_CACHE_MAX_ENTRIES", "10000")),
        whois_cache_shards=int(os.getenv("WHOIS_CACHE_SHARDS", "16")),
        redirect_enabled=_env_bool("REDIRECT_ENABLED", "true"),
        redirect_timeout=float(os.getenv("REDIRECT_TIMEOUT", "5")),
        max_redirect_hops=int(os.getenv("MAX_REDIRECT_HOPS", "5")),
        logo_enabled=_env_bool("LOGO_ENABLED", "true"),
        logo_timeout=float(os.getenv("LOGO_TIMEOUT", "5")),
        logo_similarity_threshold=float(os.getenv("LOGO_SIMILARITY_THRESHOLD", "0.90")),
        config_dir=config_dir,
        **heuristics,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if not 0 < config.api_port < 65536:
        errors.append(f"API_PORT out of range: {config.api_port}")
    if config.rule_workers < 1:
        errors.append("RULE_WORKERS must be at least 1")
    for name in ("rule_timeout", "whois_timeout", "redirect_timeout", "logo_timeout"):
        if getattr(config, name) <= 0:
            errors.append(f"{name.upper()} must be positive")
    if config.max_redirect_hops < 1:
        errors.append("MAX_REDIRECT_HOPS must be at least 1")
    if config.whois_cache_max_entries < 1 or config.whois_cache_shards < 1:
        errors.append("WHOIS cache size and shard count must be positive")
    if not 0 < config.logo_similarity_threshold <= 1:
        errors.append("LOGO_SIMILARITY_THRESHOLD must be in (0, 1]")
    if config.bulk_scan_limit < 1:
        errors.append("BULK_SCAN_LIMIT must be at least 1")

    if not config.model_path.exists():
        logger.info("No classifier model at %s; heuristic fallback will be used", config.model_path)

    return errors
