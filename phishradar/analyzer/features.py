"""Feature extraction for URL risk scoring."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Optional
from urllib.parse import urlsplit

from ..config import Config
from ..constants import PHONE_PATTERN, SENSITIVE_FIELD_PATTERN, URGENCY_PATTERN
from ..utils.domains import host_matches, is_ip_address, split_host, to_ascii_host, to_unicode_host
from ..utils.text import find_terms, fold, longest_digit_run, shannon_entropy
from .html_content import ContentCounts, parse_content

logger = logging.getLogger(__name__)

_PHONE_RE = re.compile(PHONE_PATTERN)
_SENSITIVE_FIELD_RE = re.compile(SENSITIVE_FIELD_PATTERN)
_URGENCY_RE = re.compile(URGENCY_PATTERN)
_TOKEN_SPLIT = re.compile(r"[.\-_0-9]+")

VECTOR_FEATURES = (
    "url_length",
    "has_at",
    "has_hyphen",
    "digit_count",
    "is_http",
    "has_otp_keyword",
    "has_bank_keyword",
)


@dataclass(frozen=True)
class FeatureSet:
    """Immutable per-hop feature snapshot consumed by rules and the classifier."""

    url: str = ""
    host: str = ""
    unicode_host: str = ""
    path: str = ""
    query: str = ""
    protocol: str = ""
    port: Optional[int] = None

    # Domain
    registered_domain: str = ""
    subdomain: str = ""
    suffix: str = ""
    tld: str = ""
    is_suspicious_tld: bool = False
    has_punycode: bool = False
    is_ip_host: bool = False
    bank_brands: tuple[str, ...] = ()
    is_bank_domain: bool = False
    is_official_brand_domain: bool = False

    # Lexical
    url_length: int = 0
    host_length: int = 0
    hyphen_count: int = 0
    digit_count: int = 0
    max_digit_run: int = 0
    entropy: float = 0.0
    subdomain_count: int = 0
    has_at_symbol: bool = False

    # Content
    form_count: int = 0
    input_count: int = 0
    script_count: int = 0
    link_count: int = 0
    iframe_count: int = 0
    hidden_input_count: int = 0
    has_sensitive_fields: bool = False
    has_urgency: bool = False
    phone_number_found: bool = False
    form_actions: tuple[str, ...] = ()
    logo_images: tuple[str, ...] = ()
    content_text: str = ""

    # Locale context
    threat_keywords: tuple[str, ...] = ()
    gambling_terms: tuple[str, ...] = ()
    urgency_terms: tuple[str, ...] = ()
    sensitive_terms: tuple[str, ...] = ()
    is_gambling: bool = False
    is_banking_impersonation: bool = False
    threat_flags: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_http(self) -> bool:
        return self.protocol == "http"

    @property
    def combined_text(self) -> str:
        """Host, path and page text joined for keyword rules."""
        return " ".join(part for part in (self.host, self.path, self.content_text) if part)

    def has_flag(self, flag: str) -> bool:
        return flag in self.threat_flags

    def to_vector(self) -> list[float]:
        """Classifier input, ordered as ``VECTOR_FEATURES``."""
        combined = fold(self.combined_text)
        has_bank = bool(self.bank_brands) or "bank" in combined or "ngan hang" in combined
        return [
            float(self.url_length),
            1.0 if self.has_at_symbol else 0.0,
            1.0 if self.hyphen_count else 0.0,
            float(self.digit_count),
            1.0 if self.is_http else 0.0,
            1.0 if "otp" in combined else 0.0,
            1.0 if has_bank else 0.0,
        ]

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, (tuple, frozenset, set)):
                data[key] = sorted(value) if isinstance(value, (frozenset, set)) else list(value)
        data["content_text"] = self.content_text[:500]
        return data


class FeatureExtractor:
    """Turns (url, html, text) into a FeatureSet. Never raises."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.protected_brands = [b.lower() for b in self.config.protected_brands]
        self.official_domains = {
            k.lower(): v.lower() for k, v in self.config.official_brand_domains.items()
        }
        self.suspicious_tlds = {t.lower().lstrip(".") for t in self.config.suspicious_tlds}

    def extract(self, url: str, html: Optional[str] = None, text: Optional[str] = None) -> FeatureSet:
        try:
            return self._extract(url or "", html, text)
        except Exception as exc:
            logger.warning("Feature extraction failed for %r: %s", url, exc)
            return FeatureSet(url=url or "", url_length=len(url or ""))

    def _parse_url(self, url: str) -> tuple[str, str, str, str, Optional[int], bool]:
        """Return (protocol, host, path, query, port, has_at) or empties if malformed."""
        raw = url.strip()
        candidate = raw if "://" in raw else f"https://{raw}"
        try:
            parts = urlsplit(candidate)
            host = parts.hostname or ""
            try:
                port = parts.port
            except ValueError:
                port = None
            protocol = (parts.scheme or "").lower()
            path = parts.path or ("/" if host else "")
            query = parts.query or ""
            has_at = "@" in (parts.netloc or "")
        except ValueError as exc:
            logger.debug("Malformed URL %r: %s", url, exc)
            return "", "", "", "", None, "@" in raw
        return protocol, host, path.lower(), query.lower(), port, has_at

    def _brands_in(self, host: str) -> tuple[str, ...]:
        tokens = set(_TOKEN_SPLIT.split(host))
        found = []
        for brand in self.protected_brands:
            if len(brand) >= 5:
                if brand in host:
                    found.append(brand)
            elif brand in tokens:
                found.append(brand)
        return tuple(found)

    def _is_official(self, host: str, brands: tuple[str, ...]) -> bool:
        if not brands:
            return False
        for brand in brands:
            official = self.official_domains.get(brand)
            candidates = [official] if official else []
            candidates += [f"{brand}.com.vn", f"{brand}.vn"]
            if not host_matches(host, candidates):
                return False
        return True

    def _extract(self, url: str, html: Optional[str], text: Optional[str]) -> FeatureSet:
        config = self.config
        protocol, raw_host, path, query, port, has_at = self._parse_url(url)
        host = to_ascii_host(raw_host)
        unicode_host = to_unicode_host(host) if host else ""

        subdomain, domain, suffix = split_host(host) if host else ("", "", "")
        registered = f"{domain}.{suffix}" if domain and suffix else host
        tld = host.rsplit(".", 1)[-1] if "." in host else ""
        ip_host = is_ip_address(host)

        content: ContentCounts = parse_content(html)
        text_parts = [(text or "").strip(), content.visible_text]
        content_text = " ".join(p for p in text_parts if p).lower()

        brands = self._brands_in(host) if not ip_host else ()
        official = self._is_official(host, brands)
        impersonation = bool(brands) and not official

        combined = " ".join(p for p in (host, path, content_text) if p)
        folded_combined = fold(combined)
        threat_keywords = tuple(find_terms(combined, config.phishing_bait))
        gambling = tuple(find_terms(combined, config.gambling_terms))
        urgency = tuple(find_terms(combined, config.urgency_terms))
        sensitive = tuple(find_terms(combined, config.sensitive_terms))
        has_urgency = bool(urgency) or bool(_URGENCY_RE.search(folded_combined))
        sensitive_fields = content.sensitive_input_count > 0 or bool(
            html and _SENSITIVE_FIELD_RE.search(fold(html[:200_000]))
        )
        phone = bool(_PHONE_RE.search(content_text))
        is_suspicious_tld = tld in self.suspicious_tlds
        has_punycode = "xn--" in host

        flags = set()
        if is_suspicious_tld:
            flags.add("suspicious_tld")
        if has_punycode:
            flags.add("punycode")
        if brands or "bank" in folded_combined or "ngan hang" in folded_combined:
            flags.add("bank_keyword")
        if impersonation:
            flags.add("fake_bank")
        if threat_keywords:
            flags.add("phishing_keywords")
        if gambling:
            flags.add("gambling_site")
        if has_urgency:
            flags.add("urgency")
        if sensitive_fields:
            flags.add("sensitive_fields")
        if protocol == "http" and (sensitive or sensitive_fields):
            flags.add("http_sensitive")
        if ip_host:
            flags.add("ip_host")
        if phone:
            flags.add("phone_harvesting")

        subdomain_labels = [label for label in subdomain.split(".") if label and label != "www"]

        return FeatureSet(
            url=url,
            host=host,
            unicode_host=unicode_host,
            path=path,
            query=query,
            protocol=protocol,
            port=port,
            registered_domain=registered,
            subdomain=subdomain,
            suffix=suffix,
            tld=tld,
            is_suspicious_tld=is_suspicious_tld,
            has_punycode=has_punycode,
            is_ip_host=ip_host,
            bank_brands=brands,
            is_bank_domain=bool(brands),
            is_official_brand_domain=official,
            url_length=len(url),
            host_length=len(host),
            hyphen_count=host.count("-"),
            digit_count=sum(ch.isdigit() for ch in host),
            max_digit_run=longest_digit_run(host),
            entropy=shannon_entropy(host),
            subdomain_count=len(subdomain_labels),
            has_at_symbol=has_at,
            form_count=content.form_count,
            input_count=content.input_count,
            script_count=content.script_count,
            link_count=content.link_count,
            iframe_count=content.iframe_count,
            hidden_input_count=content.hidden_input_count,
            has_sensitive_fields=sensitive_fields,
            has_urgency=has_urgency,
            phone_number_found=phone,
            form_actions=tuple(content.form_actions),
            logo_images=tuple(content.logo_images),
            content_text=content_text,
            threat_keywords=threat_keywords,
            gambling_terms=gambling,
            urgency_terms=urgency,
            sensitive_terms=sensitive,
            is_gambling=bool(gambling),
            is_banking_impersonation=impersonation,
            threat_flags=frozenset(flags),
        )
