"""Transport rules: unencrypted protocol, unusual endpoints and form targets."""

from __future__ import annotations

from urllib.parse import urlsplit

from ..utils.domains import registered_domain
from .features import FeatureSet
from .rules import BaseRule, RuleOutcome, _Best

STANDARD_PORTS = {80, 443}
SUSPICIOUS_SUBDOMAIN_PREFIXES = (
    "secure",
    "login",
    "verify",
    "account",
    "update",
    "banking",
    "signin",
    "auth",
    "xac-thuc",
    "dang-nhap",
)


class HttpProtocolRule(BaseRule):
    """Unencrypted transport combined with gambling or sensitive operations."""

    name = "http_protocol"
    family = "transport"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.is_http:
            return self.miss()
        if features.is_gambling:
            return self.hit(0.45, "Gambling site served over unencrypted HTTP", "http_gambling")
        if features.has_flag("http_sensitive"):
            return self.hit(0.3, "Sensitive operation over unencrypted HTTP", "http_sensitive")
        return self.miss()


class SecurityProtocolRule(BaseRule):
    """Raw IP hosts, non-standard ports and credential-themed subdomains."""

    name = "security_protocol"
    family = "transport"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.host:
            return self.miss()
        best = _Best()
        if features.is_ip_host:
            best.offer(0.3, f"Raw IP address host ({features.host})", "ip_address_host")
        if features.port is not None and features.port not in STANDARD_PORTS:
            best.offer(0.2, f"Non-standard port {features.port}", "nonstandard_port")
        if features.subdomain and not features.is_official_brand_domain:
            first = features.subdomain.split(".")[0]
            prefix = next((p for p in SUSPICIOUS_SUBDOMAIN_PREFIXES if first.startswith(p)), None)
            if prefix:
                best.offer(0.25, f"Credential-themed subdomain '{first}'", "suspicious_subdomain")
        return best.outcome(self)


class CrossOriginFormRule(BaseRule):
    """A form posting to a different site than the page it sits on."""

    name = "cross_origin_form"
    family = "content"

    def evaluate(self, features: FeatureSet) -> RuleOutcome:
        if not features.form_actions or not features.host:
            return self.miss()
        page_site = features.registered_domain or features.host
        for action in features.form_actions:
            action = (action or "").strip()
            if not action.lower().startswith(("http://", "https://", "//")):
                continue
            try:
                target = urlsplit(action if "://" in action else f"https:{action}").hostname or ""
            except ValueError:
                continue
            if target and registered_domain(target) != page_site:
                return self.hit(0.3, f"Form submits to another site ({target})", "cross_origin_form")
        return self.miss()


__all__ = [
    "CrossOriginFormRule",
    "HttpProtocolRule",
    "SecurityProtocolRule",
]
