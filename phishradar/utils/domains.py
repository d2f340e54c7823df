"""Domain normalization utilities."""

from __future__ import annotations

import ipaddress
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

import idna
import tldextract


def canonicalize_domain(value: str) -> str:
    """
    Normalize a domain/URL to a canonical host key.

    - Lowercase
    - Strip leading "www."
    - Ignore port, path, query and fragment
    """
    raw = (value or "").strip()
    if not raw:
        return ""

    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
        host = parsed.hostname or ""
    except ValueError:
        host = ""
    host = (host or raw.split("/")[0]).strip().lower().strip(".")
    if host.startswith("www.") and len(host) > 4:
        host = host[4:]
    return host


def to_ascii_host(host: str) -> str:
    """Return the IDNA (punycode) form of ``host``; unchanged if already ASCII."""
    host = (host or "").strip().lower().strip(".")
    if not host or host.isascii():
        return host
    try:
        return idna.encode(host, uts46=True).decode("ascii")
    except (idna.IDNAError, UnicodeError):
        # Invalid IDN: encode label by label so "xn--" stays visible where possible.
        labels = []
        for label in host.split("."):
            if label.isascii():
                labels.append(label)
                continue
            try:
                labels.append("xn--" + label.encode("punycode").decode("ascii"))
            except UnicodeError:
                labels.append(label)
        return ".".join(labels)


def to_unicode_host(host: str) -> str:
    """Best-effort decode of punycode labels for display and homoglyph checks."""
    if "xn--" not in (host or ""):
        return host or ""
    try:
        return idna.decode(host)
    except (idna.IDNAError, UnicodeError):
        return host


def split_host(host: str) -> tuple[str, str, str]:
    """Return (subdomain, domain, suffix) for a host using the public suffix list."""
    extracted = tldextract.extract(host or "")
    return extracted.subdomain, extracted.domain, extracted.suffix


def registered_domain(value: str) -> str:
    """Return the registrable domain for a host or URL (best-effort)."""
    host = canonicalize_domain(value)
    if not host:
        return ""
    _, domain, suffix = split_host(host)
    if domain and suffix:
        return f"{domain}.{suffix}".lower()
    return host


def is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address((host or "").strip("[]"))
    except ValueError:
        return False
    return True


def host_matches(host: str, domains: Iterable[str]) -> bool:
    """Check if ``host`` sits under any entry of ``domains``.

    Entries starting with "." are pure suffixes (".edu.vn"); other entries
    match the domain itself and all of its subdomains ("google.com" matches
    "mail.google.com" but not "notgoogle.com").
    """
    host = (host or "").lower().strip(".")
    if not host:
        return False
    for entry in domains:
        entry = (entry or "").lower().strip()
        if not entry:
            continue
        if entry.startswith("."):
            if host.endswith(entry):
                return True
        elif host == entry or host.endswith("." + entry):
            return True
    return False


def read_domain_list(path: Path) -> set[str]:
    """Read a domain list file (one per line, "#" comments) into canonical hosts."""
    if not path.exists():
        return set()

    entries: set[str] = set()
    for line in path.read_text(encoding="utf-8").splitlines():
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        if value.startswith("."):
            entries.add(value.lower())
            continue
        normalized = canonicalize_domain(value)
        if normalized:
            entries.add(normalized)
    return entries
