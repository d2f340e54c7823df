"""Domain age lookups over RDAP."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..analyzer.metrics import metrics
from ..utils.domains import registered_domain

logger = logging.getLogger(__name__)

USER_AGENT = "PhishRadar/1.0"

# Answers that mean "age not published", not a failed lookup.
UNKNOWN_AGE_ERRORS = ("No registrable domain", "No registration event")


@dataclass(frozen=True)
class WhoisResult:
    domain: str
    rdap_url: str
    registered_at: Optional[datetime] = None
    age_days: Optional[int] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_registration_date(data: object) -> Optional[datetime]:
    """Return the RDAP ``registration`` event date (timezone-aware) if present."""
    if not isinstance(data, dict):
        return None
    events = data.get("events", [])
    if not isinstance(events, list):
        return None
    for event in events:
        if not isinstance(event, dict) or event.get("eventAction") != "registration":
            continue
        raw = str(event.get("eventDate") or "").strip()
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


class WhoisLookup:
    """Resolves a host's domain age in days via rdap.org."""

    def __init__(
        self,
        timeout: float = 5.0,
        base_url: str = "https://rdap.org/domain/",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.base_url = base_url
        self._transport = transport

    async def lookup(self, host: str) -> WhoisResult:
        domain = registered_domain(host)
        rdap_url = f"{self.base_url}{domain}"
        if not domain or "." not in domain:
            return WhoisResult(domain=domain, rdap_url=rdap_url, error="No registrable domain")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, transport=self._transport
            ) as client:
                resp = await client.get(rdap_url, headers={"User-Agent": USER_AGENT})
        except httpx.TimeoutException:
            return WhoisResult(domain=domain, rdap_url=rdap_url, error="RDAP lookup timed out")
        except httpx.HTTPError as e:
            return WhoisResult(domain=domain, rdap_url=rdap_url, error=f"RDAP lookup failed: {e}")

        if resp.status_code != 200:
            return WhoisResult(
                domain=domain,
                rdap_url=rdap_url,
                error=f"RDAP lookup failed ({resp.status_code})",
                status_code=int(resp.status_code),
            )

        try:
            data = resp.json()
        except ValueError:
            return WhoisResult(
                domain=domain,
                rdap_url=rdap_url,
                error="RDAP returned non-JSON response",
                status_code=int(resp.status_code),
            )

        registered_at = parse_registration_date(data)
        if registered_at is None:
            return WhoisResult(
                domain=domain, rdap_url=rdap_url, error="No registration event", status_code=200
            )
        age_days = max(0, (datetime.now(timezone.utc) - registered_at).days)
        return WhoisResult(
            domain=domain,
            rdap_url=rdap_url,
            registered_at=registered_at,
            age_days=age_days,
            status_code=200,
        )

    async def age_in_days(self, host: str) -> Optional[int]:
        """Domain age in whole days, or None when unknown."""
        result = await self.lookup(host)
        if not result.ok:
            if result.error in UNKNOWN_AGE_ERRORS:
                logger.debug("Domain age unavailable for %s: %s", host, result.error)
            else:
                logger.warning("Domain age lookup failed for %s: %s", host, result.error)
                metrics.record_collaborator_failure("whois")
            return None
        return result.age_days
