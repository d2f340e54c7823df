"""Redirect chain tracing."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin

import httpx

from ..utils.domains import canonicalize_domain

logger = logging.getLogger(__name__)

USER_AGENT = "PhishRadar-Bot/1.0"
REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def ensure_url(value: str) -> str:
    """Add an https scheme to bare hosts."""
    value = (value or "").strip()
    if not value:
        return ""
    if "://" not in value:
        return f"https://{value}"
    return value


class RedirectTracer:
    """Follows HTTP redirects hop by hop without letting the client auto-follow."""

    def __init__(
        self,
        max_hops: int = 5,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.max_hops = max(1, max_hops)
        self.timeout = timeout
        self._transport = transport

    async def trace(self, url: str) -> list[str]:
        """Return the ordered hop list; hop 0 is ``url``. Never raises."""
        hops = [url]
        current = ensure_url(url)
        if not canonicalize_domain(current):
            return hops
        seen = {current}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            ) as client:
                while len(hops) < self.max_hops:
                    try:
                        resp = await client.head(current)
                    except httpx.HTTPError as exc:
                        logger.debug("Redirect trace stopped at %s: %s", current, exc)
                        break
                    if resp.status_code not in REDIRECT_STATUSES:
                        break
                    location = resp.headers.get("location")
                    if not location:
                        break
                    next_url = urljoin(current, location.strip())
                    if next_url in seen:
                        logger.debug("Redirect loop detected at %s", next_url)
                        break
                    seen.add(next_url)
                    hops.append(next_url)
                    current = next_url
        except httpx.InvalidURL as exc:
            logger.debug("Cannot trace %r: %s", url, exc)
        return hops
