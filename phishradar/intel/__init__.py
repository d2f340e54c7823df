"""External intelligence collaborators for PhishRadar."""

from .logo import LogoMatch, LogoSimilarity
from .redirects import RedirectTracer
from .whois import WhoisLookup, WhoisResult

__all__ = [
    "LogoMatch",
    "LogoSimilarity",
    "RedirectTracer",
    "WhoisLookup",
    "WhoisResult",
]
