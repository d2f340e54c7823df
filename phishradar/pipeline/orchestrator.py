"""Chain orchestration: per-hop scoring, domain age, logo cloning, fusion and floors."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from ..analyzer.aggregator import RuleAggregator
from ..analyzer.classifier import Classifier
from ..analyzer.features import FeatureExtractor, FeatureSet
from ..analyzer.fusion import fuse, to_risk
from ..analyzer.metrics import metrics
from ..analyzer.rules import clamp01
from ..cache import DomainAgeCache
from ..config import Config
from ..constants import (
    EDUCATION_GOVERNMENT_SUFFIXES,
    LOCALE_LEGITIMATE_SUFFIXES,
    ChainState,
    ThreatLevel,
)
from ..intel.logo import LogoSimilarity
from ..intel.redirects import RedirectTracer
from ..intel.whois import WhoisLookup
from ..utils.domains import host_matches
from . import insights

logger = logging.getLogger(__name__)

HTTP_PENALTY = 0.35
HTTP_CRITICAL_PENALTY = 0.65
YOUNG_DOMAIN_DAYS = 7
YOUNG_DOMAIN_BOOST = 0.4
CLONED_LOGO_BOOST = 0.5

GAMBLING_HTTP_FLOOR = 55
SENSITIVE_HTTP_FLOOR = 45
SIGNAL_HTTP_FLOOR = 25
EDUCATION_GOVERNMENT_CAP = 15

ML_REASON_THRESHOLD = 0.3
ML_HIGH_CONFIDENCE = 0.5

GENERIC_REASON = "Security risk indicators detected"
FIRST_SEEN_UNKNOWN = "unknown"

_ORDER = list(ChainState)


@dataclass
class ChainEvaluationState:
    """Running state across the hops of one request."""

    state: ChainState = ChainState.NOT_STARTED
    max_score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    hops: list[str] = field(default_factory=list)
    features: list[FeatureSet] = field(default_factory=list)
    whitelisted: bool = False

    def advance(self, target: ChainState) -> None:
        """Move forward through the lifecycle; going back is an error."""
        if _ORDER.index(target) < _ORDER.index(self.state):
            raise ValueError(f"cannot move from {self.state.value} to {target.value}")
        self.state = target

    def raise_score(self, score: float) -> None:
        self.max_score = max(self.max_score, clamp01(score))

    def add_evidence(self, reason: str, tag: str) -> None:
        if reason and reason not in self.reasons:
            self.reasons.append(reason)
        if tag and tag not in self.tags:
            self.tags.append(tag)

    @property
    def last_features(self) -> Optional[FeatureSet]:
        return self.features[-1] if self.features else None

    @property
    def has_signal(self) -> bool:
        return self.max_score > 0 or bool(self.reasons) or bool(self.tags)


@dataclass
class ChainResult:
    """Outcome of scoring one URL and its redirect chain."""

    url: str
    risk: int = 0
    reasons: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    threat_type: str = insights.SAFE
    confidence: int = 0
    recommendations: list[str] = field(default_factory=list)
    processing_time_ms: int = 0
    hops: list[str] = field(default_factory=list)
    ml_score: float = 0.0
    rule_score: float = 0.0
    reasoning: str = ""
    attack_vectors: list[str] = field(default_factory=list)
    affected_regions: list[str] = field(default_factory=lambda: ["Global"])
    first_seen: str = FIRST_SEEN_UNKNOWN
    whitelisted: bool = False

    @property
    def threat_level(self) -> ThreatLevel:
        return ThreatLevel.from_risk(self.risk)

    def to_response(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "risk": self.risk,
            "reasons": list(self.reasons),
            "tags": list(self.tags),
            "threatType": self.threat_type,
            "threatLevel": self.threat_level.name,
            "confidence": self.confidence,
            "recommendations": list(self.recommendations),
            "processingTimeMs": self.processing_time_ms,
            "hops": list(self.hops),
            "mlScore": round(self.ml_score, 4),
            "ruleScore": round(self.rule_score, 4),
            "reasoning": self.reasoning,
            "intelligence": {
                "attackVectors": list(self.attack_vectors),
                "affectedRegions": list(self.affected_regions),
                "firstSeen": self.first_seen,
            },
            "whitelisted": self.whitelisted,
        }


class ChainOrchestrator:
    """
    Scores a request across its redirect chain.

    Hops are evaluated in order. Every network collaborator is optional and
    time-boxed; a missing, slow or failing collaborator is treated as "no
    signal" and never aborts the request.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        extractor: Optional[FeatureExtractor] = None,
        aggregator: Optional[RuleAggregator] = None,
        classifier: Optional[Classifier] = None,
        cache: Optional[DomainAgeCache] = None,
        whois: Optional[WhoisLookup] = None,
        tracer: Optional[RedirectTracer] = None,
        logo: Optional[LogoSimilarity] = None,
    ):
        self.config = config or Config()
        self.extractor = extractor or FeatureExtractor(self.config)
        self.aggregator = aggregator or RuleAggregator(self.config)
        self.classifier = classifier or Classifier()
        self.cache = cache or DomainAgeCache(
            ttl_seconds=self.config.whois_cache_ttl_minutes * 60,
            max_entries=self.config.whois_cache_max_entries,
            shards=self.config.whois_cache_shards,
        )
        self.whois = whois
        self.tracer = tracer
        self.logo = logo

    @classmethod
    def from_config(cls, config: Config) -> "ChainOrchestrator":
        """Wire the production collaborators according to ``config``."""
        logo = None
        if config.logo_enabled:
            logo = LogoSimilarity(
                reference_dir=config.config_dir / "logos",
                threshold=config.logo_similarity_threshold,
                timeout=config.logo_timeout,
            )
        return cls(
            config,
            classifier=Classifier(config.model_path),
            whois=WhoisLookup(timeout=config.whois_timeout) if config.whois_enabled else None,
            tracer=(
                RedirectTracer(max_hops=config.max_redirect_hops, timeout=config.redirect_timeout)
                if config.redirect_enabled
                else None
            ),
            logo=logo,
        )

    def close(self) -> None:
        self.aggregator.close()

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def _trace(self, url: str) -> list[str]:
        if self.tracer is None:
            return [url]
        try:
            hops = await asyncio.wait_for(
                self.tracer.trace(url), timeout=self.config.redirect_timeout * self.config.max_redirect_hops
            )
        except asyncio.TimeoutError:
            logger.warning("Redirect trace timed out for %s", url)
            metrics.record_collaborator_failure("redirects")
            return [url]
        except Exception as exc:
            logger.warning("Redirect trace failed for %s: %s", url, exc)
            metrics.record_collaborator_failure("redirects")
            return [url]
        return hops[: self.config.max_redirect_hops] or [url]

    async def _domain_age(self, host: str) -> Optional[int]:
        if self.whois is None or not host:
            return None
        return await self.cache.get_or_fetch(host, self.whois.age_in_days, timeout=self.config.whois_timeout)

    async def _logo_brand(self, url: str, html: Optional[str]) -> Optional[str]:
        if self.logo is None or not html:
            return None
        try:
            match = await asyncio.wait_for(self.logo.check(url, html), timeout=self.config.logo_timeout * 2)
        except asyncio.TimeoutError:
            logger.warning("Logo check timed out for %s", url)
            metrics.record_collaborator_failure("logo")
            return None
        except Exception as exc:
            logger.warning("Logo check failed for %s: %s", url, exc)
            metrics.record_collaborator_failure("logo")
            return None
        return match.brand

    # ------------------------------------------------------------------
    # Per-hop evaluation
    # ------------------------------------------------------------------

    def is_allowlisted(self, host: str) -> bool:
        return host_matches(host, self.config.allowlist) or host_matches(host, LOCALE_LEGITIMATE_SUFFIXES)

    def _apply_protocol_penalty(self, features: FeatureSet, state: ChainEvaluationState) -> None:
        if not features.is_http or host_matches(features.host, LOCALE_LEGITIMATE_SUFFIXES):
            return
        state.add_evidence("HTTP protocol detected: data transmission is not encrypted", "http_insecure")
        state.raise_score(HTTP_PENALTY)
        if features.has_flag("http_sensitive") or features.has_flag("gambling_site"):
            state.add_evidence("Sensitive operations over unencrypted HTTP", "http_critical")
            state.raise_score(HTTP_CRITICAL_PENALTY)

    async def _evaluate_hop(
        self, hop_url: str, html: Optional[str], text: Optional[str], state: ChainEvaluationState
    ) -> bool:
        """Evaluate one hop. Returns False when the chain must stop (allowlisted)."""
        features = await asyncio.to_thread(self.extractor.extract, hop_url, html, text)
        state.features.append(features)

        if self.is_allowlisted(features.host):
            logger.info("Allowlisted hop %s; stopping chain evaluation", features.host)
            state.whitelisted = True
            return False

        self._apply_protocol_penalty(features, state)

        aggregated = await asyncio.to_thread(self.aggregator.score, features)
        hop_score = aggregated.score
        # A quiet legitimate host carries no evidence into the chain.
        if aggregated.score > 0 or not aggregated.legitimate:
            for reason in aggregated.reasons:
                state.add_evidence(reason, "")
            for tag in aggregated.tags:
                state.add_evidence("", tag)

        age, brand = await asyncio.gather(
            self._domain_age(features.host), self._logo_brand(hop_url, html)
        )
        if age is not None and 0 <= age < YOUNG_DOMAIN_DAYS:
            state.add_evidence(f"Newly created domain: young domain ({age} days old)", "young_domain")
            hop_score = clamp01(hop_score + YOUNG_DOMAIN_BOOST)

        if brand:
            official = self.config.official_brand_domains.get(brand)
            if official and not host_matches(features.host, [official]):
                state.add_evidence(f"Cloned logo: {brand} logo on unofficial domain", "cloned_logo")
                hop_score = clamp01(hop_score + CLONED_LOGO_BOOST)

        state.raise_score(hop_score)
        return True

    # ------------------------------------------------------------------
    # Floors and caps
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_floor_cap(risk: int, features: Optional[FeatureSet], has_signal: bool) -> int:
        if features is None:
            return risk
        if host_matches(features.host, EDUCATION_GOVERNMENT_SUFFIXES):
            return min(risk, EDUCATION_GOVERNMENT_CAP)
        if not features.is_http:
            return risk
        if features.has_flag("gambling_site"):
            return max(risk, GAMBLING_HTTP_FLOOR)
        if features.has_flag("http_sensitive"):
            return max(risk, SENSITIVE_HTTP_FLOOR)
        if has_signal:
            return max(risk, SIGNAL_HTTP_FLOOR)
        return risk

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def score(self, url: str, html: Optional[str] = None, text: Optional[str] = None) -> ChainResult:
        """Score ``url`` with the page content supplied by the caller. Never raises."""
        started = time.perf_counter()
        state = ChainEvaluationState()
        state.advance(ChainState.PER_HOP_EVALUATION)

        hops = await self._trace(url)
        for hop_url in hops:
            state.hops.append(hop_url)
            if not await self._evaluate_hop(hop_url, html, text, state):
                break

        if state.whitelisted:
            state.advance(ChainState.DONE)
            result = ChainResult(
                url=url,
                tags=["whitelisted"],
                confidence=100,
                hops=state.hops,
                reasoning=insights.decision_reasoning(0.0, 0.0, 0.0),
                whitelisted=True,
            )
            return self._finish(result, started)

        state.advance(ChainState.FUSION)
        rule_score = state.max_score
        ml_score = 0.0
        last = state.last_features
        if state.has_signal and last is not None:
            ml_score = await asyncio.to_thread(self.classifier.score, last.to_vector())
        if ml_score > ML_REASON_THRESHOLD:
            state.add_evidence(f"ML model confidence {ml_score:.2f}", "")
        if ml_score > ML_HIGH_CONFIDENCE:
            state.add_evidence("", "ml_high_confidence")
        combined = fuse(rule_score, ml_score)
        risk = to_risk(combined)

        state.advance(ChainState.FLOOR_CAP)
        risk = self._apply_floor_cap(risk, last, state.has_signal)
        if risk > 0 and not state.reasons:
            state.add_evidence(GENERIC_REASON, "generic_risk")
        state.advance(ChainState.DONE)

        threat_type = insights.determine_threat_type(risk, state.tags, last)
        result = ChainResult(
            url=url,
            risk=risk,
            reasons=state.reasons,
            tags=state.tags,
            threat_type=threat_type,
            confidence=int(max(ml_score, rule_score) * 100),
            recommendations=insights.recommendations(risk, threat_type, last, state.tags),
            hops=state.hops,
            ml_score=ml_score,
            rule_score=rule_score,
            reasoning=insights.decision_reasoning(rule_score, ml_score, combined),
            attack_vectors=insights.attack_vectors(state.tags),
            affected_regions=insights.affected_regions(last),
        )
        return self._finish(result, started)

    @staticmethod
    def _finish(result: ChainResult, started: float) -> ChainResult:
        result.processing_time_ms = int((time.perf_counter() - started) * 1000)
        metrics.record_result(result.threat_level.name, result.tags)
        logger.info(
            "Scored %s: risk=%d type=%s hops=%d (%dms)",
            result.url,
            result.risk,
            result.threat_type,
            len(result.hops),
            result.processing_time_ms,
        )
        return result
