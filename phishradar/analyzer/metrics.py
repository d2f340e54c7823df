"""Scoring metrics tracking.

Provides insight into which rules fire and how often, enabling data-driven
tuning of rule weights and thresholds.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class RuleMetrics:
    """Metrics for a single rule."""

    hits: int = 0
    failures: int = 0
    timeouts: int = 0
    last_hit: Optional[datetime] = None
    hosts: set = field(default_factory=set)

    def record_hit(self, host: str) -> None:
        self.hits += 1
        self.last_hit = datetime.now()
        if len(self.hosts) < 1000:
            self.hosts.add(host)


class ScoringMetrics:
    """Thread-safe metrics collector for the scoring pipeline."""

    _instance: Optional["ScoringMetrics"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ScoringMetrics":
        """Singleton pattern for global metrics access."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._lock = threading.Lock()
        self._rules: dict[str, RuleMetrics] = defaultdict(RuleMetrics)
        self._levels: dict[str, int] = defaultdict(int)
        self._tags: dict[str, int] = defaultdict(int)
        self._collaborator_failures: dict[str, int] = defaultdict(int)
        self._total_requests: int = 0
        self._started: datetime = datetime.now()

    def record_rule_hit(self, rule: str, host: str) -> None:
        with self._lock:
            self._rules[rule].record_hit(host)

    def record_rule_failure(self, rule: str) -> None:
        with self._lock:
            self._rules[rule].failures += 1

    def record_rule_timeout(self, rule: str) -> None:
        with self._lock:
            self._rules[rule].timeouts += 1

    def record_collaborator_failure(self, collaborator: str) -> None:
        with self._lock:
            self._collaborator_failures[collaborator] += 1

    def record_result(self, level: str, tags: list[str]) -> None:
        """Record a completed scoring request."""
        with self._lock:
            self._total_requests += 1
            self._levels[level] += 1
            for tag in tags:
                self._tags[tag] += 1

    def get_summary(self) -> dict:
        """Get a summary of all metrics."""
        with self._lock:
            uptime = datetime.now() - self._started
            return {
                "uptime_seconds": int(uptime.total_seconds()),
                "total_requests": self._total_requests,
                "threat_levels": dict(self._levels),
                "top_tags": self._top(self._tags, 10),
                "collaborator_failures": dict(self._collaborator_failures),
                "rules": {
                    name: {
                        "hits": rule.hits,
                        "failures": rule.failures,
                        "timeouts": rule.timeouts,
                        "unique_hosts": len(rule.hosts),
                        "last_hit": rule.last_hit.isoformat() if rule.last_hit else None,
                    }
                    for name, rule in self._rules.items()
                },
            }

    def counters(self) -> dict[str, int]:
        """Flat numeric counters for text exposition."""
        with self._lock:
            data = {
                "requests_total": self._total_requests,
                "rule_failures_total": sum(r.failures for r in self._rules.values()),
                "rule_timeouts_total": sum(r.timeouts for r in self._rules.values()),
                "collaborator_failures_total": sum(self._collaborator_failures.values()),
            }
            for level, count in self._levels.items():
                data[f"threat_level_{level.lower()}"] = count
            return data

    @staticmethod
    def _top(counts: dict[str, int], n: int) -> list[dict]:
        ranked = sorted(counts.items(), key=lambda x: x[1], reverse=True)[:n]
        return [{"tag": tag[:50], "count": count} for tag, count in ranked]

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._rules.clear()
            self._levels.clear()
            self._tags.clear()
            self._collaborator_failures.clear()
            self._total_requests = 0
            self._started = datetime.now()


# Global instance
metrics = ScoringMetrics()
