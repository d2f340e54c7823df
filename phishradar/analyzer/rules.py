"""Rule-based building blocks for URL risk scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Protocol

from .features import FeatureSet

# Rule kinds. Overrides and signals contribute through max; bonuses are added
# on top of the override maximum when they fire.
OVERRIDE = "override"
SIGNAL = "signal"
BONUS = "bonus"


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class RuleOutcome:
    """Outcome of a single rule evaluation."""

    score: float = 0.0
    reason: str = ""
    tag: str = ""
    rule: str = ""

    @property
    def fired(self) -> bool:
        return self.score > 0


@dataclass
class AggregatedScore:
    """Per-hop aggregation of every rule outcome."""

    score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    legitimate: bool = False
    outcomes: list[RuleOutcome] = field(default_factory=list)
    failed_rules: list[str] = field(default_factory=list)

    def add_evidence(self, reason: str, tag: str) -> None:
        """Append a reason/tag pair keeping both lists duplicate-free."""
        if reason and reason not in self.reasons:
            self.reasons.append(reason)
        if tag and tag not in self.tags:
            self.tags.append(tag)


class Rule(Protocol):
    """Interface for scoring rules."""

    name: str
    family: str
    kind: str

    def evaluate(self, features: FeatureSet) -> RuleOutcome:  # pragma: no cover - interface
        ...


class BaseRule:
    """Convenience base: subclasses implement ``evaluate`` and use ``hit``/``miss``."""

    name = "rule"
    family = "generic"
    kind = SIGNAL

    def hit(self, score: float, reason: str, tag: str) -> RuleOutcome:
        return RuleOutcome(score=clamp01(score), reason=reason, tag=tag, rule=self.name)

    def miss(self) -> RuleOutcome:
        return RuleOutcome(rule=self.name)

    def evaluate(self, features: FeatureSet) -> RuleOutcome:  # pragma: no cover - interface
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class _Best:
    """Track the strongest finding inside a multi-check rule."""

    def __init__(self) -> None:
        self.score = 0.0
        self.reason = ""
        self.tag = ""

    def offer(self, score: float, reason: str, tag: str) -> None:
        if score > self.score:
            self.score, self.reason, self.tag = score, reason, tag

    def outcome(self, rule: BaseRule) -> RuleOutcome:
        if self.score <= 0:
            return rule.miss()
        return rule.hit(self.score, self.reason, self.tag)


class RuleRegistry:
    """Ordered registry of rules, split into built-in overrides and injected rules."""

    def __init__(self) -> None:
        self._builtin: list[Rule] = []
        self._injected: list[Rule] = []

    def register(self, rule: Rule, *, builtin: bool = False) -> Rule:
        if any(r.name == rule.name for r in self):
            raise ValueError(f"Rule already registered: {rule.name}")
        (self._builtin if builtin else self._injected).append(rule)
        return rule

    def unregister(self, name: str) -> None:
        self._builtin = [r for r in self._builtin if r.name != name]
        self._injected = [r for r in self._injected if r.name != name]

    @property
    def builtin(self) -> list[Rule]:
        return list(self._builtin)

    @property
    def injected(self) -> list[Rule]:
        return list(self._injected)

    def names(self) -> list[str]:
        return [r.name for r in self]

    def __iter__(self) -> Iterator[Rule]:
        yield from self._builtin
        yield from self._injected

    def __len__(self) -> int:
        return len(self._builtin) + len(self._injected)
