"""Rule aggregation: legitimate-host cap, built-in overrides and injected rules."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Iterable, Optional

from ..config import Config
from ..utils.domains import host_matches
from ..utils.text import find_terms
from .features import FeatureSet
from .metrics import metrics
from .rules import BONUS, AggregatedScore, Rule, RuleOutcome, RuleRegistry, clamp01
from .rules_builtin import BUILTIN_RULES
from .rules_content import (
    BehavioralPressureRule,
    GamblingKeywordRule,
    SensitiveFormRule,
    ThreatPatternRule,
    UrgencyLanguageRule,
)
from .rules_domain import (
    BrandTyposquatRule,
    LexicalHostRule,
    PunycodeRule,
    SuspiciousTldRule,
    VietnameseBankingPhishingRule,
)
from .rules_transport import CrossOriginFormRule, HttpProtocolRule, SecurityProtocolRule

logger = logging.getLogger(__name__)

LEGITIMATE_SUSPICIOUS_SCORE = 0.2
LEGITIMATE_CAP = 0.3


def default_rules(config: Optional[Config] = None) -> list[Rule]:
    """The standard injected rule set."""
    config = config or Config()
    return [
        PunycodeRule(),
        SuspiciousTldRule(),
        BrandTyposquatRule(config),
        LexicalHostRule(),
        VietnameseBankingPhishingRule(config),
        GamblingKeywordRule(),
        UrgencyLanguageRule(),
        BehavioralPressureRule(),
        ThreatPatternRule(),
        SensitiveFormRule(),
        HttpProtocolRule(),
        SecurityProtocolRule(),
        CrossOriginFormRule(),
    ]


def build_registry(
    config: Optional[Config] = None, rules: Optional[Iterable[Rule]] = None
) -> RuleRegistry:
    """Registry with every built-in override plus ``rules`` (defaults to ``default_rules``)."""
    registry = RuleRegistry()
    for rule_cls in BUILTIN_RULES:
        registry.register(rule_cls(), builtin=True)
    for rule in default_rules(config) if rules is None else rules:
        registry.register(rule)
    return registry


class RuleAggregator:
    """
    Scores a FeatureSet against every registered rule.

    Rules are evaluated concurrently on a bounded worker pool and joined before
    aggregation; a rule that raises or misses the per-request deadline
    contributes nothing. Aggregation uses max semantics throughout so the score
    never decreases when another positive rule is added.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[RuleRegistry] = None,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.config = config or Config()
        self.registry = registry or build_registry(self.config)
        self.max_workers = max_workers if max_workers is not None else self.config.rule_workers
        self.timeout = timeout if timeout is not None else self.config.rule_timeout
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=max(1, self.max_workers), thread_name_prefix="rule"
                )
            return self._executor

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

    def __enter__(self) -> "RuleAggregator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def is_legitimate(self, features: FeatureSet) -> bool:
        return host_matches(features.host, self.config.legitimate_domains)

    def has_very_strong_phrase(self, features: FeatureSet) -> bool:
        return bool(find_terms(features.combined_text, self.config.very_strong_phrases))

    def _run_rules(self, rules: list[Rule], features: FeatureSet, result: AggregatedScore) -> list[RuleOutcome]:
        """Evaluate ``rules`` and return their outcomes in registry order."""
        if not rules:
            return []
        if self.max_workers <= 1:
            return [self._evaluate_one(rule, features, result) for rule in rules]

        executor = self._get_executor()
        futures: list[tuple[Rule, Future]] = [
            (rule, executor.submit(rule.evaluate, features)) for rule in rules
        ]
        wait([f for _, f in futures], timeout=self.timeout)

        outcomes: list[RuleOutcome] = []
        for rule, future in futures:
            if not future.done():
                future.cancel()
                logger.warning("Rule %s timed out for %s", rule.name, features.host or features.url)
                metrics.record_rule_timeout(rule.name)
                result.failed_rules.append(rule.name)
                outcomes.append(RuleOutcome(rule=rule.name))
                continue
            try:
                outcomes.append(self._checked(rule, future.result(), features))
            except Exception as exc:
                self._record_failure(rule, features, exc, result)
                outcomes.append(RuleOutcome(rule=rule.name))
        return outcomes

    def _evaluate_one(self, rule: Rule, features: FeatureSet, result: AggregatedScore) -> RuleOutcome:
        try:
            return self._checked(rule, rule.evaluate(features), features)
        except Exception as exc:
            self._record_failure(rule, features, exc, result)
            return RuleOutcome(rule=rule.name)

    @staticmethod
    def _checked(rule: Rule, outcome: RuleOutcome, features: FeatureSet) -> RuleOutcome:
        if not isinstance(outcome, RuleOutcome):
            raise TypeError(f"expected RuleOutcome, got {type(outcome).__name__}")
        if outcome.fired:
            metrics.record_rule_hit(rule.name, features.host)
        if not outcome.rule or outcome.score != clamp01(outcome.score):
            return RuleOutcome(
                score=clamp01(outcome.score),
                reason=outcome.reason,
                tag=outcome.tag,
                rule=outcome.rule or rule.name,
            )
        return outcome

    @staticmethod
    def _record_failure(rule: Rule, features: FeatureSet, exc: Exception, result: AggregatedScore) -> None:
        logger.warning("Rule %s failed for %s: %s", rule.name, features.host or features.url, exc)
        metrics.record_rule_failure(rule.name)
        result.failed_rules.append(rule.name)

    def score(self, features: FeatureSet) -> AggregatedScore:
        """Aggregate every rule into one score in [0, 1]."""
        result = AggregatedScore()
        builtin = self.registry.builtin
        injected = self.registry.injected

        legitimate = self.is_legitimate(features)
        if legitimate:
            result.legitimate = True
            result.add_evidence("", "legitimate_domain")
            base = 0.0
            if self.has_very_strong_phrase(features):
                base = LEGITIMATE_SUSPICIOUS_SCORE
                result.add_evidence(
                    "Legitimate domain with strongly suspicious content", "legitimate_but_suspicious"
                )
            # Built-in overrides are skipped; injected rules still run and are capped below.
            outcomes = self._run_rules(injected, features, result)
            builtin_outcomes: list[RuleOutcome] = []
        else:
            outcomes = self._run_rules(builtin + injected, features, result)
            builtin_outcomes = outcomes[: len(builtin)]
            outcomes = outcomes[len(builtin):]

            override_max = 0.0
            bonus = 0.0
            for rule, outcome in zip(builtin, builtin_outcomes):
                if not outcome.fired:
                    continue
                if getattr(rule, "kind", None) == BONUS:
                    bonus += outcome.score
                else:
                    override_max = max(override_max, outcome.score)
            base = clamp01(override_max + bonus)

        rules_total = max((o.score for o in outcomes), default=0.0)
        final = clamp01(max(base, rules_total))
        if legitimate:
            final = min(final, LEGITIMATE_CAP)

        for outcome in builtin_outcomes + outcomes:
            result.outcomes.append(outcome)
            if outcome.fired:
                result.add_evidence(outcome.reason, outcome.tag)
        result.score = final
        return result
