"""Tests for rule aggregation."""

import time

import pytest

from phishradar.analyzer.aggregator import RuleAggregator, build_registry
from phishradar.analyzer.features import FeatureExtractor
from phishradar.analyzer.metrics import metrics
from phishradar.analyzer.rules import BaseRule, RuleOutcome
from phishradar.utils.domains import to_ascii_host


class FixedRule(BaseRule):
    """Always fires with a fixed score."""

    family = "test"

    def __init__(self, name, score, tag="fixed"):
        self.name = name
        self.score = score
        self.tag = tag

    def evaluate(self, features):
        return self.hit(self.score, f"{self.name} fired", self.tag)


class ExplodingRule(BaseRule):
    name = "exploding"
    family = "test"

    def evaluate(self, features):
        raise RuntimeError("boom")


class SlowRule(BaseRule):
    name = "slow"
    family = "test"

    def evaluate(self, features):
        time.sleep(0.5)
        return self.hit(1.0, "too late", "slow")


@pytest.fixture(scope="module")
def extractor():
    return FeatureExtractor()


def _aggregator(rules=(), workers=4, timeout=2.0):
    registry = build_registry(rules=list(rules))
    return RuleAggregator(registry=registry, max_workers=workers, timeout=timeout)


class TestAggregation:
    """Max semantics and bounds."""

    @pytest.mark.parametrize(
        "url,text",
        [
            ("https://example.org/", None),
            ("http://vietcombank-login.xyz/verify/otp", "urgent bank otp verification password"),
            ("http://nohu-casino.club/", "đặt cược nổ hũ"),
            ("", None),
        ],
    )
    def test_score_within_bounds(self, extractor, url, text):
        with RuleAggregator() as aggregator:
            result = aggregator.score(extractor.extract(url, text=text))
        assert 0.0 <= result.score <= 1.0

    def test_adding_positive_rule_never_lowers_score(self, extractor):
        features = extractor.extract("https://random-shop.xyz/login", text="verify")
        base = _aggregator([FixedRule("a", 0.2)])
        more = _aggregator([FixedRule("a", 0.2), FixedRule("b", 0.1), FixedRule("c", 0.5)])
        try:
            assert more.score(features).score >= base.score(features).score
        finally:
            base.close()
            more.close()

    def test_injected_rules_combine_by_max_not_sum(self, extractor):
        features = extractor.extract("https://example.org/")
        aggregator = _aggregator([FixedRule("a", 0.3), FixedRule("b", 0.3), FixedRule("c", 0.3)])
        try:
            assert aggregator.score(features).score == pytest.approx(0.3)
        finally:
            aggregator.close()

    def test_convergence_bonus_added_to_override_max(self, extractor):
        # keyword density 0.6 + urgency/banking 0.5 -> 0.6, plus the 0.15 bonus
        features = extractor.extract("http://example.org/", text="urgent verify your bank login")
        aggregator = _aggregator([])
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert result.score == pytest.approx(0.75)
        assert "multi_threat" in result.tags

    def test_evidence_in_registry_order(self, extractor):
        features = extractor.extract("https://example.org/")
        aggregator = _aggregator([FixedRule("first", 0.2, "t1"), FixedRule("second", 0.4, "t2")])
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert result.tags == ["t1", "t2"]
        assert result.reasons == ["first fired", "second fired"]


class TestLegitimateDomains:
    """Legitimate short-circuit."""

    def test_legitimate_without_strong_phrase_is_zero(self, extractor):
        features = extractor.extract("https://www.techcombank.com.vn/", text="verify your otp login")
        with RuleAggregator() as aggregator:
            result = aggregator.score(features)
        assert result.score == 0.0
        assert result.legitimate
        assert result.reasons == []
        assert result.tags == ["legitimate_domain"]

    def test_injected_rules_still_run_but_are_capped(self, extractor):
        features = extractor.extract("https://www.techcombank.com.vn/")
        aggregator = _aggregator([FixedRule("loud", 0.9)])
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert result.score == pytest.approx(0.3)
        assert result.reasons == ["loud fired"]
        assert result.tags == ["legitimate_domain", "fixed"]

    def test_builtin_overrides_are_skipped(self, extractor):
        features = extractor.extract("https://www.techcombank.com.vn/login", text="verify your otp login")
        aggregator = _aggregator([])
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert result.score == 0.0
        assert "keyword_density" not in result.tags

    def test_punycode_under_locale_suffix(self, extractor):
        host = to_ascii_host("vietcombаnk.com.vn")
        features = extractor.extract(f"https://{host}/")
        with RuleAggregator() as aggregator:
            result = aggregator.score(features)
        assert result.legitimate
        assert "punycode" in result.tags
        assert result.score == pytest.approx(0.3)

    def test_fake_bank_pattern_under_locale_suffix(self, extractor):
        features = extractor.extract("https://vietcom-bank.com.vn/verify/otp", text="nhap ma otp")
        with RuleAggregator() as aggregator:
            result = aggregator.score(features)
        assert "fake_vietnamese_bank" in result.tags
        assert 0.0 < result.score <= 0.3

    def test_legitimate_with_strong_phrase_is_capped(self, extractor):
        features = extractor.extract("https://docs.google.com/forms/x", text="Click here to verify your account")
        aggregator = _aggregator([FixedRule("loud", 0.9)])
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert 0.2 <= result.score <= 0.3
        assert "legitimate_but_suspicious" in result.tags

    def test_legitimate_with_strong_phrase_has_base_score(self, extractor):
        features = extractor.extract("https://docs.google.com/", text="account will be suspended")
        aggregator = _aggregator([])
        try:
            assert aggregator.score(features).score == pytest.approx(0.2)
        finally:
            aggregator.close()


class TestRuleFailures:
    """Failing and slow rules contribute nothing."""

    def test_exploding_rule_is_isolated(self, extractor):
        features = extractor.extract("https://example.org/")
        aggregator = _aggregator([ExplodingRule(), FixedRule("ok", 0.4)])
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert result.score == pytest.approx(0.4)
        assert result.failed_rules == ["exploding"]
        assert metrics.get_summary()["rules"]["exploding"]["failures"] == 1

    def test_exploding_rule_inline(self, extractor):
        features = extractor.extract("https://example.org/")
        aggregator = _aggregator([ExplodingRule(), FixedRule("ok", 0.4)], workers=1)
        assert aggregator.score(features).score == pytest.approx(0.4)

    def test_timed_out_rule_contributes_zero(self, extractor):
        features = extractor.extract("https://example.org/")
        aggregator = _aggregator([SlowRule(), FixedRule("fast", 0.2)], timeout=0.1)
        try:
            result = aggregator.score(features)
        finally:
            aggregator.close()
        assert result.score == pytest.approx(0.2)
        assert "slow" in result.failed_rules
        assert metrics.get_summary()["rules"]["slow"]["timeouts"] == 1

    def test_out_of_range_scores_are_clamped(self, extractor):
        class Wild(BaseRule):
            name = "wild"
            family = "test"

            def evaluate(self, features):
                return RuleOutcome(score=7.0, reason="wild", tag="wild")

        aggregator = _aggregator([Wild()])
        try:
            assert aggregator.score(extractor.extract("https://example.org/")).score == 1.0
        finally:
            aggregator.close()
