"""Tests for the classifier and score fusion."""

import itertools

import pytest

from phishradar.analyzer import classifier as classifier_module
from phishradar.analyzer.classifier import Classifier
from phishradar.analyzer.fusion import fuse, to_risk


class FakeModel:
    """Stands in for a persisted estimator."""

    def __init__(self, probability=0.9):
        self.probability = probability
        self.calls = []

    def predict_proba(self, rows):
        self.calls.append(rows)
        return [[1 - self.probability, self.probability]]


class BrokenModel:
    def predict_proba(self, rows):
        raise ValueError("shape mismatch")


SUSPICIOUS = [60.0, 1.0, 1.0, 4.0, 1.0, 1.0, 1.0]
QUIET = [20.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0]


class TestFallback:
    """Deterministic weighted sum."""

    def test_fallback_weights(self):
        # 60/200 capped at 0.3, 0.2, 0.15, 0.4 capped at 0.15, 0.1, 0.25, 0.2
        assert Classifier.fallback_score(SUSPICIOUS) == pytest.approx(1.0)
        assert Classifier.fallback_score(QUIET) == pytest.approx(0.1)

    def test_fallback_is_deterministic(self):
        clf = Classifier()
        assert clf.score(SUSPICIOUS) == clf.score(SUSPICIOUS)
        assert not clf.model_loaded

    def test_empty_vector(self):
        assert Classifier().score([]) == 0.0

    def test_short_vector_is_padded(self):
        assert Classifier.fallback_score([200.0]) == pytest.approx(0.3)

    def test_explain_sorted_by_contribution(self):
        explained = Classifier().explain(SUSPICIOUS)
        values = [item["contribution"] for item in explained]
        assert values == sorted(values, reverse=True)
        assert explained[0]["feature"] == "url_length"


class TestModelBacked:
    """Injected and loaded models."""

    def test_injected_model(self):
        model = FakeModel(0.9)
        clf = Classifier(model=model)
        assert clf.model_loaded
        assert clf.score(QUIET) == pytest.approx(0.9)
        assert len(model.calls) == 1

    def test_inference_failure_falls_back(self):
        clf = Classifier(model=BrokenModel())
        assert clf.score(QUIET) == pytest.approx(Classifier.fallback_score(QUIET))

    def test_missing_model_file(self, tmp_path):
        clf = Classifier(model_path=tmp_path / "missing.joblib")
        assert not clf.model_loaded

    def test_joblib_load(self, tmp_path, monkeypatch):
        path = tmp_path / "model.joblib"
        path.write_bytes(b"not really a model")
        monkeypatch.setattr(classifier_module.joblib, "load", lambda p: FakeModel(0.7))
        clf = Classifier(model_path=path)
        assert clf.model_loaded
        assert clf.score(QUIET) == pytest.approx(0.7)

    def test_corrupt_model_file(self, tmp_path, monkeypatch):
        path = tmp_path / "model.joblib"
        path.write_bytes(b"garbage")

        def fail(p):
            raise EOFError("truncated")

        monkeypatch.setattr(classifier_module.joblib, "load", fail)
        assert not Classifier(model_path=path).model_loaded

    def test_object_without_predict_proba(self, tmp_path, monkeypatch):
        path = tmp_path / "model.joblib"
        path.write_bytes(b"x")
        monkeypatch.setattr(classifier_module.joblib, "load", lambda p: object())
        assert not Classifier(model_path=path).model_loaded


class TestFusion:
    """Rule/model fusion."""

    GRID = [0.0, 0.1, 0.25, 0.5, 0.75, 0.9, 1.0]

    def test_never_below_rule_score(self):
        for rule, ml in itertools.product(self.GRID, self.GRID):
            assert fuse(rule, ml) >= rule

    def test_formula(self):
        assert fuse(0.5, 1.0) == pytest.approx(0.7)
        assert fuse(0.5, 0.0) == pytest.approx(0.5)
        assert fuse(0.0, 0.5) == pytest.approx(0.2)

    def test_inputs_are_clamped(self):
        assert fuse(1.5, -1.0) == 1.0

    def test_risk_rounding(self):
        assert to_risk(0.0) == 0
        assert to_risk(0.554) == 55
        assert to_risk(0.556) == 56
        assert to_risk(1.0) == 100
