"""Phishing probability classifier.

Loads a pre-trained binary model persisted with joblib (any estimator exposing
``predict_proba``, e.g. a scikit-learn pipeline trained offline on the vector
described by ``VECTOR_FEATURES``). When no model is available, or inference
fails, a deterministic weighted sum over the same vector is used instead.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Sequence

import joblib
import numpy as np

from .features import VECTOR_FEATURES
from .rules import clamp01

logger = logging.getLogger(__name__)

# (weight, cap) per vector position; cap None means weight * value as-is.
FALLBACK_WEIGHTS: dict[str, tuple[float, Optional[float]]] = {
    "url_length": (1 / 200, 0.3),
    "has_at": (0.2, None),
    "has_hyphen": (0.15, None),
    "digit_count": (1 / 10, 0.15),
    "is_http": (0.1, None),
    "has_otp_keyword": (0.25, None),
    "has_bank_keyword": (0.2, None),
}


class Classifier:
    """Probability that a feature vector describes a malicious URL. Never raises."""

    def __init__(self, model_path: Optional[Path] = None, model: Any = None):
        self.model_path = Path(model_path) if model_path else None
        self._model = model
        self._lock = threading.Lock()
        if self._model is None and self.model_path is not None:
            self._model = self._load(self.model_path)

    @staticmethod
    def _load(path: Path) -> Any:
        if not path.exists():
            logger.info("Classifier model not found at %s; using heuristic fallback", path)
            return None
        try:
            model = joblib.load(path)
        except Exception as exc:
            logger.warning("Failed to load classifier model %s: %s; using fallback", path, exc)
            return None
        if not hasattr(model, "predict_proba"):
            logger.warning("Model at %s has no predict_proba; using fallback", path)
            return None
        logger.info("Classifier model loaded from %s", path)
        return model

    @property
    def model_loaded(self) -> bool:
        return self._model is not None

    @staticmethod
    def _normalize(vector: Sequence[float]) -> list[float]:
        values = [float(v) for v in list(vector)[: len(VECTOR_FEATURES)]]
        values += [0.0] * (len(VECTOR_FEATURES) - len(values))
        return values

    @staticmethod
    def fallback_score(vector: Sequence[float]) -> float:
        """Deterministic weighted sum over the classifier vector."""
        return clamp01(sum(Classifier.contributions(vector).values()))

    @staticmethod
    def contributions(vector: Sequence[float]) -> dict[str, float]:
        values = Classifier._normalize(vector)
        result: dict[str, float] = {}
        for name, value in zip(VECTOR_FEATURES, values):
            weight, cap = FALLBACK_WEIGHTS[name]
            contribution = max(0.0, value) * weight
            if cap is not None:
                contribution = min(contribution, cap)
            result[name] = round(contribution, 4)
        return result

    def score(self, vector: Sequence[float]) -> float:
        if vector is None or len(vector) == 0:
            return 0.0
        if self._model is None:
            return self.fallback_score(vector)
        try:
            features = np.asarray([self._normalize(vector)], dtype=float)
            with self._lock:
                proba = self._model.predict_proba(features)
            return clamp01(float(np.asarray(proba)[0][-1]))
        except Exception as exc:
            logger.warning("Classifier inference failed, using fallback: %s", exc)
            return self.fallback_score(vector)

    def explain(self, vector: Sequence[float]) -> list[dict]:
        """Per-feature contributions, strongest first."""
        ranked = sorted(self.contributions(vector).items(), key=lambda x: abs(x[1]), reverse=True)
        return [{"feature": name, "contribution": value} for name, value in ranked if value]
