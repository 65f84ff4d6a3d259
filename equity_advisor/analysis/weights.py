"""Category weights for the health score.

``ScoreWeightConfig`` is the one long-lived, shared piece of mutable state in
the pipeline.  Every update builds a complete normalized mapping first and
then swaps it in under a lock, so concurrent readers always see weights that
sum to 1.
"""

from __future__ import annotations

import copy
import threading
from typing import Dict, Mapping, Optional

from equity_advisor.config import section
from equity_advisor.models import CATEGORIES
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("weights")

DEFAULT_CATEGORY_WEIGHTS: Dict[str, float] = {
    "valuation": 0.20,
    "fundamentals": 0.20,
    "growth": 0.15,
    "quality": 0.15,
    "risk": 0.10,
    "technical": 0.10,
    "liquidity": 0.10,
}


def normalize_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """Clamp each category weight to [0, 1] and rescale to sum to 1.

    Categories missing from *weights* count as 0.  When every weight clamps
    to zero the categories share equally.
    """
    clamped = {
        cat: min(1.0, max(0.0, float(weights.get(cat, 0.0) or 0.0)))
        for cat in CATEGORIES
    }
    total = sum(clamped.values())
    if total <= 0:
        return {cat: 1.0 / len(CATEGORIES) for cat in CATEGORIES}
    return {cat: w / total for cat, w in clamped.items()}


class ScoreWeightConfig:
    """Normalized category weights plus per-industry additive adjustments."""

    def __init__(
        self,
        category_weights: Mapping[str, float] | None = None,
        industry_adjustments: Mapping[str, Mapping[str, float]] | None = None,
        settings: dict | None = None,
    ) -> None:
        conf = section("scoring") if settings is None else settings
        base = dict(DEFAULT_CATEGORY_WEIGHTS)
        base.update(category_weights if category_weights is not None else conf.get("category_weights") or {})
        adjustments = (
            industry_adjustments if industry_adjustments is not None
            else conf.get("industry_adjustments") or {}
        )

        self._lock = threading.Lock()
        self._weights: Dict[str, float] = normalize_weights(base)
        self._industry_adjustments: Dict[str, Dict[str, float]] = {
            str(k).lower(): {c: float(v) for c, v in (adj or {}).items() if c in CATEGORIES}
            for k, adj in adjustments.items()
        }

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def category_weights(self) -> Dict[str, float]:
        return dict(self._weights)

    def industry_adjustment(self, industry: str) -> Dict[str, float]:
        return dict(self._industry_adjustments.get(industry.lower(), {}))

    def get_effective_weights(self, industry: Optional[str] = None) -> Dict[str, float]:
        """Base weights plus the industry's additive adjustment, renormalized.

        Unknown or missing industries return the base weights.
        """
        weights = self._weights
        adjustments = self._industry_adjustments
        if not industry or industry.lower() not in adjustments:
            return dict(weights)
        adj = adjustments[industry.lower()]
        adjusted = {cat: weights[cat] + adj.get(cat, 0.0) for cat in CATEGORIES}
        return normalize_weights(adjusted)

    def get_config(self) -> dict:
        return {
            "category_weights": dict(self._weights),
            "industry_adjustments": copy.deepcopy(self._industry_adjustments),
        }

    # ------------------------------------------------------------------
    # Writes (compute, then swap)
    # ------------------------------------------------------------------

    def update_category_weights(self, updates: Mapping[str, float]) -> Dict[str, float]:
        """Merge *updates* into the current weights and renormalize."""
        unknown = [k for k in updates if k not in CATEGORIES]
        if unknown:
            raise ValueError(f"Unknown score categories: {', '.join(unknown)}")
        with self._lock:
            merged = {**self._weights, **{k: float(v) for k, v in updates.items()}}
            new_weights = normalize_weights(merged)
            self._weights = new_weights
        logger.debug("Category weights updated: %s", new_weights)
        return dict(new_weights)

    def set_industry_adjustment(self, industry: str, adjustments: Mapping[str, float]) -> None:
        """Merge additive adjustments for *industry* (case-insensitive)."""
        unknown = [k for k in adjustments if k not in CATEGORIES]
        if unknown:
            raise ValueError(f"Unknown score categories: {', '.join(unknown)}")
        key = industry.lower()
        with self._lock:
            table = copy.deepcopy(self._industry_adjustments)
            table[key] = {**table.get(key, {}), **{k: float(v) for k, v in adjustments.items()}}
            self._industry_adjustments = table
        logger.debug("Industry adjustment for %s: %s", key, table[key])

    def remove_industry_adjustment(self, industry: str) -> bool:
        key = industry.lower()
        with self._lock:
            if key not in self._industry_adjustments:
                return False
            table = copy.deepcopy(self._industry_adjustments)
            del table[key]
            self._industry_adjustments = table
        return True

    def reset(self) -> None:
        with self._lock:
            self._weights = normalize_weights(DEFAULT_CATEGORY_WEIGHTS)
            self._industry_adjustments = {}
