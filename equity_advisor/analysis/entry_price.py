"""Entry-price calculator.

Derives safety-margin entry tiers off the composite fair value, then
risk-, market- and industry-adjusted variants with a short reasoning trail.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional

from equity_advisor.analysis.recommendation import normalize_market_condition
from equity_advisor.config import section
from equity_advisor.errors import InsufficientValuationDataError
from equity_advisor.models import EntryPriceResult, FairBand, HealthReport, ValuationResult
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("entry_price")

DEFAULT_ENTRY_CONFIG: Dict[str, Dict[str, float]] = {
    "safety_margins": {"conservative": 0.15, "moderate": 0.10, "aggressive": 0.05},
    "risk_adjustments": {"low": 1.0, "medium": 0.95, "high": 0.90},
    "market_adjustments": {"bullish": 1.05, "neutral": 1.0, "bearish": 0.95},
    "industry_adjustments": {
        "technology": 1.05,
        "semiconductor": 1.08,
        "software": 1.06,
        "financial": 0.95,
        "banking": 0.93,
        "insurance": 0.94,
        "consumer": 1.0,
        "retail": 1.0,
        "food": 1.0,
        "energy": 0.92,
        "oil": 0.90,
        "renewable": 0.95,
        "healthcare": 1.02,
        "biotech": 1.04,
        "pharmaceutical": 1.01,
    },
}

_LOW_RISK_HEALTH = 85
_MEDIUM_RISK_HEALTH = 65
_DEVIATION_PCT = 10.0

_RISK_NOTES = {
    "low": "Low risk (health score {score}): moderate entry applied in full",
    "medium": "Medium risk (health score {score}): entry trimmed by the medium-risk factor",
    "high": "High risk (health score {score}): entry trimmed by the high-risk factor",
}
_MARKET_NOTES = {
    "bullish": "Bullish market: a slightly higher entry is acceptable",
    "neutral": "Neutral market: no regime adjustment",
    "bearish": "Bearish market: wait for a lower entry",
}


def _merge(base: Dict[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **{str(k).lower(): float(v) for k, v in value.items()}}
        else:
            merged[key] = value
    return merged


class EntryPriceCalculator:
    """Computes recommended entry prices from a composite fair value."""

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        overrides = config if config is not None else section("entry_price")
        self._config = _merge(DEFAULT_ENTRY_CONFIG, overrides or {})

    # ------------------------------------------------------------------
    # Config management
    # ------------------------------------------------------------------

    def get_config(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def update_config(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = [k for k in updates if k not in DEFAULT_ENTRY_CONFIG]
        if unknown:
            raise ValueError(f"Unknown entry-price config section(s): {', '.join(unknown)}")
        self._config = _merge(self._config, updates)
        return self.get_config()

    def add_industry_adjustment(self, industry: str, multiplier: float) -> None:
        if multiplier <= 0:
            raise ValueError(f"Industry multiplier must be positive, got {multiplier}")
        table = dict(self._config["industry_adjustments"])
        table[industry.lower()] = float(multiplier)
        self._config = {**self._config, "industry_adjustments": table}

    def remove_industry_adjustment(self, industry: str) -> bool:
        table = dict(self._config["industry_adjustments"])
        if table.pop(industry.lower(), None) is None:
            return False
        self._config = {**self._config, "industry_adjustments": table}
        return True

    def industry_multiplier(self, industry: Optional[str]) -> Optional[float]:
        if not industry:
            return None
        return self._config["industry_adjustments"].get(industry.lower())

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    @staticmethod
    def risk_tier(health_score: float) -> str:
        if health_score >= _LOW_RISK_HEALTH:
            return "low"
        if health_score >= _MEDIUM_RISK_HEALTH:
            return "medium"
        return "high"

    def calculate_entry_price(
        self,
        symbol: str,
        valuation_result: ValuationResult,
        health_report: HealthReport,
        market_condition: str = "NEUTRAL",
        industry: Optional[str] = None,
    ) -> EntryPriceResult:
        """Entry tiers for *symbol*.

        Raises
        ------
        InsufficientValuationDataError
            If the valuation result carries no composite fair value.
        """
        band = valuation_result.composite_fair
        if band is None or band.mid is None or band.mid <= 0:
            logger.error("Entry price unavailable for %s: no composite fair value", symbol)
            raise InsufficientValuationDataError(symbol)

        condition = normalize_market_condition(market_condition).lower()
        conf = self._config
        fair = band.mid
        multiplier = self.industry_multiplier(industry)
        scale = multiplier if multiplier is not None else 1.0

        recommended = {
            tier: fair * (1 - margin) * scale
            for tier, margin in conf["safety_margins"].items()
        }
        base = fair * (1 - conf["safety_margins"]["moderate"])
        tier = self.risk_tier(health_report.overall_score)
        risk_adjusted = {
            level: base * factor * scale
            for level, factor in conf["risk_adjustments"].items()
        }
        market_adjusted = {
            regime: base * factor * scale
            for regime, factor in conf["market_adjustments"].items()
        }

        confidence = round(
            0.4 * valuation_result.confidence
            + 0.4 * health_report.confidence
            + 0.2 * valuation_result.data_quality,
            2,
        )

        reasoning = self._reasoning(
            valuation_result.price, band, recommended, tier, health_report.overall_score,
            condition, industry, multiplier,
        )

        logger.info(
            "Entry price %s: fair=%.2f moderate=%.2f risk=%s market=%s",
            symbol, fair, recommended["moderate"], tier, condition,
        )

        return EntryPriceResult(
            symbol=symbol,
            current_price=valuation_result.price,
            fair_value=FairBand(low=band.low, mid=band.mid, high=band.high),
            recommended_entry_price=recommended,
            risk_adjusted_price=risk_adjusted,
            market_adjusted_price=market_adjusted,
            risk_level=tier,
            confidence=confidence,
            reasoning=reasoning,
        )

    @staticmethod
    def _reasoning(
        price: Optional[float],
        band: FairBand,
        recommended: Mapping[str, float],
        tier: str,
        health_score: float,
        condition: str,
        industry: Optional[str],
        multiplier: Optional[float],
    ) -> List[str]:
        reasons: List[str] = []
        moderate = recommended["moderate"]
        bounds = [b for b in (band.low, band.mid, band.high) if b is not None]
        low, high = min(bounds), max(bounds)
        has_price = price is not None and price > 0

        if not has_price:
            reasons.append("Current price unavailable; entry levels derived from fair value only")
        elif price < low:
            reasons.append(f"Price {price:.2f} is below the fair-value low {low:.2f}; attractive entry")
        elif price > high:
            reasons.append(f"Price {price:.2f} is above the fair-value high {high:.2f}; overvalued")
        else:
            reasons.append(f"Price {price:.2f} is inside the fair-value band {low:.2f}-{high:.2f}")

        reasons.append(_RISK_NOTES[tier].format(score=health_score))
        reasons.append(_MARKET_NOTES[condition])

        if multiplier is not None and industry:
            if multiplier > 1:
                reasons.append(f"{industry} industry tolerates a higher entry (x{multiplier:.2f})")
            elif multiplier < 1:
                reasons.append(f"{industry} industry calls for a more conservative entry (x{multiplier:.2f})")

        if has_price:
            diff_pct = (price - moderate) / price * 100
            if diff_pct > _DEVIATION_PCT:
                reasons.append(f"Price is {diff_pct:.1f}% above the moderate entry; wait for a pullback")
            elif diff_pct < -_DEVIATION_PCT:
                reasons.append(f"Price is {abs(diff_pct):.1f}% below the moderate entry; consider buying in tranches")
            else:
                reasons.append("Price is near the moderate entry; a measured position is reasonable")
        return reasons
