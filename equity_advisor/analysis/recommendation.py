"""Recommendation synthesizer.

Blends the health score, the secondary analysis scores and the valuation
signal into a discrete action with risk level, horizon, sizing, target and
stop-loss.  A portfolio mode turns the same inputs into an allocation change.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import numpy as np

from equity_advisor.models import (
    Action,
    AnalysisScores,
    HealthReport,
    InvestmentRecommendation,
    MarketCondition,
    PortfolioRecommendation,
    PositionSize,
    Priority,
    RiskLevel,
    SectorOutlook,
    TimeHorizon,
    ValuationResult,
)
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("recommendation")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_COMPONENT_WEIGHTS = {
    "health": 0.4,
    "technical": 0.2,
    "fundamental": 0.3,
    "safety": 0.1,
}
_SIGNAL_MULTIPLIERS = {"CHEAP": 1.2, "FAIR": 1.0, "EXPENSIVE": 0.8}
_STOP_LOSS_FACTORS: Dict[str, float] = {"LOW": 0.95, "MEDIUM": 0.90, "HIGH": 0.85}
_MARKET_CONDITIONS = ("BULLISH", "NEUTRAL", "BEARISH")

_DEFAULT_TARGET_ALLOCATION = 0.10
_MIN_ALLOCATION = 0.05
_MAX_ALLOCATION = 0.25
_REBALANCE_BAND = 0.02


def normalize_market_condition(value: str | None) -> MarketCondition:
    condition = (value or "NEUTRAL").upper()
    if condition not in _MARKET_CONDITIONS:
        raise ValueError(f"market_condition must be one of {_MARKET_CONDITIONS}, got {value!r}")
    return condition  # type: ignore[return-value]


class RecommendationEngine:
    """Turns health, valuation and analysis scores into a recommendation."""

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    @staticmethod
    def composite_score(
        health: float,
        scores: AnalysisScores,
        signal: str,
    ) -> float:
        raw = (
            health * _COMPONENT_WEIGHTS["health"]
            + scores.technical_score * _COMPONENT_WEIGHTS["technical"]
            + scores.fundamental_score * _COMPONENT_WEIGHTS["fundamental"]
            + (100 - scores.risk_score) * _COMPONENT_WEIGHTS["safety"]
        )
        return float(np.clip(raw * _SIGNAL_MULTIPLIERS.get(signal, 1.0), 0, 100))

    @staticmethod
    def determine_action(composite: float, health: float, signal: str) -> Action:
        if health < 60:
            return "HOLD" if composite >= 70 else "SELL"
        if composite >= 85 and signal == "CHEAP" and health >= 80:
            return "STRONG_BUY"
        if composite >= 75 and signal in ("CHEAP", "FAIR"):
            return "BUY"
        if composite >= 60:
            return "HOLD"
        if composite >= 40:
            return "SELL"
        return "STRONG_SELL"

    @staticmethod
    def assess_risk_level(health: float, risk: float) -> RiskLevel:
        avg = (health + (100 - risk)) / 2
        if avg >= 80:
            return "LOW"
        if avg >= 60:
            return "MEDIUM"
        return "HIGH"

    @staticmethod
    def determine_time_horizon(health: float, fundamental: float) -> TimeHorizon:
        avg = (health + fundamental) / 2
        if avg >= 80:
            return "LONG"
        if avg >= 55:
            return "MEDIUM"
        return "SHORT"

    @staticmethod
    def determine_position_size(confidence: float, risk_level: RiskLevel) -> PositionSize:
        if confidence >= 0.8 and risk_level == "LOW":
            return "LARGE"
        if confidence >= 0.6 and risk_level != "HIGH":
            return "MEDIUM"
        return "SMALL"

    @staticmethod
    def sector_outlook(health: float, fundamental: float) -> SectorOutlook:
        avg = (health + fundamental) / 2
        if avg >= 75:
            return "POSITIVE"
        if avg >= 55:
            return "NEUTRAL"
        return "NEGATIVE"

    @staticmethod
    def _target_price(action: Action, valuation: ValuationResult) -> Optional[float]:
        band = valuation.composite_fair
        if band is None:
            return None
        if action == "STRONG_BUY":
            return band.high
        if action in ("BUY", "HOLD"):
            return band.mid
        return band.low

    @staticmethod
    def _stop_loss(risk_level: RiskLevel, valuation: ValuationResult) -> Optional[float]:
        band = valuation.composite_fair
        if band is None or band.low is None:
            return None
        return band.low * _STOP_LOSS_FACTORS[risk_level]

    @staticmethod
    def _reasoning(
        health: HealthReport,
        valuation: ValuationResult,
        scores: AnalysisScores,
    ) -> List[str]:
        reasons: List[str] = []
        score = health.overall_score
        if score >= 80:
            reasons.append(f"Strong financial health ({score}/100)")
        elif score >= 60:
            reasons.append(f"Adequate financial health ({score}/100)")
        else:
            reasons.append(f"Weak financial health ({score}/100)")

        band = valuation.composite_fair
        if band is not None and band.mid is not None and (valuation.price or 0) <= 0:
            reasons.append(
                f"Valuation signal {valuation.signal}: price unavailable, "
                f"composite fair value {band.mid:.2f}"
            )
        elif band is not None and band.mid is not None:
            reasons.append(
                f"Valuation signal {valuation.signal}: price {valuation.price:.2f} "
                f"vs composite fair value {band.mid:.2f}"
            )
        else:
            reasons.append(f"Valuation signal {valuation.signal}: no composite fair value available")

        if scores.technical_score >= 75:
            reasons.append("Technical momentum is positive")
        elif scores.technical_score < 50:
            reasons.append("Technical momentum is weak")

        if scores.risk_score <= 30:
            reasons.append("Risk profile is low")
        elif scores.risk_score >= 70:
            reasons.append("Risk profile is elevated; size positions cautiously")
        return reasons

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate_recommendation(
        self,
        symbol: str,
        health_report: HealthReport,
        valuation_result: ValuationResult,
        analysis_scores: AnalysisScores,
        market_condition: str = "NEUTRAL",
    ) -> InvestmentRecommendation:
        condition = normalize_market_condition(market_condition)
        health = float(health_report.overall_score)
        signal = valuation_result.signal

        composite = self.composite_score(health, analysis_scores, signal)
        action = self.determine_action(composite, health, signal)
        risk_level = self.assess_risk_level(health, analysis_scores.risk_score)
        confidence = float(np.clip(np.mean([
            health_report.confidence,
            valuation_result.confidence,
            analysis_scores.confidence,
        ]), 0, 1))

        logger.info(
            "Recommendation %s: action=%s composite=%.1f signal=%s confidence=%.2f",
            symbol, action, composite, signal, confidence,
        )

        return InvestmentRecommendation(
            symbol=symbol,
            action=action,
            confidence=confidence,
            reasoning=self._reasoning(health_report, valuation_result, analysis_scores),
            risk_level=risk_level,
            time_horizon=self.determine_time_horizon(health, analysis_scores.fundamental_score),
            position_size=self.determine_position_size(confidence, risk_level),
            composite_score=composite,
            target_price=self._target_price(action, valuation_result),
            stop_loss=self._stop_loss(risk_level, valuation_result),
            market_condition=condition,
            sector_outlook=self.sector_outlook(health, analysis_scores.fundamental_score),
        )

    def generate_portfolio_recommendation(
        self,
        symbol: str,
        current_allocation: float,
        health_report: HealthReport,
        valuation_result: ValuationResult,
        target_allocation: float = _DEFAULT_TARGET_ALLOCATION,
    ) -> PortfolioRecommendation:
        """Adjust a target allocation for health and valuation, then compare."""
        if current_allocation < 0 or target_allocation < 0:
            raise ValueError("Allocations must be non-negative")

        health = health_report.overall_score
        signal = valuation_result.signal
        recommended = target_allocation
        reasons: List[str] = []

        if health >= 80:
            recommended *= 1.2
            reasons.append(f"Strong health ({health}) supports a larger weight")
        elif health < 60:
            recommended *= 0.8
            reasons.append(f"Weak health ({health}) argues for a smaller weight")

        if signal == "CHEAP":
            recommended *= 1.1
            reasons.append("Trading below fair value")
        elif signal == "EXPENSIVE":
            recommended *= 0.9
            reasons.append("Trading above fair value")

        recommended = float(np.clip(recommended, _MIN_ALLOCATION, _MAX_ALLOCATION))
        diff = recommended - current_allocation

        if diff > _REBALANCE_BAND:
            action = "INCREASE"
        elif diff < -_REBALANCE_BAND:
            action = "DECREASE"
        else:
            action = "MAINTAIN"

        priority: Priority
        if abs(diff) > 0.05 or health < 60:
            priority = "HIGH"
        elif abs(diff) > _REBALANCE_BAND or health < 75:
            priority = "MEDIUM"
        else:
            priority = "LOW"

        reasons.append(
            f"Current {current_allocation:.1%} vs recommended {recommended:.1%}: {action.lower()}"
        )

        return PortfolioRecommendation(
            symbol=symbol,
            current_allocation=current_allocation,
            recommended_allocation=round(recommended, 3),
            rebalance_action=action,
            priority=priority,
            reasoning=reasons,
        )
