"""Health score: seven weighted categories rolled into a 0-100 score.

Each category picks a few metrics from the snapshot, clamps them into a sane
range, and maps them to sub-scores on a linear (higher is better) or inverse
(lower is better) scale anchored at 60 for the "low" reference and 90 for the
"high" reference.  A missing metric scores a neutral 50.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence

import pandas as pd

from equity_advisor.analysis.data_quality import DataQualityValidator, ValidationResult
from equity_advisor.analysis.weights import ScoreWeightConfig
from equity_advisor.config import section
from equity_advisor.models import (
    CATEGORIES,
    CategoryScore,
    Grade,
    HealthReport,
    InstrumentSnapshot,
    InvestmentAdvice,
    RiskFactor,
    ScoreFactor,
)
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("health")

Scale = Literal["linear", "inverse"]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_NEUTRAL = 50.0
_FLOOR = 60.0
_CEILING = 90.0
_STRENGTH_THRESHOLD = 80
_WEAKNESS_THRESHOLD = 60
_TOP_N = 3

_GRADES: list[tuple[int, Grade]] = [
    (90, "EXCELLENT"),
    (80, "GOOD"),
    (70, "AVERAGE"),
    (60, "BELOW_AVERAGE"),
    (50, "POOR"),
]


@dataclass(frozen=True)
class MetricRule:
    label: str
    metric: str
    clamp: tuple[float, float]
    scale: Scale
    low: float
    high: float
    weight: float


# category -> metric rules; internal weights per category sum to 1
_CATEGORY_RULES: Dict[str, List[MetricRule]] = {
    "valuation": [
        MetricRule("P/E", "pe_ratio", (0, 60), "inverse", 10, 30, 0.4),
        MetricRule("P/B", "pb_ratio", (0, 20), "inverse", 1, 5, 0.3),
        MetricRule("Dividend Yield", "dividend_yield", (0, 0.12), "linear", 0.02, 0.08, 0.3),
    ],
    "fundamentals": [
        MetricRule("ROE", "roe", (0, 0.5), "linear", 0.10, 0.25, 0.4),
        MetricRule("Debt/Equity", "debt_to_equity", (0, 2), "inverse", 0.3, 1.0, 0.3),
        MetricRule("Net Margin", "net_profit_margin", (0, 0.4), "linear", 0.10, 0.25, 0.3),
    ],
    "growth": [
        MetricRule("Revenue Growth", "revenue_growth", (-0.2, 0.4), "linear", 0.05, 0.20, 0.5),
        MetricRule("Earnings Growth", "earnings_growth", (-0.2, 0.4), "linear", 0.05, 0.20, 0.5),
    ],
    "quality": [
        MetricRule("Gross Margin", "gross_profit_margin", (0.1, 0.6), "linear", 0.30, 0.50, 0.4),
        MetricRule("Operating Margin", "operating_margin", (0.05, 0.4), "linear", 0.15, 0.30, 0.3),
        MetricRule("ROE", "roe", (0, 0.5), "linear", 0.10, 0.25, 0.3),
    ],
    "risk": [
        MetricRule("Beta", "beta", (0, 2), "inverse", 0.8, 1.2, 0.5),
        MetricRule("Volatility (%)", "volatility", (0, 50), "inverse", 10, 30, 0.5),
    ],
    "technical": [
        MetricRule("Momentum", "momentum", (-0.3, 0.3), "linear", 0.02, 0.08, 1.0),
    ],
    "liquidity": [
        MetricRule("Volume", "volume", (0, 1e8), "linear", 1e5, 2e6, 0.5),
        MetricRule("Market Cap", "market_cap", (0, 1e13), "linear", 1e9, 1e11, 0.5),
    ],
}

SCORING_METRICS: tuple[str, ...] = tuple(
    dict.fromkeys(rule.metric for rules in _CATEGORY_RULES.values() for rule in rules)
)

_CATEGORY_LABELS = {
    "valuation": "valuation",
    "fundamentals": "fundamentals",
    "growth": "growth",
    "quality": "earnings quality",
    "risk": "risk profile",
    "technical": "price momentum",
    "liquidity": "liquidity",
}


# ---------------------------------------------------------------------------
# Scales
# ---------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def linear_score(value: Optional[float], low: float, high: float) -> float:
    """60 at or below *low*, 90 at or above *high*, linear in between; 50 if absent."""
    if value is None or math.isnan(value):
        return _NEUTRAL
    if value <= low:
        return _FLOOR
    if value >= high:
        return _CEILING
    return round_half_up(_FLOOR + (value - low) / (high - low) * (_CEILING - _FLOOR))


def inverse_score(value: Optional[float], low: float, high: float) -> float:
    """90 at or below *low*, 60 at or above *high*, linear in between; 50 if absent."""
    if value is None or math.isnan(value):
        return _NEUTRAL
    if value <= low:
        return _CEILING
    if value >= high:
        return _FLOOR
    return round_half_up(_CEILING - (value - low) / (high - low) * (_CEILING - _FLOOR))


def score_to_grade(score: float) -> Grade:
    for threshold, grade in _GRADES:
        if score >= threshold:
            return grade
    return "VERY_POOR"


def _clamp(value: Optional[float], bounds: tuple[float, float]) -> Optional[float]:
    if value is None:
        return None
    return max(bounds[0], min(bounds[1], value))


# ===================================================================
# Calculator
# ===================================================================

class HealthScoreCalculator:
    """Scores one snapshot against a fixed set of category weights."""

    def __init__(
        self,
        weights: Mapping[str, float] | None = None,
        validator: DataQualityValidator | None = None,
    ) -> None:
        self.weights = dict(weights) if weights is not None else ScoreWeightConfig().get_effective_weights()
        self.validator = validator or DataQualityValidator()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def score_category(self, category: str, snapshot: InstrumentSnapshot) -> CategoryScore:
        if category not in _CATEGORY_RULES:
            raise ValueError(f"Unknown score category: {category}")
        factors: List[ScoreFactor] = []
        total = 0.0
        for rule in _CATEGORY_RULES[category]:
            value = _clamp(snapshot.metric(rule.metric), rule.clamp)
            if rule.scale == "linear":
                sub = linear_score(value, rule.low, rule.high)
            else:
                sub = inverse_score(value, rule.low, rule.high)
            total += sub * rule.weight
            factors.append(ScoreFactor(
                name=rule.label,
                value=value,
                score=sub,
                weight=rule.weight,
                description="not reported" if value is None else f"{rule.scale} {rule.low}-{rule.high}",
            ))

        score = float(max(0, min(100, round_half_up(total))))
        weight = self.weights.get(category, 0.0)
        reported = sum(1 for f in factors if f.value is not None)
        return CategoryScore(
            category=category,
            score=score,
            grade=score_to_grade(score),
            weight=weight,
            weighted_score=score * weight,
            factors=factors,
            description=f"{len(factors)} factor(s) combined, {reported} reported",
            recommendations=self._category_recommendations(category, score),
        )

    @staticmethod
    def _category_recommendations(category: str, score: float) -> List[str]:
        label = _CATEGORY_LABELS[category]
        if score >= _STRENGTH_THRESHOLD:
            return [f"{label.capitalize()} is a strength; keep monitoring for deterioration"]
        if score >= _WEAKNESS_THRESHOLD:
            return [f"{label.capitalize()} is acceptable; watch for improvement or slippage"]
        return [f"{label.capitalize()} is weak; review before adding exposure"]

    # ------------------------------------------------------------------
    # Risk factors
    # ------------------------------------------------------------------

    @staticmethod
    def derive_risk_factors(snapshot: InstrumentSnapshot) -> List[RiskFactor]:
        risks: List[RiskFactor] = []
        if snapshot.volatility is not None and snapshot.volatility > 30:
            risks.append(RiskFactor(
                "High volatility", "high",
                f"Annualized volatility {snapshot.volatility:.1f}% exceeds 30%",
                impact=0.7, probability=0.6,
            ))
        if snapshot.beta is not None and snapshot.beta > 1.2:
            risks.append(RiskFactor(
                "Market sensitivity", "medium",
                f"Beta {snapshot.beta:.2f} amplifies market moves",
                impact=0.5, probability=0.5,
            ))
        if snapshot.debt_to_equity is not None and snapshot.debt_to_equity > 1.5:
            risks.append(RiskFactor(
                "Elevated leverage", "medium",
                f"Debt/equity {snapshot.debt_to_equity:.2f} above 1.5",
                impact=0.6, probability=0.4, category="financial",
            ))
        if snapshot.max_drawdown is not None and abs(snapshot.max_drawdown) > 0.4:
            risks.append(RiskFactor(
                "Deep historical drawdown", "medium",
                f"Maximum drawdown {abs(snapshot.max_drawdown):.0%}",
                impact=0.5, probability=0.3,
            ))
        return risks

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    def calculate(
        self,
        symbol: str,
        snapshot: InstrumentSnapshot,
        industry: Optional[str] = None,
        validation: ValidationResult | None = None,
    ) -> HealthReport:
        """Build a full health report for *snapshot*.

        *validation* reuses an existing data-quality result for the snapshot
        instead of validating it again.
        """
        categories = {cat: self.score_category(cat, snapshot) for cat in CATEGORIES}
        overall = round_half_up(sum(c.weighted_score for c in categories.values()))
        overall = max(0, min(100, overall))

        risks = self.derive_risk_factors(snapshot)
        strengths = [
            _CATEGORY_LABELS[c] for c, s in categories.items() if s.score >= _STRENGTH_THRESHOLD
        ]
        weak = [c for c, s in categories.items() if s.score < _WEAKNESS_THRESHOLD]
        weaknesses = [_CATEGORY_LABELS[c] for c in weak]

        recommendations: List[str] = []
        for cat in weak:
            names = ", ".join(f.name for f in categories[cat].factors)
            recommendations.append(f"Improve {_CATEGORY_LABELS[cat]}: review {names}")
        if risks:
            recommendations.append(
                "Manage identified risks with position limits and stop-loss discipline"
            )
        elif not weak:
            recommendations.append("Maintain current strategy; no material weaknesses detected")

        present = sum(1 for m in SCORING_METRICS if snapshot.metric(m) is not None)
        coverage = present / len(SCORING_METRICS)
        quality = validation if validation is not None else self.validator.validate(snapshot)

        logger.info(
            "Health %s: score=%d grade=%s coverage=%.0f%% risks=%d",
            symbol, overall, score_to_grade(overall), coverage * 100, len(risks),
        )

        return HealthReport(
            symbol=symbol,
            overall_score=overall,
            overall_grade=score_to_grade(overall),
            category_scores=categories,
            risk_factors=risks,
            strengths=strengths,
            weaknesses=weaknesses,
            recommendations=recommendations,
            investment_advice=self._investment_advice(overall, risks),
            confidence=0.5 + 0.5 * coverage,
            data_quality=quality.overall_score / 100.0,
            industry=industry,
            effective_weights=dict(self.weights),
        )

    @staticmethod
    def _investment_advice(score: int, risks: Sequence[RiskFactor]) -> InvestmentAdvice:
        high_risk = any(r.level == "high" for r in risks)
        if score >= 80:
            return InvestmentAdvice(
                suitability="moderate",
                time_horizon="long-term",
                risk_tolerance="medium" if high_risk else "low-to-medium",
                advice="Sound overall health; suitable as a core holding",
            )
        if score >= 60:
            return InvestmentAdvice(
                suitability="conservative",
                time_horizon="medium-term",
                risk_tolerance="medium",
                advice="Mixed health; size positions modestly and monitor weak areas",
            )
        return InvestmentAdvice(
            suitability="conservative",
            time_horizon="short-term",
            risk_tolerance="high",
            advice="Weak health; only for investors able to absorb losses",
        )


# ===================================================================
# Report generator
# ===================================================================

@dataclass
class ComparativeReport:
    reports: List[HealthReport]
    rankings: List[dict]
    top_performers: List[dict]
    bottom_performers: List[dict]
    average_score: Optional[float]
    industry: Optional[str] = None
    industry_benchmark: Optional[float] = None
    skipped: List[str] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "reports": [r.to_dict() for r in self.reports],
            "rankings": list(self.rankings),
            "top_performers": list(self.top_performers),
            "bottom_performers": list(self.bottom_performers),
            "average_score": self.average_score,
            "industry": self.industry,
            "industry_benchmark": self.industry_benchmark,
            "skipped": list(self.skipped),
            "errors": list(self.errors),
        }


class HealthReportGenerator:
    """Industry-aware health reports, single and comparative."""

    def __init__(
        self,
        weight_config: ScoreWeightConfig | None = None,
        validator: DataQualityValidator | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.weight_config = weight_config or ScoreWeightConfig()
        self.validator = validator or DataQualityValidator()
        self.max_workers = int(max_workers or section("pipeline").get("max_workers", 4))

    def generate_report(
        self,
        symbol: str,
        snapshot: InstrumentSnapshot,
        industry: Optional[str] = None,
        validation: ValidationResult | None = None,
    ) -> HealthReport:
        weights = self.weight_config.get_effective_weights(industry)
        calculator = HealthScoreCalculator(weights, validator=self.validator)
        return calculator.calculate(symbol, snapshot, industry=industry, validation=validation)

    def generate_comparative_report(
        self,
        symbols: Sequence[str],
        snapshots: Mapping[str, InstrumentSnapshot],
        industry: Optional[str] = None,
        max_workers: int | None = None,
    ) -> ComparativeReport:
        """Score every symbol independently and rank by overall score.

        Reports are generated in parallel; ranking is a stable sort so ties
        keep input order.  Symbols without a snapshot are skipped.
        """
        ordered = list(dict.fromkeys(symbols))
        skipped = [s for s in ordered if snapshots.get(s) is None]
        todo = [s for s in ordered if snapshots.get(s) is not None]
        if skipped:
            logger.warning("No snapshot for %s; skipping", ", ".join(skipped))

        results: Dict[str, HealthReport] = {}
        errors: List[dict] = []
        workers = max(1, min(max_workers or self.max_workers, len(todo) or 1))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.generate_report, sym, snapshots[sym], industry): sym
                for sym in todo
            }
            for future in as_completed(futures):
                sym = futures[future]
                try:
                    results[sym] = future.result()
                except Exception as exc:
                    logger.error("Health report failed for %s: %s", sym, exc)
                    errors.append({"symbol": sym, "error": str(exc)})

        return self._rank(ordered, results, industry, skipped, errors)

    @staticmethod
    def _rank(
        ordered: Sequence[str],
        results: Mapping[str, HealthReport],
        industry: Optional[str],
        skipped: List[str],
        errors: List[dict],
    ) -> ComparativeReport:
        rows = [
            {
                "symbol": sym,
                "order": i,
                "score": results[sym].overall_score,
                "grade": results[sym].overall_grade,
            }
            for i, sym in enumerate(ordered) if sym in results
        ]
        if not rows:
            return ComparativeReport(
                reports=[], rankings=[], top_performers=[], bottom_performers=[],
                average_score=None, industry=industry, skipped=skipped, errors=errors,
            )

        df = pd.DataFrame(rows).sort_values("score", ascending=False, kind="mergesort")
        df["rank"] = range(1, len(df) + 1)
        rankings = df[["symbol", "score", "grade", "rank"]].to_dict("records")
        rankings = [{**r, "score": int(r["score"]), "rank": int(r["rank"])} for r in rankings]

        average = round(float(df["score"].mean()), 2)
        benchmark = average if industry and len(df) > 1 else None

        return ComparativeReport(
            reports=[results[r["symbol"]] for r in rankings],
            rankings=rankings,
            top_performers=rankings[:_TOP_N],
            bottom_performers=list(reversed(rankings[-_TOP_N:])),
            average_score=average,
            industry=industry,
            industry_benchmark=benchmark,
            skipped=skipped,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Weight management
    # ------------------------------------------------------------------

    def get_weight_configuration(self) -> dict:
        return self.weight_config.get_config()

    def update_weights(
        self,
        category_weights: Mapping[str, float] | None = None,
        industry: str | None = None,
        industry_adjustments: Mapping[str, float] | None = None,
    ) -> dict:
        if category_weights:
            self.weight_config.update_category_weights(category_weights)
        if industry and industry_adjustments:
            self.weight_config.set_industry_adjustment(industry, industry_adjustments)
        return self.weight_config.get_config()
