"""Shared data model for the advisory pipeline.

Every entity is a plain dataclass with a ``to_dict()`` that produces a
JSON-serializable dict.  Closed vocabularies are expressed as ``Literal``
aliases so that type checkers catch typos in action/grade/signal strings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional

import pandas as pd

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------
MarketType = Literal["equity", "fund"]
ValuationMethod = Literal["PE", "DCF", "DDM", "FUND_YIELD"]
ValuationSignal = Literal["CHEAP", "FAIR", "EXPENSIVE"]
Category = Literal[
    "valuation", "fundamentals", "growth", "quality",
    "risk", "technical", "liquidity",
]
Grade = Literal["EXCELLENT", "GOOD", "AVERAGE", "BELOW_AVERAGE", "POOR", "VERY_POOR"]
Action = Literal["STRONG_BUY", "BUY", "HOLD", "SELL", "STRONG_SELL"]
RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
TimeHorizon = Literal["SHORT", "MEDIUM", "LONG"]
PositionSize = Literal["SMALL", "MEDIUM", "LARGE"]
MarketCondition = Literal["BULLISH", "NEUTRAL", "BEARISH"]
SectorOutlook = Literal["POSITIVE", "NEUTRAL", "NEGATIVE"]
RebalanceAction = Literal["INCREASE", "DECREASE", "MAINTAIN"]
Priority = Literal["HIGH", "MEDIUM", "LOW"]

CATEGORIES: tuple[str, ...] = (
    "valuation", "fundamentals", "growth", "quality",
    "risk", "technical", "liquidity",
)

# ---------------------------------------------------------------------------
# Snapshot metric keys
# ---------------------------------------------------------------------------
METRIC_FIELDS: tuple[str, ...] = (
    "pe_ratio", "pb_ratio", "eps", "eps_forward", "fcf_per_share",
    "dividend_yield", "roe", "debt_to_equity", "current_ratio", "quick_ratio",
    "inventory_turnover", "asset_turnover", "net_profit_margin",
    "gross_profit_margin", "operating_margin", "revenue_growth",
    "earnings_growth", "beta", "volatility", "sharpe_ratio", "max_drawdown",
    "var95", "momentum", "expense_ratio", "tracking_error",
    "price", "volume", "market_cap",
)

# Provider payloads often arrive camelCased
_ALIASES: Dict[str, str] = {
    "marketType": "market",
    "marketCap": "market_cap",
    "lastUpdated": "last_updated",
    "peRatio": "pe_ratio",
    "pe": "pe_ratio",
    "pbRatio": "pb_ratio",
    "pb": "pb_ratio",
    "epsForward": "eps_forward",
    "forwardEps": "eps_forward",
    "fcfPerShare": "fcf_per_share",
    "dividendYield": "dividend_yield",
    "debtToEquity": "debt_to_equity",
    "currentRatio": "current_ratio",
    "quickRatio": "quick_ratio",
    "inventoryTurnover": "inventory_turnover",
    "assetTurnover": "asset_turnover",
    "netProfitMargin": "net_profit_margin",
    "grossProfitMargin": "gross_profit_margin",
    "operatingMargin": "operating_margin",
    "revenueGrowth": "revenue_growth",
    "earningsGrowth": "earnings_growth",
    "sharpeRatio": "sharpe_ratio",
    "maxDrawdown": "max_drawdown",
    "expenseRatio": "expense_ratio",
    "trackingError": "tracking_error",
}


def _to_optional_float(value: Any) -> Optional[float]:
    """Coerce *value* to float, returning None for missing or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _round(value: Optional[float], digits: int = 4) -> Optional[float]:
    return round(value, digits) if value is not None else None


# ===================================================================
# Input snapshot
# ===================================================================

@dataclass(frozen=True)
class InstrumentSnapshot:
    """Point-in-time view of one instrument.

    All metrics are optional; ratios are decimals (0.15 == 15%) except
    ``volatility`` which is an annualized percentage (25.0 == 25%).
    """

    symbol: str
    price: Optional[float] = None
    market: MarketType = "equity"
    volume: Optional[float] = None
    market_cap: Optional[float] = None
    last_updated: Optional[datetime] = None
    name: Optional[str] = None
    industry: Optional[str] = None
    sector: Optional[str] = None

    # Valuation / profitability
    pe_ratio: Optional[float] = None
    pb_ratio: Optional[float] = None
    eps: Optional[float] = None
    eps_forward: Optional[float] = None
    fcf_per_share: Optional[float] = None
    dividend_yield: Optional[float] = None
    roe: Optional[float] = None
    debt_to_equity: Optional[float] = None
    current_ratio: Optional[float] = None
    quick_ratio: Optional[float] = None
    inventory_turnover: Optional[float] = None
    asset_turnover: Optional[float] = None
    net_profit_margin: Optional[float] = None
    gross_profit_margin: Optional[float] = None
    operating_margin: Optional[float] = None

    # Growth / risk
    revenue_growth: Optional[float] = None
    earnings_growth: Optional[float] = None
    beta: Optional[float] = None
    volatility: Optional[float] = None
    sharpe_ratio: Optional[float] = None
    max_drawdown: Optional[float] = None
    var95: Optional[float] = None
    momentum: Optional[float] = None

    # Fund specific
    expense_ratio: Optional[float] = None
    tracking_error: Optional[float] = None

    def metric(self, name: str) -> Optional[float]:
        """Look up a numeric metric by key.

        Raises KeyError for names outside ``METRIC_FIELDS``.
        """
        if name not in METRIC_FIELDS:
            raise KeyError(f"Unknown metric: {name}")
        return getattr(self, name)

    def present_metrics(self) -> list[str]:
        return [m for m in METRIC_FIELDS if getattr(self, m) is not None]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstrumentSnapshot":
        """Build a snapshot from a provider payload.

        Accepts snake_case field names and the common camelCase aliases;
        unknown keys are ignored and non-numeric metric values become None.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                continue
            if name in METRIC_FIELDS:
                kwargs[name] = _to_optional_float(value)
            elif name == "last_updated":
                kwargs[name] = _to_datetime(value)
            elif value is not None:
                kwargs[name] = str(value)
        if "symbol" not in kwargs:
            raise KeyError("symbol")
        market = str(kwargs.get("market", "equity")).lower()
        kwargs["market"] = "fund" if market in ("fund", "etf") else "equity"
        return cls(**kwargs)

    def to_dict(self) -> dict:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["last_updated"] = _iso(self.last_updated)
        return out


# ===================================================================
# Valuation
# ===================================================================

@dataclass
class YieldBand:
    low: float
    mid: float
    high: float

    def to_dict(self) -> dict:
        return {"low": self.low, "mid": self.mid, "high": self.high}


@dataclass
class ValuationInput:
    """Inputs and assumptions consumed by the valuation methods."""

    symbol: str
    price: float
    market: MarketType = "equity"
    industry: Optional[str] = None
    eps_ttm: Optional[float] = None
    eps_forward: Optional[float] = None
    fcf_per_share: Optional[float] = None
    dividend_yield: Optional[float] = None
    eps_cagr: Optional[float] = None
    fcf_cagr: Optional[float] = None
    discount_rate: Optional[float] = None
    terminal_growth: Optional[float] = None
    pe_low: Optional[float] = None
    pe_high: Optional[float] = None
    dividend_growth: Optional[float] = None
    ddm_discount_rate: Optional[float] = None
    margin_of_safety: Optional[float] = None
    target_yields: Optional[YieldBand] = None
    expense_ratio: Optional[float] = None
    tracking_error: Optional[float] = None

    def to_dict(self) -> dict:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["target_yields"] = self.target_yields.to_dict() if self.target_yields else None
        return out


@dataclass
class MethodFair:
    """One method's fair-value band.  Confidence 0 means no estimate."""

    method: ValuationMethod
    fair_low: Optional[float] = None
    fair_mid: Optional[float] = None
    fair_high: Optional[float] = None
    confidence: float = 0.0
    assumptions: Dict[str, Any] = field(default_factory=dict)
    limitations: List[str] = field(default_factory=list)

    @classmethod
    def unavailable(cls, method: ValuationMethod, reason: str, **assumptions: Any) -> "MethodFair":
        return cls(method=method, confidence=0.0, assumptions=dict(assumptions), limitations=[reason])

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "fair_low": _round(self.fair_low),
            "fair_mid": _round(self.fair_mid),
            "fair_high": _round(self.fair_high),
            "confidence": round(self.confidence, 4),
            "assumptions": dict(self.assumptions),
            "limitations": list(self.limitations),
        }


@dataclass
class FairBand:
    low: Optional[float] = None
    mid: Optional[float] = None
    high: Optional[float] = None

    def to_dict(self) -> dict:
        return {"low": _round(self.low), "mid": _round(self.mid), "high": _round(self.high)}


@dataclass
class ValuationResult:
    symbol: str
    price: float
    market: MarketType
    methods: List[MethodFair]
    composite_fair: Optional[FairBand]
    signal: ValuationSignal
    suggested_buy_price: Optional[float]
    data_quality: float
    confidence: float
    notes: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "market": self.market,
            "methods": [m.to_dict() for m in self.methods],
            "composite_fair": self.composite_fair.to_dict() if self.composite_fair else None,
            "signal": self.signal,
            "suggested_buy_price": _round(self.suggested_buy_price),
            "data_quality": round(self.data_quality, 4),
            "confidence": round(self.confidence, 4),
            "notes": list(self.notes),
            "timestamp": _iso(self.timestamp),
        }


# ===================================================================
# Health
# ===================================================================

@dataclass
class ScoreFactor:
    name: str
    value: Optional[float]
    score: float
    weight: float
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "score": round(self.score, 2),
            "weight": self.weight,
            "description": self.description,
        }


@dataclass
class CategoryScore:
    category: Category
    score: float
    grade: Grade
    weight: float
    weighted_score: float
    factors: List[ScoreFactor] = field(default_factory=list)
    description: str = ""
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "score": round(self.score, 2),
            "grade": self.grade,
            "weight": round(self.weight, 4),
            "weighted_score": round(self.weighted_score, 4),
            "factors": [f.to_dict() for f in self.factors],
            "description": self.description,
            "recommendations": list(self.recommendations),
        }


@dataclass
class RiskFactor:
    name: str
    level: Literal["low", "medium", "high"]
    description: str
    impact: float
    probability: float
    category: str = "market"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "level": self.level,
            "description": self.description,
            "impact": self.impact,
            "probability": self.probability,
            "category": self.category,
        }


@dataclass
class InvestmentAdvice:
    suitability: str
    time_horizon: str
    risk_tolerance: str
    advice: str

    def to_dict(self) -> dict:
        return {
            "suitability": self.suitability,
            "time_horizon": self.time_horizon,
            "risk_tolerance": self.risk_tolerance,
            "advice": self.advice,
        }


@dataclass
class HealthReport:
    symbol: str
    overall_score: int
    overall_grade: Grade
    category_scores: Dict[str, CategoryScore]
    risk_factors: List[RiskFactor] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    investment_advice: Optional[InvestmentAdvice] = None
    confidence: float = 0.5
    data_quality: float = 0.0
    industry: Optional[str] = None
    effective_weights: Dict[str, float] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def category(self, name: str) -> CategoryScore:
        return self.category_scores[name]

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "overall_score": self.overall_score,
            "overall_grade": self.overall_grade,
            "category_scores": {k: v.to_dict() for k, v in self.category_scores.items()},
            "risk_factors": [r.to_dict() for r in self.risk_factors],
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
            "recommendations": list(self.recommendations),
            "investment_advice": self.investment_advice.to_dict() if self.investment_advice else None,
            "confidence": round(self.confidence, 4),
            "data_quality": round(self.data_quality, 4),
            "industry": self.industry,
            "effective_weights": {k: round(v, 6) for k, v in self.effective_weights.items()},
            "generated_at": _iso(self.generated_at),
        }


# ===================================================================
# Recommendation
# ===================================================================

@dataclass
class AnalysisScores:
    """Secondary scores feeding the recommendation; risk is higher = riskier."""

    technical_score: float = 50.0
    fundamental_score: float = 50.0
    risk_score: float = 50.0
    confidence: float = 0.5

    def to_dict(self) -> dict:
        return {
            "technical_score": round(self.technical_score, 2),
            "fundamental_score": round(self.fundamental_score, 2),
            "risk_score": round(self.risk_score, 2),
            "confidence": round(self.confidence, 4),
        }


@dataclass
class InvestmentRecommendation:
    symbol: str
    action: Action
    confidence: float
    reasoning: List[str]
    risk_level: RiskLevel
    time_horizon: TimeHorizon
    position_size: PositionSize
    composite_score: float
    target_price: Optional[float] = None
    stop_loss: Optional[float] = None
    market_condition: MarketCondition = "NEUTRAL"
    sector_outlook: SectorOutlook = "NEUTRAL"

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "action": self.action,
            "confidence": round(self.confidence, 4),
            "reasoning": list(self.reasoning),
            "risk_level": self.risk_level,
            "time_horizon": self.time_horizon,
            "position_size": self.position_size,
            "composite_score": round(self.composite_score, 2),
            "target_price": _round(self.target_price, 2),
            "stop_loss": _round(self.stop_loss, 2),
            "market_condition": self.market_condition,
            "sector_outlook": self.sector_outlook,
        }


@dataclass
class PortfolioRecommendation:
    symbol: str
    current_allocation: float
    recommended_allocation: float
    rebalance_action: RebalanceAction
    priority: Priority
    reasoning: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "current_allocation": self.current_allocation,
            "recommended_allocation": self.recommended_allocation,
            "rebalance_action": self.rebalance_action,
            "priority": self.priority,
            "reasoning": list(self.reasoning),
        }


# ===================================================================
# Entry price
# ===================================================================

@dataclass
class EntryPriceResult:
    symbol: str
    current_price: float
    fair_value: FairBand
    recommended_entry_price: Dict[str, float]
    risk_adjusted_price: Dict[str, float]
    market_adjusted_price: Dict[str, float]
    risk_level: Literal["low", "medium", "high"]
    confidence: float
    reasoning: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "current_price": self.current_price,
            "fair_value": self.fair_value.to_dict(),
            "recommended_entry_price": {k: round(v, 4) for k, v in self.recommended_entry_price.items()},
            "risk_adjusted_price": {k: round(v, 4) for k, v in self.risk_adjusted_price.items()},
            "market_adjusted_price": {k: round(v, 4) for k, v in self.market_adjusted_price.items()},
            "risk_level": self.risk_level,
            "confidence": self.confidence,
            "reasoning": list(self.reasoning),
        }
