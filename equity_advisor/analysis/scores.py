"""Technical / fundamental / risk scores feeding the recommendation.

The technical score is the health report's momentum-based technical
category; there is no second definition.  Fundamental and risk scores are
threshold scorers over the snapshot's headline ratios.
"""

from __future__ import annotations

from typing import Optional

from equity_advisor.models import AnalysisScores, HealthReport, InstrumentSnapshot

_BASE_SCORE = 50.0
_NEUTRAL_TECHNICAL = 50.0

_EQUITY_FUNDAMENTAL_INPUTS = ("pe_ratio", "pb_ratio", "roe", "dividend_yield")
_FUND_FUNDAMENTAL_INPUTS = ("expense_ratio", "tracking_error", "dividend_yield")
_RISK_INPUTS = ("volatility", "beta", "volume")


def _pos(value: Optional[float]) -> bool:
    return value is not None and value > 0


def equity_fundamental_score(snapshot: InstrumentSnapshot) -> float:
    score = _BASE_SCORE
    pe, pb, roe, dy = snapshot.pe_ratio, snapshot.pb_ratio, snapshot.roe, snapshot.dividend_yield

    if _pos(pe):
        score += 15 if pe < 30 else 5
    if _pos(pb):
        score += 10 if pb < 3 else 5
    if _pos(roe):
        score += 15 if roe > 0.10 else 10
    if _pos(dy):
        score += 10 if dy > 0.03 else 5
    return max(0.0, min(100.0, score))


def fund_fundamental_score(snapshot: InstrumentSnapshot) -> float:
    score = _BASE_SCORE
    er, te, dy = snapshot.expense_ratio, snapshot.tracking_error, snapshot.dividend_yield

    if er is not None:
        if er < 0.01:
            score += 20
        elif er < 0.02:
            score += 15
        elif er < 0.05:
            score += 10
    if te is None:
        score += 10
    elif te <= 0.02:
        score += 15
    if _pos(dy):
        score += 10 if dy > 0.02 else 5
    return max(0.0, min(100.0, score))


def risk_score(snapshot: InstrumentSnapshot) -> float:
    """Higher is riskier: ``100 - safety``."""
    safety = _BASE_SCORE
    vol, beta, volume = snapshot.volatility, snapshot.beta, snapshot.volume

    if vol is None:
        safety += 10
    elif vol < 20:
        safety += 20
    elif vol < 30:
        safety += 15
    elif vol < 40:
        safety += 10
    else:
        safety += 5

    if beta is None:
        safety += 10
    elif beta < 0.8:
        safety += 15
    elif beta < 1.2:
        safety += 10
    else:
        safety += 5

    if volume is not None and volume > 1e6:
        safety += 15
    elif volume is not None and volume > 1e5:
        safety += 10
    else:
        safety += 5

    return max(0.0, min(100.0, 100.0 - safety))


def compute_analysis_scores(
    snapshot: InstrumentSnapshot,
    health_report: HealthReport | None = None,
) -> AnalysisScores:
    """Derive the secondary scores from a snapshot and its health report."""
    technical = _NEUTRAL_TECHNICAL
    if health_report is not None and "technical" in health_report.category_scores:
        technical = health_report.category_scores["technical"].score

    if snapshot.market == "fund":
        fundamental = fund_fundamental_score(snapshot)
        inputs = _FUND_FUNDAMENTAL_INPUTS + _RISK_INPUTS
    else:
        fundamental = equity_fundamental_score(snapshot)
        inputs = _EQUITY_FUNDAMENTAL_INPUTS + _RISK_INPUTS

    present = sum(1 for name in inputs if snapshot.metric(name) is not None)
    return AnalysisScores(
        technical_score=float(technical),
        fundamental_score=fundamental,
        risk_score=risk_score(snapshot),
        confidence=0.4 + 0.6 * present / len(inputs),
    )
