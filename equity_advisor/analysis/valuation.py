"""Valuation models - PE band, DCF, dividend discount, fund yield, and the composer.

Each model is a pure function ``ValuationInput -> MethodFair``.  A model that
lacks a precondition returns confidence 0 with no fair values and a
limitation string; it never guesses a price.  ``ValuationEngine`` runs the
applicable models, isolates their failures, and combines the surviving
estimates into a confidence-weighted composite band.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from equity_advisor.analysis.data_quality import DataQualityValidator
from equity_advisor.config import section
from equity_advisor.models import (
    FairBand,
    InstrumentSnapshot,
    MethodFair,
    ValuationInput,
    ValuationMethod,
    ValuationResult,
    ValuationSignal,
    YieldBand,
)
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("valuation")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_DCF_YEARS = 10
_DEFAULT_GROWTH = 0.05
_DEFAULT_DISCOUNT_RATE = 0.10
_DEFAULT_TERMINAL_GROWTH = 0.02
_FCF_FROM_EPS = 0.7           # FCF proxy when no cash-flow figure is available
_DCF_BAND = (0.8, 1.2)

_DEFAULT_DIVIDEND_GROWTH = 0.03
_DEFAULT_DDM_DISCOUNT_RATE = 0.08
_DDM_GROWTH_SPREAD = 0.01

_DEFAULT_SAFETY_THRESHOLD = 0.9
_DEFAULT_EXPENSIVE_THRESHOLD = 1.1
_DEFAULT_MARGIN_OF_SAFETY = 0.2
_DEFAULT_FUND_TARGET_YIELDS = {"low": 0.03, "mid": 0.04, "high": 0.05}
_DEFAULT_METHODS: Dict[str, List[str]] = {
    "equity": ["PE", "DCF", "DDM"],
    "fund": ["FUND_YIELD"],
}

_PE_BAND_FROM_OWN_PE = (0.8, 1.2)
_MAX_SUSTAINABLE_GROWTH = 0.25


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _safe_float(value: Any, default: float = 0.0) -> float:
    """Convert a value to float, returning *default* on failure."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division that returns *default* when denominator is zero / near-zero."""
    if abs(denominator) < 1e-12:
        return default
    return numerator / denominator


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


# ===================================================================
# Valuation models
# ===================================================================

def pe_band_valuation(inp: ValuationInput) -> MethodFair:
    """Price = EPS x historical P/E band.

    Uses forward EPS when available, else trailing EPS.  The band must be
    positive with ``pe_high >= pe_low``.
    """
    eps = inp.eps_forward if inp.eps_forward is not None else inp.eps_ttm
    assumptions = {"eps": eps, "pe_low": inp.pe_low, "pe_high": inp.pe_high}
    if not _positive(eps):
        return MethodFair.unavailable("PE", "EPS missing or non-positive", **assumptions)

    low, high = inp.pe_low, inp.pe_high
    if not (_positive(low) and _positive(high)) or high < low:
        return MethodFair.unavailable("PE", "P/E band missing or invalid", **assumptions)

    mid = (low + high) / 2
    confidence = 0.6
    if _positive(inp.eps_forward):
        confidence += 0.15
    if inp.eps_cagr is not None:
        confidence += 0.1
    confidence += 0.1  # band supplied

    limitations = []
    if inp.eps_forward is None:
        limitations.append("Trailing EPS used; no forward estimate")

    return MethodFair(
        method="PE",
        fair_low=eps * low,
        fair_mid=eps * mid,
        fair_high=eps * high,
        confidence=_clamp(confidence),
        assumptions={**assumptions, "pe_mid": mid, "eps_cagr": inp.eps_cagr},
        limitations=limitations,
    )


def dcf_valuation(inp: ValuationInput) -> MethodFair:
    """Ten-year per-share DCF with a Gordon-growth terminal value.

    Free cash flow per share falls back to EPS x 0.7 when absent.  The
    discount rate must exceed terminal growth.
    """
    growth = inp.fcf_cagr if inp.fcf_cagr is not None else inp.eps_cagr
    growth = _DEFAULT_GROWTH if growth is None else growth
    discount = _DEFAULT_DISCOUNT_RATE if inp.discount_rate is None else inp.discount_rate
    terminal = _DEFAULT_TERMINAL_GROWTH if inp.terminal_growth is None else inp.terminal_growth

    fcf = inp.fcf_per_share
    limitations: List[str] = []
    if fcf is None and _positive(inp.eps_ttm):
        fcf = inp.eps_ttm * _FCF_FROM_EPS
        limitations.append("FCF approximated as 70% of EPS")

    assumptions = {
        "fcf_per_share": fcf,
        "growth": growth,
        "discount_rate": discount,
        "terminal_growth": terminal,
        "years": _DCF_YEARS,
    }
    if not _positive(fcf):
        return MethodFair.unavailable("DCF", "Free cash flow missing or non-positive", **assumptions)
    if discount <= terminal:
        return MethodFair.unavailable(
            "DCF", "Discount rate must exceed terminal growth", **assumptions,
        )

    years = np.arange(1, _DCF_YEARS + 1)
    projected = fcf * (1 + growth) ** years
    discounted = projected / (1 + discount) ** years
    pv_explicit = float(discounted.sum())

    terminal_value = float(projected[-1]) * (1 + terminal) / (discount - terminal)
    pv_terminal = terminal_value / (1 + discount) ** _DCF_YEARS
    mid = pv_explicit + pv_terminal

    confidence = 0.6
    confidence += 0.1  # fcf > 0
    if 0 <= growth <= 0.25:
        confidence += 0.1
    if 0.08 <= discount <= 0.15:
        confidence += 0.1
    if 0 <= terminal <= 0.03:
        confidence += 0.05
    if inp.fcf_cagr is not None:
        confidence += 0.05

    return MethodFair(
        method="DCF",
        fair_low=mid * _DCF_BAND[0],
        fair_mid=mid,
        fair_high=mid * _DCF_BAND[1],
        confidence=_clamp(confidence),
        assumptions={
            **assumptions,
            "pv_explicit": round(pv_explicit, 4),
            "pv_terminal": round(pv_terminal, 4),
        },
        limitations=limitations,
    )


def ddm_valuation(inp: ValuationInput) -> MethodFair:
    """Single-stage Gordon growth on next year's dividend.

    D0 is backed out from ``price x dividend_yield``; the band uses the
    growth rate +/- one percentage point.
    """
    growth = _DEFAULT_DIVIDEND_GROWTH if inp.dividend_growth is None else inp.dividend_growth
    discount = _DEFAULT_DDM_DISCOUNT_RATE if inp.ddm_discount_rate is None else inp.ddm_discount_rate
    dy = inp.dividend_yield
    assumptions = {"dividend_yield": dy, "dividend_growth": growth, "discount_rate": discount}

    if not _positive(dy) or not _positive(inp.price):
        return MethodFair.unavailable("DDM", "No dividend yield", **assumptions)

    d0 = inp.price * dy
    low_growth = max(0.0, growth - _DDM_GROWTH_SPREAD)
    if discount <= growth:
        return MethodFair.unavailable(
            "DDM", "Discount rate must exceed dividend growth", **assumptions,
        )
    # keep the upper bound finite when r sits within one point of g
    high_growth = min(growth + _DDM_GROWTH_SPREAD, (growth + discount) / 2)

    def _gordon(g: float) -> float:
        return d0 * (1 + g) / (discount - g)

    confidence = 0.6 + 0.1  # yield > 0
    if 0 <= growth <= 0.06:
        confidence += 0.1
    if 0.06 <= discount <= 0.12:
        confidence += 0.1

    return MethodFair(
        method="DDM",
        fair_low=_gordon(low_growth),
        fair_mid=_gordon(growth),
        fair_high=_gordon(high_growth),
        confidence=_clamp(confidence),
        assumptions={**assumptions, "d0": round(d0, 6)},
    )


def fund_yield_valuation(inp: ValuationInput) -> MethodFair:
    """Fair price of a pooled fund = trailing distribution / target yield.

    A higher target yield implies a lower fair price, so ``fair_high`` is
    derived from the *high* yield and ends up the smallest bound.
    """
    dy = inp.dividend_yield
    band = inp.target_yields
    assumptions: Dict[str, Any] = {
        "dividend_yield": dy,
        "target_yields": band.to_dict() if band else None,
    }
    if not _positive(dy) or not _positive(inp.price):
        return MethodFair.unavailable("FUND_YIELD", "No distribution yield", **assumptions)
    if band is None or not all(_positive(y) for y in (band.low, band.mid, band.high)):
        return MethodFair.unavailable("FUND_YIELD", "Target yield band missing or invalid", **assumptions)

    distribution = inp.price * dy
    confidence = 0.65
    if 0.04 < dy < 0.12:
        confidence += 0.1
    if inp.expense_ratio is not None and inp.expense_ratio <= 0.01:
        confidence += 0.1
    if inp.tracking_error is not None and inp.tracking_error <= 0.02:
        confidence += 0.05

    return MethodFair(
        method="FUND_YIELD",
        fair_low=distribution / band.low,
        fair_mid=distribution / band.mid,
        fair_high=distribution / band.high,
        confidence=_clamp(confidence),
        assumptions={**assumptions, "distribution": round(distribution, 6)},
    )


ValuationFunction = Callable[[ValuationInput], MethodFair]

METHOD_FUNCTIONS: Dict[ValuationMethod, ValuationFunction] = {
    "PE": pe_band_valuation,
    "DCF": dcf_valuation,
    "DDM": ddm_valuation,
    "FUND_YIELD": fund_yield_valuation,
}


def default_methods(market: str, settings: dict | None = None) -> List[ValuationMethod]:
    """Methods applicable to a market category, from settings or defaults."""
    conf = section("valuation") if settings is None else settings
    configured = (conf.get("methods") or {}).get(market)
    methods = configured or _DEFAULT_METHODS.get(market, _DEFAULT_METHODS["equity"])
    return [m for m in methods if m in METHOD_FUNCTIONS]


# ===================================================================
# Input builder
# ===================================================================

def _industry_settings(industry: Optional[str], conf: Mapping[str, Any]) -> Dict[str, Any]:
    if not industry:
        return {}
    table = conf.get("industries") or {}
    for name, values in table.items():
        if name.lower() == industry.lower():
            return dict(values or {})
    return {}


def build_valuation_input(
    snapshot: InstrumentSnapshot,
    industry: str | None = None,
    settings: dict | None = None,
) -> ValuationInput:
    """Project a snapshot plus configured assumptions into a ValuationInput.

    - EPS: reported EPS, else price / P/E.
    - EPS CAGR: earnings growth, else sustainable growth ``ROE x (1 - payout)``.
    - P/E band: industry ``pe_range`` if configured, else own P/E x (0.8, 1.2).
    """
    conf = section("valuation") if settings is None else settings
    industry = industry or snapshot.industry
    ind = _industry_settings(industry, conf)
    price = _safe_float(snapshot.price)

    eps = snapshot.eps
    if eps is None and _positive(snapshot.pe_ratio) and price > 0:
        eps = price / snapshot.pe_ratio

    eps_cagr = snapshot.earnings_growth
    if eps_cagr is None and snapshot.roe is not None and _positive(eps):
        dps = price * _safe_float(snapshot.dividend_yield)
        payout = _safe_div(dps, eps)
        if 0 <= payout < 1:
            eps_cagr = min(snapshot.roe * (1 - payout), _MAX_SUSTAINABLE_GROWTH)

    pe_range = ind.get("pe_range")
    if pe_range and len(pe_range) == 2:
        pe_low, pe_high = float(pe_range[0]), float(pe_range[1])
    elif _positive(snapshot.pe_ratio):
        pe_low = snapshot.pe_ratio * _PE_BAND_FROM_OWN_PE[0]
        pe_high = snapshot.pe_ratio * _PE_BAND_FROM_OWN_PE[1]
    else:
        pe_low = pe_high = None

    yields = {**_DEFAULT_FUND_TARGET_YIELDS, **(conf.get("fund_target_yields") or {})}

    return ValuationInput(
        symbol=snapshot.symbol,
        price=price,
        market=snapshot.market,
        industry=industry,
        eps_ttm=eps,
        eps_forward=snapshot.eps_forward,
        fcf_per_share=snapshot.fcf_per_share,
        dividend_yield=snapshot.dividend_yield,
        eps_cagr=eps_cagr,
        discount_rate=ind.get("discount_rate"),
        terminal_growth=ind.get("terminal_growth"),
        pe_low=pe_low,
        pe_high=pe_high,
        dividend_growth=ind.get("dividend_growth"),
        ddm_discount_rate=ind.get("ddm_discount_rate"),
        margin_of_safety=conf.get("margin_of_safety", _DEFAULT_MARGIN_OF_SAFETY),
        target_yields=YieldBand(
            low=float(yields["low"]), mid=float(yields["mid"]), high=float(yields["high"]),
        ),
        expense_ratio=snapshot.expense_ratio,
        tracking_error=snapshot.tracking_error,
    )


# ===================================================================
# Composer
# ===================================================================

class ValuationEngine:
    """Runs the applicable valuation models and combines them.

    Parameters
    ----------
    methods : sequence of ValuationMethod, optional
        Ordered models to run.  Defaults to the market's configured set.
    safety_threshold : float
        ``price <= mid x threshold`` => CHEAP.
    expensive_threshold : float
        ``price >= mid x threshold`` => EXPENSIVE.
    """

    def __init__(
        self,
        methods: Sequence[ValuationMethod] | None = None,
        safety_threshold: float | None = None,
        expensive_threshold: float | None = None,
        validator: DataQualityValidator | None = None,
        method_functions: Mapping[str, ValuationFunction] | None = None,
        settings: dict | None = None,
    ) -> None:
        conf = section("valuation") if settings is None else settings
        self.settings = conf
        self.methods = list(methods) if methods is not None else None
        self.safety_threshold = float(
            safety_threshold if safety_threshold is not None
            else conf.get("safety_threshold", _DEFAULT_SAFETY_THRESHOLD)
        )
        self.expensive_threshold = float(
            expensive_threshold if expensive_threshold is not None
            else conf.get("expensive_threshold", _DEFAULT_EXPENSIVE_THRESHOLD)
        )
        self.validator = validator or DataQualityValidator()
        self.method_functions = dict(method_functions or METHOD_FUNCTIONS)

        unknown = [m for m in (self.methods or []) if m not in self.method_functions]
        if unknown:
            raise ValueError(f"Unknown valuation method(s): {', '.join(unknown)}")

    def _run_method(self, name: ValuationMethod, inp: ValuationInput) -> MethodFair:
        try:
            return self.method_functions[name](inp)
        except Exception as exc:
            logger.error("%s valuation failed for %s: %s", name, inp.symbol, exc)
            return MethodFair.unavailable(name, f"Method execution failed: {exc}")

    @staticmethod
    def composite(methods: Sequence[MethodFair]) -> Optional[FairBand]:
        """Confidence-weighted mean of each bound over methods with confidence > 0."""
        usable = [m for m in methods if m.confidence > 0 and m.fair_mid is not None]
        if not usable:
            return None

        def _bound(attr: str) -> Optional[float]:
            pairs = [(getattr(m, attr), m.confidence) for m in usable if getattr(m, attr) is not None]
            if not pairs:
                return None
            values, weights = zip(*pairs)
            return float(np.average(values, weights=weights))

        return FairBand(low=_bound("fair_low"), mid=_bound("fair_mid"), high=_bound("fair_high"))

    def classify(self, price: float, band: Optional[FairBand]) -> ValuationSignal:
        if band is None or band.mid is None or not _positive(price):
            return "FAIR"
        if price <= band.mid * self.safety_threshold:
            return "CHEAP"
        if price >= band.mid * self.expensive_threshold:
            return "EXPENSIVE"
        return "FAIR"

    def evaluate(self, inp: ValuationInput) -> ValuationResult:
        """Run every applicable model against *inp* and compose the result."""
        quality = self.validator.validate({
            "symbol": inp.symbol,
            "price": inp.price,
            "market": inp.market,
            "last_updated": datetime.now(timezone.utc),
        })

        names = self.methods if self.methods is not None else default_methods(inp.market, self.settings)
        results = [self._run_method(name, inp) for name in names]

        band = self.composite(results)
        signal = self.classify(inp.price, band)

        mos = _DEFAULT_MARGIN_OF_SAFETY if inp.margin_of_safety is None else inp.margin_of_safety
        suggested = None
        if band is not None and band.mid is not None:
            suggested = max(0.0, band.mid * (1 - mos))

        confidence = _clamp(float(np.mean([m.confidence for m in results]))) if results else 0.0

        notes: List[str] = []
        if not quality.is_valid:
            notes.append(f"Data quality {quality.level} ({quality.overall_score}/100)")
        for m in results:
            for limitation in m.limitations:
                notes.append(f"{m.method}: {limitation}")
        if band is None:
            notes.append("No valuation model produced an estimate")
        if not _positive(inp.price):
            notes.append("Price unavailable; signal defaults to FAIR")

        logger.info(
            "Valuation %s: signal=%s mid=%s confidence=%.2f methods=%s",
            inp.symbol, signal,
            f"{band.mid:.2f}" if band and band.mid is not None else "n/a",
            confidence, ",".join(names),
        )

        return ValuationResult(
            symbol=inp.symbol,
            price=inp.price,
            market=inp.market,
            methods=results,
            composite_fair=band,
            signal=signal,
            suggested_buy_price=suggested,
            data_quality=quality.overall_score / 100.0,
            confidence=confidence,
            notes=notes,
        )


# ===================================================================
# Comparison
# ===================================================================

def compare_to_fair_value(result: ValuationResult) -> Optional[dict]:
    """Upside/downside of the current price against the composite band.

    Returns None when there is no composite or no positive price.
    """
    band = result.composite_fair
    if band is None or band.mid is None or not _positive(result.price):
        return None

    def _upside(bound: Optional[float]) -> Optional[float]:
        return None if bound is None else round(bound / result.price - 1, 4)

    upside_high = _upside(band.high)
    upside_low = _upside(band.low)
    downside = None
    if upside_low is not None and upside_low < 0:
        downside = -upside_low

    risk_reward = None
    if downside and upside_high is not None and upside_high > 0:
        risk_reward = round(upside_high / downside, 4)

    return {
        "symbol": result.symbol,
        "price": result.price,
        "upside_to_low": upside_low,
        "upside_to_mid": _upside(band.mid),
        "upside_to_high": upside_high,
        "downside_to_low": downside,
        "risk_reward_ratio": risk_reward,
        "signal": result.signal,
    }
