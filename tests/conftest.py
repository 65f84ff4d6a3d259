"""Shared pytest fixtures for the Equity Advisor test suite.

Snapshots are synthetic and every component is built from explicit (empty)
settings so results never depend on configs/settings.yaml.
"""

from datetime import datetime, timezone

import numpy as np
import pytest

from equity_advisor.analysis.data_quality import DataQualityValidator
from equity_advisor.analysis.entry_price import EntryPriceCalculator
from equity_advisor.analysis.health import HealthReportGenerator, HealthScoreCalculator
from equity_advisor.analysis.weights import ScoreWeightConfig
from equity_advisor.models import InstrumentSnapshot
from equity_advisor.pipeline.registry import build_registry


# ---------------------------------------------------------------------------
# 1. Snapshots
# ---------------------------------------------------------------------------

@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def large_cap_snapshot(now):
    """Large-cap equity: P/E 20, 2% yield, 25% ROE, 5T market cap, 1M volume."""
    return InstrumentSnapshot(
        symbol="LCAP",
        price=500.0,
        pe_ratio=20.0,
        dividend_yield=0.02,
        roe=0.25,
        market_cap=5e12,
        volume=1e6,
        last_updated=now,
    )


@pytest.fixture
def strong_snapshot(now):
    """Every scored metric at or beyond its favourable reference."""
    return InstrumentSnapshot(
        symbol="STRONG",
        price=100.0,
        last_updated=now,
        pe_ratio=8.0,
        pb_ratio=0.8,
        eps=12.5,
        dividend_yield=0.09,
        roe=0.30,
        debt_to_equity=0.2,
        net_profit_margin=0.30,
        revenue_growth=0.25,
        earnings_growth=0.25,
        gross_profit_margin=0.55,
        operating_margin=0.35,
        beta=0.7,
        volatility=8.0,
        momentum=0.10,
        volume=5e6,
        market_cap=2e11,
    )


@pytest.fixture
def risky_snapshot(now):
    """Expensive, volatile, levered small cap."""
    return InstrumentSnapshot(
        symbol="RISKY",
        price=40.0,
        last_updated=now,
        pe_ratio=55.0,
        pb_ratio=9.0,
        roe=0.03,
        debt_to_equity=1.8,
        net_profit_margin=0.02,
        revenue_growth=-0.1,
        earnings_growth=-0.15,
        beta=1.6,
        volatility=45.0,
        max_drawdown=-0.55,
        momentum=-0.2,
        volume=5e4,
        market_cap=5e8,
    )


@pytest.fixture
def fund_snapshot(now):
    return InstrumentSnapshot(
        symbol="0056",
        market="fund",
        price=30.0,
        dividend_yield=0.08,
        expense_ratio=0.007,
        tracking_error=0.015,
        volume=2e6,
        last_updated=now,
    )


@pytest.fixture
def random_snapshots():
    """Fifty snapshots with random (possibly out-of-range) metrics, seeded at 42."""
    rng = np.random.default_rng(42)
    snaps = []
    for i in range(50):
        snaps.append(InstrumentSnapshot(
            symbol=f"R{i}",
            price=float(rng.uniform(1, 1000)),
            pe_ratio=float(rng.uniform(-50, 300)),
            pb_ratio=float(rng.uniform(-5, 60)),
            dividend_yield=float(rng.uniform(-0.1, 0.5)),
            roe=float(rng.uniform(-1, 1)),
            debt_to_equity=float(rng.uniform(0, 5)),
            net_profit_margin=float(rng.uniform(-0.5, 0.6)),
            revenue_growth=float(rng.uniform(-1, 1)),
            earnings_growth=float(rng.uniform(-1, 1)),
            gross_profit_margin=float(rng.uniform(-0.2, 0.9)),
            operating_margin=float(rng.uniform(-0.2, 0.6)),
            beta=float(rng.uniform(-1, 3)),
            volatility=float(rng.uniform(0, 120)),
            momentum=float(rng.uniform(-1, 1)),
            volume=float(rng.uniform(0, 5e8)),
            market_cap=float(rng.uniform(0, 5e13)),
        ))
    return snaps


# ---------------------------------------------------------------------------
# 2. Components
# ---------------------------------------------------------------------------

@pytest.fixture
def weight_config():
    return ScoreWeightConfig(settings={})


@pytest.fixture
def validator():
    return DataQualityValidator(settings={})


@pytest.fixture
def calculator(weight_config, validator):
    return HealthScoreCalculator(weight_config.get_effective_weights(), validator=validator)


@pytest.fixture
def report_generator(weight_config, validator):
    return HealthReportGenerator(weight_config, validator=validator, max_workers=4)


@pytest.fixture
def entry_calculator():
    return EntryPriceCalculator(config={})


@pytest.fixture
def registry():
    return build_registry(settings={})
