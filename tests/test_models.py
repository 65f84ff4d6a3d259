"""Tests for equity_advisor.models -- snapshot construction and metric lookup."""

import dataclasses
from datetime import datetime

import pytest

from equity_advisor.models import (
    METRIC_FIELDS,
    FairBand,
    InstrumentSnapshot,
    MethodFair,
    ValuationResult,
)


class TestSnapshotFromDict:

    def test_camel_case_aliases(self):
        snap = InstrumentSnapshot.from_dict({
            "symbol": "2330",
            "price": 500,
            "peRatio": 20,
            "dividendYield": 0.02,
            "marketCap": 5e12,
            "lastUpdated": "2024-05-01T08:00:00+00:00",
        })
        assert snap.pe_ratio == 20.0
        assert snap.dividend_yield == 0.02
        assert snap.market_cap == 5e12
        assert isinstance(snap.last_updated, datetime)

    def test_non_numeric_metrics_become_none(self):
        snap = InstrumentSnapshot.from_dict({"symbol": "X", "price": "12.5", "pe_ratio": "N/A"})
        assert snap.price == 12.5
        assert snap.pe_ratio is None

    def test_unknown_keys_ignored(self):
        snap = InstrumentSnapshot.from_dict({"symbol": "X", "favouriteColour": "blue"})
        assert snap.symbol == "X"

    def test_missing_symbol_raises(self):
        with pytest.raises(KeyError):
            InstrumentSnapshot.from_dict({"price": 10})

    def test_etf_market_maps_to_fund(self):
        snap = InstrumentSnapshot.from_dict({"symbol": "0050", "marketType": "ETF"})
        assert snap.market == "fund"


class TestMetricLookup:

    def test_known_metric(self, large_cap_snapshot):
        assert large_cap_snapshot.metric("pe_ratio") == 20.0
        assert large_cap_snapshot.metric("beta") is None

    def test_unknown_metric_raises(self, large_cap_snapshot):
        with pytest.raises(KeyError):
            large_cap_snapshot.metric("peRatio")

    def test_present_metrics_subset_of_closed_set(self, large_cap_snapshot):
        present = large_cap_snapshot.present_metrics()
        assert set(present) <= set(METRIC_FIELDS)
        assert "roe" in present

    def test_snapshot_is_frozen(self, large_cap_snapshot):
        with pytest.raises(dataclasses.FrozenInstanceError):
            large_cap_snapshot.price = 1.0


class TestSerialization:

    def test_snapshot_to_dict_isoformat(self, large_cap_snapshot):
        d = large_cap_snapshot.to_dict()
        assert d["symbol"] == "LCAP"
        assert isinstance(d["last_updated"], str)

    def test_unavailable_method_has_no_bounds(self):
        m = MethodFair.unavailable("DDM", "No dividend yield")
        assert m.confidence == 0
        assert (m.fair_low, m.fair_mid, m.fair_high) == (None, None, None)
        assert m.limitations == ["No dividend yield"]

    def test_valuation_result_to_dict(self):
        result = ValuationResult(
            symbol="X", price=10.0, market="equity", methods=[],
            composite_fair=FairBand(8.0, 10.0, 12.0), signal="FAIR",
            suggested_buy_price=8.0, data_quality=1.0, confidence=0.7,
        )
        d = result.to_dict()
        assert d["composite_fair"] == {"low": 8.0, "mid": 10.0, "high": 12.0}
        assert d["signal"] == "FAIR"
