"""Tests for equity_advisor.analysis.entry_price."""

import pytest

from equity_advisor.analysis.entry_price import DEFAULT_ENTRY_CONFIG, EntryPriceCalculator
from equity_advisor.errors import InsufficientValuationDataError
from equity_advisor.models import FairBand, HealthReport, ValuationResult


def _health(score=90, confidence=0.9):
    return HealthReport(
        symbol="TEST", overall_score=score, overall_grade="GOOD",
        category_scores={}, confidence=confidence,
    )


def _valuation(price=100.0, band=FairBand(80.0, 100.0, 120.0), confidence=0.8, data_quality=0.95):
    return ValuationResult(
        symbol="TEST", price=price, market="equity", methods=[],
        composite_fair=band, signal="FAIR", suggested_buy_price=None,
        data_quality=data_quality, confidence=confidence,
    )


class TestTiers:

    def test_safety_margin_tiers(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health())
        assert result.fair_value == FairBand(80.0, 100.0, 120.0)
        assert result.to_dict()["fair_value"] == {"low": 80.0, "mid": 100.0, "high": 120.0}
        assert result.recommended_entry_price == pytest.approx(
            {"conservative": 85.0, "moderate": 90.0, "aggressive": 95.0}
        )
        assert result.risk_adjusted_price == pytest.approx({"low": 90.0, "medium": 85.5, "high": 81.0})

    def test_tiers_ordered(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health())
        p = result.recommended_entry_price
        assert p["conservative"] < p["moderate"] < p["aggressive"] <= result.fair_value.mid

    def test_market_regimes(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health(90))
        m = result.market_adjusted_price
        assert m == pytest.approx({"bullish": 94.5, "neutral": 90.0, "bearish": 85.5})
        assert m["bullish"] > m["neutral"] > m["bearish"]

    @pytest.mark.parametrize("score,industry", [(50, None), (90, None), (61, "banking")])
    def test_neutral_market_equals_moderate_entry(self, entry_calculator, score, industry):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health(score), industry=industry)
        assert result.market_adjusted_price["neutral"] == pytest.approx(result.recommended_entry_price["moderate"])

    @pytest.mark.parametrize("score,tier", [(90, "low"), (85, "low"), (70, "medium"), (65, "medium"), (50, "high")])
    def test_risk_tier(self, entry_calculator, score, tier):
        assert entry_calculator.calculate_entry_price("TEST", _valuation(), _health(score)).risk_level == tier

    def test_industry_multiplier(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health(), industry="Semiconductor")
        assert result.recommended_entry_price["moderate"] == pytest.approx(97.2)
        assert any("Semiconductor industry tolerates" in r for r in result.reasoning)

    def test_unknown_industry_is_neutral(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health(), industry="shipping")
        assert result.recommended_entry_price["moderate"] == pytest.approx(90.0)

    def test_confidence(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(), _health())
        # 0.4 * 0.8 + 0.4 * 0.9 + 0.2 * 0.95
        assert result.confidence == pytest.approx(0.87)


class TestInsufficientData:

    @pytest.mark.parametrize("band", [None, FairBand(None, None, None), FairBand(-5.0, 0.0, 5.0)])
    def test_raises_without_usable_fair_value(self, entry_calculator, band):
        with pytest.raises(InsufficientValuationDataError) as exc_info:
            entry_calculator.calculate_entry_price("TEST", _valuation(band=band), _health())
        assert exc_info.value.symbol == "TEST"

    def test_is_a_value_error(self, entry_calculator):
        with pytest.raises(ValueError):
            entry_calculator.calculate_entry_price("TEST", _valuation(band=None), _health())

    def test_invalid_market_condition(self, entry_calculator):
        with pytest.raises(ValueError):
            entry_calculator.calculate_entry_price("TEST", _valuation(), _health(), market_condition="CRASH")


class TestReasoning:

    @pytest.mark.parametrize("price,phrase", [
        (120.0, "wait for a pullback"),
        (95.0, "near the moderate entry"),
        (70.0, "consider buying in tranches"),
    ])
    def test_deviation_advice(self, entry_calculator, price, phrase):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(price=price), _health())
        assert phrase in result.reasoning[-1]

    @pytest.mark.parametrize("price,phrase", [
        (70.0, "below the fair-value low 80.00"),
        (100.0, "inside the fair-value band 80.00-120.00"),
        (130.0, "above the fair-value high 120.00"),
    ])
    def test_position_against_fair_band(self, entry_calculator, price, phrase):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(price=price), _health())
        assert phrase in result.reasoning[0]

    def test_inverted_fund_band_is_ordered(self, entry_calculator):
        band = FairBand(80.0, 60.0, 48.0)
        result = entry_calculator.calculate_entry_price("FUND", _valuation(price=60.0, band=band), _health())
        assert "inside the fair-value band 48.00-80.00" in result.reasoning[0]

    def test_missing_price(self, entry_calculator):
        result = entry_calculator.calculate_entry_price("TEST", _valuation(price=0.0), _health())
        assert result.reasoning[0].startswith("Current price unavailable")
        assert not any(r.startswith("Price is") for r in result.reasoning)
        assert result.recommended_entry_price["moderate"] == pytest.approx(90.0)

    def test_market_note(self, entry_calculator):
        result = entry_calculator.calculate_entry_price(
            "TEST", _valuation(), _health(), market_condition="bearish",
        )
        assert "Bearish market: wait for a lower entry" in result.reasoning


class TestConfigManagement:

    def test_defaults(self, entry_calculator):
        assert entry_calculator.get_config() == DEFAULT_ENTRY_CONFIG

    def test_overrides_merge(self):
        calc = EntryPriceCalculator(config={"safety_margins": {"moderate": 0.2}})
        cfg = calc.get_config()
        assert cfg["safety_margins"]["moderate"] == 0.2
        assert cfg["safety_margins"]["conservative"] == 0.15

    def test_update_config(self, entry_calculator):
        cfg = entry_calculator.update_config({"market_adjustments": {"bullish": 1.1}})
        assert cfg["market_adjustments"]["bullish"] == 1.1
        with pytest.raises(ValueError):
            entry_calculator.update_config({"tax_adjustments": {"x": 1.0}})

    def test_add_and_remove_industry(self, entry_calculator):
        entry_calculator.add_industry_adjustment("Shipping", 0.9)
        assert entry_calculator.industry_multiplier("shipping") == 0.9
        assert entry_calculator.remove_industry_adjustment("SHIPPING")
        assert not entry_calculator.remove_industry_adjustment("shipping")
        assert entry_calculator.industry_multiplier("shipping") is None

    @pytest.mark.parametrize("multiplier", [0.0, -1.0])
    def test_non_positive_multiplier_rejected(self, entry_calculator, multiplier):
        with pytest.raises(ValueError):
            entry_calculator.add_industry_adjustment("shipping", multiplier)

    def test_get_config_is_a_copy(self, entry_calculator):
        entry_calculator.get_config()["industry_adjustments"]["technology"] = 9.0
        assert entry_calculator.industry_multiplier("technology") == 1.05
