"""Tests for equity_advisor.analysis.health -- scales, grades, reports, comparative ranking."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from equity_advisor.analysis.health import (
    SCORING_METRICS,
    HealthReportGenerator,
    HealthScoreCalculator,
    inverse_score,
    linear_score,
    round_half_up,
    score_to_grade,
)
from equity_advisor.analysis.weights import ScoreWeightConfig
from equity_advisor.models import CATEGORIES, InstrumentSnapshot


# ---------------------------------------------------------------------------
# Scales
# ---------------------------------------------------------------------------

class TestScales:

    @pytest.mark.parametrize("value,expected", [
        (None, 50), (0.0, 60), (0.02, 60), (0.05, 75), (0.08, 90), (0.2, 90),
    ])
    def test_linear(self, value, expected):
        assert linear_score(value, 0.02, 0.08) == expected

    @pytest.mark.parametrize("value,expected", [
        (None, 50), (5, 90), (10, 90), (20, 75), (30, 60), (60, 60),
    ])
    def test_inverse(self, value, expected):
        assert inverse_score(value, 10, 30) == expected

    def test_round_half_up(self):
        assert round_half_up(60.5) == 61
        assert round_half_up(60.49) == 60
        assert round_half_up(74.2105) == 74


class TestGrades:

    @pytest.mark.parametrize("score,grade", [
        (100, "EXCELLENT"), (90, "EXCELLENT"), (89, "GOOD"), (80, "GOOD"),
        (79, "AVERAGE"), (70, "AVERAGE"), (69, "BELOW_AVERAGE"), (60, "BELOW_AVERAGE"),
        (59, "POOR"), (50, "POOR"), (49, "VERY_POOR"), (0, "VERY_POOR"),
    ])
    def test_threshold_table(self, score, grade):
        assert score_to_grade(score) == grade


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

class TestHealthScoreCalculator:

    def test_large_cap_scenario(self, calculator, large_cap_snapshot):
        report = calculator.calculate("LCAP", large_cap_snapshot)
        scores = {c: s.score for c, s in report.category_scores.items()}
        assert scores == {
            "valuation": 63, "fundamentals": 66, "growth": 50, "quality": 62,
            "risk": 50, "technical": 50, "liquidity": 82,
        }
        assert report.overall_score == 61
        assert report.overall_grade == "BELOW_AVERAGE"

    def test_weighted_score_is_score_times_weight(self, calculator, large_cap_snapshot):
        report = calculator.calculate("LCAP", large_cap_snapshot)
        for cat in report.category_scores.values():
            assert cat.weighted_score == pytest.approx(cat.score * cat.weight)
        assert sum(c.weight for c in report.category_scores.values()) == pytest.approx(1.0)

    def test_empty_snapshot_is_neutral(self, calculator):
        report = calculator.calculate("EMPTY", InstrumentSnapshot(symbol="EMPTY"))
        assert all(s.score == 50 for s in report.category_scores.values())
        assert report.overall_score == 50
        assert report.overall_grade == "POOR"
        assert report.confidence == pytest.approx(0.5)
        assert len(report.weaknesses) == 7
        assert report.risk_factors == []

    def test_strong_snapshot_is_excellent(self, calculator, strong_snapshot):
        report = calculator.calculate("STRONG", strong_snapshot)
        assert report.overall_score == 90
        assert report.overall_grade == "EXCELLENT"
        assert len(report.strengths) == 7
        assert report.weaknesses == []
        assert report.risk_factors == []
        assert report.confidence == pytest.approx(1.0)
        assert report.investment_advice.suitability == "moderate"

    def test_risky_snapshot(self, calculator, risky_snapshot):
        report = calculator.calculate("RISKY", risky_snapshot)
        names = {r.name for r in report.risk_factors}
        assert names == {
            "High volatility", "Market sensitivity", "Elevated leverage", "Deep historical drawdown",
        }
        assert report.overall_score == 58
        assert set(report.weaknesses) == {"valuation", "earnings quality"}
        assert any("Improve valuation" in r for r in report.recommendations)
        assert any("risk" in r.lower() for r in report.recommendations)
        assert report.investment_advice.suitability == "conservative"
    def test_reuses_supplied_validation(self, weight_config, validator, large_cap_snapshot):
        validation = validator.validate(large_cap_snapshot)
        stub = MagicMock()
        report = HealthScoreCalculator(weight_config.get_effective_weights(), validator=stub).calculate(
            "LCAP", large_cap_snapshot, validation=validation,
        )
        stub.validate.assert_not_called()
        assert report.data_quality == pytest.approx(validation.overall_score / 100)
        assert report.overall_score == 61


    def test_scores_bounded_for_random_inputs(self, calculator, random_snapshots):
        for snap in random_snapshots:
            report = calculator.calculate(snap.symbol, snap)
            assert 0 <= report.overall_score <= 100
            assert report.overall_grade == score_to_grade(report.overall_score)
            for cat in report.category_scores.values():
                assert 0 <= cat.score <= 100

    def test_unknown_category_rejected(self, calculator, large_cap_snapshot):
        with pytest.raises(ValueError):
            calculator.score_category("sentiment", large_cap_snapshot)

    def test_scoring_metrics_are_known(self, large_cap_snapshot):
        for name in SCORING_METRICS:
            large_cap_snapshot.metric(name)

    def test_report_serializes(self, calculator, large_cap_snapshot):
        d = calculator.calculate("LCAP", large_cap_snapshot).to_dict()
        assert set(d["category_scores"]) == set(CATEGORIES)
        assert d["overall_score"] == 61


# ---------------------------------------------------------------------------
# Report generator
# ---------------------------------------------------------------------------

class TestHealthReportGenerator:

    def test_industry_weights_change_report(self, large_cap_snapshot):
        cfg = ScoreWeightConfig(settings={})
        cfg.set_industry_adjustment("semiconductor", {"liquidity": 0.3})
        gen = HealthReportGenerator(cfg, max_workers=2)
        base = gen.generate_report("LCAP", large_cap_snapshot)
        semi = gen.generate_report("LCAP", large_cap_snapshot, industry="Semiconductor")
        assert semi.effective_weights["liquidity"] > base.effective_weights["liquidity"]
        assert semi.overall_score > base.overall_score
        assert semi.industry == "Semiconductor"

    def test_comparative_ranking(self, report_generator, large_cap_snapshot, strong_snapshot, risky_snapshot):
        snaps = {"LCAP": large_cap_snapshot, "STRONG": strong_snapshot, "RISKY": risky_snapshot}
        result = report_generator.generate_comparative_report(["RISKY", "LCAP", "STRONG"], snaps)
        assert [r["symbol"] for r in result.rankings] == ["STRONG", "LCAP", "RISKY"]
        assert [r["rank"] for r in result.rankings] == [1, 2, 3]
        assert result.average_score == pytest.approx(round((90 + 61 + 58) / 3, 2))
        assert result.industry_benchmark is None
        assert result.top_performers[0]["symbol"] == "STRONG"
        assert result.bottom_performers[0]["symbol"] == "RISKY"

    def test_ties_keep_input_order(self, report_generator):
        snaps = {s: InstrumentSnapshot(symbol=s) for s in ["C", "A", "B"]}
        result = report_generator.generate_comparative_report(["C", "A", "B"], snaps)
        assert [r["symbol"] for r in result.rankings] == ["C", "A", "B"]

    def test_top_and_bottom_three(self, report_generator, strong_snapshot):
        snaps = {}
        for i, momentum in enumerate([0.1, 0.05, 0.0, -0.1, None]):
            snaps[f"S{i}"] = dataclasses.replace(strong_snapshot, symbol=f"S{i}", momentum=momentum)
        result = report_generator.generate_comparative_report(list(snaps), snaps)
        assert len(result.top_performers) == 3
        assert len(result.bottom_performers) == 3
        assert result.top_performers[0]["symbol"] == "S0"
        assert result.bottom_performers[0]["symbol"] == "S4"

    def test_industry_benchmark(self, report_generator, large_cap_snapshot, strong_snapshot):
        snaps = {"LCAP": large_cap_snapshot, "STRONG": strong_snapshot}
        result = report_generator.generate_comparative_report(["LCAP", "STRONG"], snaps, industry="technology")
        assert result.industry_benchmark == result.average_score

    def test_single_symbol_has_no_benchmark(self, report_generator, large_cap_snapshot):
        result = report_generator.generate_comparative_report(
            ["LCAP"], {"LCAP": large_cap_snapshot}, industry="technology",
        )
        assert result.industry_benchmark is None

    def test_missing_snapshots_skipped(self, report_generator, large_cap_snapshot):
        result = report_generator.generate_comparative_report(["LCAP", "GHOST"], {"LCAP": large_cap_snapshot})
        assert result.skipped == ["GHOST"]
        assert [r.symbol for r in result.reports] == ["LCAP"]

    def test_empty_input(self, report_generator):
        result = report_generator.generate_comparative_report([], {})
        assert result.reports == []
        assert result.average_score is None

    def test_weight_management_delegates(self, report_generator):
        cfg = report_generator.update_weights(
            category_weights={"risk": 0.3}, industry="energy", industry_adjustments={"risk": 0.1},
        )
        assert sum(cfg["category_weights"].values()) == pytest.approx(1.0)
        assert report_generator.get_weight_configuration()["industry_adjustments"]["energy"] == {"risk": 0.1}
