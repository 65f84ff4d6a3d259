"""Built-in pipeline steps: validate, value, score, recommend, price.

Each step is a function: (EvaluationContext) -> None
"""

from __future__ import annotations

from equity_advisor.analysis.scores import compute_analysis_scores
from equity_advisor.analysis.valuation import build_valuation_input
from equity_advisor.errors import InsufficientValuationDataError
from equity_advisor.pipeline.context import EvaluationContext
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("steps")


# ============================================================
# VALIDATE
# ============================================================

def validate_snapshot(ctx: EvaluationContext) -> None:
    """Score the input snapshot's data quality."""
    ctx.validation = ctx.registry.validator.validate(ctx.snapshot)
    for issue in ctx.validation.issues:
        logger.debug("%s quality issue %s: %s", ctx.symbol, issue.code, issue.message)


# ============================================================
# ANALYZE STEPS
# ============================================================

def run_valuation(ctx: EvaluationContext) -> None:
    """Build the valuation input and run the applicable models."""
    ctx.valuation_input = build_valuation_input(
        ctx.snapshot, industry=ctx.resolved_industry, settings=ctx.registry.valuation_settings,
    )
    engine = ctx.registry.valuation_engine(ctx.methods)
    ctx.valuation_result = engine.evaluate(ctx.valuation_input)


def build_health_report(ctx: EvaluationContext) -> None:
    """Industry-adjusted health report."""
    ctx.health_report = ctx.registry.health_generator.generate_report(
        ctx.symbol, ctx.snapshot, industry=ctx.resolved_industry, validation=ctx.validation,
    )


def score_analysis(ctx: EvaluationContext) -> None:
    """Derive technical / fundamental / risk scores unless supplied by the caller."""
    if ctx.analysis_scores is None:
        ctx.analysis_scores = compute_analysis_scores(ctx.snapshot, ctx.health_report)


# ============================================================
# DECISION STEPS
# ============================================================

def synthesize_recommendation(ctx: EvaluationContext) -> None:
    if ctx.health_report is None or ctx.valuation_result is None or ctx.analysis_scores is None:
        raise RuntimeError("recommendation requires health, valuation and analysis scores")
    ctx.recommendation = ctx.registry.recommendation_engine.generate_recommendation(
        ctx.symbol,
        ctx.health_report,
        ctx.valuation_result,
        ctx.analysis_scores,
        market_condition=ctx.market_condition,
    )


def compute_entry_price(ctx: EvaluationContext) -> None:
    """Entry tiers; a missing composite fair value is recorded, not fatal, unless strict."""
    if ctx.health_report is None or ctx.valuation_result is None:
        raise RuntimeError("entry price requires health and valuation results")
    try:
        ctx.entry_price_result = ctx.registry.entry_calculator.calculate_entry_price(
            ctx.symbol,
            ctx.valuation_result,
            ctx.health_report,
            market_condition=ctx.market_condition,
            industry=ctx.resolved_industry,
        )
    except InsufficientValuationDataError as exc:
        if ctx.strict:
            raise
        logger.warning("%s: insufficient data for an entry price", ctx.symbol)
        ctx.entry_price_result = None
        ctx.add_error("compute_entry_price", exc, kind="insufficient_data")


DEFAULT_STEPS = [
    validate_snapshot,
    run_valuation,
    build_health_report,
    score_analysis,
    synthesize_recommendation,
    compute_entry_price,
]
