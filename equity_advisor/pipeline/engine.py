"""PipelineEngine and the public evaluate / evaluate_many entry points."""

from __future__ import annotations

import time
from typing import Callable, List, Mapping, Sequence

from equity_advisor.analysis.recommendation import normalize_market_condition
from equity_advisor.models import AnalysisScores, InstrumentSnapshot, ValuationMethod
from equity_advisor.pipeline.context import ComparativeResult, EvaluationContext, EvaluationResult
from equity_advisor.pipeline.registry import AdvisorRegistry, build_registry
from equity_advisor.pipeline.steps import DEFAULT_STEPS
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("pipeline")

PipelineStep = Callable[[EvaluationContext], None]


class PipelineEngine:
    """Executes an ordered list of pipeline steps against a context."""

    def run(self, ctx: EvaluationContext, steps: Sequence[PipelineStep]) -> EvaluationContext:
        """Execute all steps in order.

        A failing step is logged and recorded in ``ctx.errors``; later steps
        still run.  With ``ctx.strict`` the first failure propagates.
        """
        logger.info("Pipeline started: symbol=%s steps=%d", ctx.symbol, len(steps))
        t0 = time.monotonic()

        for i, step in enumerate(steps, 1):
            step_name = getattr(step, "__name__", step.__class__.__name__)
            logger.debug("[%d/%d] Running: %s", i, len(steps), step_name)
            try:
                step(ctx)
                ctx.steps_completed.append(step_name)
            except Exception as e:
                if ctx.strict:
                    raise
                logger.error("Step %s failed for %s: %s", step_name, ctx.symbol, e)
                ctx.add_error(step_name, e)

        logger.info(
            "Pipeline finished: symbol=%s completed=%d errors=%d elapsed=%.3fs",
            ctx.symbol, len(ctx.steps_completed), len(ctx.errors), time.monotonic() - t0,
        )
        return ctx


class AdvisorPipeline:
    """Single- and multi-symbol evaluation over an injected registry."""

    def __init__(
        self,
        registry: AdvisorRegistry | None = None,
        steps: Sequence[PipelineStep] | None = None,
    ) -> None:
        self.registry = registry or build_registry()
        self.steps: List[PipelineStep] = list(steps or DEFAULT_STEPS)
        self.engine = PipelineEngine()

    def evaluate(
        self,
        symbol: str,
        snapshot: InstrumentSnapshot,
        market_condition: str = "NEUTRAL",
        industry: str | None = None,
        methods: Sequence[ValuationMethod] | None = None,
        analysis_scores: AnalysisScores | None = None,
        strict: bool = False,
    ) -> EvaluationResult:
        """Evaluate one instrument end to end.

        Returns valuation, health report, recommendation and entry price.
        ``entry_price_result`` is None (with an ``insufficient_data`` error
        recorded) when no composite fair value exists, unless *strict*, in
        which case ``InsufficientValuationDataError`` propagates.
        """
        ctx = EvaluationContext(
            symbol=symbol,
            snapshot=snapshot,
            registry=self.registry,
            market_condition=normalize_market_condition(market_condition),
            industry=industry,
            methods=list(methods) if methods is not None else None,
            analysis_scores=analysis_scores,
            strict=strict,
        )
        self.engine.run(ctx, self.steps)
        return ctx.to_result()

    def evaluate_many(
        self,
        symbols: Sequence[str],
        snapshots: Mapping[str, InstrumentSnapshot],
        industry: str | None = None,
    ) -> ComparativeResult:
        """Comparative health reports ranked by overall score."""
        comparison = self.registry.health_generator.generate_comparative_report(
            symbols, snapshots, industry=industry, max_workers=self.registry.max_workers,
        )
        reports = {r.symbol: r for r in comparison.reports}
        return ComparativeResult(reports=reports, comparison=comparison)


def evaluate(
    symbol: str,
    snapshot: InstrumentSnapshot,
    market_condition: str = "NEUTRAL",
    industry: str | None = None,
    registry: AdvisorRegistry | None = None,
    **kwargs,
) -> EvaluationResult:
    """Convenience wrapper around ``AdvisorPipeline(registry).evaluate``."""
    return AdvisorPipeline(registry).evaluate(
        symbol, snapshot, market_condition=market_condition, industry=industry, **kwargs,
    )


def evaluate_many(
    symbols: Sequence[str],
    snapshots: Mapping[str, InstrumentSnapshot],
    industry: str | None = None,
    registry: AdvisorRegistry | None = None,
) -> ComparativeResult:
    """Convenience wrapper around ``AdvisorPipeline(registry).evaluate_many``."""
    return AdvisorPipeline(registry).evaluate_many(symbols, snapshots, industry=industry)
