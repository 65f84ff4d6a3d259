"""EvaluationContext: shared state bag passed through every pipeline step."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from equity_advisor.analysis.data_quality import ValidationResult
from equity_advisor.analysis.health import ComparativeReport
from equity_advisor.models import (
    AnalysisScores,
    EntryPriceResult,
    HealthReport,
    InstrumentSnapshot,
    InvestmentRecommendation,
    ValuationInput,
    ValuationMethod,
    ValuationResult,
)

if TYPE_CHECKING:
    from equity_advisor.pipeline.registry import AdvisorRegistry


@dataclass
class EvaluationContext:
    """Accumulates results as a single-symbol evaluation executes."""

    # Input
    symbol: str
    snapshot: InstrumentSnapshot
    registry: "AdvisorRegistry"
    market_condition: str = "NEUTRAL"
    industry: Optional[str] = None
    methods: Optional[List[ValuationMethod]] = None
    analysis_scores: Optional[AnalysisScores] = None
    strict: bool = False
    run_id: str = field(default_factory=lambda: datetime.now().strftime("%Y%m%d_%H%M%S_%f"))

    # Results
    validation: Optional[ValidationResult] = None
    valuation_input: Optional[ValuationInput] = None
    valuation_result: Optional[ValuationResult] = None
    health_report: Optional[HealthReport] = None
    recommendation: Optional[InvestmentRecommendation] = None
    entry_price_result: Optional[EntryPriceResult] = None

    # Pipeline metadata
    steps_completed: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def resolved_industry(self) -> Optional[str]:
        return self.industry or self.snapshot.industry

    def add_error(self, step: str, error: Exception | str, kind: str = "step_failed") -> None:
        self.errors.append({"step": step, "error": str(error), "kind": kind})

    def to_result(self) -> "EvaluationResult":
        return EvaluationResult(
            symbol=self.symbol,
            valuation_result=self.valuation_result,
            health_report=self.health_report,
            recommendation=self.recommendation,
            entry_price_result=self.entry_price_result,
            analysis_scores=self.analysis_scores,
            validation=self.validation,
            errors=list(self.errors),
            steps_completed=list(self.steps_completed),
        )


@dataclass
class EvaluationResult:
    """Public outcome of ``evaluate``."""

    symbol: str
    valuation_result: Optional[ValuationResult]
    health_report: Optional[HealthReport]
    recommendation: Optional[InvestmentRecommendation]
    entry_price_result: Optional[EntryPriceResult]
    analysis_scores: Optional[AnalysisScores] = None
    validation: Optional[ValidationResult] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)
    steps_completed: List[str] = field(default_factory=list)

    @property
    def insufficient_data(self) -> bool:
        return any(e.get("kind") == "insufficient_data" for e in self.errors)

    def to_dict(self) -> dict:
        def _d(obj):
            return obj.to_dict() if obj is not None else None

        return {
            "symbol": self.symbol,
            "valuation_result": _d(self.valuation_result),
            "health_report": _d(self.health_report),
            "recommendation": _d(self.recommendation),
            "entry_price_result": _d(self.entry_price_result),
            "analysis_scores": _d(self.analysis_scores),
            "validation": _d(self.validation),
            "errors": list(self.errors),
            "steps_completed": list(self.steps_completed),
        }


@dataclass
class ComparativeResult:
    """Public outcome of ``evaluate_many``."""

    reports: Dict[str, HealthReport]
    comparison: ComparativeReport

    def to_dict(self) -> dict:
        return {
            "reports": {sym: r.to_dict() for sym, r in self.reports.items()},
            "comparison": self.comparison.to_dict(),
        }
