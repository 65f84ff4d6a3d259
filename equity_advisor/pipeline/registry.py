"""AdvisorRegistry: the collaborators an evaluation needs, built once and passed in.

There is no module-level singleton; callers construct a registry (usually via
``build_registry``) and hand it to ``AdvisorPipeline``.  Tests build isolated
registries with their own weight configuration.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

from equity_advisor.analysis.data_quality import DataQualityValidator
from equity_advisor.analysis.entry_price import EntryPriceCalculator
from equity_advisor.analysis.health import HealthReportGenerator
from equity_advisor.analysis.recommendation import RecommendationEngine
from equity_advisor.analysis.valuation import (
    METHOD_FUNCTIONS,
    ValuationEngine,
    ValuationFunction,
    default_methods,
)
from equity_advisor.analysis.weights import ScoreWeightConfig
from equity_advisor.config import SETTINGS, section
from equity_advisor.models import ValuationMethod
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("registry")


class AdvisorRegistry:
    """Central holder of the pipeline's components."""

    def __init__(
        self,
        weight_config: ScoreWeightConfig | None = None,
        validator: DataQualityValidator | None = None,
        entry_calculator: EntryPriceCalculator | None = None,
        recommendation_engine: RecommendationEngine | None = None,
        valuation_settings: dict | None = None,
        method_functions: Mapping[str, ValuationFunction] | None = None,
        max_workers: int = 4,
    ) -> None:
        self.weight_config = weight_config or ScoreWeightConfig()
        self.validator = validator or DataQualityValidator()
        self.entry_calculator = entry_calculator or EntryPriceCalculator()
        self.recommendation_engine = recommendation_engine or RecommendationEngine()
        self.valuation_settings = dict(valuation_settings) if valuation_settings is not None else section("valuation")
        self.method_functions: Dict[str, ValuationFunction] = dict(method_functions or METHOD_FUNCTIONS)
        self.max_workers = max_workers
        self.health_generator = HealthReportGenerator(
            self.weight_config, validator=self.validator, max_workers=max_workers,
        )

    def methods_for(self, market: str) -> List[ValuationMethod]:
        return default_methods(market, self.valuation_settings)

    def valuation_engine(self, methods: Sequence[ValuationMethod] | None = None) -> ValuationEngine:
        return ValuationEngine(
            methods=methods,
            validator=self.validator,
            method_functions=self.method_functions,
            settings=self.valuation_settings,
        )


def build_registry(settings: dict | None = None) -> AdvisorRegistry:
    """Construct a registry from a settings dict (defaults to settings.yaml)."""
    settings = SETTINGS if settings is None else settings
    registry = AdvisorRegistry(
        weight_config=ScoreWeightConfig(settings=section("scoring", settings)),
        validator=DataQualityValidator(settings=section("data_quality", settings)),
        entry_calculator=EntryPriceCalculator(config=section("entry_price", settings)),
        valuation_settings=section("valuation", settings),
        max_workers=int(section("pipeline", settings).get("max_workers", 4)),
    )
    logger.debug("Registry built with methods equity=%s fund=%s",
                 registry.methods_for("equity"), registry.methods_for("fund"))
    return registry
