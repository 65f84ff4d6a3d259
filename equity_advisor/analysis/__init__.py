from .data_quality import DataQualityValidator
from .valuation import ValuationEngine, build_valuation_input, compare_to_fair_value
from .weights import ScoreWeightConfig
from .health import HealthScoreCalculator, HealthReportGenerator
from .scores import compute_analysis_scores
from .recommendation import RecommendationEngine
from .entry_price import EntryPriceCalculator
