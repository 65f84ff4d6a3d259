"""Equity Advisor: valuation, health scoring and entry-price recommendations."""

from equity_advisor.errors import AdvisorError, InsufficientValuationDataError
from equity_advisor.models import InstrumentSnapshot
from equity_advisor.pipeline.engine import AdvisorPipeline, evaluate, evaluate_many
from equity_advisor.pipeline.registry import AdvisorRegistry, build_registry

__version__ = "0.1.0"
