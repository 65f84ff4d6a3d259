from .context import EvaluationContext, EvaluationResult, ComparativeResult
from .registry import AdvisorRegistry, build_registry
from .engine import AdvisorPipeline, PipelineEngine, evaluate, evaluate_many
