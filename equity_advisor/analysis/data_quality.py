"""Data-quality validation for instrument snapshots.

Scores a record on four dimensions (completeness, timeliness, consistency,
validity), flags anomalies, and rolls everything into a 0-100 quality score.
Validation never raises: malformed input produces a critical issue and a
zero score instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

from equity_advisor.config import section
from equity_advisor.models import _ALIASES, InstrumentSnapshot, _to_datetime
from equity_advisor.utils.logger import setup_logger

logger = setup_logger("data_quality")

Severity = Literal["info", "warning", "error", "critical"]
QualityLevel = Literal["excellent", "good", "average", "below_average", "poor", "unreliable"]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_DEFAULT_REQUIRED_FIELDS = ("symbol", "price", "last_updated")
_DEFAULT_MIN_COMPLETENESS = 0.8
_DEFAULT_MAX_AGE_HOURS = 24.0
_MIN_VALID_SCORE = 60

_DIMENSION_WEIGHTS = {
    "completeness": 0.35,
    "timeliness": 0.15,
    "consistency": 0.25,
    "validity": 0.25,
}

_LEVELS: list[tuple[int, QualityLevel]] = [
    (90, "excellent"),
    (80, "good"),
    (70, "average"),
    (60, "below_average"),
    (50, "poor"),
]

# (field, low, high, penalty)
_RANGE_CHECKS = [
    ("dividend_yield", 0.0, 0.4, 0.10),
    ("pe_ratio", 0.0, 200.0, 0.05),
    ("pb_ratio", 0.0, 50.0, 0.05),
]
_INVALID_PRICE_PENALTY = 0.3
_CONSISTENCY_PENALTY = 0.1
_QUICK_TO_CURRENT_TOLERANCE = 1.2
_HIGH_VOLATILITY_PCT = 25.0


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------
@dataclass
class ValidationIssue:
    code: str
    severity: Severity
    message: str
    field_name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
            "field": self.field_name,
        }


@dataclass
class ValidationResult:
    is_valid: bool
    overall_score: int
    level: QualityLevel
    completeness: float
    timeliness: float
    consistency: float
    validity: float
    issues: List[ValidationIssue] = field(default_factory=list)
    anomalies: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    factors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return self.validity

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity in ("error", "critical")]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "overall_score": self.overall_score,
            "level": self.level,
            "completeness": round(self.completeness, 4),
            "timeliness": round(self.timeliness, 4),
            "consistency": round(self.consistency, 4),
            "validity": round(self.validity, 4),
            "accuracy": round(self.accuracy, 4),
            "issues": [i.to_dict() for i in self.issues],
            "anomalies": list(self.anomalies),
            "suggestions": list(self.suggestions),
            "factors": list(self.factors),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _as_record(record: Any) -> Optional[Dict[str, Any]]:
    """Normalise a snapshot or mapping into a snake_case dict."""
    if isinstance(record, InstrumentSnapshot):
        # unreported snapshot fields are absent, not present-but-empty
        values = {f.name: getattr(record, f.name) for f in fields(record)}
        return {k: v for k, v in values.items() if v is not None}
    if isinstance(record, Mapping):
        return {_ALIASES.get(k, k): v for k, v in record.items()}
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def _age_hours(last_updated: Any, now: datetime) -> float:
    if isinstance(last_updated, str) and not last_updated.strip():
        return math.inf
    last_updated = _to_datetime(last_updated)
    if last_updated is None:
        return math.inf
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0.0, (now - last_updated).total_seconds() / 3600.0)


def quality_level(score: float) -> QualityLevel:
    for threshold, level in _LEVELS:
        if score >= threshold:
            return level
    return "unreliable"


# ===================================================================
# Validator
# ===================================================================

class DataQualityValidator:
    """Scores the quality of an instrument record.

    Parameters
    ----------
    minimum_completeness : float
        Completeness below this ratio raises a ``LOW_COMPLETENESS`` error.
    max_age_hours : float
        Records older than this are flagged ``DATA_OUTDATED``.
    required_fields : sequence of str
        Fields counted for completeness.
    """

    def __init__(
        self,
        minimum_completeness: float | None = None,
        max_age_hours: float | None = None,
        required_fields: Sequence[str] | None = None,
        settings: dict | None = None,
    ) -> None:
        conf = section("data_quality") if settings is None else settings
        self.minimum_completeness = float(
            minimum_completeness if minimum_completeness is not None
            else conf.get("minimum_completeness", _DEFAULT_MIN_COMPLETENESS)
        )
        self.max_age_hours = float(
            max_age_hours if max_age_hours is not None
            else conf.get("max_age_hours", _DEFAULT_MAX_AGE_HOURS)
        )
        self.required_fields = tuple(
            required_fields or conf.get("required_fields") or _DEFAULT_REQUIRED_FIELDS
        )

    def validate(
        self,
        record: InstrumentSnapshot | Mapping[str, Any],
        required_fields: Sequence[str] | None = None,
        now: datetime | None = None,
    ) -> ValidationResult:
        """Validate *record* and return a scored ``ValidationResult``."""
        data = _as_record(record)
        if data is None:
            logger.warning("Data quality check received non-record input: %r", type(record))
            return ValidationResult(
                is_valid=False,
                overall_score=0,
                level="unreliable",
                completeness=0.0,
                timeliness=0.0,
                consistency=0.0,
                validity=0.0,
                issues=[ValidationIssue("INVALID_DATA", "critical", "Record is not a mapping or snapshot")],
                suggestions=["Provide the instrument data as a snapshot or mapping"],
            )

        now = now or datetime.now(timezone.utc)
        required = tuple(required_fields or self.required_fields)
        issues: List[ValidationIssue] = []
        suggestions: List[str] = []

        completeness = self._completeness(data, required, issues, suggestions)
        timeliness = self._timeliness(data, now, issues, suggestions)
        validity = self._validity(data, issues)
        consistency = self._consistency(data, issues)
        anomalies = self._anomalies(data, issues)

        dims = {
            "completeness": completeness,
            "timeliness": timeliness,
            "consistency": consistency,
            "validity": validity,
        }
        raw = sum(dims[k] * w for k, w in _DIMENSION_WEIGHTS.items())
        overall = int(round(raw * 100))
        level = quality_level(overall)

        has_errors = any(i.severity in ("error", "critical") for i in issues)
        is_valid = not has_errors and overall >= _MIN_VALID_SCORE

        factors = [
            {
                "name": name,
                "score": round(dims[name] * 100, 2),
                "weight": weight,
                "description": f"{name} contributes {weight:.0%} of the quality score",
            }
            for name, weight in _DIMENSION_WEIGHTS.items()
        ]

        symbol = data.get("symbol", "?")
        if not is_valid:
            logger.warning(
                "Data quality below threshold for %s: score=%d level=%s issues=%d",
                symbol, overall, level, len(issues),
            )
        else:
            logger.debug("Data quality for %s: score=%d level=%s", symbol, overall, level)

        return ValidationResult(
            is_valid=is_valid,
            overall_score=overall,
            level=level,
            completeness=completeness,
            timeliness=timeliness,
            consistency=consistency,
            validity=validity,
            issues=issues,
            anomalies=anomalies,
            suggestions=suggestions,
            factors=factors,
        )

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    def _completeness(self, data, required, issues, suggestions) -> float:
        if not required:
            return 1.0
        missing = [f for f in required if not _present(data.get(f))]
        completeness = (len(required) - len(missing)) / len(required)
        if completeness < self.minimum_completeness:
            issues.append(ValidationIssue(
                "LOW_COMPLETENESS", "error",
                f"Completeness {completeness:.0%} below minimum {self.minimum_completeness:.0%}; "
                f"missing: {', '.join(missing)}",
            ))
            suggestions.append(f"Supply the missing fields: {', '.join(missing)}")
        return completeness

    def _timeliness(self, data, now, issues, suggestions) -> float:
        age = _age_hours(data.get("last_updated"), now)
        if age > self.max_age_hours:
            message = (
                "No update timestamp available" if math.isinf(age)
                else f"Data is {age:.1f}h old (limit {self.max_age_hours:.0f}h)"
            )
            issues.append(ValidationIssue("DATA_OUTDATED", "warning", message, "last_updated"))
            suggestions.append("Refresh the market data before acting on it")
        if math.isinf(age) or self.max_age_hours <= 0:
            return 0.0
        return max(0.0, 1.0 - age / self.max_age_hours)

    def _validity(self, data, issues) -> float:
        validity = 1.0
        if "price" in data and data["price"] is not None:
            price = data["price"]
            if not _is_number(price) or price <= 0:
                validity -= _INVALID_PRICE_PENALTY
                issues.append(ValidationIssue("INVALID_PRICE", "error", f"Price must be positive, got {price!r}", "price"))

        for name, low, high, penalty in _RANGE_CHECKS:
            value = data.get(name)
            if value is None or not _is_number(value):
                continue
            if value < low or value > high:
                validity -= penalty
                issues.append(ValidationIssue(
                    f"OUT_OF_RANGE_{name.upper()}", "warning",
                    f"{name}={value} outside [{low}, {high}]", name,
                ))
        return max(0.0, validity)

    def _consistency(self, data, issues) -> float:
        consistency = 1.0
        quick = data.get("quick_ratio")
        current = data.get("current_ratio")
        if _is_number(quick) and _is_number(current) and quick > current * _QUICK_TO_CURRENT_TOLERANCE:
            consistency -= _CONSISTENCY_PENALTY
            issues.append(ValidationIssue(
                "RATIO_INCONSISTENT", "warning",
                f"Quick ratio {quick} exceeds current ratio {current}", "quick_ratio",
            ))

        gross = data.get("gross_profit_margin")
        operating = data.get("operating_margin")
        net = data.get("net_profit_margin")
        if all(_is_number(v) for v in (gross, operating, net)):
            if not (gross >= operating >= net):
                consistency -= _CONSISTENCY_PENALTY
                issues.append(ValidationIssue(
                    "MARGIN_INCONSISTENT", "warning",
                    "Margins should satisfy gross >= operating >= net",
                ))
        return max(0.0, consistency)

    def _anomalies(self, data, issues) -> List[str]:
        anomalies: List[str] = []
        vol = data.get("volatility")
        if _is_number(vol) and vol > _HIGH_VOLATILITY_PCT:
            anomalies.append("HIGH_VOLATILITY")
            issues.append(ValidationIssue(
                "HIGH_VOLATILITY", "warning",
                f"Volatility {vol:.1f}% exceeds {_HIGH_VOLATILITY_PCT:.0f}%", "volatility",
            ))
        if "volume" in data:
            volume = data.get("volume")
            if not _is_number(volume) or volume <= 0:
                anomalies.append("NO_VOLUME")
                issues.append(ValidationIssue("NO_VOLUME", "warning", "No trading volume reported", "volume"))
        return anomalies
