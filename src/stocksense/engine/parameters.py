"""
Analysis Parameters.

Explicit configuration for one analysis run. Passed into the aggregator as a
value, never read from ambient state.
"""

from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stocksense.analysis.patterns import DETECTOR_NAMES

DEFAULT_CONFIDENCE_THRESHOLD = 0.6


class AnalysisConfig(BaseModel):
    """Parameter object for the Analysis Aggregator."""

    model_config = ConfigDict(frozen=True)

    confidence_threshold: float = Field(
        default=DEFAULT_CONFIDENCE_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Findings at or below this confidence are discarded",
    )
    rsi_period: int = Field(default=14, ge=1)
    sma_periods: Tuple[int, ...] = Field(default=(20, 50))
    disabled_detectors: FrozenSet[str] = Field(
        default=frozenset(),
        description="Pattern names to skip (e.g. 'Doji')",
    )
    timeframe: Optional[str] = Field(
        default=None,
        description="Interval label stamped on findings (e.g. '1D')",
    )

    @field_validator("sma_periods")
    @classmethod
    def validate_periods(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        """Reject non-positive periods."""
        if any(p < 1 for p in v):
            raise ValueError("sma_periods must all be >= 1")
        return v

    @field_validator("disabled_detectors")
    @classmethod
    def validate_detectors(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        """Only known detector names can be disabled."""
        unknown = set(v) - set(DETECTOR_NAMES)
        if unknown:
            raise ValueError(
                f"Unknown detector(s): {sorted(unknown)}. "
                f"Known: {', '.join(DETECTOR_NAMES)}"
            )
        return v
