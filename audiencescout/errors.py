"""
Error taxonomy.

Only malformed input shapes raise to the caller (SchemaError, TypeError).
Everything else is recovered where it happens and surfaced on the result:

- InvalidCoordinate: raised by the coordinate helpers, caught by callers that
  iterate many points; the point is dropped and logged.
- EmptySignalSet / DuplicateSignal: never raised by the aggregators; reports
  carry an ``empty`` flag and a ``duplicates_resolved`` count instead.
- ThresholdOutOfRange: never raised by the aggregators; the threshold is
  clamped and a ThresholdClamp is attached to the report.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class AudienceScoutError(Exception):
    """Base class for all audiencescout errors."""


class SchemaError(AudienceScoutError, ValueError):
    """Input rows or frames have the wrong shape (missing columns, wrong types)."""


class InvalidCoordinate(AudienceScoutError, ValueError):
    def __init__(self, lat, lng, reason: Optional[str] = None):
        self.lat = lat
        self.lng = lng
        detail = reason or "lat must be -90..90, lng must be -180..180"
        super().__init__(f"Invalid coordinate: lat={lat}, lng={lng} ({detail})")


class EmptySignalSet(AudienceScoutError):
    """No provider rows were supplied for a segment."""


class DuplicateSignal(AudienceScoutError):
    """The same (provider, district) pair appeared more than once."""


class ThresholdOutOfRange(AudienceScoutError, ValueError):
    def __init__(self, requested, low, high):
        self.requested = requested
        self.low = low
        self.high = high
        super().__init__(f"Threshold {requested} outside [{low}, {high}]")


@dataclass(frozen=True)
class ThresholdClamp:
    """Record of a threshold that was pulled back into its valid range."""

    requested: float
    applied: float
    low: float
    high: float

    def as_error(self) -> ThresholdOutOfRange:
        return ThresholdOutOfRange(self.requested, self.low, self.high)


def clamp_threshold(requested, low, high) -> tuple:
    """
    Clamp a threshold into [low, high].

    Returns:
        (applied_value, ThresholdClamp or None)
    """
    if isinstance(requested, bool) or not isinstance(requested, (int, float)):
        raise SchemaError(f"threshold must be numeric, got {type(requested).__name__}")
    if requested != requested:  # NaN
        raise SchemaError("threshold must not be NaN")
    applied = min(max(requested, low), high)
    if applied != requested:
        return applied, ThresholdClamp(requested=requested, applied=applied, low=low, high=high)
    return applied, None
