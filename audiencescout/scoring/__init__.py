"""
audiencescout.scoring - Agreement (validation) and confidence (extension) aggregation.

Both aggregators are pure functions of (signals, applied threshold, context):
no shared state, safe to call concurrently for different requests.
"""
from .schema import (
    AgreementReport,
    AgreementResult,
    ConfidenceBand,
    ConfidenceReport,
    ConfidenceResult,
    ConstructionMode,
    District,
    ProviderContribution,
    ProviderImpact,
    ProviderSignal,
)
from .context import AggregationContext
from .agreement import compute_agreement, confidence_band, threshold_range
from .confidence import compute_confidence

__all__ = [
    "AgreementReport",
    "AgreementResult",
    "ConfidenceBand",
    "ConfidenceReport",
    "ConfidenceResult",
    "ConstructionMode",
    "District",
    "ProviderContribution",
    "ProviderImpact",
    "ProviderSignal",
    "AggregationContext",
    "compute_agreement",
    "confidence_band",
    "threshold_range",
    "compute_confidence",
]
