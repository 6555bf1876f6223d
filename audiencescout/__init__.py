"""
audiencescout - Multi-provider audience scoring for geographically-targeted segments.

Turns raw per-provider, per-district signal rows into agreement (validation mode)
or confidence (extension mode) metrics, filters an inclusion set by a threshold,
bins the included districts into an H3 hex index for rendering, and classifies
store catchments into battle zones.
"""
from .errors import (
    AudienceScoutError,
    DuplicateSignal,
    EmptySignalSet,
    InvalidCoordinate,
    SchemaError,
    ThresholdClamp,
    ThresholdOutOfRange,
)
from .ids import DistrictId, ProviderId, SegmentKey, district_id, provider_id, segment_key
from .scoring import (
    AggregationContext,
    AgreementReport,
    ConfidenceReport,
    ConstructionMode,
    District,
    ProviderSignal,
    compute_agreement,
    compute_confidence,
)
from .overlay import HexCell, ValueKind, bin_to_hex
from .battle_zones import BattleZoneReport, StoreLocation, classify_battle_zones

__version__ = "0.4.0"

__all__ = [
    "AudienceScoutError",
    "DuplicateSignal",
    "EmptySignalSet",
    "InvalidCoordinate",
    "SchemaError",
    "ThresholdClamp",
    "ThresholdOutOfRange",
    "DistrictId",
    "ProviderId",
    "SegmentKey",
    "district_id",
    "provider_id",
    "segment_key",
    "AggregationContext",
    "AgreementReport",
    "ConfidenceReport",
    "ConstructionMode",
    "District",
    "ProviderSignal",
    "compute_agreement",
    "compute_confidence",
    "HexCell",
    "ValueKind",
    "bin_to_hex",
    "BattleZoneReport",
    "StoreLocation",
    "classify_battle_zones",
]
