"""Hex binning, styling and render reconciliation for the map overlays."""
from .hex_binner import (
    DistrictValue,
    HexCell,
    ValueKind,
    bin_report_to_hex,
    bin_to_hex,
    bin_to_hex_frame,
    hex_cells_to_frame,
    hex_cells_to_geojson,
    top_cells,
)
from .reconcile import OpKind, RenderedLayer, RenderOp, Shape, diff_shapes
from .render_state import (
    Marker,
    OverlayViewState,
    PlanKind,
    RenderPlan,
    ThresholdStage,
    ThresholdState,
    ViewMode,
)

__all__ = [
    "DistrictValue",
    "HexCell",
    "ValueKind",
    "bin_report_to_hex",
    "bin_to_hex",
    "bin_to_hex_frame",
    "hex_cells_to_frame",
    "hex_cells_to_geojson",
    "top_cells",
    "OpKind",
    "RenderedLayer",
    "RenderOp",
    "Shape",
    "diff_shapes",
    "Marker",
    "OverlayViewState",
    "PlanKind",
    "RenderPlan",
    "ThresholdStage",
    "ThresholdState",
    "ViewMode",
]
