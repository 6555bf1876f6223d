"""
Overlay render state machine.

State is {DISTRICTS, HEX} view mode x {DRAFT, APPLIED} threshold stage.

- Dragging the threshold slider moves the draft value only. That re-renders
  tooltip labels (a preview of what would be included) and nothing else.
- Releasing the slider commits: draft becomes applied, and only then does the
  view re-run aggregation and hex binning.
- Switching between districts and hexes toggles layer visibility. Both layers
  are built from the same applied report, so coverage never depends on the
  view mode.

Updates are serialised per view. At most one recomputation runs at a time; a
commit bumps the view's generation, and a recomputation whose generation is no
longer current is discarded when it finishes (or skipped if it had not
started). Its result is still correct, it just no longer describes what the
user asked for.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .. import config
from ..geo.coords import RegionBounds
from ..geo.h3_utils import validate_resolution
from ..ids import DistrictId
from ..scoring import agreement as agreement_mod
from ..scoring import confidence as confidence_mod
from ..scoring.context import AggregationContext
from ..scoring.schema import AgreementReport, ConfidenceReport, ConstructionMode, ProviderSignal
from ..scoring.signals import ensure_signals
from .hex_binner import HexCell, bin_report_to_hex
from .reconcile import RenderedLayer, RenderOp, Shape
from .styles import (
    agreement_label,
    confidence_label,
    district_style,
    hex_label,
    hex_style,
    marker_style,
    zone_marker_style,
)

logger = logging.getLogger(__name__)

Report = Union[AgreementReport, ConfidenceReport]

DISTRICT_LAYER = "districts"
HEX_LAYER = "hex"
POI_LAYER = "poi"
BATTLE_ZONE_LAYER = "battle_zones"
MARKER_LAYERS = (POI_LAYER, BATTLE_ZONE_LAYER)


class ViewMode(str, Enum):
    DISTRICTS = "districts"
    HEX = "hex"


class ThresholdStage(str, Enum):
    DRAFT = "draft"
    APPLIED = "applied"


@dataclass(frozen=True)
class ThresholdState:
    """
    Draft/applied threshold pair.

    ``drag`` returns a state with a new draft; ``commit`` is the only way the
    applied value changes. Nothing else recomputes on a threshold.
    """

    draft: float
    applied: float

    @classmethod
    def initial(cls, value: float) -> "ThresholdState":
        _check_number(value)
        return cls(draft=value, applied=value)

    @property
    def stage(self) -> ThresholdStage:
        return ThresholdStage.DRAFT if self.draft != self.applied else ThresholdStage.APPLIED

    def drag(self, value: float) -> "ThresholdState":
        _check_number(value)
        return replace(self, draft=value)

    def commit(self) -> "ThresholdState":
        return replace(self, applied=self.draft)


def _check_number(value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"threshold must be a number, got {type(value).__name__}")


class PlanKind(str, Enum):
    NONE = "none"
    LABELS = "labels"
    RECOMPUTE = "recompute"
    REBIN = "rebin"
    VISIBILITY = "visibility"
    MARKERS = "markers"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class RenderPlan:
    kind: PlanKind
    generation: int
    ops: Tuple[RenderOp, ...] = ()
    preview_included_count: Optional[int] = None
    visible_layers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Marker:
    """A point overlay (store, POI, battle zone) tied to a district."""

    key: str
    district_id: DistrictId
    category: Optional[str] = None


@dataclass(frozen=True)
class RecomputeTicket:
    generation: int
    data_version: int
    threshold: float
    resolution: int
    signals: Tuple[ProviderSignal, ...] = field(repr=False)


@dataclass(frozen=True)
class RecomputeResult:
    ticket: RecomputeTicket
    report: Report
    cells: Tuple[HexCell, ...]


class OverlayViewState:
    """Mutable view state owned by the render layer, one per map view."""

    def __init__(
        self,
        signals: Iterable[ProviderSignal],
        context: Optional[AggregationContext] = None,
        threshold: Optional[float] = None,
        resolution: int = config.H3_RES_DEFAULT,
        view_mode: ViewMode = ViewMode.DISTRICTS,
        region: Optional[RegionBounds] = None,
    ):
        self.context = context or AggregationContext()
        if threshold is None:
            threshold = 1 if self.mode is ConstructionMode.VALIDATION else config.CONFIDENCE_THRESHOLD_DEFAULT
        self.threshold = ThresholdState.initial(self._coerce(threshold))
        self.resolution = validate_resolution(resolution)
        self.view_mode = ViewMode(view_mode)
        self.region = region
        self.layers: Dict[str, RenderedLayer] = {
            name: RenderedLayer(name) for name in (DISTRICT_LAYER, HEX_LAYER) + MARKER_LAYERS
        }
        self.report: Optional[Report] = None
        self.cells: Tuple[HexCell, ...] = ()

        self._signals: Tuple[ProviderSignal, ...] = tuple(ensure_signals(signals))
        self._lock = threading.RLock()
        self._compute_lock = threading.Lock()
        self._generation = 0
        self._data_version = 0
        self._applied_data_version = -1
        self._preview: FrozenSet[DistrictId] = frozenset()
        self._markers: Dict[str, Dict[str, Marker]] = {name: {} for name in MARKER_LAYERS}
        self._markers_by_district: Dict[DistrictId, Set[Tuple[str, str]]] = {}
        self._apply_visibility()

    # ---------- properties ----------
    @property
    def mode(self) -> ConstructionMode:
        return self.context.mode

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def stage(self) -> ThresholdStage:
        return self.threshold.stage

    @property
    def included_ids(self) -> FrozenSet[DistrictId]:
        return self.report.included_ids if self.report is not None else frozenset()

    # ---------- threshold ----------
    def drag(self, value: float) -> RenderPlan:
        """
        Move the draft threshold. Labels only; no aggregation, no restyle.

        In validation mode the value must be a whole number, the same rule
        the commit applies, so the preview always matches what commit includes.
        """
        with self._lock:
            value = self._coerce(value)
            self.threshold = self.threshold.drag(value)
            if self.report is None:
                return RenderPlan(PlanKind.LABELS, self._generation)
            preview = self._included_at(self.report, value)
            changed = preview ^ self._preview
            by_district = self.report.by_district() if changed else {}
            labels = {d: self._label(d, d in preview, by_district) for d in changed}
            ops = self.layers[DISTRICT_LAYER].relabel(labels)
            self._preview = preview
            return RenderPlan(
                PlanKind.LABELS,
                self._generation,
                ops=tuple(ops),
                preview_included_count=len(preview),
            )

    def commit(self) -> RenderPlan:
        """Apply the draft threshold and recompute synchronously."""
        ticket = self.begin_commit()
        if ticket is None:
            return RenderPlan(PlanKind.NONE, self.generation)
        return self.apply(self.run(ticket))

    def submit_commit(self, executor: Executor) -> Future:
        """Apply the draft threshold and recompute on ``executor``; resolves to the RenderPlan."""
        ticket = self.begin_commit()
        if ticket is None:
            future: Future = Future()
            future.set_result(RenderPlan(PlanKind.NONE, self.generation))
            return future
        return executor.submit(lambda: self.apply(self.run(ticket)))

    def begin_commit(self) -> Optional[RecomputeTicket]:
        """
        Move draft to applied and issue a ticket for the recomputation.

        Returns None when the applied value did not change and a report for
        the current data already exists.
        """
        with self._lock:
            committed = self.threshold.commit()
            unchanged = (
                committed.applied == self.threshold.applied
                and self.report is not None
                and self._applied_data_version == self._data_version
            )
            self.threshold = committed
            if unchanged:
                return None
            return self._issue_ticket()

    def replace_signals(self, signals: Iterable[ProviderSignal]) -> RenderPlan:
        """New signal data (e.g. a provider fetch completed). Full recompute at the applied threshold."""
        with self._lock:
            self._signals = tuple(ensure_signals(signals))
            self._data_version += 1
            ticket = self._issue_ticket()
        return self.apply(self.run(ticket))

    def initial_render(self) -> RenderPlan:
        with self._lock:
            ticket = self._issue_ticket()
        return self.apply(self.run(ticket))

    def _issue_ticket(self) -> RecomputeTicket:
        self._generation += 1
        return RecomputeTicket(
            generation=self._generation,
            data_version=self._data_version,
            threshold=self.threshold.applied,
            resolution=self.resolution,
            signals=self._signals,
        )

    def is_current(self, ticket: RecomputeTicket) -> bool:
        with self._lock:
            return ticket.generation == self._generation

    def run(self, ticket: RecomputeTicket) -> Optional[RecomputeResult]:
        """
        Aggregate and bin for a ticket. Serialised per view.

        Returns None without computing if a newer commit arrived while this
        ticket was waiting for the compute lock.
        """
        with self._compute_lock:
            if not self.is_current(ticket):
                logger.debug(f"Skipping recompute for superseded generation {ticket.generation}")
                return None
            if self.mode is ConstructionMode.VALIDATION:
                report = agreement_mod.compute_agreement(
                    ticket.signals, agreement_mod.coerce_threshold(ticket.threshold), self.context
                )
            else:
                report = confidence_mod.compute_confidence(ticket.signals, ticket.threshold, self.context)
            cells = bin_report_to_hex(report, ticket.resolution, region=self.region)
            return RecomputeResult(ticket=ticket, report=report, cells=tuple(cells))

    def apply(self, result: Optional[RecomputeResult]) -> RenderPlan:
        """Reconcile layers with a finished recomputation, unless it has been superseded."""
        with self._lock:
            if result is None or result.ticket.generation != self._generation:
                if result is not None:
                    logger.debug(f"Discarding recompute for superseded generation {result.ticket.generation}")
                return RenderPlan(PlanKind.SUPERSEDED, self._generation)

            old = self.report
            same_data = old is not None and self._applied_data_version == result.ticket.data_version
            new = result.report

            ops: List[RenderOp] = []
            ops += self._reconcile_districts(old, new, same_data)
            ops += self._reconcile_hexes(new, result.cells)
            ops += self._reconcile_markers(old, new, same_data)

            self.report = new
            self.cells = result.cells
            self._applied_data_version = result.ticket.data_version
            self._preview = new.included_ids

            applied = new.threshold
            draft = applied if self.threshold.draft == self.threshold.applied else self.threshold.draft
            self.threshold = ThresholdState(draft=draft, applied=applied)

            return RenderPlan(
                PlanKind.RECOMPUTE,
                self._generation,
                ops=tuple(ops),
                preview_included_count=new.included_count,
                visible_layers=self._visible_layers(),
            )

    # ---------- view mode / resolution ----------
    def set_view_mode(self, view_mode: ViewMode) -> RenderPlan:
        """Districts <-> hex is a visibility toggle; nothing is recomputed."""
        with self._lock:
            view_mode = ViewMode(view_mode)
            if view_mode is self.view_mode:
                return RenderPlan(PlanKind.NONE, self._generation, visible_layers=self._visible_layers())
            self.view_mode = view_mode
            self._apply_visibility()
            return RenderPlan(PlanKind.VISIBILITY, self._generation, visible_layers=self._visible_layers())

    def set_resolution(self, resolution: int) -> RenderPlan:
        """Re-bin the applied report at a new resolution from its derived values."""
        with self._lock:
            res = validate_resolution(resolution)
            if res == self.resolution:
                return RenderPlan(PlanKind.NONE, self._generation)
            self.resolution = res
            if self.report is None:
                return RenderPlan(PlanKind.NONE, self._generation)
            cells = tuple(bin_report_to_hex(self.report, res, region=self.region))
            ops = self._reconcile_hexes(self.report, cells)
            self.cells = cells
            return RenderPlan(PlanKind.REBIN, self._generation, ops=tuple(ops))

    def _apply_visibility(self) -> None:
        self.layers[DISTRICT_LAYER].visible = self.view_mode is ViewMode.DISTRICTS
        self.layers[HEX_LAYER].visible = self.view_mode is ViewMode.HEX

    def _visible_layers(self) -> Tuple[str, ...]:
        return tuple(name for name, layer in self.layers.items() if layer.visible)

    # ---------- markers ----------
    def set_markers(self, layer: str, markers: Iterable[Marker]) -> RenderPlan:
        """Replace the marker set of an independent point layer (POIs, battle zones)."""
        if layer not in MARKER_LAYERS:
            raise ValueError(f"Unknown marker layer {layer!r}; expected one of {MARKER_LAYERS}")
        with self._lock:
            for key, marker in self._markers[layer].items():
                self._markers_by_district.get(marker.district_id, set()).discard((layer, key))
            self._markers[layer] = {m.key: m for m in markers}
            for key, marker in self._markers[layer].items():
                self._markers_by_district.setdefault(marker.district_id, set()).add((layer, key))
            included = self.included_ids
            desired = {key: self._marker_shape(layer, m, included) for key, m in self._markers[layer].items()}
            ops = self.layers[layer].reconcile(desired)
            return RenderPlan(PlanKind.MARKERS, self._generation, ops=tuple(ops))

    def _marker_shape(self, layer: str, marker: Marker, included: FrozenSet[DistrictId]) -> Shape:
        active = marker.district_id in included
        if layer == BATTLE_ZONE_LAYER and marker.category:
            style = zone_marker_style(marker.category, active)
        else:
            style = marker_style(active)
        label = f"{marker.key}\nDistrict: {marker.district_id}"
        if marker.category:
            label += f"\n{marker.category.replace('_', ' ').title()}"
        return Shape(key=marker.key, style=style, label=label, ref=marker.district_id)

    # ---------- reconciliation ----------
    def _coerce(self, value):
        _check_number(value)
        if self.mode is ConstructionMode.VALIDATION:
            return agreement_mod.coerce_threshold(value)
        return value

    def _included_at(self, report: Report, threshold: float) -> FrozenSet[DistrictId]:
        if isinstance(report, AgreementReport):
            return agreement_mod.included_at(report, threshold)
        return confidence_mod.included_at(report, threshold)

    def _label(self, district: DistrictId, included: bool, by_district: Mapping[DistrictId, object]) -> str:
        result = by_district.get(district)
        if isinstance(self.report, AgreementReport):
            count = result.agreement_count if result is not None else 0
            return agreement_label(district, included, count, self.report.max_agreement)
        avg = result.avg_confidence if result is not None else 0.0
        return confidence_label(district, included, avg)

    def _district_shape(self, report: Report, result) -> Shape:
        if isinstance(report, AgreementReport):
            style = district_style(result.agreement_count, report.max_agreement, result.included)
            label = agreement_label(result.district_id, result.included, result.agreement_count, report.max_agreement)
        else:
            style = district_style(result.avg_confidence, 1.0, result.included)
            label = confidence_label(result.district_id, result.included, result.avg_confidence)
        return Shape(key=result.district_id, style=style, label=label, ref=result.district_id)

    def _reconcile_districts(self, old: Optional[Report], new: Report, same_data: bool) -> List[RenderOp]:
        layer = self.layers[DISTRICT_LAYER]
        by_district = new.by_district()
        if same_data:
            scope = (old.included_ids ^ new.included_ids) | (self._preview ^ new.included_ids)
            desired = {d: self._district_shape(new, by_district[d]) for d in scope if d in by_district}
            return layer.reconcile(desired, scope=scope)
        desired = {d: self._district_shape(new, r) for d, r in by_district.items()}
        return layer.reconcile(desired)

    def _reconcile_hexes(self, report: Report, cells: Tuple[HexCell, ...]) -> List[RenderOp]:
        if isinstance(report, AgreementReport):
            max_value, name = float(max(1, report.max_agreement)), "Max agreement"
        else:
            max_value, name = 1.0, "Avg confidence"
        desired = {
            c.h3_index: Shape(
                key=c.h3_index,
                style=hex_style(c.aggregate_value, max_value),
                label=hex_label(c.member_count, c.aggregate_value, name),
                ref=c.h3_index,
            )
            for c in cells
        }
        return self.layers[HEX_LAYER].reconcile(desired)

    def _reconcile_markers(self, old: Optional[Report], new: Report, same_data: bool) -> List[RenderOp]:
        if same_data:
            moved = old.included_ids ^ new.included_ids
            touched: Dict[str, Set[str]] = {name: set() for name in MARKER_LAYERS}
            for district in moved:
                for layer, key in self._markers_by_district.get(district, ()):
                    touched[layer].add(key)
        else:
            touched = {name: set(self._markers[name]) for name in MARKER_LAYERS}

        ops: List[RenderOp] = []
        included = new.included_ids
        for layer, keys in touched.items():
            if not keys:
                continue
            desired = {k: self._marker_shape(layer, self._markers[layer][k], included) for k in keys}
            ops += self.layers[layer].reconcile(desired, scope=keys)
        return ops
