"""
Shape styling and tooltip labels for the district and hex overlays.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DISTRICT_FILL = "#808080"
DISTRICT_STROKE = "#666666"
HEX_COLOR = "#3bc8ea"
MARKER_ACTIVE = "#02b5e7"
MARKER_MUTED = "#9e9e9e"

# Battle zone marker colours
ZONE_COLORS = {
    "owned": "#2e7d32",
    "contested": "#f9a825",
    "competitor_only": "#c62828",
}


@dataclass(frozen=True)
class ShapeStyle:
    fill_color: str
    fill_opacity: float
    color: str
    weight: float
    opacity: float
    radius: Optional[float] = None


def _intensity(value: float, max_value: float) -> float:
    return max(0.0, min(1.0, value / max(1e-9, max_value)))


def district_style(value: float, max_value: float, included: bool) -> ShapeStyle:
    """Included districts shade 0.1-0.7 with their value; excluded ones stay faint."""
    if included:
        fill_opacity = 0.1 + _intensity(value, max_value) * 0.6
    else:
        fill_opacity = 0.05
    return ShapeStyle(
        fill_color=DISTRICT_FILL,
        fill_opacity=round(fill_opacity, 4),
        color=DISTRICT_STROKE,
        weight=1 if included else 0.5,
        opacity=0.6,
    )


def hex_style(value: float, max_value: float) -> ShapeStyle:
    t = _intensity(value, max_value)
    return ShapeStyle(
        fill_color=HEX_COLOR,
        fill_opacity=round(0.06 + t * 0.22, 4),
        color=HEX_COLOR,
        weight=2 if t > 0.7 else 1,
        opacity=0.6,
    )


def marker_style(active: bool, color: Optional[str] = None) -> ShapeStyle:
    fill = color or (MARKER_ACTIVE if active else MARKER_MUTED)
    return ShapeStyle(
        fill_color=fill,
        fill_opacity=0.8 if active else 0.3,
        color=fill,
        weight=2 if active else 1,
        opacity=0.9 if active else 0.4,
        radius=6 if active else 4,
    )


def zone_marker_style(category: str, active: bool = True) -> ShapeStyle:
    return marker_style(active, ZONE_COLORS.get(category))


def agreement_label(district: str, included: bool, agreement_count: int, max_agreement: int) -> str:
    text = f"District: {district}\n"
    if included:
        return text + f"Providers agreeing: {agreement_count} / {max(1, max_agreement)}"
    return text + "Not included"


def confidence_label(district: str, included: bool, avg_confidence: float) -> str:
    text = f"District: {district}\n"
    if included:
        return text + f"Avg confidence: {avg_confidence:.2f}"
    return text + "Not included"


def hex_label(member_count: int, aggregate_value: float, value_name: str) -> str:
    return f"Hex area\nDistricts: {member_count}\n{value_name}: {aggregate_value:.1f}"
