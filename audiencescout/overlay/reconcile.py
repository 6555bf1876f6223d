"""
Render reconciliation.

Overlays are drawn as shapes keyed by a stable identity (district id, h3
index, store id). A redraw never rebuilds a layer: the desired shapes are
diffed against what is already rendered and only add/update/remove operations
are emitted, so a threshold change costs O(changed shapes).
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from .styles import ShapeStyle


class OpKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class Shape:
    key: str
    style: ShapeStyle
    label: str = ""
    ref: Optional[str] = None


@dataclass(frozen=True)
class RenderOp:
    kind: OpKind
    layer: str
    key: str
    shape: Optional[Shape] = None


def diff_shapes(
    layer: str,
    rendered: Mapping[str, Shape],
    desired: Mapping[str, Shape],
    scope: Optional[Iterable[str]] = None,
) -> List[RenderOp]:
    """
    Operations that turn ``rendered`` into ``desired``.

    Args:
        layer: layer name stamped on each op
        rendered: shapes currently on the map, by key
        desired: shapes that should be on the map, by key
        scope: if given, only these keys are compared; keys outside the scope
            are assumed unchanged. Callers that know which identities moved pass
            them here to keep the diff proportional to the change.

    Returns:
        removes, then updates, then adds; each group sorted by key
    """
    if scope is None:
        keys = set(rendered) | set(desired)
    else:
        keys = set(scope)

    removes: List[RenderOp] = []
    updates: List[RenderOp] = []
    adds: List[RenderOp] = []
    for key in sorted(keys):
        old = rendered.get(key)
        new = desired.get(key)
        if old is not None and new is None:
            removes.append(RenderOp(OpKind.REMOVE, layer, key))
        elif old is None and new is not None:
            adds.append(RenderOp(OpKind.ADD, layer, key, new))
        elif old is not None and new is not None and old != new:
            updates.append(RenderOp(OpKind.UPDATE, layer, key, new))
    return removes + updates + adds


class RenderedLayer:
    """The shapes one overlay layer currently shows, keyed by identity."""

    def __init__(self, name: str):
        self.name = name
        self.visible = True
        self._shapes: Dict[str, Shape] = {}

    def __len__(self) -> int:
        return len(self._shapes)

    def __contains__(self, key: str) -> bool:
        return key in self._shapes

    def get(self, key: str) -> Optional[Shape]:
        return self._shapes.get(key)

    @property
    def shapes(self) -> Mapping[str, Shape]:
        return dict(self._shapes)

    def reconcile(
        self,
        desired: Mapping[str, Shape],
        scope: Optional[Iterable[str]] = None,
    ) -> List[RenderOp]:
        ops = diff_shapes(self.name, self._shapes, desired, scope)
        self.apply(ops)
        return ops

    def relabel(self, labels: Mapping[str, str]) -> List[RenderOp]:
        """Change tooltip text only; style and geometry are left alone."""
        ops: List[RenderOp] = []
        for key in sorted(labels):
            shape = self._shapes.get(key)
            if shape is None or shape.label == labels[key]:
                continue
            ops.append(RenderOp(OpKind.UPDATE, self.name, key, replace(shape, label=labels[key])))
        self.apply(ops)
        return ops

    def apply(self, ops: Iterable[RenderOp]) -> None:
        for op in ops:
            if op.layer != self.name:
                raise ValueError(f"Op for layer {op.layer!r} applied to layer {self.name!r}")
            if op.kind is OpKind.REMOVE:
                self._shapes.pop(op.key, None)
            else:
                self._shapes[op.key] = op.shape
