"""Map graph + simulation state + view + theme to drawable primitives."""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type, TypeVar, Union

from .interaction import ViewTransform
from .model import EdgeStyle, Graph, NodeCategory, NodeShape, SimulationState
from .text import DEFAULT_FONT_SIZE, FontMeasurer, Measure, wrap
from .themes import Theme

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
E = TypeVar("E", bound=enum.Enum)


@dataclass(frozen=True)
class ProjectorConfig:
    wrap_width: float = 90.0
    font_size: float = DEFAULT_FONT_SIZE
    line_height_em: float = 1.1
    node_stroke_width: float = 1.5
    edge_width: float = 1.5
    prominent_edge_width: float = 2.5
    prominent_priority: int = 2
    edge_opacity: float = 0.6
    edge_label_size: float = 10.0
    marker_id: str = "arrowhead"


@dataclass(frozen=True)
class _ShapeTemplate:
    kind: str  # rect | ellipse | polygon
    width: float = 0.0
    height: float = 0.0
    corner_radius: float = 0.0
    points: Tuple[Point, ...] = ()
    border_width: float = 1.5
    double_border: bool = False


_SHAPES: Dict[NodeShape, _ShapeTemplate] = {
    NodeShape.BOX: _ShapeTemplate("rect", width=100.0, height=50.0, corner_radius=8.0),
    NodeShape.ELLIPSE: _ShapeTemplate("ellipse", width=100.0, height=60.0),
    NodeShape.DIAMOND: _ShapeTemplate(
        "polygon", width=80.0, height=60.0, points=((0, -30), (40, 0), (0, 30), (-40, 0))
    ),
    NodeShape.PARALLELOGRAM: _ShapeTemplate(
        "polygon",
        width=100.0,
        height=50.0,
        points=((-40, -25), (50, -25), (40, 25), (-50, 25)),
    ),
    NodeShape.NOTE: _ShapeTemplate(
        "polygon",
        width=100.0,
        height=50.0,
        points=((-50, -25), (38, -25), (50, -13), (50, 25), (-50, 25)),
    ),
    NodeShape.DOUBLEOCTAGON: _ShapeTemplate(
        "polygon",
        width=90.0,
        height=90.0,
        points=(
            (-45, -20), (-20, -45), (20, -45), (45, -20),
            (45, 20), (20, 45), (-20, 45), (-45, 20),
        ),
        border_width=3.0,
        double_border=True,
    ),
}
_DEFAULT_SHAPE = NodeShape.BOX

_CATEGORY_FILL: Dict[NodeCategory, str] = {
    NodeCategory.TITLE: "title_fill",
    NodeCategory.PHASE: "phase_fill",
    NodeCategory.STEP: "step_fill",
    NodeCategory.DECISION: "decision_fill",
    NodeCategory.INPUT: "step_fill",
    NodeCategory.OUTPUT: "end_fill",
    NodeCategory.NOTE: "step_fill",
    NodeCategory.END: "end_fill",
}
_DEFAULT_CATEGORY = NodeCategory.STEP

_DASH_PATTERNS: Dict[EdgeStyle, Optional[str]] = {
    EdgeStyle.SOLID: None,
    EdgeStyle.DASHED: "5,5",
    EdgeStyle.DOTTED: "2,2",
}
_DEFAULT_STYLE = EdgeStyle.SOLID


@dataclass(frozen=True)
class NodePrimitive:
    node_id: str
    shape: NodeShape
    kind: str
    x: float
    y: float
    scale: float
    width: float
    height: float
    corner_radius: float
    points: Tuple[Point, ...]
    fill: str
    stroke: str
    stroke_width: float
    double_border: bool
    lines: Tuple[str, ...]
    font_size: float
    line_height: float
    font_color: str
    tooltip: str


@dataclass(frozen=True)
class EdgePrimitive:
    edge_index: int
    source_id: str
    target_id: str
    x1: float
    y1: float
    x2: float
    y2: float
    stroke: str
    stroke_width: float
    opacity: float
    dasharray: Optional[str]
    marker_id: str
    label: Optional[str]
    label_x: float
    label_y: float
    label_size: float


Primitive = Union[EdgePrimitive, NodePrimitive]


class Projector:
    """Builds primitive lists; wrapped label lines are cached per label."""

    def __init__(
        self,
        config: Optional[ProjectorConfig] = None,
        measure: Optional[Measure] = None,
    ) -> None:
        self.config = config or ProjectorConfig()
        self.measure = measure or FontMeasurer().metric(self.config.font_size)
        self._lines_cache: Dict[str, Tuple[str, ...]] = {}

    def wrap_label(self, label: str) -> Tuple[str, ...]:
        lines = self._lines_cache.get(label)
        if lines is None:
            lines = tuple(wrap(label, self.config.wrap_width, self.measure))
            self._lines_cache[label] = lines
        return lines

    def clear_cache(self) -> None:
        self._lines_cache.clear()

    def project(
        self,
        graph: Graph,
        state: SimulationState,
        view: ViewTransform,
        theme: Theme,
    ) -> List[Primitive]:
        primitives: List[Primitive] = []
        for edge in graph.edges:
            primitives.append(self._project_edge(graph, state, view, theme, edge))
        for idx, node in enumerate(graph.nodes):
            primitives.append(self._project_node(state, view, theme, idx, node))
        return primitives

    def _project_node(self, state, view, theme, idx, node) -> NodePrimitive:
        cfg = self.config
        shape = _resolve(NodeShape, node.shape, _DEFAULT_SHAPE, "shape", node.id)
        category = _resolve(NodeCategory, node.category, _DEFAULT_CATEGORY, "category", node.id)
        template = _SHAPES.get(shape, _SHAPES[_DEFAULT_SHAPE])
        fill = getattr(theme, _CATEGORY_FILL.get(category, "step_fill"))

        x, y = _screen(view, state, idx)
        k = view.k
        points = tuple((x + px * k, y + py * k) for px, py in template.points)
        category_name = node.category.value if isinstance(node.category, enum.Enum) else node.category
        return NodePrimitive(
            node_id=node.id,
            shape=shape,
            kind=template.kind,
            x=x,
            y=y,
            scale=k,
            width=template.width * k,
            height=template.height * k,
            corner_radius=template.corner_radius * k,
            points=points,
            fill=fill,
            stroke=theme.edge_color,
            stroke_width=template.border_width * k,
            double_border=template.double_border,
            lines=self.wrap_label(node.label),
            font_size=cfg.font_size * k,
            line_height=cfg.font_size * cfg.line_height_em * k,
            font_color=theme.font_color,
            tooltip=f"{category_name}: {node.label}",
        )

    def _project_edge(self, graph, state, view, theme, resolved) -> EdgePrimitive:
        cfg = self.config
        edge = resolved.edge
        style = _resolve(EdgeStyle, edge.style, _DEFAULT_STYLE, "style", f"edge #{resolved.index}")
        x1, y1 = _screen(view, state, resolved.source)
        x2, y2 = _screen(view, state, resolved.target)
        prominent = edge.priority is not None and edge.priority < cfg.prominent_priority
        width = cfg.prominent_edge_width if prominent else cfg.edge_width
        label_x, label_y = _label_anchor((x1, y1), (x2, y2), 6.0 * view.k)
        return EdgePrimitive(
            edge_index=resolved.index,
            source_id=edge.from_id,
            target_id=edge.to_id,
            x1=x1,
            y1=y1,
            x2=x2,
            y2=y2,
            stroke=theme.edge_color,
            stroke_width=width * view.k,
            opacity=cfg.edge_opacity,
            dasharray=_DASH_PATTERNS.get(style),
            marker_id=cfg.marker_id,
            label=edge.label,
            label_x=label_x,
            label_y=label_y,
            label_size=cfg.edge_label_size * view.k,
        )


def project(
    graph: Graph,
    state: SimulationState,
    view: ViewTransform,
    theme: Theme,
    *,
    measure: Optional[Measure] = None,
) -> List[Primitive]:
    return Projector(measure=measure).project(graph, state, view, theme)


def _resolve(enum_cls: Type[E], value, default: E, what: str, owner: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug("%s: unrecognized %s %r, using %s", owner, what, value, default.value)
        return default


def _screen(view: ViewTransform, state: SimulationState, idx: int) -> Point:
    return view.apply((float(state.positions[idx, 0]), float(state.positions[idx, 1])))


def _label_anchor(p_from: Point, p_to: Point, offset: float) -> Point:
    mid_x = (p_from[0] + p_to[0]) / 2.0
    mid_y = (p_from[1] + p_to[1]) / 2.0
    dx = p_to[0] - p_from[0]
    dy = p_to[1] - p_from[1]
    seg_len = math.hypot(dx, dy)
    if seg_len <= 1e-9:
        return mid_x, mid_y
    return mid_x - dy / seg_len * offset, mid_y + dx / seg_len * offset


__all__ = [
    "Projector",
    "ProjectorConfig",
    "NodePrimitive",
    "EdgePrimitive",
    "Primitive",
    "project",
]
