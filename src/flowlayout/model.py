"""Flowchart spec parsing, validation and graph construction."""
from __future__ import annotations

import enum
import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

INITIAL_RADIUS = 10.0
INITIAL_ANGLE = math.pi * (3.0 - math.sqrt(5.0))

_FENCE_RE = re.compile(r"```(?:json)?\n?", re.IGNORECASE)


class Direction(str, enum.Enum):
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"


class NodeCategory(str, enum.Enum):
    TITLE = "title"
    PHASE = "phase"
    STEP = "step"
    DECISION = "decision"
    INPUT = "input"
    OUTPUT = "output"
    NOTE = "note"
    END = "end"


class NodeShape(str, enum.Enum):
    BOX = "box"
    ELLIPSE = "ellipse"
    DIAMOND = "diamond"
    PARALLELOGRAM = "parallelogram"
    NOTE = "note"
    DOUBLEOCTAGON = "doubleoctagon"


class EdgeStyle(str, enum.Enum):
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


class GenerationError(ValueError):
    """Raised when a generator response cannot be read as a flowchart document."""

    code = "E_GENERATION"


class ValidationError(ValueError):
    """Structured spec validation error with a stable code for CLI mapping."""

    KIND_CODES = {
        "dangling_edge": "E_SPEC_DANGLING_EDGE",
        "duplicate_node_id": "E_SPEC_DUPLICATE_ID",
        "invalid_field": "E_SPEC_INVALID",
    }

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        edge_index: Optional[int] = None,
        node_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = self.KIND_CODES.get(kind, "E_SPEC_INVALID")
        self.message = message
        self.edge_index = edge_index
        self.node_id = node_id

    def __str__(self) -> str:
        return self.message


class DanglingEdge(ValidationError):
    def __init__(self, edge_index: int, endpoint: str, node_id: str) -> None:
        super().__init__(
            "dangling_edge",
            f'edge #{edge_index} {endpoint}="{node_id}" references unknown node id',
            edge_index=edge_index,
            node_id=node_id,
        )
        self.endpoint = endpoint


class DuplicateNodeId(ValidationError):
    def __init__(self, node_id: str) -> None:
        super().__init__(
            "duplicate_node_id",
            f'duplicate node id "{node_id}"',
            node_id=node_id,
        )


# Category, shape and style are kept as raw strings when the generator emits
# something outside the closed enums; the projector resolves them with defaults.
CategoryValue = Union[NodeCategory, str]
ShapeValue = Union[NodeShape, str]
StyleValue = Union[EdgeStyle, str]


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    category: CategoryValue = NodeCategory.STEP
    shape: ShapeValue = NodeShape.BOX
    group: Optional[str] = None
    order: Optional[int] = None


@dataclass(frozen=True)
class Edge:
    from_id: str
    to_id: str
    label: Optional[str] = None
    style: StyleValue = EdgeStyle.SOLID
    priority: Optional[int] = None


@dataclass(frozen=True)
class GraphSpec:
    title: str
    direction: Direction
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphSpec":
        if not isinstance(data, Mapping):
            raise ValidationError("invalid_field", "flowchart spec must be a JSON object")
        raw_nodes = data.get("nodes")
        raw_edges = data.get("edges")
        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise ValidationError(
                "invalid_field", "flowchart spec requires 'nodes' and 'edges' arrays"
            )
        nodes = tuple(_parse_node(idx, item) for idx, item in enumerate(raw_nodes))
        edges = tuple(_parse_edge(idx, item) for idx, item in enumerate(raw_edges))
        return cls(
            title=str(data.get("title") or ""),
            direction=_parse_direction(data.get("direction")),
            nodes=nodes,
            edges=edges,
        )

    def to_dict(self) -> Dict[str, Any]:
        nodes: List[Dict[str, Any]] = []
        for node in self.nodes:
            item: Dict[str, Any] = {
                "id": node.id,
                "label": node.label,
                "category": _raw(node.category),
                "shape": _raw(node.shape),
            }
            if node.group is not None:
                item["group"] = node.group
            if node.order is not None:
                item["order"] = node.order
            nodes.append(item)
        edges: List[Dict[str, Any]] = []
        for edge in self.edges:
            item = {"from": edge.from_id, "to": edge.to_id, "style": _raw(edge.style)}
            if edge.label is not None:
                item["label"] = edge.label
            if edge.priority is not None:
                item["priority"] = edge.priority
            edges.append(item)
        return {
            "title": self.title,
            "direction": self.direction.value,
            "nodes": nodes,
            "edges": edges,
        }


@dataclass(frozen=True)
class ResolvedEdge:
    """An edge whose endpoints are indices into ``Graph.nodes``."""

    index: int
    source: int
    target: int
    edge: Edge


# node counts above which a chart is Medium, then High
COMPLEXITY_MEDIUM = 10
COMPLEXITY_HIGH = 25


@dataclass(frozen=True)
class Graph:
    spec: GraphSpec
    nodes: Tuple[Node, ...]
    edges: Tuple[ResolvedEdge, ...]
    index_by_id: Dict[str, int] = field(default_factory=dict)

    @property
    def direction(self) -> Direction:
        return self.spec.direction

    @property
    def complexity(self) -> str:
        """Size band shown next to the node and edge counts."""
        count = len(self.nodes)
        if count > COMPLEXITY_HIGH:
            return "High"
        if count > COMPLEXITY_MEDIUM:
            return "Medium"
        return "Low"

    def node_index(self, node_id: str) -> int:
        return self.index_by_id[node_id]

    def edge_array(self) -> np.ndarray:
        if not self.edges:
            return np.zeros((0, 2), dtype=int)
        return np.array([(e.source, e.target) for e in self.edges], dtype=int)

    def order_array(self) -> np.ndarray:
        return np.array([float(n.order or 0) for n in self.nodes], dtype=float)


class SimulationState:
    """Live physics state for one graph.

    Positions, velocities and pins are ``(n, 2)`` arrays indexed like
    ``Graph.nodes``. A pin row holds NaN while the node is free.
    """

    def __init__(self, node_ids: Sequence[str], positions: np.ndarray, alpha: float = 1.0) -> None:
        n = len(node_ids)
        self.node_ids: Tuple[str, ...] = tuple(node_ids)
        self._index = {node_id: idx for idx, node_id in enumerate(self.node_ids)}
        self.positions = np.asarray(positions, dtype=float).reshape(n, 2).copy()
        self.velocities = np.zeros((n, 2), dtype=float)
        self.pins = np.full((n, 2), np.nan, dtype=float)
        self._alpha = 0.0
        self.alpha = alpha
        self.alpha_target = 0.0
        self.tick_count = 0

    @property
    def alpha(self) -> float:
        return self._alpha

    @alpha.setter
    def alpha(self, value: float) -> None:
        self._alpha = min(1.0, max(0.0, float(value)))

    def __len__(self) -> int:
        return len(self.node_ids)

    def index_of(self, node_id: str) -> int:
        try:
            return self._index[node_id]
        except KeyError:
            raise KeyError(f'unknown node id "{node_id}"') from None

    def position(self, node_id: str) -> Tuple[float, float]:
        x, y = self.positions[self.index_of(node_id)]
        return float(x), float(y)

    def velocity(self, node_id: str) -> Tuple[float, float]:
        vx, vy = self.velocities[self.index_of(node_id)]
        return float(vx), float(vy)

    def pin_of(self, node_id: str) -> Optional[Tuple[float, float]]:
        fx, fy = self.pins[self.index_of(node_id)]
        if math.isnan(fx):
            return None
        return float(fx), float(fy)

    @property
    def pinned_mask(self) -> np.ndarray:
        return ~np.isnan(self.pins[:, 0])

    @property
    def pinned_ids(self) -> frozenset:
        return frozenset(self.node_ids[i] for i in np.flatnonzero(self.pinned_mask))

    def pin(self, node_id: str, x: float, y: float) -> None:
        self.pins[self.index_of(node_id)] = (float(x), float(y))

    def release(self, node_id: str) -> None:
        """Clear a pin, leaving the node where it was pinned."""
        idx = self.index_of(node_id)
        if not math.isnan(self.pins[idx, 0]):
            self.positions[idx] = self.pins[idx]
            self.velocities[idx] = 0.0
        self.pins[idx] = np.nan

    def snapshot(self) -> Dict[str, Tuple[float, float]]:
        return {node_id: self.position(node_id) for node_id in self.node_ids}


def parse_document(text: str) -> GraphSpec:
    """Parse a generator response into a GraphSpec.

    Markdown code fences around the JSON are tolerated.
    """
    if text is None or not text.strip():
        raise GenerationError("empty response from generator")
    cleaned = _FENCE_RE.sub("", text).replace("```", "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"generator response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or "nodes" not in data or "edges" not in data:
        raise GenerationError("invalid flowchart schema received: missing 'nodes' or 'edges'")
    try:
        return GraphSpec.from_dict(data)
    except ValidationError as exc:
        if exc.kind == "invalid_field":
            raise GenerationError(f"invalid flowchart schema received: {exc}") from exc
        raise


def build(
    spec: Union[GraphSpec, Mapping[str, Any]],
    *,
    center: Tuple[float, float] = (0.0, 0.0),
) -> Tuple[Graph, SimulationState]:
    """Validate ``spec`` and return the resolved graph with a fresh simulation state."""
    if not isinstance(spec, GraphSpec):
        spec = GraphSpec.from_dict(spec)

    index_by_id: Dict[str, int] = {}
    for idx, node in enumerate(spec.nodes):
        if node.id in index_by_id:
            raise DuplicateNodeId(node.id)
        index_by_id[node.id] = idx

    resolved: List[ResolvedEdge] = []
    for idx, edge in enumerate(spec.edges):
        if edge.from_id not in index_by_id:
            raise DanglingEdge(idx, "from", edge.from_id)
        if edge.to_id not in index_by_id:
            raise DanglingEdge(idx, "to", edge.to_id)
        resolved.append(
            ResolvedEdge(
                index=idx,
                source=index_by_id[edge.from_id],
                target=index_by_id[edge.to_id],
                edge=edge,
            )
        )

    graph = Graph(spec=spec, nodes=spec.nodes, edges=tuple(resolved), index_by_id=index_by_id)
    state = SimulationState(
        [node.id for node in spec.nodes],
        seed_positions(len(spec.nodes), center),
        alpha=1.0,
    )
    logger.debug(
        "built graph %r: %d nodes, %d edges", spec.title, len(graph.nodes), len(graph.edges)
    )
    return graph, state


def seed_positions(count: int, center: Tuple[float, float] = (0.0, 0.0)) -> np.ndarray:
    """Phyllotaxis spiral around ``center``; deterministic and never coincident."""
    if count == 0:
        return np.zeros((0, 2), dtype=float)
    i = np.arange(count, dtype=float)
    radius = INITIAL_RADIUS * np.sqrt(0.5 + i)
    angle = i * INITIAL_ANGLE
    return np.column_stack(
        (center[0] + radius * np.cos(angle), center[1] + radius * np.sin(angle))
    )


def _parse_node(idx: int, item: Any) -> Node:
    if not isinstance(item, Mapping):
        raise ValidationError("invalid_field", f"node #{idx} must be an object")
    node_id = item.get("id")
    if not isinstance(node_id, str) or not node_id.strip():
        raise ValidationError("invalid_field", f"node #{idx} requires a non-empty string id")
    node_id = node_id.strip()
    label = item.get("label")
    return Node(
        id=node_id,
        label=str(label) if label not in (None, "") else node_id,
        category=_coerce_enum(NodeCategory, item.get("category"), NodeCategory.STEP),
        shape=_coerce_enum(NodeShape, item.get("shape"), NodeShape.BOX),
        group=_optional_text(item.get("group")),
        order=_parse_int(item.get("order"), f"node #{idx} order"),
    )


def _parse_edge(idx: int, item: Any) -> Edge:
    if not isinstance(item, Mapping):
        raise ValidationError("invalid_field", f"edge #{idx} must be an object", edge_index=idx)
    from_id = item.get("from")
    to_id = item.get("to")
    if not isinstance(from_id, str) or not isinstance(to_id, str):
        raise ValidationError(
            "invalid_field",
            f"edge #{idx} requires string from and to attributes",
            edge_index=idx,
        )
    return Edge(
        from_id=from_id.strip(),
        to_id=to_id.strip(),
        label=_optional_text(item.get("label")),
        style=_coerce_enum(EdgeStyle, item.get("style"), EdgeStyle.SOLID),
        priority=_parse_int(item.get("priority"), f"edge #{idx} priority"),
    )


def _parse_direction(value: Any) -> Direction:
    if value in (None, ""):
        return Direction.TB
    try:
        return Direction(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            "invalid_field", f"invalid direction={value!r} (expected TB, BT, LR or RL)"
        ) from None


def _coerce_enum(enum_cls, value: Any, default):
    if value in (None, ""):
        return default
    text = str(value).strip().lower()
    try:
        return enum_cls(text)
    except ValueError:
        logger.debug("keeping unrecognized %s value %r", enum_cls.__name__, value)
        return text


def _parse_int(value: Any, what: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("invalid_field", f"{what} must be an integer (got {value!r})")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError("invalid_field", f"{what} must be an integer (got {value!r})")


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _raw(value: Union[enum.Enum, str]) -> str:
    return value.value if isinstance(value, enum.Enum) else value


__all__ = [
    "Direction",
    "NodeCategory",
    "NodeShape",
    "EdgeStyle",
    "Node",
    "Edge",
    "GraphSpec",
    "ResolvedEdge",
    "Graph",
    "SimulationState",
    "ValidationError",
    "DanglingEdge",
    "DuplicateNodeId",
    "GenerationError",
    "parse_document",
    "build",
    "seed_positions",
]
