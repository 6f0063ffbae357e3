"""Public API for flowlayout."""
from .interaction import InteractionController, ScaleExtent, ViewTransform
from .model import (
    DanglingEdge,
    DuplicateNodeId,
    GenerationError,
    Graph,
    GraphSpec,
    SimulationState,
    ValidationError,
    build,
    parse_document,
)
from .projector import Projector, project
from .session import LayoutSession
from .simulation import Simulation, SimulationConfig, TickResult
from .text import wrap
from .themes import Theme, get_theme

__all__ = [
    "build",
    "parse_document",
    "project",
    "wrap",
    "get_theme",
    "Graph",
    "GraphSpec",
    "SimulationState",
    "Simulation",
    "SimulationConfig",
    "TickResult",
    "InteractionController",
    "ViewTransform",
    "ScaleExtent",
    "Projector",
    "LayoutSession",
    "Theme",
    "ValidationError",
    "DanglingEdge",
    "DuplicateNodeId",
    "GenerationError",
]
