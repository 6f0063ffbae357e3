"""Owns the displayed graph and hands ticks to the host scheduler."""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Union

from .interaction import Event, InteractionController, ScaleExtent, ViewTransform
from .model import Graph, GraphSpec, SimulationState, build
from .projector import Primitive, Projector
from .simulation import Simulation, SimulationConfig, TickResult
from .themes import DEFAULT_THEME, Theme

logger = logging.getLogger(__name__)


class LayoutSession:
    """One live diagram.

    ``replace`` swaps in a freshly built graph and state. Ticks scheduled
    before a replacement belong to an older generation and are dropped.
    """

    def __init__(
        self,
        spec: Union[GraphSpec, Mapping[str, Any]],
        *,
        config: Optional[SimulationConfig] = None,
        projector: Optional[Projector] = None,
        theme: Theme = DEFAULT_THEME,
        extent: Optional[ScaleExtent] = None,
    ) -> None:
        self.config = config or SimulationConfig()
        self.projector = projector or Projector()
        self.theme = theme
        self.extent = extent or ScaleExtent()
        self.generation = 0
        self.graph: Graph
        self.state: SimulationState
        self.simulation: Simulation
        self.controller: InteractionController
        self._install(spec, ViewTransform())

    def replace(self, spec: Union[GraphSpec, Mapping[str, Any]]) -> None:
        """Accept a full replacement spec; the view transform is kept.

        A spec that fails validation raises and leaves the current diagram
        untouched.
        """
        self._install(spec, self.controller.view)

    def _install(self, spec, view: ViewTransform) -> None:
        graph, state = build(spec, center=self.config.center)
        self.graph = graph
        self.state = state
        self.simulation = Simulation(graph, state, self.config)
        self.projector.clear_cache()
        self.controller = InteractionController(self.simulation, view, self.extent)
        self.generation += 1
        logger.info(
            "layout session generation %d: %d nodes, %d edges",
            self.generation,
            len(graph.nodes),
            len(graph.edges),
        )

    @property
    def view(self) -> ViewTransform:
        return self.controller.view

    def advance(self, delta_time: float) -> TickResult:
        return self.simulation.advance(delta_time)

    def schedule_tick(self) -> Callable[[float], Optional[TickResult]]:
        """Return a tick callback bound to the current generation."""
        generation = self.generation
        simulation = self.simulation

        def _tick(delta_time: float) -> Optional[TickResult]:
            if generation != self.generation:
                logger.debug("dropping stale tick for generation %d", generation)
                return None
            return simulation.advance(delta_time)

        return _tick

    def handle(self, event: Event) -> None:
        self.controller.handle(event)

    def frame(self) -> List[Primitive]:
        return self.projector.project(self.graph, self.state, self.view, self.theme)


__all__ = ["LayoutSession"]
