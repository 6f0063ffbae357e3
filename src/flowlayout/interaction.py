"""Pointer handling: drag-to-pin and zoom/pan.

Pointer events go through :func:`transition`, a pure function from the
current mode and an event to the next mode plus a tuple of effects. The
:class:`InteractionController` is the only place effects touch the
simulation (pins and alpha target) or the view transform.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

import numpy as np

from .simulation import Simulation

logger = logging.getLogger(__name__)

WHEEL_SENSITIVITY = 0.002
# 2 ** 64 dwarfs any scale range while staying a finite float
MAX_WHEEL_EXPONENT = 64.0


@dataclass(frozen=True)
class ScaleExtent:
    minimum: float = 0.1
    maximum: float = 4.0

    def clamp(self, k: float) -> float:
        return min(self.maximum, max(self.minimum, k))


@dataclass(frozen=True)
class ViewTransform:
    """Model -> screen affine map ``screen = model * k + (x, y)``."""

    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def apply(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return point[0] * self.k + self.x, point[1] * self.k + self.y

    def invert(self, point: Tuple[float, float]) -> Tuple[float, float]:
        return (point[0] - self.x) / self.k, (point[1] - self.y) / self.k

    def translated(self, dx: float, dy: float) -> "ViewTransform":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def scaled_to(
        self, k: float, anchor: Tuple[float, float], extent: ScaleExtent
    ) -> "ViewTransform":
        """Rescale keeping the model point under screen ``anchor`` fixed."""
        k = extent.clamp(k)
        mx, my = self.invert(anchor)
        return ViewTransform(k=k, x=anchor[0] - mx * k, y=anchor[1] - my * k)

    def as_svg(self) -> str:
        return f"translate({self.x:g},{self.y:g}) scale({self.k:g})"


# ---- modes ---- #


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    node_id: str


@dataclass(frozen=True)
class Panning:
    last: Tuple[float, float]


Mode = Union[Idle, Dragging, Panning]


# ---- events ---- #


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float
    node_id: Optional[str] = None


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True)
class Wheel:
    x: float
    y: float
    delta: float


@dataclass(frozen=True)
class ZoomTo:
    scale: float
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class DoubleClick:
    x: float
    y: float


Event = Union[PointerDown, PointerMove, PointerUp, Wheel, ZoomTo, DoubleClick]


# ---- effects ---- #


@dataclass(frozen=True)
class PinNode:
    node_id: str
    screen: Tuple[float, float]
    start: bool = False


@dataclass(frozen=True)
class ReleaseNode:
    node_id: str


@dataclass(frozen=True)
class Pan:
    dx: float
    dy: float


@dataclass(frozen=True)
class Zoom:
    factor: float
    anchor: Tuple[float, float]
    absolute: bool = False


Effect = Union[PinNode, ReleaseNode, Pan, Zoom]


def wheel_factor(delta: float) -> float:
    """Scale multiplier for a wheel delta; NaN for a NaN delta."""
    exponent = -delta * WHEEL_SENSITIVITY
    if math.isnan(exponent):
        return math.nan
    return 2.0 ** min(MAX_WHEEL_EXPONENT, max(-MAX_WHEEL_EXPONENT, exponent))


def transition(mode: Mode, event: Event) -> Tuple[Mode, Tuple[Effect, ...]]:
    if isinstance(event, (Wheel, ZoomTo)):
        # zoom is independent of drag/pan state
        if isinstance(event, Wheel):
            return mode, (Zoom(wheel_factor(event.delta), (event.x, event.y)),)
        return mode, (Zoom(event.scale, (event.x, event.y), absolute=True),)

    if isinstance(event, DoubleClick):
        return mode, ()

    if isinstance(mode, Idle):
        if isinstance(event, PointerDown):
            if event.node_id is not None:
                return Dragging(event.node_id), (
                    PinNode(event.node_id, (event.x, event.y), start=True),
                )
            return Panning((event.x, event.y)), ()
        return mode, ()

    if isinstance(mode, Dragging):
        if isinstance(event, PointerMove):
            return mode, (PinNode(mode.node_id, (event.x, event.y)),)
        if isinstance(event, PointerUp):
            return Idle(), (
                PinNode(mode.node_id, (event.x, event.y)),
                ReleaseNode(mode.node_id),
            )
        return mode, ()

    if isinstance(mode, Panning):
        if isinstance(event, PointerMove):
            dx = event.x - mode.last[0]
            dy = event.y - mode.last[1]
            return Panning((event.x, event.y)), (Pan(dx, dy),)
        if isinstance(event, PointerUp):
            return Idle(), ()
        return mode, ()

    raise TypeError(f"unknown interaction mode {mode!r}")


class InteractionController:
    def __init__(
        self,
        simulation: Simulation,
        view: Optional[ViewTransform] = None,
        extent: Optional[ScaleExtent] = None,
    ) -> None:
        self.simulation = simulation
        self.extent = extent or ScaleExtent()
        view = view or ViewTransform()
        self.view = replace(view, k=self.extent.clamp(view.k))
        self.mode: Mode = Idle()

    def handle(self, event: Event) -> Mode:
        if isinstance(event, PointerDown) and event.node_id is None and isinstance(self.mode, Idle):
            # hosts that do not hit-test get drag-on-node for free
            node_id = self.hit_test(event.x, event.y)
            if node_id is not None:
                event = replace(event, node_id=node_id)
        self.mode, effects = transition(self.mode, event)
        for effect in effects:
            self._apply(effect)
        return self.mode

    def hit_test(self, x: float, y: float, radius: Optional[float] = None) -> Optional[str]:
        """Return the id of the last-drawn node within ``radius`` of a screen point."""
        state = self.simulation.state
        if not len(state):
            return None
        radius = self.simulation.config.collision_radius if radius is None else radius
        mx, my = self.view.invert((x, y))
        dist = np.hypot(state.positions[:, 0] - mx, state.positions[:, 1] - my)
        hits = np.flatnonzero(dist <= radius)
        if not hits.size:
            return None
        return state.node_ids[int(hits[-1])]

    def _apply(self, effect: Effect) -> None:
        state = self.simulation.state
        if isinstance(effect, PinNode):
            mx, my = self.view.invert(effect.screen)
            state.pin(effect.node_id, mx, my)
            if effect.start:
                self.simulation.set_alpha_target(self.simulation.config.reheat_alpha)
                self.simulation.reheat()
                logger.debug("drag start on %s at (%.1f, %.1f)", effect.node_id, mx, my)
            return
        if isinstance(effect, ReleaseNode):
            state.release(effect.node_id)
            self.simulation.set_alpha_target(0.0)
            logger.debug("drag end on %s", effect.node_id)
            return
        if isinstance(effect, Pan):
            self.view = self.view.translated(effect.dx, effect.dy)
            return
        if isinstance(effect, Zoom):
            target = effect.factor if effect.absolute else self.view.k * effect.factor
            if math.isnan(target) or target < 0:
                logger.debug("ignoring zoom request to scale %r", target)
                return
            # zero and infinity clamp to the extent like any other scale
            self.view = self.view.scaled_to(target, effect.anchor, self.extent)
            return
        raise TypeError(f"unknown interaction effect {effect!r}")


__all__ = [
    "ViewTransform",
    "ScaleExtent",
    "Idle",
    "Dragging",
    "Panning",
    "PointerDown",
    "PointerMove",
    "PointerUp",
    "Wheel",
    "ZoomTo",
    "DoubleClick",
    "PinNode",
    "ReleaseNode",
    "Pan",
    "Zoom",
    "transition",
    "wheel_factor",
    "InteractionController",
]
