"""Force-directed layout engine.

Each tick reads one snapshot of positions and velocities, sums the link,
charge, collision, centering and axis-ordering forces into a velocity delta
per node, then integrates. Pinned nodes are held exactly at their pin but
still act on everyone else.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .model import Direction, Graph, SimulationState

logger = logging.getLogger(__name__)


class TickResult(str, enum.Enum):
    SETTLED = "settled"
    CONTINUING = "continuing"


@dataclass(frozen=True)
class SimulationConfig:
    link_distance: float = 100.0
    charge_strength: float = -800.0
    charge_distance_min: float = 1.0
    collision_radius: float = 60.0
    collision_strength: float = 0.7
    center_strength: float = 0.05
    axis_spacing: float = 80.0
    axis_strength: float = 0.3
    alpha_min: float = 0.001
    alpha_decay: float = 1.0 - 0.001 ** (1.0 / 300.0)
    velocity_decay: float = 0.4
    reheat_alpha: float = 0.3
    width: float = 800.0
    height: float = 600.0
    frame_interval: float = 1.0 / 60.0
    max_ticks_per_advance: int = 8
    seed: int = 0

    @property
    def center(self) -> Tuple[float, float]:
        return self.width / 2.0, self.height / 2.0


# Axis index and sign for the ordering force, per direction hint.
_AXIS_FOR_DIRECTION = {
    Direction.TB: (1, 1.0),
    Direction.BT: (1, -1.0),
    Direction.LR: (0, 1.0),
    Direction.RL: (0, -1.0),
}


class Simulation:
    def __init__(
        self,
        graph: Graph,
        state: SimulationState,
        config: Optional[SimulationConfig] = None,
    ) -> None:
        if len(state) != len(graph.nodes):
            raise ValueError(
                f"simulation state has {len(state)} nodes but graph has {len(graph.nodes)}"
            )
        self.graph = graph
        self.state = state
        self.config = config or SimulationConfig()
        self._rng = np.random.default_rng(self.config.seed)
        self._carry = 0.0

        self._edges = graph.edge_array()
        n = len(graph.nodes)
        degree = np.zeros(n, dtype=float)
        if self._edges.size:
            np.add.at(degree, self._edges[:, 0], 1.0)
            np.add.at(degree, self._edges[:, 1], 1.0)
            src_deg = degree[self._edges[:, 0]]
            dst_deg = degree[self._edges[:, 1]]
            self._link_strength = 1.0 / np.minimum(src_deg, dst_deg)
            self._link_bias = src_deg / (src_deg + dst_deg)
        else:
            self._link_strength = np.zeros(0)
            self._link_bias = np.zeros(0)
        self._axis, self._axis_sign = _AXIS_FOR_DIRECTION[graph.direction]
        self._axis_targets = (
            self.config.center[self._axis]
            + self._axis_sign * graph.order_array() * self.config.axis_spacing
        )

    @property
    def is_settled(self) -> bool:
        alpha_min = self.config.alpha_min
        return self.state.alpha < alpha_min and self.state.alpha_target < alpha_min

    def set_alpha_target(self, target: float) -> None:
        self.state.alpha_target = min(1.0, max(0.0, float(target)))

    def reheat(self, alpha: Optional[float] = None) -> None:
        """Raise alpha to at least ``alpha`` so motion resumes."""
        value = self.config.reheat_alpha if alpha is None else alpha
        if self.state.alpha < value:
            self.state.alpha = value
        logger.debug("reheated simulation to alpha=%.3f", self.state.alpha)

    def tick(self, iterations: int = 1) -> SimulationState:
        state = self.state
        cfg = self.config
        for _ in range(max(1, int(iterations))):
            state.alpha += (state.alpha_target - state.alpha) * cfg.alpha_decay
            alpha = state.alpha

            positions = state.positions.copy()
            velocities = state.velocities.copy()
            delta = np.zeros_like(positions)
            if len(positions):
                delta += self._link_force(positions, velocities, alpha)
                delta += self._charge_force(positions, alpha)
                delta += self._collision_force(positions, velocities)
                delta += self._center_force(positions)
                delta += self._axis_force(positions, alpha)

            velocities = (velocities + delta) * (1.0 - cfg.velocity_decay)
            positions = positions + velocities

            pinned = state.pinned_mask
            if pinned.any():
                positions[pinned] = state.pins[pinned]
                velocities[pinned] = 0.0

            state.positions[...] = positions
            state.velocities[...] = velocities
            state.tick_count += 1
        return state

    def advance(self, delta_time: float) -> TickResult:
        """Run the ticks owed for ``delta_time`` seconds of wall-clock time."""
        if self.is_settled:
            self._carry = 0.0
            return TickResult.SETTLED
        cfg = self.config
        self._carry += max(0.0, float(delta_time))
        ticks = int(self._carry / cfg.frame_interval)
        self._carry -= ticks * cfg.frame_interval
        ticks = min(max(ticks, 1), cfg.max_ticks_per_advance)
        for _ in range(ticks):
            self.tick()
            if self.is_settled:
                logger.debug("simulation settled after %d ticks", self.state.tick_count)
                return TickResult.SETTLED
        return TickResult.CONTINUING

    def run(self, max_ticks: int = 1000) -> int:
        """Tick until settled or ``max_ticks``; returns the ticks performed."""
        performed = 0
        while performed < max_ticks and not self.is_settled:
            self.tick()
            performed += 1
        return performed

    # ---- forces ---- #

    def _link_force(self, x: np.ndarray, v: np.ndarray, alpha: float) -> np.ndarray:
        out = np.zeros_like(x)
        if not self._edges.size:
            return out
        src = self._edges[:, 0]
        dst = self._edges[:, 1]
        d = (x[dst] + v[dst]) - (x[src] + v[src])
        d = self._jiggle_zero(d)
        length = np.linalg.norm(d, axis=1)
        k = (length - self.config.link_distance) / length * alpha * self._link_strength
        f = d * k[:, None]
        np.add.at(out, dst, -f * self._link_bias[:, None])
        np.add.at(out, src, f * (1.0 - self._link_bias)[:, None])
        return out

    def _charge_force(self, x: np.ndarray, alpha: float) -> np.ndarray:
        n = x.shape[0]
        if n < 2:
            return np.zeros_like(x)
        # diff[i, j] points from node i to node j
        diff = x[None, :, :] - x[:, None, :]
        off_diagonal = ~np.eye(n, dtype=bool)
        coincident = off_diagonal & np.all(diff == 0.0, axis=2)
        if coincident.any():
            diff[coincident] = self._jiggle(int(coincident.sum()))
        dist2 = np.sum(diff * diff, axis=2)
        dist2 = np.maximum(dist2, self.config.charge_distance_min ** 2)
        weight = np.where(off_diagonal, self.config.charge_strength * alpha / dist2, 0.0)
        return np.sum(diff * weight[:, :, None], axis=1)

    def _collision_force(self, x: np.ndarray, v: np.ndarray) -> np.ndarray:
        n = x.shape[0]
        if n < 2:
            return np.zeros_like(x)
        radius = self.config.collision_radius
        p = x + v
        i_idx, j_idx = np.triu_indices(n, k=1)
        d = p[i_idx] - p[j_idx]
        d = self._jiggle_zero(d)
        length = np.linalg.norm(d, axis=1)
        overlap = length < 2.0 * radius
        out = np.zeros_like(x)
        if not overlap.any():
            return out
        i_idx, j_idx, d, length = i_idx[overlap], j_idx[overlap], d[overlap], length[overlap]
        k = (2.0 * radius - length) / length * self.config.collision_strength
        f = d * k[:, None]
        # equal radii share the correction evenly
        np.add.at(out, i_idx, f * 0.5)
        np.add.at(out, j_idx, -f * 0.5)
        return out

    def _center_force(self, x: np.ndarray) -> np.ndarray:
        cx, cy = self.config.center
        shift = np.array([cx, cy]) - x.mean(axis=0)
        return np.broadcast_to(shift * self.config.center_strength, x.shape).copy()

    def _axis_force(self, x: np.ndarray, alpha: float) -> np.ndarray:
        out = np.zeros_like(x)
        axis = self._axis
        out[:, axis] = (self._axis_targets - x[:, axis]) * self.config.axis_strength * alpha
        return out

    def _jiggle(self, count: int) -> np.ndarray:
        return (self._rng.random((count, 2)) - 0.5) * 1e-6

    def _jiggle_zero(self, d: np.ndarray) -> np.ndarray:
        zero = np.all(d == 0.0, axis=1)
        if zero.any():
            d = d.copy()
            d[zero] = self._jiggle(int(zero.sum()))
        return d


__all__ = ["Simulation", "SimulationConfig", "TickResult"]
