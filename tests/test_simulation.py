from __future__ import annotations

import itertools
import math
import unittest

import numpy as np

from fixtures import APPROVAL, TWO_NODES, chain, spec

from flowlayout.model import build
from flowlayout.simulation import Simulation, SimulationConfig, TickResult


def make_simulation(data: dict, config: SimulationConfig = None) -> Simulation:
    config = config or SimulationConfig()
    graph, state = build(spec(data), center=config.center)
    return Simulation(graph, state, config)


class AlphaTests(unittest.TestCase):
    def test_alpha_decays_monotonically_and_settles(self) -> None:
        sim = make_simulation(APPROVAL)
        previous = sim.state.alpha
        for _ in range(400):
            sim.tick()
            self.assertLessEqual(sim.state.alpha, previous)
            self.assertGreaterEqual(sim.state.alpha, 0.0)
            previous = sim.state.alpha
            if sim.is_settled:
                break
        self.assertTrue(sim.is_settled)
        self.assertLessEqual(sim.state.tick_count, 310)

    def test_run_reports_tick_count(self) -> None:
        sim = make_simulation(TWO_NODES)
        ticks = sim.run(max_ticks=1000)
        self.assertTrue(sim.is_settled)
        self.assertEqual(ticks, sim.state.tick_count)
        self.assertEqual(sim.run(max_ticks=1000), 0)

    def test_alpha_target_holds_simulation_warm(self) -> None:
        sim = make_simulation(TWO_NODES)
        sim.set_alpha_target(0.3)
        sim.run(max_ticks=600)
        self.assertFalse(sim.is_settled)
        self.assertAlmostEqual(sim.state.alpha, 0.3, places=3)
        sim.set_alpha_target(0.0)
        sim.run(max_ticks=600)
        self.assertTrue(sim.is_settled)

    def test_reheat_only_raises_alpha(self) -> None:
        sim = make_simulation(TWO_NODES)
        sim.run()
        sim.reheat()
        self.assertAlmostEqual(sim.state.alpha, 0.3)
        sim.reheat(0.1)
        self.assertAlmostEqual(sim.state.alpha, 0.3)
        self.assertFalse(sim.is_settled)

    def test_alpha_is_clamped(self) -> None:
        sim = make_simulation(TWO_NODES)
        sim.state.alpha = 5.0
        self.assertEqual(sim.state.alpha, 1.0)
        sim.state.alpha = -1.0
        self.assertEqual(sim.state.alpha, 0.0)
        sim.set_alpha_target(2.0)
        self.assertEqual(sim.state.alpha_target, 1.0)


class AdvanceTests(unittest.TestCase):
    def test_advance_converts_elapsed_time_to_ticks(self) -> None:
        sim = make_simulation(APPROVAL)
        self.assertIs(sim.advance(3.0 / 60.0 + 1e-9), TickResult.CONTINUING)
        self.assertEqual(sim.state.tick_count, 3)

    def test_advance_runs_at_least_one_tick(self) -> None:
        sim = make_simulation(APPROVAL)
        sim.advance(0.0)
        self.assertEqual(sim.state.tick_count, 1)

    def test_advance_caps_ticks_per_call(self) -> None:
        sim = make_simulation(APPROVAL)
        sim.advance(10.0)
        self.assertEqual(sim.state.tick_count, sim.config.max_ticks_per_advance)

    def test_advance_until_settled(self) -> None:
        sim = make_simulation(APPROVAL)
        result = TickResult.CONTINUING
        for _ in range(1000):
            result = sim.advance(1.0 / 60.0)
            if result is TickResult.SETTLED:
                break
        self.assertIs(result, TickResult.SETTLED)
        ticks = sim.state.tick_count
        before = sim.state.positions.copy()
        self.assertIs(sim.advance(1.0), TickResult.SETTLED)
        self.assertEqual(sim.state.tick_count, ticks)
        np.testing.assert_array_equal(sim.state.positions, before)


class PinTests(unittest.TestCase):
    def test_pinned_node_stays_exactly_on_pin(self) -> None:
        sim = make_simulation(APPROVAL)
        sim.state.pin("review", 123.25, -40.5)
        for _ in range(50):
            sim.tick()
            self.assertEqual(sim.state.position("review"), (123.25, -40.5))
            self.assertEqual(sim.state.velocity("review"), (0.0, 0.0))

    def test_pinned_node_still_exerts_forces(self) -> None:
        free = make_simulation(TWO_NODES)
        pinned = make_simulation(TWO_NODES)
        far = (2000.0, 2000.0)
        pinned.state.pin("A", *far)
        free.state.positions[0] = far
        for _ in range(5):
            free.tick()
            pinned.tick()
        # the link to a far-away pinned node drags B toward it
        b_free = np.array(free.state.position("B"))
        b_pinned = np.array(pinned.state.position("B"))
        self.assertGreater(b_pinned.sum(), 800.0)
        self.assertTrue(np.isfinite(b_free).all())

    def test_release_keeps_position(self) -> None:
        sim = make_simulation(TWO_NODES)
        sim.state.pin("A", 10.0, 20.0)
        sim.state.release("A")
        self.assertIsNone(sim.state.pin_of("A"))
        self.assertEqual(sim.state.position("A"), (10.0, 20.0))


class LayoutQualityTests(unittest.TestCase):
    def test_settled_layout_separates_nodes(self) -> None:
        sim = make_simulation(APPROVAL)
        sim.run()
        pts = sim.state.positions
        for i, j in itertools.combinations(range(len(pts)), 2):
            self.assertGreater(math.dist(pts[i], pts[j]), 50.0)

    def test_layout_stays_near_canvas_center(self) -> None:
        config = SimulationConfig(width=1000.0, height=800.0)
        sim = make_simulation(APPROVAL, config)
        sim.run()
        centroid = sim.state.positions.mean(axis=0)
        self.assertLess(abs(centroid[0] - 500.0), 250.0)
        self.assertLess(abs(centroid[1] - 400.0), 400.0)

    def test_order_follows_direction_axis(self) -> None:
        cases = {"TB": (1, 1.0), "BT": (1, -1.0), "LR": (0, 1.0), "RL": (0, -1.0)}
        for direction, (axis, sign) in cases.items():
            with self.subTest(direction=direction):
                sim = make_simulation(chain(4, direction))
                sim.run()
                first = sim.state.positions[0, axis]
                last = sim.state.positions[3, axis]
                self.assertGreater(sign * (last - first), 100.0)

    def test_same_spec_same_layout(self) -> None:
        a = make_simulation(APPROVAL)
        b = make_simulation(APPROVAL)
        a.run()
        b.run()
        np.testing.assert_allclose(a.state.positions, b.state.positions)

    def test_coincident_nodes_are_pushed_apart(self) -> None:
        sim = make_simulation(TWO_NODES)
        sim.state.positions[:] = (400.0, 300.0)
        sim.run()
        self.assertGreater(math.dist(sim.state.positions[0], sim.state.positions[1]), 50.0)

    def test_empty_and_single_node_graphs(self) -> None:
        empty = make_simulation({"title": "", "direction": "TB", "nodes": [], "edges": []})
        empty.run()
        self.assertTrue(empty.is_settled)
        single = make_simulation(
            {"title": "", "direction": "LR", "nodes": [{"id": "solo", "label": "Solo"}], "edges": []}
        )
        single.run()
        self.assertTrue(np.isfinite(single.state.positions).all())

    def test_state_graph_mismatch_is_rejected(self) -> None:
        graph, _ = build(spec(TWO_NODES))
        _, other_state = build(spec(APPROVAL))
        with self.assertRaises(ValueError):
            Simulation(graph, other_state)


if __name__ == "__main__":
    unittest.main()
