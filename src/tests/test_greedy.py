from __future__ import annotations

import numpy as np
import pytest

from blockfit.block_model import BlockModel
from blockfit.graph_data import gd_from_edges
from blockfit.greedy import GreedyStrategy

from conftest import block_labels

# ---------------------------------------------------------------------
# planted structures are fixed points
# ---------------------------------------------------------------------
def test_two_rings_fixed_point(two_rings):
    planted = block_labels([5, 5])
    model = BlockModel(two_rings, 2, types=planted)
    greedy = GreedyStrategy(model)

    assert greedy.step() is False
    assert model.get_types().tolist() == planted.tolist()

    # one displaced vertex is pulled back in a single sweep
    model.set_type(0, 1)
    assert greedy.step() is True
    assert model.get_types().tolist() == planted.tolist()
    assert greedy.step() is False
    assert greedy.get_step_count() == 3


def test_almost_cliques_fixed_point(almost_cliques):
    planted = block_labels([4, 4, 4, 4])
    model = BlockModel(almost_cliques, 4, types=planted)
    greedy = GreedyStrategy(model)

    assert greedy.optimize() == 0
    assert greedy.last_stop_reason == "fixed_point"
    assert model.get_types().tolist() == planted.tolist()


def test_almost_cliques_recovers_displaced_vertex(almost_cliques):
    planted = block_labels([4, 4, 4, 4])
    model = BlockModel(almost_cliques, 4, types=planted)
    model.set_type(2, 1)

    sweeps = GreedyStrategy().optimize(model)

    assert sweeps == 1
    assert model.get_types().tolist() == planted.tolist()

# ---------------------------------------------------------------------
# scoring
# ---------------------------------------------------------------------
def test_scores_favour_own_block(two_rings):
    model = BlockModel(two_rings, 2, types=block_labels([5, 5]))
    scores = GreedyStrategy().score_types(model)

    assert scores.shape == (10, 2)
    assert np.all(np.argmax(scores, axis=1) == model.types)


def test_isolated_vertices_go_to_first_type():
    graph = gd_from_edges([(0, 1)], num_nodes=4)
    model = BlockModel(graph, 2, types=[0, 0, 1, 1])
    GreedyStrategy(model).step()

    # vertices 2 and 3 have no neighbors, every type scores zero
    assert model.get_type(2) == 0 and model.get_type(3) == 0


def test_step_keeps_model_consistent(planted):
    model = BlockModel(planted, 3)
    model.randomize(np.random.default_rng(2))
    GreedyStrategy(model).optimize()

    np.testing.assert_array_equal(model.edge_counts, model.compute_edge_counts())


def test_no_model_raises():
    with pytest.raises(ValueError):
        GreedyStrategy().step()

# ---------------------------------------------------------------------
# termination
# ---------------------------------------------------------------------
class _Alternating(GreedyStrategy):
    """Flips between two assignments forever."""
    def step(self, model=None):
        model = self._resolve(model)
        model.set_types(1 - model.types)
        self.step_count += 1
        return True


def test_cycle_is_detected(two_rings):
    model = BlockModel(two_rings, 2, types=block_labels([5, 5]))
    greedy = _Alternating(model, max_steps=100)

    sweeps = greedy.optimize()

    assert greedy.last_stop_reason == "cycle"
    assert sweeps == 2


def test_max_steps_caps_optimization(two_rings):
    model = BlockModel(two_rings, 2, types=block_labels([5, 5]))
    model.set_type(0, 1)
    greedy = GreedyStrategy(model, max_steps=1)

    assert greedy.optimize() == 1
    assert greedy.last_stop_reason == "max_steps"


def test_callback_sees_every_changing_sweep(two_rings):
    model = BlockModel(two_rings, 2, types=block_labels([5, 5]))
    model.set_type(0, 1)
    calls = []

    GreedyStrategy(model).optimize(callback=lambda sweep, m: calls.append((sweep, m.get_type(0))))

    assert calls == [(1, 0)]
