from __future__ import annotations

import numpy as np
import pytest

from blockfit.block_model import BlockModel
from blockfit.mcmc import MetropolisHastingsStrategy

# ---------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------
def random_model(graph, k: int, seed: int) -> BlockModel:
    model = BlockModel(graph, k)
    model.randomize(np.random.default_rng(seed))
    return model


class _RejectAll(MetropolisHastingsStrategy):
    def _accept_move(self, delta_ll: float) -> bool:
        return False


class _ImprovementsOnly(MetropolisHastingsStrategy):
    def _accept_move(self, delta_ll: float) -> bool:
        return delta_ll >= 0

# ---------------------------------------------------------------------
# proposals
# ---------------------------------------------------------------------
@pytest.mark.parametrize("k", [2, 3, 5])
def test_proposal_changes_type(planted, k):
    model = random_model(planted, k, seed=k)
    mcmc = MetropolisHastingsStrategy(model, rng=np.random.default_rng(0))

    for _ in range(200):
        vertex, new_type = mcmc.propose()
        assert 0 <= vertex < model.num_nodes
        assert 0 <= new_type < k
        assert new_type != model.get_type(vertex)


def test_proposal_types_are_uniform(two_rings):
    model = BlockModel(two_rings, 4)
    mcmc = MetropolisHastingsStrategy(model, rng=np.random.default_rng(1))

    # every vertex has type 0, so proposals spread over types 1..3
    counts = np.bincount([mcmc.propose()[1] for _ in range(3000)], minlength=4)
    assert counts[0] == 0
    assert np.all(np.abs(counts[1:] / 3000 - 1 / 3) < 0.05), counts

# ---------------------------------------------------------------------
# steps
# ---------------------------------------------------------------------
def test_rejected_step_leaves_model_unchanged(planted):
    model = random_model(planted, 3, seed=4)
    types, edges = model.get_types(), model.edge_counts.copy()
    logl = model.get_log_likelihood()
    mcmc = _RejectAll(model, rng=np.random.default_rng(0))

    for _ in range(50):
        assert mcmc.step() is False
        assert mcmc.was_last_proposal_accepted() is False

    np.testing.assert_array_equal(model.types, types)
    np.testing.assert_array_equal(model.edge_counts, edges)
    assert model.get_log_likelihood() == logl
    assert mcmc.acceptance_ratio() == 0.0


def test_improvements_only_never_decrease_likelihood(planted):
    model = random_model(planted, 3, seed=8)
    mcmc = _ImprovementsOnly(model, rng=np.random.default_rng(3))

    previous = model.get_log_likelihood()
    for _ in range(1000):
        mcmc.step()
        current = model.get_log_likelihood()
        assert current >= previous - 1e-9, f"{current} < {previous}"
        previous = current


def test_accepted_moves_keep_model_consistent(planted):
    model = random_model(planted, 4, seed=9)
    mcmc = MetropolisHastingsStrategy(model, rng=np.random.default_rng(9))

    for _ in range(2000):
        mcmc.step()

    np.testing.assert_array_equal(model.edge_counts, model.compute_edge_counts())


def test_counters(planted):
    model = random_model(planted, 3, seed=1)
    mcmc = MetropolisHastingsStrategy(model, rng=np.random.default_rng(1))
    assert mcmc.acceptance_ratio() == 0.0

    accepted = sum(mcmc.step() for _ in range(500))

    assert mcmc.get_step_count() == 500
    assert mcmc.acceptance_ratio() == pytest.approx(accepted / 500)
    assert 0.0 <= mcmc.acceptance_ratio() <= 1.0

    mcmc.reset_counters()
    assert mcmc.get_step_count() == 0 and mcmc.acceptance_ratio() == 0.0


def test_same_seed_same_chain(planted):
    runs = []
    for _ in range(2):
        model = random_model(planted, 3, seed=6)
        mcmc = MetropolisHastingsStrategy(model, rng=np.random.default_rng(6))
        for _ in range(300):
            mcmc.step()
        runs.append(model.get_types())

    np.testing.assert_array_equal(runs[0], runs[1])

# ---------------------------------------------------------------------
# validation
# ---------------------------------------------------------------------
def test_single_type_rejected(two_rings):
    with pytest.raises(ValueError):
        MetropolisHastingsStrategy(BlockModel(two_rings, 1))


def test_step_without_model_raises():
    with pytest.raises(ValueError):
        MetropolisHastingsStrategy().step()
