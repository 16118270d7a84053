"""
Metropolis-Hastings sampler over block assignments.

Each step proposes moving one uniformly chosen vertex to a uniformly chosen
different type and accepts it with the Metropolis probability
min(1, exp(delta_ll)). The proposal is symmetric, so the chain samples
assignments proportionally to their likelihood.
"""
from math import exp
from typing import Optional, Tuple

import numpy as np

from blockfit.block_model import BlockModel

Proposal = Tuple[int, int]  # (vertex, new type)


class MetropolisHastingsStrategy:
    def __init__(self,
                 model: Optional[BlockModel] = None,
                 rng: Optional[np.random.Generator] = None,
                 ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.model: Optional[BlockModel] = None
        self.step_count = 0
        self.accepted_count = 0
        self.last_accepted = False
        self.last_delta = 0.0

        if model is not None:
            self.set_model(model)

    def set_model(self, model: BlockModel) -> None:
        """ Attach a model. The step counters keep running across models. """
        if model.num_types < 2:
            raise ValueError("Metropolis-Hastings needs at least two types to propose moves.")
        if model.num_nodes == 0:
            raise ValueError("Cannot sample block assignments of an empty graph.")
        self.model = model

    def get_rng(self) -> np.random.Generator:
        return self.rng

    def get_step_count(self) -> int:
        return self.step_count

    def was_last_proposal_accepted(self) -> bool:
        return self.last_accepted

    def acceptance_ratio(self) -> float:
        """ Fraction of accepted proposals; 0 before the first step. """
        if self.step_count == 0:
            return 0.0
        return self.accepted_count / self.step_count

    def reset_counters(self) -> None:
        self.step_count = 0
        self.accepted_count = 0
        self.last_accepted = False
        self.last_delta = 0.0

    def propose(self) -> Proposal:
        """
        Pick a vertex uniformly and a new type uniformly among the other k - 1.
        """
        model = self._require_model()
        vertex = int(self.rng.integers(model.num_nodes))
        new_type = int(self.rng.integers(model.num_types - 1))
        if new_type >= model.get_type(vertex):
            new_type += 1
        return vertex, new_type

    def _accept_move(self, delta_ll: float) -> bool:
        """
        Metropolis rule: always accept improvements, otherwise accept with
        probability exp(delta_ll).
        """
        if delta_ll >= 0:
            return True
        return self.rng.random() < exp(delta_ll)

    def step(self) -> bool:
        """
        Perform one proposal. Accepted moves are applied to the model, rejected
        ones leave it untouched.

        :return: Whether the proposal was accepted.
        """
        model = self._require_model()
        vertex, new_type = self.propose()

        delta_ll = model.delta_log_likelihood(vertex, new_type)
        accepted = self._accept_move(delta_ll)
        if accepted:
            model.set_type(vertex, new_type)
            self.accepted_count += 1

        self.step_count += 1
        self.last_accepted = accepted
        self.last_delta = delta_ll
        return accepted

    def _require_model(self) -> BlockModel:
        if self.model is None:
            raise ValueError("No model set for the Metropolis-Hastings strategy.")
        return self.model
