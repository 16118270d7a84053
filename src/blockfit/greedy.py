"""
Greedy initialisation of the block assignment.

For a vertex with neighbor-type counts n (a length k vector), the part of its
log-likelihood contribution that depends on n is

    sum_s n_s * (log P[t, s] - log(1 - P[t, s]))

when the vertex has type t. Each sweep scores every candidate type with this
linear approximation and moves every vertex to its best type. All vertices are
scored against the same snapshot and updated together, so a sweep is an
approximation of coordinate ascent: it is not guaranteed to increase the joint
log-likelihood and may cycle. `optimize` therefore stops on a fixed point, on
a repeated assignment or after `max_steps` sweeps.
"""
import hashlib
import logging
from typing import Callable, Literal, Optional, Set

import numpy as np
from scipy.sparse import csr_array

from blockfit.block_model import BlockModel

log = logging.getLogger(__name__)

StopReason = Literal["fixed_point", "cycle", "max_steps"]


class GreedyStrategy:
    """
    Deterministic synchronous coordinate ascent over a BlockModel.

    :param model: Model to optimize; can also be passed to `step`/`optimize`.
    :param max_steps: Maximum number of sweeps performed by `optimize`.
    :param eps: Probabilities are clipped to [eps, 1 - eps] before taking logs.
    """
    def __init__(self,
                 model: Optional[BlockModel] = None,
                 max_steps: int = 1000,
                 eps: float = 1e-6,
        ):
        self.model = model
        self.max_steps = int(max_steps)
        self.eps = eps
        self.step_count = 0
        self.last_stop_reason: Optional[StopReason] = None

    def set_model(self, model: BlockModel) -> None:
        self.model = model
        self.step_count = 0

    def get_step_count(self) -> int:
        return self.step_count

    def _resolve(self, model: Optional[BlockModel]) -> BlockModel:
        model = model if model is not None else self.model
        if model is None:
            raise ValueError("No model set for the greedy strategy.")
        return model

    def score_types(self, model: BlockModel) -> np.ndarray:
        """
        n x k matrix of approximate log-likelihood contributions of moving each
        vertex into each type, computed from the current assignment.
        """
        graph = model.graph_data
        assert graph is not None
        n, k = graph.num_nodes, model.num_types

        probs = np.clip(model.get_probabilities(), self.eps, 1.0 - self.eps)
        log_odds = np.log(probs) - np.log1p(-probs)

        membership = csr_array(
            (np.ones(n, dtype=np.int64), (np.arange(n), model.types)),
            shape=(n, k),
        )
        # neighbor_counts[i, s]: neighbors of i having type s
        neighbor_counts = (csr_array(graph.adjacency, dtype=np.int64) @ membership).toarray()
        return neighbor_counts @ log_odds.T

    def step(self, model: Optional[BlockModel] = None) -> bool:
        """
        Perform one synchronous sweep. Returns True if any vertex changed type.
        """
        model = self._resolve(model)
        if model.num_nodes == 0:
            return False

        new_types = np.argmax(self.score_types(model), axis=1) # first maximum wins
        self.step_count += 1

        if np.array_equal(new_types, model.types):
            return False

        model.set_types(new_types)
        return True

    def optimize(self,
                 model: Optional[BlockModel] = None,
                 callback: Optional[Callable[[int, BlockModel], None]] = None,
        ) -> int:
        """
        Sweep until a fixed point, a repeated assignment or `max_steps`.
        `callback(sweep, model)` is called after every sweep that changed the model.

        :return: Number of sweeps that changed the assignment.
        """
        model = self._resolve(model)
        seen: Set[bytes] = {_fingerprint(model.types)}
        changed = 0

        while True:
            if changed >= self.max_steps:
                self.last_stop_reason = "max_steps"
                log.warning("greedy optimization stopped after %d sweeps without reaching a fixed point",
                            changed)
                break

            if not self.step(model):
                self.last_stop_reason = "fixed_point"
                break
            changed += 1
            if callback is not None:
                callback(changed, model)

            fingerprint = _fingerprint(model.types)
            if fingerprint in seen:
                self.last_stop_reason = "cycle"
                log.debug("greedy optimization entered a cycle after %d sweeps", changed)
                break
            seen.add(fingerprint)

        return changed


def _fingerprint(types: np.ndarray) -> bytes:
    return hashlib.blake2b(np.ascontiguousarray(types, dtype=np.int64).tobytes(), digest_size=16).digest()
