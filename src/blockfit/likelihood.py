"""
Bernoulli log-likelihood of the undirected blockmodel.

For a block pair (r, s) with e_rs observed edges out of n_rs possible pairs,
the profile log-likelihood with p_rs = e_rs / n_rs is

    l_rs = e_rs * log(p_rs) + (n_rs - e_rs) * log(1 - p_rs)

with the conventions 0 * log 0 := 0 and n_rs = 0 => l_rs = 0, so empty
blocks, empty pairs and saturated pairs all contribute exactly zero.
"""
from typing import Literal

import numpy as np
from numba import jit
from scipy.special import xlogy

#### aliases ######
LikelihoodType = Literal['bernoulli']

# Bernoulli functions
@jit(nopython=True, cache=True)
def _bernoulli_ll_block_pair(e: int, n: int) -> float:
    """
    Profile log-likelihood for one block pair.
    e: number of edges between block pair.
    n: number of possible pairs between block pair.
    """
    if n <= 0 or e <= 0 or e >= n: # empty or saturated pair: exactly 0
        return 0.0

    p = e / n
    return e * np.log(p) + (n - e) * np.log1p(-p)

@jit(nopython=True, cache=True)
def _possible_pairs(size_r: int, size_s: int, same_block: bool) -> int:
    if same_block:
        return size_r * (size_r - 1) // 2
    return size_r * size_s

@jit(nopython=True, cache=True)
def _delta_ll_move(
        edge_counts: np.ndarray,
        block_sizes: np.ndarray,
        neighbor_counts: np.ndarray,
        old: int,
        new: int,
        ) -> float:
    """
    Change in log-likelihood when one vertex moves from block `old` to `new`.

    edge_counts: k x k symmetric edge counts (diagonal counts each edge once).
    block_sizes: current block sizes.
    neighbor_counts: number of neighbors of the moving vertex in each block.

    Only the pairs (old, s) and (new, s) change, so this is O(k).
    """
    if old == new:
        return 0.0

    k = block_sizes.shape[0]
    n_old, n_new = block_sizes[old], block_sizes[new]
    n_old_after, n_new_after = n_old - 1, n_new + 1

    delta = 0.0
    for s in range(k):
        if s == old or s == new:
            continue
        n_s = block_sizes[s]
        c_s = neighbor_counts[s]

        e_old_s = edge_counts[old, s]
        delta += _bernoulli_ll_block_pair(e_old_s - c_s, n_old_after * n_s)
        delta -= _bernoulli_ll_block_pair(e_old_s, n_old * n_s)

        e_new_s = edge_counts[new, s]
        delta += _bernoulli_ll_block_pair(e_new_s + c_s, n_new_after * n_s)
        delta -= _bernoulli_ll_block_pair(e_new_s, n_new * n_s)

    c_old, c_new = neighbor_counts[old], neighbor_counts[new]

    # diagonal pairs
    e = edge_counts[old, old]
    delta += _bernoulli_ll_block_pair(e - c_old, _possible_pairs(n_old_after, n_old_after, True))
    delta -= _bernoulli_ll_block_pair(e, _possible_pairs(n_old, n_old, True))

    e = edge_counts[new, new]
    delta += _bernoulli_ll_block_pair(e + c_new, _possible_pairs(n_new_after, n_new_after, True))
    delta -= _bernoulli_ll_block_pair(e, _possible_pairs(n_new, n_new, True))

    # the pair between the two blocks loses edges to `new`, gains edges to `old`
    e = edge_counts[old, new]
    delta += _bernoulli_ll_block_pair(e + c_old - c_new, n_old_after * n_new_after)
    delta -= _bernoulli_ll_block_pair(e, n_old * n_new)

    return delta

def compute_delta_ll_move(
        edge_counts: np.ndarray,
        block_sizes: np.ndarray,
        neighbor_counts: np.ndarray,
        old: int,
        new: int,
        ) -> float:
    """
    Exact change in the Bernoulli log-likelihood if one vertex with the given
    per-block neighbor counts is moved from block `old` to block `new`.
    """
    return float(_delta_ll_move(
        np.ascontiguousarray(edge_counts, dtype=np.int64),
        np.ascontiguousarray(block_sizes, dtype=np.int64),
        np.ascontiguousarray(neighbor_counts, dtype=np.int64),
        int(old),
        int(new),
    ))

# ────────────────────────────────────────────────────────────────────
### Global log-likelihood
# ────────────────────────────────────────────────────────────────────
def possible_pairs_matrix(block_sizes: np.ndarray) -> np.ndarray:
    """
    k x k matrix of possible vertex pairs per block pair:
    |r| * |s| off the diagonal and |r| * (|r| - 1) / 2 on it.
    """
    sizes = np.asarray(block_sizes, dtype=np.int64)
    pairs = np.outer(sizes, sizes)
    np.fill_diagonal(pairs, sizes * (sizes - 1) // 2)
    return pairs

def compute_probabilities(edge_counts: np.ndarray, block_sizes: np.ndarray) -> np.ndarray:
    """ Maximum likelihood block-pair probabilities; 0 where no pair is possible. """
    pairs = possible_pairs_matrix(block_sizes)
    probs = np.zeros(pairs.shape, dtype=np.float64)
    np.divide(edge_counts, pairs, out=probs, where=pairs > 0)
    return probs

def compute_global_bernoulli_ll(edge_counts: np.ndarray, block_sizes: np.ndarray) -> float:
    """
    Global Bernoulli log-likelihood summed over the upper triangle (r <= s).

    xlogy(0, .) == 0 implements the 0 * log 0 convention, so the result is
    always finite.
    """
    pairs = possible_pairs_matrix(block_sizes)
    probs = compute_probabilities(edge_counts, block_sizes)

    upper = np.triu_indices(pairs.shape[0])
    e = edge_counts[upper].astype(np.float64)
    n = pairs[upper].astype(np.float64)
    p = probs[upper]

    if np.any(e < 0) or np.any(e > n):
        raise ValueError("Edge counts must lie between 0 and the number of possible pairs.")

    return float(np.sum(xlogy(e, p) + xlogy(n - e, 1.0 - p)))

# ────────────────────────────────────────────────────────────────────
### Model-order selection
# ────────────────────────────────────────────────────────────────────
def free_parameters(num_types: int) -> int:
    """ Independent block-pair probabilities of an undirected k-block model. """
    return num_types * (num_types + 1) // 2

def aic(log_likelihood: float, num_types: int) -> float:
    return -2.0 * log_likelihood + 2.0 * free_parameters(num_types)

def bic(log_likelihood: float, num_types: int, num_nodes: int) -> float:
    return -2.0 * log_likelihood + free_parameters(num_types) * np.log(num_nodes)
