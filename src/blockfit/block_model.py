from typing import Dict, Optional, Sequence

import numpy as np
from scipy.sparse import csr_array

from blockfit.graph_data import GraphData
from blockfit.io import BlockmodelFit
from blockfit.likelihood import (
    aic,
    bic,
    compute_delta_ll_move,
    compute_global_bernoulli_ll,
    compute_probabilities,
    possible_pairs_matrix,
)

TypeAssignment = np.ndarray  # length n, entries in [0, k)

class _EdgeCountUpdater:
    """
    Helper class to keep edge counts and block sizes in sync with single
    vertex moves. Hides the bookkeeping of the symmetric edge-count matrix,
    whose diagonal counts each intra-block edge once.

    Parameters
    ----------
    model : BlockModel
    """
    def __init__(self, model: "BlockModel"):
        self.model = model

    def move_vertex(self, vertex: int, new_type: int, neighbor_counts: np.ndarray) -> None:
        model = self.model
        old_type = int(model.types[vertex])
        edge_counts = model.edge_counts

        # edges (vertex, u) leave the pairs (old_type, type(u)) ...
        edge_counts[old_type, :] -= neighbor_counts
        edge_counts[:, old_type] -= neighbor_counts
        edge_counts[old_type, old_type] += neighbor_counts[old_type]

        # ... and enter the pairs (new_type, type(u))
        edge_counts[new_type, :] += neighbor_counts
        edge_counts[:, new_type] += neighbor_counts
        edge_counts[new_type, new_type] -= neighbor_counts[new_type]

        model.block_sizes[old_type] -= 1
        model.block_sizes[new_type] += 1
        model.types[vertex] = new_type


class BlockModel:
    """
    Undirected Bernoulli blockmodel on a fixed graph.

    Holds the type assignment of every vertex and the statistics derived from
    it: block sizes, the k x k edge-count matrix and (on demand) the block-pair
    probability matrix and the log-likelihood. Every mutation keeps the derived
    statistics consistent with the current assignment.

    Attributes:
        graph_data: The graph the model is fitted to (not owned).
        num_types: Number of blocks k.
        types: Type of each vertex, integer array of length n.
        block_sizes: Number of vertices in each block, length k.
        edge_counts: Symmetric k x k matrix of edge counts between blocks.
    """

    def __init__(self,
                 graph_data: Optional[GraphData] = None,
                 num_types: int = 1,
                 types: Optional[Sequence[int]] = None,
        ):
        if num_types < 1:
            raise ValueError(f"Number of types must be positive, got {num_types}.")

        self.graph_data: Optional[GraphData] = None
        self.num_types: int = int(num_types)
        self.types: TypeAssignment = np.zeros(0, dtype=np.int64)
        self.block_sizes = np.zeros(self.num_types, dtype=np.int64)
        self.edge_counts = np.zeros((self.num_types, self.num_types), dtype=np.int64)
        self._log_likelihood: Optional[float] = None
        self._updater = _EdgeCountUpdater(self)

        if graph_data is not None:
            self.set_graph(graph_data)
        if types is not None:
            self.set_types(types)

    # ----- full replacement ----------------------------------------------
    def set_graph(self, graph_data: GraphData) -> None:
        """ Bind a graph and reset every vertex to type 0. """
        self.graph_data = graph_data
        self.types = np.zeros(graph_data.num_nodes, dtype=np.int64)
        self._recompute()

    def set_num_types(self, num_types: int) -> None:
        """
        Change the number of blocks. The current assignment is kept, so every
        vertex type must already be smaller than `num_types`.
        """
        if num_types < 1:
            raise ValueError(f"Number of types must be positive, got {num_types}.")
        if self.types.size and int(self.types.max()) >= num_types:
            raise ValueError(
                f"Current assignment uses type {int(self.types.max())}, "
                f"cannot shrink to {num_types} types."
            )
        self.num_types = int(num_types)
        self._recompute()

    def set_types(self, types: Sequence[int]) -> None:
        """ Replace the whole type assignment and recompute all statistics. """
        graph = self._require_graph()
        types = np.array(types, dtype=np.int64)
        if types.shape != (graph.num_nodes,):
            raise ValueError(
                f"Type assignment must have length {graph.num_nodes}, got shape {types.shape}."
            )
        if types.size and (types.min() < 0 or types.max() >= self.num_types):
            raise ValueError(f"Types must lie in [0, {self.num_types}).")

        self.types = types
        self._recompute()

    def randomize(self, rng: np.random.Generator) -> None:
        """ Assign every vertex an independent uniform type in [0, k). """
        graph = self._require_graph()
        self.set_types(rng.integers(0, self.num_types, size=graph.num_nodes))

    # ----- incremental update --------------------------------------------
    def set_type(self, vertex: int, new_type: int) -> None:
        """
        Move a single vertex to `new_type`. Costs O(degree(vertex) + k): only
        the rows and columns of the old and new type change.
        """
        self._check_move(vertex, new_type)
        if int(self.types[vertex]) == new_type:
            return

        self._updater.move_vertex(vertex, new_type, self.neighbor_type_counts(vertex))
        self._log_likelihood = None

    def delta_log_likelihood(self, vertex: int, new_type: int) -> float:
        """
        Exact change of the log-likelihood if `vertex` moved to `new_type`.
        The model is not modified.
        """
        self._check_move(vertex, new_type)
        return compute_delta_ll_move(
            edge_counts=self.edge_counts,
            block_sizes=self.block_sizes,
            neighbor_counts=self.neighbor_type_counts(vertex),
            old=int(self.types[vertex]),
            new=new_type,
        )

    def neighbor_type_counts(self, vertex: int) -> np.ndarray:
        """ Number of neighbors of `vertex` in each block. """
        neighbors = self._require_graph().neighbors(vertex)
        return np.bincount(self.types[neighbors], minlength=self.num_types).astype(np.int64)

    # ----- accessors -----------------------------------------------------
    @property
    def num_nodes(self) -> int:
        return 0 if self.graph_data is None else self.graph_data.num_nodes

    def get_graph(self) -> Optional[GraphData]:
        return self.graph_data

    def get_num_types(self) -> int:
        return self.num_types

    def get_type(self, vertex: int) -> int:
        return int(self.types[vertex])

    def get_types(self) -> TypeAssignment:
        return self.types.copy()

    def get_possible_pairs(self) -> np.ndarray:
        return possible_pairs_matrix(self.block_sizes)

    def get_probabilities(self) -> np.ndarray:
        """ k x k matrix P with P[a, b] = E[a, b] / maxPairs(a, b). """
        return compute_probabilities(self.edge_counts, self.block_sizes)

    def get_log_likelihood(self) -> float:
        if self._log_likelihood is None:
            self._log_likelihood = compute_global_bernoulli_ll(self.edge_counts, self.block_sizes)
        return self._log_likelihood

    def get_aic(self) -> float:
        return aic(self.get_log_likelihood(), self.num_types)

    def get_bic(self) -> float:
        return bic(self.get_log_likelihood(), self.num_types, self.num_nodes)

    def copy(self) -> "BlockModel":
        """ Snapshot of the assignment and statistics; the graph is shared. """
        clone = BlockModel.__new__(BlockModel)
        clone.graph_data = self.graph_data
        clone.num_types = self.num_types
        clone.types = self.types.copy()
        clone.block_sizes = self.block_sizes.copy()
        clone.edge_counts = self.edge_counts.copy()
        clone._log_likelihood = self._log_likelihood
        clone._updater = _EdgeCountUpdater(clone)
        return clone

    def to_fit(self, metadata: Optional[Dict] = None) -> BlockmodelFit:
        """ Convert the model to a BlockmodelFit for serialization. """
        return BlockmodelFit(
            num_types=self.num_types,
            types=self.types.tolist(),
            block_sizes=self.block_sizes.tolist(),
            edge_counts=self.edge_counts.copy(),
            probabilities=self.get_probabilities(),
            log_likelihood=self.get_log_likelihood(),
            aic=self.get_aic(),
            bic=self.get_bic(),
            metadata=dict(metadata or {}),
        )

    # ----- from-scratch computation ---------------------------------------
    def compute_edge_counts(self, types: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        Count the edges between every pair of blocks from scratch, O(edges).

        With Z the n x k one-hot membership matrix, Z^T A Z counts every
        inter-block edge once per direction and every intra-block edge twice.
        """
        graph = self._require_graph()
        types = self.types if types is None else np.asarray(types, dtype=np.int64)
        n = graph.num_nodes

        membership = csr_array(
            (np.ones(n, dtype=np.int64), (np.arange(n), types)),
            shape=(n, self.num_types),
        )
        adjacency = csr_array(graph.adjacency, dtype=np.int64)
        counts = (membership.T @ adjacency @ membership).toarray().astype(np.int64)
        counts[np.diag_indices(self.num_types)] //= 2
        return counts

    def _recompute(self) -> None:
        self.block_sizes = np.bincount(self.types, minlength=self.num_types).astype(np.int64)
        if self.graph_data is None:
            self.edge_counts = np.zeros((self.num_types, self.num_types), dtype=np.int64)
        else:
            self.edge_counts = self.compute_edge_counts()
        self._log_likelihood = None

    def _require_graph(self) -> GraphData:
        if self.graph_data is None:
            raise ValueError("Graph data is not set. Call set_graph first.")
        return self.graph_data

    def _check_move(self, vertex: int, new_type: int) -> None:
        if not 0 <= vertex < self.num_nodes:
            raise ValueError(f"Vertex {vertex} out of range [0, {self.num_nodes}).")
        if not 0 <= new_type < self.num_types:
            raise ValueError(f"Type {new_type} out of range [0, {self.num_types}).")

    def __repr__(self) -> str:
        return (f"BlockModel(num_nodes={self.num_nodes}, num_types={self.num_types}, "
                f"block_sizes={self.block_sizes.tolist()})")
