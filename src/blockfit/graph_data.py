import numpy as np
import networkx as nx
from scipy.sparse import csr_array, coo_array


class GraphData:
    """
    Immutable undirected simple graph stored as a CSR adjacency matrix.

    Self-loops and edge multiplicities are dropped and the adjacency is
    symmetrised, so every edge {u, v} appears as (u, v) and (v, u) with value 1.
    """
    def __init__(self, adjacency_matrix: csr_array):
        if not isinstance(adjacency_matrix, csr_array):
            raise ValueError("Adjacency matrix must be a scipy.sparse.csr_array")
        if adjacency_matrix.shape[0] != adjacency_matrix.shape[1]: # type: ignore
            raise ValueError(f"Adjacency matrix must be square, got shape {adjacency_matrix.shape}")

        n = int(adjacency_matrix.shape[0]) # type: ignore
        coo = coo_array(adjacency_matrix)
        keep = (coo.row != coo.col) & (coo.data != 0)
        rows, cols = coo.row[keep], coo.col[keep]

        # both orientations, duplicates collapse to a single entry
        sym = coo_array(
            (np.ones(2 * rows.size, dtype=np.int64),
             (np.concatenate([rows, cols]), np.concatenate([cols, rows]))),
            shape=(n, n),
        ).tocsr()
        sym.data[:] = 1
        adj = csr_array(sym, dtype=np.int8)
        adj.sort_indices()

        self.adjacency = adj
        self.num_nodes: int = int(adj.shape[0]) # type: ignore
        self.total_edges: int = int(adj.nnz // 2)

        self._indptr = adj.indptr
        self._indices = adj.indices

    def __len__(self) -> int:
        return self.num_nodes

    def neighbors(self, node: int) -> np.ndarray:
        """ Neighbors of *node* as a read-only view into the CSR index array. """
        return self._indices[self._indptr[node]:self._indptr[node + 1]]

    def degree(self, node: int) -> int:
        return int(self._indptr[node + 1] - self._indptr[node])

    def degrees(self) -> np.ndarray:
        return np.diff(self._indptr)

    def edges(self) -> np.ndarray:
        """ Upper-triangle edge list, shape (total_edges, 2). """
        rows, cols = self.adjacency.nonzero() # type: ignore
        keep = rows < cols
        return np.column_stack([rows[keep], cols[keep]])


def gd_from_networkx(G: nx.Graph) -> GraphData:
    """
    Create a GraphData instance from a NetworkX graph.

    Nodes are relabelled 0..n-1 in the graph's node iteration order.
    Directed graphs are symmetrised.
    """
    adj = nx.to_scipy_sparse_array(G, format="csr", dtype=np.int8, weight=None)
    return GraphData(csr_array(adj))


def gd_from_edges(edges, num_nodes: int) -> GraphData:
    """ Build a GraphData from an iterable of (u, v) pairs on vertices 0..num_nodes-1. """
    edges = np.asarray(list(edges), dtype=np.int64).reshape(-1, 2)
    if edges.size and (edges.min() < 0 or edges.max() >= num_nodes):
        raise ValueError(f"Edge endpoints must lie in [0, {num_nodes}).")

    data = np.ones(edges.shape[0], dtype=np.int64)
    adj = csr_array((data, (edges[:, 0], edges[:, 1])), shape=(num_nodes, num_nodes))
    return GraphData(adj)
