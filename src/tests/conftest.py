import numpy as np
import networkx as nx
import pytest

from blockfit.graph_data import GraphData, gd_from_networkx

# ------------------------------------------------------------------ helpers
def disjoint_union(*graphs: nx.Graph) -> nx.Graph:
    """Disjoint union with vertices numbered consecutively graph by graph."""
    return nx.disjoint_union_all(graphs)

def two_rings_graph() -> GraphData:
    """Two disjoint 5-cycles: vertices 0..4 and 5..9."""
    return gd_from_networkx(disjoint_union(nx.cycle_graph(5), nx.cycle_graph(5)))

def almost_cliques_graph() -> GraphData:
    """Four disjoint 4-cliques, each missing one internal edge."""
    G = disjoint_union(*(nx.complete_graph(4) for _ in range(4)))
    G.remove_edges_from([(0, 1), (5, 6), (10, 11), (15, 12)])
    return gd_from_networkx(G)

def planted_partition_graph(sizes, p_in: float, p_out: float, seed: int) -> GraphData:
    """Undirected planted partition graph; block b holds a consecutive vertex range."""
    G = nx.random_partition_graph(list(sizes), p_in, p_out, seed=seed)
    return gd_from_networkx(G)

def block_labels(sizes) -> np.ndarray:
    return np.repeat(np.arange(len(sizes)), sizes)

# ------------------------------------------------------------------ fixtures
@pytest.fixture
def two_rings() -> GraphData:
    return two_rings_graph()

@pytest.fixture
def almost_cliques() -> GraphData:
    return almost_cliques_graph()

@pytest.fixture(scope="module")
def planted() -> GraphData:
    return planted_partition_graph([10, 12, 14], p_in=0.7, p_out=0.05, seed=7)
