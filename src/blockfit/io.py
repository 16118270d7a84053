from typing import Callable, Dict, List, Optional, TextIO, Union
from pathlib import Path
from dataclasses import dataclass, field
import gzip
import json
import sys

import numpy as np
import networkx as nx
from scipy.sparse import csr_array, coo_array, load_npz

from blockfit.graph_data import GraphData

# src/blockfit/io.py
@dataclass
class BlockmodelFit:
    num_types: int
    types: List[int]
    block_sizes: List[int]
    edge_counts: np.ndarray
    probabilities: np.ndarray
    log_likelihood: float
    aic: float
    bic: float
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "num_types": int(self.num_types),
            "log_likelihood": float(self.log_likelihood),
            "aic": float(self.aic),
            "bic": float(self.bic),
            "block_sizes": [int(s) for s in self.block_sizes],
            "types": [int(t) for t in self.types],
            "edge_counts": np.asarray(self.edge_counts).astype(int).tolist(),
            "probabilities": np.asarray(self.probabilities).astype(float).tolist(),
            "metadata": self.metadata,
        }

# ---------------------------------------------------------------------
#  Writers
# ---------------------------------------------------------------------

class Writer:
    """
    Base class of the result writers. A writer serializes one
    BlockmodelFit to a text stream.

    Register new writers with the `@Writer.register('name')` decorator.
    """

    # maps format name -> writer class
    registry: Dict[str, type] = {}

    @classmethod
    def register(cls, *names: str):
        def decorator(writer_cls: type):
            for name in names:
                cls.registry[name.lower()] = writer_cls
            return writer_cls
        return decorator

    @staticmethod
    def create(name: str) -> "Writer":
        """ Instantiate the writer registered under `name`. """
        try:
            return Writer.registry[name.lower()]()
        except KeyError:
            raise ValueError(
                f"Unknown output format '{name}'. "
                f"Known formats: {', '.join(sorted(Writer.registry))}."
            ) from None

    def write(self, fit: BlockmodelFit, stream: TextIO) -> None:
        raise NotImplementedError("This method should be overridden by subclasses.")


@Writer.register("plain")
class PlainTextWriter(Writer):
    """
    Simple line oriented format::

        # log_likelihood -123.456789
        # aic 262.913578
        # bic 270.112233
        # num_types 2
        types 0 0 1 1
        probabilities
        0.500000 0.100000
        0.100000 0.666667
    """
    def write(self, fit: BlockmodelFit, stream: TextIO) -> None:
        lines = [
            f"# log_likelihood {fit.log_likelihood:.6f}",
            f"# aic {fit.aic:.6f}",
            f"# bic {fit.bic:.6f}",
            f"# num_types {fit.num_types}",
            "types " + " ".join(str(int(t)) for t in fit.types),
            "probabilities",
        ]
        for row in np.asarray(fit.probabilities):
            lines.append(" ".join(f"{p:.6f}" for p in row))
        stream.write("\n".join(lines) + "\n")
        stream.flush()


@Writer.register("json")
class JSONWriter(Writer):
    def write(self, fit: BlockmodelFit, stream: TextIO) -> None:
        json.dump(fit.to_dict(), stream)
        stream.write("\n")
        stream.flush()


@Writer.register("null")
class NullWriter(Writer):
    """ Discards the result. """
    def write(self, fit: BlockmodelFit, stream: TextIO) -> None:
        return None

# ---------------------------------------------------------------------
#  GraphLoader
# ---------------------------------------------------------------------

class GraphLoader:
    """
    Factory that maps a file *extension* to a loader function and returns
    a `GraphData` object (symmetric CSR adjacency).

    Files with an unregistered extension and standard input ("-") are read
    as plain edge lists.

    Register new loaders with the `@GraphLoader.register('.ext')`
    decorator.
    """

    # maps extension (lower-case, incl. leading dot) -> callable
    registry: Dict[str, Callable[[Path], csr_array]] = {}

    # ----------------------- decorator -------------------------------
    @classmethod
    def register(cls, *exts: str):
        """
        Use as::

            @GraphLoader.register('.gml', '.graphml')
            def _load_graphml(path): ...
        """
        def decorator(fn: Callable[[Path], csr_array]):
            for ext in exts:
                cls.registry[ext.lower()] = fn
            return fn
        return decorator

    # ----------------------- public API ------------------------------
    @staticmethod
    def load(source: Union[str, Path], stdin: Optional[TextIO] = None) -> GraphData:
        """Load the graph at *source* ("-" for standard input) and return GraphData."""
        if str(source) == "-":
            adj = read_edgelist(stdin if stdin is not None else sys.stdin)
            return GraphData(adj)

        path = Path(source)
        if not path.is_file():
            raise FileNotFoundError(f"GraphLoader: file {path} does not exist.")

        loader = GraphLoader.registry.get(path.suffix.lower(), _load_edgelist)
        return GraphData(csr_array(loader(path)))

# ---------------- default loaders -------------------------------

def read_edgelist(stream: TextIO, name: str = "<stdin>") -> csr_array:
    """
    Parse a whitespace separated edge list, one edge per line. Blank lines and
    lines starting with '#' are skipped, columns after the first two are ignored.
    """
    rows, cols = [], []
    for lineno, line in enumerate(stream, start=1):
        fields = line.split()
        if not fields or fields[0].startswith("#"):
            continue
        try:
            u, v = int(fields[0]), int(fields[1])
        except (IndexError, ValueError):
            raise ValueError(f"{name}:{lineno}: expected two integer vertex ids, got {line.strip()!r}") from None
        if u < 0 or v < 0:
            raise ValueError(f"{name}:{lineno}: negative vertex id in {line.strip()!r}")
        rows.append(u)
        cols.append(v)

    n = max(rows + cols) + 1 if rows else 0
    data = np.ones(len(rows), dtype=np.int64)
    coords = (np.asarray(rows, dtype=np.int64), np.asarray(cols, dtype=np.int64))
    return csr_array(coo_array((data, coords), shape=(n, n)))


# 1. Plain edge list (.edges, .edgelist, .txt, optional .gz) -----------
@GraphLoader.register(".edges", ".edgelist", ".txt", ".gz")
def _load_edgelist(path: Path) -> csr_array:
    opener = gzip.open if path.suffix == ".gz" else open
    with opener(path, "rt") as f:
        return read_edgelist(f, name=str(path))


# 2. compressed / plain .npz containing a sparse adjacency -------------
@GraphLoader.register(".npz")
def _load_npz(path: Path) -> csr_array:
    return csr_array(load_npz(path))


# 3. GML / GraphML via NetworkX ---------------------------------------
@GraphLoader.register(".gml", ".graphml")
def _load_graphml(path: Path) -> csr_array:
    G = nx.read_gml(path) if path.suffix.lower() == ".gml" else nx.read_graphml(path)
    return csr_array(nx.to_scipy_sparse_array(G, format="csr", dtype=np.int8, weight=None))
