"""
blockfit.utils.logger
=====================
CSV trace of the Markov chain of a blockmodel fit, written while the chain
runs so that long fits can be monitored and inspected afterwards.

Row schema
----------
```
iteration, elapsed_seconds, phase, num_types,
log_likelihood, best_log_likelihood,
accept_rate, last_accepted
```
"""

import csv
import time
from pathlib import Path
from typing import Union, TextIO

__all__ = ["CSVLogger"]

class CSVLogger:
    """Append-only CSV trace with a fixed row cadence.

    Parameters
    ----------
    file
        Path of the trace or an open text handle. A path is truncated and
        gets a header row; a handle is assumed to carry one already.
    log_every
        Rows are kept for steps that are a multiple of ``log_every``.
    flush_every
        Number of rows buffered before the handle is flushed.
    """

    header = [
        "iteration",
        "elapsed_seconds",
        "phase",
        "num_types",
        "log_likelihood",
        "best_log_likelihood",
        "accept_rate",
        "last_accepted",
    ]

    def __init__(
        self,
        file: Union[str, Path, TextIO],
        *,
        log_every: int = 8192,
        flush_every: int = 10,
    ):
        if log_every < 1:
            raise ValueError(f"log_every must be positive, got {log_every}")

        self.log_every = int(log_every)
        self.flush_every = int(flush_every)
        self._t0 = time.perf_counter()
        self._pending = 0

        self._owns_handle = isinstance(file, (str, Path))
        if self._owns_handle:
            path = Path(file)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._fh: TextIO = path.open("w", newline="")
        else:
            self._fh = file

        self._rows = csv.DictWriter(self._fh, fieldnames=self.header)
        if self._owns_handle:
            self._rows.writeheader()

    def log(
        self,
        iteration: int,
        phase: str,
        num_types: int,
        log_likelihood: float,
        best_log_likelihood: float,
        accept_rate: float,
        last_accepted: bool,
    ) -> None:
        """Record one step of the chain if it falls on the cadence."""
        if iteration % self.log_every != 0:
            return

        self._rows.writerow({
            "iteration": iteration,
            "elapsed_seconds": f"{time.perf_counter() - self._t0:.3f}",
            "phase": phase,
            "num_types": num_types,
            "log_likelihood": f"{log_likelihood:.6f}",
            "best_log_likelihood": f"{best_log_likelihood:.6f}",
            "accept_rate": f"{accept_rate:.6f}",
            "last_accepted": int(last_accepted),
        })

        self._pending += 1
        if self._pending >= self.flush_every:
            self._fh.flush()
            self._pending = 0

    def close(self) -> None:
        if self._owns_handle:
            self._fh.close()
        else:
            self._fh.flush()

    def __enter__(self) -> "CSVLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
