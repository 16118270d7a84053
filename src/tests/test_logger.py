from __future__ import annotations

import csv
import io
from pathlib import Path

from blockfit.utils.logger import CSVLogger


def _row(logger: CSVLogger, iteration: int) -> None:
    logger.log(
        iteration=iteration,
        phase="burn_in",
        num_types=3,
        log_likelihood=-10.5,
        best_log_likelihood=-9.25,
        accept_rate=0.5,
        last_accepted=True,
    )


def test_writes_header_and_cadence(tmp_path: Path):
    path = tmp_path / "trace" / "chain.csv"
    with CSVLogger(path, log_every=2) as logger:
        for i in range(1, 6):
            _row(logger, i)

    rows = list(csv.reader(path.open()))
    assert rows[0] == CSVLogger.header
    assert [int(r[0]) for r in rows[1:]] == [2, 4]
    assert rows[1][2:] == ["burn_in", "3", "-10.500000", "-9.250000", "0.500000", "1"]


def test_file_is_truncated(tmp_path: Path):
    path = tmp_path / "chain.csv"
    path.write_text("old content\n")
    CSVLogger(path).close()
    assert path.read_text().splitlines() == [",".join(CSVLogger.header)]


def test_open_handle_is_not_closed():
    buffer = io.StringIO()
    logger = CSVLogger(buffer, log_every=1)
    _row(logger, 1)
    logger.close()

    assert not buffer.closed
    assert buffer.getvalue().startswith("1,")
