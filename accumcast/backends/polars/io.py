"""
accumcast.backends.polars.io
============================

Pluggable persistence for ledger frames and period histories via
**sinks/sources**.

- Parquet (file/dir), CSV file

Apart from `load_history`, this module knows nothing about ledgers or
histories; it only moves polars frames in and out of storage.

Doctest (smoke):
>>> import polars as pl
>>> from accumcast.backends.polars.io import ParquetFileSink, ParquetFileSource
>>> df = pl.DataFrame({"x":[1,2,3]})
>>> ParquetFileSink("_tmp.parquet").write(df)  # doctest: +SKIP
>>> _ = ParquetFileSource("_tmp.parquet").read()  # doctest: +SKIP
"""

from __future__ import annotations
import logging
import os
from typing import Any, Protocol

import polars as pl

from accumcast.history import PeriodHistory

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    """A write-only sink: DataFrame -> storage."""
    def write(self, df: pl.DataFrame) -> None: ...


class FrameSource(Protocol):
    """A read-only source: storage -> DataFrame."""
    def read(self) -> pl.DataFrame: ...


class ParquetFileSink:
    def __init__(self, path: str) -> None:
        self.path = path
    def write(self, df: pl.DataFrame) -> None:
        df.write_parquet(self.path)


class ParquetDirSink:
    def __init__(self, dirpath: str, filename: str = "records.parquet") -> None:
        self.dirpath = dirpath
        self.filename = filename
    def write(self, df: pl.DataFrame) -> None:
        os.makedirs(self.dirpath, exist_ok=True)
        df.write_parquet(os.path.join(self.dirpath, self.filename))


class CsvFileSink:
    def __init__(self, path: str) -> None:
        self.path = path
    def write(self, df: pl.DataFrame) -> None:
        df.write_csv(self.path)


class ParquetFileSource:
    def __init__(self, path: str) -> None:
        self.path = path
    def read(self) -> pl.DataFrame:
        return pl.read_parquet(self.path)


class CsvFileSource:
    def __init__(self, path: str, **read_options: Any) -> None:
        self.path = path
        self.read_options = read_options
    def read(self) -> pl.DataFrame:
        return pl.read_csv(self.path, **self.read_options)


def source_for(path: str) -> FrameSource:
    """Pick a file source from the extension (``.parquet``/``.pq`` or ``.csv``)."""
    ext = os.path.splitext(path)[1].lower()
    if ext in (".parquet", ".pq"):
        return ParquetFileSource(path)
    if ext == ".csv":
        return CsvFileSource(path)
    raise ValueError(f"Unsupported file type {ext!r}; expected .parquet, .pq or .csv")


def load_history(path: str, **kwargs: Any) -> PeriodHistory:
    """
    Read a CSV or Parquet file of historical periods into a `PeriodHistory`.

    If ``period_length`` is given the file is read as step indices (see
    `PeriodHistory.from_steps`); otherwise it must carry an elapsed column.
    Remaining keyword arguments are passed to the history constructor.
    """
    df = source_for(path).read()
    logger.info("Loaded %d history rows from %s", df.height, path)
    period_length = kwargs.pop("period_length", None)
    if period_length is not None:
        return PeriodHistory.from_steps(df, period_length, **kwargs)
    return PeriodHistory(df, **kwargs)


def save_history(history: PeriodHistory, sink: FrameSink) -> None:
    """Write the normalised (period, elapsed, cumulative) frame of a history."""
    sink.write(history.frame)
