"""Tests for file sinks/sources and history loading."""

import polars as pl
import pytest

from accumcast.backends.polars.io import (
    CsvFileSink,
    CsvFileSource,
    ParquetDirSink,
    ParquetFileSink,
    ParquetFileSource,
    load_history,
    save_history,
    source_for,
)
from accumcast.errors import HistoryError


class TestSinksAndSources:
    def test_parquet_file(self, tmp_path):
        df = pl.DataFrame({"x": [1, 2, 3]})
        path = str(tmp_path / "frame.parquet")
        ParquetFileSink(path).write(df)
        assert ParquetFileSource(path).read().equals(df)

    def test_parquet_dir_created(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        ParquetDirSink(str(target), "ledger.parquet").write(pl.DataFrame({"x": [1]}))
        assert (target / "ledger.parquet").exists()

    def test_csv_file(self, tmp_path):
        df = pl.DataFrame({"period": ["a"], "elapsed": [1.0], "cumulative": [3.5]})
        path = str(tmp_path / "frame.csv")
        CsvFileSink(path).write(df)
        assert CsvFileSource(path).read().equals(df)

    def test_ledger_frame_to_parquet(self, tmp_path, ledger):
        ledger.write_event(
            time_index="t1", namespace="obs", kind="observation", period_id="p",
            step_key="look-1", payload_type="ProgressObs", payload={"elapsed": 0.5},
        )
        path = str(tmp_path / "ledger.parquet")
        ParquetFileSink(path).write(ledger.frame())
        back = ParquetFileSource(path).read()
        assert back["entity"].to_list() == ["p#look-1"]

    def test_source_for_extension(self):
        assert isinstance(source_for("h.parquet"), ParquetFileSource)
        assert isinstance(source_for("h.PQ"), ParquetFileSource)
        assert isinstance(source_for("h.csv"), CsvFileSource)
        with pytest.raises(ValueError, match="Unsupported file type"):
            source_for("h.xlsx")


class TestLoadHistory:
    @pytest.mark.parametrize("ext", ["csv", "parquet"])
    def test_roundtrip(self, tmp_path, linear_history, ext):
        path = str(tmp_path / f"history.{ext}")
        sink = CsvFileSink(path) if ext == "csv" else ParquetFileSink(path)
        save_history(linear_history, sink)
        loaded = load_history(path)
        assert loaded.periods == linear_history.periods
        assert loaded.final_totals().tolist() == linear_history.final_totals().tolist()

    def test_step_columns(self, tmp_path):
        path = tmp_path / "days.csv"
        path.write_text("month,day,sales\n1,15,40\n1,30,100\n2,15,55\n2,30,120\n")
        h = load_history(
            str(path), period_length=30, step_col="day", period_col="month", value_col="sales"
        )
        assert h.periods == ["1", "2"]
        assert h.fractions_at(0.5).tolist() == pytest.approx([0.4, 55 / 120])

    def test_invalid_contents(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("period,elapsed,cumulative\na,0.5,5\na,1.0,4\n")
        with pytest.raises(HistoryError):
            load_history(str(path))
