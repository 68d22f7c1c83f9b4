import json
from datetime import datetime

import pandas as pd
import pytest

from astload.metrics import AggregateStats, ResultsWriter, compute_stats, load_stats
from astload.ws_client import ClientResult


def make_results(successes, failures):
    results = []
    for i in range(1, successes + 1):
        results.append(ClientResult(
            client_id=i,
            success=True,
            connection_time=10.0 * i,
            first_response_time=100.0 * i,
            total_time=1000.0 * i,
            received_messages=3,
            final_text="ok",
        ))
    for j in range(failures):
        results.append(ClientResult(
            client_id=successes + j + 1,
            error="connection timeout",
            total_time=10000.0,
        ))
    return results


def test_success_rate_is_exact():
    stats = compute_stats(make_results(7, 3), total_test_time=1234.0)

    assert stats.total_clients == 10
    assert stats.successful_clients == 7
    assert stats.failed_clients == 3
    assert stats.success_rate == pytest.approx(70.0)
    assert f"{stats.success_rate:.2f}%" == "70.00%"


def test_latency_stats_cover_successful_clients_only():
    stats = compute_stats(make_results(3, 2), total_test_time=1.0)

    assert stats.connection_time.min == 10.0
    assert stats.connection_time.max == 30.0
    assert stats.connection_time.avg == pytest.approx(20.0)
    assert stats.first_response_time.avg == pytest.approx(200.0)
    # failed sessions (total_time 10000) are excluded
    assert stats.total_time.max == 3000.0


def test_empty_success_set_yields_zeros():
    stats = compute_stats(make_results(0, 4), total_test_time=1.0)

    for lat in (stats.connection_time, stats.first_response_time, stats.total_time):
        assert (lat.min, lat.avg, lat.max, lat.p95) == (0.0, 0.0, 0.0, 0.0)
    assert stats.success_rate == 0.0
    assert [r.client_id for r in stats.failed_results] == [1, 2, 3, 4]


def test_writer_creates_directory_and_round_trips(tmp_path, make_config):
    config = make_config("ws://example:1/asr")
    stats = compute_stats(make_results(2, 1), total_test_time=42.0, config=config)
    out_dir = tmp_path / "nested" / "results"

    path = ResultsWriter(out_dir).write(stats, timestamp=datetime(2026, 1, 2, 3, 4, 5))

    assert path == out_dir / "concurrent_test_3_20260102_030405_000000.json"
    loaded = load_stats(path)
    assert isinstance(loaded, AggregateStats)
    assert loaded.total_clients == stats.total_clients
    assert loaded.successful_clients == stats.successful_clients
    assert len(loaded.results) == len(stats.results)
    assert loaded == stats

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["ws_url"] == "ws://example:1/asr"
    assert raw["results"][2]["error"] == "connection timeout"


def test_writer_emits_per_client_csv(tmp_path):
    stats = compute_stats(make_results(1, 1), total_test_time=1.0)

    path = ResultsWriter(tmp_path).write(stats)

    df = pd.read_csv(path.with_suffix(".csv"))
    assert list(df["client_id"]) == [1, 2]
    assert list(df["success"]) == [True, False]


def test_writer_can_skip_csv(tmp_path):
    stats = compute_stats(make_results(1, 0), total_test_time=1.0)

    path = ResultsWriter(tmp_path, write_csv=False).write(stats)

    assert path.exists()
    assert not path.with_suffix(".csv").exists()


def test_runs_in_the_same_second_keep_separate_artifacts(tmp_path):
    writer = ResultsWriter(tmp_path)
    first = compute_stats(make_results(1, 0), total_test_time=1.0)
    second = compute_stats(make_results(0, 1), total_test_time=2.0)

    p1 = writer.write(first, timestamp=datetime(2026, 1, 1, 0, 0, 0, 100))
    p2 = writer.write(second, timestamp=datetime(2026, 1, 1, 0, 0, 0, 900000))

    assert p1 != p2
    assert len(list(tmp_path.glob("concurrent_test_1_*.json"))) == 2
    assert len(list(tmp_path.glob("concurrent_test_1_*.csv"))) == 2
    assert load_stats(p1).successful_clients == 1
    assert load_stats(p2).successful_clients == 0


def test_identical_timestamp_does_not_overwrite(tmp_path):
    writer = ResultsWriter(tmp_path)
    stats = compute_stats(make_results(2, 0), total_test_time=1.0)
    ts = datetime(2026, 1, 1, 12, 0, 0)

    p1 = writer.write(stats, timestamp=ts)
    p2 = writer.write(stats, timestamp=ts)

    assert p1.name == "concurrent_test_2_20260101_120000_000000.json"
    assert p2.name == "concurrent_test_2_20260101_120000_000000_2.json"
    assert p1.exists() and p2.exists()
