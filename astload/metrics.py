"""
Result Aggregation and Persistence

Turns the per-client results of a run into summary statistics and writes
them to a timestamped JSON artifact (plus a per-client CSV).
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import TestConfig
from .ws_client import ClientResult

logger = logging.getLogger(__name__)


@dataclass
class LatencyStats:
    """min/avg/max/p95 over one timing, in milliseconds."""
    min: float = 0.0
    avg: float = 0.0
    max: float = 0.0
    p95: float = 0.0

    @classmethod
    def from_samples(cls, samples: Sequence[float]) -> "LatencyStats":
        if not samples:
            return cls()
        values = np.asarray(samples, dtype=float)
        return cls(
            min=float(np.min(values)),
            avg=float(np.mean(values)),
            max=float(np.max(values)),
            p95=float(np.percentile(values, 95)),
        )


@dataclass
class AggregateStats:
    """Summary of a complete run. Latency stats cover successful clients only."""
    total_clients: int
    successful_clients: int
    failed_clients: int
    success_rate: float
    total_test_time: float
    connection_time: LatencyStats = field(default_factory=LatencyStats)
    first_response_time: LatencyStats = field(default_factory=LatencyStats)
    total_time: LatencyStats = field(default_factory=LatencyStats)
    ws_url: str = ""
    audio_path: str = ""
    started_at: str = ""
    results: List[ClientResult] = field(default_factory=list)

    @property
    def failed_results(self) -> List[ClientResult]:
        return [r for r in self.results if not r.success]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateStats":
        return cls(
            total_clients=int(data['total_clients']),
            successful_clients=int(data['successful_clients']),
            failed_clients=int(data['failed_clients']),
            success_rate=float(data['success_rate']),
            total_test_time=float(data['total_test_time']),
            connection_time=LatencyStats(**data.get('connection_time', {})),
            first_response_time=LatencyStats(**data.get('first_response_time', {})),
            total_time=LatencyStats(**data.get('total_time', {})),
            ws_url=data.get('ws_url', ''),
            audio_path=data.get('audio_path', ''),
            started_at=data.get('started_at', ''),
            results=[ClientResult.from_dict(r) for r in data.get('results', [])],
        )


def compute_stats(results: Sequence[ClientResult],
                  total_test_time: float,
                  config: Optional[TestConfig] = None,
                  started_at: Optional[datetime] = None) -> AggregateStats:
    """Aggregate per-client results. Pure: no I/O."""
    successful = [r for r in results if r.success]
    total = len(results)

    return AggregateStats(
        total_clients=total,
        successful_clients=len(successful),
        failed_clients=total - len(successful),
        success_rate=(len(successful) / total * 100.0) if total else 0.0,
        total_test_time=total_test_time,
        connection_time=LatencyStats.from_samples([r.connection_time for r in successful]),
        first_response_time=LatencyStats.from_samples([r.first_response_time for r in successful]),
        total_time=LatencyStats.from_samples([r.total_time for r in successful]),
        ws_url=config.ws_url if config else "",
        audio_path=config.audio_path if config else "",
        started_at=(started_at or datetime.now()).isoformat(timespec='seconds'),
        results=list(results),
    )


class ResultsWriter:
    """Writes run statistics under a results directory."""

    def __init__(self, output_dir: Union[str, Path], write_csv: bool = True):
        self.output_dir = Path(output_dir)
        self.write_csv = write_csv

    def artifact_path(self, stats: AggregateStats, timestamp: Optional[datetime] = None) -> Path:
        """Next free JSON path for this run; never returns an existing file."""
        ts = (timestamp or datetime.now()).strftime('%Y%m%d_%H%M%S_%f')
        stem = f"concurrent_test_{stats.total_clients}_{ts}"
        path = self.output_dir / f"{stem}.json"
        suffix = 1
        while path.exists() or (self.write_csv and path.with_suffix('.csv').exists()):
            suffix += 1
            path = self.output_dir / f"{stem}_{suffix}.json"
        return path

    def write(self, stats: AggregateStats, timestamp: Optional[datetime] = None) -> Path:
        """Write the full statistics object as JSON; returns the JSON path."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        json_path = self.artifact_path(stats, timestamp)

        with open(json_path, 'x', encoding='utf-8') as f:
            json.dump(stats.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Saved results to {json_path}")

        if self.write_csv:
            csv_path = json_path.with_suffix('.csv')
            df = pd.DataFrame([r.to_dict() for r in stats.results])
            df.to_csv(csv_path, index=False)
            logger.info(f"Saved per-client results to {csv_path}")

        return json_path


def load_stats(path: Union[str, Path]) -> AggregateStats:
    """Read a JSON artifact written by ResultsWriter."""
    with open(path, 'r', encoding='utf-8') as f:
        return AggregateStats.from_dict(json.load(f))
