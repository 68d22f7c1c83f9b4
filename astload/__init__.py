"""
Concurrent Load Tester for Streaming ASR WebSocket Endpoints

Opens N simultaneous connections, streams an audio file to each as paced
base64 JSON frames, measures connection, first-response and total latency,
and reports pass/fail statistics.
"""

from .config import TestConfig, load_config
from .envelope import FrameStatus, RequestEnvelope, build_request, extract_text, is_terminal
from .streamer import Frame, iter_frames, read_audio, stream_audio
from .ws_client import ClientResult, SessionRunner, apply_event, run_session
from .collector import TestCollector, run_concurrent_test
from .metrics import AggregateStats, LatencyStats, ResultsWriter, compute_stats, load_stats
from .report import print_report
from .errors import ConfigError, LoadTestError, StreamingError

__version__ = "1.0.0"

__all__ = [
    "TestConfig",
    "load_config",
    "FrameStatus",
    "RequestEnvelope",
    "build_request",
    "extract_text",
    "is_terminal",
    "Frame",
    "iter_frames",
    "read_audio",
    "stream_audio",
    "ClientResult",
    "SessionRunner",
    "apply_event",
    "run_session",
    "TestCollector",
    "run_concurrent_test",
    "AggregateStats",
    "LatencyStats",
    "ResultsWriter",
    "compute_stats",
    "load_stats",
    "print_report",
    "ConfigError",
    "LoadTestError",
    "StreamingError",
]
