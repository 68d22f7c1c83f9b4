"""
Test Orchestrator for Streaming ASR Load Testing

Launches N client sessions at once and waits for every one of them to
resolve. A failing session never cancels or delays the others.
"""

import asyncio
import logging
import time
from typing import Any, Callable, List, Tuple

import websockets

from .config import TestConfig
from .ws_client import ClientResult, run_session

logger = logging.getLogger(__name__)


class TestCollector:
    """Runs one concurrent test and collects a ClientResult per client."""
    __test__ = False

    def __init__(self, config: TestConfig, connect: Callable[..., Any] = websockets.connect):
        self.config = config
        self.connect = connect

    async def run(self, concurrency: int) -> Tuple[List[ClientResult], float]:
        """
        Run `concurrency` sessions with client IDs 1..N.

        Returns the results in launch order and the wall-clock test time in
        milliseconds.
        """
        if concurrency <= 0:
            raise ValueError(f"concurrency must be a positive integer (got {concurrency})")

        logger.info(f"Starting concurrent test with {concurrency} clients against {self.config.ws_url}")
        start_time = time.perf_counter()

        client_ids = list(range(1, concurrency + 1))
        outcomes = await asyncio.gather(
            *(run_session(client_id, self.config, connect=self.connect) for client_id in client_ids),
            return_exceptions=True,
        )
        total_test_time = (time.perf_counter() - start_time) * 1000.0

        results: List[ClientResult] = []
        for client_id, outcome in zip(client_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Client {client_id}: session raised an exception: {outcome!r}")
                results.append(ClientResult(
                    client_id=client_id,
                    error=f"unexpected error: {outcome!r}",
                    total_time=total_test_time,
                ))
            else:
                results.append(outcome)

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Concurrent test finished in {total_test_time:.0f}ms: {succeeded}/{concurrency} succeeded")
        return results, total_test_time


async def run_concurrent_test(concurrency: int,
                              config: TestConfig,
                              connect: Callable[..., Any] = websockets.connect) -> Tuple[List[ClientResult], float]:
    """Convenience wrapper around TestCollector.run()."""
    return await TestCollector(config, connect=connect).run(concurrency)
