"""
Main Runner for Concurrent ASR Load Testing

Parses the command line, loads configuration, runs the concurrent test,
prints the report and saves the results artifact.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from .collector import TestCollector
from .config import TestConfig, load_config
from .errors import ConfigError
from .metrics import ResultsWriter, compute_stats
from .report import print_report

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"concurrency must be a positive integer (got {value!r})")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"concurrency must be a positive integer (got {value!r})")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="astload",
        description="Concurrent load test for a streaming speech-recognition WebSocket endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 10 concurrent clients with the default configuration
  astload 10

  # 200 clients against another endpoint
  astload 200 --url ws://asr.internal:8856/tuling/ast/v3

  # Custom config and audio file
  python -m astload.runner 50 --config configs/default.yaml --audio data/sample.wav
        """
    )

    parser.add_argument(
        'concurrency',
        type=_positive_int,
        help='Number of concurrent clients (positive integer)'
    )

    parser.add_argument(
        '--config', '-c',
        default=None,
        help=f'Path to YAML configuration file (default: {DEFAULT_CONFIG_PATH} if present)'
    )

    parser.add_argument(
        '--url',
        default=None,
        help='WebSocket endpoint (overrides config)'
    )

    parser.add_argument(
        '--audio',
        default=None,
        help='Audio file to stream (overrides config)'
    )

    parser.add_argument(
        '--results-dir', '-o',
        default=None,
        help='Directory for result artifacts (overrides config)'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )

    return parser


def resolve_config(args: argparse.Namespace) -> TestConfig:
    """Load the YAML config (if any) and apply command-line overrides."""
    if args.config:
        config = load_config(args.config)
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config(DEFAULT_CONFIG_PATH)
    else:
        config = TestConfig()

    return config.with_overrides(
        ws_url=args.url,
        audio_path=args.audio,
        results_dir=args.results_dir,
    )


async def run(concurrency: int, config: TestConfig, console: Optional[Console] = None) -> Path:
    """Run the test, print the report and return the saved artifact path."""
    started_at = datetime.now()
    results, total_test_time = await TestCollector(config).run(concurrency)

    stats = compute_stats(results, total_test_time, config=config, started_at=started_at)
    print_report(stats, console=console)

    return ResultsWriter(config.results_dir, write_csv=config.write_csv).write(stats)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the load tester."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits 2 on usage errors; usage errors exit 1 here
        return 0 if e.code in (0, None) else 1

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console = Console()
    try:
        config = resolve_config(args)
        console.print(f"Preparing {args.concurrency} concurrent clients")
        console.print(f"WebSocket server: {config.ws_url}")
        console.print(f"Audio file: {config.audio_path}")

        output_path = asyncio.run(run(args.concurrency, config, console=console))
        console.print(f"\nDetailed results saved to: {output_path}")
        return 0

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        console.print("\n⚠️ Test interrupted by user")
        return 1
    except Exception as e:
        logger.exception(f"Test run failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
