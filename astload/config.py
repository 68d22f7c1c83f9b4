"""
Run configuration.

A TestConfig is built from a YAML file with `server`, `audio`, `run` and
`output` sections; every key is optional and falls back to the defaults
below. Command-line flags are applied on top by the runner.
"""

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .envelope import DEFAULT_APP_ID, DEFAULT_BIZ_ID, DEFAULT_ENGINE_PARAMS
from .errors import ConfigError
from .streamer import DEFAULT_FRAME_SIZE, DEFAULT_INTERVAL_S

logger = logging.getLogger(__name__)

DEFAULT_WS_URL = "ws://localhost:8856/tuling/ast/v3"
DEFAULT_AUDIO_PATH = "data/audio.wav"
DEFAULT_RESULTS_DIR = "test_results"


@dataclass
class TestConfig:
    """Test configuration parameters."""
    # pytest would otherwise try to collect this class
    __test__ = False

    # Server settings
    ws_url: str = DEFAULT_WS_URL
    app_id: str = DEFAULT_APP_ID
    biz_id: str = DEFAULT_BIZ_ID
    engine_params: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_ENGINE_PARAMS))

    # Audio settings
    audio_path: str = DEFAULT_AUDIO_PATH
    frame_size: int = DEFAULT_FRAME_SIZE
    interval_s: float = DEFAULT_INTERVAL_S

    # Run parameters
    connect_timeout_s: float = 10.0
    response_timeout_s: Optional[float] = None

    # Output settings
    results_dir: str = DEFAULT_RESULTS_DIR
    write_csv: bool = True

    def __post_init__(self):
        if self.frame_size <= 0:
            raise ConfigError(f"frame_size must be positive (got {self.frame_size})")
        if self.interval_s < 0:
            raise ConfigError(f"interval_ms must not be negative (got {self.interval_s * 1000:g})")
        if self.connect_timeout_s <= 0:
            raise ConfigError(f"connect_timeout_s must be positive (got {self.connect_timeout_s})")
        if self.response_timeout_s is not None and self.response_timeout_s <= 0:
            raise ConfigError(f"response_timeout_s must be positive (got {self.response_timeout_s})")

    def with_overrides(self, **overrides: Any) -> "TestConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    return value


def config_from_dict(config: Dict[str, Any]) -> TestConfig:
    """Map the YAML section layout onto a TestConfig."""
    server = _section(config, 'server')
    audio = _section(config, 'audio')
    run = _section(config, 'run')
    output = _section(config, 'output')

    defaults = TestConfig()
    interval_ms = audio.get('interval_ms')

    try:
        return TestConfig(
            ws_url=str(server.get('ws_url', defaults.ws_url)),
            app_id=str(server.get('app_id', defaults.app_id)),
            biz_id=str(server.get('biz_id', defaults.biz_id)),
            engine_params=dict(server.get('engine') or defaults.engine_params),
            audio_path=str(audio.get('path', defaults.audio_path)),
            frame_size=int(audio.get('frame_size', defaults.frame_size)),
            interval_s=float(interval_ms) / 1000.0 if interval_ms is not None else defaults.interval_s,
            connect_timeout_s=float(run.get('connect_timeout_s', defaults.connect_timeout_s)),
            response_timeout_s=(
                float(run['response_timeout_s']) if run.get('response_timeout_s') is not None else None
            ),
            results_dir=str(output.get('results_dir', defaults.results_dir)),
            write_csv=bool(output.get('write_csv', defaults.write_csv)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid config value: {e}") from e


def load_config(config_path: Union[str, Path]) -> TestConfig:
    """Load configuration from YAML file."""
    path = Path(config_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse config {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"config {path} must contain a mapping at the top level")

    config = config_from_dict(raw)
    logger.info(f"Loaded configuration from {path}")
    return config
