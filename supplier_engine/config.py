"""
Configuration loader for the supplier matching engine.

Values come from built-in defaults, then config/engine.yaml (if present),
then environment variables (a local .env is loaded when it exists).
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Local runs only; deployed environments already export the variables
env_path = Path(__file__).parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)


DEFAULTS: Dict[str, Any] = {
    'max_candidates': 20,
    'distribution_batch_size': 5,
    'description_limit': 300,
    'rating_cache_ttl': 300,            # 5 minutes
    'job_queue': 'project-distribution',
    'job_max_attempts': 3,
    'job_backoff_delay': 2.0,
    'job_backoff_factor': 2.0,
    'job_timeout': 300.0,
    'worker_poll_interval': 1.0,
    'completed_job_retention': 24 * 3600,
    'completed_job_keep': 1000,
    'failed_job_retention': 7 * 24 * 3600,
    'redis_url': 'redis://localhost:6379/0',
    'database_url': None,
}

# key -> (env var, cast)
ENV_OVERRIDES = {
    'max_candidates': ('ENGINE_MAX_CANDIDATES', int),
    'distribution_batch_size': ('ENGINE_BATCH_SIZE', int),
    'rating_cache_ttl': ('ENGINE_RATING_CACHE_TTL', int),
    'job_max_attempts': ('ENGINE_JOB_MAX_ATTEMPTS', int),
    'job_backoff_delay': ('ENGINE_JOB_BACKOFF_DELAY', float),
    'job_backoff_factor': ('ENGINE_JOB_BACKOFF_FACTOR', float),
    'job_timeout': ('ENGINE_JOB_TIMEOUT', float),
    'worker_poll_interval': ('ENGINE_POLL_INTERVAL', float),
    'redis_url': ('REDIS_URL', str),
    'database_url': ('DATABASE_URL', str),
}

POSITIVE_KEYS = (
    'max_candidates',
    'distribution_batch_size',
    'description_limit',
    'rating_cache_ttl',
    'job_max_attempts',
    'job_timeout',
    'worker_poll_interval',
)


class EngineConfig:
    """Engine configuration manager."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True
    ):
        """
        Args:
            config_path: Path to engine.yaml, defaults to config/engine.yaml
            overrides: Explicit values, applied last
            use_env: Read ENV_OVERRIDES from the environment
        """
        if config_path is None:
            config_path = Path(__file__).parent.parent / 'config' / 'engine.yaml'

        self.config_path = config_path
        self._config: Dict[str, Any] = dict(DEFAULTS)
        self._load_file()
        if use_env:
            self._load_env()
        if overrides:
            unknown = set(overrides) - set(DEFAULTS)
            if unknown:
                raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
            self._config.update(overrides)
        self._validate()

    def _load_file(self) -> None:
        """Load the `engine` section of the YAML file."""
        if not self.config_path.exists():
            return

        with open(self.config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        section = data.get('engine', {}) or {}
        for key, value in section.items():
            if key not in DEFAULTS:
                logger.warning(f"Ignoring unknown config key '{key}' in {self.config_path}")
                continue
            self._config[key] = value

    def _load_env(self) -> None:
        for key, (env_name, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or raw.strip() == '':
                continue
            try:
                self._config[key] = cast(raw)
            except ValueError as e:
                raise ValueError(f"{env_name}={raw!r} is not a valid {cast.__name__}") from e

    def _validate(self) -> None:
        for key in POSITIVE_KEYS:
            value = self._config[key]
            if value is None or value <= 0:
                raise ValueError(f"{key} must be positive, got {value!r}")
        if self._config['job_backoff_factor'] < 1:
            raise ValueError("job_backoff_factor must be >= 1")
        if self._config['job_backoff_delay'] < 0:
            raise ValueError("job_backoff_delay must be >= 0")

    def get(self, key: str) -> Any:
        return self._config[key]

    @property
    def max_candidates(self) -> int:
        return int(self._config['max_candidates'])

    @property
    def distribution_batch_size(self) -> int:
        return int(self._config['distribution_batch_size'])

    @property
    def description_limit(self) -> int:
        return int(self._config['description_limit'])

    @property
    def rating_cache_ttl(self) -> int:
        return int(self._config['rating_cache_ttl'])

    @property
    def job_queue(self) -> str:
        return self._config['job_queue']

    @property
    def job_max_attempts(self) -> int:
        return int(self._config['job_max_attempts'])

    @property
    def job_backoff_delay(self) -> float:
        return float(self._config['job_backoff_delay'])

    @property
    def job_backoff_factor(self) -> float:
        return float(self._config['job_backoff_factor'])

    @property
    def job_timeout(self) -> float:
        return float(self._config['job_timeout'])

    @property
    def worker_poll_interval(self) -> float:
        return float(self._config['worker_poll_interval'])

    @property
    def redis_url(self) -> str:
        return self._config['redis_url']

    @property
    def database_url(self) -> Optional[str]:
        return self._config['database_url']

    def get_all_config(self) -> Dict[str, Any]:
        """Full configuration dictionary (copy)."""
        return self._config.copy()
