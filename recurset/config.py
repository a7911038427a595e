# recurset/config.py
"""
Configuration for recurrence sets.
Provides centralized configuration management and logging setup.
"""

import os
import logging
from dataclasses import dataclass

DEFAULT_MAX_ITERATIONS = 100000

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class RecurrenceConfig:
    """Configuration for recurrence set construction."""

    # Query memoization for trivial sets
    cache_enabled: bool = True

    # Candidate evaluations allowed for unbounded queries
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be positive")

    @classmethod
    def from_environment(cls) -> "RecurrenceConfig":
        """Create configuration from environment variables."""
        return cls(
            cache_enabled=os.environ.get("RECURSET_CACHE_ENABLED", "true").lower() in _TRUE_VALUES,
            max_iterations=int(os.environ.get("RECURSET_MAX_ITERATIONS", str(DEFAULT_MAX_ITERATIONS))),
            log_level=os.environ.get("RECURSET_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_dict(cls, config_dict: dict) -> "RecurrenceConfig":
        """Create configuration from dictionary."""
        return cls(
            cache_enabled=config_dict.get("cache_enabled", True),
            max_iterations=config_dict.get("max_iterations", DEFAULT_MAX_ITERATIONS),
            log_level=config_dict.get("log_level", "INFO"),
            log_format=config_dict.get("log_format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )


def setup_logging(config: RecurrenceConfig) -> logging.Logger:
    """Setup logging for applications embedding recurrence sets."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=config.log_format,
        handlers=[
            logging.StreamHandler(),
        ]
    )

    return logging.getLogger("recurset")
