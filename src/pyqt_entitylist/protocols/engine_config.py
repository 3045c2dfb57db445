"""Engine-wide configuration for entity list management.

Provides the tunables shared by every engine instance (cache lifetime,
retry/backoff policy, pagination defaults, persistence location).
"""

from typing import Optional, Tuple
from dataclasses import dataclass


@dataclass
class EntityEngineConfig:
    """Base configuration for entity list engines.

    Applications can subclass this or build one with different values and
    install it with set_engine_config().

    Attributes:
        cache_ttl_ms: Default lifetime of a cache entry
        high_churn_ttl_ms: Lifetime used for entities flagged as high churn
        max_retries: Transient fetch failures retried before the error sticks
        retry_base_delay_ms: Backoff delay before the first retry
        retry_max_delay_ms: Upper bound for any backoff delay
        request_cooldown_ms: Pause after every real network call
        default_page_size: Page size of a freshly created engine
        page_size_options: Page sizes offered by the rendering layer
        preferences_file: JSON file for persisted view/filters/sort
        persist_filters: Whether filter and sort changes are written to disk
    """

    cache_ttl_ms: int = 5 * 60 * 1000
    high_churn_ttl_ms: int = 2 * 60 * 1000
    max_retries: int = 3
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 8000
    request_cooldown_ms: int = 250
    default_page_size: int = 10
    page_size_options: Tuple[int, ...] = (10, 25, 50, 100)
    preferences_file: Optional[str] = None
    persist_filters: bool = True

    def backoff_delay_ms(self, retry_count: int) -> int:
        """Delay before retry number ``retry_count`` (1-based)."""
        return min(self.retry_base_delay_ms * 2 ** (retry_count - 1), self.retry_max_delay_ms)


# Global config instance (set by application)
_engine_config: Optional[EntityEngineConfig] = None


def set_engine_config(config: Optional[EntityEngineConfig]) -> None:
    """Set the global engine configuration.

    Args:
        config: EntityEngineConfig instance, or None to restore defaults
    """
    global _engine_config
    _engine_config = config


def get_engine_config() -> EntityEngineConfig:
    """Get the current engine configuration.

    Returns:
        Current EntityEngineConfig or default if not set
    """
    if _engine_config is None:
        return EntityEngineConfig()
    return _engine_config
