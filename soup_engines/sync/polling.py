"""Polling cadence policy: adaptive interval and retry backoff."""
from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class PollingConfig:
    base_interval: float = 2.0  # medium cadence, recently active
    max_interval: float = 10.0  # ceiling when idle
    min_interval: float = 1.0  # fast cadence while changes keep arriving
    activity_timeout: float = 30.0  # time without change before a room counts as idle
    retry_delay: float = 1.0
    max_retries: int = 3
    backoff_multiplier: float = 2.0
    rate_limit_cooldown: float = 60.0

    def merged(self, **overrides) -> "PollingConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


DEFAULT_POLLING_CONFIG = PollingConfig()


def calculate_poll_interval(
    config: PollingConfig,
    last_activity_time: float,
    has_active_changes: bool,
    now: float,
) -> float:
    if has_active_changes:
        return config.min_interval
    if now - last_activity_time < config.activity_timeout:
        return config.base_interval
    return min(config.max_interval, config.base_interval * 3)


def calculate_backoff_delay(config: PollingConfig, retry_count: int) -> float:
    return config.retry_delay * config.backoff_multiplier ** retry_count
