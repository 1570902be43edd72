"""SDK configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SpanScopeConfig:
    """Immutable SDK configuration."""

    service_name: str
    environment: str = "development"
    batch_size: int = 512
    flush_interval_ms: int = 5000
    buffer_size: int = 8192

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if self.flush_interval_ms <= 0:
            raise ValueError("flush_interval_ms must be positive")
