"""Batch processing: completion cache, outage breaker and orchestrator."""

from .cache import CompletionCache
from .orchestrator import (
    CACHE_HIT_MESSAGE,
    SKIPPED_MESSAGE,
    BatchOrchestrator,
    ProgressCallback,
)
from .outage_breaker import (
    CircuitBreakerConfig,
    CircuitState,
    OutageBreaker,
)

__all__ = [
    "CompletionCache",
    "CACHE_HIT_MESSAGE",
    "SKIPPED_MESSAGE",
    "BatchOrchestrator",
    "ProgressCallback",
    "CircuitBreakerConfig",
    "CircuitState",
    "OutageBreaker",
]
