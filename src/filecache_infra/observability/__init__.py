"""Observability: structured logging."""

from filecache_infra.observability.logging import (
    bind_cache_context,
    configure_logging,
)

__all__ = [
    "bind_cache_context",
    "configure_logging",
]
