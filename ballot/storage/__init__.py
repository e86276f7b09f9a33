"""
Storage boundary.

Responsibilities:
- Define the operations the voting flow needs from the hosted backend.
- Validate every row crossing the boundary into typed records.
- Hold the process-wide backend instance selected by configuration.
"""
from __future__ import annotations

from ..config import DEFAULT_CONFIG, BallotConfig
from .base import BallotBackend

_backend: BallotBackend | None = None


def _build(config: BallotConfig) -> BallotBackend:
    if config.backend == "supabase":
        from .supabase_backend import SupabaseBackend

        return SupabaseBackend(config)
    from .memory import MemoryBackend

    return MemoryBackend(config.catalog_path)


def get_backend() -> BallotBackend:
    """Return the configured backend, building it on first call."""
    global _backend
    if _backend is None:
        _backend = _build(DEFAULT_CONFIG)
    return _backend


def set_backend(backend: BallotBackend) -> None:
    global _backend
    _backend = backend


def reset_backend() -> None:
    """Drop the current backend so the next call builds a fresh one."""
    global _backend
    _backend = None
