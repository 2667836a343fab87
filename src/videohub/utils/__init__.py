"""Shared utilities."""

from videohub.utils.async_utils import guarded, run_async

__all__ = ["guarded", "run_async"]
