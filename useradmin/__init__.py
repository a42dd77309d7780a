"""Browser-based administration console for a remote user directory API."""

from __future__ import annotations

from typing import Any

from .config import AdminConfig, config_from_env


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the administration web application."""

    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AdminConfig",
    "config_from_env",
    "create_app",
]
