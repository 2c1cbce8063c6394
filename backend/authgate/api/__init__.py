"""HTTP surface: versioned blueprints mounted under ``API_BASE_PREFIX``."""

from __future__ import annotations

from flask import Blueprint, Flask


def mount(app: Flask, prefix: str, registry: list[tuple[Blueprint, str]]) -> None:
    """Register each ``(blueprint, sub_prefix)`` pair below ``prefix``.

    An empty ``sub_prefix`` mounts the blueprint at ``prefix`` itself.
    """
    base = "/" + prefix.strip("/")
    for blueprint, sub_prefix in registry:
        sub = sub_prefix.strip("/")
        app.register_blueprint(blueprint, url_prefix=f"{base}/{sub}" if sub else base)


def init_app(app: Flask) -> None:
    """Mount API v1 (``/api/v1`` by default)."""
    from authgate.api.v1 import API_VERSION, REGISTRY

    api_base = app.config.get("API_BASE_PREFIX", "/api").rstrip("/")
    mount(app, f"{api_base}/{API_VERSION}", REGISTRY)


__all__ = ["init_app", "mount"]
