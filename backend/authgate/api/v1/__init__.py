"""API v1: authentication, token diagnostics, profile and health routes."""

from __future__ import annotations

from flask import Blueprint

from .auth import bp as auth_bp
from .health import bp as health_bp
from .token_test import bp as token_test_bp
from .users import bp as users_bp

API_VERSION = "v1"

# (blueprint, prefix relative to /api/v1)
REGISTRY: list[tuple[Blueprint, str]] = [
    (health_bp, ""),
    (auth_bp, "/auth"),
    (token_test_bp, "/token-test"),
    (users_bp, "/users"),
]
