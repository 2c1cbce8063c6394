"""Repository package exposing persistence-layer access for the user table."""

from __future__ import annotations

from authgate.repositories.base import BaseRepository
from authgate.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
]
