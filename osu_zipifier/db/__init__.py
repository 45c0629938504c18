"""
Database package for osu-zipifier.
"""

from .base import Base, get_engine, get_session_local, init_database
from .models import ResolutionModel
from .services import ResolutionCache

__all__ = [
    "Base",
    "get_engine",
    "get_session_local",
    "init_database",
    "ResolutionModel",
    "ResolutionCache",
]
