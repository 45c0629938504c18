"""
osu-zipifier

Downloads osu! beatmap sets from a prioritized list of mirrors into a local
store and serves any batch of them as a single zip archive.
"""

import importlib.metadata

__version__ = importlib.metadata.version("osu-zipifier")

from .core.orchestrator import BatchOrchestrator
from .context import AppContext, build_context
from .errors import ZipifierError
from .schemas.request import IdType, ServeMapsRequest

__all__ = [
    "AppContext",
    "BatchOrchestrator",
    "IdType",
    "ServeMapsRequest",
    "ZipifierError",
    "build_context",
]
