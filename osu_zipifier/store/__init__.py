"""Local beatmap set store, mirror downloads and archiving."""

from .archiver import Archiver
from .artifact_store import ArtifactStore, ArtifactWriter, CreateOutcome, CreateResult
from .downloader import Downloader
from .mirrors import MirrorSequencer

__all__ = [
    "Archiver",
    "ArtifactStore",
    "ArtifactWriter",
    "CreateOutcome",
    "CreateResult",
    "Downloader",
    "MirrorSequencer",
]
