"""Packs stored beatmap sets into a single zip archive."""

from __future__ import annotations

import io
import zipfile
from typing import Iterable

import structlog

from .artifact_store import ArtifactStore

logger = structlog.get_logger()

# Fixed entry metadata so the same artifacts always produce the same bytes.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
ENTRY_MODE = 0o644 << 16


class Archiver:
    """Builds a store-only zip, one entry per beatmap set, in the given order.

    Beatmap sets are already compressed, so entries are not deflated.
    """

    def __init__(self, store: ArtifactStore):
        self.store = store

    def pack(self, artifact_ids: Iterable[int]) -> bytes:
        artifact_ids = list(artifact_ids)
        logger.info("archive_start", artifacts=len(artifact_ids))

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
            for artifact_id in artifact_ids:
                data = self.store.read(artifact_id)
                entry = zipfile.ZipInfo(self.store.filename(artifact_id), date_time=ZIP_EPOCH)
                entry.compress_type = zipfile.ZIP_STORED
                entry.external_attr = ENTRY_MODE
                archive.writestr(entry, data)
                logger.debug("archive_entry_added", artifact_id=artifact_id, size=len(data))

        logger.info("archive_done", artifacts=len(artifact_ids), size=buffer.tell())
        return buffer.getvalue()
