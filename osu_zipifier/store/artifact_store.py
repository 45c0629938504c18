"""
Directory-backed store of downloaded beatmap sets.

Layout:
    <store_dir>/
    ├── 1234.osz                      # complete artifact, one per beatmap set id
    └── .5678.osz.3f2a9c1b7e4d.part   # one writer's staged bytes

An artifact is either absent or present and fully written. Each writer stages
its bytes under its own hidden name, then publishes them with a hard link to
the canonical name. The link is an atomic create-new: it fails if the canonical
file already exists, so exactly one writer wins and a loser only ever observes
a complete file. No other locking is used.
"""
from __future__ import annotations

import enum
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Set

import structlog

from ..errors import ArtifactMissing, StoreWriteError

logger = structlog.get_logger()

STAGING_SUFFIX = ".part"


class CreateOutcome(str, enum.Enum):
    """Result of an exclusive create. Losing the race is not an error."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass
class CreateResult:
    outcome: CreateOutcome
    writer: Optional["ArtifactWriter"] = None

    @property
    def created(self) -> bool:
        return self.outcome is CreateOutcome.CREATED


class ArtifactWriter:
    """Write handle on a staging file, returned by ``create_exclusive``.

    Used as a context manager: leaving the block with an exception (or
    without committing) deletes the staged bytes.
    """

    def __init__(self, artifact_id: int, staging_path: Path, final_path: Path, fh: BinaryIO):
        self.artifact_id = artifact_id
        self.staging_path = staging_path
        self.final_path = final_path
        self._file = fh
        self._done = False

    def write(self, data: bytes) -> None:
        try:
            self._file.write(data)
        except OSError as e:
            self.abort()
            raise StoreWriteError(
                f"Unable to write beatmap set {self.artifact_id} to file: {e}"
            ) from e

    def commit(self) -> CreateOutcome:
        """Flush the staged file and publish it under the canonical name."""
        try:
            self._file.flush()
            os.fsync(self._file.fileno())
            self._file.close()
            os.link(self.staging_path, self.final_path)
        except FileExistsError:
            self.abort()
            logger.info(
                "artifact_publish_yielded", artifact_id=self.artifact_id
            )
            return CreateOutcome.ALREADY_EXISTS
        except OSError as e:
            self.abort()
            raise StoreWriteError(
                f"Unable to commit beatmap set {self.artifact_id}: {e}"
            ) from e

        self._done = True
        try:
            self.staging_path.unlink(missing_ok=True)
        except OSError as e:
            # Already published; the leftover is swept once it goes stale
            logger.warning(
                "artifact_staging_cleanup_failed",
                artifact_id=self.artifact_id,
                path=str(self.staging_path),
                error=str(e),
            )
        return CreateOutcome.CREATED

    def abort(self) -> None:
        """Drop the staged bytes. Safe to call more than once."""
        if self._done:
            return
        self._done = True
        if not self._file.closed:
            self._file.close()
        try:
            self.staging_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(
                "artifact_staging_cleanup_failed",
                artifact_id=self.artifact_id,
                path=str(self.staging_path),
                error=str(e),
            )
            raise StoreWriteError(
                f"Unable to delete the partial file for beatmap set {self.artifact_id}: {e}"
            ) from e
        logger.info("artifact_write_aborted", artifact_id=self.artifact_id)

    def __enter__(self) -> "ArtifactWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._done:
            self.abort()


class ArtifactStore:
    """Local filesystem artifact store, one file per beatmap set id."""

    def __init__(self, root: Path, suffix: str = ".osz", stale_after: float = 3600):
        self.root = Path(root)
        self.suffix = suffix
        self.stale_after = stale_after

    def ensure(self) -> None:
        """Create the store directory and drop staging files of dead writers.

        Other processes may share the directory, so only staging files untouched
        for ``stale_after`` seconds are removed.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        cutoff = time.time() - self.stale_after
        for entry in self.root.iterdir():
            if not (entry.name.startswith(".") and entry.name.endswith(STAGING_SUFFIX)):
                continue
            try:
                if entry.stat().st_mtime > cutoff:
                    continue
                entry.unlink()
            except FileNotFoundError:
                # Published or aborted meanwhile
                continue
            logger.warning("artifact_stale_staging_removed", path=str(entry))

    def filename(self, artifact_id: int) -> str:
        return f"{artifact_id}{self.suffix}"

    def path_for(self, artifact_id: int) -> Path:
        return self.root / self.filename(artifact_id)

    def _staging_path(self, artifact_id: int) -> Path:
        return self.root / f".{self.filename(artifact_id)}.{uuid.uuid4().hex[:12]}{STAGING_SUFFIX}"

    def _listing(self) -> Set[str]:
        with os.scandir(self.root) as entries:
            return {
                entry.name
                for entry in entries
                if entry.is_file() and not entry.name.startswith(".")
            }

    def missing(self, artifact_ids: Iterable[int]) -> List[int]:
        """Return the ids with no complete artifact, from a single directory scan."""
        downloaded = self._listing()
        absent = []
        for artifact_id in artifact_ids:
            if self.filename(artifact_id) not in downloaded:
                logger.info("artifact_not_downloaded", artifact_id=artifact_id)
                absent.append(artifact_id)

        logger.info("artifact_missing_scan", missing=len(absent))
        return absent

    def exists(self, artifact_id: int) -> bool:
        return not self.missing([artifact_id])

    def count(self) -> int:
        suffix = self.suffix
        return sum(1 for name in self._listing() if name.endswith(suffix))

    def create_exclusive(self, artifact_id: int) -> CreateResult:
        """Claim the right to write ``artifact_id``.

        Returns ``ALREADY_EXISTS`` if the artifact is already published.
        Otherwise returns ``CREATED`` with a writer on a fresh staging file;
        its ``commit`` settles the race, and of any number of concurrent
        writers exactly one commit publishes. Callers that get
        ``ALREADY_EXISTS`` from either step treat the artifact as provided.
        """
        final_path = self.path_for(artifact_id)
        if final_path.exists():
            return CreateResult(CreateOutcome.ALREADY_EXISTS)

        staging_path = self._staging_path(artifact_id)
        try:
            fh = open(staging_path, "xb")
        except OSError as e:
            raise StoreWriteError(
                f"Unable to create file for beatmap set {artifact_id}: {e}"
            ) from e

        return CreateResult(
            CreateOutcome.CREATED,
            ArtifactWriter(artifact_id, staging_path, final_path, fh),
        )

    def save(self, artifact_id: int, data: bytes) -> CreateOutcome:
        """Exclusive create, write and publish ``data`` as ``artifact_id``."""
        result = self.create_exclusive(artifact_id)
        if not result.created:
            logger.info(
                "artifact_already_exists",
                artifact_id=artifact_id,
                detail="Download yielded to other task.",
            )
            return result.outcome

        with result.writer as writer:
            writer.write(data)
            outcome = writer.commit()

        logger.info("artifact_saved", artifact_id=artifact_id, outcome=outcome.value, size=len(data))
        return outcome

    def read(self, artifact_id: int) -> bytes:
        try:
            return self.path_for(artifact_id).read_bytes()
        except FileNotFoundError as e:
            raise ArtifactMissing(artifact_id) from e
