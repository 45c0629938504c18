"""
Error taxonomy for osu-zipifier.

Every error carries a stable ``code`` for programmatic handling and a
human-readable ``message``. All of them propagate up to the request boundary,
where the API turns them into a single 500 response.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ZipifierError(Exception):
    """
    Base class for failures of the acquisition pipeline.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    code = "internal_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ResolutionError(ZipifierError):
    """Difficulty id resolution failed. No partial result is returned."""

    code = "resolution_failed"


class EmptyInput(ResolutionError):
    code = "empty_input"


class RemoteLookupFailed(ResolutionError):
    code = "remote_lookup_failed"


class MalformedResponse(ResolutionError):
    code = "malformed_response"


class NoMirrorAvailable(ZipifierError):
    """Every mirror was tried for an artifact and none returned it."""

    code = "no_mirror_available"

    def __init__(self, artifact_id: int, attempts: int):
        self.artifact_id = artifact_id
        self.attempts = attempts
        super().__init__(
            f"Out of backup mirrors for beatmap set {artifact_id} "
            f"after {attempts} attempt(s)."
        )


class StoreWriteError(ZipifierError):
    """Local I/O failure. The store has been rolled back for the artifact."""

    code = "store_write_failed"


class ArtifactMissing(ZipifierError):
    """An artifact expected in the store is absent (internal defect)."""

    code = "internal_consistency_error"

    def __init__(self, artifact_id: int):
        self.artifact_id = artifact_id
        super().__init__(f"Beatmap set {artifact_id} is not in the store.")


class CredentialError(ZipifierError):
    code = "credential_error"
