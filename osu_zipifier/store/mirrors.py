"""
Mirror priority list for beatmap set downloads.

The set of mirrors is closed and known up front, so a sequencer is just the
ordered tuple of URL templates plus a cursor.
"""

from __future__ import annotations

from typing import Iterator, Sequence, Tuple

from ..config import get_settings


def default_mirrors() -> Tuple[str, ...]:
    """Mirror URL templates from settings, highest priority first."""
    return tuple(get_settings().mirrors)


class MirrorSequencer(Iterator[str]):
    """
    Produces the candidate download URLs for one beatmap set.

    Each ``next()`` yields the next mirror in rank order and advances the
    cursor. Once every mirror has been produced it raises ``StopIteration``.
    A sequencer belongs to a single download and is never shared.
    """

    def __init__(self, artifact_id: int, templates: Sequence[str] = ()):
        self.artifact_id = artifact_id
        self._templates: Tuple[str, ...] = tuple(templates) or default_mirrors()
        self._cursor = 0

    def __iter__(self) -> "MirrorSequencer":
        return self

    def __next__(self) -> str:
        if self._cursor >= len(self._templates):
            raise StopIteration
        template = self._templates[self._cursor]
        self._cursor += 1
        return template.replace("{id}", str(self.artifact_id))

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def attempted(self) -> int:
        """Number of candidates produced so far."""
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self._templates)
