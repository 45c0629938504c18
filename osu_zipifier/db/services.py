"""
Database services for osu-zipifier.
"""

import threading
from typing import Dict, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from .models import ResolutionModel


class ResolutionCache:
    """Persistent difficulty id -> beatmap set id cache.

    Each call uses its own short-lived session so the cache can be shared by
    every request of the process. Calls come from executor threads and are
    serialized: an in-memory SQLite engine has a single connection.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._lock = threading.Lock()

    def get(self, difficulty_id: int) -> Optional[int]:
        """Get the cached beatmap set id of a difficulty, if any."""
        with self._lock, self.session_factory() as db:
            row = db.get(ResolutionModel, difficulty_id)
            return row.beatmapset_id if row is not None else None

    def get_many(self, difficulty_ids: Iterable[int]) -> Dict[int, int]:
        """Get the cached entries among ``difficulty_ids``."""
        difficulty_ids = list(difficulty_ids)
        if not difficulty_ids:
            return {}

        with self._lock, self.session_factory() as db:
            rows = db.execute(
                select(ResolutionModel.difficulty_id, ResolutionModel.beatmapset_id).where(
                    ResolutionModel.difficulty_id.in_(difficulty_ids)
                )
            ).all()
            return {difficulty_id: beatmapset_id for difficulty_id, beatmapset_id in rows}

    def put(self, difficulty_id: int, beatmapset_id: int) -> None:
        """Store a resolution, overwriting any previous entry for the key."""
        with self._lock, self.session_factory() as db:
            db.merge(ResolutionModel(difficulty_id=difficulty_id, beatmapset_id=beatmapset_id))
            db.commit()

    def count(self) -> int:
        """Number of cached resolutions."""
        with self._lock, self.session_factory() as db:
            return db.scalar(select(func.count()).select_from(ResolutionModel)) or 0

