"""
SQLAlchemy models for osu-zipifier.
"""

from typing import Any, Dict

from sqlalchemy import BigInteger, Column, DateTime, Index
from sqlalchemy.sql import func

from .base import Base


class ResolutionModel(Base):
    """Difficulty id -> beatmap set id, as confirmed by the osu! API.

    Rows are only ever inserted or overwritten with the same value.
    """

    __tablename__ = "difficulty_resolutions"

    difficulty_id = Column(BigInteger, primary_key=True, autoincrement=False)
    beatmapset_id = Column(BigInteger, nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_difficulty_resolutions_beatmapset_id", "beatmapset_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "difficulty_id": self.difficulty_id,
            "beatmapset_id": self.beatmapset_id,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }
