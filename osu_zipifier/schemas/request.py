from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, NonNegativeInt


class IdType(str, Enum):
    """What the ids of a request refer to."""

    BEATMAP = "beatmap"
    DIFFICULTY = "difficulty"


class ServeMapsRequest(BaseModel):
    """
    A batch of beatmaps to zip.

    ``maps`` holds beatmap set ids when ``id_type`` is ``beatmap`` and
    difficulty ids when it is ``difficulty``. Any other ``id_type`` is a
    validation error.
    """

    maps: List[NonNegativeInt]
    id_type: IdType

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"maps": [111, 222], "id_type": "beatmap"},
        }
    )
