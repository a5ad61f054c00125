"""Rotation State — read-only view of recent plays."""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict


class RotationState(BaseModel):
    model_config = ConfigDict(frozen=True)

    recent: List[str] = []                  # Oldest first, bounded by history_size
    last_played: Dict[str, datetime] = {}
    capacity: int
