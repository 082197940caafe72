from __future__ import annotations

from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    MASTER = "master"


class DifficultySettings(BaseModel):
    """Search budget and playing strength for one difficulty level."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    level: Difficulty
    elo: int = Field(..., ge=0, description="Target playing strength")
    depth: int = Field(..., ge=1, le=64, description="Search depth in plies")
    time_ms: int = Field(..., ge=1, description="Thinking time per move")

    @property
    def skill_level(self) -> int:
        """Engine skill level 0..20 derived from the target elo."""
        return max(0, min(20, (self.elo - 1000) // 90))


DIFFICULTY_SETTINGS: Dict[Difficulty, DifficultySettings] = {
    Difficulty.EASY: DifficultySettings(level=Difficulty.EASY, elo=1200, depth=5, time_ms=500),
    Difficulty.MEDIUM: DifficultySettings(level=Difficulty.MEDIUM, elo=1600, depth=10, time_ms=1000),
    Difficulty.HARD: DifficultySettings(level=Difficulty.HARD, elo=2000, depth=15, time_ms=1500),
    Difficulty.MASTER: DifficultySettings(level=Difficulty.MASTER, elo=2400, depth=18, time_ms=2000),
}
