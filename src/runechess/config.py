from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .oracle.difficulty import DIFFICULTY_SETTINGS, Difficulty, DifficultySettings


ENV_ENGINE = "RUNECHESS_ENGINE"
ENV_DIFFICULTY = "RUNECHESS_DIFFICULTY"
ENV_TIMEOUT_GRACE_MS = "RUNECHESS_TIMEOUT_GRACE_MS"


class OracleSettings(BaseModel):
    """How to reach the external search engine and how long to wait for it."""

    model_config = ConfigDict(extra="forbid")

    engine_command: str = Field(default="stockfish", min_length=1, description="Engine executable")
    difficulty: Difficulty = Field(default=Difficulty.MEDIUM)
    handshake_timeout_s: float = Field(default=3.0, gt=0, description="uci/uciok and isready/readyok")
    stop_timeout_s: float = Field(default=1.0, gt=0, description="Draining after a stop")
    timeout_grace_ms: int = Field(default=2000, ge=0, description="Added to movetime before giving up")
    depth_only_budget_ms: int = Field(default=30000, ge=1, description="Budget when no movetime is set")
    analysis_depth: int = Field(default=18, ge=1, le=64)
    analysis_time_ms: int = Field(default=1000, ge=1)

    @property
    def difficulty_settings(self) -> DifficultySettings:
        return DIFFICULTY_SETTINGS[self.difficulty]

    def request_budget_s(self, movetime_ms: Optional[int]) -> float:
        """Wall-clock limit for one search request."""
        if movetime_ms is None:
            return self.depth_only_budget_ms / 1000
        return (movetime_ms + self.timeout_grace_ms) / 1000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: object) -> "OracleSettings":
        """Build settings from ``RUNECHESS_*`` environment variables.

        Explicit keyword overrides win over the environment. Invalid values
        raise :class:`pydantic.ValidationError`.
        """
        env = os.environ if environ is None else environ
        values: dict = {}
        if env.get(ENV_ENGINE):
            values["engine_command"] = env[ENV_ENGINE]
        if env.get(ENV_DIFFICULTY):
            values["difficulty"] = env[ENV_DIFFICULTY].lower()
        if env.get(ENV_TIMEOUT_GRACE_MS):
            values["timeout_grace_ms"] = env[ENV_TIMEOUT_GRACE_MS]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
