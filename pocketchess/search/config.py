from __future__ import annotations

import random
from typing import Optional

from pydantic import BaseModel, Field


# sqrt(2) in theory; kept as a tunable approximation.
DEFAULT_EXPLORATION = 1.414
DEFAULT_ITERATIONS = 200


class SearchConfig(BaseModel):
    """Tunable MCTS parameters.

    The rollout random source is built from ``seed`` so a search can be
    replayed exactly under test.
    """

    exploration_constant: float = Field(default=DEFAULT_EXPLORATION, gt=0)
    iterations: int = Field(default=DEFAULT_ITERATIONS, ge=1)
    movetime_ms: Optional[int] = Field(default=None, ge=1)
    seed: Optional[int] = Field(default=None, description="Rollout RNG seed")

    def rng(self) -> random.Random:
        return random.Random(self.seed)
