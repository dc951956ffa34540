from __future__ import annotations

from .context import PipelineContext
from .options import UserRanking, rank_for_users
from .run import run_best_deposit

__all__ = [
    "PipelineContext",
    "UserRanking",
    "rank_for_users",
    "run_best_deposit",
]
