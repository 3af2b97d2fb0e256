"""
Guided Tree Search

PUCT Monte-Carlo Tree Search over a pluggable position evaluator.
"""

from .evaluator import Evaluator, RegionEvaluator, UniformEvaluator
from .mcts import (
    MCTS,
    Draw,
    LeafOutcome,
    NeedsEvaluation,
    SearchResult,
    SearchTree,
    Win,
)

__all__ = [
    "Evaluator",
    "UniformEvaluator",
    "RegionEvaluator",
    "MCTS",
    "SearchTree",
    "SearchResult",
    "LeafOutcome",
    "Win",
    "Draw",
    "NeedsEvaluation",
]
