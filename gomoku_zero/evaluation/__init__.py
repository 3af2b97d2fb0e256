"""
Evaluation and Promotion

Challenger/champion matches and the gate that decides promotions.
"""

from .arena import Arena, MatchResult
from .promotion import (
    EvaluationRecord,
    EvaluationService,
    EvaluationState,
    PromotionGate,
    should_promote,
)

__all__ = [
    # Arena
    "Arena",
    "MatchResult",
    # Promotion
    "EvaluationState",
    "EvaluationRecord",
    "PromotionGate",
    "EvaluationService",
    "should_promote",
]
