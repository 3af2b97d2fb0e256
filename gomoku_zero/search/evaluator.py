"""
Position Evaluator Interface

The search engine only talks to the learned model through this protocol.
"""

from typing import Protocol, runtime_checkable

import numpy as np

from ..data import Board, Move, Player, get_legal_moves, move_to_index


@runtime_checkable
class Evaluator(Protocol):
    """Protocol for position evaluators used by the search engine."""

    def evaluate(self, board: Board, player: Player) -> tuple[np.ndarray, float]:
        """
        Evaluate a position.

        Args:
            board: LxL board state
            player: Side to move (1 or 2)

        Returns:
            Tuple of (policy, value) where policy is a flat array of L*L move
            probabilities (index row * L + col) and value in [-1, 1] is the
            expected outcome for ``player``.
        """
        ...


class UniformEvaluator:
    """
    Uniform prior over legal moves with a neutral value.

    Used before any champion exists and as a baseline in tests.
    """

    def evaluate(self, board: Board, player: Player) -> tuple[np.ndarray, float]:
        size = len(board)
        policy = np.zeros(size * size, dtype=np.float32)
        legal_moves = get_legal_moves(board)
        if legal_moves:
            prob = 1.0 / len(legal_moves)
            for move in legal_moves:
                policy[move_to_index(move, size)] = prob
        return policy, 0.0


class RegionEvaluator:
    """
    Uniform prior over a fixed set of cells, zero elsewhere, constant value.

    Handy for exercising the search on a restricted set of candidates.
    """

    def __init__(self, moves: list[Move], value: float = 0.0):
        self.moves = list(moves)
        self.value = value

    def evaluate(self, board: Board, player: Player) -> tuple[np.ndarray, float]:
        size = len(board)
        policy = np.zeros(size * size, dtype=np.float32)
        if self.moves:
            prob = 1.0 / len(self.moves)
            for move in self.moves:
                policy[move_to_index(move, size)] = prob
        return policy, self.value
