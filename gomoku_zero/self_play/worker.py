"""
Self-Play Worker

Plays complete games of the current evaluator against itself with tree
search on every ply, recording one training sample per position.
"""

import logging
import threading
import time
import uuid

import numpy as np

from ..config import SearchConfig
from ..data import (
    BLACK,
    BOARD_SIZE,
    WHITE,
    EpisodeSample,
    GomokuGame,
    Move,
    ReplayUnit,
    copy_board,
    index_to_move,
)
from ..search import MCTS, Evaluator, SearchResult

logger = logging.getLogger(__name__)


class SelfPlayWorker:
    """
    Generates games through self-play.

    Exploration comes from sampling the first ``exploration_moves`` plies in
    proportion to root visit counts; later plies take the search's best move.
    """

    def __init__(
        self,
        search_config: SearchConfig | None = None,
        board_size: int = BOARD_SIZE,
        exploration_moves: int = 15,
        rng: np.random.Generator | None = None,
        worker_id: int = 0,
    ):
        """
        Initialize the self-play worker.

        Args:
            search_config: Search settings, including the per-move time budget.
            board_size: Side length of the board.
            exploration_moves: Number of opening plies sampled from the visit distribution.
            rng: Random generator for move sampling.
            worker_id: Identifier recorded in game metadata.
        """
        self.search = MCTS(search_config)
        self.board_size = board_size
        self.exploration_moves = exploration_moves
        self.rng = rng if rng is not None else np.random.default_rng()
        self.worker_id = worker_id

    def play_episode(self, evaluator: Evaluator) -> list[EpisodeSample]:
        """
        Play a complete game and return its samples.

        Returns:
            One sample per ply, with outcome values already filled in. There
            are never more than board_size ** 2 samples.

        Raises:
            EvaluatorUnavailableError: If the evaluator fails mid-game.
        """
        samples, _ = self._play(evaluator)
        return samples

    def play_game(
        self,
        evaluator: Evaluator,
        stop_event: threading.Event | None = None,
    ) -> ReplayUnit | None:
        """
        Play a complete game and package it as a replay unit.

        Args:
            evaluator: Position evaluator for both sides.
            stop_event: If set while the game is in progress, the game is
                abandoned between moves.

        Returns:
            ReplayUnit containing all samples and game metadata, or None if
            the game was abandoned.
        """
        start = time.monotonic()
        samples, game = self._play(evaluator, stop_event)
        if game is None:
            return None

        if game.winner == BLACK:
            outcome = "black_win"
        elif game.winner == WHITE:
            outcome = "white_win"
        else:
            outcome = "draw"

        metadata = {
            "worker_id": self.worker_id,
            "board_size": self.board_size,
            "total_moves": len(samples),
            "winner": game.winner,
            "result": outcome,
            "duration": time.monotonic() - start,
        }

        return ReplayUnit(game_id=str(uuid.uuid4()), samples=samples, metadata=metadata)

    def _play(
        self,
        evaluator: Evaluator,
        stop_event: threading.Event | None = None,
    ) -> tuple[list[EpisodeSample], GomokuGame | None]:
        game = GomokuGame(self.board_size)
        records: list[tuple] = []

        while not game.is_terminal():
            if stop_event is not None and stop_event.is_set():
                logger.debug(f"Worker {self.worker_id} abandoned a game after {len(records)} moves")
                return [], None

            result = self.search.search(game.board, game.current_player, evaluator)
            if not result.has_move:
                # No candidate left for the engine
                game.is_draw = True
                break

            policy = result.policy_target(self.board_size)

            # Record position BEFORE making move
            records.append((copy_board(game.board), game.current_player, policy))

            move = self._choose_move(result, policy, len(game.move_history))
            game.make_move(move)

        samples = [
            EpisodeSample(
                board=board,
                to_move=player,
                policy_target=policy,
                value=game.get_result_for_player(player),
            )
            for board, player, policy in records
        ]

        logger.debug(
            f"Worker {self.worker_id} finished a game: {len(samples)} moves, "
            f"winner={game.winner}"
        )
        return samples, game

    def _choose_move(self, result: SearchResult, policy: list[float], ply: int) -> Move:
        """
        Sample the move with temperature 1 during the opening, otherwise
        take the most visited move.
        """
        if (
            ply < self.exploration_moves
            and len(result.visit_distribution) > 1
            and result.total_visits > 0
        ):
            probs = np.asarray(policy, dtype=np.float64)
            index = int(self.rng.choice(len(probs), p=probs / probs.sum()))
            return index_to_move(index, self.board_size)

        return result.best_move

    def play_games(self, evaluator: Evaluator, num_games: int) -> list[ReplayUnit]:
        """
        Play multiple games.

        Args:
            evaluator: Position evaluator for both sides.
            num_games: Number of games to play.

        Returns:
            List of ReplayUnit objects.
        """
        return [self.play_game(evaluator) for _ in range(num_games)]
