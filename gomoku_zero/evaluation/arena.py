"""
Arena for Challenger/Champion Matches

Plays deterministic search-driven games between two evaluators.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from tqdm import tqdm

from ..config import SearchConfig
from ..data import BLACK, BOARD_SIZE, WHITE, GomokuGame, Player
from ..search import MCTS, Evaluator

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Result of a match, from the challenger's point of view."""

    wins: int
    losses: int
    draws: int
    num_games: int
    time_seconds: float = 0.0

    @property
    def win_rate(self) -> float:
        """Challenger wins over all games; draws count for neither side."""
        if self.num_games == 0:
            return 0.0
        return self.wins / self.num_games

    @property
    def score(self) -> float:
        """Score for the challenger (1 for win, 0.5 for draw, 0 for loss)."""
        if self.num_games == 0:
            return 0.0
        return (self.wins + 0.5 * self.draws) / self.num_games

    def to_dict(self) -> dict:
        return {
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "num_games": self.num_games,
            "win_rate": self.win_rate,
            "time_seconds": self.time_seconds,
        }


class Arena:
    """
    Plays evaluation games between two evaluators.

    Both sides always take the search's best move; there is no exploration
    sampling. Independent games may run in parallel threads.
    """

    def __init__(
        self,
        search_config: SearchConfig | None = None,
        board_size: int = BOARD_SIZE,
        num_workers: int = 1,
        show_progress: bool = False,
    ):
        """
        Initialize the arena.

        Args:
            search_config: Search settings for both sides.
            board_size: Side length of the board.
            num_workers: Games played concurrently.
            show_progress: Whether to show a progress bar during matches.
        """
        self.search = MCTS(search_config)
        self.board_size = board_size
        self.num_workers = max(1, num_workers)
        self.show_progress = show_progress

    def play_game(self, first: Evaluator, second: Evaluator) -> Player | None:
        """
        Play a single game.

        Args:
            first: Evaluator playing black (moves first).
            second: Evaluator playing white.

        Returns:
            BLACK or WHITE for the winning side, None for a draw.
        """
        game = GomokuGame(self.board_size)
        players = {BLACK: first, WHITE: second}

        while not game.is_terminal():
            result = self.search.search(
                game.board, game.current_player, players[game.current_player]
            )
            if not result.has_move:
                return None
            game.make_move(result.best_move)

        logger.debug(f"Arena game finished after {len(game.move_history)} moves")
        return game.winner

    def run_match(
        self,
        challenger: Evaluator,
        champion: Evaluator,
        num_games: int,
    ) -> MatchResult:
        """
        Play ``num_games`` games, alternating colours.

        The challenger plays black on even-indexed games and white on
        odd-indexed games.

        Returns:
            MatchResult counted from the challenger's side.
        """
        start_time = time.time()
        wins = losses = draws = 0
        lock = threading.Lock()
        pbar = tqdm(total=num_games, desc="Evaluation games") if self.show_progress else None

        def play(index: int) -> None:
            nonlocal wins, losses, draws
            challenger_side = BLACK if index % 2 == 0 else WHITE
            if challenger_side == BLACK:
                winner = self.play_game(challenger, champion)
            else:
                winner = self.play_game(champion, challenger)

            with lock:
                if winner is None:
                    draws += 1
                elif winner == challenger_side:
                    wins += 1
                else:
                    losses += 1
                if pbar:
                    pbar.update(1)

        if self.num_workers == 1:
            for i in range(num_games):
                play(i)
        else:
            with ThreadPoolExecutor(max_workers=self.num_workers) as executor:
                for future in [executor.submit(play, i) for i in range(num_games)]:
                    future.result()

        if pbar:
            pbar.close()

        result = MatchResult(
            wins=wins,
            losses=losses,
            draws=draws,
            num_games=num_games,
            time_seconds=time.time() - start_time,
        )
        logger.info(
            f"Match finished: {wins} wins, {draws} draws, {losses} losses "
            f"(win rate {result.win_rate:.2f}) in {result.time_seconds:.1f}s"
        )
        return result
