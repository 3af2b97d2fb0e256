"""
Self-Play Manager

Runs a pool of self-play workers against the current champion and flushes
finished games to the replay buffer.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from tqdm import tqdm

from ..config import SelfPlayConfig
from ..data import ReplayUnit
from ..exceptions import EvaluatorUnavailableError
from ..search import Evaluator
from ..storage import ChampionStore
from .replay_buffer import ReplayBuffer
from .worker import SelfPlayWorker

logger = logging.getLogger(__name__)


class SelfPlayManager:
    """
    Manages parallel self-play workers for continuous data generation.

    Workers are threads that share one evaluator per reload. Finished games
    are appended to an in-memory batch; flush() writes them to the replay
    buffer and only forgets the ones that were written.
    """

    def __init__(
        self,
        config: SelfPlayConfig | None = None,
        replay_buffer: ReplayBuffer | None = None,
        champion: ChampionStore | None = None,
        evaluator: Evaluator | None = None,
        device: str = "cpu",
        seed: int | None = None,
    ):
        """
        Initialize the self-play manager.

        Args:
            config: Self-play configuration.
            replay_buffer: Destination of flushed games. Required by run() and flush().
            champion: Champion slot workers load their evaluator from.
            evaluator: Fixed evaluator to use instead of the champion.
            device: Torch device for loaded champions.
            seed: Base seed for the per-worker random generators.
        """
        if champion is None and evaluator is None:
            raise ValueError("SelfPlayManager needs a champion store or an evaluator")

        self.config = config if config is not None else SelfPlayConfig()
        self.replay_buffer = replay_buffer
        self.champion = champion
        self.evaluator = evaluator
        self.device = device
        self.seed = seed

        self._batch: list[ReplayUnit] = []
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._stats = {"games": 0, "flushed": 0, "restarts": 0, "flush_failures": 0}

    # --- Evaluator access ---

    def load_evaluator(self) -> Evaluator:
        """
        Returns the fixed evaluator, or loads the current champion.

        Raises:
            EvaluatorUnavailableError: If no champion can be loaded.
        """
        if self.evaluator is not None:
            return self.evaluator
        return self.champion.load(self.device)

    def create_worker(self, worker_id: int) -> SelfPlayWorker:
        rng = np.random.default_rng(None if self.seed is None else self.seed + worker_id)
        return SelfPlayWorker(
            search_config=self.config.search,
            board_size=self.config.board_size,
            exploration_moves=self.config.exploration_moves,
            rng=rng,
            worker_id=worker_id,
        )

    # --- Batch ---

    def add_unit(self, unit: ReplayUnit) -> None:
        with self._lock:
            self._batch.append(unit)
            self._stats["games"] += 1

    def pending_count(self) -> int:
        with self._lock:
            return len(self._batch)

    def flush(self) -> int:
        """
        Write every batched game to the replay buffer.

        Games leave the batch only once their file is in place. On any write
        failure the remaining games stay batched for the next flush and the
        error is logged rather than raised, so workers keep running.

        Returns:
            Number of games written.
        """
        if self.replay_buffer is None:
            raise ValueError("flush() needs a replay buffer")

        with self._flush_lock:
            with self._lock:
                pending = list(self._batch)

            if not pending:
                return 0

            written: set[int] = set()
            for unit in pending:
                try:
                    self.replay_buffer.write_unit(unit)
                except Exception as e:
                    logger.error(
                        f"Flush failed after {len(written)} games, will retry: {e}", exc_info=True
                    )
                    with self._lock:
                        self._stats["flush_failures"] += 1
                    break
                written.add(id(unit))

            with self._lock:
                self._batch = [unit for unit in self._batch if id(unit) not in written]
                self._stats["flushed"] += len(written)

        if written:
            logger.info(f"Flushed {len(written)} games to {self.replay_buffer.directory}")
        return len(written)

    # --- Continuous generation ---

    def run(self, stop_event: threading.Event) -> None:
        """
        Run workers until ``stop_event`` is set.

        Flushes every ``flush_interval`` seconds and once more after the
        workers have stopped.
        """
        workers_stop = threading.Event()
        threads = [
            threading.Thread(
                target=self._supervise,
                args=(worker_id, workers_stop),
                name=f"self-play-{worker_id}",
                daemon=True,
            )
            for worker_id in range(self.config.num_workers)
        ]

        logger.info(f"Starting {len(threads)} self-play workers")
        for thread in threads:
            thread.start()

        try:
            while not stop_event.wait(self.config.flush_interval):
                self.flush()
        finally:
            workers_stop.set()
            for thread in threads:
                thread.join()
            self.flush()
            logger.info(f"Self-play stopped: {self.get_run_statistics()}")

    def _supervise(self, worker_id: int, stop_event: threading.Event) -> None:
        """Keeps one worker alive, restarting it after a crash."""
        while not stop_event.is_set():
            try:
                self._worker_loop(worker_id, stop_event)
            except Exception:
                logger.error(
                    f"Worker {worker_id} crashed, restarting in {self.config.restart_backoff}s",
                    exc_info=True,
                )
                with self._lock:
                    self._stats["restarts"] += 1
                stop_event.wait(self.config.restart_backoff)

    def _worker_loop(self, worker_id: int, stop_event: threading.Event) -> None:
        worker = self.create_worker(worker_id)
        evaluator: Evaluator | None = None
        games_since_reload = 0

        while not stop_event.is_set():
            if evaluator is None or games_since_reload >= self.config.reload_every:
                try:
                    evaluator = self.load_evaluator()
                except EvaluatorUnavailableError as e:
                    if evaluator is None:
                        logger.warning(
                            f"Worker {worker_id}: no champion available, "
                            f"retrying in {self.config.model_wait}s ({e})"
                        )
                        stop_event.wait(self.config.model_wait)
                        continue
                    logger.warning(
                        f"Worker {worker_id}: reload failed, keeping current model ({e})"
                    )
                games_since_reload = 0

            unit = worker.play_game(evaluator, stop_event)
            if unit is None:
                break

            games_since_reload += 1
            self.add_unit(unit)
            logger.info(
                f"Worker {worker_id} finished game {unit.game_id[:8]}: "
                f"{unit.metadata['total_moves']} moves, {unit.metadata['result']}"
            )

    def get_run_statistics(self) -> dict:
        with self._lock:
            return {**self._stats, "pending": len(self._batch)}

    # --- Batch generation ---

    def generate_batch(
        self,
        num_games: int,
        show_progress: bool = True,
    ) -> list[ReplayUnit]:
        """
        Generate a batch of self-play games with the current evaluator.

        Args:
            num_games: Number of games to generate.
            show_progress: Whether to show progress bar.

        Returns:
            List of ReplayUnit objects.
        """
        evaluator = self.load_evaluator()
        num_workers = max(1, min(self.config.num_workers, num_games))
        games_per_worker = num_games // num_workers
        remainder = num_games % num_workers

        games: list[ReplayUnit] = []
        games_lock = threading.Lock()
        pbar = tqdm(total=num_games, desc="Generating games") if show_progress else None

        def worker_task(worker_id: int, worker_games: int):
            worker = self.create_worker(worker_id)
            for _ in range(worker_games):
                game = worker.play_game(evaluator)
                with games_lock:
                    games.append(game)
                    if pbar:
                        pbar.update(1)

        with ThreadPoolExecutor(max_workers=num_workers) as executor:
            futures = []
            for i in range(num_workers):
                worker_games = games_per_worker + (1 if i < remainder else 0)
                if worker_games > 0:
                    futures.append(executor.submit(worker_task, i, worker_games))

            # Wait for completion
            for future in futures:
                future.result()

        if pbar:
            pbar.close()

        return games

    def get_statistics(self, games: list[ReplayUnit]) -> dict:
        """
        Calculate statistics for a batch of games.

        Args:
            games: List of replay units.

        Returns:
            Dictionary of statistics.
        """
        total_positions = sum(len(g.samples) for g in games)
        results = {"black_win": 0, "white_win": 0, "draw": 0}

        for game in games:
            result = game.metadata.get("result", "unknown")
            if result in results:
                results[result] += 1

        return {
            "total_games": len(games),
            "total_positions": total_positions,
            "average_game_length": total_positions / len(games) if games else 0,
            "results": results,
            "black_win_rate": results["black_win"] / len(games) if games else 0,
        }
