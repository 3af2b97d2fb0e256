"""
Replay Buffer for Self-Play Training

Durable, directory-backed queue of finished games. Each game is one JSON
file; producers write them atomically and the trainer claims them by rename,
so every game is consumed exactly once before being archived.
"""

import logging
import threading
import uuid
from pathlib import Path

from ..data import EpisodeSample, ReplayUnit, load_samples, save_replay_unit
from ..storage import DirectoryQueue, timestamped_name

logger = logging.getLogger(__name__)


class ReplayBuffer:
    """
    Directory queue of replay units.

    Thread-safe for concurrent writers: file names are unique per unit.
    """

    def __init__(self, directory: str | Path, archive_dir: str | Path):
        """
        Initialize the replay buffer.

        Args:
            directory: Directory new games are written to.
            archive_dir: Directory consumed games are moved to.
        """
        self.queue = DirectoryQueue(directory, archive_dir, pattern="*.json")
        self._lock = threading.Lock()
        self._written = 0

    @property
    def directory(self) -> Path:
        return self.queue.pending_dir

    def write_unit(self, unit: ReplayUnit) -> Path:
        """
        Persist one game.

        Raises:
            OSError: If the write fails; nothing is left in the queue.
        """
        name = timestamped_name("game", f"_{uuid.uuid4().hex[:8]}.json")
        path = save_replay_unit(unit, self.directory / name)
        with self._lock:
            self._written += 1
        logger.debug(f"Replay unit {unit.game_id} written to {path.name}")
        return path

    def pending_files(self) -> list[Path]:
        return self.queue.list_pending()

    def count(self) -> int:
        """Number of games waiting to be consumed."""
        return self.queue.count()

    def __len__(self) -> int:
        return self.count()

    def claim_all(self, limit: int | None = None) -> list[Path]:
        """Claim pending games for one consumer, oldest first."""
        return self.queue.claim_all(limit)

    def load(
        self, paths: list[Path], board_size: int | None = None
    ) -> tuple[list[EpisodeSample], list[Path]]:
        """Load samples from claimed files; malformed files are skipped."""
        return load_samples(paths, board_size)

    def archive(self, paths: list[Path]) -> list[Path]:
        """
        Move consumed files to the archive.

        A file that cannot be moved is logged and left where it is.

        Returns:
            Archive locations of the files that were moved.
        """
        archived = []
        for path in paths:
            try:
                archived.append(self.queue.archive(path))
            except OSError as e:
                logger.error(f"Could not archive replay file {path}: {e}")
        return archived

    def recover(self) -> int:
        """Requeue games claimed by a consumer that never archived them."""
        return self.queue.requeue_processing()

    def close(self) -> None:
        """Release the claim lock; unarchived claims become recoverable."""
        self.queue.close()

    def get_statistics(self) -> dict:
        """
        Get buffer statistics.

        Returns:
            Dictionary of statistics.
        """
        return {
            "pending": self.count(),
            "written": self._written,
            "directory": str(self.directory),
        }
