"""
Durable Storage

Directory-based queues for replay units and checkpoints, and the champion
slot. Claiming a queued file is an atomic rename, so a file is visible to
exactly one consumer; the champion is replaced with os.replace, so readers
never see a half-written artifact.
"""

import fcntl
import logging
import os
import shutil
import threading
import time
import uuid
from datetime import datetime
from pathlib import Path

from .exceptions import PromotionError
from .models.evaluator import NetworkEvaluator

logger = logging.getLogger(__name__)

CHECKPOINT_PATTERN = "checkpoint_*.pt"


def timestamped_name(prefix: str, suffix: str = "") -> str:
    """Returns ``<prefix>_<epoch millis><suffix>``; names sort by creation time."""
    return f"{prefix}_{int(time.time() * 1000):013d}{suffix}"


def unique_path(directory: Path, name: str) -> Path:
    """
    Returns ``directory / name``, or the first free ``<stem>_<n><suffix>``
    variant if that path is taken.
    """
    candidate = directory / name
    stem, suffix = Path(name).stem, Path(name).suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return candidate


class DirectoryQueue:
    """
    A FIFO of files in a directory.

    Lifecycle of an entry: pending/ -> processing/<owner>/ (claimed by one
    consumer) -> archive/. Entries are never deleted or overwritten.

    Every queue object claims into its own owner directory and holds an
    exclusive flock on ``<owner>.lock`` beside it until close() or process
    exit. Recovery only touches owner directories whose lock can be taken.
    """

    def __init__(
        self,
        pending_dir: str | Path,
        archive_dir: str | Path,
        pattern: str = "*",
        processing_root: str | Path | None = None,
    ):
        """
        Args:
            pending_dir: Directory producers write into.
            archive_dir: Directory consumed entries are moved to.
            pattern: Glob selecting queue entries (temporary files are hidden
                dot-files and never match).
            processing_root: Parent of the per-consumer owner directories;
                defaults to ``pending_dir/.processing``.
        """
        self.pending_dir = Path(pending_dir)
        self.archive_dir = Path(archive_dir)
        self.processing_root = (
            Path(processing_root)
            if processing_root is not None
            else self.pending_dir / ".processing"
        )
        self.pattern = pattern
        self._owner: str | None = None
        self._lock_fd: int | None = None
        self._owner_lock = threading.Lock()

    @property
    def processing_dir(self) -> Path:
        """This consumer's claim directory, created and locked on first use."""
        with self._owner_lock:
            if self._owner is None:
                self._acquire_owner()
            return self.processing_root / self._owner

    def _acquire_owner(self) -> None:
        self.processing_root.mkdir(parents=True, exist_ok=True)
        owner = f"{os.getpid()}-{uuid.uuid4().hex[:8]}"
        lock_path = self.processing_root / f"{owner}.lock"

        while True:
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                same_file = os.fstat(fd).st_ino == os.stat(lock_path).st_ino
            except FileNotFoundError:
                same_file = False
            if same_file:
                break
            # A recovery pass unlinked the file between open and flock
            os.close(fd)

        (self.processing_root / owner).mkdir(exist_ok=True)
        self._owner = owner
        self._lock_fd = fd
        logger.debug(f"Claiming into {self.processing_root / owner}")

    def close(self) -> None:
        """
        Release this consumer's lock. Entries still in its processing
        directory become recoverable by requeue_processing().
        """
        with self._owner_lock:
            if self._lock_fd is not None:
                os.close(self._lock_fd)
            self._lock_fd = None
            self._owner = None

    def ensure_dirs(self) -> None:
        for directory in (self.pending_dir, self.processing_root, self.archive_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def list_pending(self) -> list[Path]:
        """Pending entries, oldest name first."""
        if not self.pending_dir.exists():
            return []
        return sorted(
            p for p in self.pending_dir.glob(self.pattern) if not p.name.startswith(".")
        )

    def count(self) -> int:
        return len(self.list_pending())

    def claim(self, path: str | Path) -> Path | None:
        """
        Claims one pending entry by renaming it into this consumer's
        processing directory.

        Returns:
            The claimed path, or None if another consumer got there first.
        """
        path = Path(path)
        target = self.processing_dir / path.name
        try:
            os.rename(path, target)
        except FileNotFoundError:
            return None
        return target

    def claim_oldest(self) -> Path | None:
        """Claims the oldest pending entry, or returns None if the queue is empty."""
        for path in self.list_pending():
            claimed = self.claim(path)
            if claimed is not None:
                return claimed
        return None

    def claim_all(self, limit: int | None = None) -> list[Path]:
        """Claims every pending entry (at most ``limit``), oldest first."""
        claimed = []
        for path in self.list_pending():
            if limit is not None and len(claimed) >= limit:
                break
            target = self.claim(path)
            if target is not None:
                claimed.append(target)
        return claimed

    def archive(self, path: str | Path) -> Path:
        """
        Moves a claimed entry to the archive without overwriting anything.

        Raises:
            OSError: If the rename fails.
        """
        path = Path(path)
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        target = unique_path(self.archive_dir, path.name)
        os.rename(path, target)
        return target

    def release(self, path: str | Path) -> Path:
        """Returns a claimed entry to pending so it is picked up again."""
        path = Path(path)
        self.pending_dir.mkdir(parents=True, exist_ok=True)
        target = unique_path(self.pending_dir, path.name)
        os.rename(path, target)
        return target

    def requeue_processing(self) -> int:
        """
        Moves entries left behind by consumers that died before archiving
        them back to pending.

        Owner directories whose lock is still held belong to a live consumer
        and are left alone, as is this queue's own directory.

        Returns:
            Number of entries requeued.
        """
        if not self.processing_root.exists():
            return 0
        count = 0
        for owner_dir in sorted(p for p in self.processing_root.iterdir() if p.is_dir()):
            if owner_dir.name == self._owner:
                continue
            count += self._recover_owner(owner_dir)
        if count:
            logger.warning(f"Requeued {count} unfinished entries from {self.processing_root}")
        return count

    def _recover_owner(self, owner_dir: Path) -> int:
        lock_path = self.processing_root / f"{owner_dir.name}.lock"
        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                return 0

            count = 0
            for path in sorted(owner_dir.glob(self.pattern)):
                self.release(path)
                count += 1
            if not any(owner_dir.iterdir()):
                owner_dir.rmdir()
                lock_path.unlink(missing_ok=True)
            return count
        finally:
            os.close(fd)


class ChampionStore:
    """
    The single well-known slot holding the current champion artifact.

    Readers load whatever file is at ``path``; install() replaces it
    atomically after archiving the previous champion.
    """

    def __init__(self, path: str | Path, archive_dir: str | Path):
        self.path = Path(path)
        self.archive_dir = Path(archive_dir)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self, device: str = "cpu") -> NetworkEvaluator:
        """
        Load the current champion as an evaluator.

        Raises:
            EvaluatorUnavailableError: If there is no champion or it cannot be read.
        """
        return NetworkEvaluator.from_file(self.path, device=device)

    def install(self, artifact: str | Path) -> Path | None:
        """
        Make ``artifact`` the champion.

        The current champion, if any, is first copied to
        ``archive_dir/champion_<timestamp>.pt``. The new artifact is then
        copied to a temporary file beside the slot and moved into place with
        os.replace.

        Returns:
            Path of the archived previous champion, or None if there was none.

        Raises:
            PromotionError: If any step fails; the previous champion is left intact.
        """
        artifact = Path(artifact)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        archived: Path | None = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            if self.exists():
                archived = self._archive_current()

            shutil.copyfile(artifact, tmp_path)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PromotionError(f"Could not install {artifact} as champion: {e}") from e

        logger.info(f"Champion replaced by {artifact.name}")
        return archived

    def _archive_current(self) -> Path:
        self.archive_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        target = unique_path(self.archive_dir, f"champion_{stamp}{self.path.suffix}")
        tmp_target = target.with_name(f".{target.name}.tmp")

        try:
            shutil.copyfile(self.path, tmp_target)
            os.replace(tmp_target, target)
        except OSError:
            tmp_target.unlink(missing_ok=True)
            raise

        logger.info(f"Previous champion archived to {target}")
        return target
