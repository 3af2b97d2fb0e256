"""
Training Samples, Replay Units and the Augmented Chunk Dataset

Provides the records produced by self-play and the PyTorch dataset that
feeds symmetry-augmented chunks to the trainer.
"""

import json
import logging
import os
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np
import torch
from torch.utils.data import Dataset

from ..exceptions import MalformedSampleError
from .encoding import Board, Player, copy_board, encode_position, get_symmetries
from .validation import validate_replay_unit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EpisodeSample:
    """A single recorded self-play position."""

    board: Board  # Snapshot before the move was played
    to_move: Player
    policy_target: list[float]  # Normalised visit counts, length L*L
    value: float  # 1.0 if to_move went on to win, -1.0 if it lost, 0.0 for a draw

    def to_dict(self) -> dict:
        """Converts to JSON-serializable dictionary."""
        return {
            "board": self.board,
            "to_move": self.to_move,
            "policy": self.policy_target,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EpisodeSample":
        """Creates from JSON dictionary."""
        return cls(
            board=copy_board(data["board"]),
            to_move=data["to_move"],
            policy_target=list(data["policy"]),
            value=float(data["value"]),
        )


@dataclass
class ReplayUnit:
    """All samples of one finished self-play game."""

    game_id: str
    samples: list[EpisodeSample]
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Converts to JSON-serializable dictionary."""
        return {
            "game_id": self.game_id,
            "samples": [sample.to_dict() for sample in self.samples],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReplayUnit":
        """Creates from JSON dictionary."""
        return cls(
            game_id=data["game_id"],
            samples=[EpisodeSample.from_dict(s) for s in data["samples"]],
            metadata=data.get("metadata", {}),
        )


def save_replay_unit(unit: ReplayUnit, path: str | Path) -> Path:
    """
    Writes a replay unit as JSON.

    The data goes to a temporary file in the same directory first and is
    moved into place with os.replace, so readers never see a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")

    with open(tmp_path, "w") as f:
        json.dump(unit.to_dict(), f)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp_path, path)
    return path


def load_replay_unit(path: str | Path, board_size: int | None = None) -> ReplayUnit:
    """
    Reads and validates a replay unit.

    Raises:
        MalformedSampleError: If the file cannot be parsed or fails validation.
    """
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise MalformedSampleError(f"Could not read {path}: {e}") from e

    result = validate_replay_unit(data, board_size)
    if not result:
        raise MalformedSampleError(f"{path}: {'; '.join(result.errors)}")

    return ReplayUnit.from_dict(data)


def load_samples(
    paths: Iterable[str | Path],
    board_size: int | None = None,
) -> tuple[list[EpisodeSample], list[Path]]:
    """
    Loads samples from many replay files, skipping malformed ones.

    Returns:
        Tuple of (samples, paths that were skipped).
    """
    samples: list[EpisodeSample] = []
    skipped: list[Path] = []

    for path in paths:
        try:
            unit = load_replay_unit(path, board_size)
        except MalformedSampleError as e:
            logger.warning(f"Skipping malformed replay file: {e}")
            skipped.append(Path(path))
            continue
        samples.extend(unit.samples)

    return samples, skipped


def iter_chunks(
    samples: list[EpisodeSample],
    chunk_size: int,
    shuffle: bool = True,
    seed: int | None = None,
) -> Iterator[list[EpisodeSample]]:
    """
    Splits samples into fixed-size chunks to bound peak memory.

    The last chunk may be shorter. Shuffling happens once, over the whole
    list, before chunking.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    order = list(samples)
    if shuffle:
        random.Random(seed).shuffle(order)

    for start in range(0, len(order), chunk_size):
        yield order[start : start + chunk_size]


class AugmentedChunkDataset(Dataset):
    """
    PyTorch Dataset over one chunk of samples, expanded by the 8 symmetries.

    Each item is a dict with 'board' [3, L, L], 'policy' [L*L] and 'value'
    [] tensors. Item i is symmetry i % 8 of sample i // 8.
    """

    def __init__(self, samples: list[EpisodeSample], augment: bool = True):
        """
        Initialize the dataset.

        Args:
            samples: One chunk of episode samples.
            augment: Whether to expand every sample into its 8 symmetries.
        """
        self.augment = augment
        self.boards: list[np.ndarray] = []
        self.policies: list[np.ndarray] = []
        self.values: list[float] = []

        for sample in samples:
            if augment:
                variants = get_symmetries(sample.board, sample.policy_target)
            else:
                variants = [(sample.board, sample.policy_target)]

            for board, policy in variants:
                self.boards.append(encode_position(board, sample.to_move))
                self.policies.append(np.asarray(policy, dtype=np.float32))
                self.values.append(sample.value)

    def __len__(self) -> int:
        return len(self.boards)

    def __getitem__(self, idx: int) -> dict[str, torch.Tensor]:
        return {
            "board": torch.from_numpy(self.boards[idx]),
            "policy": torch.from_numpy(self.policies[idx]),
            "value": torch.tensor(self.values[idx], dtype=torch.float32),
        }
