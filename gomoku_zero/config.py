"""
Pipeline Configuration

Dataclass-based configuration for search, self-play, training, evaluation
and storage paths, loadable from a single YAML file.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import torch
import yaml

from .data.encoding import BOARD_SIZE


def resolve_device(device: str) -> str:
    """Maps ``"auto"`` to the best available torch device; other names pass through."""
    if device != "auto":
        return device
    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


@dataclass
class SearchConfig:
    """Configuration for the PUCT tree search."""

    c_puct: float = 1.5  # Exploration constant
    time_budget: float | None = 2.0  # Seconds per move (soft deadline)
    max_simulations: int | None = None  # Hard cap on simulations per move
    candidate_radius: int | None = None  # None = every empty cell

    def __post_init__(self):
        if self.time_budget is None and self.max_simulations is None:
            raise ValueError("SearchConfig needs a time_budget or max_simulations")
        if self.c_puct < 0:
            raise ValueError(f"c_puct must be non-negative, got {self.c_puct}")


@dataclass
class SelfPlayConfig:
    """Configuration for self-play data generation."""

    # Worker settings
    num_workers: int = 4
    board_size: int = BOARD_SIZE

    # Moves sampled proportionally to visit counts before play turns greedy
    exploration_moves: int = 15

    # Orchestration
    flush_interval: float = 60.0  # Seconds between replay flushes
    reload_every: int = 5  # Reload the champion every N episodes
    restart_backoff: float = 5.0  # Seconds before a crashed worker restarts
    model_wait: float = 10.0  # Seconds between attempts to load a missing champion

    search: SearchConfig = field(default_factory=SearchConfig)


@dataclass
class TrainingConfig:
    """Configuration for the training service."""

    model: str = "resnet-standard"  # Architecture for fresh networks
    min_games_to_train: int = 100
    chunk_size: int = 8192
    batch_size: int = 128
    epochs: int = 5
    learning_rate: float = 1e-3
    weight_decay: float = 1e-4
    grad_clip: float | None = 1.0
    augment: bool = True
    poll_interval: float = 60.0
    device: str = "auto"  # "auto", "cpu", "cuda", "mps"
    seed: int | None = None

    def __post_init__(self):
        self.device = resolve_device(self.device)
        for name in ("min_games_to_train", "chunk_size", "batch_size", "epochs"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")


@dataclass
class EvaluationConfig:
    """Configuration for challenger evaluation and promotion."""

    num_games: int = 50  # Must be even so both sides start equally often
    win_threshold: float = 0.55  # Challenger must win strictly more than this share
    num_workers: int = 1
    poll_interval: float = 15 * 60.0

    search: SearchConfig = field(default_factory=lambda: SearchConfig(time_budget=1.0))

    def __post_init__(self):
        if self.num_games <= 0 or self.num_games % 2 != 0:
            raise ValueError(f"num_games must be a positive even number, got {self.num_games}")
        if not 0.0 <= self.win_threshold <= 1.0:
            raise ValueError(f"win_threshold must be in [0, 1], got {self.win_threshold}")


@dataclass
class PathsConfig:
    """Storage locations. Relative paths are resolved against ``root``."""

    root: str = "."
    champion: str = "model_main/champion.pt"
    champion_archive: str = "model_main/archive"
    replay_buffer: str = "replay_buffer"
    replay_archive: str = "replay_buffer_archive"
    checkpoints: str = "training_checkpoints"
    checkpoint_archive: str = "training_checkpoints_archive"

    def resolve(self, name: str) -> Path:
        """Returns the absolute location of one of the configured paths."""
        value = getattr(self, name)
        path = Path(value)
        if path.is_absolute():
            return path
        return Path(self.root) / path


@dataclass
class PipelineConfig:
    """Configuration for the whole self-play pipeline."""

    self_play: SelfPlayConfig = field(default_factory=SelfPlayConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)

    @property
    def board_size(self) -> int:
        return self.self_play.board_size

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineConfig":
        """Builds a configuration from nested dictionaries."""
        data = dict(data or {})

        self_play_data = dict(data.pop("self_play", {}) or {})
        search = SearchConfig(**self_play_data.pop("search", {}))
        self_play = SelfPlayConfig(search=search, **self_play_data)

        evaluation_data = dict(data.pop("evaluation", {}) or {})
        if "search" in evaluation_data:
            evaluation_data["search"] = SearchConfig(**evaluation_data["search"])
        evaluation = EvaluationConfig(**evaluation_data)

        training = TrainingConfig(**(data.pop("training", {}) or {}))
        paths = PathsConfig(**(data.pop("paths", {}) or {}))

        if data:
            raise ValueError(f"Unknown configuration sections: {sorted(data)}")

        return cls(
            self_play=self_play,
            training=training,
            evaluation=evaluation,
            paths=paths,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PipelineConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Converts to nested dictionaries."""
        return asdict(self)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
