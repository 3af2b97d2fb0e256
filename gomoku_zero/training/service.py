"""
Training Service

Consumes replay units from the replay buffer, trains a network starting from
the current champion and writes the result as a checkpoint for the
evaluation service.
"""

import logging
from pathlib import Path

from ..config import PipelineConfig
from ..data import iter_chunks
from ..models import GomokuModel, create_model, load_model, save_model
from ..pipeline.service import ServiceLoop
from ..self_play import ReplayBuffer
from ..storage import ChampionStore, timestamped_name
from .trainer import Trainer

logger = logging.getLogger(__name__)


class TrainingService(ServiceLoop):
    """
    Turns pending self-play games into a new checkpoint.

    Claimed replay files are archived exactly once, whether or not training
    succeeds, so no game is trained on twice.
    """

    name = "trainer"

    def __init__(self, config: PipelineConfig, show_progress: bool = False):
        super().__init__(config.training.poll_interval)
        self.config = config
        self.show_progress = show_progress

        paths = config.paths
        self.replay_buffer = ReplayBuffer(
            paths.resolve("replay_buffer"), paths.resolve("replay_archive")
        )
        self.champion = ChampionStore(paths.resolve("champion"), paths.resolve("champion_archive"))
        self.checkpoint_dir = paths.resolve("checkpoints")

        # Games claimed by a trainer that died before archiving them
        self.replay_buffer.recover()

    def run_once(self) -> Path | None:
        """
        Train once if enough games are waiting.

        Returns:
            Path of the new checkpoint, or None if nothing was trained.
        """
        settings = self.config.training
        pending = self.replay_buffer.count()
        if pending < settings.min_games_to_train:
            logger.info(
                f"Waiting for games: {pending}/{settings.min_games_to_train} in replay buffer"
            )
            return None

        claimed = self.replay_buffer.claim_all()
        logger.info(f"Claimed {len(claimed)} replay files for training")

        try:
            samples, skipped = self.replay_buffer.load(claimed, self.config.board_size)
            if skipped:
                logger.warning(f"Skipped {len(skipped)} malformed replay files")
            if not samples:
                logger.warning("No usable samples in claimed replay files")
                return None

            model = self.load_starting_model()
            trainer = Trainer(model, settings)
            summary = trainer.fit(
                iter_chunks(samples, settings.chunk_size, seed=settings.seed),
                show_progress=self.show_progress,
            )

            path = self.checkpoint_dir / timestamped_name("checkpoint", ".pt")
            save_model(
                trainer.model,
                path,
                metadata={
                    "games": len(claimed) - len(skipped),
                    "samples": summary["samples"],
                    "final_loss": summary["final_loss"],
                    "global_step": summary["global_step"],
                },
            )
            logger.info(
                f"Checkpoint {path.name} written from {len(samples)} samples "
                f"(loss {summary['final_loss']:.4f})"
            )
            return path
        finally:
            self.replay_buffer.archive(claimed)

    def load_starting_model(self) -> GomokuModel:
        """Current champion weights, or a fresh network if there is no usable champion."""
        device = self.config.training.device
        if self.champion.exists():
            try:
                model, _ = load_model(self.champion.path, device=device)
                return model
            except (OSError, RuntimeError, ValueError, KeyError) as e:
                logger.warning(f"Could not load champion, training a fresh network: {e}")

        return create_model(self.config.training.model, self.config.board_size)
