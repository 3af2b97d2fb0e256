"""
Trainer for Policy/Value Networks

Trains a dual-headed network on symmetry-augmented chunks of self-play
samples.
"""

import logging
import time
from typing import Any, Iterable

import torch
from torch import Tensor
from torch.optim import Adam, Optimizer
from torch.utils.data import DataLoader
from tqdm import tqdm

from ..config import TrainingConfig
from ..data import AugmentedChunkDataset, EpisodeSample
from ..models import GomokuModel
from .losses import combined_loss, policy_accuracy, value_mae

logger = logging.getLogger(__name__)


class Trainer:
    """
    Training loop for Gomoku policy/value networks.

    Each chunk is expanded into its 8 symmetries and trained on for
    ``config.epochs`` epochs before the next chunk is built, so only one
    augmented chunk is in memory at a time.
    """

    def __init__(
        self,
        model: GomokuModel,
        config: TrainingConfig | None = None,
        optimizer: Optimizer | None = None,
    ):
        """
        Initialize the trainer.

        Args:
            model: The neural network to train.
            config: Training configuration.
            optimizer: Optimizer for parameter updates. Defaults to Adam.
        """
        self.config = config or TrainingConfig()
        self.model = model.to(self.config.device)
        self.optimizer = optimizer or Adam(
            self.model.parameters(),
            lr=self.config.learning_rate,
            weight_decay=self.config.weight_decay,
        )
        self.global_step = 0

        # Set random seed for reproducibility
        if self.config.seed is not None:
            torch.manual_seed(self.config.seed)
            if torch.cuda.is_available():
                torch.cuda.manual_seed_all(self.config.seed)

        logger.info(f"Trainer initialized on device: {self.config.device}")

    def fit(
        self,
        chunks: Iterable[list[EpisodeSample]],
        show_progress: bool = False,
    ) -> dict[str, Any]:
        """
        Train on every chunk in turn.

        Args:
            chunks: Chunks of episode samples (see data.iter_chunks).
            show_progress: Whether to show a progress bar over chunks.

        Returns:
            Summary with sample counts, steps and the last epoch's metrics.
        """
        start = time.time()
        num_chunks = 0
        num_samples = 0
        last_loss = None
        last_metrics: dict[str, float] = {}

        iterator = tqdm(chunks, desc="Training chunks", unit="chunk") if show_progress else chunks

        for chunk in iterator:
            if not chunk:
                continue

            dataset = AugmentedChunkDataset(chunk, augment=self.config.augment)
            loader = DataLoader(dataset, batch_size=self.config.batch_size, shuffle=True)

            for epoch in range(self.config.epochs):
                last_loss, last_metrics = self.train_epoch(loader)
                logger.debug(
                    f"Chunk {num_chunks + 1} epoch {epoch + 1}/{self.config.epochs}: "
                    f"loss={last_loss:.4f}"
                )

            num_chunks += 1
            num_samples += len(chunk)
            logger.info(
                f"Trained on chunk {num_chunks} ({len(chunk)} samples, "
                f"{len(dataset)} augmented): loss={last_loss:.4f}"
            )

        return {
            "chunks": num_chunks,
            "samples": num_samples,
            "global_step": self.global_step,
            "final_loss": last_loss,
            "final_metrics": last_metrics,
            "train_time": time.time() - start,
        }

    def train_epoch(self, dataloader: DataLoader) -> tuple[float, dict[str, float]]:
        """
        Run a single training epoch.

        Args:
            dataloader: DataLoader for training data.

        Returns:
            Tuple of (average_loss, metrics_dict).
        """
        self.model.train()
        total_loss = 0.0
        num_batches = 0

        # Accumulate metrics
        totals = {"policy_loss": 0.0, "value_loss": 0.0, "policy_acc": 0.0, "value_mae": 0.0}

        for batch in dataloader:
            loss, metrics = self.train_step(batch)
            total_loss += loss
            num_batches += 1
            for key in totals:
                totals[key] += metrics.get(key, 0.0)
            self.global_step += 1

        if num_batches == 0:
            return 0.0, {key: 0.0 for key in totals}

        avg_metrics = {key: value / num_batches for key, value in totals.items()}
        return total_loss / num_batches, avg_metrics

    def train_step(self, batch: dict[str, Tensor]) -> tuple[float, dict[str, float]]:
        """
        Single training step (forward + backward + optimizer step).

        Args:
            batch: Dictionary with 'board', 'policy' and 'value' tensors.

        Returns:
            Tuple of (loss_value, metrics_dict).
        """
        # Move batch to device
        board = batch["board"].to(self.config.device)
        policy_target = batch["policy"].to(self.config.device)
        value_target = batch["value"].to(self.config.device)

        # Zero gradients
        self.optimizer.zero_grad()

        # Forward pass
        policy_logits, value_pred = self.model(board)

        # Compute loss
        loss, loss_components = combined_loss(
            policy_logits=policy_logits,
            value_pred=value_pred,
            policy_target=policy_target,
            value_target=value_target,
        )

        # Backward pass
        loss.backward()

        # Gradient clipping
        if self.config.grad_clip is not None:
            torch.nn.utils.clip_grad_norm_(
                self.model.parameters(),
                self.config.grad_clip,
            )

        # Optimizer step
        self.optimizer.step()

        # Compute metrics
        with torch.no_grad():
            metrics = {
                **loss_components,
                "policy_acc": policy_accuracy(policy_logits, policy_target),
                "value_mae": value_mae(value_pred, value_target),
            }

        return loss.item(), metrics
