"""
Training Infrastructure

Loss functions, the chunked trainer and the service that turns self-play
games into checkpoints.
"""

from .losses import (
    combined_loss,
    policy_accuracy,
    policy_loss,
    value_loss,
    value_mae,
)
from .service import TrainingService
from .trainer import Trainer

__all__ = [
    # Losses
    "policy_loss",
    "value_loss",
    "combined_loss",
    "policy_accuracy",
    "value_mae",
    # Trainer
    "Trainer",
    "TrainingService",
]
