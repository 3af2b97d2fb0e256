"""
Base class for Gomoku policy/value networks.

All models share one interface so the evaluator, trainer and checkpoint
code never depend on a particular architecture.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import torch
import torch.nn as nn

from ..data import BOARD_SIZE, NUM_PLANES


class GomokuModel(nn.Module, ABC):
    """
    Abstract base class for Gomoku neural networks.

    All models must:
    - Accept encoded positions of shape (batch, 3, L, L)
    - Output policy logits (L*L values) and a value estimate (1 value)
    """

    def __init__(self, board_size: int = BOARD_SIZE, in_channels: int = NUM_PLANES):
        """
        Initialize the model.

        Args:
            board_size: Side length L of the board
            in_channels: Number of input planes
        """
        super().__init__()
        self.board_size = board_size
        self.in_channels = in_channels
        self._architecture_name = "base"

    @abstractmethod
    def forward(self, x: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Forward pass through the network.

        Args:
            x: Input tensor of shape (batch, 3, L, L)

        Returns:
            Tuple of:
                - policy: Logits for each cell (batch, L*L)
                - value: Position evaluation (batch, 1) in range [-1, 1]
        """
        pass

    def predict(self, x: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """
        Make predictions with softmax applied to policy.

        Args:
            x: Input tensor

        Returns:
            Tuple of:
                - policy: Probabilities for each cell (batch, L*L)
                - value: Position evaluation (batch, 1) in range [-1, 1]
        """
        self.eval()
        with torch.no_grad():
            policy_logits, value = self(x)
            policy = torch.softmax(policy_logits, dim=-1)
        return policy, value

    def param_count(self) -> int:
        """Returns total number of trainable parameters."""
        return sum(p.numel() for p in self.parameters() if p.requires_grad)

    def architecture_string(self) -> str:
        """Returns human-readable architecture description."""
        return f"{self._architecture_name} ({self.param_count():,} params)"

    def get_config(self) -> dict:
        """Returns the constructor arguments needed to rebuild the model."""
        return {
            "board_size": self.board_size,
            "in_channels": self.in_channels,
        }
