"""
Dual-headed residual network for Gomoku.

A convolutional trunk with skip connections feeding a spatial policy head
(one logit per cell) and a scalar value head.
"""

from typing import Tuple

import torch
import torch.nn as nn

from ..data import BOARD_SIZE, NUM_PLANES
from .base import GomokuModel


class ResidualBlock(nn.Module):
    """
    Basic residual block with two convolutional layers.

    Architecture: Conv -> BN -> ReLU -> Conv -> BN -> Add -> ReLU
    """

    def __init__(self, channels: int, kernel_size: int = 3):
        super().__init__()

        padding = kernel_size // 2

        self.conv1 = nn.Conv2d(channels, channels, kernel_size, padding=padding, bias=False)
        self.bn1 = nn.BatchNorm2d(channels)
        self.conv2 = nn.Conv2d(channels, channels, kernel_size, padding=padding, bias=False)
        self.bn2 = nn.BatchNorm2d(channels)
        self.relu = nn.ReLU()

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        residual = x

        out = self.relu(self.bn1(self.conv1(x)))
        out = self.bn2(self.conv2(out))

        # Skip connection
        out = out + residual
        return self.relu(out)


class PolicyValueResNet(GomokuModel):
    """
    Configurable ResNet for Gomoku.

    Architecture:
    - Initial conv to expand channels
    - Stack of residual blocks
    - Policy head: 1x1 conv (2 filters) -> BN -> ReLU -> Linear(L*L)
    - Value head: 1x1 conv (1 filter) -> BN -> ReLU -> Linear -> ReLU -> Linear(1) -> Tanh

    Input shape: (batch, 3, L, L)
    """

    def __init__(
        self,
        board_size: int = BOARD_SIZE,
        in_channels: int = NUM_PLANES,
        hidden_channels: int = 64,
        num_blocks: int = 5,
        value_hidden: int = 64,
    ):
        """
        Initialize the ResNet.

        Args:
            board_size: Side length L of the board
            in_channels: Number of input planes
            hidden_channels: Number of channels in residual blocks
            num_blocks: Number of residual blocks
            value_hidden: Hidden dimension of the value head
        """
        super().__init__(board_size=board_size, in_channels=in_channels)

        self._hidden_channels = hidden_channels
        self._num_blocks = num_blocks
        self._value_hidden = value_hidden
        self._architecture_name = f"resnet-{num_blocks}b-{hidden_channels}c"

        cells = board_size * board_size

        self.initial_conv = nn.Sequential(
            nn.Conv2d(in_channels, hidden_channels, 3, padding=1, bias=False),
            nn.BatchNorm2d(hidden_channels),
            nn.ReLU(),
        )

        self.res_blocks = nn.Sequential(
            *[ResidualBlock(hidden_channels) for _ in range(num_blocks)]
        )

        self.policy_head = nn.Sequential(
            nn.Conv2d(hidden_channels, 2, 1, bias=False),
            nn.BatchNorm2d(2),
            nn.ReLU(),
            nn.Flatten(),
            nn.Linear(2 * cells, cells),
        )

        self.value_head = nn.Sequential(
            nn.Conv2d(hidden_channels, 1, 1, bias=False),
            nn.BatchNorm2d(1),
            nn.ReLU(),
            nn.Flatten(),
            nn.Linear(cells, value_hidden),
            nn.ReLU(),
            nn.Linear(value_hidden, 1),
            nn.Tanh(),
        )

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
        features = self.res_blocks(self.initial_conv(x))
        return self.policy_head(features), self.value_head(features)

    def get_config(self) -> dict:
        """Returns model configuration for serialization."""
        config = super().get_config()
        config["hidden_channels"] = self._hidden_channels
        config["num_blocks"] = self._num_blocks
        config["value_hidden"] = self._value_hidden
        return config


def create_resnet_tiny(board_size: int = BOARD_SIZE) -> PolicyValueResNet:
    """
    Create tiny ResNet variant for quick experiments and tests.

    Architecture: 1 residual block, 16 channels
    """
    return PolicyValueResNet(
        board_size=board_size, hidden_channels=16, num_blocks=1, value_hidden=32
    )


def create_resnet_standard(board_size: int = BOARD_SIZE) -> PolicyValueResNet:
    """
    Create the standard self-play network.

    Architecture: 5 residual blocks, 64 channels
    """
    return PolicyValueResNet(
        board_size=board_size, hidden_channels=64, num_blocks=5, value_hidden=64
    )
