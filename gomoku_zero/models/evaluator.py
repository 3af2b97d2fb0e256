"""
Network-backed position evaluator.

Adapts a GomokuModel to the search engine's Evaluator protocol.
"""

import pickle
import threading
from pathlib import Path

import numpy as np
import torch

from ..data import Board, Player, encode_position
from ..exceptions import EvaluatorUnavailableError
from .base import GomokuModel
from .registry import load_model


class NetworkEvaluator:
    """
    Evaluates positions with a policy/value network.

    Safe to share between threads: inference is serialised by a lock
    because BatchNorm layers hold module state.
    """

    def __init__(self, model: GomokuModel, device: str = "cpu", name: str = "network"):
        """
        Args:
            model: Trained network.
            device: Torch device for inference.
            name: Label used in logs.
        """
        self.model = model.to(device)
        self.model.eval()
        self.device = device
        self.name = name
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: str | Path, device: str = "cpu") -> "NetworkEvaluator":
        """
        Load an evaluator from a model artifact.

        Raises:
            EvaluatorUnavailableError: If the artifact is missing or unreadable.
        """
        try:
            model, _ = load_model(path, device=device)
        except (OSError, EOFError, RuntimeError, ValueError, KeyError, pickle.UnpicklingError) as e:
            raise EvaluatorUnavailableError(f"Could not load model from {path}: {e}") from e
        return cls(model, device=device, name=Path(path).stem)

    def evaluate(self, board: Board, player: Player) -> tuple[np.ndarray, float]:
        if len(board) != self.model.board_size:
            raise ValueError(
                f"Model expects a {self.model.board_size}x{self.model.board_size} board, "
                f"got {len(board)}x{len(board)}"
            )

        x = torch.from_numpy(encode_position(board, player)).unsqueeze(0).to(self.device)
        with self._lock:
            policy, value = self.model.predict(x)

        return policy[0].cpu().numpy(), float(value[0, 0].item())
