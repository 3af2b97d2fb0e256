"""
Model registry and artifact serialization.

Creates models by name and reads/writes the single-file artifacts used for
checkpoints and the champion.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable

import torch

from ..data import BOARD_SIZE
from .base import GomokuModel
from .resnet import PolicyValueResNet, create_resnet_standard, create_resnet_tiny

logger = logging.getLogger(__name__)

# Registry of model factory functions
MODEL_REGISTRY: dict[str, Callable[[int], GomokuModel]] = {
    "resnet-tiny": create_resnet_tiny,
    "resnet-standard": create_resnet_standard,
}

# Architectures that can be rebuilt from a saved config
ARCHITECTURES: dict[str, type[GomokuModel]] = {
    "PolicyValueResNet": PolicyValueResNet,
}


def create_model(name: str = "resnet-standard", board_size: int = BOARD_SIZE) -> GomokuModel:
    """
    Create a model by name.

    Raises:
        ValueError: If model name is not recognized.
    """
    if name not in MODEL_REGISTRY:
        available = ", ".join(sorted(MODEL_REGISTRY.keys()))
        raise ValueError(f"Unknown model '{name}'. Available models: {available}")
    return MODEL_REGISTRY[name](board_size)


def list_models() -> list[str]:
    """List all available model names."""
    return sorted(MODEL_REGISTRY.keys())


def save_model(
    model: GomokuModel,
    path: str | Path,
    metadata: dict[str, Any] | None = None,
) -> Path:
    """
    Save a model artifact atomically.

    The artifact holds the architecture name, its constructor config and the
    state dict. It is written to a temporary file next to ``path`` and moved
    into place with os.replace, so a concurrent reader sees either the old
    file or the new one in full.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")

    payload = {
        "architecture": type(model).__name__,
        "model_config": model.get_config(),
        "model_state_dict": model.state_dict(),
        "metadata": metadata or {},
    }
    torch.save(payload, tmp_path)
    os.replace(tmp_path, path)

    logger.info(f"Model saved to {path}")
    return path


def load_model(path: str | Path, device: str = "cpu") -> tuple[GomokuModel, dict[str, Any]]:
    """
    Load a model artifact written by save_model.

    Returns:
        Tuple of (model in eval mode, metadata dict).

    Raises:
        FileNotFoundError: If the artifact does not exist.
        ValueError: If the artifact names an unknown architecture.
    """
    checkpoint = torch.load(path, map_location=device, weights_only=False)

    architecture = checkpoint.get("architecture")
    if architecture not in ARCHITECTURES:
        raise ValueError(f"Unknown architecture '{architecture}' in {path}")

    model = ARCHITECTURES[architecture](**checkpoint["model_config"])
    model.load_state_dict(checkpoint["model_state_dict"])
    model.to(device)
    model.eval()

    return model, checkpoint.get("metadata", {})
