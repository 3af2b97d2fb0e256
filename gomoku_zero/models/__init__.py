"""Neural network models and network-backed evaluators for Gomoku."""

from .base import GomokuModel
from .resnet import PolicyValueResNet, ResidualBlock
from .registry import MODEL_REGISTRY, create_model, list_models, load_model, save_model
from .evaluator import NetworkEvaluator

__all__ = [
    # Base class
    "GomokuModel",
    # Model classes
    "PolicyValueResNet",
    "ResidualBlock",
    # Registry and serialization
    "MODEL_REGISTRY",
    "create_model",
    "list_models",
    "load_model",
    "save_model",
    # Evaluator
    "NetworkEvaluator",
]
