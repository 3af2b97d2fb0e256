"""
Loss Functions for Policy/Value Training

The policy head is trained against the search's visit distribution (a soft
target), the value head against the final game outcome.
"""

import torch.nn.functional as F
from torch import Tensor


def policy_loss(policy_logits: Tensor, target_policy: Tensor) -> Tensor:
    """
    Cross-entropy between the predicted policy and a target distribution.

    Args:
        policy_logits: (batch, L*L) raw logits from the policy head.
        target_policy: (batch, L*L) visit distribution. Rows that are all
            zero contribute nothing.

    Returns:
        Scalar loss tensor.
    """
    log_probs = F.log_softmax(policy_logits, dim=-1)
    return -(target_policy * log_probs).sum(dim=-1).mean()


def value_loss(value_pred: Tensor, target_value: Tensor) -> Tensor:
    """
    MSE loss for position evaluation.

    Args:
        value_pred: (batch, 1) or (batch,) predicted value in [-1, 1].
        target_value: (batch, 1) or (batch,) actual game outcome.

    Returns:
        Scalar loss tensor.
    """
    # Ensure consistent shapes
    value_pred = value_pred.view(-1)
    target_value = target_value.view(-1)

    return F.mse_loss(value_pred, target_value)


def combined_loss(
    policy_logits: Tensor,
    value_pred: Tensor,
    policy_target: Tensor,
    value_target: Tensor,
    policy_weight: float = 1.0,
    value_weight: float = 1.0,
) -> tuple[Tensor, dict[str, float]]:
    """
    AlphaZero-style combined loss for dual-headed networks.

    Args:
        policy_logits: (batch, L*L) raw logits from policy head.
        value_pred: (batch, 1) or (batch,) predicted position value.
        policy_target: (batch, L*L) target visit distributions.
        value_target: (batch, 1) or (batch,) target game outcomes.
        policy_weight: Weight for policy loss component.
        value_weight: Weight for value loss component.

    Returns:
        Tuple of (total_loss, loss_components_dict) where loss_components_dict
        contains individual loss values for logging.
    """
    p_loss = policy_loss(policy_logits, policy_target)
    v_loss = value_loss(value_pred, value_target)

    total = policy_weight * p_loss + value_weight * v_loss

    return total, {
        "policy_loss": p_loss.item(),
        "value_loss": v_loss.item(),
        "total_loss": total.item(),
    }


def policy_accuracy(policy_logits: Tensor, target_policy: Tensor) -> float:
    """
    Share of positions where the network's top move is the most visited move.
    """
    predictions = policy_logits.argmax(dim=-1)
    targets = target_policy.argmax(dim=-1)
    return (predictions == targets).float().mean().item()


def value_mae(value_pred: Tensor, target_value: Tensor) -> float:
    """
    Computes mean absolute error for value predictions.
    """
    value_pred = value_pred.view(-1)
    target_value = target_value.view(-1)
    return F.l1_loss(value_pred, target_value).item()
