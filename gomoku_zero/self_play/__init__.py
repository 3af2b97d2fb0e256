"""
Self-Play Data Generation

Workers play games against themselves with tree search; the manager runs a
pool of them against the current champion and flushes finished games to the
replay buffer.
"""

from .manager import SelfPlayManager
from .replay_buffer import ReplayBuffer
from .worker import SelfPlayWorker

__all__ = [
    "SelfPlayWorker",
    "SelfPlayManager",
    "ReplayBuffer",
]
