"""
Pipeline Services

Long-running loops for training and evaluation. The launcher that runs them
together with self-play lives in ``gomoku_zero.pipeline.launcher``.
"""

from .service import ServiceLoop

__all__ = [
    "ServiceLoop",
]
