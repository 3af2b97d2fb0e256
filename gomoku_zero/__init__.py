"""
Gomoku Zero

Self-play reinforcement learning for five-in-a-row: a PUCT tree search over
a policy/value network, and the pipeline that generates games, trains new
networks and promotes them when they beat the current champion.
"""

__version__ = "0.1.0"
