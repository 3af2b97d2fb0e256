"""Board rules, encoding and training data for Gomoku self-play."""

from .encoding import (
    BOARD_SIZE,
    WIN_LENGTH,
    NUM_PLANES,
    BLACK,
    WHITE,
    Board,
    Player,
    Move,
    get_opponent,
    create_board,
    copy_board,
    move_to_index,
    index_to_move,
    encode_position,
    get_input_shape,
    board_to_string,
    rotate_board,
    flip_board,
    rotate_policy,
    flip_policy,
    SYMMETRIES,
    apply_symmetry,
    invert_symmetry,
    get_symmetries,
)
from .game import (
    GomokuGame,
    get_legal_moves,
    get_candidate_moves,
    place_stone,
    make_move,
    check_win,
    is_board_full,
)
from .dataset import (
    EpisodeSample,
    ReplayUnit,
    AugmentedChunkDataset,
    save_replay_unit,
    load_replay_unit,
    load_samples,
    iter_chunks,
)
from .validation import (
    validate_board,
    validate_sample,
    validate_replay_unit,
    ValidationResult,
)

__all__ = [
    # Constants and types
    "BOARD_SIZE",
    "WIN_LENGTH",
    "NUM_PLANES",
    "BLACK",
    "WHITE",
    "Board",
    "Player",
    "Move",
    # Encoding and symmetries
    "get_opponent",
    "create_board",
    "copy_board",
    "move_to_index",
    "index_to_move",
    "encode_position",
    "get_input_shape",
    "board_to_string",
    "rotate_board",
    "flip_board",
    "rotate_policy",
    "flip_policy",
    "SYMMETRIES",
    "apply_symmetry",
    "invert_symmetry",
    "get_symmetries",
    # Game logic
    "GomokuGame",
    "get_legal_moves",
    "get_candidate_moves",
    "place_stone",
    "make_move",
    "check_win",
    "is_board_full",
    # Samples and datasets
    "EpisodeSample",
    "ReplayUnit",
    "AugmentedChunkDataset",
    "save_replay_unit",
    "load_replay_unit",
    "load_samples",
    "iter_chunks",
    # Validation
    "validate_board",
    "validate_sample",
    "validate_replay_unit",
    "ValidationResult",
]
