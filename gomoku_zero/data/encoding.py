"""
Position Encoding and Board Symmetries

Provides the board representation shared by every component, the network
input encoding, and the eight dihedral symmetries used for augmentation.
"""

from typing import Literal, TypeAlias

import numpy as np

# Board dimensions
BOARD_SIZE = 19
WIN_LENGTH = 5
NUM_PLANES = 3

BLACK = 1
WHITE = 2

# Type aliases
Board: TypeAlias = list[list[int | None]]  # LxL, None=empty, 1=black, 2=white
Player: TypeAlias = Literal[1, 2]
Move: TypeAlias = tuple[int, int]  # (row, column)


def get_opponent(player: Player) -> Player:
    """Returns the other side. Applying it twice gives back ``player``."""
    return WHITE if player == BLACK else BLACK


def create_board(size: int = BOARD_SIZE) -> Board:
    """Creates an empty size x size board."""
    return [[None for _ in range(size)] for _ in range(size)]


def copy_board(board: Board) -> Board:
    """Returns a deep copy of a board."""
    return [row[:] for row in board]


def move_to_index(move: Move, size: int = BOARD_SIZE) -> int:
    """Flattens a (row, column) move into a policy index."""
    return move[0] * size + move[1]


def index_to_move(index: int, size: int = BOARD_SIZE) -> Move:
    """Inverse of move_to_index."""
    return divmod(index, size)


def encode_position(board: Board, player: Player) -> np.ndarray:
    """
    Encodes a position as three spatial planes.
    Shape: [3, L, L] = [channels, rows, columns]

    Channel 0: Stones of the side to move
    Channel 1: Stones of the opponent
    Channel 2: Colour plane (all 1s if black to move, all 0s if white)
    """
    size = len(board)
    opponent = get_opponent(player)
    encoded = np.zeros((NUM_PLANES, size, size), dtype=np.float32)

    for row in range(size):
        for col in range(size):
            cell = board[row][col]
            if cell == player:
                encoded[0, row, col] = 1.0
            elif cell == opponent:
                encoded[1, row, col] = 1.0

    if player == BLACK:
        encoded[2].fill(1.0)

    return encoded


def get_input_shape(size: int = BOARD_SIZE) -> tuple[int, ...]:
    """Gets the network input shape for a board of the given size."""
    return (1, NUM_PLANES, size, size)


def board_to_string(board: Board) -> str:
    """
    Converts a board to a human-readable string representation.
    """
    symbols = {None: ".", BLACK: "X", WHITE: "O"}
    lines = []
    for row in board:
        lines.append(" ".join(symbols[cell] for cell in row))
    return "\n".join(lines)


# --- Symmetries ---
#
# A board and its policy target must always be transformed together: cell
# (r, c) of the board and policy index r * L + c describe the same point.


def rotate_board(board: Board) -> Board:
    """Rotates a board 90 degrees clockwise: (r, c) -> (c, L - 1 - r)."""
    size = len(board)
    rotated = create_board(size)
    for row in range(size):
        for col in range(size):
            rotated[col][size - 1 - row] = board[row][col]
    return rotated


def flip_board(board: Board) -> Board:
    """
    Flips a board horizontally (mirrors columns).
    """
    return [list(reversed(row)) for row in board]


def rotate_policy(policy: list[float], size: int = BOARD_SIZE) -> list[float]:
    """Rotates a flat policy target exactly as rotate_board rotates the board."""
    rotated = [0.0] * (size * size)
    for row in range(size):
        for col in range(size):
            rotated[col * size + (size - 1 - row)] = policy[row * size + col]
    return rotated


def flip_policy(policy: list[float], size: int = BOARD_SIZE) -> list[float]:
    """Flips a flat policy target exactly as flip_board flips the board."""
    flipped = [0.0] * (size * size)
    for row in range(size):
        for col in range(size):
            flipped[row * size + (size - 1 - col)] = policy[row * size + col]
    return flipped


SymmetryType: TypeAlias = tuple[int, bool]  # (quarter turns, flipped after rotating)

SYMMETRIES: list[SymmetryType] = [
    (rotations, flipped) for rotations in range(4) for flipped in (False, True)
]


def apply_symmetry(
    board: Board,
    policy: list[float],
    symmetry: SymmetryType,
) -> tuple[Board, list[float]]:
    """
    Applies one dihedral symmetry to a (board, policy) pair.

    Args:
        board: LxL board.
        policy: Flat policy target of length L*L.
        symmetry: (number of clockwise quarter turns, whether to flip afterwards).

    Returns:
        Transformed (board, policy) pair, still aligned cell for cell.
    """
    rotations, flipped = symmetry
    size = len(board)
    board = copy_board(board)
    policy = list(policy)

    for _ in range(rotations):
        board = rotate_board(board)
        policy = rotate_policy(policy, size)

    if flipped:
        board = flip_board(board)
        policy = flip_policy(policy, size)

    return board, policy


def invert_symmetry(
    board: Board,
    policy: list[float],
    symmetry: SymmetryType,
) -> tuple[Board, list[float]]:
    """
    Undoes apply_symmetry for the same symmetry.

    Flips are their own inverse; the rotation is undone with the
    complementary number of quarter turns.
    """
    rotations, flipped = symmetry
    size = len(board)
    board = copy_board(board)
    policy = list(policy)

    if flipped:
        board = flip_board(board)
        policy = flip_policy(policy, size)

    for _ in range((4 - rotations) % 4):
        board = rotate_board(board)
        policy = rotate_policy(policy, size)

    return board, policy


def get_symmetries(board: Board, policy: list[float]) -> list[tuple[Board, list[float]]]:
    """
    Produces the eight symmetric variants of a (board, policy) pair.

    Order: identity, flip, then each further 90 degree rotation followed by
    its flip.
    """
    return [apply_symmetry(board, policy, symmetry) for symmetry in SYMMETRIES]
