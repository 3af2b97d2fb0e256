"""
Gomoku Game Logic

Pure Python implementation of five-in-a-row rules on a square board.
"""

from ..exceptions import IllegalMoveError
from .encoding import (
    BLACK,
    BOARD_SIZE,
    WIN_LENGTH,
    Board,
    Move,
    Player,
    board_to_string,
    copy_board,
    create_board,
    get_opponent,
)

# Axis pairs walked outwards from the last stone
DIRECTIONS: tuple[tuple[int, int], ...] = ((0, 1), (1, 0), (1, 1), (-1, 1))


def get_legal_moves(board: Board) -> list[Move]:
    """
    Returns every empty cell in row-major order.
    """
    size = len(board)
    return [
        (row, col)
        for row in range(size)
        for col in range(size)
        if board[row][col] is None
    ]


def get_candidate_moves(board: Board, radius: int | None = None) -> list[Move]:
    """
    Returns the moves the search engine is allowed to consider.

    Args:
        board: Current board.
        radius: If None, every legal move. Otherwise only empty cells within
            this Chebyshev distance of an existing stone; on an empty board
            the centre cell is the only candidate.

    Returns:
        Candidate moves in row-major order.
    """
    if radius is None:
        return get_legal_moves(board)

    size = len(board)
    near: set[Move] = set()
    has_stones = False

    for row in range(size):
        for col in range(size):
            if board[row][col] is None:
                continue
            has_stones = True
            for dr in range(-radius, radius + 1):
                for dc in range(-radius, radius + 1):
                    r, c = row + dr, col + dc
                    if 0 <= r < size and 0 <= c < size and board[r][c] is None:
                        near.add((r, c))

    if not has_stones:
        return [(size // 2, size // 2)]

    return sorted(near)


def place_stone(board: Board, move: Move, player: Player) -> None:
    """
    Places a stone in-place.

    Raises:
        IllegalMoveError: If the cell is outside the board or occupied.
    """
    row, col = move
    size = len(board)
    if not (0 <= row < size and 0 <= col < size):
        raise IllegalMoveError(f"Move {move} is outside the {size}x{size} board")
    if board[row][col] is not None:
        raise IllegalMoveError(f"Cell {move} is already occupied")
    board[row][col] = player


def make_move(board: Board, move: Move, player: Player) -> Board:
    """
    Places a stone and returns a new board (does not modify original).

    Raises:
        IllegalMoveError: If the cell is outside the board or occupied.
    """
    new_board = copy_board(board)
    place_stone(new_board, move, player)
    return new_board


def check_win(board: Board, player: Player, move: Move | None) -> bool:
    """
    Checks whether the stone just played at ``move`` completes five in a row.

    Only lines through ``move`` are inspected, so this must be called right
    after the move is made.
    """
    if move is None:
        return False

    row, col = move
    size = len(board)

    for dr, dc in DIRECTIONS:
        count = 1
        for sign in (1, -1):
            for step in range(1, WIN_LENGTH):
                r = row + sign * dr * step
                c = col + sign * dc * step
                if 0 <= r < size and 0 <= c < size and board[r][c] == player:
                    count += 1
                else:
                    break
        if count >= WIN_LENGTH:
            return True

    return False


def is_board_full(board: Board) -> bool:
    """Checks if every cell is occupied (draw)."""
    return all(cell is not None for row in board for cell in row)


class GomokuGame:
    """
    Manages a Gomoku game state.
    """

    def __init__(self, size: int = BOARD_SIZE):
        self.size = size
        self.board: Board = create_board(size)
        self.current_player: Player = BLACK
        self.move_history: list[Move] = []
        self.winner: Player | None = None
        self.is_draw: bool = False

    def reset(self) -> None:
        """Resets the game to initial state."""
        self.board = create_board(self.size)
        self.current_player = BLACK
        self.move_history = []
        self.winner = None
        self.is_draw = False

    def get_legal_moves(self) -> list[Move]:
        """Returns list of valid moves."""
        if self.is_terminal():
            return []
        return get_legal_moves(self.board)

    def make_move(self, move: Move) -> bool:
        """
        Plays a stone for the side to move.

        Returns:
            True if the move ended the game, False otherwise.

        Raises:
            IllegalMoveError: If the game is over or the cell is not playable.
        """
        if self.is_terminal():
            raise IllegalMoveError("Game is already over")

        player = self.current_player
        place_stone(self.board, move, player)
        self.move_history.append(move)

        if check_win(self.board, player, move):
            self.winner = player
        elif is_board_full(self.board):
            self.is_draw = True

        self.current_player = get_opponent(player)
        return self.is_terminal()

    def is_terminal(self) -> bool:
        """Returns True if the game is over."""
        return self.winner is not None or self.is_draw

    def get_result_for_player(self, player: Player) -> float:
        """
        Returns the game result from the specified player's perspective.

        Returns:
            1.0 for a win, -1.0 for a loss, 0.0 for a draw or unfinished game.
        """
        if self.winner is None:
            return 0.0
        return 1.0 if self.winner == player else -1.0

    def copy(self) -> "GomokuGame":
        """Returns a deep copy of the game."""
        game = GomokuGame(self.size)
        game.board = copy_board(self.board)
        game.current_player = self.current_player
        game.move_history = self.move_history[:]
        game.winner = self.winner
        game.is_draw = self.is_draw
        return game

    @classmethod
    def from_moves(cls, moves: list[Move], size: int = BOARD_SIZE) -> "GomokuGame":
        """Creates a game from a sequence of moves."""
        game = cls(size)
        for move in moves:
            game.make_move(move)
        return game

    def __str__(self) -> str:
        """Returns a string representation of the board."""
        lines = [board_to_string(self.board)]
        lines.append(f"Current player: {self.current_player}")
        if self.winner:
            lines.append(f"Winner: Player {self.winner}")
        elif self.is_draw:
            lines.append("Result: Draw")
        return "\n".join(lines)
