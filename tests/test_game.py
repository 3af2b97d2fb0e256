"""Tests for Gomoku game logic."""

import pytest

from gomoku_zero.data import (
    BLACK,
    WHITE,
    GomokuGame,
    check_win,
    create_board,
    get_candidate_moves,
    get_legal_moves,
    is_board_full,
    make_move,
    place_stone,
)
from gomoku_zero.exceptions import IllegalMoveError


class TestGetLegalMoves:
    """Test legal move generation."""

    def test_empty_board(self):
        """Every cell is legal on an empty board, in row-major order."""
        board = create_board(5)
        legal = get_legal_moves(board)
        assert len(legal) == 25
        assert legal[0] == (0, 0)
        assert legal[-1] == (4, 4)

    def test_occupied_cell_excluded(self):
        """Occupied cells are not legal."""
        board = create_board(5)
        board[2][3] = BLACK
        legal = get_legal_moves(board)
        assert (2, 3) not in legal
        assert len(legal) == 24

    def test_full_board(self):
        """No legal moves on full board."""
        board = [[BLACK] * 5 for _ in range(5)]
        assert get_legal_moves(board) == []


class TestGetCandidateMoves:
    """Test the neighbourhood candidate heuristic."""

    def test_no_radius_means_all_legal_moves(self):
        board = create_board(7)
        board[3][3] = BLACK
        assert get_candidate_moves(board) == get_legal_moves(board)

    def test_empty_board_centre_only(self):
        """With a radius, an empty board offers only the centre."""
        assert get_candidate_moves(create_board(9), radius=1) == [(4, 4)]

    def test_radius_one_neighbourhood(self):
        """Candidates are the empty cells adjacent to a stone."""
        board = create_board(9)
        board[4][4] = BLACK
        candidates = get_candidate_moves(board, radius=1)

        assert len(candidates) == 8
        assert (4, 4) not in candidates
        assert all(abs(r - 4) <= 1 and abs(c - 4) <= 1 for r, c in candidates)

    def test_neighbourhood_clipped_at_edge(self):
        board = create_board(9)
        board[0][0] = WHITE
        assert get_candidate_moves(board, radius=1) == [(0, 1), (1, 0), (1, 1)]


class TestMakeMove:
    """Test move execution."""

    def test_make_move_returns_copy(self):
        """Original board is unchanged."""
        board = create_board(5)
        new_board = make_move(board, (1, 2), BLACK)

        assert board[1][2] is None
        assert new_board[1][2] == BLACK

    def test_occupied_cell_raises(self):
        board = create_board(5)
        place_stone(board, (0, 0), BLACK)
        with pytest.raises(IllegalMoveError):
            place_stone(board, (0, 0), WHITE)

    def test_out_of_range_raises(self):
        with pytest.raises(IllegalMoveError):
            make_move(create_board(5), (5, 0), BLACK)

    def test_illegal_move_is_value_error(self):
        """Callers catching ValueError also catch illegal moves."""
        with pytest.raises(ValueError):
            make_move(create_board(5), (-1, 0), BLACK)


class TestCheckWin:
    """Test win detection."""

    def _board_with(self, cells, player=BLACK, size=9):
        board = create_board(size)
        for r, c in cells:
            board[r][c] = player
        return board

    def test_horizontal_five(self):
        cells = [(4, c) for c in range(2, 7)]
        board = self._board_with(cells)
        assert check_win(board, BLACK, (4, 6))

    def test_vertical_five(self):
        cells = [(r, 0) for r in range(5)]
        board = self._board_with(cells, player=WHITE)
        assert check_win(board, WHITE, (2, 0))

    def test_diagonal_five(self):
        cells = [(i, i) for i in range(1, 6)]
        board = self._board_with(cells)
        assert check_win(board, BLACK, (3, 3))

    def test_anti_diagonal_five(self):
        cells = [(i, 8 - i) for i in range(5)]
        board = self._board_with(cells)
        assert check_win(board, BLACK, (4, 4))

    def test_four_is_not_a_win(self):
        cells = [(4, c) for c in range(2, 6)]
        board = self._board_with(cells)
        assert not check_win(board, BLACK, (4, 5))

    def test_broken_line_is_not_a_win(self):
        cells = [(4, 0), (4, 1), (4, 2), (4, 4), (4, 5)]
        board = self._board_with(cells)
        assert not check_win(board, BLACK, (4, 5))

    def test_opponent_stones_do_not_count(self):
        board = self._board_with([(4, c) for c in range(4)])
        board[4][4] = WHITE
        assert not check_win(board, WHITE, (4, 4))

    def test_no_move(self):
        board = self._board_with([(4, c) for c in range(5)])
        assert not check_win(board, BLACK, None)


class TestIsBoardFull:
    def test_empty_board(self):
        assert not is_board_full(create_board(5))

    def test_full_board(self):
        board = [[BLACK if (r + c) % 2 else WHITE for c in range(5)] for r in range(5)]
        assert is_board_full(board)


class TestGomokuGame:
    """Test GomokuGame class."""

    def test_initial_state(self):
        game = GomokuGame(9)
        assert game.current_player == BLACK
        assert game.move_history == []
        assert not game.is_terminal()

    def test_players_alternate(self):
        game = GomokuGame(9)
        game.make_move((0, 0))
        assert game.current_player == WHITE
        game.make_move((1, 1))
        assert game.current_player == BLACK

    def test_win_ends_game(self):
        """Black completes a row while white plays elsewhere."""
        moves = []
        for c in range(5):
            moves.append((0, c))
            if c < 4:
                moves.append((8, c))
        game = GomokuGame.from_moves(moves, size=9)

        assert game.winner == BLACK
        assert game.is_terminal()
        assert game.get_result_for_player(BLACK) == 1.0
        assert game.get_result_for_player(WHITE) == -1.0

    def test_move_after_game_over_raises(self):
        moves = [(0, 0), (8, 0), (0, 1), (8, 1), (0, 2), (8, 2), (0, 3), (8, 3), (0, 4)]
        game = GomokuGame.from_moves(moves, size=9)
        with pytest.raises(IllegalMoveError):
            game.make_move((5, 5))

    def test_make_move_reports_end(self):
        game = GomokuGame(9)
        assert game.make_move((4, 4)) is False

    def test_copy_is_independent(self):
        game = GomokuGame(9)
        game.make_move((4, 4))
        clone = game.copy()
        clone.make_move((0, 0))

        assert game.board[0][0] is None
        assert len(game.move_history) == 1
        assert len(clone.move_history) == 2

    def test_draw_result_is_zero(self):
        game = GomokuGame(9)
        game.is_draw = True
        assert game.get_result_for_player(BLACK) == 0.0

    def test_str_contains_stones(self):
        game = GomokuGame(5)
        game.make_move((0, 0))
        assert "X" in str(game)
