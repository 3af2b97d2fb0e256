"""
PUCT Monte-Carlo Tree Search

Turns a position evaluator into a move-selection policy. Nodes live in a
flat, growable arena addressed by integer handles; a node points to its
parent by index, so the tree has no reference cycles and is dropped as a
whole once a search returns.
"""

import logging
import math
import time
from dataclasses import dataclass, field

import numpy as np

from ..config import SearchConfig
from ..data import (
    Board,
    Move,
    Player,
    check_win,
    copy_board,
    get_candidate_moves,
    get_opponent,
    move_to_index,
)
from ..exceptions import EvaluatorUnavailableError
from .evaluator import Evaluator

logger = logging.getLogger(__name__)

ROOT = 0
NO_PARENT = -1


# --- Leaf outcomes ---


@dataclass(frozen=True)
class Win:
    """The move that created the leaf completed five in a row for ``side``."""

    side: Player


@dataclass(frozen=True)
class Draw:
    """No candidate move remains at the leaf."""


@dataclass(frozen=True)
class NeedsEvaluation:
    """The leaf is not terminal; ask the evaluator."""


LeafOutcome = Win | Draw | NeedsEvaluation


class SearchTree:
    """
    Arena of search nodes.

    Statistics of a node are kept from the point of view of the side that
    played the move leading to it, so ``q_value(child)`` is directly the
    parent's expected outcome for that move.
    """

    def __init__(self, root_side: Player):
        self.moves: list[Move | None] = [None]
        self.parents: list[int] = [NO_PARENT]
        self.sides: list[Player] = [root_side]  # Side to move at the node
        self.priors: list[float] = [1.0]
        self.visit_counts: list[int] = [0]
        self.value_sums: list[float] = [0.0]
        self.children: list[list[int]] = [[]]

    def __len__(self) -> int:
        return len(self.moves)

    def add_child(self, parent: int, move: Move, prior: float) -> int:
        """Appends a node for ``move`` played from ``parent`` and returns its handle."""
        handle = len(self.moves)
        self.moves.append(move)
        self.parents.append(parent)
        self.sides.append(get_opponent(self.sides[parent]))
        self.priors.append(prior)
        self.visit_counts.append(0)
        self.value_sums.append(0.0)
        self.children.append([])
        self.children[parent].append(handle)
        return handle

    def expand(self, node: int, moves: list[Move], policy: np.ndarray, size: int) -> None:
        """
        Creates one child per candidate move with a non-zero prior.

        Priors are not renormalised after filtering; PUCT only uses them as
        relative weights.
        """
        existing = {self.moves[child] for child in self.children[node]}
        for move in moves:
            prior = float(policy[move_to_index(move, size)])
            if prior > 0 and move not in existing:
                self.add_child(node, move, prior)

    def q_value(self, node: int) -> float:
        visits = self.visit_counts[node]
        if visits == 0:
            return 0.0
        return self.value_sums[node] / visits

    def select_child(self, node: int, c_puct: float) -> int:
        """
        Picks the child maximising Q + c_puct * P * sqrt(N_parent) / (1 + N_child).

        The first child wins ties.
        """
        sqrt_visits = math.sqrt(self.visit_counts[node])
        best_score = -math.inf
        best_child = NO_PARENT

        for child in self.children[node]:
            score = self.q_value(child) + c_puct * self.priors[child] * (
                sqrt_visits / (1 + self.visit_counts[child])
            )
            if score > best_score:
                best_score = score
                best_child = child

        return best_child

    def backpropagate(self, node: int, value: float) -> list[int]:
        """
        Adds one visit and ``value`` to ``node``, then walks to the root
        negating the value at each ply.

        Returns:
            The handles visited, leaf first.
        """
        path = []
        while node != NO_PARENT:
            self.visit_counts[node] += 1
            self.value_sums[node] += value
            path.append(node)
            value = -value
            node = self.parents[node]
        return path

    def visit_distribution(self, node: int = ROOT) -> list[tuple[Move, int]]:
        """(move, visits) for every child in creation order."""
        return [(self.moves[child], self.visit_counts[child]) for child in self.children[node]]

    def best_child(self, node: int = ROOT) -> int:
        """Child with the most visits; the first child wins ties."""
        best = NO_PARENT
        max_visits = -1
        for child in self.children[node]:
            if self.visit_counts[child] > max_visits:
                max_visits = self.visit_counts[child]
                best = child
        return best


@dataclass
class SearchResult:
    """Outcome of one search."""

    best_move: Move | None  # None when the root had no children
    visit_distribution: list[tuple[Move, int]] = field(default_factory=list)
    simulations: int = 0
    elapsed: float = 0.0

    @property
    def has_move(self) -> bool:
        return self.best_move is not None

    @property
    def total_visits(self) -> int:
        return sum(visits for _, visits in self.visit_distribution)

    def policy_target(self, size: int) -> list[float]:
        """
        Visit counts normalised by the total over all root children, as a
        flat L*L vector. All zeros if no child was visited.
        """
        target = [0.0] * (size * size)
        total = self.total_visits
        if total > 0:
            for move, visits in self.visit_distribution:
                target[move_to_index(move, size)] = visits / total
        return target


class MCTS:
    """
    Evaluator-guided tree search with the PUCT selection rule.

    Search iterations are strictly sequential; run independent searches in
    parallel instead.
    """

    def __init__(self, config: SearchConfig | None = None):
        """
        Initialize the search engine.

        Args:
            config: Search configuration. Defaults to SearchConfig().
        """
        self.config = config if config is not None else SearchConfig()

    def search(
        self,
        board: Board,
        player: Player,
        evaluator: Evaluator,
        time_budget: float | None = None,
        max_simulations: int | None = None,
    ) -> SearchResult:
        """
        Search from ``board`` with ``player`` to move.

        The wall-clock budget is checked once per simulation, so the last
        simulation may overrun it slightly. At least one simulation runs
        whenever the root has children.

        Args:
            board: Position to search from (not modified).
            player: Side to move.
            evaluator: Position evaluator.
            time_budget: Seconds to search; defaults to config.time_budget.
            max_simulations: Simulation cap; defaults to config.max_simulations.

        Returns:
            SearchResult with the most visited move and root visit counts.

        Raises:
            EvaluatorUnavailableError: If the evaluator fails.
        """
        budget = self.config.time_budget if time_budget is None else time_budget
        cap = self.config.max_simulations if max_simulations is None else max_simulations
        if budget is None and cap is None:
            raise ValueError("search needs a time budget or a simulation cap")

        start = time.monotonic()
        tree = self.expand_root(board, player, evaluator)

        if not tree.children[ROOT]:
            return SearchResult(best_move=None, elapsed=time.monotonic() - start)

        simulations = 0
        while True:
            self.run_simulation(tree, board, evaluator)
            simulations += 1
            if cap is not None and simulations >= cap:
                break
            if budget is not None and time.monotonic() - start >= budget:
                break

        elapsed = time.monotonic() - start
        best = tree.best_child(ROOT)
        logger.debug(
            f"Search finished: {simulations} simulations, {len(tree)} nodes, {elapsed:.2f}s"
        )

        return SearchResult(
            best_move=tree.moves[best],
            visit_distribution=tree.visit_distribution(ROOT),
            simulations=simulations,
            elapsed=elapsed,
        )

    def expand_root(self, board: Board, player: Player, evaluator: Evaluator) -> SearchTree:
        """Creates a tree and expands its root from one evaluator query."""
        tree = SearchTree(player)
        moves = get_candidate_moves(board, self.config.candidate_radius)
        if moves:
            policy, _ = self._query(evaluator, board, player)
            tree.expand(ROOT, moves, policy, len(board))
        return tree

    def run_simulation(self, tree: SearchTree, board: Board, evaluator: Evaluator) -> list[int]:
        """
        One selection / evaluation / backpropagation pass.

        Returns:
            The backpropagation path, leaf first.
        """
        work = copy_board(board)
        node = ROOT

        # Selection
        while tree.children[node]:
            node = tree.select_child(node, self.config.c_puct)
            row, col = tree.moves[node]
            work[row][col] = tree.sides[tree.parents[node]]

        # Evaluation
        outcome = self.classify_leaf(tree, node, work)
        if isinstance(outcome, Win):
            value = 1.0 if outcome.side == tree.sides[node] else -1.0
        elif isinstance(outcome, Draw):
            value = 0.0
        else:
            policy, value = self._query(evaluator, work, tree.sides[node])
            tree.expand(
                node,
                get_candidate_moves(work, self.config.candidate_radius),
                policy,
                len(work),
            )

        # ``value`` is for the side to move at the leaf; statistics are kept
        # for the side that moved into it.
        return tree.backpropagate(node, -value)

    def classify_leaf(self, tree: SearchTree, node: int, work: Board) -> LeafOutcome:
        """Terminal check for a leaf on the working board."""
        if node != ROOT:
            mover = tree.sides[tree.parents[node]]
            if check_win(work, mover, tree.moves[node]):
                return Win(mover)
        if not get_candidate_moves(work, self.config.candidate_radius):
            return Draw()
        return NeedsEvaluation()

    def _query(
        self, evaluator: Evaluator, board: Board, player: Player
    ) -> tuple[np.ndarray, float]:
        try:
            policy, value = evaluator.evaluate(board, player)
        except Exception as e:
            raise EvaluatorUnavailableError(f"Evaluator failed: {e}") from e

        policy = np.asarray(policy, dtype=np.float64).reshape(-1)
        size = len(board)
        if policy.shape[0] != size * size:
            raise EvaluatorUnavailableError(
                f"Evaluator returned {policy.shape[0]} priors for a {size}x{size} board"
            )
        return policy, float(value)
