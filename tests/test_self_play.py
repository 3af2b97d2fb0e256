"""Tests for self-play workers, the replay buffer and the self-play manager."""

import threading
import time

import numpy as np
import pytest

from gomoku_zero.config import SearchConfig, SelfPlayConfig
from gomoku_zero.data import BLACK, WHITE, ReplayUnit, load_replay_unit
from gomoku_zero.search import RegionEvaluator, UniformEvaluator
from gomoku_zero.self_play import ReplayBuffer, SelfPlayManager, SelfPlayWorker
from gomoku_zero.storage import ChampionStore

SIZE = 5
FAST_SEARCH = SearchConfig(time_budget=None, max_simulations=8)


def make_worker(seed: int = 0, exploration_moves: int = 4) -> SelfPlayWorker:
    return SelfPlayWorker(
        search_config=FAST_SEARCH,
        board_size=SIZE,
        exploration_moves=exploration_moves,
        rng=np.random.default_rng(seed),
    )


def make_config(**overrides) -> SelfPlayConfig:
    options = dict(
        num_workers=2,
        board_size=SIZE,
        exploration_moves=4,
        flush_interval=0.05,
        reload_every=2,
        restart_backoff=0.01,
        model_wait=0.01,
        search=FAST_SEARCH,
    )
    options.update(overrides)
    return SelfPlayConfig(**options)


class CountingChampion:
    """Stands in for ChampionStore and counts loads."""

    def __init__(self):
        self.loads = 0

    def load(self, device="cpu"):
        self.loads += 1
        return UniformEvaluator()


class FlakyEvaluator:
    """Fails on its first query, then behaves like UniformEvaluator."""

    def __init__(self):
        self.failed = False

    def evaluate(self, board, player):
        if not self.failed:
            self.failed = True
            raise RuntimeError("device lost")
        return UniformEvaluator().evaluate(board, player)


class LaneEvaluator:
    """Black may only play the top row and white only the bottom row, so black wins."""

    def __init__(self):
        self.lanes = {
            BLACK: RegionEvaluator([(0, c) for c in range(SIZE)]),
            WHITE: RegionEvaluator([(SIZE - 1, c) for c in range(SIZE)]),
        }

    def evaluate(self, board, player):
        return self.lanes[player].evaluate(board, player)


class FailingBuffer:
    """Replay buffer whose writes start failing after ``ok_writes`` games."""

    directory = "memory"

    def __init__(self, ok_writes: int, error: Exception | None = None):
        self.ok_writes = ok_writes
        self.error = error if error is not None else OSError("disk full")
        self.written: list[ReplayUnit] = []

    def write_unit(self, unit):
        if len(self.written) >= self.ok_writes:
            raise self.error
        self.written.append(unit)


class TestSelfPlayWorker:
    """Test single-game generation."""

    def test_episode_length_bounded(self):
        samples = make_worker().play_episode(UniformEvaluator())
        assert 0 < len(samples) <= SIZE * SIZE

    def test_sides_alternate(self):
        samples = make_worker().play_episode(UniformEvaluator())
        sides = [s.to_move for s in samples]
        assert sides[0] == BLACK
        assert all(a != b for a, b in zip(sides, sides[1:]))

    def test_values_follow_outcome(self):
        unit = make_worker().play_game(LaneEvaluator())

        assert unit.metadata["winner"] == BLACK
        assert unit.metadata["result"] == "black_win"
        assert len(unit.samples) == 2 * SIZE - 1
        for sample in unit.samples:
            assert sample.value == (1.0 if sample.to_move == BLACK else -1.0)

    def test_no_move_ends_in_draw(self):
        """When the search has nothing to play the game is drawn on the spot."""
        unit = make_worker().play_game(RegionEvaluator([(2, 2)]))

        assert len(unit.samples) == 1
        assert unit.metadata["winner"] is None
        assert unit.metadata["result"] == "draw"
        assert unit.samples[0].value == 0.0

    def test_winner_moved_last(self):
        unit = make_worker(seed=5).play_game(UniformEvaluator())
        if unit.metadata["winner"] is not None:
            assert unit.samples[-1].to_move == unit.metadata["winner"]

    def test_policy_targets_normalised(self):
        samples = make_worker().play_episode(UniformEvaluator())
        for sample in samples:
            assert len(sample.policy_target) == SIZE * SIZE
            assert sum(sample.policy_target) == pytest.approx(1.0)

    def test_policy_only_on_empty_cells(self):
        samples = make_worker().play_episode(UniformEvaluator())
        for sample in samples:
            for index, p in enumerate(sample.policy_target):
                if p > 0:
                    r, c = divmod(index, SIZE)
                    assert sample.board[r][c] is None

    def test_boards_are_snapshots(self):
        samples = make_worker().play_episode(UniformEvaluator())
        stones = [sum(cell is not None for row in s.board for cell in row) for s in samples]
        assert stones == list(range(len(samples)))

    def test_metadata(self):
        unit = make_worker().play_game(UniformEvaluator())
        assert unit.metadata["board_size"] == SIZE
        assert unit.metadata["total_moves"] == len(unit.samples)
        assert unit.metadata["result"] in ("black_win", "white_win", "draw")
        assert unit.metadata["winner"] in (BLACK, WHITE, None)

    def test_same_seed_same_game(self):
        first = make_worker(seed=11).play_episode(UniformEvaluator())
        second = make_worker(seed=11).play_episode(UniformEvaluator())
        assert first == second

    def test_greedy_without_exploration(self):
        """With no exploration plies, games are deterministic regardless of seed."""
        first = make_worker(seed=1, exploration_moves=0).play_episode(UniformEvaluator())
        second = make_worker(seed=2, exploration_moves=0).play_episode(UniformEvaluator())
        assert first == second

    def test_opening_sampled_from_visits(self):
        openings = {
            str(make_worker(seed=seed).play_episode(UniformEvaluator())[1].board)
            for seed in range(8)
        }
        assert len(openings) > 1

    def test_exploration_then_best_move(self, monkeypatch):
        worker = make_worker(seed=4, exploration_moves=2)
        choose = worker._choose_move
        choices = []

        def recording(result, policy, ply):
            move = choose(result, policy, ply)
            choices.append((ply, move, result))
            return move

        monkeypatch.setattr(worker, "_choose_move", recording)
        worker.play_episode(UniformEvaluator())

        assert len(choices) > 2
        for ply, move, result in choices:
            if ply < 2:
                assert dict(result.visit_distribution)[move] > 0
            else:
                assert move == result.best_move

    def test_stop_event_abandons_game(self):
        stop = threading.Event()
        stop.set()
        assert make_worker().play_game(UniformEvaluator(), stop) is None

    def test_play_games(self):
        units = make_worker().play_games(UniformEvaluator(), 2)
        assert len(units) == 2
        assert units[0].game_id != units[1].game_id


class TestReplayBuffer:
    """Test the replay file queue."""

    @pytest.fixture
    def buffer(self, tmp_path):
        return ReplayBuffer(tmp_path / "replay", tmp_path / "replay_archive")

    def test_write_and_claim(self, buffer):
        unit = make_worker().play_game(UniformEvaluator())
        path = buffer.write_unit(unit)

        assert path.name.startswith("game_")
        assert load_replay_unit(path).game_id == unit.game_id
        assert len(buffer) == 1

        claimed = buffer.claim_all()
        assert len(claimed) == 1
        assert buffer.count() == 0

        samples, skipped = buffer.load(claimed, board_size=SIZE)
        assert len(samples) == len(unit.samples)
        assert skipped == []

    def test_archive(self, buffer):
        buffer.write_unit(make_worker().play_game(UniformEvaluator()))
        archived = buffer.archive(buffer.claim_all())

        assert len(archived) == 1
        assert archived[0].parent == buffer.queue.archive_dir
        assert buffer.count() == 0

    def test_recover(self, buffer, tmp_path):
        buffer.write_unit(make_worker().play_game(UniformEvaluator()))
        buffer.claim_all()
        buffer.close()

        restarted = ReplayBuffer(tmp_path / "replay", tmp_path / "replay_archive")
        assert restarted.recover() == 1
        assert restarted.count() == 1

    def test_live_claims_not_recovered(self, buffer, tmp_path):
        buffer.write_unit(make_worker().play_game(UniformEvaluator()))
        buffer.claim_all()

        other = ReplayBuffer(tmp_path / "replay", tmp_path / "replay_archive")
        assert other.recover() == 0
        assert other.count() == 0

    def test_statistics(self, buffer):
        buffer.write_unit(make_worker().play_game(UniformEvaluator()))
        stats = buffer.get_statistics()
        assert stats["pending"] == 1
        assert stats["written"] == 1


class TestSelfPlayManager:
    """Test the worker pool."""

    def test_requires_evaluator_source(self):
        with pytest.raises(ValueError):
            SelfPlayManager(make_config())

    def test_generate_batch(self):
        manager = SelfPlayManager(make_config(), evaluator=UniformEvaluator(), seed=0)
        units = manager.generate_batch(3, show_progress=False)

        assert len(units) == 3
        stats = manager.get_statistics(units)
        assert stats["total_games"] == 3
        assert sum(stats["results"].values()) == 3

    def test_flush_writes_and_clears(self, tmp_path):
        buffer = ReplayBuffer(tmp_path / "replay", tmp_path / "archive")
        manager = SelfPlayManager(make_config(), buffer, evaluator=UniformEvaluator())
        for unit in make_worker().play_games(UniformEvaluator(), 2):
            manager.add_unit(unit)

        assert manager.flush() == 2
        assert manager.pending_count() == 0
        assert buffer.count() == 2

    def test_flush_keeps_unwritten_games(self):
        """A failed write leaves that game and every later one batched."""
        buffer = FailingBuffer(ok_writes=1)
        manager = SelfPlayManager(make_config(), buffer, evaluator=UniformEvaluator())
        units = make_worker().play_games(UniformEvaluator(), 3)
        for unit in units:
            manager.add_unit(unit)

        assert manager.flush() == 1
        assert manager.pending_count() == 2
        assert manager.get_run_statistics()["flush_failures"] == 1

        buffer.ok_writes = 10
        assert manager.flush() == 2
        assert [u.game_id for u in buffer.written] == [u.game_id for u in units]

    def test_flush_survives_non_os_errors(self):
        buffer = FailingBuffer(ok_writes=0, error=TypeError("not serialisable"))
        manager = SelfPlayManager(make_config(), buffer, evaluator=UniformEvaluator())
        manager.add_unit(make_worker().play_game(UniformEvaluator()))

        assert manager.flush() == 0
        assert manager.pending_count() == 1

        buffer.ok_writes = 1
        assert manager.flush() == 1

    def test_run_keeps_playing_while_flushes_fail(self):
        buffer = FailingBuffer(ok_writes=0, error=RuntimeError("encoder bug"))
        manager = SelfPlayManager(make_config(), buffer, evaluator=UniformEvaluator(), seed=0)
        stop = threading.Event()

        thread = threading.Thread(target=manager.run, args=(stop,))
        thread.start()
        deadline = time.monotonic() + 10
        while time.monotonic() < deadline:
            stats = manager.get_run_statistics()
            if stats["flush_failures"] >= 2 and stats["games"] >= 2:
                break
            time.sleep(0.02)

        buffer.ok_writes = 1000
        stop.set()
        thread.join(timeout=10)

        stats = manager.get_run_statistics()
        assert not thread.is_alive()
        assert stats["flush_failures"] >= 2
        assert manager.pending_count() == 0
        assert len(buffer.written) == stats["games"]

    def test_flush_without_buffer(self):
        manager = SelfPlayManager(make_config(), evaluator=UniformEvaluator())
        with pytest.raises(ValueError):
            manager.flush()

    def test_worker_reloads_champion(self):
        champion = CountingChampion()
        manager = SelfPlayManager(make_config(reload_every=2), champion=champion)
        stop = threading.Event()
        original_add = manager.add_unit

        def add_and_maybe_stop(unit):
            original_add(unit)
            if manager.pending_count() >= 4:
                stop.set()

        manager.add_unit = add_and_maybe_stop
        manager._worker_loop(0, stop)

        assert manager.pending_count() == 4
        assert champion.loads == 2

    def test_crashed_worker_restarts(self):
        manager = SelfPlayManager(make_config(), evaluator=FlakyEvaluator())
        stop = threading.Event()
        original_add = manager.add_unit

        def add_and_stop(unit):
            original_add(unit)
            stop.set()

        manager.add_unit = add_and_stop
        manager._supervise(0, stop)

        stats = manager.get_run_statistics()
        assert stats["restarts"] == 1
        assert stats["games"] == 1

    def test_waits_for_missing_champion(self, tmp_path):
        champion = ChampionStore(tmp_path / "champion.pt", tmp_path / "archive")
        manager = SelfPlayManager(make_config(num_workers=1), champion=champion)
        stop = threading.Event()

        thread = threading.Thread(target=manager._worker_loop, args=(0, stop))
        thread.start()
        time.sleep(0.1)
        stop.set()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert manager.get_run_statistics()["games"] == 0

    def test_run_flushes_until_stopped(self, tmp_path):
        buffer = ReplayBuffer(tmp_path / "replay", tmp_path / "archive")
        manager = SelfPlayManager(make_config(), buffer, evaluator=UniformEvaluator(), seed=0)
        stop = threading.Event()

        thread = threading.Thread(target=manager.run, args=(stop,))
        thread.start()
        deadline = time.monotonic() + 10
        while buffer.count() == 0 and time.monotonic() < deadline:
            time.sleep(0.05)
        stop.set()
        thread.join(timeout=10)

        assert not thread.is_alive()
        assert buffer.count() > 0
        assert manager.pending_count() == 0
        assert buffer.count() == manager.get_run_statistics()["flushed"]
