"""Tests for replay units, validation and the augmented chunk dataset."""

import json

import numpy as np
import pytest
import torch

from gomoku_zero.data import (
    BLACK,
    NUM_PLANES,
    WHITE,
    AugmentedChunkDataset,
    EpisodeSample,
    ReplayUnit,
    create_board,
    iter_chunks,
    load_replay_unit,
    load_samples,
    move_to_index,
    save_replay_unit,
    validate_board,
    validate_replay_unit,
    validate_sample,
)
from gomoku_zero.exceptions import MalformedSampleError


def make_sample(size: int = 5, move=(2, 2), to_move=BLACK, value=1.0) -> EpisodeSample:
    board = create_board(size)
    board[0][0] = WHITE if to_move == BLACK else BLACK
    policy = [0.0] * (size * size)
    policy[move_to_index(move, size)] = 1.0
    return EpisodeSample(board=board, to_move=to_move, policy_target=policy, value=value)


def make_unit(game_id: str = "game-1", count: int = 3, size: int = 5) -> ReplayUnit:
    samples = [make_sample(size, move=(1, i), value=1.0 if i % 2 else -1.0) for i in range(count)]
    return ReplayUnit(game_id=game_id, samples=samples, metadata={"winner": BLACK})


class TestValidation:
    """Test board, sample and unit validation."""

    def test_valid_board(self):
        result = validate_board(create_board(5))
        assert result
        assert result.errors == []

    def test_ragged_board(self):
        board = create_board(5)
        board[2] = [None] * 4
        assert not validate_board(board)

    def test_wrong_size(self):
        assert not validate_board(create_board(5), size=7)

    def test_invalid_cell(self):
        board = create_board(5)
        board[1][1] = 3
        result = validate_board(board)
        assert not result
        assert "Invalid cell value" in result.errors[0]

    def test_unbalanced_stones_warn(self):
        board = create_board(5)
        board[0][0] = board[0][1] = board[0][2] = BLACK
        result = validate_board(board)
        assert result
        assert result.warnings

    def test_valid_sample(self):
        assert validate_sample(make_sample().to_dict())

    def test_sample_missing_field(self):
        data = make_sample().to_dict()
        del data["policy"]
        result = validate_sample(data)
        assert not result
        assert "Missing field: policy" in result.errors

    def test_sample_policy_length(self):
        data = make_sample().to_dict()
        data["policy"] = [1.0]
        assert not validate_sample(data)

    def test_sample_bad_value(self):
        data = make_sample().to_dict()
        data["value"] = 0.5
        assert not validate_sample(data)

    def test_replay_unit(self):
        assert validate_replay_unit(make_unit().to_dict())
        assert not validate_replay_unit({"samples": []})

    def test_replay_unit_mixed_sizes(self):
        data = make_unit(size=5).to_dict()
        data["samples"].append(make_sample(size=7).to_dict())
        assert not validate_replay_unit(data)


class TestReplayFiles:
    """Test replay unit persistence."""

    def test_save_and_load(self, tmp_path):
        unit = make_unit()
        path = save_replay_unit(unit, tmp_path / "unit.json")

        loaded = load_replay_unit(path)
        assert loaded.game_id == unit.game_id
        assert loaded.samples == unit.samples
        assert loaded.metadata == {"winner": BLACK}

    def test_no_temporary_file_left(self, tmp_path):
        save_replay_unit(make_unit(), tmp_path / "unit.json")
        assert [p.name for p in tmp_path.iterdir()] == ["unit.json"]

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(MalformedSampleError):
            load_replay_unit(path)

    def test_board_size_mismatch(self, tmp_path):
        path = save_replay_unit(make_unit(size=5), tmp_path / "unit.json")
        with pytest.raises(MalformedSampleError):
            load_replay_unit(path, board_size=7)

    def test_load_samples_skips_malformed(self, tmp_path):
        good = save_replay_unit(make_unit(count=4), tmp_path / "good.json")
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"game_id": "x", "samples": [{"board": []}]}))

        samples, skipped = load_samples([good, bad])
        assert len(samples) == 4
        assert skipped == [bad]


class TestIterChunks:
    def test_chunk_sizes(self):
        samples = [make_sample(value=0.0) for _ in range(10)]
        chunks = list(iter_chunks(samples, 4, shuffle=False))
        assert [len(c) for c in chunks] == [4, 4, 2]

    def test_shuffle_keeps_every_sample(self):
        samples = [make_sample(move=(i // 5, i % 5)) for i in range(25)]
        chunks = list(iter_chunks(samples, 10, seed=0))
        flattened = [s for chunk in chunks for s in chunk]
        assert len(flattened) == 25
        assert all(s in flattened for s in samples)

    def test_empty(self):
        assert list(iter_chunks([], 8)) == []

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            list(iter_chunks([make_sample()], 0))


class TestAugmentedChunkDataset:
    """Test the symmetry-expanded dataset."""

    def test_length_with_augmentation(self):
        dataset = AugmentedChunkDataset([make_sample(), make_sample(move=(0, 3))])
        assert len(dataset) == 16

    def test_length_without_augmentation(self):
        dataset = AugmentedChunkDataset([make_sample()], augment=False)
        assert len(dataset) == 1

    def test_item_shapes(self):
        dataset = AugmentedChunkDataset([make_sample(size=5)])
        item = dataset[3]

        assert set(item) == {"board", "policy", "value"}
        assert item["board"].shape == (NUM_PLANES, 5, 5)
        assert item["policy"].shape == (25,)
        assert item["value"].dtype == torch.float32

    def test_value_shared_by_variants(self):
        dataset = AugmentedChunkDataset([make_sample(value=-1.0)])
        assert all(dataset[i]["value"].item() == -1.0 for i in range(8))

    def test_policy_mass_preserved(self):
        dataset = AugmentedChunkDataset([make_sample(move=(0, 1))])
        for i in range(len(dataset)):
            assert dataset[i]["policy"].sum().item() == pytest.approx(1.0)

    def test_policy_follows_stones(self):
        """The target cell and the stone move together under each symmetry."""
        size = 5
        board = create_board(size)
        board[0][1] = WHITE
        policy = [0.0] * (size * size)
        policy[move_to_index((0, 1), size)] = 1.0
        sample = EpisodeSample(board=board, to_move=BLACK, policy_target=policy, value=0.0)

        dataset = AugmentedChunkDataset([sample])
        for i in range(len(dataset)):
            item = dataset[i]
            target = int(np.argmax(item["policy"].numpy()))
            r, c = divmod(target, size)
            # White is the opponent of the side to move: plane 1
            assert item["board"][1, r, c].item() == 1.0
