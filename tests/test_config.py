"""Tests for pipeline configuration."""

from pathlib import Path

import pytest

from gomoku_zero.cli import build_parser, load_config
from gomoku_zero.config import (
    EvaluationConfig,
    PathsConfig,
    PipelineConfig,
    SearchConfig,
    SelfPlayConfig,
    TrainingConfig,
    resolve_device,
)


class TestDefaults:
    """Defaults match the documented pipeline constants."""

    def test_search(self):
        config = SearchConfig()
        assert config.c_puct == 1.5
        assert config.time_budget == 2.0
        assert config.max_simulations is None

    def test_self_play(self):
        config = SelfPlayConfig()
        assert config.board_size == 19
        assert config.exploration_moves == 15
        assert config.reload_every == 5

    def test_evaluation(self):
        config = EvaluationConfig()
        assert config.num_games == 50
        assert config.win_threshold == 0.55
        assert config.search.time_budget == 1.0

    def test_training_device_resolved(self):
        assert TrainingConfig().device in ("cpu", "cuda", "mps")


class TestValidation:
    def test_search_needs_a_limit(self):
        with pytest.raises(ValueError):
            SearchConfig(time_budget=None, max_simulations=None)

    def test_negative_c_puct(self):
        with pytest.raises(ValueError):
            SearchConfig(c_puct=-1.0)

    @pytest.mark.parametrize("num_games", [0, 7, -2])
    def test_evaluation_games_must_be_even(self, num_games):
        with pytest.raises(ValueError):
            EvaluationConfig(num_games=num_games)

    def test_threshold_range(self):
        with pytest.raises(ValueError):
            EvaluationConfig(win_threshold=1.5)

    @pytest.mark.parametrize("name", ["min_games_to_train", "chunk_size", "batch_size", "epochs"])
    def test_training_sizes_positive(self, name):
        with pytest.raises(ValueError, match=name):
            TrainingConfig(device="cpu", **{name: 0})


class TestResolveDevice:
    def test_auto(self):
        assert resolve_device("auto") in ("cpu", "cuda", "mps")

    def test_explicit_device_kept(self):
        assert resolve_device("cpu") == "cpu"
        assert resolve_device("cuda:1") == "cuda:1"

    def test_command_line_auto_resolved(self, tmp_path):
        args = build_parser().parse_args(
            ["train", "--once", "--root", str(tmp_path), "--device", "auto"]
        )
        assert load_config(args).training.device in ("cpu", "cuda", "mps")


class TestPaths:
    def test_relative_paths_use_root(self, tmp_path):
        paths = PathsConfig(root=str(tmp_path))
        assert paths.resolve("champion") == tmp_path / "model_main" / "champion.pt"

    def test_absolute_paths_kept(self, tmp_path):
        paths = PathsConfig(root="/elsewhere", replay_buffer=str(tmp_path / "games"))
        assert paths.resolve("replay_buffer") == tmp_path / "games"


class TestPipelineConfig:
    """Test loading and saving the combined configuration."""

    def test_from_partial_dict(self):
        config = PipelineConfig.from_dict(
            {
                "self_play": {
                    "board_size": 9,
                    "search": {"time_budget": None, "max_simulations": 50},
                },
                "evaluation": {"num_games": 10},
            }
        )
        assert config.board_size == 9
        assert config.self_play.search.max_simulations == 50
        assert config.evaluation.num_games == 10
        assert config.training.chunk_size == 8192

    def test_empty_dict(self):
        assert PipelineConfig.from_dict({}).board_size == 19

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            PipelineConfig.from_dict({"serving": {}})

    def test_unknown_field(self):
        with pytest.raises(TypeError):
            PipelineConfig.from_dict({"training": {"learning_rate_schedule": "cosine"}})

    def test_yaml_round_trip(self, tmp_path):
        config = PipelineConfig.from_dict(
            {
                "self_play": {"board_size": 7, "num_workers": 2},
                "training": {"device": "cpu", "epochs": 2},
                "evaluation": {"num_games": 4, "search": {"time_budget": 0.5}},
                "paths": {"root": str(tmp_path)},
            }
        )
        path = tmp_path / "pipeline.yaml"
        config.to_yaml(path)

        loaded = PipelineConfig.from_yaml(path)
        assert loaded == config
        assert isinstance(loaded.evaluation.search, SearchConfig)

    def test_empty_yaml_file(self, tmp_path):
        path = Path(tmp_path) / "empty.yaml"
        path.write_text("")
        assert PipelineConfig.from_yaml(path) == PipelineConfig.from_dict({})
