"""
Command Line Interface

Usage:
    gomoku-zero init --model resnet-tiny
    gomoku-zero self-play --games 100
    gomoku-zero train --once
    gomoku-zero evaluate --once
    gomoku-zero pipeline --config pipeline.yaml
"""

import argparse
import logging
import sys
import tempfile
import threading
from pathlib import Path

from .config import PipelineConfig, resolve_device
from .evaluation import EvaluationService
from .exceptions import GomokuZeroError
from .models import create_model, list_models, save_model
from .pipeline.launcher import PipelineLauncher
from .search import UniformEvaluator
from .self_play import ReplayBuffer, SelfPlayManager
from .storage import ChampionStore
from .training import TrainingService

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_config(args: argparse.Namespace) -> PipelineConfig:
    """Reads the YAML configuration (if any) and applies command-line overrides."""
    if args.config and Path(args.config).exists():
        config = PipelineConfig.from_yaml(args.config)
    else:
        config = PipelineConfig()

    if args.root is not None:
        config.paths.root = args.root
    if args.board_size is not None:
        config.self_play.board_size = args.board_size
    if args.device is not None:
        config.training.device = resolve_device(args.device)

    return config


def champion_store(config: PipelineConfig) -> ChampionStore:
    paths = config.paths
    return ChampionStore(paths.resolve("champion"), paths.resolve("champion_archive"))


def run_until_interrupted(target) -> None:
    """Runs ``target(stop_event)`` and sets the event on Ctrl-C."""
    stop_event = threading.Event()
    thread = threading.Thread(target=target, args=(stop_event,), daemon=True)
    thread.start()
    try:
        while thread.is_alive():
            thread.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
        stop_event.set()
        thread.join()


# --- Commands ---


def cmd_init(args: argparse.Namespace, config: PipelineConfig) -> int:
    """Write a generation-0 champion."""
    champion = champion_store(config)
    if champion.exists() and not args.force:
        logger.error(f"Champion already exists at {champion.path} (use --force to replace it)")
        return 1

    model_name = args.model or config.training.model
    model = create_model(model_name, config.board_size)
    logger.info(f"Created {model.architecture_string()}")

    with tempfile.TemporaryDirectory() as tmp_dir:
        artifact = save_model(
            model,
            Path(tmp_dir) / "generation_0.pt",
            metadata={"generation": 0, "model": model_name},
        )
        champion.install(artifact)

    if args.save_config:
        config.to_yaml(args.save_config)
        logger.info(f"Configuration written to {args.save_config}")

    logger.info(f"Generation-0 champion written to {champion.path}")
    return 0


def cmd_self_play(args: argparse.Namespace, config: PipelineConfig) -> int:
    """Generate self-play games into the replay buffer."""
    if args.workers is not None:
        config.self_play.num_workers = args.workers

    paths = config.paths
    replay_buffer = ReplayBuffer(paths.resolve("replay_buffer"), paths.resolve("replay_archive"))
    manager = SelfPlayManager(
        config=config.self_play,
        replay_buffer=replay_buffer,
        champion=champion_store(config),
        evaluator=UniformEvaluator() if args.uniform else None,
        device=config.training.device,
        seed=args.seed,
    )

    if args.games is None:
        run_until_interrupted(manager.run)
        return 0

    games = manager.generate_batch(args.games, show_progress=not args.quiet)
    for game in games:
        manager.add_unit(game)
    written = manager.flush()

    stats = manager.get_statistics(games)
    logger.info(
        f"Wrote {written} games ({stats['total_positions']} positions, "
        f"average length {stats['average_game_length']:.1f}, results {stats['results']})"
    )
    return 0 if written == len(games) else 1


def cmd_train(args: argparse.Namespace, config: PipelineConfig) -> int:
    """Train on pending games and write checkpoints."""
    if args.min_games is not None:
        config.training.min_games_to_train = args.min_games

    service = TrainingService(config, show_progress=not args.quiet)
    if args.once:
        checkpoint = service.run_once()
        return 0 if checkpoint is not None else 1

    run_until_interrupted(service.run)
    return 0


def cmd_evaluate(args: argparse.Namespace, config: PipelineConfig) -> int:
    """Evaluate pending checkpoints against the champion."""
    if args.games is not None:
        if args.games <= 0 or args.games % 2 != 0:
            raise ValueError(f"--games must be a positive even number, got {args.games}")
        config.evaluation.num_games = args.games

    service = EvaluationService(config, show_progress=not args.quiet)
    if args.once:
        record = service.run_once()
        if record is None:
            logger.info("No checkpoint to evaluate")
            return 1
        logger.info(f"{record.checkpoint}: {record.decision.value} ({record.reason})")
        return 0

    run_until_interrupted(service.run)
    return 0


def cmd_pipeline(args: argparse.Namespace, config: PipelineConfig) -> int:
    """Run self-play, training and evaluation together."""
    launcher = PipelineLauncher.from_config(config, show_progress=False)
    launcher.run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=str, help="Path to YAML configuration file")
    common.add_argument(
        "--root", type=str, default=None, help="Root directory for all storage paths"
    )
    common.add_argument("--board-size", type=int, default=None, help="Board side length")
    common.add_argument(
        "--device", type=str, default=None, help="Torch device (auto, cpu, cuda, mps)"
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    common.add_argument("--quiet", action="store_true", help="Suppress progress bars")

    parser = argparse.ArgumentParser(
        prog="gomoku-zero",
        description="Self-play reinforcement learning pipeline for Gomoku",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Pipeline command")

    init_parser = subparsers.add_parser(
        "init",
        parents=[common],
        help="Create a generation-0 champion",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    init_parser.add_argument(
        "--model",
        type=str,
        default=None,
        choices=list_models(),
        help="Network architecture (default: training.model from the configuration)",
    )
    init_parser.add_argument("--force", action="store_true", help="Replace an existing champion")
    init_parser.add_argument(
        "--save-config", type=str, help="Also write the effective configuration here"
    )
    init_parser.set_defaults(func=cmd_init)

    self_play_parser = subparsers.add_parser(
        "self-play",
        parents=[common],
        help="Generate self-play games",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    self_play_parser.add_argument(
        "--games",
        type=int,
        default=None,
        help="Number of games to generate (default: run until interrupted)",
    )
    self_play_parser.add_argument(
        "--workers", type=int, default=None, help="Number of parallel workers"
    )
    self_play_parser.add_argument(
        "--uniform",
        action="store_true",
        help="Use a uniform evaluator instead of the champion",
    )
    self_play_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    self_play_parser.set_defaults(func=cmd_self_play)

    train_parser = subparsers.add_parser(
        "train",
        parents=[common],
        help="Train on pending games",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    train_parser.add_argument("--once", action="store_true", help="Train once and exit")
    train_parser.add_argument(
        "--min-games", type=int, default=None, help="Games required before training"
    )
    train_parser.set_defaults(func=cmd_train)

    evaluate_parser = subparsers.add_parser(
        "evaluate",
        parents=[common],
        help="Evaluate checkpoints against the champion",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    evaluate_parser.add_argument(
        "--once", action="store_true", help="Evaluate one checkpoint and exit"
    )
    evaluate_parser.add_argument("--games", type=int, default=None, help="Evaluation games (even)")
    evaluate_parser.set_defaults(func=cmd_evaluate)

    pipeline_parser = subparsers.add_parser(
        "pipeline",
        parents=[common],
        help="Run self-play, training and evaluation together",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    pipeline_parser.set_defaults(func=cmd_pipeline)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    try:
        config = load_config(args)
        return args.func(args, config)
    except (GomokuZeroError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
