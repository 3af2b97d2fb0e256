"""
Promotion Gate

Decides whether a freshly trained checkpoint replaces the champion.

Each checkpoint moves through Pending -> Evaluating -> Promoted | Rejected
-> Archived. With no champion the checkpoint is promoted without playing;
otherwise it must win more than ``win_threshold`` of an evaluation match.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..config import EvaluationConfig, PipelineConfig
from ..exceptions import EvaluatorUnavailableError
from ..models import NetworkEvaluator
from ..pipeline.service import ServiceLoop
from ..storage import CHECKPOINT_PATTERN, ChampionStore, DirectoryQueue
from .arena import Arena, MatchResult

logger = logging.getLogger(__name__)


class EvaluationState(str, Enum):
    """Lifecycle of a checkpoint under evaluation."""

    PENDING = "pending"
    EVALUATING = "evaluating"
    PROMOTED = "promoted"
    REJECTED = "rejected"
    ARCHIVED = "archived"


@dataclass
class EvaluationRecord:
    """What happened to one checkpoint."""

    checkpoint: str
    state: EvaluationState = EvaluationState.PENDING
    decision: EvaluationState | None = None  # PROMOTED or REJECTED
    reason: str = ""
    match: MatchResult | None = None
    archived_to: str | None = None
    previous_champion: str | None = None  # Archive path of the replaced champion
    history: list[EvaluationState] = field(default_factory=lambda: [EvaluationState.PENDING])

    @property
    def promoted(self) -> bool:
        return self.decision == EvaluationState.PROMOTED

    def transition(self, state: EvaluationState) -> None:
        self.state = state
        self.history.append(state)
        if state in (EvaluationState.PROMOTED, EvaluationState.REJECTED):
            self.decision = state

    def to_dict(self) -> dict:
        """Converts to JSON-serializable dictionary."""
        return {
            "checkpoint": self.checkpoint,
            "state": self.state.value,
            "decision": self.decision.value if self.decision else None,
            "reason": self.reason,
            "match": self.match.to_dict() if self.match else None,
            "archived_to": self.archived_to,
            "previous_champion": self.previous_champion,
            "history": [state.value for state in self.history],
        }


def should_promote(result: MatchResult, threshold: float) -> bool:
    """A challenger is promoted only with a win rate strictly above the threshold."""
    return result.win_rate > threshold


class PromotionGate:
    """
    Evaluates checkpoints against the champion and swaps the champion when a
    challenger is strong enough.
    """

    def __init__(
        self,
        champion: ChampionStore,
        checkpoints: DirectoryQueue,
        arena: Arena,
        config: EvaluationConfig | None = None,
        device: str = "cpu",
    ):
        """
        Args:
            champion: The champion slot.
            checkpoints: Queue the checkpoints come from; evaluated ones are
                archived through it.
            arena: Plays the evaluation matches.
            config: Number of games and win threshold.
            device: Torch device for loading networks.
        """
        self.champion = champion
        self.checkpoints = checkpoints
        self.arena = arena
        self.config = config if config is not None else EvaluationConfig()
        self.device = device

    def load_challenger(self, checkpoint: Path) -> NetworkEvaluator:
        return NetworkEvaluator.from_file(checkpoint, device=self.device)

    def load_champion(self) -> NetworkEvaluator:
        return self.champion.load(self.device)

    def evaluate(self, checkpoint: str | Path) -> EvaluationRecord:
        """
        Run one checkpoint through the gate and archive it.

        Returns:
            The completed record, in state ARCHIVED.

        Raises:
            EvaluatorUnavailableError: If a champion exists but cannot be loaded.
                The checkpoint is left unarchived.
            PromotionError: If installing the new champion failed. The old
                champion is intact and the checkpoint is left unarchived.
        """
        checkpoint = Path(checkpoint)
        record = EvaluationRecord(checkpoint=checkpoint.name)
        record.transition(EvaluationState.EVALUATING)
        logger.info(f"Evaluating {checkpoint.name}")

        try:
            challenger = self.load_challenger(checkpoint)
        except EvaluatorUnavailableError as e:
            record.reason = f"checkpoint could not be loaded: {e}"
            record.transition(EvaluationState.REJECTED)
            logger.warning(f"Rejected {checkpoint.name}: {record.reason}")
        else:
            self._decide(checkpoint, challenger, record)

        record.archived_to = str(self.checkpoints.archive(checkpoint))
        record.transition(EvaluationState.ARCHIVED)
        return record

    def _decide(
        self,
        checkpoint: Path,
        challenger: NetworkEvaluator,
        record: EvaluationRecord,
    ) -> None:
        if not self.champion.exists():
            record.reason = "no champion yet"
            self._promote(checkpoint, record)
            return

        champion = self.load_champion()
        result = self.arena.run_match(challenger, champion, self.config.num_games)
        record.match = result

        if should_promote(result, self.config.win_threshold):
            record.reason = (
                f"win rate {result.win_rate:.2f} > {self.config.win_threshold:.2f}"
            )
            self._promote(checkpoint, record)
        else:
            record.reason = (
                f"win rate {result.win_rate:.2f} <= {self.config.win_threshold:.2f}"
            )
            record.transition(EvaluationState.REJECTED)
            logger.info(f"Rejected {checkpoint.name}: {record.reason}")

    def _promote(self, checkpoint: Path, record: EvaluationRecord) -> None:
        archived = self.champion.install(checkpoint)
        record.previous_champion = str(archived) if archived else None
        record.transition(EvaluationState.PROMOTED)
        logger.info(f"Promoted {checkpoint.name} to champion: {record.reason}")


class EvaluationService(ServiceLoop):
    """
    Evaluates pending checkpoints one at a time, oldest first.
    """

    name = "evaluator"

    def __init__(self, config: PipelineConfig, show_progress: bool = False):
        super().__init__(config.evaluation.poll_interval)
        self.config = config

        paths = config.paths
        self.checkpoints = DirectoryQueue(
            paths.resolve("checkpoints"),
            paths.resolve("checkpoint_archive"),
            pattern=CHECKPOINT_PATTERN,
        )
        self.champion = ChampionStore(paths.resolve("champion"), paths.resolve("champion_archive"))
        arena = Arena(
            search_config=config.evaluation.search,
            board_size=config.board_size,
            num_workers=config.evaluation.num_workers,
            show_progress=show_progress,
        )
        self.gate = PromotionGate(
            self.champion,
            self.checkpoints,
            arena,
            config.evaluation,
            device=config.training.device,
        )

        # Checkpoints claimed by an evaluator that died mid-evaluation
        self.checkpoints.requeue_processing()

    def run_once(self) -> EvaluationRecord | None:
        """
        Claim and evaluate the oldest pending checkpoint.

        On failure the checkpoint is returned to the queue and the error
        re-raised.

        Returns:
            The evaluation record, or None if no checkpoint was waiting.
        """
        checkpoint = self.checkpoints.claim_oldest()
        if checkpoint is None:
            logger.debug("No checkpoints waiting for evaluation")
            return None

        try:
            return self.gate.evaluate(checkpoint)
        except Exception:
            if checkpoint.exists():
                self.checkpoints.release(checkpoint)
            raise
