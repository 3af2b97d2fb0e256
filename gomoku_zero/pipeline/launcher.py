"""
Pipeline Launcher

Runs self-play, training and evaluation side by side, each in its own
thread, and restarts any of them that crashes.
"""

import logging
import threading
from typing import Callable

from ..config import PipelineConfig
from ..evaluation import EvaluationService
from ..self_play import ReplayBuffer, SelfPlayManager
from ..storage import ChampionStore
from ..training import TrainingService

logger = logging.getLogger(__name__)

ServiceTarget = Callable[[threading.Event], None]


def build_services(config: PipelineConfig, show_progress: bool = False) -> dict[str, ServiceTarget]:
    """Creates the three pipeline services from one configuration."""
    paths = config.paths
    manager = SelfPlayManager(
        config=config.self_play,
        replay_buffer=ReplayBuffer(paths.resolve("replay_buffer"), paths.resolve("replay_archive")),
        champion=ChampionStore(paths.resolve("champion"), paths.resolve("champion_archive")),
        device=config.training.device,
    )

    return {
        "self-play": manager.run,
        "trainer": TrainingService(config, show_progress=show_progress).run,
        "evaluator": EvaluationService(config, show_progress=show_progress).run,
    }


class PipelineLauncher:
    """
    Supervises a set of long-running services.

    A service that raises, or returns while the pipeline is still running,
    is started again after ``restart_backoff`` seconds.
    """

    def __init__(
        self,
        services: dict[str, ServiceTarget],
        restart_backoff: float = 5.0,
    ):
        """
        Args:
            services: Service name to a callable that runs until the event is set.
            restart_backoff: Seconds to wait before restarting a service.
        """
        self.services = services
        self.restart_backoff = restart_backoff
        self.restarts: dict[str, int] = {name: 0 for name in services}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: PipelineConfig, show_progress: bool = False) -> "PipelineLauncher":
        return cls(
            build_services(config, show_progress=show_progress),
            restart_backoff=config.self_play.restart_backoff,
        )

    def run(self, stop_event: threading.Event | None = None) -> None:
        """
        Run every service until ``stop_event`` is set or the process is interrupted.
        """
        stop_event = stop_event if stop_event is not None else threading.Event()

        threads = [
            threading.Thread(
                target=self._supervise,
                args=(name, target, stop_event),
                name=f"service-{name}",
                daemon=True,
            )
            for name, target in self.services.items()
        ]

        logger.info(f"Launching services: {', '.join(self.services)}")
        for thread in threads:
            thread.start()

        try:
            while not stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Shutdown requested, stopping services")
            stop_event.set()
        finally:
            for thread in threads:
                thread.join()

        logger.info(f"All services stopped (restarts: {self.restarts})")

    def _supervise(self, name: str, target: ServiceTarget, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                target(stop_event)
            except Exception:
                logger.error(
                    f"Service {name} crashed, restarting in {self.restart_backoff}s",
                    exc_info=True,
                )
            else:
                if stop_event.is_set():
                    break
                logger.warning(
                    f"Service {name} exited unexpectedly, restarting in {self.restart_backoff}s"
                )

            with self._lock:
                self.restarts[name] += 1
            stop_event.wait(self.restart_backoff)
