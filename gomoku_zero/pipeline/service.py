"""
Long-Running Service Loops

Base class for the trainer and evaluator daemons: poll, do one unit of work,
log and continue on failure, stop when asked.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class ServiceLoop(ABC):
    """
    A polling loop with a cancellation signal.

    Subclasses implement run_once(). A truthy return value means more work
    may be waiting, so the next iteration starts without sleeping.
    """

    name: str = "service"

    def __init__(self, poll_interval: float):
        self.poll_interval = poll_interval
        self.iterations = 0
        self.failures = 0

    @abstractmethod
    def run_once(self) -> Any:
        """Do one unit of work."""

    def run(self, stop_event: threading.Event) -> None:
        """Call run_once() until ``stop_event`` is set."""
        logger.info(f"{self.name} started (poll interval {self.poll_interval}s)")

        while not stop_event.is_set():
            busy = False
            try:
                busy = bool(self.run_once())
            except Exception:
                self.failures += 1
                logger.error(
                    f"{self.name} iteration failed, retrying in {self.poll_interval}s",
                    exc_info=True,
                )
            self.iterations += 1

            if not busy:
                stop_event.wait(self.poll_interval)

        logger.info(f"{self.name} stopped after {self.iterations} iterations")
