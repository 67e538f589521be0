# transferpilot/core/cancellation.py

import logging
import threading

from .exceptions import CancellationError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Per-session stop request, checked by the orchestrator at dispatch boundaries"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.info("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float = None) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self, message: str = "Transfer cancelled") -> None:
        """
        Raises:
            CancellationError: If a stop was requested
        """
        if self._event.is_set():
            raise CancellationError(message)
