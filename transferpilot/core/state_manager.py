# transferpilot/core/state_manager.py

import time
import logging
import threading
from enum import Enum, auto
from datetime import timedelta
from typing import Optional

from .exceptions import SessionBusyError, StateError

logger = logging.getLogger(__name__)

class SystemState(Enum):
    """Enum representing possible engine states"""
    STANDBY = auto()
    TRANSFER = auto()

class StateManager:
    """
    Gate allowing at most one transfer session at a time:
    - STANDBY is the default state
    - TRANSFER can only be entered from STANDBY
    - TRANSFER can only exit to STANDBY
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.current_state = SystemState.STANDBY
        self.transfer_start_time: Optional[float] = None
        self.total_transfer_time: float = 0.0
        logger.debug("State manager initialized in STANDBY state")

    def get_current_state(self) -> SystemState:
        return self.current_state

    def is_standby(self) -> bool:
        return self.current_state == SystemState.STANDBY

    def is_transfer(self) -> bool:
        return self.current_state == SystemState.TRANSFER

    def enter_transfer(self) -> None:
        """
        Enter transfer state.

        Raises:
            SessionBusyError: If a transfer is already active
        """
        with self._lock:
            if self.current_state != SystemState.STANDBY:
                msg = f"Cannot enter transfer state from {self.current_state.name}: a transfer is already active"
                logger.warning(msg)
                raise SessionBusyError(msg,
                                       current_state=self.current_state,
                                       target_state=SystemState.TRANSFER)
            self.current_state = SystemState.TRANSFER
            self.transfer_start_time = time.time()
        logger.info("Entering transfer state")

    def exit_transfer(self) -> None:
        """
        Exit transfer state and update timing information.

        Raises:
            StateError: If not in transfer state
        """
        with self._lock:
            if self.current_state != SystemState.TRANSFER:
                msg = "Attempting to exit transfer state when not in transfer state"
                logger.warning(msg)
                raise StateError(msg,
                                 current_state=self.current_state,
                                 target_state=SystemState.STANDBY)

            if self.transfer_start_time is not None:
                transfer_duration = time.time() - self.transfer_start_time
                self.total_transfer_time += transfer_duration
                logger.info(f"Transfer duration: {self.format_time(transfer_duration)}")

            self.current_state = SystemState.STANDBY
            self.transfer_start_time = None
        logger.info("Returned to standby state")

    def get_current_transfer_time(self) -> float:
        if self.is_transfer() and self.transfer_start_time is not None:
            return time.time() - self.transfer_start_time
        return 0.0

    @staticmethod
    def format_time(seconds: float) -> str:
        """
        Format time duration as string.

        Returns:
            Formatted string in HH:MM:SS format
        """
        return str(timedelta(seconds=int(seconds)))
