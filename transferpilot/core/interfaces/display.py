# transferpilot/core/interfaces/display.py
from abc import ABC, abstractmethod
from .types import TransferProgress, Preflight, TransferSummary

class DisplayInterface(ABC):
    """Abstract base class for display implementations"""
    
    @abstractmethod
    def show_status(self, message: str) -> None:
        """Display a status message"""
        pass
    
    @abstractmethod
    def show_progress(self, progress: TransferProgress) -> None:
        """Display transfer progress"""
        pass
    
    @abstractmethod
    def show_preflight(self, preflight: Preflight) -> None:
        """Display a capacity/composition report"""
        pass

    @abstractmethod
    def show_summary(self, summary: TransferSummary) -> None:
        """Display the result of a finished session"""
        pass

    @abstractmethod
    def show_error(self, message: str) -> None:
        """Display an error message"""
        pass
    
    @abstractmethod
    def clear(self) -> None:
        """Clear the display"""
        pass
