"""Abstract interface for the device that turns key operations into keystrokes."""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyboardHardware(ABC):
    """Executes abstract key operations.

    Implementations raise HardwareError when an operation cannot be delivered.
    The synchronizer never needs to know how keys are physically produced.
    """

    @abstractmethod
    def type_text(self, text: str) -> None:
        """Type each character of text, in order."""

    @abstractmethod
    def press_backspace(self) -> None:
        """Delete one character before the cursor."""

    @abstractmethod
    def press_enter(self) -> None:
        """Press the commit key (Enter)."""

    def close(self) -> None:
        """Release the device. Default implementation: no-op."""
        return None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
