"""In-memory keyboard backend.

Records every key operation and simulates the text it would leave on screen.
Used for dry runs (KEYBOARD_BACKEND=recording prints what would be typed
without touching /dev/uinput) and as the test double for the synchronizer.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from voice_keyboard.errors import HardwareError
from voice_keyboard.keyboard.base import KeyboardHardware

logger = logging.getLogger(__name__)


class KeyOperation(NamedTuple):
    kind: str  # "type", "backspace" or "enter"
    text: str | None = None


class RecordingKeyboard(KeyboardHardware):
    """Keyboard that records operations instead of emitting them.

    Args:
        fail_after: Raise HardwareError on the operation with this zero-based
            index (and every one after it). None never fails.
    """

    def __init__(self, fail_after: int | None = None):
        self.operations: list[KeyOperation] = []
        self.screen = ""
        self.enter_count = 0
        self.fail_after = fail_after
        self.closed = False

    def _check(self) -> None:
        if self.fail_after is not None and len(self.operations) >= self.fail_after:
            raise HardwareError(f"simulated failure at operation {len(self.operations)}")

    def type_text(self, text: str) -> None:
        self._check()
        logger.info("type %r", text)
        self.operations.append(KeyOperation("type", text))
        self.screen += text

    def press_backspace(self) -> None:
        self._check()
        logger.debug("backspace")
        self.operations.append(KeyOperation("backspace"))
        self.screen = self.screen[:-1]

    def press_enter(self) -> None:
        self._check()
        logger.info("enter")
        self.operations.append(KeyOperation("enter"))
        self.enter_count += 1
        self.screen += "\n"

    def close(self) -> None:
        self.closed = True

    @property
    def backspace_count(self) -> int:
        return sum(1 for op in self.operations if op.kind == "backspace")

    @property
    def typed_chars(self) -> int:
        return sum(len(op.text) for op in self.operations if op.kind == "type")

    def clear(self) -> None:
        """Forget recorded operations, keeping the simulated screen."""
        self.operations.clear()
        self.enter_count = 0
