"""
Transcript to keystroke synchronization.

Streaming STT revises its hypothesis as more audio arrives: "I scream" may
become "ice cream" a moment later. The synchronizer keeps the text on screen in
step with the newest transcript using only two edits, backspace and append,
because the cursor position inside other applications is unknown.

For an on-screen text A and a new transcript B with common prefix length P
(counted in characters), it sends len(A) - P backspaces and types B[P:]. This
is the minimum under a backspace/append-only model; characters that are
already correct are never retyped.

Commit command:
    When a turn ends, a trailing spoken "enter" (any case, optionally followed by
    punctuation or whitespace) is erased and replaced by a real Enter key press.
    "enter the room", "center" or "entering" are left alone.
"""

from __future__ import annotations

import logging
import re
import string

from voice_keyboard.keyboard.base import KeyboardHardware

logger = logging.getLogger(__name__)

_TRAILING_PUNCT_OR_SPACE = "[" + re.escape(string.punctuation) + r"\s]*"
ENTER_COMMAND = re.compile(r"\s*\benter\b" + _TRAILING_PUNCT_OR_SPACE + r"\Z", re.IGNORECASE)


def common_prefix_length(a: str, b: str) -> int:
    """Number of leading characters a and b share."""
    length = 0
    for char_a, char_b in zip(a, b):
        if char_a != char_b:
            break
        length += 1
    return length


def find_enter_command(text: str) -> re.Match[str] | None:
    """Find a trailing "enter" command in text, including its surrounding whitespace."""
    return ENTER_COMMAND.search(text)


class TranscriptSynchronizer:
    """
    Keeps the keyboard output consistent with the latest transcript.

    current_text is what this synchronizer has typed and not yet erased. It is
    updated after every successful key operation, so if the hardware fails part
    way through, it still describes the screen exactly. Callers should end the
    session in that case rather than keep diffing against it.

    Not thread-safe: call it from one task only.
    """

    def __init__(self, hardware: KeyboardHardware):
        self.hardware = hardware
        self._current_text = ""

    @property
    def current_text(self) -> str:
        return self._current_text

    def _backspace(self, count: int) -> None:
        for _ in range(count):
            self.hardware.press_backspace()
            self._current_text = self._current_text[:-1]

    def _type(self, text: str) -> None:
        if not text:
            return
        self.hardware.type_text(text)
        self._current_text += text

    def update(self, new_transcript: str) -> None:
        """Bring the screen from current_text to new_transcript."""
        logger.debug("Updating transcript from %r to %r", self._current_text, new_transcript)

        if not new_transcript:
            self._backspace(len(self._current_text))
            return

        if new_transcript.startswith(self._current_text):
            suffix = new_transcript[len(self._current_text) :]
            if suffix:
                logger.debug("Typing new characters: %r", suffix)
            self._type(suffix)
            return

        prefix_len = common_prefix_length(self._current_text, new_transcript)
        to_erase = len(self._current_text) - prefix_len
        logger.debug("Common prefix length: %d, backspacing %d characters", prefix_len, to_erase)
        self._backspace(to_erase)
        self._type(new_transcript[prefix_len:])

    def finalize(self) -> bool:
        """End the current turn.

        Replaces a trailing "enter" command with the Enter key. Tracked text is
        reset to empty afterwards either way, so the next turn starts fresh.

        Returns:
            True if the Enter key was pressed.
        """
        logger.debug("Finalizing transcript: %r", self._current_text)
        match = find_enter_command(self._current_text)
        if match is None:
            self._current_text = ""
            return False

        logger.debug("Found 'enter' command at end of transcript: %r", match.group())
        self._backspace(len(self._current_text) - match.start())
        self.hardware.press_enter()
        self._current_text = ""
        return True
