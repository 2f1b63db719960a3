"""Keyboard backend factory.

Only the selected backend is imported, so python-evdev is not needed for
dry runs or tests.

Environment variables:
    KEYBOARD_BACKEND: "uinput" (default) or "recording"
    KEYBOARD_DEVICE_NAME: Device name for the uinput backend
"""

from __future__ import annotations

import os

from voice_keyboard.keyboard.base import KeyboardHardware


def get_keyboard_backend(name: str | None = None) -> KeyboardHardware:
    """Create the configured keyboard backend."""
    name = name or os.getenv("KEYBOARD_BACKEND", "uinput")
    if name == "uinput":
        from voice_keyboard.config import KEYBOARD_DEVICE_NAME
        from voice_keyboard.keyboard.uinput import UInputKeyboard

        return UInputKeyboard(device_name=KEYBOARD_DEVICE_NAME)
    if name == "recording":
        from voice_keyboard.keyboard.recording import RecordingKeyboard

        return RecordingKeyboard()
    raise ValueError(f"Unknown keyboard backend: {name}")


__all__ = ["KeyboardHardware", "get_keyboard_backend"]
