"""Virtual keyboard backed by the Linux uinput subsystem (python-evdev).

Creating the device needs write access to /dev/uinput: run as root, or add the
user to the "input" group with a udev rule such as

    KERNEL=="uinput", GROUP="input", MODE="0660"
"""

from __future__ import annotations

import logging
import time

from evdev import UInput, ecodes
from evdev.uinput import UInputError

from voice_keyboard.errors import HardwareError
from voice_keyboard.keyboard.base import KeyboardHardware
from voice_keyboard.keyboard.keymap import (
    KEY_BACKSPACE,
    KEY_ENTER,
    KEY_LEFTSHIFT,
    char_to_keycode,
    supported_keycodes,
)

logger = logging.getLogger(__name__)


class UInputKeyboard(KeyboardHardware):
    """Registers a virtual keyboard and types through it.

    Args:
        device_name: Name the device shows up as in the input subsystem.
        char_delay: Pause between typed characters in seconds. Some
            applications drop keys that arrive too fast.
    """

    def __init__(self, device_name: str = "Voice Keyboard", char_delay: float = 0.01):
        self.device_name = device_name
        self.char_delay = char_delay
        logger.info("Creating virtual keyboard device: %s", device_name)
        try:
            self._device = UInput({ecodes.EV_KEY: supported_keycodes()}, name=device_name)
        except (OSError, UInputError) as e:
            raise HardwareError(f"cannot create uinput device {device_name!r}: {e}") from e
        logger.info("Virtual keyboard '%s' created", device_name)

    def _send_key(self, keycode: int, pressed: bool) -> None:
        try:
            self._device.write(ecodes.EV_KEY, keycode, 1 if pressed else 0)
            self._device.syn()
        except OSError as e:
            raise HardwareError(f"failed to send key {keycode}: {e}") from e

    def _tap(self, keycode: int) -> None:
        self._send_key(keycode, True)
        self._send_key(keycode, False)

    def type_text(self, text: str) -> None:
        logger.debug("Typing text: %r", text)
        for char in text:
            mapping = char_to_keycode(char)
            if mapping is None:
                logger.warning("Unsupported character: %r", char)
                continue
            keycode, needs_shift = mapping
            if needs_shift:
                self._send_key(KEY_LEFTSHIFT, True)
                self._tap(keycode)
                self._send_key(KEY_LEFTSHIFT, False)
            else:
                self._tap(keycode)
            if self.char_delay:
                time.sleep(self.char_delay)

    def press_backspace(self) -> None:
        self._tap(KEY_BACKSPACE)

    def press_enter(self) -> None:
        self._tap(KEY_ENTER)

    def close(self) -> None:
        logger.info("Destroying virtual keyboard '%s'", self.device_name)
        self._device.close()
