"""Tests for keyboard backends and the character keymap."""

import os
import sys
from unittest.mock import MagicMock, call, patch

import pytest

from voice_keyboard.errors import HardwareError
from voice_keyboard.keyboard import get_keyboard_backend
from voice_keyboard.keyboard.keymap import (
    KEY_BACKSPACE,
    KEY_ENTER,
    KEY_LEFTSHIFT,
    KEY_SPACE,
    char_to_keycode,
    supported_keycodes,
)
from voice_keyboard.keyboard.recording import KeyOperation, RecordingKeyboard

KEY_A = 30
KEY_H = 35
KEY_I = 23
KEY_Q = 16
KEY_M = 50
KEY_1 = 2
KEY_0 = 11


class TestKeymap:
    """Tests for char_to_keycode."""

    def test_letters(self):
        assert char_to_keycode("a") == (KEY_A, False)
        assert char_to_keycode("A") == (KEY_A, True)
        assert char_to_keycode("q") == (KEY_Q, False)
        assert char_to_keycode("m") == (KEY_M, False)

    def test_digits(self):
        assert char_to_keycode("1") == (KEY_1, False)
        assert char_to_keycode("9") == (10, False)
        assert char_to_keycode("0") == (KEY_0, False)

    def test_shifted_symbols_share_base_key(self):
        assert char_to_keycode("!") == (KEY_1, True)
        assert char_to_keycode(")") == (KEY_0, True)
        assert char_to_keycode("?") == (char_to_keycode("/")[0], True)
        assert char_to_keycode('"') == (char_to_keycode("'")[0], True)

    def test_whitespace(self):
        assert char_to_keycode(" ") == (KEY_SPACE, False)
        assert char_to_keycode("\n") == (KEY_ENTER, False)

    def test_unsupported(self):
        assert char_to_keycode("é") is None
        assert char_to_keycode("€") is None

    def test_all_printable_ascii_supported(self):
        for code in range(0x20, 0x7F):
            assert char_to_keycode(chr(code)) is not None, chr(code)

    def test_supported_keycodes(self):
        codes = supported_keycodes()
        assert codes == sorted(set(codes))
        for key in (KEY_LEFTSHIFT, KEY_BACKSPACE, KEY_ENTER, KEY_A, KEY_SPACE):
            assert key in codes


class TestRecordingKeyboard:
    def test_records_operations(self):
        keyboard = RecordingKeyboard()
        keyboard.type_text("hi")
        keyboard.press_backspace()
        keyboard.press_enter()
        assert keyboard.operations == [
            KeyOperation("type", "hi"),
            KeyOperation("backspace"),
            KeyOperation("enter"),
        ]
        assert keyboard.screen == "h\n"

    def test_fail_after(self):
        keyboard = RecordingKeyboard(fail_after=1)
        keyboard.type_text("ok")
        with pytest.raises(HardwareError):
            keyboard.press_enter()
        assert len(keyboard.operations) == 1

    def test_context_manager_closes(self):
        with RecordingKeyboard() as keyboard:
            pass
        assert keyboard.closed


class TestGetKeyboardBackend:
    """Tests for the backend factory."""

    def test_recording_by_name(self):
        assert isinstance(get_keyboard_backend("recording"), RecordingKeyboard)

    @patch.dict(os.environ, {"KEYBOARD_BACKEND": "recording"}, clear=False)
    def test_recording_from_env(self):
        assert isinstance(get_keyboard_backend(), RecordingKeyboard)

    @patch.dict(os.environ, {"KEYBOARD_BACKEND": "nonexistent"}, clear=False)
    def test_invalid_backend_raises(self):
        with pytest.raises(ValueError, match="Unknown keyboard backend"):
            get_keyboard_backend()

    def test_uinput_backend(self, fake_evdev):
        backend = get_keyboard_backend("uinput")
        assert type(backend).__name__ == "UInputKeyboard"
        fake_evdev.UInput.assert_called_once()


class UInputError(Exception):
    pass


@pytest.fixture
def fake_evdev():
    """Stand-in evdev package so the uinput backend imports without /dev/uinput."""
    evdev = MagicMock()
    evdev.ecodes.EV_KEY = 1
    evdev_uinput = MagicMock()
    evdev_uinput.UInputError = UInputError
    with patch.dict(sys.modules, {"evdev": evdev, "evdev.uinput": evdev_uinput}):
        sys.modules.pop("voice_keyboard.keyboard.uinput", None)
        yield evdev
    sys.modules.pop("voice_keyboard.keyboard.uinput", None)


class TestUInputKeyboard:
    """Tests for the uinput backend against a mocked evdev."""

    def _keyboard(self, fake_evdev):
        from voice_keyboard.keyboard.uinput import UInputKeyboard

        return UInputKeyboard(device_name="Test Keyboard", char_delay=0)

    def test_device_advertises_keymap(self, fake_evdev):
        self._keyboard(fake_evdev)
        fake_evdev.UInput.assert_called_once_with({1: supported_keycodes()}, name="Test Keyboard")

    def test_type_with_shift(self, fake_evdev):
        keyboard = self._keyboard(fake_evdev)
        device = fake_evdev.UInput.return_value
        keyboard.type_text("Hi")
        assert device.write.call_args_list == [
            call(1, KEY_LEFTSHIFT, 1),
            call(1, KEY_H, 1),
            call(1, KEY_H, 0),
            call(1, KEY_LEFTSHIFT, 0),
            call(1, KEY_I, 1),
            call(1, KEY_I, 0),
        ]
        assert device.syn.call_count == 6

    def test_unsupported_characters_skipped(self, fake_evdev):
        keyboard = self._keyboard(fake_evdev)
        device = fake_evdev.UInput.return_value
        keyboard.type_text("é")
        device.write.assert_not_called()

    def test_backspace_and_enter(self, fake_evdev):
        keyboard = self._keyboard(fake_evdev)
        device = fake_evdev.UInput.return_value
        keyboard.press_backspace()
        keyboard.press_enter()
        assert device.write.call_args_list == [
            call(1, KEY_BACKSPACE, 1),
            call(1, KEY_BACKSPACE, 0),
            call(1, KEY_ENTER, 1),
            call(1, KEY_ENTER, 0),
        ]

    def test_write_failure_raises_hardware_error(self, fake_evdev):
        keyboard = self._keyboard(fake_evdev)
        fake_evdev.UInput.return_value.write.side_effect = OSError("device gone")
        with pytest.raises(HardwareError, match="device gone"):
            keyboard.press_enter()

    def test_create_failure_raises_hardware_error(self, fake_evdev):
        fake_evdev.UInput.side_effect = PermissionError("/dev/uinput")
        with pytest.raises(HardwareError, match="cannot create uinput device"):
            self._keyboard(fake_evdev)

    def test_close_destroys_device(self, fake_evdev):
        keyboard = self._keyboard(fake_evdev)
        keyboard.close()
        fake_evdev.UInput.return_value.close.assert_called_once()
