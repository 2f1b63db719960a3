"""
Character to Linux input key code mapping for a US keyboard layout.

Key codes are the kernel's KEY_* values from linux/input-event-codes.h, which
is what evdev.ecodes exposes. Characters missing from the table cannot be typed.
"""

from __future__ import annotations

KEY_1 = 2
KEY_0 = 11
KEY_MINUS = 12
KEY_EQUAL = 13
KEY_BACKSPACE = 14
KEY_TAB = 15
KEY_LEFTBRACE = 26
KEY_RIGHTBRACE = 27
KEY_ENTER = 28
KEY_SEMICOLON = 39
KEY_APOSTROPHE = 40
KEY_GRAVE = 41
KEY_LEFTSHIFT = 42
KEY_BACKSLASH = 43
KEY_COMMA = 51
KEY_DOT = 52
KEY_SLASH = 53
KEY_SPACE = 57

_LETTER_ROWS = {
    "qwertyuiop": 16,
    "asdfghjkl": 30,
    "zxcvbnm": 44,
}

_UNSHIFTED = {
    " ": KEY_SPACE,
    "\n": KEY_ENTER,
    "\t": KEY_TAB,
    "-": KEY_MINUS,
    "=": KEY_EQUAL,
    "[": KEY_LEFTBRACE,
    "]": KEY_RIGHTBRACE,
    "\\": KEY_BACKSLASH,
    ";": KEY_SEMICOLON,
    "'": KEY_APOSTROPHE,
    "`": KEY_GRAVE,
    ",": KEY_COMMA,
    ".": KEY_DOT,
    "/": KEY_SLASH,
}

# Shifted symbol -> the unshifted character on the same key
_SHIFTED = {
    "!": "1",
    "@": "2",
    "#": "3",
    "$": "4",
    "%": "5",
    "^": "6",
    "&": "7",
    "*": "8",
    "(": "9",
    ")": "0",
    "_": "-",
    "+": "=",
    "{": "[",
    "}": "]",
    "|": "\\",
    ":": ";",
    '"': "'",
    "~": "`",
    "<": ",",
    ">": ".",
    "?": "/",
}


def _build_keymap() -> dict[str, tuple[int, bool]]:
    keymap: dict[str, tuple[int, bool]] = {}
    for row, first_code in _LETTER_ROWS.items():
        for offset, letter in enumerate(row):
            keymap[letter] = (first_code + offset, False)
            keymap[letter.upper()] = (first_code + offset, True)
    # KEY_1..KEY_9 are consecutive, KEY_0 follows KEY_9
    for digit in "123456789":
        keymap[digit] = (KEY_1 + int(digit) - 1, False)
    keymap["0"] = (KEY_0, False)
    for char, code in _UNSHIFTED.items():
        keymap[char] = (code, False)
    for char, base in _SHIFTED.items():
        keymap[char] = (keymap[base][0], True)
    return keymap


KEYMAP = _build_keymap()


def char_to_keycode(char: str) -> tuple[int, bool] | None:
    """Return (key code, needs shift) for char, or None when it cannot be typed."""
    return KEYMAP.get(char)


def supported_keycodes() -> list[int]:
    """Every key code the virtual keyboard must advertise, sorted."""
    codes = {code for code, _ in KEYMAP.values()}
    codes.update({KEY_LEFTSHIFT, KEY_BACKSPACE, KEY_ENTER})
    return sorted(codes)
