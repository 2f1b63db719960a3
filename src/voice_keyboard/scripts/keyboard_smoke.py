"""Keyboard smoke test: focus a text editor within three seconds and watch it type."""

import logging
import time

from dotenv import load_dotenv

load_dotenv()

from voice_keyboard.keyboard import get_keyboard_backend  # noqa: E402
from voice_keyboard.synchronizer import TranscriptSynchronizer  # noqa: E402


def main():
    with get_keyboard_backend() as keyboard:
        print("Starting keyboard test in 3 seconds, focus a text editor...")
        time.sleep(3)

        print("Typing: 'Hello, World!' then Enter")
        keyboard.type_text("Hello, World!")
        keyboard.press_enter()
        time.sleep(0.5)

        print("Typing special characters")
        keyboard.type_text("Special chars: !@#$%^&*()")
        keyboard.press_enter()
        time.sleep(0.5)

        print("Revising a transcript the way dictation does")
        sync = TranscriptSynchronizer(keyboard)
        for transcript in ["This is a", "This is a mistake", "This is a correction enter."]:
            sync.update(transcript)
            time.sleep(0.5)
        committed = sync.finalize()

    assert committed, "spoken 'enter' should have pressed Enter"
    print("\nKeyboard smoke test passed!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
