"""Pytest configuration and fixtures."""

import contextlib
import json

import pytest
import pytest_asyncio
from websockets.asyncio.server import serve

from voice_keyboard.keyboard.recording import RecordingKeyboard
from voice_keyboard.synchronizer import TranscriptSynchronizer


@pytest.fixture
def keyboard():
    """Recording keyboard that never fails."""
    return RecordingKeyboard()


@pytest.fixture
def synchronizer(keyboard):
    return TranscriptSynchronizer(keyboard)


def turn_info(transcript: str, event: str = "Update", turn_index: int = 0) -> str:
    """A TurnInfo message as the service sends it."""
    return json.dumps(
        {
            "type": "TurnInfo",
            "request_id": "req-1",
            "sequence_id": 1,
            "event": event,
            "turn_index": turn_index,
            "audio_window_start": 0.0,
            "audio_window_end": 1.5,
            "transcript": transcript,
            "words": [{"word": w, "confidence": 0.9} for w in transcript.split()],
            "end_of_turn_confidence": 0.9 if event == "EndOfTurn" else 0.1,
        }
    )


@pytest_asyncio.fixture
async def stt_server():
    """Start fake STT servers on free local ports.

    Call the fixture value with a connection handler (and optionally a
    process_request hook); it returns the server URL. Servers are shut down
    when the test ends.
    """
    async with contextlib.AsyncExitStack() as stack:

        async def start(handler, process_request=None) -> str:
            server = await stack.enter_async_context(
                serve(handler, "127.0.0.1", 0, process_request=process_request)
            )
            port = next(iter(server.sockets)).getsockname()[1]
            return f"ws://127.0.0.1:{port}/v2/listen"

        yield start


@pytest.fixture
def make_turn():
    return turn_info
