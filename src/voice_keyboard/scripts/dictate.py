"""Dictate into the focused window.

Captures the default microphone, streams it to the STT service and types the
transcript. Configuration comes from the environment or a .env file in the
working directory (see voice_keyboard.config). Set KEYBOARD_BACKEND=recording
to log what would be typed without creating a virtual keyboard.

Stop with Ctrl+C: the audio stream is closed and the final transcript is
typed before exiting.
"""

import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

import sounddevice as sd  # noqa: E402

from voice_keyboard import config  # noqa: E402
from voice_keyboard.audio import AudioChunker, downmix_to_mono  # noqa: E402
from voice_keyboard.dictation import DictationSession  # noqa: E402
from voice_keyboard.errors import VoiceKeyboardError  # noqa: E402
from voice_keyboard.keyboard import get_keyboard_backend  # noqa: E402
from voice_keyboard.stt_client import StreamingSttClient, select_endpoint  # noqa: E402
from voice_keyboard.synchronizer import TranscriptSynchronizer  # noqa: E402

logger = logging.getLogger("voice_keyboard")


async def main() -> int:
    client = StreamingSttClient(
        config.STT_URL,
        config.SAMPLE_RATE,
        model=config.STT_MODEL,
        eot_threshold=config.EOT_THRESHOLD,
        eager_eot_threshold=config.EAGER_EOT_THRESHOLD,
        eot_timeout_ms=config.EOT_TIMEOUT_MS,
        api_key=os.getenv("DEEPGRAM_API_KEY"),
    )
    client.url = await select_endpoint(
        config.LOCAL_STT_URL,
        config.STT_URL,
        params=client.query_params(),
        timeout=config.ENDPOINT_PROBE_TIMEOUT_SEC,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    with get_keyboard_backend() as keyboard:
        session = DictationSession(
            client,
            TranscriptSynchronizer(keyboard),
            AudioChunker(config.SAMPLE_RATE, config.CHUNK_DURATION_MS),
        )

        def audio_callback(indata, frames, time_info, status):
            if status:
                logger.warning("Audio input status: %s", status)
            session.on_audio(downmix_to_mono(indata))

        with sd.InputStream(
            samplerate=config.SAMPLE_RATE,
            dtype="float32",
            callback=audio_callback,
        ):
            logger.info("Listening at %d Hz. Press Ctrl+C to stop.", config.SAMPLE_RATE)
            try:
                await session.run(stop)
            except VoiceKeyboardError as e:
                logger.error("%s", e)
                return 1

    if session.dropped_chunks:
        logger.info("Dropped %d audio chunks outside the session", session.dropped_chunks)
    logger.info("Done (%d commands committed)", session.turns_committed)
    return 0


if __name__ == "__main__":
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(main()))
