"""
Dictation pipeline: microphone samples in, keystrokes out.

    audio thread ──on_audio()──> AudioChunker ──> AudioSink ──> STT service
                                                                    │
    keyboard <── TranscriptSynchronizer <──handle_result()<─────────┘

Every transcript update is applied with update(). An EndOfTurn result applies
its final transcript and then finalize(), which turns a trailing spoken "enter"
into the Enter key and starts the next turn from an empty line.
"""

from __future__ import annotations

import asyncio
import logging

from voice_keyboard.audio import AudioChunker
from voice_keyboard.messages import EventKind, TranscriptionResult
from voice_keyboard.stt_client import AudioSink, StreamingSttClient
from voice_keyboard.synchronizer import TranscriptSynchronizer

logger = logging.getLogger(__name__)


class DictationSession:
    """
    Runs one STT session and types its transcripts.

    on_audio() is safe to call from the audio capture thread while run() is
    active; chunks arriving before the connection is up or after it has closed
    are dropped.
    """

    def __init__(
        self,
        client: StreamingSttClient,
        synchronizer: TranscriptSynchronizer,
        chunker: AudioChunker,
    ):
        self.client = client
        self.synchronizer = synchronizer
        self.chunker = chunker
        self.sink: AudioSink | None = None
        self.dropped_chunks = 0
        self.turns_committed = 0

    def handle_result(self, result: TranscriptionResult) -> None:
        """Apply one transcript update to the keyboard."""
        logger.debug(
            "turn %d %s: %r", result.turn_index, result.event.value, result.transcript
        )
        self.synchronizer.update(result.transcript)
        if result.event is EventKind.END_OF_TURN:
            if self.synchronizer.finalize():
                self.turns_committed += 1

    def on_audio(self, samples) -> None:
        """Audio callback: chunk samples and queue them for sending."""
        for chunk in self.chunker.add_samples(samples):
            sink = self.sink
            if sink is None or not sink.send(chunk):
                self.dropped_chunks += 1

    async def run(self, stop: asyncio.Event) -> None:
        """Stream until stop is set, then wait for the server to flush and close.

        Raises whatever ended the session: STT errors or keyboard failures.
        """
        sink, completion = await self.client.connect_and_transcribe(self.handle_result)
        self.sink = sink

        stop_waiter = asyncio.create_task(stop.wait())
        try:
            await asyncio.wait({stop_waiter, completion}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            completion.cancel()
            raise
        finally:
            stop_waiter.cancel()

        if not completion.done():
            logger.info("Stopping: closing audio stream and waiting for final results")
            await sink.aclose()
        try:
            await completion
        finally:
            self.sink = None
