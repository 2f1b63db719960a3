"""
Microphone sample chunking.

The audio capture callback delivers float32 samples in [-1.0, 1.0] of arbitrary
length. The STT service wants fixed-size frames of little-endian PCM16 mono.
AudioChunker converts and re-slices, keeping any partial frame for the next call.

Frame size:
    chunk_size = sample_rate * chunk_duration_ms / 1000 * 2 bytes

At 16 kHz and 80 ms this is 1280 samples = 2560 bytes per frame.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 2
PCM16_MAX = np.iinfo(np.int16).max  # 32767


def float_to_pcm16(samples) -> bytes:
    """Convert float samples to little-endian PCM16 bytes.

    Samples are clamped to [-1, 1], scaled by 32767 and truncated toward zero.
    """
    audio = np.asarray(samples, dtype=np.float32)
    scaled = np.clip(audio, -1.0, 1.0) * np.float32(PCM16_MAX)
    return scaled.astype("<i2").tobytes()


def downmix_to_mono(frames) -> np.ndarray:
    """Average a (frames, channels) block down to one channel.

    One-dimensional input is assumed to be mono already and returned as float32.
    """
    audio = np.asarray(frames, dtype=np.float32)
    if audio.ndim == 1:
        return audio
    return audio.mean(axis=1, dtype=np.float32)


class AudioChunker:
    """
    Accumulates float samples and emits fixed-duration PCM16 chunks.

    No chunk is returned until all of its bytes are available and no padding is
    ever added, so the latency added here is at most one chunk duration.

    Attributes:
        sample_rate: Sample rate of the incoming mono audio in Hz
        chunk_duration_ms: Duration of each emitted chunk
    """

    def __init__(self, sample_rate: int, chunk_duration_ms: int = 80):
        if sample_rate <= 0 or chunk_duration_ms <= 0:
            raise ValueError("sample_rate and chunk_duration_ms must be positive")
        self.sample_rate = sample_rate
        self.chunk_duration_ms = chunk_duration_ms
        self._chunk_size = sample_rate * chunk_duration_ms // 1000 * BYTES_PER_SAMPLE
        if self._chunk_size == 0:
            raise ValueError("chunk duration is shorter than one sample")
        self._backlog = bytearray()
        logger.debug(
            "AudioChunker: sample_rate=%d, chunk_duration_ms=%d, chunk_size=%d bytes",
            sample_rate,
            chunk_duration_ms,
            self._chunk_size,
        )

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def buffered_bytes(self) -> int:
        """Bytes waiting for the next complete chunk."""
        return len(self._backlog)

    def add_samples(self, samples) -> list[bytes]:
        """Append samples and return every chunk that is now complete, oldest first."""
        self._backlog.extend(float_to_pcm16(samples))

        chunks = []
        while len(self._backlog) >= self._chunk_size:
            chunks.append(bytes(self._backlog[: self._chunk_size]))
            del self._backlog[: self._chunk_size]

        if chunks:
            logger.debug(
                "Created %d audio chunk(s) of %d bytes (backlog: %d bytes)",
                len(chunks),
                self._chunk_size,
                len(self._backlog),
            )
        return chunks

    def flush(self) -> bytes | None:
        """Return and clear the partial remainder, or None when nothing is buffered."""
        if not self._backlog:
            return None
        remaining = bytes(self._backlog)
        self._backlog.clear()
        return remaining
