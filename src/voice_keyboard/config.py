"""
Runtime configuration read from the environment.

Values are read once at import time. Entry-point scripts load a `.env` file
(python-dotenv) before importing this module, so the file can override nothing
that is already exported in the shell.

Environment variables:
    STT_URL: Cloud streaming endpoint (default: Deepgram Flux v2 listen)
    LOCAL_STT_URL: Optional low-latency endpoint probed before the cloud one
    STT_MODEL: Model identifier sent as the `model` query parameter
    SAMPLE_RATE: Audio sample rate in Hz
    CHUNK_DURATION_MS: Duration of each audio frame sent to the service
    EOT_THRESHOLD, EAGER_EOT_THRESHOLD, EOT_TIMEOUT_MS: End-of-turn tuning
    DEEPGRAM_API_KEY: API key, only read by entry points
    KEYBOARD_BACKEND: "uinput" (default) or "recording"
    KEYBOARD_DEVICE_NAME: Name of the virtual keyboard device
    LOG_LEVEL: Logging level for entry points
"""

import os


def _optional_float(name: str) -> float | None:
    value = os.getenv(name, "")
    return float(value) if value else None


def _optional_int(name: str) -> int | None:
    value = os.getenv(name, "")
    return int(value) if value else None


STT_URL = os.getenv("STT_URL", "wss://api.deepgram.com/v2/listen")
LOCAL_STT_URL = os.getenv("LOCAL_STT_URL", "")
STT_MODEL = os.getenv("STT_MODEL", "flux-general-en")
SAMPLE_RATE = int(os.getenv("SAMPLE_RATE", "16000"))
CHUNK_DURATION_MS = int(os.getenv("CHUNK_DURATION_MS", "80"))
ENDPOINT_PROBE_TIMEOUT_SEC = float(os.getenv("ENDPOINT_PROBE_TIMEOUT_SEC", "1.0"))

EOT_THRESHOLD = _optional_float("EOT_THRESHOLD")
EAGER_EOT_THRESHOLD = _optional_float("EAGER_EOT_THRESHOLD")
EOT_TIMEOUT_MS = _optional_int("EOT_TIMEOUT_MS")

KEYBOARD_DEVICE_NAME = os.getenv("KEYBOARD_DEVICE_NAME", "Voice Keyboard")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
