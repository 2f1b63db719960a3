"""Tests for environment configuration."""

import importlib
import os
from unittest.mock import patch

from voice_keyboard import config


def _reload():
    return importlib.reload(config)


class TestConfig:
    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        cfg = _reload()
        assert cfg.STT_URL == "wss://api.deepgram.com/v2/listen"
        assert cfg.LOCAL_STT_URL == ""
        assert cfg.STT_MODEL == "flux-general-en"
        assert cfg.SAMPLE_RATE == 16000
        assert cfg.CHUNK_DURATION_MS == 80
        assert cfg.EOT_THRESHOLD is None
        assert cfg.EOT_TIMEOUT_MS is None

    @patch.dict(
        os.environ,
        {"SAMPLE_RATE": "48000", "EOT_THRESHOLD": "0.75", "EOT_TIMEOUT_MS": "4000"},
        clear=True,
    )
    def test_overrides(self):
        cfg = _reload()
        assert cfg.SAMPLE_RATE == 48000
        assert cfg.EOT_THRESHOLD == 0.75
        assert cfg.EOT_TIMEOUT_MS == 4000

    def teardown_method(self):
        _reload()
