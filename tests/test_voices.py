"""Tests for the voices module."""

from unittest.mock import AsyncMock, patch

from yomiage.constants import DEFAULT_VOICE
from yomiage.voices import VOICE_POOL, choose_default, is_japanese, japanese_voices, list_voices

ONLINE_VOICES = [
    {"ShortName": "ja-JP-NanamiNeural", "Locale": "ja-JP", "FriendlyName": "Microsoft Nanami Online"},
    {"ShortName": "ja-JP-KeitaNeural", "Locale": "ja-JP", "FriendlyName": "Microsoft Keita Online"},
    {"ShortName": "en-US-GuyNeural", "Locale": "en-US", "FriendlyName": "Microsoft Guy Online"},
    {"ShortName": "x-Custom", "Locale": "", "FriendlyName": "Custom Japanese voice"},
]


def test_is_japanese_by_locale_or_name():
    """Locale ja/ja-JP or a Japanese name qualifies."""
    assert is_japanese({"Locale": "ja-JP"})
    assert is_japanese({"Locale": "JA"})
    assert is_japanese({"ShortName": "x", "FriendlyName": "日本語 voice"})
    assert not is_japanese({"Locale": "en-US", "ShortName": "en-US-GuyNeural"})


def test_japanese_voices_filters():
    """Only Japanese entries survive."""
    names = [v["ShortName"] for v in japanese_voices(ONLINE_VOICES)]
    assert names == ["ja-JP-NanamiNeural", "ja-JP-KeitaNeural", "x-Custom"]
    assert japanese_voices(None) == []


def test_choose_default():
    """The preferred voice wins, then any ja-JP voice, then the first."""
    assert choose_default(VOICE_POOL) == DEFAULT_VOICE
    assert choose_default(["x-Custom", "ja-JP-KeitaNeural"]) == "ja-JP-KeitaNeural"
    assert choose_default(["x-Custom", "y-Other"]) == "x-Custom"
    assert choose_default([]) is None


def test_list_voices_offline_uses_pool():
    """Without --online the built-in pool is listed."""
    assert list_voices() == VOICE_POOL


def test_list_voices_filter():
    """Filtering is a case-insensitive substring match."""
    assert list_voices(filter_str="keita") == ["ja-JP-KeitaNeural"]
    assert list_voices(filter_str="nothing") == []


@patch("yomiage.voices.edge_tts.list_voices", new_callable=AsyncMock)
def test_list_voices_online(mock_list):
    """Online listing keeps the Japanese voices from the service."""
    mock_list.return_value = ONLINE_VOICES
    assert list_voices(online=True) == ["ja-JP-NanamiNeural", "ja-JP-KeitaNeural", "x-Custom"]


@patch("yomiage.voices.edge_tts.list_voices", new_callable=AsyncMock)
def test_list_voices_online_failure_falls_back(mock_list, caplog):
    """A failed fetch logs a warning and lists the pool."""
    mock_list.side_effect = OSError("offline")
    assert list_voices(online=True) == VOICE_POOL
    assert "Could not fetch voice list" in caplog.text
