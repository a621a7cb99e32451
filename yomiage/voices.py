"""Japanese voice catalogue for edge-tts."""

import asyncio
import logging
import re

import edge_tts

from yomiage.constants import DEFAULT_VOICE

logger = logging.getLogger(__name__)

# Hardcoded Japanese voice pool (avoids network call at startup)
VOICE_POOL = [
    "ja-JP-NanamiNeural",
    "ja-JP-KeitaNeural",
]

_JAPANESE_LOCALE_RE = re.compile(r"\bja(-JP)?\b", re.IGNORECASE)
_JAPANESE_NAME_RE = re.compile(r"Japanese|日本語", re.IGNORECASE)


def is_japanese(voice: dict) -> bool:
    """True for voice entries whose locale or name marks them as Japanese."""
    locale = voice.get("Locale", "")
    name = f"{voice.get('ShortName', '')} {voice.get('FriendlyName', '')}"
    return bool(_JAPANESE_LOCALE_RE.search(locale) or _JAPANESE_NAME_RE.search(name))


def japanese_voices(voices: list[dict]) -> list[dict]:
    return [v for v in voices or [] if is_japanese(v)]


def choose_default(names: list[str]) -> str | None:
    """Pick a voice: DEFAULT_VOICE if offered, else the first ja-JP one, else the first."""
    if not names:
        return None
    if DEFAULT_VOICE in names:
        return DEFAULT_VOICE
    for name in names:
        if "ja-JP" in name:
            return name
    return names[0]


def list_voices(online: bool = False, filter_str: str | None = None) -> list[str]:
    """Return Japanese voice short names.

    Uses the built-in pool unless online=True, in which case the edge-tts
    voice list is fetched; a failed fetch falls back to the pool.
    """
    names = list(VOICE_POOL)
    if online:
        try:
            fetched = asyncio.run(edge_tts.list_voices())
        except Exception as e:
            logger.warning("Could not fetch voice list: %s — using built-in pool", e)
        else:
            online_names = [v["ShortName"] for v in japanese_voices(fetched) if v.get("ShortName")]
            if online_names:
                names = online_names
    if filter_str:
        needle = filter_str.lower()
        names = [n for n in names if needle in n.lower()]
    return names
