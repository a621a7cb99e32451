"""Data models for chunked playback."""

from dataclasses import dataclass, fields, replace

from yomiage.constants import DEFAULT_RATE, DEFAULT_VOLUME

STOPPED = "stopped"
PLAYING = "playing"
PAUSED = "paused"

BOUNDARY = "boundary"
END = "end"
ERROR = "error"


@dataclass(frozen=True)
class PlaybackSettings:
    rate: float = DEFAULT_RATE      # multiplier, must stay > 0
    volume: float = DEFAULT_VOLUME  # 0.0–1.0
    voice: str | None = None        # engine voice name, None = engine default

    def merged(self, **changes) -> "PlaybackSettings":
        """Return a copy with `changes` applied.

        Unknown keys are ignored. A non-positive rate keeps the current rate
        and volume is clamped into [0, 1].
        """
        known = {f.name for f in fields(self)}
        patch = {k: v for k, v in changes.items() if k in known}
        if "rate" in patch:
            rate = patch["rate"]
            if rate is None or rate <= 0:
                del patch["rate"]
            else:
                patch["rate"] = float(rate)
        if "volume" in patch:
            volume = patch["volume"]
            if volume is None:
                del patch["volume"]
            else:
                patch["volume"] = min(1.0, max(0.0, float(volume)))
        return replace(self, **patch)

    def diff(self, other: "PlaybackSettings") -> set[str]:
        """Names of the fields that differ between self and other."""
        return {f.name for f in fields(self) if getattr(self, f.name) != getattr(other, f.name)}


@dataclass(frozen=True)
class ChunkBoundary:
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ChunkPosition:
    index: int
    offset: int


@dataclass(frozen=True)
class Progress:
    index: int
    total: int
    chunk_length: int
    char_offset: int
    boundary_supported: bool


@dataclass(frozen=True)
class PlaybackMetrics:
    state: str
    index: int
    total_chunks: int
    char_offset: int
    total_chars: int
    played_chars: int
    progress_percent: int
    remaining_seconds: int | None
    boundary_supported: bool


@dataclass(frozen=True)
class SpeechEvent:
    kind: str                       # "boundary", "end" or "error"
    char_offset: int = 0            # boundary events only
    error: object = None            # error events only
