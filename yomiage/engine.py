"""Speech engine adapter: edge-tts synthesis with sliced sounddevice playback."""

import asyncio
import io
import logging
import shutil

import edge_tts
import numpy as np
from pydub import AudioSegment

from yomiage.constants import DEFAULT_VOICE, PLAYBACK_SLICE_MS, TICKS_PER_MS
from yomiage.models import PlaybackSettings

# sounddevice needs the PortAudio library at import time
try:
    import sounddevice as sd
    SOUNDDEVICE_AVAILABLE = True
except (ImportError, OSError):
    sd = None
    SOUNDDEVICE_AVAILABLE = False

logger = logging.getLogger(__name__)


class SpeechEngineError(RuntimeError):
    """Base class for speech engine failures."""


class EngineUnavailableError(SpeechEngineError):
    """Raised when no audio output or decoder is available."""


class SynthesisError(SpeechEngineError):
    """Raised when a chunk could not be synthesized or played."""


class Utterance:
    """Handle for one in-flight synthesis request.

    The engine reads `volume` and the callback attributes every time it
    uses them, so the owner may change the volume of a live utterance or
    detach its callbacks before cancelling it.
    """

    def __init__(self, text, settings, on_boundary=None, on_end=None, on_error=None):
        self.text = text
        self.settings = settings
        self.volume = settings.volume
        self.on_boundary = on_boundary
        self.on_end = on_end
        self.on_error = on_error

    def detach(self) -> None:
        self.on_boundary = None
        self.on_end = None
        self.on_error = None

    def fire_boundary(self, char_offset: int) -> None:
        if self.on_boundary is not None:
            self.on_boundary(char_offset)

    def fire_end(self) -> None:
        if self.on_end is not None:
            self.on_end()

    def fire_error(self, error) -> None:
        if self.on_error is not None:
            self.on_error(error)


class SpeechEngine:
    """Interface consumed by the playback controller.

    `speak` returns immediately; progress, completion and failure arrive
    later through the callbacks. `on_boundary` receives a non-decreasing
    character offset within `text` and is not guaranteed by every engine.
    """

    def speak(self, text, settings, *, on_boundary=None, on_end=None, on_error=None) -> Utterance:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def resume(self) -> None:
        raise NotImplementedError

    def is_speaking(self) -> bool:
        raise NotImplementedError

    def is_paused(self) -> bool:
        raise NotImplementedError

    def is_supported(self) -> bool:
        raise NotImplementedError


def rate_to_percent(rate: float) -> str:
    """Convert a rate multiplier to the relative string edge-tts expects.

    1.0 → "+0%", 1.25 → "+25%", 0.8 → "-20%".
    """
    return f"{round((rate - 1.0) * 100):+d}%"


async def synthesize(text: str, settings: PlaybackSettings) -> tuple[bytes, list[tuple[float, int]]]:
    """Synthesize text with edge-tts.

    Returns the MP3 bytes and a list of (time_ms, char_offset) marks, one
    per word boundary, where char_offset is where the word starts in text.
    """
    communicate = edge_tts.Communicate(
        text,
        settings.voice or DEFAULT_VOICE,
        rate=rate_to_percent(settings.rate),
        boundary="WordBoundary",
    )
    audio = bytearray()
    marks = []
    cursor = 0
    async for message in communicate.stream():
        if message["type"] == "audio":
            audio.extend(message["data"])
        elif message["type"] == "WordBoundary":
            word = message.get("text", "")
            found = text.find(word, cursor) if word else -1
            if found == -1:
                found = cursor
            else:
                cursor = found + len(word)
            marks.append((message["offset"] / TICKS_PER_MS, found))

    if not audio:
        raise SynthesisError(f"No audio received for: {text[:50]}...")
    return bytes(audio), marks


def decode_mp3(data: bytes) -> tuple[np.ndarray, int]:
    """Decode MP3 bytes to float32 frames in [-1, 1], shaped (frames, channels)."""
    audio = AudioSegment.from_file(io.BytesIO(data), format="mp3")
    samples = np.array(audio.get_array_of_samples(), dtype=np.float32)
    samples = samples.reshape((-1, audio.channels))
    scale = float(1 << (8 * audio.sample_width - 1))
    return samples / scale, audio.frame_rate


class EdgeSpeechEngine(SpeechEngine):
    """Speaks through edge-tts and the default sounddevice output.

    Must be driven from a running asyncio event loop: `speak` schedules a
    task and every callback is invoked on the loop thread. Audio is played
    in short slices so pause, cancel and volume take effect quickly.
    """

    def __init__(self, slice_ms: int = PLAYBACK_SLICE_MS):
        self.slice_ms = slice_ms
        self._task = None
        self._current = None
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._interrupted = False

    def is_supported(self) -> bool:
        return SOUNDDEVICE_AVAILABLE and shutil.which("ffmpeg") is not None

    def speak(self, text, settings, *, on_boundary=None, on_end=None, on_error=None) -> Utterance:
        self.cancel()
        utterance = Utterance(text, settings, on_boundary, on_end, on_error)
        loop = asyncio.get_running_loop()
        self._current = utterance
        self._task = loop.create_task(self._run(utterance))
        return utterance

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._current = None
        self._interrupted = True
        self._resumed.set()
        if sd is not None:
            sd.stop()

    def pause(self) -> None:
        if self._current is None:
            return
        self._interrupted = True
        self._resumed.clear()
        if sd is not None:
            sd.stop()

    def resume(self) -> None:
        self._resumed.set()

    def is_speaking(self) -> bool:
        return self._current is not None and self._resumed.is_set()

    def is_paused(self) -> bool:
        return self._current is not None and not self._resumed.is_set()

    def _release(self, utterance: Utterance) -> None:
        if self._current is utterance:
            self._current = None
            self._task = None

    async def _run(self, utterance: Utterance) -> None:
        try:
            if sd is None:
                raise EngineUnavailableError("sounddevice (PortAudio) is not available")
            data, marks = await synthesize(utterance.text, utterance.settings)
            samples, frame_rate = decode_mp3(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Synthesis failed: %s", e)
            self._release(utterance)
            utterance.fire_error(e if isinstance(e, SpeechEngineError) else SynthesisError(str(e)))
            return

        try:
            await self._play(utterance, samples, frame_rate, marks)
        except asyncio.CancelledError:
            sd.stop()
            raise
        except Exception as e:
            logger.debug("Playback failed: %s", e)
            self._release(utterance)
            utterance.fire_error(SynthesisError(str(e)))
            return

        self._release(utterance)
        utterance.fire_end()

    async def _play(self, utterance, samples, frame_rate, marks) -> None:
        step = max(1, int(frame_rate * self.slice_ms / 1000))
        pending = list(marks)
        position = 0
        while position < len(samples):
            await self._resumed.wait()
            piece = samples[position:position + step]
            self._interrupted = False
            sd.play(piece * utterance.volume, frame_rate)
            await asyncio.sleep(len(piece) / frame_rate)
            if self._interrupted:
                # paused mid-slice: replay this slice on resume
                continue
            position += len(piece)
            elapsed_ms = position * 1000 / frame_rate
            while pending and pending[0][0] <= elapsed_ms:
                _, char_offset = pending.pop(0)
                utterance.fire_boundary(char_offset)
