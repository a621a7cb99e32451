"""Playback state machine feeding chunks to a speech engine one at a time."""

import logging
from dataclasses import dataclass
from typing import Callable

from yomiage.boundaries import BoundaryIndex
from yomiage.constants import MAX_RETRIES
from yomiage.models import (
    BOUNDARY,
    END,
    ERROR,
    PAUSED,
    PLAYING,
    STOPPED,
    PlaybackMetrics,
    PlaybackSettings,
    Progress,
    SpeechEvent,
)

logger = logging.getLogger(__name__)


@dataclass
class PlaybackListeners:
    on_index: Callable[[int, int], None] | None = None
    on_state: Callable[[str], None] | None = None
    on_error: Callable[[object], None] | None = None
    on_progress: Callable[[Progress], None] | None = None


class PlaybackController:
    """Drives sequential playback of chunks through a SpeechEngine.

    States are "stopped", "playing" and "paused". The controller remembers
    the current chunk and the character offset reached inside it, so seeks,
    settings changes and retries resume from where the listener was.

    Engine callbacks are tagged with the generation of the utterance they
    belong to. Every restart, seek or cancel bumps the generation, and
    events from an older generation are dropped.
    """

    def __init__(self, engine, chunks=(), settings: PlaybackSettings | None = None,
                 listeners: PlaybackListeners | None = None):
        self.engine = engine
        self.listeners = listeners or PlaybackListeners()
        self._chunks = tuple(chunks or ())
        self._boundary_index = BoundaryIndex(self._chunks)
        self._settings = settings or PlaybackSettings()
        self._state = STOPPED
        self._index = 0
        self._offset = 0
        self._retries = 0
        self._boundary_supported = False
        self._utterance = None
        self._generation = 0
        self._speak_origin = 0

    # --- Queries ---

    @property
    def index(self) -> int:
        return self._index

    @property
    def state(self) -> str:
        return self._state

    @property
    def char_offset(self) -> int:
        return self._offset

    @property
    def chunks(self) -> tuple[str, ...]:
        return self._chunks

    @property
    def settings(self) -> PlaybackSettings:
        return self._settings

    @property
    def boundary_supported(self) -> bool:
        return self._boundary_supported

    @property
    def boundary_index(self) -> BoundaryIndex:
        return self._boundary_index

    @property
    def retry_count(self) -> int:
        return self._retries

    def metrics(self) -> PlaybackMetrics:
        """Snapshot of position and progress for display."""
        bi = self._boundary_index
        return PlaybackMetrics(
            state=self._state,
            index=self._index,
            total_chunks=len(self._chunks),
            char_offset=self._offset,
            total_chars=bi.total_chars,
            played_chars=bi.played_chars(self._index, self._offset),
            progress_percent=bi.progress_percent(self._index, self._offset),
            remaining_seconds=bi.remaining_seconds(self._index, self._offset, self._settings.rate),
            boundary_supported=self._boundary_supported,
        )

    # --- Commands ---

    def set_chunks(self, chunks) -> None:
        """Replace the chunk sequence.

        When stopped this starts over at chunk 0. While playing or paused
        the in-flight utterance is cancelled; if the chunk count is
        unchanged the position is kept, otherwise the index is clamped and
        the offset reset.
        """
        previous_count = len(self._chunks)
        self._chunks = tuple(chunks or ())
        self._boundary_index = BoundaryIndex(self._chunks)
        self._discard_utterance()
        self._retries = 0

        if self._state == STOPPED or not self._chunks:
            self._index = 0
            self._offset = 0
            self._set_state(STOPPED)
            self._emit_index()
            self._emit_progress()
            return

        if len(self._chunks) == previous_count:
            self._offset = min(self._offset, len(self._chunks[self._index]))
        else:
            self._index = self._clamp_index(self._index)
            self._offset = 0

        if self._state == PLAYING:
            self._speak_current()
        else:
            self._emit_index()
            self._emit_progress()

    def update_settings(self, **changes) -> None:
        """Merge settings changes, restarting the current chunk if needed.

        While playing, a voice change restarts the chunk from the top and a
        rate change restarts it from the last boundary (or the top when no
        boundary event has been seen). Volume is applied to the live
        utterance without a restart.
        """
        previous = self._settings
        self._settings = previous.merged(**changes)
        changed = self._settings.diff(previous)
        if not changed:
            return

        if "volume" in changed and self._utterance is not None:
            self._utterance.volume = self._settings.volume

        if self._state != PLAYING:
            return
        if "voice" in changed:
            logger.debug("Voice changed to %s, restarting chunk %d", self._settings.voice, self._index)
            self._restart(0)
        elif "rate" in changed:
            offset = self._offset if self._boundary_supported else 0
            logger.debug("Rate changed to %.2f, restarting chunk %d at %d", self._settings.rate, self._index, offset)
            self._restart(offset)

    def play(self, start_index: int | None = None) -> None:
        if not self._chunks:
            return
        if start_index is not None:
            target = self._clamp_index(start_index)
            if target != self._index:
                self._index = target
                self._offset = 0
                self._retries = 0
                if self._state == PLAYING:
                    self._restart(0)
                    return
                self._discard_utterance()
                self._emit_index()
        if self._state == PAUSED:
            self.resume()
            return
        if self._state == PLAYING:
            return
        self._set_state(PLAYING)
        self._speak_current()

    def pause(self) -> None:
        if self._state != PLAYING:
            return
        self.engine.pause()
        self._set_state(PAUSED)

    def resume(self) -> None:
        if self._state != PAUSED:
            return
        self._set_state(PLAYING)
        if self._utterance is None:
            # the paused utterance was superseded; start the chunk afresh
            self._speak_current()
        else:
            self.engine.resume()

    def stop(self) -> None:
        self._discard_utterance()
        self._retries = 0
        self._offset = 0
        self._set_state(STOPPED)
        self._emit_progress()

    def next(self) -> None:
        self._step(1)

    def prev(self) -> None:
        self._step(-1)

    def seek(self, index: int, offset: int = 0, *, play: bool = False) -> None:
        """Move to `offset` within chunk `index`.

        With play=True playback starts from there. Otherwise a playing
        session lands in "paused" and any other state is kept.
        """
        if not self._chunks:
            return
        self._discard_utterance()
        self._retries = 0
        self._index = self._clamp_index(index)
        self._offset = max(0, min(int(offset), len(self._chunks[self._index])))
        if play:
            self._set_state(PLAYING)
            self._speak_current()
            return
        if self._state == PLAYING:
            self._set_state(PAUSED)
        self._emit_index()
        self._emit_progress()

    def seek_position(self, position: int, *, play: bool = False) -> None:
        """Seek to an absolute character position across all chunks."""
        if not self._chunks:
            return
        target = self._boundary_index.locate(position)
        self.seek(target.index, target.offset, play=play)

    def close(self) -> None:
        """Stop playback and drop listeners."""
        self.stop()
        self.listeners = PlaybackListeners()

    # --- Synthesis ---

    def _speak_current(self) -> None:
        if not self._chunks:
            self.stop()
            return
        chunk = self._chunks[self._index]
        self._offset = max(0, min(self._offset, len(chunk)))
        text = chunk[self._offset:]
        if not text:
            self._advance()
            return

        self._discard_utterance()
        generation = self._generation
        self._speak_origin = self._offset
        self._emit_index()
        self._emit_progress()
        logger.debug("Speaking chunk %d/%d from offset %d", self._index + 1, len(self._chunks), self._offset)

        def on_boundary(char_offset):
            self._handle_event(generation, SpeechEvent(BOUNDARY, char_offset=char_offset))

        def on_end():
            self._handle_event(generation, SpeechEvent(END))

        def on_error(error=None):
            self._handle_event(generation, SpeechEvent(ERROR, error=error))

        utterance = self.engine.speak(
            text,
            self._settings,
            on_boundary=on_boundary,
            on_end=on_end,
            on_error=on_error,
        )
        # a synchronous callback may already have moved on
        if generation == self._generation:
            self._utterance = utterance

    def _handle_event(self, generation: int, event: SpeechEvent) -> None:
        if generation != self._generation:
            logger.debug("Ignoring stale %s event", event.kind)
            return
        if event.kind == BOUNDARY:
            self._on_boundary(event.char_offset)
        elif event.kind == END:
            self._on_end()
        elif event.kind == ERROR:
            self._on_error(event.error)

    def _on_boundary(self, char_offset: int) -> None:
        self._boundary_supported = True
        offset = self._speak_origin + max(0, int(char_offset))
        self._offset = min(offset, len(self._chunks[self._index]))
        self._emit_progress()

    def _on_end(self) -> None:
        if self._state != PLAYING:
            if self._state == PAUSED:
                # finished right as it was paused; resume will respeak from the last offset
                self._generation += 1
                self._utterance = None
            return
        self._utterance = None
        self._advance()

    def _on_error(self, error) -> None:
        if self._state == PAUSED:
            # failed while paused; resume resynthesizes from the last offset
            logger.debug("Chunk %d failed while paused (%s)", self._index, error)
            self._generation += 1
            self._utterance = None
            return
        if self._state != PLAYING:
            return
        self._utterance = None
        if self._retries < MAX_RETRIES:
            self._retries += 1
            logger.debug("Chunk %d failed (%s), retry %d/%d from offset %d",
                         self._index, error, self._retries, MAX_RETRIES, self._offset)
            self._speak_current()
            return
        logger.warning("Skipping chunk %d after %d retries: %s", self._index, MAX_RETRIES, error)
        self._emit_error(error if error is not None else "tts error")
        self._advance()

    def _advance(self) -> None:
        self._retries = 0
        self._offset = 0
        if self._index < len(self._chunks) - 1:
            self._index += 1
            self._speak_current()
        else:
            self.stop()

    def _step(self, delta: int) -> None:
        if not self._chunks:
            return
        self._index = self._clamp_index(self._index + delta)
        self._offset = 0
        self._retries = 0
        if self._state == PLAYING:
            self._restart(0)
            return
        self._discard_utterance()
        self._emit_index()
        self._emit_progress()

    def _restart(self, offset: int) -> None:
        self._discard_utterance()
        self._retries = 0
        self._offset = offset
        self._speak_current()

    def _discard_utterance(self) -> None:
        """Detach callbacks from the current utterance, then cancel it."""
        self._generation += 1
        if self._utterance is not None:
            self._utterance.detach()
            self._utterance = None
            self.engine.cancel()

    # --- Helpers ---

    def _clamp_index(self, index: int) -> int:
        if not self._chunks:
            return 0
        return max(0, min(int(index), len(self._chunks) - 1))

    def _set_state(self, state: str) -> None:
        if state == self._state:
            return
        self._state = state
        if self.listeners.on_state:
            self.listeners.on_state(state)

    def _emit_index(self) -> None:
        if self.listeners.on_index:
            self.listeners.on_index(self._index, len(self._chunks))

    def _emit_progress(self) -> None:
        if not self.listeners.on_progress:
            return
        chunk_length = len(self._chunks[self._index]) if self._chunks else 0
        self.listeners.on_progress(Progress(
            index=self._index,
            total=len(self._chunks),
            chunk_length=chunk_length,
            char_offset=self._offset,
            boundary_supported=self._boundary_supported,
        ))

    def _emit_error(self, error) -> None:
        if self.listeners.on_error:
            self.listeners.on_error(error)
