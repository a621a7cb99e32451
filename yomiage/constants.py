"""All magic numbers and configuration constants."""

MAX_CHUNK_CHARS = 260               # chars, hard upper bound for a chunk
MIN_CHUNK_CHARS = 120               # chars, shorter chunks get merged with the next one
MAX_RETRIES = 2                     # retries per chunk before it is skipped
BASE_CHARS_PER_SECOND = 5           # speaking speed at rate 1.0, for time estimates
MIN_RATE_FOR_ESTIMATE = 0.1         # floor applied to the rate in time estimates
DEFAULT_RATE = 1.0                  # speech rate multiplier (1.0 = engine default)
DEFAULT_VOLUME = 1.0                # playback volume (0.0–1.0)
DEFAULT_VOICE = "ja-JP-NanamiNeural"
PLAYBACK_SLICE_MS = 200             # ms of audio handed to the output device per step
TICKS_PER_MS = 10_000               # edge-tts offsets are 100ns ticks
MANIFEST_VERSION = 1                # chunk manifest format version
VERSION = "0.1.0"
