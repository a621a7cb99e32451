"""Split raw text into speakable chunks.

Segmentation is punctuation- and length-driven; no morphological analysis.
Paragraphs and list items are kept apart, sentences keep their closing
punctuation and quotes, and chunks stay within MAX_CHUNK_CHARS.
"""

import re

from yomiage.constants import (
    MAX_CHUNK_CHARS,
    MIN_CHUNK_CHARS,
    BASE_CHARS_PER_SECOND,
    MIN_RATE_FOR_ESTIMATE,
)

# Readings substituted before splitting: (pattern, replacement)
ABBREVIATIONS = (
    (r"[%％]", " パーセント "),
    (r"(?<![A-Za-z])No\.", "ナンバー "),
    (r"[(（]株[)）]", " かぶしきがいしゃ "),
    (r"[(（]有[)）]", " ゆうげんがいしゃ "),
    (r"(?<![A-Za-z])Mrs\.", "ミセス "),
    (r"(?<![A-Za-z])Mr\.", "ミスター "),
    (r"(?<![A-Za-z])Ms\.", "ミズ "),
    (r"(?<![A-Za-z])Dr\.", "ドクター "),
)
_ABBREVIATION_RES = tuple((re.compile(p), r) for p, r in ABBREVIATIONS)

_ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200d\ufeff]")
_CONTROL_SPACE_RE = re.compile(r"[\t\v\f\r]+")
_DASH_RUN_RE = re.compile(r"[━─‐‑–—―-]{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \u3000]+\n")
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_PARAGRAPH_RE = re.compile(r"\n{2,}")

# "- item", "* item", "・item", "1. item", "2) item", "(3) item"
_BULLET_RE = re.compile(r"^\s*(?:[-*・•]|\d+[.)．）]|[(（]\d+[)）])")

_TERMINALS = "。｡．!！?？"
_CLOSERS = "」』】）)\"”’"
# Non-terminal run + terminal run + closing brackets, or a trailing run without terminal
_SENTENCE_RE = re.compile(
    rf"[^{_TERMINALS}]*[{_TERMINALS}]+[{_CLOSERS}]*|[^{_TERMINALS}]+"
)

# Where an over-long sentence may be cut; the separator stays with the head
_CLAUSE_BREAKS = "、，,；;：:・"

_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]*?)\]\(https?://[^\s)]+\)")
_URL_RE = re.compile(r"https?://\S+")
_WWW_RE = re.compile(r"\bwww\.\S+")


def preprocess(text: str) -> str:
    """Normalize raw input before splitting.

    Removes zero-width characters, turns control whitespace into spaces,
    collapses long dash runs, spells out abbreviations and squeezes blank
    lines.
    """
    if not text:
        return ""
    text = _ZERO_WIDTH_RE.sub("", text)
    text = _CONTROL_SPACE_RE.sub(" ", text)
    text = text.replace("\u00a0", " ")
    text = _DASH_RUN_RE.sub("-", text)
    for pattern, reading in _ABBREVIATION_RES:
        text = pattern.sub(reading, text)
    text = _TRAILING_SPACE_RE.sub("\n", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def strip_urls(text: str) -> str:
    """Drop URLs that should not be read aloud, keeping Markdown link labels."""
    if not text:
        return ""
    text = _MARKDOWN_LINK_RE.sub(r"\1", text)
    text = _URL_RE.sub("", text)
    text = _WWW_RE.sub("", text)
    text = re.sub(r"[\t ]+\n", "\n", text)
    return _BLANK_LINES_RE.sub("\n\n", text)


def split_paragraphs(text: str) -> list[str]:
    return [p for p in _PARAGRAPH_RE.split(text) if p.strip()]


def split_blocks(paragraph: str) -> list[str]:
    """Split a paragraph into blocks, one per list item.

    Plain lines accumulate into a buffer joined by spaces; a bullet line
    flushes the buffer and forms its own block; blank lines only flush.
    """
    blocks = []
    buf = []

    def flush():
        if buf:
            joined = " ".join(buf).strip()
            if joined:
                blocks.append(joined)
            buf.clear()

    for line in paragraph.split("\n"):
        stripped = line.strip()
        if _BULLET_RE.match(line):
            flush()
            blocks.append(stripped)
        elif not stripped:
            flush()
        else:
            buf.append(stripped)
    flush()
    return blocks


def split_sentences(block: str) -> list[str]:
    """Split a block at sentence-final punctuation, keeping closing quotes attached."""
    sentences = [m.group(0).strip() for m in _SENTENCE_RE.finditer(block)]
    sentences = [s for s in sentences if s]
    if sentences:
        return sentences
    stripped = block.strip()
    return [stripped] if stripped else []


def _safe_cut_index(text: str, limit: int) -> int:
    """Index to cut `text` at so the head fits in `limit` characters."""
    best = 0
    for i in range(min(limit, len(text)) - 1, 0, -1):
        ch = text[i]
        if ch in _CLAUSE_BREAKS:
            best = i + 1
            break
        if ch.isspace():
            best = i
            break
    if best > limit // 2:
        return best
    return max(1, limit)


def split_long_sentence(sentence: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Force-split a sentence longer than max_chars.

    Cuts at the last clause separator or space before the bound when that
    lies past half the bound, otherwise cuts hard at max_chars.
    """
    max_chars = max(1, max_chars)
    pieces = []
    rest = sentence.strip()
    while len(rest) > max_chars:
        cut = _safe_cut_index(rest, max_chars)
        head = rest[:cut].strip()
        if head:
            pieces.append(head)
        rest = rest[cut:].strip()
    if rest:
        pieces.append(rest)
    return pieces


def chunk_by_length(sentences: list[str], max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Accumulate sentences into chunks no longer than max_chars."""
    chunks = []
    current = ""

    for sentence in sentences:
        for piece in split_long_sentence(sentence, max_chars):
            if not current:
                current = piece
            elif len(current) + 1 + len(piece) <= max_chars:
                current = f"{current} {piece}"
            else:
                chunks.append(current)
                current = piece

    if current:
        chunks.append(current)
    return chunks


def merge_short_chunks(
    chunks: list[str],
    min_chars: int = MIN_CHUNK_CHARS,
    max_chars: int = MAX_CHUNK_CHARS,
) -> list[str]:
    """Fold chunks shorter than min_chars into their successor when it fits."""
    merged = []
    for chunk in chunks:
        chunk = chunk.strip()
        if not chunk:
            continue
        if merged and len(merged[-1]) < min_chars and len(merged[-1]) + 1 + len(chunk) <= max_chars:
            merged[-1] = f"{merged[-1]} {chunk}"
        else:
            merged.append(chunk)
    return merged


def segment(
    raw_text: str | None,
    *,
    max_chars: int = MAX_CHUNK_CHARS,
    min_chars: int = MIN_CHUNK_CHARS,
    drop_urls: bool = False,
) -> list[str]:
    """Turn raw text into an ordered list of chunks.

    Never raises; empty or whitespace-only input gives an empty list.
    """
    if not raw_text:
        return []
    max_chars = max(1, max_chars)
    text = strip_urls(raw_text) if drop_urls else raw_text
    normalized = preprocess(text)
    if not normalized:
        return []

    result = []
    for paragraph in split_paragraphs(normalized):
        for block in split_blocks(paragraph):
            sentences = split_sentences(block)
            result.extend(merge_short_chunks(chunk_by_length(sentences, max_chars), min_chars, max_chars))
    return result


def approx_chars_per_second(rate: float) -> float:
    """Rough speaking speed used for remaining-time estimates."""
    return BASE_CHARS_PER_SECOND * max(rate, MIN_RATE_FOR_ESTIMATE)
