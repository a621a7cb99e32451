"""Tests for the segmenter module."""

import re

import pytest

from yomiage.constants import MAX_CHUNK_CHARS, MIN_CHUNK_CHARS
from yomiage.segmenter import (
    approx_chars_per_second,
    chunk_by_length,
    merge_short_chunks,
    preprocess,
    segment,
    split_blocks,
    split_long_sentence,
    split_paragraphs,
    split_sentences,
    strip_urls,
)

SAMPLE = (
    "吾輩は猫である。名前はまだ無い。どこで生れたかとんと見当がつかぬ。"
    "何でも薄暗いじめじめした所でニャーニャー泣いていた事だけは記憶している。\n\n"
    "吾輩はここで始めて人間というものを見た。しかもあとで聞くとそれは書生という"
    "人間中で一番獰悪な種族であったそうだ。この書生というのは時々我々を捕えて煮て食うという話である。"
    "しかしその当時は何という考もなかったから別段恐しいとも思わなかった。\n"
    "- 一つ目の項目\n"
    "- 二つ目の項目\n"
)


# --- Normalization ---

def test_preprocess_strips_zero_width_and_bom():
    """Zero-width characters and BOM disappear."""
    assert preprocess("\ufeffあ\u200bい\u200dう") == "あいう"


def test_preprocess_control_whitespace_to_space():
    """Tabs, form feeds and carriage returns become single spaces."""
    assert preprocess("あ\t\tい\fう") == "あ い う"
    assert preprocess("あ\r\nい") == "あ\nい"


def test_preprocess_collapses_dash_runs():
    """Runs of three or more dashes collapse; a single dash stays."""
    assert preprocess("前———後") == "前-後"
    assert preprocess("前—後") == "前—後"


def test_preprocess_expands_abbreviations():
    """Percent signs, No. and company markers get readings."""
    assert "パーセント" in preprocess("50%の確率")
    assert preprocess("No.5") == "ナンバー 5"
    assert "かぶしきがいしゃ" in preprocess("(株)山田")
    assert "ミスター" in preprocess("Mr. Tanaka")


def test_preprocess_squeezes_blank_lines():
    """Trailing spaces before newlines go and 3+ newlines become 2."""
    assert preprocess("あ  \n\n\n\nい") == "あ\n\nい"


def test_strip_urls():
    """URLs and Markdown link targets are removed; link labels stay."""
    result = strip_urls("詳しくは https://example.com/page を見て。[ここ](https://x.jp) www.example.org")
    assert "http" not in result
    assert "www." not in result
    assert "詳しくは" in result
    assert "ここ" in result


# --- Splitting ---

def test_split_paragraphs():
    """Two or more newlines separate paragraphs."""
    assert split_paragraphs("一\n\n二\n三") == ["一", "二\n三"]


def test_split_blocks_keeps_list_items_apart():
    """Bullet lines become their own blocks and flush surrounding prose."""
    blocks = split_blocks("前置き\n続き\n- 項目1\n* 項目2\n1. 番号\n(2) 括弧\n後書き")
    assert blocks == ["前置き 続き", "- 項目1", "* 項目2", "1. 番号", "(2) 括弧", "後書き"]


def test_split_blocks_blank_line_flushes():
    """Blank lines flush without producing empty blocks."""
    assert split_blocks("あ\n\n\nい") == ["あ", "い"]


def test_split_sentences_keeps_closing_quote():
    """Closing brackets stay with their sentence."""
    assert split_sentences("「こんにちは。」と言った。") == ["「こんにちは。」", "と言った。"]


def test_split_sentences_repeated_terminals():
    """Mixed terminal punctuation stays with one sentence."""
    assert split_sentences("本当？！はい。") == ["本当？！", "はい。"]


def test_split_sentences_without_terminal():
    """A block with no terminal punctuation is one sentence."""
    assert split_sentences("句点のない文") == ["句点のない文"]


def test_split_sentences_half_width():
    """Half-width marks end sentences too."""
    assert split_sentences("Yes! Really? ok｡") == ["Yes!", "Really?", "ok｡"]


# --- Length handling ---

def test_chunk_by_length_respects_max():
    """Sentences accumulate until the next one would overflow."""
    sentences = ["あ" * 100, "い" * 100, "う" * 100]
    chunks = chunk_by_length(sentences, max_chars=260)
    assert [len(c) for c in chunks] == [201, 100]


def test_long_sentence_hard_cut():
    """Without separators a long sentence is cut at the bound."""
    pieces = split_long_sentence("あ" * 600, max_chars=260)
    assert [len(p) for p in pieces] == [260, 260, 80]


def test_long_sentence_cut_at_clause_break():
    """A clause separator past half the bound is preferred."""
    sentence = ("あ" * 200 + "、") * 3
    pieces = split_long_sentence(sentence, max_chars=260)
    assert pieces[0] == "あ" * 200 + "、"
    assert "".join(pieces) == sentence


def test_long_sentence_ignores_early_separator():
    """A separator before half the bound is not used."""
    sentence = "あ" * 10 + "、" + "い" * 400
    pieces = split_long_sentence(sentence, max_chars=260)
    assert len(pieces[0]) == 260


@pytest.mark.parametrize("max_chars", [0, -5])
def test_non_positive_max_chars_is_clamped(max_chars):
    """A bound below one is treated as one character per piece."""
    assert split_long_sentence("あいう", max_chars=max_chars) == ["あ", "い", "う"]
    assert segment("あいう。", max_chars=max_chars) == ["あ", "い", "う", "。"]


def test_merge_short_chunks():
    """Short chunks merge with the next one when the result fits."""
    assert merge_short_chunks(["a" * 50, "b" * 50]) == ["a" * 50 + " " + "b" * 50]
    assert merge_short_chunks(["a" * 200, "b" * 50]) == ["a" * 200, "b" * 50]
    assert merge_short_chunks(["a" * 100, "b" * 200]) == ["a" * 100, "b" * 200]


# --- Full pipeline ---

@pytest.mark.parametrize("text", ["", "   ", "\n\n\t", None])
def test_segment_empty(text):
    """Empty or whitespace-only input gives no chunks."""
    assert segment(text) == []


def test_segment_chunks_are_bounded_and_non_empty():
    """Every chunk is trimmed, non-empty and within the maximum."""
    text = SAMPLE * 5 + "あ" * 700
    chunks = segment(text)
    assert chunks
    for chunk in chunks:
        assert chunk == chunk.strip()
        assert 0 < len(chunk) <= MAX_CHUNK_CHARS


def test_segment_invents_no_characters():
    """Chunks hold exactly the normalized text, modulo whitespace."""
    chunks = segment(SAMPLE)
    joined = "".join(chunks).replace(" ", "")
    assert joined == re.sub(r"\s", "", preprocess(SAMPLE))


def test_segment_list_items_stay_atomic():
    """List items are never merged into prose chunks."""
    chunks = segment("はじめに。\n- 項目A\n- 項目B\n終わり。")
    assert chunks == ["はじめに。", "- 項目A", "- 項目B", "終わり。"]


def test_segment_merges_short_sentences():
    """Short sentences in one block end up in one chunk."""
    chunks = segment("はい。いいえ。たぶん。")
    assert chunks == ["はい。 いいえ。 たぶん。"]


def test_segment_short_chunk_merge_bound():
    """Merging never produces a chunk over the maximum."""
    sentences = "".join(["あ" * 110 + "。" for _ in range(6)])
    for chunk in segment(sentences):
        assert len(chunk) <= MAX_CHUNK_CHARS
    assert MIN_CHUNK_CHARS < MAX_CHUNK_CHARS


def test_segment_drop_urls():
    """drop_urls removes links before splitting."""
    chunks = segment("リンク https://example.com です。", drop_urls=True)
    assert all("http" not in c for c in chunks)


def test_segment_is_deterministic():
    """Same input, same chunks."""
    assert segment(SAMPLE) == segment(SAMPLE)


def test_approx_chars_per_second():
    """Speaking speed scales with rate and has a floor."""
    assert approx_chars_per_second(1.0) == 5
    assert approx_chars_per_second(2.0) == 10
    assert approx_chars_per_second(0) == pytest.approx(0.5)
