import math
import random

import pytest

from studydeck.services.chunker import chunk_text


def test_example_windows():
    chunks = chunk_text("ABCDEFGHIJ", chunk_size=4, overlap=1)
    assert [c.text for c in chunks] == ["ABCD", "DEFG", "GHIJ"]
    assert [c.char_start for c in chunks] == [0, 3, 6]
    assert [c.chunk_index for c in chunks] == [0, 1, 2]


def test_example_pages_and_topics():
    chunks = chunk_text("ABCDEFGHIJ", chunk_size=4, overlap=1)
    assert [(c.page_from, c.page_to) for c in chunks] == [(1, 2), (1, 2), (2, 3)]
    assert [c.topic for c in chunks] == ["Chapter 1", "Chapter 1", "Chapter 2"]


def test_empty_text_yields_no_chunks():
    assert chunk_text("", chunk_size=4, overlap=1) == []


def test_text_shorter_than_overlap_is_one_chunk():
    chunks = chunk_text("A", chunk_size=4, overlap=2)
    assert [c.text for c in chunks] == ["A"]


@pytest.mark.parametrize(
    "length,size,overlap",
    [(10, 4, 1), (1000, 100, 10), (999, 100, 0), (2500, 1000, 100), (57, 8, 7)],
)
def test_chunk_count_and_reconstruction(length, size, overlap):
    text = "".join(chr(ord("a") + i % 26) for i in range(length))
    chunks = chunk_text(text, chunk_size=size, overlap=overlap)

    assert len(chunks) == math.ceil((length - overlap) / (size - overlap))
    assert all(len(c.text) <= size for c in chunks)
    rebuilt = chunks[0].text + "".join(c.text[overlap:] for c in chunks[1:])
    assert rebuilt == text


def test_consecutive_chunks_overlap_by_constant():
    text = "x" * 50 + "y" * 50 + "z" * 37
    chunks = chunk_text(text, chunk_size=30, overlap=5)
    for prev, cur in zip(chunks, chunks[1:]):
        assert prev.char_end - cur.char_start == 5
        assert prev.text[-5:] == cur.text[:5]


def test_page_ranges_non_decreasing():
    chunks = chunk_text("lorem ipsum " * 500, chunk_size=250, overlap=40)
    for prev, cur in zip(chunks, chunks[1:]):
        assert cur.page_from >= prev.page_from
        assert cur.page_to >= prev.page_to
    assert all(c.page_from <= c.page_to for c in chunks)


def test_difficulty_within_range_and_seedable():
    text = "q" * 5000
    a = chunk_text(text, chunk_size=100, overlap=10, rng=random.Random(7))
    b = chunk_text(text, chunk_size=100, overlap=10, rng=random.Random(7))
    assert all(2 <= c.difficulty <= 4 for c in a)
    assert [c.difficulty for c in a] == [c.difficulty for c in b]


@pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 0), (4, 4), (4, 9), (4, -1)])
def test_rejects_invalid_window(size, overlap):
    with pytest.raises(ValueError):
        chunk_text("ABCDEFGHIJ", chunk_size=size, overlap=overlap)
