"""
Tests for paragraph-aware chunking and section detection.
"""

import re

import pytest

from pipeline.chunker import SectionLabel, chunk_text, detect_section, normalize_text


def _paragraphs(count: int) -> str:
    return "\n\n".join(f"Paragraph {i} " + "word " * 40 for i in range(count))


def _squash(text: str) -> str:
    return re.sub(r"\s", "", text)


class TestNormalizeText:
    def test_collapses_spaces_and_blank_lines(self):
        raw = "First   line\twith  gaps\n\n\n\n  Second paragraph  "
        assert normalize_text(raw) == "First line with gaps\n\nSecond paragraph"

    def test_empty(self):
        assert normalize_text(None) == ""
        assert normalize_text(" \n\n ") == ""


class TestChunkText:
    def test_empty_input_gives_no_chunks(self):
        assert chunk_text("") == []
        assert chunk_text(None) == []
        assert chunk_text("   \n\n   ") == []

    @pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 0), (100, -1), (100, 100), (100, 150)])
    def test_invalid_sizes_raise(self, size, overlap):
        with pytest.raises(ValueError):
            chunk_text("some text", chunk_size=size, overlap=overlap)

    def test_short_text_is_one_chunk(self):
        chunks = chunk_text("A short paper.", chunk_size=2000, overlap=200)
        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].start == 0
        assert chunks[0].overlap == 0
        assert chunks[0].text == "A short paper."

    def test_chunks_cover_text_within_size(self):
        text = _paragraphs(30)
        normalized = normalize_text(text)
        chunks = chunk_text(text, chunk_size=500, overlap=100)

        assert len(chunks) > 1
        assert [c.index for c in chunks] == list(range(len(chunks)))
        for chunk in chunks:
            assert 0 < len(chunk.text) <= 500
            assert chunk.text == normalized[chunk.start:chunk.end]

        covered = "".join(normalized[c.start + c.overlap:c.end] for c in chunks)
        assert _squash(covered) == _squash(normalized)

    def test_consecutive_chunks_overlap(self):
        chunks = chunk_text(_paragraphs(30), chunk_size=500, overlap=100)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.overlap > 0
            assert current.start < previous.end
            assert previous.text.endswith(current.text[:current.overlap].rstrip())

    def test_prefers_paragraph_boundaries(self):
        normalized = normalize_text(_paragraphs(30))
        chunks = chunk_text(normalized, chunk_size=500, overlap=100)
        for chunk in chunks[:-1]:
            assert normalized[chunk.end:chunk.end + 2] == "\n\n"

    def test_long_paragraph_splits_on_words(self):
        chunks = chunk_text("word " * 300, chunk_size=200, overlap=20)
        assert len(chunks) > 1
        for chunk in chunks:
            assert set(chunk.text.split()) == {"word"}
            assert not chunk.text.startswith(" ")

    def test_single_long_token_is_hard_cut(self):
        chunks = chunk_text("x" * 1000, chunk_size=300, overlap=0)
        assert [len(c.text) for c in chunks] == [300, 300, 300, 100]

    def test_sections_assigned(self):
        text = "\n\n".join([
            "Abstract\n" + "We present a method. " * 10,
            "1 Introduction\n" + "Rendering is hard. " * 10,
            "3 Experiments\n" + "We evaluate on benchmarks. " * 10,
        ])
        chunks = chunk_text(text, chunk_size=250, overlap=0)
        assert [c.section for c in chunks[:3]] == [
            SectionLabel.ABSTRACT,
            SectionLabel.INTRODUCTION,
            SectionLabel.RESULTS,
        ]


class TestDetectSection:
    def test_numbered_heading(self):
        assert detect_section("3.1 Methods\n\nWe train a network.", 5, 10) == SectionLabel.METHODS

    def test_roman_numeral_heading(self):
        assert detect_section("II. Related Work\nPrior art.", 3, 10) == SectionLabel.RELATED_WORK

    def test_run_in_heading(self):
        text = "Abstract. We propose FastSplat, a real-time method for rendering large unbounded scenes."
        assert detect_section(text, 4, 10) == SectionLabel.ABSTRACT

    def test_keyword_inside_sentence_is_not_a_heading(self):
        text = "Results show that our method improves accuracy across all benchmarks we considered here."
        assert detect_section(text, 0, 10) == SectionLabel.ABSTRACT

    def test_short_sentence_starting_with_keyword(self):
        text = "Results show that our method improves accuracy.\nWe also train on DTU."
        assert detect_section(text, 5, 10) == SectionLabel.METHODS

    @pytest.mark.parametrize(
        "line",
        [
            "Background subtraction is a common preprocessing step",
            "Summary statistics are reported per scene",
            "Approach taken by prior systems, which",
        ],
    )
    def test_wrapped_prose_line_is_not_a_heading(self, line):
        assert detect_section(line + "\nmore text follows here.", 7, 10) == SectionLabel.RESULTS

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Evaluation on the Tanks and Temples Benchmark\nWe compare.", SectionLabel.RESULTS),
            ("4.2 Results on synthetic scenes\nTable 2 lists PSNR.", SectionLabel.RESULTS),
            ("Background \u2014 neural radiance fields model scenes.", SectionLabel.RELATED_WORK),
            ("Conclusions: we presented FastSplat.", SectionLabel.CONCLUSION),
        ],
    )
    def test_heading_shapes(self, text, expected):
        assert detect_section(text, 5, 10) == expected

    def test_references(self):
        assert detect_section("References\n[1] Kerbl et al.", 9, 10) == SectionLabel.REFERENCES

    @pytest.mark.parametrize(
        "index,expected",
        [
            (0, SectionLabel.ABSTRACT),
            (1, SectionLabel.INTRODUCTION),
            (5, SectionLabel.METHODS),
            (7, SectionLabel.RESULTS),
            (9, SectionLabel.CONCLUSION),
        ],
    )
    def test_positional_fallback(self, index, expected):
        assert detect_section("plain body text without headings", index, 10) == expected
