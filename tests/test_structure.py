"""Tests for heading detection and section building."""

from docrank.chunking.schemas import HeadingMarker
from docrank.chunking.structure import build_sections, extract_structure, is_heading


class TestIsHeading:
    def test_markdown_hashes(self):
        assert is_heading("# Title")
        assert is_heading("### Deep heading")
        assert is_heading("   ## Indented")

    def test_numbered_item(self):
        assert is_heading("1. Install the package")

    def test_capitalised_label(self):
        assert is_heading("Note: restart after upgrading")

    def test_bare_label_without_text_is_not_heading(self):
        assert not is_heading("Note:")

    def test_all_caps(self):
        assert is_heading("INSTALLATION")
        assert not is_heading("X" * 120)

    def test_all_caps_rule_matches_lines_without_letters(self):
        assert is_heading("2024")

    def test_body_text(self):
        assert not is_heading("this is ordinary body text.")
        assert not is_heading("#hashtag without a space")
        assert not is_heading("")
        assert not is_heading("   ")


class TestExtractStructure:
    def test_heading_text_and_line_index(self):
        text = "# Setup\nbody\n\n## Usage guide\nmore body"
        assert extract_structure(text) == [
            HeadingMarker(text="Setup", line_index=0),
            HeadingMarker(text="Usage guide", line_index=3),
        ]

    def test_non_hash_markers_keep_full_line(self):
        markers = extract_structure("intro line\n  2. Configure the tool  \n")
        assert markers == [HeadingMarker(text="2. Configure the tool", line_index=1)]

    def test_no_headings(self):
        assert extract_structure("plain text only.\nnothing else here.") == []


class TestBuildSections:
    def test_sections_are_contiguous(self):
        text = "# A\none\n# B\ntwo\nthree"
        lines = text.split("\n")
        sections = build_sections(lines, extract_structure(text))
        assert [(s.heading, s.start_line, s.end_line) for s in sections] == [
            ("A", 0, 1),
            ("B", 2, 4),
        ]

    def test_preamble_becomes_unheaded_section(self):
        text = "welcome to the docs.\n\n# A\nbody"
        lines = text.split("\n")
        sections = build_sections(lines, extract_structure(text))
        assert sections[0].heading is None
        assert (sections[0].start_line, sections[0].end_line) == (0, 1)
        assert sections[1].heading == "A"
        assert [s.section_index for s in sections] == [0, 1]

    def test_blank_preamble_is_dropped(self):
        text = "\n\n# A\nbody"
        sections = build_sections(text.split("\n"), extract_structure(text))
        assert len(sections) == 1
        assert sections[0].heading == "A"

    def test_no_headings_gives_no_sections(self):
        assert build_sections(["just text"], []) == []
