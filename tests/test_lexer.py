"""Tests for comment/string masking, entry-point lookback and file discovery."""
from dead_code_analyzer.analyzer.lexer import (
    LexerState,
    MaskedSource,
    discover_dart_files,
    has_entry_point_marker,
    is_comment_text,
    mask_line,
    strip_comment_prefix,
)
from dead_code_analyzer.config import DEFAULT_EXCLUDED_DIRS


class TestMaskLine:
    """Comments and string literals are blanked, positions are preserved."""

    def test_line_comment_and_string(self):
        """Line comments and string bodies are blanked in place."""
        line = "var a = 'x // y'; // comment Foo"
        masked = mask_line(line, LexerState())

        assert len(masked) == len(line)
        assert masked.startswith("var a = ")
        assert "x" not in masked
        assert "Foo" not in masked
        assert ";" in masked, "code after the string must survive"

    def test_escaped_quote_does_not_end_string(self):
        """A backslash-escaped quote stays inside the string."""
        masked = mask_line(r"var s = 'it\'s'; Foo();", LexerState())

        assert "Foo();" in masked
        assert "it" not in masked

    def test_raw_string_has_no_escapes(self):
        """Backslashes in raw strings are literal."""
        masked = mask_line(r"var r = r'\d+'; Bar();", LexerState())

        assert "Bar();" in masked
        assert "\\d" not in masked

    def test_nested_block_comment_spans_lines(self):
        """Block comments nest and carry over to the next line."""
        state = LexerState()
        first = mask_line("int a; /* outer /* inner */ still", state)
        assert state.block_comment_depth == 1, "inner close must not end the outer comment"
        second = mask_line("comment */ int b;", state)

        assert first.strip() == "int a;"
        assert second.strip() == "int b;"
        assert state.block_comment_depth == 0

    def test_single_quoted_string_does_not_leak_to_next_line(self):
        """An unterminated single-line string ends with its line."""
        state = LexerState()
        mask_line("var broken = 'unterminated", state)

        assert not state.in_string


class TestMaskedSource:
    """Whole-file masking with per-line entry state."""

    def test_triple_quoted_string_hides_declarations(self):
        """Declarations inside a triple-quoted string are masked."""
        source = MaskedSource.from_text("var s = '''\nclass Fake {}\n''';\n")

        assert source.starts_in_string[:3] == [False, True, True]
        assert source.masked[1].strip() == ""
        assert source.masked[2].strip() == ";"

    def test_block_comment_lines_are_commented(self):
        """Lines opening inside a block comment count as commented."""
        source = MaskedSource.from_text("/*\nclass Old {}\n*/\nclass New {}\n")

        assert source.is_commented(1)
        assert not source.is_commented(3)

    def test_offsets_count_bytes(self):
        """Offsets are measured in UTF-8 bytes."""
        source = MaskedSource.from_text("// é\nclass A {}\n")

        # "// é" is 5 bytes in UTF-8 plus the newline
        assert source.offset_of(1, 0) == 6


class TestCommentHelpers:
    def test_is_comment_text(self):
        """Comment markers are recognised after leading whitespace."""
        assert is_comment_text("  // class A {}")
        assert is_comment_text(" * class A {}")
        assert is_comment_text("/* class A {} */")
        assert not is_comment_text("class A {} // trailing")

    def test_strip_comment_prefix(self):
        """A leading comment marker is removed so the code can be matched."""
        assert strip_comment_prefix("  /// void foo() {}") == "void foo() {}"
        assert strip_comment_prefix(" * void foo() {}") == "void foo() {}"


class TestEntryPointMarker:
    """Native entry-point pragma lookback."""

    def test_marker_above_other_annotations(self):
        """The pragma is found above other annotations."""
        lines = ["@pragma('vm:entry-point')", "@immutable", "", "class A {}"]
        assert has_entry_point_marker(lines, 3)

    def test_marker_with_double_quotes(self):
        """Double-quoted pragma names are accepted."""
        lines = ['@pragma("vm:entry-point")', "void callback() {}"]
        assert has_entry_point_marker(lines, 1)

    def test_code_line_stops_lookback(self):
        """An ordinary code line ends the search for a pragma."""
        lines = ["@pragma('vm:entry-point')", "int x = 1;", "class A {}"]
        assert not has_entry_point_marker(lines, 2), "pragma belongs to the previous statement"

    def test_unrelated_pragma(self):
        """Pragmas outside the entry-point list are ignored."""
        lines = ["@pragma('dart2js:noInline')", "class A {}"]
        assert not has_entry_point_marker(lines, 1)


class TestDiscoverDartFiles:
    """Project walking skips tool and build directories."""

    def test_excluded_directories(self, tmp_path):
        """Excluded directory names are never entered."""
        for relative in [
            "lib/a.dart", "lib/src/b.dart", "build/gen.dart", ".dart_tool/x.dart",
            "test/widget_test.dart", "lib/notes.md",
        ]:
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("", encoding="utf-8")

        files = discover_dart_files(tmp_path, DEFAULT_EXCLUDED_DIRS)

        assert files == [
            (tmp_path / "lib/a.dart").resolve(),
            (tmp_path / "lib/src/b.dart").resolve(),
        ]
