"""Tests for todo line classification and todo file parsing."""
import pytest


class TestClassifyLine:
    """Tests for classify_line() - the five-character marker check."""

    def test_incomplete_marker(self):
        """Lines starting with '- [ ]' are incomplete items."""
        import gittodo

        assert gittodo.classify_line("- [ ] Write docs") is gittodo.LineKind.INCOMPLETE

    def test_complete_marker(self):
        """Lines starting with '- [x]' are complete items."""
        import gittodo

        assert gittodo.classify_line("- [x] Write docs") is gittodo.LineKind.COMPLETE

    def test_uppercase_x_is_other(self):
        """'- [X]' matches neither marker."""
        import gittodo

        assert gittodo.classify_line("- [X] Write docs") is gittodo.LineKind.OTHER

    @pytest.mark.parametrize("line", [
        "-  [ ] two spaces after dash",
        "- [  ] two spaces in brackets",
        "  - [ ] indented",
        "* [ ] star bullet",
        "# Project Todos",
        "",
        "- [",
    ])
    def test_other_lines(self, line):
        """Anything not starting with an exact marker is other text."""
        import gittodo

        assert gittodo.classify_line(line) is gittodo.LineKind.OTHER

    def test_bare_marker_counts(self):
        """A marker with no task text is still an item."""
        import gittodo

        assert gittodo.classify_line("- [ ]") is gittodo.LineKind.INCOMPLETE
        assert gittodo.classify_line("- [ ]\n") is gittodo.LineKind.INCOMPLETE

    def test_only_prefix_matters(self):
        """Marker text later in the line does not change classification."""
        import gittodo

        assert gittodo.classify_line("note: - [ ] not an item") is gittodo.LineKind.OTHER
        assert gittodo.classify_line("- [x] done, see - [ ] below") is gittodo.LineKind.COMPLETE


class TestParseTodoFile:
    """Tests for parse_todo_file() - ordered line records."""

    def test_returns_none_without_file(self, make_repo):
        """A repository without TODO.md parses to None."""
        import gittodo

        repo = make_repo()

        assert gittodo.parse_todo_file(repo) is None

    def test_preserves_order_and_text(self, make_repo, write_todos, sample_lines):
        """Records keep file order and original text."""
        import gittodo

        repo = make_repo()
        write_todos(repo, sample_lines)

        result = gittodo.parse_todo_file(repo)

        assert [line.text for line in result] == sample_lines
        assert [line.number for line in result] == [1, 2, 3, 4, 5]

    def test_tags_each_line(self, make_repo, write_todos, sample_lines):
        """Each record carries its classification."""
        import gittodo

        repo = make_repo()
        write_todos(repo, sample_lines)

        kinds = [line.kind for line in gittodo.parse_todo_file(repo)]

        assert kinds == [
            gittodo.LineKind.OTHER,
            gittodo.LineKind.OTHER,
            gittodo.LineKind.INCOMPLETE,
            gittodo.LineKind.COMPLETE,
            gittodo.LineKind.INCOMPLETE,
        ]

    def test_strips_crlf_terminators(self, make_repo):
        """Windows line endings are not part of the record text."""
        import gittodo

        repo = make_repo()
        (repo / "TODO.md").write_bytes(b"- [ ] one\r\n- [x] two\r\n")

        result = gittodo.parse_todo_file(repo)

        assert [line.text for line in result] == ["- [ ] one", "- [x] two"]

    def test_empty_file(self, make_repo):
        """An empty TODO.md parses to no records."""
        import gittodo

        repo = make_repo()
        (repo / "TODO.md").write_text("")

        assert gittodo.parse_todo_file(repo) == []

    def test_reads_utf8(self, make_repo):
        """Non-ASCII task text survives parsing."""
        import gittodo

        repo = make_repo()
        (repo / "TODO.md").write_text("- [ ] Überprüfen ✓\n", encoding="utf-8")

        result = gittodo.parse_todo_file(repo)

        assert result[0].text == "- [ ] Überprüfen ✓"

    def test_uses_configured_file_name(self, make_repo, write_todos, monkeypatch):
        """The todo file name comes from configuration."""
        import gittodo

        repo = make_repo()
        write_todos(repo, ["- [ ] tracked"], name="TASKS.md")
        monkeypatch.setattr(gittodo.ConfigManager, '_config', {"todo_file": "TASKS.md"})

        result = gittodo.parse_todo_file(repo)

        assert result[0].text == "- [ ] tracked"

    def test_invalid_utf8_raises_unreadable(self, make_repo):
        """Bytes that are not UTF-8 raise TodoFileUnreadable, not a decode error."""
        import gittodo

        repo = make_repo()
        (repo / "TODO.md").write_bytes(b"- [ ] caf\xe9\n")

        with pytest.raises(gittodo.TodoFileUnreadable, match="not valid UTF-8"):
            gittodo.parse_todo_file(repo)

    def test_unopenable_file_raises_unreadable(self, make_repo, monkeypatch):
        """OS errors while opening the file become TodoFileUnreadable."""
        import gittodo

        repo = make_repo()
        (repo / "TODO.md").write_text("- [ ] locked\n")

        def _deny(*args, **kwargs):
            raise PermissionError(13, "Permission denied")
        monkeypatch.setattr("builtins.open", _deny)

        with pytest.raises(gittodo.TodoFileUnreadable, match="Permission denied"):
            gittodo.parse_todo_file(repo)
