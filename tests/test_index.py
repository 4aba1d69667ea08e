"""
Tests for the NoteIndex cache and directory scanners.
"""

import time
from pathlib import Path


class TestNoteIndex:
    """Tests for NoteIndex."""

    def test_is_stale_initially(self, notes_root):
        """Test index is stale before first build."""
        from notebase.index import NoteIndex

        index = NoteIndex(notes_root, ttl=60)

        assert index.is_stale is True

    def test_is_not_stale_after_build(self, index):
        assert index.is_stale is False

    def test_is_stale_after_ttl(self, notes_root):
        """Test index becomes stale after TTL expires."""
        from notebase.index import NoteIndex

        index = NoteIndex(notes_root, ttl=1)
        index.build()

        assert index.is_stale is False
        time.sleep(1.1)
        assert index.is_stale is True

    def test_build_sorted_by_relative_path(self, index):
        """Test notes come back sorted by relative path."""
        rel_paths = [n.rel_path for n in index.get_or_build()]

        assert rel_paths == [
            "202401011200-zettel.md",
            "Code.md",
            "Daily/2024-01-01.md",
            "My-Note.md",
            "Other.md",
            "Projects/Plan.org",
        ]

    def test_build_excludes_junk_and_excluded_dirs(self, index):
        """Test templates, hidden folders, junk files and non-notes are skipped."""
        rel_paths = {n.rel_path for n in index.get_or_build()}

        assert "Templates/Template.md" not in rel_paths
        assert ".git/notes.md" not in rel_paths
        assert "._My-Note.md" not in rel_paths
        assert "image.png" not in rel_paths

    def test_record_fields(self, index, notes_root):
        """Test a record carries basename, extension, folder and type."""
        record = index.get(notes_root / "Projects" / "Plan.org")

        assert record is not None
        assert record.basename == "Plan"
        assert record.extension == ".org"
        assert record.directory == "Projects"
        assert record.note_type == "project"
        assert record.rel_path == "Projects/Plan.org"

    def test_note_type_generic_at_root(self, index, notes_root):
        record = index.get(notes_root / "Other.md")

        assert record.note_type == "generic"
        assert record.directory == ""

    def test_missing_root_is_empty(self, tmp_path: Path):
        """Test a missing root yields an empty index, not an error."""
        from notebase.index import NoteIndex

        index = NoteIndex(tmp_path / "does-not-exist")

        assert index.build() == []
        assert len(index) == 0

    def test_cached_until_invalidated(self, index, notes_root):
        """Test new files are not seen until the index is invalidated."""
        (notes_root / "New.md").write_text("# New\n", encoding="utf-8")

        assert index.get(notes_root / "New.md") is None

        index.invalidate()

        assert index.is_stale is True
        assert index.get(notes_root / "New.md") is not None

    def test_rebuild_replaces_snapshot(self, index, notes_root):
        """Test a rebuild returns a fresh list, leaving old results intact."""
        before = index.get_or_build()
        (notes_root / "Other.md").unlink()

        after = index.build()

        assert len(before) == 6
        assert len(after) == 5

    def test_custom_extensions(self, notes_root):
        """Test only configured extensions are indexed."""
        from notebase.index import NoteIndex

        index = NoteIndex(notes_root, extensions=[".org"])

        assert [n.rel_path for n in index.build()] == ["Projects/Plan.org"]

    def test_excluded_dirs_override(self, notes_root):
        """Test an empty excluded list brings Templates back."""
        from notebase.index import NoteIndex

        index = NoteIndex(notes_root, excluded_dirs=[])

        assert "Templates/Template.md" in {n.rel_path for n in index.build()}

    def test_from_settings(self, notes_root):
        from notebase.config import Settings
        from notebase.index import NoteIndex
        from notebase.scanner import WalkScanner

        index = NoteIndex.from_settings(Settings(notes_root=notes_root, cache_ttl=5))

        assert index.root == notes_root
        assert index.ttl == 5
        assert isinstance(index.scanner, WalkScanner)


class TestScanners:
    """Tests for directory scanners and content searchers."""

    def test_walk_scanner_prunes_hidden_and_excluded(self, notes_root):
        from notebase.scanner import WalkScanner

        found = WalkScanner().scan(notes_root, ["Templates"])
        names = {p.relative_to(notes_root).as_posix() for p in found}

        assert "My-Note.md" in names
        assert "Templates/Template.md" not in names
        assert ".git/notes.md" not in names

    def test_fd_scanner_without_executable_falls_back(self, notes_root):
        """Test the fd scanner walks in-process when fd is unavailable."""
        from notebase.scanner import FdScanner

        scanner = FdScanner()
        scanner.executable = None

        found = scanner.scan(notes_root, ["Templates"])

        assert notes_root / "My-Note.md" in found

    def test_python_searcher(self, notes_root):
        from notebase.scanner import PythonSearcher

        files = [notes_root / "My-Note.md", notes_root / "Code.md", notes_root / "Other.md"]
        hits = PythonSearcher().files_matching(r"Back to", files)

        assert hits == {notes_root / "Other.md"}

    def test_ripgrep_searcher_without_executable_falls_back(self, notes_root):
        from notebase.scanner import RipgrepSearcher

        searcher = RipgrepSearcher()
        searcher.executable = None

        hits = searcher.files_matching(r"\[\[", [notes_root / "Other.md", notes_root / "Code.md"])

        assert hits == {notes_root / "Other.md", notes_root / "Code.md"}

    def test_make_searcher(self):
        from notebase.scanner import RipgrepSearcher, make_searcher

        assert make_searcher(False) is None
        assert isinstance(make_searcher(True), RipgrepSearcher)
