"""
Note index module for notebase.

Contains the NoteIndex class: a TTL-cached, sorted snapshot of the note files
under the notes root.
"""

import time
from fnmatch import fnmatch
from pathlib import Path

import structlog

from .config import (
    DEFAULT_EXCLUDED_DIRS,
    DEFAULT_EXTENSIONS,
    DEFAULT_JUNK_PATTERNS,
    NOTE_TYPE_FOLDERS,
    Settings,
)
from .models import NoteRecord
from .scanner import DirectoryScanner, WalkScanner, make_scanner
from .utils import absolute_path, split_extension

logger = structlog.get_logger(__name__)


def infer_note_type(directory: str) -> str:
    """Classify a note by its top-level folder. Display only."""
    if not directory:
        return "generic"
    top = Path(directory).parts[0]
    return NOTE_TYPE_FOLDERS.get(top, "generic")


def make_record(path: Path, root: Path, extensions: list[str]) -> NoteRecord:
    """Build a NoteRecord for a file below (or outside) the notes root."""
    path = absolute_path(path)
    try:
        rel = path.relative_to(root)
    except ValueError:
        rel = Path(path.name)
        directory = ""
    else:
        directory = rel.parent.as_posix() if rel.parent != Path(".") else ""
    basename, ext = split_extension(path.name, extensions)
    if not ext:
        basename, ext = path.stem, path.suffix
    return NoteRecord(
        path=path,
        rel_path=rel.as_posix(),
        basename=basename,
        extension=ext,
        directory=directory,
        note_type=infer_note_type(directory),
    )


class _Snapshot:
    """Immutable result of one scan. Replaced wholesale, never mutated."""

    def __init__(self, notes: tuple[NoteRecord, ...], built_at: float):
        self.notes = notes
        self.by_path = {n.path: n for n in notes}
        self.built_at = built_at


class NoteIndex:
    """In-memory index of the notes tree. Avoids repeated filesystem scans.

    The index performs no filesystem watching: every code path that creates,
    deletes, moves or renames a note must call invalidate().
    """

    def __init__(
        self,
        root: Path,
        ttl: int = 300,
        extensions: list[str] | None = None,
        junk_patterns: list[str] | None = None,
        excluded_dirs: list[str] | None = None,
        scanner: DirectoryScanner | None = None,
    ):
        self.root = absolute_path(root)
        self.ttl = ttl
        self.extensions = list(extensions or DEFAULT_EXTENSIONS)
        self.junk_patterns = list(DEFAULT_JUNK_PATTERNS if junk_patterns is None else junk_patterns)
        self.excluded_dirs = list(DEFAULT_EXCLUDED_DIRS if excluded_dirs is None else excluded_dirs)
        self.scanner = scanner or WalkScanner()
        self._snapshot: _Snapshot | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "NoteIndex":
        return cls(
            settings.notes_root,
            ttl=settings.cache_ttl,
            extensions=settings.extensions,
            junk_patterns=settings.junk_patterns,
            excluded_dirs=settings.excluded_dirs,
            scanner=make_scanner(settings.use_external_tools),
        )

    @property
    def is_stale(self) -> bool:
        snapshot = self._snapshot
        return snapshot is None or (time.time() - snapshot.built_at) > self.ttl

    def _accepts(self, rel_path: Path) -> bool:
        *dirs, name = rel_path.parts
        for part in dirs:
            if part.startswith(".") or part in self.excluded_dirs:
                return False
        for part in rel_path.parts:
            if any(fnmatch(part, pattern) for pattern in self.junk_patterns):
                return False
        _, ext = split_extension(name, self.extensions)
        return bool(ext)

    def record_for(self, path: Path) -> NoteRecord:
        """Build a NoteRecord for a file, whether or not it is indexed."""
        return make_record(path, self.root, self.extensions)

    def build(self, root: Path | None = None) -> list[NoteRecord]:
        """Scan the notes root and replace the cached snapshot.

        A missing root yields an empty index; unreadable subdirectories are
        skipped by the scanner.
        """
        if root is not None:
            self.root = absolute_path(root)

        start_time = time.time()
        records: list[NoteRecord] = []

        if not self.root.is_dir():
            logger.info("notes_root_missing", root=str(self.root))
        else:
            excluded = self.junk_patterns + self.excluded_dirs
            seen: set[Path] = set()
            for note_file in self.scanner.scan(self.root, excluded):
                try:
                    rel_path = note_file.relative_to(self.root)
                except ValueError:
                    continue
                if not self._accepts(rel_path):
                    continue
                record = self.record_for(note_file)
                if record.path in seen:
                    continue
                seen.add(record.path)
                records.append(record)

        records.sort(key=lambda r: r.rel_path)
        self._snapshot = _Snapshot(tuple(records), time.time())

        logger.info(
            "index_built",
            root=str(self.root),
            note_count=len(records),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return list(records)

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next get_or_build() rescans."""
        self._snapshot = None
        logger.debug("index_invalidated", root=str(self.root))

    def get_or_build(self) -> list[NoteRecord]:
        """Return the cached notes, rescanning when the TTL has expired."""
        snapshot = self._snapshot
        if snapshot is None or self.is_stale:
            return self.build()
        return list(snapshot.notes)

    def get(self, path: Path) -> NoteRecord | None:
        """Look up an indexed note by path."""
        self.get_or_build()
        snapshot = self._snapshot
        return snapshot.by_path.get(absolute_path(path)) if snapshot else None

    def __len__(self) -> int:
        return len(self.get_or_build())
