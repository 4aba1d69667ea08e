"""
Directory scanners and content searchers for notebase.

The index and the backlink engine only depend on the two protocols below. The
in-process implementations are the defaults; the fd/rg variants shell out to
the external tools when they are installed and fall back to the in-process
walk/scan when a tool is missing or fails.
"""

import os
import re
import shutil
import subprocess
from fnmatch import fnmatch
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

# Files passed to one rg invocation
RG_CHUNK_SIZE = 500


def _matches_any(name: str, patterns: list[str]) -> bool:
    return any(fnmatch(name, pattern) for pattern in patterns)


class DirectoryScanner(Protocol):
    """List candidate files below a root directory."""

    def scan(self, root: Path, excluded: list[str]) -> list[Path]:
        """Return absolute file paths, pruning names that match `excluded`."""
        ...


class ContentSearcher(Protocol):
    """Find which files contain a regular expression."""

    def files_matching(self, pattern: str, files: list[Path]) -> set[Path]:
        """Return the subset of `files` whose content matches `pattern`."""
        ...


class WalkScanner:
    """Pure in-process recursive walk."""

    def scan(self, root: Path, excluded: list[str]) -> list[Path]:
        found: list[Path] = []

        def on_error(err: OSError) -> None:
            logger.warning("directory_unreadable", path=str(err.filename), error=str(err))

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            # Prune in place so os.walk never descends into skipped folders
            dirnames[:] = [
                d for d in dirnames
                if not d.startswith(".") and not _matches_any(d, excluded)
            ]
            for filename in filenames:
                if _matches_any(filename, excluded):
                    continue
                found.append(Path(dirpath) / filename)
        return found


class FdScanner:
    """Scanner backed by the `fd` command line tool."""

    def __init__(self, executable: str | None = None):
        self.executable = executable or shutil.which("fd") or shutil.which("fdfind")
        self._fallback = WalkScanner()

    def scan(self, root: Path, excluded: list[str]) -> list[Path]:
        if not self.executable:
            return self._fallback.scan(root, excluded)

        cmd = [self.executable, "--type", "f", "--no-ignore", "--absolute-path", "--color", "never"]
        for pattern in excluded:
            cmd.extend(["--exclude", pattern])
        cmd.extend([".", str(root)])

        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            logger.warning("fd_failed", error=str(e))
            return self._fallback.scan(root, excluded)

        if proc.returncode != 0:
            logger.warning("fd_failed", returncode=proc.returncode, stderr=proc.stderr.strip())
            return self._fallback.scan(root, excluded)

        return [Path(line) for line in proc.stdout.splitlines() if line]


class PythonSearcher:
    """Pure in-process content search."""

    def files_matching(self, pattern: str, files: list[Path]) -> set[Path]:
        regex = re.compile(pattern)
        matches: set[Path] = set()
        for path in files:
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("note_read_failed", path=str(path), error=str(e))
                continue
            if regex.search(text):
                matches.add(path)
        return matches


class RipgrepSearcher:
    """Content search backed by the `rg` command line tool."""

    def __init__(self, executable: str | None = None):
        self.executable = executable or shutil.which("rg")
        self._fallback = PythonSearcher()

    def files_matching(self, pattern: str, files: list[Path]) -> set[Path]:
        if not self.executable:
            return self._fallback.files_matching(pattern, files)

        matches: set[Path] = set()
        for i in range(0, len(files), RG_CHUNK_SIZE):
            chunk = files[i:i + RG_CHUNK_SIZE]
            cmd = [self.executable, "--files-with-matches", "--no-messages", "-e", pattern, "--"]
            cmd.extend(str(p) for p in chunk)
            try:
                proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
            except OSError as e:
                logger.warning("rg_failed", error=str(e))
                matches |= self._fallback.files_matching(pattern, chunk)
                continue

            # rg exits 1 when nothing matched
            if proc.returncode not in (0, 1):
                logger.warning("rg_failed", returncode=proc.returncode, stderr=proc.stderr.strip())
                matches |= self._fallback.files_matching(pattern, chunk)
                continue

            matches |= {Path(line) for line in proc.stdout.splitlines() if line}
        return matches


def make_scanner(use_external_tools: bool = False) -> DirectoryScanner:
    """Return the fd scanner when requested, else the in-process walk."""
    return FdScanner() if use_external_tools else WalkScanner()


def make_searcher(use_external_tools: bool = False) -> ContentSearcher | None:
    """Return the rg searcher when requested, else None (no prefilter)."""
    return RipgrepSearcher() if use_external_tools else None
