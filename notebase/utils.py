"""
Utility functions and compiled regex patterns for notebase.

Contains path and name normalisation, frontmatter parsing, whole-file line I/O
and the exception types shared by the core modules.
"""

import os
import re
from pathlib import Path

import yaml

# Pre-compiled regex patterns for performance
FRONTMATTER_PATTERN = re.compile(r'^---\s*\n(.*?)\n---\s*\n', re.DOTALL)
UNSAFE_FILENAME_PATTERN = re.compile(r'[/\\:*?"<>|]')
WHITESPACE_PATTERN = re.compile(r'\s+')
NORMALIZE_PATTERN = re.compile(r'[\s_]+')
COLLAPSE_PATTERN = re.compile(r'[\s\-_]+')
URL_SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*://')
LINE_BREAK_PATTERN = re.compile(r'\r\n|\r|\n')


# ============== Exceptions ==============

class NotebaseError(Exception):
    """Base class for notebase errors."""
    pass


class NotFoundError(NotebaseError):
    """Raised when a path expected to exist does not."""
    pass


class DestinationExistsError(NotebaseError):
    """Raised when a rename or move target collides with an existing file."""
    pass


class NoteValidationError(NotebaseError):
    """Raised when a note name or title is invalid."""
    pass


class InvalidTransitionError(NotebaseError):
    """Raised when a rename transaction is driven out of order."""
    pass


class PathValidationError(NotebaseError):
    """Raised when path validation fails."""
    pass


# ============== Name Helpers ==============

def absolute_path(path: Path | str) -> Path:
    """Make a path absolute and normalised without following symlinks."""
    return Path(os.path.abspath(Path(path).expanduser()))


def slugify(title: str, lowercase: bool = False) -> str:
    """Turn a title into a filename-safe slug, keeping unicode letters.

    Filesystem-reserved characters become hyphens, whitespace runs become a
    single hyphen and leading/trailing hyphens are stripped.

    Examples:
        >>> slugify("Møde med Åse")
        'Møde-med-Åse'
        >>> slugify("a/b: c")
        'a-b-c'
    """
    s = UNSAFE_FILENAME_PATTERN.sub("-", title or "")
    s = WHITESPACE_PATTERN.sub("-", s)
    s = re.sub(r"-{2,}", "-", s).strip("-")
    if lowercase:
        s = s.lower()
    return s or "note"


def normalize_name(name: str) -> str:
    """Lowercase a name and turn whitespace/underscore runs into hyphens."""
    return NORMALIZE_PATTERN.sub("-", name.strip()).lower()


def collapse_name(name: str) -> str:
    """Lowercase a name and drop every whitespace, hyphen and underscore."""
    return COLLAPSE_PATTERN.sub("", name).lower()


def split_extension(name: str, extensions: list[str]) -> tuple[str, str]:
    """Split a recognised note extension off a name.

    Returns (stem, extension); extension is "" when the suffix is not one of
    the recognised extensions (compared case-insensitively).
    """
    lower = name.lower()
    for ext in extensions:
        if lower.endswith(ext.lower()) and len(name) > len(ext):
            return name[: -len(ext)], name[-len(ext):]
    return name, ""


def split_anchor(target: str) -> tuple[str, str]:
    """Split a trailing "#anchor" off a link target.

    The anchor keeps its "#". A target that starts with "#" has no path part
    and is returned unchanged with an empty anchor.
    """
    idx = target.find("#")
    if idx <= 0:
        return target, ""
    return target[:idx], target[idx:]


def is_external_target(target: str) -> bool:
    """Return True for URLs and mailto: targets, which never name a note."""
    stripped = target.strip()
    return bool(URL_SCHEME_PATTERN.match(stripped)) or stripped.lower().startswith("mailto:")


def parse_frontmatter(content: str) -> tuple[dict, str]:
    """Extract YAML frontmatter and body from note content."""
    frontmatter = {}
    body = content

    match = FRONTMATTER_PATTERN.match(content)
    if match:
        try:
            frontmatter = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError:
            pass
        if not isinstance(frontmatter, dict):
            frontmatter = {}
        body = content[match.end():]

    return frontmatter, body


# ============== File I/O ==============

def read_note_lines(path: Path) -> tuple[list[str], str, bool]:
    """Read a note as a list of lines without newline characters.

    Lines are split on \\n, \\r\\n and bare \\r alike. Returns (lines, newline,
    trailing_newline); newline is the dominant ending and is used when the
    file is written back.
    """
    with open(path, encoding="utf-8", newline="") as f:
        text = f.read()
    if not text:
        return [], "\n", False
    crlf = text.count("\r\n")
    newline = "\r\n" if crlf > text.count("\n") - crlf else "\n"
    lines = LINE_BREAK_PATTERN.split(text)
    trailing = lines[-1] == ""
    if trailing:
        lines.pop()
    return lines, newline, trailing


def write_note_lines(path: Path, lines: list[str], newline: str = "\n", trailing: bool = True) -> None:
    """Write lines back to a note, joined with the given newline."""
    text = newline.join(lines)
    if trailing:
        text += newline
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


# ============== Security Validation ==============

def validate_path_within_root(path_str: str, root: Path) -> Path:
    """Validate that a path is safely within the notes root.

    Args:
        path_str: The path string to validate (relative to the root, or absolute inside it)
        root: The notes root path

    Returns:
        The validated absolute Path

    Raises:
        PathValidationError: If the path is empty or escapes the notes root
    """
    if not path_str or not path_str.strip():
        raise PathValidationError("Path cannot be empty")

    candidate = Path(path_str).expanduser()
    full_path = absolute_path(candidate if candidate.is_absolute() else root / candidate)
    root_resolved = absolute_path(root)

    try:
        full_path.relative_to(root_resolved)
    except ValueError:
        raise PathValidationError(f"Path escapes notes root: {path_str}")

    return full_path
