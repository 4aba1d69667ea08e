"""
Tag extraction for notebase.

Tags come from inline #tags in the body, org headline tags
(`* Heading  :work:urgent:`) and a `tags` entry in YAML frontmatter. Fenced
code blocks and markdown heading lines are not scanned for inline tags.
"""

import re
from pathlib import Path

import structlog

from .links import FENCE_PATTERN
from .models import NoteRecord
from .utils import parse_frontmatter, read_note_lines

logger = structlog.get_logger(__name__)

# Pre-compiled regex patterns for performance
TAG_PATTERN = re.compile(r'(?<![\w#&/\[(])#([A-Za-z][\w-]*(?:/[\w-]+)*)')
HEADING_PATTERN = re.compile(r'^\s{0,3}#{1,6}(\s|$)')
ORG_HEADLINE_PATTERN = re.compile(r'^\*+\s')
ORG_HEADLINE_TAGS_PATTERN = re.compile(r'\s:((?:[\w@]+:)+)\s*$')
TAG_SPLIT_PATTERN = re.compile(r'[,\s]+')


def _add(tags: list[str], tag: str) -> None:
    tag = tag.strip().lstrip("#")
    if tag and tag not in tags:
        tags.append(tag)


def extract_tags(lines: list[str]) -> list[str]:
    """Return the tags in a note body, in first-seen order without duplicates.

    Args:
        lines: Body lines of the note, without frontmatter

    Returns:
        Tag names without the leading "#"
    """
    tags: list[str] = []
    in_fence = False
    fence_marker = ""

    for line in lines:
        fence = FENCE_PATTERN.match(line)
        if fence:
            if not in_fence:
                in_fence, fence_marker = True, fence.group(1)
            elif fence.group(1) == fence_marker:
                in_fence = False
            continue
        if in_fence or HEADING_PATTERN.match(line):
            continue
        # "* " also starts a markdown bullet, so inline tags are still read
        if ORG_HEADLINE_PATTERN.match(line):
            m = ORG_HEADLINE_TAGS_PATTERN.search(line)
            if m:
                for tag in m.group(1).split(":"):
                    _add(tags, tag)
        for m in TAG_PATTERN.finditer(line):
            _add(tags, m.group(1))

    return tags


def frontmatter_tags(frontmatter: dict) -> list[str]:
    """Tags listed under the frontmatter `tags` key, as a list or a string."""
    raw = frontmatter.get("tags")
    if not raw:
        return []
    if isinstance(raw, str):
        raw = TAG_SPLIT_PATTERN.split(raw)
    elif not isinstance(raw, list):
        raw = [raw]
    tags: list[str] = []
    for tag in raw:
        if tag is not None:
            _add(tags, str(tag))
    return tags


def note_tags(path: Path) -> list[str]:
    """Read a note and return its frontmatter tags followed by its inline tags.

    Raises:
        OSError, UnicodeDecodeError: If the note cannot be read
    """
    lines, _newline, _trailing = read_note_lines(path)
    frontmatter, body = parse_frontmatter("\n".join(lines) + "\n")
    tags = frontmatter_tags(frontmatter)
    for tag in extract_tags(body.split("\n")):
        _add(tags, tag)
    return tags


def collect_tags(notes: list[NoteRecord]) -> dict[str, int]:
    """Count the notes carrying each tag, sorted by tag name.

    Unreadable notes are logged and skipped.
    """
    counts: dict[str, int] = {}
    for note in notes:
        try:
            tags = note_tags(note.path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("note_read_failed", path=str(note.path), error=str(e))
            continue
        for tag in tags:
            counts[tag] = counts.get(tag, 0) + 1

    logger.debug("tags_collected", notes=len(notes), tags=len(counts))
    return dict(sorted(counts.items(), key=lambda kv: (kv[0].lower(), kv[0])))
