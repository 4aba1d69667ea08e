"""
Link extraction for notebase.

Parses the lines of one note into LinkReference values. Supported syntaxes,
in priority order when matches overlap:

- [[file:path][desc]] / [[file:path]]  -> org_file
- [[zk:ID]]                            -> zk_id
- [[target|alias]]                     -> wiki_alias
- [[target]]                           -> wiki
- [text](path)                         -> markdown (URLs, mailto: and bare #anchors excluded)

Lines inside fenced code blocks are not scanned.
"""

import re
from pathlib import Path

from .models import LinkReference, LinkType
from .utils import is_external_target, read_note_lines

ORG_FILE_PATTERN = re.compile(r'\[\[file:([^\[\]]+)\](?:\[([^\[\]]*)\])?\]')
DOUBLE_BRACKET_PATTERN = re.compile(r'\[\[([^\[\]]+?)\]\]')
MARKDOWN_LINK_PATTERN = re.compile(
    r'(?<!!)\[([^\[\]]*)\]\(\s*(<[^>]*>|[^)\s]+)(?:\s+"[^"]*")?\s*\)'
)
FENCE_PATTERN = re.compile(r'^\s*(```|~~~)')

ZK_PREFIX = "zk:"
FILE_PREFIX = "file:"


def _overlaps(start: int, end: int, taken: list[tuple[int, int]]) -> bool:
    return any(start < t_end and t_start < end for t_start, t_end in taken)


def _line_links(line: str, line_number: int, source_file: Path) -> list[LinkReference]:
    refs: list[LinkReference] = []
    taken: list[tuple[int, int]] = []

    def add(
        m: re.Match, link_type: LinkType, target: str, alias: str | None, target_start: int
    ) -> None:
        taken.append((m.start(), m.end()))
        refs.append(LinkReference(
            source_file=source_file,
            line_number=line_number,
            raw_line_text=line,
            link_type=link_type,
            target_string=target,
            alias=alias,
            start=m.start(),
            end=m.end(),
            target_start=target_start,
            target_end=target_start + len(target),
        ))

    for m in ORG_FILE_PATTERN.finditer(line):
        add(m, LinkType.ORG_FILE, m.group(1), m.group(2), m.start(1))

    for m in DOUBLE_BRACKET_PATTERN.finditer(line):
        if _overlaps(m.start(), m.end(), taken):
            continue
        inner = m.group(1)
        target, sep, alias = inner.partition("|")
        stripped = target.strip()
        if stripped.lower().startswith(FILE_PREFIX):
            # [[file:...|x]] is still an org file link, never a wiki link
            lead = len(target) - len(target.lstrip())
            add(m, LinkType.ORG_FILE, stripped[len(FILE_PREFIX):], alias if sep else None,
                m.start(1) + lead + len(FILE_PREFIX))
        elif is_external_target(stripped):
            continue
        elif stripped.lower().startswith(ZK_PREFIX):
            add(m, LinkType.ZK_ID, target, alias if sep else None, m.start(1))
        elif sep:
            add(m, LinkType.WIKI_ALIAS, target, alias, m.start(1))
        elif stripped:
            add(m, LinkType.WIKI, target, None, m.start(1))

    for m in MARKDOWN_LINK_PATTERN.finditer(line):
        if _overlaps(m.start(), m.end(), taken):
            continue
        path = m.group(2)
        path_start = m.start(2)
        if path.startswith("<") and path.endswith(">"):
            path = path[1:-1]
            path_start += 1
        if not path or path.startswith("#") or is_external_target(path):
            continue
        add(m, LinkType.MARKDOWN, path, m.group(1), path_start)

    refs.sort(key=lambda r: r.start)
    return refs


def extract_links(lines: list[str], source_file: Path) -> list[LinkReference]:
    """Extract every link reference from a note's lines.

    Args:
        lines: The note content, one entry per line, without newlines
        source_file: Path of the note the lines came from

    Returns:
        References in line order, then column order
    """
    refs: list[LinkReference] = []
    in_fence = False
    fence_marker = ""

    for i, line in enumerate(lines, start=1):
        fence = FENCE_PATTERN.match(line)
        if fence:
            if not in_fence:
                in_fence, fence_marker = True, fence.group(1)
            elif fence.group(1) == fence_marker:
                in_fence = False
            continue
        if in_fence:
            continue
        if "[" not in line:
            continue
        refs.extend(_line_links(line, i, source_file))

    return refs


def extract_file(path: Path) -> list[LinkReference]:
    """Read a note and extract its links.

    Raises:
        OSError, UnicodeDecodeError: If the note cannot be read
    """
    lines, _newline, _trailing = read_note_lines(path)
    return extract_links(lines, path)
