"""
Backlink computation for notebase.

Backlinks are recomputed on every call: each note's links are extracted and
resolved, and those resolving to the target are kept. There is no persistent
reverse index since notes are edited outside this process.
"""

from pathlib import Path

import structlog

from .index import NoteIndex
from .links import extract_file
from .models import LinkReference, NoteRecord
from .resolver import LinkResolver
from .scanner import ContentSearcher
from .utils import absolute_path

logger = structlog.get_logger(__name__)

# Any wiki/org opener or markdown link; files without one cannot link anywhere
LINK_SYNTAX_PATTERN = r"\[\[|\]\("


def _candidate_notes(notes: list[NoteRecord], searcher: ContentSearcher | None) -> list[NoteRecord]:
    if searcher is None:
        return notes
    hits = searcher.files_matching(LINK_SYNTAX_PATTERN, [n.path for n in notes])
    hit_paths = {absolute_path(p) for p in hits}
    return [n for n in notes if n.path in hit_paths]


def backlinks_for(
    target_path: Path,
    index: NoteIndex,
    searcher: ContentSearcher | None = None,
    resolver: LinkResolver | None = None,
) -> list[LinkReference]:
    """Find every reference in other notes that resolves to target_path.

    Args:
        target_path: Path of the note to find backlinks for
        index: Note index to search
        searcher: Optional prefilter for files containing link syntax
        resolver: Optional resolver to reuse (must match the index snapshot)

    Returns:
        References in index order, then line order
    """
    target = absolute_path(target_path)
    notes = index.get_or_build()
    resolver = resolver or LinkResolver(notes, index.root, index.extensions)

    results: list[LinkReference] = []
    scanned = 0
    for note in _candidate_notes(notes, searcher):
        if note.path == target:
            continue
        try:
            refs = extract_file(note.path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("note_read_failed", path=str(note.path), error=str(e))
            continue
        scanned += 1
        for ref in refs:
            resolved = resolver.resolve(ref.target_string, source=note.path)
            if resolved is not None and resolved.path == target:
                results.append(ref)

    logger.debug("backlinks_computed", target=str(target), scanned=scanned, found=len(results))
    return results


def outgoing_links(
    path: Path,
    index: NoteIndex,
    resolver: LinkResolver | None = None,
) -> list[tuple[LinkReference, NoteRecord | None]]:
    """Extract a note's links paired with their resolved notes (None if unresolved).

    Raises:
        OSError, UnicodeDecodeError: If the note cannot be read
    """
    source = absolute_path(path)
    resolver = resolver or LinkResolver.from_index(index)
    return [
        (ref, resolver.resolve(ref.target_string, source=source))
        for ref in extract_file(source)
    ]
