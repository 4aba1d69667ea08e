"""
Note file operations for notebase.

Creating, deleting, moving and archiving notes, writing the INDEX.md overview
note and collecting tree statistics. Every operation that changes the file set
invalidates the index.
"""

import re
import shutil
from datetime import datetime
from pathlib import Path

import structlog
import yaml

from .index import NoteIndex
from .models import NoteRecord, OperationResult
from .notify import ERROR, INFO, WARNING, LogNotifier, Notifier
from .tags import collect_tags
from .utils import (
    DestinationExistsError,
    NoteValidationError,
    absolute_path,
    slugify,
    validate_path_within_root,
)

logger = structlog.get_logger(__name__)

INDEX_NOTE_NAME = "INDEX.md"
ID_PREFIX_PATTERN = re.compile(r'^\d{8,}-')


def generate_filename(title: str, note_id: str, extension: str = ".md") -> str:
    """Generate `<id>-<slug><ext>` for a new note."""
    return f"{note_id}-{slugify(title)}{extension}"


def generate_header(title: str, note_id: str, extension: str, created: datetime) -> str:
    """Generate the metadata header of a new note.

    Markdown and text notes get YAML frontmatter, org notes get #+ keywords.
    """
    created_str = created.strftime("%Y-%m-%d %H:%M:%S")
    if extension == ".org":
        return f"#+TITLE: {title}\n#+ID: {note_id}\n#+CREATED: {created_str}\n\n"

    frontmatter = {
        "id": note_id,
        "title": title,
        "created": created_str,
    }
    yaml_content = yaml.dump(frontmatter, allow_unicode=True, default_flow_style=False, sort_keys=False)
    return f"---\n{yaml_content}---\n\n# {title}\n\n"


def create_note(
    index: NoteIndex,
    title: str,
    folder: str | None = None,
    note_id: str | None = None,
    extension: str = ".md",
    id_format: str = "%Y%m%d%H%M",
    notifier: Notifier | None = None,
) -> NoteRecord:
    """Create a new note file and return its record.

    Raises:
        NoteValidationError: The title is empty or the extension is not a note extension
        PathValidationError: The folder escapes the notes root
        DestinationExistsError: A note with the generated name already exists
    """
    notifier = notifier or LogNotifier()
    if not title or not title.strip():
        raise NoteValidationError("Note title required")
    if extension not in index.extensions:
        raise NoteValidationError(f"Unsupported note extension: {extension}")

    title = title.strip()
    created = datetime.now()
    note_id = note_id or created.strftime(id_format)

    directory = validate_path_within_root(folder, index.root) if folder else index.root
    path = directory / generate_filename(title, note_id, extension)
    if path.exists():
        raise DestinationExistsError(f"File already exists: {path}")

    directory.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_header(title, note_id, extension, created), encoding="utf-8")
    index.invalidate()

    logger.info("note_created", path=str(path), note_id=note_id)
    notifier.notify(f"Created: {path.name}", INFO)
    return index.record_for(path)


def delete_notes(index: NoteIndex, paths: list[Path], notifier: Notifier | None = None) -> OperationResult:
    """Permanently delete note files. Missing files are counted as failures."""
    notifier = notifier or LogNotifier()
    result = OperationResult()
    if not paths:
        notifier.notify("Nothing to delete", WARNING)
        return result

    for raw in paths:
        path = absolute_path(raw)
        if not path.is_file():
            result.failed += 1
            result.errors.append(f"Not a file or missing: {path}")
            continue
        try:
            path.unlink()
        except OSError as e:
            result.failed += 1
            result.errors.append(f"Delete failed: {path}: {e}")
            continue
        result.succeeded += 1
        result.paths.append(str(path))

    index.invalidate()
    _report(notifier, "Deleted", result)
    return result


def move_notes(
    index: NoteIndex,
    paths: list[Path],
    destination: Path,
    notifier: Notifier | None = None,
) -> OperationResult:
    """Move note files into a directory inside the notes root.

    Existing files at the destination are never overwritten.

    Raises:
        PathValidationError: The destination escapes the notes root
    """
    notifier = notifier or LogNotifier()
    result = OperationResult()
    if not paths:
        notifier.notify("Nothing to move", WARNING)
        return result

    dest_dir = validate_path_within_root(str(destination), index.root)
    dest_dir.mkdir(parents=True, exist_ok=True)

    for raw in paths:
        path = absolute_path(raw)
        target = dest_dir / path.name
        if not path.is_file():
            result.failed += 1
            result.errors.append(f"Not a file or missing: {path}")
            continue
        if target.exists():
            result.failed += 1
            result.errors.append(f"Destination already exists: {target}")
            continue
        try:
            shutil.move(str(path), str(target))
        except OSError as e:
            result.failed += 1
            result.errors.append(f"Move failed: {path}: {e}")
            continue
        result.succeeded += 1
        result.paths.append(str(target))

    index.invalidate()
    _report(notifier, "Moved", result)
    return result


def archive_notes(
    index: NoteIndex,
    paths: list[Path],
    archive_dir: str = "Archive",
    notifier: Notifier | None = None,
) -> OperationResult:
    """Move notes into the archive folder, which the index never scans."""
    return move_notes(index, paths, Path(archive_dir), notifier=notifier)


def _report(notifier: Notifier, verb: str, result: OperationResult) -> None:
    for error in result.errors:
        notifier.notify(error, ERROR)
    level = WARNING if result.failed else INFO
    notifier.notify(f"{verb} {result.succeeded} file(s), {result.failed} failed", level)
    logger.info("notes_operation", verb=verb.lower(), succeeded=result.succeeded, failed=result.failed)


def display_title(note: NoteRecord) -> str:
    """Basename without a leading numeric id (`202501011200-my-note` -> `my-note`)."""
    return ID_PREFIX_PATTERN.sub("", note.basename) or note.basename


def write_index_note(index: NoteIndex, notifier: Notifier | None = None) -> Path:
    """Write INDEX.md at the notes root listing every note, grouped by folder.

    Notes at the root come first, without a heading. A `## Tags` section with
    the note count of each tag closes the file when any note carries tags.
    """
    notifier = notifier or LogNotifier()
    index_path = index.root / INDEX_NOTE_NAME
    notes = sorted(
        (n for n in index.get_or_build() if n.path != index_path),
        key=lambda n: (n.directory, n.rel_path),
    )
    tag_counts = collect_tags(notes)

    lines = [
        "# Zettelkasten Index",
        "",
        f"*Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}*",
        f"*Total: {len(notes)} notes*",
        f"*Total Tags: {len(tag_counts)}*",
        "",
    ]

    current_dir = ""
    for note in notes:
        if note.directory != current_dir:
            current_dir = note.directory
            lines.extend(["", f"## {current_dir}", ""])
        link_target = note.rel_path[: -len(note.extension)] if note.extension else note.rel_path
        lines.append(f"- [[{link_target}|{display_title(note)}]]")

    if tag_counts:
        tag_list = " • ".join(f"#{tag} ({count})" for tag, count in tag_counts.items())
        lines.extend(["", "## Tags", "", tag_list])

    index.root.mkdir(parents=True, exist_ok=True)
    index_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    index.invalidate()

    logger.info("index_note_written", path=str(index_path), note_count=len(notes), tag_count=len(tag_counts))
    notifier.notify(f"Index written: {len(notes)} notes", INFO)
    return index_path


def vault_stats(index: NoteIndex) -> dict:
    """Count notes per folder, note type and extension, and notes per tag.

    The generated index note is not read for tags.
    """
    stats: dict = {
        "total_notes": 0,
        "by_directory": {},
        "by_type": {},
        "by_extension": {},
    }
    notes = index.get_or_build()
    for note in notes:
        stats["total_notes"] += 1
        folder = note.directory or "root"
        stats["by_directory"][folder] = stats["by_directory"].get(folder, 0) + 1
        stats["by_type"][note.note_type] = stats["by_type"].get(note.note_type, 0) + 1
        ext = note.extension.lower()
        stats["by_extension"][ext] = stats["by_extension"].get(ext, 0) + 1

    index_path = index.root / INDEX_NOTE_NAME
    stats["tags"] = collect_tags([n for n in notes if n.path != index_path])
    stats["total_tags"] = len(stats["tags"])
    # Sort tags by count
    stats["top_tags"] = sorted(stats["tags"].items(), key=lambda x: x[1], reverse=True)[:20]
    return stats
