"""
Rename transactions for notebase.

Renaming a note rewrites the link text of every note that references it, then
renames the file itself. A transaction moves through

    COMPUTED -> PREVIEWED -> APPLIED | CANCELLED

and never leaves a terminal state; a new rename needs a new transaction.

Link-by-identifier ([[zk:ID]]) references are never rewritten: identifiers
are permanent and survive renames.

Content rewrites are not rolled back when the final file rename fails. The
result is flagged `partial` so the user can fix the filename by hand.
"""

import shutil
from enum import Enum
from pathlib import Path
from typing import Callable
from urllib.parse import quote

import structlog

from .backlinks import backlinks_for
from .index import NoteIndex
from .models import (
    ApplyResult,
    LinkReference,
    LinkType,
    NoteRecord,
    RenameChange,
    RenameDecision,
    RenameResult,
)
from .notify import ERROR, INFO, WARNING, LogNotifier, Notifier
from .scanner import ContentSearcher
from .utils import (
    DestinationExistsError,
    InvalidTransitionError,
    NotebaseError,
    NotFoundError,
    NoteValidationError,
    absolute_path,
    read_note_lines,
    split_anchor,
    split_extension,
    write_note_lines,
)

logger = structlog.get_logger(__name__)

# Picker surface: display strings + changes in, decision out
Previewer = Callable[[list[str], list[RenameChange]], RenameDecision]


class TransactionState(str, Enum):
    COMPUTED = "computed"
    PREVIEWED = "previewed"
    APPLIED = "applied"
    CANCELLED = "cancelled"


# ============== Substitution ==============

def _replace_stem(path: str, new_basename: str, extensions: list[str]) -> str:
    folder, sep, name = path.rpartition("/")
    _stem, ext = split_extension(name, extensions)
    return f"{folder}{sep}{new_basename}{ext}"


def rewrite_wiki_target(target: str, new_basename: str, extensions: list[str]) -> str:
    """Point a wiki target at new_basename.

    Surrounding whitespace, a folder prefix, a written extension and a #anchor
    are kept as written.
    """
    core = target.strip()
    lead = target[: len(target) - len(target.lstrip())]
    trail = target[len(target.rstrip()):]
    path, anchor = split_anchor(core)
    return f"{lead}{_replace_stem(path, new_basename, extensions)}{anchor}{trail}"


def path_spellings(note: NoteRecord, new_basename: str, extensions: list[str]) -> list[tuple[str, str]]:
    """Old/new spellings a path-style link may use for a note, most specific first."""
    new_rel = _replace_stem(note.rel_path, new_basename, extensions)
    pairs = [
        (note.rel_path, new_rel),
        (note.basename + note.extension, new_basename + note.extension),
    ]
    for ext in extensions:
        pairs.append((note.basename + ext, new_basename + ext))
    pairs.append((note.basename, new_basename))

    quoted = [(quote(old), quote(new)) for old, new in pairs]
    seen: set[str] = set()
    result: list[tuple[str, str]] = []
    for old, new in pairs + quoted:
        if old not in seen:
            seen.add(old)
            result.append((old, new))
    return result


def rewrite_path_target(
    target: str, note: NoteRecord, new_basename: str, extensions: list[str]
) -> str:
    """Point an org file: or markdown path at the renamed note.

    Tries each legacy spelling of the old path against the end of the written
    path and replaces the first that matches. Targets that resolved through
    name normalisation match none of them; their last path component is
    replaced instead.
    """
    path, anchor = split_anchor(target)
    lowered = path.lower()
    for old, new in path_spellings(note, new_basename, extensions):
        if not lowered.endswith(old.lower()):
            continue
        head = path[: len(path) - len(old)]
        if head and head[-1] not in "/:~":
            continue
        return f"{head}{new}{anchor}"
    return f"{_replace_stem(path, new_basename, extensions)}{anchor}"


def substitute(
    ref: LinkReference, note: NoteRecord, new_basename: str, extensions: list[str]
) -> str | None:
    """Return the rewritten link token for a reference, or None to leave it alone."""
    if ref.link_type == LinkType.ZK_ID:
        return None

    if ref.link_type in (LinkType.WIKI, LinkType.WIKI_ALIAS):
        new_target = rewrite_wiki_target(ref.target_string, new_basename, extensions)
    else:
        new_target = rewrite_path_target(ref.target_string, note, new_basename, extensions)

    token = ref.raw_line_text[ref.start:ref.end]
    target_start = ref.target_start - ref.start
    target_end = ref.target_end - ref.start
    if token[target_start:target_end] != ref.target_string:
        return None
    return token[:target_start] + new_target + token[target_end:]


def build_changes(
    refs: list[LinkReference], note: NoteRecord, new_basename: str, extensions: list[str]
) -> list[RenameChange]:
    """Turn backlinks into line rewrites.

    References on the same line are merged into one change, substituted right
    to left so earlier column offsets stay valid. Lines whose rewrite is a
    no-op produce no change.
    """
    by_line: dict[tuple[Path, int], list[LinkReference]] = {}
    for ref in refs:
        by_line.setdefault((ref.source_file, ref.line_number), []).append(ref)

    changes: list[RenameChange] = []
    for (file, line_number), line_refs in by_line.items():
        old_line = line_refs[0].raw_line_text
        new_line = old_line
        link_type = None
        for ref in sorted(line_refs, key=lambda r: r.start, reverse=True):
            token = substitute(ref, note, new_basename, extensions)
            if token is None:
                continue
            new_line = new_line[:ref.start] + token + new_line[ref.end:]
            link_type = ref.link_type
        if link_type is None or new_line == old_line:
            continue
        changes.append(RenameChange(
            file=file,
            line_number=line_number,
            old_line=old_line,
            new_line=new_line,
            link_type=link_type,
        ))
    return changes


# ============== Apply ==============

def apply_changes(
    changes: list[RenameChange], backup: bool = False, backup_suffix: str = ".bak"
) -> ApplyResult:
    """Write a changeset to disk, file by file.

    Each file is re-read; a change whose old_line no longer matches the line on
    disk is skipped and counted as failed without aborting the rest of the
    file. With backup=True an untouched copy `<name><backup_suffix>` is written
    before a file is modified. Files with nothing left to change are not
    written (and not backed up).
    """
    result = ApplyResult()

    by_file: dict[Path, list[RenameChange]] = {}
    for change in changes:
        by_file.setdefault(change.file, []).append(change)

    for file, file_changes in by_file.items():
        try:
            lines, newline, trailing = read_note_lines(file)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("rewrite_read_failed", file=str(file), error=str(e))
            result.failed += len(file_changes)
            continue

        pending = 0
        for change in file_changes:
            idx = change.line_number - 1
            if 0 <= idx < len(lines) and lines[idx] == change.old_line:
                lines[idx] = change.new_line
                pending += 1
            else:
                logger.warning("stale_line", file=str(file), line=change.line_number)
                result.failed += 1

        if not pending:
            continue

        try:
            if backup:
                backup_path = file.with_name(file.name + backup_suffix)
                shutil.copy2(file, backup_path)
                result.backups.append(str(backup_path))
            write_note_lines(file, lines, newline, trailing)
        except OSError as e:
            logger.error("rewrite_write_failed", file=str(file), error=str(e))
            result.failed += pending
            continue

        result.applied += pending
        result.files_written.append(str(file))

    return result


# ============== Transaction ==============

class RenameTransaction:
    """A computed rename, waiting for a preview decision and then apply()."""

    def __init__(
        self,
        index: NoteIndex,
        note: NoteRecord,
        new_basename: str,
        changes: list[RenameChange],
        backup_suffix: str = ".bak",
    ):
        self.index = index
        self.note = note
        self.new_basename = new_basename
        self.changes = changes
        self.backup_suffix = backup_suffix
        self.state = TransactionState.COMPUTED
        self.decision: RenameDecision | None = None
        self.result: ApplyResult | None = None

    @property
    def new_path(self) -> Path:
        return self.note.path.with_name(self.new_basename + self.note.extension)

    @classmethod
    def compute(
        cls,
        old_path: Path,
        new_basename: str,
        index: NoteIndex,
        searcher: ContentSearcher | None = None,
        backup_suffix: str = ".bak",
    ) -> "RenameTransaction":
        """Validate a rename and compute its changeset. Nothing is written.

        Raises:
            NotFoundError: The note to rename does not exist
            NoteValidationError: The new name is empty, contains a path separator or is unchanged
            DestinationExistsError: A file with the new name already exists
        """
        old = absolute_path(old_path)
        if not old.is_file():
            raise NotFoundError(f"Note not found: {old}")

        note = index.get(old) or index.record_for(old)

        name = (new_basename or "").strip()
        stem, ext = split_extension(name, index.extensions)
        if ext and ext.lower() == note.extension.lower():
            name = stem.strip()
        if not name:
            raise NoteValidationError("New name cannot be empty")
        if "/" in name or "\\" in name:
            raise NoteValidationError(f"New name cannot contain a path separator: {name}")
        if name == note.basename:
            raise NoteValidationError(f"New name is the same as the current name: {name}")

        destination = note.path.with_name(name + note.extension)
        if destination.exists() and not _same_file(destination, note.path):
            raise DestinationExistsError(f"Destination already exists: {destination}")

        refs = backlinks_for(note.path, index, searcher=searcher)
        changes = build_changes(refs, note, name, index.extensions)
        skipped_zk = sum(1 for r in refs if r.link_type == LinkType.ZK_ID)

        logger.info(
            "rename_computed",
            old=str(note.path),
            new=str(destination),
            references=len(refs),
            changes=len(changes),
            zk_skipped=skipped_zk,
        )
        return cls(index, note, name, changes, backup_suffix=backup_suffix)

    def display_lines(self) -> list[str]:
        """One human-readable line per change, for the picker surface."""
        lines = []
        for change in self.changes:
            try:
                rel = change.file.relative_to(self.index.root).as_posix()
            except ValueError:
                rel = str(change.file)
            lines.append(f"{rel}:{change.line_number}: {change.old_line.strip()}  →  {change.new_line.strip()}")
        return lines

    def preview(self, decide: Previewer) -> RenameDecision:
        """Present the computed changeset and record the user's decision.

        The changeset is shown as computed; disk is not re-read here. Choosing
        CANCEL ends the transaction with no side effects.
        """
        if self.state != TransactionState.COMPUTED:
            raise InvalidTransitionError(f"Cannot preview a {self.state.value} transaction")
        decision = decide(self.display_lines(), list(self.changes))
        self.decision = decision
        if decision == RenameDecision.CANCEL:
            self.state = TransactionState.CANCELLED
            logger.info("rename_cancelled", old=str(self.note.path))
        else:
            self.state = TransactionState.PREVIEWED
        return decision

    def cancel(self) -> None:
        if self.state in (TransactionState.APPLIED, TransactionState.CANCELLED):
            raise InvalidTransitionError(f"Cannot cancel a {self.state.value} transaction")
        self.decision = RenameDecision.CANCEL
        self.state = TransactionState.CANCELLED

    def apply(self, backup: bool | None = None) -> ApplyResult:
        """Rewrite referencing lines, rename the note file, invalidate the index.

        Args:
            backup: Write backup copies before modifying files. Defaults to
                the preview decision (APPLY_WITH_BACKUP).

        Raises:
            InvalidTransitionError: The transaction is terminal, or has
                changes that were never previewed
        """
        if self.state in (TransactionState.APPLIED, TransactionState.CANCELLED):
            raise InvalidTransitionError(f"Cannot apply a {self.state.value} transaction")
        if self.state == TransactionState.COMPUTED and self.changes:
            raise InvalidTransitionError("Changes must be previewed before they are applied")

        if backup is None:
            backup = self.decision == RenameDecision.APPLY_WITH_BACKUP

        result = apply_changes(self.changes, backup=backup, backup_suffix=self.backup_suffix)

        destination = self.new_path
        try:
            if destination.exists() and not _same_file(destination, self.note.path):
                raise DestinationExistsError(f"Destination already exists: {destination}")
            self.note.path.rename(destination)
            result.renamed = True
            result.new_path = str(destination)
        except (OSError, NotebaseError) as e:
            result.error = f"Could not rename {self.note.path.name}: {e}"
            result.partial = result.applied > 0
            logger.error(
                "rename_failed",
                old=str(self.note.path),
                new=str(destination),
                error=str(e),
                partial=result.partial,
            )
        finally:
            self.index.invalidate()

        self.result = result
        self.state = TransactionState.APPLIED
        logger.info(
            "rename_applied",
            old=str(self.note.path),
            new=str(destination),
            applied=result.applied,
            failed=result.failed,
            renamed=result.renamed,
        )
        return result


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.samefile(b)
    except OSError:
        return False


def rename_note(
    old_path: Path,
    new_basename: str,
    index: NoteIndex,
    decide: Previewer,
    notifier: Notifier | None = None,
    searcher: ContentSearcher | None = None,
    backup_suffix: str = ".bak",
) -> RenameResult:
    """Run a complete rename: compute, preview (when there is anything to change), apply.

    Precondition failures and partial applies are reported through the
    notifier and folded into the returned RenameResult.
    """
    notifier = notifier or LogNotifier()

    try:
        tx = RenameTransaction.compute(
            old_path, new_basename, index, searcher=searcher, backup_suffix=backup_suffix
        )
    except (NotFoundError, NoteValidationError, DestinationExistsError) as e:
        notifier.notify(str(e), ERROR)
        return RenameResult(success=False, error=str(e))

    if tx.changes:
        decision = tx.preview(decide)
        if decision == RenameDecision.CANCEL:
            notifier.notify("Rename cancelled", INFO)
            return RenameResult(
                success=False, decision=decision, changes=tx.changes, error="Rename cancelled"
            )
    else:
        decision = RenameDecision.APPLY

    result = tx.apply()

    if result.renamed:
        notifier.notify(
            f"Renamed {tx.note.basename} → {tx.new_basename}: "
            f"{result.applied} link line(s) updated, {result.failed} skipped",
            WARNING if result.failed else INFO,
        )
    else:
        notifier.notify(result.error, ERROR)
        if result.partial:
            notifier.notify(
                f"{result.applied} link line(s) now point to {tx.new_basename} "
                f"but the file is still named {tx.note.path.name}; rename it manually",
                ERROR,
            )

    return RenameResult(
        success=result.renamed,
        decision=decision,
        changes=tx.changes,
        apply=result,
        error=result.error,
    )
