"""
Link target resolution for notebase.

Resolves a raw link target to a NoteRecord through an ordered fallback chain.
The first step that matches wins; ties inside a step go to the first note in
index order (sorted by relative path):

1. exact, case-insensitive basename (or relative path, when the target has a folder)
2. whitespace/underscore normalised to hyphens
3. collapsed: whitespace, hyphens and underscores removed
4. direct file existence next to the source note or under the notes root

"zk:ID" targets resolve by identifier instead. An unresolved link is a normal
result (None), never an error.
"""

from pathlib import Path, PurePosixPath
from urllib.parse import unquote

import structlog

from .index import NoteIndex, make_record
from .links import FILE_PREFIX, ZK_PREFIX
from .models import NoteRecord, ResolutionStep
from .utils import (
    absolute_path,
    collapse_name,
    normalize_name,
    parse_frontmatter,
    split_anchor,
    split_extension,
)

logger = structlog.get_logger(__name__)


def clean_target(target: str) -> str:
    """Strip whitespace, the file: scheme, #anchors and URL quoting from a target."""
    cleaned = target.strip()
    if cleaned.lower().startswith(FILE_PREFIX):
        cleaned = cleaned[len(FILE_PREFIX):].strip()
    cleaned, _anchor = split_anchor(cleaned)
    if "%" in cleaned:
        cleaned = unquote(cleaned)
    return cleaned.strip()


class LinkResolver:
    """Resolver bound to one index snapshot.

    Lookup tables are built once per resolver, so callers resolving many
    targets (backlinks, renames) should reuse one instance.
    """

    def __init__(self, notes: list[NoteRecord], root: Path, extensions: list[str]):
        self.notes = notes
        self.root = root
        self.extensions = extensions
        self._by_path = {n.path: n for n in notes}
        self._exact: dict[str, NoteRecord] = {}
        self._rel: dict[str, NoteRecord] = {}
        self._normalized: dict[str, NoteRecord] = {}
        for note in notes:
            # setdefault keeps the first note in index order on ties
            self._exact.setdefault(note.basename.lower(), note)
            rel_stem = split_extension(note.rel_path, extensions)[0]
            self._rel.setdefault(rel_stem.lower(), note)
            self._normalized.setdefault(normalize_name(note.basename), note)
        self._frontmatter_ids: dict[str, NoteRecord] | None = None

    @classmethod
    def from_index(cls, index: NoteIndex) -> "LinkResolver":
        return cls(index.get_or_build(), index.root, index.extensions)

    def resolve(self, target: str, source: Path | None = None) -> NoteRecord | None:
        """Resolve a raw link target; None when no note matches."""
        return self.resolve_with_step(target, source)[0]

    def resolve_with_step(
        self, target: str, source: Path | None = None
    ) -> tuple[NoteRecord | None, ResolutionStep | None]:
        """Resolve a raw link target and report which chain step matched."""
        stripped = target.strip()
        if stripped.lower().startswith(ZK_PREFIX):
            note = self._resolve_zk(stripped[len(ZK_PREFIX):].strip())
            return note, ResolutionStep.ZK_ID if note else None

        cleaned = clean_target(target)
        if not cleaned:
            return None, None

        posix = PurePosixPath(cleaned.replace("\\", "/"))
        stem, _ext = split_extension(posix.name, self.extensions)
        has_folder = len(posix.parts) > 1

        # 1. Exact
        if has_folder:
            rel_stem, _ = split_extension(posix.as_posix(), self.extensions)
            note = self._rel.get(rel_stem.lower())
            if note:
                return note, ResolutionStep.EXACT
        note = self._exact.get(stem.lower())
        if note:
            return note, ResolutionStep.EXACT

        # 2. Normalised
        note = self._normalized.get(normalize_name(stem))
        if note:
            return note, ResolutionStep.NORMALIZED

        # 3. Collapsed (linear scan)
        collapsed = collapse_name(stem)
        if collapsed:
            for note in self.notes:
                if collapse_name(note.basename) == collapsed:
                    return note, ResolutionStep.COLLAPSED

        # 4. Direct file existence
        note = self._resolve_path(cleaned, source)
        if note:
            return note, ResolutionStep.PATH

        return None, None

    def _resolve_path(self, cleaned: str, source: Path | None) -> NoteRecord | None:
        bases: list[Path] = []
        if source is not None:
            bases.append(Path(source).parent)
        bases.append(self.root)

        _stem, ext = split_extension(cleaned, self.extensions)
        suffixes = [""] if ext else self.extensions

        for base in bases:
            for suffix in suffixes:
                raw = Path(cleaned + suffix).expanduser()
                candidate = absolute_path(raw if raw.is_absolute() else base / raw)
                if candidate in self._by_path:
                    return self._by_path[candidate]
                if candidate.is_file():
                    # Files outside the snapshot (excluded folders, other trees) still resolve
                    return make_record(candidate, self.root, self.extensions)
        return None

    def _resolve_zk(self, zk_id: str) -> NoteRecord | None:
        if not zk_id:
            return None
        lowered = zk_id.lower()
        for note in self.notes:
            name = note.basename.lower()
            if name == lowered or name.startswith(lowered + "-"):
                return note
        return self._load_frontmatter_ids().get(zk_id)

    def _load_frontmatter_ids(self) -> dict[str, NoteRecord]:
        if self._frontmatter_ids is None:
            ids: dict[str, NoteRecord] = {}
            for note in self.notes:
                try:
                    content = note.path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning("note_read_failed", path=str(note.path), error=str(e))
                    continue
                frontmatter, _body = parse_frontmatter(content)
                note_id = frontmatter.get("id")
                if note_id is not None:
                    ids.setdefault(str(note_id), note)
            self._frontmatter_ids = ids
        return self._frontmatter_ids


def resolve(target: str, index: NoteIndex, source: Path | None = None) -> NoteRecord | None:
    """Resolve one link target against an index.

    Builds a fresh LinkResolver; use LinkResolver.from_index() directly when
    resolving many targets.
    """
    return LinkResolver.from_index(index).resolve(target, source)
