"""
MCP Tools module for notebase.

Contains the host Workspace (the one NoteIndex of this process) and the MCP
tool handlers (list_tools and call_tool) that expose the core.
"""

import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.types import (
    Resource,
    TextContent,
    Tool,
)

from .backlinks import backlinks_for, outgoing_links
from .config import Settings, settings
from .index import NoteIndex
from .models import RenameDecision
from .notes import archive_notes, create_note, move_notes, vault_stats, write_index_note
from .notify import CollectingNotifier
from .rename import RenameTransaction, rename_note
from .resolver import LinkResolver
from .scanner import ContentSearcher, make_searcher
from .utils import NotebaseError, PathValidationError, validate_path_within_root


class Workspace:
    """State the host keeps for one notes root: settings, index and searcher."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.index = NoteIndex.from_settings(settings)
        self.searcher: ContentSearcher | None = make_searcher(settings.use_external_tools)

    def find_note(self, note: str) -> Path | None:
        """Find a note by path relative to the root, or by link target.

        Only files inside the notes root are returned, even when the link
        resolver would accept a path outside it.
        """
        if not note or not note.strip():
            return None
        try:
            path = validate_path_within_root(note, self.index.root)
        except PathValidationError:
            path = None
        if path is not None and path.is_file():
            return path
        record = LinkResolver.from_index(self.index).resolve(note)
        if record is None:
            return None
        try:
            validate_path_within_root(str(record.path), self.index.root)
        except PathValidationError:
            return None
        return record.path

    def rel(self, path: Path) -> str:
        try:
            return path.relative_to(self.index.root).as_posix()
        except ValueError:
            return str(path)


# Host workspace and server
workspace = Workspace(settings)
server = Server("notebase")

RENAME_MODES = {
    "apply": RenameDecision.APPLY,
    "apply_with_backup": RenameDecision.APPLY_WITH_BACKUP,
}


def _text(output: str) -> list[TextContent]:
    return [TextContent(type="text", text=output)]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="notes_list",
            description="List indexed notes, optionally restricted to one folder.",
            inputSchema={
                "type": "object",
                "properties": {
                    "folder": {
                        "type": "string",
                        "description": "Optional folder relative to the notes root (e.g. 'Projects')"
                    }
                }
            }
        ),
        Tool(
            name="notes_resolve",
            description="Resolve a link target (as typed inside [[...]] or (...)) to a note file.",
            inputSchema={
                "type": "object",
                "properties": {
                    "target": {
                        "type": "string",
                        "description": "Raw link target, e.g. 'My Note', 'zk:202501010000', '../x.org'"
                    },
                    "source": {
                        "type": "string",
                        "description": "Optional path of the note containing the link (for relative paths)"
                    }
                },
                "required": ["target"]
            }
        ),
        Tool(
            name="notes_links",
            description="List the outgoing links of a note and what each resolves to.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_path": {
                        "type": "string",
                        "description": "Path of the note relative to the notes root, or its name"
                    }
                },
                "required": ["note_path"]
            }
        ),
        Tool(
            name="notes_backlinks",
            description="Find all references in other notes that resolve to a note (backlinks).",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_path": {
                        "type": "string",
                        "description": "Path of the note relative to the notes root, or its name"
                    }
                },
                "required": ["note_path"]
            }
        ),
        Tool(
            name="notes_rename",
            description="Rename a note and rewrite every link to it. Use mode 'preview' first to see "
                       "the line changes; then 'apply' or 'apply_with_backup' (writes .bak copies). "
                       "zk: identifier links are never rewritten.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_path": {
                        "type": "string",
                        "description": "Path of the note relative to the notes root, or its name"
                    },
                    "new_name": {
                        "type": "string",
                        "description": "New basename, without folder or extension"
                    },
                    "mode": {
                        "type": "string",
                        "enum": ["preview", "apply", "apply_with_backup"],
                        "default": "preview"
                    }
                },
                "required": ["note_path", "new_name"]
            }
        ),
        Tool(
            name="notes_create",
            description="Create a new note named <id>-<slug> with an id/title/created header.",
            inputSchema={
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Title of the note"},
                    "folder": {"type": "string", "description": "Optional folder relative to the notes root"},
                    "extension": {"type": "string", "description": "Note extension (default: .md)", "default": ".md"}
                },
                "required": ["title"]
            }
        ),
        Tool(
            name="notes_move",
            description="Move notes into another folder inside the notes root. Existing files are never overwritten.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_paths": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Paths of the notes relative to the notes root"
                    },
                    "destination": {"type": "string", "description": "Destination folder relative to the notes root"}
                },
                "required": ["note_paths", "destination"]
            }
        ),
        Tool(
            name="notes_archive",
            description="Move notes into the archive folder. Archived notes leave the index.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_paths": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Paths of the notes relative to the notes root"
                    }
                },
                "required": ["note_paths"]
            }
        ),
        Tool(
            name="notes_write_index",
            description="Write INDEX.md at the notes root listing every note grouped by folder.",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="notes_stats",
            description="Count notes per folder, note type and extension, and notes per tag.",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="notes_refresh",
            description="Drop the cached note index and rescan the notes root.",
            inputSchema={"type": "object", "properties": {}}
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    index = workspace.index

    if name == "notes_list":
        folder = (arguments.get("folder") or "").strip("/")
        notes = index.get_or_build()
        if folder:
            notes = [n for n in notes if n.directory == folder or n.directory.startswith(folder + "/")]
        if not notes:
            return _text("No notes found")
        output = f"{len(notes)} notes:\n\n"
        for n in notes:
            output += f"- **{n.basename}** ({n.rel_path}) [{n.note_type}]\n"
        return _text(output)

    elif name == "notes_resolve":
        target = arguments.get("target", "")
        source_arg = arguments.get("source")
        source = workspace.find_note(source_arg) if source_arg else None
        note, step = LinkResolver.from_index(index).resolve_with_step(target, source)
        if not note:
            return _text(f"Unresolved link: '{target}'")
        return _text(f"'{target}' → {workspace.rel(note.path)} (matched by {step.name.lower()})")

    elif name == "notes_links":
        note_arg = arguments.get("note_path", "")
        path = workspace.find_note(note_arg)
        if not path:
            return _text(f"Note not found: '{note_arg}'")
        try:
            links = outgoing_links(path, index)
        except (OSError, UnicodeDecodeError) as e:
            return _text(f"Error: could not read {workspace.rel(path)}: {e}")
        if not links:
            return _text(f"No links in {workspace.rel(path)}")
        output = f"{len(links)} links in {workspace.rel(path)}:\n\n"
        for ref, resolved in links:
            where = workspace.rel(resolved.path) if resolved else "unresolved"
            output += f"- line {ref.line_number} [{ref.link_type.value}] {ref.target_string} → {where}\n"
        return _text(output)

    elif name == "notes_backlinks":
        note_arg = arguments.get("note_path", "")
        path = workspace.find_note(note_arg)
        if not path:
            return _text(f"Note not found: '{note_arg}'")
        refs = backlinks_for(path, index, searcher=workspace.searcher)
        if not refs:
            return _text(f"No backlinks found for: '{workspace.rel(path)}'")
        output = f"Found {len(refs)} references to '{workspace.rel(path)}':\n\n"
        for ref in refs:
            output += (
                f"- **{workspace.rel(ref.source_file)}:{ref.line_number}** "
                f"[{ref.link_type.value}] {ref.raw_line_text.strip()}\n"
            )
        return _text(output)

    elif name == "notes_rename":
        note_arg = arguments.get("note_path", "")
        new_name = arguments.get("new_name", "")
        mode = arguments.get("mode", "preview")
        path = workspace.find_note(note_arg)
        if not path:
            return _text(f"Error: Note not found: '{note_arg}'")

        if mode == "preview":
            try:
                tx = RenameTransaction.compute(
                    path, new_name, index,
                    searcher=workspace.searcher,
                    backup_suffix=workspace.settings.backup_suffix,
                )
            except NotebaseError as e:
                return _text(f"Error: {e}")
            output = f"# Rename preview: {tx.note.path.name} → {tx.new_path.name}\n\n"
            if not tx.changes:
                output += "No links need rewriting.\n"
            for line in tx.display_lines():
                output += f"- {line}\n"
            return _text(output)

        if mode not in RENAME_MODES:
            return _text(f"Error: Invalid mode '{mode}'. Valid modes: preview, {', '.join(RENAME_MODES)}")

        notifier = CollectingNotifier()
        decision = RENAME_MODES[mode]
        result = rename_note(
            path, new_name, index,
            decide=lambda _lines, _changes: decision,
            notifier=notifier,
            searcher=workspace.searcher,
            backup_suffix=workspace.settings.backup_suffix,
        )
        output = "# Rename Succeeded\n\n" if result.success else "# Rename Failed\n\n"
        output += notifier.text() + "\n"
        if result.apply and result.apply.backups:
            output += "\n## Backups\n"
            for backup in result.apply.backups:
                output += f"- {workspace.rel(Path(backup))}\n"
        return _text(output)

    elif name == "notes_create":
        title = arguments.get("title", "")
        notifier = CollectingNotifier()
        try:
            record = create_note(
                index,
                title,
                folder=arguments.get("folder"),
                extension=arguments.get("extension", ".md"),
                id_format=workspace.settings.id_format,
                notifier=notifier,
            )
        except (NotebaseError, OSError) as e:
            return _text(f"Error: {e}")
        return _text(f"# Note Created Successfully\n\n**Path:** {record.rel_path}\n")

    elif name in ("notes_move", "notes_archive"):
        notifier = CollectingNotifier()
        paths = []
        for note_arg in arguments.get("note_paths", []):
            path = workspace.find_note(note_arg)
            if not path:
                return _text(f"Error: Note not found: '{note_arg}'")
            paths.append(path)
        try:
            if name == "notes_move":
                destination = validate_path_within_root(arguments.get("destination", ""), index.root)
                result = move_notes(index, paths, destination, notifier=notifier)
            else:
                result = archive_notes(
                    index, paths, archive_dir=workspace.settings.archive_dir, notifier=notifier
                )
        except NotebaseError as e:
            return _text(f"Error: {e}")
        output = f"{result.succeeded} succeeded, {result.failed} failed\n\n"
        for moved in result.paths:
            output += f"- {workspace.rel(Path(moved))}\n"
        for error in result.errors:
            output += f"- Error: {error}\n"
        return _text(output)

    elif name == "notes_write_index":
        path = write_index_note(index, notifier=CollectingNotifier())
        return _text(f"Index written: {workspace.rel(path)}")

    elif name == "notes_stats":
        return _text(json.dumps(vault_stats(index), indent=2))

    elif name == "notes_refresh":
        index.invalidate()
        notes = index.get_or_build()
        return _text(f"Index rebuilt: {len(notes)} notes")

    return _text(f"Unknown tool: {name}")


# ============== Resources ==============

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri="notes://stats",
            name="Notes Statistics",
            description="Note counts per folder, type, extension and tag",
            mimeType="application/json"
        ),
    ]


@server.read_resource()
async def read_resource(uri: str) -> str:
    """Read a resource."""
    if str(uri) == "notes://stats":
        return json.dumps(vault_stats(workspace.index), indent=2)

    return json.dumps({"error": f"Unknown resource: {uri}"})
