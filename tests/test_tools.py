"""
Tests for the MCP tool handlers.
"""

import json


async def _call(name, arguments=None):
    from notebase.tools import call_tool
    result = await call_tool(name, arguments or {})
    assert len(result) == 1
    return result[0].text


class TestListTools:
    """Tests for list_tools."""

    async def test_tool_names(self):
        from notebase.tools import list_tools

        tools = await list_tools()

        assert {t.name for t in tools} == {
            "notes_list",
            "notes_resolve",
            "notes_links",
            "notes_backlinks",
            "notes_rename",
            "notes_create",
            "notes_move",
            "notes_archive",
            "notes_write_index",
            "notes_stats",
            "notes_refresh",
        }


class TestWorkspace:
    """Tests for Workspace.find_note."""

    def test_find_by_relative_path(self, patched_workspace, notes_root):
        assert patched_workspace.find_note("Projects/Plan.org") == notes_root / "Projects" / "Plan.org"

    def test_find_by_name(self, patched_workspace, notes_root):
        assert patched_workspace.find_note("my note") == notes_root / "My-Note.md"

    def test_find_outside_root(self, patched_workspace):
        assert patched_workspace.find_note("../../etc/passwd") is None
        assert patched_workspace.find_note("") is None

    def test_find_existing_file_outside_root(self, patched_workspace, notes_root):
        """Test an existing note file outside the root is refused by relative and absolute path."""
        outside = notes_root.parent / "outside.md"
        outside.write_text("# Outside\n", encoding="utf-8")

        assert patched_workspace.find_note("../outside.md") is None
        assert patched_workspace.find_note(str(outside)) is None
        assert patched_workspace.find_note("../outside") is None


class TestCallTool:
    """Tests for call_tool."""

    async def test_notes_list(self, patched_workspace):
        text = await _call("notes_list")

        assert text.startswith("6 notes:")
        assert "(Projects/Plan.org) [project]" in text

    async def test_notes_list_folder(self, patched_workspace):
        text = await _call("notes_list", {"folder": "Daily"})

        assert text.startswith("1 notes:")
        assert "2024-01-01" in text

    async def test_notes_list_empty_folder(self, patched_workspace):
        assert await _call("notes_list", {"folder": "People"}) == "No notes found"

    async def test_notes_resolve(self, patched_workspace):
        text = await _call("notes_resolve", {"target": "  my_note  "})

        assert text == "'  my_note  ' → My-Note.md (matched by normalized)"

    async def test_notes_resolve_unresolved(self, patched_workspace):
        assert await _call("notes_resolve", {"target": "Nowhere"}) == "Unresolved link: 'Nowhere'"

    async def test_notes_links(self, patched_workspace):
        text = await _call("notes_links", {"note_path": "Daily/2024-01-01.md"})

        assert text.startswith("2 links in Daily/2024-01-01.md")
        assert "[zk_id] zk:202401011200 → 202401011200-zettel.md" in text

    async def test_notes_backlinks(self, patched_workspace):
        text = await _call("notes_backlinks", {"note_path": "My-Note.md"})

        assert text.startswith("Found 5 references to 'My-Note.md'")
        assert "**Projects/Plan.org:3** [org_file]" in text

    async def test_notes_backlinks_none(self, patched_workspace):
        text = await _call("notes_backlinks", {"note_path": "Code.md"})

        assert text == "No backlinks found for: 'Code.md'"

    async def test_notes_backlinks_missing_note(self, patched_workspace):
        text = await _call("notes_backlinks", {"note_path": "Nope.md"})

        assert text == "Note not found: 'Nope.md'"

    async def test_notes_rename_preview_writes_nothing(self, patched_workspace, notes_root):
        before = (notes_root / "Other.md").read_text(encoding="utf-8")

        text = await _call("notes_rename", {"note_path": "My-Note.md", "new_name": "New-Name"})

        assert text.startswith("# Rename preview: My-Note.md → New-Name.md")
        assert "Other.md:3:" in text
        assert (notes_root / "My-Note.md").exists()
        assert (notes_root / "Other.md").read_text(encoding="utf-8") == before

    async def test_notes_rename_apply_with_backup(self, patched_workspace, notes_root):
        text = await _call(
            "notes_rename",
            {"note_path": "My-Note.md", "new_name": "New-Name", "mode": "apply_with_backup"},
        )

        assert text.startswith("# Rename Succeeded")
        assert "## Backups" in text
        assert "- Other.md.bak" in text
        assert (notes_root / "New-Name.md").exists()
        assert "[[New-Name]]" in (notes_root / "Other.md").read_text(encoding="utf-8")

    async def test_notes_rename_destination_exists(self, patched_workspace, notes_root):
        text = await _call(
            "notes_rename",
            {"note_path": "My-Note.md", "new_name": "Other", "mode": "apply"},
        )

        assert text.startswith("# Rename Failed")
        assert "already exists" in text
        assert (notes_root / "My-Note.md").exists()

    async def test_notes_rename_preview_error(self, patched_workspace):
        text = await _call("notes_rename", {"note_path": "My-Note.md", "new_name": "a/b"})

        assert text.startswith("Error: New name cannot contain a path separator")

    async def test_notes_rename_outside_root_refused(self, patched_workspace, notes_root):
        outside = notes_root.parent / "outside.md"
        outside.write_text("# Outside\n", encoding="utf-8")

        text = await _call(
            "notes_rename",
            {"note_path": "../outside.md", "new_name": "moved", "mode": "apply"},
        )

        assert text == "Error: Note not found: '../outside.md'"
        assert outside.exists()
        assert not (notes_root.parent / "moved.md").exists()

    async def test_notes_archive_outside_root_refused(self, patched_workspace, notes_root):
        outside = notes_root.parent / "outside.md"
        outside.write_text("# Outside\n", encoding="utf-8")

        text = await _call("notes_archive", {"note_paths": [str(outside)]})

        assert text.startswith("Error: Note not found")
        assert outside.exists()

    async def test_notes_rename_invalid_mode(self, patched_workspace):
        text = await _call(
            "notes_rename",
            {"note_path": "My-Note.md", "new_name": "X", "mode": "force"},
        )

        assert text.startswith("Error: Invalid mode 'force'")

    async def test_notes_create(self, patched_workspace, notes_root):
        text = await _call("notes_create", {"title": "Quick Thought", "folder": "Quick"})

        assert "# Note Created Successfully" in text
        created = list((notes_root / "Quick").glob("*-Quick-Thought.md"))
        assert len(created) == 1

    async def test_notes_create_error(self, patched_workspace):
        text = await _call("notes_create", {"title": ""})

        assert text == "Error: Note title required"

    async def test_notes_move(self, patched_workspace, notes_root):
        text = await _call("notes_move", {"note_paths": ["Other.md"], "destination": "Projects"})

        assert text.startswith("1 succeeded, 0 failed")
        assert "- Projects/Other.md" in text
        assert (notes_root / "Projects" / "Other.md").exists()

    async def test_notes_move_outside_root(self, patched_workspace, notes_root):
        text = await _call("notes_move", {"note_paths": ["Other.md"], "destination": "../../elsewhere"})

        assert text.startswith("Error: Path escapes notes root")
        assert (notes_root / "Other.md").exists()

    async def test_notes_archive(self, patched_workspace, notes_root):
        text = await _call("notes_archive", {"note_paths": ["Code.md", "my note"]})

        assert text.startswith("2 succeeded, 0 failed")
        assert (notes_root / "Archive" / "My-Note.md").exists()
        assert await _call("notes_list", {"folder": "Archive"}) == "No notes found"

    async def test_notes_archive_missing_note(self, patched_workspace):
        text = await _call("notes_archive", {"note_paths": ["Nope.md"]})

        assert text == "Error: Note not found: 'Nope.md'"

    async def test_notes_write_index(self, patched_workspace, notes_root):
        text = await _call("notes_write_index")

        assert text == "Index written: INDEX.md"
        assert (notes_root / "INDEX.md").exists()

    async def test_notes_stats(self, patched_workspace):
        stats = json.loads(await _call("notes_stats"))

        assert stats["total_notes"] == 6
        assert stats["by_extension"][".org"] == 1

    async def test_notes_refresh(self, patched_workspace, notes_root):
        (notes_root / "Later.md").write_text("# Later\n", encoding="utf-8")

        assert await _call("notes_refresh") == "Index rebuilt: 7 notes"

    async def test_unknown_tool(self, patched_workspace):
        assert await _call("notes_explode") == "Unknown tool: notes_explode"


class TestResources:
    """Tests for MCP resources."""

    async def test_stats_resource(self, patched_workspace):
        from notebase.tools import read_resource

        stats = json.loads(await read_resource("notes://stats"))

        assert stats["total_notes"] == 6

    async def test_unknown_resource(self, patched_workspace):
        from notebase.tools import read_resource

        result = json.loads(await read_resource("notes://nope"))

        assert "error" in result
