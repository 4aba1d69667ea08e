"""
Pytest configuration and fixtures for notebase tests.
"""

import pytest
from pathlib import Path


@pytest.fixture
def notes_root(tmp_path: Path):
    """Create a temporary notes tree with linked notes."""
    root = tmp_path / "notes"
    root.mkdir()

    # Create folder structure
    (root / "Projects").mkdir()
    (root / "Daily").mkdir()
    (root / "Templates").mkdir()
    (root / ".git").mkdir()

    # Note 1: Link target, with a self-link
    (root / "My-Note.md").write_text("""# My Note

See [[Other]] and [[My Note]] itself.
""", encoding="utf-8")

    # Note 2: Two wiki links to My-Note on one line, differing in case
    (root / "Other.md").write_text("""# Other

Back to [[My Note]] and [[my note]].
""", encoding="utf-8")

    # Note 3: Org file link with a description
    (root / "Projects" / "Plan.org").write_text("""#+TITLE: Plan

See [[file:../My-Note.md][my note]].
""", encoding="utf-8")

    # Note 4: Markdown link, zk link and an external URL
    (root / "Daily" / "2024-01-01.md").write_text("""# Daily

- [my note](../My-Note.md)
- [[zk:202401011200]]
- [site](https://example.com)
""", encoding="utf-8")

    # Note 5: Zettel with frontmatter id and an aliased link with anchor
    (root / "202401011200-zettel.md").write_text("""---
id: 202401011200
title: Zettel
---

Jump to [[My-Note#Heading|the heading]].
""", encoding="utf-8")

    # Note 6: Link inside a fenced code block (ignored)
    (root / "Code.md").write_text("""# Code

```
[[My Note]]
```
""", encoding="utf-8")

    # Excluded: template folder, hidden folder, AppleDouble junk
    (root / "Templates" / "Template.md").write_text("[[My Note]]\n", encoding="utf-8")
    (root / ".git" / "notes.md").write_text("[[My Note]]\n", encoding="utf-8")
    (root / "._My-Note.md").write_text("[[My Note]]\n", encoding="utf-8")

    # Not a note extension
    (root / "image.png").write_bytes(b"\x89PNG")

    yield root


@pytest.fixture
def index(notes_root):
    """Create a NoteIndex over the temp notes tree."""
    from notebase.index import NoteIndex
    note_index = NoteIndex(notes_root, ttl=60)
    note_index.build()
    return note_index


@pytest.fixture
def patched_workspace(notes_root, monkeypatch):
    """Patch the global tools workspace to use the temp notes tree."""
    from notebase import tools
    from notebase.config import Settings

    workspace = tools.Workspace(Settings(notes_root=notes_root, cache_ttl=60))
    workspace.index.build()
    monkeypatch.setattr(tools, "workspace", workspace)
    return workspace
