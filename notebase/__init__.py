# notebase: note index, link resolution and rename core
#
# Modular package structure:
# - config.py: Settings (pydantic-settings) and note type folders
# - logging.py: structlog configuration (stderr, level filter)
# - models.py: NoteRecord, LinkReference, RenameChange and result models
# - utils.py: Path/slug helpers, frontmatter parsing and exceptions
# - scanner.py: Pluggable directory scanners and content searchers
# - index.py: NoteIndex, the TTL-cached note snapshot
# - links.py: Link extraction for wiki, zk, org and markdown syntaxes
# - tags.py: Inline, org headline and frontmatter tag extraction
# - resolver.py: Link target resolution fallback chain
# - backlinks.py: Backlink computation
# - rename.py: Rename transactions (compute, preview, apply)
# - notes.py: Note file operations (create, delete, move, archive, index note)
# - notify.py: Notification sinks
# - tools.py: MCP tool handlers and the host workspace
# - main.py: Entry point and server initialization
