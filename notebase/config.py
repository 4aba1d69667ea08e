"""
Configuration module for notebase.

Uses pydantic-settings for configuration management with environment variable support.
Environment variables use NOTEBASE_ prefix (e.g., NOTEBASE_NOTES_ROOT).
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_notes_root() -> Path:
    """Get default notes root."""
    return Path.home() / "Documents" / "Notes"


DEFAULT_EXTENSIONS = [".md", ".org", ".txt"]

# Names skipped during directory scans (fnmatch patterns, matched per path component)
DEFAULT_JUNK_PATTERNS = [
    ".git",
    ".DS_Store",
    "._*",
    ".Trashes",
    ".Spotlight-V100",
    ".fseventsd",
    ".TemporaryItems",
    ".AppleDouble",
    ".continuity",
    "node_modules",
    "__pycache__",
    "*.tmp",
    "*.bak",
    ".Trash*",
]

DEFAULT_EXCLUDED_DIRS = ["Templates", "Archive"]


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - NOTEBASE_NOTES_ROOT: Root directory of the notes tree
    - NOTEBASE_CACHE_TTL: Note index TTL in seconds
    - NOTEBASE_EXTENSIONS: JSON list of recognised note extensions
    - NOTEBASE_JUNK_PATTERNS: JSON list of fnmatch patterns skipped while scanning
    - NOTEBASE_EXCLUDED_DIRS: JSON list of subfolder names never indexed
    - NOTEBASE_ARCHIVE_DIR: Folder name notes are archived into
    - NOTEBASE_USE_EXTERNAL_TOOLS: Use fd/rg when they are installed
    - NOTEBASE_BACKUP_SUFFIX: Suffix of backup copies written before rewrites
    - NOTEBASE_ID_FORMAT: strftime format of note identifiers
    - NOTEBASE_LOG_LEVEL: Minimum log level
    """

    notes_root: Path = Field(default_factory=_get_default_notes_root)
    cache_ttl: int = 300
    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    junk_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_JUNK_PATTERNS))
    excluded_dirs: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    archive_dir: str = "Archive"
    use_external_tools: bool = False
    backup_suffix: str = ".bak"
    id_format: str = "%Y%m%d%H%M"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="NOTEBASE_")


# Global settings instance
settings = Settings()

# Top-level folder name -> display note type; anything else is "generic"
NOTE_TYPE_FOLDERS = {
    "Daily": "daily",
    "Projects": "project",
    "People": "person",
    "Reading": "reading",
    "Quick": "quick",
}
