"""
Pydantic models for notebase.

Contains data models for indexed notes, extracted links, rename changes and operation results.
"""

from enum import Enum, IntEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class LinkType(str, Enum):
    """Syntax a link reference was written in."""

    WIKI = "wiki"
    WIKI_ALIAS = "wiki_alias"
    ZK_ID = "zk_id"
    ORG_FILE = "org_file"
    MARKDOWN = "markdown"


class ResolutionStep(IntEnum):
    """Fallback chain step that resolved a link target."""

    ZK_ID = 0
    EXACT = 1
    NORMALIZED = 2
    COLLAPSED = 3
    PATH = 4


class RenameDecision(str, Enum):
    """User decision taken at the rename preview step."""

    APPLY = "apply"
    APPLY_WITH_BACKUP = "apply_with_backup"
    CANCEL = "cancel"


class NoteRecord(BaseModel):
    """Model for one indexed note file."""

    model_config = ConfigDict(frozen=True)

    path: Path
    rel_path: str
    basename: str
    extension: str
    directory: str
    note_type: str


class LinkReference(BaseModel):
    """Model for a link found in a note, before resolution."""

    model_config = ConfigDict(frozen=True)

    source_file: Path
    line_number: int
    raw_line_text: str
    link_type: LinkType
    target_string: str
    alias: str | None = None
    start: int
    end: int
    # Column span of target_string within raw_line_text
    target_start: int
    target_end: int


class RenameChange(BaseModel):
    """Model for a single line rewrite implied by a rename."""

    model_config = ConfigDict(frozen=True)

    file: Path
    line_number: int
    old_line: str
    new_line: str
    link_type: LinkType


class ApplyResult(BaseModel):
    """Model for the outcome of applying a rename changeset."""

    applied: int = 0
    failed: int = 0
    files_written: list[str] = []
    backups: list[str] = []
    renamed: bool = False
    new_path: str = ""
    error: str = ""
    partial: bool = False


class RenameResult(BaseModel):
    """Model for the result of a complete rename flow."""

    success: bool
    decision: RenameDecision | None = None
    changes: list[RenameChange] = []
    apply: ApplyResult | None = None
    error: str = ""


class OperationResult(BaseModel):
    """Model for the result of a bulk note file operation."""

    succeeded: int = 0
    failed: int = 0
    paths: list[str] = []
    errors: list[str] = []
