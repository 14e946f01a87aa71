"""Data models for Monaca project file trees."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class EntryKind(str, Enum):
    """Kind of an entry in a project file tree."""

    FILE = "file"
    """Regular file (carries a content hash)"""

    DIRECTORY = "dir"
    """Directory (never transferred on its own)"""


@dataclass(frozen=True)
class FileEntry:
    """A single file or directory in a project tree."""

    path: str
    """Project path using forward slashes with a leading "/" """

    kind: EntryKind
    """File or directory"""

    hash: Optional[str] = None
    """Content fingerprint, present only for files"""

    @property
    def is_file(self) -> bool:
        return self.kind == EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY

    @classmethod
    def file(cls, path: str, content_hash: str) -> "FileEntry":
        return cls(path=path, kind=EntryKind.FILE, hash=content_hash)

    @classmethod
    def directory(cls, path: str) -> "FileEntry":
        return cls(path=path, kind=EntryKind.DIRECTORY)

    @classmethod
    def from_api(cls, path: str, data: dict[str, Any]) -> "FileEntry":
        """Create a FileEntry from an item of the remote file tree.

        Args:
            path: Project path of the item (the key in the tree response)
            data: Item payload, e.g. ``{"type": "file", "hash": "3610a686"}``

        Returns:
            FileEntry instance
        """
        if data.get("type") == EntryKind.DIRECTORY.value:
            return cls.directory(path)
        content_hash = data.get("hash")
        return cls(
            path=path,
            kind=EntryKind.FILE,
            hash=str(content_hash) if content_hash is not None else None,
        )


FileTree = dict[str, FileEntry]
"""Path-keyed snapshot of a project's files and directories."""


def tree_from_api_response(items: dict[str, Any]) -> FileTree:
    """Build a FileTree from the ``items`` mapping returned by the API."""
    return {path: FileEntry.from_api(path, data or {}) for path, data in items.items()}
