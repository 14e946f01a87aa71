"""Directory scanning utilities for sync operations."""

import asyncio
import logging
from pathlib import Path

from ..exceptions import MonacaIOError
from ..models import FileEntry, FileTree
from ..utils import (
    DEPENDENCY_CACHE_DIR,
    LOCAL_PROPERTIES_PATH,
    calculate_file_hash,
    to_project_path,
)

logger = logging.getLogger(__name__)


class LocalTreeScanner:
    """Scans a local project directory into a content-addressed FileTree.

    Every file is read in full to compute its fingerprint, so a scan costs
    O(total bytes) of I/O. Scan once per sync and reuse the tree.

    Examples:
        >>> scanner = LocalTreeScanner()
        >>> tree = scanner.scan(Path("/home/user/myapp"))
        >>> tree["/www"].kind
        <EntryKind.DIRECTORY: 'dir'>
    """

    def __init__(self, excluded_root_dirs: tuple[str, ...] = (DEPENDENCY_CACHE_DIR,)):
        """Initialize the scanner.

        Args:
            excluded_root_dirs: Top-level directory names that are skipped
                together with their contents
        """
        self.excluded_root_dirs = excluded_root_dirs

    def _is_excluded(self, relative_path: str) -> bool:
        top = relative_path.split("/", 1)[0]
        return top in self.excluded_root_dirs

    def scan(self, root: Path) -> FileTree:
        """Recursively scan a project directory.

        Args:
            root: Project root directory

        Returns:
            FileTree keyed by project path ("/www/index.html")

        Raises:
            MonacaIOError: If the root does not exist or a file can't be read
        """
        if not root.is_dir():
            raise MonacaIOError(f"{root} does not exist")

        tree: FileTree = {}
        self._scan_dir(root, root, tree)

        # The local properties file belongs to the sync client, never the project
        tree.pop(LOCAL_PROPERTIES_PATH, None)

        logger.debug("Scanned %d entries under %s", len(tree), root)
        return tree

    def _scan_dir(self, directory: Path, root: Path, tree: FileTree) -> None:
        try:
            items = sorted(directory.iterdir())
        except OSError as e:
            raise MonacaIOError(f"Failed to list {directory}: {e}") from e

        for item in items:
            # Use as_posix() to ensure forward slashes on all platforms
            relative_path = item.relative_to(root).as_posix()
            if self._is_excluded(relative_path):
                continue

            key = to_project_path(relative_path)
            if item.is_dir():
                tree[key] = FileEntry.directory(key)
                # Symlinked directories are listed but not followed
                if not item.is_symlink():
                    self._scan_dir(item, root, tree)
            else:
                try:
                    tree[key] = FileEntry.file(key, calculate_file_hash(item))
                except OSError as e:
                    raise MonacaIOError(f"Failed to read {item}: {e}") from e

    async def scan_async(self, root: Path) -> FileTree:
        """Run :meth:`scan` in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.scan, root)
