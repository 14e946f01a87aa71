"""Tree comparison logic for sync operations."""

import logging
import re

from ..models import FileTree
from ..utils import UPLOAD_DIRECTORIES, has_hidden_segment
from .transfer import TransferDirection, TransferTask

logger = logging.getLogger(__name__)

# Top-level files, or anything below one of the upload directories
_UPLOAD_SCOPE_RE = re.compile(
    r"^/(" + "|".join(re.escape(d) + "/" for d in UPLOAD_DIRECTORIES) + r"|[^/]*$)"
)


def diff_trees(destination: FileTree, source: FileTree) -> FileTree:
    """Return the entries of ``destination`` that must be transferred.

    Directories are dropped (their creation is implied by the files inside
    them), and so is every file whose hash equals the hash of the same path
    in ``source``. Neither input is modified.

    The comparison is asymmetric: ``diff_trees(local, remote)`` is the
    upload set and ``diff_trees(remote, local)`` the download set.

    Args:
        destination: Tree whose entries are candidates for transfer
        source: Tree the candidates are compared against

    Returns:
        New FileTree with only the changed or new files

    Examples:
        >>> local = {"/a.js": FileEntry.file("/a.js", "111")}
        >>> remote = {"/a.js": FileEntry.file("/a.js", "222")}
        >>> list(diff_trees(local, remote))
        ['/a.js']
        >>> diff_trees(local, local)
        {}
    """
    result: FileTree = {}
    for path, entry in destination.items():
        if entry.is_dir:
            continue
        other = source.get(path)
        if other is not None and other.hash == entry.hash:
            continue
        result[path] = entry
    return result


def in_upload_scope(path: str) -> bool:
    """Check whether a project path may be uploaded.

    Only top-level files and paths below the upload directories qualify,
    and nothing with a hidden segment.

    Examples:
        >>> in_upload_scope("/www/index.html")
        True
        >>> in_upload_scope("/config.xml")
        True
        >>> in_upload_scope("/.monaca/secret.json")
        False
        >>> in_upload_scope("/platforms/android/build.gradle")
        False
    """
    if has_hidden_segment(path):
        return False
    return _UPLOAD_SCOPE_RE.match(path) is not None


def filter_upload_scope(tree: FileTree) -> FileTree:
    """Return a new tree with only the entries eligible for upload."""
    return {path: entry for path, entry in tree.items() if in_upload_scope(path)}


class TreeDiffer:
    """Builds transfer task lists from a local and a remote tree."""

    def upload_set(self, local: FileTree, remote: FileTree) -> list[TransferTask]:
        """Files to upload: changed local files inside the upload scope."""
        changed = diff_trees(local, remote)
        eligible = filter_upload_scope(changed)
        if len(eligible) != len(changed):
            logger.debug(
                "Upload scope filtered out %d path(s)", len(changed) - len(eligible)
            )
        return [
            TransferTask(path=path, direction=TransferDirection.UPLOAD)
            for path in sorted(eligible)
        ]

    def download_set(self, remote: FileTree, local: FileTree) -> list[TransferTask]:
        """Files to download: every changed or new remote file."""
        changed = diff_trees(remote, local)
        return [
            TransferTask(path=path, direction=TransferDirection.DOWNLOAD)
            for path in sorted(changed)
        ]
