"""Utility functions for Monaca project sync."""

import posixpath
import zlib
from pathlib import Path, PurePosixPath

from .exceptions import MonacaIOError

# =============================================================================
# Constants for sync operations
# =============================================================================

# Dependency cache directory never scanned at the project root
DEPENDENCY_CACHE_DIR: str = "node_modules"

# Local metadata file reserved for the sync client itself
LOCAL_PROPERTIES_PATH: str = "/.monaca/local_properties.json"

# Project subdirectories whose contents are eligible for upload
UPLOAD_DIRECTORIES: tuple[str, ...] = ("www", "merges", "plugins")

# Build polling defaults
DEFAULT_POLL_INTERVAL: float = 1.0  # seconds
DEFAULT_MAX_POLL_ATTEMPTS: int = 80


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_content_hash(data: bytes) -> str:
    """Calculate the content fingerprint used to detect changed files.

    The fingerprint is the CRC32 checksum of the bytes, rendered as eight
    lowercase hex digits (big-endian), which is what the Monaca file tree
    API reports for remote files.

    Args:
        data: File contents

    Returns:
        Hex encoded checksum

    Examples:
        >>> calculate_content_hash(b"")
        '00000000'
        >>> calculate_content_hash(b"hello")
        '3610a686'
    """
    return f"{zlib.crc32(data) & 0xFFFFFFFF:08x}"


def calculate_file_hash(file_path: Path) -> str:
    """Read a file fully and return its content fingerprint."""
    return calculate_content_hash(file_path.read_bytes())


# =============================================================================
# Path utilities
# =============================================================================


def to_project_path(relative_path: str) -> str:
    """Normalize a relative path to a project key ("/www/index.html").

    Examples:
        >>> to_project_path("www/index.html")
        '/www/index.html'
        >>> to_project_path("/config.xml")
        '/config.xml'
    """
    return "/" + relative_path.replace("\\", "/").lstrip("/")


def local_path_for(project_dir: Path, project_path: str) -> Path:
    """Map a project key back to a path inside the local project directory.

    Raises:
        MonacaIOError: If the key resolves to a location outside project_dir
            (e.g. "/../escaped.txt")
    """
    relative = posixpath.normpath(project_path.replace("\\", "/").lstrip("/"))
    if relative == ".." or relative.startswith("../"):
        raise MonacaIOError(
            f"{project_path} points outside of the project directory {project_dir}"
        )
    return project_dir.joinpath(*PurePosixPath(relative).parts)


def has_hidden_segment(project_path: str) -> bool:
    """Return True if any path segment starts with a dot.

    Examples:
        >>> has_hidden_segment("/.monaca/secret.json")
        True
        >>> has_hidden_segment("/www/js/app.js")
        False
    """
    return "/." in project_path

