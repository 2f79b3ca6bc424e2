"""Path prefixing and normalisation utilities.

Both adapters scope every caller path to a subtree of the backend namespace.
The caller only ever sees storage paths (relative, ``/`` separated, without
the prefix); the backend only ever sees backend paths (prefix prepended,
leading separators stripped).

Key utilities:
- PathPrefixer for mapping storage paths to backend paths and back
- Windows path normalisation
- Percent-encoding of path segments for HTTP backends
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

if TYPE_CHECKING:
    from .interfaces import PathLike


class PathPrefixer:
    """Apply and remove a fixed prefix on backend paths.

    Example:

        >>> prefixer = PathPrefixer("/backups")
        >>> prefixer.prefix_path("db/dump.sql")
        'backups/db/dump.sql'
        >>> prefixer.strip_prefix("backups/db/dump.sql")
        'db/dump.sql'

    """

    def __init__(self, prefix: str = "", separator: str = "/") -> None:
        """Store the prefix without leading separators and with one trailing."""
        self._separator = separator
        prefix = normalize_windows_path(prefix) if separator == "/" else prefix
        prefix = prefix.strip(separator)
        self._prefix = f"{prefix}{separator}" if prefix else ""

    @property
    def prefix(self) -> str:
        """Normalised prefix, empty or ending with the separator."""
        return self._prefix

    def prefix_path(self, path: PathLike) -> str:
        """Return the backend path for a storage path."""
        relative = str(path)
        if self._separator == "/":
            relative = normalize_windows_path(relative)
        prefixed = self._prefix + relative.lstrip(self._separator)
        return prefixed.lstrip(self._separator)

    def prefix_directory_path(self, path: PathLike) -> str:
        """Return the backend path for a directory, ending with a separator."""
        prefixed = self.prefix_path(path).rstrip(self._separator)
        return f"{prefixed}{self._separator}" if prefixed else ""

    def strip_prefix(self, path: str) -> str:
        """Return the storage path for a backend path.

        Only an anchored prefix is removed. Paths outside the prefix are
        returned unchanged rather than having individual characters trimmed.
        """
        candidate = path.lstrip(self._separator)
        if self._prefix and candidate.startswith(self._prefix):
            return candidate[len(self._prefix) :]
        if self._prefix and candidate == self._prefix.rstrip(self._separator):
            return ""
        return candidate

    def strip_directory_prefix(self, path: str) -> str:
        """Return the storage path for a backend directory path."""
        return self.strip_prefix(path).rstrip(self._separator)


def normalize_windows_path(path_str: str) -> str:
    """Normalize Windows backslashes to forward slashes.

    Example:

        >>> normalize_windows_path("dir\\subdir\\file.txt")
        'dir/subdir/file.txt'

    """
    return path_str.replace("\\", "/")


def normalize_storage_path(path: PathLike) -> str:
    """Return a caller path as a relative, ``/`` separated string."""
    return normalize_windows_path(str(path)).strip("/")


def parent_path(path: str) -> str:
    """Return the parent of a storage path, or an empty string at the top."""
    head, _, _ = path.rstrip("/").rpartition("/")
    return head


def encode_path(path: str) -> str:
    """Percent-encode every path segment while keeping the separators.

    Example:

        >>> encode_path("my docs/résumé #1.txt")
        'my%20docs/r%C3%A9sum%C3%A9%20%231.txt'

    """
    return quote(path, safe="/")


def decode_path(path: str) -> str:
    """Reverse ``encode_path``."""
    return unquote(path)
