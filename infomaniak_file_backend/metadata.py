"""Normalisation of raw backend objects into FileInfo / DirectoryInfo."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .interfaces import DIRECTORY_MIMETYPE, DirectoryInfo, FileInfo, StorageEntry
from .path_utils import PathPrefixer, parent_path
from .utils import guess_mimetype, parse_size, parse_timestamp

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


@dataclass(frozen=True)
class RawObject:
    """Backend-neutral view of an object as the backend reported it.

    ``name`` is the backend path. The remaining fields keep whatever shape
    the backend used; ``normalize_object`` parses them.
    """

    name: str
    content_type: str | None = None
    content_length: Any = None
    last_modified: Any = None


def normalize_object(raw: RawObject, prefixer: PathPrefixer) -> StorageEntry:
    """Convert a raw backend object into a normalised entry.

    Example:

        >>> prefixer = PathPrefixer("site")
        >>> normalize_object(RawObject("site/assets", "application/directory"), prefixer)
        DirectoryInfo(path='assets')
        >>> normalize_object(RawObject("site/a.css", None, "12"), prefixer).mimetype
        'text/css'

    """
    path = prefixer.strip_prefix(raw.name).strip("/")
    if raw.content_type == DIRECTORY_MIMETYPE:
        return DirectoryInfo(path=path)

    return FileInfo(
        path=path,
        size=parse_size(raw.content_length),
        mimetype=raw.content_type or guess_mimetype(path),
        last_modified=parse_timestamp(raw.last_modified),
    )


def emulate_directories(
    entries: Iterable[StorageEntry],
    root: str = "",
) -> Iterator[StorageEntry]:
    """Yield entries, inserting directories implied by nested paths.

    Object stores only know about objects, so ``a/b/c.txt`` listed under
    ``a`` implies a directory ``a/b`` even when no marker object exists.
    Directory markers imply their own parents the same way.
    Every directory is emitted at most once, and never ``root`` itself.
    """
    root = root.strip("/")
    emitted: set[str] = set()
    for entry in entries:
        for directory in _implied_directories(entry.path, root):
            if directory not in emitted:
                emitted.add(directory)
                yield DirectoryInfo(path=directory)

        if entry.is_dir:
            if entry.path in emitted or entry.path == root:
                continue
            emitted.add(entry.path)
        yield entry


def _implied_directories(path: str, root: str) -> list[str]:
    directories: list[str] = []
    current = parent_path(path)
    while current and current != root:
        if root and not current.startswith(f"{root}/"):
            break
        directories.append(current)
        current = parent_path(current)
    directories.reverse()
    return directories
