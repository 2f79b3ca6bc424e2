"""File backend adapters for OpenStack Swift object stores and WebDAV servers.

This package exposes one filesystem-style interface over two remote storage
protocols and normalises what they report into a single metadata model.

Core Components:
    - FileBackend: Abstract interface both adapters implement
    - OpenStackFileBackend: Swift container storage (Infomaniak Public Cloud)
    - WebDAVFileBackend: WebDAV storage (Infomaniak kDrive, Nextcloud, ...)
    - FileInfo / DirectoryInfo: Normalised metadata results
    - Config: Per-call write directives

Quick Start:

    >>> from infomaniak_file_backend import WebDAVFileBackend
    >>> backend = WebDAVFileBackend({"base_url": "https://dav.example.com/files/"})
    >>> backend.write("docs/readme.txt", b"Hello, world!")
    >>> backend.read("docs/readme.txt")
    b'Hello, world!'

    >>> # The same calls against a Swift container
    >>> from infomaniak_file_backend import resolve_backend
    >>> backend = resolve_backend("swift://my-container?auth_url=...")

Exception Handling:

    >>> from infomaniak_file_backend import ReadError
    >>> try:
    ...     backend.read("nonexistent.txt")
    ... except ReadError as exc:
    ...     print(exc.kind, exc.__cause__)

Supported Operations:
    - exists() / directory_exists() - Existence checks
    - write() / write_stream() - Create or replace files
    - read() / read_stream() - Read file contents
    - delete() / delete_directory() - Remove files and directories
    - create_directory() - Create directories
    - copy() / move() - Duplicate or relocate files
    - list_contents() - Lazily list directory contents
    - get_metadata() and friends - Size, mimetype, timestamp, visibility

"""

from .compat import CompatibleFileBackend
from .factory import register_backend_factory, resolve_backend
from .interfaces import (
    DEFAULT_CHUNK_SIZE,
    DIRECTORY_MIMETYPE,
    Config,
    CopyError,
    CreateDirectoryError,
    DeleteError,
    DirectoryInfo,
    ErrorKind,
    ExistenceCheckError,
    FileBackend,
    FileBackendError,
    FileInfo,
    ListingError,
    MetadataRetrievalError,
    MoveError,
    PathLike,
    ReadError,
    StorageEntry,
    Visibility,
    VisibilityUnsupportedError,
    WriteError,
)
from .openstack import OpenStackFileBackend
from .path_utils import PathPrefixer
from .webdav import WebDAVClient, WebDAVFileBackend

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DIRECTORY_MIMETYPE",
    "CompatibleFileBackend",
    "Config",
    "CopyError",
    "CreateDirectoryError",
    "DeleteError",
    "DirectoryInfo",
    "ErrorKind",
    "ExistenceCheckError",
    "FileBackend",
    "FileBackendError",
    "FileInfo",
    "ListingError",
    "MetadataRetrievalError",
    "MoveError",
    "OpenStackFileBackend",
    "PathLike",
    "PathPrefixer",
    "ReadError",
    "StorageEntry",
    "Visibility",
    "VisibilityUnsupportedError",
    "WebDAVClient",
    "WebDAVFileBackend",
    "WriteError",
    "register_backend_factory",
    "resolve_backend",
]
