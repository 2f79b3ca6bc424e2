"""Core interfaces and data structures for file backend implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any, BinaryIO, Union

DEFAULT_CHUNK_SIZE = 8192
DIRECTORY_MIMETYPE = "application/directory"

PathLike = Union[str, PurePath]


class ErrorKind(str, Enum):
    """Categories of failures surfaced by the adapters."""

    EXISTENCE_CHECK_FAILED = "existence_check_failed"
    WRITE_FAILED = "write_failed"
    READ_FAILED = "read_failed"
    DELETE_FAILED = "delete_failed"
    CREATE_DIRECTORY_FAILED = "create_directory_failed"
    COPY_FAILED = "copy_failed"
    MOVE_FAILED = "move_failed"
    LISTING_FAILED = "listing_failed"
    METADATA_RETRIEVAL_FAILED = "metadata_retrieval_failed"
    VISIBILITY_UNSUPPORTED = "visibility_unsupported"


class FileBackendError(RuntimeError):
    """Base exception for backend operations."""

    kind: ErrorKind | None = None

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        reason: str = "",
    ) -> None:
        """Initialise the base error with optional path and reason context."""
        detail = message if path is None else ": ".join((message, path))
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(detail)
        self.message = message
        self.path = path
        self.reason = reason

    @classmethod
    def at_location(cls, path: str, reason: str = "") -> FileBackendError:
        """Return an error scoped to a single storage path."""
        return cls(cls.default_message(), path=path, reason=reason)

    @classmethod
    def default_message(cls) -> str:
        """Return the human readable prefix used by ``at_location``."""
        return "Backend operation failed"


class ExistenceCheckError(FileBackendError):
    """Raised when the backend cannot tell whether a path exists."""

    kind = ErrorKind.EXISTENCE_CHECK_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to check existence"


class WriteError(FileBackendError):
    """Raised when writing a file fails."""

    kind = ErrorKind.WRITE_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to write file"


class ReadError(FileBackendError):
    """Raised when reading a file fails."""

    kind = ErrorKind.READ_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to read file"


class DeleteError(FileBackendError):
    """Raised when deleting a file or directory fails."""

    kind = ErrorKind.DELETE_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to delete"


class CreateDirectoryError(FileBackendError):
    """Raised when a directory cannot be created."""

    kind = ErrorKind.CREATE_DIRECTORY_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to create directory"


class ListingError(FileBackendError):
    """Raised when directory contents cannot be listed."""

    kind = ErrorKind.LISTING_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to list contents"


class MetadataRetrievalError(FileBackendError):
    """Raised when metadata for a path cannot be retrieved."""

    kind = ErrorKind.METADATA_RETRIEVAL_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to retrieve metadata"


class _TransferError(FileBackendError):
    """Shared base for errors involving a source and a destination."""

    def __init__(
        self,
        message: str,
        *,
        source: str,
        destination: str,
        reason: str = "",
    ) -> None:
        """Record both ends of the failed transfer."""
        super().__init__(message, path=f"{source} -> {destination}", reason=reason)
        self.source = source
        self.destination = destination

    @classmethod
    def from_location_to(
        cls,
        source: str,
        destination: str,
        reason: str = "",
    ) -> _TransferError:
        """Return an error describing a failed transfer between two paths."""
        return cls(
            cls.default_message(),
            source=source,
            destination=destination,
            reason=reason,
        )


class CopyError(_TransferError):
    """Raised when copying a file fails."""

    kind = ErrorKind.COPY_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to copy file"


class MoveError(_TransferError):
    """Raised when moving a file fails."""

    kind = ErrorKind.MOVE_FAILED

    @classmethod
    def default_message(cls) -> str:
        return "Unable to move file"


class VisibilityUnsupportedError(FileBackendError):
    """Raised for every attempt to change per-object visibility."""

    kind = ErrorKind.VISIBILITY_UNSUPPORTED

    @classmethod
    def default_message(cls) -> str:
        return "Visibility is not supported by this backend"


class Visibility(str, Enum):
    """Per-object visibility values."""

    PUBLIC = "public"
    PRIVATE = "private"
    UNSUPPORTED = "unsupported"


class Config(Mapping[str, Any]):
    """Immutable set of write/create directives passed to an operation.

    Lookups fall back to an optional defaults mapping, so a derived config can
    override a few keys while keeping everything the caller supplied.
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        fallback: Config | None = None,
    ) -> None:
        """Create a config from the provided options."""
        self._options = dict(options or {})
        self._fallback = fallback

    def __getitem__(self, key: str) -> Any:
        if key in self._options:
            return self._options[key]
        if self._fallback is not None:
            return self._fallback[key]
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        seen = set(self._options)
        yield from self._options
        if self._fallback is not None:
            for key in self._fallback:
                if key not in seen:
                    yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"Config({dict(self)!r})"

    def extend(self, options: Mapping[str, Any]) -> Config:
        """Return a new config with ``options`` layered over this one."""
        return Config(options, fallback=self)

    def with_defaults(self, defaults: Mapping[str, Any]) -> Config:
        """Return a new config that falls back to ``defaults`` for missing keys."""
        return Config(self, fallback=Config(defaults))


@dataclass(frozen=True)
class FileInfo:
    """Normalised metadata for a stored file."""

    path: str
    size: int | None = None
    mimetype: str | None = None
    last_modified: int | None = None
    visibility: Visibility = Visibility.UNSUPPORTED

    type = "file"

    @property
    def is_dir(self) -> bool:
        return False

    def as_dict(self) -> dict:
        """Return a JSON-serialisable representation."""
        return {
            "type": self.type,
            "path": self.path,
            "size": self.size,
            "mimetype": self.mimetype,
            "timestamp": self.last_modified,
            "visibility": self.visibility.value,
        }


@dataclass(frozen=True)
class DirectoryInfo:
    """Normalised metadata for a directory."""

    path: str

    type = "dir"

    @property
    def is_dir(self) -> bool:
        return True

    def as_dict(self) -> dict:
        """Return a JSON-serialisable representation."""
        return {"type": self.type, "path": self.path}


StorageEntry = Union[FileInfo, DirectoryInfo]


class FileBackend(ABC):
    """Standardised interface for remote file storage adapters.

    Implementations operate relative to an optional path prefix. Every backend
    fault is re-raised as the ``FileBackendError`` subclass matching the
    operation, with the original exception chained as ``__cause__``.
    """

    @abstractmethod
    def exists(self, path: PathLike) -> bool:
        """Return True when a file is present at ``path``."""

    @abstractmethod
    def directory_exists(self, path: PathLike) -> bool:
        """Return True when ``path`` is a directory."""

    @abstractmethod
    def write(
        self,
        path: PathLike,
        contents: bytes | str,
        config: Config | None = None,
    ) -> None:
        """Create or replace a file with in-memory contents.

        Args:
            path: Target path relative to the backend prefix.
            contents: Raw bytes, or text encoded as UTF-8.
            config: Optional write directives such as ``content_type``.

        """

    @abstractmethod
    def write_stream(
        self,
        path: PathLike,
        stream: BinaryIO,
        config: Config | None = None,
    ) -> None:
        """Create or replace a file with contents consumed from ``stream``."""

    @abstractmethod
    def read_stream(self, path: PathLike) -> BinaryIO:
        """Return a readable binary handle positioned at offset 0."""

    def read(self, path: PathLike) -> bytes:
        """Return the full contents of a file."""
        stream = self.read_stream(path)
        try:
            payload = stream.read()
        except FileBackendError:
            raise
        except Exception as exc:
            raise ReadError.at_location(str(path), str(exc)) from exc
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
        if isinstance(payload, str):
            return payload.encode("utf-8")
        return bytes(payload)

    def update(
        self,
        path: PathLike,
        contents: bytes | str,
        config: Config | None = None,
    ) -> None:
        """Replace the contents of an existing file."""
        self.write(path, contents, config)

    def update_stream(
        self,
        path: PathLike,
        stream: BinaryIO,
        config: Config | None = None,
    ) -> None:
        """Replace the contents of an existing file from a stream."""
        self.write_stream(path, stream, config)

    @abstractmethod
    def delete(self, path: PathLike) -> None:
        """Delete the file at ``path``."""

    @abstractmethod
    def delete_directory(self, path: PathLike) -> None:
        """Delete a directory and everything below it.

        Deletion is not transactional: a failure part way through leaves
        already removed entries removed.
        """

    @abstractmethod
    def create_directory(
        self,
        path: PathLike,
        config: Config | None = None,
    ) -> None:
        """Create a directory at ``path``."""

    def copy(
        self,
        source: PathLike,
        destination: PathLike,
        config: Config | None = None,
    ) -> None:
        """Copy a file by reading it fully and writing the destination."""
        try:
            contents = self.read(source)
            self.write(destination, contents, config)
        except FileBackendError as exc:
            raise CopyError.from_location_to(
                str(source),
                str(destination),
                str(exc),
            ) from exc

    def move(
        self,
        source: PathLike,
        destination: PathLike,
        config: Config | None = None,
    ) -> None:
        """Move a file as a copy followed by deletion of the source."""
        try:
            self.copy(source, destination, config)
            self.delete(source)
        except FileBackendError as exc:
            raise MoveError.from_location_to(
                str(source),
                str(destination),
                str(exc),
            ) from exc

    @abstractmethod
    def list_contents(
        self,
        path: PathLike = "",
        *,
        recursive: bool = False,
    ) -> Iterator[StorageEntry]:
        """Lazily yield the entries stored under ``path``."""

    @abstractmethod
    def get_metadata(self, path: PathLike) -> StorageEntry:
        """Return the normalised metadata of a single object."""

    def get_size(self, path: PathLike) -> int | None:
        """Return the size of a file in bytes."""
        return self._file_metadata(path).size

    def get_mimetype(self, path: PathLike) -> str | None:
        """Return the mimetype of a file."""
        return self._file_metadata(path).mimetype

    def get_timestamp(self, path: PathLike) -> int | None:
        """Return the last modification time as epoch seconds."""
        return self._file_metadata(path).last_modified

    def get_visibility(self, path: PathLike) -> Visibility:
        """Return the visibility of a file."""
        return self._file_metadata(path).visibility

    def set_visibility(self, path: PathLike, visibility: Visibility | str) -> None:
        """Per-object visibility cannot be changed on any supported backend."""
        requested = getattr(visibility, "value", visibility)
        raise VisibilityUnsupportedError.at_location(
            str(path),
            f"requested {requested}",
        )

    def _file_metadata(self, path: PathLike) -> FileInfo:
        entry = self.get_metadata(path)
        if entry.is_dir:
            raise MetadataRetrievalError.at_location(
                str(path),
                "path is a directory",
            )
        return entry

