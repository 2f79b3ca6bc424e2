"""Tests for the shared config, metadata and error types."""

from __future__ import annotations

import io

import pytest

from infomaniak_file_backend import (
    Config,
    CopyError,
    DirectoryInfo,
    ErrorKind,
    FileBackend,
    FileInfo,
    MetadataRetrievalError,
    MoveError,
    ReadError,
    Visibility,
    VisibilityUnsupportedError,
    WriteError,
)

# ruff: noqa: S101  # pytest assertions are ok in tests


class MemoryBackend(FileBackend):
    """Dictionary backed implementation exercising the default methods."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.directories: set[str] = set()

    def exists(self, path):
        return str(path) in self.files

    def directory_exists(self, path):
        return str(path) in self.directories

    def write(self, path, contents, config=None):
        if str(path).startswith("readonly/"):
            raise WriteError.at_location(str(path), "read only")
        if isinstance(contents, str):
            contents = contents.encode()
        self.files[str(path)] = contents

    def write_stream(self, path, stream, config=None):
        self.write(path, stream.read(), config)

    def read_stream(self, path):
        if str(path) not in self.files:
            raise ReadError.at_location(str(path), "missing")
        return io.BytesIO(self.files[str(path)])

    def delete(self, path):
        del self.files[str(path)]

    def delete_directory(self, path):
        self.directories.discard(str(path))

    def create_directory(self, path, config=None):
        self.directories.add(str(path))

    def list_contents(self, path="", *, recursive=False):
        return iter([FileInfo(path=name) for name in sorted(self.files)])

    def get_metadata(self, path):
        if str(path) in self.directories:
            return DirectoryInfo(str(path))
        return FileInfo(path=str(path), size=len(self.files[str(path)]))


class TestConfig:
    """Layered configuration mapping."""

    def test_mapping_behaviour(self) -> None:
        """Config behaves like a read-only mapping."""
        config = Config({"content_type": "text/plain"})
        assert config["content_type"] == "text/plain"
        assert config.get("missing") is None
        assert dict(config) == {"content_type": "text/plain"}
        assert len(config) == 1
        with pytest.raises(KeyError):
            config["missing"]

    def test_extend_overrides(self) -> None:
        """extend layers new values over existing ones."""
        base = Config({"content_type": "text/plain", "headers": {"X-A": "1"}})
        extended = base.extend({"content_type": "text/csv"})
        assert extended["content_type"] == "text/csv"
        assert extended["headers"] == {"X-A": "1"}
        assert base["content_type"] == "text/plain"
        assert len(extended) == 2

    def test_with_defaults(self) -> None:
        """Defaults only fill keys the config lacks."""
        config = Config({"content_type": "text/plain"}).with_defaults(
            {"content_type": "application/octet-stream", "headers": {}},
        )
        assert config["content_type"] == "text/plain"
        assert config["headers"] == {}
        assert sorted(config) == ["content_type", "headers"]

    def test_empty(self) -> None:
        """An empty config is falsy."""
        assert not Config()
        assert repr(Config({"a": 1})) == "Config({'a': 1})"


class TestErrors:
    """Error construction helpers."""

    def test_at_location(self) -> None:
        """at_location records the path and reason."""
        error = ReadError.at_location("a.txt", "timed out")
        assert error.path == "a.txt"
        assert error.reason == "timed out"
        assert error.kind is ErrorKind.READ_FAILED
        assert str(error) == "Unable to read file: a.txt (timed out)"

    def test_transfer_error(self) -> None:
        """Copy and move errors record both ends."""
        error = MoveError.from_location_to("a", "b")
        assert error.source == "a"
        assert error.destination == "b"
        assert error.kind is ErrorKind.MOVE_FAILED
        assert str(error) == "Unable to move file: a -> b"

    def test_every_kind_is_distinct(self) -> None:
        """Each error class maps to its own kind."""
        kinds = {
            ReadError.kind,
            WriteError.kind,
            CopyError.kind,
            MoveError.kind,
            MetadataRetrievalError.kind,
            VisibilityUnsupportedError.kind,
        }
        assert len(kinds) == 6


class TestFileBackendDefaults:
    """Behaviour inherited from the abstract base class."""

    @pytest.fixture
    def backend(self) -> MemoryBackend:
        backend = MemoryBackend()
        backend.write("a.txt", b"abc")
        return backend

    def test_read(self, backend: MemoryBackend) -> None:
        """read drains read_stream."""
        assert backend.read("a.txt") == b"abc"

    def test_copy_and_move(self, backend: MemoryBackend) -> None:
        """copy and move fall back to read, write and delete."""
        backend.copy("a.txt", "b.txt")
        backend.move("b.txt", "c.txt")
        assert sorted(backend.files) == ["a.txt", "c.txt"]

    def test_copy_failure(self, backend: MemoryBackend) -> None:
        """Failures inside copy become CopyError."""
        with pytest.raises(CopyError) as excinfo:
            backend.copy("a.txt", "readonly/b.txt")
        assert isinstance(excinfo.value.__cause__, WriteError)

    def test_move_failure(self, backend: MemoryBackend) -> None:
        """A missing source makes move fail without deleting anything."""
        with pytest.raises(MoveError):
            backend.move("missing.txt", "b.txt")
        assert sorted(backend.files) == ["a.txt"]

    def test_accessors(self, backend: MemoryBackend) -> None:
        """Single-field accessors read get_metadata."""
        assert backend.get_size("a.txt") == 3
        assert backend.get_visibility("a.txt") is Visibility.UNSUPPORTED

    def test_accessors_reject_directories(self, backend: MemoryBackend) -> None:
        """Directories have no size."""
        backend.create_directory("dir")
        with pytest.raises(MetadataRetrievalError, match="directory"):
            backend.get_size("dir")

    @pytest.mark.parametrize("visibility", [Visibility.PUBLIC, "private"])
    def test_set_visibility(self, backend: MemoryBackend, visibility) -> None:
        """Visibility changes are always rejected."""
        with pytest.raises(VisibilityUnsupportedError) as excinfo:
            backend.set_visibility("a.txt", visibility)
        assert excinfo.value.reason in ("requested public", "requested private")
