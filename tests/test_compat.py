"""Tests for exception translation and compatibility module."""

from __future__ import annotations

import errno

import pytest
from swiftclient.exceptions import ClientException

from infomaniak_file_backend import (
    CompatibleFileBackend,
    OpenStackFileBackend,
    WebDAVClient,
    WebDAVFileBackend,
)
from infomaniak_file_backend.compat import (
    translate_backend_exception,
    translate_exceptions,
    translate_method,
)
from infomaniak_file_backend.interfaces import (
    CreateDirectoryError,
    FileBackendError,
    ListingError,
    ReadError,
    VisibilityUnsupportedError,
    WriteError,
)
from infomaniak_file_backend.webdav import WebDAVStatusError
from tests.fakes import FakeSwiftConnection, FakeWebDAVSession

# ruff: noqa: S101  # pytest assertions are ok in tests


def caused_by(error: FileBackendError, cause: BaseException) -> FileBackendError:
    error.__cause__ = cause
    return error


class TestTranslateBackendException:
    """Test translate_backend_exception function."""

    def test_translate_swift_not_found(self) -> None:
        """Test a Swift 404 cause becomes FileNotFoundError."""
        exc = caused_by(
            ReadError.at_location("missing.txt"),
            ClientException("gone", http_status=404),
        )
        result = translate_backend_exception(exc)
        assert isinstance(result, FileNotFoundError)
        assert result.errno == errno.ENOENT
        assert "missing.txt" in str(result)

    def test_translate_webdav_not_found(self) -> None:
        """Test a WebDAV 404 cause becomes FileNotFoundError."""
        exc = caused_by(
            ReadError.at_location("missing.txt"),
            WebDAVStatusError("GET", "missing.txt", 404),
        )
        assert isinstance(translate_backend_exception(exc), FileNotFoundError)

    @pytest.mark.parametrize("status", [401, 403])
    def test_translate_forbidden(self, status: int) -> None:
        """Test authorization failures become PermissionError."""
        exc = caused_by(
            WriteError.at_location("a.txt"),
            ClientException("denied", http_status=status),
        )
        assert isinstance(translate_backend_exception(exc), PermissionError)

    def test_translate_nested_cause(self) -> None:
        """Test the status is found further down the cause chain."""
        inner = caused_by(
            CreateDirectoryError.at_location("dir"),
            WebDAVStatusError("MKCOL", "dir", 403),
        )
        outer = caused_by(WriteError.at_location("dir/a.txt"), inner)
        assert isinstance(translate_backend_exception(outer), PermissionError)

    def test_translate_visibility(self) -> None:
        """Test visibility errors become ENOTSUP."""
        result = translate_backend_exception(
            VisibilityUnsupportedError.at_location("a.txt"),
        )
        assert result.errno == errno.ENOTSUP

    def test_translate_write_errors(self) -> None:
        """Test write and directory creation errors become EIO."""
        assert translate_backend_exception(WriteError.at_location("a")).errno == errno.EIO
        assert (
            translate_backend_exception(CreateDirectoryError.at_location("d")).errno
            == errno.EIO
        )

    def test_translate_generic_backend_error(self) -> None:
        """Test other errors become plain OSError with the message kept."""
        result = translate_backend_exception(ListingError.at_location("d", "boom"))
        assert type(result) is OSError
        assert str(result) == "Unable to list contents: d (boom)"


class TestTranslateExceptions:
    """Test the context manager and decorator."""

    def test_translate_exceptions_preserves_exception_chain(self) -> None:
        """Test the original error is chained."""
        original = ReadError.at_location("a.txt")
        with pytest.raises(OSError) as excinfo, translate_exceptions():
            raise original
        assert excinfo.value.__cause__ is original

    def test_translate_exceptions_passes_through_other_exceptions(self) -> None:
        """Test non-backend exceptions are untouched."""
        with pytest.raises(KeyError), translate_exceptions():
            raise KeyError("x")

    def test_translate_method_preserves_return_value(self) -> None:
        """Test decorated functions return normally."""

        @translate_method
        def answer() -> int:
            return 42

        assert answer() == 42
        assert answer.__name__ == "answer"

    def test_translate_method_wraps_iterators(self) -> None:
        """Test errors raised during iteration are translated."""

        def entries():
            yield "a"
            raise ListingError.at_location("d", "dropped")

        iterator = translate_method(entries)()
        assert next(iterator) == "a"
        with pytest.raises(OSError, match="dropped"):
            next(iterator)


class TestCompatibleFileBackend:
    """Test the wrapper over real adapters."""

    @pytest.fixture
    def swift(self) -> CompatibleFileBackend:
        return CompatibleFileBackend(
            OpenStackFileBackend({"container": "files"}, client=FakeSwiftConnection()),
        )

    @pytest.fixture
    def dav(self) -> CompatibleFileBackend:
        client = WebDAVClient(
            "https://dav.example.com/dav/",
            session=FakeWebDAVSession("/dav/"),
        )
        return CompatibleFileBackend(WebDAVFileBackend({}, client=client))

    def test_swift_round_trip(self, swift: CompatibleFileBackend) -> None:
        """Test calls are delegated unchanged on success."""
        swift.write("a.txt", b"abc")
        assert swift.read("a.txt") == b"abc"

    def test_swift_read_missing(self, swift: CompatibleFileBackend) -> None:
        """Test missing objects raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            swift.read("missing.txt")

    def test_dav_read_missing(self, dav: CompatibleFileBackend) -> None:
        """Test missing resources raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            dav.read("missing.txt")

    @pytest.mark.parametrize("method", ["get_metadata", "get_size", "get_mimetype"])
    def test_swift_metadata_missing(
        self,
        swift: CompatibleFileBackend,
        method: str,
    ) -> None:
        """Test metadata lookups on missing objects raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            getattr(swift, method)("missing.txt")

    @pytest.mark.parametrize("method", ["get_metadata", "get_size", "get_timestamp"])
    def test_dav_metadata_missing(
        self,
        dav: CompatibleFileBackend,
        method: str,
    ) -> None:
        """Test metadata lookups on missing resources raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            getattr(dav, method)("missing.txt")

    def test_dav_listing_missing(self, dav: CompatibleFileBackend) -> None:
        """Test lazy listing of a missing collection raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="directory not found"):
            list(dav.list_contents("missing"))

    def test_set_visibility(self, swift: CompatibleFileBackend) -> None:
        """Test visibility changes raise ENOTSUP."""
        with pytest.raises(OSError) as excinfo:
            swift.set_visibility("a.txt", "public")
        assert excinfo.value.errno == errno.ENOTSUP

    def test_attribute_delegation(self, swift: CompatibleFileBackend) -> None:
        """Test non-callable attributes are passed through."""
        assert swift.prefixer.prefix == ""
        assert repr(swift).startswith("CompatibleFileBackend(")
