"""Exception translation/mapping for standard Python compatibility.

This module provides utilities for translating infomaniak_file_backend
exceptions into standard Python OSError subclasses, making the adapters
usable from code expecting standard Python file operation exceptions.
"""

from __future__ import annotations

import errno
import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from .interfaces import (
    CreateDirectoryError,
    ErrorKind,
    FileBackendError,
    WriteError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from .interfaces import FileBackend

T = TypeVar("T")

HTTP_NOT_FOUND = 404
HTTP_FORBIDDEN = 403
HTTP_UNAUTHORIZED = 401


def _cause_status(exc: BaseException) -> int | None:
    """Return the HTTP status of the first chained cause that carries one."""
    current: BaseException | None = exc.__cause__
    while current is not None:
        for attribute in ("http_status", "status_code"):
            status = getattr(current, attribute, None)
            if isinstance(status, int):
                return status
        current = current.__cause__
    return None


def translate_backend_exception(exc: FileBackendError) -> OSError:
    """Convert a FileBackendError to a standard Python OSError.

    Maps:
    - any error caused by an HTTP 404 → FileNotFoundError
    - any error caused by an HTTP 401/403 → PermissionError
    - VisibilityUnsupportedError → OSError(ENOTSUP)
    - WriteError / CreateDirectoryError → OSError(EIO)
    - everything else → OSError

    The original exception message is preserved.
    """
    message = str(exc)
    status = _cause_status(exc)

    if status == HTTP_NOT_FOUND:
        return FileNotFoundError(errno.ENOENT, message)
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        return PermissionError(errno.EACCES, message)
    if exc.kind is ErrorKind.VISIBILITY_UNSUPPORTED:
        return OSError(errno.ENOTSUP, message)
    if isinstance(exc, (WriteError, CreateDirectoryError)):
        return OSError(errno.EIO, message)
    return OSError(message)


@contextmanager
def translate_exceptions() -> Iterator[None]:
    """Context manager translating FileBackendError into OSError.

    Example:
        ```python
        with translate_exceptions():
            backend.read("missing.txt")  # Raises FileNotFoundError
        ```

    """
    try:
        yield
    except FileBackendError as exc:
        raise translate_backend_exception(exc) from exc


def translate_method(method: Callable[..., T]) -> Callable[..., T]:
    """Decorator for translating exceptions from a method.

    Iterators returned by the method (such as ``list_contents``) are wrapped
    so that errors raised lazily during iteration are translated too.
    """

    @functools.wraps(method)
    def wrapper(*args: object, **kwargs: object) -> T:
        with translate_exceptions():
            result = method(*args, **kwargs)

            if hasattr(result, "__iter__") and hasattr(result, "__next__"):
                return _wrap_iterator(result)  # type: ignore[return-value]

            return result

    return wrapper


def _wrap_iterator(iterator: Any) -> Iterator[Any]:
    """Yield from ``iterator`` translating backend errors on the way."""
    while True:
        with translate_exceptions():
            try:
                item = next(iterator)
            except StopIteration:
                return
        yield item


class CompatibleFileBackend:
    """Wrapper backend that translates exceptions to standard Python OSError.

    Example:
        ```python
        from infomaniak_file_backend import CompatibleFileBackend, WebDAVFileBackend

        backend = CompatibleFileBackend(WebDAVFileBackend({"base_url": url}))
        try:
            backend.read("missing.txt")
        except FileNotFoundError:
            print("File not found!")
        ```

    """

    def __init__(self, backend: FileBackend) -> None:
        """Wrap ``backend``."""
        self._backend = backend

    def __getattr__(self, name: str) -> object:
        """Delegate attribute access, wrapping callables with translation."""
        attr = getattr(self._backend, name)

        if callable(attr):
            return translate_method(attr)

        return attr

    def __repr__(self) -> str:
        return f"CompatibleFileBackend({self._backend!r})"
