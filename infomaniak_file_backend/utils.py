"""Shared utility functions for backend implementations.

Key utilities:
- Data type coercion (bytes, str, BinaryIO)
- Chunk accumulation for streaming operations
- Mimetype guessing from file extensions
- Timestamp and size parsing for the shapes backends report them in

Example usage:
    >>> from infomaniak_file_backend.utils import coerce_to_bytes
    >>> data = coerce_to_bytes("Hello, world!")
    >>> assert isinstance(data, bytes)
"""

from __future__ import annotations

import io
import mimetypes
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any, BinaryIO

from .interfaces import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from collections.abc import Iterator

DEFAULT_MIMETYPE = "application/octet-stream"


def coerce_to_bytes(data: bytes | str | BinaryIO) -> bytes:
    """Coerce supported input types to raw bytes.

    Handles bytes, strings (UTF-8 encoded), and file-like objects.

    Raises:
        TypeError: If data type is not supported.

    """
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")

    if hasattr(data, "read"):
        return accumulate_chunks(data)

    message = f"Unsupported data type: {type(data).__name__}"
    raise TypeError(message)


def accumulate_chunks(
    chunk_source: Iterator[bytes | str] | BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bytes:
    """Accumulate chunks from iterator or file-like object into bytes.

    String chunks are encoded as UTF-8.
    """
    accumulated = io.BytesIO()
    if hasattr(chunk_source, "read"):
        while True:
            chunk = chunk_source.read(chunk_size)
            if not chunk:
                break
            accumulated.write(_chunk_bytes(chunk))
    else:
        for chunk in chunk_source:
            accumulated.write(_chunk_bytes(chunk))
    return accumulated.getvalue()


def _chunk_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    message = f"Unsupported stream payload type: {type(chunk).__name__}"
    raise TypeError(message)


def guess_mimetype(path: str, default: str = DEFAULT_MIMETYPE) -> str:
    """Return a best-guess mimetype from the extension of ``path``.

    Example:

        >>> guess_mimetype("notes/todo.txt")
        'text/plain'
        >>> guess_mimetype("blob")
        'application/octet-stream'

    """
    mimetype, _ = mimetypes.guess_type(path, strict=False)
    return mimetype or default


def parse_size(value: Any) -> int | None:
    """Convert a reported content length to an integer when possible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return None
    if isinstance(value, (str, bytes)):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def parse_timestamp(value: Any) -> int | None:
    """Convert a reported modification time to epoch seconds.

    Accepts datetimes, numbers, ISO-8601 strings as found in Swift container
    listings (naive values are UTC) and RFC 1123 dates as found in HTTP
    ``Last-Modified`` headers. Unparseable values yield None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _datetime_to_epoch(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        return int(float(text))
    except OverflowError:
        return None
    except ValueError:
        pass
    try:
        return _datetime_to_epoch(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _datetime_to_epoch(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def _datetime_to_epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())
