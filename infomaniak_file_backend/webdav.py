"""WebDAV server backed file backend implementation.

Works against any RFC 4918 server (Infomaniak kDrive, Nextcloud, Apache
mod_dav). Directories are real collections; copy and move are performed
server side.

Example:

    >>> from infomaniak_file_backend import WebDAVFileBackend
    >>> backend = WebDAVFileBackend(
    ...     {
    ...         "base_url": "https://connect.drive.infomaniak.com/",
    ...         "username": "me@example.com",
    ...         "password": "app-password",
    ...         "prefix": "Common documents",
    ...     },
    ... )
    >>> backend.write("reports/2024.csv", "year,total\\n")
    >>> backend.read("reports/2024.csv")
    b'year,total\\n'

"""

from __future__ import annotations

import io
import logging
import threading
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, BinaryIO
from urllib.parse import urlparse

import requests

from .interfaces import (
    DIRECTORY_MIMETYPE,
    CopyError,
    CreateDirectoryError,
    DeleteError,
    ExistenceCheckError,
    FileBackend,
    ListingError,
    MetadataRetrievalError,
    MoveError,
    PathLike,
    ReadError,
    StorageEntry,
    WriteError,
)
from .metadata import RawObject, emulate_directories, normalize_object
from .options import WEBDAV_OPERATION_OPTIONS, merge_config
from .path_utils import (
    PathPrefixer,
    decode_path,
    encode_path,
    normalize_storage_path,
    parent_path,
)
from .utils import coerce_to_bytes

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .interfaces import Config

logger = logging.getLogger(__name__)

DAV_NAMESPACE = "DAV:"

PROPFIND_BODY = (
    b'<?xml version="1.0" encoding="utf-8"?>'
    b'<d:propfind xmlns:d="DAV:"><d:prop>'
    b"<d:resourcetype/><d:getcontentlength/>"
    b"<d:getcontenttype/><d:getlastmodified/>"
    b"</d:prop></d:propfind>"
)

HTTP_NOT_FOUND = 404
HTTP_METHOD_NOT_ALLOWED = 405
HTTP_CONFLICT = 409
HTTP_ERROR_THRESHOLD = 400


class WebDAVStatusError(RuntimeError):
    """Raised when the server answers with an error status."""

    def __init__(self, method: str, location: str, status_code: int) -> None:
        """Record the failed request."""
        super().__init__(f"{method} {location} returned HTTP {status_code}")
        self.method = method
        self.location = location
        self.status_code = status_code


class WebDAVClient:
    """Minimal WebDAV client over a ``requests`` session.

    Paths passed to ``request`` are already percent-encoded and relative to
    ``base_url``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
        verify: bool | str = True,
        session: Any | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._base_path = decode_path(urlparse(self._base_url).path)
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        if username:
            self._session.auth = (username, password or "")
        self._session.verify = verify

    @property
    def base_url(self) -> str:
        return self._base_url

    def url_for(self, encoded_path: str) -> str:
        """Return the absolute URL of an encoded relative path."""
        return self._base_url + encoded_path.lstrip("/")

    def request(
        self,
        method: str,
        encoded_path: str,
        body: bytes | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        """Send one request and return the raw response."""
        logger.debug("%s %s", method, encoded_path)
        return self._session.request(
            method,
            self.url_for(encoded_path),
            data=body,
            headers=dict(headers or {}),
            timeout=self._timeout,
        )

    def propfind(self, encoded_path: str, depth: int) -> list[RawObject] | None:
        """Return the resources at ``encoded_path``, or None when missing.

        Resource names are decoded and relative to ``base_url``; collections
        carry the ``application/directory`` content type.
        """
        response = self.request(
            "PROPFIND",
            encoded_path,
            PROPFIND_BODY,
            headers={"Depth": str(depth), "Content-Type": "application/xml"},
        )
        if response.status_code == HTTP_NOT_FOUND:
            return None
        if response.status_code >= HTTP_ERROR_THRESHOLD:
            raise WebDAVStatusError("PROPFIND", encoded_path, response.status_code)
        return parse_multistatus(response.content, self._base_path)


def parse_multistatus(payload: bytes, base_path: str = "/") -> list[RawObject]:
    """Parse a ``207 Multi-Status`` PROPFIND body into raw objects.

    Example:

        >>> body = (
        ...     b'<d:multistatus xmlns:d="DAV:"><d:response>'
        ...     b"<d:href>/dav/a%20b.txt</d:href><d:propstat><d:prop>"
        ...     b"<d:getcontentlength>3</d:getcontentlength></d:prop>"
        ...     b"<d:status>HTTP/1.1 200 OK</d:status></d:propstat>"
        ...     b"</d:response></d:multistatus>"
        ... )
        >>> parse_multistatus(body, "/dav/")[0].name
        'a b.txt'

    """
    root = ET.fromstring(payload)
    resources: list[RawObject] = []
    for response in root.iter(_dav("response")):
        href = response.findtext(_dav("href"))
        if href is None:
            continue
        props: dict[str, Any] = {}
        for propstat in response.iter(_dav("propstat")):
            status = propstat.findtext(_dav("status")) or ""
            if " 200 " not in f"{status} ":
                continue
            prop = propstat.find(_dav("prop"))
            if prop is not None:
                props.update(_read_props(prop))

        is_collection = props.get("collection", False)
        resources.append(
            RawObject(
                name=_href_to_name(href, base_path, is_collection=is_collection),
                content_type=DIRECTORY_MIMETYPE
                if is_collection
                else props.get("getcontenttype"),
                content_length=props.get("getcontentlength"),
                last_modified=props.get("getlastmodified"),
            ),
        )
    return resources


def _dav(tag: str) -> str:
    return f"{{{DAV_NAMESPACE}}}{tag}"


def _read_props(prop: ET.Element) -> dict[str, Any]:
    values: dict[str, Any] = {}
    resourcetype = prop.find(_dav("resourcetype"))
    if resourcetype is not None:
        values["collection"] = resourcetype.find(_dav("collection")) is not None
    for name in ("getcontentlength", "getcontenttype", "getlastmodified"):
        text = prop.findtext(_dav(name))
        if text:
            values[name] = text.strip()
    return values


def _href_to_name(href: str, base_path: str, *, is_collection: bool) -> str:
    path = decode_path(urlparse(href).path)
    base = base_path.rstrip("/") + "/"
    if path.startswith(base):
        path = path[len(base) :]
    elif path.rstrip("/") == base.rstrip("/"):
        path = ""
    path = path.lstrip("/")
    if is_collection and path and not path.endswith("/"):
        path += "/"
    return path


class WebDAVFileBackend(FileBackend):
    """File backend backed by a WebDAV server."""

    def __init__(
        self,
        connection_info: Mapping[str, Any],
        *,
        client: WebDAVClient | None = None,
    ) -> None:
        """Initialise the backend using WebDAV connection parameters.

        Args:
            connection_info: ``base_url`` (required unless ``client`` is
                given), ``prefix``, ``username``, ``password``, ``timeout``
                and ``verify``.
            client: Pre-built client, mainly for tests.

        """
        if not isinstance(connection_info, Mapping):
            message = "connection_info must be a mapping"
            raise TypeError(message)
        if client is None and not connection_info.get("base_url"):
            message = "Missing 'base_url' in connection_info"
            raise ValueError(message)

        self._connection_info = dict(connection_info)
        self._prefixer = PathPrefixer(str(connection_info.get("prefix", "") or ""))
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def prefixer(self) -> PathPrefixer:
        return self._prefixer

    def _get_client(self) -> WebDAVClient:
        """Return the WebDAV client, created on first use."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    info = self._connection_info
                    timeout = info.get("timeout")
                    self._client = WebDAVClient(
                        str(info["base_url"]),
                        username=info.get("username"),
                        password=info.get("password"),
                        timeout=float(timeout) if timeout is not None else None,
                        verify=info.get("verify", True),
                    )
        return self._client

    def _request(
        self,
        method: str,
        location: str,
        body: bytes | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> requests.Response:
        encoded = encode_path(location)
        response = self._get_client().request(method, encoded, body, headers=headers)
        if response.status_code >= HTTP_ERROR_THRESHOLD:
            raise WebDAVStatusError(method, location, response.status_code)
        return response

    def _stat(self, location: str) -> RawObject | None:
        resources = self._get_client().propfind(encode_path(location), depth=0)
        if not resources:
            return None
        return resources[0]

    def exists(self, path: PathLike) -> bool:
        location = self._prefixer.prefix_path(path)
        try:
            resource = self._stat(location)
        except Exception as exc:
            logger.warning("Existence check failed for %s: %s", location, exc)
            raise ExistenceCheckError.at_location(str(path), str(exc)) from exc
        return resource is not None and resource.content_type != DIRECTORY_MIMETYPE

    def directory_exists(self, path: PathLike) -> bool:
        location = self._prefixer.prefix_directory_path(path)
        try:
            resource = self._stat(location)
        except Exception as exc:
            logger.warning("Directory check failed for %s: %s", location, exc)
            raise ExistenceCheckError.at_location(str(path), str(exc)) from exc
        return resource is not None and resource.content_type == DIRECTORY_MIMETYPE

    def write(
        self,
        path: PathLike,
        contents: bytes | str,
        config: Config | None = None,
    ) -> None:
        """Upload a file, creating its parent collections first."""
        storage_path = normalize_storage_path(path)
        location = self._prefixer.prefix_path(storage_path)
        headers = _request_headers(
            merge_config(WEBDAV_OPERATION_OPTIONS, "put", config),
        )
        try:
            parent = parent_path(storage_path)
            if parent:
                self.create_directory(parent)
            self._request("PUT", location, coerce_to_bytes(contents), headers=headers)
        except Exception as exc:
            logger.warning("Write failed for %s: %s", location, exc)
            raise WriteError.at_location(str(path), str(exc)) from exc

    def write_stream(
        self,
        path: PathLike,
        stream: BinaryIO,
        config: Config | None = None,
    ) -> None:
        try:
            contents = coerce_to_bytes(stream)
        except Exception as exc:
            raise WriteError.at_location(str(path), str(exc)) from exc
        self.write(path, contents, config)

    def read_stream(self, path: PathLike) -> BinaryIO:
        location = self._prefixer.prefix_path(path)
        try:
            response = self._request("GET", location)
        except Exception as exc:
            logger.warning("Read failed for %s: %s", location, exc)
            raise ReadError.at_location(str(path), str(exc)) from exc
        return io.BytesIO(response.content)

    def delete(self, path: PathLike) -> None:
        location = self._prefixer.prefix_path(path)
        try:
            self._request("DELETE", location)
        except Exception as exc:
            logger.warning("Delete failed for %s: %s", location, exc)
            raise DeleteError.at_location(str(path), str(exc)) from exc

    def delete_directory(self, path: PathLike) -> None:
        """Delete a collection; the server removes its members."""
        location = self._prefixer.prefix_directory_path(path)
        try:
            self._request("DELETE", location)
        except Exception as exc:
            logger.warning("Directory delete failed for %s: %s", location, exc)
            raise DeleteError.at_location(str(path), str(exc)) from exc

    def create_directory(
        self,
        path: PathLike,
        config: Config | None = None,
    ) -> None:
        """Create a collection, creating missing ancestors on demand.

        An existing collection is left alone.
        """
        storage_path = normalize_storage_path(path)
        if not storage_path:
            return
        location = self._prefixer.prefix_directory_path(storage_path)
        headers = _request_headers(
            merge_config(WEBDAV_OPERATION_OPTIONS, "mkcol", config),
        )
        try:
            status = self._mkcol(location, headers)
            if status == HTTP_CONFLICT:
                parent = parent_path(storage_path)
                if parent:
                    self.create_directory(parent, config)
                status = self._mkcol(location, headers)
            if status >= HTTP_ERROR_THRESHOLD and status != HTTP_METHOD_NOT_ALLOWED:
                raise WebDAVStatusError("MKCOL", location, status)
        except Exception as exc:
            logger.warning("Directory creation failed for %s: %s", location, exc)
            raise CreateDirectoryError.at_location(str(path), str(exc)) from exc

    def _mkcol(self, location: str, headers: Mapping[str, str] | None) -> int:
        response = self._get_client().request(
            "MKCOL",
            encode_path(location),
            headers=headers,
        )
        return response.status_code

    def copy(
        self,
        source: PathLike,
        destination: PathLike,
        config: Config | None = None,
    ) -> None:
        """Copy a file server side."""
        try:
            self._transfer("COPY", source, destination, config)
        except Exception as exc:
            logger.warning("Copy failed for %s -> %s: %s", source, destination, exc)
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
        """Move a file server side."""
        try:
            self._transfer("MOVE", source, destination, config)
        except Exception as exc:
            logger.warning("Move failed for %s -> %s: %s", source, destination, exc)
            raise MoveError.from_location_to(
                str(source),
                str(destination),
                str(exc),
            ) from exc

    def _transfer(
        self,
        method: str,
        source: PathLike,
        destination: PathLike,
        config: Config | None,
    ) -> None:
        target = normalize_storage_path(destination)
        parent = parent_path(target)
        if parent:
            self.create_directory(parent)
        headers = _request_headers(
            merge_config(WEBDAV_OPERATION_OPTIONS, "copy", config),
        )
        headers["Destination"] = self._get_client().url_for(
            encode_path(self._prefixer.prefix_path(target)),
        )
        headers["Overwrite"] = "T"
        self._request(method, self._prefixer.prefix_path(source), headers=headers)

    def list_contents(
        self,
        path: PathLike = "",
        *,
        recursive: bool = False,
    ) -> Iterator[StorageEntry]:
        """Lazily yield the members of a collection.

        With ``recursive`` every sub-collection is walked as well, one
        ``Depth: 1`` PROPFIND per collection.
        """
        directory = normalize_storage_path(path)
        return emulate_directories(
            self._iter_listing(directory, recursive=recursive),
            directory,
        )

    def _iter_listing(
        self,
        directory: str,
        *,
        recursive: bool,
    ) -> Iterator[StorageEntry]:
        location = self._prefixer.prefix_directory_path(directory)
        try:
            resources = self._get_client().propfind(encode_path(location), depth=1)
        except Exception as exc:
            logger.warning("Listing failed for %s: %s", location, exc)
            raise ListingError.at_location(directory, str(exc)) from exc
        if resources is None:
            raise ListingError.at_location(
                directory,
                "directory not found",
            ) from WebDAVStatusError("PROPFIND", location, HTTP_NOT_FOUND)

        for resource in resources:
            entry = normalize_object(resource, self._prefixer)
            if entry.path == directory:
                continue
            yield entry
            if recursive and entry.is_dir:
                yield from self._iter_listing(entry.path, recursive=True)

    def get_metadata(self, path: PathLike) -> StorageEntry:
        location = self._prefixer.prefix_path(path)
        try:
            resource = self._stat(location)
        except Exception as exc:
            logger.warning("Metadata retrieval failed for %s: %s", location, exc)
            raise MetadataRetrievalError.at_location(str(path), str(exc)) from exc
        if resource is None:
            raise MetadataRetrievalError.at_location(
                str(path),
                "resource not found",
            ) from WebDAVStatusError("PROPFIND", location, HTTP_NOT_FOUND)
        return normalize_object(resource, self._prefixer)


def _request_headers(options: Mapping[str, Any]) -> dict[str, str]:
    """Turn merged write options into HTTP request headers."""
    headers = {
        str(key): str(value)
        for key, value in dict(options.get("headers") or {}).items()
    }
    if options.get("content_type"):
        headers["Content-Type"] = str(options["content_type"])
    return headers
