"""OpenStack Swift object store backed file backend implementation.

Objects live in a single container; directories are emulated with zero-length
marker objects whose content type is ``application/directory`` plus whatever
intermediate paths the stored object names imply.

Example:

    >>> from infomaniak_file_backend import OpenStackFileBackend
    >>> backend = OpenStackFileBackend(
    ...     {
    ...         "container": "backups",
    ...         "prefix": "nightly",
    ...         "auth_url": "https://api.pub1.infomaniak.cloud/identity/v3",
    ...         "application_credential_id": "...",
    ...         "application_credential_secret": "...",
    ...         "region_name": "dc3-a",
    ...     },
    ... )
    >>> backend.write("db/dump.sql", b"...")
    >>> [entry.path for entry in backend.list_contents("db")]
    ['db/dump.sql']

"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, BinaryIO

from swiftclient.client import Connection
from swiftclient.exceptions import ClientException

from .interfaces import (
    DEFAULT_CHUNK_SIZE,
    DIRECTORY_MIMETYPE,
    CreateDirectoryError,
    DeleteError,
    ExistenceCheckError,
    FileBackend,
    ListingError,
    MetadataRetrievalError,
    PathLike,
    ReadError,
    StorageEntry,
    WriteError,
)
from .metadata import RawObject, emulate_directories, normalize_object
from .options import OPENSTACK_OPERATION_OPTIONS, merge_config
from .path_utils import PathPrefixer, normalize_storage_path
from .utils import coerce_to_bytes

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .interfaces import Config

logger = logging.getLogger(__name__)

_OS_OPTION_KEYS = (
    "project_id",
    "project_name",
    "project_domain_id",
    "project_domain_name",
    "user_domain_id",
    "user_domain_name",
    "region_name",
    "endpoint_type",
    "object_storage_url",
)


def connect_swift(connection_info: Mapping[str, Any]) -> Connection:
    """Build a Keystone v3 authenticated swiftclient connection.

    Application credentials take precedence over username/password when both
    are supplied.

    Raises:
        ValueError: If the authentication parameters are incomplete.

    """
    auth_url = connection_info.get("auth_url")
    if not auth_url:
        message = "Missing 'auth_url' in connection_info"
        raise ValueError(message)

    os_options = {
        key: str(connection_info[key])
        for key in _OS_OPTION_KEYS
        if connection_info.get(key)
    }
    common: dict[str, Any] = {
        "authurl": str(auth_url),
        "auth_version": "3",
        "os_options": os_options,
    }
    if connection_info.get("timeout") is not None:
        common["timeout"] = float(connection_info["timeout"])

    credential_id = connection_info.get("application_credential_id")
    if credential_id:
        secret = connection_info.get("application_credential_secret")
        if not secret:
            message = "Missing 'application_credential_secret' in connection_info"
            raise ValueError(message)
        os_options["auth_type"] = "v3applicationcredential"
        os_options["application_credential_id"] = str(credential_id)
        os_options["application_credential_secret"] = str(secret)
        logger.debug("Connecting to %s with application credential", auth_url)
        return Connection(**common)

    username = connection_info.get("username")
    password = connection_info.get("password")
    if not username or not password:
        message = (
            "connection_info requires either application credentials or "
            "'username' and 'password'"
        )
        raise ValueError(message)
    logger.debug("Connecting to %s as %s", auth_url, username)
    return Connection(user=str(username), key=str(password), **common)


class SwiftContainer:
    """Container-bound view over a swiftclient connection."""

    def __init__(
        self,
        connection: Any,
        name: str,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._connection = connection
        self.name = name
        self._chunk_size = chunk_size

    def head_object(self, name: str) -> dict[str, str]:
        """Return the object's headers; a missing object raises ClientException."""
        return self._connection.head_object(self.name, name)

    def object_metadata(self, name: str) -> dict[str, str] | None:
        """Return the object's headers, or None when it does not exist."""
        try:
            return self.head_object(name)
        except ClientException as exc:
            if exc.http_status == 404:
                return None
            raise

    def object_exists(self, name: str) -> bool:
        return self.object_metadata(name) is not None

    def create_object(self, name: str, contents: Any, **options: Any) -> None:
        self._connection.put_object(self.name, name, contents, **options)

    def get_object(self, name: str) -> BinaryIO:
        """Return a readable body for the object."""
        _, body = self._connection.get_object(
            self.name,
            name,
            resp_chunk_size=self._chunk_size,
        )
        return body

    def list_objects(
        self,
        prefix: str,
        *,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """List objects whose name starts with ``prefix``.

        Without a limit every page is fetched.
        """
        if limit is None:
            _, objects = self._connection.get_container(
                self.name,
                prefix=prefix,
                full_listing=True,
            )
        else:
            _, objects = self._connection.get_container(
                self.name,
                prefix=prefix,
                limit=limit,
            )
        return objects

    def delete_object(self, name: str) -> None:
        self._connection.delete_object(self.name, name)


class OpenStackFileBackend(FileBackend):
    """File backend backed by an OpenStack Swift container."""

    def __init__(
        self,
        connection_info: Mapping[str, Any],
        *,
        client: Any | None = None,
    ) -> None:
        """Initialise the backend from Swift connection parameters.

        Args:
            connection_info: ``container`` (required), ``prefix``,
                ``chunk_size`` and the authentication keys understood by
                ``connect_swift``.
            client: Pre-built swiftclient connection. Authentication keys
                are ignored when provided.

        """
        if not isinstance(connection_info, Mapping):
            message = "connection_info must be a mapping"
            raise TypeError(message)
        if not connection_info.get("container"):
            message = "Missing 'container' in connection_info"
            raise ValueError(message)

        self._connection_info = dict(connection_info)
        self._container_name = str(connection_info["container"])
        self._prefixer = PathPrefixer(str(connection_info.get("prefix", "") or ""))
        self._chunk_size = int(connection_info.get("chunk_size", DEFAULT_CHUNK_SIZE))
        self._service = client
        self._container: SwiftContainer | None = None
        self._handle_lock = threading.Lock()

    @property
    def prefixer(self) -> PathPrefixer:
        return self._prefixer

    def _get_service(self) -> Any:
        """Return the swiftclient connection, connecting on first use."""
        if self._service is None:
            with self._handle_lock:
                if self._service is None:
                    self._service = connect_swift(self._connection_info)
        return self._service

    def _get_container(self) -> SwiftContainer:
        """Return the container handle, created once per backend."""
        if self._container is None:
            service = self._get_service()
            with self._handle_lock:
                if self._container is None:
                    self._container = SwiftContainer(
                        service,
                        self._container_name,
                        chunk_size=self._chunk_size,
                    )
        return self._container

    def exists(self, path: PathLike) -> bool:
        location = self._prefixer.prefix_path(path)
        try:
            return self._get_container().object_exists(location)
        except Exception as exc:
            logger.warning("Existence check failed for %s: %s", location, exc)
            raise ExistenceCheckError.at_location(str(path), str(exc)) from exc

    def directory_exists(self, path: PathLike) -> bool:
        """Return True when objects live below ``path`` or a marker exists."""
        location = self._prefixer.prefix_path(path).rstrip("/")
        try:
            container = self._get_container()
            if container.list_objects(f"{location}/" if location else "", limit=1):
                return True
            if not location:
                return True
            headers = container.object_metadata(location)
        except Exception as exc:
            logger.warning("Directory check failed for %s: %s", location, exc)
            raise ExistenceCheckError.at_location(str(path), str(exc)) from exc
        return headers is not None and _content_type(headers) == DIRECTORY_MIMETYPE

    def write(
        self,
        path: PathLike,
        contents: bytes | str,
        config: Config | None = None,
    ) -> None:
        location = self._prefixer.prefix_path(path)
        options = merge_config(OPENSTACK_OPERATION_OPTIONS, "put", config)
        try:
            payload = coerce_to_bytes(contents)
            logger.debug(
                "PUT %s/%s (%d bytes)",
                self._container_name,
                location,
                len(payload),
            )
            self._get_container().create_object(location, payload, **options)
        except Exception as exc:
            logger.warning("Write failed for %s: %s", location, exc)
            raise WriteError.at_location(str(path), str(exc)) from exc

    def write_stream(
        self,
        path: PathLike,
        stream: BinaryIO,
        config: Config | None = None,
    ) -> None:
        location = self._prefixer.prefix_path(path)
        options = merge_config(OPENSTACK_OPERATION_OPTIONS, "put", config)
        options.setdefault("chunk_size", self._chunk_size)
        try:
            logger.debug("PUT %s/%s (streamed)", self._container_name, location)
            self._get_container().create_object(location, stream, **options)
        except Exception as exc:
            logger.warning("Streamed write failed for %s: %s", location, exc)
            raise WriteError.at_location(str(path), str(exc)) from exc

    def read_stream(self, path: PathLike) -> BinaryIO:
        location = self._prefixer.prefix_path(path)
        try:
            logger.debug("GET %s/%s", self._container_name, location)
            return self._get_container().get_object(location)
        except Exception as exc:
            logger.warning("Read failed for %s: %s", location, exc)
            raise ReadError.at_location(str(path), str(exc)) from exc

    def delete(self, path: PathLike) -> None:
        location = self._prefixer.prefix_path(path)
        try:
            logger.debug("DELETE %s/%s", self._container_name, location)
            self._get_container().delete_object(location)
        except Exception as exc:
            logger.warning("Delete failed for %s: %s", location, exc)
            raise DeleteError.at_location(str(path), str(exc)) from exc

    def delete_directory(self, path: PathLike) -> None:
        """Delete the marker and every object below ``path`` one at a time.

        The first failing deletion aborts the loop; objects deleted before it
        stay deleted and later ones are left untouched.
        """
        location = self._prefixer.prefix_path(path).rstrip("/")
        try:
            container = self._get_container()
            objects = container.list_objects(location)
        except Exception as exc:
            logger.warning("Listing for deletion failed for %s: %s", location, exc)
            raise DeleteError.at_location(str(path), str(exc)) from exc

        for item in objects:
            name = item["name"]
            if location and name != location and not name.startswith(f"{location}/"):
                continue
            try:
                logger.debug("DELETE %s/%s", self._container_name, name)
                container.delete_object(name)
            except Exception as exc:
                logger.warning("Delete failed for %s: %s", name, exc)
                reason = f"{self._prefixer.strip_prefix(name)}: {exc}"
                raise DeleteError.at_location(str(path), reason) from exc

    def create_directory(
        self,
        path: PathLike,
        config: Config | None = None,
    ) -> None:
        """Create a zero-length ``application/directory`` marker object."""
        location = self._prefixer.prefix_path(path).rstrip("/")
        options = merge_config(OPENSTACK_OPERATION_OPTIONS, "post", config)
        headers = {
            key: value
            for key, value in dict(options.pop("headers", {}) or {}).items()
            if key.lower() != "content-type"
        }
        if headers:
            options["headers"] = headers
        try:
            logger.debug("PUT %s/%s (directory marker)", self._container_name, location)
            self._get_container().create_object(
                location,
                b"",
                content_type=DIRECTORY_MIMETYPE,
                **options,
            )
        except Exception as exc:
            logger.warning("Directory creation failed for %s: %s", location, exc)
            raise CreateDirectoryError.at_location(str(path), str(exc)) from exc

    def list_contents(
        self,
        path: PathLike = "",
        *,
        recursive: bool = False,
    ) -> Iterator[StorageEntry]:
        """Lazily yield every entry below ``path``.

        Swift listings are prefix based, so nested entries are always
        included whatever ``recursive`` says.
        """
        directory = normalize_storage_path(path)
        location = self._prefixer.prefix_directory_path(directory)
        return emulate_directories(self._iter_listing(str(path), location), directory)

    def _iter_listing(self, path: str, location: str) -> Iterator[StorageEntry]:
        try:
            logger.debug("LIST %s prefix=%r", self._container_name, location)
            objects = self._get_container().list_objects(location)
        except Exception as exc:
            logger.warning("Listing failed for %s: %s", location, exc)
            raise ListingError.at_location(path, str(exc)) from exc
        for item in objects:
            yield normalize_object(_listing_to_raw(item), self._prefixer)

    def get_metadata(self, path: PathLike) -> StorageEntry:
        location = self._prefixer.prefix_path(path)
        try:
            headers = self._get_container().head_object(location)
        except ClientException as exc:
            if exc.http_status == 404:
                raise MetadataRetrievalError.at_location(
                    str(path),
                    "object not found",
                ) from exc
            logger.warning("Metadata retrieval failed for %s: %s", location, exc)
            raise MetadataRetrievalError.at_location(str(path), str(exc)) from exc
        except Exception as exc:
            logger.warning("Metadata retrieval failed for %s: %s", location, exc)
            raise MetadataRetrievalError.at_location(str(path), str(exc)) from exc
        return normalize_object(_headers_to_raw(location, headers), self._prefixer)


def _content_type(headers: Mapping[str, Any]) -> str | None:
    return headers.get("content-type")


def _listing_to_raw(item: Mapping[str, Any]) -> RawObject:
    """Convert a container listing record into a RawObject."""
    return RawObject(
        name=item["name"],
        content_type=item.get("content_type"),
        content_length=item.get("bytes"),
        last_modified=item.get("last_modified"),
    )


def _headers_to_raw(name: str, headers: Mapping[str, Any]) -> RawObject:
    """Convert HEAD response headers into a RawObject."""
    return RawObject(
        name=name,
        content_type=_content_type(headers),
        content_length=headers.get("content-length"),
        last_modified=headers.get("last-modified"),
    )
