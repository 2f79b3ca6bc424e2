"""Backend factory for URI-based backend resolution and instantiation.

This module provides a factory pattern for creating FileBackend instances
from URI strings. It supports multiple URI schemes and allows registration
of custom backend factories.

Supported URI Schemes:
    - swift://container/prefix - OpenStackFileBackend on a Swift container
    - webdav+https://host/base/path - WebDAVFileBackend over HTTPS
    - webdav+http://host/base/path - WebDAVFileBackend over plain HTTP

Example:
    >>> from infomaniak_file_backend.factory import resolve_backend
    >>> backend = resolve_backend(
    ...     "swift://backups/nightly"
    ...     "?auth_url=https://api.pub1.infomaniak.cloud/identity/v3"
    ...     "&application_credential_id=abc&application_credential_secret=xyz"
    ...     "&region_name=dc3-a",
    ... )
    >>> backend = resolve_backend(
    ...     "webdav+https://connect.drive.infomaniak.com/?username=me&password=pw",
    ... )

"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import parse_qs, urlparse

if TYPE_CHECKING:
    from .interfaces import FileBackend

_SWIFT_PARAMS = (
    "auth_url",
    "username",
    "password",
    "application_credential_id",
    "application_credential_secret",
    "project_id",
    "project_name",
    "project_domain_id",
    "project_domain_name",
    "user_domain_id",
    "user_domain_name",
    "region_name",
    "endpoint_type",
    "object_storage_url",
    "timeout",
    "chunk_size",
)

_WEBDAV_PARAMS = ("username", "password", "prefix", "timeout")


class BackendFactory:
    """Factory for creating backends from URI strings."""

    def __init__(self) -> None:
        """Initialize the factory with built-in URI scheme handlers."""
        self._factories: dict[str, Callable[[str, dict[str, Any]], Any]] = {
            "swift": self._create_swift_backend,
            "webdav+https": self._create_webdav_https_backend,
            "webdav+http": self._create_webdav_http_backend,
        }

    def parse_uri(self, uri: str) -> tuple[str, str, dict[str, str]]:
        """Parse a URI into scheme, path, and query parameters.

        Args:
            uri: URI string to parse

        Returns:
            Tuple of (scheme, path, params) where path is the network location
            joined with the URI path and params holds the first value of each
            query parameter.

        Raises:
            ValueError: If URI format is invalid

        """
        parsed = urlparse(uri)

        if not parsed.scheme:
            msg = f"Invalid URI: missing scheme in '{uri}'"
            raise ValueError(msg)

        path = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path

        if not path:
            msg = f"Invalid URI: missing path in '{uri}'"
            raise ValueError(msg)

        params: dict[str, str] = {}
        if parsed.query:
            parsed_params = parse_qs(parsed.query)
            params = {k: v[0] for k, v in parsed_params.items()}

        return parsed.scheme, path, params

    def resolve(self, uri: str) -> FileBackend:
        """Create a backend instance from a URI string.

        Raises:
            ValueError: If URI scheme is unsupported or incomplete

        """
        scheme, path, params = self.parse_uri(uri)

        if scheme not in self._factories:
            supported = ", ".join(sorted(self._factories.keys()))
            msg = (
                f"Unsupported URI scheme: '{scheme}'. "
                f"Supported schemes: {supported}"
            )
            raise ValueError(msg)

        factory_func = self._factories[scheme]
        return factory_func(path, params)

    def register(
        self,
        scheme: str,
        factory_func: Callable[[str, dict[str, Any]], Any],
    ) -> None:
        """Register a custom backend factory for a URI scheme.

        Args:
            scheme: URI scheme to register (e.g., "s3", "sftp")
            factory_func: Callable that takes (path, params) and returns a FileBackend

        """
        if not callable(factory_func):
            msg = "factory_func must be callable"
            raise TypeError(msg)
        self._factories[scheme] = factory_func

    def _create_swift_backend(
        self,
        path: str,
        params: dict[str, Any],
    ) -> FileBackend:
        """Create an OpenStackFileBackend from URI components.

        URI format: swift://container/optional/prefix?auth_url=...&region_name=...

        Args:
            path: Container name optionally followed by the path prefix
            params: Authentication and tuning parameters

        """
        from .openstack import OpenStackFileBackend

        container, _, prefix = path.strip("/").partition("/")
        if not container:
            msg = f"Invalid Swift URI path: '{path}' (missing container)"
            raise ValueError(msg)

        connection_info: dict[str, Any] = {"container": container, "prefix": prefix}
        for key in _SWIFT_PARAMS:
            if key in params:
                connection_info[key] = params[key]

        return OpenStackFileBackend(connection_info)

    def _create_webdav_https_backend(
        self,
        path: str,
        params: dict[str, Any],
    ) -> FileBackend:
        """Create a WebDAVFileBackend from a webdav+https URI."""
        return self._create_webdav_backend("https", path, params)

    def _create_webdav_http_backend(
        self,
        path: str,
        params: dict[str, Any],
    ) -> FileBackend:
        """Create a WebDAVFileBackend from a webdav+http URI."""
        return self._create_webdav_backend("http", path, params)

    def _create_webdav_backend(
        self,
        protocol: str,
        path: str,
        params: dict[str, Any],
    ) -> FileBackend:
        """Create a WebDAVFileBackend from URI components.

        URI format: webdav+https://host/base/path?username=u&password=p&prefix=dir&verify=false

        """
        from .webdav import WebDAVFileBackend

        connection_info: dict[str, Any] = {"base_url": f"{protocol}://{path}"}
        for key in _WEBDAV_PARAMS:
            if key in params:
                connection_info[key] = params[key]
        if "verify" in params:
            connection_info["verify"] = params["verify"].lower() != "false"

        return WebDAVFileBackend(connection_info)


# Global default factory instance
_default_factory = BackendFactory()


def resolve_backend(uri: str) -> FileBackend:
    """Resolve a backend from a URI using the default factory.

    Raises:
        ValueError: If URI scheme is unsupported

    """
    return _default_factory.resolve(uri)


def register_backend_factory(
    scheme: str,
    factory_func: Callable[[str, dict[str, Any]], Any],
) -> None:
    """Register a custom backend factory for a URI scheme on the default factory.

    Example:
        >>> def my_sftp_factory(path: str, params: dict) -> FileBackend:
        ...     return SFTPBackend(host=path, **params)
        >>> register_backend_factory("sftp", my_sftp_factory)

    """
    _default_factory.register(scheme, factory_func)
