"""Per-operation option filtering for backend calls.

Different backend calls accept different option sets: an object upload takes
a content type and extra headers, while a directory marker only takes headers
because its content type is fixed. ``merge_config`` builds the keyword
payload for one call from a caller ``Config``, dropping every key the call
does not accept so the backend never receives an unsupported field.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .interfaces import Config

CapabilityTable = Mapping[str, frozenset]

# Keyword arguments of swiftclient.client.Connection.put_object, minus the
# positional container/object/contents and response_dict.
OPENSTACK_OPERATION_OPTIONS: CapabilityTable = {
    "put": frozenset(
        {
            "content_type",
            "content_length",
            "etag",
            "chunk_size",
            "headers",
            "query_string",
        },
    ),
    "post": frozenset({"headers", "query_string"}),
}

WEBDAV_OPERATION_OPTIONS: CapabilityTable = {
    "put": frozenset({"content_type", "headers"}),
    "mkcol": frozenset({"headers"}),
    "copy": frozenset({"headers"}),
}

OPTION_ALIASES: Mapping[str, tuple[str, ...]] = {
    "content_type": ("mimetype",),
}


def capabilities_for(capabilities: CapabilityTable, operation: str) -> frozenset:
    """Return the option keys accepted by ``operation``.

    Raises:
        ValueError: If the operation is not described by the table.

    """
    try:
        return capabilities[operation]
    except KeyError as exc:
        supported = ", ".join(sorted(capabilities))
        message = (
            f"Unknown backend operation: '{operation}'. "
            f"Supported operations: {supported}"
        )
        raise ValueError(message) from exc


def merge_config(
    capabilities: CapabilityTable,
    operation: str,
    config: Config | Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Return the subset of ``config`` accepted by ``operation``.

    Only truthy values are copied. Aliases (``mimetype`` for
    ``content_type``) are consulted when the canonical key is unset.

    Example:

        >>> merge_config(
        ...     OPENSTACK_OPERATION_OPTIONS,
        ...     "post",
        ...     {"headers": {"X-Object-Meta-Owner": "ops"}, "content_type": "x"},
        ... )
        {'headers': {'X-Object-Meta-Owner': 'ops'}}

    """
    accepted = capabilities_for(capabilities, operation)
    if not config:
        return {}

    payload: dict[str, Any] = {}
    for key in sorted(accepted):
        value = config.get(key)
        if not value:
            for alias in OPTION_ALIASES.get(key, ()):
                value = config.get(alias)
                if value:
                    break
        if value:
            payload[key] = value
    return payload
