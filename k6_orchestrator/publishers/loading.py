"""Lookup of event publishers registered as package entry points."""

from importlib.metadata import entry_points
from typing import Any

from k6_orchestrator.publishers.manifest import PublisherManifest

ENTRY_POINT_GROUP = "k6_orchestrator.publishers"


class PublisherNotFoundError(Exception):
    """Raised when no usable publisher is registered under a key."""


def available_publishers() -> list[str]:
    """Keys of every installed publisher, sorted."""
    return sorted(entry_points(group=ENTRY_POINT_GROUP).names)


def load_publisher_manifest(key: str) -> PublisherManifest[Any]:
    """Load the manifest of the publisher registered as ``key``.

    Third-party packages add publishers by declaring an entry point in
    the ``k6_orchestrator.publishers`` group.

    Raises:
        PublisherNotFoundError: If the key is unknown or does not point
            at a ``PublisherManifest``

    """
    matches = entry_points(group=ENTRY_POINT_GROUP, name=key)
    if not matches:
        raise PublisherNotFoundError(
            f"Publisher '{key}' not found. "
            f"Available publishers: {available_publishers()}"
        )

    entry = next(iter(matches))
    manifest = entry.load()
    if not isinstance(manifest, PublisherManifest):
        raise PublisherNotFoundError(
            f"Entry point '{key}' ({entry.value}) is not a publisher manifest"
        )
    return manifest
