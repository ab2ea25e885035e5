"""
Naming convention for AgileStack plugins.

A plugin is a Docker image (or a container created from one) whose name,
without registry host, owner and tag, starts with the plugin prefix.

Examples:
    docker-registry.eogile.com/eogile/agilestack-proxy:latest -> agilestack-proxy
    agilestack-proxy:latest -> agilestack-proxy

Containers are classified by their *names* while images are classified by
their *reference*. The two signals can disagree: a container named
``agilestack-x`` running a non-plugin image still counts as a plugin.
"""

from typing import Any, Mapping

PLUGIN_PREFIX = "agilestack-"


def canonical_name(identifier: str) -> str:
    """Plugin name of an image reference or container name.

    Strips a leading ``/``, the registry host and owner (everything up to
    the last ``/``) and the tag (everything from the last ``:``).
    """
    name = identifier[1:] if identifier.startswith("/") else identifier
    name = name.rsplit("/", 1)[-1]
    if ":" in name:
        name = name.rsplit(":", 1)[0]
    return name


def is_plugin_name(name: str, prefix: str = PLUGIN_PREFIX) -> bool:
    return name.startswith(prefix)


def is_plugin_container(container: Mapping[str, Any], prefix: str = PLUGIN_PREFIX) -> bool:
    """Whether one of the container's names carries the plugin prefix.

    Args:
        container: Container record as returned by the Docker list API
            (``Names`` holds names such as ``/agilestack-proxy``)
    """
    for container_name in container.get("Names") or []:
        if container_name.startswith("/"):
            container_name = container_name[1:]
        if is_plugin_name(container_name, prefix):
            return True
    return False


def image_reference(image: Mapping[str, Any]) -> str:
    """First repository tag of an image record, "" for untagged images.

    When an image is referenced by several repositories the first one is
    used to deduce the plugin name.
    """
    tags = image.get("RepoTags") or []
    return tags[0] if tags else ""


def image_plugin_name(image: Mapping[str, Any]) -> str:
    return canonical_name(image_reference(image))


def is_plugin_image(image: Mapping[str, Any], prefix: str = PLUGIN_PREFIX) -> bool:
    return is_plugin_name(image_plugin_name(image), prefix)


def container_plugin_name(container: Mapping[str, Any], prefix: str = PLUGIN_PREFIX) -> str:
    """Plugin name of a container record.

    Taken from the image the container was created from. Docker reports an
    image ID (``sha256:...``) instead of a reference once the tag has moved
    or been removed; the container's own plugin name is used then.
    """
    image = container.get("Image") or ""
    if image and not image.startswith("sha256:"):
        return canonical_name(image)
    for container_name in container.get("Names") or []:
        name = canonical_name(container_name)
        if is_plugin_name(name, prefix):
            return name
    return canonical_name(image)
