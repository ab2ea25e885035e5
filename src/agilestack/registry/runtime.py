"""
Docker runtime adapter for the plugin registry.

Reads images and containers from the Docker daemon and turns them into
Plugin records, and creates, starts, stops and removes plugin containers.

The adapter talks to the low-level Docker API (``client.api``) because the
list endpoints return everything the naming convention needs (``Names``,
``Image``, ``RepoTags``, ``Status``) without one inspect call per object.
Docker calls block, so each one runs in a worker thread; only the calling
task waits for it.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import docker
from docker.errors import DockerException, NotFound

from .errors import ContainerRuntimeError, PluginImageNotFoundError
from .naming import (
    PLUGIN_PREFIX,
    container_plugin_name,
    image_plugin_name,
    image_reference,
    is_plugin_container,
    is_plugin_image,
)
from ..models.plugin import Plugin, PluginStatus

DEFAULT_NETWORK = "agilestacknet"
DEFAULT_SHARED_VOLUME = "agilestack-shared:/shared"
DEFAULT_STOP_TIMEOUT = 10

ContainerRecord = Dict[str, Any]
ImageRecord = Dict[str, Any]


def unique_plugins(plugins: Iterable[Plugin]) -> List[Plugin]:
    """Drop repeated plugin names, keeping the first occurrence."""
    seen = set()
    result = []
    for plugin in plugins:
        if plugin.name in seen:
            continue
        seen.add(plugin.name)
        result.append(plugin)
    return result


class DockerRuntimeAdapter:
    """Plugin storage backed by the local Docker daemon."""

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        plugin_prefix: str = PLUGIN_PREFIX,
        network: str = DEFAULT_NETWORK,
        shared_volume: str = DEFAULT_SHARED_VOLUME,
        stop_timeout: int = DEFAULT_STOP_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the adapter.

        Args:
            client: Docker client; ``docker.from_env()`` when omitted
            plugin_prefix: Name prefix reserved for plugins
            network: Docker network plugin containers are attached to
            shared_volume: Volume bind shared by all plugins ("volume:/path")
            stop_timeout: Seconds a running container gets to stop before it is killed
            logger: Logger instance for structured logging
        """
        self.logger = logger or logging.getLogger(__name__)
        self.client = client or docker.from_env()
        self.api = self.client.api
        self.plugin_prefix = plugin_prefix
        self.network = network
        self.shared_volume = shared_volume
        self.stop_timeout = stop_timeout

    @classmethod
    def from_settings(cls, settings, client=None, logger=None) -> "DockerRuntimeAdapter":
        return cls(
            client=client,
            plugin_prefix=settings.plugin_prefix,
            network=settings.plugin_network,
            shared_volume=settings.shared_volume,
            stop_timeout=settings.stop_timeout,
            logger=logger,
        )

    async def _call(self, operation: str, fn: Callable, *args, missing_ok: bool = False, **kwargs):
        """Run a blocking Docker call in a worker thread.

        Raises:
            ContainerRuntimeError: If Docker fails, except NotFound when
                ``missing_ok`` is set (None is returned instead)
        """
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except NotFound as e:
            if missing_ok:
                self.logger.info(
                    "Docker object already gone",
                    extra={"operation": operation, "error": str(e)}
                )
                return None
            raise ContainerRuntimeError(f"{operation} failed: {e}") from e
        except (DockerException, OSError) as e:
            self.logger.error(
                "Docker call failed",
                extra={"operation": operation, "error": str(e)}
            )
            raise ContainerRuntimeError(f"{operation} failed: {e}") from e

    async def ping(self) -> bool:
        """Check that the Docker daemon answers."""
        return bool(await self._call("ping", self.api.ping))

    # ------------------------------------------------------------------ listing

    async def list_running_containers(self) -> List[ContainerRecord]:
        return await self._call("list containers", self.api.containers, all=False)

    async def list_all_containers(self) -> List[ContainerRecord]:
        """All containers, stopped ones included."""
        return await self._call("list containers", self.api.containers, all=True)

    async def list_top_level_images(self) -> List[ImageRecord]:
        """Top-level, non-dangling images."""
        return await self._call(
            "list images", self.api.images, all=False, filters={"dangling": False}
        )

    def transform_containers(self, containers: Iterable[ContainerRecord]) -> List[Plugin]:
        """Plugins for the containers that are plugins.

        The container is classified by its names, the plugin name comes from
        the image the container was created from, or from the container
        name when Docker only reports an image ID.
        """
        plugins = []
        for container in containers:
            if not is_plugin_container(container, self.plugin_prefix):
                continue
            plugin_name = container_plugin_name(container, self.plugin_prefix)
            for port in container.get("Ports") or []:
                self.logger.debug(
                    "Plugin port",
                    extra={
                        "plugin": plugin_name,
                        "private_port": port.get("PrivatePort"),
                        "public_port": port.get("PublicPort"),
                    }
                )
            plugins.append(Plugin(name=plugin_name, status=PluginStatus.OK))
        return plugins

    async def list_installable_plugins(self) -> List[Plugin]:
        """Plugin images that no running container was created from.

        Keeps the order of the image listing.
        """
        containers = await self.list_running_containers()
        images = await self.list_top_level_images()

        running = {plugin.name for plugin in self.transform_containers(containers)}
        plugins = []
        for image in images:
            if not is_plugin_image(image, self.plugin_prefix):
                continue
            plugin_name = image_plugin_name(image)
            if plugin_name not in running:
                plugins.append(Plugin(name=plugin_name))
        return unique_plugins(plugins)

    async def list_installed_plugins(self) -> List[Plugin]:
        containers = await self.list_running_containers()
        return unique_plugins(self.transform_containers(containers))

    async def is_plugin_installed(self, name: str) -> bool:
        """Whether a container exists for the plugin.

        Stopped containers count: a stopped plugin container still holds
        the plugin's name and has to be removed before re-installing.
        """
        containers = await self.list_all_containers()
        return any(plugin.name == name for plugin in self.transform_containers(containers))

    async def find_plugin_image(self, name: str) -> Optional[ImageRecord]:
        """First image whose canonical name is ``name``."""
        for image in await self.list_top_level_images():
            if image_plugin_name(image) == name:
                return image
        return None

    # ---------------------------------------------------------------- lifecycle

    async def install_plugin(self, name: str, cmd: Optional[str] = None) -> str:
        """Create and start the plugin's container.

        Returns:
            ID of the started container

        Raises:
            PluginImageNotFoundError: If no image resolves to ``name``
            ContainerRuntimeError: If Docker rejects the creation or start
        """
        image = await self.find_plugin_image(name)
        if image is None:
            raise PluginImageNotFoundError(name)
        reference = image_reference(image)

        self.logger.info(
            "Creating container for plugin",
            extra={"plugin": name, "image": reference, "cmd": cmd}
        )

        host_config = self.api.create_host_config(
            publish_all_ports=True,
            binds=[self.shared_volume],
            network_mode=self.network,
        )
        container = await self._call(
            "create container",
            self.api.create_container,
            image=reference,
            command=cmd or None,
            name=name,
            host_config=host_config,
        )
        container_id = container["Id"]
        self.logger.info("Container created", extra={"plugin": name, "container_id": container_id})

        await self._call("start container", self.api.start, container_id)
        self.logger.info("Container started", extra={"plugin": name, "container_id": container_id})
        return container_id

    async def uninstall_plugin(self, name: str) -> int:
        """Stop and remove every container named ``name``, running or not.

        Returns:
            Number of containers removed; 0 when the plugin was not installed
        """
        removed = 0
        for container in await self.list_all_containers():
            names = container.get("Names") or []
            if name not in names and f"/{name}" not in names:
                continue

            container_id = container["Id"]
            status = container.get("Status", "")
            self.logger.info(
                "Removing plugin container",
                extra={"plugin": name, "container_id": container_id, "status": status}
            )
            if status.startswith("Up"):
                await self._call(
                    "stop container",
                    self.api.stop,
                    container_id,
                    timeout=self.stop_timeout,
                    missing_ok=True,
                )
            await self._call(
                "remove container",
                self.api.remove_container,
                container_id,
                missing_ok=True,
            )
            removed += 1
            self.logger.info("Container removed", extra={"plugin": name, "container_id": container_id})
        return removed
