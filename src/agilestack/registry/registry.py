"""
Plugin registry.

The registry holds no state of its own: Docker is the only source of
truth, every call re-reads it through the runtime adapter. A plugin moves
between two states:

    AVAILABLE (image present, no running container)
        --install-->   INSTALLED (running container)
        --uninstall--> AVAILABLE
"""

import logging
from typing import Iterable, List, Optional

from .errors import RegistryError
from .runtime import DockerRuntimeAdapter
from ..models.plugin import InstallRequest, OperationResult, Plugin, UninstallRequest


class PluginRegistry:
    """Lists, installs and uninstalls plugins."""

    def __init__(self, storage: DockerRuntimeAdapter, logger: Optional[logging.Logger] = None):
        """
        Args:
            storage: Adapter to the runtime where plugins are installed
            logger: Logger instance for structured logging
        """
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    async def list_available_plugins(self) -> List[Plugin]:
        """Downloaded plugins that are not running."""
        self.logger.info("Listing available plugins")
        return await self.storage.list_installable_plugins()

    async def list_installed_plugins(self) -> List[Plugin]:
        """Currently running plugins."""
        self.logger.info("Listing installed plugins")
        return await self.storage.list_installed_plugins()

    async def install_plugin(self, request: InstallRequest) -> OperationResult:
        """Install the given plugin, replacing it if it is already installed.

        There is no rollback: if the install fails after the previous
        container was removed, the plugin is left uninstalled.

        Raises:
            ContainerRuntimeError: If Docker fails
        """
        name = request.name
        self.logger.info("Installing plugin", extra={"plugin": name, "cmd": request.cmd})

        if await self.storage.is_plugin_installed(name):
            self.logger.info(
                "Plugin is already installed, it will be uninstalled before installation",
                extra={"plugin": name}
            )
            await self.uninstall_plugin(UninstallRequest(name=name))

        try:
            await self.storage.install_plugin(name, request.cmd)
        except RegistryError as e:
            self.logger.error("Error while installing the plugin", extra={"plugin": name, "error": str(e)})
            raise

        self.logger.info("Plugin installed", extra={"plugin": name})
        return OperationResult.ack()

    async def uninstall_plugin(self, request: UninstallRequest) -> OperationResult:
        """Stop and remove the plugin's containers. Uninstalling an absent plugin is not an error.

        Raises:
            ContainerRuntimeError: If Docker fails
        """
        name = request.name
        self.logger.info("Uninstalling plugin", extra={"plugin": name})

        try:
            removed = await self.storage.uninstall_plugin(name)
        except RegistryError as e:
            self.logger.error("Error while uninstalling the plugin", extra={"plugin": name, "error": str(e)})
            raise

        self.logger.info("Plugin uninstalled", extra={"plugin": name, "containers_removed": removed})
        return OperationResult.ack()

    async def stop_plugins(self, protected: Iterable[str] = ()) -> List[str]:
        """Uninstall every installed plugin except the protected ones.

        Best effort: a plugin that fails to uninstall is logged and skipped.

        Returns:
            Names of the plugins that were uninstalled
        """
        protected = set(protected)
        stopped = []
        for plugin in await self.list_installed_plugins():
            if plugin.name in protected:
                self.logger.info("[Shutdown] keeping protected plugin", extra={"plugin": plugin.name})
                continue
            self.logger.info("[Shutdown] stopping plugin", extra={"plugin": plugin.name})
            try:
                await self.uninstall_plugin(UninstallRequest(name=plugin.name))
            except RegistryError as e:
                self.logger.warning(
                    "[Shutdown] failed to stop plugin",
                    extra={"plugin": plugin.name, "error": str(e)}
                )
                continue
            stopped.append(plugin.name)
        return stopped
