"""Exceptions raised by the plugin registry."""


class RegistryError(Exception):
    """Base class for plugin registry errors."""


class ContainerRuntimeError(RegistryError):
    """The container runtime rejected or failed an operation."""


class PluginImageNotFoundError(ContainerRuntimeError):
    """No image in the runtime's image store resolves to the plugin name."""

    def __init__(self, plugin_name: str):
        super().__init__(f"No Docker image found for plugin \"{plugin_name}\"")
        self.plugin_name = plugin_name


class PluginBuildError(RegistryError):
    """Building a plugin image failed."""


class RegistryRequestError(RegistryError):
    """A registry request was answered with an ERROR reply."""

    def __init__(self, subject: str, details: str):
        super().__init__(details or f"Request on {subject} failed")
        self.subject = subject
        self.details = details
