from .errors import (
    RegistryError,
    ContainerRuntimeError,
    PluginImageNotFoundError,
    PluginBuildError,
    RegistryRequestError,
)
from .naming import PLUGIN_PREFIX, canonical_name, is_plugin_name, is_plugin_container
from .runtime import DockerRuntimeAdapter
from .registry import PluginRegistry
from .plugin_factory import DockerPluginFactory
from .dispatcher import RegistryDispatcher, DispatcherContext
from .client import RegistryClient

__all__ = [
    "RegistryError", "ContainerRuntimeError", "PluginImageNotFoundError",
    "PluginBuildError", "RegistryRequestError",
    "PLUGIN_PREFIX", "canonical_name", "is_plugin_name", "is_plugin_container",
    "DockerRuntimeAdapter", "PluginRegistry", "DockerPluginFactory",
    "RegistryDispatcher", "DispatcherContext", "RegistryClient",
]
