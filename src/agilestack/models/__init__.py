from .plugin import (
    Plugin,
    PluginStatus,
    Responses,
    InstallRequest,
    UninstallRequest,
    OperationResult,
    NewPluginRequest,
    NewPluginResponse,
)

__all__ = [
    "Plugin", "PluginStatus", "Responses",
    "InstallRequest", "UninstallRequest", "OperationResult",
    "NewPluginRequest", "NewPluginResponse",
]
