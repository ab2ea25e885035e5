"""
Conversion between the registry's Pydantic models and Protocol Buffer messages.

The dispatcher decodes inbound NATS payloads into protobuf messages, converts
them to Pydantic models for the registry, and converts the results back.
"""

from typing import Iterable, List

from . import plugins_pb2 as pb
from ..models.plugin import (
    Plugin, PluginStatus, Responses,
    InstallRequest, UninstallRequest, OperationResult,
    NewPluginRequest, NewPluginResponse,
)

_STATUS_TO_PB = {
    PluginStatus.OK: pb.OK,
    PluginStatus.UNKNOWN: pb.UNKNOWN,
}
_STATUS_FROM_PB = {v: k for k, v in _STATUS_TO_PB.items()}

_RESPONSE_TO_PB = {
    Responses.ACK: pb.ACK,
    Responses.ERROR: pb.ERROR,
}
_RESPONSE_FROM_PB = {v: k for k, v in _RESPONSE_TO_PB.items()}


class ProtobufConverter:
    """Utility class for converting between Pydantic models and Protocol Buffer messages."""

    @staticmethod
    def plugin_to_pb(plugin: Plugin) -> "pb.Plugin":
        """Convert Pydantic Plugin to Protocol Buffer message."""
        return pb.Plugin(name=plugin.name, plugin_status=_STATUS_TO_PB[plugin.status])

    @staticmethod
    def plugin_from_pb(pb_plugin: "pb.Plugin") -> Plugin:
        """Convert Protocol Buffer Plugin to Pydantic model."""
        return Plugin(
            name=pb_plugin.name,
            status=_STATUS_FROM_PB.get(pb_plugin.plugin_status, PluginStatus.UNKNOWN),
        )

    @staticmethod
    def plugins_to_pb(plugins: Iterable[Plugin]) -> "pb.Plugins":
        """Convert a list of plugins to a Plugins message."""
        pb_plugins = pb.Plugins()
        for plugin in plugins:
            pb_plugins.plugins.append(ProtobufConverter.plugin_to_pb(plugin))
        return pb_plugins

    @staticmethod
    def plugins_from_pb(pb_plugins: "pb.Plugins") -> List[Plugin]:
        return [ProtobufConverter.plugin_from_pb(p) for p in pb_plugins.plugins]

    @staticmethod
    def install_request_to_pb(request: InstallRequest) -> "pb.InstallPluginRequest":
        pb_request = pb.InstallPluginRequest()
        pb_request.plugin.name = request.name
        pb_request.cmd = request.cmd or ""
        return pb_request

    @staticmethod
    def install_request_from_pb(pb_request: "pb.InstallPluginRequest") -> InstallRequest:
        """Convert Protocol Buffer InstallPluginRequest to Pydantic model.

        Raises:
            pydantic.ValidationError: If the request carries no plugin name
        """
        return InstallRequest(name=pb_request.plugin.name, cmd=pb_request.cmd or None)

    @staticmethod
    def uninstall_request_to_pb(request: UninstallRequest) -> "pb.Plugin":
        # The uninstall topic carries a bare Plugin message.
        return pb.Plugin(name=request.name)

    @staticmethod
    def uninstall_request_from_pb(pb_plugin: "pb.Plugin") -> UninstallRequest:
        return UninstallRequest(name=pb_plugin.name)

    @staticmethod
    def operation_result_to_pb(result: OperationResult) -> "pb.NetResponse":
        """Convert Pydantic OperationResult to a NetResponse message."""
        return pb.NetResponse(
            response=_RESPONSE_TO_PB[result.response],
            details=result.details,
        )

    @staticmethod
    def operation_result_from_pb(pb_response: "pb.NetResponse") -> OperationResult:
        return OperationResult(
            response=_RESPONSE_FROM_PB.get(pb_response.response, Responses.ERROR),
            details=pb_response.details,
        )

    @staticmethod
    def new_plugin_request_to_pb(request: NewPluginRequest) -> "pb.NewPluginRequest":
        return pb.NewPluginRequest(
            name=request.name,
            url=request.url,
            directory=request.directory,
        )

    @staticmethod
    def new_plugin_request_from_pb(pb_request: "pb.NewPluginRequest") -> NewPluginRequest:
        return NewPluginRequest(
            name=pb_request.name,
            url=pb_request.url,
            directory=pb_request.directory,
        )

    @staticmethod
    def new_plugin_response_to_pb(response: NewPluginResponse) -> "pb.NewPluginResponse":
        return pb.NewPluginResponse(status=response.status)

    @staticmethod
    def new_plugin_response_from_pb(pb_response: "pb.NewPluginResponse") -> NewPluginResponse:
        return NewPluginResponse(status=pb_response.status)
