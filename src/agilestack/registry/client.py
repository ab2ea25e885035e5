"""
Request/reply client for the plugin registry.

Used by the command line and by other platform services to drive the
registry over NATS::

    async with NATSClient("nats://localhost:4222") as nats_client:
        client = RegistryClient(nats_client)
        await client.install("agilestack-proxy")
"""

import logging
from typing import List, Optional

from .errors import RegistryRequestError
from ..common.nats_client import NATSClient
from ..models.plugin import (
    InstallRequest, NewPluginRequest, OperationResult, Plugin, UninstallRequest,
)
from ..proto import plugins_pb2 as pb
from ..proto.topics import DEFAULT_TOPICS, ERROR_HEADER, Topics
from ..proto.wrappers import ProtobufConverter

DEFAULT_TIMEOUT = 5.0
LIFECYCLE_TIMEOUT = 10.0


class RegistryClient:
    """Typed client for the registry subjects."""

    def __init__(
        self,
        nats_client: NATSClient,
        topics: Topics = DEFAULT_TOPICS,
        timeout: float = DEFAULT_TIMEOUT,
        lifecycle_timeout: float = LIFECYCLE_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        self.nats_client = nats_client
        self.topics = topics
        self.timeout = timeout
        self.lifecycle_timeout = lifecycle_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.converter = ProtobufConverter()

    async def _list(self, subject: str) -> List[Plugin]:
        msg = await self.nats_client.request(subject, pb.Empty().SerializeToString(), self.timeout)
        if (msg.headers or {}).get(ERROR_HEADER) == "true":
            result = self.converter.operation_result_from_pb(pb.NetResponse.FromString(msg.data))
            raise RegistryRequestError(subject, result.details)
        return self.converter.plugins_from_pb(pb.Plugins.FromString(msg.data))

    async def list_available(self) -> List[Plugin]:
        return await self._list(self.topics.list_available)

    async def list_installed(self) -> List[Plugin]:
        return await self._list(self.topics.list_installed)

    def _check(self, subject: str, pb_response: "pb.NetResponse") -> OperationResult:
        result = self.converter.operation_result_from_pb(pb_response)
        if not result.ok:
            raise RegistryRequestError(subject, result.details)
        return result

    async def install(self, name: str, cmd: Optional[str] = None) -> OperationResult:
        """Install (or re-install) a plugin.

        Raises:
            RegistryRequestError: If the registry answers with an ERROR reply
        """
        request = self.converter.install_request_to_pb(InstallRequest(name=name, cmd=cmd))
        response = await self.nats_client.request_message(
            self.topics.install, request, pb.NetResponse, self.lifecycle_timeout
        )
        return self._check(self.topics.install, response)

    async def uninstall(self, name: str) -> OperationResult:
        request = self.converter.uninstall_request_to_pb(UninstallRequest(name=name))
        response = await self.nats_client.request_message(
            self.topics.uninstall, request, pb.NetResponse, self.lifecycle_timeout
        )
        return self._check(self.topics.uninstall, response)

    async def create(self, name: str, url: str, directory: str, timeout: Optional[float] = None) -> bool:
        """Build a plugin image. Returns the build status."""
        request = self.converter.new_plugin_request_to_pb(
            NewPluginRequest(name=name, url=url, directory=directory)
        )
        response = await self.nats_client.request_message(
            self.topics.create, request, pb.NewPluginResponse, timeout or self.lifecycle_timeout
        )
        return self.converter.new_plugin_response_from_pb(response).status
