"""
NATS request dispatcher for the plugin registry.

Binds the registry operations to request/reply subjects:

    <ns>.pluginlist.available   Empty                -> Plugins
    <ns>.pluginlist.installed   Empty                -> Plugins
    <ns>.plugin.install         InstallPluginRequest -> NetResponse
    <ns>.plugin.uninstall       Plugin               -> NetResponse
    <ns>.plugin.create          NewPluginRequest     -> NewPluginResponse

Registry errors are answered with ``NetResponse(ERROR, details)`` and the
``Agilestack-Error`` header, on the list subjects too. The create subject
reports failures as ``NewPluginResponse(status=False)`` instead. Payloads
that cannot be decoded are dropped without a reply.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Set

from google.protobuf.message import DecodeError, Message as ProtoMessage
from nats.aio.msg import Msg
from pydantic import ValidationError

from .errors import RegistryError
from .plugin_factory import DockerPluginFactory
from .registry import PluginRegistry
from ..common.nats_client import NATSClient
from ..models.plugin import NewPluginResponse, OperationResult
from ..proto import plugins_pb2 as pb
from ..proto.topics import DEFAULT_TOPICS, ERROR_HEADERS, Topics
from ..proto.wrappers import ProtobufConverter

Handler = Callable[[bytes], Awaitable[ProtoMessage]]


@dataclass(frozen=True)
class DispatcherContext:
    """Process lifecycle settings handed to the dispatcher.

    Attributes:
        topics: Subjects to serve
        protected_plugins: Plugins kept running when the dispatcher shuts down
        cleanup_on_shutdown: Whether shutdown uninstalls the other plugins
    """

    topics: Topics = DEFAULT_TOPICS
    protected_plugins: FrozenSet[str] = field(default_factory=lambda: frozenset({"agilestack-backoffice"}))
    cleanup_on_shutdown: bool = True

    @classmethod
    def from_settings(cls, settings) -> "DispatcherContext":
        return cls(
            topics=Topics(settings.topic_namespace),
            protected_plugins=frozenset(settings.protected_plugins),
            cleanup_on_shutdown=settings.cleanup_on_shutdown,
        )


class RegistryDispatcher:
    """Serves the plugin registry on NATS.

    Every inbound message is handled in its own task, so a slow install
    does not hold back other requests.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        nats_client: NATSClient,
        plugin_factory: Optional[DockerPluginFactory] = None,
        context: Optional[DispatcherContext] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.nats_client = nats_client
        self.plugin_factory = plugin_factory
        self.context = context or DispatcherContext()
        self.logger = logger or logging.getLogger(__name__)

        self.converter = ProtobufConverter()
        self.running = False
        self._sids: List[int] = []
        self._tasks: Set[asyncio.Task] = set()

    @property
    def topics(self) -> Topics:
        return self.context.topics

    def routes(self) -> Dict[str, Handler]:
        return {
            self.topics.list_available: self.handle_list_available,
            self.topics.list_installed: self.handle_list_installed,
            self.topics.install: self.handle_install,
            self.topics.uninstall: self.handle_uninstall,
            self.topics.create: self.handle_create,
        }

    # ---------------------------------------------------------------- lifecycle

    async def start(self) -> None:
        """Subscribe to every registry subject."""
        self.logger.info("Starting registry dispatcher", extra={"namespace": self.topics.namespace})
        for subject, handler in self.routes().items():
            sid = await self.nats_client.subscribe(subject, self._on_message(subject, handler))
            self._sids.append(sid)
        self.running = True

    async def stop(self) -> None:
        """Unsubscribe and wait for in-flight requests to complete."""
        self.running = False
        for sid in self._sids:
            await self.nats_client.unsubscribe(sid)
        self._sids.clear()

        if self._tasks:
            self.logger.info("Waiting for in-flight requests", extra={"count": len(self._tasks)})
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.logger.info("Registry dispatcher stopped")

    async def shutdown(self) -> List[str]:
        """Stop serving, then uninstall the non-protected plugins if configured.

        Returns:
            Names of the plugins that were uninstalled
        """
        self.logger.info("Shutting down registry dispatcher")
        await self.stop()

        if not self.context.cleanup_on_shutdown:
            return []
        try:
            return await self.registry.stop_plugins(self.context.protected_plugins)
        except RegistryError as e:
            self.logger.error("[Shutdown] could not list installed plugins", extra={"error": str(e)})
            return []

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    # ----------------------------------------------------------------- dispatch

    def _on_message(self, subject: str, handler: Handler) -> Callable[[Msg], Awaitable[None]]:
        async def on_message(msg: Msg) -> None:
            task = asyncio.create_task(self._dispatch(subject, handler, msg))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return on_message

    async def _dispatch(self, subject: str, handler: Handler, msg: Msg) -> None:
        try:
            reply = await handler(msg.data)
        except DecodeError as e:
            self.logger.error("Cannot decode request", extra={"subject": subject, "error": str(e)})
            return
        except Exception as e:
            self.logger.exception("Unexpected error while handling request", extra={"subject": subject})
            reply = self._error_reply(subject, e)

        if not msg.reply:
            self.logger.warning("Request has no reply subject, dropping reply", extra={"subject": subject})
            return
        headers = None
        if isinstance(reply, pb.NetResponse) and reply.response == pb.ERROR:
            headers = ERROR_HEADERS
        try:
            await self.nats_client.publish(msg.reply, reply.SerializeToString(), headers=headers)
        except Exception as e:
            self.logger.error(
                "Cannot publish reply",
                extra={"subject": subject, "reply": msg.reply, "error": str(e)}
            )

    def _error_reply(self, subject: str, error: Exception) -> "pb.NetResponse":
        self.logger.error("Request failed", extra={"subject": subject, "error": str(error)})
        return self.converter.operation_result_to_pb(OperationResult.error(str(error)))

    # ----------------------------------------------------------------- handlers

    async def handle_list_available(self, data: bytes) -> ProtoMessage:
        pb.Empty.FromString(data)
        try:
            plugins = await self.registry.list_available_plugins()
        except RegistryError as e:
            return self._error_reply(self.topics.list_available, e)
        return self.converter.plugins_to_pb(plugins)

    async def handle_list_installed(self, data: bytes) -> ProtoMessage:
        pb.Empty.FromString(data)
        try:
            plugins = await self.registry.list_installed_plugins()
        except RegistryError as e:
            return self._error_reply(self.topics.list_installed, e)
        return self.converter.plugins_to_pb(plugins)

    async def handle_install(self, data: bytes) -> ProtoMessage:
        pb_request = pb.InstallPluginRequest.FromString(data)
        try:
            request = self.converter.install_request_from_pb(pb_request)
            result = await self.registry.install_plugin(request)
        except (RegistryError, ValidationError) as e:
            return self._error_reply(self.topics.install, e)
        return self.converter.operation_result_to_pb(result)

    async def handle_uninstall(self, data: bytes) -> ProtoMessage:
        pb_plugin = pb.Plugin.FromString(data)
        try:
            request = self.converter.uninstall_request_from_pb(pb_plugin)
            result = await self.registry.uninstall_plugin(request)
        except (RegistryError, ValidationError) as e:
            return self._error_reply(self.topics.uninstall, e)
        self.logger.info("Plugin was uninstalled", extra={"plugin": request.name})
        return self.converter.operation_result_to_pb(result)

    async def handle_create(self, data: bytes) -> ProtoMessage:
        pb_request = pb.NewPluginRequest.FromString(data)
        status = False
        if self.plugin_factory is None:
            self.logger.warning("No plugin factory configured, cannot create plugin")
        else:
            try:
                request = self.converter.new_plugin_request_from_pb(pb_request)
                await self.plugin_factory.create_plugin(request)
                status = True
                self.logger.info("Plugin image created", extra={"plugin": request.name})
            except (RegistryError, ValidationError) as e:
                self.logger.error(
                    "Error while creating the plugin",
                    extra={"plugin": pb_request.name, "error": str(e)}
                )
        return self.converter.new_plugin_response_to_pb(NewPluginResponse(status=status))
