"""
End-to-end tests: RegistryClient -> bus -> RegistryDispatcher -> registry -> Docker.

The bus and the Docker daemon are the in-memory fakes from conftest.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
import pytest_asyncio

from agilestack.proto.wrappers import ProtobufConverter
from agilestack.registry.client import RegistryClient
from agilestack.registry.dispatcher import RegistryDispatcher
from agilestack.registry.errors import RegistryRequestError

from conftest import image_record


@pytest_asyncio.fixture
async def client(dispatcher, nats_client):
    await dispatcher.start()
    yield RegistryClient(nats_client, timeout=1.0, lifecycle_timeout=1.0)
    await dispatcher.stop()


class TestPluginLifecycle:
    """Install and uninstall a plugin through the bus."""

    @pytest.mark.asyncio
    async def test_install_uninstall_round(self, client, docker_api):
        assert docker_api.container_list == []
        assert [p.name for p in await client.list_available()] == ["agilestack-proxy"]
        assert await client.list_installed() == []

        result = await client.install("agilestack-proxy")
        assert result.ok

        assert [p.name for p in await client.list_installed()] == ["agilestack-proxy"]
        assert await client.list_available() == []

        result = await client.uninstall("agilestack-proxy")
        assert result.ok

        assert await client.list_installed() == []
        assert [p.name for p in await client.list_available()] == ["agilestack-proxy"]

    @pytest.mark.asyncio
    async def test_install_twice_keeps_one_container(self, client, docker_api):
        await client.install("agilestack-proxy")
        await client.install("agilestack-proxy", cmd="npm run debug")

        assert len(docker_api.names_of("agilestack-proxy")) == 1
        assert [p.name for p in await client.list_installed()] == ["agilestack-proxy"]

    @pytest.mark.asyncio
    async def test_uninstall_absent_plugin(self, client):
        result = await client.uninstall("agilestack-never-installed")

        assert result.ok

    @pytest.mark.asyncio
    async def test_install_unknown_plugin_raises(self, client):
        with pytest.raises(RegistryRequestError, match="agilestack-unknown") as exc_info:
            await client.install("agilestack-unknown")

        assert exc_info.value.subject == "core.plugin.install"

    @pytest.mark.asyncio
    async def test_listing_error_is_raised(self, client, docker_api):
        docker_api.images = Mock(side_effect=ConnectionRefusedError("connection refused"))

        with pytest.raises(RegistryRequestError, match="list images failed"):
            await client.list_available()

    @pytest.mark.asyncio
    async def test_several_plugins(self, client, docker_api):
        docker_api.image_list.append(image_record("eogile/agilestack-hello:1.0"))
        docker_api.image_list.append(image_record("postgres:16"))

        await client.install("agilestack-hello")

        assert [p.name for p in await client.list_available()] == ["agilestack-proxy"]
        assert [p.name for p in await client.list_installed()] == ["agilestack-hello"]


class TestCreate:
    """Plugin creation through the bus."""

    @pytest.mark.asyncio
    async def test_create(self, registry, nats_client, logger):
        factory = Mock()
        factory.create_plugin = AsyncMock(return_value="agilestack-rooms")
        dispatcher = RegistryDispatcher(registry, nats_client, plugin_factory=factory, logger=logger)
        await dispatcher.start()
        client = RegistryClient(nats_client, timeout=1.0, lifecycle_timeout=1.0)

        assert await client.create("rooms", "http://rooms.local", "/tmp/rooms") is True

    @pytest.mark.asyncio
    async def test_create_without_factory(self, client):
        assert await client.create("rooms", "http://rooms.local", "/tmp/rooms") is False

    @pytest.mark.asyncio
    async def test_create_status_goes_through_converter(self, client):
        with patch.object(
            ProtobufConverter, "new_plugin_response_to_pb", wraps=ProtobufConverter.new_plugin_response_to_pb
        ) as to_pb, patch.object(
            ProtobufConverter, "new_plugin_response_from_pb", wraps=ProtobufConverter.new_plugin_response_from_pb
        ) as from_pb:
            assert await client.create("rooms", "http://rooms.local", "/tmp/rooms") is False

        assert to_pb.call_args.args[0].status is False
        from_pb.assert_called_once()
