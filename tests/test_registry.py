"""
Unit tests for the plugin registry state transitions.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from agilestack.models.plugin import InstallRequest, Plugin, Responses, UninstallRequest
from agilestack.registry.errors import ContainerRuntimeError, PluginImageNotFoundError
from agilestack.registry.registry import PluginRegistry

from conftest import PROXY_IMAGE, container_record, image_record


class TestPluginRegistry:
    """Test cases for PluginRegistry."""

    @pytest.mark.asyncio
    async def test_install_moves_plugin_from_available_to_installed(self, registry):
        assert await registry.list_available_plugins() == [Plugin(name="agilestack-proxy")]
        assert await registry.list_installed_plugins() == []

        result = await registry.install_plugin(InstallRequest(name="agilestack-proxy"))

        assert result.response == Responses.ACK
        assert await registry.storage.is_plugin_installed("agilestack-proxy")
        assert await registry.list_installed_plugins() == [Plugin(name="agilestack-proxy")]
        assert await registry.list_available_plugins() == []

    @pytest.mark.asyncio
    async def test_uninstall_moves_plugin_back_to_available(self, registry):
        await registry.install_plugin(InstallRequest(name="agilestack-proxy"))

        result = await registry.uninstall_plugin(UninstallRequest(name="agilestack-proxy"))

        assert result.ok
        assert not await registry.storage.is_plugin_installed("agilestack-proxy")
        assert await registry.list_installed_plugins() == []
        assert await registry.list_available_plugins() == [Plugin(name="agilestack-proxy")]

    @pytest.mark.asyncio
    async def test_uninstall_absent_plugin_is_ack(self, registry):
        result = await registry.uninstall_plugin(UninstallRequest(name="agilestack-missing"))

        assert result.response == Responses.ACK
        assert result.details == ""

    @pytest.mark.asyncio
    async def test_reinstall_replaces_container(self, registry, docker_api):
        await registry.install_plugin(InstallRequest(name="agilestack-proxy"))
        await registry.install_plugin(InstallRequest(name="agilestack-proxy", cmd="npm run debug"))

        containers = docker_api.names_of("agilestack-proxy")
        assert len(containers) == 1
        assert containers[0]["Status"].startswith("Up")
        assert docker_api.created[-1]["command"] == "npm run debug"
        assert len(docker_api.removed) == 1

    @pytest.mark.asyncio
    async def test_install_replaces_stopped_container(self, registry, docker_api):
        docker_api.container_list.append(
            container_record("old", "agilestack-proxy", PROXY_IMAGE, status="Exited (137) 1 minute ago")
        )

        await registry.install_plugin(InstallRequest(name="agilestack-proxy"))

        assert docker_api.removed == ["old"]
        assert docker_api.stopped == []
        assert len(docker_api.names_of("agilestack-proxy")) == 1

    @pytest.mark.asyncio
    async def test_install_failure_is_propagated(self, registry):
        with pytest.raises(PluginImageNotFoundError):
            await registry.install_plugin(InstallRequest(name="agilestack-unknown"))

    @pytest.mark.asyncio
    async def test_failed_reinstall_leaves_plugin_uninstalled(self, logger):
        storage = Mock()
        storage.is_plugin_installed = AsyncMock(return_value=True)
        storage.uninstall_plugin = AsyncMock(return_value=1)
        storage.install_plugin = AsyncMock(side_effect=ContainerRuntimeError("create container failed"))
        registry = PluginRegistry(storage, logger=logger)

        with pytest.raises(ContainerRuntimeError, match="create container failed"):
            await registry.install_plugin(InstallRequest(name="agilestack-proxy", cmd="run"))

        storage.uninstall_plugin.assert_awaited_once_with("agilestack-proxy")
        storage.install_plugin.assert_awaited_once_with("agilestack-proxy", "run")

    @pytest.mark.asyncio
    async def test_listing_is_recomputed_on_every_call(self, registry, docker_api):
        assert [p.name for p in await registry.list_available_plugins()] == ["agilestack-proxy"]

        docker_api.image_list.append(image_record("eogile/agilestack-hello:1.0"))

        assert [p.name for p in await registry.list_available_plugins()] == [
            "agilestack-proxy", "agilestack-hello",
        ]


class TestStopPlugins:
    """Test cases for the shutdown cleanup."""

    @pytest.mark.asyncio
    async def test_protected_plugins_are_kept(self, registry, docker_api):
        docker_api.image_list.append(image_record("eogile/agilestack-backoffice:latest"))
        await registry.install_plugin(InstallRequest(name="agilestack-proxy"))
        await registry.install_plugin(InstallRequest(name="agilestack-backoffice"))

        stopped = await registry.stop_plugins({"agilestack-backoffice"})

        assert stopped == ["agilestack-proxy"]
        assert await registry.list_installed_plugins() == [Plugin(name="agilestack-backoffice")]

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, logger):
        storage = Mock()
        storage.list_installed_plugins = AsyncMock(
            return_value=[Plugin(name="agilestack-a"), Plugin(name="agilestack-b")]
        )
        storage.uninstall_plugin = AsyncMock(side_effect=[ContainerRuntimeError("boom"), 1])
        registry = PluginRegistry(storage, logger=logger)

        stopped = await registry.stop_plugins()

        assert stopped == ["agilestack-b"]
        assert storage.uninstall_plugin.await_count == 2
