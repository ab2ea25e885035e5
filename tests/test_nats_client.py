"""
Unit tests for the NATS client wrapper, with nats-py mocked out.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from agilestack.common.nats_client import NATSClient
from agilestack.proto import plugins_pb2 as pb


def mock_connection():
    nc = Mock()
    nc.connect = AsyncMock()
    nc.close = AsyncMock()
    nc.drain = AsyncMock()
    nc.publish = AsyncMock()
    nc.subscribe = AsyncMock(return_value=Mock(unsubscribe=AsyncMock()))
    nc.request = AsyncMock()
    nc.is_connected = True
    return nc


class TestNATSClient:
    """Test cases for NATSClient."""

    @pytest.mark.asyncio
    async def test_connect_retries_then_fails(self):
        failing = mock_connection()
        failing.connect.side_effect = OSError("connection refused")
        client = NATSClient("nats://localhost:4222", logger=Mock(), max_reconnect_attempts=3)

        with patch("agilestack.common.nats_client.NATS", return_value=failing), \
                patch("agilestack.common.nats_client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ConnectionError, match="localhost:4222"):
                await client.connect()

        assert failing.connect.await_count == 3
        assert sleep.await_count == 2
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_connect_after_failure(self):
        failing, working = mock_connection(), mock_connection()
        failing.connect.side_effect = OSError("connection refused")
        client = NATSClient("nats://localhost:4222", logger=Mock())

        with patch("agilestack.common.nats_client.NATS", side_effect=[failing, working]), \
                patch("agilestack.common.nats_client.asyncio.sleep", new=AsyncMock()):
            await client.connect()

        assert client.is_connected
        assert client.nc is working

    @pytest.mark.asyncio
    async def test_publish_subscribe_and_close(self):
        nc = mock_connection()
        client = NATSClient("nats://localhost:4222", logger=Mock())

        with patch("agilestack.common.nats_client.NATS", return_value=nc):
            async with client:
                sid = await client.subscribe("core.plugin.install", AsyncMock())
                await client.publish("_INBOX.1", b"\x08\x01", headers={"Agilestack-Error": "true"})
                subscription = client._subscriptions[sid]

        nc.publish.assert_awaited_once_with(
            "_INBOX.1", b"\x08\x01", reply="", headers={"Agilestack-Error": "true"}
        )
        subscription.unsubscribe.assert_awaited_once()
        nc.drain.assert_awaited_once()
        assert client.nc is None

    @pytest.mark.asyncio
    async def test_request_message_decodes_reply(self):
        nc = mock_connection()
        nc.request.return_value = Mock(data=pb.NetResponse(response=pb.ERROR, details="boom").SerializeToString())
        client = NATSClient("nats://localhost:4222", logger=Mock())

        with patch("agilestack.common.nats_client.NATS", return_value=nc):
            await client.connect()
            response = await client.request_message(
                "core.plugin.uninstall", pb.Plugin(name="agilestack-proxy"), pb.NetResponse, timeout=2.0
            )

        assert response.response == pb.ERROR
        assert response.details == "boom"
        nc.request.assert_awaited_once_with(
            "core.plugin.uninstall", pb.Plugin(name="agilestack-proxy").SerializeToString(), timeout=2.0
        )
