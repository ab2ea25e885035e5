"""NATS client for the AgileStack core.

Wraps ``nats.aio.client.Client`` with the connection handling the registry
needs: connect with jittered retry, publish with headers, subscriptions
tracked by a local id, and request/reply helpers for protobuf messages.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Type, TypeVar

from google.protobuf.message import Message as ProtoMessage
from nats.aio.client import Client as NATS
from nats.aio.msg import Msg
from nats.aio.subscription import Subscription

from .utils import jittered_backoff

M = TypeVar("M", bound=ProtoMessage)


class NATSClient:
    """Connection to the platform's NATS server.

    One instance is shared by every task of the process; nats-py serialises
    writes on the connection.
    """

    def __init__(
        self,
        nats_url: str,
        logger: Optional[logging.Logger] = None,
        name: str = "agilestack-core",
        max_reconnect_attempts: int = 10,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 60.0,
    ):
        """
        Args:
            nats_url: Server URL, e.g. "nats://agilestack-nats.agilestacknet:4222"
            logger: Logger instance for structured logging
            name: Client name shown by the server
            max_reconnect_attempts: Connection attempts before giving up
            reconnect_base_delay: First retry delay in seconds
            reconnect_max_delay: Upper bound of the retry delay in seconds
        """
        self.nats_url = nats_url
        self.logger = logger or logging.getLogger(__name__)
        self.name = name
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_max_delay = reconnect_max_delay

        self.nc: Optional[NATS] = None
        self._is_connected = False
        self._connect_lock = asyncio.Lock()
        self._subscriptions: Dict[int, Subscription] = {}
        self._next_sid = 0

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self.nc is not None and self.nc.is_connected

    async def _error_cb(self, e):
        self.logger.error("NATS error", extra={"error": str(e)})

    async def _disconnected_cb(self):
        self.logger.warning("NATS disconnected", extra={"url": self.nats_url})
        self._is_connected = False

    async def _reconnected_cb(self):
        self.logger.info("NATS reconnected", extra={"url": self.nats_url})
        self._is_connected = True

    async def _closed_cb(self):
        self._is_connected = False

    async def connect(self) -> None:
        """Connect, retrying with jittered exponential backoff.

        Raises:
            ConnectionError: If every attempt failed
        """
        async with self._connect_lock:
            if self.is_connected:
                return

            for attempt in range(self.max_reconnect_attempts):
                try:
                    self.nc = NATS()
                    await self.nc.connect(
                        servers=[self.nats_url],
                        name=self.name,
                        error_cb=self._error_cb,
                        disconnected_cb=self._disconnected_cb,
                        reconnected_cb=self._reconnected_cb,
                        closed_cb=self._closed_cb,
                        max_reconnect_attempts=self.max_reconnect_attempts,
                        reconnect_time_wait=self.reconnect_base_delay,
                    )
                except Exception as e:
                    self._is_connected = False
                    await self._discard_connection()

                    if attempt == self.max_reconnect_attempts - 1:
                        self.logger.error(
                            "Cannot connect to NATS",
                            extra={"url": self.nats_url, "attempts": attempt + 1, "error": str(e)}
                        )
                        raise ConnectionError(f"Failed to connect to NATS at {self.nats_url}: {e}") from e

                    delay = jittered_backoff(attempt, self.reconnect_base_delay, self.reconnect_max_delay)
                    self.logger.warning(
                        "NATS connection failed, retrying",
                        extra={"attempt": attempt, "retry_in_sec": round(delay, 2), "error": str(e)}
                    )
                    await asyncio.sleep(delay)
                    continue

                self._is_connected = True
                self.logger.info(
                    "Connected to NATS",
                    extra={"url": self.nats_url, "client_name": self.name, "attempt": attempt}
                )
                return

    async def _discard_connection(self) -> None:
        if self.nc is None:
            return
        try:
            await self.nc.close()
        except Exception as e:
            self.logger.debug("Ignoring close error on failed connection", extra={"error": str(e)})
        self.nc = None

    async def ensure_connected(self) -> None:
        if not self.is_connected:
            await self.connect()

    async def publish(
        self,
        subject: str,
        payload: bytes,
        reply: str = "",
        headers: Optional[Dict[str, str]] = None
    ) -> None:
        await self.ensure_connected()
        try:
            await self.nc.publish(subject, payload, reply=reply, headers=headers)
        except Exception as e:
            self.logger.error("Publish failed", extra={"subject": subject, "error": str(e)})
            raise
        self.logger.debug("Published", extra={"subject": subject, "payload_size": len(payload)})

    async def subscribe(
        self,
        subject: str,
        callback: Callable[[Msg], Awaitable[None]],
        queue: str = ""
    ) -> int:
        """Subscribe ``callback`` to ``subject``.

        Returns:
            Local subscription id, to pass to ``unsubscribe``
        """
        await self.ensure_connected()
        try:
            sub = await self.nc.subscribe(subject, cb=callback, queue=queue)
        except Exception as e:
            self.logger.error("Subscribe failed", extra={"subject": subject, "error": str(e)})
            raise

        self._next_sid += 1
        self._subscriptions[self._next_sid] = sub
        self.logger.info("Subscribed", extra={"subject": subject, "sid": self._next_sid, "queue": queue or None})
        return self._next_sid

    async def unsubscribe(self, sid: int) -> None:
        sub = self._subscriptions.pop(sid, None)
        if sub is None or not self.is_connected:
            return
        try:
            await sub.unsubscribe()
        except Exception as e:
            self.logger.error("Unsubscribe failed", extra={"sid": sid, "error": str(e)})

    async def request(self, subject: str, payload: bytes, timeout: float = 1.0) -> Msg:
        """Send a request and wait for the first reply.

        Raises:
            nats.errors.TimeoutError: If no reply arrives within ``timeout``
                (a subclass of ``asyncio.TimeoutError``)
        """
        await self.ensure_connected()
        try:
            return await self.nc.request(subject, payload, timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Request timed out", extra={"subject": subject, "timeout": timeout})
            raise

    async def request_message(
        self,
        subject: str,
        message: ProtoMessage,
        response_type: Type[M],
        timeout: float = 1.0
    ) -> M:
        """Send a protobuf request and decode the reply as ``response_type``.

        Raises:
            google.protobuf.message.DecodeError: If the reply cannot be parsed
        """
        msg = await self.request(subject, message.SerializeToString(), timeout)
        response = response_type()
        response.ParseFromString(msg.data)
        return response

    async def close(self) -> None:
        """Drop the subscriptions, drain and close the connection."""
        if self.nc is None:
            return
        try:
            for sid in list(self._subscriptions):
                await self.unsubscribe(sid)
            await self.nc.drain()
            self.logger.info("NATS connection closed", extra={"url": self.nats_url})
        except Exception as e:
            self.logger.error("Error closing NATS connection", extra={"error": str(e)})
        finally:
            self._subscriptions.clear()
            self._is_connected = False
            self.nc = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
