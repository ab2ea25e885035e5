"""
Shared fixtures: in-memory stand-ins for the Docker daemon and the NATS bus.

FakeDockerAPI mimics the subset of ``docker.APIClient`` the runtime adapter
calls, with the record shapes of the Docker list endpoints. FakeNATSClient
routes publish/request calls to local subscribers so the dispatcher and the
client can be exercised end to end without a server.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional
from unittest.mock import Mock

import pytest
from docker.errors import APIError, ImageNotFound, NotFound

from agilestack.registry.dispatcher import RegistryDispatcher
from agilestack.registry.registry import PluginRegistry
from agilestack.registry.runtime import DockerRuntimeAdapter

PROXY_IMAGE = "docker-registry.eogile.com/eogile/agilestack-proxy:latest"


def image_record(*repo_tags: str, image_id: Optional[str] = None) -> Dict:
    return {
        "Id": image_id or f"sha256:{abs(hash(repo_tags)):x}",
        "RepoTags": list(repo_tags),
        "ParentId": "",
    }


def container_record(container_id: str, name: str, image: str, status: str = "Up 2 minutes") -> Dict:
    return {
        "Id": container_id,
        "Names": [f"/{name}"],
        "Image": image,
        "Status": status,
        "Ports": [{"PrivatePort": 8080, "PublicPort": 32768, "Type": "tcp"}],
    }


class FakeDockerAPI:
    """Docker low-level API backed by two lists."""

    def __init__(self, images: Optional[List[Dict]] = None, containers: Optional[List[Dict]] = None):
        self.image_list = list(images or [])
        self.container_list = list(containers or [])
        self.created: List[Dict] = []
        self.stopped: List[str] = []
        self.removed: List[str] = []
        self._ids = itertools.count(1)

    def ping(self):
        return True

    def images(self, all=False, filters=None):
        return [dict(image) for image in self.image_list]

    def containers(self, all=False):
        return [
            dict(container) for container in self.container_list
            if all or container["Status"].startswith("Up")
        ]

    def create_host_config(self, **kwargs):
        return dict(kwargs)

    def create_container(self, image, command=None, name=None, host_config=None):
        if any(f"/{name}" in container["Names"] for container in self.container_list):
            raise APIError(f'Conflict. The container name "/{name}" is already in use')
        if not any(image in record.get("RepoTags", []) for record in self.image_list):
            raise ImageNotFound(f"No such image: {image}")

        container_id = f"container-{next(self._ids)}"
        self.created.append({
            "image": image,
            "command": command,
            "name": name,
            "host_config": host_config,
        })
        self.container_list.append(container_record(container_id, name, image, status="Created"))
        return {"Id": container_id, "Warnings": []}

    def _find(self, container_id):
        for container in self.container_list:
            if container["Id"] == container_id:
                return container
        raise NotFound(f"No such container: {container_id}")

    def start(self, container):
        self._find(container)["Status"] = "Up Less than a second"

    def stop(self, container, timeout=None):
        self._find(container)["Status"] = "Exited (0) Less than a second ago"
        self.stopped.append(container)

    def remove_container(self, container):
        self.container_list.remove(self._find(container))
        self.removed.append(container)

    def names_of(self, name):
        return [c for c in self.container_list if f"/{name}" in c["Names"]]


class FakeDockerClient:
    """``docker.DockerClient`` exposing ``api`` and a mocked ``images.build``."""

    def __init__(self, api: FakeDockerAPI):
        self.api = api
        self.images = Mock()


@dataclass
class FakeMsg:
    subject: str
    data: bytes
    reply: str = ""
    headers: Optional[Dict[str, str]] = None


class FakeNATSClient:
    """In-process bus with the NATSClient surface the registry uses."""

    def __init__(self):
        self.subscriptions: Dict[int, tuple] = {}
        self.published: List[FakeMsg] = []
        self._sids = itertools.count(1)
        self._inboxes = itertools.count(1)
        self._waiting: Dict[str, asyncio.Future] = {}

    async def subscribe(self, subject, callback, queue=""):
        sid = next(self._sids)
        self.subscriptions[sid] = (subject, callback)
        return sid

    async def unsubscribe(self, sid):
        self.subscriptions.pop(sid, None)

    async def publish(self, subject, payload, reply="", headers=None):
        msg = FakeMsg(subject=subject, data=payload, reply=reply, headers=headers)
        self.published.append(msg)

        waiter = self._waiting.pop(subject, None)
        if waiter is not None:
            if not waiter.done():
                waiter.set_result(msg)
            return
        for sub_subject, callback in list(self.subscriptions.values()):
            if sub_subject == subject:
                await callback(msg)

    async def request(self, subject, payload, timeout=1.0):
        inbox = f"_INBOX.{next(self._inboxes)}"
        future = asyncio.get_running_loop().create_future()
        self._waiting[inbox] = future
        try:
            await self.publish(subject, payload, reply=inbox)
            return await asyncio.wait_for(future, timeout)
        finally:
            self._waiting.pop(inbox, None)

    async def request_message(self, subject, message, response_type, timeout=1.0):
        msg = await self.request(subject, message.SerializeToString(), timeout)
        response = response_type()
        response.ParseFromString(msg.data)
        return response

    def subjects(self) -> List[str]:
        return sorted(subject for subject, _ in self.subscriptions.values())


@pytest.fixture
def logger():
    return Mock(spec=logging.Logger)


@pytest.fixture
def docker_api():
    return FakeDockerAPI(images=[image_record(PROXY_IMAGE)])


@pytest.fixture
def docker_client(docker_api):
    return FakeDockerClient(docker_api)


@pytest.fixture
def adapter(docker_client, logger):
    return DockerRuntimeAdapter(client=docker_client, logger=logger)


@pytest.fixture
def registry(adapter, logger):
    return PluginRegistry(adapter, logger=logger)


@pytest.fixture
def nats_client():
    return FakeNATSClient()


@pytest.fixture
def dispatcher(registry, nats_client, logger):
    return RegistryDispatcher(registry, nats_client, logger=logger)
