"""
Pytest configuration and common fixtures for deckhand tests.

This module provides shared fixtures and configuration for all test modules.
"""

from unittest.mock import Mock

import pytest

from deckhand.utils.container import Container
from deckhand.utils.engines.base import ContainerClient


def make_container(name, links=None, image_reference=None, image_id="sha256:old", is_self=False, labels=None, created=None):
    """Build a container descriptor with sensible defaults."""
    return Container(
        id=f"{name}-id".ljust(64, "0"),
        name=name,
        image_reference=image_reference or f"example/{name}:latest",
        image_id=image_id,
        links=links,
        labels=labels,
        created=created,
        is_self=is_self,
    )


class FakeClient(ContainerClient):
    """
    In-memory container client recording every call.

    Containers are given as keyword arguments for make_container(); every call of
    list_containers() returns fresh descriptors, like a real engine would.
    """

    def __init__(self, containers, stale=(), stale_errors=(), rename_errors=(), rename_back_errors=(),
                 start_errors=(), stop_errors=(), remove_image_errors=(), list_error=None):
        self.definitions = [dict(c) for c in containers]
        self.stale = set(stale)
        self.stale_errors = set(stale_errors)
        self.rename_errors = set(rename_errors)
        self.rename_back_errors = set(rename_back_errors)
        self.start_errors = set(start_errors)
        self.stop_errors = set(stop_errors)
        self.remove_image_errors = set(remove_image_errors)
        self.list_error = list_error
        self.calls = []
        # Names visible to the engine: old containers by original name, plus started replacements
        self.current_names = {d["name"]: d["name"] for d in self.definitions}
        self.new_names = []

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in ("rename", "start", "stop", "remove_image")]

    def list_containers(self, container_filter):
        self.calls.append(("list",))
        if self.list_error:
            raise self.list_error
        containers = [make_container(**d) for d in self.definitions]
        return [c for c in containers if container_filter(c)]

    def is_container_stale(self, container):
        self.calls.append(("is_stale", container.name))
        if container.name in self.stale_errors:
            raise RuntimeError(f"registry unavailable for {container.name}")
        return container.name in self.stale

    def rename_container(self, container, new_name):
        self.calls.append(("rename", container.name, new_name))
        if new_name == container.name and container.name in self.rename_back_errors:
            raise RuntimeError(f"cannot rename back {container.name}")
        if new_name != container.name and container.name in self.rename_errors:
            raise RuntimeError(f"cannot rename {container.name}")
        self.current_names[container.name] = new_name
        self._check_unique_names()

    def start_container(self, container, start_timeout):
        self.calls.append(("start", container.name, start_timeout))
        if container.name in self.start_errors:
            raise RuntimeError(f"cannot start {container.name}")
        self.new_names.append(container.name)
        self._check_unique_names()

    def stop_container(self, container, stop_timeout):
        self.calls.append(("stop", container.name, stop_timeout))
        if container.name in self.stop_errors:
            raise RuntimeError(f"cannot stop {container.name}")
        self.current_names.pop(container.name, None)

    def remove_image(self, container):
        self.calls.append(("remove_image", container.name))
        if container.name in self.remove_image_errors:
            raise RuntimeError(f"image of {container.name} is in use")

    def _check_unique_names(self):
        names = list(self.current_names.values()) + self.new_names
        assert len(names) == len(set(names)), f"duplicate names: {names}"


@pytest.fixture
def fake_client_factory():
    """Factory building FakeClient instances."""
    return FakeClient


@pytest.fixture
def mock_docker_client():
    """Mock docker-py client for testing."""
    client = Mock()

    # Mock container objects
    container = Mock()
    container.name = "test-container"
    container.id = "test-container-id"
    container.status = "running"
    container.attrs = {
        "Name": "/test-container",
        "Image": "sha256:old",
        "Created": "2024-01-01T12:00:00.000000000Z",
        "Config": {"Image": "test-image:1.0.0", "Labels": {}},
        "HostConfig": {"Links": None},
    }

    # Mock image objects
    image = Mock()
    image.tags = ["test-image:1.0.0"]
    image.id = "sha256:new"
    image.short_id = "sha256:new"

    # Mock API responses
    client.containers.list.return_value = [container]
    client.containers.get.return_value = container
    client.images.get.return_value = image
    client.images.pull.return_value = image
    client.api.create_container.return_value = {"Id": "new-container-id-000000"}
    client.api.inspect_container.return_value = {
        "Config": {"Image": "test-image:1.0.0"},
        "State": {"Status": "running"},
    }
    client.api.inspect_image.return_value = {
        "Config": {"Env": ["PATH=/usr/bin"], "Labels": {}},
    }

    return client


@pytest.fixture
def sample_inspect_data():
    """Container inspect payload as returned by the Docker engine."""
    return {
        "Id": "abc123" * 10 + "abcd",
        "Name": "/web",
        "Image": "sha256:old",
        "Created": "2024-01-01T12:00:00.000000000Z",
        "Config": {
            "Image": "example/web:latest",
            "Env": ["PATH=/usr/bin", "APP_MODE=production"],
            "Cmd": ["serve"],
            "Labels": {"maintainer": "image", "com.example.role": "frontend"},
            "ExposedPorts": {"80/tcp": {}, "8080/tcp": {}},
            "Hostname": "web",
            "Tty": False,
        },
        "HostConfig": {
            "Links": ["/db:/web/database"],
            "NetworkMode": "frontend",
            "PortBindings": {"80/tcp": [{"HostIp": "", "HostPort": "8000"}]},
            "RestartPolicy": {"Name": "unless-stopped", "MaximumRetryCount": 0},
            "AutoRemove": False,
        },
        "Mounts": [
            {"Type": "volume", "Name": "web-data", "Destination": "/data", "RW": True},
            {"Type": "bind", "Source": "/srv/web/conf", "Destination": "/etc/web", "RW": False},
        ],
        "NetworkSettings": {
            "Networks": {
                "frontend": {"Aliases": ["web"]},
                "backend": {"Aliases": ["web-backend"]},
            }
        },
    }
