#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from enum import Enum
from typing import List, Optional

# Label marking the deckhand container itself
SELF_LABEL = "io.deckhand.self"
# Label opting a container into updates when label filtering is enabled
ENABLE_LABEL = "io.deckhand.enable"
# Label overriding the signal used to stop a container
STOP_SIGNAL_LABEL = "io.deckhand.stop-signal"


class UpdateState(Enum):
    """
    Update decision for a container during a single update pass.

    FRESH               The bound image matches the image the reference resolves to
    STALE_BY_IMAGE      A newer image is available for the container's reference
    STALE_BY_DEPENDENCY A linked container is stale, so this one must be recreated too
    START_FAILED        The replacement could not be started; the old container is kept
    """

    FRESH = "fresh"
    STALE_BY_IMAGE = "stale_by_image"
    STALE_BY_DEPENDENCY = "stale_by_dependency"
    START_FAILED = "start_failed"


class Container:
    """
    Descriptor of one container for the duration of one update pass.

    A descriptor is a view onto state held by the container runtime: it owns no
    external resources. Apart from ``state`` it is not modified after enumeration.
    """

    def __init__(
        self,
        id: str,
        name: str,
        image_reference: str,
        image_id: Optional[str],
        links: Optional[List[str]] = None,
        labels: Optional[dict] = None,
        created: Optional[str] = None,
        is_self: bool = False,
        inspect_data: Optional[dict] = None,
    ):
        self.id = id
        self.name = name
        self.image_reference = image_reference
        self.image_id = image_id
        self.links = list(links or [])
        self.labels = dict(labels or {})
        self.created = created
        self._is_self = is_self
        self.inspect_data = inspect_data or {}
        self.state = UpdateState.FRESH

    @classmethod
    def from_docker(cls, docker_container, is_self=False):
        """
        Build a descriptor from a docker-py container object.

        Parameters:
            docker_container: docker.models.containers.Container
            is_self (bool): Whether the container runs deckhand itself

        Returns:
            Container: The descriptor
        """
        attrs = docker_container.attrs
        config = attrs.get("Config") or {}
        labels = config.get("Labels") or {}

        return cls(
            id=docker_container.id,
            name=attrs.get("Name", docker_container.name or "").lstrip("/"),
            image_reference=config.get("Image"),
            image_id=attrs.get("Image"),
            links=parse_links((attrs.get("HostConfig") or {}).get("Links")),
            labels=labels,
            created=attrs.get("Created"),
            is_self=is_self or str(labels.get(SELF_LABEL, "")).lower() == "true",
            inspect_data=attrs,
        )

    @property
    def stale(self) -> bool:
        return self.state in (UpdateState.STALE_BY_IMAGE, UpdateState.STALE_BY_DEPENDENCY)

    def is_self(self) -> bool:
        return self._is_self

    def stop_signal(self) -> Optional[str]:
        return self.labels.get(STOP_SIGNAL_LABEL) or None

    def is_enabled(self) -> bool:
        return str(self.labels.get(ENABLE_LABEL, "")).lower() == "true"

    def __repr__(self):
        return f"Container(name={self.name!r}, id={self.id[:12]!r}, state={self.state.value})"


def parse_links(host_config_links):
    """
    Extract the names of linked containers from HostConfig.Links.

    Docker reports links as "/<linked name>:/<container name>/<alias>"; only the
    linked container's name is kept, in the original order and without duplicates.

    Parameters:
        host_config_links (list or None): Raw HostConfig.Links value

    Returns:
        list: Names of the containers this container depends on
    """
    names = []
    for link in host_config_links or []:
        name = link.split(":", 1)[0].lstrip("/")
        if name and name not in names:
            names.append(name)
    return names
