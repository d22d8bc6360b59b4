#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import logging
import os
import time

import docker
import requests
from docker import errors as docker_errors
from docker.types import Mount

from ..container import Container
from ..registries import parse_image_reference
from ..registries.auth import get_auth_config
from .base import ContainerClient

logging = logging.getLogger(__name__)

DOCKER_SOCKET_PATH = "/var/run/docker.sock"
START_CHECK_INTERVAL = 0.5


class DockerClient(ContainerClient):
    """
    Container client backed by the Docker engine API (docker-py).

    Parameters:
        client (docker.DockerClient): Connected docker-py client
        no_pull (bool): Compare against locally available images instead of pulling
    """

    def __init__(self, client, no_pull=False):
        self.client = client
        self.no_pull = no_pull

    def list_containers(self, container_filter):
        logging.debug("Retrieving container list", extra={"indent": 0})

        self_identifiers = get_self_identifiers()
        containers = []
        for docker_container in self.client.containers.list():
            container = Container.from_docker(
                docker_container,
                is_self=is_self_container(docker_container.name, docker_container.id, self_identifiers),
            )
            if container_filter(container):
                containers.append(container)

        logging.debug(f"Containers after filtering: {[c.name for c in containers]}", extra={"indent": 2})
        return containers

    def is_container_stale(self, container):
        image_reference = container.image_reference
        if not image_reference or image_reference.startswith("sha256:"):
            logging.debug(f"Container '{container.name}' was started from an image ID - nothing to update", extra={"indent": 4})
            return False

        # A digest always resolves to the same image, there is nothing to pull
        if not self.no_pull and "@" not in image_reference:
            self.pull_image(image_reference)

        latest_image = self.client.images.get(image_reference)
        stale = latest_image.id != container.image_id
        if stale:
            logging.info(f"Found new image '{image_reference}' ({latest_image.short_id}) for container '{container.name}'", extra={"indent": 2})
        return stale

    def pull_image(self, image_reference):
        """
        Pull an image using the credentials configured for its registry.

        Parameters:
            image_reference (str): Image to pull (e.g. 'ghcr.io/org/app:1.2.3')

        Returns:
            docker.models.images.Image: The pulled image
        """
        registry, repository, tag = parse_image_reference(image_reference)
        auth_config = get_auth_config(registry, repository)
        if not auth_config:
            logging.debug(f"No credentials found for registry {registry}, attempting anonymous pull", extra={"indent": 4})

        logging.debug(f"Pulling image '{image_reference}'", extra={"indent": 4})
        repository_path = image_reference.rsplit(":", 1)[0] if image_reference.endswith(f":{tag}") else image_reference
        image = self.client.images.pull(repository_path, tag=tag, auth_config=auth_config)
        logging.debug(f"Successfully pulled image '{image.short_id}'", extra={"indent": 6})
        return image

    def rename_container(self, container, new_name):
        self.client.api.rename(container.id, new_name)

    def start_container(self, container, start_timeout):
        image_inspect_data = None
        try:
            image_inspect_data = self.client.api.inspect_image(container.image_id)
        except docker_errors.DockerException as e:
            logging.warning(f"Could not inspect old image of '{container.name}', keeping all settings: {e}", extra={"indent": 4})

        spec, extra_networks = get_container_spec(
            self.client, container.inspect_data, container.name, container.image_reference, image_inspect_data
        )
        logging.debug(f"-> container spec:\n{json.dumps(spec, indent=4, default=str)}", extra={"indent": 4})

        response = self.client.api.create_container(**spec)
        new_id = response.get("Id")
        try:
            for network_name, endpoint in extra_networks.items():
                logging.debug(f"Connecting new container to network '{network_name}'", extra={"indent": 4})
                self.client.api.connect_container_to_network(
                    new_id,
                    network_name,
                    aliases=endpoint.get("Aliases"),
                )
            self.client.api.start(new_id)
            verify_container_start(self.client, new_id, container.name, start_timeout)
        except Exception:
            # Free the original name again so the old container can get it back
            try:
                self.client.api.remove_container(new_id, force=True)
            except docker_errors.DockerException as e:
                logging.error(f"Failed to remove new container '{new_id[:12]}': {e}", extra={"indent": 4})
            raise

        logging.info(f"Started new container '{container.name}' ({new_id[:12]})", extra={"indent": 4})
        return new_id

    def stop_container(self, container, stop_timeout):
        signal = container.stop_signal() or "SIGTERM"
        docker_container = self.client.containers.get(container.id)

        if docker_container.status == "running":
            logging.debug(f"Sending {signal} to container '{container.name}'", extra={"indent": 4})
            docker_container.kill(signal=signal)
            try:
                docker_container.wait(timeout=stop_timeout)
            except (requests.exceptions.ReadTimeout, requests.exceptions.ConnectionError):
                logging.info(f"Container '{container.name}' did not stop within {stop_timeout}s, killing it", extra={"indent": 4})
                docker_container.kill()

        if (container.inspect_data.get("HostConfig") or {}).get("AutoRemove"):
            logging.debug(f"Container '{container.name}' is removed by the engine (auto remove)", extra={"indent": 4})
            return

        logging.debug(f"Removing container '{container.id[:12]}'", extra={"indent": 4})
        docker_container.remove(force=True)

    def remove_image(self, container):
        self.client.images.remove(image=container.image_id, force=True)


def get_client(no_pull=False):
    """
    Returns a deckhand Docker client.

    Performs the necessary checks for Docker socket availability and permissions
    and logs troubleshooting guidance if the connection fails.

    Parameters:
        no_pull (bool): Compare against local images instead of pulling

    Returns:
        DockerClient or None if connection fails
    """
    # A remote daemon configured via DOCKER_HOST does not need the local socket
    if not os.environ.get("DOCKER_HOST"):
        if not os.path.exists(DOCKER_SOCKET_PATH):
            logging.error(f"Docker socket not found at {DOCKER_SOCKET_PATH}")
            logging.error("To fix this issue:")
            logging.error("1. Ensure Docker daemon is running")
            logging.error("2. Mount the Docker socket when running the container:")
            logging.error("   docker run -v /var/run/docker.sock:/var/run/docker.sock deckhand/deckhand:latest")
            logging.error("3. Or set DOCKER_HOST to point to the daemon")
            return None

        if not os.access(DOCKER_SOCKET_PATH, os.R_OK | os.W_OK):
            logging.error(f"No read/write access to Docker socket at {DOCKER_SOCKET_PATH}")
            logging.error("To fix this issue:")
            logging.error("1. Run the container with proper permissions")
            logging.error("2. Or add your user to the docker group on the host")
            return None

    try:
        return DockerClient(docker.from_env(), no_pull=no_pull)
    except docker_errors.DockerException as e:
        logging.error(f"Failed to connect to Docker daemon: {e}")
        logging.error("To fix this issue:")
        logging.error("1. Ensure Docker daemon is running")
        logging.error("2. Check Docker daemon logs: sudo journalctl -u docker")
        logging.error("3. Verify Docker socket permissions")
        return None


def filter_image_defaults(container_config, image_config):
    """
    Remove settings a container inherited from its image.

    Values that are identical to the old image's defaults are dropped so that the
    new image's defaults take effect in the replacement container. Only settings
    that were explicitly given when the container was created survive.

    Parameters:
        container_config (dict): "Config" section of the container inspect data
        image_config (dict): "Config" section of the old image inspect data

    Returns:
        dict: Copy of container_config without inherited values
    """
    config = dict(container_config)
    if not image_config:
        return config

    image_env = set(image_config.get("Env") or [])
    config["Env"] = [env for env in (config.get("Env") or []) if env not in image_env]

    image_labels = image_config.get("Labels") or {}
    config["Labels"] = {
        key: value for key, value in (config.get("Labels") or {}).items()
        if image_labels.get(key) != value
    }

    image_volumes = image_config.get("Volumes") or {}
    config["Volumes"] = {key: value for key, value in (config.get("Volumes") or {}).items() if key not in image_volumes}

    image_ports = image_config.get("ExposedPorts") or {}
    config["ExposedPorts"] = {key: value for key, value in (config.get("ExposedPorts") or {}).items() if key not in image_ports}

    for key in ["Cmd", "Entrypoint", "WorkingDir", "User", "Healthcheck"]:
        if config.get(key) == image_config.get(key):
            config[key] = None

    return config


def parse_link_aliases(host_config_links):
    """
    Convert HostConfig.Links ("/db:/web/database") into (name, alias) tuples.
    """
    links = []
    for link in host_config_links or []:
        name, _, target = link.partition(":")
        alias = target.rsplit("/", 1)[-1] if target else name.lstrip("/")
        links.append((name.lstrip("/"), alias))
    return links


def get_container_spec(client, container_inspect_data, container_name, image, image_inspect_data=None):
    """
    Generates a complete container configuration from an inspect payload.

    The result recreates the container with the same settings but a new image. At
    create time the engine accepts a single network; the remaining networks are
    returned separately and have to be connected before the container is started.

    Parameters:
        client: docker-py client instance
        container_inspect_data (dict): Output of docker inspect on the container
        container_name (str): Name to assign to the new container
        image (str): Image reference to use
        image_inspect_data (dict, optional): Inspect data of the old image

    Returns:
        tuple: (arguments for client.api.create_container(), {network: endpoint settings})
    """
    config = filter_image_defaults(
        container_inspect_data.get("Config") or {},
        (image_inspect_data or {}).get("Config") or {},
    )
    host_config = container_inspect_data.get("HostConfig") or {}
    mounts_raw = container_inspect_data.get("Mounts") or []

    mounts = []
    for m in sorted(mounts_raw, key=lambda x: x.get("Destination", "")):
        mount_type = m.get("Type")
        destination = m.get("Destination")
        if mount_type not in {"bind", "volume", "tmpfs"} or not destination:
            continue

        kwargs = {
            "target": destination,
            "type": mount_type,
            "read_only": not m.get("RW", True),
            "source": None,
        }

        if mount_type == "volume" and m.get("Name"):
            kwargs["source"] = m["Name"]
        elif m.get("Source"):
            kwargs["source"] = m["Source"]

        if m.get("Propagation"):
            kwargs["propagation"] = m["Propagation"]

        mounts.append(Mount(**kwargs))

    network_mode = host_config.get("NetworkMode")
    has_own_network = network_mode not in ["host", "none"] and not str(network_mode).startswith("container:")

    # Docker defaults the hostname to the short container ID, which must not carry over
    hostname = config.get("Hostname")
    if hostname and hostname == (container_inspect_data.get("Id") or "")[:12]:
        hostname = None

    host_config_clean = {
        "port_bindings": host_config.get("PortBindings") if has_own_network else None,
        "publish_all_ports": host_config.get("PublishAllPorts", False),
        "restart_policy": host_config.get("RestartPolicy"),
        "devices": host_config.get("Devices"),
        "cap_add": host_config.get("CapAdd"),
        "cap_drop": host_config.get("CapDrop"),
        "dns": host_config.get("Dns"),
        "extra_hosts": host_config.get("ExtraHosts"),
        "links": parse_link_aliases(host_config.get("Links")) or None,
        "log_config": host_config.get("LogConfig"),
        "network_mode": network_mode,
        "privileged": host_config.get("Privileged", False),
        "read_only": host_config.get("ReadonlyRootfs", False),
        "security_opt": host_config.get("SecurityOpt"),
        "ulimits": host_config.get("Ulimits"),
        "volumes_from": host_config.get("VolumesFrom"),
        "auto_remove": host_config.get("AutoRemove", False),
        "mounts": mounts,
    }

    networks = container_inspect_data.get("NetworkSettings", {}).get("Networks") or {}
    endpoints = {
        name: {"Aliases": settings.get("Aliases")}
        for name, settings in networks.items()
    } if has_own_network else {}

    spec = {
        "name": container_name,
        "image": image,
        "host_config": client.api.create_host_config(**{k: v for k, v in host_config_clean.items() if v is not None}),
    }

    extra_networks = {}
    if endpoints:
        primary = network_mode if network_mode in endpoints else next(iter(endpoints))
        spec["networking_config"] = client.api.create_networking_config(
            {primary: client.api.create_endpoint_config(aliases=endpoints[primary]["Aliases"])}
        )
        extra_networks = {name: endpoint for name, endpoint in endpoints.items() if name != primary}

    optional_keys = {
        "command": config.get("Cmd"),
        "entrypoint": config.get("Entrypoint"),
        "environment": config.get("Env"),
        "working_dir": config.get("WorkingDir"),
        "hostname": hostname if has_own_network else None,
        "user": config.get("User"),
        "stdin_open": config.get("OpenStdin"),
        "tty": config.get("Tty"),
        "labels": config.get("Labels"),
        "volumes": list(config.get("Volumes") or {}) or None,
        "healthcheck": config.get("Healthcheck"),
        "ports": list(config.get("ExposedPorts") or {}) or None,
        "stop_signal": config.get("StopSignal"),
    }

    spec.update({k: v for k, v in optional_keys.items() if v})

    return spec, extra_networks


def verify_container_start(client, container_id, container_name, start_timeout):
    """
    Wait until a freshly started container reports the running state.

    Parameters:
        client: docker-py client instance
        container_id (str): ID of the new container
        container_name (str): Name used in messages
        start_timeout (float): Seconds to wait at most

    Raises:
        RuntimeError: If the container exits before reaching the running state
        TimeoutError: If the container is not running within start_timeout
    """
    deadline = time.monotonic() + start_timeout

    while True:
        state = client.api.inspect_container(container_id).get("State", {})
        status = state.get("Status")
        logging.debug(f"Container '{container_name}' status: {status}", extra={"indent": 6})

        if status == "running":
            return True
        if status in ("exited", "dead"):
            raise RuntimeError(f"Container '{container_name}' exited during startup (exit code {state.get('ExitCode')})")
        if time.monotonic() >= deadline:
            raise TimeoutError(f"Container '{container_name}' did not start within {start_timeout}s")

        time.sleep(START_CHECK_INTERVAL)


def get_self_identifiers():
    """
    Collect identifiers of the container this process runs in.

    Uses the HOSTNAME environment variable, the system hostname and the container
    IDs found in /proc/self/cgroup and /proc/1/cgroup.

    Returns:
        list: Possible identifiers (empty if not running inside a container)
    """
    if not os.path.exists("/.dockerenv"):
        return []

    possible_identifiers = []

    hostname = os.environ.get("HOSTNAME")
    if hostname:
        possible_identifiers.append(hostname.lstrip("/"))

    try:
        system_hostname = os.uname().nodename
        if system_hostname and system_hostname not in possible_identifiers:
            possible_identifiers.append(system_hostname.lstrip("/"))
    except OSError as e:
        logging.debug(f"Could not get system hostname: {e}", extra={"indent": 8})

    for cgroup_file in ["/proc/self/cgroup", "/proc/1/cgroup"]:
        try:
            with open(cgroup_file, "r") as f:
                for line in f:
                    if "docker" not in line and "containerd" not in line:
                        continue
                    # Format: 0::/system.slice/docker-<container_id>.scope
                    for part in line.strip().split("/"):
                        if part.startswith("docker-") and part.endswith(".scope"):
                            possible_identifiers.append(part[7:-6])
                            break
                        elif len(part) == 64 and all(c in "0123456789abcdef" for c in part):
                            possible_identifiers.append(part)
                            break
        except OSError as e:
            logging.debug(f"Could not read {cgroup_file}: {e}", extra={"indent": 8})

    logging.debug(f"Possible container identifiers: {possible_identifiers}", extra={"indent": 8})
    return possible_identifiers


def is_self_container(container_name, container_id, identifiers=None):
    """
    Check if the given container is the deckhand container itself.

    Parameters:
        container_name (str): Name of the container to check
        container_id (str): ID of the container to check
        identifiers (list, optional): Precomputed result of get_self_identifiers()

    Returns:
        bool: True if this is the self container, False otherwise
    """
    if identifiers is None:
        identifiers = get_self_identifiers()

    for identifier in identifiers:
        if not identifier:
            continue
        if container_name == identifier or container_id == identifier:
            logging.debug(f"Self container detected: {container_name} matches {identifier}", extra={"indent": 8})
            return True
        # Hostnames default to the short container ID
        if container_id and container_id.startswith(identifier) and len(identifier) >= 12:
            logging.debug(f"Self container detected: {container_id} starts with {identifier}", extra={"indent": 8})
            return True

    return False
