from . import docker
from .base import ContainerClient


def get_client(no_pull=False):
    """
    Get the container engine client.

    This function provides a unified interface to get the appropriate
    container engine client. Currently supports Docker engine.

    Parameters:
        no_pull (bool): Compare against local images instead of pulling

    Returns:
        ContainerClient instance or None if connection fails
    """
    engine = "docker"

    if engine == "docker":
        return docker.get_client(no_pull=no_pull)
