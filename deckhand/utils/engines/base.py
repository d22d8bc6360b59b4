from abc import ABC, abstractmethod


class ContainerClient(ABC):
    """
    Abstract base class for container engine clients.

    This is the set of operations an update pass needs from the container runtime.
    Every method raises an exception on failure; none of them retries.
    """

    @abstractmethod
    def list_containers(self, container_filter):
        """
        List running containers accepted by the filter.

        Parameters:
            container_filter (callable): Predicate taking a Container and returning bool

        Returns:
            list: Container descriptors in enumeration order
        """

    @abstractmethod
    def is_container_stale(self, container):
        """
        Check whether a newer image is available for the container's image reference.

        Returns:
            bool: True if the image bound to the container is outdated
        """

    @abstractmethod
    def rename_container(self, container, new_name):
        pass

    @abstractmethod
    def start_container(self, container, start_timeout):
        """
        Start a replacement for the container from its refreshed image.

        The new container inherits the configuration of the old one and is created
        under the container's original name.

        Parameters:
            container (Container): Descriptor of the container being replaced
            start_timeout (float): Seconds the new container gets to reach "running"
        """

    @abstractmethod
    def stop_container(self, container, stop_timeout):
        """
        Stop and remove the container.

        Parameters:
            container (Container): Descriptor of the container to stop
            stop_timeout (float): Seconds to wait before the container is killed
        """

    @abstractmethod
    def remove_image(self, container):
        """Remove the image the container was originally started from."""
