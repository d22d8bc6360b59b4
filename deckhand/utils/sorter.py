#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging

logging = logging.getLogger(__name__)


class CyclicDependencyError(ValueError):
    """Raised when container links form a cycle."""

    def __init__(self, names):
        self.names = list(names)
        super().__init__(f"Circular reference to container '{self.names[-1]}' ({' -> '.join(self.names)})")


def sort_by_dependencies(containers):
    """
    Sort containers so that every container comes after the containers it links to.

    The sort is a depth-first walk over the links in enumeration order, so containers
    without a dependency relationship keep their original relative order. Links to
    containers that are not part of the given list are ignored.

    Parameters:
        containers (list): Container descriptors in enumeration order

    Returns:
        list: The same descriptors in dependency order (dependencies first)

    Raises:
        CyclicDependencyError: If the links between the containers form a cycle
    """
    by_name = {container.name: container for container in containers}
    sorted_containers = []
    done = set()
    path = []

    def visit(container):
        if container.name in done:
            return
        if container.name in path:
            raise CyclicDependencyError(path[path.index(container.name):] + [container.name])

        path.append(container.name)
        for link in container.links:
            child = by_name.get(link)
            if child is None:
                logging.debug(f"Ignoring link from '{container.name}' to '{link}' (not in scope)", extra={"indent": 2})
                continue
            visit(child)
        path.pop()

        done.add(container.name)
        sorted_containers.append(container)

    for container in containers:
        visit(container)

    logging.debug(f"Dependency order: {[c.name for c in sorted_containers]}", extra={"indent": 2})
    return sorted_containers
