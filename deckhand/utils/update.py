#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging

from .common import get_random_name
from .container import UpdateState
from .sorter import sort_by_dependencies

logging = logging.getLogger(__name__)


def update(client, container_filter, cleanup=False, no_restart=False, start_timeout=60, stop_timeout=10, notification_manager=None):
    """
    Replace every container whose image has been updated.

    One update pass works on a single snapshot of the containers accepted by the
    filter:
    1. Every container is checked for a newer image
    2. Containers are sorted so that linked containers come before their dependents
    3. Containers linking to an outdated container are marked outdated as well
    4. Replacements are started in dependency order; to avoid naming conflicts the
       old container is renamed to a random name beforehand
    5. Replaced containers are stopped in reverse dependency order, optionally
       removing their old images

    Failures of individual containers are logged and do not stop the pass. A
    container whose replacement could not be started is restored to its original
    name and left running.

    Parameters:
        client (ContainerClient): Container engine client
        container_filter (callable): Predicate selecting the containers to consider
        cleanup (bool): Remove the old image after a container has been stopped
        no_restart (bool): Only start a replacement for deckhand itself
        start_timeout (float): Seconds a replacement gets to reach the running state
        stop_timeout (float): Seconds an old container gets to stop before it is killed
        notification_manager (NotificationManager, optional): Collects statistics for the update report

    Returns:
        list: Container descriptors in dependency order with their final update state

    Raises:
        CyclicDependencyError: If the links between the containers form a cycle
        Exception: Any error raised by the client while listing containers
    """
    logging.debug("Checking containers for updated images", extra={"indent": 0})

    containers = client.list_containers(container_filter)
    logging.info(f"Found {len(containers)} container{'s' if len(containers) != 1 else ''} to check", extra={"indent": 0})

    for container in containers:
        try:
            stale = client.is_container_stale(container)
        except Exception as e:
            logging.info(f"Unable to update container '{container.name}': {e}. Proceeding to next.", extra={"indent": 2})
            if notification_manager:
                notification_manager.add_warning(f"Unable to check container '{container.name}' for updates: {e}")
            stale = False
        container.state = UpdateState.STALE_BY_IMAGE if stale else UpdateState.FRESH
        logging.debug(f"Container '{container.name}' is {'stale' if stale else 'fresh'}", extra={"indent": 2})

    containers = sort_by_dependencies(containers)

    propagate_staleness(containers)

    if notification_manager:
        notification_manager.set_scanned(len(containers), len([c for c in containers if c.stale]))

    start_replacements(client, containers, no_restart, start_timeout, notification_manager)
    stop_replaced(client, containers, cleanup, stop_timeout, notification_manager, no_restart=no_restart)

    return containers


def propagate_staleness(containers):
    """
    Mark every fresh container that links to a stale container as stale.

    Recreating a container changes what its dependents are linked to, so the
    dependents have to be recreated too. Sweeps are repeated until nothing changes,
    which covers chains of any length independent of the list order.

    Parameters:
        containers (list): Container descriptors of one update pass
    """
    by_name = {container.name: container for container in containers}

    changed = True
    while changed:
        changed = False
        for parent in containers:
            if parent.state != UpdateState.FRESH:
                continue
            for link in parent.links:
                child = by_name.get(link)
                if child is not None and child.stale:
                    logging.info(
                        f"Container '{parent.name}' will be recreated because linked container '{child.name}' is stale",
                        extra={"indent": 2},
                    )
                    parent.state = UpdateState.STALE_BY_DEPENDENCY
                    changed = True
                    break


def start_replacements(client, containers, no_restart, start_timeout, notification_manager=None):
    """
    Start new versions of the stale containers, in the given (dependency) order.

    To prevent naming conflicts with the existing container, the running version is
    renamed to a random name beforehand. If the new container can't be started, the
    old container gets its name back and is marked so that it isn't stopped later.
    """
    for container in containers:
        if not container.stale:
            continue

        if no_restart and not container.is_self():
            logging.debug(f"Not restarting container '{container.name}' (restarts disabled)", extra={"indent": 2})
            continue

        original_name = container.name
        temporary_name = get_random_name()

        logging.info(f"Renaming container '{original_name}' to '{temporary_name}'", extra={"indent": 2})
        try:
            client.rename_container(container, temporary_name)
        except Exception as e:
            error_msg = f"Failed to rename container '{original_name}': {e}"
            logging.error(error_msg, extra={"indent": 4})
            container.state = UpdateState.START_FAILED
            _report_failure(notification_manager, container, error_msg)
            continue

        logging.info(f"Starting new container '{original_name}' with image '{container.image_reference}'", extra={"indent": 2})
        try:
            client.start_container(container, start_timeout)
        except Exception as e:
            error_msg = f"Failed to start new container '{original_name}': {e}"
            logging.error(error_msg, extra={"indent": 4})
            container.state = UpdateState.START_FAILED
            _report_failure(notification_manager, container, error_msg)

            logging.info(f"Renaming container '{temporary_name}' back to '{original_name}'", extra={"indent": 4})
            try:
                client.rename_container(container, original_name)
            except Exception as rename_error:
                logging.error(
                    f"Failed to rename container '{temporary_name}' back to '{original_name}': {rename_error}",
                    extra={"indent": 6},
                )
            continue

        if container.is_self() and notification_manager:
            # The old instance is stopped by the new one, not by this pass
            notification_manager.add_update_detail(container.name, container.image_reference, container.state.value)


def stop_replaced(client, containers, cleanup, stop_timeout, notification_manager=None, no_restart=False):
    """
    Stop the replaced containers in reverse dependency order, removing images as we go.

    Containers whose replacement failed are no longer marked stale at this point, so
    they are left running. deckhand never stops its own container. With no_restart
    the stale containers are stopped without a replacement and reported as stopped.
    """
    for container in reversed(containers):
        if container.is_self():
            continue

        if not container.stale:
            continue

        logging.info(f"Stopping old container '{container.name}' ({container.id[:12]})", extra={"indent": 2})
        try:
            client.stop_container(container, stop_timeout)
        except Exception as e:
            error_msg = f"Failed to stop container '{container.name}': {e}"
            logging.error(error_msg, extra={"indent": 4})
            _report_failure(notification_manager, container, error_msg)
            continue

        if notification_manager:
            status = "stopped" if no_restart else "succeeded"
            notification_manager.add_update_detail(container.name, container.image_reference, container.state.value, status=status)

        if cleanup:
            logging.info(f"Removing old image '{container.image_id}'", extra={"indent": 2})
            try:
                client.remove_image(container)
            except Exception as e:
                logging.error(f"Failed to remove image '{container.image_id}': {e}", extra={"indent": 4})
                if notification_manager:
                    notification_manager.add_warning(f"Failed to remove image of container '{container.name}': {e}")


def _report_failure(notification_manager, container, error_msg):
    if notification_manager:
        notification_manager.add_update_detail(container.name, container.image_reference, container.state.value, status="failed")
        notification_manager.add_error(error_msg)
