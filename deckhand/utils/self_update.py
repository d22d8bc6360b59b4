#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging

logging = logging.getLogger(__name__)


def is_updater_instance(container):
    """Filter accepting containers that run deckhand."""
    return container.is_self()


def stop_previous_instances(client, cleanup=False, stop_timeout=10):
    """
    Stop every deckhand instance except the newest one.

    When deckhand updates itself, the new instance is started next to the old one
    and the old one is left running. The new instance calls this on startup to
    take over: all instances but the most recently created are stopped, and their
    images are removed if cleanup is enabled. Failures are logged and do not stop
    the remaining instances from being processed.

    Parameters:
        client (ContainerClient): Container engine client
        cleanup (bool): Remove the images of the stopped instances
        stop_timeout (float): Seconds an instance gets to stop before it is killed

    Returns:
        list: Descriptors of the instances that were stopped
    """
    instances = client.list_containers(is_updater_instance)
    if len(instances) <= 1:
        logging.debug("No previous deckhand instances found", extra={"indent": 0})
        return []

    # ISO 8601 timestamps from the engine sort chronologically
    instances = sorted(instances, key=lambda c: c.created or "")
    newest = instances[-1]
    logging.info(
        f"Found {len(instances) - 1} previous deckhand instance{'s' if len(instances) > 2 else ''}, keeping '{newest.name}'",
        extra={"indent": 0},
    )

    stopped = []
    for container in instances[:-1]:
        logging.info(f"Stopping previous instance '{container.name}' ({container.id[:12]})", extra={"indent": 2})
        try:
            client.stop_container(container, stop_timeout)
        except Exception as e:
            logging.error(f"Failed to stop previous instance '{container.name}': {e}", extra={"indent": 4})
            continue
        stopped.append(container)

        if cleanup:
            logging.info(f"Removing image '{container.image_id}'", extra={"indent": 2})
            try:
                client.remove_image(container)
            except Exception as e:
                logging.error(f"Failed to remove image '{container.image_id}': {e}", extra={"indent": 4})

    return stopped
