#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging
import os
import random
import re
import socket
import string
import sys
from logging.handlers import RotatingFileHandler

import docker

# Alphabet and length of the temporary names given to containers that are about to be replaced
RANDOM_NAME_LETTERS = string.ascii_lowercase + string.ascii_uppercase
RANDOM_NAME_LENGTH = 32


def setup_logging(log_level: str = "info", log_file_path: str = "/app/logs/deckhand.log") -> None:
    """
    Set up global logging configuration for the application.

    This function configures:
    - Console output (stdout) with optional indentation
    - Rotating file logging
    - Dynamic formatting with module/function location (DEBUG only)
    - Suppression of noisy third-party logs (Docker, urllib3)

    The formatter supports an `indent` field in log records, which can be used
    to visually indent hierarchical output.

    Parameters:
        log_level (str): Logging level as string ("debug", "info", "warning", etc.).
                         Defaults to "info". If invalid, falls back to INFO.
        log_file_path (str): Absolute path to the log file. Default is
                             "/app/logs/deckhand.log".
    """
    log_level = getattr(logging, log_level.upper(), logging.INFO)

    class IndentFormatter(logging.Formatter):
        def format(self, record):
            # Every handler formats the same record, so work on a copy
            record = logging.makeLogRecord(record.__dict__)
            indent_spaces = " " * getattr(record, "indent", 0)
            record.msg = indent_spaces + str(record.msg).replace("\n", "\n" + indent_spaces)

            # Build relative module path + function name
            rel_path = os.path.relpath(record.pathname).replace(os.sep, ".")
            if rel_path.endswith(".py"):
                rel_path = rel_path[:-3]

            location = f"{rel_path}.{record.funcName}"
            record.location = f"{f'[{location}]':<64}"
            return super().format(record)

    if log_level == logging.DEBUG:
        formatter = IndentFormatter("%(asctime)s %(levelname)-8s %(location)s %(message)s")
    else:
        formatter = IndentFormatter("%(asctime)s %(levelname)-8s %(message)s")

    logger = logging.getLogger()
    logger.setLevel(log_level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_dir = os.path.dirname(log_file_path)

    # If we can't write to the default directory, use a local one
    if log_dir and not os.access(log_dir, os.W_OK):
        log_dir = "./logs"
        log_file_path = os.path.join(log_dir, "deckhand.log")

    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file_path,
        maxBytes=(20 * 1024 * 1024) if log_level == logging.DEBUG else (5 * 1024 * 1024),  # 20 MB in debug mode, 5 MB in others
        backupCount=(20 if log_level == logging.DEBUG else 10),
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Suppress verbose Docker/urllib3 logs unless explicitly debugging
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)


def get_docker_host_hostname() -> str:
    """
    Get the hostname of the Docker host from within a container.

    Tries the Docker daemon info first, then the DOCKER_HOST_HOSTNAME and HOSTNAME
    environment variables, and finally falls back to the local hostname.

    Returns:
        str: The hostname of the Docker host, or container hostname as fallback
    """
    logging.debug("Trying to determine hostname", extra={"indent": 0})

    try:
        client = docker.from_env()
        hostname = client.info().get('Name')
        if hostname and hostname != "docker-desktop":
            logging.debug(f"Found Docker host hostname from daemon info: {hostname}", extra={"indent": 2})
            return hostname
    except docker.errors.DockerException as e:
        logging.debug(f"Could not get hostname from Docker daemon info: {e}", extra={"indent": 2})

    hostname = os.environ.get('DOCKER_HOST_HOSTNAME') or os.environ.get('HOSTNAME')
    if hostname:
        logging.debug(f"Found Docker host hostname from environment: {hostname}", extra={"indent": 2})
        return hostname

    fallback_hostname = socket.gethostname()
    logging.debug(f"Using fallback hostname: {fallback_hostname}", extra={"indent": 2})
    return fallback_hostname


def parse_duration(duration_str, return_unit="m"):
    """
    Converts duration strings like '10m', '2h', '1d' into desired unit.

    Parameters:
        duration_str (str): Duration string (e.g., "10m", "2h", "1d")
        return_unit (str): Target unit for conversion ("s", "m", "h", "d")

    Returns:
        float: Duration converted to the specified unit

    Raises:
        ValueError: If the duration string format is invalid
    """
    match = re.match(r"^(\d+)([smhd])$", duration_str)
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value, unit = match.groups()
    value = int(value)

    # duration in seconds
    seconds = {"s": value, "m": value * 60, "h": value * 3600, "d": value * 86400}[unit]

    # convert to requested unit
    return {"s": seconds, "m": seconds / 60, "h": seconds / 3600, "d": seconds / 86400}[return_unit]


def get_random_name():
    """
    Generates a random, Docker-compatible container name.

    The name is used to move an outdated container out of the way while its
    replacement is started under the original name. It consists of 32 letters
    drawn from a-z and A-Z, so collisions with existing names are not checked.

    Returns:
        str: Random container name (e.g., "qXfTbKzLmwPaRcdEhUyvNoJsGiBtWlAe")
    """
    return "".join(random.choice(RANDOM_NAME_LETTERS) for _ in range(RANDOM_NAME_LENGTH))
