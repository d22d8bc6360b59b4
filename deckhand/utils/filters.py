#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import fnmatch
import logging

logging = logging.getLogger(__name__)


def no_filter(container):
    """Accept every container."""
    return True


def name_matches(name, pattern):
    """
    Match a container name against a pattern.

    If wildcards (*, ?) are used, pattern matching is applied; otherwise the name
    has to match exactly.
    """
    if any(x in pattern for x in ["*", "?"]):
        return fnmatch.fnmatch(name, pattern)
    return name == pattern


def filter_by_names(patterns, base_filter=no_filter):
    """
    Build a filter accepting containers whose name matches one of the patterns.

    An empty pattern list accepts every container accepted by base_filter.
    """
    patterns = list(patterns or [])
    if not patterns:
        return base_filter

    def container_filter(container):
        return base_filter(container) and any(name_matches(container.name, p) for p in patterns)

    return container_filter


def filter_by_enable_label(base_filter=no_filter):
    """Build a filter accepting only containers labelled io.deckhand.enable=true."""

    def container_filter(container):
        return base_filter(container) and container.is_enabled()

    return container_filter


def build_filter(names=None, label_enable=False):
    """
    Combine name and label filtering into a single predicate.

    Parameters:
        names (list): Container name patterns; empty means all containers
        label_enable (bool): Only accept containers that opted in via label

    Returns:
        callable: Predicate taking a Container and returning bool
    """
    container_filter = no_filter
    if label_enable:
        container_filter = filter_by_enable_label(container_filter)
    return filter_by_names(names, container_filter)


def parse_filter_args(filters):
    """
    Parse --filter expressions into name patterns and the label flag.

    Supported expressions are "name=<pattern>" (repeatable) and
    "label=io.deckhand.enable". Malformed or unsupported expressions are logged
    and ignored.

    Parameters:
        filters (list): Raw filter expressions from the command line

    Returns:
        tuple: (list of name patterns, label_enable)
    """
    names = []
    label_enable = False

    for f in filters or []:
        if "=" not in f:
            logging.warning(f"Ignoring malformed filter: {f}", extra={"indent": 2})
            continue
        key, value = f.split("=", 1)

        if key == "name":
            names.append(value)
        elif key == "label" and value == "io.deckhand.enable":
            label_enable = True
        else:
            logging.warning(f"Unsupported filter: {f}", extra={"indent": 2})

    return names, label_enable
