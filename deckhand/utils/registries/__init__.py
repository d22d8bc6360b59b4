#!/usr/bin/env python3
# -*- coding: utf-8 -*-

DEFAULT_REGISTRY = "docker.io"


def parse_image_reference(image_reference):
    """
    Split an image reference into registry, repository and tag or digest.

    Examples:
        "nginx"                         -> ("docker.io", "library/nginx", "latest")
        "myorg/app:1.2"                 -> ("docker.io", "myorg/app", "1.2")
        "ghcr.io/org/app@sha256:abc"    -> ("ghcr.io", "org/app", "sha256:abc")
        "localhost:5000/app:dev"        -> ("localhost:5000", "app", "dev")

    Parameters:
        image_reference (str): Image reference as used to start a container

    Returns:
        tuple: (registry, repository, tag_or_digest)
    """
    if "@" in image_reference:
        path, tag_or_digest = image_reference.split("@", 1)
    else:
        path, tag_or_digest = image_reference, None
        last_part = image_reference.rsplit("/", 1)[-1]
        if ":" in last_part:
            path, tag_or_digest = image_reference.rsplit(":", 1)

    parts = path.split("/")
    if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        registry = parts[0]
        repository = "/".join(parts[1:])
    else:
        registry = DEFAULT_REGISTRY
        repository = path if len(parts) > 1 else f"library/{path}"

    return registry, repository, tag_or_digest or "latest"
