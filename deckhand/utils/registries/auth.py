#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import logging
import os
from typing import Dict, Optional
from urllib.parse import urlparse

from ..config import config

logging = logging.getLogger(__name__)


class RegistryAuthManager:
    """
    Manages authentication credentials used when pulling images.

    Supports two levels, repository credentials taking precedence:
    - Registry-level: Credentials for entire registries (e.g., "ghcr.io")
    - Repository-level: Specific credentials for individual repositories (e.g., "myorg/app")

    Credentials file format:
    {
        "registries": {
            "docker.io": {
                "username": "default_user",
                "password": "default_password"
            },
            "https://ghcr.io/v2": {
                "token": "ghp_xxx"
            }
        },
        "repositories": {
            "myorg/private-repo": {
                "username": "specific_user",
                "password": "specific_password"
            }
        }
    }
    """

    def __init__(self, credentials_file: Optional[str] = None):
        self._credentials_file = credentials_file
        self._registry_credentials = {}
        self._repository_credentials = {}
        self.load_credentials()

    @property
    def enabled(self) -> bool:
        return self._credentials_file is not None or bool(config.registryAuth.enabled)

    def load_credentials(self):
        """
        Load credentials from the configured JSON file.

        Missing or unreadable files are logged and result in anonymous pulls.
        """
        self._registry_credentials = {}
        self._repository_credentials = {}
        if not self.enabled:
            logging.debug("Registry authentication is disabled", extra={"indent": 2})
            return

        credentials_file = self._credentials_file or config.registryAuth.credentialsFile
        if not os.path.exists(credentials_file):
            logging.warning(f"Credentials file not found: {credentials_file}", extra={"indent": 2})
            return

        try:
            with open(credentials_file, 'r') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                logging.error(f"Invalid credentials file format: expected dict, got {type(data)}", extra={"indent": 2})
                return

            self._registry_credentials = {
                self.normalize_registry(registry): creds
                for registry, creds in (data.get("registries", {}) or {}).items()
            }
            self._repository_credentials = data.get("repositories", {}) or {}
            logging.debug(f"Loaded {len(self._registry_credentials)} registry and {len(self._repository_credentials)} repository credentials", extra={"indent": 2})

        except (json.JSONDecodeError, IOError) as e:
            logging.error(f"Failed to load credentials from {credentials_file}: {e}", extra={"indent": 2})
            self._registry_credentials = {}
            self._repository_credentials = {}

    def get_credentials(self, registry: str, repository_name: Optional[str] = None) -> Optional[Dict[str, str]]:
        """
        Get credentials for a registry and optionally a specific repository.

        Priority order:
        1. Repository-specific credentials (if repository_name provided)
        2. Registry-level credentials
        3. None (anonymous access)

        Parameters:
            registry (str): Registry host or URL (e.g., "ghcr.io", "https://ghcr.io/v2")
            repository_name (str, optional): Repository name (e.g., "myorg/app")

        Returns:
            dict or None: Credentials or None if not found
        """
        if not self.enabled:
            return None

        if repository_name and repository_name in self._repository_credentials:
            logging.debug(f"Found repository-specific credentials for: {repository_name}", extra={"indent": 2})
            return self._repository_credentials[repository_name]

        normalized = self.normalize_registry(registry)
        if normalized in self._registry_credentials:
            logging.debug(f"Using registry-level credentials for: {registry}", extra={"indent": 2})
            return self._registry_credentials[normalized]

        logging.debug(f"No credentials found for registry: {registry}, repository: {repository_name}", extra={"indent": 2})
        return None

    def get_auth_config(self, registry: str, repository_name: Optional[str] = None) -> Optional[Dict[str, str]]:
        """
        Get an auth_config dictionary as accepted by docker-py's images.pull().

        GHCR credentials consisting of a token only are sent with a placeholder
        username, other registries need username and password (or token).

        Returns:
            dict or None: {"username": ..., "password": ...} or None for anonymous pulls
        """
        credentials = self.get_credentials(registry, repository_name)
        if not credentials:
            return None

        username = credentials.get("username")
        password = credentials.get("password") or credentials.get("token")
        if not username and credentials.get("token") and "ghcr.io" in registry:
            username = "oauth2accesstoken"

        if username and password:
            return {"username": username, "password": password}

        logging.debug(f"Incomplete credentials for registry {registry} - missing username or password", extra={"indent": 2})
        return None

    @staticmethod
    def normalize_registry(registry: str) -> str:
        """
        Reduce a registry URL or host to its host name ("https://ghcr.io/v2/" -> "ghcr.io").
        """
        registry = registry.strip()
        if "://" in registry:
            registry = urlparse(registry).netloc
        registry = registry.split("/", 1)[0].lower()
        if registry in ("registry.hub.docker.com", "index.docker.io", "registry-1.docker.io"):
            return "docker.io"
        return registry


# Global instance
auth_manager = RegistryAuthManager()


def get_auth_config(registry: str, repository_name: Optional[str] = None) -> Optional[Dict[str, str]]:
    """
    Convenience function to get the pull auth config for a registry and repository.
    """
    return auth_manager.get_auth_config(registry, repository_name)
