"""
Unit tests for common utility functions.
"""

import logging
import os
from unittest.mock import Mock, patch

import docker
import pytest

from deckhand.utils.common import (
    RANDOM_NAME_LENGTH,
    RANDOM_NAME_LETTERS,
    get_docker_host_hostname,
    get_random_name,
    parse_duration,
    setup_logging,
)


class TestParseDuration:
    """Test duration parsing functionality."""

    def test_parse_duration_seconds(self):
        """Test parsing seconds."""
        assert parse_duration("30s", "s") == 30
        assert parse_duration("30s", "m") == 0.5
        assert parse_duration("30s", "h") == 1 / 120
        # Default return unit is minutes
        assert parse_duration("30s") == 0.5

    def test_parse_duration_minutes(self):
        """Test parsing minutes."""
        assert parse_duration("30m") == 30
        assert parse_duration("30m", "s") == 1800
        assert parse_duration("30m", "h") == 0.5

    def test_parse_duration_hours_and_days(self):
        assert parse_duration("2h", "s") == 7200
        assert parse_duration("1d", "h") == 24

    def test_parse_duration_invalid(self):
        """Test parsing invalid durations."""
        with pytest.raises(ValueError):
            parse_duration("invalid")
        with pytest.raises(ValueError):
            parse_duration("30")
        with pytest.raises(ValueError):
            parse_duration("30x")


class TestGetRandomName:
    """Test generation of temporary container names."""

    def test_alphabet(self):
        assert len(RANDOM_NAME_LETTERS) == 52
        assert set(RANDOM_NAME_LETTERS) == set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")

    def test_length_and_letters(self):
        for _ in range(20):
            name = get_random_name()
            assert len(name) == RANDOM_NAME_LENGTH == 32
            assert all(c in RANDOM_NAME_LETTERS for c in name)

    def test_names_differ(self):
        assert len({get_random_name() for _ in range(50)}) == 50


class TestGetDockerHostHostname:
    """Test hostname detection for reports."""

    def test_from_daemon_info(self):
        client = Mock()
        client.info.return_value = {"Name": "docker-host-01"}
        with patch("deckhand.utils.common.docker.from_env", return_value=client):
            assert get_docker_host_hostname() == "docker-host-01"

    def test_from_environment(self):
        with patch("deckhand.utils.common.docker.from_env", side_effect=docker.errors.DockerException("no daemon")), \
                patch.dict(os.environ, {"DOCKER_HOST_HOSTNAME": "host-from-env"}):
            assert get_docker_host_hostname() == "host-from-env"


class TestSetupLogging:
    """Test logging setup."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_file_and_console_handlers(self, tmp_path):
        log_file = tmp_path / "deckhand.log"

        setup_logging(log_level="debug", log_file_path=str(log_file))
        logging.getLogger("deckhand.test").info("hello", extra={"indent": 4})

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        for handler in root.handlers:
            handler.flush()
        assert "    hello" in log_file.read_text()

    def test_invalid_level_falls_back_to_info(self, tmp_path):
        setup_logging(log_level="verbose", log_file_path=str(tmp_path / "deckhand.log"))
        assert logging.getLogger().level == logging.INFO
