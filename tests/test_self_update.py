"""
Unit tests for taking over from previous deckhand instances.
"""

from conftest import FakeClient
from deckhand.utils.self_update import stop_previous_instances


def instance(name, created):
    return {"name": name, "is_self": True, "created": created}


class TestStopPreviousInstances:
    """Test stopping of older deckhand containers."""

    def test_single_instance(self):
        client = FakeClient([instance("deckhand", "2024-01-01T12:00:00Z"), {"name": "web"}])

        assert stop_previous_instances(client) == []
        assert client.mutations == []

    def test_older_instances_are_stopped(self):
        client = FakeClient([
            instance("newest", "2024-03-01T12:00:00Z"),
            instance("oldest", "2024-01-01T12:00:00Z"),
            instance("older", "2024-02-01T12:00:00Z"),
            {"name": "web"},
        ])

        stopped = stop_previous_instances(client, cleanup=True, stop_timeout=7)

        assert [c.name for c in stopped] == ["oldest", "older"]
        assert client.mutations == [
            ("stop", "oldest", 7),
            ("remove_image", "oldest"),
            ("stop", "older", 7),
            ("remove_image", "older"),
        ]

    def test_failures_are_logged(self):
        client = FakeClient(
            [
                instance("new", "2024-03-01T12:00:00Z"),
                instance("old1", "2024-01-01T12:00:00Z"),
                instance("old2", "2024-02-01T12:00:00Z"),
            ],
            stop_errors={"old1"},
            remove_image_errors={"old2"},
        )

        stopped = stop_previous_instances(client, cleanup=True)

        assert [c.name for c in stopped] == ["old2"]
        assert ("stop", "new", 10) not in client.mutations
