from abc import ABC, abstractmethod
from typing import Any, Dict, List


class BaseNotifier(ABC):
    """
    Abstract base class for all notifiers.
    """
    def __init__(self, enabled: bool = True):
        """
        Initialize the base notifier.

        Parameters:
            enabled (bool): Whether the notifier is enabled
        """
        self.enabled = enabled

    @abstractmethod
    def send(self, messages: List[str]):
        """
        Send notification messages.

        Parameters:
            messages (List[str]): List of messages to send
        """
        pass

    def format_update_report(self, update_data: Dict[str, Any]) -> str:
        """
        Format the statistics of an update pass as plain text.

        Parameters:
            update_data (dict): Statistics collected by the NotificationManager

        Returns:
            str: Report text
        """
        lines = [f"deckhand update report for {update_data.get('hostname')}"]

        start_time, end_time = update_data.get("start_time"), update_data.get("end_time")
        if start_time and end_time:
            lines.append(f"Duration: {(end_time - start_time).total_seconds():.1f}s")

        lines.append(
            f"Scanned: {update_data.get('containers_scanned', 0)}, "
            f"stale: {update_data.get('containers_stale', 0)}, "
            f"updated: {update_data.get('containers_updated', 0)}, "
            f"failed: {update_data.get('containers_failed', 0)}"
        )
        if update_data.get("containers_stopped"):
            lines[-1] += f", stopped without restart: {update_data['containers_stopped']}"

        details = update_data.get("update_details") or []
        if details:
            lines.append("")
            lines.append("Containers:")
            for detail in details:
                reason = " (linked container updated)" if detail.get("state") == "stale_by_dependency" else ""
                lines.append(f"- {detail['container_name']} [{detail['image_reference']}]: {detail['status']}{reason}")

        for title, key in [("Errors", "errors"), ("Warnings", "warnings")]:
            if update_data.get(key):
                lines.append("")
                lines.append(f"{title}:")
                lines.extend(f"- {entry}" for entry in update_data[key])

        return "\n".join(lines)
