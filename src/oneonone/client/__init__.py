"""Python client for recording upload and status polling."""

from src.oneonone.client.api import DashboardClient
from src.oneonone.client.poller import RecordingSession, RecordingStatusPoller

__all__ = ["DashboardClient", "RecordingSession", "RecordingStatusPoller"]
