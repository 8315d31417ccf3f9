"""Outbound notification emails (meetings, reminders, todos)."""

from src.oneonone.notifications.service import NotificationService, deliver_best_effort

__all__ = ["NotificationService", "deliver_best_effort"]
