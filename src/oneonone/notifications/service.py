"""Notification emails for meetings and todos.

Every send_* method raises on delivery failure. Primary operations call
them through deliver_best_effort(), which logs the failure and carries on,
so a broken mail setup never blocks scheduling a meeting.

When no Gmail sender is configured the methods log and return False.
"""

from __future__ import annotations

import html
from collections.abc import Awaitable
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from src.oneonone.core.monitoring import notifications_total
from src.oneonone.directory.schemas import User
from src.oneonone.meetings.schemas import Meeting
from src.oneonone.services.gsuite import EmailMessage, GmailService, NotificationKind

logger = structlog.get_logger(__name__)

_STYLE = (
    "body{font-family:-apple-system,system-ui,sans-serif;line-height:1.6;color:#333}"
    ".container{max-width:600px;margin:0 auto;padding:20px}"
    ".header{background-color:#F37022;color:#fff;padding:20px;border-radius:12px 12px 0 0}"
    ".content{background-color:#F5F5F7;padding:30px;border-radius:0 0 12px 12px}"
    ".button{display:inline-block;background-color:#F37022;color:#fff;padding:12px 24px;"
    "text-decoration:none;border-radius:8px;margin-top:20px}"
)


def render_email(heading: str, paragraphs: list[str], link_label: str, link: str) -> str:
    """Wrap pre-escaped paragraphs in the dashboard's email layout."""
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<style>{_STYLE}</style></head><body><div class=\"container\">"
        f"<div class=\"header\"><h1>{html.escape(heading)}</h1></div>"
        f"<div class=\"content\">{body}"
        f"<a href=\"{html.escape(link, quote=True)}\" class=\"button\">{html.escape(link_label)}</a>"
        "</div></div></body></html>"
    )


async def deliver_best_effort(send: Awaitable[Any], event: str, **context: Any) -> bool:
    """Await a notification, logging instead of raising on failure."""
    try:
        await send
        return True
    except Exception:
        logger.warning(event, exc_info=True, **context)
        return False


class NotificationService:
    """Builds and sends the dashboard's notification emails.

    Args:
        gmail: Configured GmailService, or None to disable email.
        app_base_url: Base URL used for links back into the dashboard.
        tz_name: Timezone used to format meeting times.
    """

    def __init__(
        self,
        gmail: GmailService | None,
        app_base_url: str,
        tz_name: str = "UTC",
    ) -> None:
        self._gmail = gmail
        self._base_url = app_base_url.rstrip("/")
        self._zone = ZoneInfo(tz_name)

    @property
    def enabled(self) -> bool:
        return self._gmail is not None

    def _format_datetime(self, value: datetime) -> str:
        return value.astimezone(self._zone).strftime("%A, %B %d, %Y at %I:%M %p %Z")

    def _meeting_link(self, meeting_id: Any) -> str:
        return f"{self._base_url}/meetings/{meeting_id}"

    async def _send(
        self,
        kind: NotificationKind,
        to: User,
        subject: str,
        body_html: str,
        reply_to: User | None = None,
    ) -> bool:
        if self._gmail is None:
            logger.info("email.disabled", kind=kind.value, to=to.email)
            notifications_total.labels(kind=kind.value, outcome="disabled").inc()
            return False
        message = EmailMessage(
            to=[to.email],
            subject=subject,
            body_html=body_html,
            kind=kind,
            reply_to=reply_to.email if reply_to else None,
        )
        await self._gmail.send_email(message)
        logger.info("email.sent", kind=kind.value, to=to.email)
        notifications_total.labels(kind=kind.value, outcome="sent").inc()
        return True

    # ── Meetings ─────────────────────────────────────────────────────────

    async def send_meeting_scheduled(self, employee: User, reporter: User, meeting: Meeting) -> bool:
        when = html.escape(self._format_datetime(meeting.meeting_date))
        body = render_email(
            "One-on-One Meeting Scheduled",
            [
                f"Hi {html.escape(employee.name)},",
                f"A one-on-one meeting has been scheduled with {html.escape(reporter.name)}.",
                f"<strong>Date &amp; Time:</strong> {when}",
                "Please prepare your one-on-one form before the meeting.",
            ],
            "View Meeting",
            self._meeting_link(meeting.id),
        )
        return await self._send(
            NotificationKind.MEETING_SCHEDULED,
            employee,
            f"One-on-One Meeting Scheduled with {reporter.name}",
            body,
            reply_to=reporter,
        )

    async def send_meeting_proposed(self, employee: User, reporter: User, meeting: Meeting) -> bool:
        when = html.escape(self._format_datetime(meeting.meeting_date))
        body = render_email(
            "One-on-One Meeting Proposed",
            [
                f"Hi {html.escape(employee.name)},",
                f"{html.escape(reporter.name)} has proposed a recurring one-on-one meeting.",
                f"<strong>First meeting:</strong> {when}",
                "Please accept the proposal or suggest another time.",
            ],
            "Review Proposal",
            self._meeting_link(meeting.id),
        )
        return await self._send(
            NotificationKind.MEETING_PROPOSED,
            employee,
            f"Meeting Proposal from {reporter.name}",
            body,
            reply_to=reporter,
        )

    async def send_meeting_reminder(
        self, recipient: User, counterpart: User, meeting: Meeting, hours: int
    ) -> bool:
        when = html.escape(self._format_datetime(meeting.meeting_date))
        lead = "tomorrow" if hours >= 24 else f"in {hours} hour{'s' if hours != 1 else ''}"
        body = render_email(
            "Meeting Reminder",
            [
                f"Hi {html.escape(recipient.name)},",
                f"This is a reminder that your one-on-one with "
                f"<strong>{html.escape(counterpart.name)}</strong> is {lead}: {when}.",
                "Please prepare any topics you'd like to discuss.",
            ],
            "View Meeting",
            self._meeting_link(meeting.id),
        )
        subject = (
            "Meeting Reminder: One-on-One Tomorrow"
            if hours >= 24
            else "Meeting Reminder: One-on-One Starting Soon"
        )
        kind = NotificationKind.REMINDER_24H if hours >= 24 else NotificationKind.REMINDER_1H
        return await self._send(kind, recipient, subject, body, reply_to=counterpart)

    async def send_form_submitted(self, reporter: User, employee: User, meeting: Meeting) -> bool:
        when = html.escape(self._format_datetime(meeting.meeting_date))
        body = render_email(
            "One-on-One Form Submitted",
            [
                f"Hi {html.escape(reporter.name)},",
                f"{html.escape(employee.name)} has submitted their one-on-one form "
                f"for the meeting on {when}.",
                "Please review their responses before the meeting.",
            ],
            "View Form",
            self._meeting_link(meeting.id),
        )
        return await self._send(
            NotificationKind.FORM_SUBMITTED,
            reporter,
            f"{employee.name} has submitted their one-on-one form",
            body,
            reply_to=employee,
        )

    # ── Todos ────────────────────────────────────────────────────────────

    async def send_todo_assigned(
        self,
        assignee: User,
        created_by: User,
        title: str,
        description: str | None,
        due_date: date | datetime | None,
    ) -> bool:
        due = due_date.strftime("%B %d, %Y") if due_date else "No due date"
        paragraphs = [
            f"Hi {html.escape(assignee.name)},",
            "You have been assigned a new to-do:",
            f"<strong>{html.escape(title)}</strong>",
        ]
        if description:
            paragraphs.append(html.escape(description))
        paragraphs += [
            f"<strong>Due Date:</strong> {html.escape(due)}",
            f"<strong>Assigned by:</strong> {html.escape(created_by.name)}",
        ]
        body = render_email("New To-Do Assigned", paragraphs, "View To-Do", f"{self._base_url}/todos")
        return await self._send(
            NotificationKind.TODO_ASSIGNED, assignee, f"New To-Do: {title}", body, reply_to=created_by
        )
