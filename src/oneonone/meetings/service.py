"""Meeting operations with role-based access.

EMPLOYEE sees their own meetings, REPORTER the meetings they run plus
those of their direct reports, SUPER_ADMIN everything. Emails sent from
here are best effort.
"""

from __future__ import annotations

import re
import uuid

import structlog

from src.oneonone.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ServiceNotConfiguredError,
    ValidationError,
)
from src.oneonone.core.permissions import (
    MANAGER_ROLES,
    can_manage_meeting,
    can_view_meeting,
    require_role,
)
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.directory.schemas import Role, User
from src.oneonone.meetings.repository import MeetingRepository
from src.oneonone.meetings.schemas import (
    OPEN_STATUSES,
    Attachment,
    Meeting,
    MeetingCreate,
    MeetingFilter,
    MeetingForm,
    MeetingRequest,
    MeetingStatus,
)
from src.oneonone.notifications import NotificationService, deliver_best_effort
from src.oneonone.services.storage import LocalStorage, S3Storage

logger = structlog.get_logger(__name__)

MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class MeetingService:
    """Args:
        meeting_repository: Meeting and attachment persistence.
        directory_repository: User lookups for access checks and emails.
        storage: Blob storage for attachments.
        notifier: Optional email sender.
    """

    def __init__(
        self,
        meeting_repository: MeetingRepository,
        directory_repository: DirectoryRepository,
        storage: S3Storage | LocalStorage | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._meetings = meeting_repository
        self._directory = directory_repository
        self._storage = storage
        self._notifier = notifier

    # ── Access ───────────────────────────────────────────────────────────

    async def _load(self, meeting_id: uuid.UUID) -> tuple[Meeting, User | None]:
        meeting = await self._meetings.get_meeting(meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting not found")
        employee = await self._directory.get_user(meeting.employee_id)
        return meeting, employee

    async def get_viewable(self, actor: User, meeting_id: uuid.UUID) -> tuple[Meeting, User | None]:
        """Load a meeting the actor may see, with its employee."""
        meeting, employee = await self._load(meeting_id)
        if not can_view_meeting(actor, meeting.employee_id, meeting.reporter_id, employee):
            raise AuthorizationError("You do not have access to this meeting")
        return meeting, employee

    async def get_manageable(self, actor: User, meeting_id: uuid.UUID) -> tuple[Meeting, User | None]:
        """Load a meeting the actor may act on as reporter or admin."""
        meeting, employee = await self._load(meeting_id)
        if not can_manage_meeting(actor, meeting.reporter_id, employee):
            raise AuthorizationError("Only the meeting's reporter can do this")
        return meeting, employee

    # ── Create / Read ────────────────────────────────────────────────────

    async def create_meeting(self, actor: User, data: MeetingRequest) -> Meeting:
        require_role(actor, *MANAGER_ROLES)
        employee = await self._directory.get_user(data.employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundError("Employee not found")

        reporter = actor
        if actor.role == Role.SUPER_ADMIN and data.reporter_id and data.reporter_id != actor.id:
            found = await self._directory.get_user(data.reporter_id)
            if found is None:
                raise NotFoundError("Reporter not found")
            reporter = found
        if reporter.id == employee.id:
            raise ValidationError("A one-on-one needs two different people")

        meeting = await self._meetings.create_meeting(
            MeetingCreate(
                employee_id=employee.id,
                reporter_id=reporter.id,
                meeting_date=data.meeting_date,
                notes=data.notes,
            )
        )
        logger.info(
            "meeting.created",
            meeting_id=str(meeting.id),
            employee_id=str(employee.id),
            reporter_id=str(reporter.id),
        )
        if self._notifier is not None:
            await deliver_best_effort(
                self._notifier.send_meeting_scheduled(employee, reporter, meeting),
                "meeting.scheduled_email_failed",
                meeting_id=str(meeting.id),
            )
        return meeting

    async def list_meetings(
        self,
        actor: User,
        status: MeetingStatus | None = None,
        employee_id: uuid.UUID | None = None,
    ) -> list[Meeting]:
        filters = MeetingFilter(status=status, employee_id=employee_id)
        if actor.role == Role.EMPLOYEE:
            if employee_id is not None and employee_id != actor.id:
                return []
            filters.employee_id = actor.id
        elif actor.role == Role.REPORTER:
            reports = await self._directory.list_users(reports_to_id=actor.id, active_only=False)
            filters.visible_to_reporter_id = actor.id
            filters.visible_employee_ids = [u.id for u in reports]
        return await self._meetings.list_meetings(filters)

    async def participants(self, meeting: Meeting) -> dict[uuid.UUID, User]:
        """Employee and reporter of a meeting, keyed by id."""
        return await self._directory.get_users([meeting.employee_id, meeting.reporter_id])

    async def get_meeting(self, actor: User, meeting_id: uuid.UUID) -> Meeting:
        meeting, _ = await self.get_viewable(actor, meeting_id)
        return meeting

    # ── Status ───────────────────────────────────────────────────────────

    async def accept_meeting(self, actor: User, meeting_id: uuid.UUID) -> Meeting:
        """Employee accepts a proposed meeting: PROPOSED -> SCHEDULED."""
        meeting, _ = await self.get_viewable(actor, meeting_id)
        if actor.id != meeting.employee_id:
            raise AuthorizationError("Only the invited employee can accept this meeting")
        if meeting.status != MeetingStatus.PROPOSED:
            raise ConflictError("Only proposed meetings can be accepted")
        updated = await self._meetings.update_status(meeting.id, MeetingStatus.SCHEDULED)
        logger.info("meeting.accepted", meeting_id=str(meeting.id))
        return updated

    async def complete_meeting(self, actor: User, meeting_id: uuid.UUID) -> Meeting:
        meeting, _ = await self.get_manageable(actor, meeting_id)
        if meeting.status not in OPEN_STATUSES:
            raise ConflictError(f"Cannot complete a {meeting.status.value.lower()} meeting")
        updated = await self._meetings.update_status(meeting.id, MeetingStatus.COMPLETED)
        logger.info("meeting.completed", meeting_id=str(meeting.id))
        return updated

    async def cancel_meeting(self, actor: User, meeting_id: uuid.UUID) -> Meeting:
        meeting, _ = await self.get_manageable(actor, meeting_id)
        if meeting.status not in OPEN_STATUSES:
            raise ConflictError(f"Cannot cancel a {meeting.status.value.lower()} meeting")
        updated = await self._meetings.update_status(meeting.id, MeetingStatus.CANCELLED)
        logger.info("meeting.cancelled", meeting_id=str(meeting.id))
        return updated

    # ── Form / Notes ─────────────────────────────────────────────────────

    async def submit_form(self, actor: User, meeting_id: uuid.UUID, form: MeetingForm) -> Meeting:
        """Employee submits their answers; the meeting becomes COMPLETED."""
        meeting, employee = await self._load(meeting_id)
        if actor.id != meeting.employee_id:
            raise AuthorizationError("Only the meeting's employee can submit the form")
        if meeting.status == MeetingStatus.CANCELLED:
            raise ConflictError("Cannot submit a form for a cancelled meeting")

        updated = await self._meetings.save_form(meeting.id, form)
        logger.info("meeting.form_submitted", meeting_id=str(meeting.id))

        if self._notifier is not None:
            reporter = await self._directory.get_user(meeting.reporter_id)
            if reporter is not None:
                await deliver_best_effort(
                    self._notifier.send_form_submitted(reporter, employee or actor, updated),
                    "meeting.form_email_failed",
                    meeting_id=str(meeting.id),
                )
        return updated

    async def update_notes(self, actor: User, meeting_id: uuid.UUID, notes: str | None) -> Meeting:
        meeting, _ = await self.get_manageable(actor, meeting_id)
        return await self._meetings.update_notes(meeting.id, notes)

    # ── Attachments ──────────────────────────────────────────────────────

    async def upload_attachment(
        self,
        actor: User,
        meeting_id: uuid.UUID,
        file_name: str,
        content_type: str,
        data: bytes,
    ) -> Attachment:
        meeting, _ = await self.get_viewable(actor, meeting_id)
        if self._storage is None:
            raise ServiceNotConfiguredError("File storage not initialized")
        if not data:
            raise ValidationError("Attachment is empty")
        if len(data) > MAX_ATTACHMENT_BYTES:
            raise ValidationError("Attachment exceeds the 25 MB limit")

        safe_name = _UNSAFE_FILENAME.sub("_", file_name).strip("._") or "file"
        key = f"attachments/{meeting.id}/{uuid.uuid4().hex}-{safe_name}"
        await self._storage.save(key, data, content_type)

        attachment = await self._meetings.add_attachment(
            meeting_id=meeting.id,
            uploaded_by_id=actor.id,
            file_name=file_name,
            content_type=content_type,
            size_bytes=len(data),
            storage_key=key,
        )
        logger.info(
            "meeting.attachment_uploaded",
            meeting_id=str(meeting.id),
            attachment_id=str(attachment.id),
            size_bytes=len(data),
        )
        return attachment

    async def list_attachments(self, actor: User, meeting_id: uuid.UUID) -> list[Attachment]:
        meeting, _ = await self.get_viewable(actor, meeting_id)
        return await self._meetings.list_attachments(meeting.id)

    async def download_attachment(
        self, actor: User, meeting_id: uuid.UUID, attachment_id: uuid.UUID
    ) -> tuple[Attachment, bytes]:
        """Attachment metadata and content for anyone who can view the meeting."""
        meeting, _ = await self.get_viewable(actor, meeting_id)
        attachment = await self._meetings.get_attachment(attachment_id)
        if attachment is None or attachment.meeting_id != meeting.id:
            raise NotFoundError("Attachment not found")
        if self._storage is None:
            raise ServiceNotConfiguredError("File storage not initialized")
        return attachment, await self._storage.load(attachment.storage_key)
