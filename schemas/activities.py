"""Activity DTOs: tasks, calls, meetings, notes and emails."""
import os
from datetime import datetime
from typing import Annotated, Any, ClassVar, Dict, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field, ValidationInfo, field_validator

from schemas.enums import (
    ACTIVITY_MODULES,
    ACTIVITY_PARENT_TYPES,
    ACTIVITY_TYPES,
    CALL_DIRECTIONS,
    CALL_STATUSES,
    EMAIL_STATUSES,
    EMAIL_TYPES,
    MEETING_TYPES,
    NOTE_PARENT_TYPES,
    NOTE_TYPES,
    REMOTE_TYPES,
    REPEAT_TYPES,
    TASK_PARENT_TYPES,
    TASK_PRIORITIES,
    TASK_STATUSES,
)
from schemas.validation import (
    Percent,
    RecordModel,
    Required,
    choice,
    is_email,
    not_before,
)

MIME_TYPES = {
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "txt": "text/plain",
    "csv": "text/csv",
}

ActivityParent = Annotated[Optional[str], choice(ACTIVITY_PARENT_TYPES, "Invalid parent type")]
DurationHours = Annotated[Optional[int], Field(ge=0)]
DurationMinutes = Annotated[Optional[int], Field(ge=0, le=59)]


def guess_mime_type(filename: str) -> Optional[str]:
    extension = os.path.splitext(filename)[1].lstrip(".").lower()
    return MIME_TYPES.get(extension)


class TaskDTO(RecordModel):
    name: Required
    status: Annotated[Optional[str], choice(TASK_STATUSES, "Invalid task status")] = None
    priority: Annotated[Optional[str], choice(TASK_PRIORITIES, "Invalid task priority")] = None
    date_start: Optional[datetime] = None
    date_due: Optional[datetime] = None
    parent_type: Annotated[
        Optional[str], choice(TASK_PARENT_TYPES, "Invalid parent type")
    ] = None
    parent_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None
    description: Optional[str] = None
    percent_complete: Percent = None

    @field_validator("date_due")
    @classmethod
    def due_after_start(cls, value, info: ValidationInfo):
        return not_before(value, info.data.get("date_start"), "Due date must be after start date")


class _Scheduled(RecordModel):
    """Fields shared by calls and meetings."""

    name: Required
    status: Optional[str] = None
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    duration_hours: DurationHours = None
    duration_minutes: DurationMinutes = None
    description: Optional[str] = None
    parent_type: ActivityParent = None
    parent_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None
    repeat_type: Annotated[Optional[str], choice(REPEAT_TYPES, "Invalid repeat type")] = None
    repeat_interval: Optional[int] = Field(default=None, ge=1)
    repeat_until: Optional[datetime] = None

    @field_validator("date_end")
    @classmethod
    def end_after_start(cls, value, info: ValidationInfo):
        return not_before(value, info.data.get("date_start"), "End date must be after start date")

    @property
    def duration(self) -> int:
        """Total duration in minutes."""
        return (self.duration_hours or 0) * 60 + (self.duration_minutes or 0)


class CallDTO(_Scheduled):
    status: Annotated[Optional[str], choice(CALL_STATUSES, "Invalid call status")] = None
    direction: Annotated[Optional[str], choice(CALL_DIRECTIONS, "Invalid call direction")] = None
    phone_number: Optional[str] = None
    call_purpose: Optional[str] = None
    call_result: Optional[str] = None


class MeetingDTO(_Scheduled):
    status: Annotated[Optional[str], choice(CALL_STATUSES, "Invalid meeting status")] = None
    type: Annotated[Optional[str], choice(MEETING_TYPES, "Invalid meeting type")] = None
    location: Optional[str] = None
    is_remote: Optional[bool] = None
    remote_type: Annotated[
        Optional[str], choice(REMOTE_TYPES, "Invalid remote meeting type")
    ] = None
    external_url: Optional[str] = None
    invitees: List[Dict[str, Any]] = Field(default_factory=list)


class NoteDTO(RecordModel):
    filename: Optional[str] = None
    name: Optional[str] = Field(default=None, validate_default=True)
    description: Optional[str] = None
    file_mime_type: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    parent_type: Annotated[
        Optional[str], choice(NOTE_PARENT_TYPES, "Invalid parent type")
    ] = None
    parent_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None
    note_type: Annotated[Optional[str], choice(NOTE_TYPES, "Invalid note type")] = None
    portal_flag: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_or_filename(cls, value, info: ValidationInfo):
        if not value and not info.data.get("filename"):
            raise ValueError("Note subject or filename is required")
        return value

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        if self.filename:
            record.setdefault("name", self.filename)
            if not self.file_mime_type:
                mime = guess_mime_type(self.filename)
                if mime:
                    record["file_mime_type"] = mime
        return record


class EmailDTO(RecordModel):
    subject: Required
    type: Annotated[Optional[str], choice(EMAIL_TYPES, "Invalid email type")] = None
    status: Annotated[Optional[str], choice(EMAIL_STATUSES, "Invalid email status")] = None
    from_addr: Optional[EmailStr] = None
    from_name: Optional[str] = None
    to_addrs: Optional[str] = None
    cc_addrs: Optional[str] = None
    reply_to_addr: Optional[EmailStr] = None
    date_sent: Optional[datetime] = None
    description: Optional[str] = None
    description_html: Optional[str] = None
    parent_type: ActivityParent = None
    parent_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None

    record_aliases: ClassVar[Dict[str, str]] = {"subject": "name"}

    @field_validator("to_addrs")
    @classmethod
    def recipients_are_emails(cls, value):
        for address in (value or "").split(","):
            address = address.strip()
            if address and not is_email(address):
                raise ValueError(f"Invalid email address in recipients: {address}")
        return value

    @property
    def recipients(self) -> List[str]:
        return [a.strip() for a in (self.to_addrs or "").split(",") if a.strip()]


class ActivityDTO(RecordModel):
    """Unified view over any activity record, used by timelines."""

    type: Annotated[str, Field(min_length=1), choice(ACTIVITY_TYPES, "Invalid activity type")]
    module: Annotated[Optional[str], choice(ACTIVITY_MODULES, "Invalid module")] = None
    description: Optional[str] = None
    subject: Optional[str] = Field(default=None, validate_default=True)
    status: Optional[str] = None
    priority: Optional[str] = None
    date: Optional[datetime] = None
    date_start: Optional[datetime] = None
    date_due: Optional[datetime] = None
    duration_hours: DurationHours = None
    duration_minutes: DurationMinutes = None
    parent_type: Optional[str] = None
    parent_id: Optional[UUID] = None
    contact_id: Optional[UUID] = None
    assigned_user_id: Optional[str] = None
    email_direction: Annotated[
        Optional[str], choice(("inbound", "outbound"), "Invalid email direction")
    ] = None
    call_direction: Annotated[
        Optional[str], choice(("inbound", "outbound"), "Invalid call direction")
    ] = None
    email_sentiment: Annotated[
        Optional[str], choice(("positive", "neutral", "negative"), "Invalid email sentiment")
    ] = None
    is_completed: Optional[bool] = None

    record_aliases: ClassVar[Dict[str, str]] = {"subject": "name"}

    @field_validator("subject")
    @classmethod
    def subject_or_description(cls, value, info: ValidationInfo):
        if not value and not info.data.get("description"):
            raise ValueError("Either subject or description is required")
        return value
