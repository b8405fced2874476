from .lead import LeadDTO, ContactDTO
from .opportunity import OpportunityDTO, CaseDTO, QuoteDTO, LineItem
from .activities import (
    TaskDTO,
    CallDTO,
    MeetingDTO,
    NoteDTO,
    EmailDTO,
    ActivityDTO,
)
from .validation import RecordModel, validate_dto, to_record

__all__ = [
    "LeadDTO", "ContactDTO",
    "OpportunityDTO", "CaseDTO", "QuoteDTO", "LineItem",
    "TaskDTO", "CallDTO", "MeetingDTO", "NoteDTO", "EmailDTO", "ActivityDTO",
    "RecordModel", "validate_dto", "to_record",
]
